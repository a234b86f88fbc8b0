"""Stereo perception: geometry, candidates, CIP labels, ESR groups."""

from stereomol.stereo.cip import cip_labels, cip_priorities
from stereomol.stereo.esr import (
    is_meso,
    normalize_esr_parities,
    renumber_esr_groups,
    resolve_esr,
)
from stereomol.stereo.geometry import (
    PARALLEL_BOND_TOLERANCE,
    angle_dif,
    bond_angle,
    bonds_are_parallel,
    double_bond_parity,
    tetrahedral_parity,
)
from stereomol.stereo.heterotopic import heterotopic_subclasses
from stereomol.stereo.perception import (
    MIN_STEREO_RING_SIZE,
    StereoPerceiver,
    reorder_parity,
)

__all__ = [
    "cip_labels",
    "cip_priorities",
    "is_meso",
    "normalize_esr_parities",
    "renumber_esr_groups",
    "resolve_esr",
    "PARALLEL_BOND_TOLERANCE",
    "angle_dif",
    "bond_angle",
    "bonds_are_parallel",
    "double_bond_parity",
    "tetrahedral_parity",
    "heterotopic_subclasses",
    "MIN_STEREO_RING_SIZE",
    "StereoPerceiver",
    "reorder_parity",
]
