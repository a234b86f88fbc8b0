"""Ring detection and analysis."""

from stereomol.rings.detection import (
    RingInfo,
    find_ring_atoms_and_bonds,
    get_bond_ring_sizes,
    get_min_ring_sizes,
    ring_info,
)

__all__ = [
    "RingInfo",
    "find_ring_atoms_and_bonds",
    "get_bond_ring_sizes",
    "get_min_ring_sizes",
    "ring_info",
]
