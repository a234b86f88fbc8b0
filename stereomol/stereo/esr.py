"""
Enhanced stereo representation (ESR) groups.

AND groups stand for racemic centers, OR groups for one unknown enantiomer
of the group. A group's configuration is only defined up to inversion of all
its members, which is why groups are normalized before serialization.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Sequence

from stereomol.types import AtomParity, ESRType

if TYPE_CHECKING:
    from stereomol.canon import CanonState
    from stereomol.rings import RingInfo
    from stereomol.types import Molecule


logger = logging.getLogger(__name__)


def esr_groups(
    mol: "Molecule",
    members: Iterable[int],
) -> dict[tuple[ESRType, int], list[int]]:
    """Group member atoms by (type, group number)."""
    groups: dict[tuple[ESRType, int], list[int]] = {}
    for atom_idx in sorted(members):
        atom = mol.atoms[atom_idx]
        groups.setdefault((atom.esr_type, atom.esr_group), []).append(atom_idx)
    return groups


def normalize_esr_parities(
    mol: "Molecule",
    ranks: Sequence[int],
    parities: Sequence[AtomParity],
    members: Iterable[int],
) -> list[AtomParity]:
    """Invert whole groups so that each group's lowest-ranked member has PARITY1.

    Args:
        mol: Molecule.
        ranks: Canonical rank per atom.
        parities: Absolute parity per atom.
        members: Atoms whose ESR membership is valid.

    Returns:
        New list of parities.
    """
    result = list(parities)
    for atoms in esr_groups(mol, members).values():
        lowest = min(atoms, key=lambda a: ranks[a])
        if result[lowest] == AtomParity.PARITY2:
            for atom_idx in atoms:
                result[atom_idx] = result[atom_idx].inverted()
    return result


def renumber_esr_groups(mol: "Molecule", ranks: Sequence[int]) -> bool:
    """Renumber AND and OR groups canonically by their lowest-ranked member."""
    changed = mol.renumber_esr_groups(ESRType.AND, ranks)
    return mol.renumber_esr_groups(ESRType.OR, ranks) or changed


def is_meso(
    mol: "Molecule",
    rings: "RingInfo | None" = None,
    include_nitrogen: bool = False,
) -> bool:
    """True if the molecule is superimposable on its mirror image.

    ESR groups are ignored, so this compares the drawn configurations.
    Molecules without known stereocenters are trivially meso.
    """
    from stereomol.canon import Canonicalizer, RankMode

    mode = RankMode.ASSIGN_PARITIES_TO_TETRAHEDRAL_N if include_nitrogen else RankMode.NONE
    original = Canonicalizer(mol, mode, ignore_esr=True, rings=rings).identifier()
    mirror = Canonicalizer(mol.mirrored(), mode, ignore_esr=True, rings=rings).identifier()
    return original == mirror


def resolve_esr(
    mol: "Molecule",
    state: "CanonState",
    rings: "RingInfo | None" = None,
    include_nitrogen: bool = False,
) -> bool:
    """Turn a racemate flag into explicit AND groups and renumber groups.

    If the molecule stands for its racemate and is not meso, centers already
    in an AND group become independent AND groups of their own with PARITY1
    as explicit parity, and every other center of known configuration joins
    AND group 0. The racemate flag is cleared afterwards.

    Args:
        mol: Molecule to update in place.
        state: Canonicalization result for the current molecule.
        rings: Precomputed ring perception.
        include_nitrogen: Nitrogen option used for the meso check.

    Returns:
        True if parities or group memberships changed, which requires the
        molecule to be canonicalized again.
    """
    changed = False

    if mol.is_racemate:
        if not is_meso(mol, rings, include_nitrogen):
            known = [
                atom_idx for atom_idx in sorted(state.stereo_centers)
                if state.atom_parities[atom_idx].is_known
            ]
            independent = [
                atom_idx for atom_idx in known
                if mol.atoms[atom_idx].esr_type == ESRType.AND
            ]
            for atom_idx in known:
                mol.set_atom_esr(atom_idx, ESRType.AND, 0)
                changed = True
            for atom_idx in independent:
                mol.set_atom_parity(atom_idx, AtomParity.PARITY1)
                mol.set_atom_esr(atom_idx, ESRType.AND, -1)
            if changed:
                logger.debug(f"Resolved racemate into AND groups for {len(known)} centers")
        mol.is_racemate = False
        mol.invalidate()

    renumber_esr_groups(mol, state.canonical_ranks)
    return changed
