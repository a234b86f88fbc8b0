"""Topological symmetry statistics."""

from __future__ import annotations

from typing import TYPE_CHECKING

from stereomol.helpers import HELPER_SYMMETRY_SIMPLE, HelperBit

if TYPE_CHECKING:
    from stereomol.stereomolecule import StereoMolecule


def ratio_symmetric_atoms(mol: "StereoMolecule") -> float:
    """Share of atoms that are symmetry equivalent to another atom.

    Only the largest fragment is considered. The input molecule is not
    modified.

    Returns:
        (atoms - distinct symmetry ranks) / atoms, 0.0 for empty molecules.
    """
    fragment = mol.copy()
    fragment.strip_small_fragments()
    n_atoms = fragment.num_atoms
    if n_atoms == 0:
        return 0.0

    derived = fragment.ensure_helper_arrays(HELPER_SYMMETRY_SIMPLE)
    max_rank = max(derived.symmetry_ranks(HelperBit.SYMMETRY_SIMPLE))
    return (n_atoms - max_rank) / n_atoms
