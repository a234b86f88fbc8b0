"""
Stereo validation.

Checks that stereo features of a molecule are well formed: ESR groups only
contain stereocenters of known configuration, wedges are neither
contradictory nor superfluous, and wedge-defined centers are not drawn with
two parallel plain bonds.
"""

from __future__ import annotations

from itertools import combinations
from typing import TYPE_CHECKING

from stereomol.exceptions import (
    AmbiguousConfigurationError,
    EsrCenterUnknownError,
    StereoOverUnderSpecifiedError,
    StereoValidationError,
)
from stereomol.helpers import HELPER_CIP
from stereomol.stereo.geometry import bond_angle, bonds_are_parallel
from stereomol.types import AtomParity, BondStereo, ESRType

if TYPE_CHECKING:
    from stereomol.canon import CanonState
    from stereomol.stereomolecule import StereoMolecule


class StereoValidator:
    """Validate stereo features of a molecule.

    Validation does not modify the molecule apart from computing its helper
    data.

    Example:
        >>> StereoValidator(mol).problems()
        []
    """

    def __init__(self, mol: "StereoMolecule") -> None:
        self._mol = mol

    def validate(self) -> None:
        """Raise the first problem found.

        Raises:
            StereoValidationError: One of its subclasses naming the atom and
                bonds involved.
        """
        for error in self._iter_problems():
            raise error

    def problems(self) -> list[StereoValidationError]:
        """Collect all problems, at most one per atom."""
        return list(self._iter_problems())

    def _iter_problems(self):
        mol = self._mol
        canon = mol.ensure_helper_arrays(HELPER_CIP).canon_state()

        for atom in mol.atoms:
            error = self._check_atom(canon, atom.idx)
            if error is not None:
                yield error

    def _check_atom(self, canon: "CanonState", atom_idx: int) -> StereoValidationError | None:
        mol = self._mol
        atom = mol.atoms[atom_idx]

        if atom.esr_type != ESRType.ABS:
            if (
                atom_idx not in canon.stereo_centers
                or canon.atom_parities[atom_idx] == AtomParity.UNKNOWN
            ):
                return EsrCenterUnknownError(atom_idx)

        if atom_idx in canon.stereo_problems:
            bonds = tuple(
                bond.idx for bond in atom.get_bonds(mol)
                if bond.atom1_idx == atom_idx and bond.stereo != BondStereo.NONE
            )
            return StereoOverUnderSpecifiedError(atom_idx, bonds)

        if atom_idx in canon.wedge_defined and atom.pi_electrons(mol) == 0:
            plain = [
                bond for bond in atom.get_bonds(mol)
                if not bond.is_stereo_bond_from(atom_idx)
            ]
            for b1, b2 in combinations(plain, 2):
                angle1 = bond_angle(mol, atom_idx, b1.other_atom(atom_idx))
                angle2 = bond_angle(mol, atom_idx, b2.other_atom(atom_idx))
                if bonds_are_parallel(angle1, angle2):
                    return AmbiguousConfigurationError(atom_idx, (b1.idx, b2.idx))

        return None
