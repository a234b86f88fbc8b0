"""
Stereo-aware molecule.

:class:`StereoMolecule` adds the helper cache to the graph store and offers
read-only queries on derived stereo data. Each query computes the minimal
tier it needs; none of them changes the molecular graph, with the single
exception of racemate resolution, which turns the racemate flag into
explicit AND groups.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from stereomol.helpers import (
    HELPER_CIP,
    HELPER_PARITIES,
    HELPER_SYMMETRY_SIMPLE,
    AtomFlag,
    DerivedState,
    HelperBit,
    HelperCache,
)
from stereomol.idcode import decode_identifier
from stereomol.stereo.esr import esr_groups, is_meso
from stereomol.types import AtomParity, BondParity, BondStereo, ESRType, Molecule
from stereomol.validation import StereoValidator

if TYPE_CHECKING:
    from stereomol.canon import CanonState
    from stereomol.exceptions import StereoValidationError


class Chirality(Enum):
    """What a molecule with stereocenters stands for."""

    NOT_CHIRAL = "not chiral"
    MESO = "meso"
    UNKNOWN = "unknown chirality"
    RACEMATE = "racemate"
    ENANTIOMER = "this enantiomer"
    ENANTIOMER_UNKNOWN = "this or other enantiomer"
    EPIMERS = "two epimers"
    DIASTEREOMERS = "stereo isomers"


_SYMMETRY_TIERS = {
    HelperBit.SYMMETRY_SIMPLE,
    HelperBit.SYMMETRY_DIASTEREOTOPIC,
    HelperBit.SYMMETRY_ENANTIOTOPIC,
}


@dataclass
class StereoMolecule(Molecule):
    """Molecule with cached canonicalization and stereo perception.

    Example:
        >>> mol = StereoMolecule()
        >>> ...  # build 2-butanol with one wedge
        >>> mol.stereo_center_count()
        1
        >>> mol.cip_label(1)
        'R'
    """

    _helpers: HelperCache = field(default_factory=HelperCache, repr=False, compare=False)
    _include_nitrogen: bool = field(default=False, repr=False)

    @classmethod
    def from_identifier(cls, identifier: str, coordinates: str | None = None) -> "StereoMolecule":
        """Decode an identifier, see :func:`stereomol.idcode.decode_identifier`."""
        return decode_identifier(identifier, coordinates)

    # ------------------------------------------------------------------
    # Policy and helper data
    # ------------------------------------------------------------------

    @property
    def assign_parities_to_nitrogen(self) -> bool:
        """Whether tetrahedral nitrogen counts as stereocenter."""
        return self._include_nitrogen

    @assign_parities_to_nitrogen.setter
    def assign_parities_to_nitrogen(self, value: bool) -> None:
        if value != self._include_nitrogen:
            self._include_nitrogen = value
            self._helpers.invalidate(
                HelperBit.PARITIES
                | HelperBit.CIP
                | HelperBit.SYMMETRY_SIMPLE
                | HelperBit.SYMMETRY_DIASTEREOTOPIC
                | HelperBit.SYMMETRY_ENANTIOTOPIC
                | HelperBit.INCLUDE_NITROGEN_PARITIES
            )

    def ensure_helper_arrays(self, required: HelperBit) -> DerivedState:
        """Compute derived data up to the requested tier."""
        return self._helpers.ensure(self, required, self._include_nitrogen)

    def canonical_state(self, required: HelperBit = HELPER_PARITIES) -> "CanonState":
        return self.ensure_helper_arrays(required).canon_state()

    # ------------------------------------------------------------------
    # Canonical ranks and identifiers
    # ------------------------------------------------------------------

    def canonical_rank(self, atom_idx: int) -> int:
        return self.canonical_state().canonical_ranks[atom_idx]

    def symmetry_rank(self, atom_idx: int, tier: HelperBit = HELPER_SYMMETRY_SIMPLE) -> int:
        """Dense 1-based symmetry rank of an atom.

        Args:
            atom_idx: Atom index.
            tier: One of HELPER_SYMMETRY_SIMPLE, HELPER_SYMMETRY_DIASTEREOTOPIC
                or HELPER_SYMMETRY_ENANTIOTOPIC.
        """
        bit = HelperBit(tier) & (
            HelperBit.SYMMETRY_SIMPLE
            | HelperBit.SYMMETRY_DIASTEREOTOPIC
            | HelperBit.SYMMETRY_ENANTIOTOPIC
        )
        if bit not in _SYMMETRY_TIERS:
            raise ValueError(f"Not a single symmetry tier: {tier!r}")
        derived = self.ensure_helper_arrays(tier)
        return derived.symmetry_ranks(bit)[atom_idx]

    def canonical_identifier(self) -> str:
        return self.canonical_state().identifier

    def canonical_coordinates(self) -> str:
        return self.canonical_state().coordinates

    # ------------------------------------------------------------------
    # Stereo queries
    # ------------------------------------------------------------------

    def stereo_center_count(self) -> int:
        """Number of true stereocenters; pseudo centers don't count."""
        return self.canonical_state().stereo_center_count

    def is_stereo_center(self, atom_idx: int) -> bool:
        return atom_idx in self.canonical_state().stereo_centers

    def atom_parity(self, atom_idx: int) -> AtomParity:
        """Relative parity referring to neighbours in atom index order."""
        return self.canonical_state().atom_parities[atom_idx]

    def absolute_atom_parity(self, atom_idx: int) -> AtomParity:
        """Parity referring to neighbours in canonical order."""
        return self.canonical_state().absolute_atom_parities[atom_idx]

    def is_atom_parity_pseudo(self, atom_idx: int) -> bool:
        return atom_idx in self.canonical_state().atom_parity_pseudo

    def bond_parity(self, bond_idx: int) -> BondParity:
        return self.canonical_state().bond_parities[bond_idx]

    def absolute_bond_parity(self, bond_idx: int) -> BondParity:
        return self.canonical_state().absolute_bond_parities[bond_idx]

    def atom_flags(self, atom_idx: int) -> AtomFlag:
        return self.ensure_helper_arrays(HELPER_PARITIES).atom_flags(atom_idx)

    def cip_label(self, atom_idx: int) -> str | None:
        """CIP descriptor of a stereocenter: R, S, r, s or ? if unknown."""
        return self.canonical_state(HELPER_CIP).cip_atom_labels[atom_idx] or None

    def bond_cip_label(self, bond_idx: int) -> str | None:
        """CIP descriptor of a stereo double bond: E, Z or ? if unknown."""
        return self.canonical_state(HELPER_CIP).cip_bond_labels[bond_idx] or None

    def set_unknown_parities_to_explicitly_unknown(self) -> None:
        """Make undetermined stereo elements explicitly unknown.

        Stereocenters of unknown configuration get an explicit UNKNOWN
        parity and stereo double bonds of unknown configuration are crossed.
        """
        canon = self.canonical_state()
        for atom_idx in sorted(canon.stereo_centers):
            if canon.atom_parities[atom_idx] == AtomParity.UNKNOWN:
                self.set_atom_parity(atom_idx, AtomParity.UNKNOWN)
        for bond_idx in sorted(canon.stereo_bonds):
            if canon.bond_parities[bond_idx] == BondParity.UNKNOWN:
                self.set_bond_stereo(bond_idx, BondStereo.CROSS)

    def chirality(self) -> tuple[Chirality, int]:
        """Classify what the drawn stereochemistry stands for.

        Returns:
            Tuple of (chirality, number of stereo isomers represented).
        """
        canon = self.canonical_state()
        centers = sorted(canon.stereo_centers - canon.atom_parity_pseudo)
        if not centers:
            return Chirality.NOT_CHIRAL, 1
        if any(not canon.atom_parities[a].is_known for a in centers):
            return Chirality.UNKNOWN, 0

        members = canon.esr_members & set(centers)
        groups = esr_groups(self, members)
        if is_meso(self, self.ensure_helper_arrays(HELPER_PARITIES).rings, self._include_nitrogen):
            # Inverting every group at once gives the mirror image, which is the same meso form
            return Chirality.MESO, 2 ** max(len(groups) - 1, 0)

        has_abs = len(members) < len(centers)
        if not groups:
            return Chirality.ENANTIOMER, 1
        if len(groups) == 1:
            esr_type, _ = next(iter(groups))
            if has_abs:
                return Chirality.EPIMERS, 2
            if esr_type == ESRType.AND:
                return Chirality.RACEMATE, 2
            return Chirality.ENANTIOMER_UNKNOWN, 1
        return Chirality.DIASTEREOMERS, 2 ** len(groups)

    def chiral_text(self) -> str | None:
        """Human readable chirality, None for molecules without stereocenters."""
        chirality, count = self.chirality()
        if chirality is Chirality.NOT_CHIRAL:
            return None
        if chirality is Chirality.MESO and count > 1:
            return f"{count} meso diastereomers"
        if chirality is Chirality.DIASTEREOMERS:
            return "one stereo isomer" if count == 1 else f"{count} {chirality.value}"
        return chirality.value

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Raise the first stereo problem, see :class:`StereoValidator`."""
        StereoValidator(self).validate()

    def problems(self) -> list["StereoValidationError"]:
        return StereoValidator(self).problems()

    # ------------------------------------------------------------------
    # Copying
    # ------------------------------------------------------------------

    def _new_like(self) -> "StereoMolecule":
        mol = super()._new_like()
        mol._include_nitrogen = self._include_nitrogen
        return mol
