"""Tests for enhanced stereo groups, racemates and chirality classification."""

import pytest

from stereomol import AtomParity, BondParity, BondStereo, Chirality, ESRType
from stereomol.stereo import is_meso, resolve_esr

from .conftest import but2ene_2d, chain, chfclbr_2d, chfclbr_3d, dichlorobutane


class TestEsrIdentifiers:
    """A group's configuration is only defined up to inversion."""

    @pytest.mark.parametrize("esr_type", [ESRType.AND, ESRType.OR])
    def test_group_enantiomers_are_equal(self, esr_type):
        mol = chfclbr_3d()
        mirror = chfclbr_3d(mirror=True)
        mol.set_atom_esr(0, esr_type)
        mirror.set_atom_esr(0, esr_type)
        assert mol.canonical_identifier() == mirror.canonical_identifier()

    def test_group_type_is_encoded(self):
        absolute = chfclbr_3d()
        racemic = chfclbr_3d()
        racemic.set_atom_esr(0, ESRType.AND)
        relative = chfclbr_3d()
        relative.set_atom_esr(0, ESRType.OR)
        identifiers = {
            absolute.canonical_identifier(),
            racemic.canonical_identifier(),
            relative.canonical_identifier(),
        }
        assert len(identifiers) == 3

    def test_group_numbers_do_not_matter(self):
        first = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY2)
        first.set_atom_esr(1, ESRType.AND, 0)
        first.set_atom_esr(3, ESRType.AND, 1)
        second = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY2)
        second.set_atom_esr(1, ESRType.AND, 5)
        second.set_atom_esr(3, ESRType.AND, 2)
        assert first.canonical_identifier() == second.canonical_identifier()

    def test_groups_renumbered_canonically(self):
        mol = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY2)
        mol.set_atom_esr(1, ESRType.AND, 4)
        mol.set_atom_esr(3, ESRType.AND, 7)
        mol.canonical_identifier()
        assert sorted(a.esr_group for a in mol.atoms if a.esr_type == ESRType.AND) == [0, 1]

    def test_unknown_center_is_not_a_member(self):
        mol = chfclbr_2d(BondStereo.NONE)
        mol.set_atom_esr(0, ESRType.AND)
        assert 0 not in mol.canonical_state().esr_members


class TestRacemate:
    """The racemate flag turns into an AND group."""

    def test_racemate_becomes_and_group(self):
        mol = chfclbr_3d()
        mol.is_racemate = True
        mol.canonical_identifier()
        assert mol.atoms[0].esr_type == ESRType.AND
        assert mol.atoms[0].esr_group == 0
        assert not mol.is_racemate

    def test_racemate_matches_explicit_group(self):
        flagged = chfclbr_3d(mirror=True)
        flagged.is_racemate = True
        grouped = chfclbr_3d()
        grouped.set_atom_esr(0, ESRType.AND)
        assert flagged.canonical_identifier() == grouped.canonical_identifier()

    def test_resolution_happens_once(self):
        mol = chfclbr_3d()
        mol.is_racemate = True
        state = mol.canonical_state()
        assert not resolve_esr(mol, state)
        assert mol.canonical_state().identifier == state.identifier

    def test_meso_racemate_is_unchanged(self):
        mol = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY1)
        mol.is_racemate = True
        mol.canonical_identifier()
        assert all(a.esr_type == ESRType.ABS for a in mol.atoms)
        assert not mol.is_racemate

    def test_existing_and_group_stays_independent(self):
        mol = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY2)
        mol.set_atom_esr(3, ESRType.AND)
        mol.is_racemate = True
        mol.canonical_identifier()
        groups = {a.esr_group for a in mol.atoms if a.esr_type == ESRType.AND}
        assert len(groups) == 2


class TestMeso:
    """Superimposable on the mirror image."""

    @pytest.mark.parametrize("parity2,parity3,expected", [
        (AtomParity.PARITY1, AtomParity.PARITY1, True),
        (AtomParity.PARITY2, AtomParity.PARITY2, True),
        (AtomParity.PARITY1, AtomParity.PARITY2, False),
        (AtomParity.PARITY2, AtomParity.PARITY1, False),
    ])
    def test_dichlorobutane(self, parity2, parity3, expected):
        assert is_meso(dichlorobutane(parity2, parity3)) is expected

    def test_single_center_is_not_meso(self):
        assert not is_meso(chfclbr_3d())

    def test_ignores_groups(self):
        mol = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY1)
        mol.set_atom_esr(1, ESRType.OR)
        assert is_meso(mol)


class TestChirality:
    """Classification of what the drawing stands for."""

    def test_not_chiral(self, ethanol):
        assert ethanol.chirality() == (Chirality.NOT_CHIRAL, 1)
        assert ethanol.chiral_text() is None

    def test_unknown(self):
        mol = chfclbr_2d(BondStereo.NONE)
        assert mol.chirality() == (Chirality.UNKNOWN, 0)
        assert mol.chiral_text() == "unknown chirality"

    def test_meso(self):
        mol = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY1)
        assert mol.chirality() == (Chirality.MESO, 1)

    def test_enantiomer(self, chiral_3d):
        assert chiral_3d.chirality() == (Chirality.ENANTIOMER, 1)
        assert chiral_3d.chiral_text() == "this enantiomer"

    def test_racemate(self, chiral_3d):
        chiral_3d.set_atom_esr(0, ESRType.AND)
        assert chiral_3d.chirality() == (Chirality.RACEMATE, 2)

    def test_racemate_flag(self, chiral_3d):
        chiral_3d.is_racemate = True
        assert chiral_3d.chiral_text() == "racemate"

    def test_one_of_enantiomers(self, chiral_3d):
        chiral_3d.set_atom_esr(0, ESRType.OR)
        assert chiral_3d.chirality() == (Chirality.ENANTIOMER_UNKNOWN, 1)
        assert chiral_3d.chiral_text() == "this or other enantiomer"

    def test_epimers(self):
        mol = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY2)
        mol.set_atom_esr(1, ESRType.AND)
        assert mol.chirality() == (Chirality.EPIMERS, 2)

    def test_diastereomers(self):
        mol = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY2)
        mol.set_atom_esr(1, ESRType.AND)
        mol.set_atom_esr(3, ESRType.OR)
        assert mol.chirality() == (Chirality.DIASTEREOMERS, 4)
        assert mol.chiral_text() == "4 stereo isomers"

    def test_meso_text(self):
        assert dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY1).chiral_text() == "meso"

    def test_meso_with_groups(self):
        mol = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY1)
        mol.set_atom_esr(1, ESRType.AND)
        mol.set_atom_esr(3, ESRType.OR)
        assert mol.chirality() == (Chirality.MESO, 2)
        assert mol.chiral_text() == "2 meso diastereomers"


class TestExplicitlyUnknown:
    """Undetermined stereo elements can be made explicit."""

    def test_center(self):
        mol = chfclbr_2d(BondStereo.NONE)
        mol.set_unknown_parities_to_explicitly_unknown()
        assert mol.atoms[0].parity == AtomParity.UNKNOWN
        assert mol.atom_parity(0) == AtomParity.UNKNOWN

    def test_double_bond(self):
        mol = but2ene_2d()
        mol.set_coordinates(0, -1.5, 0.0)
        mol.set_unknown_parities_to_explicitly_unknown()
        assert mol.bonds[1].stereo == BondStereo.CROSS
        assert mol.bond_parity(1) == BondParity.UNKNOWN

    def test_known_elements_untouched(self):
        mol = chfclbr_2d()
        identifier = mol.canonical_identifier()
        mol.set_unknown_parities_to_explicitly_unknown()
        assert mol.atoms[0].parity == AtomParity.NONE
        assert mol.canonical_identifier() == identifier

    def test_molecule_without_stereo(self):
        mol = chain("C", "C", "O")
        version = mol.version
        mol.set_unknown_parities_to_explicitly_unknown()
        assert mol.version == version
