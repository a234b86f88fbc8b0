"""Tests for stereo perception: parities from geometry, wedges and explicit values."""

import pytest

from stereomol import (
    AtomParity,
    BondOrder,
    BondParity,
    BondStereo,
    StereoMolecule,
)
from stereomol.helpers import AtomFlag
from stereomol.stereo import reorder_parity
from stereomol.stereo.geometry import parity_from_vectors, signed_volume

from .conftest import (
    TETRAHEDRON,
    but2ene_2d,
    chfclbr_2d,
    chfclbr_3d,
    dichlorobutane,
    dimethylcyclohexane,
    ring,
)


class TestParityHelpers:
    """Low-level parity functions."""

    def test_tetrahedron_order(self):
        assert parity_from_vectors(TETRAHEDRON) == AtomParity.PARITY2
        swapped = [TETRAHEDRON[1], TETRAHEDRON[0], TETRAHEDRON[2], TETRAHEDRON[3]]
        assert parity_from_vectors(swapped) == AtomParity.PARITY1

    def test_signed_volume(self):
        origin, x, y, z = (0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0)
        assert signed_volume(origin, x, y, z) == pytest.approx(1.0)
        assert signed_volume(origin, y, x, z) == pytest.approx(-1.0)

    def test_virtual_substituent(self):
        assert parity_from_vectors(TETRAHEDRON[:3]) == AtomParity.PARITY2

    def test_planar_is_degenerate(self):
        flat = [(1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (-1.0, 0.0, 0.0), (0.0, -1.0, 0.0)]
        assert parity_from_vectors(flat) is None

    @pytest.mark.parametrize("keys,expected", [
        ([1, 2, 3], AtomParity.PARITY1),
        ([2, 1, 3], AtomParity.PARITY2),
        ([3, 1, 2], AtomParity.PARITY1),
        ([3, 2, 1], AtomParity.PARITY2),
    ])
    def test_reorder(self, keys, expected):
        assert reorder_parity(AtomParity.PARITY1, keys) == expected

    def test_reorder_tied_keys(self):
        assert reorder_parity(AtomParity.PARITY1, [1, 1, 2]) is None

    def test_reorder_keeps_unknown(self):
        assert reorder_parity(AtomParity.UNKNOWN, [2, 1, 3]) == AtomParity.UNKNOWN


class TestTetrahedralParity:
    """Stereocenters and their relative parities."""

    def test_3d_center(self, chiral_3d):
        assert chiral_3d.stereo_center_count() == 1
        assert chiral_3d.is_stereo_center(0)
        assert chiral_3d.atom_parity(0) == AtomParity.PARITY2

    def test_3d_mirror(self):
        assert chfclbr_3d(mirror=True).atom_parity(0) == AtomParity.PARITY1

    def test_wedge_up(self):
        mol = chfclbr_2d(BondStereo.UP)
        assert mol.stereo_center_count() == 1
        assert mol.atom_parity(0) == AtomParity.PARITY2

    def test_wedge_down(self):
        assert chfclbr_2d(BondStereo.DOWN).atom_parity(0) == AtomParity.PARITY1

    def test_no_wedge_is_unknown(self):
        mol = chfclbr_2d(BondStereo.NONE)
        assert mol.stereo_center_count() == 1
        assert mol.atom_parity(0) == AtomParity.UNKNOWN
        assert mol.atom_flags(0) == AtomFlag.STEREO_CENTER

    def test_crossed_bond_is_unknown(self):
        mol = chfclbr_2d(BondStereo.CROSS)
        assert mol.atom_parity(0) == AtomParity.UNKNOWN
        assert not mol.atom_flags(0) & AtomFlag.STEREO_PROBLEM

    def test_crossed_and_wedge_is_problem(self):
        mol = chfclbr_2d(BondStereo.UP)
        mol.set_bond_stereo(1, BondStereo.CROSS)
        assert mol.atom_parity(0) == AtomParity.UNKNOWN
        assert mol.atom_flags(0) & AtomFlag.STEREO_PROBLEM

    def test_contradicting_wedges(self):
        """Two wedges that imply opposite configurations."""
        mol = chfclbr_2d(BondStereo.UP)
        mol.set_bond_stereo(2, BondStereo.DOWN)
        mol.set_coordinates(3, 0.0, -1.0)
        mol.set_coordinates(2, -1.0, 0.0)
        assert mol.atom_parity(0) == AtomParity.UNKNOWN
        assert mol.atom_flags(0) & AtomFlag.STEREO_PROBLEM

    def test_wedge_at_other_end_is_ignored(self):
        """A wedge only counts at the atom where it starts."""
        mol = StereoMolecule()
        mol.add_atom("C")
        mol.add_atom("F", x=0.0, y=1.0)
        mol.add_atom("Cl", x=-0.866, y=-0.5)
        mol.add_atom("Br", x=0.866, y=-0.5)
        mol.add_bond(1, 0, stereo=BondStereo.UP)
        mol.add_bond(0, 2)
        mol.add_bond(0, 3)
        assert mol.atom_parity(0) == AtomParity.UNKNOWN
        assert mol.atom_flags(1) & AtomFlag.STEREO_PROBLEM

    def test_explicit_parity_wins(self):
        mol = chfclbr_3d()
        mol.set_atom_parity(0, AtomParity.PARITY1)
        assert mol.atom_parity(0) == AtomParity.PARITY1

    def test_explicit_parity_without_coordinates(self):
        mol = dichlorobutane(AtomParity.PARITY1, AtomParity.PARITY2)
        assert mol.stereo_center_count() == 2
        assert mol.atom_parity(1) == AtomParity.PARITY1
        assert mol.atom_parity(3) == AtomParity.PARITY2

    @pytest.mark.parametrize("symbols", [
        ("C", "C", "C"),
        ("C", "C", "O"),
    ])
    def test_not_a_center(self, symbols):
        mol = StereoMolecule()
        mol.add_atom("C")
        for symbol in symbols:
            idx = mol.add_atom(symbol)
            mol.add_bond(0, idx)
        assert mol.stereo_center_count() == 0

    def test_absolute_parity_matches_for_relabeled_center(self):
        mol = chfclbr_3d()
        reordered = StereoMolecule()
        reordered.add_atom("Br", x=-1.0, y=1.0, z=-1.0)
        reordered.add_atom("C")
        reordered.add_atom("Cl", x=1.0, y=-1.0, z=-1.0)
        reordered.add_atom("F", x=1.0, y=1.0, z=1.0)
        for idx in (0, 2, 3):
            reordered.add_bond(1, idx)
        assert reordered.absolute_atom_parity(1) == mol.absolute_atom_parity(0)


class TestNitrogen:
    """Tetrahedral nitrogen only with the policy enabled."""

    def _amine(self) -> StereoMolecule:
        mol = StereoMolecule()
        mol.add_atom("N")
        for symbol, (x, y, z) in zip(("C", "C", "C"), TETRAHEDRON):
            idx = mol.add_atom(symbol, x=x, y=y, z=z)
            mol.add_bond(0, idx)
        # Make the three substituents different
        ethyl = mol.add_atom("C", x=2.0, y=-2.0, z=-1.0)
        mol.add_bond(2, ethyl)
        propyl = mol.add_atom("C", x=-2.0, y=2.0, z=-1.0)
        mol.add_bond(3, propyl)
        extra = mol.add_atom("C", x=-3.0, y=3.0, z=-1.0)
        mol.add_bond(propyl, extra)
        return mol

    def test_default_ignores_nitrogen(self):
        assert self._amine().stereo_center_count() == 0

    def test_policy_enables_nitrogen(self):
        mol = self._amine()
        assert mol.stereo_center_count() == 0
        mol.assign_parities_to_nitrogen = True
        assert mol.stereo_center_count() == 1
        assert mol.atom_parity(0).is_known

    def test_ammonium(self):
        mol = self._amine()
        mol.set_atom_charge(0, 1)
        hydroxyl = mol.add_atom("O", x=-1.0, y=-1.0, z=1.0)
        mol.add_bond(0, hydroxyl)
        assert mol.is_stereo_center(0)


class TestDoubleBondParity:
    """E/Z perception."""

    def test_trans(self):
        mol = but2ene_2d()
        assert mol.bond_parity(1) == BondParity.TRANS
        assert mol.absolute_bond_parity(1) == BondParity.TRANS

    def test_cis(self):
        assert but2ene_2d(cis=True).bond_parity(1) == BondParity.CIS

    def test_crossed_double_bond(self):
        mol = but2ene_2d()
        mol.set_bond_stereo(1, BondStereo.CROSS)
        assert mol.bond_parity(1) == BondParity.UNKNOWN

    def test_collinear_substituent(self):
        mol = but2ene_2d()
        mol.set_coordinates(0, -1.5, 0.0)
        assert mol.bond_parity(1) == BondParity.UNKNOWN

    def test_explicit_bond_parity(self):
        mol = but2ene_2d()
        mol.set_bond_parity(1, BondParity.CIS)
        assert mol.bond_parity(1) == BondParity.CIS

    def test_terminal_double_bond_is_not_stereo(self):
        mol = but2ene_2d()
        mol.delete_atoms([3])
        assert mol.bond_parity(1) == BondParity.NONE

    def test_small_ring_double_bond_is_not_stereo(self):
        mol = ring(6)
        mol.set_bond_order(0, BondOrder.DOUBLE)
        assert mol.canonical_state().stereo_bonds == frozenset()

    def test_identical_substituents_are_not_stereo(self):
        mol = but2ene_2d()
        # Two methyls at one end
        other = mol.add_atom("C", x=1.5, y=0.8)
        mol.add_bond(2, other)
        assert mol.canonical_state().stereo_bonds == frozenset()


class TestRingStereo:
    """Ring centers tied only between their own ring branches."""

    def test_partners_are_pseudo_centers(self):
        mol = dimethylcyclohexane(AtomParity.PARITY1, AtomParity.PARITY1)
        assert mol.is_stereo_center(0)
        assert mol.is_stereo_center(3)
        assert mol.is_atom_parity_pseudo(0)
        assert mol.is_atom_parity_pseudo(3)
        assert mol.stereo_center_count() == 0

    def test_cis_and_trans_differ(self):
        first = dimethylcyclohexane(AtomParity.PARITY1, AtomParity.PARITY1)
        second = dimethylcyclohexane(AtomParity.PARITY1, AtomParity.PARITY2)
        assert first.canonical_identifier() != second.canonical_identifier()

    def test_mirror_image_is_the_same_diastereomer(self):
        mol = dimethylcyclohexane(AtomParity.PARITY1, AtomParity.PARITY2)
        mirror = dimethylcyclohexane(AtomParity.PARITY2, AtomParity.PARITY1)
        assert mol.canonical_identifier() == mirror.canonical_identifier()

    @pytest.mark.parametrize("parity4", [AtomParity.PARITY1, AtomParity.PARITY2])
    def test_round_trip(self, parity4):
        identifier = dimethylcyclohexane(AtomParity.PARITY1, parity4).canonical_identifier()
        assert StereoMolecule.from_identifier(identifier).canonical_identifier() == identifier

    def test_lone_ring_center(self):
        mol = ring(6)
        mol.add_bond(0, mol.add_atom("C"))
        mol.set_atom_parity(0, AtomParity.PARITY1)
        assert not mol.is_stereo_center(0)

    def test_unknown_configuration(self):
        mol = dimethylcyclohexane(AtomParity.NONE, AtomParity.NONE)
        assert mol.is_stereo_center(0)
        assert mol.atom_parity(0) == AtomParity.UNKNOWN
