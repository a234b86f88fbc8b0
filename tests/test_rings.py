"""Tests for ring membership and smallest ring sizes."""

import pytest

from stereomol.rings import (
    find_ring_atoms_and_bonds,
    get_bond_ring_sizes,
    get_min_ring_sizes,
    ring_info,
)

from .conftest import chain, ring


class TestRingMembership:
    """Bridges are not ring bonds."""

    def test_chain_has_no_rings(self):
        atoms, bonds = find_ring_atoms_and_bonds(chain("C", "C", "C", "C"))
        assert atoms == set()
        assert bonds == set()

    @pytest.mark.parametrize("size", [3, 4, 5, 6, 8])
    def test_simple_ring(self, size):
        mol = ring(size)
        atoms, bonds = find_ring_atoms_and_bonds(mol)
        assert atoms == set(range(size))
        assert bonds == set(range(size))

    def test_substituent_is_not_in_ring(self):
        mol = ring(6)
        methyl = mol.add_atom("C")
        bond = mol.add_bond(0, methyl)
        info = ring_info(mol)
        assert not info.is_ring_atom(methyl)
        assert not info.is_ring_bond(bond)
        assert info.is_ring_atom(0)

    def test_empty_molecule(self):
        info = ring_info(chain())
        assert info.ring_atoms == frozenset()
        assert info.atom_ring_size == ()


class TestRingSizes:
    """Smallest ring through each atom and bond."""

    def test_cyclohexane(self):
        mol = ring(6)
        assert get_min_ring_sizes(mol) == [6] * 6
        assert get_bond_ring_sizes(mol) == [6] * 6

    def test_fused_rings(self):
        # Bicyclo[4.3.0]nonane: six-membered ring 0-5, five-membered ring
        # closed through 0 and 5 by atoms 6, 7, 8.
        mol = ring(6)
        for _ in range(3):
            mol.add_atom("C")
        mol.add_bond(5, 6)
        mol.add_bond(6, 7)
        mol.add_bond(7, 8)
        mol.add_bond(8, 0)

        sizes = get_min_ring_sizes(mol)
        assert sizes[1] == 6
        assert sizes[7] == 5
        assert sizes[0] == 5
        assert sizes[5] == 5

        bond_sizes = get_bond_ring_sizes(mol)
        shared = mol.get_bond_between(0, 5).idx
        assert bond_sizes[shared] == 5
        assert bond_sizes[mol.get_bond_between(1, 2).idx] == 6

    def test_acyclic_sizes_are_zero(self):
        mol = chain("C", "C", "O")
        info = ring_info(mol)
        assert info.atom_ring_size == (0, 0, 0)
        assert info.bond_ring_size == (0, 0)
