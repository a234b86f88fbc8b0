"""
Stereo element perception.

Finds tetrahedral centers and double bonds that can carry configuration and
determines their relative parities from explicit parities or geometry.
Which candidates qualify depends on the current symmetry classes: a
candidate becomes a stereo element once all of its substituents fall into
distinct classes. Elements found with constitution-only classes are true
stereo elements; elements that only appear after stereo-aware refinement are
pseudo elements. Ring centers tied only between their own ring branches
(cis/trans ring stereo) are pseudo elements as well.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final, Iterable, Sequence

from stereomol.elements import BondOrder
from stereomol.stereo.geometry import double_bond_parity, tetrahedral_parity
from stereomol.types import AtomParity, BondParity, BondStereo

if TYPE_CHECKING:
    from stereomol.rings import RingInfo
    from stereomol.types import Atom, Molecule


# Double bonds in smaller rings are always cis.
MIN_STEREO_RING_SIZE: Final[int] = 8

_GROUP_14: Final[frozenset[int]] = frozenset({6, 14, 32, 50})


def reorder_parity(parity: AtomParity, keys: Sequence) -> AtomParity | None:
    """Re-express a parity over substituents sorted by ``keys``.

    Args:
        parity: Parity referring to substituents in their current order.
        keys: Key of each substituent in that order. An implicit hydrogen or
            lone pair is last in both orders and is not listed.

    Returns:
        The parity for ascending key order, or None if two keys are equal.
    """
    if not parity.is_known:
        return parity
    if len(set(keys)) != len(keys):
        return None
    inversions = sum(
        1
        for i in range(len(keys))
        for j in range(i + 1, len(keys))
        if keys[i] > keys[j]
    )
    return parity if inversions % 2 == 0 else parity.inverted()


class StereoPerceiver:
    """Incremental perception of stereo elements for one molecule.

    Example:
        >>> perceiver = StereoPerceiver(mol, ring_info(mol))
        >>> perceiver.perceive(constitution_classes)
        True
        >>> perceiver.atom_parity
        {1: <AtomParity.PARITY1: 1>}
    """

    def __init__(
        self,
        mol: "Molecule",
        rings: "RingInfo",
        include_nitrogen: bool = False,
    ) -> None:
        self._mol = mol
        self._rings = rings
        self._include_nitrogen = include_nitrogen
        self._is_3d = mol.is_3d

        self.atom_parity: dict[int, AtomParity] = {}
        self.atom_pseudo: set[int] = set()
        self.bond_parity: dict[int, BondParity] = {}
        self.bond_pseudo: set[int] = set()
        self.problems: set[int] = set()
        self.wedge_defined: set[int] = set()

        # Candidate atoms with their explicit neighbours sorted by index.
        self.atom_neighbors: dict[int, list[int]] = {
            atom.idx: sorted(atom.neighbors(mol))
            for atom in mol.atoms
            if self._is_candidate_atom(atom)
        }
        # Candidate double bonds with the substituents at each end.
        self.bond_substituents: dict[int, tuple[list[int], list[int]]] = {}
        for bond in mol.bonds:
            ends = self._double_bond_ends(bond.idx)
            if ends is not None:
                self.bond_substituents[bond.idx] = ends

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    def _is_conjugated(self, atom: "Atom") -> bool:
        mol = self._mol
        for bond in atom.get_bonds(mol):
            if bond.is_aromatic:
                return True
            if mol.atoms[bond.other_atom(atom.idx)].pi_electrons(mol) > 0:
                return True
        return False

    def _is_candidate_atom(self, atom: "Atom") -> bool:
        mol = self._mol
        heavy = atom.degree(mol)
        hydrogens = atom.total_hydrogens(mol)
        if hydrogens > 1:
            return False

        substituents = heavy + hydrogens
        pi = atom.pi_electrons(mol)
        atomic_num = atom.atomic_number
        charge = atom.charge

        if atomic_num in _GROUP_14:
            return charge == 0 and substituents == 4 and pi == 0
        if atomic_num == 5:
            return charge == -1 and substituents == 4 and pi == 0
        if atomic_num == 7:
            if charge == 1:
                return heavy == 4 and pi == 0
            if charge == 0 and heavy == 3 and hydrogens == 0 and pi == 0:
                if not self._include_nitrogen:
                    return False
                return self._rings.atom_ring_size[atom.idx] == 3 or not self._is_conjugated(atom)
            return False
        if atomic_num == 15:
            if substituents == 4:
                return charge in (0, 1)
            return substituents == 3 and pi == 0 and charge == 0
        if atomic_num in (16, 34):
            if heavy != 3 or hydrogens != 0:
                return False
            if charge == 0 and pi == 1:
                # Sulfoxide, sulfinamide: one double bond to O or N
                for bond in atom.get_bonds(mol):
                    if bond.order == BondOrder.DOUBLE:
                        partner = mol.atoms[bond.other_atom(atom.idx)]
                        return partner.atomic_number in (7, 8)
                return False
            return charge == 1 and pi == 0
        return False

    def _double_bond_ends(self, bond_idx: int) -> tuple[list[int], list[int]] | None:
        mol = self._mol
        bond = mol.bonds[bond_idx]
        if bond.order != BondOrder.DOUBLE:
            return None
        ring_size = self._rings.bond_ring_size[bond_idx]
        if 0 < ring_size < MIN_STEREO_RING_SIZE:
            return None

        ends: list[list[int]] = []
        for end, partner in ((bond.atom1_idx, bond.atom2_idx), (bond.atom2_idx, bond.atom1_idx)):
            atom = mol.atoms[end]
            if atom.pi_electrons(mol) != 1:
                return None
            substituents = sorted(n for n in atom.neighbors(mol) if n != partner)
            hydrogens = atom.total_hydrogens(mol)
            if len(substituents) == 2 and hydrogens == 0:
                ends.append(substituents)
            elif len(substituents) == 1 and hydrogens <= 1:
                ends.append(substituents)
            else:
                return None
        return ends[0], ends[1]

    # ------------------------------------------------------------------
    # Perception
    # ------------------------------------------------------------------

    def perceive(self, classes: Sequence[int], pseudo: bool = False) -> bool:
        """Perceive candidates whose substituents are distinct under ``classes``.

        Args:
            classes: Symmetry class per atom.
            pseudo: Mark newly found elements as pseudo elements.

        Returns:
            True if any new stereo element was found.
        """
        found = False

        for atom_idx, neighbors in self.atom_neighbors.items():
            if atom_idx in self.atom_parity:
                continue
            if len({classes[n] for n in neighbors}) != len(neighbors):
                continue
            self.atom_parity[atom_idx] = self._perceive_atom(atom_idx, neighbors)
            if pseudo:
                self.atom_pseudo.add(atom_idx)
            found = True

        for bond_idx, ends in self.bond_substituents.items():
            if bond_idx in self.bond_parity:
                continue
            if any(len(s) == 2 and classes[s[0]] == classes[s[1]] for s in ends):
                continue
            self.bond_parity[bond_idx] = self._perceive_bond(bond_idx, ends)
            if pseudo:
                self.bond_pseudo.add(bond_idx)
            found = True

        return found

    def ring_blocked(self, classes: Sequence[int]) -> dict[int, tuple[int, int]]:
        """Candidates whose only tie is between two of their ring branches.

        Such an atom, e.g. C1 of 1,4-dimethylcyclohexane, carries a
        configuration only relative to another candidate of the same ring
        system.

        Returns:
            The two tied neighbours keyed by candidate atom.
        """
        mol = self._mol
        blocked: dict[int, tuple[int, int]] = {}
        for atom_idx, neighbors in self.atom_neighbors.items():
            if atom_idx in self.atom_parity:
                continue
            by_class: dict[int, list[int]] = {}
            for nbr in neighbors:
                by_class.setdefault(classes[nbr], []).append(nbr)
            tied = [group for group in by_class.values() if len(group) > 1]
            if len(tied) != 1 or len(tied[0]) != 2:
                continue
            first, second = tied[0]
            if all(
                self._rings.is_ring_bond(mol.get_bond_between(atom_idx, nbr).idx)
                for nbr in (first, second)
            ):
                blocked[atom_idx] = (first, second)
        return blocked

    def perceive_atoms(self, atom_indices: Iterable[int]) -> bool:
        """Accept the given candidates as pseudo stereocenters."""
        found = False
        for atom_idx in atom_indices:
            if atom_idx in self.atom_parity:
                continue
            self.atom_parity[atom_idx] = self._perceive_atom(atom_idx, self.atom_neighbors[atom_idx])
            self.atom_pseudo.add(atom_idx)
            found = True
        return found

    def _perceive_atom(self, atom_idx: int, neighbors: list[int]) -> AtomParity:
        explicit = self._mol.atoms[atom_idx].parity
        if explicit != AtomParity.NONE:
            return explicit

        parity, problem = tetrahedral_parity(self._mol, atom_idx, neighbors, self._is_3d)
        if problem:
            self.problems.add(atom_idx)
        if parity.is_known and not self._is_3d:
            self.wedge_defined.add(atom_idx)
        return parity

    def _perceive_bond(self, bond_idx: int, ends: tuple[list[int], list[int]]) -> BondParity:
        bond = self._mol.bonds[bond_idx]
        if bond.parity != BondParity.NONE:
            return bond.parity
        return double_bond_parity(self._mol, bond, ends[0][0], ends[1][0])

    def flag_stray_wedges(self) -> None:
        """Flag atoms where a wedge starts although they are no stereocenter."""
        if self._is_3d:
            return
        for bond in self._mol.bonds:
            if bond.stereo in (BondStereo.UP, BondStereo.DOWN):
                if bond.atom1_idx not in self.atom_parity:
                    self.problems.add(bond.atom1_idx)
