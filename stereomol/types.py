"""
Core molecular data types.

This module defines the graph store: Atom, Bond and Molecule classes plus the
small enumerations describing stereo markers. The graph store owns all
mutable structural state; everything derived from it (parities, ranks,
symmetry, identifiers) lives in the helper cache of a
:class:`~stereomol.stereomolecule.StereoMolecule`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Iterator

from stereomol.elements import (
    BondOrder,
    get_atomic_number,
    get_default_valence,
)
from stereomol.exceptions import StructureError

if TYPE_CHECKING:
    from typing import Self


class AtomParity(IntEnum):
    """Tetrahedral parity of an atom."""

    NONE = 0
    PARITY1 = 1
    PARITY2 = 2
    UNKNOWN = 3

    @property
    def is_known(self) -> bool:
        return self in (AtomParity.PARITY1, AtomParity.PARITY2)

    def inverted(self) -> "AtomParity":
        """Parity of the mirror image."""
        if self is AtomParity.PARITY1:
            return AtomParity.PARITY2
        if self is AtomParity.PARITY2:
            return AtomParity.PARITY1
        return self


class BondParity(IntEnum):
    """Double bond parity: relation of the lowest-key substituents at both ends."""

    NONE = 0
    TRANS = 1
    CIS = 2
    UNKNOWN = 3

    @property
    def is_known(self) -> bool:
        return self in (BondParity.TRANS, BondParity.CIS)

    def inverted(self) -> "BondParity":
        if self is BondParity.TRANS:
            return BondParity.CIS
        if self is BondParity.CIS:
            return BondParity.TRANS
        return self


class BondStereo(IntEnum):
    """Drawn stereo marker of a bond. Wedges start at ``atom1_idx``."""

    NONE = 0
    UP = 1
    DOWN = 2
    CROSS = 3


class ESRType(IntEnum):
    """Enhanced stereo representation group type."""

    ABS = 0
    AND = 1
    OR = 2


@dataclass(slots=True)
class Bond:
    """Represents a chemical bond between two atoms.

    Attributes:
        idx: Index of this bond in the molecule.
        atom1_idx: Index of the first atom (narrow end of a wedge).
        atom2_idx: Index of the second atom.
        order: Bond order.
        stereo: Drawn stereo marker (wedge, hash or cross).
        parity: Explicit relative double bond parity, if any.
    """

    idx: int
    atom1_idx: int
    atom2_idx: int
    order: BondOrder = BondOrder.SINGLE
    stereo: BondStereo = BondStereo.NONE
    parity: BondParity = BondParity.NONE

    def other_atom(self, atom_idx: int) -> int:
        """Get the index of the atom on the other end of this bond.

        Raises:
            ValueError: If atom_idx is not part of this bond.
        """
        if atom_idx == self.atom1_idx:
            return self.atom2_idx
        if atom_idx == self.atom2_idx:
            return self.atom1_idx
        raise ValueError(f"Atom {atom_idx} not in bond {self.idx}")

    @property
    def is_aromatic(self) -> bool:
        return self.order == BondOrder.AROMATIC

    def is_stereo_bond_from(self, atom_idx: int) -> bool:
        """Whether this is a wedge or hash bond starting at ``atom_idx``."""
        return (
            self.atom1_idx == atom_idx
            and self.stereo in (BondStereo.UP, BondStereo.DOWN)
        )

    def __contains__(self, atom_idx: int) -> bool:
        """Check if atom is part of this bond."""
        return atom_idx in (self.atom1_idx, self.atom2_idx)


@dataclass(slots=True)
class Atom:
    """Represents an atom in a molecule.

    Attributes:
        idx: Index of this atom in the molecule (dense, reassigned on deletion).
        symbol: Element symbol.
        charge: Formal charge.
        explicit_hydrogens: Hydrogens attached in addition to implicit ones.
        isotope: Mass number, or None for natural abundance.
        x, y, z: Coordinates. All z equal to zero means a 2-D drawing.
        parity: Explicit relative parity. Refers to neighbours in ascending
            index order with an implicit hydrogen or lone pair last.
        esr_type: Enhanced stereo group type.
        esr_group: Group number within its type, -1 for ABS.
        bond_indices: Indices of bonds connected to this atom.
    """

    idx: int
    symbol: str
    charge: int = 0
    explicit_hydrogens: int = 0
    isotope: int | None = None
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    parity: AtomParity = AtomParity.NONE
    esr_type: ESRType = ESRType.ABS
    esr_group: int = -1
    bond_indices: list[int] = field(default_factory=list)

    @property
    def atomic_number(self) -> int:
        """Get the atomic number for this element."""
        return get_atomic_number(self.symbol)

    @property
    def default_valence(self) -> int | None:
        """Get the default valence for this element."""
        return get_default_valence(self.atomic_number)

    @property
    def coordinates(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def degree(self, mol: "Molecule") -> int:
        """Get the number of bonds to this atom."""
        return len(self.bond_indices)

    def neighbors(self, mol: "Molecule") -> Iterator[int]:
        """Iterate over indices of neighboring atoms in bond order."""
        for bond_idx in self.bond_indices:
            bond = mol.bonds[bond_idx]
            yield bond.other_atom(self.idx)

    def get_bonds(self, mol: "Molecule") -> Iterator[Bond]:
        """Iterate over bonds connected to this atom."""
        for bond_idx in self.bond_indices:
            yield mol.bonds[bond_idx]

    def pi_electrons(self, mol: "Molecule") -> int:
        """Number of pi bonds at this atom."""
        return sum(bond.order.pi_electrons for bond in self.get_bonds(mol))

    def total_hydrogens(self, mol: "Molecule") -> int:
        """Calculate total hydrogen count (explicit + implicit).

        Args:
            mol: Parent molecule.

        Returns:
            Total number of hydrogens attached to this atom.
        """
        default_val = self.default_valence
        if default_val is None:
            return self.explicit_hydrogens

        bond_order_sum = 0.0
        for bond in self.get_bonds(mol):
            bond_order_sum += bond.order.valence_contribution

        # Carbon group atoms lose a bond for either charge sign, boron gains
        # one as an anion, electron-rich atoms gain one as a cation.
        atomic_num = self.atomic_number
        if atomic_num in (6, 14, 32):
            valence = default_val - abs(self.charge)
        elif atomic_num == 5:
            valence = default_val - self.charge
        else:
            valence = default_val + self.charge

        implicit = max(
            0,
            valence - int(round(bond_order_sum)) - self.explicit_hydrogens,
        )
        return self.explicit_hydrogens + implicit


@dataclass
class Molecule:
    """Represents a molecular structure (the graph store).

    Every mutation method bumps :attr:`version`; derived data computed for an
    older version is stale. Code that edits atom or bond attributes directly
    must call :meth:`invalidate` afterwards.

    Attributes:
        atoms: List of atoms in the molecule.
        bonds: List of bonds in the molecule.
        name: Optional molecule name/identifier.
        is_racemate: The drawn structure stands for its racemate.

    Example:
        >>> mol = Molecule()
        >>> c1 = mol.add_atom("C")
        >>> c2 = mol.add_atom("C")
        >>> mol.add_bond(c1, c2)
        0
        >>> len(mol)
        2
    """

    atoms: list[Atom] = field(default_factory=list)
    bonds: list[Bond] = field(default_factory=list)
    name: str | None = None
    is_racemate: bool = False
    _version: int = field(default=0, repr=False, compare=False)

    def __len__(self) -> int:
        """Return number of atoms."""
        return len(self.atoms)

    def __iter__(self) -> Iterator[Atom]:
        """Iterate over atoms."""
        return iter(self.atoms)

    def __getitem__(self, idx: int) -> Atom:
        """Get atom by index."""
        return self.atoms[idx]

    @property
    def version(self) -> int:
        """Structural version, bumped by every mutation."""
        return self._version

    def invalidate(self) -> None:
        """Mark all derived data of this molecule as stale."""
        self._version += 1

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_atom(
        self,
        symbol: str,
        *,
        charge: int = 0,
        explicit_hydrogens: int = 0,
        isotope: int | None = None,
        x: float = 0.0,
        y: float = 0.0,
        z: float = 0.0,
        parity: AtomParity = AtomParity.NONE,
        esr_type: ESRType = ESRType.ABS,
        esr_group: int = -1,
    ) -> int:
        """Add an atom to the molecule.

        Returns:
            Index of the newly added atom.
        """
        idx = len(self.atoms)
        self.atoms.append(Atom(
            idx=idx,
            symbol=symbol,
            charge=charge,
            explicit_hydrogens=explicit_hydrogens,
            isotope=isotope,
            x=x,
            y=y,
            z=z,
            parity=AtomParity(parity),
        ))
        if esr_type != ESRType.ABS:
            self.set_atom_esr(idx, esr_type, esr_group)
        self.invalidate()
        return idx

    def add_bond(
        self,
        atom1_idx: int,
        atom2_idx: int,
        *,
        order: int = BondOrder.SINGLE,
        stereo: BondStereo = BondStereo.NONE,
        parity: BondParity = BondParity.NONE,
    ) -> int:
        """Add a bond between two atoms.

        Args:
            atom1_idx: Index of the first atom (where a wedge starts).
            atom2_idx: Index of the second atom.
            order: Bond order.
            stereo: Drawn stereo marker.
            parity: Explicit relative double bond parity.

        Returns:
            Index of the newly added bond.

        Raises:
            IndexError: If atom indices are out of bounds.
        """
        if not (0 <= atom1_idx < len(self.atoms) and 0 <= atom2_idx < len(self.atoms)):
            raise IndexError(f"Atom index out of bounds: {atom1_idx}, {atom2_idx}")

        idx = len(self.bonds)
        self.bonds.append(Bond(
            idx=idx,
            atom1_idx=atom1_idx,
            atom2_idx=atom2_idx,
            order=BondOrder(order),
            stereo=BondStereo(stereo),
            parity=BondParity(parity),
        ))
        self.atoms[atom1_idx].bond_indices.append(idx)
        self.atoms[atom2_idx].bond_indices.append(idx)
        self.invalidate()
        return idx

    def set_atom_parity(self, atom_idx: int, parity: AtomParity) -> None:
        """Set an explicit relative parity (NONE lets geometry decide)."""
        self.atoms[atom_idx].parity = AtomParity(parity)
        self.invalidate()

    def set_atom_charge(self, atom_idx: int, charge: int) -> None:
        self.atoms[atom_idx].charge = charge
        self.invalidate()

    def set_coordinates(self, atom_idx: int, x: float, y: float, z: float = 0.0) -> None:
        atom = self.atoms[atom_idx]
        atom.x, atom.y, atom.z = x, y, z
        self.invalidate()

    def set_atom_esr(self, atom_idx: int, esr_type: ESRType, group: int = -1) -> None:
        """Put an atom into an ESR group.

        Args:
            atom_idx: Atom index.
            esr_type: Group type; ABS removes the atom from any group.
            group: Group number, -1 opens a new group of that type.
        """
        atom = self.atoms[atom_idx]
        esr_type = ESRType(esr_type)
        if esr_type == ESRType.ABS:
            atom.esr_type, atom.esr_group = ESRType.ABS, -1
        else:
            if group < 0:
                used = [
                    a.esr_group for a in self.atoms
                    if a.esr_type == esr_type and a.idx != atom_idx
                ]
                group = max(used, default=-1) + 1
            atom.esr_type, atom.esr_group = esr_type, group
        self.invalidate()

    def set_bond_stereo(self, bond_idx: int, stereo: BondStereo) -> None:
        self.bonds[bond_idx].stereo = BondStereo(stereo)
        self.invalidate()

    def set_bond_order(self, bond_idx: int, order: int) -> None:
        self.bonds[bond_idx].order = BondOrder(order)
        self.invalidate()

    def set_bond_parity(self, bond_idx: int, parity: BondParity) -> None:
        self.bonds[bond_idx].parity = BondParity(parity)
        self.invalidate()

    def delete_atoms(self, atom_indices: list[int] | set[int]) -> list[int]:
        """Delete atoms and their bonds, compacting indices.

        Args:
            atom_indices: Atoms to delete.

        Returns:
            Dense map from old atom index to new index, -1 for deleted atoms.
        """
        doomed = set(atom_indices)
        atom_map: list[int] = []
        kept: list[Atom] = []
        for atom in self.atoms:
            if atom.idx in doomed:
                atom_map.append(-1)
                continue
            atom_map.append(len(kept))
            atom.idx = len(kept)
            atom.bond_indices = []
            kept.append(atom)

        bonds: list[Bond] = []
        for bond in self.bonds:
            a1 = atom_map[bond.atom1_idx]
            a2 = atom_map[bond.atom2_idx]
            if a1 < 0 or a2 < 0:
                continue
            bond.idx = len(bonds)
            bond.atom1_idx, bond.atom2_idx = a1, a2
            kept[a1].bond_indices.append(bond.idx)
            kept[a2].bond_indices.append(bond.idx)
            bonds.append(bond)

        self.atoms = kept
        self.bonds = bonds
        self.invalidate()
        return atom_map

    def delete_bond(self, bond_idx: int) -> None:
        """Delete a single bond, compacting bond indices."""
        del self.bonds[bond_idx]
        for atom in self.atoms:
            atom.bond_indices = []
        for i, bond in enumerate(self.bonds):
            bond.idx = i
            self.atoms[bond.atom1_idx].bond_indices.append(i)
            self.atoms[bond.atom2_idx].bond_indices.append(i)
        self.invalidate()

    def renumber_esr_groups(
        self,
        esr_type: ESRType,
        ranks: list[int] | tuple[int, ...] | None = None,
    ) -> bool:
        """Renumber groups of one ESR type to be contiguous.

        Groups are ordered by their lowest member, where members compare by
        ``ranks`` if given and by atom index otherwise.

        Returns:
            True if any group number changed.
        """
        members: dict[int, list[int]] = {}
        for atom in self.atoms:
            if atom.esr_type == esr_type:
                members.setdefault(atom.esr_group, []).append(atom.idx)

        def lowest(group: int) -> int:
            if ranks is None:
                return min(members[group])
            return min(ranks[a] for a in members[group])

        mapping = {old: new for new, old in enumerate(sorted(members, key=lowest))}
        changed = any(old != new for old, new in mapping.items())
        if changed:
            for atom in self.atoms:
                if atom.esr_type == esr_type:
                    atom.esr_group = mapping[atom.esr_group]
            self.invalidate()
        return changed

    def strip_small_fragments(self) -> list[int]:
        """Keep only the largest fragment (first one on ties).

        Returns:
            Dense atom map as returned by :meth:`delete_atoms`.
        """
        components = self.connected_components()
        if len(components) <= 1:
            return list(range(len(self.atoms)))
        largest = max(components, key=len)
        keep = set(largest)
        return self.delete_atoms([a.idx for a in self.atoms if a.idx not in keep])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_bond_between(self, atom1_idx: int, atom2_idx: int) -> Bond | None:
        """Find the bond between two atoms, or None."""
        for bond_idx in self.atoms[atom1_idx].bond_indices:
            bond = self.bonds[bond_idx]
            if atom1_idx in bond and atom2_idx in bond:
                return bond
        return None

    def connected_components(self) -> list[list[int]]:
        """Find connected components in the molecule.

        Returns:
            List of components, each being a sorted list of atom indices,
            ordered by their lowest atom index.
        """
        visited: set[int] = set()
        components: list[list[int]] = []

        for start in range(len(self.atoms)):
            if start in visited:
                continue

            component: list[int] = []
            stack = [start]
            visited.add(start)

            while stack:
                atom_idx = stack.pop()
                component.append(atom_idx)

                for neighbor in self.atoms[atom_idx].neighbors(self):
                    if neighbor not in visited:
                        visited.add(neighbor)
                        stack.append(neighbor)

            components.append(sorted(component))

        return components

    def fragment_numbers(self) -> list[int]:
        """Fragment number of every atom, fragments ordered by lowest atom."""
        fragment_no = [-1] * len(self.atoms)
        for number, component in enumerate(self.connected_components()):
            for atom_idx in component:
                fragment_no[atom_idx] = number
        return fragment_no

    def get_fragments(self) -> list["Self"]:
        """Split disconnected fragments into separate molecules.

        Atoms keep their relative order; each fragment gets its AND and OR
        groups renumbered.
        """
        fragment_no = self.fragment_numbers()
        count = max(fragment_no, default=-1) + 1

        atom_map = [0] * len(self.atoms)
        sizes = [0] * count
        for atom in self.atoms:
            f = fragment_no[atom.idx]
            atom_map[atom.idx] = sizes[f]
            sizes[f] += 1

        fragments = [self._new_like() for _ in range(count)]
        for atom in self.atoms:
            fragments[fragment_no[atom.idx]].atoms.append(
                _copy_atom(atom, atom_map[atom.idx])
            )
        for bond in self.bonds:
            fragment = fragments[fragment_no[bond.atom1_idx]]
            fragment._append_bond(
                bond,
                atom_map[bond.atom1_idx],
                atom_map[bond.atom2_idx],
            )

        for fragment in fragments:
            fragment.renumber_esr_groups(ESRType.AND)
            fragment.renumber_esr_groups(ESRType.OR)
        return fragments

    def copy(self) -> "Self":
        """Create a deep copy of the molecule."""
        mol = self._new_like()
        for atom in self.atoms:
            mol.atoms.append(_copy_atom(atom, atom.idx))
        for bond in self.bonds:
            mol._append_bond(bond, bond.atom1_idx, bond.atom2_idx)
        return mol

    def mirrored(self) -> "Self":
        """Copy reflected through the drawing plane.

        z coordinates change sign, wedges and hashes swap and explicit atom
        parities are inverted. Double bond parities are unchanged.
        """
        mol = self.copy()
        for atom in mol.atoms:
            atom.z = -atom.z
            atom.parity = atom.parity.inverted()
        for bond in mol.bonds:
            if bond.stereo == BondStereo.UP:
                bond.stereo = BondStereo.DOWN
            elif bond.stereo == BondStereo.DOWN:
                bond.stereo = BondStereo.UP
        mol.invalidate()
        return mol

    def validate_structure(self) -> None:
        """Check bond endpoints and multiplicity.

        Raises:
            StructureError: On a dangling, self-referencing or duplicate bond.
        """
        seen: set[tuple[int, int]] = set()
        n = len(self.atoms)
        for bond in self.bonds:
            a1, a2 = bond.atom1_idx, bond.atom2_idx
            if not (0 <= a1 < n and 0 <= a2 < n):
                raise StructureError(f"Bond {bond.idx} references a missing atom", bond.idx)
            if a1 == a2:
                raise StructureError(f"Bond {bond.idx} connects atom {a1} to itself", bond.idx)
            key = (min(a1, a2), max(a1, a2))
            if key in seen:
                raise StructureError(f"Bond {bond.idx} duplicates a bond between {key}", bond.idx)
            seen.add(key)

    @property
    def num_atoms(self) -> int:
        """Number of atoms in the molecule."""
        return len(self.atoms)

    @property
    def num_bonds(self) -> int:
        """Number of bonds in the molecule."""
        return len(self.bonds)

    @property
    def is_connected(self) -> bool:
        """Check if molecule is a single connected component."""
        return len(self.connected_components()) <= 1

    @property
    def is_3d(self) -> bool:
        """True if any atom has a non-zero z coordinate."""
        return any(atom.z != 0.0 for atom in self.atoms)

    # ------------------------------------------------------------------
    # Internal copying helpers
    # ------------------------------------------------------------------

    def _new_like(self) -> "Self":
        """Empty molecule of the same class carrying molecule properties."""
        return type(self)(name=self.name, is_racemate=self.is_racemate)

    def _append_bond(self, bond: Bond, atom1_idx: int, atom2_idx: int) -> None:
        idx = len(self.bonds)
        self.bonds.append(Bond(
            idx=idx,
            atom1_idx=atom1_idx,
            atom2_idx=atom2_idx,
            order=bond.order,
            stereo=bond.stereo,
            parity=bond.parity,
        ))
        self.atoms[atom1_idx].bond_indices.append(idx)
        self.atoms[atom2_idx].bond_indices.append(idx)


def _copy_atom(atom: Atom, idx: int) -> Atom:
    return Atom(
        idx=idx,
        symbol=atom.symbol,
        charge=atom.charge,
        explicit_hydrogens=atom.explicit_hydrogens,
        isotope=atom.isotope,
        x=atom.x,
        y=atom.y,
        z=atom.z,
        parity=atom.parity,
        esr_type=atom.esr_type,
        esr_group=atom.esr_group,
    )
