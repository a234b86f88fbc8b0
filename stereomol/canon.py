"""
Canonical ranking and stereo perception.

This module computes label-independent atom ranks by partition refinement
with the HanoiSort algorithm, perceives tetrahedral and double bond stereo
elements, and assembles everything into an immutable :class:`CanonState`
including the canonical identifier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntFlag
from typing import TYPE_CHECKING, Callable, Final, Iterable

from stereomol.exceptions import MoleculeTooLargeError
from stereomol.idcode import encode_coordinates, encode_identifier
from stereomol.rings import RingInfo, ring_info
from stereomol.stereo.cip import cip_labels
from stereomol.stereo.esr import normalize_esr_parities
from stereomol.stereo.heterotopic import heterotopic_subclasses
from stereomol.stereo.perception import StereoPerceiver, reorder_parity
from stereomol.types import AtomParity, BondParity, ESRType

if TYPE_CHECKING:
    from stereomol.types import Molecule


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_ATOMS: Final[int] = 4095
MAX_BONDS: Final[int] = 8191

# Chirality codes beyond the parities 1 and 2
_CODE_UNKNOWN: Final[int] = 3
_CODE_AND: Final[int] = 4
_CODE_OR: Final[int] = 5


class RankMode(IntFlag):
    """Options of the canonicalizer."""

    NONE = 0
    CREATE_SYMMETRY_RANK = 0x01
    CONSIDER_DIASTEREOTOPICITY = 0x02
    CONSIDER_ENANTIOTOPICITY = 0x04
    ASSIGN_PARITIES_TO_TETRAHEDRAL_N = 0x08


_SYMMETRY_MODES: Final[RankMode] = (
    RankMode.CREATE_SYMMETRY_RANK
    | RankMode.CONSIDER_DIASTEREOTOPICITY
    | RankMode.CONSIDER_ENANTIOTOPICITY
)


# =============================================================================
# Helper functions
# =============================================================================

def _count_swaps_to_interconvert(perm: list[int], sorted_perm: list[int]) -> int:
    """Count minimum swaps to convert perm to sorted_perm.

    Uses a cycle decomposition approach to count swaps.
    """
    if len(perm) != len(sorted_perm):
        return 0

    target_pos = {v: i for i, v in enumerate(sorted_perm)}
    current = list(perm)
    n_swaps = 0

    for i in range(len(current)):
        target = target_pos[current[i]]
        while target != i:
            current[i], current[target] = current[target], current[i]
            n_swaps += 1
            target = target_pos[current[i]]

    return n_swaps


def _dense_ranks(values: Iterable[int]) -> tuple[int, ...]:
    """Map values to dense 1-based ranks preserving their order."""
    values = list(values)
    lookup = {v: i + 1 for i, v in enumerate(sorted(set(values)))}
    return tuple(lookup[v] for v in values)


# =============================================================================
# Data structures for canonicalization
# =============================================================================

@dataclass(slots=True)
class _BondHolder:
    """Internal bond representation for canonicalization."""
    bond_type: int
    bond_stereo: int
    nbr_sym_class: int
    nbr_idx: int
    bond_idx: int
    nbr_chiral_code: int = 0

    def sort_key(self) -> tuple[int, int, int, int]:
        return (self.bond_type, self.bond_stereo, self.nbr_sym_class, self.nbr_chiral_code)

    @staticmethod
    def compare(x: "_BondHolder", y: "_BondHolder") -> int:
        """Compare two bondholders."""
        kx, ky = x.sort_key(), y.sort_key()
        if kx == ky:
            return 0
        return -1 if kx < ky else 1


@dataclass(slots=True)
class _CanonAtom:
    """Internal atom representation for canonicalization."""
    atom_idx: int
    degree: int
    atomic_num: int
    isotope: int
    formal_charge: int
    total_num_hs: int
    is_in_ring: bool
    min_ring_size: int
    extra: int = 0  # marks and heterotopicity subclasses
    chirality_tag: int = 0  # 0 = none, 1/2 = relative parity, 3 = unknown
    esr_code: int = 0
    nbr_ids: list[int] = field(default_factory=list)  # ascending atom index
    bonds: list[_BondHolder] = field(default_factory=list)
    index: int = 0  # Current partition/symmetry class


@dataclass(slots=True)
class _StereoBond:
    """Relative parity of a stereo double bond with its substituents."""
    parity: int
    ends: tuple[list[int], list[int]]


def _chiral_code(atoms: list[_CanonAtom], atom_idx: int) -> int:
    """Chirality code of an atom under the current partition.

    Returns 0 for non-chiral atoms or while neighbours are tied, 1 or 2 for
    the parity over neighbour classes, 3 for unknown configuration and a
    constant per ESR type for group members.
    """
    atom = atoms[atom_idx]
    tag = atom.chirality_tag
    if tag == 0 or tag == _CODE_UNKNOWN:
        return tag
    if atom.esr_code:
        return atom.esr_code

    perm = [atoms[nbr_idx].index for nbr_idx in atom.nbr_ids]
    if len(set(perm)) != len(perm):
        return 0

    n_swaps = _count_swaps_to_interconvert(perm, sorted(perm))
    return tag if n_swaps % 2 == 0 else 3 - tag


def _bond_stereo_code(
    atoms: list[_CanonAtom],
    stereo_bonds: dict[int, _StereoBond],
    bond_idx: int,
) -> int:
    """E/Z code of a bond relative to the lowest-class substituents."""
    stereo = stereo_bonds.get(bond_idx)
    if stereo is None:
        return 0
    if stereo.parity == BondParity.UNKNOWN:
        return _CODE_UNKNOWN

    code = stereo.parity
    for substituents in stereo.ends:
        if len(substituents) == 2:
            c0 = atoms[substituents[0]].index
            c1 = atoms[substituents[1]].index
            if c0 == c1:
                return 0
            if c1 < c0:
                code = 3 - code
    return code


# =============================================================================
# HanoiSort - merge sort with partition tracking
# =============================================================================

def _hanoi(
    base: list[int],
    nel: int,
    temp: list[int],
    count: list[int],
    changed: list[int],
    compar: Callable[[int, int], int],
    base_offset: int = 0,
    temp_offset: int = 0,
) -> bool:
    """Recursive hanoi merge-sort that updates count array.

    Returns True if result is in temp, False if in base.
    """
    if nel == 1:
        count[base[base_offset]] = 1
        return False

    if nel == 2:
        n1 = base[base_offset]
        n2 = base[base_offset + 1]

        stat = compar(n1, n2) if (changed[n1] or changed[n2]) else 0

        if stat == 0:
            count[n1] = 2
            count[n2] = 0
        else:
            count[n1] = 1
            count[n2] = 1
            if stat > 0:
                base[base_offset] = n2
                base[base_offset + 1] = n1
        return False

    n1 = nel // 2
    n2 = nel - n1

    r1 = _hanoi(base, n1, temp, count, changed, compar, base_offset, temp_offset)
    r2 = _hanoi(base, n2, temp, count, changed, compar, base_offset + n1, temp_offset + n1)

    s1_arr, s1_off = (temp, temp_offset) if r1 else (base, base_offset)
    s2_arr, s2_off = (temp, temp_offset + n1) if r2 else (base, base_offset + n1)

    # Merge into whichever array does not hold the first half
    if r1:
        result = False
        ptr_arr, ptr_off = base, base_offset
    else:
        result = True
        ptr_arr, ptr_off = temp, temp_offset

    i1, i2, ip = 0, 0, 0

    def take(src: list[int], off: int, start: int, length: int) -> None:
        nonlocal ip
        for k in range(length):
            ptr_arr[ptr_off + ip] = src[off + start + k]
            ip += 1

    while i1 < n1 and i2 < n2:
        v1 = s1_arr[s1_off + i1]
        v2 = s2_arr[s2_off + i2]

        stat = compar(v1, v2) if (changed[v1] or changed[v2]) else 0
        len1 = count[v1]
        len2 = count[v2]

        if stat == 0:
            # Equal - merge partitions
            count[v1] = len1 + len2
            count[v2] = 0
            take(s1_arr, s1_off, i1, len1)
            i1 += len1
            if i1 >= n1:
                break
            take(s2_arr, s2_off, i2, len2)
            i2 += len2
        elif stat < 0:
            take(s1_arr, s1_off, i1, len1)
            i1 += len1
        else:
            take(s2_arr, s2_off, i2, len2)
            i2 += len2

    take(s1_arr, s1_off, i1, n1 - i1)
    take(s2_arr, s2_off, i2, n2 - i2)
    return result


def _hanoi_sort(
    order: list[int],
    start: int,
    length: int,
    count: list[int],
    changed: list[int],
    compar: Callable[[int, int], int],
) -> None:
    """Sort a segment using HanoiSort."""
    if length <= 1:
        if length == 1:
            count[order[start]] = 1
        return

    segment = order[start:start + length]
    temp = [0] * length

    if _hanoi(segment, length, temp, count, changed, compar):
        order[start:start + length] = temp
    else:
        order[start:start + length] = segment


# =============================================================================
# Atom comparison functors
# =============================================================================

class _AtomCompareFunctor:
    """Atom comparison functor for canonical ordering."""

    def __init__(
        self,
        atoms: list[_CanonAtom],
        stereo_bonds: dict[int, _StereoBond],
        use_chirality: bool = True,
    ) -> None:
        self.atoms = atoms
        self.stereo_bonds = stereo_bonds
        self.use_chirality = use_chirality
        self.use_nbrs = False

    def __call__(self, i: int, j: int) -> int:
        """Compare atoms i and j."""
        v = self._basecomp(i, j)
        if v != 0:
            return v

        if self.use_nbrs:
            self._update_neighbor_index(i)
            self._update_neighbor_index(j)

            ai = self.atoms[i]
            aj = self.atoms[j]

            for k in range(min(len(ai.bonds), len(aj.bonds))):
                cmp = _BondHolder.compare(ai.bonds[k], aj.bonds[k])
                if cmp != 0:
                    return cmp

            if len(ai.bonds) != len(aj.bonds):
                return -1 if len(ai.bonds) < len(aj.bonds) else 1

        return 0

    def _update_neighbor_index(self, atom_idx: int) -> None:
        """Update neighbor classes, stereo codes and sort bonds."""
        atom = self.atoms[atom_idx]
        for bh in atom.bonds:
            bh.nbr_sym_class = self.atoms[bh.nbr_idx].index
            if self.use_chirality:
                bh.bond_stereo = _bond_stereo_code(self.atoms, self.stereo_bonds, bh.bond_idx)
                bh.nbr_chiral_code = _chiral_code(self.atoms, bh.nbr_idx)
            else:
                bh.bond_stereo = 0
                bh.nbr_chiral_code = 0

        atom.bonds.sort(key=_BondHolder.sort_key)

    def _basecomp(self, i: int, j: int) -> int:
        """Base comparison without neighbor info."""
        ai = self.atoms[i]
        aj = self.atoms[j]

        # 1. Partition index
        if ai.index != aj.index:
            return -1 if ai.index < aj.index else 1

        # 2. Degree
        if ai.degree != aj.degree:
            return -1 if ai.degree < aj.degree else 1

        # 3. Ring membership (Not in ring < In ring)
        if ai.is_in_ring != aj.is_in_ring:
            return -1 if not ai.is_in_ring else 1

        # 4. Atomic number
        if ai.atomic_num != aj.atomic_num:
            return -1 if ai.atomic_num < aj.atomic_num else 1

        # 5. Ring Size (Descending: 6 < 5)
        if ai.min_ring_size != aj.min_ring_size:
            return -1 if ai.min_ring_size > aj.min_ring_size else 1

        # 6. Isotope
        if ai.isotope != aj.isotope:
            return -1 if ai.isotope < aj.isotope else 1

        # 7. Total Hs
        if ai.total_num_hs != aj.total_num_hs:
            return -1 if ai.total_num_hs < aj.total_num_hs else 1

        # 8. Formal charge - uses unsigned comparison for proper ordering
        ui = ai.formal_charge & 0xFFFFFFFF
        uj = aj.formal_charge & 0xFFFFFFFF
        if ui != uj:
            return -1 if ui < uj else 1

        # 9. Marks and heterotopicity
        if ai.extra != aj.extra:
            return -1 if ai.extra < aj.extra else 1

        # 10. Presence of chirality, then its code
        if self.use_chirality:
            ivi = 1 if ai.chirality_tag != 0 else 0
            ivj = 1 if aj.chirality_tag != 0 else 0
            if ivi != ivj:
                return -1 if ivi < ivj else 1

            if ivi and ivj:
                code_i = _chiral_code(self.atoms, i)
                code_j = _chiral_code(self.atoms, j)
                if code_i != code_j:
                    return -1 if code_i < code_j else 1

        return 0


class _SpecialChiralityAtomCompareFunctor:
    """Special atom comparison functor for chirality-based tie breaking.

    Compares atoms based on how their chiral neighbors would rank them.
    Neighbors of unknown configuration and ESR group members don't take
    part, since their drawn configuration carries no information.
    """

    def __init__(self, atoms: list[_CanonAtom]) -> None:
        self.atoms = atoms

    def __call__(self, i: int, j: int) -> int:
        """Compare atoms i and j based on chiral neighbor swaps."""
        self._update_neighbor_index(i)
        self._update_neighbor_index(j)

        ai = self.atoms[i]
        aj = self.atoms[j]

        for k in range(min(len(ai.bonds), len(aj.bonds))):
            cmp = _BondHolder.compare(ai.bonds[k], aj.bonds[k])
            if cmp != 0:
                return cmp

        swaps_i = self._get_neighbor_num_swaps(i)
        swaps_j = self._get_neighbor_num_swaps(j)

        for k in range(min(len(swaps_i), len(swaps_j))):
            cmp = swaps_i[k][1] - swaps_j[k][1]
            if cmp != 0:
                return -1 if cmp < 0 else 1

        return 0

    def _update_neighbor_index(self, atom_idx: int) -> None:
        """Update neighbor symmetry classes and sort bonds."""
        atom = self.atoms[atom_idx]
        for bh in atom.bonds:
            bh.nbr_sym_class = self.atoms[bh.nbr_idx].index

        atom.bonds.sort(key=lambda bh: (bh.bond_type, bh.bond_stereo, bh.nbr_sym_class))

    def _get_neighbor_num_swaps(self, atom_idx: int) -> list[tuple[int, int]]:
        """Compute chiral swap codes for each neighbor.

        For each chiral neighbor, the code is the neighbor's parity with
        atom_idx moved to the front of its neighbor list.
        """
        result = []
        atom = self.atoms[atom_idx]

        for bh in atom.bonds:
            nbr = self.atoms[bh.nbr_idx]

            if nbr.chirality_tag not in (1, 2) or nbr.esr_code:
                result.append((bh.nbr_sym_class, 0))
                continue

            ref = list(nbr.nbr_ids)
            others = [self.atoms[nid].index for nid in ref if nid != atom_idx]
            if len(set(others)) != len(others):
                result.append((bh.nbr_sym_class, 0))
                continue

            reordered = [atom_idx]
            for other_bh in nbr.bonds:
                if other_bh.nbr_idx != atom_idx:
                    reordered.append(other_bh.nbr_idx)

            n_swaps = _count_swaps_to_interconvert(ref, reordered)
            code = nbr.chirality_tag if n_swaps % 2 == 0 else 3 - nbr.chirality_tag
            result.append((bh.nbr_sym_class, code))

        result.sort()
        return result


# =============================================================================
# Core canonicalization algorithm
# =============================================================================

def _create_single_partition(
    n_atoms: int,
    order: list[int],
    count: list[int],
    atoms: list[_CanonAtom],
) -> None:
    """Initialize single partition."""
    for i in range(n_atoms):
        atoms[i].index = 0
        order[i] = i
        count[i] = 0
    count[0] = n_atoms


def _activate_partitions(
    n_atoms: int,
    order: list[int],
    count: list[int],
    next_arr: list[int],
    changed: list[int],
) -> int:
    """Activate partitions needing refinement."""
    for i in range(n_atoms):
        next_arr[i] = -2

    activeset = -1
    i = 0
    while i < n_atoms:
        j = order[i]
        if count[j] > 1:
            next_arr[j] = activeset
            activeset = j
            i += count[j]
        else:
            i += 1

    for i in range(n_atoms):
        changed[order[i]] = 1

    return activeset


def _push_touched(
    touched: list[int],
    order: list[int],
    count: list[int],
    next_arr: list[int],
    activeset: int,
) -> int:
    """Queue every touched partition that still holds ties."""
    for ii in range(len(touched)):
        if touched[ii] == 1:
            touched[ii] = 0
            npart = order[ii]
            if count[npart] > 1 and next_arr[npart] == -2:
                next_arr[npart] = activeset
                activeset = npart
    return activeset


def _refine_partitions(
    atoms: list[_CanonAtom],
    ftor: Callable[[int, int], int],
    order: list[int],
    count: list[int],
    activeset: int,
    next_arr: list[int],
    changed: list[int],
    touched: list[int],
) -> int:
    """Refine partitions using comparison functor."""
    while activeset != -1:
        partition = activeset
        activeset = next_arr[partition]
        next_arr[partition] = -2

        length = count[partition]
        offset = atoms[partition].index

        if length <= 1:
            continue

        _hanoi_sort(order, offset, length, count, changed, ftor)

        for k in range(length):
            changed[order[offset + k]] = 0

        first_idx = order[offset]
        symclass = offset

        i = count[first_idx]
        while i < length:
            idx = order[offset + i]
            if count[idx] > 0:
                symclass = offset + i
            atoms[idx].index = symclass
            for nbr_idx in atoms[idx].nbr_ids:
                changed[nbr_idx] = 1
            i += 1

        for i in range(count[first_idx], length):
            idx = order[offset + i]
            for nbr_idx in atoms[idx].nbr_ids:
                touched[atoms[nbr_idx].index] = 1

        activeset = _push_touched(touched, order, count, next_arr, activeset)

    return activeset


def _break_ties(
    atoms: list[_CanonAtom],
    ftor: _AtomCompareFunctor,
    order: list[int],
    count: list[int],
    activeset: int,
    next_arr: list[int],
    changed: list[int],
    touched: list[int],
) -> None:
    """Break remaining ties by isolating the last atom of each partition."""
    n_atoms = len(atoms)
    i = 0

    while i < n_atoms:
        partition = order[i]
        old_part = atoms[partition].index

        while count[partition] > 1:
            length = count[partition]
            offset = atoms[partition].index + length - 1

            index = order[offset]
            atoms[index].index = offset
            count[partition] = length - 1
            count[index] = 1

            if not atoms[index].nbr_ids:
                continue

            for nbr_idx in atoms[index].nbr_ids:
                touched[atoms[nbr_idx].index] = 1
                changed[nbr_idx] = 1

            activeset = _push_touched(touched, order, count, next_arr, activeset)
            activeset = _refine_partitions(
                atoms, ftor, order, count, activeset,
                next_arr, changed, touched
            )

        if atoms[partition].index != old_part:
            i -= 1

        i += 1


def _rank_mol_atoms(
    atoms: list[_CanonAtom],
    stereo_bonds: dict[int, _StereoBond],
    break_ties_flag: bool = True,
    include_chirality: bool = True,
) -> tuple[list[int], list[int]]:
    """Main ranking function.

    Returns:
        Tuple of (ranks, classes). ``classes`` holds the symmetry class of
        every atom before tie breaking; tied atoms share a class. ``ranks``
        is a permutation if ties were broken.
    """
    n_atoms = len(atoms)
    if n_atoms == 0:
        return [], []

    order = list(range(n_atoms))
    count = [0] * n_atoms
    next_arr = [-2] * n_atoms
    changed = [1] * n_atoms
    touched = [0] * n_atoms

    ftor = _AtomCompareFunctor(atoms, stereo_bonds, use_chirality=include_chirality)

    _create_single_partition(n_atoms, order, count, atoms)

    ftor.use_nbrs = True

    activeset = _activate_partitions(n_atoms, order, count, next_arr, changed)
    activeset = _refine_partitions(
        atoms, ftor, order, count, activeset,
        next_arr, changed, touched
    )

    ties = any(c == 0 for c in count)

    if include_chirality and ties:
        scftor = _SpecialChiralityAtomCompareFunctor(atoms)
        activeset = _activate_partitions(n_atoms, order, count, next_arr, changed)
        activeset = _refine_partitions(
            atoms, scftor, order, count, activeset,
            next_arr, changed, touched
        )

    classes = [0] * n_atoms
    for atom in atoms:
        classes[atom.atom_idx] = atom.index

    if break_ties_flag:
        _break_ties(
            atoms, ftor, order, count, activeset,
            next_arr, changed, touched
        )

    result = [0] * n_atoms
    for i in range(n_atoms):
        result[atoms[order[i]].atom_idx] = i

    return result, classes


# =============================================================================
# Public API
# =============================================================================

@dataclass(frozen=True, slots=True)
class CanonState:
    """Immutable result of one canonicalization.

    Relative parities refer to neighbours in ascending atom index order,
    absolute parities to neighbours in ascending symmetry class order. Both
    are indexed by atom (or bond) and are NONE where there is no stereo
    element.
    """

    mode: RankMode
    canonical_ranks: tuple[int, ...]
    symmetry_classes: tuple[int, ...]
    symmetry_ranks: tuple[int, ...] | None
    atom_parities: tuple[AtomParity, ...]
    atom_parity_pseudo: frozenset[int]
    absolute_atom_parities: tuple[AtomParity, ...]
    bond_parities: tuple[BondParity, ...]
    bond_parity_pseudo: frozenset[int]
    absolute_bond_parities: tuple[BondParity, ...]
    stereo_centers: frozenset[int]
    stereo_bonds: frozenset[int]
    stereo_problems: frozenset[int]
    wedge_defined: frozenset[int]
    esr_members: frozenset[int]
    cip_atom_labels: tuple[str, ...]
    cip_bond_labels: tuple[str, ...]
    identifier: str
    coordinates: str

    @property
    def stereo_center_count(self) -> int:
        """Number of true (non-pseudo) stereocenters."""
        return len(self.stereo_centers - self.atom_parity_pseudo)


@dataclass(slots=True)
class _Perception:
    atoms: list[_CanonAtom]
    stereo_bonds: dict[int, _StereoBond]
    perceiver: StereoPerceiver
    ranks: list[int]
    classes: list[int]


class Canonicalizer:
    """Compute the canonical form of a molecule.

    This class implements canonical ranking using partition refinement with
    the HanoiSort algorithm, combined with stereo perception.

    Example:
        >>> canonicalizer = Canonicalizer(mol, RankMode.CREATE_SYMMETRY_RANK)
        >>> state = canonicalizer.canonicalize()
        >>> state.canonical_ranks
        (1, 0, 2)
    """

    def __init__(
        self,
        mol: "Molecule",
        mode: RankMode = RankMode.NONE,
        marks: Iterable[int] | None = None,
        ignore_esr: bool = False,
        rings: RingInfo | None = None,
    ) -> None:
        """Initialize canonicalizer.

        Args:
            mol: Molecule to canonicalize.
            mode: Symmetry granularity and nitrogen option.
            marks: Atoms carrying an internal mark, which takes part in
                ranking and in the identifier.
            ignore_esr: Treat ESR group members as plain stereocenters.
            rings: Precomputed ring perception for mol.
        """
        self._mol = mol
        self._mode = RankMode(mode)
        self._marks = frozenset(marks or ())
        self._ignore_esr = ignore_esr
        self._rings = rings

    @property
    def rings(self) -> RingInfo:
        if self._rings is None:
            self._rings = ring_info(self._mol)
        return self._rings

    def compute_ranks(
        self,
        break_ties: bool = True,
        include_chirality: bool = True,
    ) -> list[int]:
        """Compute canonical ranks for all atoms.

        Args:
            break_ties: Whether to break remaining ties (default True). If
                False, symmetry classes are returned and tied atoms share a
                value.
            include_chirality: Consider stereo configuration in ranking.

        Returns:
            List of ranks indexed by atom index.
            Lower rank = earlier in canonical ordering.
        """
        self._check_capacity()
        if include_chirality:
            perception = self._perceive()
            return list(perception.ranks if break_ties else perception.classes)

        atoms = self._build_canon_atoms()
        ranks, classes = _rank_mol_atoms(
            atoms, {}, break_ties_flag=break_ties, include_chirality=False,
        )
        return ranks if break_ties else classes

    def identifier(self) -> str:
        """Compute only the canonical identifier."""
        self._check_capacity()
        perception = self._perceive()
        atom_parities, _ = self._absolute_atom_parities(perception)
        bond_parities, _ = self._absolute_bond_parities(perception)
        return self._encode(perception, atom_parities, bond_parities)

    def canonicalize(self) -> CanonState:
        """Run the full canonicalization.

        Raises:
            MoleculeTooLargeError: If the molecule exceeds MAX_ATOMS or
                MAX_BONDS.
        """
        self._check_capacity()
        mol = self._mol
        logger.debug(f"Canonicalizing {mol.num_atoms} atoms, {mol.num_bonds} bonds, mode {self._mode!r}")

        perception = self._perceive()
        perceiver = perception.perceiver

        abs_atom, rel_atom = self._absolute_atom_parities(perception)
        abs_bond, rel_bond = self._absolute_bond_parities(perception)
        atom_labels, bond_labels = cip_labels(
            mol,
            perceiver.atom_parity,
            perceiver.atom_neighbors,
            perceiver.bond_parity,
            perceiver.bond_substituents,
        )
        identifier = self._encode(perception, abs_atom, abs_bond)
        coordinates = encode_coordinates(mol, perception.ranks)
        symmetry_ranks = self._symmetry_ranks(perception)

        return CanonState(
            mode=self._mode,
            canonical_ranks=tuple(perception.ranks),
            symmetry_classes=tuple(perception.classes),
            symmetry_ranks=symmetry_ranks,
            atom_parities=tuple(rel_atom),
            atom_parity_pseudo=frozenset(perceiver.atom_pseudo),
            absolute_atom_parities=tuple(abs_atom),
            bond_parities=tuple(rel_bond),
            bond_parity_pseudo=frozenset(perceiver.bond_pseudo),
            absolute_bond_parities=tuple(abs_bond),
            stereo_centers=frozenset(perceiver.atom_parity),
            stereo_bonds=frozenset(perceiver.bond_parity),
            stereo_problems=frozenset(perceiver.problems),
            wedge_defined=frozenset(perceiver.wedge_defined),
            esr_members=self._esr_members(perceiver),
            cip_atom_labels=atom_labels,
            cip_bond_labels=bond_labels,
            identifier=identifier,
            coordinates=coordinates,
        )

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _check_capacity(self) -> None:
        mol = self._mol
        if mol.num_atoms > MAX_ATOMS or mol.num_bonds > MAX_BONDS:
            logger.debug(f"Refusing to canonicalize {mol.num_atoms} atoms, {mol.num_bonds} bonds")
            raise MoleculeTooLargeError(mol.num_atoms, mol.num_bonds, MAX_ATOMS, MAX_BONDS)

    def _perceive(self) -> _Perception:
        """Rank atoms while perceiving stereo elements until stable."""
        rings = self.rings
        atoms = self._build_canon_atoms()
        _, constitution = _rank_mol_atoms(
            atoms, {}, break_ties_flag=False, include_chirality=False,
        )

        perceiver = StereoPerceiver(
            self._mol,
            rings,
            include_nitrogen=bool(self._mode & RankMode.ASSIGN_PARITIES_TO_TETRAHEDRAL_N),
        )
        perceiver.perceive(constitution)

        while True:
            stereo_bonds = self._apply_stereo(atoms, perceiver)
            ranks, classes = _rank_mol_atoms(
                atoms, stereo_bonds, break_ties_flag=True, include_chirality=True,
            )
            if perceiver.perceive(classes, pseudo=True):
                continue
            if not perceiver.perceive_atoms(self._ring_partners(perceiver.ring_blocked(classes))):
                break

        perceiver.flag_stray_wedges()
        return _Perception(atoms, stereo_bonds, perceiver, ranks, classes)

    def _ring_partners(self, blocked: dict[int, tuple[int, int]]) -> set[int]:
        """Blocked ring candidates whose tie depends on another one.

        Marking one tied branch of a candidate and ranking again tells
        apart the tied branches of every candidate it is coupled with.
        A lone candidate, like C1 of methylcyclohexane, has no partner.
        """
        partners: set[int] = set()
        if len(blocked) < 2:
            return partners

        for atom_idx, (branch, _) in blocked.items():
            atoms = self._build_canon_atoms()
            atoms[branch].extra += 2
            _, marked = _rank_mol_atoms(
                atoms, {}, break_ties_flag=False, include_chirality=False,
            )
            for other_idx, (first, second) in blocked.items():
                if other_idx != atom_idx and marked[first] != marked[second]:
                    partners.update((atom_idx, other_idx))

        if partners:
            logger.debug(f"Ring stereocenters by partner: {sorted(partners)}")
        return partners

    def _build_canon_atoms(self) -> list[_CanonAtom]:
        """Build internal atom representations."""
        mol = self._mol
        rings = self.rings

        atoms: list[_CanonAtom] = []
        for atom in mol.atoms:
            canon_atom = _CanonAtom(
                atom_idx=atom.idx,
                degree=len(atom.bond_indices),
                atomic_num=atom.atomic_number,
                isotope=atom.isotope or 0,
                formal_charge=atom.charge,
                total_num_hs=atom.total_hydrogens(mol),
                is_in_ring=rings.is_ring_atom(atom.idx),
                min_ring_size=rings.atom_ring_size[atom.idx],
                extra=1 if atom.idx in self._marks else 0,
                nbr_ids=sorted(atom.neighbors(mol)),
            )
            for bond in atom.get_bonds(mol):
                canon_atom.bonds.append(_BondHolder(
                    bond_type=int(bond.order),
                    bond_stereo=0,
                    nbr_sym_class=0,
                    nbr_idx=bond.other_atom(atom.idx),
                    bond_idx=bond.idx,
                ))
            atoms.append(canon_atom)

        return atoms

    def _apply_stereo(
        self,
        atoms: list[_CanonAtom],
        perceiver: StereoPerceiver,
    ) -> dict[int, _StereoBond]:
        """Copy perceived parities into the ranking structures."""
        mol = self._mol
        for canon_atom in atoms:
            parity = perceiver.atom_parity.get(canon_atom.atom_idx, AtomParity.NONE)
            canon_atom.chirality_tag = int(parity)
            canon_atom.esr_code = 0
            esr_type = mol.atoms[canon_atom.atom_idx].esr_type
            if parity.is_known and not self._ignore_esr:
                if esr_type == ESRType.AND:
                    canon_atom.esr_code = _CODE_AND
                elif esr_type == ESRType.OR:
                    canon_atom.esr_code = _CODE_OR

        return {
            bond_idx: _StereoBond(int(parity), perceiver.bond_substituents[bond_idx])
            for bond_idx, parity in perceiver.bond_parity.items()
        }

    def _absolute_atom_parities(
        self,
        perception: _Perception,
    ) -> tuple[list[AtomParity], list[AtomParity]]:
        """Absolute and relative atom parities, indexed by atom."""
        n = self._mol.num_atoms
        absolute = [AtomParity.NONE] * n
        relative = [AtomParity.NONE] * n
        classes, ranks = perception.classes, perception.ranks
        perceiver = perception.perceiver

        for atom_idx, parity in perceiver.atom_parity.items():
            relative[atom_idx] = parity
            keys = [(classes[nbr], ranks[nbr]) for nbr in perceiver.atom_neighbors[atom_idx]]
            reordered = reorder_parity(parity, keys)
            absolute[atom_idx] = AtomParity.UNKNOWN if reordered is None else reordered

        return absolute, relative

    def _absolute_bond_parities(
        self,
        perception: _Perception,
    ) -> tuple[list[BondParity], list[BondParity]]:
        """Absolute and relative bond parities, indexed by bond."""
        n = self._mol.num_bonds
        absolute = [BondParity.NONE] * n
        relative = [BondParity.NONE] * n
        classes, ranks = perception.classes, perception.ranks

        for bond_idx, parity in perception.perceiver.bond_parity.items():
            relative[bond_idx] = parity
            if not parity.is_known:
                absolute[bond_idx] = parity
                continue
            for substituents in perception.perceiver.bond_substituents[bond_idx]:
                lowest = min(substituents, key=lambda s: (classes[s], ranks[s]))
                if lowest != substituents[0]:
                    parity = parity.inverted()
            absolute[bond_idx] = parity

        return absolute, relative

    def _esr_members(self, perceiver: StereoPerceiver) -> frozenset[int]:
        """Atoms whose ESR membership is valid."""
        if self._ignore_esr:
            return frozenset()
        return frozenset(
            atom_idx
            for atom_idx, parity in perceiver.atom_parity.items()
            if parity.is_known and self._mol.atoms[atom_idx].esr_type != ESRType.ABS
        )

    def _encode(
        self,
        perception: _Perception,
        atom_parities: list[AtomParity],
        bond_parities: list[BondParity],
    ) -> str:
        members = self._esr_members(perception.perceiver)
        normalized = normalize_esr_parities(self._mol, perception.ranks, atom_parities, members)
        return encode_identifier(
            self._mol,
            perception.ranks,
            normalized,
            perception.perceiver.atom_pseudo,
            bond_parities,
            perception.perceiver.bond_pseudo,
            members,
            self._marks,
        )

    def _symmetry_ranks(self, perception: _Perception) -> tuple[int, ...] | None:
        """Dense 1-based symmetry ranks for the requested granularity."""
        mode = self._mode
        if not mode & _SYMMETRY_MODES:
            return None

        classes = perception.classes
        heterotopic = mode & (RankMode.CONSIDER_DIASTEREOTOPICITY | RankMode.CONSIDER_ENANTIOTOPICITY)
        if heterotopic and self._has_stereo_input():
            subclasses = heterotopic_subclasses(
                self._mol,
                classes,
                enantiotopic=bool(mode & RankMode.CONSIDER_ENANTIOTOPICITY),
                signature=self._signature,
            )
            if any(subclasses):
                for canon_atom in perception.atoms:
                    canon_atom.extra += 2 * subclasses[canon_atom.atom_idx]
                _, classes = _rank_mol_atoms(
                    perception.atoms,
                    perception.stereo_bonds,
                    break_ties_flag=False,
                    include_chirality=True,
                )

        return _dense_ranks(classes)

    def _has_stereo_input(self) -> bool:
        """True if coordinates or explicit parities could define stereo."""
        mol = self._mol
        if any(atom.x or atom.y or atom.z for atom in mol.atoms):
            return True
        if any(atom.parity != AtomParity.NONE for atom in mol.atoms):
            return True
        return any(bond.parity != BondParity.NONE for bond in mol.bonds)

    def _signature(self, mol: "Molecule", mark: int) -> str:
        """Identifier of mol with one atom marked."""
        mode = self._mode & RankMode.ASSIGN_PARITIES_TO_TETRAHEDRAL_N
        return Canonicalizer(
            mol,
            mode,
            marks={mark},
            ignore_esr=self._ignore_esr,
            rings=self.rings,
        ).identifier()


def canonical_ranks(mol: "Molecule") -> list[int]:
    """Compute canonical ranks for a molecule.

    This is a convenience function that creates a Canonicalizer
    and computes ranks with default settings.

    Args:
        mol: Molecule to rank.

    Returns:
        List of ranks indexed by atom index.
    """
    return Canonicalizer(mol).compute_ranks()
