"""
Helper-array cache.

Derived data of a molecule (rings, parities, CIP labels, symmetry ranks,
identifier) is computed on demand in tiers and kept as one immutable
:class:`DerivedState`. The cache is an explicit state machine: INVALID,
COMPUTING or VALID with a mask of valid tiers, tied to the graph store's
version counter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import TYPE_CHECKING, Final

from stereomol.canon import Canonicalizer, CanonState, RankMode
from stereomol.exceptions import HelperStateError
from stereomol.rings import RingInfo, ring_info
from stereomol.stereo.esr import renumber_esr_groups, resolve_esr

if TYPE_CHECKING:
    from stereomol.types import Molecule


logger = logging.getLogger(__name__)


class HelperBit(IntFlag):
    """Individual validity bits of derived data."""

    NEIGHBOURS = 0x0001
    RINGS = 0x0002
    PARITIES = 0x0004
    CIP = 0x0008
    SYMMETRY_SIMPLE = 0x0010
    SYMMETRY_DIASTEREOTOPIC = 0x0020
    SYMMETRY_ENANTIOTOPIC = 0x0040
    INCLUDE_NITROGEN_PARITIES = 0x0080


# Request levels; each includes the levels before it.
HELPER_NEIGHBOURS: Final[HelperBit] = HelperBit.NEIGHBOURS
HELPER_RINGS: Final[HelperBit] = HELPER_NEIGHBOURS | HelperBit.RINGS
HELPER_PARITIES: Final[HelperBit] = HELPER_RINGS | HelperBit.PARITIES
HELPER_CIP: Final[HelperBit] = HELPER_PARITIES | HelperBit.CIP
HELPER_SYMMETRY_SIMPLE: Final[HelperBit] = HELPER_CIP | HelperBit.SYMMETRY_SIMPLE
HELPER_SYMMETRY_DIASTEREOTOPIC: Final[HelperBit] = HELPER_CIP | HelperBit.SYMMETRY_DIASTEREOTOPIC
HELPER_SYMMETRY_ENANTIOTOPIC: Final[HelperBit] = HELPER_CIP | HelperBit.SYMMETRY_ENANTIOTOPIC

_CANON_BITS: Final[HelperBit] = (
    HelperBit.PARITIES
    | HelperBit.CIP
    | HelperBit.SYMMETRY_SIMPLE
    | HelperBit.SYMMETRY_DIASTEREOTOPIC
    | HelperBit.SYMMETRY_ENANTIOTOPIC
)
_SYMMETRY_BITS: Final[HelperBit] = (
    HelperBit.SYMMETRY_SIMPLE
    | HelperBit.SYMMETRY_DIASTEREOTOPIC
    | HelperBit.SYMMETRY_ENANTIOTOPIC
)


class HelperState(Enum):
    """State of a helper cache."""

    INVALID = "invalid"
    COMPUTING = "computing"
    VALID = "valid"


class AtomFlag(IntFlag):
    """Derived per-atom stereo flags."""

    NONE = 0
    STEREO_CENTER = 0x01
    PSEUDO_PARITY = 0x02
    STEREO_PROBLEM = 0x04
    ESR_MEMBER = 0x08


def rank_mode(required: HelperBit) -> tuple[RankMode, HelperBit]:
    """Pick the canonicalizer mode for a request.

    Simple symmetry wins over diastereotopic, which wins over enantiotopic.

    Returns:
        Tuple of (mode, rank bits that become valid).
    """
    if required & HelperBit.SYMMETRY_SIMPLE:
        mode, bits = RankMode.CREATE_SYMMETRY_RANK, HelperBit.SYMMETRY_SIMPLE
    elif required & HelperBit.SYMMETRY_DIASTEREOTOPIC:
        mode = RankMode.CREATE_SYMMETRY_RANK | RankMode.CONSIDER_DIASTEREOTOPICITY
        bits = HelperBit.SYMMETRY_DIASTEREOTOPIC
    elif required & HelperBit.SYMMETRY_ENANTIOTOPIC:
        mode = RankMode.CREATE_SYMMETRY_RANK | RankMode.CONSIDER_ENANTIOTOPICITY
        bits = HelperBit.SYMMETRY_ENANTIOTOPIC
    else:
        mode, bits = RankMode.NONE, HelperBit(0)

    if required & HelperBit.INCLUDE_NITROGEN_PARITIES:
        mode |= RankMode.ASSIGN_PARITIES_TO_TETRAHEDRAL_N
        bits |= HelperBit.INCLUDE_NITROGEN_PARITIES
    return mode, bits


@dataclass(frozen=True, slots=True)
class DerivedState:
    """Immutable snapshot of derived data.

    Attributes:
        valid: Tiers this snapshot holds.
        rings: Ring perception, if the RINGS tier is valid.
        canon: Canonicalization result, if the PARITIES tier is valid.
    """

    valid: HelperBit
    rings: RingInfo | None = None
    canon: CanonState | None = None

    def require(self, bits: HelperBit) -> None:
        """Raise HelperStateError unless all of ``bits`` are valid."""
        missing = HelperBit(bits) & ~self.valid
        if missing:
            raise HelperStateError(f"Helper data {missing!r} was never computed")

    def canon_state(self) -> CanonState:
        self.require(HelperBit.PARITIES)
        if self.canon is None:
            raise HelperStateError("Helper data claims parities without a canonicalization result")
        return self.canon

    def symmetry_ranks(self, bit: HelperBit) -> tuple[int, ...]:
        """Symmetry ranks of one granularity."""
        self.require(bit & _SYMMETRY_BITS)
        ranks = self.canon_state().symmetry_ranks
        if ranks is None:
            raise HelperStateError("No symmetry ranks were computed")
        return ranks

    def atom_flags(self, atom_idx: int) -> AtomFlag:
        canon = self.canon_state()
        flags = AtomFlag.NONE
        if atom_idx in canon.stereo_centers:
            flags |= AtomFlag.STEREO_CENTER
        if atom_idx in canon.atom_parity_pseudo:
            flags |= AtomFlag.PSEUDO_PARITY
        if atom_idx in canon.stereo_problems:
            flags |= AtomFlag.STEREO_PROBLEM
        if atom_idx in canon.esr_members:
            flags |= AtomFlag.ESR_MEMBER
        return flags


_EMPTY: Final[DerivedState] = DerivedState(valid=HelperBit(0))


class HelperCache:
    """Tiered cache of derived data for one molecule.

    Example:
        >>> cache = HelperCache()
        >>> derived = cache.ensure(mol, HELPER_PARITIES)
        >>> derived.canon.identifier
        'EAQABAIAAA'
    """

    def __init__(self) -> None:
        self._state = HelperState.INVALID
        self._derived = _EMPTY
        self._version = -1

    @property
    def state(self) -> HelperState:
        return self._state

    @property
    def derived(self) -> DerivedState:
        return self._derived

    def invalidate(self, bits: HelperBit | None = None) -> None:
        """Drop derived data.

        Args:
            bits: Tiers to drop. Dropping any canonical tier drops all of
                them. None drops everything.
        """
        if self._state is HelperState.COMPUTING:
            raise HelperStateError("Cannot invalidate helper data while computing it")
        if bits is None or self._derived.valid & ~HelperBit(bits) == HelperBit(0):
            self._state = HelperState.INVALID
            self._derived = _EMPTY
            self._version = -1
            return
        if bits & (_CANON_BITS | HelperBit.INCLUDE_NITROGEN_PARITIES):
            kept = self._derived.valid & (HelperBit.NEIGHBOURS | HelperBit.RINGS)
            self._derived = DerivedState(valid=kept, rings=self._derived.rings)

    def is_valid(self, mol: "Molecule", required: HelperBit) -> bool:
        return (
            self._state is HelperState.VALID
            and self._version == mol.version
            and not HelperBit(required) & ~self._derived.valid
        )

    def ensure(
        self,
        mol: "Molecule",
        required: HelperBit,
        include_nitrogen: bool = False,
    ) -> DerivedState:
        """Make sure the requested tiers are valid and return them.

        Args:
            mol: The molecule this cache belongs to.
            required: Requested level, e.g. HELPER_CIP.
            include_nitrogen: Treat tetrahedral nitrogen as stereocenter.

        Returns:
            The current derived state.

        Raises:
            HelperStateError: If called while the cache is computing.
            MoleculeTooLargeError: If canonicalization is impossible.
        """
        if self._state is HelperState.COMPUTING:
            raise HelperStateError("Helper data requested while it is being computed")

        required = HelperBit(required)
        if include_nitrogen and required & _CANON_BITS:
            required |= HelperBit.INCLUDE_NITROGEN_PARITIES

        if self._version != mol.version:
            self.invalidate()
        elif required & _CANON_BITS and (self._derived.valid ^ required) & HelperBit.INCLUDE_NITROGEN_PARITIES:
            # Canonical tiers computed under the other nitrogen policy
            self.invalidate(_CANON_BITS | HelperBit.INCLUDE_NITROGEN_PARITIES)
        if self.is_valid(mol, required):
            return self._derived

        self._state = HelperState.COMPUTING
        try:
            derived = self._compute(mol, required)
        except Exception:
            self._state = HelperState.INVALID
            self._derived = _EMPTY
            self._version = -1
            raise

        self._derived = derived
        self._version = mol.version
        self._state = HelperState.VALID
        return derived

    def _compute(self, mol: "Molecule", required: HelperBit) -> DerivedState:
        previous = self._derived
        valid = HelperBit.NEIGHBOURS

        rings = previous.rings
        if rings is None and required & (HelperBit.RINGS | _CANON_BITS):
            rings = ring_info(mol)
        if rings is not None:
            valid |= HelperBit.RINGS

        if not required & _CANON_BITS:
            if previous.canon is not None:
                return DerivedState(previous.valid | valid, rings, previous.canon)
            return DerivedState(valid, rings)

        mode, rank_bits = rank_mode(required)
        logger.debug(f"Recomputing helper data for {required!r}")
        canon = Canonicalizer(mol, mode, rings=rings).canonicalize()
        if resolve_esr(mol, canon, rings, bool(rank_bits & HelperBit.INCLUDE_NITROGEN_PARITIES)):
            logger.debug("Canonicalizing again after racemate resolution")
            canon = Canonicalizer(mol, mode, rings=rings).canonicalize()
            renumber_esr_groups(mol, canon.canonical_ranks)

        valid |= HelperBit.PARITIES | HelperBit.CIP | rank_bits
        return DerivedState(valid, rings, canon)
