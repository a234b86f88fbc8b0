"""
Chemical elements and constants.

This module provides element data and the bond order enumeration used by the
graph store, the canonicalizer and the identifier codec.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Final


class BondOrder(IntEnum):
    """Bond order enumeration."""

    SINGLE = 1
    DOUBLE = 2
    TRIPLE = 3
    AROMATIC = 4

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def valence_contribution(self) -> float:
        """Contribution of one bond of this order to an atom's valence."""
        return 1.5 if self is BondOrder.AROMATIC else float(self.value)

    @property
    def pi_electrons(self) -> int:
        """Number of pi bonds (0 for single, 1 for double and aromatic)."""
        if self is BondOrder.AROMATIC:
            return 1
        return self.value - 1


@dataclass(frozen=True, slots=True)
class Element:
    """Immutable element data.

    Attributes:
        atomic_number: Atomic number (proton count).
        symbol: Element symbol (e.g., "C", "Cl").
        default_valence: Common valence for organic chemistry.
    """

    atomic_number: int
    symbol: str
    default_valence: int | None = None

    _by_symbol: ClassVar[dict[str, "Element"]] = {}
    _by_number: ClassVar[dict[int, "Element"]] = {}

    def __post_init__(self) -> None:
        Element._by_symbol[self.symbol] = self
        Element._by_number[self.atomic_number] = self

    @classmethod
    def from_symbol(cls, symbol: str) -> "Element | None":
        """Look up element by symbol (case-insensitive)."""
        if symbol in cls._by_symbol:
            return cls._by_symbol[symbol]
        return cls._by_symbol.get(symbol.capitalize())

    @classmethod
    def from_atomic_number(cls, num: int) -> "Element | None":
        """Look up element by atomic number."""
        return cls._by_number.get(num)


# Periodic table in atomic number order, seven rows.
_SYMBOLS: Final[str] = (
    "H He "
    "Li Be B C N O F Ne "
    "Na Mg Al Si P S Cl Ar "
    "K Ca Sc Ti V Cr Mn Fe Co Ni Cu Zn Ga Ge As Se Br Kr "
    "Rb Sr Y Zr Nb Mo Tc Ru Rh Pd Ag Cd In Sn Sb Te I Xe "
    "Cs Ba La Ce Pr Nd Pm Sm Eu Gd Tb Dy Ho Er Tm Yb Lu "
    "Hf Ta W Re Os Ir Pt Au Hg Tl Pb Bi Po At Rn "
    "Fr Ra Ac Th Pa U Np Pu Am Cm Bk Cf Es Fm Md No Lr "
    "Rf Db Sg Bh Hs Mt Ds Rg Cn Nh Fl Mc Lv Ts Og"
)

# Default valences for implicit hydrogen calculation
DEFAULT_VALENCES: Final[dict[int, int]] = {
    1: 1,   # H
    5: 3,   # B
    6: 4,   # C
    7: 3,   # N
    8: 2,   # O
    9: 1,   # F
    14: 4,  # Si
    15: 3,  # P
    16: 2,  # S
    17: 1,  # Cl
    32: 4,  # Ge
    33: 3,  # As
    34: 2,  # Se
    35: 1,  # Br
    53: 1,  # I
}

ELEMENTS: Final[tuple[Element, ...]] = tuple(
    Element(num, sym, DEFAULT_VALENCES.get(num))
    for num, sym in enumerate(_SYMBOLS.split(), start=1)
)

# Highest atomic number the identifier codec can carry.
MAX_ATOMIC_NUMBER: Final[int] = len(ELEMENTS)

# Symbol used for atoms whose element is unknown (atomic number 0).
UNKNOWN_SYMBOL: Final[str] = "*"


def get_atomic_number(symbol: str) -> int:
    """Get atomic number for an element symbol.

    Args:
        symbol: Element symbol (e.g., "C", "cl", "Cl").

    Returns:
        Atomic number, or 0 if not found.
    """
    elem = Element.from_symbol(symbol)
    return elem.atomic_number if elem else 0


def get_symbol(atomic_num: int) -> str:
    """Get element symbol for an atomic number, "*" if unknown."""
    elem = Element.from_atomic_number(atomic_num)
    return elem.symbol if elem else UNKNOWN_SYMBOL


def get_default_valence(atomic_num: int) -> int | None:
    """Get default valence for an element.

    Args:
        atomic_num: Atomic number.

    Returns:
        Default valence, or None if not applicable.
    """
    return DEFAULT_VALENCES.get(atomic_num)
