"""Custom exceptions for stereomol."""

from __future__ import annotations

from enum import Enum


class ChemError(Exception):
    """Base exception for chemistry-related errors."""
    pass


class StructureError(ChemError):
    """Malformed molecular graph (dangling or duplicate bonds)."""

    def __init__(self, message: str, bond: int | None = None):
        self.bond = bond
        super().__init__(message)


class CanonicalizeError(ChemError):
    """Error during canonicalization."""
    pass


class MoleculeTooLargeError(CanonicalizeError):
    """Molecule exceeds the size the canonicalizer supports."""

    def __init__(self, atoms: int, bonds: int, max_atoms: int, max_bonds: int):
        self.atoms = atoms
        self.bonds = bonds
        super().__init__(
            f"Molecule with {atoms} atoms and {bonds} bonds exceeds the "
            f"supported size of {max_atoms} atoms and {max_bonds} bonds"
        )


class HelperStateError(ChemError):
    """Derived data was read or recomputed in an invalid helper state.

    This signals a programming error in the caller, for instance a
    re-entrant recomputation, and is not meant to be recovered from.
    """
    pass


class IdentifierDecodeError(ChemError):
    """Error while decoding a canonical identifier or coordinate string."""

    def __init__(self, message: str, identifier: str | None = None, position: int | None = None):
        self.message = message
        self.identifier = identifier
        self.position = position

        if identifier is not None and position is not None:
            super().__init__(f"{message} at bit {position} in: {identifier}")
        elif identifier is not None:
            super().__init__(f"{message} in: {identifier}")
        else:
            super().__init__(message)


class StereoProblem(Enum):
    """Kinds of stereo validation failures."""

    ESR_CENTER_UNKNOWN = "Members of ESR groups must only be stereo centers with known configuration."
    OVER_UNDER_SPECIFIED = "Over- or under-specified stereo feature or more than one racemic type bond"
    AMBIGUOUS_CONFIGURATION = "Ambiguous configuration at stereo center because of 2 parallel bonds"


class StereoValidationError(ChemError):
    """A stereo feature of the molecule is ill-formed.

    Attributes:
        kind: Which named condition was violated.
        atom: Index of the offending atom.
        bonds: Indices of the bonds involved, if any.
    """

    kind: StereoProblem

    def __init__(self, atom: int, bonds: tuple[int, ...] = ()):
        self.atom = atom
        self.bonds = bonds
        message = f"{self.kind.value} (atom {atom}"
        if bonds:
            message += ", bonds " + ", ".join(str(b) for b in bonds)
        super().__init__(message + ")")


class EsrCenterUnknownError(StereoValidationError):
    """ESR group member is not a stereocenter with known configuration."""

    kind = StereoProblem.ESR_CENTER_UNKNOWN


class StereoOverUnderSpecifiedError(StereoValidationError):
    """Contradictory, undeterminable or superfluous stereo bonds at an atom."""

    kind = StereoProblem.OVER_UNDER_SPECIFIED


class AmbiguousConfigurationError(StereoValidationError):
    """Two plain bonds of a wedge-defined stereocenter are drawn parallel."""

    kind = StereoProblem.AMBIGUOUS_CONFIGURATION
