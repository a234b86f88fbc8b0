"""
Stereomol - Molecular canonicalization with stereochemistry.

A library that computes label-independent canonical ranks,
perceives tetrahedral and double bond stereo, enhanced stereo groups and
CIP descriptors, and serializes molecules into a compact identifier.

    >>> from stereomol import StereoMolecule
    >>> mol = StereoMolecule()
    >>> c1 = mol.add_atom("C")
    >>> o = mol.add_atom("O")
    >>> mol.add_bond(c1, o)
    0
    >>> mol.canonical_rank(o)
    1

Submodules:
    stereomol.rings      - Ring membership and smallest ring sizes
    stereomol.stereo     - Parity geometry, perception, CIP, ESR groups
    stereomol.idcode     - Identifier and coordinate serialization
    stereomol.helpers    - Tiered cache of derived data
    stereomol.validation - Stereo validation
"""

import logging

__version__ = "0.1.0"

# Core types
from stereomol.types import (
    Atom,
    AtomParity,
    Bond,
    BondParity,
    BondStereo,
    ESRType,
    Molecule,
)
from stereomol.stereomolecule import Chirality, StereoMolecule

# Canonicalization
from stereomol.canon import MAX_ATOMS, MAX_BONDS, Canonicalizer, CanonState, RankMode, canonical_ranks
from stereomol.idcode import decode_identifier
from stereomol.helpers import (
    HELPER_CIP,
    HELPER_NEIGHBOURS,
    HELPER_PARITIES,
    HELPER_RINGS,
    HELPER_SYMMETRY_DIASTEREOTOPIC,
    HELPER_SYMMETRY_ENANTIOTOPIC,
    HELPER_SYMMETRY_SIMPLE,
    AtomFlag,
    HelperBit,
    HelperCache,
)
from stereomol.validation import StereoValidator
from stereomol.symmetry import ratio_symmetric_atoms

# Exceptions
from stereomol.exceptions import (
    AmbiguousConfigurationError,
    CanonicalizeError,
    ChemError,
    EsrCenterUnknownError,
    HelperStateError,
    IdentifierDecodeError,
    MoleculeTooLargeError,
    StereoOverUnderSpecifiedError,
    StereoProblem,
    StereoValidationError,
    StructureError,
)

# Element data
from stereomol.elements import BondOrder, Element

# Submodules
from stereomol import rings, stereo

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Types
    "Atom", "AtomParity", "Bond", "BondParity", "BondStereo", "ESRType",
    "Molecule", "StereoMolecule", "Chirality",
    # Canonicalization
    "Canonicalizer", "CanonState", "RankMode", "canonical_ranks",
    "MAX_ATOMS", "MAX_BONDS", "decode_identifier",
    # Helper data
    "HelperCache", "HelperBit", "AtomFlag",
    "HELPER_NEIGHBOURS", "HELPER_RINGS", "HELPER_PARITIES", "HELPER_CIP",
    "HELPER_SYMMETRY_SIMPLE", "HELPER_SYMMETRY_DIASTEREOTOPIC",
    "HELPER_SYMMETRY_ENANTIOTOPIC",
    # Validation and statistics
    "StereoValidator", "ratio_symmetric_atoms",
    # Exceptions
    "ChemError", "StructureError", "CanonicalizeError", "MoleculeTooLargeError",
    "HelperStateError", "IdentifierDecodeError", "StereoProblem",
    "StereoValidationError", "EsrCenterUnknownError",
    "StereoOverUnderSpecifiedError", "AmbiguousConfigurationError",
    # Elements
    "Element", "BondOrder",
    # Submodules
    "rings", "stereo",
]
