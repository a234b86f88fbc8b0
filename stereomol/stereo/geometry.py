"""
Geometric parity perception.

Tetrahedral parity convention: substituents are sorted by key ascending with
an implicit hydrogen or lone pair taking the last place. Looking at the
center with the last substituent pointing away from the viewer, the other
three in ascending key order run clockwise for PARITY1 and anticlockwise for
PARITY2. This is the sign of det(b-a, c-a, d-a) over the substituent
positions a, b, c, d.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final, Sequence

import numpy as np

from stereomol.types import AtomParity, BondParity, BondStereo

if TYPE_CHECKING:
    from stereomol.types import Bond, Molecule

# Angle difference under which two bonds count as parallel or antiparallel.
PARALLEL_BOND_TOLERANCE: Final[float] = 0.08

# Signed volumes of unit-vector tetrahedra below this are degenerate.
_MIN_VOLUME: Final[float] = 1e-3

# Projected substituent lengths below this count as collinear with the bond.
_MIN_PROJECTION: Final[float] = 1e-3

# |cos| of the dihedral angle below this leaves E/Z undetermined.
_MIN_DIHEDRAL_COS: Final[float] = 0.05


def signed_volume(a, b, c, d) -> float:
    """Return det(b-a, c-a, d-a)."""
    a = np.asarray(a, dtype=float)
    edges = np.stack([np.asarray(p, dtype=float) - a for p in (b, c, d)])
    return float(np.linalg.det(edges))


def parity_from_vectors(vectors: Sequence) -> AtomParity | None:
    """Parity of substituent directions given in key order.

    Args:
        vectors: Three or four bond vectors from the center. With three, the
            missing substituent is placed opposite to their unit sum.

    Returns:
        PARITY1 or PARITY2, or None if the arrangement is degenerate.
    """
    vectors = np.asarray(vectors, dtype=float)
    lengths = np.linalg.norm(vectors, axis=1)
    if np.any(lengths < 1e-9):
        return None
    units = vectors / lengths[:, np.newaxis]

    if len(units) == 3:
        virtual = -units.sum(axis=0)
        length = np.linalg.norm(virtual)
        if length < 1e-9:
            return None
        units = np.vstack([units, virtual / length])

    volume = signed_volume(*units)
    if abs(volume) < _MIN_VOLUME:
        return None
    return AtomParity.PARITY1 if volume > 0 else AtomParity.PARITY2


def _position(mol: "Molecule", atom_idx: int) -> np.ndarray:
    atom = mol.atoms[atom_idx]
    return np.array([atom.x, atom.y, atom.z], dtype=float)


def tetrahedral_parity(
    mol: "Molecule",
    center: int,
    neighbors: Sequence[int],
    is_3d: bool,
) -> tuple[AtomParity, bool]:
    """Perceive the relative parity of a tetrahedral center from geometry.

    Args:
        mol: Molecule.
        center: Index of the center atom.
        neighbors: Explicit neighbours in key order (three or four).
        is_3d: Use real z coordinates and ignore wedges.

    Returns:
        Tuple of (parity, problem). ``problem`` is True for contradictory
        wedges, an over-specified crossed bond or degenerate geometry.
    """
    origin = _position(mol, center)

    crossed = 0
    wedges: list[tuple[int, float]] = []
    for bond in mol.atoms[center].get_bonds(mol):
        if bond.atom1_idx != center:
            continue
        if bond.stereo == BondStereo.CROSS:
            crossed += 1
        elif bond.stereo in (BondStereo.UP, BondStereo.DOWN) and not is_3d:
            wedges.append((bond.atom2_idx, 1.0 if bond.stereo == BondStereo.UP else -1.0))

    if crossed:
        return AtomParity.UNKNOWN, crossed > 1 or bool(wedges)

    vectors = np.stack([_position(mol, n) - origin for n in neighbors])
    if is_3d:
        parity = parity_from_vectors(vectors)
        if parity is None:
            return AtomParity.UNKNOWN, True
        return parity, False

    if not wedges:
        return AtomParity.UNKNOWN, False

    # Wedged neighbours are lifted out of the plane by their bond length
    flat = vectors[:, :2]
    lengths = np.linalg.norm(flat, axis=1)

    def lifted(lift: dict[int, float]) -> np.ndarray:
        signs = np.array([lift.get(n, 0.0) for n in neighbors])
        return np.column_stack([flat, signs * lengths])

    parity = parity_from_vectors(lifted(dict(wedges)))
    if parity is None:
        return AtomParity.UNKNOWN, True
    if len(wedges) > 1:
        for neighbor, sign in wedges:
            if parity_from_vectors(lifted({neighbor: sign})) != parity:
                return AtomParity.UNKNOWN, True
    return parity, False


def double_bond_parity(
    mol: "Molecule",
    bond: "Bond",
    substituent1: int,
    substituent2: int,
) -> BondParity:
    """Perceive E/Z parity of a double bond from coordinates.

    Args:
        mol: Molecule.
        bond: The double bond.
        substituent1: Reference substituent at ``bond.atom1_idx``.
        substituent2: Reference substituent at ``bond.atom2_idx``.

    Returns:
        CIS if the references are on the same side, TRANS if opposite,
        UNKNOWN for a crossed bond or collinear substituents.
    """
    if bond.stereo == BondStereo.CROSS:
        return BondParity.UNKNOWN

    a = _position(mol, bond.atom1_idx)
    b = _position(mol, bond.atom2_idx)
    axis = b - a
    axis_sq = np.dot(axis, axis)
    if axis_sq < 1e-12:
        return BondParity.UNKNOWN

    def perpendicular(v: np.ndarray) -> np.ndarray:
        return v - (np.dot(v, axis) / axis_sq) * axis

    v1 = perpendicular(_position(mol, substituent1) - a)
    v2 = perpendicular(_position(mol, substituent2) - b)
    n1 = np.linalg.norm(v1)
    n2 = np.linalg.norm(v2)
    if n1 < _MIN_PROJECTION or n2 < _MIN_PROJECTION:
        return BondParity.UNKNOWN

    cos = np.dot(v1, v2) / (n1 * n2)
    if abs(cos) < _MIN_DIHEDRAL_COS:
        return BondParity.UNKNOWN
    return BondParity.CIS if cos > 0 else BondParity.TRANS


def bond_angle(mol: "Molecule", atom1_idx: int, atom2_idx: int) -> float:
    """2-D angle of the bond direction from atom1 to atom2 in radians."""
    a1 = mol.atoms[atom1_idx]
    a2 = mol.atoms[atom2_idx]
    return float(np.arctan2(a2.y - a1.y, a2.x - a1.x))


def angle_dif(angle1: float, angle2: float) -> float:
    """Signed difference angle2 - angle1 normalized to (-pi, pi]."""
    dif = angle2 - angle1
    while dif > np.pi:
        dif -= 2 * np.pi
    while dif <= -np.pi:
        dif += 2 * np.pi
    return dif


def bonds_are_parallel(
    angle1: float,
    angle2: float,
    tolerance: float = PARALLEL_BOND_TOLERANCE,
) -> bool:
    """True if two bond angles are parallel or antiparallel within tolerance."""
    dif = abs(angle_dif(angle1, angle2))
    return dif < tolerance or dif > np.pi - tolerance
