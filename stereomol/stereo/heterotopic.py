"""
Stereoheterotopic atom perception.

Two constitutionally equivalent atoms are homotopic if marking either one
gives the same molecule, enantiotopic if marking one gives the mirror image
of marking the other, and diastereotopic otherwise. Marking is done through
the canonicalizer's internal marks; the identifier of the marked molecule
serves as a signature.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Sequence

if TYPE_CHECKING:
    from stereomol.types import Molecule


Signature = Callable[["Molecule", int], str]


def heterotopic_subclasses(
    mol: "Molecule",
    classes: Sequence[int],
    enantiotopic: bool,
    signature: Signature,
) -> list[int]:
    """Split symmetry classes by stereoheterotopicity.

    Args:
        mol: Molecule.
        classes: Symmetry class per atom.
        enantiotopic: Distinguish enantiotopic atoms as well. Otherwise only
            diastereotopic atoms are separated.
        signature: Canonical identifier of a molecule with one atom marked.

    Returns:
        Subclass index per atom, 0 for atoms in classes that don't split.
        Subclasses are ordered by signature and thus label independent.
    """
    members: dict[int, list[int]] = {}
    for atom_idx, cls in enumerate(classes):
        members.setdefault(cls, []).append(atom_idx)

    mirror = mol.mirrored() if not enantiotopic else None
    subclasses = [0] * len(classes)

    for atoms in members.values():
        if len(atoms) < 2:
            continue

        keys: dict[int, str] = {}
        for atom_idx in atoms:
            key = signature(mol, atom_idx)
            if mirror is not None:
                key = min(key, signature(mirror, atom_idx))
            keys[atom_idx] = key

        distinct = sorted(set(keys.values()))
        if len(distinct) < 2:
            continue
        for atom_idx, key in keys.items():
            subclasses[atom_idx] = distinct.index(key)

    return subclasses
