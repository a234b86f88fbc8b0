"""
CIP descriptors.

Priorities come from iterative refinement over an extended graph: multiple
bonds add duplicate atoms at both ends and implicit hydrogens become explicit
nodes. A node ranks by its own invariant first and then by its neighbours'
ranks in descending order, which approximates the sphere-by-sphere
exploration of the hierarchical digraph. Pseudo-asymmetric centers are
resolved in a second pass that ranks R above S.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Sequence

from stereomol.elements import BondOrder
from stereomol.stereo.perception import reorder_parity
from stereomol.types import AtomParity, BondParity

if TYPE_CHECKING:
    from stereomol.types import Molecule


def _dense(keys: Sequence) -> list[int]:
    lookup = {k: i for i, k in enumerate(sorted(set(keys)))}
    return [lookup[k] for k in keys]


def cip_priorities(mol: "Molecule", descriptors: Mapping[int, int] | None = None) -> list[int]:
    """CIP priority of every atom; higher means higher priority.

    Args:
        mol: Molecule.
        descriptors: Optional per-atom descriptor rank (R = 2, S = 1) used
            as the least significant invariant.

    Returns:
        Priority per atom index. Only comparisons between neighbours of the
        same atom are meaningful.
    """
    descriptors = descriptors or {}
    invariants: list[tuple[int, int, int]] = [
        (atom.atomic_number, atom.isotope or 0, descriptors.get(atom.idx, 0))
        for atom in mol.atoms
    ]
    adjacency: list[list[int]] = [[] for _ in mol.atoms]

    def add_node(invariant: tuple[int, int, int], parent: int) -> None:
        invariants.append(invariant)
        adjacency.append([parent])
        adjacency[parent].append(len(invariants) - 1)

    for bond in mol.bonds:
        a, b = bond.atom1_idx, bond.atom2_idx
        adjacency[a].append(b)
        adjacency[b].append(a)
        duplicates = 1 if bond.order == BondOrder.AROMATIC else int(bond.order) - 1
        for _ in range(duplicates):
            add_node((mol.atoms[b].atomic_number, 0, 0), a)
            add_node((mol.atoms[a].atomic_number, 0, 0), b)

    for atom in mol.atoms:
        for _ in range(atom.total_hydrogens(mol)):
            add_node((1, 0, 0), atom.idx)

    ranks = _dense(invariants)
    n_classes = max(ranks, default=-1) + 1
    while True:
        keys = [
            (ranks[i], tuple(sorted((ranks[j] for j in adjacency[i]), reverse=True)))
            for i in range(len(ranks))
        ]
        refined = _dense(keys)
        refined_classes = max(refined, default=-1) + 1
        if refined_classes == n_classes:
            break
        ranks, n_classes = refined, refined_classes

    return ranks[:mol.num_atoms]


def _atom_label(
    parity: AtomParity,
    neighbors: Sequence[int],
    priorities: Sequence[int],
) -> str | None:
    if parity == AtomParity.UNKNOWN:
        return "?"
    reordered = reorder_parity(parity, [-priorities[n] for n in neighbors])
    if reordered is None:
        return None
    return "R" if reordered == AtomParity.PARITY1 else "S"


def _bond_label(
    parity: BondParity,
    ends: tuple[list[int], list[int]],
    priorities: Sequence[int],
) -> str | None:
    if parity == BondParity.UNKNOWN:
        return "?"
    for substituents in ends:
        if len(substituents) == 2:
            p0, p1 = priorities[substituents[0]], priorities[substituents[1]]
            if p0 == p1:
                return None
            if p1 > p0:
                parity = parity.inverted()
    return "E" if parity == BondParity.TRANS else "Z"


def cip_labels(
    mol: "Molecule",
    atom_parities: Mapping[int, AtomParity],
    atom_neighbors: Mapping[int, list[int]],
    bond_parities: Mapping[int, BondParity],
    bond_substituents: Mapping[int, tuple[list[int], list[int]]],
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Assign CIP descriptors to stereo elements.

    Args:
        mol: Molecule.
        atom_parities: Relative parity per stereocenter.
        atom_neighbors: Neighbours of each stereocenter in ascending index
            order.
        bond_parities: Relative parity per stereo double bond.
        bond_substituents: Substituents at both ends of each stereo bond.

    Returns:
        Tuple of (atom labels, bond labels). Labels are "R", "S", "r", "s",
        "E", "Z", "?" for unknown configuration and "" where none applies.
    """
    atom_labels = [""] * mol.num_atoms
    bond_labels = [""] * mol.num_bonds
    if not atom_parities and not bond_parities:
        return tuple(atom_labels), tuple(bond_labels)

    priorities = cip_priorities(mol)
    unresolved: list[int] = []
    for atom_idx, parity in atom_parities.items():
        label = _atom_label(parity, atom_neighbors[atom_idx], priorities)
        if label is None:
            unresolved.append(atom_idx)
        else:
            atom_labels[atom_idx] = label

    descriptors = {
        atom_idx: 2 if label == "R" else 1
        for atom_idx, label in enumerate(atom_labels)
        if label in ("R", "S")
    }
    if unresolved and descriptors:
        pseudo_priorities = cip_priorities(mol, descriptors)
        for atom_idx in unresolved:
            label = _atom_label(atom_parities[atom_idx], atom_neighbors[atom_idx], pseudo_priorities)
            if label is not None:
                atom_labels[atom_idx] = label.lower()

    for bond_idx, parity in bond_parities.items():
        label = _bond_label(parity, bond_substituents[bond_idx], priorities)
        bond_labels[bond_idx] = label or ""

    return tuple(atom_labels), tuple(bond_labels)
