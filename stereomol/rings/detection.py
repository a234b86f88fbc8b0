"""
Ring detection algorithms.

This module finds which atoms and bonds are part of a ring and the size of
the smallest ring through each of them. Stereo perception needs both: ring
membership feeds the canonical invariants, and double bonds in small rings
cannot carry E/Z configuration.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stereomol.types import Molecule


@dataclass(frozen=True, slots=True)
class RingInfo:
    """Immutable ring perception result.

    Attributes:
        ring_atoms: Atoms in at least one ring.
        ring_bonds: Bond indices that are not bridges.
        atom_ring_size: Smallest ring size per atom, 0 if acyclic.
        bond_ring_size: Smallest ring size per bond, 0 if acyclic.
    """

    ring_atoms: frozenset[int]
    ring_bonds: frozenset[int]
    atom_ring_size: tuple[int, ...]
    bond_ring_size: tuple[int, ...]

    def is_ring_atom(self, atom_idx: int) -> bool:
        return atom_idx in self.ring_atoms

    def is_ring_bond(self, bond_idx: int) -> bool:
        return bond_idx in self.ring_bonds


def _adjacency(mol: "Molecule") -> list[list[tuple[int, int]]]:
    adj: list[list[tuple[int, int]]] = [[] for _ in range(mol.num_atoms)]
    for bond in mol.bonds:
        adj[bond.atom1_idx].append((bond.atom2_idx, bond.idx))
        adj[bond.atom2_idx].append((bond.atom1_idx, bond.idx))
    return adj


def find_ring_atoms_and_bonds(mol: "Molecule") -> tuple[set[int], set[int]]:
    """Detect ring atoms and bonds using Tarjan's bridge-finding algorithm.

    This is O(V+E) and doesn't enumerate rings. The DFS is iterative so large
    chains don't hit the recursion limit.

    Returns:
        Tuple of (ring_atoms, ring_bonds) where ring_bonds are bond indices.
    """
    n = mol.num_atoms
    if n == 0:
        return set(), set()

    adj = _adjacency(mol)
    discovery = [-1] * n
    low = [0] * n
    bridges: set[int] = set()
    time_counter = 0

    for start in range(n):
        if discovery[start] >= 0:
            continue
        discovery[start] = low[start] = time_counter
        time_counter += 1
        # Frames are (node, bond used to reach it, next adjacency position)
        stack: list[list[int]] = [[start, -1, 0]]
        while stack:
            frame = stack[-1]
            node, parent_bond, pos = frame
            if pos < len(adj[node]):
                frame[2] += 1
                neighbor, bond_idx = adj[node][pos]
                if discovery[neighbor] < 0:
                    discovery[neighbor] = low[neighbor] = time_counter
                    time_counter += 1
                    stack.append([neighbor, bond_idx, 0])
                elif bond_idx != parent_bond:
                    low[node] = min(low[node], discovery[neighbor])
                continue

            stack.pop()
            if stack:
                parent = stack[-1][0]
                low[parent] = min(low[parent], low[node])
                if low[node] > discovery[parent]:
                    bridges.add(parent_bond)

    ring_atoms: set[int] = set()
    ring_bonds: set[int] = set()
    for bond in mol.bonds:
        if bond.idx not in bridges:
            ring_bonds.add(bond.idx)
            ring_atoms.add(bond.atom1_idx)
            ring_atoms.add(bond.atom2_idx)

    return ring_atoms, ring_bonds


def get_bond_ring_sizes(mol: "Molecule", ring_bonds: set[int] | None = None) -> list[int]:
    """Get the smallest ring size for each bond using BFS.

    The smallest ring through a bond is one plus the shortest path between
    its atoms that avoids the bond itself.

    Args:
        mol: Molecule to analyze.
        ring_bonds: Optional precomputed set of ring bond indices.

    Returns:
        List indexed by bond, 0 for bonds not in any ring.
    """
    if ring_bonds is None:
        _, ring_bonds = find_ring_atoms_and_bonds(mol)

    sizes = [0] * mol.num_bonds
    if not ring_bonds:
        return sizes

    adj = _adjacency(mol)
    for bond_idx in ring_bonds:
        bond = mol.bonds[bond_idx]
        source, target = bond.atom1_idx, bond.atom2_idx
        dist = {source: 0}
        queue = deque([source])
        while queue:
            curr = queue.popleft()
            if curr == target:
                break
            for nbr, via in adj[curr]:
                if via == bond_idx or via not in ring_bonds or nbr in dist:
                    continue
                dist[nbr] = dist[curr] + 1
                queue.append(nbr)
        if target in dist:
            sizes[bond_idx] = dist[target] + 1

    return sizes


def get_min_ring_sizes(mol: "Molecule", bond_ring_sizes: list[int] | None = None) -> list[int]:
    """Get minimum ring size for each atom.

    Args:
        mol: Molecule to analyze.
        bond_ring_sizes: Optional precomputed result of get_bond_ring_sizes().

    Returns:
        List indexed by atom, 0 if not in any ring.
    """
    if bond_ring_sizes is None:
        bond_ring_sizes = get_bond_ring_sizes(mol)

    sizes = [0] * mol.num_atoms
    for bond in mol.bonds:
        size = bond_ring_sizes[bond.idx]
        if size == 0:
            continue
        for atom_idx in (bond.atom1_idx, bond.atom2_idx):
            if sizes[atom_idx] == 0 or size < sizes[atom_idx]:
                sizes[atom_idx] = size
    return sizes


def ring_info(mol: "Molecule") -> RingInfo:
    """Perceive rings of a molecule.

    Example:
        >>> info = ring_info(cyclohexane)
        >>> info.atom_ring_size[0]
        6
    """
    ring_atoms, ring_bonds = find_ring_atoms_and_bonds(mol)
    bond_sizes = get_bond_ring_sizes(mol, ring_bonds)
    atom_sizes = get_min_ring_sizes(mol, bond_sizes)
    return RingInfo(
        ring_atoms=frozenset(ring_atoms),
        ring_bonds=frozenset(ring_bonds),
        atom_ring_size=tuple(atom_sizes),
        bond_ring_size=tuple(bond_sizes),
    )
