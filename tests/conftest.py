"""Test configuration, molecule builders and fixtures for stereomol tests."""

from __future__ import annotations

import pytest

# RDKit is used as reference for CIP labels and stereocenter counts
from rdkit import Chem
from rdkit.Chem import AllChem, rdDepictor

from stereomol import (
    AtomParity,
    BondOrder,
    BondStereo,
    ESRType,
    StereoMolecule,
)

# Ideal tetrahedron; substituents placed at the first three vertices in
# index order leave the implicit hydrogen at the fourth and give PARITY2.
TETRAHEDRON = [(1.0, 1.0, 1.0), (1.0, -1.0, -1.0), (-1.0, 1.0, -1.0), (-1.0, -1.0, 1.0)]

# SMILES with defined tetrahedral centers and no aromatic rings
CHIRAL_SMILES = [
    "C[C@H](N)C(=O)O",
    "C[C@@H](N)C(=O)O",
    "CC[C@@H](C)O",
    "CC[C@H](C)O",
    "C[C@H](O)C(=O)O",
    "F[C@H](Cl)Br",
    "F[C@@H](Cl)Br",
    "OC[C@H](O)C=O",
    "N[C@@H](CO)C(=O)O",
]

# Ring diastereomer pairs whose centers are tied only between ring branches
RING_STEREO_PAIRS = [
    ("C[C@H]1CC[C@@H](C)CC1", "C[C@H]1CC[C@H](C)CC1"),
    ("C[C@H]1C[C@@H](C)C1", "C[C@H]1C[C@H](C)C1"),
    ("O[C@H]1CC[C@@H](Cl)CC1", "O[C@H]1CC[C@H](Cl)CC1"),
    ("C1CC[C@H]2CCCC[C@@H]2C1", "C1CC[C@H]2CCCC[C@H]2C1"),
]


def _mirror_point(p):
    return (p[0], p[1], -p[2])


def chfclbr_3d(mirror: bool = False) -> StereoMolecule:
    """Bromochlorofluoromethane as (R), or (S) if mirrored.

    Atoms: 0 C, 1 F, 2 Cl, 3 Br.
    """
    mol = StereoMolecule()
    mol.add_atom("C")
    for symbol, pos in zip(("F", "Cl", "Br"), TETRAHEDRON):
        x, y, z = _mirror_point(pos) if mirror else pos
        idx = mol.add_atom(symbol, x=x, y=y, z=z)
        mol.add_bond(0, idx)
    return mol


def chfclbr_2d(stereo: BondStereo = BondStereo.UP) -> StereoMolecule:
    """Flat bromochlorofluoromethane with the C-F bond drawn as ``stereo``.

    UP gives (R), DOWN gives (S), NONE leaves the configuration unknown.
    Atoms: 0 C, 1 F, 2 Cl, 3 Br. Bonds: 0 C-F, 1 C-Cl, 2 C-Br.
    """
    mol = StereoMolecule()
    mol.add_atom("C")
    mol.add_atom("F", x=0.0, y=1.0)
    mol.add_atom("Cl", x=-0.866, y=-0.5)
    mol.add_atom("Br", x=0.866, y=-0.5)
    mol.add_bond(0, 1, stereo=stereo)
    mol.add_bond(0, 2)
    mol.add_bond(0, 3)
    return mol


def butan2ol_3d(mirror: bool = False) -> StereoMolecule:
    """(R)-butan-2-ol, or (S) if mirrored.

    Atoms: 0 C1, 1 C2 (center), 2 C3, 3 C4, 4 O.
    """
    points = [
        TETRAHEDRON[0],
        (0.0, 0.0, 0.0),
        TETRAHEDRON[1],
        (2.0, 0.0, -2.0),
        TETRAHEDRON[2],
    ]
    mol = StereoMolecule()
    for symbol, pos in zip(("C", "C", "C", "C", "O"), points):
        x, y, z = _mirror_point(pos) if mirror else pos
        mol.add_atom(symbol, x=x, y=y, z=z)
    for a, b in ((0, 1), (1, 2), (2, 3), (1, 4)):
        mol.add_bond(a, b)
    return mol


def fluoropropane_3d() -> StereoMolecule:
    """2-Fluoropropane; the methyls 1 and 2 are enantiotopic."""
    mol = StereoMolecule()
    mol.add_atom("C")
    for symbol, (x, y, z) in zip(("C", "C", "F"), TETRAHEDRON):
        idx = mol.add_atom(symbol, x=x, y=y, z=z)
        mol.add_bond(0, idx)
    return mol


def methylbutanol_3d() -> StereoMolecule:
    """3-Methylbutan-2-ol; the methyls 4 and 5 are diastereotopic.

    Atoms: 0 C1, 1 C2 (center), 2 O, 3 C3, 4 and 5 methyls on C3.
    """
    points = [
        TETRAHEDRON[0],
        (0.0, 0.0, 0.0),
        TETRAHEDRON[1],
        TETRAHEDRON[2],
        (-2.0, 0.0, -2.0),
        (-2.0, 2.0, 0.0),
    ]
    mol = StereoMolecule()
    for symbol, (x, y, z) in zip(("C", "C", "O", "C", "C", "C"), points):
        mol.add_atom(symbol, x=x, y=y, z=z)
    for a, b in ((0, 1), (1, 2), (1, 3), (3, 4), (3, 5)):
        mol.add_bond(a, b)
    return mol


def dichlorobutane(parity2: AtomParity, parity3: AtomParity) -> StereoMolecule:
    """2,3-Dichlorobutane with explicit parities; equal parities make it meso.

    Atoms: 0 C1, 1 C2, 2 Cl, 3 C3, 4 Cl, 5 C4.
    """
    mol = StereoMolecule()
    for symbol in ("C", "C", "Cl", "C", "Cl", "C"):
        mol.add_atom(symbol)
    for a, b in ((0, 1), (1, 2), (1, 3), (3, 4), (3, 5)):
        mol.add_bond(a, b)
    mol.set_atom_parity(1, parity2)
    mol.set_atom_parity(3, parity3)
    return mol


def but2ene_2d(cis: bool = False) -> StereoMolecule:
    """Flat but-2-ene. Atoms: 0 C1, 1 C2, 2 C3, 3 C4. Bond 1 is the double bond."""
    mol = StereoMolecule()
    mol.add_atom("C", x=-1.5, y=0.8)
    mol.add_atom("C", x=-0.7, y=0.0)
    mol.add_atom("C", x=0.7, y=0.0)
    mol.add_atom("C", x=1.5, y=0.8 if cis else -0.8)
    mol.add_bond(0, 1)
    mol.add_bond(1, 2, order=BondOrder.DOUBLE)
    mol.add_bond(2, 3)
    return mol


def chain(*symbols: str) -> StereoMolecule:
    """Unbranched chain of single bonds without coordinates."""
    mol = StereoMolecule()
    for symbol in symbols:
        mol.add_atom(symbol)
    for i in range(1, len(symbols)):
        mol.add_bond(i - 1, i)
    return mol


def ring(size: int, symbol: str = "C") -> StereoMolecule:
    mol = StereoMolecule()
    for _ in range(size):
        mol.add_atom(symbol)
    for i in range(size):
        mol.add_bond(i, (i + 1) % size)
    return mol


def dimethylcyclohexane(parity1: AtomParity, parity4: AtomParity) -> StereoMolecule:
    """1,4-Dimethylcyclohexane with explicit parities.

    Atoms: 0-5 ring C1-C6, 6 methyl on C1, 7 methyl on C4.
    """
    mol = ring(6)
    mol.add_bond(0, mol.add_atom("C"))
    mol.add_bond(3, mol.add_atom("C"))
    mol.set_atom_parity(0, parity1)
    mol.set_atom_parity(3, parity4)
    return mol


def permuted(mol: StereoMolecule, order: list[int]) -> StereoMolecule:
    """Copy of ``mol`` whose atom i is ``mol.atoms[order[i]]``.

    Bonds keep their direction, so wedges still start at the same atom.
    Explicit parities are copied verbatim and only stay meaningful for
    molecules whose stereo comes from coordinates.
    """
    new_index = {old: new for new, old in enumerate(order)}
    result = StereoMolecule(name=mol.name, is_racemate=mol.is_racemate)
    for old in order:
        atom = mol.atoms[old]
        result.add_atom(
            atom.symbol,
            charge=atom.charge,
            explicit_hydrogens=atom.explicit_hydrogens,
            isotope=atom.isotope,
            x=atom.x,
            y=atom.y,
            z=atom.z,
            parity=atom.parity,
        )
    for old in order:
        atom = mol.atoms[old]
        if atom.esr_type != ESRType.ABS:
            result.set_atom_esr(new_index[old], atom.esr_type, atom.esr_group)
    for bond in reversed(mol.bonds):
        result.add_bond(
            new_index[bond.atom1_idx],
            new_index[bond.atom2_idx],
            order=bond.order,
            stereo=bond.stereo,
            parity=bond.parity,
        )
    return result


# =============================================================================
# RDKit conversion
# =============================================================================

_BOND_ORDERS = {
    Chem.BondType.SINGLE: BondOrder.SINGLE,
    Chem.BondType.DOUBLE: BondOrder.DOUBLE,
    Chem.BondType.TRIPLE: BondOrder.TRIPLE,
    Chem.BondType.AROMATIC: BondOrder.AROMATIC,
}

_BOND_DIRS = {
    Chem.BondDir.BEGINWEDGE: BondStereo.UP,
    Chem.BondDir.BEGINDASH: BondStereo.DOWN,
}


def from_rdkit(rd_mol: Chem.Mol) -> StereoMolecule:
    """Convert an RDKit molecule with one conformer.

    Hydrogen counts are left to the valence model; wedges start at the
    bond's begin atom as in RDKit.
    """
    conf = rd_mol.GetConformer()
    mol = StereoMolecule()
    for atom in rd_mol.GetAtoms():
        pos = conf.GetAtomPosition(atom.GetIdx())
        mol.add_atom(
            atom.GetSymbol(),
            charge=atom.GetFormalCharge(),
            x=pos.x,
            y=pos.y,
            z=pos.z,
        )
    for bond in rd_mol.GetBonds():
        mol.add_bond(
            bond.GetBeginAtomIdx(),
            bond.GetEndAtomIdx(),
            order=_BOND_ORDERS[bond.GetBondType()],
            stereo=_BOND_DIRS.get(bond.GetBondDir(), BondStereo.NONE),
        )
    return mol


def rdkit_2d(smiles: str) -> Chem.Mol:
    """RDKit molecule with 2-D coordinates and wedged stereo bonds."""
    rd_mol = Chem.MolFromSmiles(smiles)
    if rd_mol is None:
        raise ValueError(f"RDKit could not parse: {smiles}")
    rdDepictor.Compute2DCoords(rd_mol)
    Chem.WedgeMolBonds(rd_mol, rd_mol.GetConformer())
    return rd_mol


def rdkit_3d(smiles: str) -> Chem.Mol:
    """RDKit molecule with an embedded 3-D conformer and implicit hydrogens."""
    rd_mol = Chem.AddHs(Chem.MolFromSmiles(smiles))
    if AllChem.EmbedMolecule(rd_mol, randomSeed=42) != 0:
        raise ValueError(f"RDKit could not embed: {smiles}")
    return Chem.RemoveHs(rd_mol)


def rdkit_cip_labels(smiles: str) -> dict[int, str]:
    """RDKit CIP labels of defined stereocenters keyed by atom index."""
    rd_mol = Chem.MolFromSmiles(smiles)
    return dict(Chem.FindMolChiralCenters(rd_mol))


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def chiral_3d() -> StereoMolecule:
    return chfclbr_3d()


@pytest.fixture
def butanol() -> StereoMolecule:
    return butan2ol_3d()


@pytest.fixture
def ethanol() -> StereoMolecule:
    return chain("C", "C", "O")


@pytest.fixture
def chiral_smiles() -> list[str]:
    return list(CHIRAL_SMILES)
