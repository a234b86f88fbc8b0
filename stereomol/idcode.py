"""
Canonical identifier and coordinate encoding.

The identifier is a bit stream written in canonical atom order and encoded
as unpadded base64url. Layout::

    version(4) atoms(12) bonds(13)
    atomic number(7) per atom
    low(12) high(12) order(3) per bond, sorted by (low, high)
    then seven sections, each a count followed by (index, value) entries:
    charges, isotopes, explicit hydrogens, tetrahedral parities,
    double bond parities, ESR memberships, marks

The coordinate string is a 3-D flag byte followed by big-endian float32
x, y, z triples in the same canonical order.
"""

from __future__ import annotations

import base64
import binascii
import struct
from typing import TYPE_CHECKING, Collection, Final, Sequence

from stereomol.elements import MAX_ATOMIC_NUMBER, BondOrder, get_symbol
from stereomol.exceptions import CanonicalizeError, IdentifierDecodeError
from stereomol.types import AtomParity, BondParity, ESRType

if TYPE_CHECKING:
    from stereomol.stereomolecule import StereoMolecule
    from stereomol.types import Molecule


IDCODE_VERSION: Final[int] = 1

_VERSION_BITS: Final[int] = 4
_ATOM_BITS: Final[int] = 12
_BOND_BITS: Final[int] = 13
_ATOMIC_NUMBER_BITS: Final[int] = 7
_ORDER_BITS: Final[int] = 3
_CHARGE_BITS: Final[int] = 8
_CHARGE_OFFSET: Final[int] = 128
_ISOTOPE_BITS: Final[int] = 10
_HYDROGEN_BITS: Final[int] = 4
_PARITY_BITS: Final[int] = 3  # parity in the low two bits, pseudo flag above
_ESR_GROUP_BITS: Final[int] = 6
_ESR_BITS: Final[int] = 2 + _ESR_GROUP_BITS

_COORDINATE_FORMAT: Final[str] = ">fff"
_COORDINATE_SIZE: Final[int] = struct.calcsize(_COORDINATE_FORMAT)


class _BitWriter:
    """Accumulates fixed-width unsigned fields."""

    def __init__(self) -> None:
        self._value = 0
        self._length = 0

    def write(self, value: int, bits: int) -> None:
        if value < 0 or value >= 1 << bits:
            raise CanonicalizeError(f"Value {value} does not fit into {bits} bits of the identifier")
        self._value = (self._value << bits) | value
        self._length += bits

    def to_string(self) -> str:
        padding = -self._length % 8
        data = (self._value << padding).to_bytes((self._length + padding) // 8, "big")
        return _b64encode(data)


class _BitReader:
    """Reads fixed-width unsigned fields written by _BitWriter."""

    def __init__(self, identifier: str) -> None:
        data = _b64decode(identifier, identifier)
        self._identifier = identifier
        self._value = int.from_bytes(data, "big")
        self._length = len(data) * 8
        self._position = 0

    def read(self, bits: int) -> int:
        if self._position + bits > self._length:
            raise IdentifierDecodeError("Unexpected end of identifier", self._identifier, self._position)
        shift = self._length - self._position - bits
        self._position += bits
        return (self._value >> shift) & ((1 << bits) - 1)

    @property
    def position(self) -> int:
        return self._position

    def check_end(self) -> None:
        remaining = self._length - self._position
        if remaining >= 8 or self._value & ((1 << remaining) - 1):
            raise IdentifierDecodeError("Trailing data", self._identifier, self._position)


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(text: str, identifier: str) -> bytes:
    try:
        return base64.b64decode(text + "=" * (-len(text) % 4), altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise IdentifierDecodeError(f"Invalid base64url data ({e})", identifier) from e


def _write_section(writer: _BitWriter, entries: list[tuple[int, int]], index_bits: int, value_bits: int) -> None:
    writer.write(len(entries), index_bits)
    for index, value in sorted(entries):
        writer.write(index, index_bits)
        writer.write(value, value_bits)


def _read_section(
    reader: _BitReader,
    index_bits: int,
    value_bits: int,
    limit: int,
    identifier: str,
) -> list[tuple[int, int]]:
    entries = []
    for _ in range(reader.read(index_bits)):
        position = reader.position
        index = reader.read(index_bits)
        if index >= limit:
            raise IdentifierDecodeError(f"Index {index} out of range", identifier, position)
        entries.append((index, reader.read(value_bits)))
    return entries


def _canonical_order(ranks: Sequence[int]) -> list[int]:
    order = [0] * len(ranks)
    for atom_idx, rank in enumerate(ranks):
        order[rank] = atom_idx
    return order


def encode_identifier(
    mol: "Molecule",
    ranks: Sequence[int],
    atom_parities: Sequence[AtomParity],
    atom_pseudo: Collection[int],
    bond_parities: Sequence[BondParity],
    bond_pseudo: Collection[int],
    esr_members: Collection[int],
    marks: Collection[int] = (),
) -> str:
    """Serialize a molecule in canonical order.

    Args:
        mol: Molecule.
        ranks: Canonical rank per atom (a permutation).
        atom_parities: Parity per atom relative to canonical ranks, with ESR
            groups normalized.
        atom_pseudo: Atoms whose parity is pseudo.
        bond_parities: Parity per bond relative to canonical ranks.
        bond_pseudo: Bonds whose parity is pseudo.
        esr_members: Atoms whose ESR membership is valid.
        marks: Internally marked atoms.

    Returns:
        The identifier string.

    Raises:
        CanonicalizeError: If an attribute is out of the encodable range.
    """
    writer = _BitWriter()
    writer.write(IDCODE_VERSION, _VERSION_BITS)
    writer.write(mol.num_atoms, _ATOM_BITS)
    writer.write(mol.num_bonds, _BOND_BITS)

    order = _canonical_order(ranks)
    for atom_idx in order:
        writer.write(mol.atoms[atom_idx].atomic_number, _ATOMIC_NUMBER_BITS)

    bonds = sorted(
        (min(ranks[b.atom1_idx], ranks[b.atom2_idx]), max(ranks[b.atom1_idx], ranks[b.atom2_idx]), b.idx)
        for b in mol.bonds
    )
    bond_position = {}
    for position, (low, high, bond_idx) in enumerate(bonds):
        writer.write(low, _ATOM_BITS)
        writer.write(high, _ATOM_BITS)
        writer.write(int(mol.bonds[bond_idx].order), _ORDER_BITS)
        bond_position[bond_idx] = position

    atoms = mol.atoms
    _write_section(writer, [
        (ranks[a.idx], a.charge + _CHARGE_OFFSET) for a in atoms if a.charge
    ], _ATOM_BITS, _CHARGE_BITS)
    _write_section(writer, [
        (ranks[a.idx], a.isotope) for a in atoms if a.isotope
    ], _ATOM_BITS, _ISOTOPE_BITS)
    _write_section(writer, [
        (ranks[a.idx], a.explicit_hydrogens) for a in atoms if a.explicit_hydrogens
    ], _ATOM_BITS, _HYDROGEN_BITS)
    _write_section(writer, [
        (ranks[a.idx], int(atom_parities[a.idx]) | (4 if a.idx in atom_pseudo else 0))
        for a in atoms if atom_parities[a.idx] != AtomParity.NONE
    ], _ATOM_BITS, _PARITY_BITS)
    _write_section(writer, [
        (bond_position[b.idx], int(bond_parities[b.idx]) | (4 if b.idx in bond_pseudo else 0))
        for b in mol.bonds if bond_parities[b.idx] != BondParity.NONE
    ], _BOND_BITS, _PARITY_BITS)

    esr_entries = []
    for esr_type in (ESRType.AND, ESRType.OR):
        groups: dict[int, list[int]] = {}
        for atom_idx in esr_members:
            atom = atoms[atom_idx]
            if atom.esr_type == esr_type:
                groups.setdefault(atom.esr_group, []).append(ranks[atom_idx])
        for number, group in enumerate(sorted(groups.values(), key=min)):
            if number >= 1 << _ESR_GROUP_BITS:
                raise CanonicalizeError(
                    f"More than {1 << _ESR_GROUP_BITS} {esr_type.name} groups cannot be encoded"
                )
            for rank in group:
                esr_entries.append((rank, (int(esr_type) << _ESR_GROUP_BITS) | number))
    _write_section(writer, esr_entries, _ATOM_BITS, _ESR_BITS)

    _write_section(writer, [(ranks[a], 0) for a in marks], _ATOM_BITS, 0)

    return writer.to_string()


def decode_identifier(identifier: str, coordinates: str | None = None) -> "StereoMolecule":
    """Rebuild a molecule from its identifier.

    Atoms come out in canonical order with explicit relative parities, so
    canonicalizing the result reproduces the identifier. Marks are internal
    and not restored.

    Args:
        identifier: Identifier string.
        coordinates: Optional matching coordinate string.

    Returns:
        The decoded molecule.

    Raises:
        IdentifierDecodeError: If the identifier or coordinates are malformed.
    """
    from stereomol.stereomolecule import StereoMolecule

    reader = _BitReader(identifier)
    version = reader.read(_VERSION_BITS)
    if version != IDCODE_VERSION:
        raise IdentifierDecodeError(f"Unsupported identifier version {version}", identifier, 0)

    n_atoms = reader.read(_ATOM_BITS)
    n_bonds = reader.read(_BOND_BITS)

    mol = StereoMolecule()
    for _ in range(n_atoms):
        position = reader.position
        atomic_num = reader.read(_ATOMIC_NUMBER_BITS)
        if atomic_num > MAX_ATOMIC_NUMBER:
            raise IdentifierDecodeError(f"Invalid atomic number {atomic_num}", identifier, position)
        mol.add_atom(get_symbol(atomic_num))

    seen: set[tuple[int, int]] = set()
    for _ in range(n_bonds):
        position = reader.position
        low = reader.read(_ATOM_BITS)
        high = reader.read(_ATOM_BITS)
        order = reader.read(_ORDER_BITS)
        if not low < high < n_atoms or (low, high) in seen:
            raise IdentifierDecodeError(f"Invalid bond {low}-{high}", identifier, position)
        if not BondOrder.SINGLE <= order <= BondOrder.AROMATIC:
            raise IdentifierDecodeError(f"Invalid bond order {order}", identifier, position)
        seen.add((low, high))
        mol.add_bond(low, high, order=order)

    atoms = mol.atoms
    for idx, value in _read_section(reader, _ATOM_BITS, _CHARGE_BITS, n_atoms, identifier):
        atoms[idx].charge = value - _CHARGE_OFFSET
    for idx, value in _read_section(reader, _ATOM_BITS, _ISOTOPE_BITS, n_atoms, identifier):
        atoms[idx].isotope = value
    for idx, value in _read_section(reader, _ATOM_BITS, _HYDROGEN_BITS, n_atoms, identifier):
        atoms[idx].explicit_hydrogens = value
    for idx, value in _read_section(reader, _ATOM_BITS, _PARITY_BITS, n_atoms, identifier):
        atoms[idx].parity = AtomParity(value & 3)
    for idx, value in _read_section(reader, _BOND_BITS, _PARITY_BITS, n_bonds, identifier):
        mol.bonds[idx].parity = BondParity(value & 3)
    for idx, value in _read_section(reader, _ATOM_BITS, _ESR_BITS, n_atoms, identifier):
        esr_type = value >> _ESR_GROUP_BITS
        if esr_type not in (ESRType.AND, ESRType.OR):
            raise IdentifierDecodeError(f"Invalid ESR type {esr_type}", identifier, reader.position)
        atoms[idx].esr_type = ESRType(esr_type)
        atoms[idx].esr_group = value & ((1 << _ESR_GROUP_BITS) - 1)
    _read_section(reader, _ATOM_BITS, 0, n_atoms, identifier)
    reader.check_end()

    if coordinates is not None:
        decode_coordinates(coordinates, mol)

    mol.invalidate()
    return mol


def encode_coordinates(mol: "Molecule", ranks: Sequence[int]) -> str:
    """Encode atom coordinates in canonical order."""
    data = bytearray([1 if mol.is_3d else 0])
    for atom_idx in _canonical_order(ranks):
        atom = mol.atoms[atom_idx]
        data += struct.pack(_COORDINATE_FORMAT, atom.x, atom.y, atom.z)
    return _b64encode(bytes(data))


def decode_coordinates(coordinates: str, mol: "Molecule") -> None:
    """Apply encoded coordinates to a molecule whose atoms are in canonical order.

    Raises:
        IdentifierDecodeError: If the data doesn't match the atom count.
    """
    data = _b64decode(coordinates, coordinates)
    if len(data) != 1 + _COORDINATE_SIZE * mol.num_atoms or data[0] not in (0, 1):
        raise IdentifierDecodeError(
            f"Coordinates don't match a molecule with {mol.num_atoms} atoms", coordinates
        )
    is_3d = data[0] == 1
    for atom in mol.atoms:
        x, y, z = struct.unpack_from(_COORDINATE_FORMAT, data, 1 + _COORDINATE_SIZE * atom.idx)
        atom.x, atom.y, atom.z = x, y, z if is_3d else 0.0
    mol.invalidate()
