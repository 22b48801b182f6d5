"""
Bitcoin Cash data structures and utilities for HTLC scanning.

Transactions and blocks are parsed from the raw serialized bytes a node
returns for ``getblock <hash> 0``. Bitcoin Cash has no segwit, so the raw
format is always the legacy one.
"""

import hashlib
from dataclasses import dataclass, field
from typing import List, Tuple

HEADER_SIZE = 80


class TxParseError(ValueError):
    """Raised when a raw transaction or block cannot be decoded."""


def sha256d(data: bytes) -> bytes:
    """Double SHA256 hash (Bitcoin standard)."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data)), the hash committed to by P2SH outputs."""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def reverse_bytes(data: bytes) -> bytes:
    """Reverse byte order (for Bitcoin little-endian display)."""
    return data[::-1]


def txid_internal_to_display(txid: bytes) -> str:
    """Convert an internal-order txid to the display hex shown by nodes and explorers."""
    return reverse_bytes(txid).hex()


def txid_display_to_internal(txid_hex: str) -> bytes:
    """Convert a display hex txid to internal byte order."""
    internal = reverse_bytes(bytes.fromhex(txid_hex))
    if len(internal) != 32:
        raise ValueError(f"txid must be 32 bytes, got {len(internal)}")
    return internal


def _take(data: bytes, offset: int, size: int) -> Tuple[bytes, int]:
    end = offset + size
    if size < 0 or end > len(data):
        raise TxParseError(
            f"Need {size} bytes at offset {offset}, only {len(data) - offset} left"
        )
    return data[offset:end], end


def parse_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """
    Parse Bitcoin VarInt.
    Returns (value, new_offset).
    """
    prefix, offset = _take(data, offset, 1)
    first = prefix[0]
    if first < 0xFD:
        return first, offset
    size = {0xFD: 2, 0xFE: 4, 0xFF: 8}[first]
    raw, offset = _take(data, offset, size)
    return int.from_bytes(raw, "little"), offset


def encode_varint(value: int) -> bytes:
    """Serialize an integer as a Bitcoin VarInt."""
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


@dataclass(frozen=True)
class OutPoint:
    """Reference to a previous transaction output."""

    hash: bytes  # 32 bytes, internal byte order
    index: int

    @property
    def txid(self) -> str:
        """Previous txid in display format."""
        return txid_internal_to_display(self.hash)


@dataclass(frozen=True)
class TxInput:
    """Transaction input."""

    previous_outpoint: OutPoint
    signature_script: bytes
    sequence: int = 0xFFFFFFFF


@dataclass(frozen=True)
class TxOutput:
    """Transaction output."""

    value: int  # satoshis
    pk_script: bytes


@dataclass(frozen=True)
class Transaction:
    """A transaction together with its display-format hash."""

    txid: str
    version: int
    inputs: Tuple[TxInput, ...]
    outputs: Tuple[TxOutput, ...]
    lock_time: int = 0

    @classmethod
    def from_bytes(cls, raw_tx: bytes) -> "Transaction":
        """Parse a complete serialized transaction."""
        tx, offset = parse_transaction(raw_tx, 0)
        if offset != len(raw_tx):
            raise TxParseError(f"{len(raw_tx) - offset} trailing bytes after transaction")
        return tx

    @classmethod
    def from_hex(cls, raw_hex: str) -> "Transaction":
        try:
            raw = bytes.fromhex(raw_hex.strip())
        except ValueError as e:
            raise TxParseError(f"Invalid transaction hex: {e}") from e
        return cls.from_bytes(raw)


def serialize_transaction(
    version: int,
    inputs: List[TxInput],
    outputs: List[TxOutput],
    lock_time: int = 0,
) -> bytes:
    """Serialize transaction fields into the legacy wire format."""
    raw = version.to_bytes(4, "little", signed=True)
    raw += encode_varint(len(inputs))
    for txin in inputs:
        raw += txin.previous_outpoint.hash
        raw += txin.previous_outpoint.index.to_bytes(4, "little")
        raw += encode_varint(len(txin.signature_script)) + txin.signature_script
        raw += txin.sequence.to_bytes(4, "little")
    raw += encode_varint(len(outputs))
    for txout in outputs:
        raw += txout.value.to_bytes(8, "little")
        raw += encode_varint(len(txout.pk_script)) + txout.pk_script
    raw += lock_time.to_bytes(4, "little")
    return raw


def parse_transaction(data: bytes, offset: int = 0) -> Tuple[Transaction, int]:
    """
    Parse one transaction starting at ``offset``.
    Returns (transaction, new_offset).
    """
    start = offset
    raw, offset = _take(data, offset, 4)
    version = int.from_bytes(raw, "little", signed=True)

    input_count, offset = parse_varint(data, offset)
    inputs = []
    for _ in range(input_count):
        prev_hash, offset = _take(data, offset, 32)
        raw, offset = _take(data, offset, 4)
        prev_index = int.from_bytes(raw, "little")
        script_len, offset = parse_varint(data, offset)
        script, offset = _take(data, offset, script_len)
        raw, offset = _take(data, offset, 4)
        inputs.append(
            TxInput(
                previous_outpoint=OutPoint(hash=prev_hash, index=prev_index),
                signature_script=script,
                sequence=int.from_bytes(raw, "little"),
            )
        )

    output_count, offset = parse_varint(data, offset)
    outputs = []
    for _ in range(output_count):
        raw, offset = _take(data, offset, 8)
        value = int.from_bytes(raw, "little")
        script_len, offset = parse_varint(data, offset)
        script, offset = _take(data, offset, script_len)
        outputs.append(TxOutput(value=value, pk_script=script))

    raw, offset = _take(data, offset, 4)
    lock_time = int.from_bytes(raw, "little")

    tx = Transaction(
        txid=txid_internal_to_display(sha256d(data[start:offset])),
        version=version,
        inputs=tuple(inputs),
        outputs=tuple(outputs),
        lock_time=lock_time,
    )
    return tx, offset


@dataclass
class BlockHeader:
    """Block header (80 bytes)."""

    version: int
    prev_block_hash: bytes  # 32 bytes, internal byte order
    merkle_root: bytes  # 32 bytes, internal byte order
    timestamp: int
    bits: int
    nonce: int

    @classmethod
    def from_bytes(cls, data: bytes) -> "BlockHeader":
        """Parse 80-byte header."""
        if len(data) != HEADER_SIZE:
            raise TxParseError(f"Header must be 80 bytes, got {len(data)}")

        return cls(
            version=int.from_bytes(data[0:4], "little"),
            prev_block_hash=data[4:36],
            merkle_root=data[36:68],
            timestamp=int.from_bytes(data[68:72], "little"),
            bits=int.from_bytes(data[72:76], "little"),
            nonce=int.from_bytes(data[76:80], "little"),
        )

    def to_bytes(self) -> bytes:
        """Serialize to 80 bytes."""
        return (
            self.version.to_bytes(4, "little")
            + self.prev_block_hash
            + self.merkle_root
            + self.timestamp.to_bytes(4, "little")
            + self.bits.to_bytes(4, "little")
            + self.nonce.to_bytes(4, "little")
        )

    def block_hash_hex(self) -> str:
        """Block hash in display format (reversed, hex)."""
        return txid_internal_to_display(sha256d(self.to_bytes()))


@dataclass
class Block:
    """A block: its hash and its transactions in block order."""

    hash: str
    transactions: List[Transaction] = field(default_factory=list)
    height: int | None = None

    @classmethod
    def from_bytes(cls, raw_block: bytes, height: int | None = None) -> "Block":
        header_bytes, offset = _take(raw_block, 0, HEADER_SIZE)
        header = BlockHeader.from_bytes(header_bytes)

        tx_count, offset = parse_varint(raw_block, offset)
        transactions = []
        for _ in range(tx_count):
            tx, offset = parse_transaction(raw_block, offset)
            transactions.append(tx)
        if offset != len(raw_block):
            raise TxParseError(f"{len(raw_block) - offset} trailing bytes after block")

        return cls(hash=header.block_hash_hex(), transactions=transactions, height=height)

    @classmethod
    def from_hex(cls, raw_hex: str, height: int | None = None) -> "Block":
        try:
            raw = bytes.fromhex(raw_hex.strip())
        except ValueError as e:
            raise TxParseError(f"Invalid block hex: {e}") from e
        return cls.from_bytes(raw, height=height)
