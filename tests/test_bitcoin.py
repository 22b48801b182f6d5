"""
Tests for Bitcoin Cash utilities.
"""

import pytest

from htlc_watcher.bitcoin import (
    Block,
    BlockHeader,
    OutPoint,
    Transaction,
    TxInput,
    TxOutput,
    TxParseError,
    encode_varint,
    hash160,
    parse_varint,
    serialize_transaction,
    sha256d,
    txid_display_to_internal,
    txid_internal_to_display,
)
from tests.factories import build_raw_block, coinbase_tx, make_tx, p2pkh_script, tx_to_bytes


class TestHashes:
    def test_sha256d_empty(self) -> None:
        expected = bytes.fromhex(
            "5df6e0e2761359d30a8275058e299fcc0381534545f55cf43e41983f5d4c9456"
        )
        assert sha256d(b"") == expected

    def test_hash160_empty(self) -> None:
        assert hash160(b"") == bytes.fromhex("b472a266d0bd89c13706a4132ccfb16f7c3b9fcb")


class TestTxidConversion:
    """Tests for txid format conversion."""

    def test_internal_to_display(self) -> None:
        internal = bytes.fromhex("0102030405060708091011121314151617181920212223242526272829303132")
        display = txid_internal_to_display(internal)
        assert display == "3231302928272625242322212019181716151413121110090807060504030201"

    def test_round_trip(self) -> None:
        original_display = "deadbeef" * 8
        assert txid_internal_to_display(txid_display_to_internal(original_display)) == original_display

    def test_wrong_size(self) -> None:
        with pytest.raises(ValueError):
            txid_display_to_internal("abcd")


class TestVarInt:
    """Tests for VarInt parsing."""

    def test_single_byte(self) -> None:
        assert parse_varint(b"\x42", 0) == (0x42, 1)

    def test_two_bytes(self) -> None:
        assert parse_varint(b"\xfd\x03\x02", 0) == (515, 3)

    def test_four_bytes(self) -> None:
        assert parse_varint(b"\xfe\x01\x02\x03\x04", 0) == (0x04030201, 5)

    def test_truncated(self) -> None:
        with pytest.raises(TxParseError):
            parse_varint(b"\xfd\x03", 0)
        with pytest.raises(TxParseError):
            parse_varint(b"", 0)

    def test_encode(self) -> None:
        for value in (0, 0xFC, 0xFD, 0xFFFF, 0x10000, 0x100000000):
            assert parse_varint(encode_varint(value)) == (value, len(encode_varint(value)))


class TestTransaction:
    """Tests for transaction parsing."""

    def test_parse_fields(self) -> None:
        prev_hash = sha256d(b"funding")
        inputs = [
            TxInput(OutPoint(prev_hash, 1), b"\x51", sequence=0xFFFFFFFE),
        ]
        outputs = [
            TxOutput(value=12345, pk_script=p2pkh_script(b"\x11" * 20)),
            TxOutput(value=0, pk_script=b"\x6a"),
        ]
        raw = serialize_transaction(2, inputs, outputs, lock_time=800000)

        tx = Transaction.from_bytes(raw)

        assert tx.version == 2
        assert tx.lock_time == 800000
        assert tx.inputs[0].previous_outpoint.hash == prev_hash
        assert tx.inputs[0].previous_outpoint.index == 1
        assert tx.inputs[0].previous_outpoint.txid == prev_hash[::-1].hex()
        assert tx.inputs[0].signature_script == b"\x51"
        assert tx.inputs[0].sequence == 0xFFFFFFFE
        assert [o.value for o in tx.outputs] == [12345, 0]
        assert tx.txid == sha256d(raw)[::-1].hex()

    def test_serialize_round_trip(self) -> None:
        tx = make_tx()
        assert Transaction.from_bytes(tx_to_bytes(tx)) == tx

    def test_from_hex(self) -> None:
        tx = make_tx()
        assert Transaction.from_hex(tx_to_bytes(tx).hex()) == tx

    def test_invalid_hex(self) -> None:
        with pytest.raises(TxParseError):
            Transaction.from_hex("zz")

    def test_truncated(self) -> None:
        raw = tx_to_bytes(make_tx())
        with pytest.raises(TxParseError):
            Transaction.from_bytes(raw[:-1])

    def test_trailing_bytes(self) -> None:
        raw = tx_to_bytes(make_tx())
        with pytest.raises(TxParseError):
            Transaction.from_bytes(raw + b"\x00")


class TestBlock:
    """Tests for block parsing."""

    def test_header_round_trip(self) -> None:
        original = b"\x01\x00\x00\x00" + b"\xaa" * 32 + b"\xbb" * 32 + b"\x00" * 12
        header = BlockHeader.from_bytes(original)
        assert header.to_bytes() == original

    def test_header_invalid_size(self) -> None:
        with pytest.raises(TxParseError):
            BlockHeader.from_bytes(b"\x00" * 79)

    def test_parse_block(self) -> None:
        txs = [coinbase_tx(100), make_tx()]
        raw = build_raw_block(txs)

        block = Block.from_bytes(raw, height=100)

        assert block.height == 100
        assert block.hash == sha256d(raw[:80])[::-1].hex()
        assert [tx.txid for tx in block.transactions] == [tx.txid for tx in txs]

    def test_truncated_block(self) -> None:
        raw = build_raw_block([coinbase_tx(1)])
        with pytest.raises(TxParseError):
            Block.from_bytes(raw[:-3])
