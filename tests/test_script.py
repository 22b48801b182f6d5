"""
Tests for script utilities.
"""

import pytest

from htlc_watcher.script import (
    ScriptError,
    disasm_string,
    get_op_return_pushes,
    get_p2sh_hash,
    has_redeem_script_suffix,
    opcode_name,
    parse_script,
    push_data,
    push_int,
    pushed_data,
    script_number,
)

SCRIPT_HASH = bytes.fromhex("1234567890abcdef1234567890abcdef12345678")


class TestPushedData:
    """Tests for pushed_data."""

    def test_direct_pushes(self) -> None:
        script = b"\x02\xab\xcd\x01\xff"
        assert pushed_data(script) == [b"\xab\xcd", b"\xff"]

    def test_op_0_is_empty_push(self) -> None:
        assert pushed_data(b"\x00") == [b""]

    def test_small_integers_are_skipped(self) -> None:
        """OP_1..OP_16 and OP_1NEGATE are not data pushes."""
        script = b"\x51\x60\x4f\x01\xaa"
        assert pushed_data(script) == [b"\xaa"]

    def test_non_push_opcodes_are_skipped(self) -> None:
        script = b"\x6a\x04SBAS\x87"
        assert pushed_data(script) == [b"SBAS"]

    def test_pushdata1(self) -> None:
        data = b"\x42" * 80
        assert pushed_data(b"\x4c\x50" + data) == [data]

    def test_pushdata2(self) -> None:
        data = b"\x42" * 300
        assert pushed_data(b"\x4d" + (300).to_bytes(2, "little") + data) == [data]

    def test_pushdata4(self) -> None:
        data = b"\x42" * 5
        assert pushed_data(b"\x4e" + (5).to_bytes(4, "little") + data) == [data]

    def test_empty_script(self) -> None:
        assert pushed_data(b"") == []

    def test_truncated_direct_push(self) -> None:
        with pytest.raises(ScriptError):
            pushed_data(b"\x14" + b"\x00" * 19)

    def test_truncated_pushdata_length(self) -> None:
        with pytest.raises(ScriptError):
            pushed_data(b"\x4d\x01")

    def test_truncated_pushdata_payload(self) -> None:
        with pytest.raises(ScriptError):
            pushed_data(b"\x4c\x10" + b"\x00" * 4)


class TestDisasm:
    """Tests for one-line disassembly."""

    def test_small_integers(self) -> None:
        assert disasm_string(b"\x00\x4f\x51\x60") == "0 -1 1 16"

    def test_data_push_is_hex(self) -> None:
        assert disasm_string(b"\x02\xab\xcd") == "abcd"

    def test_named_opcodes(self) -> None:
        script = b"\xa9\x14" + SCRIPT_HASH + b"\x87"
        assert disasm_string(script) == f"OP_HASH160 {SCRIPT_HASH.hex()} OP_EQUAL"

    def test_refund_shape(self) -> None:
        redeem_script = b"\x76" * 100
        assert disasm_string(b"\x51" + push_data(redeem_script)) == "1 " + redeem_script.hex()

    def test_unknown_opcode(self) -> None:
        assert disasm_string(b"\xff") == "OP_UNKNOWN255"

    def test_bch_opcodes(self) -> None:
        assert disasm_string(b"\x7e\x7f\xba\xc0") == "OP_CAT OP_SPLIT OP_CHECKDATASIG OP_INPUTINDEX"

    def test_empty(self) -> None:
        assert disasm_string(b"") == ""

    def test_truncated_raises(self) -> None:
        with pytest.raises(ScriptError):
            disasm_string(b"\x51\x4c")


class TestOpcodeNames:
    def test_push_names(self) -> None:
        assert opcode_name(0x00) == "OP_0"
        assert opcode_name(0x14) == "OP_DATA_20"
        assert opcode_name(0x4C) == "OP_PUSHDATA1"
        assert opcode_name(0x55) == "OP_5"

    def test_parse_script_marks_non_push(self) -> None:
        assert parse_script(b"\x76\x01\x07") == [(0x76, None), (0x01, b"\x07")]


class TestP2SH:
    """Tests for the P2SH matcher."""

    def test_canonical(self) -> None:
        script = b"\xa9\x14" + SCRIPT_HASH + b"\x87"
        assert get_p2sh_hash(script) == SCRIPT_HASH

    def test_wrong_length(self) -> None:
        assert get_p2sh_hash(b"\xa9\x14" + SCRIPT_HASH + b"\x87\x00") is None
        assert get_p2sh_hash(b"\xa9\x13" + SCRIPT_HASH[:19] + b"\x87") is None

    def test_wrong_opcodes(self) -> None:
        assert get_p2sh_hash(b"\xaa\x14" + SCRIPT_HASH + b"\x87") is None
        assert get_p2sh_hash(b"\xa9\x14" + SCRIPT_HASH + b"\x88") is None
        assert get_p2sh_hash(b"\xa9\x4c" + SCRIPT_HASH + b"\x87") is None

    def test_p2pkh_is_not_p2sh(self) -> None:
        script = b"\x76\xa9\x14" + SCRIPT_HASH + b"\x88\xac"
        assert get_p2sh_hash(script) is None


class TestOpReturn:
    """Tests for the OP_RETURN payload decoder."""

    def test_decodes_pushes(self) -> None:
        assert get_op_return_pushes(b"\x6a\x04SBAS\x02\x00\x64") == [b"SBAS", b"\x00\x64"]

    def test_bare_op_return(self) -> None:
        assert get_op_return_pushes(b"\x6a") == []

    def test_requires_op_return(self) -> None:
        assert get_op_return_pushes(b"\x04SBAS") is None
        assert get_op_return_pushes(b"") is None

    def test_malformed(self) -> None:
        assert get_op_return_pushes(b"\x6a\x05SBAS") is None


class TestSuffix:
    def test_match(self) -> None:
        assert has_redeem_script_suffix(b"\x01\x02\x03\x04", b"\x03\x04")

    def test_mismatch(self) -> None:
        assert not has_redeem_script_suffix(b"\x01\x02\x03\x04", b"\x02\x03")

    def test_empty_suffix_never_matches(self) -> None:
        assert not has_redeem_script_suffix(b"\x01\x02", b"")

    def test_suffix_longer_than_script(self) -> None:
        assert not has_redeem_script_suffix(b"\x04", b"\x03\x04")


class TestEncoders:
    """Tests for push and script number encoding."""

    def test_script_number(self) -> None:
        assert script_number(0) == b""
        assert script_number(1) == b"\x01"
        assert script_number(127) == b"\x7f"
        assert script_number(128) == b"\x80\x00"
        assert script_number(255) == b"\xff\x00"
        assert script_number(256) == b"\x00\x01"
        assert script_number(-1) == b"\x81"
        assert script_number(-128) == b"\x80\x80"
        assert script_number(65535) == b"\xff\xff\x00"

    def test_push_data_minimal(self) -> None:
        assert push_data(b"") == b"\x00"
        assert push_data(b"\x05") == b"\x55"
        assert push_data(b"\x10") == b"\x60"
        assert push_data(b"\x81") == b"\x4f"
        assert push_data(b"\x11") == b"\x01\x11"
        assert push_data(b"\x00") == b"\x01\x00"

    def test_push_data_sizes(self) -> None:
        assert push_data(b"\xaa" * 75)[:1] == b"\x4b"
        assert push_data(b"\xaa" * 76)[:2] == b"\x4c\x4c"
        assert push_data(b"\xaa" * 256)[:3] == b"\x4d\x00\x01"

    def test_push_int(self) -> None:
        assert push_int(0) == b"\x00"
        assert push_int(16) == b"\x60"
        assert push_int(50) == b"\x01\x32"
        assert push_int(100) == b"\x01\x64"
        assert push_int(1000) == b"\x02\xe8\x03"

    def test_pushes_decode(self) -> None:
        data = [b"", b"\x11" * 20, b"\x22" * 80, b"\x33" * 300]
        script = b"".join(push_data(d) for d in data)
        assert pushed_data(script) == data
