"""
Script utilities: tokenizing, pushed-data extraction and one-line disassembly.

The decoding rules follow the host node's script engine (bchd txscript),
so results line up with what ``decodescript`` and block explorers print.
"""

from typing import List, Optional, Tuple

OP_0 = 0x00
OP_DATA_20 = 0x14
OP_DATA_75 = 0x4B
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_1 = 0x51
OP_16 = 0x60
OP_RETURN = 0x6A
OP_EQUAL = 0x87
OP_HASH160 = 0xA9

P2SH_SCRIPT_SIZE = 23

_NAMED_OPCODES = {
    0x50: "OP_RESERVED",
    0x61: "OP_NOP",
    0x62: "OP_VER",
    0x63: "OP_IF",
    0x64: "OP_NOTIF",
    0x65: "OP_VERIF",
    0x66: "OP_VERNOTIF",
    0x67: "OP_ELSE",
    0x68: "OP_ENDIF",
    0x69: "OP_VERIFY",
    0x6A: "OP_RETURN",
    0x6B: "OP_TOALTSTACK",
    0x6C: "OP_FROMALTSTACK",
    0x6D: "OP_2DROP",
    0x6E: "OP_2DUP",
    0x6F: "OP_3DUP",
    0x70: "OP_2OVER",
    0x71: "OP_2ROT",
    0x72: "OP_2SWAP",
    0x73: "OP_IFDUP",
    0x74: "OP_DEPTH",
    0x75: "OP_DROP",
    0x76: "OP_DUP",
    0x77: "OP_NIP",
    0x78: "OP_OVER",
    0x79: "OP_PICK",
    0x7A: "OP_ROLL",
    0x7B: "OP_ROT",
    0x7C: "OP_SWAP",
    0x7D: "OP_TUCK",
    0x7E: "OP_CAT",
    0x7F: "OP_SPLIT",
    0x80: "OP_NUM2BIN",
    0x81: "OP_BIN2NUM",
    0x82: "OP_SIZE",
    0x83: "OP_INVERT",
    0x84: "OP_AND",
    0x85: "OP_OR",
    0x86: "OP_XOR",
    0x87: "OP_EQUAL",
    0x88: "OP_EQUALVERIFY",
    0x89: "OP_RESERVED1",
    0x8A: "OP_RESERVED2",
    0x8B: "OP_1ADD",
    0x8C: "OP_1SUB",
    0x8D: "OP_2MUL",
    0x8E: "OP_2DIV",
    0x8F: "OP_NEGATE",
    0x90: "OP_ABS",
    0x91: "OP_NOT",
    0x92: "OP_0NOTEQUAL",
    0x93: "OP_ADD",
    0x94: "OP_SUB",
    0x95: "OP_MUL",
    0x96: "OP_DIV",
    0x97: "OP_MOD",
    0x98: "OP_LSHIFT",
    0x99: "OP_RSHIFT",
    0x9A: "OP_BOOLAND",
    0x9B: "OP_BOOLOR",
    0x9C: "OP_NUMEQUAL",
    0x9D: "OP_NUMEQUALVERIFY",
    0x9E: "OP_NUMNOTEQUAL",
    0x9F: "OP_LESSTHAN",
    0xA0: "OP_GREATERTHAN",
    0xA1: "OP_LESSTHANOREQUAL",
    0xA2: "OP_GREATERTHANOREQUAL",
    0xA3: "OP_MIN",
    0xA4: "OP_MAX",
    0xA5: "OP_WITHIN",
    0xA6: "OP_RIPEMD160",
    0xA7: "OP_SHA1",
    0xA8: "OP_SHA256",
    0xA9: "OP_HASH160",
    0xAA: "OP_HASH256",
    0xAB: "OP_CODESEPARATOR",
    0xAC: "OP_CHECKSIG",
    0xAD: "OP_CHECKSIGVERIFY",
    0xAE: "OP_CHECKMULTISIG",
    0xAF: "OP_CHECKMULTISIGVERIFY",
    0xB0: "OP_NOP1",
    0xB1: "OP_CHECKLOCKTIMEVERIFY",
    0xB2: "OP_CHECKSEQUENCEVERIFY",
    0xB3: "OP_NOP4",
    0xB4: "OP_NOP5",
    0xB5: "OP_NOP6",
    0xB6: "OP_NOP7",
    0xB7: "OP_NOP8",
    0xB8: "OP_NOP9",
    0xB9: "OP_NOP10",
    0xBA: "OP_CHECKDATASIG",
    0xBB: "OP_CHECKDATASIGVERIFY",
    0xBC: "OP_REVERSEBYTES",
    # Native introspection (May 2022 upgrade)
    0xC0: "OP_INPUTINDEX",
    0xC1: "OP_ACTIVEBYTECODE",
    0xC2: "OP_TXVERSION",
    0xC3: "OP_TXINPUTCOUNT",
    0xC4: "OP_TXOUTPUTCOUNT",
    0xC5: "OP_TXLOCKTIME",
    0xC6: "OP_UTXOVALUE",
    0xC7: "OP_UTXOBYTECODE",
    0xC8: "OP_OUTPOINTTXHASH",
    0xC9: "OP_OUTPOINTINDEX",
    0xCA: "OP_INPUTBYTECODE",
    0xCB: "OP_INPUTSEQUENCENUMBER",
    0xCC: "OP_OUTPUTVALUE",
    0xCD: "OP_OUTPUTBYTECODE",
}


class ScriptError(ValueError):
    """Raised when a script cannot be tokenized."""


def opcode_name(opcode: int) -> str:
    """Full opcode name, e.g. ``OP_HASH160`` or ``OP_DATA_20``."""
    if opcode == OP_0:
        return "OP_0"
    if opcode <= OP_DATA_75:
        return f"OP_DATA_{opcode}"
    if opcode == OP_PUSHDATA1:
        return "OP_PUSHDATA1"
    if opcode == OP_PUSHDATA2:
        return "OP_PUSHDATA2"
    if opcode == OP_PUSHDATA4:
        return "OP_PUSHDATA4"
    if opcode == OP_1NEGATE:
        return "OP_1NEGATE"
    if OP_1 <= opcode <= OP_16:
        return f"OP_{opcode - OP_1 + 1}"
    return _NAMED_OPCODES.get(opcode, f"OP_UNKNOWN{opcode}")


def parse_script(script: bytes) -> List[Tuple[int, Optional[bytes]]]:
    """
    Split a script into (opcode, data) pairs.

    ``data`` is the pushed payload for push opcodes (``b""`` for OP_0) and
    None for every other opcode.
    """
    ops: List[Tuple[int, Optional[bytes]]] = []
    offset = 0
    while offset < len(script):
        opcode = script[offset]
        offset += 1

        if opcode == OP_0:
            ops.append((opcode, b""))
            continue

        if opcode <= OP_DATA_75:
            size = opcode
        elif opcode in (OP_PUSHDATA1, OP_PUSHDATA2, OP_PUSHDATA4):
            width = {OP_PUSHDATA1: 1, OP_PUSHDATA2: 2, OP_PUSHDATA4: 4}[opcode]
            if offset + width > len(script):
                raise ScriptError(
                    f"{opcode_name(opcode)} at offset {offset - 1} is missing its length"
                )
            size = int.from_bytes(script[offset : offset + width], "little")
            offset += width
        else:
            ops.append((opcode, None))
            continue

        if offset + size > len(script):
            raise ScriptError(
                f"{opcode_name(opcode)} pushes {size} bytes but only "
                f"{len(script) - offset} remain"
            )
        ops.append((opcode, script[offset : offset + size]))
        offset += size

    return ops


def pushed_data(script: bytes) -> List[bytes]:
    """
    Return the data pushed by a script, in order.

    OP_0 counts as an empty push; small-integer opcodes (OP_1..OP_16,
    OP_1NEGATE) and all other opcodes are skipped.
    """
    return [data for _, data in parse_script(script) if data is not None]


def disasm_string(script: bytes) -> str:
    """
    One-line disassembly.

    Small integers print as numbers (``0``, ``-1``, ``1``..``16``), data pushes
    as lowercase hex and every other opcode by name.
    """
    tokens = []
    for opcode, data in parse_script(script):
        if opcode == OP_0:
            tokens.append("0")
        elif opcode == OP_1NEGATE:
            tokens.append("-1")
        elif OP_1 <= opcode <= OP_16:
            tokens.append(str(opcode - OP_1 + 1))
        elif data is not None:
            tokens.append(data.hex())
        else:
            tokens.append(opcode_name(opcode))
    return " ".join(tokens)


def get_p2sh_hash(pk_script: bytes) -> Optional[bytes]:
    """
    Extract the script hash from a P2SH locking script.

    OP_HASH160 <20 bytes script hash> OP_EQUAL
    """
    if (
        len(pk_script) != P2SH_SCRIPT_SIZE
        or pk_script[0] != OP_HASH160
        or pk_script[1] != OP_DATA_20
        or pk_script[22] != OP_EQUAL
    ):
        return None
    return pk_script[2:22]


def get_op_return_pushes(pk_script: bytes) -> Optional[List[bytes]]:
    """Data pushed by a NULL DATA output, or None if it is not one or is malformed."""
    if not pk_script or pk_script[0] != OP_RETURN:
        return None
    try:
        return pushed_data(pk_script)
    except ScriptError:
        return None


def has_redeem_script_suffix(sig_script: bytes, suffix: bytes) -> bool:
    """True if ``sig_script`` ends with the covenant bytecode ``suffix``."""
    return bool(suffix) and sig_script.endswith(suffix)


def script_number(value: int) -> bytes:
    """Minimal little-endian sign-magnitude encoding used for script integers."""
    if value == 0:
        return b""

    negative = value < 0
    magnitude = abs(value)
    result = bytearray()
    while magnitude:
        result.append(magnitude & 0xFF)
        magnitude >>= 8

    if result[-1] & 0x80:
        result.append(0x80 if negative else 0x00)
    elif negative:
        result[-1] |= 0x80
    return bytes(result)


def push_data(data: bytes) -> bytes:
    """Minimal push of ``data``."""
    size = len(data)
    if size == 0:
        return bytes([OP_0])
    if size == 1 and 1 <= data[0] <= 16:
        return bytes([OP_1 + data[0] - 1])
    if size == 1 and data[0] == 0x81:
        return bytes([OP_1NEGATE])
    if size <= OP_DATA_75:
        return bytes([size]) + data
    if size <= 0xFF:
        return bytes([OP_PUSHDATA1, size]) + data
    if size <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + size.to_bytes(2, "little") + data
    return bytes([OP_PUSHDATA4]) + size.to_bytes(4, "little") + data


def push_int(value: int) -> bytes:
    """Minimal push of a script integer."""
    return push_data(script_number(value))
