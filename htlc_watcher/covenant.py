"""
HTLC covenant: versioned bytecode and redeem script hash derivation.

The detectors only need one thing from the covenant: given the swap
parameters declared in a deposit's OP_RETURN, which P2SH hash should the
locked output commit to. That capability is the ``CovenantOracle``
protocol; ``CashScriptCovenant`` is the default implementation.
"""

from dataclasses import dataclass
from typing import Protocol

from .bitcoin import hash160
from .script import push_data, push_int

PKH_SIZE = 20
HASH_LOCK_SIZE = 32
MAX_UINT16 = 0xFFFF
MAX_PENALTY_BPS = 10000


class CovenantError(ValueError):
    """Raised when swap parameters cannot instantiate the covenant."""


@dataclass(frozen=True)
class CovenantParams:
    """Constructor arguments of one covenant instance."""

    sender_pkh: bytes  # 20 bytes
    recipient_pkh: bytes  # 20 bytes
    hash_lock: bytes  # 32 bytes, sha256 of the secret
    expiration: int  # uint16
    penalty_bps: int  # uint16


@dataclass(frozen=True)
class CovenantVersion:
    """
    A deployed covenant version.

    ``redeem_script_without_args`` is the compiled contract bytecode, i.e. the
    redeem script with its constructor argument pushes stripped. Every
    spending signature script of this version ends with it.
    """

    name: str
    redeem_script_without_args: bytes

    @classmethod
    def from_hex(cls, name: str, bytecode_hex: str) -> "CovenantVersion":
        bytecode_hex = bytecode_hex.strip()
        if bytecode_hex.startswith(("0x", "0X")):
            bytecode_hex = bytecode_hex[2:]
        return cls(name=name, redeem_script_without_args=bytes.fromhex(bytecode_hex))


class CovenantOracle(Protocol):
    """Derives the expected redeem script hash for a set of swap parameters."""

    def get_redeem_script_hash(self, params: CovenantParams) -> bytes: ...


def validate_params(params: CovenantParams) -> None:
    """Raise CovenantError unless the parameters can instantiate a covenant."""
    if len(params.sender_pkh) != PKH_SIZE:
        raise CovenantError(f"sender_pkh must be {PKH_SIZE} bytes, got {len(params.sender_pkh)}")
    if len(params.recipient_pkh) != PKH_SIZE:
        raise CovenantError(
            f"recipient_pkh must be {PKH_SIZE} bytes, got {len(params.recipient_pkh)}"
        )
    if len(params.hash_lock) != HASH_LOCK_SIZE:
        raise CovenantError(
            f"hash_lock must be {HASH_LOCK_SIZE} bytes, got {len(params.hash_lock)}"
        )
    if not 0 < params.expiration <= MAX_UINT16:
        raise CovenantError(f"expiration out of range: {params.expiration}")
    if not 0 <= params.penalty_bps <= MAX_PENALTY_BPS:
        raise CovenantError(f"penalty_bps out of range: {params.penalty_bps}")


class CashScriptCovenant:
    """
    Covenant oracle for a CashScript-compiled HTLC.

    CashScript instantiates a contract by pushing the constructor arguments
    in reverse declaration order in front of the compiled bytecode. The
    contract is declared as::

        contract HTLC(bytes20 senderPkh, bytes20 recipientPkh,
                      bytes32 hashLock, int expiration, int penaltyBPS)
    """

    def __init__(self, version: CovenantVersion):
        if not version.redeem_script_without_args:
            raise CovenantError(f"Covenant version {version.name!r} has empty bytecode")
        self.version = version

    def build_redeem_script(self, params: CovenantParams) -> bytes:
        """Full redeem script for ``params``."""
        validate_params(params)
        return (
            push_int(params.penalty_bps)
            + push_int(params.expiration)
            + push_data(params.hash_lock)
            + push_data(params.recipient_pkh)
            + push_data(params.sender_pkh)
            + self.version.redeem_script_without_args
        )

    def get_redeem_script_hash(self, params: CovenantParams) -> bytes:
        """HASH160 of the redeem script, as committed to by the P2SH output."""
        return hash160(self.build_redeem_script(params))

    def build_p2sh_script(self, params: CovenantParams) -> bytes:
        """Locking script that funds this covenant instance."""
        return b"\xa9\x14" + self.get_redeem_script_hash(params) + b"\x87"
