"""
HTLC event records emitted by the parser.
"""

from dataclasses import dataclass
from typing import Any


def _hex0x(data: bytes) -> str:
    return "0x" + data.hex()


@dataclass(frozen=True)
class DepositInfo:
    """Funds locked into a covenant output."""

    tx_hash: str  # 32 bytes, hex
    recipient_pkh: bytes  # 20 bytes
    sender_pkh: bytes  # 20 bytes
    hash_lock: bytes  # 32 bytes, sha256
    expiration: int  # 2 bytes, big endian
    penalty_bps: int  # 2 bytes, big endian
    sender_evm_addr: bytes  # 20 bytes
    script_hash: bytes  # 20 bytes, hash160
    value: int  # in sats

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "txHash": self.tx_hash,
            "recipientPkh": _hex0x(self.recipient_pkh),
            "senderPkh": _hex0x(self.sender_pkh),
            "hashLock": _hex0x(self.hash_lock),
            "expiration": self.expiration,
            "penaltyBps": self.penalty_bps,
            "senderEvmAddr": _hex0x(self.sender_evm_addr),
            "scriptHash": _hex0x(self.script_hash),
            "value": self.value,
        }


@dataclass(frozen=True)
class ReceiptInfo:
    """Covenant output claimed by revealing the secret."""

    prev_tx_hash: str  # 32 bytes, hex
    tx_hash: str  # 32 bytes, hex
    secret: str  # 32 bytes, hex

    def to_dict(self) -> dict[str, Any]:
        return {
            "prevTxHash": self.prev_tx_hash,
            "txHash": self.tx_hash,
            "secret": self.secret,
        }


@dataclass(frozen=True)
class RefundInfo:
    """Covenant output reclaimed by the sender after expiry."""

    prev_tx_hash: str  # 32 bytes, hex
    tx_hash: str  # 32 bytes, hex

    def to_dict(self) -> dict[str, Any]:
        return {
            "prevTxHash": self.prev_tx_hash,
            "txHash": self.tx_hash,
        }
