"""
HTLC transaction parser.

Recognizes the three state transitions of an atomic swap covenant:

- deposit: output#0 locks funds to the covenant P2SH, output#1 is a
  NULL DATA output declaring the swap parameters
- receipt: input#0 spends the covenant revealing the secret
- refund: input#0 spends the covenant through the refund path

Every check failing yields None. Nothing here raises for a transaction
that simply is not an HTLC transaction.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from .bitcoin import Transaction
from .covenant import CovenantError, CovenantOracle, CovenantParams, CovenantVersion
from .models import DepositInfo, ReceiptInfo, RefundInfo
from .script import (
    ScriptError,
    disasm_string,
    get_op_return_pushes,
    get_p2sh_hash,
    has_redeem_script_suffix,
    pushed_data,
)

logger = structlog.get_logger()

PROTOCOL_ID = b"SBAS"  # SmartBCH AtomicSwap
SECRET_SIZE = 32


@dataclass(frozen=True)
class DepositMetadata:
    """Swap parameters declared by a deposit's NULL DATA output."""

    recipient_pkh: bytes
    sender_pkh: bytes
    hash_lock: bytes
    expiration: int
    penalty_bps: int
    sender_evm_addr: bytes


# https://github.com/bitcoincashorg/bitcoincash.org/blob/master/spec/op_return-prefix-guideline.md
# OP_RETURN "SBAS" <recipient pkh> <sender pkh> <hash lock> <expiration> <penalty bps> <sbch user address>
def get_htlc_deposit_metadata(
    pk_script: bytes, protocol_id: bytes = PROTOCOL_ID
) -> Optional[DepositMetadata]:
    """Decode the deposit metadata output, or None if it does not match exactly."""
    ret_data = get_op_return_pushes(pk_script)
    if (
        ret_data is None
        or len(ret_data) != 7
        or ret_data[0] != protocol_id
        or len(ret_data[1]) != 20  # recipient pkh
        or len(ret_data[2]) != 20  # sender pkh
        or len(ret_data[3]) != 32  # hash lock
        or len(ret_data[4]) != 2  # expiration
        or len(ret_data[5]) != 2  # penalty bps
        or len(ret_data[6]) != 20  # sender evm addr
    ):
        return None

    return DepositMetadata(
        recipient_pkh=ret_data[1],
        sender_pkh=ret_data[2],
        hash_lock=ret_data[3],
        expiration=int.from_bytes(ret_data[4], "big"),
        penalty_bps=int.from_bytes(ret_data[5], "big"),
        sender_evm_addr=ret_data[6],
    )


def get_htlc_receipt_secret(sig_script: bytes, suffix: bytes) -> Optional[str]:
    """
    Secret revealed by a receipt signature script, hex encoded.

    <secret:32> <selector> <redeem script>
    """
    if not has_redeem_script_suffix(sig_script, suffix):
        return None
    try:
        pushes = pushed_data(sig_script)
    except ScriptError:
        return None
    if len(pushes) != 3 or len(pushes[0]) != SECRET_SIZE:
        return None

    # NOTE: the selector and the redeem script's constructor arguments are not
    # checked against the deposit being spent.
    return pushes[0].hex()


def is_htlc_refund_script(sig_script: bytes, suffix: bytes) -> bool:
    """
    True if a signature script takes the refund path.

    OP_1 <redeem script>
    """
    if not has_redeem_script_suffix(sig_script, suffix):
        return False
    try:
        disasm = disasm_string(sig_script)
    except ScriptError:
        return False

    opcodes = disasm.split(" ")
    return len(opcodes) == 2 and opcodes[0] == "1"


def _spends_single_covenant(tx: Transaction) -> bool:
    # input#0 spends the covenant, an optional input#1 pays the fee
    return len(tx.inputs) in (1, 2)


class HtlcParser:
    """
    Detects HTLC deposits, receipts and refunds for one covenant version.

    Usage:
        version = CovenantVersion.from_hex("v1", bytecode_hex)
        parser = HtlcParser(version, CashScriptCovenant(version))
        deposit = parser.parse_deposit(tx)
    """

    def __init__(
        self,
        version: CovenantVersion,
        oracle: CovenantOracle,
        protocol_id: bytes = PROTOCOL_ID,
    ):
        self.version = version
        self.oracle = oracle
        self.protocol_id = protocol_id

    @property
    def redeem_script_suffix(self) -> bytes:
        return self.version.redeem_script_without_args

    # === Deposit ===

    def parse_deposit(self, tx: Transaction) -> Optional[DepositInfo]:
        """output#0: deposit, output#1: op_return"""
        if len(tx.outputs) < 2:
            return None

        # output#0 must be locked by P2SH script
        script_hash = get_p2sh_hash(tx.outputs[0].pk_script)
        if script_hash is None:
            return None

        # output#1 must be NULL DATA that contains the HTLC info
        metadata = get_htlc_deposit_metadata(tx.outputs[1].pk_script, self.protocol_id)
        if metadata is None:
            return None

        params = CovenantParams(
            sender_pkh=metadata.sender_pkh,
            recipient_pkh=metadata.recipient_pkh,
            hash_lock=metadata.hash_lock,
            expiration=metadata.expiration,
            penalty_bps=metadata.penalty_bps,
        )
        try:
            expected_hash = self.oracle.get_redeem_script_hash(params)
        except CovenantError as e:
            logger.debug("htlc_deposit_rejected", tx_hash=tx.txid, reason=str(e))
            return None

        if expected_hash != script_hash:
            logger.debug(
                "htlc_deposit_script_hash_mismatch",
                tx_hash=tx.txid,
                expected=expected_hash.hex(),
                actual=script_hash.hex(),
            )
            return None

        return DepositInfo(
            tx_hash=tx.txid,
            recipient_pkh=metadata.recipient_pkh,
            sender_pkh=metadata.sender_pkh,
            hash_lock=metadata.hash_lock,
            expiration=metadata.expiration,
            penalty_bps=metadata.penalty_bps,
            sender_evm_addr=metadata.sender_evm_addr,
            script_hash=script_hash,
            value=tx.outputs[0].value,
        )

    # === Receipt ===

    def parse_receipt(self, tx: Transaction) -> Optional[ReceiptInfo]:
        if not _spends_single_covenant(tx):
            return None

        txin = tx.inputs[0]
        secret = get_htlc_receipt_secret(txin.signature_script, self.redeem_script_suffix)
        if secret is None:
            return None

        return ReceiptInfo(
            prev_tx_hash=txin.previous_outpoint.txid,
            tx_hash=tx.txid,
            secret=secret,
        )

    # === Refund ===

    def parse_refund(self, tx: Transaction) -> Optional[RefundInfo]:
        if not _spends_single_covenant(tx):
            return None

        txin = tx.inputs[0]
        if not is_htlc_refund_script(txin.signature_script, self.redeem_script_suffix):
            return None

        # TODO: verify the redeem script's constructor args once the rule for
        # matching them against the referenced deposit is settled.
        return RefundInfo(
            prev_tx_hash=txin.previous_outpoint.txid,
            tx_hash=tx.txid,
        )
