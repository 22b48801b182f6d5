"""
HTLC Watcher

Scans Bitcoin Cash blocks for the three state transitions of an atomic
swap covenant (deposit, receipt and refund) and emits them as events
for a relayer to forward to the counterpart chain.

Usage:
    # Classify one raw transaction
    htlc-watcher decode-tx 0100000001... --bytecode <covenant hex>

    # Scan a range of blocks
    htlc-watcher scan 800000 800010

    # Follow the chain
    htlc-watcher watch
"""

__version__ = "0.1.0"

from .covenant import CashScriptCovenant, CovenantError, CovenantParams, CovenantVersion
from .models import DepositInfo, ReceiptInfo, RefundInfo
from .parser import HtlcParser
from .scanner import BlockEvents, scan_block
from .watcher import HtlcWatcher

__all__ = [
    "__version__",
    "CashScriptCovenant",
    "CovenantError",
    "CovenantParams",
    "CovenantVersion",
    "DepositInfo",
    "ReceiptInfo",
    "RefundInfo",
    "HtlcParser",
    "BlockEvents",
    "scan_block",
    "HtlcWatcher",
]
