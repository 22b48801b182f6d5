"""
Per-block HTLC scanning.

Each block is scanned independently into its own ``BlockEvents``; partial
results from concurrently scanned blocks are combined with ``merge_events``.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Sequence, Tuple, Union

from .bitcoin import Block, Transaction
from .models import DepositInfo, ReceiptInfo, RefundInfo
from .parser import HtlcParser

HtlcEvent = Union[DepositInfo, ReceiptInfo, RefundInfo]

EVENT_TYPES = {
    DepositInfo: "deposit",
    ReceiptInfo: "receipt",
    RefundInfo: "refund",
}


@dataclass
class BlockEvents:
    """HTLC events found in one block."""

    block_hash: str
    height: int | None = None
    deposits: List[DepositInfo] = field(default_factory=list)
    receipts: List[ReceiptInfo] = field(default_factory=list)
    refunds: List[RefundInfo] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.deposits) + len(self.receipts) + len(self.refunds)

    def events(self) -> Iterator[HtlcEvent]:
        """Deposits, then receipts, then refunds."""
        yield from self.deposits
        yield from self.receipts
        yield from self.refunds

    def to_dicts(self) -> List[dict[str, Any]]:
        """One JSON-ready mapping per event, tagged with its type and height."""
        return [event_to_dict(event, self.height) for event in self.events()]


def event_type(event: HtlcEvent) -> str:
    return EVENT_TYPES[type(event)]


def event_to_dict(event: HtlcEvent, height: int | None = None) -> dict[str, Any]:
    data: dict[str, Any] = {"type": event_type(event), "height": height}
    data.update(event.to_dict())
    return data


def classify_transaction(tx: Transaction, parsers: Sequence[HtlcParser]) -> List[HtlcEvent]:
    """
    At most one deposit, one receipt and one refund for ``tx``.

    Parsers are tried in order and the first match wins for each detector, so
    covenant versions whose bytecode overlaps never report a transaction twice.
    """
    events: List[HtlcEvent] = []
    for detector in (HtlcParser.parse_deposit, HtlcParser.parse_receipt, HtlcParser.parse_refund):
        for parser in parsers:
            event = detector(parser, tx)
            if event is not None:
                events.append(event)
                break
    return events


def scan_block(block: Block, parsers: Sequence[HtlcParser]) -> BlockEvents:
    """Classify every transaction of ``block`` with the configured parsers."""
    result = BlockEvents(block_hash=block.hash, height=block.height)
    for tx in block.transactions:
        for event in classify_transaction(tx, parsers):
            if isinstance(event, DepositInfo):
                result.deposits.append(event)
            elif isinstance(event, ReceiptInfo):
                result.receipts.append(event)
            else:
                result.refunds.append(event)
    return result


def merge_events(partials: Iterable[BlockEvents]) -> List[Tuple[int | None, HtlcEvent]]:
    """Flatten per-block results into (height, event) pairs in height order."""
    ordered = sorted(
        partials, key=lambda p: -1 if p.height is None else p.height
    )
    return [(p.height, event) for p in ordered for event in p.events()]
