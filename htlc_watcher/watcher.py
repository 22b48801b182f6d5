"""
HTLC watcher.

Follows the chain tip, scans confirmed blocks for HTLC deposits,
receipts and refunds, and hands every event to a caller-supplied sink
(typically a relayer forwarding them to the counterpart chain).
"""

import asyncio
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import structlog

from .bitcoin import Block
from .config import WatcherConfig
from .parser import HtlcParser
from .rpc import BitcoinRPC
from .scanner import BlockEvents, HtlcEvent, event_type, merge_events, scan_block

logger = structlog.get_logger()

EventSink = Callable[[Optional[int], HtlcEvent], None]


class BlockSource(Protocol):
    """Protocol for node RPC client (real or mock)."""

    async def get_block_count(self) -> int: ...
    async def get_block_at(self, height: int) -> Block: ...


class HtlcWatcher:
    """
    Scans blocks for HTLC events.

    Workflow:
    1. Determine the highest block with enough confirmations
    2. Fetch the next batch of blocks concurrently
    3. Scan each block with every configured covenant parser
    4. Emit events in height order
    """

    def __init__(
        self,
        rpc: BlockSource,
        parsers: Sequence[HtlcParser],
        required_confirmations: int = 1,
        scan_batch_size: int = 10,
        poll_interval_seconds: int = 30,
        start_height: Optional[int] = None,
    ):
        if not parsers:
            raise ValueError("HtlcWatcher requires at least one covenant parser")
        if scan_batch_size < 1:
            raise ValueError(f"scan_batch_size must be positive, got {scan_batch_size}")

        self.rpc = rpc
        self.parsers = list(parsers)
        self.required_confirmations = required_confirmations
        self.scan_batch_size = scan_batch_size
        self.poll_interval_seconds = poll_interval_seconds
        self._last_scanned_height: Optional[int] = (
            start_height - 1 if start_height is not None else None
        )
        self._running = False

    @classmethod
    def from_config(cls, config: WatcherConfig) -> "HtlcWatcher":
        return cls(
            BitcoinRPC(config.bitcoin_rpc),
            config.build_parsers(),
            required_confirmations=config.required_confirmations,
            scan_batch_size=config.scan_batch_size,
            poll_interval_seconds=config.poll_interval_seconds,
            start_height=config.start_height,
        )

    @property
    def last_scanned_height(self) -> Optional[int]:
        return self._last_scanned_height

    def scan(self, block: Block) -> BlockEvents:
        """Scan an already fetched block."""
        events = scan_block(block, self.parsers)
        for event in events.events():
            logger.info(
                "htlc_event_found",
                type=event_type(event),
                height=block.height,
                tx_hash=event.tx_hash,
            )
        return events

    async def scan_block(self, height: int) -> BlockEvents:
        """Fetch and scan the block at ``height``."""
        block = await self.rpc.get_block_at(height)
        return self.scan(block)

    async def scan_range(
        self, start_height: int, end_height: int
    ) -> List[Tuple[Optional[int], HtlcEvent]]:
        """
        Scan a range of blocks (inclusive).

        Blocks are fetched concurrently, at most ``scan_batch_size`` at a time.
        """
        events: List[Tuple[Optional[int], HtlcEvent]] = []
        for batch_start in range(start_height, end_height + 1, self.scan_batch_size):
            batch_end = min(batch_start + self.scan_batch_size - 1, end_height)
            heights = range(batch_start, batch_end + 1)
            blocks = await asyncio.gather(*(self.rpc.get_block_at(h) for h in heights))
            events.extend(merge_events(self.scan(block) for block in blocks))
        return events

    async def get_confirmed_height(self) -> int:
        """Highest block with at least ``required_confirmations``."""
        tip = await self.rpc.get_block_count()
        return tip - self.required_confirmations + 1

    async def scan_new_blocks(self) -> List[Tuple[Optional[int], HtlcEvent]]:
        """Scan the next batch of confirmed blocks."""
        confirmed = await self.get_confirmed_height()

        if self._last_scanned_height is None:
            # Start from a recent block
            self._last_scanned_height = max(confirmed - self.scan_batch_size, -1)

        if confirmed <= self._last_scanned_height:
            return []

        start = self._last_scanned_height + 1
        end = min(start + self.scan_batch_size - 1, confirmed)

        logger.debug("Scanning blocks", start=start, end=end)

        events = await self.scan_range(start, end)
        self._last_scanned_height = end
        return events

    async def run_once(self, sink: EventSink) -> int:
        """Run one iteration; returns the number of events emitted."""
        events = await self.scan_new_blocks()
        for height, event in events:
            sink(height, event)
        if events:
            logger.info("Emitted HTLC events", count=len(events))
        return len(events)

    async def run(self, sink: EventSink) -> None:
        """Run the watcher loop."""
        self._running = True
        logger.info("Starting HTLC watcher", covenants=[p.version.name for p in self.parsers])

        while self._running:
            try:
                await self.run_once(sink)
            except Exception as e:
                logger.error("Error in watcher loop", error=str(e))

            await asyncio.sleep(self.poll_interval_seconds)

    def stop(self) -> None:
        """Stop the watcher."""
        self._running = False
        logger.info("Stopping HTLC watcher")
