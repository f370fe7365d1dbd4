"""Block reorganization detection with MEV-causation assessment."""

import statistics
import time
import uuid

from typing import TYPE_CHECKING

from src.helpers.constants import REORG_CACHE_DEPTH, REORG_MAX_DEPTH, REORG_POLL_INTERVAL
from src.helpers.logging import get_logger
from src.helpers.periodic import PeriodicTask
from src.helpers.retry import log_and_suppress_errors
from src.mev.indicators import ReorgEvidenceConfig, assess_block_evidence
from src.mev.models import (
    AffectedTransaction,
    CachedBlock,
    MevCausationAnalysis,
    ReorgCheck,
    ReorgEvent,
    ReorgSnapshot,
    ReorgStats,
)


if TYPE_CHECKING:
    from src.adapters.ledger import LedgerClient
    from src.helpers.models import LedgerBlock


logger = get_logger(__name__)


def _cache_entry(block: LedgerBlock) -> CachedBlock:
    return CachedBlock(
        block_hash=block.hash,
        timestamp=block.timestamp,
        transaction_hashes=tuple(block.transaction_hashes),
    )


def _reorg_id() -> str:
    return f"reorg-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class ReorganizationMonitor:
    """Watches recent block hashes for replacement.

    The monitor keeps the hashes of the newest ``depth`` blocks. Each tick
    re-fetches them; a changed hash is a reorganization, which is measured
    (how many consecutive blocks changed) and assessed for MEV evidence
    before being appended to the event log.
    """

    def __init__(
        self,
        network_name: str,
        client: LedgerClient,
        *,
        depth: int = REORG_CACHE_DEPTH,
        interval: float = REORG_POLL_INTERVAL,
        max_depth: int = REORG_MAX_DEPTH,
        evidence: ReorgEvidenceConfig | None = None,
    ) -> None:
        self.network_name = network_name
        self.client = client
        self.depth = depth
        self.interval = interval
        self.max_depth = max_depth
        self.evidence = evidence or ReorgEvidenceConfig()
        self.block_cache: dict[int, CachedBlock] = {}
        self.reorg_events: list[ReorgEvent] = []
        self._task = PeriodicTask(
            f"Reorg monitor for {network_name}", self.check_for_reorganizations, interval
        )

    @property
    def monitoring_active(self) -> bool:
        return self._task.running

    async def start_monitoring(self) -> None:
        if self._task.running:
            logger.warning("Reorganization monitoring already active")
            return
        async with log_and_suppress_errors(
            f"Block cache initialization for {self.network_name}"
        ):
            await self.initialize_block_cache()
        self._task.start()
        logger.info("Started reorganization monitoring for %s", self.network_name)

    async def stop_monitoring(self) -> None:
        was_running = self._task.running
        await self._task.stop()
        if was_running:
            logger.info("Stopped reorganization monitoring for %s", self.network_name)

    async def initialize_block_cache(self) -> None:
        """Seed the cache with the newest ``depth`` blocks."""
        latest = await self.client.get_block_number()
        for number in range(max(0, latest - self.depth + 1), latest + 1):
            block = await self.client.get_block(number)
            if block is not None:
                self.block_cache[number] = _cache_entry(block)
        logger.info(
            "Initialized %s block cache with %d blocks",
            self.network_name,
            len(self.block_cache),
        )

    async def observe_block(self, block_number: int) -> None:
        """Cache a specific block so a later on-demand check can compare it."""
        if block_number in self.block_cache:
            return
        block = await self.client.get_block(block_number)
        if block is not None:
            self.block_cache[block_number] = _cache_entry(block)

    async def check_for_reorganizations(self) -> list[ReorgEvent]:
        """Compare every cached block with the live chain.

        A reorganization spanning several consecutive blocks is reported
        once, at its lowest block.
        """
        latest = await self.client.get_block_number()
        if not self.block_cache:
            await self.initialize_block_cache()
            return []

        detected: list[ReorgEvent] = []
        replaced: dict[int, CachedBlock] = {}
        covered_until = -1

        for number in sorted(self.block_cache):
            if number > latest:
                continue
            async with log_and_suppress_errors(f"Checking block {number}"):
                block = await self.client.get_block(number)
                if block is None or block.hash == self.block_cache[number].block_hash:
                    continue
                replaced[number] = _cache_entry(block)
                if number <= covered_until:
                    continue
                event = await self.analyze_reorganization(number, block)
                covered_until = number + event.depth - 1
                detected.append(event)

        self.block_cache.update(replaced)
        self.reorg_events.extend(detected)
        await self._update_block_cache(latest)

        for event in detected:
            logger.warning(
                "Reorganization on %s at block %d: depth %d, MEV evidence %d%s",
                self.network_name,
                event.block_number,
                event.depth,
                event.mev_evidence_score,
                " (likely MEV)" if event.likely_mev_cause else "",
            )
        return detected

    async def analyze_reorganization(
        self, block_number: int, new_block: LedgerBlock
    ) -> ReorgEvent:
        """Build the event for a block whose cached hash was replaced."""
        cached = self.block_cache[block_number]
        depth = await self.calculate_reorg_depth(block_number)

        full_block = await self.client.get_block(block_number, full_transactions=True)
        mev_analysis = MevCausationAnalysis()
        new_hashes = set(new_block.transaction_hashes)
        if full_block is not None:
            mev_analysis = assess_block_evidence(full_block.transactions, self.evidence)
            new_hashes = set(full_block.transaction_hashes)

        affected = [
            AffectedTransaction(tx_hash=tx_hash)
            for tx_hash in cached.transaction_hashes
            if tx_hash not in new_hashes
        ]

        return ReorgEvent(
            reorg_id=_reorg_id(),
            network=self.network_name,
            block_number=block_number,
            original_hash=cached.block_hash,
            new_hash=new_block.hash,
            depth=depth,
            affected_transactions=affected,
            mev_analysis=mev_analysis,
        )

    async def calculate_reorg_depth(self, start_block: int) -> int:
        """Walk forward from ``start_block`` until a cached hash still matches."""
        depth = 1
        current = start_block + 1
        async with log_and_suppress_errors(f"Reorg depth walk from block {start_block}"):
            while depth < self.max_depth:
                cached = self.block_cache.get(current)
                if cached is None:
                    break
                block = await self.client.get_block(current)
                if block is None or block.hash == cached.block_hash:
                    break
                depth += 1
                current += 1
        return depth

    async def _update_block_cache(self, latest: int) -> None:
        highest = max(self.block_cache, default=-1)
        for number in range(max(highest + 1, latest - self.depth + 1, 0), latest + 1):
            async with log_and_suppress_errors(f"Caching block {number}"):
                block = await self.client.get_block(number)
                if block is not None:
                    self.block_cache[number] = _cache_entry(block)

        for number in sorted(self.block_cache, reverse=True)[self.depth :]:
            del self.block_cache[number]

    async def detect_reorganization(self, tx_hash: str, block_number: int) -> ReorgCheck:
        """On-demand check of one block, independent of the background loop.

        The check reads the cache but never mutates it or the event log.
        """
        cached = self.block_cache.get(block_number)
        if cached is None:
            return ReorgCheck(reorg_detected=False, reason="Block not in cache")

        try:
            block = await self.client.get_block(block_number)
            if block is None:
                return ReorgCheck(reorg_detected=False, reason="Block not found")
            if block.hash == cached.block_hash:
                return ReorgCheck(reorg_detected=False, reason="Block hash unchanged")
            event = await self.analyze_reorganization(block_number, block)
        except Exception as e:
            logger.warning(
                "Reorganization check for %s at block %d failed: %s",
                tx_hash,
                block_number,
                e,
            )
            return ReorgCheck(reorg_detected=False, reason=f"Error: {e}")

        logger.warning(
            "Transaction %s: block %d reorganized (depth %d)",
            tx_hash,
            block_number,
            event.depth,
        )
        return ReorgCheck(reorg_detected=True, event=event)

    def get_recent_reorganizations(self, count: int = 10) -> list[ReorgEvent]:
        return self.reorg_events[-count:] if count > 0 else []

    def get_reorganization_stats(self) -> ReorgStats:
        total = len(self.reorg_events)
        if total == 0:
            return ReorgStats()
        mev_related = sum(1 for e in self.reorg_events if e.likely_mev_cause)
        return ReorgStats(
            total_reorganizations=total,
            mev_related_reorgs=mev_related,
            mev_reorg_percentage=mev_related / total * 100,
            average_depth=statistics.fmean(e.depth for e in self.reorg_events),
            last_reorg_time=self.reorg_events[-1].detected_at,
        )

    def export_data(self) -> ReorgSnapshot:
        return ReorgSnapshot(
            network_name=self.network_name,
            events=list(self.reorg_events),
            stats=self.get_reorganization_stats(),
            depth=self.depth,
            polling_interval=self.interval,
            state=self._task.state,
        )


__all__ = [
    "ReorganizationMonitor",
]
