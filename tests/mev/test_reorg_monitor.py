"""Tests for the reorganization monitor."""

import pytest

from src.helpers.constants import WEI_PER_ETH
from src.helpers.periodic import MonitorState
from src.mev.reorg_monitor import ReorganizationMonitor

from fakes import FakeLedgerClient, block_hash, make_tx


def extraction_block_txs() -> list:
    """Alternating high/low priced 2 ETH transfers that score 85 evidence."""
    return [
        make_tx(f"0xnew{i}", gas_price_gwei=200 if i % 2 == 0 else 20, value=2 * WEI_PER_ETH)
        for i in range(9)
    ]


@pytest.fixture
def monitor(ledger: FakeLedgerClient) -> ReorganizationMonitor:
    return ReorganizationMonitor("sepolia", ledger, depth=5, interval=60)


class TestBlockCache:
    """Tests for seeding and maintaining the block cache."""

    @pytest.mark.asyncio
    async def test_initialize_caches_newest_blocks(
        self, ledger: FakeLedgerClient, monitor: ReorganizationMonitor
    ) -> None:
        await monitor.initialize_block_cache()

        assert sorted(monitor.block_cache) == [96, 97, 98, 99, 100]
        assert monitor.block_cache[100].block_hash == block_hash(100)

    @pytest.mark.asyncio
    async def test_first_check_seeds_the_cache(self, monitor: ReorganizationMonitor) -> None:
        assert await monitor.check_for_reorganizations() == []
        assert len(monitor.block_cache) == 5

    @pytest.mark.asyncio
    async def test_cache_follows_the_head(
        self, ledger: FakeLedgerClient, monitor: ReorganizationMonitor
    ) -> None:
        await monitor.initialize_block_cache()
        ledger.mine(3)

        assert await monitor.check_for_reorganizations() == []
        assert sorted(monitor.block_cache) == [99, 100, 101, 102, 103]

    @pytest.mark.asyncio
    async def test_observe_block(
        self, ledger: FakeLedgerClient, monitor: ReorganizationMonitor
    ) -> None:
        ledger.set_block(42, [make_tx("0xmine")])

        await monitor.observe_block(42)
        await monitor.observe_block(500)

        assert monitor.block_cache[42].transaction_hashes == ("0xmine",)
        assert 500 not in monitor.block_cache

    @pytest.mark.asyncio
    async def test_start_and_stop(self, monitor: ReorganizationMonitor) -> None:
        await monitor.start_monitoring()
        await monitor.start_monitoring()

        assert monitor.monitoring_active
        assert len(monitor.block_cache) == 5

        await monitor.stop_monitoring()
        await monitor.stop_monitoring()

        assert not monitor.monitoring_active
        assert monitor.export_data().state is MonitorState.STOPPED


class TestBackgroundDetection:
    """Tests for reorganizations found by the polling loop."""

    @pytest.mark.asyncio
    async def test_replaced_block_is_detected(
        self, ledger: FakeLedgerClient, monitor: ReorganizationMonitor
    ) -> None:
        ledger.set_block(98, [make_tx("0xvictim")])
        await monitor.initialize_block_cache()
        ledger.replace_block(98, extraction_block_txs())

        events = await monitor.check_for_reorganizations()

        assert len(events) == 1
        event = events[0]
        assert event.network == "sepolia"
        assert event.block_number == 98
        assert event.depth == 1
        assert event.original_hash == block_hash(98)
        assert event.new_hash == block_hash(98, fork=1)
        assert [t.tx_hash for t in event.affected_transactions] == ["0xvictim"]
        assert event.mev_evidence_score == 85
        assert event.likely_mev_cause
        assert event.reorg_id.startswith("reorg-")

    @pytest.mark.asyncio
    async def test_multi_block_reorg_is_reported_once(
        self, ledger: FakeLedgerClient, monitor: ReorganizationMonitor
    ) -> None:
        await monitor.initialize_block_cache()
        for number in (97, 98, 99):
            ledger.replace_block(number)

        events = await monitor.check_for_reorganizations()

        assert [(e.block_number, e.depth) for e in events] == [(97, 3)]
        assert monitor.block_cache[99].block_hash == block_hash(99, fork=1)
        assert await monitor.check_for_reorganizations() == []

    @pytest.mark.asyncio
    async def test_depth_walk_is_capped(self, ledger: FakeLedgerClient) -> None:
        monitor = ReorganizationMonitor("sepolia", ledger, depth=10, max_depth=2)
        await monitor.initialize_block_cache()
        for number in range(95, 100):
            ledger.replace_block(number)

        events = await monitor.check_for_reorganizations()

        assert [(e.block_number, e.depth) for e in events] == [
            (95, 2),
            (97, 2),
            (99, 1),
        ]

    @pytest.mark.asyncio
    async def test_empty_replacement_has_no_evidence(
        self, ledger: FakeLedgerClient, monitor: ReorganizationMonitor
    ) -> None:
        await monitor.initialize_block_cache()
        ledger.replace_block(100)

        (event,) = await monitor.check_for_reorganizations()

        assert event.mev_evidence_score == 0
        assert not event.likely_mev_cause
        assert event.affected_transactions == []

    @pytest.mark.asyncio
    async def test_stats(
        self, ledger: FakeLedgerClient, monitor: ReorganizationMonitor
    ) -> None:
        await monitor.initialize_block_cache()
        ledger.replace_block(97, extraction_block_txs())
        ledger.replace_block(98, extraction_block_txs())
        await monitor.check_for_reorganizations()
        ledger.replace_block(100, fork=2)
        await monitor.check_for_reorganizations()

        stats = monitor.get_reorganization_stats()

        assert stats.total_reorganizations == 2
        assert stats.mev_related_reorgs == 1
        assert stats.mev_reorg_percentage == pytest.approx(50.0)
        assert stats.average_depth == pytest.approx(1.5)
        assert stats.last_reorg_time == monitor.reorg_events[-1].detected_at
        assert monitor.get_recent_reorganizations(1) == monitor.reorg_events[-1:]
        assert monitor.get_recent_reorganizations(0) == []

    def test_stats_without_events(self, monitor: ReorganizationMonitor) -> None:
        stats = monitor.get_reorganization_stats()

        assert stats.total_reorganizations == 0
        assert stats.last_reorg_time is None


class TestOnDemandDetection:
    """Tests for detect_reorganization."""

    @pytest.mark.asyncio
    async def test_block_not_in_cache(self, monitor: ReorganizationMonitor) -> None:
        check = await monitor.detect_reorganization("0xabc", 100)

        assert not check.reorg_detected
        assert check.reason == "Block not in cache"
        assert check.depth == 0

    @pytest.mark.asyncio
    async def test_unchanged_block(self, monitor: ReorganizationMonitor) -> None:
        await monitor.observe_block(100)

        check = await monitor.detect_reorganization("0xabc", 100)

        assert not check.reorg_detected
        assert check.reason == "Block hash unchanged"

    @pytest.mark.asyncio
    async def test_block_not_found(
        self, ledger: FakeLedgerClient, monitor: ReorganizationMonitor
    ) -> None:
        await monitor.observe_block(100)
        ledger.head = 99

        check = await monitor.detect_reorganization("0xabc", 100)

        assert check.reason == "Block not found"

    @pytest.mark.asyncio
    async def test_client_error_is_reported(
        self, ledger: FakeLedgerClient, monitor: ReorganizationMonitor
    ) -> None:
        await monitor.observe_block(100)
        ledger.errors["get_block"] = RuntimeError("boom")

        check = await monitor.detect_reorganization("0xabc", 100)

        assert not check.reorg_detected
        assert check.reason == "Error: boom"

    @pytest.mark.asyncio
    async def test_detection_leaves_state_untouched(
        self, ledger: FakeLedgerClient, monitor: ReorganizationMonitor
    ) -> None:
        ledger.set_block(100, [make_tx("0xmine")])
        await monitor.observe_block(100)
        ledger.replace_block(100, extraction_block_txs())

        check = await monitor.detect_reorganization("0xmine", 100)

        assert check.reorg_detected
        assert check.depth == 1
        assert check.likely_mev_cause
        assert check.mev_evidence_score == 85
        assert [t.tx_hash for t in check.event.affected_transactions] == ["0xmine"]
        assert monitor.block_cache[100].block_hash == block_hash(100)
        assert monitor.reorg_events == []

    def test_export_data(self, monitor: ReorganizationMonitor) -> None:
        snapshot = monitor.export_data()

        assert snapshot.network_name == "sepolia"
        assert snapshot.depth == 5
        assert snapshot.polling_interval == 60
        assert snapshot.state is MonitorState.IDLE
        assert snapshot.events == []
