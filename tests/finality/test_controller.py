"""Tests for the finality controller."""

import asyncio

from unittest.mock import AsyncMock

import pytest

from src.adapters.evm import EvmAdapter
from src.adapters.models import TransactionHandle
from src.adapters.profiles import get_profile
from src.finality.controller import ControllerState, FinalityController, calculate_costs
from src.finality.models import CampaignConfig, FinalityMeasurement
from src.finality.sink import InMemoryMeasurementSink
from src.helpers.errors import (
    AdapterConnectionError,
    AdapterNotRegisteredError,
    FinalityError,
)
from src.helpers.parsers import gwei_to_wei
from src.helpers.retry import RetryConfig
from src.mev.activity_monitor import generate_recommendation
from src.mev.indicators import categorize_risk
from src.mev.models import MevConditions

from fakes import FakeLedgerClient, StubMevMonitor, StubReorgMonitor


FAST_RETRY = RetryConfig(max_retries=2, base_delay=0.0, max_delay=0.0)
CHAIN_IDS = {"sepolia": 11155111, "kasplex": 167012, "igra": 421614}


class HangingLedgerClient(FakeLedgerClient):
    """Never confirms the transactions listed in ``hang_on``."""

    def __init__(self, *hang_on: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.hang_on = set(hang_on)

    async def wait_for_transaction(self, tx_hash, confirmations=1, timeout=None):
        if tx_hash in self.hang_on:
            await asyncio.sleep(3600)
        return await super().wait_for_transaction(tx_hash, confirmations, timeout)


def make_adapter(
    name: str = "sepolia",
    client: FakeLedgerClient | None = None,
    mev_score: int = 10,
) -> EvmAdapter:
    profile = get_profile(name)
    config = profile.config_for(name).model_copy(update={"retry": FAST_RETRY})
    client = client or FakeLedgerClient(chain_id=CHAIN_IDS[name], gas_price=config.gas_price)
    return EvmAdapter(
        name,
        profile,
        client,
        config=config,
        mev_monitor=StubMevMonitor(mev_score, name),
        reorg_monitor=StubReorgMonitor(network_name=name),
    )


@pytest.fixture
def sink() -> InMemoryMeasurementSink:
    return InMemoryMeasurementSink()


@pytest.fixture
def controller(sink: InMemoryMeasurementSink) -> FinalityController:
    return FinalityController(
        session_name="test-session",
        measurement_delay=0.0,
        measurement_timeout=5.0,
        sink=sink,
    )


def measured(
    gas_used: int | None = 21_000,
    effective_gas_price: int | None = None,
    score: int = 0,
    finality_time: float | None = 2000.0,
) -> FinalityMeasurement:
    return FinalityMeasurement(
        tx_hash="0xabc",
        network_name="sepolia",
        base_threshold=12,
        adjusted_threshold=12,
        gas_used=gas_used,
        effective_gas_price=effective_gas_price,
        finality_time=finality_time,
        initial_mev_conditions=MevConditions(
            current_score=score,
            risk_level=categorize_risk(score),
            recommendation=generate_recommendation(score),
        ),
    )


class TestCalculateCosts:
    """Tests for calculate_costs."""

    handle = TransactionHandle(
        tx_hash="0xabc", network="sepolia", gas_price=gwei_to_wei(20), gas_limit=21_000
    )

    def test_premiums_and_rate(self) -> None:
        cost = calculate_costs(
            self.handle, measured(effective_gas_price=gwei_to_wei(30), score=60)
        )

        assert cost is not None
        assert cost.base_cost == 21_000 * gwei_to_wei(20)
        assert cost.actual_cost == 21_000 * gwei_to_wei(30)
        assert cost.gas_premium == 21_000 * gwei_to_wei(10)
        assert cost.mev_premium == 21_000 * gwei_to_wei(3)
        assert cost.total_cost == 21_000 * gwei_to_wei(33)
        assert cost.cost_per_second == pytest.approx(21_000 * gwei_to_wei(15))
        assert cost.currency == "ETH"

    def test_no_mev_premium_at_low_score(self) -> None:
        cost = calculate_costs(self.handle, measured(score=50), currency="KAS")

        assert cost is not None
        assert cost.effective_gas_price == gwei_to_wei(20)
        assert cost.gas_premium == 0
        assert cost.mev_premium == 0
        assert cost.currency == "KAS"

    def test_missing_gas_usage(self) -> None:
        assert calculate_costs(self.handle, measured(gas_used=None)) is None

    def test_zero_finality_time_has_no_rate(self) -> None:
        cost = calculate_costs(self.handle, measured(finality_time=0.0))

        assert cost is not None
        assert cost.cost_per_second is None


class TestSetup:
    """Tests for registration, initialization and status."""

    def test_register_adapter(self, controller: FinalityController) -> None:
        controller.register_adapter("sepolia", make_adapter())

        status = controller.get_status()

        assert status["registered_networks"] == ["sepolia"]
        assert status["network_metadata"]["sepolia"] == {
            "chain_id": 11155111,
            "block_confirmation_target": 12,
            "mev_baseline": 40,
        }
        assert status["state"] == ControllerState.UNINITIALIZED
        assert status["last_config"] is None

    @pytest.mark.asyncio
    async def test_initialize_requires_adapters(self, controller: FinalityController) -> None:
        with pytest.raises(FinalityError, match="No network adapters registered"):
            await controller.initialize_adapters()

    @pytest.mark.asyncio
    async def test_initialize_starts_monitoring(self, controller: FinalityController) -> None:
        sepolia, kasplex = make_adapter("sepolia"), make_adapter("kasplex")
        controller.register_adapter("sepolia", sepolia)
        controller.register_adapter("kasplex", kasplex)

        await controller.initialize_adapters()

        assert controller.state is ControllerState.INITIALIZED
        assert sepolia.chain_id == 11155111
        assert kasplex.chain_id == 167012
        assert sepolia.mev_monitor.monitoring_active
        assert kasplex.reorg_monitor.monitoring_active

    @pytest.mark.asyncio
    async def test_initialize_without_mev_awareness(self, sink: InMemoryMeasurementSink) -> None:
        controller = FinalityController(mev_aware=False, sink=sink)
        adapter = make_adapter()
        controller.register_adapter("sepolia", adapter)

        await controller.initialize_adapters()

        assert not adapter.mev_monitor.monitoring_active
        assert controller.get_status()["mev_aware"] is False

    @pytest.mark.asyncio
    async def test_initialize_fails_fast(self, controller: FinalityController) -> None:
        broken = FakeLedgerClient()
        broken.errors["get_chain_id"] = RuntimeError("connection refused")
        controller.register_adapter("sepolia", make_adapter("sepolia", broken))
        controller.register_adapter("kasplex", make_adapter("kasplex"))

        with pytest.raises(AdapterConnectionError, match="connection refused"):
            await controller.initialize_adapters()

        assert controller.state is ControllerState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_health_checks(self, controller: FinalityController) -> None:
        broken = FakeLedgerClient()
        broken.errors["get_block_number"] = RuntimeError("503")
        controller.register_adapter("sepolia", make_adapter("sepolia", broken))
        controller.register_adapter("kasplex", make_adapter("kasplex"))

        health = await controller.run_health_checks()

        assert not health["sepolia"].rpc_connected
        assert health["kasplex"].rpc_connected

    def test_default_session_name(self) -> None:
        assert FinalityController().session_name.startswith("finality-")


class TestRunFinalityTest:
    """Tests for running measurement campaigns."""

    @pytest.mark.asyncio
    async def test_requires_adapters(self, controller: FinalityController) -> None:
        with pytest.raises(FinalityError):
            await controller.run_finality_test()

    @pytest.mark.asyncio
    async def test_unknown_network(self, controller: FinalityController) -> None:
        controller.register_adapter("sepolia", make_adapter())

        with pytest.raises(AdapterNotRegisteredError, match="Network adapter not found: solana"):
            await controller.run_finality_test(CampaignConfig(networks=["solana"]))

        assert controller.state is ControllerState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_rejects_overlapping_runs(self, controller: FinalityController) -> None:
        controller.register_adapter("sepolia", make_adapter())
        controller.state = ControllerState.RUNNING

        with pytest.raises(FinalityError, match="already running"):
            await controller.run_finality_test()

    @pytest.mark.asyncio
    async def test_sequential_campaign(
        self, controller: FinalityController, sink: InMemoryMeasurementSink
    ) -> None:
        controller.register_adapter("sepolia", make_adapter("sepolia"))
        controller.register_adapter("kasplex", make_adapter("kasplex"))
        await controller.initialize_adapters()

        report = await controller.run_finality_test(CampaignConfig(transaction_count=3))

        assert controller.state is ControllerState.IDLE
        assert report.session_name == "test-session"
        assert set(report.results) == {"sepolia", "kasplex"}
        sepolia = report.results["sepolia"]
        assert sepolia.success_count == 3
        assert sepolia.failures == []
        assert sepolia.initial_conditions is not None
        assert sepolia.final_mev_conditions is not None
        assert sepolia.reorg_stats is not None
        assert sepolia.adapter_stats is not None
        assert sepolia.adapter_stats.total_transactions == 3
        cost = sepolia.measurements[0].cost
        assert cost is not None
        assert cost.total_cost == 21_000 * gwei_to_wei(25)
        assert report.results["kasplex"].measurements[0].cost.currency == "KAS"
        assert len(sink.for_network("sepolia")) == 3
        assert len(sink.for_network("kasplex")) == 3
        assert sink.errors == []
        assert sorted(report.analysis.ranking) == ["kasplex", "sepolia"]
        assert report.analysis.overall.total_measurements == 6
        assert controller.get_status()["last_config"]["transaction_count"] == 3

    @pytest.mark.asyncio
    async def test_hung_measurement_times_out_and_campaign_continues(
        self, sink: InMemoryMeasurementSink
    ) -> None:
        controller = FinalityController(
            session_name="timeouts",
            measurement_delay=0.0,
            measurement_timeout=0.2,
            sink=sink,
        )
        client = HangingLedgerClient(f"0x{3:064x}", gas_price=gwei_to_wei(25))
        controller.register_adapter("sepolia", make_adapter("sepolia", client))

        report = await controller.run_finality_test(CampaignConfig(transaction_count=5))

        result = report.results["sepolia"]
        assert result.success_count == 4
        assert [f.index for f in result.failures] == [3]
        assert "timeout after 0.2s" in result.failures[0].error
        assert result.success_rate == 80.0
        assert [(e.context, e.error_detail[:3]) for e in sink.errors] == [
            ("finality_measurement", "#3:")
        ]
        assert len(sink.measurements) == 4
        assert result.adapter_stats is not None
        assert result.adapter_stats.total_transactions == 5
        assert result.adapter_stats.failed_transactions == 1

    @pytest.mark.asyncio
    async def test_submission_timeout_keeps_its_own_message(
        self, sink: InMemoryMeasurementSink
    ) -> None:
        controller = FinalityController(
            session_name="slow-node", measurement_delay=0.0, measurement_timeout=5.0, sink=sink
        )
        adapter = make_adapter()
        adapter.client.errors["send_transaction"] = TimeoutError("node did not answer")
        controller.register_adapter("sepolia", adapter)

        report = await controller.run_finality_test(CampaignConfig(transaction_count=1))

        failure = report.results["sepolia"].failures[0]
        assert failure.error == "node did not answer"
        assert "timeout after 5.0s" not in failure.error

    @pytest.mark.asyncio
    async def test_failed_measurement_is_recorded_as_failure(
        self, controller: FinalityController, sink: InMemoryMeasurementSink
    ) -> None:
        adapter = make_adapter()
        adapter.client.revert_next = True
        controller.register_adapter("sepolia", adapter)

        report = await controller.run_finality_test(CampaignConfig(transaction_count=2))

        result = report.results["sepolia"]
        assert result.success_count == 1
        assert result.failures[0].index == 1
        assert "reverted" in result.failures[0].error
        assert all(m.success for m in result.measurements)
        assert "reverted" in sink.errors[0].error_detail

    @pytest.mark.asyncio
    async def test_concurrent_campaign_settles_per_network(
        self, controller: FinalityController, sink: InMemoryMeasurementSink
    ) -> None:
        broken = FakeLedgerClient(chain_id=167012)
        broken.errors["get_block"] = RuntimeError("boom")
        controller.register_adapter("sepolia", make_adapter("sepolia"))
        controller.register_adapter("kasplex", make_adapter("kasplex", broken))

        report = await controller.run_finality_test(
            CampaignConfig(transaction_count=2, concurrent=True)
        )

        assert report.results["sepolia"].success_count == 2
        assert report.results["kasplex"].error == "boom"
        assert list(report.analysis.networks) == ["sepolia"]
        assert [(e.network, e.context) for e in sink.errors] == [("kasplex", "network_test")]
        assert controller.state is ControllerState.IDLE

    @pytest.mark.asyncio
    async def test_selected_networks_and_threshold(self, controller: FinalityController) -> None:
        controller.register_adapter("sepolia", make_adapter("sepolia"))
        controller.register_adapter("igra", make_adapter("igra"))

        report = await controller.run_finality_test(
            CampaignConfig(networks=["igra"], transaction_count=1, finality_threshold=2)
        )

        assert list(report.results) == ["igra"]
        measurement = report.results["igra"].measurements[0]
        assert measurement.base_threshold == 2
        assert measurement.adjusted_threshold == 2

    @pytest.mark.asyncio
    async def test_high_mev_adds_premium(self, controller: FinalityController) -> None:
        controller.register_adapter("sepolia", make_adapter("sepolia", mev_score=85))

        report = await controller.run_finality_test(CampaignConfig(transaction_count=1))

        measurement = report.results["sepolia"].measurements[0]
        assert measurement.adjusted_threshold == 20
        assert measurement.cost is not None
        assert measurement.cost.mev_premium > 0
        assert report.analysis.mev_impact.mev_adjusted_count == 1
        assert report.analysis.mev_impact.high_mev_periods == 1


class TestCleanup:
    """Tests for controller cleanup."""

    @pytest.mark.asyncio
    async def test_cleanup_closes_everything(self, controller: FinalityController) -> None:
        adapter = make_adapter()
        controller.register_adapter("sepolia", adapter)
        await controller.initialize_adapters()

        await controller.cleanup()

        assert adapter.client.closed
        assert not adapter.mev_monitor.monitoring_active
        assert controller.adapters == {}
        assert controller.state is ControllerState.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_cleanup_continues_past_failures(self, controller: FinalityController) -> None:
        failing, healthy = make_adapter("sepolia"), make_adapter("kasplex")
        failing.cleanup = AsyncMock(side_effect=RuntimeError("already closed"))
        controller.register_adapter("sepolia", failing)
        controller.register_adapter("kasplex", healthy)

        await controller.cleanup()

        failing.cleanup.assert_awaited_once()
        assert healthy.client.closed
        assert controller.adapters == {}
