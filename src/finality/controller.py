"""Drives finality measurement campaigns across registered network adapters.

Usage:
    ```python
    controller = FinalityController(session_name="l2-vs-l1")
    controller.register_adapter("sepolia", sepolia_adapter)
    controller.register_adapter("kasplex", kasplex_adapter)

    await controller.initialize_adapters()
    report = await controller.run_finality_test(CampaignConfig(transaction_count=5))
    await controller.cleanup()
    ```
"""

from datetime import UTC, datetime
from enum import StrEnum

from typing import TYPE_CHECKING, Any

import asyncio

from src.finality.analysis import build_cross_network_analysis
from src.finality.models import (
    CampaignConfig,
    CampaignReport,
    CostBreakdown,
    FinalityMeasurement,
    MeasurementFailure,
    NetworkCampaignResult,
)
from src.finality.sink import InMemoryMeasurementSink
from src.helpers import timer
from src.helpers.constants import (
    MEASUREMENT_DELAY,
    MEASUREMENT_TIMEOUT,
    MEV_PREMIUM_PERCENT,
    MEV_PREMIUM_SCORE,
)
from src.helpers.errors import (
    AdapterNotRegisteredError,
    FinalityError,
    MeasurementTimeoutError,
)
from src.helpers.logging import get_logger
from src.helpers.parsers import scale_wei
from src.helpers.progress import track_progress


if TYPE_CHECKING:
    from src.adapters.base import NetworkAdapter
    from src.adapters.models import HealthStatus, TransactionHandle
    from src.finality.sink import MeasurementSink


logger = get_logger(__name__)


class ControllerState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    RUNNING = "running"
    IDLE = "idle"


def calculate_costs(
    handle: TransactionHandle,
    measurement: FinalityMeasurement,
    currency: str = "ETH",
) -> CostBreakdown | None:
    """Price a successful measurement in wei.

    The MEV premium is an estimate: a fixed share of the actual cost when the
    MEV score sampled at submission was elevated.

    Returns:
        None when the receipt did not report gas usage
    """
    if measurement.gas_used is None:
        return None

    effective_gas_price = measurement.effective_gas_price or handle.gas_price
    base_cost = measurement.gas_used * handle.gas_price
    actual_cost = measurement.gas_used * effective_gas_price
    mev_premium = (
        scale_wei(actual_cost, MEV_PREMIUM_PERCENT)
        if measurement.initial_mev_score > MEV_PREMIUM_SCORE
        else 0
    )
    finality_seconds = (measurement.finality_time or 0.0) / 1000
    return CostBreakdown(
        gas_used=measurement.gas_used,
        gas_price=handle.gas_price,
        effective_gas_price=effective_gas_price,
        base_cost=base_cost,
        actual_cost=actual_cost,
        gas_premium=actual_cost - base_cost,
        mev_premium=mev_premium,
        cost_per_second=actual_cost / finality_seconds if finality_seconds > 0 else None,
        currency=currency,
    )


class FinalityController:
    """Registers adapters and runs measurement campaigns against them.

    State moves ``uninitialized -> initialized -> running -> idle`` and a
    campaign can be re-run from ``idle``. Measurements and errors are
    appended to ``sink``; the controller never reads them back.
    """

    def __init__(
        self,
        *,
        session_name: str | None = None,
        mev_aware: bool = True,
        show_progress: bool = False,
        measurement_delay: float = MEASUREMENT_DELAY,
        measurement_timeout: float = MEASUREMENT_TIMEOUT,
        sink: MeasurementSink | None = None,
    ) -> None:
        self.session_name = session_name or datetime.now(UTC).strftime(
            "finality-%Y%m%d-%H%M%S"
        )
        self.mev_aware = mev_aware
        self.show_progress = show_progress
        self.measurement_delay = measurement_delay
        self.measurement_timeout = measurement_timeout
        self.sink: MeasurementSink = sink if sink is not None else InMemoryMeasurementSink()
        self.adapters: dict[str, NetworkAdapter] = {}
        self.network_metadata: dict[str, dict[str, Any]] = {}
        self.state = ControllerState.UNINITIALIZED
        self.last_config: CampaignConfig | None = None

    @property
    def is_running(self) -> bool:
        return self.state == ControllerState.RUNNING

    def register_adapter(self, network_name: str, adapter: NetworkAdapter) -> None:
        self.adapters[network_name] = adapter
        self.network_metadata[network_name] = {
            "chain_id": adapter.config.chain_id,
            "block_confirmation_target": adapter.config.block_confirmation_target,
            "mev_baseline": adapter.config.mev_baseline,
        }
        logger.info("Registered network adapter: %s", network_name)

    async def _initialize_adapter(self, network_name: str, adapter: NetworkAdapter) -> None:
        try:
            await adapter.initialize()
            if self.mev_aware:
                await adapter.start_mev_monitoring()
        except Exception as e:
            logger.error("Failed to initialize adapter %s: %s", network_name, e)
            raise
        logger.info("Initialized adapter: %s", network_name)

    async def initialize_adapters(self) -> None:
        """Initialize every adapter concurrently. Any failure aborts the whole call."""
        if not self.adapters:
            msg = "No network adapters registered"
            raise FinalityError(msg)

        await asyncio.gather(
            *(
                self._initialize_adapter(name, adapter)
                for name, adapter in self.adapters.items()
            )
        )
        self.state = ControllerState.INITIALIZED
        logger.info("All %d network adapters initialized", len(self.adapters))

    async def run_health_checks(self) -> dict[str, HealthStatus]:
        """Check every adapter concurrently. Unhealthy adapters are only logged."""
        names = list(self.adapters)
        statuses = await asyncio.gather(
            *(self.adapters[name].health_check() for name in names)
        )
        health = dict(zip(names, statuses, strict=True))
        for name, status in health.items():
            if status.rpc_connected:
                logger.info("%s: connected (block %s)", name, status.block_number)
            else:
                logger.error("%s: connection failed - %s", name, status.last_error)
        return health

    async def _submit_and_measure(
        self, adapter: NetworkAdapter, threshold: int | None
    ) -> tuple[TransactionHandle, FinalityMeasurement]:
        handle = await adapter.submit_transaction()
        measurement = await adapter.measure_finality(handle.tx_hash, threshold)
        return handle, measurement

    async def _measure_once(
        self, network_name: str, adapter: NetworkAdapter, threshold: int | None
    ) -> FinalityMeasurement:
        bound = asyncio.timeout(self.measurement_timeout)
        try:
            async with bound:
                handle, measurement = await self._submit_and_measure(adapter, threshold)
        except TimeoutError as e:
            if not bound.expired():
                raise
            adapter.stats.record_failure()
            raise MeasurementTimeoutError(network_name, self.measurement_timeout) from e

        if not measurement.success:
            return measurement
        cost = calculate_costs(handle, measurement, adapter.currency)
        return measurement.model_copy(update={"cost": cost})

    async def run_network_test(
        self, network_name: str, config: CampaignConfig
    ) -> NetworkCampaignResult:
        """Run ``config.transaction_count`` sequential measurements on one network."""
        adapter = self.adapters[network_name]
        result = NetworkCampaignResult(network=network_name)
        count = config.transaction_count

        logger.info("Starting %d measurements on %s", count, network_name)
        result.initial_conditions = await adapter.get_network_conditions()

        with track_progress(
            f"{network_name} finality",
            total=count,
            show_time_remaining=False,
            enabled=self.show_progress,
        ) as (progress, task):
            for index in range(1, count + 1):
                logger.debug("%s measurement %d/%d", network_name, index, count)
                start = timer.now()
                try:
                    measurement = await self._measure_once(
                        network_name, adapter, config.finality_threshold
                    )
                    if not measurement.success:
                        raise FinalityError(measurement.error or "measurement failed")
                except Exception as e:
                    error = str(e) or type(e).__name__
                    logger.error(
                        "%s measurement %d failed: %s", network_name, index, error
                    )
                    result.failures.append(MeasurementFailure(index=index, error=error))
                    await self.sink.record_error(
                        network_name, "finality_measurement", f"#{index}: {error}"
                    )
                else:
                    result.measurements.append(measurement)
                    await self.sink.record_measurement(network_name, measurement)
                    finality = timer.format_timing(measurement.finality_time or 0.0)
                    logger.info(
                        "%s measurement %d: %s finality (%s total)",
                        network_name,
                        index,
                        finality,
                        timer.format_timing(timer.elapsed_ms(start)),
                    )
                    progress.update(task, last_finality=finality)

                progress.update(task, advance=1)
                if index < count and self.measurement_delay > 0:
                    await asyncio.sleep(self.measurement_delay)

        result.adapter_stats = adapter.stats.model_copy()
        result.final_mev_conditions = await adapter.get_current_mev_conditions()
        result.reorg_stats = adapter.get_reorganization_stats()
        logger.info(
            "%s completed: %d/%d successful",
            network_name,
            result.success_count,
            count,
        )
        return result

    async def _run_network_settled(
        self, network_name: str, config: CampaignConfig
    ) -> NetworkCampaignResult:
        try:
            return await self.run_network_test(network_name, config)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error("Finality test on %s failed: %s", network_name, error)
            await self.sink.record_error(network_name, "network_test", error)
            return NetworkCampaignResult(network=network_name, error=error)

    async def run_finality_test(
        self, config: CampaignConfig | None = None
    ) -> CampaignReport:
        """Run a campaign and return raw results plus the cross-network analysis.

        Raises:
            FinalityError: If no adapters are registered or a campaign is already running
            AdapterNotRegisteredError: If ``config.networks`` names an unknown network
        """
        config = config or CampaignConfig()
        if not self.adapters:
            msg = "No network adapters registered"
            raise FinalityError(msg)
        if self.is_running:
            msg = "A finality test is already running"
            raise FinalityError(msg)

        networks = config.networks or list(self.adapters)
        for name in networks:
            if name not in self.adapters:
                raise AdapterNotRegisteredError(name)

        self.last_config = config
        self.state = ControllerState.RUNNING
        started_at = datetime.now(UTC)
        logger.info(
            "Starting finality test %s on %s (%d transactions each, MEV awareness %s)",
            self.session_name,
            ", ".join(networks),
            config.transaction_count,
            "enabled" if self.mev_aware else "disabled",
        )

        try:
            await self.run_health_checks()
            if config.concurrent:
                outcomes = await asyncio.gather(
                    *(self._run_network_settled(name, config) for name in networks)
                )
                results = {r.network: r for r in outcomes}
            else:
                results = {}
                for name in networks:
                    results[name] = await self._run_network_settled(name, config)
        finally:
            self.state = ControllerState.IDLE

        analysis = build_cross_network_analysis(results)
        report = CampaignReport(
            session_name=self.session_name,
            started_at=started_at,
            results=results,
            analysis=analysis,
        )
        logger.info(
            "Finality test %s completed: %d measurements, ranking %s",
            self.session_name,
            analysis.overall.total_measurements,
            analysis.ranking,
        )
        return report

    def get_status(self) -> dict[str, Any]:
        return {
            "session_name": self.session_name,
            "state": self.state,
            "is_running": self.is_running,
            "registered_networks": list(self.adapters),
            "network_metadata": self.network_metadata,
            "mev_aware": self.mev_aware,
            "last_config": self.last_config.model_dump() if self.last_config else None,
        }

    async def cleanup(self) -> None:
        """Clean up every adapter; individual failures are logged, not raised."""
        for network_name, adapter in self.adapters.items():
            try:
                await adapter.cleanup()
            except Exception as e:
                logger.error("Failed to clean up adapter %s: %s", network_name, e)

        self.adapters.clear()
        self.network_metadata.clear()
        self.state = ControllerState.UNINITIALIZED
        logger.info("Finality controller cleanup completed")


__all__ = [
    "ControllerState",
    "FinalityController",
    "calculate_costs",
]
