"""MEV-aware adapter for Ethereum-compatible networks."""

import asyncio

from datetime import UTC, datetime

from typing import TYPE_CHECKING, TypeVar

from src.adapters.base import adjust_threshold_for_mev
from src.adapters.models import (
    AdapterSnapshot,
    AdapterStats,
    CongestionEstimate,
    CongestionLevel,
    FinalityThresholds,
    GasOverrides,
    HealthStatus,
    NetworkConditions,
    TransactionHandle,
    TransactionPayload,
)
from src.finality.models import FinalityMeasurement
from src.helpers import timer
from src.helpers.errors import (
    AdapterConnectionError,
    TransactionNotFoundError,
    TransactionRevertedError,
)
from src.helpers.logging import get_logger
from src.helpers.models import TransactionRequest
from src.helpers.parsers import wei_to_eth, wei_to_gwei
from src.helpers.retry import with_retry
from src.mev.activity_monitor import MevActivityMonitor
from src.mev.reorg_monitor import ReorganizationMonitor


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.adapters.base import MevSource, ReorgSource
    from src.adapters.ledger import LedgerClient
    from src.adapters.models import NetworkConfig
    from src.adapters.profiles import NetworkProfile
    from src.helpers.models import LedgerBlock, TransactionReceipt
    from src.mev.models import MevConditions, ReorgStats


logger = get_logger(__name__)

T = TypeVar("T")


class EvmAdapter:
    """Wraps a ledger client with one network family's policies.

    Gas formulas, congestion constants, thresholds and retry behaviour all
    come from the :class:`NetworkProfile`; the adapter itself holds the
    measurement algorithm and the running :class:`AdapterStats`.

    Example:
        ```python
        from src.adapters.profiles import KASPLEX
        from src.helpers.rpc import RPCClient

        client = RPCClient(rpc_url, private_key=private_key)
        adapter = EvmAdapter("kasplex", KASPLEX, client)
        await adapter.initialize()
        await adapter.start_mev_monitoring()

        handle = await adapter.submit_transaction()
        measurement = await adapter.measure_finality(handle.tx_hash)
        ```
    """

    def __init__(
        self,
        network_name: str,
        profile: NetworkProfile,
        client: LedgerClient,
        *,
        expected_chain_id: int | None = None,
        config: NetworkConfig | None = None,
        mev_monitor: MevSource | None = None,
        reorg_monitor: ReorgSource | None = None,
    ) -> None:
        self.network_name = network_name
        self.profile = profile
        self.client = client
        self.expected_chain_id = expected_chain_id
        self.config = config or profile.config_for(network_name, expected_chain_id)
        self.chain_id: int | None = None
        self.stats = AdapterStats()
        self.mev_monitor = mev_monitor
        self.reorg_monitor = reorg_monitor

    @property
    def currency(self) -> str:
        return self.profile.currency

    @property
    def finality_thresholds(self) -> FinalityThresholds:
        return self.profile.thresholds_for(self.config)

    def get_gas_strategies(self) -> dict[str, GasOverrides]:
        """Named gas presets (economy, standard, fast, mev_protected)."""
        return self.profile.strategies_for(self.config)

    async def _retry(self, operation: Callable[[], Awaitable[T]], name: str) -> T:
        return await with_retry(
            operation,
            self.profile.retry_config(self.config),
            operation_name=f"{self.network_name} {name}",
        )

    async def initialize(self) -> None:
        """Connect, verify the chain id and log the starting conditions.

        Raises:
            AdapterConnectionError: If the network cannot be reached
        """
        try:
            conditions = await asyncio.wait_for(self._connect(), self.config.timeout)
        except Exception as e:
            logger.error("Failed to initialize %s adapter: %s", self.network_name, e)
            raise AdapterConnectionError(self.network_name, str(e) or type(e).__name__) from e

        logger.info(
            "Initialized %s adapter (chain id %s, block %d, gas %.4f gwei, balance %.6f %s)",
            self.network_name,
            self.chain_id,
            conditions.block_number,
            wei_to_gwei(conditions.gas_price),
            wei_to_eth(conditions.balance),
            self.profile.currency,
        )

    async def _connect(self) -> NetworkConditions:
        self.chain_id = await self.client.get_chain_id()

        expected = self.expected_chain_id or self.config.chain_id
        if expected is not None and self.chain_id != expected:
            logger.warning(
                "%s: expected chain id %d, got %d", self.network_name, expected, self.chain_id
            )
        self.config = self.profile.refine_for_chain(self.config, self.chain_id)

        conditions = await self.get_network_conditions()
        min_balance = self.profile.min_balance
        if min_balance is not None and conditions.balance < min_balance:
            logger.warning(
                "Low balance on %s: %.6f %s",
                self.network_name,
                wei_to_eth(conditions.balance),
                self.profile.currency,
            )
        return conditions

    async def start_mev_monitoring(self) -> None:
        """Start (creating if needed) this adapter's MEV and reorg monitors."""
        if self.mev_monitor is None:
            self.mev_monitor = MevActivityMonitor(
                self.network_name,
                self.client,
                interval=self.profile.congestion.expected_block_time,
            )
        if self.reorg_monitor is None:
            self.reorg_monitor = ReorganizationMonitor(self.network_name, self.client)

        await self.mev_monitor.start_monitoring()
        await self.reorg_monitor.start_monitoring()
        logger.info("MEV monitoring initialized for %s", self.network_name)

    async def stop_mev_monitoring(self) -> None:
        if self.mev_monitor is not None:
            await self.mev_monitor.stop_monitoring()
        if self.reorg_monitor is not None:
            await self.reorg_monitor.stop_monitoring()

    async def submit_transaction(
        self, payload: TransactionPayload | None = None
    ) -> TransactionHandle:
        """Send a minimal transaction (a zero-value self transfer by default)."""
        payload = payload or TransactionPayload()
        overrides = await self.get_gas_overrides()
        to = payload.to or await self.client.get_address()
        request = TransactionRequest(
            to=to,
            value=payload.value,
            data=payload.data,
            gas_price=overrides.gas_price,
            gas_limit=overrides.gas_limit,
            chain_id=self.chain_id,
        )

        tx_hash = await self._retry(
            lambda: asyncio.wait_for(
                self.client.send_transaction(request), self.config.timeout
            ),
            "send_transaction",
        )
        explorer_url = self.get_explorer_url(tx_hash=tx_hash)
        logger.info(
            "%s transaction submitted: %s%s",
            self.network_name,
            tx_hash,
            f" ({explorer_url})" if explorer_url else "",
        )
        return TransactionHandle(
            tx_hash=tx_hash,
            network=self.network_name,
            gas_price=overrides.gas_price,
            gas_limit=overrides.gas_limit,
            explorer_url=explorer_url,
        )

    async def wait_for_confirmation(
        self, tx_hash: str, confirmations: int = 1
    ) -> TransactionReceipt:
        """Block until ``tx_hash`` has ``confirmations`` confirmations.

        Raises:
            TransactionNotFoundError: If no receipt is returned
            TransactionRevertedError: If the transaction was mined with status 0
            ConfirmationTimeoutError: If every attempt timed out
        """

        async def wait() -> TransactionReceipt:
            receipt = await self.client.wait_for_transaction(
                tx_hash, confirmations, self.config.timeout
            )
            if receipt is None:
                raise TransactionNotFoundError(tx_hash)
            if not receipt.succeeded:
                raise TransactionRevertedError(tx_hash)
            return receipt

        return await self._retry(wait, "wait_for_confirmation")

    async def get_network_conditions(self) -> NetworkConditions:
        """Gas price, head block, balance and a congestion estimate."""

        async def fetch() -> NetworkConditions:
            block = await self.client.get_block("latest")
            if block is None:
                msg = f"{self.network_name} returned no latest block"
                raise ValueError(msg)
            gas_price = await self.client.get_gas_price()
            balance = await self.client.get_balance()
            return NetworkConditions(
                block_number=block.number,
                timestamp=block.timestamp,
                gas_price=gas_price,
                base_fee=block.base_fee_per_gas,
                balance=balance,
                congestion=await self.estimate_network_congestion(block, gas_price),
                currency=self.profile.currency,
            )

        return await self._retry(fetch, "get_network_conditions")

    async def estimate_network_congestion(
        self, block: LedgerBlock, gas_price: int | None = None
    ) -> CongestionEstimate:
        """0-100 congestion from gas deviation, utilization and block time.

        Falls back to the profile's neutral estimate when the inputs cannot
        be fetched.
        """
        model = self.profile.congestion
        try:
            if gas_price is None:
                gas_price = await self.client.get_gas_price()
            block_time = None
            if block.number > 0:
                parent = await self.client.get_block(block.number - 1)
                if parent is not None:
                    block_time = float(block.timestamp - parent.timestamp)
        except Exception as e:
            logger.warning(
                "Could not estimate %s network congestion: %s", self.network_name, e
            )
            return CongestionEstimate(
                score=model.fallback_score,
                level=CongestionLevel.UNKNOWN,
                network_type=self.profile.detector_network_type,
            )

        score = model.score(gas_price, self.config.gas_price, block.utilization, block_time)
        return CongestionEstimate(
            score=score,
            level=model.level(score),
            gas_price_gwei=wei_to_gwei(gas_price),
            block_utilization=block.utilization,
            block_time=block_time,
            network_type=self.profile.detector_network_type,
        )

    async def get_gas_overrides(self) -> GasOverrides:
        """Gas price/limit for the next submission under current conditions."""
        try:
            live_gas_price = await self.client.get_gas_price()
        except Exception as e:
            logger.warning(
                "Could not get optimal %s gas overrides: %s", self.network_name, e
            )
            return GasOverrides(
                gas_price=self.config.gas_price,
                gas_limit=self.config.gas_limit,
            )

        mev_score = self.mev_monitor.get_current_score() if self.mev_monitor else 0
        return self.profile.gas_policy.apply(self.config, live_gas_price, mev_score)

    async def get_current_mev_conditions(self) -> MevConditions | None:
        if self.mev_monitor is None:
            return None
        return await self.mev_monitor.get_current_conditions()

    def get_reorganization_stats(self) -> ReorgStats | None:
        if self.reorg_monitor is None:
            return None
        return self.reorg_monitor.get_reorganization_stats()

    async def measure_finality(
        self, tx_hash: str, threshold: int | None = None
    ) -> FinalityMeasurement:
        """Measure how long ``tx_hash`` takes to reach an MEV-adjusted depth.

        Never raises for a failed wait: the returned measurement carries the
        error and elapsed time so a campaign can continue.
        """
        started_at = datetime.now(UTC)
        start = timer.now()
        base_threshold = threshold or self.finality_thresholds.standard
        adjusted_threshold = base_threshold
        initial_mev: MevConditions | None = None

        try:
            initial_mev = await self.get_current_mev_conditions()
            mev_score = initial_mev.current_score if initial_mev else 0

            confirmation_start = timer.now()
            receipt = await self.wait_for_confirmation(tx_hash, 1)
            confirmation_time = timer.elapsed_ms(confirmation_start)
            if self.reorg_monitor is not None:
                await self.reorg_monitor.observe_block(receipt.block_number)

            adjusted_threshold = adjust_threshold_for_mev(base_threshold, mev_score)
            if adjusted_threshold > base_threshold:
                logger.info(
                    "%s: MEV score %d raised finality threshold %d -> %d",
                    self.network_name,
                    mev_score,
                    base_threshold,
                    adjusted_threshold,
                )

            finality_start = timer.now()
            await self.wait_for_confirmation(tx_hash, adjusted_threshold)
            finality_time = timer.elapsed_ms(finality_start)

            reorg_event = None
            if self.reorg_monitor is not None:
                check = await self.reorg_monitor.detect_reorganization(
                    tx_hash, receipt.block_number
                )
                reorg_event = check.event
                if check.reorg_detected:
                    logger.warning(
                        "Reorganization detected during finality measurement: %s", tx_hash
                    )

            final_mev = await self.get_current_mev_conditions()
        except Exception as e:
            self.stats.record_failure()
            logger.error("Finality measurement failed on %s: %s", self.network_name, e)
            return FinalityMeasurement(
                tx_hash=tx_hash,
                network_name=self.network_name,
                started_at=started_at,
                base_threshold=base_threshold,
                adjusted_threshold=adjusted_threshold,
                total_time=timer.elapsed_ms(start),
                initial_mev_conditions=initial_mev,
                success=False,
                error=str(e) or type(e).__name__,
            )

        measurement = FinalityMeasurement(
            tx_hash=tx_hash,
            network_name=self.network_name,
            started_at=started_at,
            base_threshold=base_threshold,
            adjusted_threshold=adjusted_threshold,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
            effective_gas_price=receipt.effective_gas_price,
            confirmation_time=confirmation_time,
            finality_time=finality_time,
            total_time=timer.elapsed_ms(start),
            initial_mev_conditions=initial_mev,
            final_mev_conditions=final_mev,
            reorg_detected=reorg_event is not None,
            reorg_event=reorg_event,
        )
        self.stats.record_success(
            finality_time, mev_adjusted=adjusted_threshold > base_threshold
        )
        logger.info(
            "Finality measured on %s: %s (%d confirmations)",
            self.network_name,
            timer.format_timing(finality_time),
            adjusted_threshold,
        )
        return measurement

    async def health_check(self) -> HealthStatus:
        health = HealthStatus(network=self.network_name)
        try:
            health.block_number = await self.client.get_block_number()
            health.chain_id = await self.client.get_chain_id()
            health.rpc_connected = True
        except Exception as e:
            health.last_error = str(e) or type(e).__name__
        health.mev_monitoring = bool(
            self.mev_monitor is not None and self.mev_monitor.monitoring_active
        )
        return health

    async def cleanup(self) -> None:
        """Stop the monitors and close the ledger client."""
        await self.stop_mev_monitoring()
        await self.client.aclose()
        logger.info("Cleaned up resources for %s", self.network_name)

    def get_explorer_url(
        self, tx_hash: str | None = None, address: str | None = None
    ) -> str | None:
        base_url = self.profile.explorer_url
        if base_url is None:
            return None
        if tx_hash:
            return f"{base_url}/tx/{tx_hash}"
        if address:
            return f"{base_url}/address/{address}"
        return base_url

    def export_state(self) -> AdapterSnapshot:
        return AdapterSnapshot(
            network_name=self.network_name,
            chain_id=self.chain_id,
            config=self.config,
            thresholds=self.finality_thresholds,
            gas_strategies=self.get_gas_strategies(),
            stats=self.stats.model_copy(),
            mev=self.mev_monitor.export_data() if self.mev_monitor else None,
            reorg=self.reorg_monitor.export_data() if self.reorg_monitor else None,
        )


__all__ = [
    "EvmAdapter",
]
