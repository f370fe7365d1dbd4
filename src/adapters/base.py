"""Network adapter capability and the MEV-aware threshold rule."""

from typing import TYPE_CHECKING, Protocol


if TYPE_CHECKING:
    from src.adapters.models import (
        AdapterSnapshot,
        AdapterStats,
        FinalityThresholds,
        GasOverrides,
        HealthStatus,
        NetworkConditions,
        NetworkConfig,
        TransactionHandle,
        TransactionPayload,
    )
    from src.finality.models import FinalityMeasurement
    from src.helpers.models import TransactionReceipt
    from src.mev.models import (
        MevConditions,
        MevSnapshot,
        ReorgCheck,
        ReorgSnapshot,
        ReorgStats,
    )


MEV_THRESHOLD_BANDS = ((80, 8), (60, 5), (40, 2))
"""(minimum score, extra confirmations) checked in order"""


def adjust_threshold_for_mev(base_threshold: int, mev_score: int) -> int:
    """Raise a confirmation target when MEV pressure is elevated.

    Example:
        >>> adjust_threshold_for_mev(12, 85)
        20
        >>> adjust_threshold_for_mev(6, 10)
        6
    """
    for minimum, extra in MEV_THRESHOLD_BANDS:
        if mev_score >= minimum:
            return base_threshold + extra
    return base_threshold


class MevSource(Protocol):
    """What an adapter needs from an MEV activity monitor."""

    @property
    def monitoring_active(self) -> bool: ...

    async def start_monitoring(self) -> None: ...

    async def stop_monitoring(self) -> None: ...

    def get_current_score(self) -> int: ...

    async def get_current_conditions(self) -> MevConditions: ...

    def export_data(self) -> MevSnapshot: ...


class ReorgSource(Protocol):
    """What an adapter needs from a reorganization monitor."""

    @property
    def monitoring_active(self) -> bool: ...

    async def start_monitoring(self) -> None: ...

    async def stop_monitoring(self) -> None: ...

    async def observe_block(self, block_number: int) -> None: ...

    async def detect_reorganization(self, tx_hash: str, block_number: int) -> ReorgCheck: ...

    def get_reorganization_stats(self) -> ReorgStats: ...

    def export_data(self) -> ReorgSnapshot: ...


class NetworkAdapter(Protocol):
    """Uniform view of one network for the finality controller."""

    network_name: str
    config: NetworkConfig
    stats: AdapterStats

    @property
    def currency(self) -> str: ...

    @property
    def finality_thresholds(self) -> FinalityThresholds: ...

    async def initialize(self) -> None: ...

    async def start_mev_monitoring(self) -> None: ...

    async def stop_mev_monitoring(self) -> None: ...

    async def submit_transaction(
        self, payload: TransactionPayload | None = None
    ) -> TransactionHandle: ...

    async def wait_for_confirmation(
        self, tx_hash: str, confirmations: int = 1
    ) -> TransactionReceipt: ...

    async def get_network_conditions(self) -> NetworkConditions: ...

    async def get_gas_overrides(self) -> GasOverrides: ...

    async def measure_finality(
        self, tx_hash: str, threshold: int | None = None
    ) -> FinalityMeasurement: ...

    async def get_current_mev_conditions(self) -> MevConditions | None: ...

    def get_reorganization_stats(self) -> ReorgStats | None: ...

    async def health_check(self) -> HealthStatus: ...

    async def cleanup(self) -> None: ...

    def export_state(self) -> AdapterSnapshot: ...


__all__ = [
    "MEV_THRESHOLD_BANDS",
    "MevSource",
    "NetworkAdapter",
    "ReorgSource",
    "adjust_threshold_for_mev",
]
