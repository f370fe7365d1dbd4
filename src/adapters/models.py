"""Configuration, statistics and status records for network adapters."""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from src.helpers.constants import CONFIRMATION_TIMEOUT
from src.helpers.retry import RetryConfig
from src.mev.models import MevSnapshot, ReorgSnapshot


def _utc_now() -> datetime:
    return datetime.now(UTC)


class NetworkConfig(BaseModel):
    """Per-adapter network tuning. Amounts are wei, durations seconds."""

    name: str
    chain_id: int | None = None
    gas_price: int = Field(..., gt=0, description="Base gas price in wei")
    gas_limit: int = Field(..., gt=0)
    block_confirmation_target: int = Field(..., ge=1)
    mev_baseline: int = Field(default=0, ge=0, le=100)
    timeout: float = Field(default=CONFIRMATION_TIMEOUT, gt=0)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    model_config = ConfigDict(frozen=True)


class FinalityThresholds(BaseModel):
    """Confirmation counts for each finality tier."""

    immediate: int = 1
    standard: int
    safe: int
    finalized: int

    model_config = ConfigDict(frozen=True)


class GasOverrides(BaseModel):
    """Gas settings applied to a submitted transaction."""

    gas_price: int = Field(..., gt=0)
    gas_limit: int = Field(..., gt=0)
    max_wait_time: float | None = Field(default=None, description="Seconds")

    model_config = ConfigDict(frozen=True)


class AdapterStats(BaseModel):
    """Running counters for one adapter. Counts only ever increase."""

    total_transactions: int = 0
    successful_transactions: int = 0
    failed_transactions: int = 0
    total_finality_time: float = Field(default=0.0, description="Milliseconds")
    mev_adjustments: int = 0

    def record_success(self, finality_time: float, *, mev_adjusted: bool) -> None:
        self.total_transactions += 1
        self.successful_transactions += 1
        self.total_finality_time += finality_time
        if mev_adjusted:
            self.mev_adjustments += 1

    def record_failure(self) -> None:
        self.total_transactions += 1
        self.failed_transactions += 1

    @computed_field
    @property
    def average_finality_time(self) -> float:
        if not self.successful_transactions:
            return 0.0
        return self.total_finality_time / self.successful_transactions

    @computed_field
    @property
    def success_rate(self) -> float:
        if not self.successful_transactions:
            return 0.0
        return self.successful_transactions / self.total_transactions * 100

    @computed_field
    @property
    def mev_adjustment_rate(self) -> float:
        if not self.successful_transactions:
            return 0.0
        return self.mev_adjustments / self.successful_transactions * 100


class CongestionLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class CongestionEstimate(BaseModel):
    score: float = Field(..., ge=0, le=100)
    level: CongestionLevel
    gas_price_gwei: float = 0.0
    block_utilization: float = 0.0
    block_time: float | None = Field(default=None, description="Seconds")
    network_type: str


class NetworkConditions(BaseModel):
    block_number: int
    timestamp: int
    gas_price: int
    base_fee: int | None = None
    balance: int
    congestion: CongestionEstimate
    currency: str


class HealthStatus(BaseModel):
    network: str
    rpc_connected: bool = False
    block_number: int | None = None
    chain_id: int | None = None
    mev_monitoring: bool = False
    last_error: str | None = None


class TransactionPayload(BaseModel):
    """Minimal transaction to submit; ``to`` defaults to the sender."""

    to: str | None = None
    value: int = 0
    data: str = "0x"


class TransactionHandle(BaseModel):
    tx_hash: str
    network: str
    submitted_at: datetime = Field(default_factory=_utc_now)
    gas_price: int
    gas_limit: int
    explorer_url: str | None = None

    model_config = ConfigDict(frozen=True)


class AdapterSnapshot(BaseModel):
    """Exportable adapter state for diagnostics."""

    network_name: str
    chain_id: int | None
    config: NetworkConfig
    thresholds: FinalityThresholds
    gas_strategies: dict[str, GasOverrides]
    stats: AdapterStats
    mev: MevSnapshot | None = None
    reorg: ReorgSnapshot | None = None
    export_timestamp: datetime = Field(default_factory=_utc_now)


__all__ = [
    "AdapterSnapshot",
    "AdapterStats",
    "CongestionEstimate",
    "CongestionLevel",
    "FinalityThresholds",
    "GasOverrides",
    "HealthStatus",
    "NetworkConditions",
    "NetworkConfig",
    "TransactionHandle",
    "TransactionPayload",
]
