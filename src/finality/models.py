"""Measurement, cost and campaign records."""

from datetime import UTC, datetime
from enum import StrEnum

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from src.adapters.models import AdapterStats, NetworkConditions
from src.helpers.constants import DEFAULT_TRANSACTION_COUNT
from src.mev.models import MevConditions, ReorgEvent, ReorgStats


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CostBreakdown(BaseModel):
    """Transaction cost in wei."""

    gas_used: int
    gas_price: int = Field(..., description="Gas price the transaction was sent with")
    effective_gas_price: int
    base_cost: int
    actual_cost: int
    gas_premium: int
    mev_premium: int = 0
    cost_per_second: float | None = Field(
        default=None, description="Actual cost per second of finality time"
    )
    currency: str = "ETH"

    model_config = ConfigDict(frozen=True)

    @property
    def total_cost(self) -> int:
        return self.actual_cost + self.mev_premium


class FinalityMeasurement(BaseModel):
    """Outcome of waiting for one transaction to reach finality.

    Times are milliseconds. A failed measurement still carries the
    thresholds, the elapsed time and the error.
    """

    tx_hash: str
    network_name: str
    started_at: datetime = Field(default_factory=_utc_now)
    base_threshold: int = Field(..., ge=1)
    adjusted_threshold: int = Field(..., ge=1)
    block_number: int | None = None
    gas_used: int | None = None
    effective_gas_price: int | None = None
    confirmation_time: float | None = None
    finality_time: float | None = None
    total_time: float = 0.0
    initial_mev_conditions: MevConditions | None = None
    final_mev_conditions: MevConditions | None = None
    reorg_detected: bool = False
    reorg_event: ReorgEvent | None = None
    cost: CostBreakdown | None = None
    success: bool = True
    error: str | None = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _threshold_never_lowered(self) -> Self:
        if self.adjusted_threshold < self.base_threshold:
            msg = (
                f"adjusted_threshold ({self.adjusted_threshold}) must be >= "
                f"base_threshold ({self.base_threshold})"
            )
            raise ValueError(msg)
        return self

    @property
    def mev_adjustment(self) -> int:
        return self.adjusted_threshold - self.base_threshold

    @property
    def initial_mev_score(self) -> int:
        return self.initial_mev_conditions.current_score if self.initial_mev_conditions else 0

    @property
    def likely_mev_cause(self) -> bool:
        return self.reorg_event.likely_mev_cause if self.reorg_event else False


class CampaignConfig(BaseModel):
    """What to measure. An empty ``networks`` list means every registered adapter."""

    networks: list[str] = Field(default_factory=list)
    transaction_count: int = Field(default=DEFAULT_TRANSACTION_COUNT, ge=1)
    finality_threshold: int | None = Field(default=None, ge=1)
    concurrent: bool = False


class MeasurementFailure(BaseModel):
    index: int
    error: str


class NetworkCampaignResult(BaseModel):
    """Everything one network produced during a campaign."""

    network: str
    measurements: list[FinalityMeasurement] = Field(default_factory=list)
    failures: list[MeasurementFailure] = Field(default_factory=list)
    adapter_stats: AdapterStats | None = None
    initial_conditions: NetworkConditions | None = None
    final_mev_conditions: MevConditions | None = None
    reorg_stats: ReorgStats | None = None
    error: str | None = Field(default=None, description="Set when the whole run failed")

    @computed_field
    @property
    def success_count(self) -> int:
        return sum(1 for m in self.measurements if m.success)

    @computed_field
    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @computed_field
    @property
    def success_rate(self) -> float:
        attempted = self.success_count + self.failure_count
        return self.success_count / attempted * 100 if attempted else 0.0

    @property
    def successful_measurements(self) -> list[FinalityMeasurement]:
        return [m for m in self.measurements if m.success]


class MevRisk(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class OverallMetrics(BaseModel):
    total_measurements: int = 0
    fastest_finality: float = 0.0
    slowest_finality: float = 0.0
    median_finality: float = 0.0
    mean_finality: float = 0.0
    p90_finality: float = 0.0
    p95_finality: float = 0.0
    p99_finality: float = 0.0
    lowest_cost: int = 0
    highest_cost: int = 0
    average_cost: float = 0.0


class NetworkAnalysis(BaseModel):
    network: str
    measurement_count: int
    average_finality: float
    median_finality: float
    average_cost: float
    average_mev_score: float
    mev_risk: MevRisk
    reliability: float = Field(..., description="Success rate in percent")
    overall_score: float


class MevImpactAnalysis(BaseModel):
    total_measurements: int = 0
    mev_adjusted_count: int = 0
    mev_adjusted_percentage: float = 0.0
    high_mev_periods: int = 0
    average_mev_score: float = 0.0
    average_adjustment: float = 0.0
    mev_attributed_reorgs: int = 0


class MeasurementHighlight(BaseModel):
    network: str
    tx_hash: str
    finality_time: float | None = None
    total_cost: int | None = None


class NetworkRecommendation(BaseModel):
    network: str
    best_for: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class CrossNetworkAnalysis(BaseModel):
    overall: OverallMetrics = Field(default_factory=OverallMetrics)
    networks: dict[str, NetworkAnalysis] = Field(default_factory=dict)
    mev_impact: MevImpactAnalysis = Field(default_factory=MevImpactAnalysis)
    fastest: MeasurementHighlight | None = None
    lowest_cost: MeasurementHighlight | None = None
    recommendations: list[NetworkRecommendation] = Field(default_factory=list)
    ranking: list[str] = Field(default_factory=list)


class CampaignReport(BaseModel):
    session_name: str
    started_at: datetime
    finished_at: datetime = Field(default_factory=_utc_now)
    results: dict[str, NetworkCampaignResult] = Field(default_factory=dict)
    analysis: CrossNetworkAnalysis = Field(default_factory=CrossNetworkAnalysis)


__all__ = [
    "CampaignConfig",
    "CampaignReport",
    "CostBreakdown",
    "CrossNetworkAnalysis",
    "FinalityMeasurement",
    "MeasurementFailure",
    "MeasurementHighlight",
    "MevImpactAnalysis",
    "MevRisk",
    "NetworkAnalysis",
    "NetworkCampaignResult",
    "NetworkRecommendation",
    "OverallMetrics",
]
