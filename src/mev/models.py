"""Records produced by the MEV activity and reorganization monitors."""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from src.helpers.periodic import MonitorState
from src.mev.constants import GasThresholds


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RiskLevel(StrEnum):
    MINIMAL = "minimal"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


class Trend(StrEnum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class RecommendedAction(StrEnum):
    DELAY_TESTING = "delay_testing"
    INCREASE_THRESHOLD = "increase_threshold"
    MONITOR_CLOSELY = "monitor_closely"
    PROCEED_NORMALLY = "proceed_normally"


class MevRecommendation(BaseModel):
    """What a caller should do given the current MEV score."""

    action: RecommendedAction
    reason: str
    finality_adjustment: int = Field(default=0, description="Extra blocks to wait")
    suggested_delay: str | None = None
    gas_strategy: str | None = None

    model_config = ConfigDict(frozen=True)


class MevIndicators(BaseModel):
    """Eight 0-100 heuristic signals computed from one block."""

    gas_variance: float = 0.0
    high_gas_transactions: float = 0.0
    mev_bot_activity: float = 0.0
    arbitrage_patterns: float = 0.0
    sandwich_attacks: float = 0.0
    liquidation_activity: float = 0.0
    gas_competition: float = 0.0
    dex_volume: float = 0.0

    model_config = ConfigDict(frozen=True)


class MevBlockAnalysis(BaseModel):
    block_number: int
    timestamp: int
    transaction_count: int
    mev_score: int = Field(..., ge=0, le=100)
    indicators: MevIndicators = Field(default_factory=MevIndicators)
    risk_level: RiskLevel

    model_config = ConfigDict(frozen=True)


class BlockObservation(BaseModel):
    """One analyzed block kept in the monitor's ring buffer."""

    block_number: int
    timestamp: int
    block_hash: str
    mev_score: int = Field(..., ge=0, le=100)
    analysis: MevBlockAnalysis

    model_config = ConfigDict(frozen=True)


class MevConditions(BaseModel):
    """Snapshot of a network's MEV pressure."""

    current_score: int = Field(..., ge=0, le=100)
    average_recent: int = Field(default=0, ge=0, le=100)
    trend: Trend = Trend.STABLE
    risk_level: RiskLevel
    recommendation: MevRecommendation
    last_updated: datetime = Field(default_factory=_utc_now)

    model_config = ConfigDict(frozen=True)


class MevSnapshot(BaseModel):
    network_name: str
    current_score: int
    recent_blocks: list[BlockObservation] = Field(default_factory=list)
    gas_thresholds: GasThresholds
    state: MonitorState
    export_timestamp: datetime = Field(default_factory=_utc_now)


class MevCausationAnalysis(BaseModel):
    """Evidence that a replacing block was built for extraction."""

    evidence_score: int = Field(default=0, ge=0, le=100)
    indicators: dict[str, float] = Field(default_factory=dict)
    reasoning: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def likely_mev_cause(self) -> bool:
        return self.evidence_score > 50


class AffectedTransaction(BaseModel):
    tx_hash: str
    status: str = "removed_or_modified"

    model_config = ConfigDict(frozen=True)


class ReorgEvent(BaseModel):
    """A block whose observed hash was replaced on the live chain."""

    reorg_id: str
    network: str
    block_number: int
    original_hash: str
    new_hash: str
    detected_at: datetime = Field(default_factory=_utc_now)
    depth: int = Field(..., ge=1)
    affected_transactions: list[AffectedTransaction] = Field(default_factory=list)
    mev_analysis: MevCausationAnalysis = Field(default_factory=MevCausationAnalysis)

    model_config = ConfigDict(frozen=True)

    @property
    def mev_evidence_score(self) -> int:
        return self.mev_analysis.evidence_score

    @property
    def likely_mev_cause(self) -> bool:
        return self.mev_analysis.likely_mev_cause


class CachedBlock(BaseModel):
    """Block hash as first observed by the reorganization monitor."""

    block_hash: str
    timestamp: int
    cached_at: datetime = Field(default_factory=_utc_now)
    transaction_hashes: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


class ReorgCheck(BaseModel):
    """Outcome of an on-demand reorganization check."""

    reorg_detected: bool
    reason: str | None = None
    event: ReorgEvent | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def depth(self) -> int:
        return self.event.depth if self.event else 0

    @property
    def likely_mev_cause(self) -> bool:
        return self.event.likely_mev_cause if self.event else False

    @property
    def mev_evidence_score(self) -> int:
        return self.event.mev_evidence_score if self.event else 0


class ReorgStats(BaseModel):
    total_reorganizations: int = 0
    mev_related_reorgs: int = 0
    mev_reorg_percentage: float = 0.0
    average_depth: float = 0.0
    last_reorg_time: datetime | None = None


class ReorgSnapshot(BaseModel):
    network_name: str
    events: list[ReorgEvent] = Field(default_factory=list)
    stats: ReorgStats
    depth: int
    polling_interval: float
    state: MonitorState
    export_timestamp: datetime = Field(default_factory=_utc_now)


__all__ = [
    "AffectedTransaction",
    "BlockObservation",
    "CachedBlock",
    "MevBlockAnalysis",
    "MevCausationAnalysis",
    "MevConditions",
    "MevIndicators",
    "MevRecommendation",
    "MevSnapshot",
    "RecommendedAction",
    "ReorgCheck",
    "ReorgEvent",
    "ReorgSnapshot",
    "ReorgStats",
    "RiskLevel",
    "Trend",
]
