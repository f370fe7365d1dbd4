"""Real-time MEV activity scoring for one network."""

import statistics

from collections import deque

from typing import TYPE_CHECKING

from src.helpers.constants import MEV_HISTORY_SIZE, MEV_MONITOR_INTERVAL, MEV_TREND_WINDOW
from src.helpers.logging import get_logger
from src.helpers.periodic import PeriodicTask
from src.helpers.retry import log_and_suppress_errors
from src.mev.constants import (
    EMA_ALPHA,
    SCORE_JUMP_THRESHOLD,
    TREND_DELTA,
    get_gas_thresholds,
)
from src.mev.indicators import MevScoringConfig, categorize_risk, compute_indicators
from src.mev.models import (
    BlockObservation,
    MevBlockAnalysis,
    MevConditions,
    MevRecommendation,
    MevSnapshot,
    RecommendedAction,
    RiskLevel,
    Trend,
)


if TYPE_CHECKING:
    from src.adapters.ledger import LedgerClient
    from src.helpers.models import LedgerBlock
    from src.mev.constants import GasThresholds


logger = get_logger(__name__)


def generate_recommendation(score: int) -> MevRecommendation:
    """Map a score to the action a measurement campaign should take.

    Example:
        >>> generate_recommendation(65).action
        <RecommendedAction.INCREASE_THRESHOLD: 'increase_threshold'>
    """
    if score >= 80:
        return MevRecommendation(
            action=RecommendedAction.DELAY_TESTING,
            reason="Extreme MEV activity detected",
            finality_adjustment=10,
            suggested_delay="30-60 minutes",
        )
    if score >= 60:
        return MevRecommendation(
            action=RecommendedAction.INCREASE_THRESHOLD,
            reason="High MEV activity may cause reorganizations",
            finality_adjustment=5,
            gas_strategy="use_premium_gas",
        )
    if score >= 40:
        return MevRecommendation(
            action=RecommendedAction.MONITOR_CLOSELY,
            reason="Moderate MEV activity",
            finality_adjustment=2,
        )
    return MevRecommendation(
        action=RecommendedAction.PROCEED_NORMALLY, reason="Low MEV activity"
    )


def calculate_trend(scores: list[int]) -> Trend:
    """Trend from the first to the last score of a window."""
    if len(scores) < 2:
        return Trend.STABLE
    change = scores[-1] - scores[0]
    if change > TREND_DELTA:
        return Trend.INCREASING
    if change < -TREND_DELTA:
        return Trend.DECREASING
    return Trend.STABLE


class MevActivityMonitor:
    """Publishes a smoothed 0-100 MEV pressure score for a network.

    Each tick analyzes the latest block, folds its score into an
    exponential moving average and keeps the observation in a bounded ring
    buffer. Only the monitor's own task mutates that state; readers get
    immutable :class:`MevConditions` snapshots.

    Example:
        ```python
        monitor = MevActivityMonitor("sepolia", client)
        await monitor.start_monitoring()
        conditions = await monitor.get_current_conditions()
        print(conditions.current_score, conditions.risk_level)
        await monitor.stop_monitoring()
        ```
    """

    def __init__(
        self,
        network_name: str,
        client: LedgerClient,
        *,
        thresholds: GasThresholds | None = None,
        scoring: MevScoringConfig | None = None,
        interval: float = MEV_MONITOR_INTERVAL,
        history_size: int = MEV_HISTORY_SIZE,
    ) -> None:
        self.network_name = network_name
        self.client = client
        self.thresholds = thresholds or get_gas_thresholds(network_name)
        self.scoring = scoring or MevScoringConfig()
        self.current_score = 0
        self.recent_blocks: deque[BlockObservation] = deque(maxlen=history_size)
        self._task = PeriodicTask(
            f"MEV monitor for {network_name}", self.analyze_latest_block, interval
        )

    @property
    def monitoring_active(self) -> bool:
        return self._task.running

    async def start_monitoring(self) -> None:
        if self._task.start():
            logger.info("Started MEV monitoring for %s", self.network_name)

    async def stop_monitoring(self) -> None:
        was_running = self._task.running
        await self._task.stop()
        if was_running:
            logger.info("Stopped MEV monitoring for %s", self.network_name)

    def analyze_block(self, block: LedgerBlock) -> MevBlockAnalysis:
        """Score a block fetched with full transactions."""
        indicators = compute_indicators(block.transactions, self.thresholds)
        score = self.scoring.score(indicators) if block.transactions else 0
        return MevBlockAnalysis(
            block_number=block.number,
            timestamp=block.timestamp,
            transaction_count=len(block.transactions),
            mev_score=score,
            indicators=indicators,
            risk_level=categorize_risk(score),
        )

    async def analyze_latest_block(self) -> MevBlockAnalysis | None:
        """Analyze the head block and fold it into the published score."""
        block = await self.client.get_block("latest", full_transactions=True)
        if block is None:
            return None

        analysis = self.analyze_block(block)
        self._update_score(analysis.mev_score)
        self.recent_blocks.append(
            BlockObservation(
                block_number=block.number,
                timestamp=block.timestamp,
                block_hash=block.hash,
                mev_score=analysis.mev_score,
                analysis=analysis,
            )
        )
        logger.debug(
            "%s block %d: MEV score %d (smoothed %d)",
            self.network_name,
            block.number,
            analysis.mev_score,
            self.current_score,
        )
        return analysis

    def _update_score(self, block_score: int) -> None:
        self.current_score = round(
            EMA_ALPHA * block_score + (1 - EMA_ALPHA) * self.current_score
        )
        if abs(block_score - self.current_score) > SCORE_JUMP_THRESHOLD:
            direction = "increased" if block_score > self.current_score else "decreased"
            logger.warning(
                "MEV activity on %s %s significantly: %d -> %d",
                self.network_name,
                direction,
                self.current_score,
                block_score,
            )

    def get_current_score(self) -> int:
        return self.current_score

    def get_risk_level(self) -> RiskLevel:
        return categorize_risk(self.current_score)

    async def get_current_conditions(self) -> MevConditions:
        """Current score, rolling average, trend, risk and recommendation.

        Analyzes the latest block first when nothing has been observed yet.
        """
        if not self.recent_blocks:
            async with log_and_suppress_errors(
                f"Initial MEV analysis for {self.network_name}"
            ):
                await self.analyze_latest_block()

        window = [b.mev_score for b in list(self.recent_blocks)[-MEV_TREND_WINDOW:]]
        average = round(statistics.fmean(window)) if window else 0
        return MevConditions(
            current_score=self.current_score,
            average_recent=average,
            trend=calculate_trend(window),
            risk_level=self.get_risk_level(),
            recommendation=generate_recommendation(self.current_score),
        )

    def get_recent_history(self, blocks: int = MEV_HISTORY_SIZE) -> list[BlockObservation]:
        return list(self.recent_blocks)[-blocks:] if blocks > 0 else []

    def export_data(self) -> MevSnapshot:
        return MevSnapshot(
            network_name=self.network_name,
            current_score=self.current_score,
            recent_blocks=list(self.recent_blocks),
            gas_thresholds=self.thresholds,
            state=self._task.state,
        )


__all__ = [
    "MevActivityMonitor",
    "calculate_trend",
    "generate_recommendation",
]
