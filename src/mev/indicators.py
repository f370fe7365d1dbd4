"""Heuristic MEV indicators computed from a block's transactions.

Every indicator is a pure function of the transaction list returning a
value on a 0-100 scale. The weights and thresholds are empirical and are
exposed as config models so callers can tune them.
"""

import statistics

from collections import Counter

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from src.helpers.constants import WEI_PER_ETH
from src.helpers.parsers import wei_to_gwei
from src.mev.constants import (
    DEFAULT_GAS_THRESHOLDS,
    LENDING_PROTOCOL_ADDRESSES,
    MEV_BOT_ADDRESSES,
    GasThresholds,
)
from src.mev.models import MevCausationAnalysis, MevIndicators, RiskLevel


if TYPE_CHECKING:
    from collections.abc import Sequence

    from src.helpers.models import LedgerTransaction


SANDWICH_RATIO = 1.5
DEX_GAS_LIMIT = 100_000


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return min(high, max(low, value))


def _percent(count: int, total: int) -> float:
    return count / total * 100 if total else 0.0


def _priced(transactions: Sequence[LedgerTransaction]) -> list[int]:
    return [tx.gas_price for tx in transactions if tx.gas_price > 0]


def gas_variance(
    transactions: Sequence[LedgerTransaction], variance_threshold_gwei: float
) -> float:
    """Population stddev of gas prices (gwei) relative to the network threshold."""
    prices = [wei_to_gwei(p) for p in _priced(transactions)]
    if len(prices) < 2 or variance_threshold_gwei <= 0:
        return 0.0
    return _clamp(statistics.pstdev(prices) / variance_threshold_gwei * 100)


def gas_coefficient_of_variation(transactions: Sequence[LedgerTransaction]) -> float:
    """Stddev over mean of gas prices, as a percentage capped at 100."""
    prices = _priced(transactions)
    if len(prices) < 2:
        return 0.0
    return _clamp(statistics.pstdev(prices) / statistics.fmean(prices) * 100)


def high_gas_ratio(
    transactions: Sequence[LedgerTransaction], high_gas_gwei: float
) -> float:
    """Percentage of transactions priced above ``high_gas_gwei``."""
    count = sum(1 for tx in transactions if wei_to_gwei(tx.gas_price) > high_gas_gwei)
    return _percent(count, len(transactions))


def bot_activity(
    transactions: Sequence[LedgerTransaction],
    bot_addresses: frozenset[str] = MEV_BOT_ADDRESSES,
) -> float:
    """Percentage of transactions sent by or to a known bot."""
    count = sum(
        1
        for tx in transactions
        if (tx.from_address or "").lower() in bot_addresses
        or (tx.to_address or "").lower() in bot_addresses
    )
    return _percent(count, len(transactions))


def arbitrage_score(transactions: Sequence[LedgerTransaction]) -> float:
    """Repeated non-zero transfer values, 5 points per occurrence of a repeat."""
    counts = Counter(tx.value for tx in transactions if tx.value)
    return _clamp(sum(5 * n for n in counts.values() if n >= 2))


def sandwich_score(transactions: Sequence[LedgerTransaction]) -> float:
    """10 points per high-low-high gas price triplet in block order."""
    prices = [tx.gas_price for tx in transactions]
    hits = sum(
        1
        for prev, cur, nxt in zip(prices, prices[1:], prices[2:], strict=False)
        if prev > cur * SANDWICH_RATIO and nxt > cur * SANDWICH_RATIO
    )
    return _clamp(hits * 10)


def liquidation_score(
    transactions: Sequence[LedgerTransaction],
    high_gas_gwei: float,
    lending_addresses: frozenset[str] = LENDING_PROTOCOL_ADDRESSES,
) -> float:
    """Percentage of high-gas calls into known lending protocols."""
    count = sum(
        1
        for tx in transactions
        if (tx.to_address or "").lower() in lending_addresses
        and wei_to_gwei(tx.gas_price) > high_gas_gwei
    )
    return _percent(count, len(transactions))


def heavy_transaction_score(
    transactions: Sequence[LedgerTransaction],
    min_gas_gwei: float = 50,
    min_gas_limit: int = 200_000,
) -> float:
    """Percentage of expensive, complex transactions (liquidation proxy)."""
    count = sum(
        1
        for tx in transactions
        if wei_to_gwei(tx.gas_price) > min_gas_gwei and tx.gas_limit > min_gas_limit
    )
    return _percent(count, len(transactions))


def gas_competition(transactions: Sequence[LedgerTransaction]) -> float:
    """Top gas price over median, scaled so a 2x spread scores 10."""
    prices = sorted(_priced(transactions), reverse=True)
    if len(prices) < 2:
        return 0.0
    median = prices[len(prices) // 2]
    return _clamp((prices[0] / median - 1) * 10)


def dex_volume(transactions: Sequence[LedgerTransaction]) -> float:
    """Percentage of value transfers with a swap-sized gas limit."""
    count = sum(
        1 for tx in transactions if tx.gas_limit > DEX_GAS_LIMIT and tx.value > 0
    )
    return _percent(count, len(transactions))


def value_extraction_estimate(
    transactions: Sequence[LedgerTransaction], usd_per_transfer: int = 500
) -> int:
    """Rough USD proxy: a fixed amount per transfer above 1 ETH."""
    return usd_per_transfer * sum(1 for tx in transactions if tx.value > WEI_PER_ETH)


def compute_indicators(
    transactions: Sequence[LedgerTransaction],
    thresholds: GasThresholds = DEFAULT_GAS_THRESHOLDS,
) -> MevIndicators:
    if not transactions:
        return MevIndicators()
    return MevIndicators(
        gas_variance=gas_variance(transactions, thresholds.gas_variance),
        high_gas_transactions=high_gas_ratio(transactions, thresholds.high_gas),
        mev_bot_activity=bot_activity(transactions),
        arbitrage_patterns=arbitrage_score(transactions),
        sandwich_attacks=sandwich_score(transactions),
        liquidation_activity=liquidation_score(transactions, thresholds.high_gas),
        gas_competition=gas_competition(transactions),
        dex_volume=dex_volume(transactions),
    )


class MevScoringConfig(BaseModel):
    """Weights combining the indicators into one block score."""

    gas_variance: float = 0.20
    high_gas_transactions: float = 0.15
    mev_bot_activity: float = 0.25
    arbitrage_patterns: float = 0.15
    sandwich_attacks: float = 0.10
    liquidation_activity: float = 0.05
    gas_competition: float = 0.05
    dex_volume: float = 0.05

    model_config = ConfigDict(frozen=True)

    def score(self, indicators: MevIndicators) -> int:
        """Weighted sum, rounded and clamped to [0, 100]."""
        weights = self.model_dump()
        total = sum(
            value * weights[name] for name, value in indicators.model_dump().items()
        )
        return round(_clamp(total))


def categorize_risk(score: int) -> RiskLevel:
    if score >= 80:
        return RiskLevel.EXTREME
    if score >= 60:
        return RiskLevel.HIGH
    if score >= 40:
        return RiskLevel.MEDIUM
    if score >= 20:
        return RiskLevel.LOW
    return RiskLevel.MINIMAL


class ReorgEvidenceConfig(BaseModel):
    """Thresholds and points for attributing a reorganization to MEV."""

    gas_variance_threshold: float = 50
    gas_variance_points: int = 20
    sandwich_threshold: float = 30
    sandwich_points: int = 25
    arbitrage_threshold: float = 20
    arbitrage_points: int = 15
    liquidation_threshold: float = 10
    liquidation_points: int = 15
    value_extraction_threshold: float = 1000
    value_extraction_points: int = 25

    model_config = ConfigDict(frozen=True)


def score_mev_evidence(
    *,
    gas_variance: float = 0.0,
    sandwich: float = 0.0,
    arbitrage: float = 0.0,
    liquidation: float = 0.0,
    value_extraction: float = 0.0,
    config: ReorgEvidenceConfig | None = None,
) -> MevCausationAnalysis:
    """Sum the points of every indicator above its threshold, capped at 100."""
    config = config or ReorgEvidenceConfig()
    checks = (
        (
            "high_gas_variance",
            gas_variance,
            config.gas_variance_threshold,
            config.gas_variance_points,
            "High gas price variance suggests MEV competition",
        ),
        (
            "sandwich_patterns",
            sandwich,
            config.sandwich_threshold,
            config.sandwich_points,
            "Sandwich attack patterns detected",
        ),
        (
            "arbitrage_activity",
            arbitrage,
            config.arbitrage_threshold,
            config.arbitrage_points,
            "Arbitrage activity detected",
        ),
        (
            "liquidation_activity",
            liquidation,
            config.liquidation_threshold,
            config.liquidation_points,
            "Liquidation activity present",
        ),
        (
            "value_extraction",
            value_extraction,
            config.value_extraction_threshold,
            config.value_extraction_points,
            f"Significant value extraction: ${value_extraction:,.0f}",
        ),
    )

    score = 0
    indicators: dict[str, float] = {}
    reasoning: list[str] = []
    for name, value, threshold, points, reason in checks:
        if value > threshold:
            score += points
            indicators[name] = value
            reasoning.append(reason)

    return MevCausationAnalysis(
        evidence_score=min(100, score), indicators=indicators, reasoning=reasoning
    )


def assess_block_evidence(
    transactions: Sequence[LedgerTransaction],
    config: ReorgEvidenceConfig | None = None,
) -> MevCausationAnalysis:
    """MEV-causation evidence for the block that replaced an observed one."""
    if not transactions:
        return MevCausationAnalysis()
    return score_mev_evidence(
        gas_variance=gas_coefficient_of_variation(transactions),
        sandwich=sandwich_score(transactions),
        arbitrage=arbitrage_score(transactions),
        liquidation=heavy_transaction_score(transactions),
        value_extraction=value_extraction_estimate(transactions),
        config=config,
    )


__all__ = [
    "MevScoringConfig",
    "ReorgEvidenceConfig",
    "arbitrage_score",
    "assess_block_evidence",
    "bot_activity",
    "categorize_risk",
    "compute_indicators",
    "dex_volume",
    "gas_coefficient_of_variation",
    "gas_competition",
    "gas_variance",
    "heavy_transaction_score",
    "high_gas_ratio",
    "liquidation_score",
    "sandwich_score",
    "score_mev_evidence",
    "value_extraction_estimate",
]
