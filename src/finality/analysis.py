"""Cross-network analysis of a finished measurement campaign."""

import statistics

from src.finality.models import (
    CrossNetworkAnalysis,
    FinalityMeasurement,
    MeasurementHighlight,
    MevImpactAnalysis,
    MevRisk,
    NetworkAnalysis,
    NetworkCampaignResult,
    NetworkRecommendation,
    OverallMetrics,
)
from src.helpers.logging import get_logger
from src.helpers.parsers import wei_to_eth
from src.helpers.timer import summarize


logger = get_logger(__name__)

HIGH_MEV_RISK_SCORE = 70
MEDIUM_MEV_RISK_SCORE = 40
HIGH_MEV_PERIOD_SCORE = 70
MIN_RELIABILITY = 95.0


def categorize_mev_risk(average_score: float) -> MevRisk:
    if average_score > HIGH_MEV_RISK_SCORE:
        return MevRisk.HIGH
    if average_score > MEDIUM_MEV_RISK_SCORE:
        return MevRisk.MEDIUM
    return MevRisk.LOW


def _finality_times(measurements: list[FinalityMeasurement]) -> list[float]:
    return [
        m.finality_time
        for m in measurements
        if m.success and m.finality_time is not None
    ]


def _costs(measurements: list[FinalityMeasurement]) -> list[int]:
    return [
        m.cost.total_cost
        for m in measurements
        if m.success and m.cost is not None and m.cost.total_cost > 0
    ]


def overall_score(
    average_finality: float | None, average_cost: float | None, reliability: float
) -> float:
    """Composite 0-100 score over speed, cost and reliability (higher is better).

    Speed loses a point per second of average finality and cost a point per
    0.001 ETH of average transaction cost. A missing average (no successful
    measurement reported it) scores 0 for that part.
    """
    speed_score = (
        max(0.0, 100 - average_finality / 1000) if average_finality is not None else 0.0
    )
    cost_score = (
        max(0.0, 100 - (wei_to_eth(int(average_cost)) or 0.0) * 1000)
        if average_cost is not None
        else 0.0
    )
    return round((speed_score + cost_score + reliability) / 3, 1)


def calculate_overall_metrics(measurements: list[FinalityMeasurement]) -> OverallMetrics:
    stats = summarize(_finality_times(measurements))
    costs = _costs(measurements)
    return OverallMetrics(
        total_measurements=stats.iterations,
        fastest_finality=stats.min,
        slowest_finality=stats.max,
        median_finality=stats.median,
        mean_finality=stats.mean,
        p90_finality=stats.p90,
        p95_finality=stats.p95,
        p99_finality=stats.p99,
        lowest_cost=min(costs, default=0),
        highest_cost=max(costs, default=0),
        average_cost=statistics.fmean(costs) if costs else 0.0,
    )


def analyze_network(result: NetworkCampaignResult) -> NetworkAnalysis:
    """Per-network averages, MEV risk and overall score."""
    stats = summarize(_finality_times(result.measurements))
    costs = _costs(result.measurements)
    average_cost = statistics.fmean(costs) if costs else 0.0
    scores = [m.initial_mev_score for m in result.measurements]
    average_mev_score = statistics.fmean(scores) if scores else 0.0

    return NetworkAnalysis(
        network=result.network,
        measurement_count=len(result.measurements),
        average_finality=stats.mean,
        median_finality=stats.median,
        average_cost=average_cost,
        average_mev_score=average_mev_score,
        mev_risk=categorize_mev_risk(average_mev_score),
        reliability=result.success_rate,
        overall_score=overall_score(
            stats.mean if stats.iterations else None,
            average_cost if costs else None,
            result.success_rate,
        ),
    )


def analyze_mev_impact(results: list[NetworkCampaignResult]) -> MevImpactAnalysis:
    measurements = [m for r in results for m in r.successful_measurements]
    if not measurements:
        return MevImpactAnalysis()

    adjusted = [m for m in measurements if m.mev_adjustment > 0]
    attributed_reorgs = 0
    for result in results:
        from_measurements = sum(1 for m in result.measurements if m.likely_mev_cause)
        from_monitor = result.reorg_stats.mev_related_reorgs if result.reorg_stats else 0
        attributed_reorgs += max(from_measurements, from_monitor)

    return MevImpactAnalysis(
        total_measurements=len(measurements),
        mev_adjusted_count=len(adjusted),
        mev_adjusted_percentage=len(adjusted) / len(measurements) * 100,
        high_mev_periods=sum(
            1 for m in measurements if m.initial_mev_score > HIGH_MEV_PERIOD_SCORE
        ),
        average_mev_score=statistics.fmean(m.initial_mev_score for m in measurements),
        average_adjustment=(
            statistics.fmean(m.mev_adjustment for m in adjusted) if adjusted else 0.0
        ),
        mev_attributed_reorgs=attributed_reorgs,
    )


def find_fastest(measurements: list[FinalityMeasurement]) -> MeasurementHighlight | None:
    timed = [m for m in measurements if m.success and m.finality_time is not None]
    if not timed:
        return None
    fastest = min(timed, key=lambda m: m.finality_time or 0.0)
    return MeasurementHighlight(
        network=fastest.network_name,
        tx_hash=fastest.tx_hash,
        finality_time=fastest.finality_time,
        total_cost=fastest.cost.total_cost if fastest.cost else None,
    )


def find_lowest_cost(measurements: list[FinalityMeasurement]) -> MeasurementHighlight | None:
    costed = [m for m in measurements if m.success and m.cost is not None]
    if not costed:
        return None
    cheapest = min(costed, key=lambda m: m.cost.total_cost if m.cost else 0)
    return MeasurementHighlight(
        network=cheapest.network_name,
        tx_hash=cheapest.tx_hash,
        finality_time=cheapest.finality_time,
        total_cost=cheapest.cost.total_cost if cheapest.cost else None,
    )


def generate_recommendations(
    networks: dict[str, NetworkAnalysis],
) -> list[NetworkRecommendation]:
    """What each network suits best, plus warnings worth surfacing."""
    with_finality = [a.average_finality for a in networks.values() if a.average_finality > 0]
    with_cost = [a.average_cost for a in networks.values() if a.average_cost > 0]
    fastest = min(with_finality, default=None)
    cheapest = min(with_cost, default=None)

    recommendations = []
    for name, analysis in networks.items():
        recommendation = NetworkRecommendation(network=name)
        if fastest is not None and analysis.average_finality == fastest:
            recommendation.best_for.append("Fastest finality")
        if cheapest is not None and analysis.average_cost == cheapest:
            recommendation.best_for.append("Lowest cost")
        if analysis.mev_risk == MevRisk.LOW:
            recommendation.best_for.append("MEV-sensitive applications")

        if analysis.mev_risk == MevRisk.HIGH:
            recommendation.warnings.append("High MEV activity may affect finality")
        if analysis.reliability < MIN_RELIABILITY:
            recommendation.warnings.append(
                f"Reliability {analysis.reliability:.1f}% is below {MIN_RELIABILITY:.0f}%"
            )
        recommendations.append(recommendation)
    return recommendations


def build_cross_network_analysis(
    results: dict[str, NetworkCampaignResult],
) -> CrossNetworkAnalysis:
    """Aggregate every network's campaign result into one analysis.

    Networks that never attempted a measurement (for example because
    collecting initial conditions failed) are left out of the per-network
    sections.
    """
    attempted = [
        r for r in results.values() if r.success_count + r.failure_count > 0
    ]
    measurements = [m for r in attempted for m in r.measurements]
    networks = {r.network: analyze_network(r) for r in attempted}
    ranking = sorted(networks, key=lambda n: networks[n].overall_score, reverse=True)

    logger.info(
        "Analyzed %d measurements across %d networks", len(measurements), len(networks)
    )
    return CrossNetworkAnalysis(
        overall=calculate_overall_metrics(measurements),
        networks=networks,
        mev_impact=analyze_mev_impact(attempted),
        fastest=find_fastest(measurements),
        lowest_cost=find_lowest_cost(measurements),
        recommendations=generate_recommendations(networks),
        ranking=ranking,
    )


__all__ = [
    "analyze_mev_impact",
    "analyze_network",
    "build_cross_network_analysis",
    "calculate_overall_metrics",
    "categorize_mev_risk",
    "find_fastest",
    "find_lowest_cost",
    "generate_recommendations",
    "overall_score",
]
