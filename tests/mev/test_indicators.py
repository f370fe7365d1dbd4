"""Tests for MEV indicators, block scoring and reorg evidence."""

import pytest

from src.helpers.constants import WEI_PER_ETH
from src.mev.constants import (
    DEFAULT_GAS_THRESHOLDS,
    ETHEREUM_GAS_THRESHOLDS,
    KASPLEX_GAS_THRESHOLDS,
    get_gas_thresholds,
)
from src.mev.indicators import (
    MevScoringConfig,
    arbitrage_score,
    assess_block_evidence,
    bot_activity,
    categorize_risk,
    compute_indicators,
    dex_volume,
    gas_competition,
    gas_variance,
    heavy_transaction_score,
    high_gas_ratio,
    liquidation_score,
    sandwich_score,
    score_mev_evidence,
    value_extraction_estimate,
)
from src.mev.models import MevIndicators, RiskLevel

from fakes import make_tx


FLASHBOTS = "0x00000000003B3cc22aF3aE1EAc0440BcEe416B40"
AAVE_POOL = "0x7d2768de32b0b80b7a3454c06bdac94a69ddc7a9"


def sandwich_heavy_block() -> list:
    """Nine alternating high/low gas transfers of 2 ETH each."""
    return [
        make_tx(f"0x{i}", gas_price_gwei=200 if i % 2 == 0 else 20, value=2 * WEI_PER_ETH)
        for i in range(9)
    ]


class TestGasIndicators:
    """Tests for gas based indicators."""

    def test_gas_variance_relative_to_threshold(self) -> None:
        txs = [make_tx("0xa", gas_price_gwei=10), make_tx("0xb", gas_price_gwei=30)]

        assert gas_variance(txs, 25) == pytest.approx(40.0)
        assert gas_variance(txs[:1], 25) == 0.0

    def test_gas_variance_is_capped(self) -> None:
        txs = [make_tx("0xa", gas_price_gwei=1), make_tx("0xb", gas_price_gwei=10_000)]

        assert gas_variance(txs, 25) == 100.0

    def test_high_gas_ratio(self) -> None:
        txs = [make_tx("0xa", gas_price_gwei=150), make_tx("0xb", gas_price_gwei=20)]

        assert high_gas_ratio(txs, 100) == 50.0

    def test_gas_competition(self) -> None:
        txs = [
            make_tx("0xa", gas_price_gwei=40),
            make_tx("0xb", gas_price_gwei=20),
            make_tx("0xc", gas_price_gwei=20),
        ]

        assert gas_competition(txs) == pytest.approx(10.0)

    def test_sandwich_triplet(self) -> None:
        txs = [
            make_tx("0xa", gas_price_gwei=100),
            make_tx("0xb", gas_price_gwei=20),
            make_tx("0xc", gas_price_gwei=100),
        ]

        assert sandwich_score(txs) == 10.0
        assert sandwich_score(list(reversed(txs[:2]))) == 0.0


class TestPatternIndicators:
    """Tests for address and value based indicators."""

    def test_bot_activity_matches_case_insensitively(self) -> None:
        txs = [make_tx("0xa", to=FLASHBOTS), make_tx("0xb"), make_tx("0xc"), make_tx("0xd")]

        assert bot_activity(txs) == 25.0

    def test_arbitrage_counts_repeated_values(self) -> None:
        txs = [make_tx(f"0x{i}", value=v) for i, v in enumerate([1, 1, 1, 2, 0, 0])]

        assert arbitrage_score(txs) == 15.0

    def test_liquidation_needs_lending_target_and_high_gas(self) -> None:
        txs = [
            make_tx("0xa", to=AAVE_POOL, gas_price_gwei=150),
            make_tx("0xb", to=AAVE_POOL, gas_price_gwei=10),
        ]

        assert liquidation_score(txs, 100) == 50.0

    def test_heavy_transactions(self) -> None:
        txs = [
            make_tx("0xa", gas_price_gwei=60, gas_limit=300_000),
            make_tx("0xb", gas_price_gwei=60, gas_limit=21_000),
        ]

        assert heavy_transaction_score(txs) == 50.0

    def test_dex_volume(self) -> None:
        txs = [
            make_tx("0xa", value=1, gas_limit=150_000),
            make_tx("0xb", value=0, gas_limit=150_000),
        ]

        assert dex_volume(txs) == 50.0

    def test_value_extraction_estimate(self) -> None:
        txs = [make_tx(f"0x{i}", value=2 * WEI_PER_ETH) for i in range(3)]
        txs.append(make_tx("0xsmall", value=WEI_PER_ETH))

        assert value_extraction_estimate(txs) == 1500

    def test_compute_indicators_empty_block(self) -> None:
        assert compute_indicators([]) == MevIndicators()


class TestBlockScore:
    """Tests for weighted block scoring and risk bands."""

    def test_weights_sum_to_one(self) -> None:
        assert sum(MevScoringConfig().model_dump().values()) == pytest.approx(1.0)

    def test_score_bounds(self) -> None:
        config = MevScoringConfig()
        maxed = MevIndicators(**dict.fromkeys(MevIndicators.model_fields, 100.0))

        assert config.score(MevIndicators()) == 0
        assert config.score(maxed) == 100

    @pytest.mark.parametrize("txs_factory", [list, sandwich_heavy_block])
    def test_block_score_stays_in_range(self, txs_factory) -> None:
        indicators = compute_indicators(txs_factory(), ETHEREUM_GAS_THRESHOLDS)

        assert 0 <= MevScoringConfig().score(indicators) <= 100

    @pytest.mark.parametrize(
        ("score", "level"),
        [
            (100, RiskLevel.EXTREME),
            (80, RiskLevel.EXTREME),
            (79, RiskLevel.HIGH),
            (60, RiskLevel.HIGH),
            (40, RiskLevel.MEDIUM),
            (20, RiskLevel.LOW),
            (19, RiskLevel.MINIMAL),
            (0, RiskLevel.MINIMAL),
        ],
    )
    def test_categorize_risk(self, score: int, level: RiskLevel) -> None:
        assert categorize_risk(score) is level

    def test_gas_thresholds_per_network(self) -> None:
        assert get_gas_thresholds("Sepolia") is ETHEREUM_GAS_THRESHOLDS
        assert get_gas_thresholds("kasplex") is KASPLEX_GAS_THRESHOLDS
        assert get_gas_thresholds("igra") is DEFAULT_GAS_THRESHOLDS


class TestReorgEvidence:
    """Tests for MEV-causation evidence scoring."""

    def test_each_indicator_adds_its_points(self) -> None:
        assert score_mev_evidence(gas_variance=51).evidence_score == 20
        assert score_mev_evidence(sandwich=31).evidence_score == 25
        assert score_mev_evidence(arbitrage=21).evidence_score == 15
        assert score_mev_evidence(liquidation=11).evidence_score == 15
        assert score_mev_evidence(value_extraction=1001).evidence_score == 25

    def test_thresholds_are_exclusive(self) -> None:
        analysis = score_mev_evidence(
            gas_variance=50, sandwich=30, arbitrage=20, liquidation=10, value_extraction=1000
        )

        assert analysis.evidence_score == 0
        assert analysis.reasoning == []

    def test_score_is_monotonic_and_capped(self) -> None:
        signals = {
            "gas_variance": 80.0,
            "sandwich": 40.0,
            "arbitrage": 30.0,
            "liquidation": 20.0,
            "value_extraction": 5000.0,
        }
        previous = 0
        active: dict[str, float] = {}
        for name, value in signals.items():
            active[name] = value
            score = score_mev_evidence(**active).evidence_score
            assert score >= previous
            previous = score

        assert previous == 100

    def test_likely_mev_cause_only_above_fifty(self) -> None:
        at_fifty = score_mev_evidence(sandwich=31, value_extraction=1001)
        above = score_mev_evidence(sandwich=31, value_extraction=1001, arbitrage=21)

        assert at_fifty.evidence_score == 50
        assert not at_fifty.likely_mev_cause
        assert above.evidence_score == 65
        assert above.likely_mev_cause

    def test_assess_sandwich_heavy_block(self) -> None:
        analysis = assess_block_evidence(sandwich_heavy_block())

        assert analysis.evidence_score == 85
        assert analysis.likely_mev_cause
        assert set(analysis.indicators) == {
            "high_gas_variance",
            "sandwich_patterns",
            "arbitrage_activity",
            "value_extraction",
        }

    def test_assess_empty_block(self) -> None:
        assert assess_block_evidence([]).evidence_score == 0
