"""Tests for the MEV-aware confirmation threshold rule."""

import pytest

from src.adapters.base import adjust_threshold_for_mev


class TestAdjustThresholdForMev:
    """Tests for adjust_threshold_for_mev."""

    @pytest.mark.parametrize(
        ("score", "extra"),
        [
            (0, 0),
            (39, 0),
            (40, 2),
            (59, 2),
            (60, 5),
            (79, 5),
            (80, 8),
            (100, 8),
        ],
    )
    @pytest.mark.parametrize("base", [1, 6, 12])
    def test_band_edges(self, base: int, score: int, extra: int) -> None:
        assert adjust_threshold_for_mev(base, score) == base + extra

    def test_never_below_base(self) -> None:
        increments = {
            adjust_threshold_for_mev(6, score) - 6 for score in range(101)
        }

        assert increments == {0, 2, 5, 8}
