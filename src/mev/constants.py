"""Known addresses and per-network gas thresholds for MEV heuristics."""

from pydantic import BaseModel, ConfigDict


MEV_BOT_ADDRESSES = frozenset({
    "0x00000000003b3cc22af3ae1eac0440bcee416b40",  # Flashbots
    "0x56178a0d5f301baf6cf3e17126ea0b6c4e9b2b3e",
})
"""Lower-cased addresses of known extraction bots"""

LENDING_PROTOCOL_ADDRESSES = frozenset({
    "0x7d2768de32b0b80b7a3454c06bdac94a69ddc7a9",  # Aave v2 lending pool
    "0x3d9819210a31b4961b30ef54be2aed79b9c9cd3b",  # Compound comptroller
})
"""Lower-cased lending protocol entry points used as a liquidation proxy"""

EMA_ALPHA = 0.3
"""Smoothing factor for the published MEV score"""

SCORE_JUMP_THRESHOLD = 20
"""Raw-vs-smoothed gap that is logged as a notable event"""

TREND_DELTA = 10
"""First-to-last change in the recent window needed to call a trend"""


class GasThresholds(BaseModel):
    """Gas levels (gwei) used by the block indicators."""

    high_gas: float
    extreme_gas: float
    gas_variance: float

    model_config = ConfigDict(frozen=True)


ETHEREUM_GAS_THRESHOLDS = GasThresholds(high_gas=100, extreme_gas=500, gas_variance=50)
KASPLEX_GAS_THRESHOLDS = GasThresholds(high_gas=3000, extreme_gas=10000, gas_variance=1000)
DEFAULT_GAS_THRESHOLDS = GasThresholds(high_gas=50, extreme_gas=200, gas_variance=25)

GAS_THRESHOLDS: dict[str, GasThresholds] = {
    "ethereum": ETHEREUM_GAS_THRESHOLDS,
    "mainnet": ETHEREUM_GAS_THRESHOLDS,
    "sepolia": ETHEREUM_GAS_THRESHOLDS,
    "kasplex": KASPLEX_GAS_THRESHOLDS,
}


def get_gas_thresholds(network_name: str) -> GasThresholds:
    """Thresholds for a network name, falling back to the defaults."""
    return GAS_THRESHOLDS.get(network_name.lower(), DEFAULT_GAS_THRESHOLDS)


__all__ = [
    "DEFAULT_GAS_THRESHOLDS",
    "EMA_ALPHA",
    "ETHEREUM_GAS_THRESHOLDS",
    "GAS_THRESHOLDS",
    "KASPLEX_GAS_THRESHOLDS",
    "LENDING_PROTOCOL_ADDRESSES",
    "MEV_BOT_ADDRESSES",
    "SCORE_JUMP_THRESHOLD",
    "TREND_DELTA",
    "GasThresholds",
    "get_gas_thresholds",
]
