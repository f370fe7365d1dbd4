"""Per-network variants: known-chain tables, gas formulas and scoring constants.

A :class:`NetworkProfile` is plain data. The single
:class:`src.adapters.evm.EvmAdapter` implementation reads everything that
differs between Ethereum L1 and the L2-style networks from here.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.adapters.models import (
    CongestionLevel,
    FinalityThresholds,
    GasOverrides,
    NetworkConfig,
)
from src.helpers.constants import RETRYABLE_ERROR_SUBSTRINGS, WEI_PER_ETH
from src.helpers.parsers import gwei_to_wei
from src.helpers.retry import RetryConfig


Tier = tuple[float, float]


def _first_tier(value: float, base: float, tiers: tuple[Tier, ...]) -> float:
    """Points (or percent) of the first tier whose ``base * multiple`` is exceeded."""
    for multiple, points in tiers:
        if value > base * multiple:
            return points
    return 0


class CongestionModel(BaseModel):
    """Scoring constants for the 0-100 congestion estimate.

    ``gas_tiers`` and ``block_time_tiers`` are ``(multiple, points)`` pairs
    checked in order against the configured base gas price and the
    expected block interval.
    """

    gas_tiers: tuple[Tier, ...]
    utilization_weight: float
    expected_block_time: float = Field(..., gt=0, description="Seconds")
    block_time_tiers: tuple[Tier, ...]
    high_level: float
    medium_level: float
    fallback_score: float

    model_config = ConfigDict(frozen=True)

    def score(
        self,
        gas_price: int,
        base_gas_price: int,
        utilization: float,
        block_time: float | None,
    ) -> float:
        total = _first_tier(gas_price, base_gas_price, self.gas_tiers)
        total += max(0.0, min(utilization, 1.0)) * self.utilization_weight
        if block_time is not None:
            total += _first_tier(block_time, self.expected_block_time, self.block_time_tiers)
        return min(100.0, total)

    def level(self, score: float) -> CongestionLevel:
        if score > self.high_level:
            return CongestionLevel.HIGH
        if score > self.medium_level:
            return CongestionLevel.MEDIUM
        return CongestionLevel.LOW


class GasPolicy(BaseModel):
    """How live gas prices and MEV pressure scale the configured gas price.

    ``live_tiers`` are ``(multiple of base, percent)`` pairs and
    ``mev_tiers`` are ``(score, percent)`` pairs; the first matching tier of
    each applies.
    """

    live_tiers: tuple[Tier, ...]
    mev_tiers: tuple[Tier, ...]
    gas_limit_buffer_percent: int = 100
    max_gas_limit: int | None = None
    min_gas_price: int = Field(..., gt=0, description="Floor in wei")

    model_config = ConfigDict(frozen=True)

    def apply(
        self, config: NetworkConfig, live_gas_price: int, mev_score: int
    ) -> GasOverrides:
        gas_price = config.gas_price
        live_percent = _first_tier(live_gas_price, config.gas_price, self.live_tiers)
        if live_percent:
            gas_price = gas_price * int(live_percent) // 100
        for threshold, percent in self.mev_tiers:
            if mev_score > threshold:
                gas_price = gas_price * int(percent) // 100
                break

        gas_limit = config.gas_limit * self.gas_limit_buffer_percent // 100
        if self.max_gas_limit is not None:
            gas_limit = min(gas_limit, self.max_gas_limit)

        return GasOverrides(
            gas_price=max(gas_price, self.min_gas_price),
            gas_limit=gas_limit,
        )


class GasStrategy(BaseModel):
    """Named preset relative to the configured gas price and limit."""

    price_percent: int
    limit_percent: int = 100
    max_wait_time: float

    model_config = ConfigDict(frozen=True)


class NetworkProfile(BaseModel):
    """Everything that distinguishes one network family from another."""

    family: str
    detector_network_type: str
    currency: str
    default_config: NetworkConfig
    known_networks: dict[int, dict[str, Any]] = Field(default_factory=dict)
    name_hints: dict[str, int] = Field(default_factory=dict)
    unknown_chain_name: str = "{family}-{chain_id}"
    refine_on_chain_mismatch: bool = True
    congestion: CongestionModel
    gas_policy: GasPolicy
    gas_strategies: dict[str, GasStrategy]
    safe_offset: int
    finalized_offset: int
    retryable_substrings: tuple[str, ...] = RETRYABLE_ERROR_SUBSTRINGS
    min_balance: int | None = Field(default=None, description="Wei")
    explorer_url: str | None = None

    model_config = ConfigDict(frozen=True)

    def _known(self, chain_id: int) -> NetworkConfig:
        return self.default_config.model_copy(
            update={**self.known_networks[chain_id], "chain_id": chain_id}
        )

    def config_for(
        self, network_name: str, expected_chain_id: int | None = None
    ) -> NetworkConfig:
        """Config chosen before connecting, from the expected chain or name."""
        if expected_chain_id in self.known_networks:
            return self._known(expected_chain_id)
        lowered = network_name.lower()
        for hint, chain_id in self.name_hints.items():
            if hint in lowered:
                return self._known(chain_id)
        if expected_chain_id is not None:
            return self.default_config.model_copy(update={"chain_id": expected_chain_id})
        return self.default_config

    def refine_for_chain(self, config: NetworkConfig, chain_id: int) -> NetworkConfig:
        """Config for the chain id actually reported by the node."""
        if config.chain_id == chain_id or not self.refine_on_chain_mismatch:
            return config
        if chain_id in self.known_networks:
            return self._known(chain_id)
        return self.default_config.model_copy(
            update={
                "name": self.unknown_chain_name.format(family=self.family, chain_id=chain_id),
                "chain_id": chain_id,
            }
        )

    def thresholds_for(self, config: NetworkConfig) -> FinalityThresholds:
        target = config.block_confirmation_target
        return FinalityThresholds(
            standard=target,
            safe=target + self.safe_offset,
            finalized=target + self.finalized_offset,
        )

    def strategies_for(self, config: NetworkConfig) -> dict[str, GasOverrides]:
        return {
            name: GasOverrides(
                gas_price=config.gas_price * strategy.price_percent // 100,
                gas_limit=config.gas_limit * strategy.limit_percent // 100,
                max_wait_time=strategy.max_wait_time,
            )
            for name, strategy in self.gas_strategies.items()
        }

    def retry_config(self, config: NetworkConfig) -> RetryConfig:
        return config.retry.model_copy(
            update={"retryable_substrings": self.retryable_substrings}
        )

    @property
    def fast(self) -> bool:
        return self.detector_network_type.endswith("-l2")


ETHEREUM = NetworkProfile(
    family="ethereum",
    detector_network_type="ethereum",
    currency="ETH",
    default_config=NetworkConfig(
        name="ethereum-compatible",
        gas_price=gwei_to_wei(20),
        gas_limit=1_000_000,
        block_confirmation_target=12,
        mev_baseline=30,
        retry=RetryConfig(
            max_retries=5, base_delay=30.0, max_delay=120.0, backoff_multiplier=2.0
        ),
    ),
    known_networks={
        1: {
            "name": "mainnet",
            "gas_price": gwei_to_wei(30),
            "gas_limit": 500_000,
            "block_confirmation_target": 15,
            "mev_baseline": 70,
        },
        11155111: {
            "name": "sepolia",
            "gas_price": gwei_to_wei(25),
            "gas_limit": 5_000_000,
            "block_confirmation_target": 12,
            "mev_baseline": 40,
        },
        5: {
            "name": "goerli",
            "gas_price": gwei_to_wei(20),
            "gas_limit": 8_000_000,
            "block_confirmation_target": 10,
            "mev_baseline": 35,
        },
    },
    name_hints={"sepolia": 11155111, "mainnet": 1, "goerli": 5},
    congestion=CongestionModel(
        gas_tiers=((2.0, 30), (1.5, 20), (1.2, 10)),
        utilization_weight=40,
        expected_block_time=12.0,
        block_time_tiers=((3.0, 30), (2.0, 20), (1.5, 10)),
        high_level=70,
        medium_level=40,
        fallback_score=50,
    ),
    gas_policy=GasPolicy(
        live_tiers=((1.5, 130), (1.2, 115)),
        mev_tiers=((70, 125), (50, 110)),
        min_gas_price=gwei_to_wei(2),
    ),
    gas_strategies={
        "economy": GasStrategy(price_percent=80, max_wait_time=300.0),
        "standard": GasStrategy(price_percent=100, max_wait_time=180.0),
        "fast": GasStrategy(price_percent=130, max_wait_time=60.0),
        "mev_protected": GasStrategy(
            price_percent=150, limit_percent=110, max_wait_time=90.0
        ),
    },
    safe_offset=3,
    finalized_offset=8,
    retryable_substrings=(
        *RETRYABLE_ERROR_SUBSTRINGS,
        "already known",
        "gas price too low",
        "insufficient funds",
        "max fee per gas less than block base fee",
        "connection reset",
        "socket hang up",
    ),
)

KASPLEX = NetworkProfile(
    family="kasplex",
    detector_network_type="kasplex-l2",
    currency="KAS",
    default_config=NetworkConfig(
        name="kasplex",
        chain_id=167012,
        gas_price=gwei_to_wei(2000),
        gas_limit=1_000_000,
        block_confirmation_target=8,
        mev_baseline=10,
        timeout=30.0,
        retry=RetryConfig(
            max_retries=4, base_delay=15.0, max_delay=60.0, backoff_multiplier=1.5
        ),
    ),
    known_networks={167012: {"name": "kasplex"}},
    refine_on_chain_mismatch=False,
    congestion=CongestionModel(
        gas_tiers=((2.0, 40), (1.5, 25), (1.2, 15)),
        utilization_weight=35,
        expected_block_time=1.0,
        block_time_tiers=((3.0, 25), (2.0, 15), (1.5, 10)),
        high_level=60,
        medium_level=30,
        fallback_score=25,
    ),
    gas_policy=GasPolicy(
        live_tiers=((2.0, 150), (1.5, 125)),
        mev_tiers=((50, 110),),
        gas_limit_buffer_percent=120,
        max_gas_limit=5_000_000,
        min_gas_price=gwei_to_wei(1000),
    ),
    gas_strategies={
        "economy": GasStrategy(price_percent=80, max_wait_time=180.0),
        "standard": GasStrategy(price_percent=100, max_wait_time=120.0),
        "fast": GasStrategy(price_percent=125, max_wait_time=60.0),
        "mev_protected": GasStrategy(price_percent=110, max_wait_time=90.0),
    },
    safe_offset=2,
    finalized_offset=4,
    retryable_substrings=(
        *RETRYABLE_ERROR_SUBSTRINGS,
        "already known",
        "gas price too low",
        "insufficient funds",
        "connection reset",
        "rpc error",
        "kaspa",
        "kasplex",
    ),
    min_balance=WEI_PER_ETH // 1000,
    explorer_url="https://explorer.testnet.kasplextest.xyz",
)

IGRA = NetworkProfile(
    family="igra",
    detector_network_type="igra-l2",
    currency="ETH",
    default_config=NetworkConfig(
        name="igra",
        gas_price=gwei_to_wei(10),
        gas_limit=2_000_000,
        block_confirmation_target=6,
        mev_baseline=25,
        timeout=45.0,
        retry=RetryConfig(
            max_retries=4, base_delay=20.0, max_delay=90.0, backoff_multiplier=1.6
        ),
    ),
    known_networks={
        10: {
            "name": "optimism",
            "gas_price": gwei_to_wei("0.001"),
            "block_confirmation_target": 3,
            "mev_baseline": 15,
        },
        42161: {
            "name": "arbitrum",
            "gas_price": gwei_to_wei("0.1"),
            "block_confirmation_target": 3,
            "mev_baseline": 20,
        },
        421614: {
            "name": "igra-testnet",
            "gas_price": gwei_to_wei("0.1"),
            "block_confirmation_target": 3,
        },
        137: {
            "name": "polygon",
            "gas_price": gwei_to_wei(30),
            "block_confirmation_target": 5,
            "mev_baseline": 35,
        },
        100: {
            "name": "gnosis",
            "gas_price": gwei_to_wei(2),
            "block_confirmation_target": 4,
            "mev_baseline": 10,
        },
    },
    congestion=CongestionModel(
        gas_tiers=((3.0, 30), (2.0, 20), (1.5, 10)),
        utilization_weight=50,
        expected_block_time=2.0,
        block_time_tiers=((4.0, 20), (2.0, 10)),
        high_level=60,
        medium_level=30,
        fallback_score=30,
    ),
    gas_policy=GasPolicy(
        live_tiers=((2.0, 130), (1.5, 115)),
        mev_tiers=((70, 110), (50, 105)),
        min_gas_price=gwei_to_wei("0.001"),
    ),
    gas_strategies={
        "economy": GasStrategy(price_percent=80, max_wait_time=240.0),
        "standard": GasStrategy(price_percent=100, max_wait_time=180.0),
        "fast": GasStrategy(price_percent=120, max_wait_time=90.0),
        "mev_protected": GasStrategy(price_percent=110, max_wait_time=120.0),
    },
    safe_offset=2,
    finalized_offset=4,
    retryable_substrings=(
        *RETRYABLE_ERROR_SUBSTRINGS,
        "already known",
        "gas price too low",
        "insufficient funds",
        "connection",
        "rpc error",
        "l2 error",
        "sequencer",
        "batch",
    ),
    min_balance=WEI_PER_ETH // 100,
)

GENERIC_EVM = ETHEREUM.model_copy(
    update={"family": "evm", "known_networks": {}, "name_hints": {}}
)

PROFILES: dict[str, NetworkProfile] = {
    "ethereum": ETHEREUM,
    "kasplex": KASPLEX,
    "igra": IGRA,
    "evm": GENERIC_EVM,
}

_FAMILY_HINTS = (
    ("kasplex", KASPLEX),
    ("igra", IGRA),
    ("ethereum", ETHEREUM),
    ("sepolia", ETHEREUM),
    ("mainnet", ETHEREUM),
    ("goerli", ETHEREUM),
)


def get_profile(network_name: str) -> NetworkProfile:
    """Profile for a network name, e.g. ``"kasplex"`` or ``"sepolia"``.

    Unrecognized names get the generic Ethereum-compatible profile.
    """
    lowered = network_name.lower()
    if lowered in PROFILES:
        return PROFILES[lowered]
    for hint, profile in _FAMILY_HINTS:
        if hint in lowered:
            return profile
    return GENERIC_EVM


__all__ = [
    "ETHEREUM",
    "GENERIC_EVM",
    "IGRA",
    "KASPLEX",
    "PROFILES",
    "CongestionModel",
    "GasPolicy",
    "GasStrategy",
    "NetworkProfile",
    "get_profile",
]
