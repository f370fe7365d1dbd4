"""Adaptive-interval confirmation polling with early termination."""

from asyncio import gather, sleep

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from src.helpers import timer
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from src.adapters.ledger import LedgerClient


logger = get_logger(__name__)

MIN_POLL_DELAY = 0.1
"""Shortest sleep between polls in seconds"""


class DetectorConfig(BaseModel):
    """Polling parameters for one network class. Durations are seconds."""

    initial_poll_interval: float = Field(..., gt=0)
    max_poll_interval: float = Field(..., gt=0)
    backoff_multiplier: float = Field(..., ge=1)
    early_certainty_threshold: int = Field(..., ge=1)
    max_wait_time: float = Field(..., gt=0)

    model_config = ConfigDict(frozen=True)


DETECTOR_CONFIGS: dict[str, DetectorConfig] = {
    "ethereum": DetectorConfig(
        initial_poll_interval=2.0,
        max_poll_interval=12.0,
        backoff_multiplier=1.5,
        early_certainty_threshold=6,
        max_wait_time=300.0,
    ),
    "kasplex-l2": DetectorConfig(
        initial_poll_interval=0.5,
        max_poll_interval=2.0,
        backoff_multiplier=1.2,
        early_certainty_threshold=4,
        max_wait_time=60.0,
    ),
    "igra-l2": DetectorConfig(
        initial_poll_interval=0.3,
        max_poll_interval=1.0,
        backoff_multiplier=1.1,
        early_certainty_threshold=3,
        max_wait_time=30.0,
    ),
}


class DetectorResult(BaseModel):
    """Outcome of one polling run. ``finality_time`` is milliseconds."""

    tx_hash: str
    finality_time: float = 0.0
    confirmations: int = 0
    target_confirmations: int
    final_confirmations: int = 0
    early_terminated: bool = False
    timed_out: bool = False
    success: bool = False
    error: str | None = None
    network_type: str


def next_poll_interval(
    current: int, target: int, interval: float, config: DetectorConfig
) -> float:
    """Poll faster as confirmations approach the target.

    Below 30% progress the interval backs off, between 30% and 80% it
    shrinks towards the initial interval and past 80% it drops to half of it.
    """
    progress = current / target if target else 1.0
    if progress < 0.3:
        return min(interval * config.backoff_multiplier, config.max_poll_interval)
    if progress < 0.8:
        return max(config.initial_poll_interval, interval * 0.8)
    return config.initial_poll_interval * 0.5


class FastFinalityDetector:
    """Network-tuned receipt polling.

    L2-class networks (``*-l2``) stop as soon as the early-certainty depth is
    reached; slower networks stop at 80% of the target once that depth is
    also met. A global ``max_wait_time`` bounds every run.

    Example:
        ```python
        detector = FastFinalityDetector(client, "kasplex-l2")
        result = await detector.measure_finality(tx_hash, target_confirmations=8)
        if result.early_terminated:
            print(f"certain after {result.confirmations} blocks")
        ```
    """

    def __init__(
        self,
        client: LedgerClient,
        network_type: str = "ethereum",
        config: DetectorConfig | None = None,
    ) -> None:
        self.client = client
        self.network_type = network_type
        self.config = config or DETECTOR_CONFIGS.get(
            network_type, DETECTOR_CONFIGS["ethereum"]
        )

    @property
    def fast(self) -> bool:
        return self.network_type.endswith("-l2")

    def should_terminate_early(self, current: int, target: int) -> bool:
        if self.fast:
            return current >= self.config.early_certainty_threshold
        return (
            current >= target * 0.8
            and current >= self.config.early_certainty_threshold
        )

    async def measure_finality(
        self, tx_hash: str, target_confirmations: int = 12
    ) -> DetectorResult:
        """Poll until ``target_confirmations``, early certainty or timeout."""
        start = timer.now()
        confirmations = 0
        interval = self.config.initial_poll_interval
        early_terminated = False
        timed_out = False

        logger.info(
            "Measuring finality for %s (target: %d confirmations)",
            tx_hash,
            target_confirmations,
        )

        try:
            while confirmations < target_confirmations:
                poll_start = timer.now()
                receipt = await self.client.get_transaction_receipt(tx_hash)
                delay = interval
                if receipt is not None:
                    head = await self.client.get_block_number()
                    confirmations = max(0, head - receipt.block_number + 1)
                    if confirmations >= target_confirmations:
                        break
                    if self.should_terminate_early(confirmations, target_confirmations):
                        early_terminated = True
                        logger.info(
                            "Early finality for %s at %d confirmations",
                            tx_hash,
                            confirmations,
                        )
                        break
                    interval = next_poll_interval(
                        confirmations, target_confirmations, interval, self.config
                    )
                    logger.debug(
                        "Block %d, confirmations %d/%d",
                        head,
                        confirmations,
                        target_confirmations,
                    )
                    delay = max(MIN_POLL_DELAY, interval - timer.elapsed_seconds(poll_start))

                remaining = self.config.max_wait_time - timer.elapsed_seconds(start)
                if remaining <= 0:
                    timed_out = True
                    logger.warning(
                        "Finality measurement for %s timeout after %s",
                        tx_hash,
                        timer.format_timing(timer.elapsed_ms(start)),
                    )
                    break
                await sleep(min(delay, remaining))
        except Exception as e:
            logger.error("Finality measurement for %s failed: %s", tx_hash, e)
            return DetectorResult(
                tx_hash=tx_hash,
                finality_time=timer.elapsed_ms(start),
                confirmations=confirmations,
                target_confirmations=target_confirmations,
                final_confirmations=min(confirmations, target_confirmations),
                error=str(e) or type(e).__name__,
                network_type=self.network_type,
            )

        return DetectorResult(
            tx_hash=tx_hash,
            finality_time=timer.elapsed_ms(start),
            confirmations=confirmations,
            target_confirmations=target_confirmations,
            final_confirmations=min(confirmations, target_confirmations),
            early_terminated=early_terminated,
            timed_out=timed_out,
            success=confirmations >= target_confirmations or early_terminated,
            network_type=self.network_type,
        )

    async def measure_batch(
        self, tx_hashes: list[str], target_confirmations: int = 12
    ) -> list[DetectorResult]:
        """Measure every hash concurrently; each result settles independently."""
        logger.info("Batch measuring finality for %d transactions", len(tx_hashes))
        results = await gather(
            *(self.measure_finality(h, target_confirmations) for h in tx_hashes),
            return_exceptions=True,
        )
        return [
            result
            if isinstance(result, DetectorResult)
            else DetectorResult(
                tx_hash=tx_hash,
                target_confirmations=target_confirmations,
                error=str(result) or type(result).__name__,
                network_type=self.network_type,
            )
            for tx_hash, result in zip(tx_hashes, results, strict=True)
        ]


__all__ = [
    "DETECTOR_CONFIGS",
    "DetectorConfig",
    "DetectorResult",
    "FastFinalityDetector",
    "next_poll_interval",
]
