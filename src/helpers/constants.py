"""Common configuration constants used across the application."""

# Unit Conversions
WEI_PER_GWEI = 10**9
"""Wei in one gwei"""

WEI_PER_ETH = 10**18
"""Wei in one ether"""

# HTTP and Network Constants
DEFAULT_TIMEOUT = 30.0
"""Default JSON-RPC request timeout in seconds"""

CONFIRMATION_TIMEOUT = 300.0
"""Default bound for a single confirmation wait in seconds"""

RECEIPT_POLL_INTERVAL = 1.0
"""Interval between receipt polls while waiting for confirmations"""

# Retry Configuration
MAX_RETRIES = 3
"""Default maximum number of attempts for a retried operation"""

RETRY_BASE_DELAY = 1.0
"""Base delay for exponential backoff in seconds"""

RETRY_MAX_DELAY = 30.0
"""Maximum delay between retries in seconds"""

RETRY_BACKOFF_MULTIPLIER = 2.0
"""Growth factor applied to the delay after each failed attempt"""

RETRYABLE_ERROR_SUBSTRINGS = (
    "network",
    "timeout",
    "nonce",
    "underpriced",
    "replacement",
    "server error",
)
"""Error message fragments every network treats as transient"""

# Monitoring
MEV_MONITOR_INTERVAL = 12.0
"""Default MEV monitor tick in seconds (~one L1 block)"""

MEV_HISTORY_SIZE = 10
"""Number of block observations kept by the MEV monitor"""

MEV_TREND_WINDOW = 5
"""Observations used for the rolling average and trend"""

REORG_POLL_INTERVAL = 5.0
"""Reorganization monitor tick in seconds"""

REORG_CACHE_DEPTH = 20
"""Number of recent block hashes kept by the reorganization monitor"""

REORG_MAX_DEPTH = 10
"""Cap on the walk used to measure reorganization depth"""

# Campaign
DEFAULT_TRANSACTION_COUNT = 10
"""Default number of measurements per network"""

MEASUREMENT_DELAY = 0.5
"""Pause between consecutive measurements on one network in seconds"""

MEASUREMENT_TIMEOUT = 900.0
"""Upper bound for a single submit-and-measure cycle in seconds"""

MEV_PREMIUM_SCORE = 50
"""MEV score above which an MEV premium is added to the cost estimate"""

MEV_PREMIUM_PERCENT = 10
"""MEV premium as a percentage of the actual transaction cost"""


__all__ = [
    "CONFIRMATION_TIMEOUT",
    "DEFAULT_TIMEOUT",
    "DEFAULT_TRANSACTION_COUNT",
    "MAX_RETRIES",
    "MEASUREMENT_DELAY",
    "MEASUREMENT_TIMEOUT",
    "MEV_HISTORY_SIZE",
    "MEV_MONITOR_INTERVAL",
    "MEV_PREMIUM_PERCENT",
    "MEV_PREMIUM_SCORE",
    "MEV_TREND_WINDOW",
    "RECEIPT_POLL_INTERVAL",
    "REORG_CACHE_DEPTH",
    "REORG_MAX_DEPTH",
    "REORG_POLL_INTERVAL",
    "RETRYABLE_ERROR_SUBSTRINGS",
    "RETRY_BACKOFF_MULTIPLIER",
    "RETRY_BASE_DELAY",
    "RETRY_MAX_DELAY",
    "WEI_PER_ETH",
    "WEI_PER_GWEI",
]
