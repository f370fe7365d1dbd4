"""Configuration management and environment variable utilities."""

import os

from dotenv import load_dotenv


# Load environment variables from .env file
load_dotenv()


def _env_key(network: str, suffix: str) -> str:
    """Build the per-network variable name, e.g. ``SEPOLIA_RPC_URL``."""
    normalized = network.upper().replace("-", "_").replace(" ", "_")
    return f"{normalized}_{suffix}"


def get_required_env(key: str) -> str:
    """Get a required environment variable.

    Args:
        key: Environment variable name

    Returns:
        Environment variable value

    Raises:
        ValueError: If the environment variable is not set

    Example:
        ```python
        from src.helpers.config import get_required_env

        rpc_url = get_required_env("SEPOLIA_RPC_URL")
        ```
    """
    value = os.getenv(key)
    if not value:
        msg = f"{key} environment variable is not set"
        raise ValueError(msg)
    return value


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


def get_rpc_url(network: str, rpc_url: str | None = None) -> str:
    """Get the JSON-RPC URL for a network from parameter or environment.

    Args:
        network: Network name (``sepolia``, ``kasplex``, ...)
        rpc_url: Optional RPC URL to use directly

    Returns:
        RPC URL

    Raises:
        ValueError: If no URL is given and ``<NETWORK>_RPC_URL`` is not set

    Example:
        ```python
        from src.helpers.config import get_rpc_url

        # Reads KASPLEX_RPC_URL
        rpc_url = get_rpc_url("kasplex")
        ```
    """
    if rpc_url:
        return rpc_url
    return get_required_env(_env_key(network, "RPC_URL"))


def get_private_key(network: str) -> str | None:
    """Get the signing key for a network.

    Reads ``<NETWORK>_PRIVATE_KEY`` and falls back to ``PRIVATE_KEY``.
    Returns None when neither is set, in which case transactions are sent
    through the node's unlocked account.
    """
    return os.getenv(_env_key(network, "PRIVATE_KEY")) or os.getenv("PRIVATE_KEY")


def get_expected_chain_id(network: str) -> int | None:
    """Get the expected chain id for a network from ``<NETWORK>_CHAIN_ID``.

    Raises:
        ValueError: If the variable is set but is not an integer
    """
    key = _env_key(network, "CHAIN_ID")
    value = os.getenv(key)
    if not value:
        return None
    try:
        return int(value, 0)
    except ValueError as e:
        msg = f"{key} must be an integer, got {value!r}"
        raise ValueError(msg) from e


def get_log_level() -> str:
    """Get the configured log level name (``FINALITY_LOG_LEVEL``)."""
    return os.getenv("FINALITY_LOG_LEVEL", "INFO").upper()


def get_log_color() -> bool:
    """Whether colored log output is enabled (``FINALITY_LOG_COLOR``)."""
    return os.getenv("FINALITY_LOG_COLOR", "").lower() in {"1", "true", "yes"}


__all__ = [
    "get_expected_chain_id",
    "get_log_color",
    "get_log_level",
    "get_optional_env",
    "get_private_key",
    "get_required_env",
    "get_rpc_url",
]
