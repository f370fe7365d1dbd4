"""Build adapters from environment configuration."""

from src.adapters.evm import EvmAdapter
from src.adapters.profiles import NetworkProfile, get_profile
from src.helpers.config import get_expected_chain_id, get_private_key, get_rpc_url
from src.helpers.logging import get_logger
from src.helpers.rpc import RPCClient


logger = get_logger(__name__)


def create_adapter_from_env(
    network_name: str,
    *,
    rpc_url: str | None = None,
    profile: NetworkProfile | None = None,
) -> EvmAdapter:
    """Create an adapter whose RPC endpoint and key come from the environment.

    Reads ``<NETWORK>_RPC_URL``, ``<NETWORK>_PRIVATE_KEY`` (or
    ``PRIVATE_KEY``) and ``<NETWORK>_CHAIN_ID``.

    Args:
        network_name: Network name, e.g. "sepolia", "kasplex", "igra"
        rpc_url: RPC URL overriding the environment (optional)
        profile: Network profile overriding the one derived from the name

    Returns:
        An uninitialized adapter

    Raises:
        ValueError: If no RPC URL is configured

    Example:
        ```python
        # SEPOLIA_RPC_URL=https://... and PRIVATE_KEY=0x... in .env
        adapter = create_adapter_from_env("sepolia")
        await adapter.initialize()
        ```
    """
    profile = profile or get_profile(network_name)
    url = get_rpc_url(network_name, rpc_url)
    private_key = get_private_key(network_name)
    if private_key is None:
        logger.warning(
            "No private key for %s; transactions will use the node's unlocked account",
            network_name,
        )

    expected_chain_id = get_expected_chain_id(network_name)
    config = profile.config_for(network_name, expected_chain_id)
    client = RPCClient(url, timeout=config.timeout, private_key=private_key)
    return EvmAdapter(
        network_name,
        profile,
        client,
        expected_chain_id=expected_chain_id,
        config=config,
    )


def create_adapters_from_env(network_names: list[str]) -> dict[str, EvmAdapter]:
    return {name: create_adapter_from_env(name) for name in network_names}


__all__ = [
    "create_adapter_from_env",
    "create_adapters_from_env",
]
