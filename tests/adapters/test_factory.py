"""Tests for building adapters from environment variables."""

import pytest

from src.adapters.factory import create_adapter_from_env, create_adapters_from_env
from src.adapters.profiles import ETHEREUM, IGRA, KASPLEX
from src.helpers.rpc import RPCClient


PRIVATE_KEY = "0x" + "11" * 32

ENV_KEYS = (
    "SEPOLIA_RPC_URL",
    "SEPOLIA_PRIVATE_KEY",
    "SEPOLIA_CHAIN_ID",
    "KASPLEX_L2_RPC_URL",
    "KASPLEX_L2_PRIVATE_KEY",
    "KASPLEX_L2_CHAIN_ID",
    "IGRA_RPC_URL",
    "IGRA_PRIVATE_KEY",
    "IGRA_CHAIN_ID",
    "PRIVATE_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestCreateAdapterFromEnv:
    """Tests for create_adapter_from_env."""

    @pytest.mark.asyncio
    async def test_sepolia(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SEPOLIA_RPC_URL", "https://sepolia.example")
        monkeypatch.setenv("PRIVATE_KEY", PRIVATE_KEY)

        adapter = create_adapter_from_env("sepolia")
        await adapter.client.aclose()

        assert adapter.profile is ETHEREUM
        assert isinstance(adapter.client, RPCClient)
        assert adapter.client.rpc_url == "https://sepolia.example"
        assert adapter.client.address is not None
        assert adapter.config.name == "sepolia"
        assert adapter.expected_chain_id is None

    @pytest.mark.asyncio
    async def test_chain_id_selects_known_network(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("IGRA_RPC_URL", "https://igra.example")
        monkeypatch.setenv("IGRA_CHAIN_ID", "42161")

        adapter = create_adapter_from_env("igra")
        await adapter.client.aclose()

        assert adapter.profile is IGRA
        assert adapter.expected_chain_id == 42161
        assert adapter.config.name == "arbitrum"
        assert adapter.client.timeout == adapter.config.timeout
        assert adapter.client.address is None

    @pytest.mark.asyncio
    async def test_explicit_url_and_hyphenated_name(self) -> None:
        adapter = create_adapter_from_env("kasplex-l2", rpc_url="https://kasplex.example")
        await adapter.client.aclose()

        assert adapter.profile is KASPLEX
        assert adapter.currency == "KAS"
        assert adapter.client.rpc_url == "https://kasplex.example"

    def test_missing_rpc_url(self) -> None:
        with pytest.raises(ValueError, match="SEPOLIA_RPC_URL"):
            create_adapter_from_env("sepolia")

    @pytest.mark.asyncio
    async def test_create_many(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SEPOLIA_RPC_URL", "https://sepolia.example")
        monkeypatch.setenv("KASPLEX_L2_RPC_URL", "https://kasplex.example")

        adapters = create_adapters_from_env(["sepolia", "kasplex-l2"])
        for adapter in adapters.values():
            await adapter.client.aclose()

        assert list(adapters) == ["sepolia", "kasplex-l2"]
        assert adapters["kasplex-l2"].network_name == "kasplex-l2"
