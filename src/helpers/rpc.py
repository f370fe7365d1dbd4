"""Ethereum JSON-RPC ledger client over httpx."""

import asyncio
import operator

from typing import TYPE_CHECKING, Any, Self

import httpx

from eth_account import Account

from src.helpers.constants import DEFAULT_TIMEOUT, RECEIPT_POLL_INTERVAL
from src.helpers.errors import ConfirmationTimeoutError, RPCError
from src.helpers.logging import get_logger
from src.helpers.models import LedgerBlock, TransactionReceipt, TransactionRequest
from src.helpers.parsers import parse_hex_int
from src.helpers.rpc_models import JsonRpcRequest, JsonRpcResponse


if TYPE_CHECKING:
    from types import TracebackType

    from eth_account.signers.local import LocalAccount


logger = get_logger(__name__)


class RPCClient:
    """Ethereum JSON-RPC client with batching and local signing.

    The client owns its ``httpx.AsyncClient`` unless one is injected. When a
    private key is given transactions are signed locally with eth-account and
    broadcast through ``eth_sendRawTransaction``; otherwise the node's first
    unlocked account sends them through ``eth_sendTransaction``.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        private_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        poll_interval: float = RECEIPT_POLL_INTERVAL,
    ) -> None:
        """Initialize RPC client.

        Args:
            rpc_url: Ethereum JSON-RPC endpoint URL
            timeout: Default timeout for requests in seconds
            private_key: Hex private key used to sign transactions (optional)
            client: HTTP client to use instead of an owned one (optional)
            poll_interval: Seconds between receipt polls in wait_for_transaction

        Raises:
            ValueError: If rpc_url is empty or None
        """
        if not rpc_url:
            msg = "RPC URL cannot be empty"
            raise ValueError(msg)

        self.rpc_url = rpc_url
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._account: LocalAccount | None = (
            Account.from_key(private_key) if private_key else None
        )
        self._node_account: str | None = None
        self._request_id = 0

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def address(self) -> str | None:
        """Sending address, if known without a round trip."""
        if self._account is not None:
            return self._account.address
        return self._node_account

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def call(
        self,
        method: str,
        params: list[Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> Any:
        """Make a single JSON-RPC call.

        Args:
            method: RPC method name (e.g., "eth_blockNumber")
            params: Method parameters list
            timeout: Optional timeout override

        Returns:
            RPC result value

        Raises:
            httpx.HTTPError: If the HTTP request fails
            RPCError: If the RPC response contains an error
        """
        request = JsonRpcRequest(method=method, params=params or [], id=self._next_id())
        response = await self._client.post(
            self.rpc_url,
            json=request.model_dump(),
            timeout=timeout or self.timeout,
        )
        response.raise_for_status()
        result = JsonRpcResponse.model_validate(response.json())

        if result.failed:
            raise RPCError(result.error)

        return result.result

    async def batch_call(
        self,
        requests: list[tuple[str, list[Any]]],
        *,
        timeout: float | None = None,
    ) -> list[Any]:
        """Make multiple JSON-RPC calls in a single batch request.

        Args:
            requests: List of (method, params) tuples
            timeout: Optional timeout override

        Returns:
            List of results in the same order as requests (None for errors)

        Raises:
            httpx.HTTPError: If the HTTP request fails
        """
        batch_payload = [
            JsonRpcRequest(method=method, params=params, id=idx).model_dump()
            for idx, (method, params) in enumerate(requests)
        ]

        response = await self._client.post(
            self.rpc_url, json=batch_payload, timeout=timeout or self.timeout
        )
        response.raise_for_status()
        results = [JsonRpcResponse.model_validate(r) for r in response.json()]

        # Sort by ID to match request order
        ordered = sorted(results, key=operator.attrgetter("id"))
        return [None if r.failed else r.result for r in ordered]

    async def get_chain_id(self) -> int:
        return parse_hex_int(await self.call("eth_chainId"))

    async def get_block_number(self) -> int:
        """Get the latest block number."""
        result = await self.call("eth_blockNumber")
        return parse_hex_int(result) if result else 0

    async def get_block(
        self, block: int | str = "latest", *, full_transactions: bool = False
    ) -> LedgerBlock | None:
        """Fetch a block by number (or tag), optionally with full transactions.

        Returns:
            The block, or None if the node does not know it
        """
        block_param = hex(block) if isinstance(block, int) else block
        result = await self.call("eth_getBlockByNumber", [block_param, full_transactions])
        return LedgerBlock.from_rpc(result) if result else None

    async def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt | None:
        result = await self.call("eth_getTransactionReceipt", [tx_hash])
        return TransactionReceipt.model_validate(result) if result else None

    async def get_gas_price(self) -> int:
        """Current gas price in wei."""
        return parse_hex_int(await self.call("eth_gasPrice"))

    async def get_balance(
        self, address: str | None = None, block_number: int | str = "latest"
    ) -> int:
        """Get the balance for an address (defaults to the sender) in wei."""
        address = address or await self.get_address()
        block_param = (
            hex(block_number) if isinstance(block_number, int) else block_number
        )
        result = await self.call("eth_getBalance", [address, block_param])
        return parse_hex_int(result) if result else 0

    async def get_transaction_count(
        self, address: str | None = None, block: str = "pending"
    ) -> int:
        address = address or await self.get_address()
        return parse_hex_int(await self.call("eth_getTransactionCount", [address, block]))

    async def get_address(self) -> str:
        """Sending address, asking the node for its accounts when no key is set."""
        if self.address is not None:
            return self.address
        accounts = await self.call("eth_accounts")
        if not accounts:
            msg = "No private key configured and the node exposes no accounts"
            raise ValueError(msg)
        self._node_account = accounts[0]
        return accounts[0]

    async def send_transaction(self, request: TransactionRequest) -> str:
        """Broadcast a transaction and return its hash.

        Missing nonce and chain id are filled from the node before signing.
        """
        if self._account is None:
            sender = await self.get_address()
            return await self.call("eth_sendTransaction", [request.to_rpc(sender)])

        updates: dict[str, int] = {}
        if request.nonce is None:
            updates["nonce"] = await self.get_transaction_count(self._account.address)
        if request.chain_id is None:
            updates["chain_id"] = await self.get_chain_id()
        if updates:
            request = request.model_copy(update=updates)

        signed = self._account.sign_transaction(request.to_signable())
        raw = "0x" + bytes(signed.raw_transaction).hex()
        return await self.call("eth_sendRawTransaction", [raw])

    async def wait_for_transaction(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout: float | None = None,
    ) -> TransactionReceipt:
        """Poll until ``tx_hash`` has ``confirmations`` confirmations.

        Confirmations count the inclusion block itself, so one confirmation
        means "mined".

        Raises:
            ConfirmationTimeoutError: If the wait exceeds ``timeout`` seconds
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + (timeout if timeout is not None else self.timeout)
        observed = 0

        while True:
            receipt = await self.get_transaction_receipt(tx_hash)
            if receipt is not None:
                head = await self.get_block_number()
                observed = max(0, head - receipt.block_number + 1)
                if observed >= confirmations:
                    return receipt

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise ConfirmationTimeoutError(
                    tx_hash, confirmations, timeout or self.timeout, observed
                )
            logger.debug(
                "%s: %d/%d confirmations", tx_hash, observed, confirmations
            )
            await asyncio.sleep(min(self.poll_interval, remaining))


__all__ = [
    "RPCClient",
]
