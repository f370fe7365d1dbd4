"""Ledger client capability consumed by adapters and monitors."""

from typing import TYPE_CHECKING, Protocol


if TYPE_CHECKING:
    from src.helpers.models import LedgerBlock, TransactionReceipt, TransactionRequest


class LedgerClient(Protocol):
    """Async view of one chain's JSON-RPC endpoint.

    Every call is a network round trip that may be slow or fail.
    :class:`src.helpers.rpc.RPCClient` is the production implementation.
    """

    @property
    def address(self) -> str | None: ...

    async def get_address(self) -> str: ...

    async def get_chain_id(self) -> int: ...

    async def get_block_number(self) -> int: ...

    async def get_block(
        self, block: int | str = "latest", *, full_transactions: bool = False
    ) -> LedgerBlock | None: ...

    async def get_transaction_receipt(self, tx_hash: str) -> TransactionReceipt | None: ...

    async def get_gas_price(self) -> int: ...

    async def get_balance(
        self, address: str | None = None, block_number: int | str = "latest"
    ) -> int: ...

    async def send_transaction(self, request: TransactionRequest) -> str: ...

    async def wait_for_transaction(
        self, tx_hash: str, confirmations: int = 1, timeout: float | None = None
    ) -> TransactionReceipt | None: ...

    async def aclose(self) -> None: ...


__all__ = [
    "LedgerClient",
]
