"""Typed ledger records returned by the JSON-RPC client.

Quantities arrive as hex strings from a node; validators normalize them
to integer wei/units so no downstream math touches floats.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.helpers.parsers import parse_hex_int


def _quantity(value: Any) -> Any:
    if value is None or isinstance(value, int):
        return value
    if isinstance(value, str):
        return parse_hex_int(value) if value.startswith("0x") else int(value)
    return value


class LedgerTransaction(BaseModel):
    """Transaction as included in a block fetched with full transactions."""

    hash: str = Field(..., description="Transaction hash")
    from_address: str | None = Field(default=None, alias="from")
    to_address: str | None = Field(default=None, alias="to")
    value: int = Field(default=0, description="Transferred value in wei")
    gas_price: int = Field(default=0, alias="gasPrice", description="Gas price in wei")
    gas_limit: int = Field(default=0, alias="gas", description="Gas limit")

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    @field_validator("value", "gas_price", "gas_limit", mode="before")
    @classmethod
    def _parse_quantity(cls, value: Any) -> Any:
        return _quantity(value) if value is not None else 0


class LedgerBlock(BaseModel):
    """Block header fields plus its transactions.

    ``transactions`` holds full records when fetched with transactions and
    is empty otherwise; ``transaction_hashes`` is always populated.
    """

    number: int
    hash: str
    parent_hash: str | None = Field(default=None, alias="parentHash")
    timestamp: int = Field(..., description="Unix timestamp in seconds")
    gas_used: int = Field(default=0, alias="gasUsed")
    gas_limit: int = Field(default=0, alias="gasLimit")
    base_fee_per_gas: int | None = Field(default=None, alias="baseFeePerGas")
    transactions: list[LedgerTransaction] = Field(default_factory=list)
    transaction_hashes: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    @field_validator(
        "number", "timestamp", "gas_used", "gas_limit", "base_fee_per_gas", mode="before"
    )
    @classmethod
    def _parse_quantity(cls, value: Any) -> Any:
        return _quantity(value)

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> "LedgerBlock":
        """Build a block from an ``eth_getBlockByNumber`` result."""
        raw_txs = data.get("transactions") or []
        full = [tx for tx in raw_txs if isinstance(tx, dict)]
        hashes = [tx["hash"] if isinstance(tx, dict) else tx for tx in raw_txs]
        payload = {k: v for k, v in data.items() if k != "transactions"}
        return cls.model_validate(
            {**payload, "transactions": full, "transaction_hashes": hashes}
        )

    @property
    def utilization(self) -> float:
        """Gas used / gas limit, or 0 when the limit is unknown."""
        if self.gas_limit <= 0:
            return 0.0
        return self.gas_used / self.gas_limit


class TransactionReceipt(BaseModel):
    """Receipt of a mined transaction."""

    transaction_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str | None = Field(default=None, alias="blockHash")
    status: int = Field(default=1)
    gas_used: int = Field(default=0, alias="gasUsed")
    effective_gas_price: int = Field(default=0, alias="effectiveGasPrice")

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    @field_validator(
        "block_number", "status", "gas_used", "effective_gas_price", mode="before"
    )
    @classmethod
    def _parse_quantity(cls, value: Any) -> Any:
        return _quantity(value)

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class TransactionRequest(BaseModel):
    """Legacy (type 0) transaction to broadcast."""

    to: str
    value: int = 0
    data: str = "0x"
    gas_price: int
    gas_limit: int
    nonce: int | None = None
    chain_id: int | None = None

    def to_rpc(self, sender: str) -> dict[str, str]:
        """Encode for ``eth_sendTransaction``."""
        payload = {
            "from": sender,
            "to": self.to,
            "value": hex(self.value),
            "data": self.data,
            "gasPrice": hex(self.gas_price),
            "gas": hex(self.gas_limit),
        }
        if self.nonce is not None:
            payload["nonce"] = hex(self.nonce)
        return payload

    def to_signable(self) -> dict[str, Any]:
        """Encode for local signing with eth-account."""
        return {
            "to": self.to,
            "value": self.value,
            "data": self.data,
            "gasPrice": self.gas_price,
            "gas": self.gas_limit,
            "nonce": self.nonce or 0,
            "chainId": self.chain_id,
        }


__all__ = [
    "LedgerBlock",
    "LedgerTransaction",
    "TransactionReceipt",
    "TransactionRequest",
]
