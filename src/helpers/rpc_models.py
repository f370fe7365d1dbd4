"""Pydantic models for JSON-RPC requests and responses."""

from typing import Any

from pydantic import BaseModel, Field


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request model."""

    jsonrpc: str = Field(default="2.0", description="JSON-RPC version")
    method: str = Field(..., description="Method name to call")
    params: list[Any] = Field(default_factory=list, description="Method parameters")
    id: int | str = Field(..., description="Request ID")


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response model.

    Exactly one of ``result`` or ``error`` is meaningful; ``result`` may
    legitimately be null (e.g. a receipt for a pending transaction).
    """

    jsonrpc: str = Field(default="2.0")
    id: int | str | None = None
    result: Any = None
    error: dict[str, Any] | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


__all__ = [
    "JsonRpcRequest",
    "JsonRpcResponse",
]
