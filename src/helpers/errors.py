"""Exception taxonomy for finality measurement."""


class FinalityError(Exception):
    """Base class for errors raised by the measurement engine."""


class AdapterConnectionError(FinalityError):
    """An adapter could not reach or verify its network."""

    def __init__(self, network_name: str, reason: str) -> None:
        self.network_name = network_name
        self.reason = reason
        super().__init__(f"Failed to connect to {network_name}: {reason}")


class RPCError(ValueError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, error: object) -> None:
        self.error = error
        super().__init__(f"RPC error: {error}")


class ConfirmationTimeoutError(FinalityError, TimeoutError):
    """A bounded wait for confirmations expired."""

    def __init__(
        self, tx_hash: str, confirmations: int, timeout: float, observed: int = 0
    ) -> None:
        self.tx_hash = tx_hash
        self.confirmations = confirmations
        self.timeout = timeout
        self.observed = observed
        super().__init__(
            f"Confirmation timeout for {tx_hash}: {observed}/{confirmations} "
            f"confirmations after {timeout:.1f}s"
        )


class TransactionNotFoundError(FinalityError):
    """The ledger has no receipt for a transaction after waiting."""

    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"Transaction {tx_hash} not found after confirmation wait")


class TransactionRevertedError(FinalityError):
    """The transaction was mined with a failed status."""

    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash
        super().__init__(f"Transaction {tx_hash} reverted (status 0)")


class MeasurementTimeoutError(FinalityError, TimeoutError):
    """A whole submit-and-measure cycle exceeded its bound."""

    def __init__(self, network_name: str, timeout: float) -> None:
        self.network_name = network_name
        self.timeout = timeout
        super().__init__(f"Measurement on {network_name} timeout after {timeout:.1f}s")


class AdapterNotRegisteredError(FinalityError, KeyError):
    """A campaign referenced a network with no registered adapter."""

    def __init__(self, network_name: str) -> None:
        self.network_name = network_name
        super().__init__(f"Network adapter not found: {network_name}")

    def __str__(self) -> str:
        return str(self.args[0])


__all__ = [
    "AdapterConnectionError",
    "AdapterNotRegisteredError",
    "ConfirmationTimeoutError",
    "FinalityError",
    "MeasurementTimeoutError",
    "RPCError",
    "TransactionNotFoundError",
    "TransactionRevertedError",
]
