"""Error taxonomy for route search and cross-chain orchestration."""

from typing import Optional


class HopBridgeError(Exception):
    """Base class for all hopbridge errors."""


# ======================
# Route search
# ======================


class NoRouteFoundError(HopBridgeError):
    """Raised when no candidate route produces any output."""

    def __init__(self, token_in: str, token_out: str, amount_in: int):
        self.token_in = token_in
        self.token_out = token_out
        self.amount_in = amount_in
        super().__init__(f"No available route found for {amount_in} {token_in} -> {token_out}")


class InsufficientLiquidityError(HopBridgeError):
    """Raised when a pool needed for a hop has an empty reserve."""

    def __init__(self, pair_address: Optional[str] = None):
        self.pair_address = pair_address
        where = f" in pair {pair_address}" if pair_address else ""
        super().__init__(f"Insufficient liquidity{where}")


# ======================
# Bridge network
# ======================


class BridgePathUnsupportedError(HopBridgeError):
    """Raised when the bridge has no enabled lane for a chain pair."""

    def __init__(self, source_chain_id: int, target_chain_id: int):
        self.source_chain_id = source_chain_id
        self.target_chain_id = target_chain_id
        super().__init__(f"Bridge path not supported: {source_chain_id} -> {target_chain_id}")


class CircuitBreakerOpenError(HopBridgeError):
    """Raised when a send is attempted while the circuit breaker is open."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        suffix = f": {reason}" if reason else ""
        super().__init__(f"Circuit breaker is open for this route{suffix}")


class DailyLimitExceededError(HopBridgeError):
    """Raised when a send would exceed a chain's daily outflow cap."""

    def __init__(self, chain_id: int, limit: int, current: int):
        self.chain_id = chain_id
        self.limit = limit
        self.current = current
        super().__init__(
            f"Daily outflow limit exceeded for chain {chain_id}: {current} of {limit} used"
        )


class BridgeTimeoutError(HopBridgeError):
    """Raised when a bridge message does not settle within the poll budget."""

    def __init__(self, message_id: Optional[str], attempts: int):
        self.message_id = message_id
        self.attempts = attempts
        super().__init__(
            f"Timeout waiting for bridge completion of {message_id} after {attempts} attempts"
        )


class BridgeFailedError(HopBridgeError):
    """Raised when the bridge reports a message as failed."""

    def __init__(self, message_id: Optional[str]):
        self.message_id = message_id
        super().__init__(f"Bridge transfer failed for message {message_id}")


# ======================
# Execution
# ======================


class ChainRpcError(HopBridgeError):
    """Network or revert error reported by a chain collaborator."""


class RefundFailedError(HopBridgeError):
    """Raised when a refund could not be submitted."""

    def __init__(self, transaction_id: str, chain_id: int, cause: Optional[Exception] = None):
        self.transaction_id = transaction_id
        self.chain_id = chain_id
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Refund failed for {transaction_id} on chain {chain_id}{detail}")


class InvalidRouteError(HopBridgeError):
    """Raised when a route fails validation before execution."""


# ======================
# Ledger
# ======================


class NotFoundError(HopBridgeError):
    """Raised when a referenced entity does not exist."""


class TransactionNotFoundError(NotFoundError):
    """Raised for unknown transaction ids."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class PairNotFoundError(NotFoundError):
    """Raised when the factory has no pair for two tokens."""

    def __init__(self, token_a: str, token_b: str):
        self.token_a = token_a
        self.token_b = token_b
        super().__init__(f"Pair not found: {token_a} / {token_b}")


class NotRetryableError(HopBridgeError):
    """Raised when retry is requested for a transaction that cannot be retried."""

    def __init__(self, transaction_id: str, status: str, retry_count: int):
        self.transaction_id = transaction_id
        self.status = status
        self.retry_count = retry_count
        super().__init__(
            f"Transaction {transaction_id} is not retryable "
            f"(status={status}, retries={retry_count})"
        )


class InvalidTransitionError(HopBridgeError):
    """Raised when a ledger mutation does not apply to the current status.

    Typically the transaction was already finalized by another executor.
    """

    def __init__(self, transaction_id: str, status: str, operation: str):
        self.transaction_id = transaction_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation} transaction {transaction_id} in status {status}")
