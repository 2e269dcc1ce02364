"""Concurrency control for cross-chain transaction records.

Every ledger mutation for one transaction runs under that transaction's
lock, so the orchestrator task and the pending sweep never interleave
their read-modify-write cycles. Unrelated transactions never share a lock.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from hopbridge.exceptions import HopBridgeError

logger = logging.getLogger(__name__)

# Lock registry: transaction_id -> asyncio.Lock
_transaction_locks: dict[str, asyncio.Lock] = {}


class LockTimeoutError(HopBridgeError):
    """Raised when a lock cannot be acquired within the timeout period."""


def get_transaction_lock(transaction_id: str) -> asyncio.Lock:
    """Get or create the lock for a transaction.

    Creation has no await point, so two tasks can never race to create
    different locks for the same id.
    """
    lock = _transaction_locks.get(transaction_id)
    if lock is None:
        lock = asyncio.Lock()
        _transaction_locks[transaction_id] = lock
    return lock


class TransactionLock:
    """Context manager for exclusive access to one transaction record.

    Example:
        async with TransactionLock(tx_id, operation="complete"):
            tx = await repo.get(tx_id)
            ...
            await repo.save(tx)
    """

    def __init__(
        self,
        transaction_id: str,
        timeout: Optional[float] = 30.0,
        operation: str = "ledger_update",
    ):
        """Initialize the lock.

        Args:
            transaction_id: Ledger transaction id
            timeout: Maximum time to wait for lock (None = wait forever)
            operation: Description of the operation for logging
        """
        self.transaction_id = transaction_id
        self.timeout = timeout
        self.operation = operation
        self._lock: Optional[asyncio.Lock] = None
        self._acquired = False

    async def __aenter__(self) -> "TransactionLock":
        """Acquire the lock."""
        self._lock = get_transaction_lock(self.transaction_id)

        try:
            if self.timeout:
                self._acquired = await asyncio.wait_for(
                    self._lock.acquire(),
                    timeout=self.timeout,
                )
            else:
                await self._lock.acquire()
                self._acquired = True

            if self._acquired:
                logger.debug(f"Lock acquired for {self.transaction_id}: {self.operation}")
            return self

        except asyncio.TimeoutError:
            logger.warning(
                f"Lock timeout for {self.transaction_id} after {self.timeout}s: {self.operation}"
            )
            raise LockTimeoutError(
                f"Could not acquire lock for {self.transaction_id} within {self.timeout}s"
            )

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Release the lock."""
        if self._acquired and self._lock:
            self._lock.release()
            self._acquired = False
            logger.debug(f"Lock released for {self.transaction_id}: {self.operation}")
        return False


@asynccontextmanager
async def transaction_lock(
    transaction_id: str,
    timeout: Optional[float] = 30.0,
    operation: str = "ledger_update",
):
    """Functional form of TransactionLock.

    Example:
        async with transaction_lock(tx_id, operation="fail"):
            ...
    """
    async with TransactionLock(transaction_id, timeout=timeout, operation=operation):
        yield


def release_transaction_lock(transaction_id: str) -> None:
    """Drop the lock of a purged transaction, unless someone holds it."""
    lock = _transaction_locks.get(transaction_id)
    if lock is not None and not lock.locked():
        del _transaction_locks[transaction_id]


def clear_transaction_locks() -> None:
    """Clear all transaction locks (useful for testing)."""
    _transaction_locks.clear()
