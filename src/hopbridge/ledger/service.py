"""Transaction ledger: the single owner of cross-chain transaction state.

Status only changes through the mutators below. Each one runs under the
transaction's lock, appends exactly one history entry per transition and
persists through the repository.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Collection, Optional

from hopbridge.chains import get_explorer_link
from hopbridge.crosschain.bridge import MESSAGE_COMPLETED, MESSAGE_FAILED, BridgeNetworkAdapter
from hopbridge.crosschain.models import (
    ACTIVE_STATUSES,
    MAX_TRANSACTION_RETRIES,
    CrossChainTransaction,
    StatusHistory,
    TransactionStatus,
    generate_transaction_id,
    utcnow,
)
from hopbridge.exceptions import (
    InvalidTransitionError,
    NotRetryableError,
    TransactionNotFoundError,
)
from hopbridge.ledger.repository import InMemoryTransactionRepository, TransactionRepository
from hopbridge.utils.locks import TransactionLock, release_transaction_lock

logger = logging.getLogger(__name__)

# Refund and escalation follow a recorded failure
SETTLEABLE_STATUSES = ACTIVE_STATUSES | {TransactionStatus.FAILED}


def _record(tx: CrossChainTransaction, status: TransactionStatus, description: str) -> None:
    tx.status = status
    tx.status_history.append(
        StatusHistory(status=status, timestamp=utcnow(), description=description)
    )


def _finish(tx: CrossChainTransaction) -> None:
    tx.completed_at = utcnow()
    tx.actual_time_seconds = int((tx.completed_at - tx.created_at).total_seconds())


class TransactionLedger:
    """Creates, mutates, sweeps and expires CrossChainTransactions."""

    def __init__(
        self,
        repository: Optional[TransactionRepository] = None,
        bridge: Optional[BridgeNetworkAdapter] = None,
        retention_days: int = 30,
        max_retries: int = MAX_TRANSACTION_RETRIES,
    ):
        self.repository = repository or InMemoryTransactionRepository()
        self.bridge = bridge
        self.retention_days = retention_days
        self.max_retries = max_retries

    async def create_transaction(
        self,
        user_address: str,
        source_chain_id: int,
        target_chain_id: int,
        source_token: str,
        target_token: str,
        amount_in: int,
        estimated_amount_out: Optional[int] = None,
        estimated_time_seconds: Optional[int] = None,
    ) -> CrossChainTransaction:
        """Create a transaction in PENDING_SOURCE_CONFIRMATION with one history entry."""
        tx = CrossChainTransaction(
            transaction_id=generate_transaction_id(),
            user_address=user_address,
            source_chain_id=source_chain_id,
            target_chain_id=target_chain_id,
            source_token=source_token,
            target_token=target_token,
            amount_in=amount_in,
            estimated_amount_out=estimated_amount_out,
            estimated_time_seconds=estimated_time_seconds,
        )
        _record(
            tx,
            TransactionStatus.PENDING_SOURCE_CONFIRMATION,
            "Transaction created, waiting for source chain confirmation",
        )
        await self.repository.add(tx)

        logger.info(f"Created cross-chain transaction: {tx.transaction_id}")
        return tx

    async def get_transaction(self, transaction_id: str) -> Optional[CrossChainTransaction]:
        return await self.repository.get(transaction_id)

    async def require_transaction(self, transaction_id: str) -> CrossChainTransaction:
        """Like get_transaction, but raises TransactionNotFoundError."""
        tx = await self.repository.get(transaction_id)
        if tx is None:
            raise TransactionNotFoundError(transaction_id)
        return tx

    async def get_user_transactions(self, user_address: str) -> list[CrossChainTransaction]:
        """All transactions of an address, newest first."""
        return await self.repository.list_by_user(user_address)

    async def _mutate(
        self,
        transaction_id: str,
        operation: str,
        change: Callable[[CrossChainTransaction], None],
        expect: Optional[Collection[TransactionStatus]] = ACTIVE_STATUSES,
    ) -> CrossChainTransaction:
        """Apply change under the transaction lock and persist it.

        Terminal transactions are left alone unless expect says otherwise;
        expect=None skips the status check.

        Raises:
            TransactionNotFoundError: If the id is unknown
            InvalidTransitionError: If the current status is not in expect
        """
        async with TransactionLock(transaction_id, operation=operation):
            tx = await self.repository.get(transaction_id)
            if tx is None:
                logger.warning(f"Transaction not found: {transaction_id}")
                raise TransactionNotFoundError(transaction_id)
            if expect is not None and tx.status not in expect:
                logger.warning(
                    f"Refusing {operation} for {transaction_id}: status is {tx.status.value}"
                )
                raise InvalidTransitionError(transaction_id, tx.status.value, operation)
            change(tx)
            await self.repository.save(tx)
            return tx

    # ======================
    # Mutators
    # ======================

    async def update_source_tx_hash(
        self, transaction_id: str, tx_hash: str
    ) -> CrossChainTransaction:
        def change(tx: CrossChainTransaction) -> None:
            tx.source_tx_hash = tx_hash
            _record(
                tx,
                TransactionStatus.SOURCE_CONFIRMED,
                "Source chain transaction confirmed: "
                + get_explorer_link(tx.source_chain_id, tx_hash),
            )

        tx = await self._mutate(transaction_id, "update_source_tx_hash", change)
        logger.info(f"Updated source tx hash for {transaction_id}: {tx_hash}")
        return tx

    async def initiate_bridge(self, transaction_id: str) -> CrossChainTransaction:
        def change(tx: CrossChainTransaction) -> None:
            _record(
                tx,
                TransactionStatus.BRIDGE_INITIATED,
                f"Bridge transfer initiated: chain {tx.source_chain_id} -> {tx.target_chain_id}",
            )

        return await self._mutate(transaction_id, "initiate_bridge", change)

    async def update_bridge_message_id(
        self, transaction_id: str, message_id: str
    ) -> CrossChainTransaction:
        def change(tx: CrossChainTransaction) -> None:
            tx.bridge_message_id = message_id
            _record(
                tx, TransactionStatus.BRIDGE_IN_PROGRESS, f"Bridge message created: {message_id}"
            )

        tx = await self._mutate(transaction_id, "update_bridge_message_id", change)
        logger.info(f"Updated bridge message ID for {transaction_id}: {message_id}")
        return tx

    async def update_target_tx_hash(
        self, transaction_id: str, tx_hash: str
    ) -> CrossChainTransaction:
        def change(tx: CrossChainTransaction) -> None:
            tx.target_tx_hash = tx_hash
            _record(
                tx,
                TransactionStatus.TARGET_EXECUTING,
                "Target chain execution started: "
                + get_explorer_link(tx.target_chain_id, tx_hash),
            )

        tx = await self._mutate(transaction_id, "update_target_tx_hash", change)
        logger.info(f"Updated target tx hash for {transaction_id}: {tx_hash}")
        return tx

    async def complete_transaction(
        self, transaction_id: str, amount_out: int
    ) -> CrossChainTransaction:
        def change(tx: CrossChainTransaction) -> None:
            tx.amount_out = amount_out
            _finish(tx)
            _record(
                tx,
                TransactionStatus.COMPLETED,
                f"Transaction completed successfully. Amount out: {amount_out}",
            )

        tx = await self._mutate(transaction_id, "complete_transaction", change)
        logger.info(f"Completed transaction {transaction_id}: {amount_out}")
        return tx

    async def partially_complete_transaction(
        self, transaction_id: str, reason: str
    ) -> CrossChainTransaction:
        def change(tx: CrossChainTransaction) -> None:
            tx.error_message = reason
            _finish(tx)
            _record(
                tx,
                TransactionStatus.PARTIALLY_COMPLETED,
                f"Transaction partially completed: {reason}",
            )

        tx = await self._mutate(
            transaction_id, "partially_complete_transaction", change, expect=SETTLEABLE_STATUSES
        )
        logger.warning(f"Partially completed transaction {transaction_id}: {reason}")
        return tx

    async def fail_transaction(
        self, transaction_id: str, error_message: str
    ) -> CrossChainTransaction:
        def change(tx: CrossChainTransaction) -> None:
            tx.error_message = error_message
            _finish(tx)
            _record(tx, TransactionStatus.FAILED, f"Transaction failed: {error_message}")

        tx = await self._mutate(transaction_id, "fail_transaction", change)
        logger.error(f"Failed transaction {transaction_id}: {error_message}")
        return tx

    async def refund_transaction(
        self, transaction_id: str, refund_tx_hash: str, chain_id: Optional[int] = None
    ) -> CrossChainTransaction:
        """Mark refunded. chain_id is where the refund landed (source by default)."""

        def change(tx: CrossChainTransaction) -> None:
            refund_chain = chain_id if chain_id is not None else tx.source_chain_id
            _finish(tx)
            _record(
                tx,
                TransactionStatus.REFUNDED,
                "Transaction refunded: " + get_explorer_link(refund_chain, refund_tx_hash),
            )

        tx = await self._mutate(
            transaction_id, "refund_transaction", change, expect=SETTLEABLE_STATUSES
        )
        logger.info(f"Refunded transaction {transaction_id}: {refund_tx_hash}")
        return tx

    async def mark_retry(self, transaction_id: str) -> CrossChainTransaction:
        """
        Count a retry and put the transaction back in BRIDGE_IN_PROGRESS.

        Raises:
            TransactionNotFoundError: If the id is unknown
            NotRetryableError: If the transaction is not retryable
        """

        def change(tx: CrossChainTransaction) -> None:
            if not tx.is_retryable(self.max_retries):
                raise NotRetryableError(tx.transaction_id, tx.status.value, tx.retry_count)
            tx.retry_count += 1
            tx.error_message = None
            tx.completed_at = None
            tx.actual_time_seconds = None
            _record(
                tx,
                TransactionStatus.BRIDGE_IN_PROGRESS,
                f"Transaction retry #{tx.retry_count}",
            )

        tx = await self._mutate(transaction_id, "mark_retry", change, expect=None)
        logger.info(f"Retrying transaction {transaction_id}, attempt #{tx.retry_count}")
        return tx

    # ======================
    # Sweeps
    # ======================

    async def check_pending_transactions(self, skip: Collection[str] = ()) -> int:
        """
        Re-poll the bridge for every BRIDGE_IN_PROGRESS transaction.

        Transactions in skip (those an executor is still driving) are left
        alone. Returns the number of transactions advanced.
        """
        if self.bridge is None:
            logger.debug("No bridge adapter configured, skipping pending check")
            return 0

        logger.debug("Checking pending transactions...")
        pending = await self.repository.list_by_status(TransactionStatus.BRIDGE_IN_PROGRESS)

        advanced = 0
        for tx in pending:
            if tx.transaction_id in skip or not tx.bridge_message_id:
                continue
            try:
                if await self._update_bridge_status(tx):
                    advanced += 1
            except Exception as e:
                logger.error(f"Error checking bridge status for {tx.transaction_id}: {e}")

        if advanced:
            logger.info(f"Pending sweep advanced {advanced} transaction(s)")
        return advanced

    async def _update_bridge_status(self, tx: CrossChainTransaction) -> bool:
        status = await self.bridge.query_message_status(tx.bridge_message_id)

        if status == MESSAGE_COMPLETED:
            target_hash = "0x" + tx.bridge_message_id

            def change(current: CrossChainTransaction) -> None:
                current.target_tx_hash = target_hash
                _record(
                    current,
                    TransactionStatus.TARGET_EXECUTING,
                    "Target chain execution started: "
                    + get_explorer_link(current.target_chain_id, target_hash),
                )
                current.amount_out = current.estimated_amount_out
                _finish(current)
                _record(
                    current,
                    TransactionStatus.COMPLETED,
                    f"Transaction completed successfully. Amount out: {current.amount_out}",
                )

        elif status == MESSAGE_FAILED:

            def change(current: CrossChainTransaction) -> None:
                current.error_message = "Bridge message failed"
                _finish(current)
                _record(
                    current, TransactionStatus.FAILED, "Transaction failed: Bridge message failed"
                )

        else:
            return False

        try:
            updated = await self._mutate(
                tx.transaction_id,
                "bridge_sweep",
                change,
                expect=(TransactionStatus.BRIDGE_IN_PROGRESS,),
            )
        except InvalidTransitionError:
            # Advanced by its executor since the listing
            return False

        logger.info(f"Sweep moved {tx.transaction_id} to {updated.status.value}")
        return True

    async def cleanup_old_transactions(self, now: Optional[datetime] = None) -> int:
        """Purge terminal transactions older than the retention window."""
        cutoff = (now or utcnow()) - timedelta(days=self.retention_days)
        expired = await self.repository.delete_terminal_before(cutoff)
        for transaction_id in expired:
            release_transaction_lock(transaction_id)
        if expired:
            logger.info(f"Cleaned up {len(expired)} transaction(s) created before {cutoff}")
        return len(expired)
