"""Storage backends for cross-chain transaction records.

The ledger service talks only to TransactionRepository, so the in-memory
store used for dry runs and the SQL store are interchangeable. Both hand
out copies: callers never hold a live reference to stored state.
"""

import copy
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hopbridge.crosschain.models import (
    TERMINAL_STATUSES,
    CrossChainTransaction,
    StatusHistory,
    TransactionStatus,
)
from hopbridge.exceptions import TransactionNotFoundError
from hopbridge.ledger.database import get_db
from hopbridge.ledger.models import StatusHistoryRecord, TransactionRecord


class TransactionRepository(ABC):
    """Persistence interface for CrossChainTransaction aggregates."""

    @abstractmethod
    async def add(self, transaction: CrossChainTransaction) -> None:
        """Store a new transaction."""

    @abstractmethod
    async def get(self, transaction_id: str) -> Optional[CrossChainTransaction]:
        """Return a copy of a transaction, or None."""

    @abstractmethod
    async def save(self, transaction: CrossChainTransaction) -> None:
        """
        Persist the current state of an existing transaction.

        History entries beyond those already stored are appended.

        Raises:
            TransactionNotFoundError: If the transaction was never added
        """

    @abstractmethod
    async def list_by_user(self, user_address: str) -> list[CrossChainTransaction]:
        """Transactions of a user (case-insensitive), newest first."""

    @abstractmethod
    async def list_by_status(self, status: TransactionStatus) -> list[CrossChainTransaction]:
        """Transactions currently in a status, oldest first."""

    @abstractmethod
    async def delete_terminal_before(self, cutoff: datetime) -> list[str]:
        """Delete terminal transactions created before cutoff; return their ids."""


class InMemoryTransactionRepository(TransactionRepository):
    """Dict-backed repository."""

    def __init__(self):
        self._transactions: dict[str, CrossChainTransaction] = {}

    async def add(self, transaction: CrossChainTransaction) -> None:
        self._transactions[transaction.transaction_id] = copy.deepcopy(transaction)

    async def get(self, transaction_id: str) -> Optional[CrossChainTransaction]:
        transaction = self._transactions.get(transaction_id)
        return copy.deepcopy(transaction) if transaction else None

    async def save(self, transaction: CrossChainTransaction) -> None:
        if transaction.transaction_id not in self._transactions:
            raise TransactionNotFoundError(transaction.transaction_id)
        self._transactions[transaction.transaction_id] = copy.deepcopy(transaction)

    async def list_by_user(self, user_address: str) -> list[CrossChainTransaction]:
        address = user_address.lower()
        matches = [
            tx for tx in self._transactions.values() if tx.user_address.lower() == address
        ]
        matches.sort(key=lambda tx: tx.created_at, reverse=True)
        return [copy.deepcopy(tx) for tx in matches]

    async def list_by_status(self, status: TransactionStatus) -> list[CrossChainTransaction]:
        matches = [tx for tx in self._transactions.values() if tx.status == status]
        matches.sort(key=lambda tx: tx.created_at)
        return [copy.deepcopy(tx) for tx in matches]

    async def delete_terminal_before(self, cutoff: datetime) -> list[str]:
        expired = [
            tx_id
            for tx_id, tx in self._transactions.items()
            if tx.status in TERMINAL_STATUSES and tx.created_at < cutoff
        ]
        for tx_id in expired:
            del self._transactions[tx_id]
        return expired

    def __len__(self) -> int:
        return len(self._transactions)


def _opt_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value is not None else None


def _opt_str(value: Optional[int]) -> Optional[str]:
    return str(value) if value is not None else None


def _to_domain(record: TransactionRecord) -> CrossChainTransaction:
    return CrossChainTransaction(
        transaction_id=record.transaction_id,
        user_address=record.user_address,
        source_chain_id=record.source_chain_id,
        target_chain_id=record.target_chain_id,
        source_token=record.source_token,
        target_token=record.target_token,
        amount_in=int(record.amount_in),
        amount_out=_opt_int(record.amount_out),
        estimated_amount_out=_opt_int(record.estimated_amount_out),
        status=TransactionStatus(record.status),
        status_history=[
            StatusHistory(
                status=TransactionStatus(entry.status),
                timestamp=entry.timestamp,
                description=entry.description,
            )
            for entry in record.history
        ],
        source_tx_hash=record.source_tx_hash,
        bridge_message_id=record.bridge_message_id,
        target_tx_hash=record.target_tx_hash,
        created_at=record.created_at,
        completed_at=record.completed_at,
        estimated_time_seconds=record.estimated_time_seconds,
        actual_time_seconds=record.actual_time_seconds,
        error_message=record.error_message,
        retry_count=record.retry_count,
    )


def _apply(record: TransactionRecord, transaction: CrossChainTransaction) -> None:
    """Copy mutable fields onto a record and append unseen history entries."""
    record.amount_out = _opt_str(transaction.amount_out)
    record.estimated_amount_out = _opt_str(transaction.estimated_amount_out)
    record.status = transaction.status.value
    record.source_tx_hash = transaction.source_tx_hash
    record.bridge_message_id = transaction.bridge_message_id
    record.target_tx_hash = transaction.target_tx_hash
    record.error_message = transaction.error_message
    record.retry_count = transaction.retry_count
    record.estimated_time_seconds = transaction.estimated_time_seconds
    record.actual_time_seconds = transaction.actual_time_seconds
    record.completed_at = transaction.completed_at

    for entry in transaction.status_history[len(record.history) :]:
        record.history.append(
            StatusHistoryRecord(
                status=entry.status.value,
                timestamp=entry.timestamp,
                description=entry.description,
            )
        )


class SqlTransactionRepository(TransactionRepository):
    """SQLAlchemy async repository (aiosqlite by default)."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self.session_factory = session_factory

    async def add(self, transaction: CrossChainTransaction) -> None:
        record = TransactionRecord(
            transaction_id=transaction.transaction_id,
            user_address=transaction.user_address,
            source_chain_id=transaction.source_chain_id,
            target_chain_id=transaction.target_chain_id,
            source_token=transaction.source_token,
            target_token=transaction.target_token,
            amount_in=str(transaction.amount_in),
            created_at=transaction.created_at,
            history=[],
        )
        _apply(record, transaction)
        async with get_db(self.session_factory) as session:
            session.add(record)

    async def get(self, transaction_id: str) -> Optional[CrossChainTransaction]:
        async with get_db(self.session_factory) as session:
            record = await session.get(TransactionRecord, transaction_id)
            return _to_domain(record) if record else None

    async def save(self, transaction: CrossChainTransaction) -> None:
        async with get_db(self.session_factory) as session:
            record = await session.get(TransactionRecord, transaction.transaction_id)
            if record is None:
                raise TransactionNotFoundError(transaction.transaction_id)
            _apply(record, transaction)

    async def _select(self, stmt) -> list[CrossChainTransaction]:
        async with get_db(self.session_factory) as session:
            result = await session.execute(stmt)
            return [_to_domain(record) for record in result.scalars().all()]

    async def list_by_user(self, user_address: str) -> list[CrossChainTransaction]:
        stmt = (
            select(TransactionRecord)
            .where(func.lower(TransactionRecord.user_address) == user_address.lower())
            .order_by(TransactionRecord.created_at.desc())
        )
        return await self._select(stmt)

    async def list_by_status(self, status: TransactionStatus) -> list[CrossChainTransaction]:
        stmt = (
            select(TransactionRecord)
            .where(TransactionRecord.status == status.value)
            .order_by(TransactionRecord.created_at)
        )
        return await self._select(stmt)

    async def delete_terminal_before(self, cutoff: datetime) -> list[str]:
        terminal = [status.value for status in TERMINAL_STATUSES]
        async with get_db(self.session_factory) as session:
            result = await session.execute(
                select(TransactionRecord.transaction_id).where(
                    TransactionRecord.status.in_(terminal),
                    TransactionRecord.created_at < cutoff,
                )
            )
            expired = list(result.scalars().all())
            if expired:
                await _delete_ids(session, expired)
            return expired


async def _delete_ids(session: AsyncSession, transaction_ids: Iterable[str]) -> None:
    ids = list(transaction_ids)
    await session.execute(
        delete(StatusHistoryRecord).where(StatusHistoryRecord.transaction_id.in_(ids))
    )
    await session.execute(
        delete(TransactionRecord).where(TransactionRecord.transaction_id.in_(ids))
    )
