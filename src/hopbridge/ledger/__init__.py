"""Transaction ledger with in-memory and SQL storage."""

from hopbridge.ledger.database import close_db, get_db, init_db
from hopbridge.ledger.repository import (
    InMemoryTransactionRepository,
    SqlTransactionRepository,
    TransactionRepository,
)
from hopbridge.ledger.service import TransactionLedger

__all__ = [
    "get_db",
    "init_db",
    "close_db",
    "TransactionRepository",
    "InMemoryTransactionRepository",
    "SqlTransactionRepository",
    "TransactionLedger",
]
