"""Utility modules for hopbridge."""

from hopbridge.utils.locks import TransactionLock, get_transaction_lock

__all__ = ["TransactionLock", "get_transaction_lock"]
