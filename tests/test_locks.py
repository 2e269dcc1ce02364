"""Tests for per-transaction locks."""

import asyncio

import pytest

from hopbridge.utils.locks import (
    LockTimeoutError,
    TransactionLock,
    get_transaction_lock,
    release_transaction_lock,
    transaction_lock,
)


class TestTransactionLock:
    """Tests for the lock registry and context managers."""

    def test_same_id_same_lock(self):
        assert get_transaction_lock("TX-A") is get_transaction_lock("TX-A")
        assert get_transaction_lock("TX-A") is not get_transaction_lock("TX-B")

    @pytest.mark.asyncio
    async def test_serializes_same_transaction(self):
        events = []

        async def worker(name):
            async with TransactionLock("TX-A", operation=name):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(worker("first"), worker("second"))

        assert events == ["first-start", "first-end", "second-start", "second-end"]

    @pytest.mark.asyncio
    async def test_different_transactions_interleave(self):
        events = []

        async def worker(tx_id):
            async with transaction_lock(tx_id):
                events.append(f"{tx_id}-start")
                await asyncio.sleep(0.01)
                events.append(f"{tx_id}-end")

        await asyncio.gather(worker("TX-A"), worker("TX-B"))

        assert events[:2] == ["TX-A-start", "TX-B-start"]

    @pytest.mark.asyncio
    async def test_timeout(self):
        async with TransactionLock("TX-A"):
            with pytest.raises(LockTimeoutError):
                async with TransactionLock("TX-A", timeout=0.01):
                    pass

        # Released after the outer block
        async with TransactionLock("TX-A", timeout=0.01):
            pass

    @pytest.mark.asyncio
    async def test_release_keeps_held_lock(self):
        async with TransactionLock("TX-A"):
            held = get_transaction_lock("TX-A")
            release_transaction_lock("TX-A")
            assert get_transaction_lock("TX-A") is held

        release_transaction_lock("TX-A")
        assert get_transaction_lock("TX-A") is not held
