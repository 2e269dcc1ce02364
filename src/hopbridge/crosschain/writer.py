"""On-chain write collaborator used by the orchestrator."""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from hopbridge.exceptions import ChainRpcError

logger = logging.getLogger(__name__)


def mock_tx_hash() -> str:
    return "0x" + uuid.uuid4().hex


class ChainWriter(ABC):
    """Submits signed transactions. Signing itself happens elsewhere."""

    @abstractmethod
    async def submit_swap(
        self,
        chain_id: int,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int,
        recipient: str,
    ) -> str:
        """
        Execute a swap and return its transaction hash.

        Raises:
            ChainRpcError: On network or revert errors
        """

    @abstractmethod
    async def submit_refund(self, chain_id: int, token: str, amount: int, recipient: str) -> str:
        """
        Return funds to the user and return the refund transaction hash.

        Raises:
            ChainRpcError: On network or revert errors
        """


class DryRunChainWriter(ChainWriter):
    """Simulated writer with random hashes and scriptable failures.

    fail_swaps_on / fail_refunds_on hold chain ids whose writes revert.
    """

    def __init__(self, delay_seconds: float = 0.0):
        self.delay_seconds = delay_seconds
        self.fail_swaps_on: set[int] = set()
        self.fail_refunds_on: set[int] = set()
        self.swaps: list[dict] = []
        self.refunds: list[dict] = []

    async def _simulate_latency(self) -> None:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

    async def submit_swap(
        self,
        chain_id: int,
        token_in: str,
        token_out: str,
        amount_in: int,
        min_amount_out: int,
        recipient: str,
    ) -> str:
        await self._simulate_latency()
        if chain_id in self.fail_swaps_on:
            raise ChainRpcError(f"Swap reverted on chain {chain_id}")

        tx_hash = mock_tx_hash()
        self.swaps.append(
            {
                "chain_id": chain_id,
                "token_in": token_in,
                "token_out": token_out,
                "amount_in": amount_in,
                "min_amount_out": min_amount_out,
                "recipient": recipient,
                "tx_hash": tx_hash,
            }
        )
        logger.info(f"[DRY RUN] Swap on chain {chain_id}: {amount_in} {token_in} -> {token_out}")
        return tx_hash

    async def submit_refund(self, chain_id: int, token: str, amount: int, recipient: str) -> str:
        await self._simulate_latency()
        if chain_id in self.fail_refunds_on:
            raise ChainRpcError(f"Refund reverted on chain {chain_id}")

        tx_hash = mock_tx_hash()
        self.refunds.append(
            {
                "chain_id": chain_id,
                "token": token,
                "amount": amount,
                "recipient": recipient,
                "tx_hash": tx_hash,
            }
        )
        logger.info(f"[DRY RUN] Refund on chain {chain_id}: {amount} {token} to {recipient}")
        return tx_hash

    def last_refund(self) -> Optional[dict]:
        return self.refunds[-1] if self.refunds else None
