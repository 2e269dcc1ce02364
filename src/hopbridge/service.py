"""Cross-chain swap service facade.

The one entry point an API layer talks to: single-chain quotes, cross-chain
route search, execution and transaction queries.
"""

import logging
from decimal import Decimal
from typing import Optional, Sequence, Union

from hopbridge.amm.base import RouteCandidate
from hopbridge.amm.search import RouteSearchEngine
from hopbridge.crosschain.bridge import BridgeNetworkAdapter
from hopbridge.crosschain.models import (
    ChainPair,
    CrossChainRoute,
    CrossChainTransaction,
    RouteType,
)
from hopbridge.crosschain.orchestrator import TransactionOrchestrator
from hopbridge.crosschain.planner import CrossChainRoutePlanner
from hopbridge.ledger.service import TransactionLedger

logger = logging.getLogger(__name__)


class CrossChainSwapService:
    """Facade over route search, planning, orchestration and the ledger."""

    def __init__(
        self,
        search_engines: dict[int, RouteSearchEngine],
        planner: CrossChainRoutePlanner,
        orchestrator: TransactionOrchestrator,
    ):
        self.search_engines = search_engines
        self.planner = planner
        self.orchestrator = orchestrator

    @property
    def bridge(self) -> BridgeNetworkAdapter:
        return self.orchestrator.bridge

    @property
    def ledger(self) -> TransactionLedger:
        return self.orchestrator.ledger

    def get_search_engine(self, chain_id: int) -> RouteSearchEngine:
        engine = self.search_engines.get(chain_id)
        if engine is None:
            raise ValueError(f"No AMM reader configured for chain {chain_id}")
        return engine

    # ======================
    # Quotes
    # ======================

    async def find_best_route(
        self,
        chain_id: int,
        token_in: str,
        token_out: str,
        amount_in: int,
        slippage_tolerance: Optional[Union[Decimal, str, float]] = None,
        intermediate_tokens: Optional[Sequence[str]] = None,
    ) -> RouteCandidate:
        """Best single-chain path on chain_id. See RouteSearchEngine.find_best_route."""
        return await self.get_search_engine(chain_id).find_best_route(
            token_in,
            token_out,
            amount_in,
            slippage_tolerance=slippage_tolerance,
            intermediate_tokens=intermediate_tokens,
        )

    async def search_routes(
        self,
        source_chain_id: int,
        target_chain_id: int,
        source_token: str,
        target_token: str,
        amount_in: int,
        route_type: Union[RouteType, str] = RouteType.BALANCED,
    ) -> list[CrossChainRoute]:
        return await self.planner.search_routes(
            source_chain_id, target_chain_id, source_token, target_token, amount_in, route_type
        )

    # ======================
    # Execution
    # ======================

    async def execute_cross_chain_swap(
        self,
        route: CrossChainRoute,
        user_address: str,
        slippage_percent: Optional[Union[Decimal, str, float]] = None,
    ) -> str:
        return await self.orchestrator.execute_cross_chain_swap(
            route, user_address, slippage_percent
        )

    async def retry_transaction(self, transaction_id: str) -> CrossChainTransaction:
        return await self.orchestrator.retry_transaction(transaction_id)

    async def get_transaction(self, transaction_id: str) -> Optional[CrossChainTransaction]:
        return await self.orchestrator.get_transaction(transaction_id)

    async def get_user_transactions(self, user_address: str) -> list[CrossChainTransaction]:
        return await self.orchestrator.get_user_transactions(user_address)

    # ======================
    # Bridge info
    # ======================

    def is_route_available(self, source_chain_id: int, target_chain_id: int) -> bool:
        return self.orchestrator.is_route_available(source_chain_id, target_chain_id)

    def get_supported_bridge_paths(self) -> list[ChainPair]:
        return self.bridge.get_supported_bridge_paths()

    def estimate_gas_fee(self, route: CrossChainRoute) -> int:
        return self.orchestrator.estimate_gas_fee(route)

    # ======================
    # Maintenance
    # ======================

    async def check_pending_transactions(self) -> int:
        return await self.orchestrator.check_pending_transactions()

    async def cleanup_old_transactions(self) -> int:
        removed = await self.ledger.cleanup_old_transactions()
        await self.orchestrator.prune_finished()
        return removed

    async def reset_daily_limits(self) -> None:
        await self.bridge.reset_daily_limits()

    async def close(self) -> None:
        """Cancel in-flight executions."""
        await self.orchestrator.shutdown()
