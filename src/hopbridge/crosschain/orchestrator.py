"""Transaction orchestrator - executes cross-chain routes step by step.

Flow:
1. Validate the route and create the ledger entry
2. Hand execution to an independent asyncio task, return the id at once
3. Walk the steps: SWAP -> chain writer, BRIDGE -> bridge adapter,
   RECEIVE -> poll the bridge until the message settles
4. On a step failure, refund where the funds currently sit:
   - after a BRIDGE step -> target chain
   - otherwise -> source chain
   A failed refund leaves the transaction PARTIALLY_COMPLETED for an operator.

The ledger is the only channel back to callers; errors inside the task are
recorded there and never raised.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional, Union

from hopbridge.amm.math import apply_slippage
from hopbridge.chains import is_valid_address
from hopbridge.config import Settings, get_settings
from hopbridge.crosschain.bridge import MESSAGE_COMPLETED, MESSAGE_FAILED, BridgeNetworkAdapter
from hopbridge.crosschain.fees import FeeEstimator
from hopbridge.crosschain.models import (
    CrossChainRoute,
    CrossChainTransaction,
    RouteStep,
    RouteType,
    StepType,
)
from hopbridge.crosschain.planner import CrossChainRoutePlanner
from hopbridge.crosschain.writer import ChainWriter
from hopbridge.exceptions import (
    BridgeFailedError,
    BridgeTimeoutError,
    ChainRpcError,
    InvalidRouteError,
    InvalidTransitionError,
    NotRetryableError,
    RefundFailedError,
)
from hopbridge.ledger.service import TransactionLedger

logger = logging.getLogger(__name__)


class TransactionOrchestrator:
    """Runs cross-chain transactions as background tasks."""

    def __init__(
        self,
        ledger: TransactionLedger,
        bridge: BridgeNetworkAdapter,
        planner: CrossChainRoutePlanner,
        writer: ChainWriter,
        fees: FeeEstimator,
        settings: Optional[Settings] = None,
    ):
        self.ledger = ledger
        self.bridge = bridge
        self.planner = planner
        self.writer = writer
        self.fees = fees
        self.settings = settings or get_settings()
        self._tasks: dict[str, asyncio.Task] = {}
        self._routes: dict[str, CrossChainRoute] = {}
        self._users: dict[str, str] = {}
        self._slippage: dict[str, Decimal] = {}
        self._retrying: set[str] = set()

    # ======================
    # Launch
    # ======================

    async def execute_cross_chain_swap(
        self,
        route: CrossChainRoute,
        user_address: str,
        slippage_percent: Optional[Union[Decimal, str, float]] = None,
    ) -> str:
        """
        Validate a route, record it and start executing it.

        Args:
            route: A route returned by search_routes
            user_address: Recipient of swaps and refunds
            slippage_percent: Percent, e.g. 0.5 for 0.5%; defaults to settings

        Returns:
            The new transaction id; progress is observable through the ledger

        Raises:
            CircuitBreakerOpenError, BridgePathUnsupportedError, InvalidRouteError
        """
        if not is_valid_address(user_address):
            raise InvalidRouteError(f"Invalid user address: {user_address!r}")
        self.planner.check_route(route)

        if slippage_percent is None:
            slippage = self.settings.default_slippage
        else:
            slippage = Decimal(str(slippage_percent)) / Decimal("100")

        tx = await self.ledger.create_transaction(
            user_address=user_address,
            source_chain_id=route.source_chain_id,
            target_chain_id=route.target_chain_id,
            source_token=route.source_token,
            target_token=route.target_token,
            amount_in=route.amount_in,
            estimated_amount_out=route.estimated_amount_out,
            estimated_time_seconds=route.estimated_time_seconds,
        )
        tx_id = tx.transaction_id
        self._routes[tx_id] = route
        self._users[tx_id] = user_address
        self._slippage[tx_id] = slippage

        self._spawn(tx_id, self._run(tx_id, route, start_index=0))
        logger.info(
            f"Launched {tx_id}: {route.amount_in} {route.source_token} "
            f"chain {route.source_chain_id} -> {route.target_chain_id} ({len(route.steps)} steps)"
        )
        return tx_id

    def _spawn(self, transaction_id: str, coro) -> asyncio.Task:
        task = asyncio.create_task(coro, name=f"crosschain-{transaction_id}")
        self._tasks[transaction_id] = task

        def _done(finished: asyncio.Task) -> None:
            if self._tasks.get(transaction_id) is finished:
                del self._tasks[transaction_id]

        task.add_done_callback(_done)
        return task

    def in_flight(self) -> set[str]:
        """Ids of transactions whose execution task is still running."""
        return {tx_id for tx_id, task in self._tasks.items() if not task.done()}

    # ======================
    # Execution
    # ======================

    async def _run(self, transaction_id: str, route: CrossChainRoute, start_index: int) -> None:
        try:
            for index in range(start_index, len(route.steps)):
                step = route.steps[index]
                try:
                    await self._execute_step(transaction_id, route, step)
                except (asyncio.CancelledError, InvalidTransitionError):
                    raise
                except Exception as e:
                    logger.error(
                        f"{transaction_id}: step {index + 1} ({step.step_type.value}) failed: {e}"
                    )
                    await self._handle_failure(transaction_id, route, index, e)
                    return

            await self.ledger.complete_transaction(transaction_id, route.estimated_amount_out)
            self._forget(transaction_id)
        except asyncio.CancelledError:
            logger.warning(f"Execution of {transaction_id} cancelled")
            raise
        except InvalidTransitionError as e:
            # Finalized elsewhere (e.g. a sweep in another process)
            logger.info(f"Stopping execution of {transaction_id}: {e}")
        except Exception as e:
            # Ledger itself is unavailable: nothing left to record into
            logger.exception(f"Execution of {transaction_id} aborted: {e}")

    async def _execute_step(
        self, transaction_id: str, route: CrossChainRoute, step: RouteStep
    ) -> None:
        user_address = self._users[transaction_id]

        if step.step_type == StepType.SWAP:
            min_amount_out = apply_slippage(step.amount_out, self._slippage[transaction_id])
            tx_hash = await self.writer.submit_swap(
                step.chain_id,
                step.token_in,
                step.token_out,
                step.amount_in,
                min_amount_out,
                user_address,
            )
            if step.chain_id == route.source_chain_id:
                await self.ledger.update_source_tx_hash(transaction_id, tx_hash)
            else:
                await self.ledger.update_target_tx_hash(transaction_id, tx_hash)

        elif step.step_type == StepType.BRIDGE:
            await self.ledger.initiate_bridge(transaction_id)
            payload = self.bridge.build_bridge_payload(step.token_in, step.amount_in, user_address)
            message_id = await self.bridge.send_cross_chain_message(
                route.source_chain_id, route.target_chain_id, payload, amount=step.amount_in
            )
            await self.ledger.update_bridge_message_id(transaction_id, message_id)

        elif step.step_type == StepType.RECEIVE:
            message_id = await self.wait_for_bridge(transaction_id)
            await self.ledger.update_target_tx_hash(transaction_id, "0x" + message_id)

    async def wait_for_bridge(self, transaction_id: str) -> str:
        """
        Poll the bridge until the transaction's message settles.

        Returns:
            The settled message id

        Raises:
            BridgeFailedError: If the bridge reports the message failed
            BridgeTimeoutError: If it is still pending after max_retry_attempts polls
        """
        tx = await self.ledger.require_transaction(transaction_id)
        message_id = tx.bridge_message_id
        if not message_id:
            raise BridgeFailedError(None)

        attempts = self.settings.max_retry_attempts
        for attempt in range(1, attempts + 1):
            try:
                status = await self.bridge.query_message_status(message_id)
            except ChainRpcError as e:
                logger.warning(
                    f"Bridge status poll {attempt}/{attempts} for {message_id} failed: {e}"
                )
                status = None

            if status == MESSAGE_COMPLETED:
                return message_id
            if status == MESSAGE_FAILED:
                raise BridgeFailedError(message_id)

            if attempt < attempts:
                await asyncio.sleep(self.settings.retry_delay_seconds)

        raise BridgeTimeoutError(message_id, attempts)

    async def _handle_failure(
        self,
        transaction_id: str,
        route: CrossChainRoute,
        failed_index: int,
        error: Exception,
    ) -> None:
        step = route.steps[failed_index]
        await self.ledger.fail_transaction(
            transaction_id, f"Step {failed_index + 1} ({step.step_type.value}) failed: {error}"
        )

        if failed_index == 0:
            # Nothing has moved yet
            return

        held = route.steps[failed_index - 1]
        bridged = any(s.step_type == StepType.BRIDGE for s in route.steps[:failed_index])
        refund_chain = route.target_chain_id if bridged else route.source_chain_id

        try:
            refund_hash = await self.refund(
                transaction_id, refund_chain, held.token_out, held.amount_out
            )
        except RefundFailedError as e:
            await self.ledger.partially_complete_transaction(
                transaction_id,
                f"{e}. Funds ({held.amount_out} {held.token_out}) need manual intervention",
            )
            self._forget(transaction_id)
            return

        await self.ledger.refund_transaction(transaction_id, refund_hash, chain_id=refund_chain)
        self._forget(transaction_id)

    async def refund(self, transaction_id: str, chain_id: int, token: str, amount: int) -> str:
        """
        Submit a refund to the transaction's user.

        Raises:
            RefundFailedError: If the chain writer fails
        """
        user_address = self._users.get(transaction_id)
        if user_address is None:
            user_address = (await self.ledger.require_transaction(transaction_id)).user_address

        logger.info(f"Refunding {amount} {token} on chain {chain_id} for {transaction_id}")
        try:
            return await self.writer.submit_refund(chain_id, token, amount, user_address)
        except Exception as e:
            logger.error(f"Refund for {transaction_id} on chain {chain_id} failed: {e}")
            raise RefundFailedError(transaction_id, chain_id, e) from e

    # ======================
    # Retry
    # ======================

    async def retry_transaction(self, transaction_id: str) -> CrossChainTransaction:
        """
        Re-attempt bridging for a FAILED or stuck BRIDGE_IN_PROGRESS transaction.

        Raises:
            TransactionNotFoundError: If the id is unknown
            NotRetryableError: If the transaction is not retryable or still executing
        """
        # Claimed before the first await so concurrent retries cannot both pass
        if transaction_id in self._retrying or transaction_id in self.in_flight():
            tx = await self.ledger.require_transaction(transaction_id)
            raise NotRetryableError(transaction_id, tx.status.value, tx.retry_count)
        self._retrying.add(transaction_id)

        try:
            tx = await self.ledger.mark_retry(transaction_id)

            route = self._routes.get(transaction_id) or self._fallback_route(tx)
            self._routes[transaction_id] = route
            self._users.setdefault(transaction_id, tx.user_address)
            self._slippage.setdefault(transaction_id, self.settings.default_slippage)

            start_index = self._resume_index(tx, route)
            self._spawn(transaction_id, self._run(transaction_id, route, start_index))
        finally:
            self._retrying.discard(transaction_id)
        return tx

    @staticmethod
    def _resume_index(tx: CrossChainTransaction, route: CrossChainRoute) -> int:
        bridge_index = next(
            (i for i, s in enumerate(route.steps) if s.step_type == StepType.BRIDGE), 0
        )
        # Source swaps that never confirmed have to run again
        if bridge_index > 0 and tx.source_tx_hash is None:
            return 0
        return bridge_index

    def _fallback_route(self, tx: CrossChainTransaction) -> CrossChainRoute:
        """Bridge-only route for transactions whose plan is no longer in memory."""
        logger.warning(f"No stored route for {tx.transaction_id}, retrying as a direct bridge")
        fee = self.bridge.get_bridge_fee(tx.source_chain_id, tx.target_chain_id)
        amount_out = tx.amount_in - fee
        step = RouteStep(
            step_type=StepType.BRIDGE,
            chain_id=tx.source_chain_id,
            protocol=self.bridge.bridge_name,
            token_in=tx.source_token,
            token_out=tx.target_token,
            amount_in=tx.amount_in,
            amount_out=amount_out,
            fee=fee,
            description=f"Bridge from chain {tx.source_chain_id} to chain {tx.target_chain_id}",
        )
        return CrossChainRoute(
            source_chain_id=tx.source_chain_id,
            target_chain_id=tx.target_chain_id,
            source_token=tx.source_token,
            target_token=tx.target_token,
            amount_in=tx.amount_in,
            estimated_amount_out=tx.estimated_amount_out or amount_out,
            min_amount_out=apply_slippage(max(amount_out, 0), self.settings.default_slippage),
            steps=(step,),
            fee_breakdown=self.fees.calculate_fee_breakdown(
                tx.source_chain_id, tx.target_chain_id, tx.amount_in, [step]
            ),
            estimated_time_seconds=self.bridge.get_estimated_bridge_time(
                tx.source_chain_id, tx.target_chain_id
            ),
            route_type=RouteType.FASTEST,
        )

    # ======================
    # Queries and maintenance
    # ======================

    async def get_transaction(self, transaction_id: str) -> Optional[CrossChainTransaction]:
        return await self.ledger.get_transaction(transaction_id)

    async def get_user_transactions(self, user_address: str) -> list[CrossChainTransaction]:
        return await self.ledger.get_user_transactions(user_address)

    def is_route_available(self, source_chain_id: int, target_chain_id: int) -> bool:
        return self.bridge.is_bridge_path_supported(
            source_chain_id, target_chain_id
        ) and not self.bridge.is_circuit_breaker_open(source_chain_id, target_chain_id)

    def estimate_gas_fee(self, route: CrossChainRoute) -> int:
        """Source plus target chain gas for a route, in wei."""
        breakdown = self.fees.estimate_route_fees(route)
        return breakdown.source_chain_gas_fee + breakdown.target_chain_gas_fee

    def _forget(self, transaction_id: str) -> None:
        """Drop the in-memory plan of a transaction retry can no longer reach."""
        self._routes.pop(transaction_id, None)
        self._users.pop(transaction_id, None)
        self._slippage.pop(transaction_id, None)

    async def prune_finished(self) -> int:
        """
        Forget plans of transactions that are purged or no longer retryable.

        Returns:
            Number of plans dropped
        """
        busy = self.in_flight() | self._retrying
        pruned = 0
        for transaction_id in list(self._routes):
            if transaction_id in busy:
                continue
            tx = await self.ledger.get_transaction(transaction_id)
            if tx is None or not tx.is_retryable(self.ledger.max_retries):
                self._forget(transaction_id)
                pruned += 1
        if pruned:
            logger.debug(f"Pruned {pruned} finished execution plan(s)")
        return pruned

    async def check_pending_transactions(self) -> int:
        """Run the ledger's bridge sweep, skipping transactions still executing."""
        return await self.ledger.check_pending_transactions(skip=self.in_flight())

    async def wait_for(
        self, transaction_id: str, timeout: Optional[float] = None
    ) -> Optional[CrossChainTransaction]:
        """Wait for a transaction's execution task, then return its record."""
        task = self._tasks.get(transaction_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        return await self.ledger.get_transaction(transaction_id)

    async def shutdown(self) -> None:
        """Cancel in-flight tasks at process exit."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} in-flight transaction(s)")
        self._tasks.clear()
