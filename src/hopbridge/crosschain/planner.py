"""Cross-chain route planning: direct bridge and stablecoin relay candidates."""

import logging
from typing import Optional, Union

from hopbridge.amm.math import apply_rate, apply_slippage, loss_percent
from hopbridge.chains import get_dex_name
from hopbridge.config import Settings, get_settings
from hopbridge.crosschain.bridge import BridgeNetworkAdapter
from hopbridge.crosschain.fees import FeeEstimator
from hopbridge.crosschain.models import CrossChainRoute, RouteStep, RouteType, StepType
from hopbridge.exceptions import (
    BridgePathUnsupportedError,
    CircuitBreakerOpenError,
    InvalidRouteError,
)

logger = logging.getLogger(__name__)

# Extra time for the swap legs around a relay bridge hop
RELAY_EXTRA_SECONDS = 60


class CrossChainRoutePlanner:
    """Builds and ranks candidate routes between two chains."""

    def __init__(
        self,
        bridge: BridgeNetworkAdapter,
        fees: FeeEstimator,
        settings: Optional[Settings] = None,
    ):
        self.bridge = bridge
        self.fees = fees
        self.settings = settings or get_settings()

    async def search_routes(
        self,
        source_chain_id: int,
        target_chain_id: int,
        source_token: str,
        target_token: str,
        amount_in: int,
        route_type: Union[RouteType, str] = RouteType.BALANCED,
    ) -> list[CrossChainRoute]:
        """
        Candidate routes, best first for the requested policy.

        An unsupported lane, or one behind an open circuit breaker, yields
        an empty list rather than an error.
        """
        route_type = RouteType(route_type)
        logger.info(
            f"Searching cross-chain routes: {source_chain_id}->{target_chain_id}, "
            f"token: {source_token}->{target_token}, amount: {amount_in}"
        )

        if not self.bridge.is_bridge_path_supported(source_chain_id, target_chain_id):
            logger.warning(f"Bridge path not supported: {source_chain_id} -> {target_chain_id}")
            return []

        if self.bridge.is_circuit_breaker_open(source_chain_id, target_chain_id):
            logger.warning(f"Circuit breaker open for {source_chain_id} -> {target_chain_id}")
            return []

        routes = []
        for candidate in (
            self.build_direct_route(
                source_chain_id, target_chain_id, source_token, target_token, amount_in
            ),
            self.build_stablecoin_route(
                source_chain_id, target_chain_id, source_token, target_token, amount_in
            ),
        ):
            if candidate is not None and candidate.estimated_amount_out > 0:
                routes.append(candidate)

        if not routes:
            logger.error(f"No cross-chain route found for: {source_chain_id} -> {target_chain_id}")
            return []

        return self.rank_routes(routes, route_type)

    def _bridge_steps(
        self,
        source_chain_id: int,
        target_chain_id: int,
        token_in: str,
        token_out: str,
        amount_in: int,
        description: str,
    ) -> list[RouteStep]:
        fee = self.bridge.get_bridge_fee(source_chain_id, target_chain_id)
        amount_out = amount_in - fee
        steps = [
            RouteStep(
                step_type=StepType.BRIDGE,
                chain_id=source_chain_id,
                protocol=self.bridge.bridge_name,
                token_in=token_in,
                token_out=token_out,
                amount_in=amount_in,
                amount_out=amount_out,
                fee=fee,
                description=description,
            )
        ]
        if self.settings.include_receive_step:
            steps.append(
                RouteStep(
                    step_type=StepType.RECEIVE,
                    chain_id=target_chain_id,
                    protocol=self.bridge.bridge_name,
                    token_in=token_out,
                    token_out=token_out,
                    amount_in=amount_out,
                    amount_out=amount_out,
                    description=f"Receive bridged funds on chain {target_chain_id}",
                )
            )
        return steps

    def _swap_step(
        self, chain_id: int, token_in: str, token_out: str, amount_in: int, description: str
    ) -> RouteStep:
        fee = apply_rate(amount_in, self.settings.swap_fee_rate)
        return RouteStep(
            step_type=StepType.SWAP,
            chain_id=chain_id,
            protocol=get_dex_name(chain_id),
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            amount_out=amount_in - fee,
            fee=fee,
            description=description,
        )

    def build_direct_route(
        self,
        source_chain_id: int,
        target_chain_id: int,
        source_token: str,
        target_token: str,
        amount_in: int,
    ) -> Optional[CrossChainRoute]:
        """Single bridge hop. Only for tokens the bridge carries natively."""
        if not (
            self.bridge.is_bridge_asset(source_chain_id, source_token)
            and self.bridge.is_bridge_asset(target_chain_id, target_token)
        ):
            logger.debug(f"Direct bridge unavailable for {source_token} -> {target_token}")
            return None

        steps = self._bridge_steps(
            source_chain_id,
            target_chain_id,
            source_token,
            target_token,
            amount_in,
            f"Bridge from chain {source_chain_id} to chain {target_chain_id}",
        )
        amount_out = steps[-1].amount_out

        return CrossChainRoute(
            source_chain_id=source_chain_id,
            target_chain_id=target_chain_id,
            source_token=source_token,
            target_token=target_token,
            amount_in=amount_in,
            estimated_amount_out=amount_out,
            min_amount_out=apply_slippage(max(amount_out, 0), self.settings.default_slippage),
            steps=tuple(steps),
            fee_breakdown=self.fees.calculate_fee_breakdown(
                source_chain_id, target_chain_id, amount_in, steps
            ),
            estimated_time_seconds=self.bridge.get_estimated_bridge_time(
                source_chain_id, target_chain_id
            ),
            route_type=RouteType.FASTEST,
        )

    def build_stablecoin_route(
        self,
        source_chain_id: int,
        target_chain_id: int,
        source_token: str,
        target_token: str,
        amount_in: int,
    ) -> Optional[CrossChainRoute]:
        """Swap into the stablecoin, bridge it, swap out on the target chain.

        Swap legs are skipped when the token already is the stablecoin.
        """
        source_stable = self.settings.stablecoins.get(source_chain_id)
        target_stable = self.settings.stablecoins.get(target_chain_id)
        if not source_stable or not target_stable:
            logger.debug(f"No relay stablecoin for {source_chain_id} -> {target_chain_id}")
            return None

        steps: list[RouteStep] = []
        current = amount_in

        if source_token.lower() != source_stable.lower():
            swap = self._swap_step(
                source_chain_id, source_token, source_stable, current,
                "Swap to stablecoin on source chain",
            )
            steps.append(swap)
            current = swap.amount_out

        bridge_steps = self._bridge_steps(
            source_chain_id,
            target_chain_id,
            source_stable,
            target_stable,
            current,
            "Bridge stablecoin across chains",
        )
        steps.extend(bridge_steps)
        current = bridge_steps[-1].amount_out

        if target_token.lower() != target_stable.lower():
            swap = self._swap_step(
                target_chain_id, target_stable, target_token, current,
                "Swap from stablecoin on target chain",
            )
            steps.append(swap)
            current = swap.amount_out

        return CrossChainRoute(
            source_chain_id=source_chain_id,
            target_chain_id=target_chain_id,
            source_token=source_token,
            target_token=target_token,
            amount_in=amount_in,
            estimated_amount_out=current,
            min_amount_out=apply_slippage(max(current, 0), self.settings.default_slippage),
            steps=tuple(steps),
            fee_breakdown=self.fees.calculate_fee_breakdown(
                source_chain_id, target_chain_id, amount_in, steps
            ),
            estimated_time_seconds=self.bridge.get_estimated_bridge_time(
                source_chain_id, target_chain_id
            )
            + RELAY_EXTRA_SECONDS,
            route_type=RouteType.CHEAPEST,
            price_impact_percent=loss_percent(amount_in, current),
        )

    def balanced_score(self, route: CrossChainRoute) -> float:
        s = self.settings
        normalized_time = route.estimated_time_seconds / s.balanced_time_reference_seconds
        normalized_fee = route.fee_breakdown.total_fee / s.balanced_fee_reference
        return s.balanced_time_weight * normalized_time + s.balanced_fee_weight * normalized_fee

    def rank_routes(
        self, routes: list[CrossChainRoute], route_type: RouteType
    ) -> list[CrossChainRoute]:
        """Stable sort by the policy's key; ties keep build order."""
        if route_type == RouteType.FASTEST:
            return sorted(routes, key=lambda r: r.estimated_time_seconds)
        if route_type == RouteType.CHEAPEST:
            return sorted(routes, key=lambda r: r.fee_breakdown.total_fee)
        return sorted(routes, key=self.balanced_score)

    def validate_route(self, route: CrossChainRoute) -> bool:
        """False if the lane's breaker is open or amount_in is out of bounds."""
        try:
            self.check_route(route)
        except (CircuitBreakerOpenError, BridgePathUnsupportedError, InvalidRouteError) as e:
            logger.warning(f"Route {route.source_chain_id}->{route.target_chain_id} invalid: {e}")
            return False
        return True

    def check_route(self, route: CrossChainRoute) -> None:
        """
        Raise the specific reason a route cannot be executed, if any.

        Raises:
            CircuitBreakerOpenError: If the breaker covers the lane
            BridgePathUnsupportedError: If the lane is not enabled
            InvalidRouteError: If the route has no steps or amount_in is out of bounds
        """
        if self.bridge.is_circuit_breaker_open(route.source_chain_id, route.target_chain_id):
            raise CircuitBreakerOpenError(f"lane {route.source_chain_id}-{route.target_chain_id}")

        if route.has_bridge_step() and not self.bridge.is_bridge_path_supported(
            route.source_chain_id, route.target_chain_id
        ):
            raise BridgePathUnsupportedError(route.source_chain_id, route.target_chain_id)

        if not route.steps:
            raise InvalidRouteError("Route has no steps")

        min_amount, max_amount = self.bridge.get_amount_bounds()
        if not min_amount <= route.amount_in <= max_amount:
            raise InvalidRouteError(
                f"Amount {route.amount_in} outside bridge bounds [{min_amount}, {max_amount}]"
            )
