"""Single-chain route search over constant-product pools."""

import logging
from decimal import Decimal
from typing import Optional, Sequence, Union

from hopbridge.amm.base import ChainReader, PoolReserve, RouteCandidate
from hopbridge.amm.math import apply_slippage, calculate_price_impact, get_amount_out
from hopbridge.exceptions import (
    ChainRpcError,
    InsufficientLiquidityError,
    NoRouteFoundError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

# Errors that disqualify a single candidate without aborting the search
CANDIDATE_ERRORS = (NotFoundError, InsufficientLiquidityError, ChainRpcError)


class RouteSearchEngine:
    """Finds the best direct or two-hop path between two tokens on one chain."""

    def __init__(
        self,
        reader: ChainReader,
        factory_address: str,
        default_slippage: Union[Decimal, str] = Decimal("0.005"),
    ):
        self.reader = reader
        self.factory_address = factory_address
        self.default_slippage = Decimal(str(default_slippage))

    async def get_pool_reserve(self, token_a: str, token_b: str) -> PoolReserve:
        """Fetch a fresh reserve snapshot for a pair.

        Raises:
            PairNotFoundError: If the factory has no pair for the tokens
            ChainRpcError: On reader failure
        """
        pair_address = await self.reader.get_pair_address(
            self.factory_address, token_a, token_b
        )
        reserve0, reserve1, _ = await self.reader.get_reserves(pair_address)
        total_supply = await self.reader.get_total_supply(pair_address)
        token0 = await self.reader.get_token0(pair_address, token_a, token_b)
        token1 = token_b if token0.lower() == token_a.lower() else token_a

        return PoolReserve(
            pair_address=pair_address,
            token0=token0,
            token1=token1,
            reserve0=reserve0,
            reserve1=reserve1,
            total_supply=total_supply,
        )

    async def quote_direct(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        slippage_tolerance: Decimal,
    ) -> RouteCandidate:
        """Quote the direct pair.

        A missing or empty pool yields a zero-output candidate, never an error.
        """
        try:
            pool = await self.get_pool_reserve(token_in, token_out)
            reserve_in, reserve_out = pool.reserves_for(token_in)
            if reserve_in == 0 or reserve_out == 0:
                raise InsufficientLiquidityError(pool.pair_address)

            amount_out = get_amount_out(amount_in, reserve_in, reserve_out)
            return RouteCandidate(
                path=[token_in, token_out],
                amount_out=amount_out,
                min_amount_out=apply_slippage(amount_out, slippage_tolerance),
                price_impact=calculate_price_impact(amount_in, reserve_in, reserve_out),
                reserves=[reserve_in, reserve_out],
                is_direct=True,
            )
        except CANDIDATE_ERRORS as e:
            logger.warning(f"Direct route {token_in} -> {token_out} unavailable: {e}")
            return RouteCandidate(
                path=[token_in, token_out],
                amount_out=0,
                min_amount_out=0,
                price_impact=Decimal("0"),
                is_direct=True,
            )

    async def quote_two_hop(
        self,
        token_in: str,
        intermediate: str,
        token_out: str,
        amount_in: int,
        slippage_tolerance: Decimal,
    ) -> RouteCandidate:
        """Quote token_in -> intermediate -> token_out.

        Price impact is the sum of the per-hop impacts. That overstates small
        trades slightly but is what "high impact" warnings are calibrated on.

        Raises:
            PairNotFoundError, InsufficientLiquidityError, ChainRpcError
        """
        first = await self.get_pool_reserve(token_in, intermediate)
        second = await self.get_pool_reserve(intermediate, token_out)

        r1_in, r1_out = first.reserves_for(token_in)
        r2_in, r2_out = second.reserves_for(intermediate)
        if r1_in == 0 or r1_out == 0:
            raise InsufficientLiquidityError(first.pair_address)
        if r2_in == 0 or r2_out == 0:
            raise InsufficientLiquidityError(second.pair_address)

        intermediate_amount = get_amount_out(amount_in, r1_in, r1_out)
        amount_out = get_amount_out(intermediate_amount, r2_in, r2_out)

        impact = calculate_price_impact(amount_in, r1_in, r1_out) + calculate_price_impact(
            intermediate_amount, r2_in, r2_out
        )

        return RouteCandidate(
            path=[token_in, intermediate, token_out],
            amount_out=amount_out,
            min_amount_out=apply_slippage(amount_out, slippage_tolerance),
            price_impact=impact,
            reserves=[r1_in, r1_out, r2_in, r2_out],
            is_direct=False,
        )

    async def find_best_route(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        slippage_tolerance: Optional[Union[Decimal, str, float]] = None,
        intermediate_tokens: Optional[Sequence[str]] = None,
    ) -> RouteCandidate:
        """
        Find the path with the strictly largest output.

        The direct route is evaluated first and wins ties. For a zero
        amount_in every candidate is zero and the direct one is returned.

        Args:
            token_in: Address of the token sold
            token_out: Address of the token bought
            amount_in: Amount in token_in's smallest unit
            slippage_tolerance: Fraction (0.005 = 0.5%); defaults to the engine's
            intermediate_tokens: Candidate hop tokens for two-hop paths

        Raises:
            NoRouteFoundError: If amount_in > 0 and no candidate yields output
        """
        if amount_in < 0:
            raise ValueError(f"amount_in must be non-negative, got {amount_in}")
        if token_in.lower() == token_out.lower():
            raise ValueError("token_in and token_out must differ")

        slippage = (
            self.default_slippage
            if slippage_tolerance is None
            else Decimal(str(slippage_tolerance))
        )

        logger.info(f"Finding best route: {amount_in} {token_in} -> {token_out}")

        best = await self.quote_direct(token_in, token_out, amount_in, slippage)

        for intermediate in intermediate_tokens or ():
            if intermediate.lower() in (token_in.lower(), token_out.lower()):
                continue
            try:
                candidate = await self.quote_two_hop(
                    token_in, intermediate, token_out, amount_in, slippage
                )
            except CANDIDATE_ERRORS as e:
                logger.warning(f"Route via {intermediate} unavailable: {e}")
                continue

            logger.debug(f"Route via {intermediate}: {candidate.amount_out}")
            if candidate.amount_out > best.amount_out:
                best = candidate

        if amount_in > 0 and best.amount_out == 0:
            logger.warning(f"No route found for {amount_in} {token_in} -> {token_out}")
            raise NoRouteFoundError(token_in, token_out, amount_in)

        logger.info(
            f"Selected route {' -> '.join(best.path)}: {best.amount_out} "
            f"(impact {best.price_impact}%)"
        )
        return best
