"""Shared token addresses and route builders for tests."""

from hopbridge.crosschain.models import (
    CrossChainRoute,
    FeeBreakdown,
    RouteStep,
    RouteType,
    StepType,
)

# Test tokens
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
USDC_ETH = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USDC_BSC = "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d"
WBNB = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
USER = "0x1111111111111111111111111111111111111111"


def make_route(steps, amount_in=1_000_000, source_chain_id=1, target_chain_id=56):
    """Hand-built route for orchestration tests."""
    steps = tuple(steps)
    amount_out = steps[-1].amount_out if steps else amount_in
    return CrossChainRoute(
        source_chain_id=source_chain_id,
        target_chain_id=target_chain_id,
        source_token=steps[0].token_in if steps else WETH,
        target_token=steps[-1].token_out if steps else WBNB,
        amount_in=amount_in,
        estimated_amount_out=amount_out,
        min_amount_out=amount_out,
        steps=steps,
        fee_breakdown=FeeBreakdown(),
        estimated_time_seconds=300,
        route_type=RouteType.CHEAPEST,
    )


def swap_step(chain_id, token_in, token_out, amount_in, amount_out):
    return RouteStep(
        step_type=StepType.SWAP,
        chain_id=chain_id,
        protocol="Uniswap V2",
        token_in=token_in,
        token_out=token_out,
        amount_in=amount_in,
        amount_out=amount_out,
    )


def bridge_step(chain_id, token_in, token_out, amount_in, amount_out):
    return RouteStep(
        step_type=StepType.BRIDGE,
        chain_id=chain_id,
        protocol="ZetaChain",
        token_in=token_in,
        token_out=token_out,
        amount_in=amount_in,
        amount_out=amount_out,
        fee=amount_in - amount_out,
    )
