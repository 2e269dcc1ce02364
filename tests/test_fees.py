"""Tests for cross-chain fee estimation."""

from decimal import Decimal

import pytest

from hopbridge.crosschain.fees import (
    BRIDGE_GAS_LIMIT,
    RECEIVE_GAS_LIMIT,
    SWAP_GAS_LIMIT,
    FeeEstimator,
)
from hopbridge.crosschain.models import FeeBreakdown, RouteStep, StepType
from tests.helpers import USDC_BSC, USDC_ETH, WBNB, WETH, bridge_step, make_route, swap_step

ETH_GAS = 60_000_000_000
BSC_GAS = 10_000_000_000


class TestFeeBreakdown:
    """Tests for route fee breakdowns."""

    def test_empty_steps_cost_nothing(self, fees: FeeEstimator):
        breakdown = fees.calculate_fee_breakdown(1, 56, 1_000_000, [])

        assert breakdown.total_fee == 0
        assert breakdown.fee_currency == "wei"

    def test_direct_bridge(self, fees: FeeEstimator):
        steps = [bridge_step(1, USDC_ETH, USDC_BSC, 1_000_000, 995_000)]

        breakdown = fees.calculate_fee_breakdown(1, 56, 1_000_000, steps)

        assert breakdown.source_chain_gas_fee == BRIDGE_GAS_LIMIT * ETH_GAS
        assert breakdown.target_chain_gas_fee == 0
        assert breakdown.bridge_fee == 5_000
        assert breakdown.service_fee == 500
        assert breakdown.third_party_fee == 5_000
        assert breakdown.total_fee == BRIDGE_GAS_LIMIT * ETH_GAS + 5_000 + 500 + 5_000

    def test_relay_gas_split_by_chain(self, fees: FeeEstimator):
        steps = [
            swap_step(1, WETH, USDC_ETH, 1_000_000, 997_000),
            bridge_step(1, USDC_ETH, USDC_BSC, 997_000, 992_000),
            swap_step(56, USDC_BSC, WBNB, 992_000, 989_024),
        ]

        breakdown = fees.calculate_fee_breakdown(1, 56, 1_000_000, steps)

        assert breakdown.source_chain_gas_fee == (SWAP_GAS_LIMIT + BRIDGE_GAS_LIMIT) * ETH_GAS
        assert breakdown.target_chain_gas_fee == SWAP_GAS_LIMIT * BSC_GAS

    def test_receive_step_gas(self, fees: FeeEstimator):
        receive = RouteStep(
            step_type=StepType.RECEIVE,
            chain_id=56,
            protocol="ZetaChain",
            token_in=USDC_BSC,
            token_out=USDC_BSC,
            amount_in=995_000,
            amount_out=995_000,
        )
        steps = [bridge_step(1, USDC_ETH, USDC_BSC, 1_000_000, 995_000), receive]

        breakdown = fees.calculate_fee_breakdown(1, 56, 1_000_000, steps)

        assert breakdown.target_chain_gas_fee == RECEIVE_GAS_LIMIT * BSC_GAS

    def test_estimate_route_fees_matches_breakdown(self, fees: FeeEstimator):
        route = make_route([bridge_step(1, USDC_ETH, USDC_BSC, 1_000_000, 995_000)])

        assert fees.estimate_route_fees(route) == fees.calculate_fee_breakdown(
            1, 56, 1_000_000, route.steps
        )


class TestFeeConversions:
    """Tests for fee conversions and limits."""

    def test_fee_in_token(self, fees: FeeEstimator):
        """1 ETH of fees at $2000 is 2000 USDC (6 decimals)."""
        amount = fees.calculate_fee_in_token(
            10**18, Decimal("2000"), Decimal("1"), payment_token_decimals=6
        )
        assert amount == 2_000_000_000

    def test_fee_in_token_requires_price(self, fees: FeeEstimator):
        with pytest.raises(ValueError):
            fees.calculate_fee_in_token(10**18, Decimal("2000"), Decimal("0"))

    def test_relay_service_fee(self, fees: FeeEstimator):
        assert fees.calculate_relay_service_fee(1_000_000) == 50_000

    def test_refund_never_negative(self):
        assert FeeEstimator.calculate_refund(100, 30) == 70
        assert FeeEstimator.calculate_refund(30, 100) == 0

    def test_total_fee_in_usd(self, fees: FeeEstimator):
        breakdown = FeeBreakdown(source_chain_gas_fee=10**18)

        usd = fees.estimate_total_fee_in_usd(breakdown, Decimal("2000.125"))

        assert usd == Decimal("2000.13")
        assert breakdown.fee_in_usd == usd

    def test_validate_fee(self):
        assert FeeEstimator.validate_fee(10, 100)
        assert not FeeEstimator.validate_fee(11, 100)
        assert not FeeEstimator.validate_fee(1, 0)

    def test_describe_fee_breakdown(self):
        text = FeeEstimator.describe_fee_breakdown(FeeBreakdown(bridge_fee=7, service_fee=3))

        assert "Bridge: 7 wei" in text
        assert text.endswith("Total: 10 wei")
