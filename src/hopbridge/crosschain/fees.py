"""Fee estimation for cross-chain routes.

Gas is priced from a static per-chain table in settings, not a live oracle,
so estimates drift from reality when the network is congested.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Optional, Sequence

from hopbridge.amm.math import apply_rate
from hopbridge.config import Settings, get_settings
from hopbridge.crosschain.bridge import BridgeNetworkAdapter
from hopbridge.crosschain.models import CrossChainRoute, FeeBreakdown, RouteStep, StepType

logger = logging.getLogger(__name__)

# Gas units per step type
SWAP_GAS_LIMIT = 150_000
BRIDGE_GAS_LIMIT = 200_000
RECEIVE_GAS_LIMIT = 100_000

RELAY_SERVICE_FEE_RATE = Decimal("0.05")
MAX_FEE_RATIO = Decimal("0.1")

WEI_PER_TOKEN = Decimal(10**18)


class FeeEstimator:
    """Builds FeeBreakdowns for routes."""

    def __init__(self, bridge: BridgeNetworkAdapter, settings: Optional[Settings] = None):
        self.bridge = bridge
        self.settings = settings or get_settings()

    def calculate_fee_breakdown(
        self,
        source_chain_id: int,
        target_chain_id: int,
        amount_in: int,
        steps: Sequence[RouteStep],
    ) -> FeeBreakdown:
        """Fee breakdown for a step list. An empty list costs nothing."""
        if not steps:
            return FeeBreakdown()

        third_party_fee = sum(
            step.fee for step in steps if step.step_type == StepType.BRIDGE
        )

        return FeeBreakdown(
            source_chain_gas_fee=self.source_chain_gas_fee(source_chain_id, steps),
            bridge_fee=self.bridge.get_bridge_fee(source_chain_id, target_chain_id),
            target_chain_gas_fee=self.target_chain_gas_fee(target_chain_id, steps),
            service_fee=self.calculate_service_fee(amount_in),
            third_party_fee=third_party_fee,
        )

    def estimate_route_fees(self, route: CrossChainRoute) -> FeeBreakdown:
        """Recompute the breakdown of an existing route against current settings."""
        return self.calculate_fee_breakdown(
            route.source_chain_id, route.target_chain_id, route.amount_in, route.steps
        )

    def source_chain_gas_fee(self, chain_id: int, steps: Sequence[RouteStep]) -> int:
        gas = 0
        for step in steps:
            if step.chain_id != chain_id:
                continue
            if step.step_type == StepType.SWAP:
                gas += SWAP_GAS_LIMIT
            elif step.step_type == StepType.BRIDGE:
                gas += BRIDGE_GAS_LIMIT
        return gas * self.settings.get_gas_price(chain_id)

    def target_chain_gas_fee(self, chain_id: int, steps: Sequence[RouteStep]) -> int:
        gas = 0
        for step in steps:
            if step.chain_id != chain_id:
                continue
            if step.step_type == StepType.SWAP:
                gas += SWAP_GAS_LIMIT
            elif step.step_type == StepType.RECEIVE:
                gas += RECEIVE_GAS_LIMIT
        return gas * self.settings.get_gas_price(chain_id)

    def calculate_service_fee(self, amount_in: int) -> int:
        """Protocol service fee, floored."""
        return apply_rate(amount_in, self.settings.service_fee_rate)

    def calculate_fee_in_token(
        self,
        fee_in_native: int,
        native_token_price: Decimal,
        payment_token_price: Decimal,
        payment_token_decimals: int = 18,
    ) -> int:
        """Convert a native-token fee into a payment token amount via USD prices."""
        if payment_token_price <= 0:
            raise ValueError("payment_token_price must be positive")
        with localcontext() as ctx:
            ctx.prec = 100
            fee_usd = (Decimal(fee_in_native) * native_token_price / WEI_PER_TOKEN).quantize(
                Decimal("1e-18"), rounding=ROUND_HALF_UP
            )
            amount = (fee_usd / payment_token_price).quantize(
                Decimal("1e-18"), rounding=ROUND_HALF_UP
            ) * Decimal(10**payment_token_decimals)
            return int(amount)

    def calculate_relay_service_fee(self, target_gas_fee: int) -> int:
        """Relayer cut for executing on the target chain (5% of its gas)."""
        return apply_rate(target_gas_fee, RELAY_SERVICE_FEE_RATE)

    @staticmethod
    def calculate_refund(paid_amount: int, actual_fee: int) -> int:
        """Overpaid fee returned to the user; never negative."""
        return max(paid_amount - actual_fee, 0)

    def estimate_total_fee_in_usd(
        self, fee_breakdown: FeeBreakdown, native_token_price_usd: Decimal
    ) -> Decimal:
        """Total fee in USD at 2 decimals. Also stored on the breakdown."""
        with localcontext() as ctx:
            ctx.prec = 100
            usd = (
                Decimal(fee_breakdown.total_fee) * native_token_price_usd / WEI_PER_TOKEN
            ).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        fee_breakdown.fee_in_usd = usd
        return usd

    @staticmethod
    def validate_fee(fee_amount: int, transaction_amount: int) -> bool:
        """True when the fee is at most 10% of the transaction amount."""
        if transaction_amount <= 0:
            return False
        with localcontext() as ctx:
            ctx.prec = 100
            ratio = (Decimal(fee_amount) / Decimal(transaction_amount)).quantize(
                Decimal("0.0001"), rounding=ROUND_HALF_UP
            )
        return ratio <= MAX_FEE_RATIO

    @staticmethod
    def describe_fee_breakdown(fee_breakdown: FeeBreakdown) -> str:
        unit = fee_breakdown.fee_currency
        return (
            f"Source Gas: {fee_breakdown.source_chain_gas_fee} {unit}, "
            f"Bridge: {fee_breakdown.bridge_fee} {unit}, "
            f"Target Gas: {fee_breakdown.target_chain_gas_fee} {unit}, "
            f"Service: {fee_breakdown.service_fee} {unit}, "
            f"Total: {fee_breakdown.total_fee} {unit}"
        )
