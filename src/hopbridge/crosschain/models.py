"""Data models for cross-chain routes and transactions."""

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

MAX_TRANSACTION_RETRIES = 3


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what SQLite hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_transaction_id() -> str:
    """TX- followed by 16 upper-case hex characters."""
    return "TX-" + secrets.token_hex(8).upper()


class StepType(str, Enum):
    """Kind of action a route step performs."""

    SWAP = "SWAP"
    BRIDGE = "BRIDGE"
    RECEIVE = "RECEIVE"


class RouteType(str, Enum):
    """Ranking policy for cross-chain route search."""

    FASTEST = "FASTEST"
    CHEAPEST = "CHEAPEST"
    BALANCED = "BALANCED"


class TransactionStatus(str, Enum):
    """Lifecycle of a cross-chain transaction."""

    PENDING_SOURCE_CONFIRMATION = "PENDING_SOURCE_CONFIRMATION"
    SOURCE_CONFIRMED = "SOURCE_CONFIRMED"
    BRIDGE_INITIATED = "BRIDGE_INITIATED"
    BRIDGE_IN_PROGRESS = "BRIDGE_IN_PROGRESS"
    TARGET_EXECUTING = "TARGET_EXECUTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PARTIALLY_COMPLETED = "PARTIALLY_COMPLETED"
    REFUNDED = "REFUNDED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        TransactionStatus.COMPLETED,
        TransactionStatus.FAILED,
        TransactionStatus.PARTIALLY_COMPLETED,
        TransactionStatus.REFUNDED,
    }
)

ACTIVE_STATUSES = frozenset(TransactionStatus) - TERMINAL_STATUSES

RETRYABLE_STATUSES = frozenset({TransactionStatus.FAILED, TransactionStatus.BRIDGE_IN_PROGRESS})


@dataclass(frozen=True)
class RouteStep:
    """One action of a cross-chain route."""

    step_type: StepType
    chain_id: int
    protocol: str
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    fee: int = 0
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "stepType": self.step_type.value,
            "chainId": self.chain_id,
            "protocol": self.protocol,
            "tokenIn": self.token_in,
            "tokenOut": self.token_out,
            "amountIn": str(self.amount_in),
            "amountOut": str(self.amount_out),
            "fee": str(self.fee),
            "description": self.description,
        }


@dataclass
class FeeBreakdown:
    """Fee components of a route, in the fee token's smallest unit."""

    source_chain_gas_fee: int = 0
    bridge_fee: int = 0
    target_chain_gas_fee: int = 0
    service_fee: int = 0
    third_party_fee: int = 0
    fee_currency: str = "wei"
    fee_in_usd: Optional[Decimal] = None

    @property
    def total_fee(self) -> int:
        return (
            self.source_chain_gas_fee
            + self.bridge_fee
            + self.target_chain_gas_fee
            + self.service_fee
            + self.third_party_fee
        )

    def to_dict(self) -> dict:
        return {
            "sourceChainGasFee": str(self.source_chain_gas_fee),
            "bridgeFee": str(self.bridge_fee),
            "targetChainGasFee": str(self.target_chain_gas_fee),
            "serviceFee": str(self.service_fee),
            "thirdPartyFee": str(self.third_party_fee),
            "totalFee": str(self.total_fee),
            "feeCurrency": self.fee_currency,
            "feeInUsd": str(self.fee_in_usd) if self.fee_in_usd is not None else None,
        }


@dataclass(frozen=True)
class CrossChainRoute:
    """A quoted cross-chain route. Re-search for a fresh quote."""

    source_chain_id: int
    target_chain_id: int
    source_token: str
    target_token: str
    amount_in: int
    estimated_amount_out: int
    min_amount_out: int
    steps: tuple[RouteStep, ...]
    fee_breakdown: FeeBreakdown
    estimated_time_seconds: int
    route_type: RouteType
    price_impact_percent: Decimal = Decimal("0")

    def has_bridge_step(self) -> bool:
        return any(step.step_type == StepType.BRIDGE for step in self.steps)

    def to_dict(self) -> dict:
        """Convert to dictionary for an API layer."""
        return {
            "sourceChainId": self.source_chain_id,
            "targetChainId": self.target_chain_id,
            "sourceToken": self.source_token,
            "targetToken": self.target_token,
            "amountIn": str(self.amount_in),
            "estimatedAmountOut": str(self.estimated_amount_out),
            "minAmountOut": str(self.min_amount_out),
            "steps": [step.to_dict() for step in self.steps],
            "feeBreakdown": self.fee_breakdown.to_dict(),
            "estimatedTimeSeconds": self.estimated_time_seconds,
            "routeType": self.route_type.value,
            "priceImpactPercent": str(self.price_impact_percent),
        }


@dataclass
class ChainPair:
    """A directed bridge lane."""

    source_chain_id: int
    target_chain_id: int
    enabled: bool = True
    base_fee: int = 0
    average_time_seconds: int = 300

    def matches(self, source_chain_id: int, target_chain_id: int) -> bool:
        return (
            self.source_chain_id == source_chain_id and self.target_chain_id == target_chain_id
        )


@dataclass
class CircuitBreakerStatus:
    """Kill switch state. An empty affected_routes list means every lane."""

    is_open: bool = False
    reason: Optional[str] = None
    opened_at: Optional[datetime] = None
    affected_routes: list[str] = field(default_factory=list)

    def covers(self, source_chain_id: int, target_chain_id: int) -> bool:
        if not self.is_open:
            return False
        if not self.affected_routes:
            return True
        return route_key(source_chain_id, target_chain_id) in self.affected_routes


def route_key(source_chain_id: int, target_chain_id: int) -> str:
    """Lane identifier used in circuit breaker scopes, e.g. "1-56"."""
    return f"{source_chain_id}-{target_chain_id}"


@dataclass
class BridgeConfig:
    """Static lanes plus the mutable breaker and outflow counters of one bridge."""

    bridge_name: str
    supported_chain_pairs: list[ChainPair]
    daily_outflow_limit: dict[int, int]
    current_daily_outflow: dict[int, int] = field(default_factory=dict)
    circuit_breaker: CircuitBreakerStatus = field(default_factory=CircuitBreakerStatus)
    min_bridge_amount: int = 0
    max_bridge_amount: int = 0
    enabled: bool = True
    bridge_assets: dict[int, list[str]] = field(default_factory=dict)

    def find_pair(self, source_chain_id: int, target_chain_id: int) -> Optional[ChainPair]:
        for pair in self.supported_chain_pairs:
            if pair.matches(source_chain_id, target_chain_id):
                return pair
        return None


@dataclass
class StatusHistory:
    """One entry of a transaction's append-only audit trail."""

    status: TransactionStatus
    timestamp: datetime
    description: str

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "description": self.description,
        }


@dataclass
class CrossChainTransaction:
    """Aggregate record of one cross-chain execution, owned by the ledger."""

    transaction_id: str
    user_address: str
    source_chain_id: int
    target_chain_id: int
    source_token: str
    target_token: str
    amount_in: int
    status: TransactionStatus = TransactionStatus.PENDING_SOURCE_CONFIRMATION
    amount_out: Optional[int] = None
    estimated_amount_out: Optional[int] = None
    status_history: list[StatusHistory] = field(default_factory=list)
    source_tx_hash: Optional[str] = None
    bridge_message_id: Optional[str] = None
    target_tx_hash: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    estimated_time_seconds: Optional[int] = None
    actual_time_seconds: Optional[int] = None
    error_message: Optional[str] = None
    retry_count: int = 0

    def is_retryable(self, max_retries: int = MAX_TRANSACTION_RETRIES) -> bool:
        return self.status in RETRYABLE_STATUSES and self.retry_count < max_retries

    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict:
        """Convert to dictionary for an API layer."""
        return {
            "transactionId": self.transaction_id,
            "userAddress": self.user_address,
            "sourceChainId": self.source_chain_id,
            "targetChainId": self.target_chain_id,
            "sourceToken": self.source_token,
            "targetToken": self.target_token,
            "amountIn": str(self.amount_in),
            "amountOut": str(self.amount_out) if self.amount_out is not None else None,
            "status": self.status.value,
            "statusHistory": [entry.to_dict() for entry in self.status_history],
            "sourceTxHash": self.source_tx_hash,
            "bridgeMessageId": self.bridge_message_id,
            "targetTxHash": self.target_tx_hash,
            "createdAt": self.created_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "estimatedTimeSeconds": self.estimated_time_seconds,
            "actualTimeSeconds": self.actual_time_seconds,
            "errorMessage": self.error_message,
            "retryCount": self.retry_count,
        }
