"""Bridge network adapter: lanes, fees, circuit breaker and outflow caps.

All mutable bridge state lives in one BridgeState guarded by an
asyncio.Lock. Reads never await, so on the event loop they always see a
consistent snapshot; every write goes through the lock.
"""

import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from hopbridge.config import Settings, get_settings
from hopbridge.crosschain.models import (
    BridgeConfig,
    ChainPair,
    CircuitBreakerStatus,
    route_key,
    utcnow,
)
from hopbridge.exceptions import (
    BridgePathUnsupportedError,
    ChainRpcError,
    CircuitBreakerOpenError,
    DailyLimitExceededError,
)

logger = logging.getLogger(__name__)

TRANSFER_SELECTOR = "a9059cbb"  # transfer(address,uint256)

MESSAGE_PENDING = "pending"
MESSAGE_COMPLETED = "completed"
MESSAGE_FAILED = "failed"
MESSAGE_STATUSES = frozenset({MESSAGE_PENDING, MESSAGE_COMPLETED, MESSAGE_FAILED})


def build_bridge_config(settings: Settings) -> BridgeConfig:
    """Create the startup bridge configuration from settings."""
    return BridgeConfig(
        bridge_name=settings.bridge_name,
        enabled=settings.bridge_enabled,
        supported_chain_pairs=[
            ChainPair(
                source_chain_id=p.source_chain_id,
                target_chain_id=p.target_chain_id,
                enabled=p.enabled,
                base_fee=p.base_fee,
                average_time_seconds=p.average_time_seconds,
            )
            for p in settings.chain_pairs
        ],
        daily_outflow_limit=dict(settings.daily_outflow_limits),
        min_bridge_amount=settings.min_bridge_amount,
        max_bridge_amount=settings.max_bridge_amount,
        bridge_assets={cid: list(tokens) for cid, tokens in settings.bridge_assets.items()},
    )


class BridgeState:
    """Process-wide bridge configuration and counters.

    A missing configuration is treated as fail-safe: every lane is closed
    and every chain is over its limit.
    """

    def __init__(self, config: Optional[BridgeConfig]):
        self.config = config
        self.lock = asyncio.Lock()

    def breaker_open(self, source_chain_id: int, target_chain_id: int) -> bool:
        if self.config is None:
            return True
        return self.config.circuit_breaker.covers(source_chain_id, target_chain_id)

    def outflow(self, chain_id: int) -> int:
        if self.config is None:
            return 0
        return self.config.current_daily_outflow.get(chain_id, 0)

    def limit_exceeded(self, chain_id: int, amount: int = 0) -> bool:
        """True when the chain is at its cap, or amount would push it past."""
        if self.config is None:
            return True
        limit = self.config.daily_outflow_limit.get(chain_id)
        if limit is None:
            return True
        current = self.outflow(chain_id)
        if amount > 0:
            return current + amount > limit
        return current >= limit


class BridgeClient(ABC):
    """Transport to the bridge network itself."""

    @abstractmethod
    async def send(self, source_chain_id: int, target_chain_id: int, payload: str) -> str:
        """Submit a cross-chain message and return its message id."""

    @abstractmethod
    async def get_status(self, message_id: str) -> str:
        """Return "pending", "completed" or "failed"."""


class DryRunBridgeClient(BridgeClient):
    """Simulated bridge: UUID message ids and scripted statuses."""

    def __init__(self, default_status: str = MESSAGE_COMPLETED):
        self.default_status = default_status
        self.statuses: dict[str, str] = {}
        self.sent: list[tuple[int, int, str, str]] = []
        self.send_error: Optional[Exception] = None
        self.status_error: Optional[Exception] = None

    def set_status(self, message_id: str, status: str) -> None:
        self.statuses[message_id] = status

    async def send(self, source_chain_id: int, target_chain_id: int, payload: str) -> str:
        if self.send_error is not None:
            raise self.send_error
        message_id = str(uuid.uuid4())
        self.sent.append((source_chain_id, target_chain_id, payload, message_id))
        logger.info(
            f"[DRY RUN] Bridge message {message_id}: {source_chain_id} -> {target_chain_id}"
        )
        return message_id

    async def get_status(self, message_id: str) -> str:
        if self.status_error is not None:
            raise self.status_error
        return self.statuses.get(message_id, self.default_status)


class BridgeNetworkAdapter:
    """Lane metadata, safety guards and message transport for one bridge."""

    def __init__(
        self,
        state: BridgeState,
        client: BridgeClient,
        default_bridge_time_seconds: int = 300,
    ):
        self.state = state
        self.client = client
        self.default_bridge_time_seconds = default_bridge_time_seconds

    @property
    def bridge_name(self) -> str:
        return self.state.config.bridge_name if self.state.config else "unknown"

    def _pair(self, source_chain_id: int, target_chain_id: int) -> Optional[ChainPair]:
        if self.state.config is None:
            return None
        return self.state.config.find_pair(source_chain_id, target_chain_id)

    # ======================
    # Lanes
    # ======================

    def is_bridge_path_supported(self, source_chain_id: int, target_chain_id: int) -> bool:
        config = self.state.config
        if config is None or not config.enabled:
            return False
        pair = config.find_pair(source_chain_id, target_chain_id)
        return pair is not None and pair.enabled

    def get_bridge_fee(self, source_chain_id: int, target_chain_id: int) -> int:
        pair = self._pair(source_chain_id, target_chain_id)
        return pair.base_fee if pair else 0

    def get_estimated_bridge_time(self, source_chain_id: int, target_chain_id: int) -> int:
        pair = self._pair(source_chain_id, target_chain_id)
        return pair.average_time_seconds if pair else self.default_bridge_time_seconds

    def get_supported_bridge_paths(self) -> list[ChainPair]:
        """Enabled lanes, as copies."""
        config = self.state.config
        if config is None or not config.enabled:
            return []
        return [copy.copy(p) for p in config.supported_chain_pairs if p.enabled]

    def get_bridge_assets(self, chain_id: int) -> list[str]:
        if self.state.config is None:
            return []
        return list(self.state.config.bridge_assets.get(chain_id, []))

    def get_amount_bounds(self) -> tuple[int, int]:
        """(min_bridge_amount, max_bridge_amount) of the bridge."""
        if self.state.config is None:
            return 0, 0
        return self.state.config.min_bridge_amount, self.state.config.max_bridge_amount

    def is_bridge_asset(self, chain_id: int, token: str) -> bool:
        return token.lower() in (t.lower() for t in self.get_bridge_assets(chain_id))

    def get_bridge_config(self, bridge_name: Optional[str] = None) -> Optional[BridgeConfig]:
        """Snapshot of the configuration. Mutating it has no effect."""
        config = self.state.config
        if config is None:
            return None
        if bridge_name is not None and bridge_name != config.bridge_name:
            return None
        return copy.deepcopy(config)

    # ======================
    # Guards
    # ======================

    def is_circuit_breaker_open(self, source_chain_id: int, target_chain_id: int) -> bool:
        return self.state.breaker_open(source_chain_id, target_chain_id)

    def is_daily_limit_exceeded(self, chain_id: int) -> bool:
        return self.state.limit_exceeded(chain_id)

    def get_daily_outflow(self, chain_id: int) -> int:
        return self.state.outflow(chain_id)

    async def update_daily_outflow(self, chain_id: int, amount: int) -> int:
        """Add to a chain's outflow counter and return the new total."""
        async with self.state.lock:
            if self.state.config is None:
                return 0
            total = self.state.outflow(chain_id) + amount
            self.state.config.current_daily_outflow[chain_id] = total
        logger.debug(f"Updated daily outflow for chain {chain_id}: {total}")
        return total

    async def open_circuit_breaker(
        self, reason: str, affected_routes: Optional[list[str]] = None
    ) -> None:
        """Halt sends. affected_routes are lane keys like "1-56"; None means all lanes."""
        logger.warning(f"Opening circuit breaker: {reason}")
        async with self.state.lock:
            if self.state.config is None:
                return
            self.state.config.circuit_breaker = CircuitBreakerStatus(
                is_open=True,
                reason=reason,
                opened_at=utcnow(),
                affected_routes=list(affected_routes or []),
            )

    async def close_circuit_breaker(self) -> None:
        logger.info("Closing circuit breaker")
        async with self.state.lock:
            if self.state.config is not None:
                self.state.config.circuit_breaker = CircuitBreakerStatus()

    async def reset_daily_limits(self) -> None:
        logger.info("Resetting daily outflow limits")
        async with self.state.lock:
            if self.state.config is not None:
                self.state.config.current_daily_outflow.clear()

    # ======================
    # Messages
    # ======================

    def build_bridge_payload(self, token: str, amount: int, recipient: str) -> str:
        """Transfer-style calldata carried by the bridge message."""
        recipient_word = f"{int(recipient, 16):064x}"
        return "0x" + TRANSFER_SELECTOR + recipient_word + f"{amount:064x}"

    async def send_cross_chain_message(
        self,
        source_chain_id: int,
        target_chain_id: int,
        payload: str,
        amount: int = 0,
    ) -> str:
        """
        Check the guards, reserve outflow and send in one critical section.

        The outflow reservation is rolled back if the transport fails.

        Raises:
            BridgePathUnsupportedError: If the lane is not enabled
            CircuitBreakerOpenError: If the breaker covers the lane
            DailyLimitExceededError: If the source chain is (or would be) over its cap
        """
        logger.info(f"Sending cross-chain message: {source_chain_id} -> {target_chain_id}")

        async with self.state.lock:
            if self.state.breaker_open(source_chain_id, target_chain_id):
                reason = self.state.config.circuit_breaker.reason if self.state.config else None
                raise CircuitBreakerOpenError(reason)
            if not self.is_bridge_path_supported(source_chain_id, target_chain_id):
                raise BridgePathUnsupportedError(source_chain_id, target_chain_id)
            if self.state.limit_exceeded(source_chain_id, amount):
                raise DailyLimitExceededError(
                    source_chain_id,
                    self.state.config.daily_outflow_limit.get(source_chain_id, 0),
                    self.state.outflow(source_chain_id),
                )
            if amount > 0:
                self.state.config.current_daily_outflow[source_chain_id] = (
                    self.state.outflow(source_chain_id) + amount
                )

        try:
            message_id = await self.client.send(source_chain_id, target_chain_id, payload)
        except Exception:
            if amount > 0:
                async with self.state.lock:
                    current = self.state.outflow(source_chain_id)
                    self.state.config.current_daily_outflow[source_chain_id] = max(
                        current - amount, 0
                    )
            raise

        lane = route_key(source_chain_id, target_chain_id)
        logger.info(f"Bridge message {message_id} sent on lane {lane}")
        return message_id

    async def query_message_status(self, message_id: str) -> str:
        """Status of a message: "pending", "completed" or "failed"."""
        status = (await self.client.get_status(message_id)).lower()
        if status not in MESSAGE_STATUSES:
            raise ChainRpcError(f"Unknown bridge status {status!r} for {message_id}")
        logger.debug(f"Message {message_id} status: {status}")
        return status


def create_bridge_adapter(
    settings: Optional[Settings] = None, client: Optional[BridgeClient] = None
) -> BridgeNetworkAdapter:
    """Build an adapter from settings, using the dry-run client by default."""
    settings = settings or get_settings()
    state = BridgeState(build_bridge_config(settings))
    return BridgeNetworkAdapter(
        state,
        client or DryRunBridgeClient(),
        default_bridge_time_seconds=settings.default_bridge_time_seconds,
    )
