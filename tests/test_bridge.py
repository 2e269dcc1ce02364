"""Tests for the bridge network adapter."""

import asyncio

import pytest

from hopbridge.crosschain.bridge import (
    MESSAGE_COMPLETED,
    MESSAGE_FAILED,
    MESSAGE_PENDING,
    BridgeNetworkAdapter,
    BridgeState,
    DryRunBridgeClient,
    create_bridge_adapter,
)
from hopbridge.exceptions import (
    BridgePathUnsupportedError,
    ChainRpcError,
    CircuitBreakerOpenError,
    DailyLimitExceededError,
)
from tests.helpers import USDC_ETH, USER

LIMIT = 10**22


class TestLanes:
    """Tests for lane metadata."""

    def test_supported_paths(self, bridge: BridgeNetworkAdapter):
        assert bridge.is_bridge_path_supported(1, 56)
        assert bridge.is_bridge_path_supported(56, 1)
        # Configured but disabled
        assert not bridge.is_bridge_path_supported(1, 137)
        # Not configured
        assert not bridge.is_bridge_path_supported(137, 1)

    def test_fee_and_time(self, bridge: BridgeNetworkAdapter):
        assert bridge.get_bridge_fee(1, 56) == 5_000
        assert bridge.get_bridge_fee(56, 137) == 0
        assert bridge.get_estimated_bridge_time(56, 1) == 360
        assert bridge.get_estimated_bridge_time(56, 137) == 300

    def test_supported_bridge_paths_are_copies(self, bridge: BridgeNetworkAdapter):
        paths = bridge.get_supported_bridge_paths()

        assert {(p.source_chain_id, p.target_chain_id) for p in paths} == {(1, 56), (56, 1)}

        paths[0].enabled = False
        assert len(bridge.get_supported_bridge_paths()) == 2

    def test_bridge_config_snapshot(self, bridge: BridgeNetworkAdapter):
        snapshot = bridge.get_bridge_config()
        snapshot.circuit_breaker.is_open = True
        snapshot.current_daily_outflow[1] = LIMIT

        assert not bridge.is_circuit_breaker_open(1, 56)
        assert bridge.get_daily_outflow(1) == 0
        assert bridge.get_bridge_config("SomeOtherBridge") is None

    def test_bridge_assets(self, bridge: BridgeNetworkAdapter):
        assert bridge.is_bridge_asset(1, USDC_ETH.lower())
        assert not bridge.is_bridge_asset(137, USDC_ETH)

    def test_disabled_bridge(self, settings):
        adapter = create_bridge_adapter(settings.model_copy(update={"bridge_enabled": False}))

        assert not adapter.is_bridge_path_supported(1, 56)
        assert adapter.get_supported_bridge_paths() == []


class TestCircuitBreaker:
    """Tests for the circuit breaker."""

    @pytest.mark.asyncio
    async def test_open_all_lanes(self, bridge: BridgeNetworkAdapter):
        await bridge.open_circuit_breaker("exploit detected")

        assert bridge.is_circuit_breaker_open(1, 56)
        assert bridge.is_circuit_breaker_open(56, 1)
        assert bridge.get_bridge_config().circuit_breaker.opened_at is not None

    @pytest.mark.asyncio
    async def test_scoped_breaker(self, bridge: BridgeNetworkAdapter):
        await bridge.open_circuit_breaker("lane paused", affected_routes=["1-56"])

        assert bridge.is_circuit_breaker_open(1, 56)
        assert not bridge.is_circuit_breaker_open(56, 1)

    @pytest.mark.asyncio
    async def test_close(self, bridge: BridgeNetworkAdapter):
        await bridge.open_circuit_breaker("maintenance")
        await bridge.close_circuit_breaker()

        assert not bridge.is_circuit_breaker_open(1, 56)

    @pytest.mark.asyncio
    async def test_send_blocked(self, bridge: BridgeNetworkAdapter, bridge_client):
        await bridge.open_circuit_breaker("maintenance")

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            await bridge.send_cross_chain_message(1, 56, "0x", amount=100)

        assert exc_info.value.reason == "maintenance"
        assert bridge_client.sent == []
        assert bridge.get_daily_outflow(1) == 0


class TestDailyLimits:
    """Tests for per-chain outflow caps."""

    @pytest.mark.asyncio
    async def test_send_reserves_outflow(self, bridge: BridgeNetworkAdapter, bridge_client):
        message_id = await bridge.send_cross_chain_message(1, 56, "0x", amount=500)

        assert bridge.get_daily_outflow(1) == 500
        assert bridge_client.sent[0][3] == message_id

    @pytest.mark.asyncio
    async def test_limit_reached(self, bridge: BridgeNetworkAdapter):
        await bridge.update_daily_outflow(1, LIMIT)

        assert bridge.is_daily_limit_exceeded(1)
        with pytest.raises(DailyLimitExceededError):
            await bridge.send_cross_chain_message(1, 56, "0x", amount=1)

    @pytest.mark.asyncio
    async def test_amount_would_exceed(self, bridge: BridgeNetworkAdapter):
        await bridge.update_daily_outflow(1, LIMIT - 10)

        with pytest.raises(DailyLimitExceededError):
            await bridge.send_cross_chain_message(1, 56, "0x", amount=11)

        await bridge.send_cross_chain_message(1, 56, "0x", amount=10)
        assert bridge.get_daily_outflow(1) == LIMIT

    @pytest.mark.asyncio
    async def test_concurrent_sends_never_overshoot(self, bridge: BridgeNetworkAdapter):
        await bridge.update_daily_outflow(1, LIMIT - 100)

        results = await asyncio.gather(
            *(bridge.send_cross_chain_message(1, 56, "0x", amount=30) for _ in range(5)),
            return_exceptions=True,
        )

        sent = [r for r in results if isinstance(r, str)]
        rejected = [r for r in results if isinstance(r, DailyLimitExceededError)]
        assert len(sent) == 3
        assert len(rejected) == 2
        assert bridge.get_daily_outflow(1) == LIMIT - 10

    @pytest.mark.asyncio
    async def test_failed_send_releases_reservation(
        self, bridge: BridgeNetworkAdapter, bridge_client
    ):
        bridge_client.send_error = ChainRpcError("bridge gateway down")

        with pytest.raises(ChainRpcError):
            await bridge.send_cross_chain_message(1, 56, "0x", amount=500)

        assert bridge.get_daily_outflow(1) == 0

    def test_chain_without_limit_is_exceeded(self, bridge: BridgeNetworkAdapter):
        assert bridge.is_daily_limit_exceeded(137)

    @pytest.mark.asyncio
    async def test_reset(self, bridge: BridgeNetworkAdapter):
        await bridge.update_daily_outflow(1, LIMIT)
        await bridge.reset_daily_limits()

        assert bridge.get_daily_outflow(1) == 0
        assert not bridge.is_daily_limit_exceeded(1)

    @pytest.mark.asyncio
    async def test_unsupported_path(self, bridge: BridgeNetworkAdapter):
        with pytest.raises(BridgePathUnsupportedError):
            await bridge.send_cross_chain_message(1, 137, "0x", amount=1)


class TestMessages:
    """Tests for payloads and message status."""

    def test_payload_encoding(self, bridge: BridgeNetworkAdapter):
        payload = bridge.build_bridge_payload(USDC_ETH, 255, USER)

        assert payload.startswith("0xa9059cbb")
        assert len(payload) == 2 + 8 + 64 + 64
        assert payload[10:74] == USER[2:].lower().zfill(64)
        assert payload.endswith("ff")

    @pytest.mark.asyncio
    async def test_status_normalised(self, bridge: BridgeNetworkAdapter, bridge_client):
        bridge_client.set_status("m1", MESSAGE_PENDING)
        bridge_client.set_status("m2", "FAILED")

        assert await bridge.query_message_status("m1") == MESSAGE_PENDING
        assert await bridge.query_message_status("m2") == MESSAGE_FAILED
        assert await bridge.query_message_status("unknown") == MESSAGE_COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_status(self, bridge: BridgeNetworkAdapter, bridge_client):
        bridge_client.set_status("m1", "lost")

        with pytest.raises(ChainRpcError):
            await bridge.query_message_status("m1")


class TestMissingConfiguration:
    """A bridge without configuration fails safe."""

    def test_everything_closed(self):
        adapter = BridgeNetworkAdapter(BridgeState(None), DryRunBridgeClient())

        assert adapter.is_circuit_breaker_open(1, 56)
        assert adapter.is_daily_limit_exceeded(1)
        assert not adapter.is_bridge_path_supported(1, 56)
        assert adapter.get_bridge_config() is None
        assert adapter.get_supported_bridge_paths() == []

    @pytest.mark.asyncio
    async def test_send_rejected(self):
        adapter = BridgeNetworkAdapter(BridgeState(None), DryRunBridgeClient())

        with pytest.raises(CircuitBreakerOpenError):
            await adapter.send_cross_chain_message(1, 56, "0x")
