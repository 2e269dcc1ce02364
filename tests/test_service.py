"""Tests for the service facade, factory wiring and maintenance runner."""

import pytest

from hopbridge.amm.dry_run import InMemoryChainReader
from hopbridge.amm.rpc_reader import JsonRpcChainReader
from hopbridge.config import DEFAULT_FACTORIES
from hopbridge.crosschain.models import TransactionStatus
from hopbridge.factory import create_chain_reader, create_repository, create_swap_service
from hopbridge.ledger.repository import InMemoryTransactionRepository, SqlTransactionRepository
from hopbridge.scheduler.runner import MaintenanceRunner
from hopbridge.service import CrossChainSwapService
from tests.helpers import DAI, USDC_BSC, USDC_ETH, USER, WBNB, WETH


@pytest.fixture
def service(settings, reader, bridge_client, writer) -> CrossChainSwapService:
    reader.add_pool(WETH, DAI, 1_000_000, 2_000_000)
    return create_swap_service(
        settings,
        readers={1: reader},
        bridge_client=bridge_client,
        writer=writer,
    )


class TestFactory:
    """Tests for collaborator selection."""

    def test_dry_run_reader(self, settings):
        assert isinstance(create_chain_reader(1, settings), InMemoryChainReader)

    def test_rpc_reader(self, settings):
        live = settings.model_copy(update={"dry_run": False, "eth_rpc_url": "https://eth.test"})

        reader = create_chain_reader(1, live)

        assert isinstance(reader, JsonRpcChainReader)
        assert reader.rpc_url == "https://eth.test"

    def test_live_without_rpc_url(self, settings):
        live = settings.model_copy(update={"dry_run": False})

        assert isinstance(create_chain_reader(424242, live), InMemoryChainReader)

    def test_repository_backends(self, settings):
        sql = settings.model_copy(update={"ledger_backend": "sql"})
        bogus = settings.model_copy(update={"ledger_backend": "redis"})

        assert isinstance(create_repository(sql), SqlTransactionRepository)
        assert isinstance(create_repository(settings), InMemoryTransactionRepository)
        assert isinstance(create_repository(bogus), InMemoryTransactionRepository)

    def test_default_readers_cover_lanes(self, settings):
        service = create_swap_service(settings)

        assert set(service.search_engines) == {1, 56, 137}

    def test_factory_per_chain(self, settings):
        service = create_swap_service(settings)

        assert service.search_engines[1].factory_address == DEFAULT_FACTORIES[1]
        assert service.search_engines[56].factory_address == DEFAULT_FACTORIES[56]
        assert service.search_engines[137].factory_address == DEFAULT_FACTORIES[137]

    def test_chain_without_factory_skipped(self, settings):
        service = create_swap_service(
            settings, readers={1: InMemoryChainReader(), 424242: InMemoryChainReader()}
        )

        assert set(service.search_engines) == {1}


class TestCrossChainSwapService:
    """End-to-end tests through the facade."""

    @pytest.mark.asyncio
    async def test_find_best_route(self, service: CrossChainSwapService):
        route = await service.find_best_route(1, WETH, DAI, 10_000)

        assert route.amount_out == 19_743

    @pytest.mark.asyncio
    async def test_unknown_chain(self, service: CrossChainSwapService):
        with pytest.raises(ValueError):
            await service.find_best_route(424242, WETH, DAI, 10_000)

    @pytest.mark.asyncio
    async def test_search_and_execute(self, service: CrossChainSwapService):
        routes = await service.search_routes(1, 56, WETH, WBNB, 1_000_000)

        tx_id = await service.execute_cross_chain_swap(routes[0], USER)
        await service.orchestrator.wait_for(tx_id)

        tx = await service.get_transaction(tx_id)
        assert tx.status == TransactionStatus.COMPLETED
        assert [t.transaction_id for t in await service.get_user_transactions(USER)] == [tx_id]

    @pytest.mark.asyncio
    async def test_bridge_info(self, service: CrossChainSwapService):
        routes = await service.search_routes(1, 56, USDC_ETH, USDC_BSC, 1_000_000)

        assert service.is_route_available(1, 56)
        assert not service.is_route_available(1, 137)
        assert len(service.get_supported_bridge_paths()) == 2
        assert service.estimate_gas_fee(routes[0]) > 0

    @pytest.mark.asyncio
    async def test_retry_through_facade(self, service: CrossChainSwapService):
        routes = await service.search_routes(1, 56, USDC_ETH, USDC_BSC, 1_000_000)
        tx_id = await service.execute_cross_chain_swap(routes[0], USER)
        await service.bridge.open_circuit_breaker("incident")
        await service.orchestrator.wait_for(tx_id)
        await service.bridge.close_circuit_breaker()

        await service.retry_transaction(tx_id)
        tx = await service.orchestrator.wait_for(tx_id)

        assert tx.status == TransactionStatus.COMPLETED
        assert tx.retry_count == 1

    @pytest.mark.asyncio
    async def test_cleanup_prunes_plans(self, service: CrossChainSwapService):
        routes = await service.search_routes(1, 56, USDC_ETH, USDC_BSC, 1_000_000)
        tx_id = await service.execute_cross_chain_swap(routes[0], USER)
        await service.bridge.open_circuit_breaker("incident")
        await service.orchestrator.wait_for(tx_id)
        service.ledger.retention_days = -1

        assert await service.cleanup_old_transactions() == 1
        assert tx_id not in service.orchestrator._routes

    @pytest.mark.asyncio
    async def test_close(self, service: CrossChainSwapService):
        await service.close()

        assert service.orchestrator.in_flight() == set()


class TestMaintenanceRunner:
    """Tests for the periodic jobs."""

    async def _stuck_transaction(self, service: CrossChainSwapService) -> str:
        ledger = service.ledger
        tx = await ledger.create_transaction(
            user_address=USER,
            source_chain_id=1,
            target_chain_id=56,
            source_token=USDC_ETH,
            target_token=USDC_BSC,
            amount_in=1_000_000,
            estimated_amount_out=995_000,
        )
        await ledger.initiate_bridge(tx.transaction_id)
        await ledger.update_bridge_message_id(tx.transaction_id, "stuck-message")
        return tx.transaction_id

    @pytest.mark.asyncio
    async def test_run_once(self, service: CrossChainSwapService):
        tx_id = await self._stuck_transaction(service)
        await service.bridge.update_daily_outflow(1, 500)
        runner = MaintenanceRunner(service, pending_interval=1, cleanup_interval=100)

        result = await runner.run_once(now=1_000.0)

        assert result == {"advanced": 1, "purged": 0}
        assert (await service.get_transaction(tx_id)).status == TransactionStatus.COMPLETED
        assert service.bridge.get_daily_outflow(1) == 0

    @pytest.mark.asyncio
    async def test_cleanup_waits_for_interval(self, service: CrossChainSwapService):
        runner = MaintenanceRunner(service, pending_interval=1, cleanup_interval=100)

        await runner.run_once(now=1_000.0)
        assert (await runner.run_once(now=1_050.0))["purged"] is None
        assert (await runner.run_once(now=1_100.0))["purged"] == 0

    @pytest.mark.asyncio
    async def test_errors_are_logged(self, service: CrossChainSwapService, monkeypatch):
        async def broken():
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(service, "check_pending_transactions", broken)
        monkeypatch.setattr(service, "cleanup_old_transactions", broken)
        runner = MaintenanceRunner(service)

        assert await runner.run_once() == {"advanced": 0, "purged": 0}
