"""Pytest configuration and fixtures."""

import os
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "true"
os.environ["DRY_RUN"] = "true"

from hopbridge.amm.dry_run import InMemoryChainReader
from hopbridge.config import ChainPairSettings, Settings
from hopbridge.crosschain.bridge import DryRunBridgeClient, create_bridge_adapter
from hopbridge.crosschain.fees import FeeEstimator
from hopbridge.crosschain.orchestrator import TransactionOrchestrator
from hopbridge.crosschain.planner import CrossChainRoutePlanner
from hopbridge.crosschain.writer import DryRunChainWriter
from hopbridge.ledger.models import Base
from hopbridge.ledger.repository import InMemoryTransactionRepository
from hopbridge.ledger.service import TransactionLedger
from hopbridge.utils.locks import clear_transaction_locks

from tests.helpers import USDC_BSC, USDC_ETH


@pytest.fixture(autouse=True)
def _reset_locks():
    """Transaction locks are process-wide; start every test clean."""
    clear_transaction_locks()
    yield
    clear_transaction_locks()


@pytest.fixture
def settings() -> Settings:
    """Settings with fast polling and two simple lanes."""
    return Settings(
        _env_file=None,
        ledger_backend="memory",
        retry_delay_seconds=0.01,
        max_retry_attempts=3,
        min_bridge_amount=1_000,
        max_bridge_amount=10**24,
        chain_pairs=[
            ChainPairSettings(
                source_chain_id=1, target_chain_id=56, base_fee=5_000, average_time_seconds=300
            ),
            ChainPairSettings(
                source_chain_id=56, target_chain_id=1, base_fee=4_000, average_time_seconds=360
            ),
            ChainPairSettings(
                source_chain_id=1,
                target_chain_id=137,
                enabled=False,
                base_fee=3_000,
                average_time_seconds=180,
            ),
        ],
        daily_outflow_limits={1: 10**22, 56: 10**22},
        stablecoins={1: USDC_ETH, 56: USDC_BSC},
        bridge_assets={1: [USDC_ETH], 56: [USDC_BSC]},
        default_slippage=Decimal("0.005"),
    )


@pytest.fixture
def bridge_client() -> DryRunBridgeClient:
    return DryRunBridgeClient()


@pytest.fixture
def bridge(settings, bridge_client):
    return create_bridge_adapter(settings, client=bridge_client)


@pytest.fixture
def fees(bridge, settings) -> FeeEstimator:
    return FeeEstimator(bridge, settings)


@pytest.fixture
def planner(bridge, fees, settings) -> CrossChainRoutePlanner:
    return CrossChainRoutePlanner(bridge, fees, settings)


@pytest.fixture
def writer() -> DryRunChainWriter:
    return DryRunChainWriter()


@pytest.fixture
def ledger(bridge) -> TransactionLedger:
    return TransactionLedger(InMemoryTransactionRepository(), bridge=bridge)


@pytest.fixture
def orchestrator(ledger, bridge, planner, writer, fees, settings) -> TransactionOrchestrator:
    return TransactionOrchestrator(ledger, bridge, planner, writer, fees, settings)


@pytest.fixture
def reader() -> InMemoryChainReader:
    return InMemoryChainReader()


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the in-memory engine."""
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
