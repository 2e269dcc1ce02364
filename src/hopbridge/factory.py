"""Factory for wiring the cross-chain swap service.

Creates real JSON-RPC readers when dry_run is off, otherwise falls back
to simulated collaborators.
"""

import logging
from typing import Optional

from hopbridge.amm.base import ChainReader
from hopbridge.amm.dry_run import InMemoryChainReader
from hopbridge.amm.rpc_reader import JsonRpcChainReader
from hopbridge.amm.search import RouteSearchEngine
from hopbridge.config import Settings, get_settings
from hopbridge.crosschain.bridge import BridgeClient, BridgeNetworkAdapter, create_bridge_adapter
from hopbridge.crosschain.fees import FeeEstimator
from hopbridge.crosschain.orchestrator import TransactionOrchestrator
from hopbridge.crosschain.planner import CrossChainRoutePlanner
from hopbridge.crosschain.writer import ChainWriter, DryRunChainWriter
from hopbridge.ledger.repository import (
    InMemoryTransactionRepository,
    SqlTransactionRepository,
    TransactionRepository,
)
from hopbridge.ledger.service import TransactionLedger
from hopbridge.service import CrossChainSwapService

logger = logging.getLogger(__name__)


def create_chain_reader(chain_id: int, settings: Optional[Settings] = None) -> ChainReader:
    """Create the reserve reader for one chain.

    Uses JSON-RPC when dry_run is off and an RPC URL is configured.
    """
    settings = settings or get_settings()
    rpc_url = settings.get_rpc_url(chain_id)

    if not settings.dry_run and rpc_url:
        return JsonRpcChainReader(rpc_url, timeout=settings.rpc_timeout_seconds)

    if not settings.dry_run:
        logger.warning(f"No RPC URL for chain {chain_id}, using in-memory reader")
    return InMemoryChainReader()


def create_repository(settings: Optional[Settings] = None) -> TransactionRepository:
    """Create the ledger storage backend named by ledger_backend."""
    settings = settings or get_settings()
    backend = settings.ledger_backend.lower()

    if backend == "sql":
        return SqlTransactionRepository()
    if backend != "memory":
        logger.warning(f"Unknown ledger backend {settings.ledger_backend!r}, using memory")
    return InMemoryTransactionRepository()


def create_chain_writer(settings: Optional[Settings] = None) -> ChainWriter:
    """Create the chain writer.

    Signing lives outside this package, so only the simulated writer ships.
    """
    settings = settings or get_settings()
    if not settings.dry_run:
        logger.warning("No signing chain writer configured, using dry-run writer")
    return DryRunChainWriter()


def create_swap_service(
    settings: Optional[Settings] = None,
    readers: Optional[dict[int, ChainReader]] = None,
    repository: Optional[TransactionRepository] = None,
    bridge_client: Optional[BridgeClient] = None,
    writer: Optional[ChainWriter] = None,
    bridge: Optional[BridgeNetworkAdapter] = None,
) -> CrossChainSwapService:
    """
    Build the full service graph.

    Every collaborator can be injected; anything missing is created from
    settings.
    """
    settings = settings or get_settings()

    if readers is None:
        chain_ids = {p.source_chain_id for p in settings.chain_pairs} | {
            p.target_chain_id for p in settings.chain_pairs
        }
        readers = {chain_id: create_chain_reader(chain_id, settings) for chain_id in chain_ids}

    search_engines = {}
    for chain_id, reader in readers.items():
        factory_address = settings.get_factory_address(chain_id)
        if not factory_address:
            logger.warning(f"No AMM factory configured for chain {chain_id}, skipping quotes")
            continue
        search_engines[chain_id] = RouteSearchEngine(
            reader, factory_address, default_slippage=settings.default_slippage
        )

    bridge = bridge or create_bridge_adapter(settings, client=bridge_client)
    fees = FeeEstimator(bridge, settings)
    planner = CrossChainRoutePlanner(bridge, fees, settings)
    ledger = TransactionLedger(
        repository or create_repository(settings),
        bridge=bridge,
        retention_days=settings.retention_days,
        max_retries=settings.max_transaction_retries,
    )
    orchestrator = TransactionOrchestrator(
        ledger,
        bridge,
        planner,
        writer or create_chain_writer(settings),
        fees,
        settings,
    )

    logger.info(
        f"Cross-chain swap service ready: bridge={bridge.bridge_name}, "
        f"chains={sorted(search_engines)}, ledger={type(ledger.repository).__name__}"
    )
    return CrossChainSwapService(search_engines, planner, orchestrator)
