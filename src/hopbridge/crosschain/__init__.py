"""Cross-chain routing and bridge execution.

Routes are planned as a direct bridge hop or a stablecoin relay
(swap -> bridge -> swap). The orchestrator lives in
hopbridge.crosschain.orchestrator and is not imported here, since it
depends on the ledger.
"""

from hopbridge.crosschain.bridge import (
    BridgeClient,
    BridgeNetworkAdapter,
    BridgeState,
    DryRunBridgeClient,
    create_bridge_adapter,
)
from hopbridge.crosschain.fees import FeeEstimator
from hopbridge.crosschain.models import (
    BridgeConfig,
    ChainPair,
    CircuitBreakerStatus,
    CrossChainRoute,
    CrossChainTransaction,
    FeeBreakdown,
    RouteStep,
    RouteType,
    StatusHistory,
    StepType,
    TransactionStatus,
)
from hopbridge.crosschain.planner import CrossChainRoutePlanner
from hopbridge.crosschain.writer import ChainWriter, DryRunChainWriter

__all__ = [
    # Models
    "BridgeConfig",
    "ChainPair",
    "CircuitBreakerStatus",
    "CrossChainRoute",
    "CrossChainTransaction",
    "FeeBreakdown",
    "RouteStep",
    "RouteType",
    "StatusHistory",
    "StepType",
    "TransactionStatus",
    # Bridge
    "BridgeClient",
    "BridgeNetworkAdapter",
    "BridgeState",
    "DryRunBridgeClient",
    "create_bridge_adapter",
    # Planning
    "FeeEstimator",
    "CrossChainRoutePlanner",
    # Execution
    "ChainWriter",
    "DryRunChainWriter",
]
