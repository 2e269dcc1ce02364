"""AMM route search over constant-product (Uniswap V2 style) pools."""

from hopbridge.amm.base import ChainReader, PoolReserve, RouteCandidate
from hopbridge.amm.dry_run import InMemoryChainReader
from hopbridge.amm.math import apply_slippage, calculate_price_impact, get_amount_out
from hopbridge.amm.rpc_reader import JsonRpcChainReader
from hopbridge.amm.search import RouteSearchEngine

__all__ = [
    # Models
    "PoolReserve",
    "RouteCandidate",
    # Readers
    "ChainReader",
    "InMemoryChainReader",
    "JsonRpcChainReader",
    # Search
    "RouteSearchEngine",
    "get_amount_out",
    "calculate_price_impact",
    "apply_slippage",
]
