"""Cross-chain swap engine.

AMM route search on each chain, a bridge adapter with safety guards,
and an asynchronous orchestrator backed by a transaction ledger.
"""

__version__ = "0.1.0"
