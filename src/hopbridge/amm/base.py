"""Pool snapshots, route candidates and the chain reader interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal


def sort_tokens(token_a: str, token_b: str) -> tuple[str, str]:
    """Order two token addresses the way a V2 factory does (lowest first)."""
    if token_a.lower() == token_b.lower():
        raise ValueError(f"Identical tokens: {token_a}")
    if token_a.lower() < token_b.lower():
        return token_a, token_b
    return token_b, token_a


@dataclass(frozen=True)
class PoolReserve:
    """Reserves of one pair, read for a single quote.

    Never cached across quotes: reserves change every block.
    """

    pair_address: str
    token0: str
    token1: str
    reserve0: int
    reserve1: int
    total_supply: int = 0

    def reserves_for(self, token_in: str) -> tuple[int, int]:
        """Return (reserve_in, reserve_out) for a swap that sells token_in."""
        if token_in.lower() == self.token0.lower():
            return self.reserve0, self.reserve1
        if token_in.lower() == self.token1.lower():
            return self.reserve1, self.reserve0
        raise ValueError(f"Token {token_in} is not part of pair {self.pair_address}")


@dataclass
class RouteCandidate:
    """A quoted single-chain path (direct or multi-hop)."""

    path: list[str]
    amount_out: int
    min_amount_out: int
    price_impact: Decimal
    reserves: list[int] = field(default_factory=list)
    is_direct: bool = True

    @property
    def hops(self) -> int:
        """Number of pools traversed."""
        return len(self.path) - 1

    def to_dict(self) -> dict:
        """Convert to dictionary for an API layer."""
        return {
            "path": list(self.path),
            "amountOut": str(self.amount_out),
            "minAmountOut": str(self.min_amount_out),
            "priceImpact": str(self.price_impact),
            "reserves": [str(r) for r in self.reserves],
            "isDirect": self.is_direct,
            "hops": self.hops,
        }


class ChainReader(ABC):
    """Read-only access to AMM contracts on one chain."""

    @abstractmethod
    async def get_pair_address(self, factory: str, token_a: str, token_b: str) -> str:
        """
        Resolve the pair contract for two tokens.

        Raises:
            PairNotFoundError: If the factory has no pair for the tokens
        """

    @abstractmethod
    async def get_reserves(self, pair_address: str) -> tuple[int, int, int]:
        """Return (reserve0, reserve1, block_timestamp_last) of a pair."""

    @abstractmethod
    async def get_total_supply(self, pair_address: str) -> int:
        """Return the LP token total supply of a pair."""

    async def get_token0(self, pair_address: str, token_a: str, token_b: str) -> str:
        """Return the pair's token0. Defaults to V2 address ordering."""
        return sort_tokens(token_a, token_b)[0]
