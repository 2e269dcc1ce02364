"""In-memory chain reader for simulation and tests."""

import hashlib
import time

from hopbridge.amm.base import ChainReader, sort_tokens
from hopbridge.exceptions import ChainRpcError, PairNotFoundError


def _pair_key(token_a: str, token_b: str) -> tuple[str, str]:
    token0, token1 = sort_tokens(token_a, token_b)
    return token0.lower(), token1.lower()


class InMemoryChainReader(ChainReader):
    """Serves reserves from a dict of simulated pools.

    Pools are registered with reserves in the caller's token order and
    stored in V2 (token0 < token1) order.
    """

    def __init__(self):
        self._pairs: dict[tuple[str, str], str] = {}
        self._reserves: dict[str, tuple[int, int]] = {}
        self._total_supply: dict[str, int] = {}
        self.calls = 0

    def add_pool(
        self,
        token_a: str,
        token_b: str,
        reserve_a: int,
        reserve_b: int,
        total_supply: int = 0,
    ) -> str:
        """Register (or replace) a pool and return its pair address."""
        key = _pair_key(token_a, token_b)
        digest = hashlib.sha256(f"{key[0]}:{key[1]}".encode()).hexdigest()
        pair_address = "0x" + digest[:40]

        if key[0] == token_a.lower():
            reserves = (reserve_a, reserve_b)
        else:
            reserves = (reserve_b, reserve_a)

        self._pairs[key] = pair_address
        self._reserves[pair_address] = reserves
        self._total_supply[pair_address] = total_supply
        return pair_address

    def remove_pool(self, token_a: str, token_b: str) -> None:
        pair_address = self._pairs.pop(_pair_key(token_a, token_b), None)
        if pair_address:
            self._reserves.pop(pair_address, None)
            self._total_supply.pop(pair_address, None)

    async def get_pair_address(self, factory: str, token_a: str, token_b: str) -> str:
        self.calls += 1
        pair_address = self._pairs.get(_pair_key(token_a, token_b))
        if pair_address is None:
            raise PairNotFoundError(token_a, token_b)
        return pair_address

    async def get_reserves(self, pair_address: str) -> tuple[int, int, int]:
        self.calls += 1
        if pair_address not in self._reserves:
            raise ChainRpcError(f"Unknown pair {pair_address}")
        reserve0, reserve1 = self._reserves[pair_address]
        return reserve0, reserve1, int(time.time())

    async def get_total_supply(self, pair_address: str) -> int:
        self.calls += 1
        return self._total_supply.get(pair_address, 0)
