"""JSON-RPC chain reader for Uniswap V2 compatible pairs.

Reads reserves over plain `eth_call` requests, ABI-encoding the handful of
static calls by hand.
"""

import logging
from typing import Optional

import httpx

from hopbridge.amm.base import ChainReader
from hopbridge.exceptions import ChainRpcError, PairNotFoundError

logger = logging.getLogger(__name__)

# Method selectors
GET_PAIR_SIGNATURE = "0xe6a43905"  # getPair(address,address)
GET_RESERVES_SIGNATURE = "0x0902f1ac"  # getReserves()
TOTAL_SUPPLY_SIGNATURE = "0x18160ddd"  # totalSupply()
TOKEN0_SIGNATURE = "0x0dfe1681"  # token0()

ZERO_ADDRESS = "0x" + "0" * 40


def _pad_address(address: str) -> str:
    return address.lower().replace("0x", "").zfill(64)


def _words(result: str) -> list[str]:
    body = result[2:] if result.startswith("0x") else result
    return [body[i : i + 64] for i in range(0, len(body), 64)]


def _word_to_address(word: str) -> str:
    return "0x" + word[-40:]


class JsonRpcChainReader(ChainReader):
    """ChainReader backed by an EVM JSON-RPC endpoint."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._transport = transport
        self._request_id = 0

    async def _eth_call(self, to: str, data: str) -> str:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": "eth_call",
            "params": [{"to": to, "data": data}, "latest"],
            "id": self._request_id,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"RPC request to {self.rpc_url} failed: {e}")
            raise ChainRpcError(f"RPC request failed: {e}") from e

        if response.status_code != 200:
            raise ChainRpcError(f"RPC returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise ChainRpcError(f"Invalid JSON from {self.rpc_url}: {e}") from e
        if not isinstance(body, dict):
            raise ChainRpcError(f"Unexpected RPC response from {self.rpc_url}: {body!r}")

        if "error" in body:
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ChainRpcError(f"eth_call to {to} reverted: {message}")

        result = body.get("result")
        if not isinstance(result, str) or result in ("", "0x"):
            raise ChainRpcError(f"Empty eth_call result from {to}")
        return result

    async def get_pair_address(self, factory: str, token_a: str, token_b: str) -> str:
        data = f"{GET_PAIR_SIGNATURE}{_pad_address(token_a)}{_pad_address(token_b)}"
        result = await self._eth_call(factory, data)
        pair = _word_to_address(_words(result)[0])
        if int(pair, 16) == 0:
            raise PairNotFoundError(token_a, token_b)
        return pair

    async def get_reserves(self, pair_address: str) -> tuple[int, int, int]:
        result = await self._eth_call(pair_address, GET_RESERVES_SIGNATURE)
        words = _words(result)
        if len(words) < 3:
            raise ChainRpcError(f"Malformed getReserves result from {pair_address}")
        return int(words[0], 16), int(words[1], 16), int(words[2], 16)

    async def get_total_supply(self, pair_address: str) -> int:
        result = await self._eth_call(pair_address, TOTAL_SUPPLY_SIGNATURE)
        return int(_words(result)[0], 16)

    async def get_token0(self, pair_address: str, token_a: str, token_b: str) -> str:
        result = await self._eth_call(pair_address, TOKEN0_SIGNATURE)
        token0 = _word_to_address(_words(result)[0])
        # Return the caller's spelling so comparisons stay checksum-agnostic
        for token in (token_a, token_b):
            if token.lower() == token0.lower():
                return token
        return token0
