"""Static metadata for the EVM chains the bridge connects.

Chain ids follow EIP-155. Explorer templates are used when writing
human-readable status history entries.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ChainInfo:
    """Display metadata for a chain."""

    chain_id: int
    name: str
    symbol: str
    explorer_tx_url: str  # format string with one %s for the tx hash
    dex_name: str = "Uniswap V2"


CHAINS: dict[int, ChainInfo] = {
    1: ChainInfo(
        chain_id=1,
        name="Ethereum",
        symbol="ETH",
        explorer_tx_url="https://etherscan.io/tx/%s",
    ),
    56: ChainInfo(
        chain_id=56,
        name="BNB Smart Chain",
        symbol="BNB",
        explorer_tx_url="https://bscscan.com/tx/%s",
        dex_name="PancakeSwap",
    ),
    137: ChainInfo(
        chain_id=137,
        name="Polygon",
        symbol="MATIC",
        explorer_tx_url="https://polygonscan.com/tx/%s",
        dex_name="QuickSwap",
    ),
    42161: ChainInfo(
        chain_id=42161,
        name="Arbitrum One",
        symbol="ETH",
        explorer_tx_url="https://arbiscan.io/tx/%s",
    ),
    10: ChainInfo(
        chain_id=10,
        name="Optimism",
        symbol="ETH",
        explorer_tx_url="https://optimistic.etherscan.io/tx/%s",
    ),
}

DEFAULT_EXPLORER_TX_URL = "https://etherscan.io/tx/%s"
HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def get_chain(chain_id: int) -> Optional[ChainInfo]:
    """Get chain metadata by id."""
    return CHAINS.get(chain_id)


def get_chain_name(chain_id: int) -> str:
    """Human-readable chain name, falling back to the numeric id."""
    chain = CHAINS.get(chain_id)
    return chain.name if chain else f"chain {chain_id}"


def get_dex_name(chain_id: int) -> str:
    """Default AMM protocol label for swaps on a chain."""
    chain = CHAINS.get(chain_id)
    return chain.dex_name if chain else "Uniswap V2"


def get_explorer_link(chain_id: int, tx_hash: str) -> str:
    """Block explorer URL for a transaction hash."""
    chain = CHAINS.get(chain_id)
    template = chain.explorer_tx_url if chain else DEFAULT_EXPLORER_TX_URL
    return template % tx_hash


def is_valid_address(address: str) -> bool:
    """Check EVM address format: 0x followed by 40 hex characters."""
    if not address or not address.startswith("0x"):
        return False

    if len(address) != 42:
        return False

    return all(c in HEX_DIGITS for c in address[2:])
