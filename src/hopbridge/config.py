"""Application configuration using pydantic-settings.

Static bridge, fee and routing configuration for the cross-chain swap engine.
Every tuning value lives here so it can be overridden from the environment.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Well-known USDC deployments used for stablecoin relay routes
DEFAULT_STABLECOINS: dict[int, str] = {
    1: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    56: "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d",
    137: "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
}

# Uniswap V2 compatible factories: Uniswap, PancakeSwap, QuickSwap
DEFAULT_FACTORIES: dict[int, str] = {
    1: "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f",
    56: "0xcA143Ce32Fe78f1f7019d7d551a6402fC5350c73",
    137: "0x5757371414417b8C6CAad45bAeF941aBc7d3Ab32",
}

BASE_GAS_PRICE_WEI = 30_000_000_000  # 30 gwei


class ChainPairSettings(BaseModel):
    """One directed bridge lane."""

    source_chain_id: int
    target_chain_id: int
    enabled: bool = True
    base_fee: int = 0
    average_time_seconds: int = 300


def _default_chain_pairs() -> list[ChainPairSettings]:
    return [
        ChainPairSettings(
            source_chain_id=1, target_chain_id=56, base_fee=5_000_000, average_time_seconds=300
        ),
        ChainPairSettings(
            source_chain_id=1, target_chain_id=137, base_fee=3_000_000, average_time_seconds=180
        ),
        ChainPairSettings(
            source_chain_id=56, target_chain_id=137, base_fee=2_000_000, average_time_seconds=240
        ),
    ]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    dry_run: bool = Field(default=True, description="Use simulated chain writer and bridge")

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/hopbridge.db",
        description="Database connection URL",
    )
    ledger_backend: str = Field(
        default="memory", description="Transaction ledger storage: 'memory' or 'sql'"
    )

    # ======================
    # Chain RPC Endpoints
    # ======================
    eth_rpc_url: str = Field(default="https://eth.llamarpc.com", description="Ethereum RPC URL")
    bsc_rpc_url: str = Field(
        default="https://bsc-dataseed.binance.org", description="BSC RPC URL"
    )
    matic_rpc_url: str = Field(default="https://polygon-rpc.com", description="Polygon RPC URL")
    rpc_timeout_seconds: float = Field(default=15.0, description="JSON-RPC request timeout")

    # ======================
    # AMM Routing
    # ======================
    factory_addresses: dict[int, str] = Field(
        default_factory=lambda: dict(DEFAULT_FACTORIES),
        description="Uniswap V2 compatible factory contract per chain",
    )
    default_slippage: Decimal = Field(
        default=Decimal("0.005"), description="Default slippage tolerance (0.5%)"
    )
    swap_fee_rate: Decimal = Field(
        default=Decimal("0.003"), description="Flat swap leg fee for relay routes (0.3%)"
    )

    # ======================
    # Bridge
    # ======================
    bridge_name: str = Field(default="ZetaChain", description="Bridge network name")
    bridge_enabled: bool = Field(default=True, description="Master switch for the bridge")
    min_bridge_amount: int = Field(default=1_000_000, description="Minimum bridge amount")
    max_bridge_amount: int = Field(
        default=1_000 * 10**18, description="Maximum bridge amount"
    )
    chain_pairs: list[ChainPairSettings] = Field(
        default_factory=_default_chain_pairs, description="Supported bridge lanes"
    )
    daily_outflow_limits: dict[int, int] = Field(
        default_factory=lambda: {1: 100_000 * 10**18, 56: 100_000 * 10**18, 137: 100_000 * 10**18},
        description="Per-chain daily outflow cap",
    )
    stablecoins: dict[int, str] = Field(
        default_factory=lambda: dict(DEFAULT_STABLECOINS),
        description="Relay stablecoin address per chain",
    )
    bridge_assets: dict[int, list[str]] = Field(
        default_factory=lambda: {cid: [addr] for cid, addr in DEFAULT_STABLECOINS.items()},
        description="Tokens the bridge can carry natively, per chain",
    )
    default_bridge_time_seconds: int = Field(
        default=300, description="ETA used for lanes without history"
    )

    # ======================
    # Fees
    # ======================
    service_fee_rate: Decimal = Field(
        default=Decimal("0.0005"), description="Cross-chain service fee (0.05%)"
    )
    base_gas_price_wei: int = Field(default=BASE_GAS_PRICE_WEI, description="Fallback gas price")
    chain_gas_prices_wei: dict[int, int] = Field(
        default_factory=lambda: {
            1: BASE_GAS_PRICE_WEI * 2,
            56: BASE_GAS_PRICE_WEI // 3,
            137: BASE_GAS_PRICE_WEI // 2,
        },
        description="Static per-chain gas price table",
    )

    # ======================
    # Route ranking (BALANCED)
    # ======================
    balanced_time_weight: float = Field(default=0.4, description="Weight of ETA in score")
    balanced_fee_weight: float = Field(default=0.6, description="Weight of fee in score")
    balanced_time_reference_seconds: float = Field(default=600.0, description="ETA normaliser")
    balanced_fee_reference: float = Field(default=10_000_000.0, description="Fee normaliser")
    include_receive_step: bool = Field(
        default=False, description="Append a RECEIVE step after each BRIDGE step"
    )

    # ======================
    # Orchestration
    # ======================
    max_retry_attempts: int = Field(default=3, description="Bridge status polls per RECEIVE")
    retry_delay_seconds: float = Field(default=5.0, description="Delay between bridge polls")
    max_transaction_retries: int = Field(default=3, description="Manual retries per transaction")
    pending_check_interval_seconds: int = Field(
        default=30, description="Bridge re-poll sweep cadence"
    )
    cleanup_interval_seconds: int = Field(default=86400, description="Cleanup/reset cadence")
    retention_days: int = Field(default=30, description="Days to keep terminal transactions")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_rpc_url(self, chain_id: int) -> str:
        """Get RPC URL for a chain id."""
        rpc_map = {
            1: self.eth_rpc_url,
            56: self.bsc_rpc_url,
            137: self.matic_rpc_url,
        }
        return rpc_map.get(chain_id, "")

    def get_factory_address(self, chain_id: int) -> str:
        """Get the AMM factory address for a chain id."""
        return self.factory_addresses.get(chain_id, "")

    def get_gas_price(self, chain_id: int) -> int:
        """Gas price for a chain from the static table."""
        return self.chain_gas_prices_wei.get(chain_id, self.base_gas_price_wei)

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "database_url": self._redact_url(self.database_url),
            "ledger_backend": self.ledger_backend,
            "chains": {
                "1": {"rpc": self.eth_rpc_url},
                "56": {"rpc": self.bsc_rpc_url},
                "137": {"rpc": self.matic_rpc_url},
            },
            "bridge": {
                "name": self.bridge_name,
                "enabled": self.bridge_enabled,
                "lanes": [
                    f"{p.source_chain_id} -> {p.target_chain_id}" for p in self.chain_pairs
                ],
                "min_amount": str(self.min_bridge_amount),
                "max_amount": str(self.max_bridge_amount),
            },
            "fees": {
                "service_fee_rate": str(self.service_fee_rate),
                "swap_fee_rate": str(self.swap_fee_rate),
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
