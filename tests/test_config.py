"""Tests for settings and chain metadata."""

from decimal import Decimal

from hopbridge.chains import (
    get_chain,
    get_chain_name,
    get_dex_name,
    get_explorer_link,
    is_valid_address,
)
from hopbridge.config import BASE_GAS_PRICE_WEI, Settings


class TestSettings:
    """Tests for pydantic settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.default_slippage == Decimal("0.005")
        assert settings.max_retry_attempts == 3
        assert settings.retry_delay_seconds == 5.0
        assert settings.retention_days == 30
        assert settings.pending_check_interval_seconds == 30
        assert settings.bridge_name == "ZetaChain"
        assert not settings.include_receive_step

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MAX_RETRY_ATTEMPTS", "7")
        monkeypatch.setenv("SERVICE_FEE_RATE", "0.001")

        settings = Settings(_env_file=None)

        assert settings.max_retry_attempts == 7
        assert settings.service_fee_rate == Decimal("0.001")

    def test_chain_pairs_from_json(self, monkeypatch):
        monkeypatch.setenv(
            "CHAIN_PAIRS", '[{"source_chain_id": 10, "target_chain_id": 1, "base_fee": 9}]'
        )

        settings = Settings(_env_file=None)

        assert len(settings.chain_pairs) == 1
        assert settings.chain_pairs[0].source_chain_id == 10
        assert settings.chain_pairs[0].base_fee == 9
        assert settings.chain_pairs[0].enabled

    def test_gas_price_fallback(self):
        settings = Settings(_env_file=None)

        assert settings.get_gas_price(1) == BASE_GAS_PRICE_WEI * 2
        assert settings.get_gas_price(424242) == BASE_GAS_PRICE_WEI

    def test_rpc_urls(self):
        settings = Settings(_env_file=None, bsc_rpc_url="https://bsc.test")

        assert settings.get_rpc_url(56) == "https://bsc.test"
        assert settings.get_rpc_url(424242) == ""

    def test_factory_addresses(self):
        settings = Settings(_env_file=None)

        assert settings.get_factory_address(1) == "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f"
        assert settings.get_factory_address(56) == "0xcA143Ce32Fe78f1f7019d7d551a6402fC5350c73"
        assert settings.get_factory_address(424242) == ""

    def test_safe_dict_redacts_password(self):
        settings = Settings(
            _env_file=None, database_url="postgresql+asyncpg://bridge:secret@db:5432/hop"
        )

        safe = settings.get_safe_dict()

        assert "secret" not in safe["database_url"]
        assert safe["database_url"] == "postgresql+asyncpg://bridge:***@db:5432/hop"
        assert safe["bridge"]["name"] == "ZetaChain"


class TestChains:
    """Tests for chain metadata helpers."""

    def test_known_chain(self):
        assert get_chain(56).symbol == "BNB"
        assert get_chain_name(137) == "Polygon"
        assert get_dex_name(56) == "PancakeSwap"
        assert get_explorer_link(137, "0xabc") == "https://polygonscan.com/tx/0xabc"

    def test_unknown_chain(self):
        assert get_chain(424242) is None
        assert get_chain_name(424242) == "chain 424242"
        assert get_dex_name(424242) == "Uniswap V2"
        assert get_explorer_link(424242, "0xabc") == "https://etherscan.io/tx/0xabc"

    def test_address_validation(self):
        assert is_valid_address("0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f")
        assert not is_valid_address("0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6")
        assert not is_valid_address("5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f00")
        assert not is_valid_address("0x" + "g" * 40)
        assert not is_valid_address("")
