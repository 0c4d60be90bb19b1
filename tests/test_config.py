"""
Settings loading from defaults, JSON file and environment
"""

import json

import pytest

from flashgen.data.config import DEFAULT_RPC_URLS, load_settings
from flashgen.errors import ConfigMissing


class TestLoadSettings:

    @pytest.fixture
    def missing_file(self, tmp_path):
        return str(tmp_path / "absent.json")

    def test_defaults(self, missing_file):
        settings = load_settings(missing_file, env={})
        assert settings.chain_id == 56
        assert settings.quote_ttl_seconds == 30
        assert settings.price_cache_ttl_seconds == 60
        assert settings.auto_treasury_fee_usd == 1.0
        assert settings.rpc_urls == DEFAULT_RPC_URLS
        assert settings.wrapped_native_address == "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"

    def test_environment_overrides(self, missing_file):
        settings = load_settings(missing_file, env={
            "ONE_INCH_API_KEY": "abc",
            "TREASURY_WALLET": "0xT",
            "TREASURY_WALLET_LAST_DIGITS": "7a7a",
            "TREASURY_TOKEN_FEE_PERCENT": "2.5",
            "QUOTE_TTL_SECONDS": "45",
        })
        assert settings.aggregator_api_key == "abc"
        assert settings.treasury_address == "0xT"
        assert settings.treasury_suffix == "7a7a"
        assert settings.treasury_token_fee_percent == 2.5
        assert settings.quote_ttl_seconds == 45

    def test_primary_rpc_goes_first(self, missing_file):
        settings = load_settings(missing_file, env={"BSC_RPC_URL": "https://my-node.example"})
        assert settings.rpc_urls[0] == "https://my-node.example"
        assert settings.rpc_urls[1:] == DEFAULT_RPC_URLS

    def test_json_file_then_env(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"flashgen": {"slippage_percent": 0.5, "dev_fee_usd": 3.0}}))

        settings = load_settings(str(path), env={"DEV_FEE_USD": "4"})

        assert settings.slippage_percent == 0.5
        assert settings.dev_fee_usd == 4.0

    def test_broken_json_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        assert load_settings(str(path), env={}).slippage_percent == 1.0

    def test_unparseable_number(self, missing_file):
        with pytest.raises(ConfigMissing, match="DEV_FEE_USD"):
            load_settings(missing_file, env={"DEV_FEE_USD": "five"})

    def test_debug_flag(self, missing_file):
        assert load_settings(missing_file, env={"DEBUG": "true"}).log_level == "DEBUG"
