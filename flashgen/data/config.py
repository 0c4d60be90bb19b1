import os
import json
from typing import Dict, Any, List, Mapping, Optional
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ..errors import ConfigMissing

DEFAULT_RPC_URLS = [
    "https://bsc-dataseed.binance.org/",
    "https://bsc-dataseed1.defibit.io/",
    "https://bsc-dataseed1.ninicoin.io/",
]


class Settings(BaseModel):
    """
    Process-wide configuration.
    Built once at startup and handed to every component constructor.
    """
    model_config = ConfigDict(frozen=True)

    chain_id: int = 56
    native_symbol: str = "BNB"
    native_decimals: int = 18
    native_token_sentinel: str = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
    wrapped_native_address: str = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
    rpc_urls: List[str] = Field(default_factory=lambda: list(DEFAULT_RPC_URLS))

    aggregator_api_key: str = ""
    aggregator_base_url: str = "https://api.1inch.dev/swap/v6.0/56"
    slippage_percent: float = 1.0
    quote_ttl_seconds: int = 30
    price_cache_ttl_seconds: int = 60

    treasury_address: str = ""
    treasury_suffix: str = ""
    dev_address: str = ""
    dev_suffix: str = ""

    # Manual orders
    treasury_flat_fee_usd: float = 0.0
    dev_fee_usd: float = 0.0
    # Automatic generation
    auto_treasury_fee_usd: float = 1.0
    dev_auto_fee_usd: float = 0.0
    treasury_token_fee_percent: float = 0.0

    database_url: str = "sqlite:///flashgen.db"
    log_level: str = "INFO"


# env var -> (settings field, parser)
ENV_FIELDS = {
    "ONE_INCH_API_KEY": ("aggregator_api_key", str),
    "ONE_INCH_BASE_URL": ("aggregator_base_url", str),
    "TREASURY_WALLET": ("treasury_address", str),
    "TREASURY_WALLET_LAST_DIGITS": ("treasury_suffix", str),
    "DEV_WALLET": ("dev_address", str),
    "DEV_WALLET_LAST_DIGITS": ("dev_suffix", str),
    "TREASURY_FLAT_FEE_USD": ("treasury_flat_fee_usd", float),
    "DEV_FEE_USD": ("dev_fee_usd", float),
    "AUTO_TREASURY_FEE_USD": ("auto_treasury_fee_usd", float),
    "DEV_AUTO_FEE_USD": ("dev_auto_fee_usd", float),
    "TREASURY_TOKEN_FEE_PERCENT": ("treasury_token_fee_percent", float),
    "SLIPPAGE_PERCENT": ("slippage_percent", float),
    "QUOTE_TTL_SECONDS": ("quote_ttl_seconds", int),
    "PRICE_CACHE_TTL_SECONDS": ("price_cache_ttl_seconds", int),
    "DATABASE_URL": ("database_url", str),
    "LOG_LEVEL": ("log_level", str),
}


def _load_file(config_path: Path) -> Dict[str, Any]:
    """Load the optional JSON config file; problems fall back to defaults."""
    try:
        if config_path.exists():
            with open(config_path, "r") as f:
                data = json.load(f)
            logger.info(f"Loaded config from {config_path}")
            return data.get("flashgen", data)
        logger.warning(f"Config file not found at {config_path}. Using defaults.")
    except (json.JSONDecodeError, ValueError, OSError) as e:
        logger.error(f"Error loading config: {e}")
    return {}


def _load_env(env: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for var, (field, parse) in ENV_FIELDS.items():
        raw = (env.get(var) or "").strip()
        if not raw:
            continue
        try:
            values[field] = parse(raw)
        except ValueError:
            raise ConfigMissing(f"{var} is not a valid {parse.__name__}: {raw!r}")

    if (env.get("DEBUG") or "false").lower() == "true":
        values["log_level"] = "DEBUG"
    return values


def load_settings(config_path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build the Settings object: defaults, then the JSON file, then env vars.
    When env is not given the process environment (plus .env) is used.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    path = Path(config_path) if config_path else Path("config") / "config.json"
    values = _load_file(path)
    values.update(_load_env(env))

    rpc_urls = list(values.get("rpc_urls") or DEFAULT_RPC_URLS)
    primary = (env.get("BSC_RPC_URL") or "").strip()
    if primary:
        rpc_urls = [primary] + [u for u in rpc_urls if u != primary]
    values["rpc_urls"] = rpc_urls

    return Settings(**values)
