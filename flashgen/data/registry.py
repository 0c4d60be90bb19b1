from typing import List

from .config import Settings
from .sources.base import PriceSource
from .sources.coingecko import CoinGecko
from .sources.binance import Binance
from .sources.dexscreener import DexScreener
from .sources.coinpaprika import CoinPaprika
from .sources.oneinch import OneInch


def default_price_sources() -> List[PriceSource]:
    # Order matters: first positive price wins.
    return [CoinGecko(), Binance(), DexScreener(), CoinPaprika()]


class DataRegistry:
    def __init__(self, settings: Settings):
        self.price_sources = default_price_sources()
        self.oneinch = OneInch(
            api_key=settings.aggregator_api_key,
            base_url=settings.aggregator_base_url,
            native_token=settings.native_token_sentinel,
        )
