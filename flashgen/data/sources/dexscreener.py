from .base import PriceSource
from ..http_client import get_json

# WBNB/BUSD on PancakeSwap
DEFAULT_PAIR = "0x58f876857a02d6762e0101bb5c46a8c1ed44dc16"

class DexScreener(PriceSource):
    name = "dexscreener"
    BASE = "https://api.dexscreener.com/latest/dex/pairs"

    def __init__(self, chain: str = "bsc", pair: str = DEFAULT_PAIR):
        self.chain = chain
        self.pair = pair

    async def fetch_price(self) -> float:
        data = await get_json(f"{self.BASE}/{self.chain}/{self.pair}")
        pair = data.get("pair") or {}
        if not pair.get("priceUsd"):
            raise ValueError("Invalid DexScreener response format")
        return float(pair["priceUsd"])
