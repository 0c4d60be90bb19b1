from .base import PriceSource
from ..http_client import get_json

class CoinGecko(PriceSource):
    name = "coingecko"
    BASE = "https://api.coingecko.com/api/v3"

    def __init__(self, coin_id: str = "binancecoin", vs: str = "usd"):
        self.coin_id = coin_id
        self.vs = vs

    async def fetch_price(self) -> float:
        data = await get_json(f"{self.BASE}/simple/price", params={"ids": self.coin_id, "vs_currencies": self.vs})
        price = (data.get(self.coin_id) or {}).get(self.vs)
        return float(price or 0)
