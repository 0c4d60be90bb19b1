from .base import PriceSource
from ..http_client import get_json

class CoinPaprika(PriceSource):
    name = "coinpaprika"
    BASE = "https://api.coinpaprika.com/v1"

    def __init__(self, coin_id: str = "bnb-binance-coin"):
        self.coin_id = coin_id

    async def fetch_price(self) -> float:
        data = await get_json(f"{self.BASE}/tickers/{self.coin_id}")
        usd = (data.get("quotes") or {}).get("USD") or {}
        return float(usd.get("price") or 0)
