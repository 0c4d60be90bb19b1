from .base import PriceSource
from ..http_client import get_json

class Binance(PriceSource):
    name = "binance"
    BASE = "https://api.binance.com/api/v3"

    def __init__(self, symbol: str = "BNBUSDT"):
        self.symbol = symbol

    async def fetch_price(self) -> float:
        data = await get_json(f"{self.BASE}/ticker/price", params={"symbol": self.symbol})
        return float(data.get("price") or 0)
