import time
from typing import Callable, List, Optional
from loguru import logger

from ..cache import MemoryCache
from ..models import PriceQuote
from ..sources.base import PriceSource

CACHE_KEY = "native_usd"


class PriceOracle:
    """Native-coin USD price from an ordered list of sources."""

    def __init__(self, sources: List[PriceSource]):
        self.sources = sources

    async def fetch_quote(self) -> Optional[PriceQuote]:
        last_error: Optional[Exception] = None
        for source in self.sources:
            try:
                logger.debug(f"Attempting to fetch native price from {source.name}...")
                price = await source.fetch_price()
                if price > 0:
                    logger.info(f"Fetched native price from {source.name}: ${price}")
                    return PriceQuote(price_usd=price, source=source.name)
                raise ValueError(f"{source.name} returned invalid price: {price}")
            except Exception as e:
                logger.warning(f"{source.name} price fetch failed: {e}")
                last_error = e
        logger.error(f"All native price sources failed. Last error: {last_error}")
        return None

    async def fetch_price(self) -> float:
        """First positive price, or 0.0 when every source failed."""
        quote = await self.fetch_quote()
        return quote.price_usd if quote else 0.0

    get_price = fetch_price


class CachedPriceOracle:
    """
    Short-TTL cache over PriceOracle. A failed refresh keeps serving the last
    good price; 0.0 only comes back if no good price was ever cached.
    Concurrent refreshes are allowed, last writer wins.
    """

    def __init__(self, oracle: PriceOracle, ttl_seconds: float = 60,
                 clock: Callable[[], float] = time.monotonic):
        self.oracle = oracle
        self.ttl = ttl_seconds
        self.cache = MemoryCache(clock=clock)

    def _cached(self, fresh_only: bool) -> Optional[PriceQuote]:
        return self.cache.get(CACHE_KEY) if fresh_only else self.cache.peek(CACHE_KEY)

    async def get_quote(self) -> Optional[PriceQuote]:
        fresh = self._cached(fresh_only=True)
        if fresh is not None:
            return fresh

        quote = await self.oracle.fetch_quote()
        if quote is not None:
            self.cache.set(CACHE_KEY, quote, ttl=self.ttl)
            return quote

        stale = self._cached(fresh_only=False)
        if stale is not None:
            logger.warning(f"Price refresh failed; serving last good price ${stale.price_usd} from {stale.source}")
        return stale

    async def get_price(self) -> float:
        quote = await self.get_quote()
        return quote.price_usd if quote else 0.0
