from abc import ABC, abstractmethod


class PriceSource(ABC):
    """A USD reference price for the native coin."""
    name: str

    @abstractmethod
    async def fetch_price(self) -> float:
        """Return the price; raise on transport errors or a malformed body."""
        ...
