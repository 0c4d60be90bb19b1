import time
from typing import Any, Callable, Dict, Tuple, Optional


class MemoryCache:
    """
    TTL cache keyed by string. Expired entries are kept so callers can still
    `peek` the last value; `get` only returns fresh ones.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.store: Dict[str, Tuple[float, Any]] = {}

    def set(self, key: str, value: Any, ttl: float = 30):
        self.store[key] = (self.clock() + ttl, value)

    def get(self, key: str) -> Optional[Any]:
        exp, val = self.store.get(key, (0, None))
        if exp and exp > self.clock():
            return val
        return None

    def peek(self, key: str) -> Optional[Any]:
        return self.store.get(key, (0, None))[1]

    def clear(self):
        self.store.clear()
