import json
import aiohttp
from typing import Optional, Dict, Any, Tuple
from contextlib import asynccontextmanager

DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=15)


@asynccontextmanager
async def http_session():
    async with aiohttp.ClientSession(timeout=DEFAULT_TIMEOUT) as s:
        yield s


async def get_json(url: str, params: Optional[Dict[str, Any]]=None, headers: Optional[Dict[str,str]]=None):
    async with http_session() as s:
        async with s.get(url, params=params, headers=headers) as r:
            r.raise_for_status()
            return await r.json(content_type=None)


async def get_json_lenient(url: str, params: Optional[Dict[str, Any]]=None,
                           headers: Optional[Dict[str,str]]=None) -> Tuple[int, Any]:
    """
    GET returning (status, parsed body) without raising on HTTP status.
    Non-JSON bodies raise ValueError with a readable excerpt.
    """
    async with http_session() as s:
        async with s.get(url, params=params, headers=headers) as r:
            raw = await r.text()
            try:
                return r.status, json.loads(raw)
            except json.JSONDecodeError:
                raise ValueError(f"API response {r.status}: {raw[:120]}…")
