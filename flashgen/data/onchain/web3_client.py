import re
from typing import Any, Dict, Optional, Sequence

from loguru import logger
from web3 import AsyncWeb3, Web3
from web3.middleware import ExtraDataToPOAMiddleware

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function"
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"}
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function"
    },
]

_FAILOVER_PATTERN = re.compile(r"rate limit|too many requests|429|bad[ _]data|could not decode", re.I)


def is_failover_error(error: Exception) -> bool:
    """Errors worth retrying on another endpoint (throttling, garbled responses)."""
    return bool(_FAILOVER_PATTERN.search(f"{type(error).__name__} {error}"))


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


class RpcClient:
    """
    Async JSON-RPC access bound to one endpoint of an ordered list.
    `rotate()` hands back a client on the next endpoint; this one is untouched.
    """

    def __init__(self, endpoints: Sequence[str], chain_id: int = 56, index: int = 0, timeout: int = 15):
        if not endpoints:
            raise RuntimeError("No RPC endpoints configured")
        self.endpoints = tuple(endpoints)
        self.chain_id = chain_id
        self.index = index % len(self.endpoints)
        self.timeout = timeout
        self._w3: Optional[AsyncWeb3] = None

    @property
    def endpoint(self) -> str:
        return self.endpoints[self.index]

    @property
    def w3(self) -> AsyncWeb3:
        if self._w3 is None:
            w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(self.endpoint, request_kwargs={"timeout": self.timeout}))
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._w3 = w3
        return self._w3

    def rotate(self) -> "RpcClient":
        nxt = RpcClient(self.endpoints, self.chain_id, self.index + 1, self.timeout)
        logger.warning(f"[web3] switching RPC {self.endpoint} -> {nxt.endpoint}")
        return nxt

    def _token(self, token: str):
        return self.w3.eth.contract(address=checksum(token), abi=ERC20_ABI)

    async def get_balance(self, address: str) -> int:
        return await self.w3.eth.get_balance(checksum(address))

    async def get_token_balance(self, token: str, address: str) -> int:
        return await self._token(token).functions.balanceOf(checksum(address)).call()

    async def get_token_decimals(self, token: str) -> int:
        return await self._token(token).functions.decimals().call()

    async def get_gas_price(self) -> int:
        return await self.w3.eth.gas_price

    async def get_nonce(self, address: str) -> int:
        return await self.w3.eth.get_transaction_count(checksum(address), "pending")

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return await self.w3.eth.estimate_gas(tx)

    def encode_transfer(self, token: str, to: str, amount: int) -> str:
        return self._token(token).encode_abi("transfer", args=[checksum(to), amount])

    async def send_raw_transaction(self, raw: bytes) -> str:
        tx_hash = await self.w3.eth.send_raw_transaction(raw)
        return Web3.to_hex(tx_hash)

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 120) -> Dict[str, Any]:
        receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        return dict(receipt)


class FailoverRpc:
    """
    The RPC capability consumed by the pipeline. Reads are retried once on the
    next endpoint when the first endpoint throttles or returns bad data.
    Broadcasts are never retried.
    """

    def __init__(self, client: RpcClient):
        self.client = client

    @classmethod
    def from_urls(cls, urls: Sequence[str], chain_id: int = 56) -> "FailoverRpc":
        return cls(RpcClient(urls, chain_id))

    @property
    def chain_id(self) -> int:
        return self.client.chain_id

    async def _read(self, op: str, *args, **kwargs):
        try:
            return await getattr(self.client, op)(*args, **kwargs)
        except Exception as e:
            if not is_failover_error(e) or len(self.client.endpoints) < 2:
                raise
            logger.warning(f"[web3] {op} failed on {self.client.endpoint}: {e}; retrying")
            self.client = self.client.rotate()
            return await getattr(self.client, op)(*args, **kwargs)

    async def get_balance(self, address: str) -> int:
        return await self._read("get_balance", address)

    async def get_token_balance(self, token: str, address: str) -> int:
        return await self._read("get_token_balance", token, address)

    async def get_token_decimals(self, token: str) -> int:
        return await self._read("get_token_decimals", token)

    async def get_gas_price(self) -> int:
        return await self._read("get_gas_price")

    async def get_nonce(self, address: str) -> int:
        return await self._read("get_nonce", address)

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return await self._read("estimate_gas", tx)

    def encode_transfer(self, token: str, to: str, amount: int) -> str:
        return self.client.encode_transfer(token, to, amount)

    async def send_raw_transaction(self, raw: bytes) -> str:
        return await self.client.send_raw_transaction(raw)

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 120) -> Dict[str, Any]:
        return await self._read("wait_for_receipt", tx_hash, timeout=timeout)
