from loguru import logger
from pydantic import ValidationError

from ..http_client import get_json_lenient
from ..models import AggregatorSwap
from ...errors import AggregatorError, ConfigMissing


class OneInch:
    """1inch swap API: returns a ready-to-sign swap transaction."""
    name = "1inch"

    def __init__(self, api_key: str, base_url: str, native_token: str):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.native_token = native_token

    async def swap(self, buy_token: str, sell_amount_wei: int, from_address: str,
                   slippage_percent: float, sell_token: str = "", receiver: str = "") -> AggregatorSwap:
        """Quote and build a sell-native (by default) -> buy_token swap; tokens land at receiver or from."""
        if not self.api_key:
            raise ConfigMissing("1inch API key is not configured.")

        params = {
            "src": sell_token or self.native_token,
            "dst": buy_token,
            "amount": str(sell_amount_wei),
            "from": from_address,
            "origin": from_address,
            "slippage": slippage_percent,
            "includeGas": "true",
        }
        if receiver and receiver.lower() != from_address.lower():
            params["receiver"] = receiver
        logger.debug(f"1inch swap request: {params}")
        try:
            status, data = await get_json_lenient(
                f"{self.base_url}/swap",
                params=params,
                headers={"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"},
            )
        except Exception as e:
            logger.error(f"1inch API error: {e}")
            raise AggregatorError(f"1inch API error: {e}")

        if not isinstance(data, dict):
            raise AggregatorError(f"1inch API error: unexpected payload {str(data)[:120]}")

        error_status = data.get("statusCode")
        try:
            error_status = int(error_status or 200)
        except (TypeError, ValueError):
            raise AggregatorError(f"1inch API error: unexpected statusCode {error_status!r}")
        if error_status != 200:
            raise AggregatorError(data.get("description") or data.get("error") or "1inch swap failed")
        if status >= 400:
            raise AggregatorError(data.get("description") or data.get("error") or f"1inch swap failed ({status})")

        try:
            swap = AggregatorSwap(
                tx=data["tx"],
                dst_amount=str(data.get("dstAmount") or data.get("toTokenAmount") or "0"),
                to_token_amount=data.get("toTokenAmount"),
            )
        except (KeyError, TypeError, ValidationError) as e:
            raise AggregatorError(f"1inch returned a malformed swap payload: {e}")

        logger.debug(f"1inch swap: dstAmount={swap.dst_amount} value={swap.tx.value} gas={swap.tx.gas}")
        return swap
