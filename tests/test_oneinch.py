"""
1inch swap client: request shape and response parsing
"""

from unittest.mock import AsyncMock, patch

import pytest

from flashgen.data.sources.oneinch import OneInch
from flashgen.errors import AggregatorError, ConfigMissing

from conftest import RECIPIENT, ROUTER, TOKEN_ADDRESS, USER_WALLET

NATIVE = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"
SWAP_BODY = {
    "dstAmount": "250000000000000000000",
    "tx": {
        "from": USER_WALLET,
        "to": ROUTER,
        "data": "0x12aa3caf",
        "value": "166700000000000000",
        "gas": 200000,
        "gasPrice": "5000000000",
    },
}


def client(api_key="key"):
    return OneInch(api_key=api_key, base_url="https://api.1inch.dev/swap/v6.0/56/", native_token=NATIVE)


class TestOneInchSwap:

    @pytest.mark.asyncio
    async def test_request_parameters_and_auth(self):
        lenient = AsyncMock(return_value=(200, SWAP_BODY))
        with patch("flashgen.data.sources.oneinch.get_json_lenient", lenient):
            await client().swap(TOKEN_ADDRESS, 166700000000000000, USER_WALLET, 1.0)

        url = lenient.call_args.args[0]
        params = lenient.call_args.kwargs["params"]
        headers = lenient.call_args.kwargs["headers"]
        assert url == "https://api.1inch.dev/swap/v6.0/56/swap"
        assert params["src"] == NATIVE
        assert params["dst"] == TOKEN_ADDRESS
        assert params["amount"] == "166700000000000000"
        assert params["from"] == USER_WALLET
        assert params["slippage"] == 1.0
        assert headers["Authorization"] == "Bearer key"

    @pytest.mark.asyncio
    async def test_parses_transaction_payload(self):
        with patch("flashgen.data.sources.oneinch.get_json_lenient", AsyncMock(return_value=(200, SWAP_BODY))):
            swap = await client().swap(TOKEN_ADDRESS, 1, USER_WALLET, 1.0)

        assert swap.dst_amount == "250000000000000000000"
        assert swap.tx.to == ROUTER
        assert swap.tx.from_ == USER_WALLET
        assert swap.tx.gas == "200000"
        assert swap.tx.gas_price == "5000000000"

    @pytest.mark.asyncio
    async def test_legacy_to_token_amount(self):
        body = dict(SWAP_BODY)
        del body["dstAmount"]
        body["toTokenAmount"] = "42"
        with patch("flashgen.data.sources.oneinch.get_json_lenient", AsyncMock(return_value=(200, body))):
            swap = await client().swap(TOKEN_ADDRESS, 1, USER_WALLET, 1.0)
        assert swap.dst_amount == "42"
        assert swap.to_token_amount == "42"

    @pytest.mark.asyncio
    async def test_error_description_is_surfaced(self):
        body = {"statusCode": 400, "description": "insufficient liquidity"}
        with patch("flashgen.data.sources.oneinch.get_json_lenient", AsyncMock(return_value=(400, body))):
            with pytest.raises(AggregatorError, match="insufficient liquidity"):
                await client().swap(TOKEN_ADDRESS, 1, USER_WALLET, 1.0)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        lenient = AsyncMock(side_effect=ValueError("API response 502: <html>Bad gateway"))
        with patch("flashgen.data.sources.oneinch.get_json_lenient", lenient):
            with pytest.raises(AggregatorError, match="1inch API error"):
                await client().swap(TOKEN_ADDRESS, 1, USER_WALLET, 1.0)

    @pytest.mark.asyncio
    async def test_missing_tx_is_malformed(self):
        with patch("flashgen.data.sources.oneinch.get_json_lenient", AsyncMock(return_value=(200, {"dstAmount": "1"}))):
            with pytest.raises(AggregatorError, match="malformed"):
                await client().swap(TOKEN_ADDRESS, 1, USER_WALLET, 1.0)

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        with pytest.raises(ConfigMissing):
            await client(api_key="").swap(TOKEN_ADDRESS, 1, USER_WALLET, 1.0)

    @pytest.mark.asyncio
    async def test_receiver_sent_when_different_from_payer(self):
        lenient = AsyncMock(return_value=(200, SWAP_BODY))
        with patch("flashgen.data.sources.oneinch.get_json_lenient", lenient):
            await client().swap(TOKEN_ADDRESS, 1, USER_WALLET, 1.0, receiver=RECIPIENT)
        assert lenient.call_args.kwargs["params"]["receiver"] == RECIPIENT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payer,receiver", [
        (USER_WALLET, ""), (USER_WALLET, USER_WALLET), (ROUTER, ROUTER.lower()),
    ])
    async def test_receiver_omitted_when_payer_receives(self, payer, receiver):
        lenient = AsyncMock(return_value=(200, SWAP_BODY))
        with patch("flashgen.data.sources.oneinch.get_json_lenient", lenient):
            await client().swap(TOKEN_ADDRESS, 1, payer, 1.0, receiver=receiver)
        assert "receiver" not in lenient.call_args.kwargs["params"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", ["oops", "4xx", [400]])
    async def test_unparseable_status_code(self, status_code):
        body = dict(SWAP_BODY, statusCode=status_code)
        with patch("flashgen.data.sources.oneinch.get_json_lenient", AsyncMock(return_value=(200, body))):
            with pytest.raises(AggregatorError, match="unexpected statusCode"):
                await client().swap(TOKEN_ADDRESS, 1, USER_WALLET, 1.0)

    @pytest.mark.asyncio
    async def test_string_status_code_is_read(self):
        body = {"statusCode": "400", "description": "insufficient liquidity"}
        with patch("flashgen.data.sources.oneinch.get_json_lenient", AsyncMock(return_value=(400, body))):
            with pytest.raises(AggregatorError, match="insufficient liquidity"):
                await client().swap(TOKEN_ADDRESS, 1, USER_WALLET, 1.0)
