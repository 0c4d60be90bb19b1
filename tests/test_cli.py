"""
CLI wiring: token resolution and signer lookup
"""

from unittest.mock import AsyncMock, Mock

import click
import pytest

from flashgen.cli.main import FlashGenApp, resolve_token
from flashgen.data.onchain.signer import WalletSigner, env_signer_provider

from conftest import TOKEN_ADDRESS

# well-known local development key
DEV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class TestResolveToken:

    @pytest.mark.asyncio
    async def test_decimals_read_from_contract_when_omitted(self):
        rpc = Mock()
        rpc.get_token_decimals = AsyncMock(return_value=6)

        token = await resolve_token(rpc, TOKEN_ADDRESS, "USDX", "USD X")

        rpc.get_token_decimals.assert_awaited_once_with(TOKEN_ADDRESS)
        assert token.decimals == 6
        assert token.contract_address == TOKEN_ADDRESS
        assert token.symbol == "USDX"
        assert token.name == "USD X"

    @pytest.mark.asyncio
    async def test_explicit_decimals_skip_the_contract(self):
        rpc = Mock()
        rpc.get_token_decimals = AsyncMock(return_value=6)

        token = await resolve_token(rpc, TOKEN_ADDRESS, "USDX", "USD X", decimals=9)

        rpc.get_token_decimals.assert_not_called()
        assert token.decimals == 9

    @pytest.mark.asyncio
    async def test_contract_read_failure_propagates(self):
        rpc = Mock()
        rpc.get_token_decimals = AsyncMock(side_effect=ConnectionError("all endpoints down"))

        with pytest.raises(ConnectionError):
            await resolve_token(rpc, TOKEN_ADDRESS, "USDX", "USD X")


class TestSignerProvider:

    def test_env_provider_serves_one_wallet(self):
        provider = env_signer_provider(DEV_KEY)

        first, second = provider("alice"), provider("bob")

        assert isinstance(first, WalletSigner)
        assert first is second
        assert first.address == DEV_ADDRESS

    def test_app_signer_uses_private_key(self, monkeypatch):
        monkeypatch.setenv("PRIVATE_KEY", DEV_KEY)
        app = FlashGenApp.__new__(FlashGenApp)

        assert app.signer("cli").address == DEV_ADDRESS

    def test_app_signer_requires_private_key(self, monkeypatch):
        monkeypatch.delenv("PRIVATE_KEY", raising=False)
        app = FlashGenApp.__new__(FlashGenApp)

        with pytest.raises(click.ClickException, match="PRIVATE_KEY"):
            app.signer("cli")
