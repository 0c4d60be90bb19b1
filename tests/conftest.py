"""
Shared fixtures: settings, a fake RPC and a recording transaction sender.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from flashgen.data.config import Settings
from flashgen.execution.transactions import TransactionFailed

TREASURY = "0x" + "1" * 36 + "7a7a"
OPERATOR = "0x" + "2" * 36 + "b0b0"
USER_WALLET = "0x" + "3" * 40
RECIPIENT = "0x" + "4" * 40
TOKEN_ADDRESS = "0x" + "5" * 40
ROUTER = "0x1111111254EEB25477B68fb85Ed929f73A960582"

NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    values = dict(
        aggregator_api_key="test-key",
        treasury_address=TREASURY,
        treasury_suffix="7a7a",
        dev_address="",
        dev_suffix="",
        auto_treasury_fee_usd=1.0,
        treasury_token_fee_percent=0.0,
        database_url="sqlite://",
    )
    values.update(overrides)
    return Settings(**values)


class RecordingSender:
    """Stands in for TransactionSender; records every transfer."""

    def __init__(self, rpc, signer, fail_swap=None, fail_token=False, fail_native_to=()):
        self.rpc = rpc
        self.signer = signer
        self.fail_swap = fail_swap
        self.fail_token = fail_token
        self.fail_native_to = set(fail_native_to)
        self.swaps = []
        self.native_transfers = []
        self.token_transfers = []

    async def send(self, tx, gas_buffer_percent=100):
        self.swaps.append((tx, gas_buffer_percent))
        if self.fail_swap == "revert":
            raise TransactionFailed("transaction reverted: 0xdead", tx_hash="0xdead", reverted=True)
        if self.fail_swap == "broadcast":
            raise TransactionFailed("broadcast failed: nonce too low")
        return "0xswap", {"status": 1}

    async def transfer_native(self, to, amount_wei):
        if to in self.fail_native_to:
            raise TransactionFailed("insufficient funds for gas")
        self.native_transfers.append((to, amount_wei))
        return f"0xnative{len(self.native_transfers)}"

    async def transfer_token(self, token, to, amount):
        if self.fail_token:
            raise TransactionFailed("transfer amount exceeds balance")
        self.token_transfers.append((token, to, amount))
        return f"0xtoken{len(self.token_transfers)}"


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def signer():
    mock = Mock()
    mock.address = USER_WALLET
    return mock


@pytest.fixture
def rpc():
    mock = Mock()
    mock.chain_id = 56
    mock.get_balance = AsyncMock(return_value=10 ** 18)
    mock.get_token_balance = AsyncMock(return_value=0)
    return mock
