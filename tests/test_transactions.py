"""
TransactionSender: preparation, broadcast and receipt handling
"""

from unittest.mock import AsyncMock, Mock

import pytest

from flashgen.execution.confirmation_manager import ConfirmationManager
from flashgen.execution.fee_policy import ZERO_ADDRESS
from flashgen.execution.transactions import GAS_BUFFER_PERCENT, TransactionFailed, TransactionSender

from conftest import ROUTER, TREASURY, USER_WALLET


class TestTransactionSender:

    @pytest.fixture
    def rpc(self, rpc):
        rpc.get_gas_price = AsyncMock(return_value=3_000_000_000)
        rpc.estimate_gas = AsyncMock(return_value=100_000)
        rpc.get_nonce = AsyncMock(return_value=9)
        rpc.send_raw_transaction = AsyncMock(return_value="0xabc")
        rpc.wait_for_receipt = AsyncMock(return_value={"status": 1})
        rpc.encode_transfer = Mock(return_value="0xa9059cbb")
        return rpc

    @pytest.fixture
    def signer(self, signer):
        signer.sign_transaction = Mock(return_value=b"\x02signed")
        return signer

    @pytest.mark.asyncio
    async def test_prepare_fills_gas_nonce_and_chain(self, rpc, signer):
        sender = TransactionSender(rpc, signer)

        tx = await sender.prepare({"to": ROUTER.lower(), "data": "0x12"}, gas_buffer_percent=GAS_BUFFER_PERCENT)

        assert tx["from"] == USER_WALLET
        assert tx["to"] == ROUTER
        assert tx["gas"] == 120_000
        assert tx["gasPrice"] == 3_000_000_000
        assert tx["nonce"] == 9
        assert tx["chainId"] == 56
        assert tx["value"] == 0

    @pytest.mark.asyncio
    async def test_quoted_gas_price_is_kept(self, rpc, signer):
        tx = await TransactionSender(rpc, signer).prepare({"to": ROUTER, "gasPrice": 5_000_000_000})
        assert tx["gasPrice"] == 5_000_000_000
        rpc.get_gas_price.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_returns_hash_and_receipt(self, rpc, signer):
        tx_hash, receipt = await TransactionSender(rpc, signer).send({"to": ROUTER, "value": 1})
        assert tx_hash == "0xabc"
        assert receipt["status"] == 1
        rpc.send_raw_transaction.assert_awaited_once_with(b"\x02signed")

    @pytest.mark.asyncio
    async def test_reverted_receipt(self, rpc, signer):
        rpc.wait_for_receipt = AsyncMock(return_value={"status": 0})
        with pytest.raises(TransactionFailed) as exc:
            await TransactionSender(rpc, signer).send({"to": ROUTER})
        assert exc.value.reverted is True
        assert exc.value.tx_hash == "0xabc"

    @pytest.mark.asyncio
    async def test_broadcast_error(self, rpc, signer):
        rpc.send_raw_transaction = AsyncMock(side_effect=ValueError("nonce too low"))
        with pytest.raises(TransactionFailed) as exc:
            await TransactionSender(rpc, signer).send({"to": ROUTER})
        assert exc.value.reverted is False
        assert exc.value.tx_hash == ""

    @pytest.mark.asyncio
    async def test_refuses_zero_address(self, rpc, signer):
        sender = TransactionSender(rpc, signer)
        with pytest.raises(TransactionFailed):
            await sender.transfer_native(ZERO_ADDRESS, 1)
        with pytest.raises(TransactionFailed):
            await sender.transfer_token(ROUTER, "", 1)
        rpc.send_raw_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_token_transfer_calls_token_contract(self, rpc, signer):
        await TransactionSender(rpc, signer).transfer_token(ROUTER, TREASURY, 500)
        rpc.encode_transfer.assert_called_once_with(ROUTER, TREASURY, 500)
        sent = signer.sign_transaction.call_args.args[0]
        assert sent["to"] == ROUTER
        assert sent["data"] == "0xa9059cbb"


class TestConfirmationManager:

    def test_succeeded(self):
        assert ConfirmationManager.succeeded({"status": 1})
        assert not ConfirmationManager.succeeded({"status": 0})
        assert not ConfirmationManager.succeeded({})
