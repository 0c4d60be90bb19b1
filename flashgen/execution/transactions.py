from typing import Any, Dict, Optional, Tuple

from loguru import logger

from .confirmation_manager import ConfirmationManager
from .fee_policy import is_zero_address
from ..data.onchain.signer import WalletSigner
from ..data.onchain.web3_client import checksum

GAS_BUFFER_PERCENT = 120


class TransactionFailed(Exception):
    """Broadcast failed or the receipt reported a revert."""

    def __init__(self, message: str, tx_hash: str = "", reverted: bool = False):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.reverted = reverted


class TransactionSender:
    """
    Sign, broadcast and confirm transactions for one signer.
    Sends are awaited one at a time so nonces stay ordered.
    """

    def __init__(self, rpc, signer: WalletSigner, confirmations: Optional[ConfirmationManager] = None):
        self.rpc = rpc
        self.signer = signer
        self.confirmations = confirmations or ConfirmationManager(rpc)

    async def prepare(self, tx: Dict[str, Any], gas_buffer_percent: int = 100) -> Dict[str, Any]:
        prepared = dict(tx)
        prepared["from"] = self.signer.address
        prepared["to"] = checksum(prepared["to"])
        prepared.setdefault("value", 0)
        prepared["chainId"] = self.rpc.chain_id
        if not prepared.get("gasPrice"):
            prepared["gasPrice"] = await self.rpc.get_gas_price()

        estimate_input = {k: v for k, v in prepared.items() if k != "chainId"}
        estimated = await self.rpc.estimate_gas(estimate_input)
        prepared["gas"] = (estimated * gas_buffer_percent) // 100
        prepared["nonce"] = await self.rpc.get_nonce(self.signer.address)
        return prepared

    async def send(self, tx: Dict[str, Any], gas_buffer_percent: int = 100) -> Tuple[str, Dict[str, Any]]:
        """Returns (tx_hash, receipt); raises TransactionFailed."""
        try:
            prepared = await self.prepare(tx, gas_buffer_percent)
            raw = self.signer.sign_transaction(prepared)
            tx_hash = await self.rpc.send_raw_transaction(raw)
        except Exception as e:
            raise TransactionFailed(f"broadcast failed: {e}") from e

        logger.info(f"📤 Transaction sent: {tx_hash}")
        try:
            receipt = await self.confirmations.wait_for_confirmation(tx_hash)
        except Exception as e:
            raise TransactionFailed(f"no receipt for {tx_hash}: {e}", tx_hash=tx_hash) from e

        if not self.confirmations.succeeded(receipt):
            raise TransactionFailed(f"transaction reverted: {tx_hash}", tx_hash=tx_hash, reverted=True)
        return tx_hash, receipt

    async def transfer_native(self, to: str, amount_wei: int) -> str:
        if not to or is_zero_address(to):
            raise TransactionFailed("Attempted to send native coin to the zero address.")
        tx_hash, _ = await self.send({"to": to, "value": amount_wei})
        return tx_hash

    async def transfer_token(self, token: str, to: str, amount: int) -> str:
        if not to or is_zero_address(to):
            raise TransactionFailed("Attempted to send tokens to the zero address.")
        data = self.rpc.encode_transfer(token, to, amount)
        tx_hash, _ = await self.send({"to": token, "data": data, "value": 0})
        return tx_hash
