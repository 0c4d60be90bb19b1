from typing import Dict, Any
from datetime import datetime

from loguru import logger


class ConfirmationManager:
    """
    Waits for transaction receipts and decides whether they settled.
    Timeouts are the only time bound applied to a broadcast transaction.
    """

    def __init__(self, rpc, timeout_seconds: float = 120):
        self.rpc = rpc
        self.timeout_seconds = timeout_seconds

    async def wait_for_confirmation(self, tx_hash: str) -> Dict[str, Any]:
        logger.info(f"Tracking TX {tx_hash}")
        start_time = datetime.now()
        receipt = await self.rpc.wait_for_receipt(tx_hash, timeout=self.timeout_seconds)
        duration = (datetime.now() - start_time).total_seconds()
        logger.info(f"TX {tx_hash} mined after {duration:.2f}s (status={receipt.get('status')})")
        return receipt

    @staticmethod
    def succeeded(receipt: Dict[str, Any]) -> bool:
        return bool(receipt) and receipt.get("status") == 1
