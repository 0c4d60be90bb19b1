"""
Execution - quoting, on-chain settlement and manual orders
"""

from .fee_policy import FeePolicy, FlatFees, PayoutTarget, proportional_token_fee, usd_to_native_wei
from .transactions import TransactionFailed, TransactionSender
from .confirmation_manager import ConfirmationManager
from .quote_builder import QuoteBuilder
from .engine import ExecutionEngine
from .manual_orders import ManualOrderService

__all__ = [
    "FeePolicy",
    "FlatFees",
    "PayoutTarget",
    "proportional_token_fee",
    "usd_to_native_wei",
    "TransactionFailed",
    "TransactionSender",
    "ConfirmationManager",
    "QuoteBuilder",
    "ExecutionEngine",
    "ManualOrderService",
]
