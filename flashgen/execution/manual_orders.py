"""
Manual-Order Path - pay the treasury now, tokens are delivered by an admin later.
"""

import math
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from .engine import OPERATOR_FLAT_LEG, ExecutionAttempt, run_fee_leg
from .fee_policy import FeePolicy, usd_to_native_wei
from .transactions import TransactionFailed, TransactionSender
from ..data.config import Settings
from ..data.models import (
    ExecutionResult,
    ExecutionState,
    LegStatus,
    Order,
    OrderStatus,
    OrderType,
    TokenDetails,
    TransactionRecord,
    TransactionStatus,
    TransactionType,
    utcnow,
)
from ..data.onchain.signer import WalletSigner
from ..data.units import from_smallest_unit
from ..errors import (
    BadInput,
    ConfigMissing,
    FlashGenerationError,
    InsufficientBalance,
    PaymentFailed,
    PriceUnavailable,
    RpcUnavailable,
)
from ..storage.ledger import LedgerStore

TREASURY_PAYMENT_LEG = "treasury_payment"
MIN_RECIPIENT_LENGTH = 10


class ManualOrderService:

    def __init__(self, settings: Settings, rpc, price_oracle, ledger: Optional[LedgerStore] = None,
                 fee_policy: Optional[FeePolicy] = None, clock: Callable[[], datetime] = utcnow,
                 sender_factory: Callable[..., TransactionSender] = TransactionSender):
        self.settings = settings
        self.rpc = rpc
        self.price_oracle = price_oracle
        self.ledger = ledger
        self.fee_policy = fee_policy or FeePolicy(settings)
        self.clock = clock
        self.sender_factory = sender_factory

    async def submit_manual_order(self, user_id: str, user_wallet: str, signer: WalletSigner,
                                  usd_to_spend: float, recipient: str, token: TokenDetails,
                                  user_email: str = "") -> ExecutionResult:
        attempt = ExecutionAttempt()
        try:
            result = await self._submit(user_id, user_email, user_wallet, signer, usd_to_spend,
                                        recipient, token, attempt)
        except FlashGenerationError as e:
            attempt.advance(ExecutionState.ABORTED)
            logger.error(f"Manual order for user {user_id} aborted: {e.message}")
            return ExecutionResult(success=False, message=e.message, error=e.code,
                                   state=attempt.state, legs=attempt.legs)
        return result

    def _validate(self, user_wallet: str, signer, usd_to_spend: float, recipient: str):
        if (not user_wallet or signer is None or not usd_to_spend
                or not math.isfinite(usd_to_spend) or usd_to_spend <= 0):
            raise BadInput("Bad input")
        if not recipient or len(recipient) < MIN_RECIPIENT_LENGTH:
            raise BadInput("Recipient address is too short")

        treasury = self.fee_policy.treasury
        if not treasury.configured:
            raise ConfigMissing("Treasury wallet address is not configured or is the zero address.")
        self.fee_policy.check_payout(treasury)

    async def _submit(self, user_id, user_email, user_wallet, signer, usd_to_spend, recipient,
                      token: TokenDetails, attempt: ExecutionAttempt) -> ExecutionResult:
        self._validate(user_wallet, signer, usd_to_spend, recipient)
        decimals = self.settings.native_decimals

        native_price = await self.price_oracle.get_price()
        if not native_price or native_price <= 0:
            raise PriceUnavailable(f"Couldn't fetch {self.settings.native_symbol} price")

        fees = self.fee_policy.flat_fees_usd(OrderType.MANUAL)
        treasury_wei = usd_to_native_wei(usd_to_spend + fees.treasury, native_price, decimals)
        operator_wei = usd_to_native_wei(fees.operator, native_price, decimals)

        try:
            balance_wei = await self.rpc.get_balance(user_wallet)
        except Exception as e:
            raise RpcUnavailable(f"Couldn't read wallet balance: {e}")
        if balance_wei <= 0 or balance_wei < treasury_wei + operator_wei:
            raise InsufficientBalance("Insufficient balance")

        sender = self.sender_factory(self.rpc, signer)
        treasury = self.fee_policy.treasury
        attempt.advance(ExecutionState.SWAP_SUBMITTED)
        try:
            payment_hash = await sender.transfer_native(treasury.address, treasury_wei)
        except TransactionFailed as e:
            attempt.record(TREASURY_PAYMENT_LEG, LegStatus.FAILED, amount=treasury_wei, error=str(e))
            raise PaymentFailed(f"Payment to treasury failed for manual order: {e}")
        attempt.record(TREASURY_PAYMENT_LEG, LegStatus.SUCCESS, amount=treasury_wei, tx_hash=payment_hash)
        attempt.advance(ExecutionState.SWAP_CONFIRMED)

        attempt.advance(ExecutionState.FEES_SETTLING)
        await run_fee_leg(self.fee_policy, OPERATOR_FLAT_LEG, self.fee_policy.operator, lambda: operator_wei,
                          attempt, sender.transfer_native)
        operator_leg = attempt.legs[-1]
        dev_payment_hash = operator_leg.tx_hash if operator_leg.status == LegStatus.SUCCESS else ""

        order_id = self._persist(
            user_id, user_email, user_wallet, token, usd_to_spend, recipient, native_price,
            treasury_wei + operator_wei, payment_hash, dev_payment_hash, fees,
        )
        attempt.advance(ExecutionState.PERSISTED)
        return ExecutionResult(
            success=True,
            message="Manual order placed successfully! Your tokens will be sent shortly by an administrator.",
            tx_hash=payment_hash,
            state=attempt.state,
            legs=attempt.legs,
            order_id=order_id,
        )

    def _persist(self, user_id, user_email, user_wallet, token: TokenDetails, usd_to_spend, recipient,
                 native_price, total_wei, payment_hash, dev_payment_hash, fees) -> Optional[int]:
        if self.ledger is None:
            logger.warning("No ledger configured; manual order not persisted")
            return None

        now = self.clock()
        order_id = None
        try:
            order = Order(
                user_id=user_id,
                user_email=user_email,
                user_wallet_address=user_wallet,
                token_id=token.catalog_id,
                token_name=token.name,
                token_symbol=token.symbol,
                usd_amount_to_spend=usd_to_spend,
                # filled in by the admin on fulfilment
                token_amount=0,
                recipient_address=recipient,
                bnb_amount=float(from_smallest_unit(total_wei, self.settings.native_decimals)),
                bnb_price=native_price,
                payment_hash=payment_hash,
                dev_payment_hash=dev_payment_hash or "",
                status=OrderStatus.PENDING,
                order_type=OrderType.MANUAL,
                created_at=now,
                treasury_flat_fee_usd=fees.treasury,
                dev_fee_usd=fees.operator,
                treasury_token_fee_percent=self.fee_policy.token_fee_percent,
            )
            record = TransactionRecord(
                user_id=user_id,
                tx_type=TransactionType.VENDOR_PAYMENT,
                amount=usd_to_spend,
                token=token.symbol,
                hash=payment_hash,
                status=TransactionStatus.SUCCESS,
                recipient=recipient,
                timestamp=now,
            )
            order_id = self.ledger.record_order(order)
            self.ledger.record_transaction(record)
        except Exception as e:
            logger.error(f"Failed to persist manual order paid by {payment_hash}: {e}")
        return order_id
