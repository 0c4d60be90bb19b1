"""
Execution Engine - settles a previously issued SwapQuote on-chain.

Sequence, strictly in order:
  1. swap leg          fatal on broadcast failure or revert
  2. token fee leg     proportional fee on the tokens actually received
  3. flat fee legs     treasury then operator, native coin
  4. persistence       one Order + one TransactionRecord

Once the swap has confirmed, nothing below it can turn the result into a
failure: fee legs report LegOutcome values and persistence errors are logged.
A payout suffix mismatch aborts its own leg and every later fee leg.
"""

from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger

from .fee_policy import FeePolicy, PayoutTarget, proportional_token_fee, usd_to_native_wei
from .transactions import GAS_BUFFER_PERCENT, TransactionFailed, TransactionSender
from ..data.config import Settings
from ..data.models import (
    ExecutionResult,
    ExecutionState,
    LegOutcome,
    LegStatus,
    Order,
    OrderStatus,
    OrderType,
    SwapQuote,
    TokenDetails,
    TransactionRecord,
    TransactionStatus,
    TransactionType,
    utcnow,
)
from ..data.onchain.signer import WalletSigner
from ..data.units import from_smallest_unit, parse_int
from ..errors import (
    AddressSuffixMismatch,
    BadInput,
    FeeLegFailed,
    FlashGenerationError,
    InsufficientBalance,
    QuoteExpired,
    SwapBroadcastFailed,
    SwapReverted,
)
from ..storage.ledger import LedgerStore

TOKEN_FEE_LEG = "treasury_token_fee"
TREASURY_FLAT_LEG = "treasury_flat_fee"
OPERATOR_FLAT_LEG = "operator_flat_fee"


class ExecutionAttempt:
    """Mutable bookkeeping for one execute() call."""

    def __init__(self):
        self.state = ExecutionState.PENDING
        self.swap_hash = ""
        self.legs: List[LegOutcome] = []
        self.aborted_by: Optional[str] = None

    def advance(self, state: ExecutionState):
        logger.debug(f"execution state {self.state.value} -> {state.value}")
        self.state = state

    def record(self, leg: str, status: LegStatus, amount: Optional[int] = None,
               tx_hash: Optional[str] = None, error: Optional[str] = None):
        self.legs.append(LegOutcome(
            leg=leg, status=status,
            amount=str(amount) if amount is not None else None,
            tx_hash=tx_hash, error=error,
        ))


async def run_fee_leg(fee_policy: FeePolicy, name: str, target: PayoutTarget,
                      compute_amount: Callable[[], int], attempt: ExecutionAttempt, transfer):
    """
    One best-effort fee transfer. Amount and transfer errors are recorded, never raised.
    A suffix mismatch aborts this leg and flags the attempt so later legs abort too.
    """
    try:
        amount = compute_amount()
    except Exception as e:
        logger.error(f"{name}: fee amount could not be computed: {e}")
        attempt.record(name, LegStatus.FAILED, error=f"{FeeLegFailed.code}: {e}")
        return
    if amount <= 0:
        attempt.record(name, LegStatus.SKIPPED, amount=amount)
        return
    try:
        if not fee_policy.check_payout(target):
            logger.info(f"{name}: {target.label} address not configured, skipping")
            attempt.record(name, LegStatus.SKIPPED, amount=amount)
            return
    except AddressSuffixMismatch as e:
        logger.error(f"{name}: {e.message} Remaining fee legs aborted.")
        attempt.aborted_by = name
        attempt.record(name, LegStatus.ABORTED, amount=amount, error=e.code)
        return

    try:
        tx_hash = await transfer(target.address, amount)
    except Exception as e:
        logger.error(f"{name} transfer failed: {e}")
        attempt.record(name, LegStatus.FAILED, amount=amount, error=f"{FeeLegFailed.code}: {e}")
        return
    logger.info(f"{name}: sent {amount} to {target.address} ({tx_hash})")
    attempt.record(name, LegStatus.SUCCESS, amount=amount, tx_hash=tx_hash)


class ExecutionEngine:

    def __init__(self, settings: Settings, rpc, ledger: Optional[LedgerStore] = None,
                 fee_policy: Optional[FeePolicy] = None, clock: Callable[[], datetime] = utcnow,
                 sender_factory: Callable[..., TransactionSender] = TransactionSender):
        self.settings = settings
        self.rpc = rpc
        self.ledger = ledger
        self.fee_policy = fee_policy or FeePolicy(settings)
        self.clock = clock
        self.sender_factory = sender_factory

    async def execute(self, user_id: str, user_email: str, user_wallet: str, signer: WalletSigner,
                      token: TokenDetails, quote: SwapQuote, recipient: str) -> ExecutionResult:
        attempt = ExecutionAttempt()
        try:
            self._check_preconditions(user_wallet, signer, quote, recipient)
            sender = self.sender_factory(self.rpc, signer)
            pre_balance = await self._read_token_balance(token, recipient)
            await self._swap(sender, quote, attempt)
        except FlashGenerationError as e:
            attempt.advance(ExecutionState.ABORTED)
            logger.error(f"Flash generation for user {user_id} aborted: {e.message}")
            return ExecutionResult(success=False, message=e.message, error=e.code,
                                   tx_hash=attempt.swap_hash or None, state=attempt.state)

        received = await self._realized_amount(token, quote, recipient, pre_balance)

        attempt.advance(ExecutionState.FEES_SETTLING)
        await self._settle_fees(sender, token, quote, received, attempt)

        order_id = self._persist(user_id, user_email, user_wallet, token, quote, recipient, received, attempt)
        attempt.advance(ExecutionState.PERSISTED)

        result = ExecutionResult(
            success=True,
            message="Flash token generated!",
            tx_hash=attempt.swap_hash,
            state=attempt.state,
            legs=attempt.legs,
            order_id=order_id,
        )
        if not result.fully_settled:
            logger.warning(f"Swap {attempt.swap_hash} settled but fees only partially collected: "
                           f"{[(leg.leg, leg.status.value) for leg in attempt.legs]}")
        return result

    def _check_preconditions(self, user_wallet: str, signer, quote: SwapQuote, recipient: str):
        if not user_wallet or signer is None or not recipient or quote is None:
            raise BadInput("Bad input")
        if recipient.lower() != quote.recipient_address.lower():
            # the swap calldata already fixes where tokens land
            raise BadInput(f"Recipient {recipient} does not match the quoted recipient {quote.recipient_address}")
        if quote.is_expired(self.clock()):
            raise QuoteExpired("Quote expired. Please refresh and try again.")
        if not quote.can_afford:
            raise InsufficientBalance("Insufficient balance")

    async def _swap(self, sender: TransactionSender, quote: SwapQuote, attempt: ExecutionAttempt):
        tx = {
            "to": quote.tx.to,
            "data": quote.tx.data,
            "value": parse_int(quote.tx.value),
            "gasPrice": parse_int(quote.tx.gas_price),
        }
        if quote.tx.from_.lower() != sender.signer.address.lower():
            logger.warning(f"Quote payload from={quote.tx.from_} differs from signer {sender.signer.address}")

        attempt.advance(ExecutionState.SWAP_SUBMITTED)
        try:
            # live estimate, the quote's gas figure is only used for affordability
            swap_hash, _ = await sender.send(tx, gas_buffer_percent=GAS_BUFFER_PERCENT)
        except TransactionFailed as e:
            attempt.swap_hash = e.tx_hash
            if e.reverted:
                raise SwapReverted("Swap transaction reverted.")
            raise SwapBroadcastFailed(str(e) or "1inch swap failed.")

        attempt.swap_hash = swap_hash
        attempt.advance(ExecutionState.SWAP_CONFIRMED)
        logger.info(f"🎉 Swap confirmed: {swap_hash}")

    async def _read_token_balance(self, token: TokenDetails, holder: str) -> Optional[int]:
        try:
            return await self.rpc.get_token_balance(token.contract_address, holder)
        except Exception as e:
            logger.warning(f"Token balance read failed for {holder} on {token.contract_address}: {e}")
            return None

    async def _realized_amount(self, token: TokenDetails, quote: SwapQuote, recipient: str,
                               pre_balance: Optional[int]) -> int:
        """Tokens delivered by the swap; falls back to the aggregator estimate if unreadable or zero."""
        post_balance = await self._read_token_balance(token, recipient)
        if post_balance is None:
            realized = 0
        elif pre_balance is None:
            realized = post_balance
        else:
            realized = post_balance - pre_balance
        if realized > 0:
            return realized
        estimate = parse_int(quote.buy_amount)
        logger.warning(f"No balance increase observed at {recipient}; using aggregator estimate {estimate}")
        return estimate

    async def _settle_fees(self, sender: TransactionSender, token: TokenDetails, quote: SwapQuote,
                           received: int, attempt: ExecutionAttempt):
        legs = [
            (TOKEN_FEE_LEG, self.fee_policy.treasury, self._token_fee_leg),
            (TREASURY_FLAT_LEG, self.fee_policy.treasury, self._treasury_flat_leg),
            (OPERATOR_FLAT_LEG, self.fee_policy.operator, self._operator_flat_leg),
        ]
        for name, target, leg in legs:
            if attempt.aborted_by:
                attempt.record(name, LegStatus.ABORTED, error=f"aborted after {attempt.aborted_by}")
                continue
            await leg(name, target, sender, token, quote, received, attempt)

    async def _run_leg(self, name: str, target: PayoutTarget, compute_amount: Callable[[], int],
                       attempt: ExecutionAttempt, transfer):
        await run_fee_leg(self.fee_policy, name, target, compute_amount, attempt, transfer)

    async def _token_fee_leg(self, name, target, sender, token, quote, received, attempt):
        await self._run_leg(name, target,
                            lambda: proportional_token_fee(received, quote.treasury_token_fee_percent), attempt,
                            lambda to, amount: sender.transfer_token(token.contract_address, to, amount))

    async def _treasury_flat_leg(self, name, target, sender, token, quote, received, attempt):
        await self._run_leg(name, target, lambda: self._native_fee(quote.treasury_flat_fee_usd, quote),
                            attempt, sender.transfer_native)

    async def _operator_flat_leg(self, name, target, sender, token, quote, received, attempt):
        await self._run_leg(name, target, lambda: self._native_fee(quote.dev_fee_usd, quote),
                            attempt, sender.transfer_native)

    def _native_fee(self, usd: float, quote: SwapQuote) -> int:
        return usd_to_native_wei(usd, quote.native_price_usd, self.settings.native_decimals)

    def _persist(self, user_id: str, user_email: str, user_wallet: str, token: TokenDetails,
                 quote: SwapQuote, recipient: str, received: int, attempt: ExecutionAttempt) -> Optional[int]:
        if self.ledger is None:
            logger.warning("No ledger configured; order not persisted")
            return None

        now = self.clock()
        order_id = None
        try:
            token_amount = float(from_smallest_unit(received, token.decimals))
            order = Order(
                user_id=user_id,
                user_email=user_email,
                user_wallet_address=user_wallet,
                token_id=token.catalog_id,
                token_name=token.name,
                token_symbol=token.symbol,
                usd_amount_to_spend=quote.usd_amount_to_spend,
                token_amount=token_amount,
                recipient_address=recipient,
                bnb_amount=float(from_smallest_unit(parse_int(quote.sell_amount), self.settings.native_decimals)),
                bnb_price=quote.native_price_usd,
                payment_hash=attempt.swap_hash,
                status=OrderStatus.COMPLETED,
                order_type=OrderType.AUTO,
                created_at=now,
                completed_at=now,
                treasury_flat_fee_usd=quote.treasury_flat_fee_usd,
                dev_fee_usd=quote.dev_fee_usd,
                treasury_token_fee_percent=quote.treasury_token_fee_percent,
            )
            order_id = self.ledger.record_order(order)
        except Exception as e:
            logger.error(f"Failed to persist order for swap {attempt.swap_hash}: {e}")
        try:
            record = TransactionRecord(
                user_id=user_id,
                tx_type=TransactionType.GENERATE,
                amount=float(from_smallest_unit(received, token.decimals)),
                token=token.symbol,
                hash=attempt.swap_hash,
                status=TransactionStatus.SUCCESS,
                recipient=recipient,
                timestamp=now,
            )
            self.ledger.record_transaction(record)
        except Exception as e:
            logger.error(f"Failed to persist transaction for swap {attempt.swap_hash}: {e}")
        return order_id
