"""
Quote Builder - prices an automatic flash generation.

Converts the USD amount to native coin, asks the aggregator for a ready-made
swap transaction, adds the flat fees and decides affordability. The result is
an immutable SwapQuote valid for the configured window (30s by default).
"""

import asyncio
import math
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from loguru import logger

from .fee_policy import FeePolicy, usd_to_native_wei
from ..data.config import Settings
from ..data.models import OrderType, QuoteFailure, SwapQuote, TokenDetails, utcnow
from ..data.sources.oneinch import OneInch
from ..data.units import from_smallest_unit, parse_int
from ..errors import (
    BadInput,
    ConfigMissing,
    FlashGenerationError,
    PriceUnavailable,
    RpcUnavailable,
)


class QuoteBuilder:

    def __init__(self, settings: Settings, price_oracle, aggregator: OneInch, rpc,
                 fee_policy: FeePolicy = None, clock: Callable[[], datetime] = utcnow):
        self.settings = settings
        self.price_oracle = price_oracle
        self.aggregator = aggregator
        self.rpc = rpc
        self.fee_policy = fee_policy or FeePolicy(settings)
        self.clock = clock

    async def build_quote(self, user_id: str, user_wallet: str, token: TokenDetails,
                          usd_to_spend: float, recipient: Optional[str] = None) -> Union[SwapQuote, QuoteFailure]:
        """
        Never raises pipeline errors; failures come back as QuoteFailure.
        Tokens are delivered to `recipient` when given, else to the paying wallet.
        """
        try:
            quote = await self._build(user_wallet, token, usd_to_spend, recipient or user_wallet)
        except FlashGenerationError as e:
            logger.warning(f"Quote for user {user_id} ({usd_to_spend} USD of {token.symbol}) failed: {e.message}")
            return QuoteFailure(error=e.code, message=e.message)

        logger.info(
            f"Quote for user {user_id}: ${usd_to_spend} -> ~{quote.estimated_tokens_received} {token.symbol}, "
            f"needs {quote.estimated_bnb_required} {self.settings.native_symbol}, can_afford={quote.can_afford}"
        )
        return quote

    def _validate(self, user_wallet: str, token: TokenDetails, usd_to_spend: float):
        if (not user_wallet or usd_to_spend is None or not math.isfinite(usd_to_spend)
                or usd_to_spend <= 0 or not token.contract_address):
            raise BadInput("Bad input")
        if not self.settings.aggregator_api_key:
            raise ConfigMissing("1inch API key is not configured.")

    async def _wrapped_balance(self, user_wallet: str) -> int:
        # Display only; never blocks a quote
        try:
            return await self.rpc.get_token_balance(self.settings.wrapped_native_address, user_wallet)
        except Exception as e:
            logger.warning(f"Wrapped balance read failed for {user_wallet}: {e}")
            return 0

    async def _native_balance(self, user_wallet: str) -> int:
        try:
            return await self.rpc.get_balance(user_wallet)
        except Exception as e:
            raise RpcUnavailable(f"Couldn't read wallet balance: {e}")

    async def _build(self, user_wallet: str, token: TokenDetails, usd_to_spend: float,
                     recipient: str) -> SwapQuote:
        self._validate(user_wallet, token, usd_to_spend)
        decimals = self.settings.native_decimals

        native_price = await self.price_oracle.get_price()
        if not native_price or native_price <= 0:
            raise PriceUnavailable(f"Couldn't fetch {self.settings.native_symbol} price")

        sell_wei = usd_to_native_wei(usd_to_spend, native_price, decimals)
        swap = await self.aggregator.swap(
            buy_token=token.contract_address,
            sell_amount_wei=sell_wei,
            from_address=user_wallet,
            slippage_percent=self.settings.slippage_percent,
            receiver=recipient,
        )

        native_wei, wrapped_raw = await asyncio.gather(
            self._native_balance(user_wallet),
            self._wrapped_balance(user_wallet),
        )

        swap_cost_wei = parse_int(swap.tx.value) + parse_int(swap.tx.gas) * parse_int(swap.tx.gas_price)
        fees = self.fee_policy.flat_fees_usd(OrderType.AUTO)
        fees_wei = self.fee_policy.flat_fees_native_wei(fees, native_price)
        total_required_wei = swap_cost_wei + fees_wei

        now = self.clock()
        return SwapQuote(
            usd_amount_to_spend=usd_to_spend,
            token_symbol=token.symbol,
            recipient_address=recipient,
            estimated_bnb_required=float(from_smallest_unit(total_required_wei, decimals)),
            estimated_usd_cost=usd_to_spend + fees.total,
            estimated_tokens_received=float(from_smallest_unit(parse_int(swap.dst_amount), token.decimals)),
            treasury_flat_fee_usd=fees.treasury,
            dev_fee_usd=fees.operator,
            treasury_token_fee_percent=self.fee_policy.token_fee_percent,
            can_afford=native_wei >= total_required_wei,
            user_native_balance=float(from_smallest_unit(native_wei, decimals)),
            user_wrapped_balance=float(from_smallest_unit(wrapped_raw, decimals)),
            native_price_usd=native_price,
            total_required_wei=total_required_wei,
            user_native_balance_wei=native_wei,
            created_at=now,
            expires_at=now + timedelta(seconds=self.settings.quote_ttl_seconds),
            tx=swap.tx,
            sell_amount=swap.tx.value,
            buy_amount=swap.to_token_amount or swap.dst_amount,
        )
