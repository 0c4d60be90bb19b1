"""
Error taxonomy for the quote and execution pipeline.

Raised inside components and converted to QuoteFailure / ExecutionResult at
the component boundary, so callers always get a typed failure back.
"""


class FlashGenerationError(Exception):
    """Base class; `code` is the stable identifier reported to callers."""
    code = "flash_generation_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class BadInput(FlashGenerationError):
    code = "bad_input"


class ConfigMissing(FlashGenerationError):
    code = "config_missing"


class PriceUnavailable(FlashGenerationError):
    code = "price_unavailable"


class AggregatorError(FlashGenerationError):
    code = "aggregator_error"


class RpcUnavailable(FlashGenerationError):
    code = "rpc_unavailable"


class QuoteExpired(FlashGenerationError):
    code = "quote_expired"


class InsufficientBalance(FlashGenerationError):
    code = "insufficient_balance"


class SwapReverted(FlashGenerationError):
    code = "swap_reverted"


class SwapBroadcastFailed(FlashGenerationError):
    code = "swap_broadcast_failed"


class FeeLegFailed(FlashGenerationError):
    code = "fee_leg_failed"


class AddressSuffixMismatch(FlashGenerationError):
    code = "address_suffix_mismatch"


class PaymentFailed(FlashGenerationError):
    code = "payment_failed"
