from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Persisted / relayed shapes: camelCase on the wire, snake_case in code."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class PriceQuote(BaseModel):
    price_usd: float
    source: str
    fetched_at: datetime = Field(default_factory=utcnow)


class TokenDetails(BaseModel):
    name: str
    symbol: str
    decimals: int = 18
    contract_address: str = ""
    price: float = 0.0
    id: str = ""

    @property
    def catalog_id(self) -> str:
        """Storefront id; manual tokens may have no contract."""
        return self.id or self.contract_address


class SwapTx(WireModel):
    """Aggregator transaction payload, relayed verbatim."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, coerce_numbers_to_str=True)

    from_: str = Field(alias="from")
    to: str
    data: str
    value: str = "0"
    gas: str = "0"
    gas_price: str = "0"


class AggregatorSwap(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    tx: SwapTx
    dst_amount: str = "0"
    to_token_amount: Optional[str] = None


class SwapQuote(WireModel):
    """Short-lived value object held by the caller between quote and execute."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    usd_amount_to_spend: float
    token_symbol: str
    recipient_address: str
    estimated_bnb_required: float
    estimated_usd_cost: float
    estimated_tokens_received: float
    treasury_flat_fee_usd: float
    dev_fee_usd: float
    treasury_token_fee_percent: float
    can_afford: bool
    user_native_balance: float
    user_wrapped_balance: float
    native_price_usd: float
    total_required_wei: int
    user_native_balance_wei: int
    created_at: datetime
    expires_at: datetime
    tx: SwapTx
    sell_amount: str
    buy_amount: str

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > self.expires_at


class QuoteFailure(BaseModel):
    error: str
    message: str


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class OrderType(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class Order(WireModel):
    user_id: str
    user_email: str = ""
    user_wallet_address: str
    token_id: str
    token_name: str
    token_symbol: str
    usd_amount_to_spend: float
    token_amount: float
    recipient_address: str
    bnb_amount: float
    bnb_price: float
    payment_hash: str
    dev_payment_hash: str = ""
    status: OrderStatus
    order_type: OrderType = Field(alias="type")
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    treasury_flat_fee_usd: float = 0.0
    dev_fee_usd: float = 0.0
    treasury_token_fee_percent: float = 0.0


class TransactionType(str, Enum):
    SEND = "send"
    RECEIVE = "receive"
    GENERATE = "generate"
    VENDOR_PAYMENT = "vendor_payment"


class TransactionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class TransactionRecord(WireModel):
    user_id: str
    tx_type: TransactionType = Field(alias="type")
    amount: float
    token: str
    hash: str
    status: TransactionStatus
    recipient: str
    timestamp: datetime = Field(default_factory=utcnow)


class LegStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    ABORTED = "aborted"


class LegOutcome(BaseModel):
    leg: str
    status: LegStatus
    amount: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None


class ExecutionState(str, Enum):
    PENDING = "pending"
    SWAP_SUBMITTED = "swap_submitted"
    SWAP_CONFIRMED = "swap_confirmed"
    FEES_SETTLING = "fees_settling"
    PERSISTED = "persisted"
    ABORTED = "aborted"


class ExecutionResult(BaseModel):
    success: bool
    message: str
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    state: ExecutionState = ExecutionState.PENDING
    legs: List[LegOutcome] = Field(default_factory=list)
    order_id: Optional[int] = None

    @property
    def fully_settled(self) -> bool:
        """Swap ok and no fee leg failed or aborted."""
        return self.success and all(
            leg.status in (LegStatus.SUCCESS, LegStatus.SKIPPED) for leg in self.legs
        )
