"""
Fee Policy - pure fee arithmetic and payout address checks.

Flat fees are USD amounts paid in native coin at the current price. The
proportional token fee is taken in-kind from the delivered tokens and is
computed in parts-per-hundred-thousand: percent 2.5 -> 2500 units, so
fee = received * 2500 / 100_000, rounded half up. No floats touch raw
on-chain quantities.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from ..data.config import Settings
from ..data.models import OrderType
from ..data.units import to_decimal, to_smallest_unit
from ..errors import AddressSuffixMismatch, PriceUnavailable

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
FEE_SCALE = 100_000
UNITS_PER_PERCENT = FEE_SCALE // 100


@dataclass(frozen=True)
class FlatFees:
    treasury: float
    operator: float

    @property
    def total(self) -> float:
        return self.treasury + self.operator


@dataclass(frozen=True)
class PayoutTarget:
    label: str
    address: str
    suffix: str

    @property
    def configured(self) -> bool:
        return bool(self.address) and not is_zero_address(self.address)


def is_zero_address(address: str) -> bool:
    return (address or "").lower() == ZERO_ADDRESS


def verify_address_suffix(address: str, expected_suffix: str) -> bool:
    if not address or not expected_suffix:
        return False
    return address.lower().endswith(expected_suffix.lower())


def percent_to_units(percent: Union[float, str, Decimal]) -> int:
    units = (to_decimal(percent) * UNITS_PER_PERCENT).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(units)


def proportional_token_fee(received: int, percent: Union[float, str, Decimal]) -> int:
    """Fee in smallest units for `percent` of `received` (smallest units)."""
    units = percent_to_units(percent)
    if received <= 0 or units <= 0:
        return 0
    return (received * units + FEE_SCALE // 2) // FEE_SCALE


def usd_to_native_wei(usd: float, native_price_usd: float, decimals: int = 18) -> int:
    if native_price_usd <= 0:
        raise PriceUnavailable("Couldn't fetch native coin price")
    if usd <= 0:
        return 0
    return to_smallest_unit(to_decimal(usd) / to_decimal(native_price_usd), decimals)


class FeePolicy:
    """Reads the fee schedule from Settings at call time."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def treasury(self) -> PayoutTarget:
        return PayoutTarget("treasury", self.settings.treasury_address, self.settings.treasury_suffix)

    @property
    def operator(self) -> PayoutTarget:
        return PayoutTarget("operator", self.settings.dev_address, self.settings.dev_suffix)

    @property
    def token_fee_percent(self) -> float:
        return self.settings.treasury_token_fee_percent

    def flat_fees_usd(self, order_type: OrderType = OrderType.AUTO) -> FlatFees:
        if order_type == OrderType.AUTO:
            treasury, operator = self.settings.auto_treasury_fee_usd, self.settings.dev_auto_fee_usd
        else:
            treasury, operator = self.settings.treasury_flat_fee_usd, self.settings.dev_fee_usd
        if not self.settings.dev_address:
            operator = 0.0
        return FlatFees(treasury=max(treasury, 0.0), operator=max(operator, 0.0))

    def flat_fees_native_wei(self, fees: FlatFees, native_price_usd: float) -> int:
        return usd_to_native_wei(fees.total, native_price_usd, self.settings.native_decimals)

    @staticmethod
    def check_payout(target: PayoutTarget) -> bool:
        """
        False when the leg must be skipped (address unset or zero).
        Raises AddressSuffixMismatch when the address fails the suffix check.
        """
        if not target.configured:
            return False
        if not verify_address_suffix(target.address, target.suffix):
            raise AddressSuffixMismatch(f"{target.label.capitalize()} wallet address suffix mismatch.")
        return True
