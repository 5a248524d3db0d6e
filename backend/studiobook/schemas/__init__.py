from .booking import (
    AddonSelection,
    BookingAddonItem,
    BookingAggregate,
    BookingCreateRequest,
    BookingDetails,
    CustomerInfo,
    FinanceInfo,
    PaymentCreate,
    PaymentItem,
    RescheduleEntry,
)
from .coupon import CouponInfo, CouponValidationResult
from .pricing import PriceQuote

__all__ = [
    "AddonSelection",
    "BookingAddonItem",
    "BookingAggregate",
    "BookingCreateRequest",
    "BookingDetails",
    "CouponInfo",
    "CouponValidationResult",
    "CustomerInfo",
    "FinanceInfo",
    "PaymentCreate",
    "PaymentItem",
    "PriceQuote",
    "RescheduleEntry",
]
