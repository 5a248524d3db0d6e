# backend/studiobook/schemas/booking.py
"""
Booking aggregate schemas.

``BookingAggregate`` is the plain data object the repository reads and
writes: the booking row plus the payments, add-on lines and reschedule
history it owns. Read models accept whatever defensive coercion produced
and do not re-validate legacy data; request models used by the service
layer are strict.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.enums import BookingStatus, StorageBackend


class CustomerInfo(BaseModel):
    name: str
    whatsapp: str
    category: str
    service_id: Optional[str] = None


class BookingDetails(BaseModel):
    # None only for legacy rows whose stored date cannot be parsed
    date: Optional[datetime] = None
    notes: Optional[str] = None
    location_link: Optional[str] = None


class PaymentItem(BaseModel):
    date: Optional[datetime] = None
    amount: int
    note: str = ""
    proof_filename: Optional[str] = None
    proof_url: Optional[str] = None
    storage_backend: StorageBackend = StorageBackend.LOCAL


class BookingAddonItem(BaseModel):
    addon_id: str
    addon_name: str = ""
    quantity: int = 1
    price_at_booking: int

    @property
    def line_total(self) -> int:
        return self.price_at_booking * self.quantity


class RescheduleEntry(BaseModel):
    id: Optional[int] = None
    old_date: Optional[datetime] = None
    new_date: Optional[datetime] = None
    rescheduled_at: Optional[datetime] = None
    reason: Optional[str] = None


class FinanceInfo(BaseModel):
    """
    Money for one booking, in whole currency units.

    ``total_price`` is fixed when the booking is created. Payments may sum
    to more than the total; that is kept and surfaced via ``is_overpaid``.
    """

    total_price: int = 0
    payments: List[PaymentItem] = Field(default_factory=list)
    service_base_price: Optional[int] = None
    base_discount: Optional[int] = None
    addons_total: Optional[int] = None
    coupon_discount: Optional[int] = None
    coupon_code: Optional[str] = None

    @property
    def paid_total(self) -> int:
        return sum(payment.amount for payment in self.payments)

    @property
    def balance(self) -> int:
        return self.total_price - self.paid_total

    @property
    def is_overpaid(self) -> bool:
        return self.paid_total > self.total_price


class BookingAggregate(BaseModel):
    """A booking with every child record it owns."""

    id: str
    created_at: Optional[datetime] = None
    status: BookingStatus = BookingStatus.ACTIVE
    customer: CustomerInfo
    booking: BookingDetails
    finance: FinanceInfo = Field(default_factory=FinanceInfo)
    photographer_id: Optional[str] = None
    addons: Optional[List[BookingAddonItem]] = None
    reschedule_history: Optional[List[RescheduleEntry]] = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> BookingStatus:
        return BookingStatus.normalize(value)

    @property
    def balance(self) -> int:
        return self.finance.balance


# ---------------------------------------------------------------------------
# Service-layer requests
# ---------------------------------------------------------------------------


class AddonSelection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    addon_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class PaymentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    date: datetime
    amount: int = Field(..., gt=0)
    note: str = ""
    proof_filename: Optional[str] = None
    proof_url: Optional[str] = None
    storage_backend: StorageBackend = StorageBackend.LOCAL

    def to_item(self) -> PaymentItem:
        return PaymentItem(**self.model_dump())


class BookingCreateRequest(BaseModel):
    """
    Customer-supplied booking request.

    Carries no prices: the total is computed from the catalog.
    """

    model_config = ConfigDict(extra="forbid")

    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_whatsapp: str = Field(..., min_length=5, max_length=30)
    service_id: str = Field(..., min_length=1)
    date: datetime
    notes: Optional[str] = Field(None, max_length=2000)
    location_link: Optional[str] = None
    photographer_id: Optional[str] = None
    addons: List[AddonSelection] = Field(default_factory=list)
    coupon_code: Optional[str] = None
    payments: List[PaymentCreate] = Field(default_factory=list)
    actor: Optional[str] = None

    @field_validator("customer_name", "customer_whatsapp")
    @classmethod
    def _strip(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped
