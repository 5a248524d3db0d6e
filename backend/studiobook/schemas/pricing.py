"""Server-side price quote for a booking request."""

from typing import List, Optional

from pydantic import BaseModel, Field

from .booking import BookingAddonItem


class PriceQuote(BaseModel):
    """
    Finance breakdown computed from the catalog.

    ``total_price = max(0, service_base_price - base_discount
    + addons_total - coupon_discount)``.
    """

    service_id: str
    service_category: str
    service_base_price: int
    base_discount: int = 0
    addons: List[BookingAddonItem] = Field(default_factory=list)
    addons_total: int = 0
    coupon_code: Optional[str] = None
    coupon_id: Optional[str] = None
    coupon_discount: int = 0
    total_price: int

    @property
    def subtotal(self) -> int:
        return self.service_base_price - self.base_discount + self.addons_total
