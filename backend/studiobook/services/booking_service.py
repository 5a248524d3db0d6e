# backend/studiobook/services/booking_service.py
"""
Booking Service for the studio booking store.

Composes repository operations into the studio's booking workflows:
- Pricing from the catalog (the client never supplies a price)
- Booking creation with a slot guard and coupon redemption
- Rescheduling with an append-only history entry
- Recording payments against a booking
- Status transitions and deletion rules

Repositories signal "not found" with None/False; this layer turns that
into ``NotFoundException`` for callers.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

from ..core.enums import BookingStatus
from ..core.exceptions import (
    BookingConflictException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import studio_now
from ..core.ulid_helper import generate_ulid
from ..repositories.booking_repository import BookingRepository
from ..repositories.catalog_repository import CatalogRepository
from ..repositories.coupon_repository import CouponRepository
from ..schemas.booking import (
    AddonSelection,
    BookingAddonItem,
    BookingAggregate,
    BookingCreateRequest,
    BookingDetails,
    CustomerInfo,
    FinanceInfo,
    PaymentCreate,
)
from ..schemas.pricing import PriceQuote

logger = logging.getLogger(__name__)


class BookingService:
    """Booking workflows on top of the booking, catalog and coupon repositories."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        catalog_repository: CatalogRepository,
        coupon_repository: CouponRepository,
    ):
        self.bookings = booking_repository
        self.catalog = catalog_repository
        self.coupons = coupon_repository
        self.logger = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def quote_price(
        self,
        service_id: str,
        addon_selections: Sequence[AddonSelection] = (),
        coupon_code: Optional[str] = None,
    ) -> PriceQuote:
        """
        Compute the finance breakdown for a booking request.

        Raises:
            ValidationException: Unknown or inactive service/add-on, an add-on
                not offered for the service's category, or an unusable coupon
        """
        service = self.catalog.get_service(service_id)
        if service is None or not service.is_active:
            raise ValidationException(
                "Selected service is not available",
                code="INVALID_SERVICE",
                details={"service_id": service_id},
            )

        base_price = int(service.base_price or 0)
        base_discount = min(int(service.discount_value or 0), base_price)

        quantities: Dict[str, int] = {}
        for selection in addon_selections:
            quantities[selection.addon_id] = quantities.get(selection.addon_id, 0) + selection.quantity

        addons_by_id = {addon.id: addon for addon in self.catalog.get_addons_by_ids(list(quantities))}
        lines: List[BookingAddonItem] = []
        for addon_id, quantity in quantities.items():
            addon = addons_by_id.get(addon_id)
            if addon is None or not addon.is_active or not addon.applies_to(service.category):
                raise ValidationException(
                    "Selected add-on is not available for this service",
                    code="INVALID_ADDON",
                    details={"addon_id": addon_id, "service_id": service_id},
                )
            lines.append(
                BookingAddonItem(
                    addon_id=addon.id,
                    addon_name=addon.name,
                    quantity=quantity,
                    price_at_booking=int(addon.price),
                )
            )
        addons_total = sum(line.line_total for line in lines)

        subtotal = base_price - base_discount + addons_total
        coupon_discount = 0
        coupon_id: Optional[str] = None
        normalized_code: Optional[str] = None
        if coupon_code and coupon_code.strip():
            result = self.coupons.validate_coupon(coupon_code, max(subtotal, 0))
            if not result.valid or result.coupon is None:
                raise ValidationException(
                    result.error or "Invalid coupon code",
                    code="INVALID_COUPON",
                    details={"coupon_code": coupon_code},
                )
            coupon_discount = result.discount_amount
            coupon_id = result.coupon.id
            normalized_code = result.coupon.code

        return PriceQuote(
            service_id=service.id,
            service_category=service.category,
            service_base_price=base_price,
            base_discount=base_discount,
            addons=lines,
            addons_total=addons_total,
            coupon_code=normalized_code,
            coupon_id=coupon_id,
            coupon_discount=coupon_discount,
            total_price=max(0, subtotal - coupon_discount),
        )

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def create_booking(self, request: BookingCreateRequest) -> BookingAggregate:
        """
        Create a booking priced from the catalog.

        Raises:
            ValidationException: Pricing inputs rejected
            BookingConflictException: The slot is already taken
        """
        quote = self.quote_price(request.service_id, request.addons, request.coupon_code)
        booking = BookingAggregate(
            id=generate_ulid(),
            created_at=studio_now(),
            status=BookingStatus.ACTIVE,
            customer=CustomerInfo(
                name=request.customer_name,
                whatsapp=request.customer_whatsapp,
                category=quote.service_category,
                service_id=quote.service_id,
            ),
            booking=BookingDetails(
                date=request.date,
                notes=request.notes,
                location_link=request.location_link,
            ),
            finance=FinanceInfo(
                total_price=quote.total_price,
                payments=[payment.to_item() for payment in request.payments],
                service_base_price=quote.service_base_price,
                base_discount=quote.base_discount,
                addons_total=quote.addons_total,
                coupon_discount=quote.coupon_discount or None,
                coupon_code=quote.coupon_code,
            ),
            photographer_id=request.photographer_id,
            addons=quote.addons or None,
        )
        self.bookings.create_booking(booking, check_slot=True, actor=request.actor)
        self.logger.info(
            "Booking %s created for %s at %s",
            booking.id,
            booking.customer.name,
            request.date.isoformat(),
        )

        if quote.coupon_id and quote.coupon_code:
            self._redeem_coupon(booking, quote)

        return self.bookings.read_booking(booking.id) or booking

    def reschedule_booking(
        self,
        booking_id: str,
        new_date: datetime,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> BookingAggregate:
        """
        Move a booking to ``new_date`` and record the move.

        The slot check excludes the booking itself and runs inside the
        update transaction.
        """
        current = self._require_booking(booking_id)
        if current.status is BookingStatus.COMPLETED:
            raise ValidationException(
                "Completed bookings cannot be rescheduled",
                code="BOOKING_COMPLETED",
                details={"booking_id": booking_id},
            )
        old_date = current.booking.date
        if old_date is None:
            self.logger.warning("Booking %s has no readable date; history uses the new date", booking_id)
            old_date = new_date

        updated = current.model_copy(
            update={
                "status": BookingStatus.RESCHEDULED,
                "booking": current.booking.model_copy(update={"date": new_date}),
            }
        )
        if not self.bookings.update_booking(updated, check_slot=True, actor=actor):
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        self.bookings.add_reschedule_history(booking_id, old_date, new_date, reason, actor=actor)
        return self._require_booking(booking_id)

    def record_payment(
        self, booking_id: str, payment: PaymentCreate, actor: Optional[str] = None
    ) -> BookingAggregate:
        """Append a payment by writing back the complete payment list."""
        current = self._require_booking(booking_id)
        if current.booking.date is None:
            raise ValidationException(
                "Booking date is unreadable; fix the date before recording payments",
                code="BOOKING_DATE_REQUIRED",
                details={"booking_id": booking_id},
            )
        payments = list(current.finance.payments) + [payment.to_item()]
        updated = current.model_copy(
            update={"finance": current.finance.model_copy(update={"payments": payments})}
        )
        if not self.bookings.update_booking(updated, actor=actor):
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        result = self._require_booking(booking_id)
        if result.finance.is_overpaid:
            self.logger.warning(
                "Booking %s is overpaid: paid %d of %d",
                booking_id,
                result.finance.paid_total,
                result.finance.total_price,
            )
        return result

    def update_status(
        self,
        booking_id: str,
        status: Union[BookingStatus, str],
        actor: Optional[str] = None,
    ) -> BookingAggregate:
        new_status = BookingStatus.normalize(status)
        if new_status is BookingStatus.UNKNOWN:
            raise ValidationException(
                f"Unknown booking status: {status}",
                code="INVALID_STATUS",
                details={"status": str(status)},
            )
        current = self._require_booking(booking_id)
        if current.status is BookingStatus.COMPLETED and new_status is not BookingStatus.COMPLETED:
            raise ValidationException(
                "Completed bookings cannot change status",
                code="BOOKING_COMPLETED",
                details={"booking_id": booking_id},
            )
        if current.booking.date is None:
            raise ValidationException(
                "Booking date is unreadable; fix the date before changing status",
                code="BOOKING_DATE_REQUIRED",
                details={"booking_id": booking_id},
            )
        updated = current.model_copy(update={"status": new_status})
        if not self.bookings.update_booking(updated, actor=actor):
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        return self._require_booking(booking_id)

    def delete_booking(self, booking_id: str, actor: Optional[str] = None) -> None:
        current = self._require_booking(booking_id)
        if current.status is BookingStatus.COMPLETED:
            raise ValidationException(
                "Completed bookings cannot be deleted",
                code="BOOKING_COMPLETED",
                details={"booking_id": booking_id},
            )
        if not self.bookings.delete_booking(booking_id, actor=actor):
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")

    def is_slot_available(self, slot: datetime, exclude_booking_id: Optional[str] = None) -> bool:
        return self.bookings.check_slot_availability(slot, exclude_booking_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_booking(self, booking_id: str) -> BookingAggregate:
        booking = self.bookings.read_booking(booking_id)
        if booking is None:
            raise NotFoundException(
                f"Booking {booking_id} not found",
                code="BOOKING_NOT_FOUND",
                details={"booking_id": booking_id},
            )
        return booking

    def _redeem_coupon(self, booking: BookingAggregate, quote: PriceQuote) -> None:
        # The booking is already committed; a bookkeeping failure must not undo it
        try:
            self.coupons.increment_usage(quote.coupon_code or "")
            self.coupons.record_usage(
                coupon_id=quote.coupon_id or "",
                booking_id=booking.id,
                customer_name=booking.customer.name,
                customer_whatsapp=booking.customer.whatsapp,
                discount_amount=quote.coupon_discount,
                order_total=quote.total_price,
            )
        except RepositoryException:
            self.logger.exception(
                "Failed to record coupon %s usage for booking %s", quote.coupon_code, booking.id
            )


__all__ = ["BookingService", "BookingConflictException"]
