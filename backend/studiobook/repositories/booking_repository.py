# backend/studiobook/repositories/booking_repository.py
"""
Booking Repository for the studio booking store.

Implements data access for the Booking aggregate: the booking row plus the
payments, add-on lines and reschedule history it owns.

This repository handles:
- Filtered, paginated listing with batched hydration of child rows
- Single-booking reads
- Transactional create / update / delete of the whole aggregate
- Append-only reschedule history
- Exact-timestamp slot availability checks
- Post-commit audit events

Hydration never issues one child query per booking. Child rows for a page
of bookings are fetched with ``booking_id IN (...)`` in chunks, one query
per child table per chunk, and grouped in memory.
"""

from datetime import date, datetime, timedelta
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy import and_, delete, func, insert, or_, select, update
from sqlalchemy.engine import Row
from sqlalchemy.orm import Session

from ..core.coercion import (
    normalize_booking_status,
    optional_int,
    optional_string,
    safe_int,
    safe_string,
)
from ..core.config import settings
from ..core.enums import SLOT_BLOCKING_STATUSES, BookingStatus, StorageBackend
from ..core.exceptions import BookingConflictException, ValidationException
from ..core.timezone_utils import parse_timestamp, studio_now
from ..database.pool import ConnectionPool
from ..events.audit import AuditEvent, AuditHook, AuditHooks
from ..models.addon import Addon, BookingAddon
from ..models.booking import Booking
from ..models.payment import Payment
from ..models.reschedule_history import RescheduleHistory
from ..schemas.booking import (
    BookingAddonItem,
    BookingAggregate,
    BookingDetails,
    CustomerInfo,
    FinanceInfo,
    PaymentItem,
    RescheduleEntry,
)
from .base_repository import BaseRepository, chunked, escape_like

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]

_bookings = Booking.__table__
_payments = Payment.__table__
_booking_addons = BookingAddon.__table__
_addons = Addon.__table__
_history = RescheduleHistory.__table__

ALL_STATUSES = "All"


class BookingRepository(BaseRepository[Booking]):
    """
    Repository for Booking aggregates.

    Reads return ``BookingAggregate`` objects; writes take them. Every
    write runs in one ``BEGIN IMMEDIATE`` transaction and either fully
    commits or raises a typed error after a full rollback.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        audit_hooks: Optional[Sequence[AuditHook]] = None,
        chunk_size: Optional[int] = None,
    ):
        super().__init__(pool, Booking)
        self.logger = logging.getLogger(__name__)
        self.audit_hooks = AuditHooks(audit_hooks)
        self.chunk_size = chunk_size or settings.hydration_chunk_size

    def register_audit_hook(self, hook: AuditHook) -> None:
        self.audit_hooks.register(hook)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_data(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        status: Optional[Union[BookingStatus, str]] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[BookingAggregate]:
        """
        List bookings, closest to now first.

        Args:
            start_date: Include bookings on or after this day/time
            end_date: Include bookings up to the end of this day
            status: Status filter; None or "All" disables it
            page: 1-based page number, used with ``limit``
            limit: Page size; None or 0 returns every match

        Returns:
            Fully hydrated bookings, or [] when nothing matches
        """
        now = studio_now().isoformat(timespec="seconds")
        stmt = (
            select(_bookings)
            .where(*self._filters(start_date, end_date, status))
            .order_by(
                func.abs(func.julianday(_bookings.c.booking_date) - func.julianday(now)),
                _bookings.c.id,
            )
        )
        if limit and limit > 0:
            stmt = stmt.limit(limit)
            if page and page > 1:
                stmt = stmt.offset((page - 1) * limit)

        with self.read_session() as session:
            rows = session.execute(stmt).all()
            self.logger.info(
                "Retrieved %d bookings",
                len(rows),
                extra={
                    "start_date": str(start_date) if start_date else None,
                    "end_date": str(end_date) if end_date else None,
                    "status": str(status) if status else None,
                    "page": page,
                    "limit": limit,
                },
            )
            return self._hydrate(session, rows)

    def count_bookings(
        self,
        start_date: Optional[DateLike] = None,
        end_date: Optional[DateLike] = None,
        status: Optional[Union[BookingStatus, str]] = None,
    ) -> int:
        """Count bookings matching the same filters as ``read_data``."""
        stmt = (
            select(func.count())
            .select_from(_bookings)
            .where(*self._filters(start_date, end_date, status))
        )
        with self.read_session() as session:
            return int(session.scalar(stmt) or 0)

    def count_by_status(self) -> Dict[str, int]:
        """Booking counts keyed by stored status value."""
        stmt = select(_bookings.c.status, func.count()).group_by(_bookings.c.status)
        with self.read_session() as session:
            counts: Dict[str, int] = {}
            for raw_status, total in session.execute(stmt):
                key = normalize_booking_status(raw_status).value
                counts[key] = counts.get(key, 0) + int(total)
            return counts

    def read_booking(self, booking_id: str) -> Optional[BookingAggregate]:
        """Read one booking with its children, or None when absent."""
        with self.read_session() as session:
            row = session.execute(select(_bookings).where(_bookings.c.id == booking_id)).first()
            if row is None:
                return None
            payments = [
                self._row_to_payment(r)
                for r in session.execute(
                    select(_payments)
                    .where(_payments.c.booking_id == booking_id)
                    .order_by(_payments.c.date, _payments.c.id)
                )
            ]
            addons = [
                self._row_to_addon(r)
                for r in session.execute(
                    self._addon_select().where(_booking_addons.c.booking_id == booking_id)
                )
            ]
            history = [
                self._row_to_history(r)
                for r in session.execute(
                    select(_history)
                    .where(_history.c.booking_id == booking_id)
                    .order_by(_history.c.rescheduled_at, _history.c.id)
                )
            ]
            return self._row_to_aggregate(row, payments, addons, history)

    def get_bookings_by_status(
        self, status: Union[BookingStatus, str]
    ) -> List[BookingAggregate]:
        """Bookings with ``status``, newest first."""
        stmt = (
            select(_bookings)
            .where(*self._status_filter(status))
            .order_by(_bookings.c.created_at.desc(), _bookings.c.id)
        )
        with self.read_session() as session:
            return self._hydrate(session, session.execute(stmt).all())

    def search_bookings(
        self, query: str, case_sensitive: bool = False
    ) -> List[BookingAggregate]:
        """
        Substring search on customer name or WhatsApp number, newest first.

        LIKE wildcards in ``query`` match literally. SQLite's LIKE folds
        ASCII case; pass ``case_sensitive=True`` for an exact-case match.
        """
        needle = safe_string(query).strip()
        if not needle:
            return []
        if case_sensitive:
            condition = or_(
                func.instr(_bookings.c.customer_name, needle) > 0,
                func.instr(_bookings.c.customer_whatsapp, needle) > 0,
            )
        else:
            pattern = f"%{escape_like(needle)}%"
            condition = or_(
                _bookings.c.customer_name.like(pattern, escape="\\"),
                _bookings.c.customer_whatsapp.like(pattern, escape="\\"),
            )
        stmt = (
            select(_bookings)
            .where(condition)
            .order_by(_bookings.c.created_at.desc(), _bookings.c.id)
        )
        with self.read_session() as session:
            return self._hydrate(session, session.execute(stmt).all())

    # ------------------------------------------------------------------
    # Slot availability
    # ------------------------------------------------------------------

    def check_slot_availability(
        self, slot: DateLike, exclude_booking_id: Optional[str] = None
    ) -> bool:
        """
        Whether no Active or Rescheduled booking occupies exactly ``slot``.

        Args:
            slot: The booking date/time to test
            exclude_booking_id: Booking to ignore, e.g. the one being rescheduled
        """
        with self.read_session() as session:
            return self._slot_available(session, slot, exclude_booking_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_booking(
        self,
        booking: BookingAggregate,
        check_slot: bool = False,
        actor: Optional[str] = None,
    ) -> None:
        """
        Insert the booking row, its payments and its add-on lines atomically.

        Args:
            booking: Aggregate to persist; ``booking.booking.date`` is required
            check_slot: Re-check the slot inside the write transaction
            actor: Who made the change, for the audit trail

        Raises:
            ValidationException: Missing booking date
            BookingConflictException: ``check_slot`` and the slot is taken
            ConstraintViolationException: Duplicate id, bad FK, non-positive payment
            TransactionFailedException: Anything else; nothing was written
        """
        self._validate_for_write(booking)
        with self.write_transaction("create_booking", "BOOKING_CREATE_FAILED") as session:
            if check_slot and not self._slot_available(session, booking.booking.date, None):
                raise BookingConflictException(
                    details={"date": booking.booking.date.isoformat()}
                )
            values = self._booking_values(booking)
            values["id"] = booking.id
            values["created_at"] = booking.created_at or studio_now()
            session.execute(insert(_bookings).values(**values))
            self._insert_payments(session, booking.id, booking.finance.payments)
            self._replace_addons(session, booking.id, booking.addons or [], clear_existing=False)

        self.logger.info("Created booking %s", booking.id)
        self._emit(
            actor,
            "booking",
            booking.id,
            "create",
            {
                "date": booking.booking.date.isoformat(),
                "customer": booking.customer.name,
                "total_price": booking.finance.total_price,
            },
        )

    def update_booking(
        self,
        booking: BookingAggregate,
        check_slot: bool = False,
        actor: Optional[str] = None,
    ) -> bool:
        """
        Replace a booking's row, payments and add-on lines atomically.

        Payments and add-ons are full replacements: callers pass the complete
        desired lists. ``addons`` of None or [] clears the add-on lines.

        Returns:
            False when no booking has ``booking.id`` (nothing is written)
        """
        self._validate_for_write(booking)
        with self.write_transaction("update_booking", "BOOKING_UPDATE_FAILED") as session:
            if check_slot and not self._slot_available(
                session, booking.booking.date, booking.id
            ):
                raise BookingConflictException(
                    details={"date": booking.booking.date.isoformat(), "booking_id": booking.id}
                )
            values = self._booking_values(booking)
            values["updated_at"] = studio_now()
            result = session.execute(
                update(_bookings).where(_bookings.c.id == booking.id).values(**values)
            )
            if result.rowcount == 0:
                return False
            session.execute(delete(_payments).where(_payments.c.booking_id == booking.id))
            self._insert_payments(session, booking.id, booking.finance.payments)
            self._replace_addons(session, booking.id, booking.addons or [])

        self.logger.info("Updated booking %s", booking.id)
        self._emit(
            actor,
            "booking",
            booking.id,
            "update",
            {
                "date": booking.booking.date.isoformat(),
                "status": BookingStatus.normalize(booking.status).storable().value,
                "payments": len(booking.finance.payments),
            },
        )
        return True

    def delete_booking(self, booking_id: str, actor: Optional[str] = None) -> bool:
        """
        Delete a booking; its children go by foreign-key cascade.

        Returns:
            Whether a booking row was deleted
        """
        with self.write_transaction("delete_booking", "BOOKING_DELETE_FAILED") as session:
            result = session.execute(delete(_bookings).where(_bookings.c.id == booking_id))
            deleted = result.rowcount > 0

        if deleted:
            self.logger.info("Deleted booking %s", booking_id)
            self._emit(actor, "booking", booking_id, "delete", {})
        return deleted

    def add_reschedule_history(
        self,
        booking_id: str,
        old_date: DateLike,
        new_date: DateLike,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> int:
        """
        Append a reschedule history entry.

        Returns:
            The new entry's id
        """
        with self.write_transaction(
            "add_reschedule_history", "RESCHEDULE_HISTORY_FAILED"
        ) as session:
            result = session.execute(
                insert(_history).values(
                    booking_id=booking_id,
                    old_date=old_date,
                    new_date=new_date,
                    rescheduled_at=studio_now(),
                    reason=reason or None,
                )
            )
            history_id = int(result.inserted_primary_key[0])

        self._emit(
            actor,
            "reschedule_history",
            str(history_id),
            "create",
            {
                "booking_id": booking_id,
                "old_date": str(old_date),
                "new_date": str(new_date),
                "reason": reason,
            },
        )
        return history_id

    # ------------------------------------------------------------------
    # Write helpers (each runs inside the caller's transaction)
    # ------------------------------------------------------------------

    def _insert_payments(
        self, session: Session, booking_id: str, payments: Iterable[PaymentItem]
    ) -> None:
        rows = [
            {
                "booking_id": booking_id,
                "date": payment.date,
                "amount": int(payment.amount),
                "note": payment.note or None,
                "proof_filename": payment.proof_filename or None,
                "proof_url": payment.proof_url or None,
                "storage_backend": StorageBackend(payment.storage_backend).value,
            }
            for payment in payments
        ]
        if rows:
            session.execute(insert(_payments), rows)

    def _replace_addons(
        self,
        session: Session,
        booking_id: str,
        addons: Iterable[BookingAddonItem],
        clear_existing: bool = True,
    ) -> None:
        if clear_existing:
            session.execute(
                delete(_booking_addons).where(_booking_addons.c.booking_id == booking_id)
            )
        rows = [
            {
                "booking_id": booking_id,
                "addon_id": addon.addon_id,
                "quantity": int(addon.quantity),
                "price_at_booking": int(addon.price_at_booking),
            }
            for addon in addons
        ]
        if rows:
            session.execute(insert(_booking_addons), rows)

    def _booking_values(self, booking: BookingAggregate) -> Dict[str, Any]:
        finance = booking.finance
        return {
            "status": BookingStatus.normalize(booking.status).storable().value,
            "customer_name": safe_string(booking.customer.name),
            "customer_whatsapp": safe_string(booking.customer.whatsapp),
            "customer_category": safe_string(booking.customer.category),
            "customer_service_id": booking.customer.service_id or None,
            "booking_date": booking.booking.date,
            "booking_notes": booking.booking.notes or None,
            "booking_location_link": booking.booking.location_link or None,
            "total_price": safe_int(finance.total_price),
            "service_base_price": finance.service_base_price,
            "base_discount": finance.base_discount,
            "addons_total": finance.addons_total,
            "coupon_discount": finance.coupon_discount,
            "coupon_code": finance.coupon_code or None,
            "photographer_id": booking.photographer_id or None,
        }

    def _validate_for_write(self, booking: BookingAggregate) -> None:
        if not booking.id:
            raise ValidationException("Booking id is required", code="BOOKING_ID_REQUIRED")
        if booking.booking.date is None:
            raise ValidationException(
                "Booking date is required",
                code="BOOKING_DATE_REQUIRED",
                details={"booking_id": booking.id},
            )

    def _slot_available(
        self, session: Session, slot: Optional[DateLike], exclude_booking_id: Optional[str]
    ) -> bool:
        if parse_timestamp(slot) is None:
            raise ValidationException("Invalid slot date", details={"date": str(slot)})
        conditions = [
            _bookings.c.booking_date == slot,
            _bookings.c.status.in_([status.value for status in SLOT_BLOCKING_STATUSES]),
        ]
        if exclude_booking_id:
            conditions.append(_bookings.c.id != exclude_booking_id)
        stmt = select(func.count()).select_from(_bookings).where(and_(*conditions))
        return int(session.scalar(stmt) or 0) == 0

    def _emit(
        self,
        actor: Optional[str],
        entity_type: str,
        entity_id: str,
        action: str,
        metadata: Dict[str, Any],
    ) -> None:
        self.audit_hooks.dispatch(
            AuditEvent(
                actor=actor,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                metadata=metadata,
            )
        )

    # ------------------------------------------------------------------
    # Query builders
    # ------------------------------------------------------------------

    def _filters(
        self,
        start_date: Optional[DateLike],
        end_date: Optional[DateLike],
        status: Optional[Union[BookingStatus, str]],
    ) -> List[Any]:
        conditions: List[Any] = []
        if start_date:
            start = parse_timestamp(start_date)
            if start is None:
                raise ValidationException("Invalid start date", details={"start_date": str(start_date)})
            conditions.append(_bookings.c.booking_date >= start)
        if end_date:
            end = parse_timestamp(end_date)
            if end is None:
                raise ValidationException("Invalid end date", details={"end_date": str(end_date)})
            next_day = datetime(end.year, end.month, end.day) + timedelta(days=1)
            conditions.append(_bookings.c.booking_date < next_day)
        conditions.extend(self._status_filter(status))
        return conditions

    def _status_filter(self, status: Optional[Union[BookingStatus, str]]) -> List[Any]:
        if status is None or status == ALL_STATUSES:
            return []
        normalized = BookingStatus.normalize(status)
        if normalized is BookingStatus.UNKNOWN:
            # Rows holding a value outside the canonical set
            return [_bookings.c.status.not_in(BookingStatus.storable_values())]
        return [_bookings.c.status == normalized.value]

    def _addon_select(self) -> Any:
        return (
            select(
                _booking_addons.c.booking_id,
                _booking_addons.c.addon_id,
                _addons.c.name.label("addon_name"),
                _booking_addons.c.quantity,
                _booking_addons.c.price_at_booking,
            )
            .select_from(
                _booking_addons.outerjoin(_addons, _booking_addons.c.addon_id == _addons.c.id)
            )
            .order_by(_addons.c.name, _booking_addons.c.id)
        )

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    def _hydrate(self, session: Session, rows: Sequence[Row]) -> List[BookingAggregate]:
        if not rows:
            return []
        booking_ids = [safe_string(row.id) for row in rows]
        payments = self._payments_for(session, booking_ids)
        addons = self._addons_for(session, booking_ids)
        history = self._history_for(session, booking_ids)
        return [
            self._row_to_aggregate(
                row,
                payments.get(booking_id, []),
                addons.get(booking_id, []),
                history.get(booking_id, []),
            )
            for row, booking_id in zip(rows, booking_ids)
        ]

    def _payments_for(
        self, session: Session, booking_ids: List[str]
    ) -> Dict[str, List[PaymentItem]]:
        grouped: Dict[str, List[PaymentItem]] = {}
        for chunk in chunked(booking_ids, self.chunk_size):
            stmt = (
                select(_payments)
                .where(_payments.c.booking_id.in_(chunk))
                .order_by(_payments.c.date, _payments.c.id)
            )
            for row in session.execute(stmt):
                grouped.setdefault(safe_string(row.booking_id), []).append(
                    self._row_to_payment(row)
                )
        return grouped

    def _addons_for(
        self, session: Session, booking_ids: List[str]
    ) -> Dict[str, List[BookingAddonItem]]:
        grouped: Dict[str, List[BookingAddonItem]] = {}
        for chunk in chunked(booking_ids, self.chunk_size):
            stmt = self._addon_select().where(_booking_addons.c.booking_id.in_(chunk))
            for row in session.execute(stmt):
                grouped.setdefault(safe_string(row.booking_id), []).append(
                    self._row_to_addon(row)
                )
        return grouped

    def _history_for(
        self, session: Session, booking_ids: List[str]
    ) -> Dict[str, List[RescheduleEntry]]:
        grouped: Dict[str, List[RescheduleEntry]] = {}
        for chunk in chunked(booking_ids, self.chunk_size):
            stmt = (
                select(_history)
                .where(_history.c.booking_id.in_(chunk))
                .order_by(_history.c.rescheduled_at, _history.c.id)
            )
            for row in session.execute(stmt):
                grouped.setdefault(safe_string(row.booking_id), []).append(
                    self._row_to_history(row)
                )
        return grouped

    # ------------------------------------------------------------------
    # Row mapping with defensive coercion
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_payment(row: Row) -> PaymentItem:
        backend = safe_string(row.storage_backend, StorageBackend.LOCAL.value)
        if backend not in (StorageBackend.LOCAL.value, StorageBackend.B2.value):
            backend = StorageBackend.LOCAL.value
        return PaymentItem(
            date=row.date,
            amount=safe_int(row.amount),
            note=safe_string(row.note),
            proof_filename=optional_string(row.proof_filename),
            proof_url=optional_string(row.proof_url),
            storage_backend=StorageBackend(backend),
        )

    @staticmethod
    def _row_to_addon(row: Row) -> BookingAddonItem:
        return BookingAddonItem(
            addon_id=safe_string(row.addon_id),
            addon_name=safe_string(row.addon_name),
            quantity=max(safe_int(row.quantity, 1), 1),
            price_at_booking=safe_int(row.price_at_booking),
        )

    @staticmethod
    def _row_to_history(row: Row) -> RescheduleEntry:
        return RescheduleEntry(
            id=optional_int(row.id),
            old_date=row.old_date,
            new_date=row.new_date,
            rescheduled_at=row.rescheduled_at,
            reason=optional_string(row.reason),
        )

    @staticmethod
    def _row_to_aggregate(
        row: Row,
        payments: List[PaymentItem],
        addons: List[BookingAddonItem],
        history: List[RescheduleEntry],
    ) -> BookingAggregate:
        return BookingAggregate(
            id=safe_string(row.id),
            created_at=row.created_at,
            status=normalize_booking_status(row.status),
            customer=CustomerInfo(
                name=safe_string(row.customer_name),
                whatsapp=safe_string(row.customer_whatsapp),
                category=safe_string(row.customer_category),
                service_id=optional_string(row.customer_service_id),
            ),
            booking=BookingDetails(
                date=row.booking_date,
                notes=optional_string(row.booking_notes),
                location_link=optional_string(row.booking_location_link),
            ),
            finance=FinanceInfo(
                total_price=safe_int(row.total_price),
                payments=payments,
                service_base_price=optional_int(row.service_base_price),
                base_discount=optional_int(row.base_discount),
                addons_total=optional_int(row.addons_total),
                coupon_discount=optional_int(row.coupon_discount),
                coupon_code=optional_string(row.coupon_code),
            ),
            photographer_id=optional_string(row.photographer_id),
            addons=addons or None,
            reschedule_history=history or None,
        )
