"""Write paths of BookingRepository: atomic aggregate writes and audit events."""

import pytest

from studiobook.core.enums import BookingStatus
from studiobook.core.exceptions import (
    BookingConflictException,
    ConstraintViolationException,
    TransactionFailedException,
    ValidationException,
)
from studiobook.repositories.booking_repository import BookingRepository
from studiobook.schemas.booking import BookingAddonItem
from tests.factories.booking_builders import make_booking, payment, slot


def _count(pool, table, booking_id):
    rows = pool.execute(f"SELECT COUNT(*) AS n FROM {table} WHERE booking_id = :id", {"id": booking_id})
    return rows[0]["n"]


class TestCreate:
    def test_create_and_read_back(self, booking_repository, studio_catalog):
        booking = make_booking(
            date=slot(4, hour=14),
            total_price=1_150_000,
            payments=[payment(500_000, note="DP")],
            addons=[
                BookingAddonItem(
                    addon_id=studio_catalog["album"].id, quantity=1, price_at_booking=150_000
                )
            ],
            photographer_id=studio_catalog["photographer"].id,
            notes="Bring the white backdrop",
        )

        booking_repository.create_booking(booking, actor="admin")
        stored = booking_repository.read_booking(booking.id)

        assert stored.booking.date == booking.booking.date
        assert stored.booking.notes == "Bring the white backdrop"
        assert stored.status is BookingStatus.ACTIVE
        assert stored.photographer_id == studio_catalog["photographer"].id
        assert [(p.amount, p.note) for p in stored.finance.payments] == [(500_000, "DP")]
        assert stored.addons[0].addon_name == "Printed Album"
        assert stored.balance == 650_000

    def test_half_paid_booking_balance(self, booking_repository):
        booking = make_booking(total_price=1_000_000, payments=[payment(500_000)])

        booking_repository.create_booking(booking)
        stored = booking_repository.read_booking(booking.id)

        assert stored.finance.total_price == 1_000_000
        assert stored.finance.paid_total == 500_000
        assert stored.balance == 500_000
        assert not stored.finance.is_overpaid

    def test_unknown_status_is_stored_as_active(self, pool, booking_repository):
        booking = make_booking(status=BookingStatus.UNKNOWN)

        booking_repository.create_booking(booking)

        assert pool.execute("SELECT status FROM bookings") == [{"status": "Active"}]

    def test_failure_after_payments_leaves_nothing_behind(
        self, pool, booking_repository, studio_catalog, monkeypatch
    ):
        booking = make_booking(
            payments=[payment(100_000), payment(200_000)],
            addons=[
                BookingAddonItem(
                    addon_id=studio_catalog["album"].id, quantity=1, price_at_booking=150_000
                )
            ],
        )

        def _explode(*_args, **_kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(booking_repository, "_replace_addons", _explode)

        with pytest.raises(TransactionFailedException) as exc_info:
            booking_repository.create_booking(booking)

        assert exc_info.value.code == "BOOKING_CREATE_FAILED"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert booking_repository.read_booking(booking.id) is None
        assert _count(pool, "payments", booking.id) == 0
        assert pool.get_stats().in_use == 0

    def test_negative_payment_rolls_back_whole_booking(self, pool, booking_repository):
        booking = make_booking(payments=[payment(300_000), payment(-5)])

        with pytest.raises(ConstraintViolationException) as exc_info:
            booking_repository.create_booking(booking)

        assert exc_info.value.code == "CONSTRAINT_VIOLATION"
        assert booking_repository.read_booking(booking.id) is None
        assert _count(pool, "payments", booking.id) == 0

    def test_duplicate_id_is_a_constraint_violation(self, booking_repository):
        booking = make_booking(booking_id="dup-1")
        booking_repository.create_booking(booking)

        with pytest.raises(ConstraintViolationException):
            booking_repository.create_booking(make_booking(booking_id="dup-1", date=slot(20)))

    def test_unknown_photographer_is_a_constraint_violation(self, booking_repository):
        with pytest.raises(ConstraintViolationException):
            booking_repository.create_booking(make_booking(photographer_id="nobody"))

    def test_missing_date_is_rejected_before_writing(self, booking_repository):
        booking = make_booking()
        booking.booking.date = None

        with pytest.raises(ValidationException) as exc_info:
            booking_repository.create_booking(booking)

        assert exc_info.value.code == "BOOKING_DATE_REQUIRED"

    def test_slot_guard_rejects_taken_slot(self, pool, booking_repository):
        taken = slot(8, hour=9)
        booking_repository.create_booking(make_booking(date=taken))
        second = make_booking(date=taken)

        with pytest.raises(BookingConflictException):
            booking_repository.create_booking(second, check_slot=True)

        assert booking_repository.read_booking(second.id) is None
        assert pool.execute("SELECT COUNT(*) AS n FROM bookings") == [{"n": 1}]


class TestUpdate:
    def test_payments_are_replaced_not_merged(self, pool, booking_repository):
        booking = make_booking(payments=[payment(100_000), payment(200_000), payment(300_000)])
        booking_repository.create_booking(booking)

        booking.finance.payments = [payment(600_000, note="Lunas")]
        assert booking_repository.update_booking(booking) is True

        stored = booking_repository.read_booking(booking.id)
        assert [(p.amount, p.note) for p in stored.finance.payments] == [(600_000, "Lunas")]
        assert _count(pool, "payments", booking.id) == 1

    def test_empty_addon_list_clears_lines(self, pool, booking_repository, studio_catalog):
        booking = make_booking(
            addons=[
                BookingAddonItem(
                    addon_id=studio_catalog["extra_hour"].id, quantity=1, price_at_booking=250_000
                )
            ]
        )
        booking_repository.create_booking(booking)

        booking.addons = []
        booking_repository.update_booking(booking)

        assert booking_repository.read_booking(booking.id).addons is None
        assert _count(pool, "booking_addons", booking.id) == 0

    def test_fields_are_written(self, booking_repository):
        booking = make_booking(date=slot(3))
        booking_repository.create_booking(booking)

        booking.status = BookingStatus.COMPLETED
        booking.customer.name = "Ayu L."
        booking.booking.date = slot(4)
        booking_repository.update_booking(booking)

        stored = booking_repository.read_booking(booking.id)
        assert stored.status is BookingStatus.COMPLETED
        assert stored.customer.name == "Ayu L."
        assert stored.booking.date == slot(4)

    def test_missing_booking_returns_false(self, booking_repository):
        assert booking_repository.update_booking(make_booking(booking_id="ghost")) is False

    def test_failure_keeps_previous_children(self, booking_repository, monkeypatch):
        booking = make_booking(payments=[payment(100_000), payment(200_000)])
        booking_repository.create_booking(booking)
        booking.finance.payments = [payment(999_000)]

        def _explode(*_args, **_kwargs):
            raise RuntimeError("interrupted")

        monkeypatch.setattr(booking_repository, "_insert_payments", _explode)

        with pytest.raises(TransactionFailedException) as exc_info:
            booking_repository.update_booking(booking)

        assert exc_info.value.code == "BOOKING_UPDATE_FAILED"
        stored = booking_repository.read_booking(booking.id)
        assert [p.amount for p in stored.finance.payments] == [100_000, 200_000]

    def test_slot_guard_ignores_the_booking_itself(self, booking_repository):
        booking = make_booking(date=slot(6))
        booking_repository.create_booking(booking)
        other = make_booking(date=slot(7))
        booking_repository.create_booking(other)

        booking.booking.notes = "same slot, new notes"
        assert booking_repository.update_booking(booking, check_slot=True) is True

        booking.booking.date = other.booking.date
        with pytest.raises(BookingConflictException):
            booking_repository.update_booking(booking, check_slot=True)


class TestDeleteAndHistory:
    def test_delete_cascades_to_children(self, pool, booking_repository, studio_catalog):
        booking = make_booking(
            payments=[payment(100_000)],
            addons=[
                BookingAddonItem(
                    addon_id=studio_catalog["album"].id, quantity=2, price_at_booking=150_000
                )
            ],
        )
        booking_repository.create_booking(booking)
        booking_repository.add_reschedule_history(booking.id, slot(1), slot(2), "Client request")

        assert booking_repository.delete_booking(booking.id) is True

        assert booking_repository.read_booking(booking.id) is None
        for table in ("payments", "booking_addons", "reschedule_history"):
            assert _count(pool, table, booking.id) == 0

    def test_delete_missing_returns_false(self, booking_repository):
        assert booking_repository.delete_booking("ghost") is False

    def test_history_is_append_only_and_ordered(self, booking_repository):
        booking = make_booking(date=slot(2))
        booking_repository.create_booking(booking)

        first_id = booking_repository.add_reschedule_history(booking.id, slot(2), slot(3), "Rain")
        second_id = booking_repository.add_reschedule_history(booking.id, slot(3), slot(5))

        history = booking_repository.read_booking(booking.id).reschedule_history
        assert [entry.id for entry in history] == [first_id, second_id]
        assert history[0].reason == "Rain"
        assert history[1].reason is None
        assert history[1].new_date == slot(5)

    def test_history_for_missing_booking_is_a_constraint_violation(self, booking_repository):
        with pytest.raises(ConstraintViolationException):
            booking_repository.add_reschedule_history("ghost", slot(1), slot(2))


class TestAuditEvents:
    def test_writes_are_persisted_to_audit_log(self, booking_repository, audit_repository):
        booking = make_booking()
        booking_repository.create_booking(booking, actor="admin")
        booking_repository.update_booking(booking, actor="admin")
        booking_repository.delete_booking(booking.id, actor="owner")

        rows, total = audit_repository.list(entity_type="booking", entity_id=booking.id)

        assert total == 3
        assert sorted(row.action for row in rows) == ["create", "delete", "update"]
        assert {row.actor for row in rows} == {"admin", "owner"}

    def test_failing_hook_does_not_fail_the_write(self, pool, caplog):
        seen = []

        def _broken(event):
            raise RuntimeError("webhook down")

        repository = BookingRepository(pool, audit_hooks=[_broken, seen.append])
        booking = make_booking()

        with caplog.at_level("ERROR", logger="studiobook.audit"):
            repository.create_booking(booking)

        assert repository.read_booking(booking.id) is not None
        assert [event.action for event in seen] == ["create"]
        assert "webhook down" in caplog.text

    def test_rolled_back_write_emits_nothing(self, pool):
        seen = []
        repository = BookingRepository(pool, audit_hooks=[seen.append])

        with pytest.raises(ConstraintViolationException):
            repository.create_booking(make_booking(payments=[payment(0)]))

        assert seen == []
