import pytest

from studiobook.core.enums import SLOT_BLOCKING_STATUSES, BookingStatus


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Active", BookingStatus.ACTIVE),
        ("completed", BookingStatus.COMPLETED),
        (" RESCHEDULED ", BookingStatus.RESCHEDULED),
        ("Canceled", BookingStatus.CANCELLED),
        ("Cancelled", BookingStatus.CANCELLED),
        ("Pending", BookingStatus.UNKNOWN),
        (None, BookingStatus.UNKNOWN),
        (BookingStatus.ACTIVE, BookingStatus.ACTIVE),
    ],
)
def test_normalize(raw, expected):
    assert BookingStatus.normalize(raw) is expected


def test_unknown_is_never_stored():
    assert "Unknown" not in BookingStatus.storable_values()
    assert BookingStatus.UNKNOWN.storable() is BookingStatus.ACTIVE
    assert BookingStatus.CANCELLED.storable() is BookingStatus.CANCELLED


def test_only_active_and_rescheduled_block_slots():
    assert set(SLOT_BLOCKING_STATUSES) == {BookingStatus.ACTIVE, BookingStatus.RESCHEDULED}
    assert BookingStatus.RESCHEDULED.blocks_slot
    assert not BookingStatus.COMPLETED.blocks_slot
