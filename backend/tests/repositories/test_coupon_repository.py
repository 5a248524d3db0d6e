"""Coupon validation rules and redemption bookkeeping."""

from datetime import timedelta

import pytest

from studiobook.core.exceptions import ConstraintViolationException
from studiobook.core.timezone_utils import studio_now
from tests.factories.booking_builders import make_booking


@pytest.fixture
def coupons(coupon_repository):
    now = studio_now()
    return {
        "percent": coupon_repository.create_coupon(
            code="hemat10", discount_type="percentage", discount_value=10, max_discount=50_000
        ),
        "fixed": coupon_repository.create_coupon(
            code="POTONG100", discount_type="fixed", discount_value=100_000, min_purchase=500_000
        ),
        "expired": coupon_repository.create_coupon(
            code="LAMA", discount_type="fixed", discount_value=10_000, valid_until=now - timedelta(days=1)
        ),
        "future": coupon_repository.create_coupon(
            code="NANTI", discount_type="fixed", discount_value=10_000, valid_from=now + timedelta(days=1)
        ),
        "used_up": coupon_repository.create_coupon(
            code="HABIS", discount_type="fixed", discount_value=10_000, usage_limit=2, usage_count=2
        ),
        "inactive": coupon_repository.create_coupon(
            code="MATI", discount_type="fixed", discount_value=10_000, is_active=False
        ),
    }


def test_codes_are_stored_upper_case_and_matched_case_insensitively(coupon_repository, coupons):
    assert coupons["percent"].code == "HEMAT10"
    assert coupon_repository.get_by_code(" hemat10 ").id == coupons["percent"].id


def test_percentage_discount_is_capped(coupon_repository, coupons):
    small = coupon_repository.validate_coupon("HEMAT10", 200_000)
    large = coupon_repository.validate_coupon("HEMAT10", 2_000_000)

    assert small.valid and small.discount_amount == 20_000
    assert large.valid and large.discount_amount == 50_000


def test_fixed_discount_and_minimum_purchase(coupon_repository, coupons):
    assert coupon_repository.validate_coupon("POTONG100", 600_000).discount_amount == 100_000

    rejected = coupon_repository.validate_coupon("POTONG100", 400_000)
    assert not rejected.valid
    assert rejected.error == "Minimum purchase is 500000"


@pytest.mark.parametrize(
    "code, error",
    [
        ("", "Coupon code is required"),
        ("NOPE", "Invalid coupon code"),
        ("MATI", "Invalid coupon code"),
        ("LAMA", "Coupon has expired"),
        ("NANTI", "Coupon is not valid yet"),
        ("HABIS", "Coupon usage limit reached"),
    ],
)
def test_rejections_carry_a_reason(coupon_repository, coupons, code, error):
    result = coupon_repository.validate_coupon(code, 1_000_000)

    assert result.valid is False
    assert result.error == error
    assert result.discount_amount == 0


def test_increment_and_record_usage(pool, coupon_repository, booking_repository, coupons):
    booking = make_booking()
    booking_repository.create_booking(booking)

    assert coupon_repository.increment_usage("hemat10") is True
    assert coupon_repository.increment_usage("GHOST") is False
    coupon_repository.record_usage(
        coupon_id=coupons["percent"].id,
        booking_id=booking.id,
        customer_name="Ayu",
        customer_whatsapp="0812",
        discount_amount=50_000,
        order_total=950_000,
    )

    assert coupon_repository.get_by_code("HEMAT10").usage_count == 1
    history = coupon_repository.get_usage_history(coupons["percent"].id)
    assert [row["booking_id"] for row in history] == [booking.id]


def test_duplicate_code_is_rejected(coupon_repository, coupons):
    with pytest.raises(ConstraintViolationException):
        coupon_repository.create_coupon(code="Hemat10", discount_type="fixed", discount_value=1)
