"""Tests for the Discount aggregate: creation, invariants and administration."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from commerce.discount.discount import Discount, normalize_code
from commerce.discount.events import (
    DiscountCreated,
    DiscountDeactivated,
    DiscountUpdated,
    DiscountUsageRecorded,
)


def _discount(**overrides):
    defaults = {"name": "Ten percent off", "code": "save10", "discount_type": "percentage", "value": 10.0}
    defaults.update(overrides)
    return Discount.create(**defaults)


class TestDiscountCreation:
    def test_code_is_stored_upper_case(self):
        discount = _discount(code="  summer-sale ")
        assert discount.code == "SUMMER-SALE"

    def test_defaults(self):
        discount = _discount()
        assert discount.usage_count == 0
        assert discount.usage_limit_per_customer == 1
        assert discount.is_active is True
        assert discount.is_public is True
        assert discount.application_type == "entire_order"

    def test_lists_round_trip_as_json(self):
        discount = _discount(applicable_products=["p1", "p2"], targeted_user_ids=["u1"])
        assert discount.product_list == ["p1", "p2"]
        assert discount.targeted_user_id_list == ["u1"]
        assert discount.category_list == []

    def test_raises_created_event(self):
        discount = _discount()
        assert isinstance(discount._events[0], DiscountCreated)
        assert discount._events[0].code == "SAVE10"

    def test_normalize_code_of_nothing(self):
        assert normalize_code(None) is None
        assert normalize_code("   ") is None


class TestDiscountInvariants:
    def test_percentage_over_100_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _discount(value=120.0)
        assert "value" in exc.value.messages

    def test_fixed_amount_may_exceed_100(self):
        discount = _discount(discount_type="fixed_amount", value=150.0)
        assert discount.value == 150.0

    def test_end_must_follow_start(self):
        start = datetime(2026, 3, 1, tzinfo=UTC)
        with pytest.raises(ValidationError) as exc:
            _discount(start_date=start, end_date=start - timedelta(days=1))
        assert "end_date" in exc.value.messages

    def test_usage_count_cannot_exceed_limit(self):
        discount = _discount(usage_limit=1)
        with pytest.raises(ValidationError):
            discount.record_usage(2)

    def test_unknown_discount_type(self):
        with pytest.raises(ValidationError):
            _discount(discount_type="buy_one_get_one")


class TestDiscountAdministration:
    def test_update_changes_terms(self):
        discount = _discount()
        discount._events.clear()
        discount.update(value=15.0, applicable_categories=["c1"])
        assert discount.value == 15.0
        assert discount.category_list == ["c1"]
        assert isinstance(discount._events[0], DiscountUpdated)
        assert discount._events[0].changed_fields == "applicable_categories,value"

    def test_update_rejects_unknown_fields(self):
        discount = _discount()
        with pytest.raises(ValidationError):
            discount.update(usage_count=5)

    def test_update_is_checked_as_a_whole(self):
        discount = _discount(start_date=datetime(2026, 3, 1, tzinfo=UTC), end_date=datetime(2026, 3, 31, tzinfo=UTC))
        # Moving the start past the old end is only valid together with the new end
        discount.update(start_date=datetime(2026, 4, 1, tzinfo=UTC), end_date=datetime(2026, 4, 30, tzinfo=UTC))
        assert discount.end_date.month == 4

    def test_update_to_an_inverted_window(self):
        discount = _discount()
        with pytest.raises(ValidationError):
            discount.update(start_date=datetime(2026, 5, 1, tzinfo=UTC), end_date=datetime(2026, 4, 1, tzinfo=UTC))

    def test_deactivate_is_idempotent(self):
        discount = _discount()
        discount._events.clear()
        discount.deactivate()
        discount.deactivate()
        assert discount.is_active is False
        assert len(discount._events) == 1
        assert isinstance(discount._events[0], DiscountDeactivated)

    def test_activate(self):
        discount = _discount(is_active=False)
        discount.activate()
        assert discount.is_active is True

    def test_record_usage_only_moves_up(self):
        discount = _discount(usage_limit=10)
        discount.record_usage(3, order_number="ORD-20260101-0001", customer_id="cust-001")
        discount.record_usage(2)
        assert discount.usage_count == 3
        assert isinstance(discount._events[-1], DiscountUsageRecorded)
