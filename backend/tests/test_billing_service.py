# Overview: Pytest coverage for monthly totals and rounding.

from datetime import date

import pytest

from delivery_ledger.services.billing_service import (
    apply_rounding,
    compute_monthly_total,
    get_monthly_total,
    rounded_base,
)
from delivery_ledger.validation import NotFoundError, ValidationError


class TestRounding:
    """Round-down to the nearest 10 yen."""

    def test_rounding_enabled(self):
        assert apply_rounding(1234, True) == 1230

    def test_rounding_disabled(self):
        assert apply_rounding(1234, False) == 1234

    def test_exact_multiple_unchanged(self):
        assert apply_rounding(1230, True) == 1230

    def test_base_is_never_negative(self):
        assert rounded_base(-25, True) == 0
        assert rounded_base(-25, False) == 0


class TestMonthlyTotal:
    """Totals computed from stored patterns."""

    @pytest.fixture
    def single_delivery(self, customer_a, milk, make_pattern):
        # One Tuesday delivery on 2025-07-01 at 1234 yen
        return make_pattern(
            customer_a, milk,
            days=(2,), quantity=1, unit_price=1234,
            start=date(2025, 7, 1), end=date(2025, 7, 1),
        )

    def test_default_rounding_on(self, db_session, customer_a, single_delivery):
        totals = compute_monthly_total(customer_a.id, 2025, 7)

        assert totals["raw_total"] == 1234
        assert totals["rounding_enabled"] is True
        assert totals["rounded_total"] == 1230
        assert totals["rounded_base"] == 1230

    def test_rounding_off(self, db_session, customer_a, single_delivery, set_rounding):
        set_rounding(customer_a, False)

        totals = compute_monthly_total(customer_a.id, 2025, 7)

        assert totals["rounded_total"] == 1234

    def test_get_monthly_total_validates(self, db_session, customer_a):
        with pytest.raises(ValidationError):
            get_monthly_total(customer_a.id, 2025, 13)
        with pytest.raises(NotFoundError):
            get_monthly_total(99999, 2025, 7)

    def test_empty_month(self, db_session, customer_a):
        result = get_monthly_total(customer_a.id, 2025, 7)
        assert result["raw_total"] == 0
        assert result["customer_id"] == customer_a.id
