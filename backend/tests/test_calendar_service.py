# Overview: Pytest coverage for calendar generation and temporary change overlay.

from datetime import date, datetime
from types import SimpleNamespace

from delivery_ledger.services.billing_service import sum_calendar
from delivery_ledger.services.calendar_service import (
    apply_overlay,
    extra_lines,
    generate_monthly_calendar,
    get_customer_calendar,
)


MILK = SimpleNamespace(id=1, name="Milk", unit="bottle", unit_price=180)
YOGURT = SimpleNamespace(id=2, name="Yogurt", unit="cup", unit_price=120)
PRODUCTS = {1: MILK, 2: YOGURT}


def _pattern(pid=1, product_id=1, *, days=(1, 3), quantity=2, unit_price=180, start=date(2025, 6, 1), end=None):
    return SimpleNamespace(
        id=pid,
        product_id=product_id,
        start_date=start,
        end_date=end,
        created_at=datetime(2025, 6, 1),
        delivery_days=list(days),
        daily_quantities=None,
        quantity=quantity,
        unit_price=unit_price,
    )


_change_ids = iter(range(1, 10_000))


def _change(change_date, change_type, product_id=None, quantity=None, unit_price=None, created=None):
    return SimpleNamespace(
        id=next(_change_ids),
        change_date=change_date,
        change_type=change_type,
        product_id=product_id,
        quantity=quantity,
        unit_price=unit_price,
        created_at=created or datetime(2025, 6, 1),
    )


def _day(days, d):
    return next(day for day in days if day.date == d)


class TestOverlay:
    """apply_overlay / extra_lines rules."""

    def test_no_changes_keeps_schedule(self):
        assert apply_overlay(2, 180, 1, []) == (2, 180)

    def test_product_skip(self):
        changes = [_change(date(2025, 7, 2), "skip", product_id=1)]
        assert apply_overlay(2, 180, 1, changes) == (0, 180)

    def test_skip_for_other_product_ignored(self):
        changes = [_change(date(2025, 7, 2), "skip", product_id=2)]
        assert apply_overlay(2, 180, 1, changes) == (2, 180)

    def test_blanket_skip(self):
        changes = [_change(date(2025, 7, 2), "skip", product_id=None)]
        assert apply_overlay(2, 180, 1, changes) == (0, 180)

    def test_skip_beats_modify(self):
        changes = [
            _change(date(2025, 7, 2), "modify", product_id=1, quantity=5),
            _change(date(2025, 7, 2), "skip", product_id=1),
        ]
        assert apply_overlay(2, 180, 1, changes) == (0, 180)

    def test_latest_modify_wins(self):
        changes = [
            _change(date(2025, 7, 2), "modify", product_id=1, quantity=5, created=datetime(2025, 6, 2)),
            _change(date(2025, 7, 2), "modify", product_id=1, quantity=3, unit_price=200, created=datetime(2025, 6, 3)),
        ]
        assert apply_overlay(2, 180, 1, changes) == (3, 200)

    def test_add_lines(self):
        changes = [
            _change(date(2025, 7, 2), "add", product_id=2, quantity=1),
            _change(date(2025, 7, 2), "add", product_id=1, quantity=2, unit_price=150),
        ]
        lines = extra_lines(changes, PRODUCTS)

        assert [(line.name, line.quantity, line.unit_price, line.amount) for line in lines] == [
            ("(extra) Yogurt", 1, 120, 120),
            ("(extra) Milk", 2, 150, 300),
        ]
        assert all(line.is_extra for line in lines)


class TestGenerateMonthlyCalendar:
    """Whole-month generation from plain objects."""

    def test_weekday_schedule_over_july(self):
        days = generate_monthly_calendar(2025, 7, [_pattern()], [], PRODUCTS)

        assert len(days) == 31
        delivered = [day.date.day for day in days if day.items]
        # Mondays and Wednesdays of July 2025
        assert delivered == [2, 7, 9, 14, 16, 21, 23, 28, 30]
        assert sum_calendar(days) == 9 * 2 * 180

    def test_day_payload_shape(self):
        days = generate_monthly_calendar(2025, 7, [_pattern()], [], PRODUCTS)
        payload = _day(days, date(2025, 7, 2)).to_dict()

        assert payload["date"] == "2025-07-02"
        assert payload["day_of_week"] == 3
        assert payload["total"] == 360
        assert payload["products"][0]["name"] == "Milk"

    def test_skip_removes_line(self):
        changes = [_change(date(2025, 7, 2), "skip", product_id=1)]
        days = generate_monthly_calendar(2025, 7, [_pattern()], changes, PRODUCTS)

        assert _day(days, date(2025, 7, 2)).items == []
        assert sum_calendar(days) == 8 * 2 * 180

    def test_add_survives_blanket_skip(self):
        changes = [
            _change(date(2025, 7, 2), "skip"),
            _change(date(2025, 7, 2), "add", product_id=2, quantity=2),
        ]
        days = generate_monthly_calendar(
            2025, 7, [_pattern(), _pattern(pid=2, product_id=2, unit_price=120)], changes, PRODUCTS
        )

        items = _day(days, date(2025, 7, 2)).items
        assert [item.name for item in items] == ["(extra) Yogurt"]
        assert items[0].amount == 240

    def test_modify_on_non_delivery_day(self):
        changes = [_change(date(2025, 7, 1), "modify", product_id=1, quantity=4)]
        days = generate_monthly_calendar(2025, 7, [_pattern()], changes, PRODUCTS)

        items = _day(days, date(2025, 7, 1)).items
        assert len(items) == 1
        assert items[0].quantity == 4
        assert items[0].amount == 720

    def test_pattern_price_change_mid_month(self):
        old = _pattern(pid=1, end=date(2025, 7, 15))
        new = _pattern(pid=2, unit_price=200, start=date(2025, 7, 16))
        days = generate_monthly_calendar(2025, 7, [old, new], [], PRODUCTS)

        assert _day(days, date(2025, 7, 14)).items[0].unit_price == 180
        assert _day(days, date(2025, 7, 16)).items[0].unit_price == 200

    def test_no_patterns(self):
        days = generate_monthly_calendar(2025, 2, [], [], {})
        assert len(days) == 28
        assert sum_calendar(days) == 0


class TestCustomerCalendar:
    """Database-backed calendar loading."""

    def test_inactive_patterns_are_ignored(self, db_session, customer_a, milk, make_pattern):
        make_pattern(customer_a, milk, quantity=1)
        make_pattern(customer_a, milk, quantity=9, start=date(2025, 7, 1), is_active=False)

        calendar = get_customer_calendar(customer_a.id, 2025, 7)

        assert _day(calendar.days, date(2025, 7, 2)).items[0].quantity == 1
        assert calendar.to_dict()["customer_id"] == customer_a.id
