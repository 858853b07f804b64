import unittest
from datetime import date

from flask import Flask

from delivery_ledger.extensions import db
from delivery_ledger.models import Course, Customer, DeliveryPattern, Invoice, Product, TemporaryChange
from delivery_ledger.services import billing_service, pattern_service, temporary_change_service
from delivery_ledger.services.month_lock import MonthLockedError, check_pattern_update, latest_confirmed_month_key


class MonthLockTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = Flask(__name__)
        cls.app.config.update(
            SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
            SQLALCHEMY_TRACK_MODIFICATIONS=False,
            TESTING=True,
        )
        db.init_app(cls.app)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        from delivery_ledger import models  # noqa: F401
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(TemporaryChange).delete()
        db.session.query(DeliveryPattern).delete()
        db.session.query(Invoice).delete()
        db.session.query(Customer).delete()
        db.session.query(Product).delete()
        db.session.query(Course).delete()
        db.session.commit()

        self.course = Course(name="Route 1")
        self.product = Product(name="Milk", unit="bottle", unit_price=180)
        db.session.add_all([self.course, self.product])
        db.session.flush()

        self.customer = Customer(name="Tanaka", course_id=self.course.id, delivery_order=1)
        db.session.add(self.customer)
        db.session.commit()

    def _confirm(self, year, month):
        db.session.add(Invoice(customer_id=self.customer.id, year=year, month=month, amount=0, rounding_enabled=True))
        db.session.commit()

    def _pattern(self, start, end=None):
        pattern = DeliveryPattern(
            customer_id=self.customer.id,
            product_id=self.product.id,
            delivery_days=[1, 3],
            quantity=1,
            unit_price=180,
            start_date=start,
            end_date=end,
            is_active=True,
        )
        db.session.add(pattern)
        db.session.commit()
        return pattern

    # ------------------------------------------------------------------
    # Temporary changes
    # ------------------------------------------------------------------

    def test_change_in_confirmed_month_is_rejected(self):
        self._confirm(2025, 7)

        with self.assertRaises(MonthLockedError) as ctx:
            temporary_change_service.create_change(self.customer.id, {
                "change_date": "2025-07-10",
                "change_type": "skip",
                "product_id": self.product.id,
            })
        self.assertEqual((ctx.exception.year, ctx.exception.month), (2025, 7))
        self.assertEqual(db.session.query(TemporaryChange).count(), 0)

        change = temporary_change_service.create_change(self.customer.id, {
            "change_date": "2025-08-10",
            "change_type": "skip",
            "product_id": self.product.id,
        })
        self.assertIsNotNone(change.id)

    def test_delete_change_in_confirmed_month_is_rejected(self):
        change = temporary_change_service.create_change(self.customer.id, {
            "change_date": "2025-07-10",
            "change_type": "modify",
            "product_id": self.product.id,
            "quantity": 3,
        })
        self._confirm(2025, 7)

        with self.assertRaises(MonthLockedError):
            temporary_change_service.delete_change(change.id)
        self.assertEqual(db.session.query(TemporaryChange).count(), 1)

    def test_moving_change_into_confirmed_month_is_rejected(self):
        change = temporary_change_service.create_change(self.customer.id, {
            "change_date": "2025-08-10",
            "change_type": "skip",
        })
        self._confirm(2025, 7)

        with self.assertRaises(MonthLockedError):
            temporary_change_service.update_change(change.id, {"change_date": "2025-07-31"})

        moved = temporary_change_service.update_change(change.id, {"change_date": "2025-08-20"})
        self.assertEqual(moved.change_date, date(2025, 8, 20))

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def test_create_pattern_over_confirmed_month_is_rejected(self):
        self._confirm(2025, 7)

        with self.assertRaises(MonthLockedError):
            pattern_service.create_pattern(self.customer.id, {
                "product_id": self.product.id,
                "delivery_days": [1],
                "quantity": 1,
                "start_date": "2025-06-01",
            })

        pattern = pattern_service.create_pattern(self.customer.id, {
            "product_id": self.product.id,
            "delivery_days": [1],
            "quantity": 1,
            "start_date": "2025-08-01",
        })
        self.assertEqual(pattern.unit_price, 180)

    def test_shortening_before_latest_confirmed_month_is_rejected(self):
        pattern = self._pattern(date(2025, 1, 1))
        self._confirm(2025, 5)
        self.assertEqual(latest_confirmed_month_key(self.customer.id), 202505)

        with self.assertRaises(MonthLockedError):
            pattern_service.update_pattern(self.customer.id, pattern.id, {"end_date": "2025-04-30"})

        updated = pattern_service.update_pattern(self.customer.id, pattern.id, {"end_date": "2025-05-31"})
        self.assertEqual(updated.end_date, date(2025, 5, 31))

    def test_shortening_inside_confirmed_month_is_rejected(self):
        pattern = self._pattern(date(2025, 1, 1), date(2025, 5, 31))
        self._confirm(2025, 5)
        before = billing_service.compute_monthly_total(self.customer.id, 2025, 5)["raw_total"]

        with self.assertRaises(MonthLockedError) as ctx:
            pattern_service.update_pattern(self.customer.id, pattern.id, {"end_date": "2025-05-15"})
        self.assertEqual((ctx.exception.year, ctx.exception.month), (2025, 5))

        self.assertEqual(db.session.get(DeliveryPattern, pattern.id).end_date, date(2025, 5, 31))
        self.assertEqual(billing_service.compute_monthly_total(self.customer.id, 2025, 5)["raw_total"], before)

    def test_open_pattern_cannot_end_mid_confirmed_month(self):
        pattern = self._pattern(date(2025, 1, 1))
        self._confirm(2025, 5)

        with self.assertRaises(MonthLockedError):
            pattern_service.update_pattern(self.customer.id, pattern.id, {"end_date": "2025-05-20"})

        updated = pattern_service.update_pattern(self.customer.id, pattern.id, {"end_date": "2025-06-10"})
        self.assertEqual(updated.end_date, date(2025, 6, 10))

    def test_extending_into_confirmed_month_is_rejected(self):
        pattern = self._pattern(date(2025, 1, 1), date(2025, 5, 31))
        self._confirm(2025, 6)

        with self.assertRaises(MonthLockedError) as ctx:
            pattern_service.update_pattern(self.customer.id, pattern.id, {"end_date": "2025-06-30"})
        self.assertEqual(ctx.exception.month, 6)

    def test_quantity_edit_over_confirmed_span_is_rejected(self):
        pattern = self._pattern(date(2025, 1, 1))
        self._confirm(2025, 3)

        with self.assertRaises(MonthLockedError):
            pattern_service.update_pattern(self.customer.id, pattern.id, {"quantity": 5})

    def test_toggle_checks_span(self):
        pattern = self._pattern(date(2025, 1, 1))
        self._confirm(2025, 3)

        with self.assertRaises(MonthLockedError):
            pattern_service.set_pattern_active(self.customer.id, pattern.id)

        later = self._pattern(date(2025, 4, 1))
        toggled = pattern_service.set_pattern_active(self.customer.id, later.id)
        self.assertFalse(toggled.is_active)

    def test_moving_start_later_over_confirmed_month_is_rejected(self):
        self._confirm(2025, 2)

        with self.assertRaises(MonthLockedError):
            check_pattern_update(
                self.customer.id,
                old_start=date(2025, 1, 1),
                old_end=None,
                new_start=date(2025, 3, 1),
                new_end=None,
                other_fields_changed=False,
            )


if __name__ == "__main__":
    unittest.main()
