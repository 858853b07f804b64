# Overview: Pytest coverage for invoice confirmation, carryover, and AR summaries.

"""
AR Ledger Tests

Confirmed(M) = max(0, roundedBase(M)) + (Confirmed(M-1) - Payments(M))
"""

from datetime import date

import pytest

from delivery_ledger.models import Invoice
from delivery_ledger.services import ledger_service, payment_service
from delivery_ledger.validation import NotFoundError


class TestConfirmInvoice:
    """Single customer confirmation."""

    def test_carryover_without_deliveries(self, db_session, customer_a, set_rounding, confirm_month):
        """Prior 1234, rounding off, no deliveries, 500 paid -> 734."""
        set_rounding(customer_a, False)
        confirm_month(customer_a, 2025, 5, amount=1234, rounding_enabled=False)
        payment_service.register_payment(customer_a.id, 2025, 6, 500, "collection")

        invoice = ledger_service.confirm_invoice(customer_a.id, 2025, 6)

        assert invoice.amount == 734
        assert invoice.rounding_enabled is False

    def test_base_plus_carryover(self, db_session, customer_a, milk, make_pattern, confirm_month):
        make_pattern(customer_a, milk, days=(1, 3), quantity=2)  # 9 days x 360 = 3240 in July
        confirm_month(customer_a, 2025, 6, amount=1000)
        payment_service.register_payment(customer_a.id, 2025, 7, 400, "collection")

        invoice = ledger_service.confirm_invoice(customer_a.id, 2025, 7)

        assert invoice.amount == 3240 + (1000 - 400)

    def test_unconfirmed_prior_month_uses_computed_total(self, db_session, customer_a, milk, make_pattern):
        make_pattern(customer_a, milk, days=(1, 3), quantity=1, start=date(2025, 6, 1), end=date(2025, 6, 30))
        # June 2025: Mondays 2,9,16,23,30 and Wednesdays 4,11,18,25 -> 9 x 180

        breakdown = ledger_service.compute_confirm_amount(customer_a.id, 2025, 7)

        assert breakdown["rounded_base"] == 0
        assert breakdown["prev_invoice_amount"] == 1620
        assert breakdown["amount"] == 1620

    def test_confirm_is_idempotent(self, db_session, customer_a, milk, make_pattern):
        make_pattern(customer_a, milk)

        first = ledger_service.confirm_invoice(customer_a.id, 2025, 7)
        first_amount = first.amount
        second = ledger_service.confirm_invoice(customer_a.id, 2025, 7)

        assert second.amount == first_amount
        assert db_session.query(Invoice).filter_by(customer_id=customer_a.id).count() == 1

    def test_reconfirm_picks_up_new_payment(self, db_session, customer_a, confirm_month):
        confirm_month(customer_a, 2025, 6, amount=1000)
        ledger_service.confirm_invoice(customer_a.id, 2025, 7)
        ledger_service.unconfirm_invoice(customer_a.id, 2025, 7)
        payment_service.register_payment(customer_a.id, 2025, 7, 1000, "collection")

        invoice = ledger_service.confirm_invoice(customer_a.id, 2025, 7)

        assert invoice.amount == 0

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            ledger_service.confirm_invoice(99999, 2025, 7)


class TestBatchConfirm:
    """All-or-nothing batch confirmation."""

    def test_confirm_course(self, db_session, course, customer_a, customer_b):
        result = ledger_service.confirm_invoices_batch(2025, 7, course_id=course.id)

        assert result["count"] == 2
        assert [r["customer_id"] for r in result["results"]] == [customer_a.id, customer_b.id]
        assert db_session.query(Invoice).count() == 2

    def test_failure_confirms_none(self, db_session, customer_a, customer_b):
        with pytest.raises(NotFoundError):
            ledger_service.confirm_invoices_batch(2025, 7, customer_ids=[customer_a.id, 99999])

        assert db_session.query(Invoice).count() == 0

    def test_unconfirm_batch(self, db_session, course, customer_a, customer_b, confirm_month):
        confirm_month(customer_a, 2025, 7)

        result = ledger_service.unconfirm_invoices_batch(2025, 7, course_id=course.id)

        assert [r["removed_count"] for r in result["results"]] == [1, 0]
        assert db_session.query(Invoice).count() == 0


class TestUnconfirm:

    def test_unconfirm_reports_removal(self, db_session, customer_a, confirm_month):
        confirm_month(customer_a, 2025, 7)

        assert ledger_service.unconfirm_invoice(customer_a.id, 2025, 7)["removed"] is True
        assert ledger_service.unconfirm_invoice(customer_a.id, 2025, 7)["removed"] is False


class TestReadModels:
    """Status, AR summary and diagnostics never write."""

    def test_status(self, db_session, customer_a, confirm_month):
        assert ledger_service.get_invoice_status(customer_a.id, 2025, 7) == {"confirmed": False}

        confirm_month(customer_a, 2025, 7, amount=500)
        status = ledger_service.get_invoice_status(customer_a.id, 2025, 7)

        assert status["confirmed"] is True
        assert status["amount"] == 500

    def test_ar_summary(self, db_session, customer_a, confirm_month):
        confirm_month(customer_a, 2025, 6, amount=2000)
        payment_service.register_payment(customer_a.id, 2025, 6, 300, "collection")
        payment_service.register_payment(customer_a.id, 2025, 7, 1500, "collection")

        summary = ledger_service.get_ar_summary(customer_a.id, 2025, 7)

        assert summary["prev_year"] == 2025
        assert summary["prev_month"] == 6
        assert summary["prev_invoice_amount"] == 2000
        assert summary["prev_invoice_confirmed"] is True
        assert summary["prev_payment_amount"] == 300
        assert summary["current_payment_amount"] == 1500
        assert summary["carryover_amount"] == 500
        assert db_session.query(Invoice).count() == 1

    def test_ar_summary_january_looks_at_december(self, db_session, customer_a):
        summary = ledger_service.get_ar_summary(customer_a.id, 2026, 1)
        assert (summary["prev_year"], summary["prev_month"]) == (2025, 12)

    def test_consistency(self, db_session, customer_a, milk, make_pattern):
        make_pattern(customer_a, milk, days=(1, 3), quantity=1, start=date(2025, 6, 1), end=date(2025, 6, 30))
        ledger_service.confirm_invoice(customer_a.id, 2025, 6)

        report = ledger_service.get_ar_summary_consistency(customer_a.id, 2025, 7)

        assert report["expected_amount"] == 1620
        assert report["ar_invoice_amount"] == 1620
        assert report["is_prev_invoice_equal_to_expected"] is True
        assert report["cumulative_carryover_amount"] == 1620

    def test_course_views(self, db_session, course, customer_a, customer_b, confirm_month):
        confirm_month(customer_a, 2025, 7, amount=900)
        payment_service.register_payment(customer_b.id, 2025, 7, 250, "collection")

        amounts = ledger_service.get_course_invoice_amounts(course.id, 2025, 7)
        statuses = ledger_service.get_course_invoice_statuses(course.id, 2025, 7)
        sums = ledger_service.get_course_payments_sum(course.id, 2025, 7)

        assert [(i["customer_id"], i["amount"], i["confirmed"]) for i in amounts["items"]] == [
            (customer_a.id, 900, True),
            (customer_b.id, 0, False),
        ]
        assert [i["confirmed"] for i in statuses["items"]] == [True, False]
        assert [i["total"] for i in sums["items"]] == [0, 250]

    def test_course_amounts_filter_by_method(self, db_session, course, customer_a, customer_b):
        from delivery_ledger.services.customer_settings_service import save_customer_settings

        save_customer_settings(customer_b.id, {"billing_method": "debit"})

        debit = ledger_service.get_course_invoice_amounts(course.id, 2025, 7, "debit")

        assert [i["customer_id"] for i in debit["items"]] == [customer_b.id]
