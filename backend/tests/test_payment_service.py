# Overview: Pytest coverage for AR payment registration, listing, and cancellation.

import pytest

from delivery_ledger.models import Payment
from delivery_ledger.services import payment_service
from delivery_ledger.services.ledger_service import sum_payments
from delivery_ledger.validation import NotFoundError, ValidationError


class TestRegisterPayment:

    def test_collection_on_open_month(self, db_session, customer_a):
        payment = payment_service.register_payment(customer_a.id, 2025, 7, 1200, "collection", note="  cash  ")

        assert payment.id is not None
        assert payment.amount == 1200
        assert payment.note == "cash"

    def test_debit_requires_confirmed_month(self, db_session, customer_a, confirm_month):
        with pytest.raises(ValidationError):
            payment_service.register_payment(customer_a.id, 2025, 7, 1200, "debit")

        confirm_month(customer_a, 2025, 7, amount=1200)
        payment = payment_service.register_payment(customer_a.id, 2025, 7, 1200, "debit")

        assert payment.method == "debit"

    @pytest.mark.parametrize("amount", [0, -5, "12.5", None])
    def test_rejects_bad_amount(self, db_session, customer_a, amount):
        with pytest.raises(ValidationError):
            payment_service.register_payment(customer_a.id, 2025, 7, amount, "collection")

    def test_rejects_unknown_method(self, db_session, customer_a):
        with pytest.raises(ValidationError):
            payment_service.register_payment(customer_a.id, 2025, 7, 100, "cheque")

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            payment_service.register_payment(99999, 2025, 7, 100, "collection")


class TestBatchPayments:
    """Eligibility comes from the previous month's confirmations."""

    def test_snapshot_eligibility(self, db_session, customer_a, customer_b, confirm_month):
        confirm_month(customer_a, 2025, 6)

        result = payment_service.register_batch_payments(2025, 7, [
            {"customer_id": customer_a.id, "amount": 1000},
            {"customer_id": customer_b.id, "amount": 1000},
            {"customer_id": customer_a.id, "amount": 0},
            "not-an-object",
        ])

        assert result["success"] == 1
        assert result["failed"] == 3
        assert result["method"] == "collection"
        assert sum_payments(customer_a.id, 2025, 7) == 1000
        assert sum_payments(customer_b.id, 2025, 7) == 0

    def test_empty_entries_rejected(self, db_session):
        with pytest.raises(ValidationError):
            payment_service.register_batch_payments(2025, 7, [])


class TestCancelPayment:

    def test_cancel_nets_to_zero(self, db_session, customer_a):
        original = payment_service.register_payment(customer_a.id, 2025, 7, 1200, "collection", note="July")

        cancellation = payment_service.cancel_payment(customer_a.id, original.id)

        assert cancellation.amount == -1200
        assert cancellation.note == f"Cancel: {original.id} (July)"
        assert sum_payments(customer_a.id, 2025, 7) == 0
        assert db_session.get(Payment, original.id).amount == 1200

    def test_cancel_other_customers_payment(self, db_session, customer_a, customer_b):
        original = payment_service.register_payment(customer_a.id, 2025, 7, 500, "collection")

        with pytest.raises(NotFoundError):
            payment_service.cancel_payment(customer_b.id, original.id)


class TestListPayments:

    def test_filters_and_order(self, db_session, customer_a):
        first = payment_service.register_payment(customer_a.id, 2025, 6, 100, "collection", note="june")
        second = payment_service.register_payment(customer_a.id, 2025, 7, 200, "collection", note="july cash")

        assert [p.id for p in payment_service.list_payments(customer_a.id)] == [second.id, first.id]
        assert [p.id for p in payment_service.list_payments(customer_a.id, month=6)] == [first.id]
        assert [p.id for p in payment_service.list_payments(customer_a.id, q="cash")] == [second.id]

    def test_limit_is_clamped(self, db_session, customer_a):
        for amount in (100, 200, 300):
            payment_service.register_payment(customer_a.id, 2025, 7, amount, "collection")

        assert len(payment_service.list_payments(customer_a.id, limit=0)) == 1
        assert len(payment_service.list_payments(customer_a.id, limit=10_000)) == 3
        assert len(payment_service.list_payments(customer_a.id, offset=-3)) == 3

    def test_update_note(self, db_session, customer_a):
        payment = payment_service.register_payment(customer_a.id, 2025, 7, 100, "collection")

        updated = payment_service.update_payment_note(customer_a.id, payment.id, "received at door")

        assert updated.note == "received at door"
        assert updated.amount == 100
