# Overview: Pytest coverage for cash register sessions and expected drawer balance.

import pytest
from datetime import timedelta
from conftest import receive_stock
from imeipos.models import CashRegisterSession
from imeipos.errors import NoOpenSession, SessionAlreadyOpen, SessionClosed, ValidationError
from imeipos.services.expense_service import delete_expense, record_expense
from imeipos.services.payment_service import record_payment
from imeipos.services.register_service import (
    close_session,
    compute_cash_summary,
    get_active_session,
    get_session_summary,
    list_sessions,
    open_session,
    update_session_opened_at,
)
from imeipos.services.sales_service import create_sale


class TestSessionLifecycle:

    def test_open_session(self, db_session):
        session = open_session(opening_balance=10000, opened_by="Alice", notes="Morning")

        assert session.status == "open"
        assert session.session_number == "CR000001"
        assert get_active_session().id == session.id

    def test_second_open_rejected(self, db_session, register):
        with pytest.raises(SessionAlreadyOpen):
            open_session(opening_balance=0, opened_by="Bob")

        assert db_session.query(CashRegisterSession).count() == 1

    def test_negative_opening_balance_rejected(self, db_session):
        with pytest.raises(ValidationError):
            open_session(opening_balance=-1, opened_by="Alice")

    def test_opened_by_required(self, db_session):
        with pytest.raises(ValidationError):
            open_session(opening_balance=0, opened_by="  ")

    def test_close_records_difference(self, db_session, register):
        session = close_session(register.id, actual_balance=9500, closed_by="Alice", notes="short")

        assert session.status == "closed"
        assert session.expected_balance == 10000
        assert session.actual_balance == 9500
        assert session.difference == -500
        assert session.notes == "short"
        assert get_active_session() is None

    def test_close_twice_rejected(self, db_session, register):
        close_session(register.id, actual_balance=10000, closed_by="Alice")

        with pytest.raises(SessionClosed):
            close_session(register.id, actual_balance=10000, closed_by="Alice")

    def test_actual_balance_required(self, db_session, register):
        with pytest.raises(ValidationError):
            close_session(register.id, actual_balance=None, closed_by="Alice")

    def test_reopen_after_close(self, db_session, register):
        close_session(register.id, actual_balance=10000, closed_by="Alice")

        session = open_session(opening_balance=10000, opened_by="Bob")

        assert session.session_number == "CR000002"
        assert [s.id for s in list_sessions(status="closed")] == [register.id]

    def test_opened_at_cannot_pass_closed_at(self, db_session, register):
        closed = close_session(register.id, actual_balance=10000, closed_by="Alice")

        with pytest.raises(ValidationError):
            update_session_opened_at(register.id, closed.closed_at + timedelta(hours=1))

    def test_opened_at_correction(self, db_session, register):
        earlier = register.opened_at - timedelta(hours=2)

        session = update_session_opened_at(register.id, earlier)

        assert session.opened_at == earlier

    def test_summary_without_open_session(self, db_session):
        with pytest.raises(NoOpenSession):
            get_session_summary()


class TestExpectedBalance:
    """Expected = opening + cash sales paid + cash payment effects - cash expenses."""

    def test_closure_example(self, db_session, register, product, customer):
        _, items = receive_stock(product, ["111"])
        create_sale(items=[{"item_id": items[0].id, "unit_price": 5000}], paid_amount=5000)
        record_payment(entity_type="customer", entity_id=customer.id, amount=2000)
        record_expense(description="Coffee", category="supplies", amount=1000)

        summary = get_session_summary()
        assert summary.sales_cash == 5000
        assert summary.payments_cash == 2000
        assert summary.expenses_cash == 1000
        assert summary.expected_balance == 16000

        session = close_session(register.id, actual_balance=16000, closed_by="Alice")
        assert session.expected_balance == 16000
        assert session.difference == 0

    def test_non_cash_rows_ignored(self, db_session, register, product, customer):
        _, items = receive_stock(product, ["111"])
        create_sale(
            items=[{"item_id": items[0].id, "unit_price": 5000}], paid_amount=5000, payment_method="card"
        )
        record_payment(entity_type="customer", entity_id=customer.id, amount=2000, payment_method="transfer")
        record_expense(description="Rent", category="rent", amount=1000, payment_method="check")

        assert compute_cash_summary(register).expected_balance == 10000

    def test_refunds_and_supplier_payments_leave_drawer(self, db_session, register, customer, supplier):
        record_payment(entity_type="customer", entity_id=customer.id, amount=1500, transaction_type="refund")
        record_payment(entity_type="supplier", entity_id=supplier.id, amount=2500)
        record_payment(entity_type="supplier", entity_id=supplier.id, amount=500, transaction_type="refund")

        summary = compute_cash_summary(register)
        assert summary.payments_cash == -1500 - 2500 + 500
        assert summary.expected_balance == 6500
        assert summary.payments_count == 3

    def test_partial_sale_counts_paid_amount(self, db_session, register, product, customer):
        _, items = receive_stock(product, ["111"])
        create_sale(
            items=[{"item_id": items[0].id, "unit_price": 8000}], customer_id=customer.id, paid_amount=3000
        )

        assert compute_cash_summary(register).sales_cash == 3000

    def test_transactions_listed(self, db_session, register, customer):
        record_payment(entity_type="customer", entity_id=customer.id, amount=2000)
        record_expense(description="Coffee", category="supplies", amount=1000)

        data = compute_cash_summary(register).to_dict()
        assert data["breakdown"]["expenses_count"] == 1
        assert {row["type"] for row in data["transactions"]} == {"payment", "expense"}

    def test_closed_session_freezes_expenses(self, db_session, register):
        expense = record_expense(description="Coffee", category="supplies", amount=1000)
        close_session(register.id, actual_balance=9000, closed_by="Alice")

        with pytest.raises(SessionClosed):
            delete_expense(expense.id)
