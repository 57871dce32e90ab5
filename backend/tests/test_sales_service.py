# Overview: Pytest coverage for sale create/edit/delete and customer receivables.

"""
Sales Service Tests

Covers:
- Totals, payment type and profit derivation on create
- Item availability and customer requirement preconditions
- All-or-nothing behaviour when a precondition fails mid-list
- Comprehensive edit: item diff, customer change, closed-session lock
- Delete: items back to stock, balance reversal guard
- Edit matches delete-then-recreate for balances and item state
"""

from datetime import datetime

import pytest
from imeipos.extensions import db
from imeipos.models import LedgerEvent, Sale, SaleItem
from imeipos.errors import (
    CustomerRequired,
    InsufficientReversibleBalance,
    ItemNotAvailable,
    NoOpenSession,
    SessionClosed,
    ValidationError,
)
from imeipos.services.lifecycle_service import archive_entity
from imeipos.services.payment_service import record_payment
from imeipos.services.register_service import close_session
from imeipos.services.sales_service import create_sale, delete_sale, edit_sale, get_sale_items


def _line(item, price):
    return {"item_id": item.id, "unit_price": price}


class TestCreateSale:
    """Sale creation derives totals and moves items and balances together."""

    def test_partial_sale_totals(self, db_session, stock, customer):
        """Two items, discount and partial payment put the remainder on the customer."""
        sale = create_sale(
            items=[_line(stock[0], 50000), _line(stock[1], 30000)],
            customer_id=customer.id,
            discount_amount=5000,
            paid_amount=40000,
        )

        assert sale.subtotal == 80000
        assert sale.total_amount == 75000
        assert sale.balance_impact == 35000
        assert sale.payment_type == "partial"
        assert stock[0].status == "sold"
        assert stock[1].status == "sold"
        assert stock[0].sale_id == sale.id
        assert stock[0].customer_id == customer.id
        assert customer.balance == 35000

    def test_profit_snapshots_cost(self, db_session, stock, customer):
        sale = create_sale(
            items=[_line(stock[0], 50000), _line(stock[1], 30000)],
            customer_id=customer.id,
        )

        lines = get_sale_items(sale.id)
        assert [line.purchase_price for line in lines] == [20000, 20000]
        assert [line.profit for line in lines] == [30000, 10000]
        assert sale.profit == 40000

    def test_profit_clamped_when_sold_below_cost(self, db_session, stock):
        sale = create_sale(items=[_line(stock[0], 15000)], paid_amount=15000)

        line = get_sale_items(sale.id)[0]
        assert line.profit == 0
        assert sale.profit == 0

    def test_walk_in_sale_fully_paid(self, db_session, stock, register):
        sale = create_sale(items=[_line(stock[0], 40000)], paid_amount=40000)

        assert sale.customer_id is None
        assert sale.payment_type == "full"
        assert sale.balance_impact == 0
        assert sale.cash_register_session_id == register.id

    def test_credit_sale_requires_customer(self, db_session, stock):
        with pytest.raises(CustomerRequired):
            create_sale(items=[_line(stock[0], 40000)], paid_amount=10000)

        assert stock[0].status == "available"
        assert db_session.query(Sale).count() == 0

    def test_credit_sale_payment_type(self, db_session, stock, customer):
        sale = create_sale(items=[_line(stock[0], 40000)], customer_id=customer.id)

        assert sale.payment_type == "credit"
        assert customer.balance == 40000

    def test_sold_item_rejected(self, db_session, stock, customer):
        create_sale(items=[_line(stock[0], 40000)], paid_amount=40000)

        with pytest.raises(ItemNotAvailable) as exc_info:
            create_sale(items=[_line(stock[0], 40000)], paid_amount=40000)
        assert exc_info.value.imei == stock[0].imei

    def test_archived_item_rejected(self, db_session, stock):
        archive_entity("item", stock[0].id)

        with pytest.raises(ItemNotAvailable):
            create_sale(items=[_line(stock[0], 40000)], paid_amount=40000)

    def test_failure_midway_leaves_no_trace(self, db_session, stock, customer):
        """Second item unavailable: the first item, balance and events are untouched."""
        create_sale(items=[_line(stock[1], 40000)], paid_amount=40000)
        events_before = db_session.query(LedgerEvent).count()

        with pytest.raises(ItemNotAvailable):
            create_sale(
                items=[_line(stock[0], 40000), _line(stock[1], 40000)],
                customer_id=customer.id,
            )

        assert stock[0].status == "available"
        assert stock[0].sale_id is None
        assert customer.balance == 0
        assert db_session.query(Sale).count() == 1
        assert db_session.query(LedgerEvent).count() == events_before

    def test_discount_cannot_exceed_subtotal(self, db_session, stock, customer):
        with pytest.raises(ValidationError, match="Discount cannot exceed subtotal"):
            create_sale(items=[_line(stock[0], 40000)], customer_id=customer.id, discount_amount=40001)

    def test_paid_cannot_exceed_total(self, db_session, stock):
        with pytest.raises(ValidationError, match="Paid amount cannot exceed total"):
            create_sale(items=[_line(stock[0], 40000)], paid_amount=40001)

    def test_empty_items_rejected(self, db_session, register):
        with pytest.raises(ValidationError):
            create_sale(items=[], paid_amount=0)

    def test_duplicate_item_rejected(self, db_session, stock):
        with pytest.raises(ValidationError, match="more than once"):
            create_sale(items=[_line(stock[0], 100), _line(stock[0], 100)], paid_amount=200)

    def test_decimal_amount_rejected(self, db_session, stock):
        with pytest.raises(ValidationError):
            create_sale(items=[{"item_id": stock[0].id, "unit_price": 100.5}], paid_amount=0)

    def test_sale_numbers_are_sequential(self, db_session, stock):
        first = create_sale(items=[_line(stock[0], 100)], paid_amount=100)
        second = create_sale(items=[_line(stock[1], 100)], paid_amount=100)

        assert first.sale_number == "S000001"
        assert second.sale_number == "S000002"

    def test_requires_open_session(self, db_session, stock, register):
        close_session(register.id, actual_balance=10000, closed_by="Test Cashier")

        with pytest.raises(NoOpenSession):
            create_sale(items=[_line(stock[0], 100)], paid_amount=100)

    def test_open_session_optional_by_config(self, app, db_session, stock, register):
        close_session(register.id, actual_balance=10000, closed_by="Test Cashier")
        app.config['REQUIRE_OPEN_SESSION_FOR_SALES'] = False

        sale = create_sale(items=[_line(stock[0], 100)], paid_amount=100)

        assert sale.cash_register_session_id is None

    def test_created_event_records_balance_delta(self, db_session, stock, customer):
        sale = create_sale(items=[_line(stock[0], 40000)], customer_id=customer.id, paid_amount=15000)

        event = db_session.query(LedgerEvent).filter_by(event_type="sale.created", entity_id=sale.id).one()
        assert event.party_type == "customer"
        assert event.party_id == customer.id
        assert event.balance_delta == 25000


class TestEditSale:
    """Comprehensive edit recomputes from the full item set."""

    def test_swap_items(self, db_session, stock, customer):
        sale = create_sale(items=[_line(stock[0], 50000)], customer_id=customer.id)

        edit_sale(sale.id, items=[_line(stock[1], 30000)])

        assert stock[0].status == "available"
        assert stock[0].sale_id is None
        assert stock[1].status == "sold"
        assert stock[1].sale_id == sale.id
        assert sale.subtotal == 30000
        assert sale.balance_impact == 30000
        assert customer.balance == 30000
        assert [line.item_id for line in get_sale_items(sale.id)] == [stock[1].id]

    def test_reprice_kept_item(self, db_session, stock, customer):
        sale = create_sale(items=[_line(stock[0], 50000)], customer_id=customer.id, paid_amount=10000)

        edit_sale(sale.id, items=[_line(stock[0], 45000)])

        assert stock[0].sale_price == 45000
        assert sale.total_amount == 45000
        assert sale.profit == 25000
        assert customer.balance == 35000

    def test_change_customer_moves_balance(self, db_session, stock, customer, other_customer):
        sale = create_sale(items=[_line(stock[0], 50000)], customer_id=customer.id)

        edit_sale(sale.id, customer_id=other_customer.id)

        assert customer.balance == 0
        assert other_customer.balance == 50000
        assert stock[0].customer_id == other_customer.id

    def test_paying_in_full_clears_balance(self, db_session, stock, customer):
        sale = create_sale(items=[_line(stock[0], 50000)], customer_id=customer.id)

        edit_sale(sale.id, paid_amount=50000)

        assert sale.payment_type == "full"
        assert customer.balance == 0

    def test_walk_in_cannot_become_credit(self, db_session, stock):
        sale = create_sale(items=[_line(stock[0], 50000)], paid_amount=50000)

        with pytest.raises(CustomerRequired):
            edit_sale(sale.id, paid_amount=0)

        assert sale.paid_amount == 50000

    def test_added_item_must_be_available(self, db_session, stock, customer):
        sale = create_sale(items=[_line(stock[0], 50000)], customer_id=customer.id)
        create_sale(items=[_line(stock[1], 50000)], paid_amount=50000)

        with pytest.raises(ItemNotAvailable):
            edit_sale(sale.id, items=[_line(stock[0], 50000), _line(stock[1], 50000)])

        assert customer.balance == 50000

    def test_omitted_notes_kept_and_none_clears(self, db_session, stock):
        sale = create_sale(items=[_line(stock[0], 100)], paid_amount=100, notes="gift wrap")

        edit_sale(sale.id, payment_method="card")
        assert sale.notes == "gift wrap"
        assert sale.payment_method == "card"

        edit_sale(sale.id, notes=None)
        assert sale.notes is None

    def test_closed_session_locks_sale(self, db_session, stock, register):
        sale = create_sale(items=[_line(stock[0], 100)], paid_amount=100)
        close_session(register.id, actual_balance=10100, closed_by="Test Cashier")

        with pytest.raises(SessionClosed):
            edit_sale(sale.id, discount_amount=10)


    def test_date_change_moves_kept_item_sold_at(self, db_session, stock, customer):
        sale = create_sale(items=[_line(stock[0], 50000)], customer_id=customer.id, date="2026-01-01T00:00:00Z")

        edit_sale(sale.id, date="2026-02-01T00:00:00Z")

        assert sale.date == datetime(2026, 2, 1)
        assert stock[0].sold_at == datetime(2026, 2, 1)


def _sale_state(sale, stock, *parties):
    """Everything a sale moves, minus its identity."""
    return {
        "totals": (
            sale.subtotal, sale.discount_amount, sale.total_amount, sale.paid_amount,
            sale.balance_impact, sale.payment_type, sale.profit, sale.customer_id, sale.date,
        ),
        "balances": [party.balance for party in parties],
        "items": [
            (item.status, item.sale_id is not None, item.sale_price, item.customer_id, item.sold_at)
            for item in stock
        ],
    }


class TestEditEquivalence:
    """An edit leaves the same state as deleting the sale and creating the target one."""

    def test_edit_matches_delete_then_recreate(self, db_session, stock, customer, other_customer):
        target = dict(
            items=[_line(stock[1], 35000), _line(stock[2], 40000)],
            customer_id=other_customer.id,
            discount_amount=5000,
            paid_amount=10000,
            date="2026-02-01T00:00:00Z",
        )
        sale = create_sale(
            items=[_line(stock[0], 50000), _line(stock[1], 30000)],
            customer_id=customer.id,
            paid_amount=20000,
            date="2026-01-01T00:00:00Z",
        )

        edit_sale(sale.id, **target)
        edited = _sale_state(sale, stock, customer, other_customer)

        delete_sale(sale.id)
        recreated_sale = create_sale(**target)
        recreated = _sale_state(recreated_sale, stock, customer, other_customer)

        assert edited == recreated
        assert edited["balances"] == [0, 60000]

    def test_edit_without_changes_is_neutral(self, db_session, stock, customer):
        sale = create_sale(
            items=[_line(stock[0], 50000)], customer_id=customer.id, paid_amount=20000,
            date="2026-01-01T00:00:00Z",
        )
        before = _sale_state(sale, stock, customer)

        edit_sale(sale.id)

        assert _sale_state(sale, stock, customer) == before


class TestDeleteSale:
    """Deleting reverses items and the unpaid remainder."""

    def test_delete_returns_items_and_balance(self, db_session, stock, customer):
        sale = create_sale(
            items=[_line(stock[0], 50000), _line(stock[1], 30000)],
            customer_id=customer.id,
            paid_amount=20000,
        )
        sale_id = sale.id

        deleted = delete_sale(sale_id)

        assert deleted["sale_number"] == "S000001"
        assert len(deleted["items"]) == 2
        for item in stock[:2]:
            assert item.status == "available"
            assert item.sale_id is None
            assert item.sale_price is None
            assert item.customer_id is None
            assert item.sold_at is None
        assert customer.balance == 0
        assert db.session.get(Sale, sale_id) is None
        assert db_session.query(SaleItem).filter_by(sale_id=sale_id).count() == 0

    def test_sell_and_delete_again_restores_same_state(self, db_session, stock, customer):
        untouched = [(i.status, i.sale_id, i.sale_price, i.customer_id, i.sold_at) for i in stock]

        for _ in range(2):
            sale = create_sale(items=[_line(stock[0], 50000)], customer_id=customer.id, paid_amount=5000)
            delete_sale(sale.id)

            assert [(i.status, i.sale_id, i.sale_price, i.customer_id, i.sold_at) for i in stock] == untouched
            assert customer.balance == 0

    def test_delete_blocked_when_payments_consumed_balance(self, db_session, stock, customer):
        sale = create_sale(items=[_line(stock[0], 50000)], customer_id=customer.id)
        record_payment(entity_type="customer", entity_id=customer.id, amount=30000)

        with pytest.raises(InsufficientReversibleBalance):
            delete_sale(sale.id)

        assert stock[0].status == "sold"
        assert customer.balance == 20000

    def test_delete_in_closed_session_rejected(self, db_session, stock, register):
        sale = create_sale(items=[_line(stock[0], 100)], paid_amount=100)
        close_session(register.id, actual_balance=10100, closed_by="Test Cashier")

        with pytest.raises(SessionClosed):
            delete_sale(sale.id)

        assert stock[0].status == "sold"
