# Overview: Pytest coverage for balance direction rules, ledger statements and drift audit.

"""
Balance Ledger Tests

Covers:
- Direction and cash-effect tables
- Totals derivation (discount/paid bounds, payment type)
- Statement ordering, running balance and agreement with the cached balance
- audit_balances() drift detection and repair
"""

import pytest
from conftest import receive_stock
from imeipos.models import LedgerEvent
from imeipos.errors import ValidationError
from imeipos.services.balance_service import (
    apply_balance_delta,
    audit_balances,
    build_statement,
    calculate_totals,
    line_profit,
    payment_balance_delta,
    payment_cash_effect,
    recompute_balance,
)
from imeipos.services.payment_service import edit_payment, record_payment
from imeipos.services.purchase_service import edit_purchase
from imeipos.services.sales_service import create_sale, delete_sale, edit_sale


class TestDirectionRules:

    @pytest.mark.parametrize("entity_type,transaction_type,expected", [
        ("customer", "payment", -100),
        ("customer", "refund", 100),
        ("supplier", "payment", -100),
        ("supplier", "refund", 100),
    ])
    def test_balance_delta(self, entity_type, transaction_type, expected):
        assert payment_balance_delta(entity_type, transaction_type, 100) == expected

    @pytest.mark.parametrize("entity_type,transaction_type,expected", [
        ("customer", "payment", 100),
        ("customer", "refund", -100),
        ("supplier", "payment", -100),
        ("supplier", "refund", 100),
    ])
    def test_cash_effect(self, entity_type, transaction_type, expected):
        assert payment_cash_effect(entity_type, transaction_type, 100) == expected

    def test_unknown_transaction_type(self):
        with pytest.raises(ValidationError):
            payment_balance_delta("customer", "chargeback", 100)


class TestTotals:

    def test_totals(self):
        totals = calculate_totals([50000, 30000], 5000, 40000)

        assert totals.subtotal == 80000
        assert totals.total_amount == 75000
        assert totals.balance_impact == 35000
        assert totals.payment_type == "partial"

    def test_full_discount_is_fully_paid(self):
        totals = calculate_totals([5000], 5000, 0)

        assert totals.total_amount == 0
        assert totals.payment_type == "full"
        assert totals.balance_impact == 0

    def test_line_profit_never_negative(self):
        assert line_profit(15000, 20000) == 0
        assert line_profit(25000, 20000) == 5000

    def test_floor_zero_reports_applied_change(self, db_session, customer):
        customer.balance = 3000

        applied = apply_balance_delta(customer, -5000, floor_zero=True)

        assert customer.balance == 0
        assert applied == -3000


class TestStatement:

    def test_statement_running_balance(self, db_session, register, product, customer):
        _, items = receive_stock(product, ["111", "222"])
        create_sale(
            items=[{"item_id": items[0].id, "unit_price": 50000}],
            customer_id=customer.id,
            paid_amount=10000,
            date="2026-01-01T09:00:00Z",
        )
        record_payment(
            entity_type="customer", entity_id=customer.id, amount=15000,
            reference="RCPT-1", date="2026-01-02T09:00:00Z",
        )
        record_payment(
            entity_type="customer", entity_id=customer.id, amount=2000,
            transaction_type="refund", date="2026-01-03T09:00:00Z",
        )

        statement = build_statement("customer", customer.id)

        # Most recent first
        assert [e.type for e in statement.entries] == ["payment", "payment", "sale"]
        refund, payment, sale = statement.entries
        assert (sale.debit, sale.credit, sale.running_balance) == (40000, 0, 40000)
        assert sale.description == "Sale S000001"
        assert (payment.debit, payment.credit, payment.running_balance) == (0, 15000, 25000)
        assert payment.description == "Payment - cash (RCPT-1)"
        assert (refund.debit, refund.credit, refund.running_balance) == (2000, 0, 27000)
        assert statement.closing_balance == 27000
        assert statement.in_agreement

    def test_fully_paid_sale_not_listed(self, db_session, register, product, customer):
        _, items = receive_stock(product, ["111"])
        create_sale(items=[{"item_id": items[0].id, "unit_price": 500}], customer_id=customer.id, paid_amount=500)

        statement = build_statement("customer", customer.id)

        assert statement.entries == []
        assert statement.closing_balance == 0

    def test_supplier_statement(self, db_session, register, product, supplier):
        receive_stock(product, ["111"], supplier=supplier, paid_amount=5000)
        record_payment(entity_type="supplier", entity_id=supplier.id, amount=5000)

        statement = build_statement("supplier", supplier.id)

        assert statement.entries[-1].description == "Purchase PI000001"
        assert statement.closing_balance == 10000
        assert statement.in_agreement

    def test_cache_matches_ledger_after_mixed_history(
        self, db_session, register, product, customer, other_customer, supplier
    ):
        """Edits, deletes, payment changes and refunds keep cache and ledger in step."""
        invoice, items = receive_stock(product, ["111", "222", "333", "444"], supplier=supplier, paid_amount=30000)
        first = create_sale(
            items=[{"item_id": items[0].id, "unit_price": 40000}, {"item_id": items[1].id, "unit_price": 35000}],
            customer_id=customer.id,
            discount_amount=5000,
            paid_amount=20000,
        )
        second = create_sale(
            items=[{"item_id": items[2].id, "unit_price": 30000}],
            customer_id=other_customer.id,
        )
        payment = record_payment(entity_type="customer", entity_id=customer.id, amount=10000)
        record_payment(entity_type="customer", entity_id=customer.id, amount=3000, transaction_type="refund")
        edit_sale(first.id, items=[{"item_id": items[0].id, "unit_price": 45000}], paid_amount=5000)
        edit_sale(second.id, customer_id=customer.id)
        edit_payment(payment.id, amount=12000)
        delete_sale(second.id)
        edit_purchase(invoice.id, paid_amount=40000)
        record_payment(entity_type="supplier", entity_id=supplier.id, amount=7000)

        for entity_type, party in (("customer", customer), ("customer", other_customer), ("supplier", supplier)):
            assert recompute_balance(entity_type, party.id) == party.balance

        assert customer.balance == 40000 - 5000 - 12000 + 3000
        assert other_customer.balance == 0
        assert supplier.balance == 80000 - 40000 - 7000


class TestAudit:

    def test_clean_books(self, db_session, customer, supplier):
        record_payment(entity_type="customer", entity_id=customer.id, amount=100, transaction_type="refund")

        assert audit_balances() == []

    def test_detects_drift_without_fixing(self, db_session, customer):
        customer.balance = 777
        db_session.commit()

        drifts = audit_balances()

        assert len(drifts) == 1
        assert drifts[0].drift == 777
        assert drifts[0].ledger_balance == 0
        assert customer.balance == 777
        assert db_session.query(LedgerEvent).filter_by(event_type="balance.drift_detected").count() == 1

    def test_fix_rewrites_cache(self, db_session, customer):
        record_payment(entity_type="customer", entity_id=customer.id, amount=500, transaction_type="refund")
        customer.balance = 0
        db_session.commit()

        drifts = audit_balances(fix=True)

        assert [d.to_dict()["drift"] for d in drifts] == [-500]
        assert customer.balance == 500
        event = db_session.query(LedgerEvent).filter_by(event_type="balance.drift_corrected").one()
        assert event.balance_delta == 500
        assert audit_balances() == []
