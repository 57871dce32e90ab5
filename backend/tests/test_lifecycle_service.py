# Overview: Pytest coverage for archive, restore and hard-delete cascades.

import pytest
from conftest import actor, receive_stock
from imeipos.extensions import db
from imeipos.models import Customer, LedgerEvent, Payment, PurchaseInvoice, Sale, SaleItem, Supplier
from imeipos.errors import EntityNotFound, ItemSold, PermissionDenied, SessionClosed, ValidationError
from imeipos.services.lifecycle_service import (
    archive_entity,
    hard_delete_entity,
    list_archived,
    restore_entity,
)
from imeipos.services.payment_service import record_payment
from imeipos.services.register_service import close_session, compute_cash_summary
from imeipos.services.sales_service import create_sale


class TestArchive:
    """Archiving hides rows without moving balances."""

    def test_archive_and_restore_customer(self, db_session, customer):
        customer.balance = 1234
        db_session.commit()

        archive_entity("customer", customer.id)
        assert customer.archived is True
        assert customer.balance == 1234
        assert [c.id for c in list_archived("customer")] == [customer.id]

        restore_entity("customer", customer.id)
        assert customer.archived is False
        assert list_archived("customer") == []

    def test_archive_sold_item_rejected(self, db_session, stock):
        create_sale(items=[{"item_id": stock[0].id, "unit_price": 100}], paid_amount=100)

        with pytest.raises(ItemSold):
            archive_entity("item", stock[0].id)

    def test_archived_sale_still_counts_in_register(self, db_session, stock, register):
        sale = create_sale(items=[{"item_id": stock[0].id, "unit_price": 700}], paid_amount=700)
        archive_entity("sale", sale.id)

        assert compute_cash_summary(register).sales_cash == 700

    def test_unknown_kind(self, db_session):
        with pytest.raises(ValidationError):
            archive_entity("register", 1)

    def test_missing_row(self, db_session):
        with pytest.raises(EntityNotFound):
            archive_entity("customer", 999)

    def test_archive_requires_delete_permission(self, db_session, customer):
        with pytest.raises(PermissionDenied):
            archive_entity("customer", customer.id, actor=actor("cashier"))

    def test_restore_requires_write_permission(self, db_session, customer):
        archive_entity("customer", customer.id)

        restore_entity("customer", customer.id, actor=actor("manager"))

        assert customer.archived is False


class TestHardDelete:
    """Destructive deletes cascade and report the balance they orphan."""

    def test_hard_delete_customer(self, db_session, stock, customer):
        sale = create_sale(items=[{"item_id": stock[0].id, "unit_price": 50000}], customer_id=customer.id)
        record_payment(entity_type="customer", entity_id=customer.id, amount=20000)
        customer_id = customer.id

        summary = hard_delete_entity("customer", customer_id)

        assert summary["payments_deleted"] == 1
        assert summary["sales_detached"] == 1
        assert summary["items_detached"] == 1
        assert summary["orphaned_balance"] == 30000
        assert db.session.get(Customer, customer_id) is None
        assert db_session.query(Payment).count() == 0
        assert sale.customer_id is None
        assert stock[0].customer_id is None
        assert stock[0].status == "sold"
        event = db_session.query(LedgerEvent).filter_by(event_type="customer.hard_deleted").one()
        assert "orphaned balance 300.00" in event.note

    def test_hard_delete_supplier(self, db_session, register, product, supplier):
        invoice, items = receive_stock(product, ["111"], supplier=supplier, paid_amount=0)
        supplier_id = supplier.id

        summary = hard_delete_entity("supplier", supplier_id)

        assert summary["purchases_detached"] == 1
        assert summary["orphaned_balance"] == 20000
        assert db.session.get(Supplier, supplier_id) is None
        assert invoice.supplier_id is None
        assert items[0].supplier_id is None

    def test_hard_delete_sale_releases_items(self, db_session, stock, customer):
        sale = create_sale(items=[{"item_id": stock[0].id, "unit_price": 50000}], customer_id=customer.id)
        sale_id = sale.id

        summary = hard_delete_entity("sale", sale_id)

        assert summary["items_released"] == 1
        assert summary["orphaned_balance"] == 50000
        assert db.session.get(Sale, sale_id) is None
        assert db_session.query(SaleItem).count() == 0
        assert stock[0].status == "available"
        # Balance contribution is not unwound by a hard delete
        assert customer.balance == 50000

    def test_hard_delete_sale_in_closed_session(self, db_session, stock, register):
        sale = create_sale(items=[{"item_id": stock[0].id, "unit_price": 100}], paid_amount=100)
        close_session(register.id, actual_balance=10100, closed_by="Test Cashier")

        with pytest.raises(SessionClosed):
            hard_delete_entity("sale", sale.id)

    def test_hard_delete_purchase(self, db_session, register, product):
        invoice, items = receive_stock(product, ["111", "222"])
        invoice_id = invoice.id

        summary = hard_delete_entity("purchase", invoice_id)

        assert summary["items_archived"] == 2
        assert db.session.get(PurchaseInvoice, invoice_id) is None
        assert all(item.archived and item.purchase_invoice_id is None for item in items)

    def test_hard_delete_purchase_with_sold_item(self, db_session, register, product):
        invoice, items = receive_stock(product, ["111"])
        create_sale(items=[{"item_id": items[0].id, "unit_price": 100}], paid_amount=100)

        with pytest.raises(ItemSold):
            hard_delete_entity("purchase", invoice.id)

        assert db.session.get(PurchaseInvoice, invoice.id) is not None

    def test_hard_delete_unsupported_kind(self, db_session, stock):
        with pytest.raises(ValidationError):
            hard_delete_entity("item", stock[0].id)

    def test_hard_delete_requires_delete_permission(self, db_session, customer):
        with pytest.raises(PermissionDenied):
            hard_delete_entity("customer", customer.id, actor=actor("manager"))
