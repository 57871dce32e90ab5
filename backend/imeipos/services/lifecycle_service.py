# Overview: Archive / restore / hard-delete for ledger entities.

"""
Entity Lifecycle Service

================================================================================
PURPOSE: Soft-delete (archive) and destructive delete (hard-delete) of
customers, suppliers, products, items, sales, purchases, payments, expenses
================================================================================

ARCHIVE / RESTORE:
    archived=True hides a row from default listings. Historical transactions
    are untouched and balances never move, so both directions are always
    safe. The one exception is inventory: a sold item cannot be archived.

HARD DELETE (customer, supplier, sale, purchase):
    Destructive and cascading:
    - customer/supplier: their payments are deleted, their sales/purchases
      and items keep existing with the ownership link set to NULL
    - sale: lines deleted, items returned to stock
    - purchase: lines deleted, items archived and detached (refused if any
      item is sold)

    KNOWN LIMITATION: hard-delete does not unwind balance effects on the
    counterparty. Whatever balance contribution is orphaned is logged as a
    warning and recorded in a *.hard_deleted ledger event so the audit job
    and the event trail show it.

PERMISSIONS:
    archive / hard-delete need "<area>:delete", restore needs "<area>:write".
================================================================================
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import (
    Customer,
    Expense,
    InventoryItem,
    Payment,
    Product,
    PurchaseInvoice,
    PurchaseInvoiceItem,
    Sale,
    SaleItem,
    Supplier,
)
from ..constants import ENTITY_CUSTOMER, ENTITY_SUPPLIER
from ..errors import EntityNotFound, ValidationError
from ..validation import format_cents
from .concurrency import lock_for_update, run_atomic
from .inventory_service import archive_item, ensure_not_sold, release_item
from .ledger_service import append_ledger_event
from .permission_service import actor_user_id, require_permission
from .register_service import ensure_session_not_closed

# kind -> (model, permission area)
ARCHIVABLE = {
    "customer": (Customer, "customers"),
    "supplier": (Supplier, "suppliers"),
    "product": (Product, "products"),
    "item": (InventoryItem, "inventory"),
    "sale": (Sale, "sales"),
    "purchase": (PurchaseInvoice, "purchases"),
    "payment": (Payment, "payments"),
    "expense": (Expense, "expenses"),
}

HARD_DELETABLE = ("customer", "supplier", "sale", "purchase")


def _resolve_kind(kind: str):
    if kind not in ARCHIVABLE:
        raise ValidationError(f"Invalid entity kind: {kind}. Must be one of {sorted(ARCHIVABLE)}")
    return ARCHIVABLE[kind]


def _load(model, kind: str, entity_id: int):
    row = lock_for_update(db.session.query(model).filter_by(id=entity_id)).first()
    if not row:
        raise EntityNotFound(kind, entity_id)
    return row


# =============================================================================
# ARCHIVE / RESTORE
# =============================================================================

def archive_entity(kind: str, entity_id: int, *, actor=None):
    model, area = _resolve_kind(kind)
    require_permission(actor, f"{area}:delete")

    def _op():
        row = _load(model, kind, entity_id)
        if kind == "item":
            archive_item(row)
        else:
            row.archived = True
        append_ledger_event(
            event_type=f"{kind}.archived",
            entity_type=kind,
            entity_id=row.id,
            actor_user_id=actor_user_id(actor),
        )
        return row

    return run_atomic(_op)


def restore_entity(kind: str, entity_id: int, *, actor=None):
    model, area = _resolve_kind(kind)
    require_permission(actor, f"{area}:write")

    def _op():
        row = _load(model, kind, entity_id)
        row.archived = False
        append_ledger_event(
            event_type=f"{kind}.restored",
            entity_type=kind,
            entity_id=row.id,
            actor_user_id=actor_user_id(actor),
        )
        return row

    return run_atomic(_op)


def list_archived(kind: str) -> list:
    model, _ = _resolve_kind(kind)
    return db.session.query(model).filter_by(archived=True).order_by(model.id.desc()).all()


# =============================================================================
# HARD DELETE
# =============================================================================

def hard_delete_entity(kind: str, entity_id: int, *, actor=None) -> dict:
    """
    Permanently delete a customer, supplier, sale or purchase.

    Returns:
        Summary of what was removed or detached
    """
    if kind not in HARD_DELETABLE:
        raise ValidationError(f"Hard delete is not supported for {kind}. Must be one of {list(HARD_DELETABLE)}")
    _, area = ARCHIVABLE[kind]
    require_permission(actor, f"{area}:delete")

    handlers = {
        "customer": _hard_delete_customer,
        "supplier": _hard_delete_supplier,
        "sale": _hard_delete_sale,
        "purchase": _hard_delete_purchase,
    }
    summary = run_atomic(lambda: handlers[kind](entity_id, actor))
    if summary.get("orphaned_balance"):
        current_app.logger.warning(
            "Hard-deleted %s %s left %s of balance contribution unreversed",
            kind, entity_id, format_cents(summary["orphaned_balance"]),
        )
    return summary


def _orphan_event(kind, entity_id, party_type, party_id, orphaned, actor, note):
    append_ledger_event(
        event_type=f"{kind}.hard_deleted",
        entity_type=kind,
        entity_id=entity_id,
        party_type=party_type,
        party_id=party_id,
        actor_user_id=actor_user_id(actor),
        note=f"{note}; orphaned balance {format_cents(orphaned)}",
    )


def _hard_delete_party(model, party_type, entity_id, actor, *, documents, item_column, document_label):
    party = _load(model, party_type, entity_id)
    doc_model, doc_column = documents

    payments = db.session.query(Payment).filter_by(entity_type=party_type, entity_id=party.id).all()
    docs = db.session.query(doc_model).filter(doc_column == party.id).all()
    items = lock_for_update(db.session.query(InventoryItem).filter(item_column == party.id)).all()

    for payment in payments:
        db.session.delete(payment)
    for item in items:
        setattr(item, item_column.key, None)
    for doc in docs:
        setattr(doc, doc_column.key, None)

    orphaned = party.balance or 0
    summary = {
        "kind": party_type,
        "id": party.id,
        "payments_deleted": len(payments),
        f"{document_label}_detached": len(docs),
        "items_detached": len(items),
        "orphaned_balance": orphaned,
    }
    _orphan_event(
        party_type, party.id, party_type, party.id, orphaned, actor,
        f"{party.name}: {len(payments)} payment(s) deleted, {len(docs)} {document_label} detached",
    )
    db.session.flush()
    db.session.delete(party)
    return summary


def _hard_delete_customer(entity_id, actor):
    return _hard_delete_party(
        Customer, ENTITY_CUSTOMER, entity_id, actor,
        documents=(Sale, Sale.customer_id),
        item_column=InventoryItem.customer_id,
        document_label="sales",
    )


def _hard_delete_supplier(entity_id, actor):
    return _hard_delete_party(
        Supplier, ENTITY_SUPPLIER, entity_id, actor,
        documents=(PurchaseInvoice, PurchaseInvoice.supplier_id),
        item_column=InventoryItem.supplier_id,
        document_label="purchases",
    )


def _hard_delete_sale(entity_id, actor):
    sale = _load(Sale, "sale", entity_id)
    ensure_session_not_closed(sale.cash_register_session_id, "a sale")

    lines = db.session.query(SaleItem).filter_by(sale_id=sale.id).all()
    items = lock_for_update(db.session.query(InventoryItem).filter_by(sale_id=sale.id)).all()

    for line in lines:
        db.session.delete(line)
    for item in items:
        release_item(item, sale.id)

    orphaned = sale.balance_impact if sale.customer_id else 0
    _orphan_event(
        "sale", sale.id, ENTITY_CUSTOMER if sale.customer_id else None, sale.customer_id, orphaned, actor,
        f"{sale.sale_number}: {len(items)} item(s) returned to stock",
    )
    summary = {
        "kind": "sale",
        "id": sale.id,
        "lines_deleted": len(lines),
        "items_released": len(items),
        "orphaned_balance": orphaned,
    }
    db.session.flush()
    db.session.delete(sale)
    return summary


def _hard_delete_purchase(entity_id, actor):
    invoice = _load(PurchaseInvoice, "purchase", entity_id)
    ensure_session_not_closed(invoice.cash_register_session_id, "a purchase invoice")

    items = lock_for_update(
        db.session.query(InventoryItem).filter_by(purchase_invoice_id=invoice.id)
    ).all()
    for item in items:
        ensure_not_sold(item, f"Cannot delete purchase: item with IMEI {item.imei} has already been sold")

    lines = db.session.query(PurchaseInvoiceItem).filter_by(invoice_id=invoice.id).all()
    for line in lines:
        db.session.delete(line)
    db.session.flush()
    for item in items:
        archive_item(item, detach_invoice=True)

    orphaned = invoice.balance_impact if invoice.supplier_id else 0
    _orphan_event(
        "purchase", invoice.id, ENTITY_SUPPLIER if invoice.supplier_id else None, invoice.supplier_id,
        orphaned, actor, f"{invoice.invoice_number}: {len(items)} item(s) archived",
    )
    summary = {
        "kind": "purchase",
        "id": invoice.id,
        "lines_deleted": len(lines),
        "items_archived": len(items),
        "orphaned_balance": orphaned,
    }
    db.session.flush()
    db.session.delete(invoice)
    return summary
