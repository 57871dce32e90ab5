"""
Purchase Invoice Service - stock intake with supplier payables

WHY: A purchase invoice creates one inventory item per IMEI (its unit price
is the item's cost basis) and, when not fully paid, adds the unpaid
remainder to what the business owes the supplier.

Mirrors the sales service with two differences:
- no supplier is required (an unattributed invoice moves no balance)
- an item that has already been sold can never be un-purchased: removing it
  in an edit, re-pricing it, or deleting its invoice fails with ItemSold
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import InventoryItem, PurchaseInvoice, PurchaseInvoiceItem
from ..constants import DOC_PURCHASE_INVOICE, ENTITY_SUPPLIER, ITEM_SOLD
from ..errors import EntityNotFound, InsufficientReversibleBalance, ItemSold, ValidationError
from ..validation import (
    UNSET,
    format_cents,
    optional_cents,
    optional_datetime,
    optional_id,
    optional_text,
    parse_purchase_lines,
)
from imeipos.time_utils import utcnow
from .balance_service import apply_balance_delta, calculate_totals, get_party
from .concurrency import lock_for_update, run_atomic
from .document_service import next_document_number
from .inventory_service import (
    archive_item,
    create_item,
    ensure_imeis_unused,
    ensure_not_sold,
    ensure_product,
    get_items,
)
from .ledger_service import append_ledger_event
from .permission_service import actor_user_id, guarded
from .register_service import ensure_session_not_closed, resolve_session_for_transaction


def get_purchase(invoice_id: int, *, for_update: bool = False) -> PurchaseInvoice:
    query = db.session.query(PurchaseInvoice).filter_by(id=invoice_id)
    if for_update:
        query = lock_for_update(query)
    invoice = query.first()
    if not invoice:
        raise EntityNotFound("purchase_invoice", invoice_id)
    return invoice


def get_purchase_items(invoice_id: int) -> list[PurchaseInvoiceItem]:
    return (
        db.session.query(PurchaseInvoiceItem)
        .filter_by(invoice_id=invoice_id)
        .order_by(PurchaseInvoiceItem.id)
        .all()
    )


def purchase_to_dict(invoice: PurchaseInvoice) -> dict:
    data = invoice.to_dict()
    data["items"] = [line.to_dict() for line in get_purchase_items(invoice.id)]
    return data


def _ensure_products(lines) -> None:
    for product_id in sorted({line.product_id for line in lines}):
        ensure_product(product_id)


def _receive_lines(invoice: PurchaseInvoice, lines, purchased_at) -> list[InventoryItem]:
    created = []
    for line in lines:
        created.append(create_item(
            product_id=line.product_id,
            imei=line.imei,
            purchase_price=line.unit_price,
            purchase_invoice_id=invoice.id,
            supplier_id=invoice.supplier_id,
            purchased_at=purchased_at,
        ))
    db.session.flush()
    return created


def _write_line(invoice: PurchaseInvoice, item: InventoryItem, unit_price: int) -> None:
    db.session.add(PurchaseInvoiceItem(
        invoice_id=invoice.id,
        product_id=item.product_id,
        item_id=item.id,
        imei=item.imei,
        unit_price=unit_price,
    ))


# =============================================================================
# CREATE
# =============================================================================

@guarded("purchases:write")
def create_purchase(
    *,
    items,
    supplier_id=None,
    discount_amount=0,
    paid_amount=0,
    date=None,
    notes=None,
    actor=None,
) -> PurchaseInvoice:
    """
    Receive serialized items from a supplier.

    Args:
        items: [{"product_id": int, "imei": str, "unit_price": cents}, ...]

    Raises:
        DuplicateImei: an IMEI repeats in the batch or already exists
        EntityNotFound: unknown product or supplier
        NoOpenSession: no open cash register and the deployment requires one
    """
    lines = parse_purchase_lines(items)
    if any(line.item_id is not None for line in lines):
        raise ValidationError("New purchase lines cannot reference existing items")
    supplier_id = optional_id(supplier_id, "supplier_id")
    discount_amount = optional_cents(discount_amount, "discount_amount", default=0)
    paid_amount = optional_cents(paid_amount, "paid_amount", default=0)
    purchase_date = optional_datetime(date, "date") or utcnow()
    notes = optional_text(notes, "notes")

    def _op():
        session = resolve_session_for_transaction(
            current_app.config.get("REQUIRE_OPEN_SESSION_FOR_PURCHASES", True)
        )
        supplier = get_party(ENTITY_SUPPLIER, supplier_id, for_update=True) if supplier_id else None
        _ensure_products(lines)
        ensure_imeis_unused(line.imei for line in lines)
        totals = calculate_totals((line.unit_price for line in lines), discount_amount, paid_amount)

        # ---- all checks passed; apply ----
        invoice = PurchaseInvoice(
            invoice_number=next_document_number(DOC_PURCHASE_INVOICE),
            supplier_id=supplier_id,
            date=purchase_date,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            paid_amount=totals.paid_amount,
            balance_impact=totals.balance_impact,
            payment_type=totals.payment_type,
            cash_register_session_id=session.id if session else None,
            notes=notes,
            created_by_user_id=actor_user_id(actor),
        )
        db.session.add(invoice)
        db.session.flush()

        received = _receive_lines(invoice, lines, purchase_date)
        for line, item in zip(lines, received):
            _write_line(invoice, item, line.unit_price)

        applied = 0
        if supplier is not None:
            applied = apply_balance_delta(supplier, totals.balance_impact)

        append_ledger_event(
            event_type="purchase.created",
            entity_type="purchase_invoice",
            entity_id=invoice.id,
            party_type=ENTITY_SUPPLIER if supplier_id else None,
            party_id=supplier_id,
            balance_delta=applied,
            cash_register_session_id=invoice.cash_register_session_id,
            actor_user_id=actor_user_id(actor),
            note=f"{invoice.invoice_number}: {len(lines)} item(s), total {format_cents(totals.total_amount)}",
        )
        return invoice

    return run_atomic(_op)


# =============================================================================
# COMPREHENSIVE EDIT
# =============================================================================

@guarded("purchases:write")
def edit_purchase(
    invoice_id: int,
    *,
    items=None,
    supplier_id=UNSET,
    discount_amount=None,
    paid_amount=None,
    date=None,
    notes=UNSET,
    actor=None,
) -> PurchaseInvoice:
    """
    Change an invoice's lines, supplier, discount, paid amount, date or notes.

    Lines carrying item_id keep that inventory item (its price may change
    while it is still in stock); lines without item_id receive new items;
    current items missing from the list are archived and detached from the
    invoice.

    Raises:
        SessionClosed: the invoice belongs to a closed cash register session
        ItemSold: a removed or re-priced item has already been sold
        DuplicateImei: a new line's IMEI collides
        ValidationError: a kept line changes IMEI or product, or references
            an item from another invoice
    """
    new_lines = parse_purchase_lines(items) if items is not None else None
    if supplier_id is not UNSET:
        supplier_id = optional_id(supplier_id, "supplier_id")
    discount_amount = optional_cents(discount_amount, "discount_amount")
    paid_amount = optional_cents(paid_amount, "paid_amount")
    new_date = optional_datetime(date, "date")
    if notes is not UNSET:
        notes = optional_text(notes, "notes")

    def _op():
        invoice = get_purchase(invoice_id, for_update=True)
        ensure_session_not_closed(invoice.cash_register_session_id, "a purchase invoice")

        current_lines = get_purchase_items(invoice.id)
        current_by_item = {line.item_id: line for line in current_lines}
        if new_lines is None:
            lines = parse_purchase_lines([
                {
                    "product_id": line.product_id,
                    "imei": line.imei,
                    "unit_price": line.unit_price,
                    "item_id": line.item_id,
                }
                for line in current_lines
            ])
        else:
            lines = new_lines

        kept = [line for line in lines if line.item_id is not None]
        added = [line for line in lines if line.item_id is None]
        for line in kept:
            if line.item_id not in current_by_item:
                raise ValidationError(
                    f"Item {line.item_id} is not on purchase invoice {invoice.invoice_number}",
                    details={"item_id": line.item_id},
                )
        kept_ids = {line.item_id for line in kept}
        removed_ids = sorted(set(current_by_item) - kept_ids)

        stock = get_items(sorted(current_by_item), for_update=True)
        for item_id in removed_ids:
            item = stock[item_id]
            ensure_not_sold(item, f"Cannot remove item with IMEI {item.imei}: it has already been sold")
        for line in kept:
            item = stock[line.item_id]
            if line.imei != item.imei or line.product_id != item.product_id:
                raise ValidationError(
                    f"Cannot change IMEI or product of existing item {item.imei}",
                    details={"item_id": item.id, "imei": item.imei},
                )
            if line.unit_price != item.purchase_price and item.status == ITEM_SOLD:
                raise ItemSold(
                    item.imei,
                    f"Cannot change the cost of item with IMEI {item.imei}: it has already been sold",
                )

        _ensure_products(added)
        ensure_imeis_unused(line.imei for line in added)

        old_supplier_id = invoice.supplier_id
        new_supplier_id = old_supplier_id if supplier_id is UNSET else supplier_id
        totals = calculate_totals(
            (line.unit_price for line in lines),
            invoice.discount_amount if discount_amount is None else discount_amount,
            invoice.paid_amount if paid_amount is None else paid_amount,
        )

        old_supplier = get_party(ENTITY_SUPPLIER, old_supplier_id, for_update=True) if old_supplier_id else None
        new_supplier = old_supplier
        if new_supplier_id != old_supplier_id:
            new_supplier = get_party(ENTITY_SUPPLIER, new_supplier_id, for_update=True) if new_supplier_id else None

        # ---- all checks passed; apply ----
        purchase_date = new_date or invoice.date
        invoice.supplier_id = new_supplier_id

        for line in current_lines:
            db.session.delete(line)
        db.session.flush()
        for item_id in removed_ids:
            archive_item(stock[item_id], detach_invoice=True)

        for line in kept:
            item = stock[line.item_id]
            item.purchase_price = line.unit_price
            item.supplier_id = new_supplier_id
            item.purchased_at = purchase_date
        received = dict(zip((line.imei for line in added), _receive_lines(invoice, added, purchase_date)))
        for line in lines:
            item = stock[line.item_id] if line.item_id is not None else received[line.imei]
            _write_line(invoice, item, line.unit_price)

        deltas = {}
        if old_supplier is not None:
            deltas[old_supplier_id] = [old_supplier, -invoice.balance_impact]
        if new_supplier is not None:
            deltas.setdefault(new_supplier_id, [new_supplier, 0])[1] += totals.balance_impact
        for party_id, (party, delta) in deltas.items():
            applied = apply_balance_delta(party, delta)
            append_ledger_event(
                event_type="purchase.edited",
                entity_type="purchase_invoice",
                entity_id=invoice.id,
                party_type=ENTITY_SUPPLIER,
                party_id=party_id,
                balance_delta=applied,
                cash_register_session_id=invoice.cash_register_session_id,
                actor_user_id=actor_user_id(actor),
                note=f"{invoice.invoice_number}: balance impact "
                     f"{format_cents(invoice.balance_impact)} -> {format_cents(totals.balance_impact)}",
            )
        if not deltas:
            append_ledger_event(
                event_type="purchase.edited",
                entity_type="purchase_invoice",
                entity_id=invoice.id,
                cash_register_session_id=invoice.cash_register_session_id,
                actor_user_id=actor_user_id(actor),
                note=f"{invoice.invoice_number}: +{len(added)}/-{len(removed_ids)} item(s)",
            )

        invoice.date = purchase_date
        invoice.subtotal = totals.subtotal
        invoice.discount_amount = totals.discount_amount
        invoice.total_amount = totals.total_amount
        invoice.paid_amount = totals.paid_amount
        invoice.balance_impact = totals.balance_impact
        invoice.payment_type = totals.payment_type
        if notes is not UNSET:
            invoice.notes = notes
        return invoice

    return run_atomic(_op)


# =============================================================================
# DELETE
# =============================================================================

@guarded("purchases:delete")
def delete_purchase(invoice_id: int, *, actor=None) -> dict:
    """
    Delete an invoice, archiving its items and reversing its payable.

    Refused when any of its items has been sold, or when the supplier balance
    no longer covers the invoice's unpaid amount.

    Returns:
        The deleted invoice as a dict (with its lines)
    """
    def _op():
        invoice = get_purchase(invoice_id, for_update=True)
        ensure_session_not_closed(invoice.cash_register_session_id, "a purchase invoice")

        lines = get_purchase_items(invoice.id)
        stock = get_items([line.item_id for line in lines], for_update=True)
        for line in lines:
            item = stock[line.item_id]
            ensure_not_sold(item, f"Cannot delete purchase: item with IMEI {item.imei} has already been sold")

        supplier = None
        if invoice.supplier_id and invoice.balance_impact > 0:
            supplier = get_party(ENTITY_SUPPLIER, invoice.supplier_id, for_update=True)
            if (supplier.balance or 0) < invoice.balance_impact:
                raise InsufficientReversibleBalance(
                    f"Cannot delete purchase {invoice.invoice_number}: supplier balance "
                    f"{format_cents(supplier.balance or 0)} is less than its unpaid amount "
                    f"{format_cents(invoice.balance_impact)}",
                    details={
                        "purchase_invoice_id": invoice.id,
                        "supplier_id": supplier.id,
                        "supplier_balance": supplier.balance or 0,
                        "balance_impact": invoice.balance_impact,
                    },
                )
        snapshot = purchase_to_dict(invoice)

        # ---- all checks passed; apply ----
        for line in lines:
            db.session.delete(line)
        db.session.flush()
        for line in lines:
            archive_item(stock[line.item_id], detach_invoice=True)

        applied = 0
        if supplier is not None:
            applied = apply_balance_delta(supplier, -invoice.balance_impact, floor_zero=True)

        append_ledger_event(
            event_type="purchase.deleted",
            entity_type="purchase_invoice",
            entity_id=invoice.id,
            party_type=ENTITY_SUPPLIER if invoice.supplier_id else None,
            party_id=invoice.supplier_id,
            balance_delta=applied,
            cash_register_session_id=invoice.cash_register_session_id,
            actor_user_id=actor_user_id(actor),
            note=f"{invoice.invoice_number}: {len(lines)} item(s) archived",
        )
        db.session.delete(invoice)
        return snapshot

    return run_atomic(_op)
