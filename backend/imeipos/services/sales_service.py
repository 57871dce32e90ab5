"""
Sales Service - serialized-item sales with customer receivables

WHY: A sale moves specific IMEI units out of stock and, when not fully paid,
puts the unpaid remainder (balance_impact) on the customer's balance. Both
effects must be applied together and reversed exactly on edit/delete.

EVERY operation:
1. Validates all inputs and preconditions (items, customer, totals, session)
2. Only then applies item transitions, balance deltas and row changes
3. Runs inside run_atomic, so any failure rolls everything back

BALANCE RULE: balance_impact is carried exactly once on the customer balance.
Edits apply the net difference; deletes subtract it (guarded so the balance
cannot go below what has already been paid against it).
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleItem
from ..constants import DOC_SALE, ENTITY_CUSTOMER
from ..errors import CustomerRequired, EntityNotFound, InsufficientReversibleBalance
from ..validation import (
    UNSET,
    format_cents,
    optional_cents,
    optional_datetime,
    optional_id,
    optional_text,
    parse_sale_lines,
    require_payment_method,
)
from imeipos.time_utils import utcnow
from .balance_service import apply_balance_delta, calculate_totals, get_party, line_profit
from .concurrency import lock_for_update, run_atomic
from .document_service import next_document_number
from .inventory_service import ensure_available, get_items, release_item, sell_item
from .ledger_service import append_ledger_event
from .permission_service import actor_user_id, guarded
from .register_service import ensure_session_not_closed, resolve_session_for_transaction


def get_sale(sale_id: int, *, for_update: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if for_update:
        query = lock_for_update(query)
    sale = query.first()
    if not sale:
        raise EntityNotFound("sale", sale_id)
    return sale


def get_sale_items(sale_id: int) -> list[SaleItem]:
    return db.session.query(SaleItem).filter_by(sale_id=sale_id).order_by(SaleItem.id).all()


def sale_to_dict(sale: Sale) -> dict:
    data = sale.to_dict()
    data["items"] = [line.to_dict() for line in get_sale_items(sale.id)]
    return data


def _write_lines(sale: Sale, lines, items) -> int:
    """Insert SaleItems snapshotting each item's cost basis; returns total profit."""
    profit = 0
    for line in lines:
        item = items[line.item_id]
        line_gain = line_profit(line.unit_price, item.purchase_price)
        db.session.add(SaleItem(
            sale_id=sale.id,
            product_id=item.product_id,
            item_id=item.id,
            imei=item.imei,
            purchase_price=item.purchase_price,
            unit_price=line.unit_price,
            profit=line_gain,
        ))
        profit += line_gain
    return profit


# =============================================================================
# CREATE
# =============================================================================

@guarded("sales:write")
def create_sale(
    *,
    items,
    customer_id=None,
    discount_amount=0,
    paid_amount=0,
    payment_method="cash",
    date=None,
    notes=None,
    actor=None,
) -> Sale:
    """
    Sell one or more available items.

    Args:
        items: [{"item_id": int, "unit_price": cents}, ...] (at least one)
        customer_id: None for a walk-in sale (must then be fully paid)
        discount_amount, paid_amount: cents
        payment_method: cash, card, transfer or check

    Raises:
        ItemNotAvailable: an item is sold or archived (names the IMEI)
        CustomerRequired: unpaid remainder with no customer
        NoOpenSession: no open cash register and the deployment requires one
        ValidationError: bad amounts, discount > subtotal, paid > total
    """
    lines = parse_sale_lines(items)
    customer_id = optional_id(customer_id, "customer_id")
    discount_amount = optional_cents(discount_amount, "discount_amount", default=0)
    paid_amount = optional_cents(paid_amount, "paid_amount", default=0)
    payment_method = require_payment_method(payment_method)
    sale_date = optional_datetime(date, "date") or utcnow()
    notes = optional_text(notes, "notes")

    def _op():
        session = resolve_session_for_transaction(
            current_app.config.get("REQUIRE_OPEN_SESSION_FOR_SALES", True)
        )
        customer = get_party(ENTITY_CUSTOMER, customer_id, for_update=True) if customer_id else None

        stock = get_items([line.item_id for line in lines], for_update=True)
        for line in lines:
            ensure_available(stock[line.item_id])

        totals = calculate_totals((line.unit_price for line in lines), discount_amount, paid_amount)
        if totals.balance_impact > 0 and customer is None:
            raise CustomerRequired()

        # ---- all checks passed; apply ----
        sale = Sale(
            sale_number=next_document_number(DOC_SALE),
            customer_id=customer_id,
            date=sale_date,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            paid_amount=totals.paid_amount,
            balance_impact=totals.balance_impact,
            payment_type=totals.payment_type,
            payment_method=payment_method,
            cash_register_session_id=session.id if session else None,
            notes=notes,
            created_by_user_id=actor_user_id(actor),
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            sell_item(
                stock[line.item_id],
                sale_id=sale.id,
                sale_price=line.unit_price,
                customer_id=customer_id,
                sold_at=sale_date,
            )
        sale.profit = _write_lines(sale, lines, stock)

        applied = 0
        if customer is not None:
            applied = apply_balance_delta(customer, totals.balance_impact)

        append_ledger_event(
            event_type="sale.created",
            entity_type="sale",
            entity_id=sale.id,
            party_type=ENTITY_CUSTOMER if customer_id else None,
            party_id=customer_id,
            balance_delta=applied,
            cash_register_session_id=sale.cash_register_session_id,
            actor_user_id=actor_user_id(actor),
            note=f"{sale.sale_number}: {len(lines)} item(s), total {format_cents(totals.total_amount)}",
        )
        return sale

    return run_atomic(_op)


# =============================================================================
# COMPREHENSIVE EDIT
# =============================================================================

@guarded("sales:write")
def edit_sale(
    sale_id: int,
    *,
    items=None,
    customer_id=UNSET,
    discount_amount=None,
    paid_amount=None,
    payment_method=None,
    date=None,
    notes=UNSET,
    actor=None,
) -> Sale:
    """
    Change any of a sale's items, prices, customer, discount, paid amount,
    date, method or notes.

    Omitted fields keep their current value (customer_id=None makes the sale
    a walk-in). Totals are recomputed from the full resulting item set.

    Raises:
        SessionClosed: the sale belongs to a closed cash register session
        ItemNotAvailable: an added item is not available
        CustomerRequired: unpaid remainder with no customer
    """
    new_lines = parse_sale_lines(items) if items is not None else None
    if customer_id is not UNSET:
        customer_id = optional_id(customer_id, "customer_id")
    discount_amount = optional_cents(discount_amount, "discount_amount")
    paid_amount = optional_cents(paid_amount, "paid_amount")
    if payment_method is not None:
        payment_method = require_payment_method(payment_method)
    new_date = optional_datetime(date, "date")
    if notes is not UNSET:
        notes = optional_text(notes, "notes")

    def _op():
        sale = get_sale(sale_id, for_update=True)
        ensure_session_not_closed(sale.cash_register_session_id, "a sale")

        current_lines = get_sale_items(sale.id)
        if new_lines is None:
            lines = parse_sale_lines(
                [{"item_id": line.item_id, "unit_price": line.unit_price} for line in current_lines]
            )
        else:
            lines = new_lines

        current_ids = {line.item_id for line in current_lines}
        requested_ids = {line.item_id for line in lines}
        to_remove = current_ids - requested_ids
        to_add = requested_ids - current_ids

        stock = get_items(sorted(current_ids | requested_ids), for_update=True)
        for line in lines:
            if line.item_id in to_add:
                ensure_available(stock[line.item_id])

        old_customer_id = sale.customer_id
        new_customer_id = old_customer_id if customer_id is UNSET else customer_id

        totals = calculate_totals(
            (line.unit_price for line in lines),
            sale.discount_amount if discount_amount is None else discount_amount,
            sale.paid_amount if paid_amount is None else paid_amount,
        )
        if totals.balance_impact > 0 and new_customer_id is None:
            raise CustomerRequired()

        old_customer = get_party(ENTITY_CUSTOMER, old_customer_id, for_update=True) if old_customer_id else None
        new_customer = old_customer
        if new_customer_id != old_customer_id:
            new_customer = get_party(ENTITY_CUSTOMER, new_customer_id, for_update=True) if new_customer_id else None

        # ---- all checks passed; apply ----
        sale_date = new_date or sale.date
        for item_id in sorted(to_remove):
            release_item(stock[item_id], sale.id)
        for line in lines:
            item = stock[line.item_id]
            if line.item_id in to_add:
                sell_item(
                    item,
                    sale_id=sale.id,
                    sale_price=line.unit_price,
                    customer_id=new_customer_id,
                    sold_at=sale_date,
                )
            else:
                item.sale_price = line.unit_price
                item.customer_id = new_customer_id
                item.sold_at = sale_date

        for line in current_lines:
            db.session.delete(line)
        db.session.flush()
        profit = _write_lines(sale, lines, stock)

        deltas = {}
        if old_customer is not None:
            deltas[old_customer_id] = [old_customer, -sale.balance_impact]
        if new_customer is not None:
            deltas.setdefault(new_customer_id, [new_customer, 0])[1] += totals.balance_impact
        for party_id, (party, delta) in deltas.items():
            applied = apply_balance_delta(party, delta)
            append_ledger_event(
                event_type="sale.edited",
                entity_type="sale",
                entity_id=sale.id,
                party_type=ENTITY_CUSTOMER,
                party_id=party_id,
                balance_delta=applied,
                cash_register_session_id=sale.cash_register_session_id,
                actor_user_id=actor_user_id(actor),
                note=f"{sale.sale_number}: balance impact "
                     f"{format_cents(sale.balance_impact)} -> {format_cents(totals.balance_impact)}",
            )
        if not deltas:
            append_ledger_event(
                event_type="sale.edited",
                entity_type="sale",
                entity_id=sale.id,
                cash_register_session_id=sale.cash_register_session_id,
                actor_user_id=actor_user_id(actor),
                note=f"{sale.sale_number}: +{len(to_add)}/-{len(to_remove)} item(s)",
            )

        sale.customer_id = new_customer_id
        sale.date = sale_date
        sale.subtotal = totals.subtotal
        sale.discount_amount = totals.discount_amount
        sale.total_amount = totals.total_amount
        sale.paid_amount = totals.paid_amount
        sale.balance_impact = totals.balance_impact
        sale.payment_type = totals.payment_type
        sale.profit = profit
        if payment_method is not None:
            sale.payment_method = payment_method
        if notes is not UNSET:
            sale.notes = notes
        return sale

    return run_atomic(_op)


# =============================================================================
# DELETE
# =============================================================================

@guarded("sales:delete")
def delete_sale(sale_id: int, *, actor=None) -> dict:
    """
    Delete a sale and reverse every effect it had.

    Items go back to stock and balance_impact comes off the customer. The
    customer must still carry at least balance_impact: if payments have
    already consumed it, deleting the sale would leave those payments
    pointing at debt that no longer exists.

    Returns:
        The deleted sale as a dict (with its lines)

    Raises:
        SessionClosed, InsufficientReversibleBalance
    """
    def _op():
        sale = get_sale(sale_id, for_update=True)
        ensure_session_not_closed(sale.cash_register_session_id, "a sale")

        customer = None
        if sale.customer_id and sale.balance_impact > 0:
            customer = get_party(ENTITY_CUSTOMER, sale.customer_id, for_update=True)
            if (customer.balance or 0) < sale.balance_impact:
                raise InsufficientReversibleBalance(
                    f"Cannot delete sale {sale.sale_number}: customer balance "
                    f"{format_cents(customer.balance or 0)} is less than its unpaid amount "
                    f"{format_cents(sale.balance_impact)}",
                    details={
                        "sale_id": sale.id,
                        "customer_id": customer.id,
                        "customer_balance": customer.balance or 0,
                        "balance_impact": sale.balance_impact,
                    },
                )

        lines = get_sale_items(sale.id)
        stock = get_items([line.item_id for line in lines], for_update=True)
        snapshot = sale_to_dict(sale)

        # ---- all checks passed; apply ----
        for line in lines:
            release_item(stock[line.item_id], sale.id)

        applied = 0
        if customer is not None:
            applied = apply_balance_delta(customer, -sale.balance_impact, floor_zero=True)

        append_ledger_event(
            event_type="sale.deleted",
            entity_type="sale",
            entity_id=sale.id,
            party_type=ENTITY_CUSTOMER if sale.customer_id else None,
            party_id=sale.customer_id,
            balance_delta=applied,
            cash_register_session_id=sale.cash_register_session_id,
            actor_user_id=actor_user_id(actor),
            note=f"{sale.sale_number}: {len(lines)} item(s) returned to stock",
        )

        for line in lines:
            db.session.delete(line)
        db.session.flush()
        db.session.delete(sale)
        return snapshot

    return run_atomic(_op)
