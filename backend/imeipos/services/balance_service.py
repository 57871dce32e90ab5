# Overview: Balance ledger engine: direction rules, cached balance updates, statements, audit.

"""
Balance Ledger Service

Two views of what a customer or supplier owes:

1. The cached `balance` column, adjusted incrementally by every sale,
   purchase, payment and refund. Adjustments are symmetric: whatever an
   operation added, its reversal subtracts exactly.
2. The ledger statement, derived on demand: unpaid sale/purchase residuals
   as debits, payments as credits, refunds as debits, accumulated in date
   order. Its closing balance must equal the cached balance; audit_balances()
   checks that for every party and reports drift.

Direction table (positive = increases the amount owed):

    event                    customer     supplier
    sale/purchase created    +impact      +impact
    payment                  -amount      -amount
    refund                   +amount      +amount

Cash effect of a cash-method payment (drawer point of view):

    customer payment +amount   customer refund -amount
    supplier payment -amount   supplier refund +amount
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..models import Customer, Supplier, Sale, PurchaseInvoice, Payment
from ..constants import (
    ENTITY_CUSTOMER,
    ENTITY_SUPPLIER,
    PARTY_TYPES,
    TRANSACTION_PAYMENT,
    TRANSACTION_REFUND,
    TRANSACTION_TYPES,
    PAYMENT_TYPE_CREDIT,
    PAYMENT_TYPE_FULL,
    PAYMENT_TYPE_PARTIAL,
)
from ..errors import EntityNotFound, ValidationError
from imeipos.time_utils import to_utc_z
from .concurrency import lock_for_update, run_atomic
from .ledger_service import append_ledger_event

PARTY_MODELS = {
    ENTITY_CUSTOMER: Customer,
    ENTITY_SUPPLIER: Supplier,
}


# =============================================================================
# DIRECTION RULES
# =============================================================================

def _check_party_type(entity_type: str) -> None:
    if entity_type not in PARTY_TYPES:
        raise ValidationError(f"Invalid entity type: {entity_type}. Must be one of {list(PARTY_TYPES)}")


def _check_transaction_type(transaction_type: str) -> None:
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"Invalid transaction type: {transaction_type}. Must be one of {list(TRANSACTION_TYPES)}"
        )


def payment_balance_delta(entity_type: str, transaction_type: str, amount: int) -> int:
    """Signed change to the party's cached balance for a payment of `amount`."""
    _check_party_type(entity_type)
    _check_transaction_type(transaction_type)
    return amount if transaction_type == TRANSACTION_REFUND else -amount


def payment_cash_effect(entity_type: str, transaction_type: str, amount: int) -> int:
    """Signed change to drawer cash for a cash-method payment of `amount`."""
    _check_party_type(entity_type)
    _check_transaction_type(transaction_type)
    incoming = (entity_type == ENTITY_CUSTOMER) == (transaction_type == TRANSACTION_PAYMENT)
    return amount if incoming else -amount


# =============================================================================
# DOCUMENT TOTALS
# =============================================================================

@dataclass(frozen=True)
class DocumentTotals:
    subtotal: int
    discount_amount: int
    total_amount: int
    paid_amount: int
    balance_impact: int
    payment_type: str


def derive_payment_type(paid_amount: int, total_amount: int) -> str:
    if paid_amount >= total_amount:
        return PAYMENT_TYPE_FULL
    if paid_amount > 0:
        return PAYMENT_TYPE_PARTIAL
    return PAYMENT_TYPE_CREDIT


def line_profit(unit_price: int, purchase_price: int) -> int:
    """Per-line profit, never negative even when sold below cost."""
    return max(0, unit_price - purchase_price)


def calculate_totals(unit_prices: Iterable[int], discount_amount: int, paid_amount: int) -> DocumentTotals:
    """
    Derive sale/purchase totals from the full line set.

    Raises ValidationError when the discount exceeds the subtotal or the paid
    amount exceeds the total.
    """
    subtotal = sum(unit_prices)
    if discount_amount > subtotal:
        raise ValidationError(
            "Discount cannot exceed subtotal",
            details={"discount_amount": discount_amount, "subtotal": subtotal},
        )
    total = subtotal - discount_amount
    if paid_amount > total:
        raise ValidationError(
            "Paid amount cannot exceed total",
            details={"paid_amount": paid_amount, "total_amount": total},
        )
    return DocumentTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        total_amount=total,
        paid_amount=paid_amount,
        balance_impact=max(0, total - paid_amount),
        payment_type=derive_payment_type(paid_amount, total),
    )


# =============================================================================
# CACHED BALANCE
# =============================================================================

def get_party(entity_type: str, entity_id: int, *, for_update: bool = False):
    _check_party_type(entity_type)
    model = PARTY_MODELS[entity_type]
    query = db.session.query(model).filter_by(id=entity_id)
    if for_update:
        query = lock_for_update(query)
    party = query.first()
    if not party:
        raise EntityNotFound(entity_type, entity_id)
    return party


def apply_balance_delta(party, delta: int, *, floor_zero: bool = False) -> int:
    """
    Adjust a party's cached balance and return the change actually applied.

    floor_zero clamps the result at 0 (used only by reversing deletes).
    """
    if delta == 0:
        return 0
    current = party.balance or 0
    new_balance = current + delta
    if floor_zero and new_balance < 0:
        new_balance = 0
    party.balance = new_balance
    return new_balance - current


# =============================================================================
# LEDGER STATEMENT
# =============================================================================

@dataclass
class LedgerEntry:
    id: str
    date: datetime
    type: str  # sale, purchase, payment
    description: str
    debit: int
    credit: int
    reference_id: int
    running_balance: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = to_utc_z(self.date)
        return data


@dataclass
class LedgerStatement:
    entity_type: str
    entity_id: int
    entries: list[LedgerEntry] = field(default_factory=list)  # most recent first
    closing_balance: int = 0
    cached_balance: int = 0

    @property
    def in_agreement(self) -> bool:
        return self.closing_balance == self.cached_balance

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "ledger": [entry.to_dict() for entry in self.entries],
            "closing_balance": self.closing_balance,
            "cached_balance": self.cached_balance,
            "in_agreement": self.in_agreement,
        }


def _document_entries(entity_type: str, entity_id: int) -> list[LedgerEntry]:
    if entity_type == ENTITY_CUSTOMER:
        docs = db.session.query(Sale).filter_by(customer_id=entity_id).all()
        return [
            LedgerEntry(
                id=f"sale-{sale.id}",
                date=sale.date,
                type="sale",
                description=f"Sale {sale.sale_number}",
                debit=sale.total_amount - (sale.paid_amount or 0),
                credit=0,
                reference_id=sale.id,
            )
            for sale in docs
            if sale.total_amount - (sale.paid_amount or 0) > 0
        ]

    docs = db.session.query(PurchaseInvoice).filter_by(supplier_id=entity_id).all()
    return [
        LedgerEntry(
            id=f"purchase-{invoice.id}",
            date=invoice.date,
            type="purchase",
            description=f"Purchase {invoice.invoice_number}",
            debit=invoice.total_amount - (invoice.paid_amount or 0),
            credit=0,
            reference_id=invoice.id,
        )
        for invoice in docs
        if invoice.total_amount - (invoice.paid_amount or 0) > 0
    ]


def _payment_entries(entity_type: str, entity_id: int) -> list[LedgerEntry]:
    payments = (
        db.session.query(Payment)
        .filter_by(entity_type=entity_type, entity_id=entity_id)
        .all()
    )
    entries = []
    for payment in payments:
        is_refund = payment.transaction_type == TRANSACTION_REFUND
        label = "Refund" if is_refund else "Payment"
        description = f"{label} - {payment.payment_method}"
        if payment.reference:
            description += f" ({payment.reference})"
        delta = payment_balance_delta(entity_type, payment.transaction_type, payment.amount)
        entries.append(LedgerEntry(
            id=f"payment-{payment.id}",
            date=payment.date,
            type="payment",
            description=description,
            debit=delta if delta > 0 else 0,
            credit=-delta if delta < 0 else 0,
            reference_id=payment.id,
        ))
    return entries


def build_statement(entity_type: str, entity_id: int) -> LedgerStatement:
    """
    Chronological debit/credit statement with running balance.

    Archived sales/purchases/payments are included: archiving hides a row
    from listings but never changes what is owed.
    """
    party = get_party(entity_type, entity_id)

    documents = _document_entries(entity_type, entity_id)
    payments = _payment_entries(entity_type, entity_id)
    # Documents before payments on the same timestamp, then insertion order.
    ordered = sorted(
        [(entry.date, 0, entry.reference_id, entry) for entry in documents]
        + [(entry.date, 1, entry.reference_id, entry) for entry in payments],
        key=lambda row: row[:3],
    )

    running = 0
    entries = []
    for _, _, _, entry in ordered:
        running += entry.debit - entry.credit
        entry.running_balance = running
        entries.append(entry)
    entries.reverse()

    return LedgerStatement(
        entity_type=entity_type,
        entity_id=entity_id,
        entries=entries,
        closing_balance=running,
        cached_balance=party.balance or 0,
    )


def recompute_balance(entity_type: str, entity_id: int) -> int:
    return build_statement(entity_type, entity_id).closing_balance


# =============================================================================
# AUDIT
# =============================================================================

@dataclass(frozen=True)
class BalanceDrift:
    entity_type: str
    entity_id: int
    cached_balance: int
    ledger_balance: int

    @property
    def drift(self) -> int:
        return self.cached_balance - self.ledger_balance

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "cached_balance": self.cached_balance,
            "ledger_balance": self.ledger_balance,
            "drift": self.drift,
        }


def audit_balances(*, fix: bool = False) -> list[BalanceDrift]:
    """
    Recompute every customer/supplier balance from its statement and report
    mismatches with the cached column.

    Each drift is logged and recorded as a ledger event. With fix=True the
    cached balance is rewritten to the statement's closing balance.
    """
    def _op():
        drifts = []
        for entity_type, model in PARTY_MODELS.items():
            parties = lock_for_update(db.session.query(model).order_by(model.id)).all()
            for party in parties:
                ledger_balance = recompute_balance(entity_type, party.id)
                cached = party.balance or 0
                if ledger_balance == cached:
                    continue

                drift = BalanceDrift(entity_type, party.id, cached, ledger_balance)
                drifts.append(drift)
                current_app.logger.warning(
                    "Balance drift on %s %s: cached=%s ledger=%s",
                    entity_type, party.id, cached, ledger_balance,
                )

                applied = 0
                if fix:
                    applied = apply_balance_delta(party, ledger_balance - cached)
                append_ledger_event(
                    event_type="balance.drift_corrected" if fix else "balance.drift_detected",
                    entity_type=entity_type,
                    entity_id=party.id,
                    party_type=entity_type,
                    party_id=party.id,
                    balance_delta=applied,
                    note=f"cached={cached} ledger={ledger_balance}",
                )
        return drifts

    return run_atomic(_op)
