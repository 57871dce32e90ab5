"""
Payment Service - customer/supplier payments and refunds

WHY: Payments settle balances carried by credit/partial sales and purchases;
refunds move money the other way. amount is always positive, direction comes
from (entity_type, transaction_type) via balance_service.

A payment recorded while a cash register session is open is attributed to
it; the session derives its cash position from these rows, so nothing else
is booked here.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Payment
from ..constants import TRANSACTION_PAYMENT, TRANSACTION_TYPES
from ..errors import EntityNotFound, ValidationError
from ..validation import (
    UNSET,
    format_cents,
    optional_datetime,
    optional_text,
    require_cents,
    require_id,
    require_payment_method,
)
from imeipos.time_utils import utcnow
from .balance_service import apply_balance_delta, get_party, payment_balance_delta
from .concurrency import lock_for_update, run_atomic
from .ledger_service import append_ledger_event
from .permission_service import actor_user_id, guarded
from .register_service import ensure_session_not_closed, get_active_session


def get_payment(payment_id: int, *, for_update: bool = False) -> Payment:
    query = db.session.query(Payment).filter_by(id=payment_id)
    if for_update:
        query = lock_for_update(query)
    payment = query.first()
    if not payment:
        raise EntityNotFound("payment", payment_id)
    return payment


def list_payments(entity_type: str, entity_id: int) -> list[Payment]:
    return (
        db.session.query(Payment)
        .filter_by(entity_type=entity_type, entity_id=entity_id)
        .order_by(Payment.date.desc(), Payment.id.desc())
        .all()
    )


def _require_transaction_type(value) -> str:
    transaction_type = str(value or TRANSACTION_PAYMENT).strip().lower()
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(
            f"Invalid transaction_type: {value}. Must be one of {list(TRANSACTION_TYPES)}"
        )
    return transaction_type


@guarded("payments:write")
def record_payment(
    *,
    entity_type: str,
    entity_id,
    amount,
    transaction_type: str = TRANSACTION_PAYMENT,
    payment_method: str = "cash",
    date=None,
    reference=None,
    notes=None,
    actor=None,
) -> Payment:
    """
    Record a payment or refund against a customer or supplier.

    Balance effect: payment -amount, refund +amount (both party types).

    Raises:
        EntityNotFound: the customer/supplier does not exist
        ValidationError: amount <= 0, unknown type or method
    """
    entity_id = require_id(entity_id, "entity_id")
    amount = require_cents(amount, "amount", positive=True)
    transaction_type = _require_transaction_type(transaction_type)
    payment_method = require_payment_method(payment_method)
    payment_date = optional_datetime(date, "date") or utcnow()
    reference = optional_text(reference, "reference", max_length=128)
    notes = optional_text(notes, "notes")

    def _op():
        party = get_party(entity_type, entity_id, for_update=True)
        session = get_active_session()

        payment = Payment(
            entity_type=entity_type,
            entity_id=entity_id,
            amount=amount,
            transaction_type=transaction_type,
            date=payment_date,
            payment_method=payment_method,
            reference=reference,
            notes=notes,
            cash_register_session_id=session.id if session else None,
            created_by_user_id=actor_user_id(actor),
        )
        db.session.add(payment)
        db.session.flush()

        applied = apply_balance_delta(party, payment_balance_delta(entity_type, transaction_type, amount))
        append_ledger_event(
            event_type=f"{entity_type}.{transaction_type}_recorded",
            entity_type="payment",
            entity_id=payment.id,
            party_type=entity_type,
            party_id=entity_id,
            balance_delta=applied,
            cash_register_session_id=payment.cash_register_session_id,
            actor_user_id=actor_user_id(actor),
            note=f"{transaction_type} {format_cents(amount)} via {payment_method}",
        )
        return payment

    return run_atomic(_op)


@guarded("payments:write")
def edit_payment(
    payment_id: int,
    *,
    amount=None,
    payment_method=None,
    date=None,
    reference=UNSET,
    notes=UNSET,
    actor=None,
) -> Payment:
    """
    Edit a recorded payment.

    Only an amount change moves the balance: the difference is applied with
    the same sign a fresh payment of this type would get. Amount and method
    cannot change once the payment's cash register session is closed.
    """
    if amount is not None:
        amount = require_cents(amount, "amount", positive=True)
    if payment_method is not None:
        payment_method = require_payment_method(payment_method)
    new_date = optional_datetime(date, "date")
    if reference is not UNSET:
        reference = optional_text(reference, "reference", max_length=128)
    if notes is not UNSET:
        notes = optional_text(notes, "notes")

    def _op():
        payment = get_payment(payment_id, for_update=True)
        amount_changed = amount is not None and amount != payment.amount
        method_changed = payment_method is not None and payment_method != payment.payment_method
        if amount_changed or method_changed:
            ensure_session_not_closed(payment.cash_register_session_id, "the amount or method of a payment")

        if amount_changed:
            party = get_party(payment.entity_type, payment.entity_id, for_update=True)
            diff = amount - payment.amount
            applied = apply_balance_delta(
                party, payment_balance_delta(payment.entity_type, payment.transaction_type, diff)
            )
            append_ledger_event(
                event_type="payment.amount_changed",
                entity_type="payment",
                entity_id=payment.id,
                party_type=payment.entity_type,
                party_id=payment.entity_id,
                balance_delta=applied,
                cash_register_session_id=payment.cash_register_session_id,
                actor_user_id=actor_user_id(actor),
                note=f"{format_cents(payment.amount)} -> {format_cents(amount)}",
            )
            payment.amount = amount

        if payment_method is not None:
            payment.payment_method = payment_method
        if new_date is not None:
            payment.date = new_date
        if reference is not UNSET:
            payment.reference = reference
        if notes is not UNSET:
            payment.notes = notes
        return payment

    return run_atomic(_op)
