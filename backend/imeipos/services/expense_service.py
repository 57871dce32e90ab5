# Overview: Expenses: cash outflows attributed to the open register session.

from __future__ import annotations

from ..extensions import db
from ..models import Expense
from ..errors import EntityNotFound, ValidationError
from ..validation import (
    format_cents,
    optional_datetime,
    optional_text,
    require_cents,
    require_payment_method,
)
from imeipos.time_utils import utcnow
from .concurrency import lock_for_update, run_atomic
from .ledger_service import append_ledger_event
from .permission_service import actor_user_id, guarded
from .register_service import ensure_session_not_closed, get_active_session


def list_expenses(*, session_id: int | None = None) -> list[Expense]:
    query = db.session.query(Expense).filter_by(archived=False)
    if session_id is not None:
        query = query.filter_by(cash_register_session_id=session_id)
    return query.order_by(Expense.date.desc(), Expense.id.desc()).all()


@guarded("expenses:write")
def record_expense(
    *,
    description,
    category,
    amount,
    payment_method: str = "cash",
    date=None,
    reference=None,
    notes=None,
    actor=None,
) -> Expense:
    """Record an expense; it never touches customer or supplier balances."""
    description = optional_text(description, "description", max_length=255)
    if not description:
        raise ValidationError("description is required")
    category = optional_text(category, "category", max_length=64)
    if not category:
        raise ValidationError("category is required")
    amount = require_cents(amount, "amount", positive=True)
    payment_method = require_payment_method(payment_method)
    expense_date = optional_datetime(date, "date") or utcnow()
    reference = optional_text(reference, "reference", max_length=128)
    notes = optional_text(notes, "notes")

    def _op():
        session = get_active_session()
        expense = Expense(
            description=description,
            category=category,
            amount=amount,
            date=expense_date,
            payment_method=payment_method,
            reference=reference,
            notes=notes,
            cash_register_session_id=session.id if session else None,
            created_by_user_id=actor_user_id(actor),
        )
        db.session.add(expense)
        db.session.flush()
        append_ledger_event(
            event_type="expense.recorded",
            entity_type="expense",
            entity_id=expense.id,
            cash_register_session_id=expense.cash_register_session_id,
            actor_user_id=actor_user_id(actor),
            note=f"{category}: {format_cents(amount)} via {payment_method}",
        )
        return expense

    return run_atomic(_op)


@guarded("expenses:delete")
def delete_expense(expense_id: int, *, actor=None) -> dict:
    def _op():
        expense = lock_for_update(db.session.query(Expense).filter_by(id=expense_id)).first()
        if not expense:
            raise EntityNotFound("expense", expense_id)
        ensure_session_not_closed(expense.cash_register_session_id, "an expense")

        snapshot = expense.to_dict()
        append_ledger_event(
            event_type="expense.deleted",
            entity_type="expense",
            entity_id=expense.id,
            cash_register_session_id=expense.cash_register_session_id,
            actor_user_id=actor_user_id(actor),
            note=f"{expense.category}: {format_cents(expense.amount)}",
        )
        db.session.delete(expense)
        return snapshot

    return run_atomic(_op)
