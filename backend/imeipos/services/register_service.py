"""
Cash Register Session Service

WHY: Track the physical cash drawer between counts. Cash-method sales,
payments and expenses are attributed to the session that was open when they
were recorded; the expected drawer balance is recomputed from those rows on
demand, so there is no separate running counter that could drift.

DESIGN PRINCIPLES:
- At most one open session system-wide (service check + partial unique index)
- Closed sessions are terminal; rows attributed to them are frozen
- Expected balance = opening + cash sales paid + cash payment effects
  - cash expenses
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CashRegisterSession, Sale, Payment, Expense
from ..constants import DOC_CASH_SESSION, METHOD_CASH, SESSION_OPEN, SESSION_CLOSED
from ..errors import (
    EntityNotFound,
    NoOpenSession,
    SessionAlreadyOpen,
    SessionClosed,
    ValidationError,
)
from ..validation import coerce_int, format_cents, optional_datetime, optional_text, require_cents
from imeipos.time_utils import to_utc_z, utcnow
from .balance_service import payment_cash_effect
from .concurrency import lock_for_update, run_atomic
from .document_service import next_document_number
from .ledger_service import append_ledger_event
from .permission_service import actor_user_id, guarded


# =============================================================================
# LOOKUPS
# =============================================================================

def get_active_session() -> CashRegisterSession | None:
    return db.session.query(CashRegisterSession).filter_by(status=SESSION_OPEN).first()


def get_session(session_id: int, *, for_update: bool = False) -> CashRegisterSession:
    query = db.session.query(CashRegisterSession).filter_by(id=session_id)
    if for_update:
        query = lock_for_update(query)
    session = query.first()
    if not session:
        raise EntityNotFound("cash_register_session", session_id)
    return session


def list_sessions(*, status: str | None = None, limit: int = 50) -> list[CashRegisterSession]:
    query = db.session.query(CashRegisterSession)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(CashRegisterSession.opened_at.desc(), CashRegisterSession.id.desc()).limit(limit).all()


def resolve_session_for_transaction(required: bool) -> CashRegisterSession | None:
    """
    Session a new sale/purchase/payment/expense is attributed to.

    Raises NoOpenSession when `required` and nothing is open.
    """
    session = get_active_session()
    if session is None and required:
        raise NoOpenSession()
    return session


def ensure_session_not_closed(session_id: int | None, what: str) -> None:
    """Refuse to change a row that belongs to a closed session."""
    if session_id is None:
        return
    session = db.session.get(CashRegisterSession, session_id)
    if session and session.status == SESSION_CLOSED:
        raise SessionClosed(
            f"Cannot modify {what} from a closed cash register session ({session.session_number})",
            details={"cash_register_session_id": session_id},
        )


# =============================================================================
# EXPECTED BALANCE
# =============================================================================

@dataclass
class CashSummary:
    session_id: int
    opening_balance: int
    sales_cash: int = 0
    payments_cash: int = 0
    expenses_cash: int = 0
    sales_count: int = 0
    payments_count: int = 0
    expenses_count: int = 0
    transactions: list[dict] = field(default_factory=list)  # most recent first

    @property
    def expected_balance(self) -> int:
        return self.opening_balance + self.sales_cash + self.payments_cash - self.expenses_cash

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "opening_balance": self.opening_balance,
            "expected_balance": self.expected_balance,
            "breakdown": {
                "sales_cash": self.sales_cash,
                "payments_cash": self.payments_cash,
                "expenses_cash": self.expenses_cash,
                "sales_count": self.sales_count,
                "payments_count": self.payments_count,
                "expenses_count": self.expenses_count,
            },
            "transactions": self.transactions,
        }


def compute_cash_summary(session: CashRegisterSession) -> CashSummary:
    """
    Recompute the drawer position of one session from its attributed rows.

    Only cash-method rows move the drawer. Archived rows still count:
    archiving hides a row, the cash already changed hands.
    """
    summary = CashSummary(session_id=session.id, opening_balance=session.opening_balance or 0)
    rows = []

    sales = (
        db.session.query(Sale)
        .filter_by(cash_register_session_id=session.id, payment_method=METHOD_CASH)
        .all()
    )
    for sale in sales:
        summary.sales_cash += sale.paid_amount or 0
        summary.sales_count += 1
        rows.append((sale.date, "sale", sale.id, f"Sale {sale.sale_number}", sale.paid_amount or 0))

    payments = (
        db.session.query(Payment)
        .filter_by(cash_register_session_id=session.id, payment_method=METHOD_CASH)
        .all()
    )
    for payment in payments:
        effect = payment_cash_effect(payment.entity_type, payment.transaction_type, payment.amount)
        summary.payments_cash += effect
        summary.payments_count += 1
        label = f"{payment.entity_type.capitalize()} {payment.transaction_type}"
        rows.append((payment.date, "payment", payment.id, label, effect))

    expenses = (
        db.session.query(Expense)
        .filter_by(cash_register_session_id=session.id, payment_method=METHOD_CASH)
        .all()
    )
    for expense in expenses:
        summary.expenses_cash += expense.amount
        summary.expenses_count += 1
        rows.append((expense.date, "expense", expense.id, expense.description, -expense.amount))

    rows.sort(key=lambda r: (r[0], r[1], r[2]), reverse=True)
    summary.transactions = [
        {
            "type": kind,
            "id": row_id,
            "date": to_utc_z(date),
            "description": description,
            "cash_effect": effect,
        }
        for date, kind, row_id, description, effect in rows
    ]
    return summary


def compute_expected_balance(session: CashRegisterSession) -> int:
    return compute_cash_summary(session).expected_balance


def get_session_summary(session_id: int | None = None) -> CashSummary:
    """Summary for `session_id`, or for the open session when omitted."""
    if session_id is None:
        session = get_active_session()
        if session is None:
            raise NoOpenSession("No open cash register session")
    else:
        session = get_session(session_id)
    return compute_cash_summary(session)


# =============================================================================
# OPEN / CLOSE
# =============================================================================

@guarded("cash_register:write")
def open_session(
    *,
    opening_balance,
    opened_by: str,
    notes: str | None = None,
    opened_at: datetime | None = None,
    actor=None,
) -> CashRegisterSession:
    """
    Open the cash register.

    The check and the insert run in one write transaction; a concurrent open
    that slips past the check is stopped by the single-open index and
    reported the same way.

    Raises:
        SessionAlreadyOpen: another session is open
        ValidationError: negative or non-integer opening balance
    """
    opening_balance = require_cents(opening_balance, "opening_balance")
    opened_by = optional_text(opened_by, "opened_by", max_length=128)
    if not opened_by:
        raise ValidationError("opened_by is required")
    notes = optional_text(notes, "notes")
    opened_at = optional_datetime(opened_at, "opened_at")

    def _op():
        existing = lock_for_update(
            db.session.query(CashRegisterSession).filter_by(status=SESSION_OPEN)
        ).first()
        if existing:
            raise SessionAlreadyOpen(existing.session_number)

        session = CashRegisterSession(
            session_number=next_document_number(DOC_CASH_SESSION),
            status=SESSION_OPEN,
            opened_at=opened_at or utcnow(),
            opened_by=opened_by,
            opening_balance=opening_balance,
            notes=notes,
        )
        db.session.add(session)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise SessionAlreadyOpen() from exc

        append_ledger_event(
            event_type="register.session_opened",
            entity_type="cash_register_session",
            entity_id=session.id,
            cash_register_session_id=session.id,
            actor_user_id=actor_user_id(actor),
            note=f"Opening balance {format_cents(opening_balance)}",
        )
        return session

    session = run_atomic(_op)
    current_app.logger.info(
        "Cash register session %s opened by %s with %s",
        session.session_number, session.opened_by, format_cents(session.opening_balance),
    )
    return session


@guarded("cash_register:write")
def close_session(
    session_id: int,
    *,
    actual_balance,
    closed_by: str,
    notes: str | None = None,
    actor=None,
) -> CashRegisterSession:
    """
    Close a session and freeze its variance.

    IMMUTABLE: once closed the session cannot be reopened.

    Args:
        session_id: Session to close
        actual_balance: Cash counted in the drawer (cents, required)
        closed_by: Operator name
        notes: Optional closing notes (replace the opening notes when given)

    Returns:
        Closed session with expected_balance and difference set
    """
    if actual_balance is None:
        raise ValidationError("actual_balance is required")
    actual_balance = coerce_int(actual_balance, "actual_balance")
    closed_by = optional_text(closed_by, "closed_by", max_length=128)
    if not closed_by:
        raise ValidationError("closed_by is required")
    notes = optional_text(notes, "notes")

    def _op():
        session = get_session(session_id, for_update=True)
        if session.status != SESSION_OPEN:
            raise SessionClosed(
                f"Cash register session {session.session_number} is already closed",
                details={"cash_register_session_id": session.id},
            )

        expected = compute_expected_balance(session)
        session.status = SESSION_CLOSED
        session.closed_at = utcnow()
        session.closed_by = closed_by
        session.expected_balance = expected
        session.actual_balance = actual_balance
        session.difference = actual_balance - expected
        if notes is not None:
            session.notes = notes

        append_ledger_event(
            event_type="register.session_closed",
            entity_type="cash_register_session",
            entity_id=session.id,
            cash_register_session_id=session.id,
            actor_user_id=actor_user_id(actor),
            note=f"Expected {format_cents(expected)}, counted {format_cents(actual_balance)}",
        )
        return session

    session = run_atomic(_op)
    current_app.logger.info(
        "Cash register session %s closed by %s: expected %s, actual %s, difference %s",
        session.session_number,
        session.closed_by,
        format_cents(session.expected_balance),
        format_cents(session.actual_balance),
        format_cents(session.difference),
    )
    return session


@guarded("cash_register:write")
def update_session_opened_at(session_id: int, opened_at: datetime, *, actor=None) -> CashRegisterSession:
    """Correct the recorded opening time (e.g. drawer opened before the app)."""
    opened_at = optional_datetime(opened_at, "opened_at")
    if opened_at is None:
        raise ValidationError("opened_at is required")

    def _op():
        session = get_session(session_id, for_update=True)
        if session.closed_at and opened_at > session.closed_at:
            raise ValidationError("opened_at cannot be after closed_at")
        previous = session.opened_at
        session.opened_at = opened_at
        append_ledger_event(
            event_type="register.session_opened_at_changed",
            entity_type="cash_register_session",
            entity_id=session.id,
            cash_register_session_id=session.id,
            actor_user_id=actor_user_id(actor),
            note=f"{to_utc_z(previous)} -> {to_utc_z(opened_at)}",
        )
        return session

    return run_atomic(_op)
