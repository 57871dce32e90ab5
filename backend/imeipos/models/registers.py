from __future__ import annotations

from ..extensions import db
from ..constants import SESSION_OPEN
from imeipos.time_utils import to_utc_z, utcnow


class CashRegisterSession(db.Model):
    """
    Cash register session (one drawer count period).

    LIFECYCLE:
    - open: cash-method sales, payments and expenses are attributed to it
    - closed: expected balance and difference are frozen (terminal)

    At most one session is open system-wide; the partial unique index backs
    the service-level check against concurrent opens.
    """
    __tablename__ = "cash_register_sessions"
    __table_args__ = (
        db.UniqueConstraint("session_number", name="uq_cash_register_sessions_number"),
        db.Index(
            "uq_cash_register_sessions_single_open",
            "status",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_number = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SESSION_OPEN)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    opened_by = db.Column(db.String(128), nullable=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by = db.Column(db.String(128), nullable=True)

    # Cash tracking (all amounts in cents)
    opening_balance = db.Column(db.Integer, nullable=False, default=0)
    expected_balance = db.Column(db.Integer, nullable=True)  # computed at close
    actual_balance = db.Column(db.Integer, nullable=True)  # counted by operator
    difference = db.Column(db.Integer, nullable=True)  # actual - expected

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_number": self.session_number,
            "status": self.status,
            "opened_at": to_utc_z(self.opened_at),
            "opened_by": self.opened_by,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "closed_by": self.closed_by,
            "opening_balance": self.opening_balance,
            "expected_balance": self.expected_balance,
            "actual_balance": self.actual_balance,
            "difference": self.difference,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class Expense(db.Model):
    """Cash outflow; never touches customer or supplier balances."""
    __tablename__ = "expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    payment_method = db.Column(db.String(16), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    cash_register_session_id = db.Column(
        db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=True, index=True
    )
    created_by_user_id = db.Column(db.Integer, nullable=True)

    archived = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "category": self.category,
            "amount": self.amount,
            "date": to_utc_z(self.date),
            "payment_method": self.payment_method,
            "reference": self.reference,
            "notes": self.notes,
            "cash_register_session_id": self.cash_register_session_id,
            "created_by_user_id": self.created_by_user_id,
            "archived": self.archived,
        }
