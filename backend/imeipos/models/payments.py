from __future__ import annotations

from ..extensions import db
from imeipos.time_utils import to_utc_z, utcnow


class Payment(db.Model):
    """
    Cash movement between the business and one customer or supplier.

    amount is always a positive magnitude; direction comes from
    (entity_type, transaction_type):

        customer payment  -> balance -amount, cash +amount
        customer refund   -> balance +amount, cash -amount
        supplier payment  -> balance -amount, cash -amount
        supplier refund   -> balance +amount, cash +amount
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(16), nullable=False)  # customer, supplier
    entity_id = db.Column(db.Integer, nullable=False)

    amount = db.Column(db.Integer, nullable=False)
    transaction_type = db.Column(db.String(16), nullable=False, default="payment")  # payment, refund
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
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "amount": self.amount,
            "transaction_type": self.transaction_type,
            "date": to_utc_z(self.date),
            "payment_method": self.payment_method,
            "reference": self.reference,
            "notes": self.notes,
            "cash_register_session_id": self.cash_register_session_id,
            "created_by_user_id": self.created_by_user_id,
            "archived": self.archived,
        }
