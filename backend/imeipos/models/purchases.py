from __future__ import annotations

from ..extensions import db
from imeipos.time_utils import to_utc_z, utcnow


class PurchaseInvoice(db.Model):
    """
    Supplier invoice that brings serialized items into inventory.

    Mirrors Sale: balance_impact is the unpaid part carried on the
    supplier's payable balance. supplier_id becomes NULL only when the
    supplier itself is hard-deleted.
    """
    __tablename__ = "purchase_invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_purchase_invoices_number"),
        db.Index("ix_purchase_invoices_supplier_date", "supplier_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "PI000042")
    invoice_number = db.Column(db.String(32), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    subtotal = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    total_amount = db.Column(db.Integer, nullable=False)
    paid_amount = db.Column(db.Integer, nullable=False, default=0)
    balance_impact = db.Column(db.Integer, nullable=False, default=0)

    payment_type = db.Column(db.String(16), nullable=False)  # full, partial, credit

    cash_register_session_id = db.Column(
        db.Integer, db.ForeignKey("cash_register_sessions.id"), nullable=True, index=True
    )
    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    archived = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "supplier_id": self.supplier_id,
            "date": to_utc_z(self.date),
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "balance_impact": self.balance_impact,
            "payment_type": self.payment_type,
            "cash_register_session_id": self.cash_register_session_id,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "archived": self.archived,
            "version_id": self.version_id,
        }


class PurchaseInvoiceItem(db.Model):
    """Invoice line; the linked item's purchase_price is the cost basis."""
    __tablename__ = "purchase_invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("purchase_invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    imei = db.Column(db.String(64), nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "item_id": self.item_id,
            "imei": self.imei,
            "unit_price": self.unit_price,
        }
