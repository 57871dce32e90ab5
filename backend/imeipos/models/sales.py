from __future__ import annotations

from ..extensions import db
from imeipos.time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    Sale of one or more serialized items to a customer (NULL = walk-in).

    Amounts are in cents:
    - subtotal = sum of line unit prices
    - total_amount = subtotal - discount_amount
    - balance_impact = max(0, total_amount - paid_amount), the unpaid part
      carried exactly once on the customer's balance
    - profit = sum of per-line profit, each line clamped at 0
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_number", name="uq_sales_sale_number"),
        db.Index("ix_sales_customer_date", "customer_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "S000123")
    sale_number = db.Column(db.String(32), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    subtotal = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    total_amount = db.Column(db.Integer, nullable=False)
    paid_amount = db.Column(db.Integer, nullable=False, default=0)
    balance_impact = db.Column(db.Integer, nullable=False, default=0)
    profit = db.Column(db.Integer, nullable=False, default=0)

    payment_type = db.Column(db.String(16), nullable=False)  # full, partial, credit
    payment_method = db.Column(db.String(16), nullable=False)  # cash, card, transfer, check

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
            "sale_number": self.sale_number,
            "customer_id": self.customer_id,
            "date": to_utc_z(self.date),
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "balance_impact": self.balance_impact,
            "profit": self.profit,
            "payment_type": self.payment_type,
            "payment_method": self.payment_method,
            "cash_register_session_id": self.cash_register_session_id,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "archived": self.archived,
            "version_id": self.version_id,
        }


class SaleItem(db.Model):
    """
    Sale line. Snapshots the item's cost basis at sale time so later reads
    never depend on the inventory row.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    imei = db.Column(db.String(64), nullable=False)

    purchase_price = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    profit = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "item_id": self.item_id,
            "imei": self.imei,
            "purchase_price": self.purchase_price,
            "unit_price": self.unit_price,
            "profit": self.profit,
        }
