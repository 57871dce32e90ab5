from __future__ import annotations

from ..extensions import db
from ..constants import ITEM_AVAILABLE
from imeipos.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    One physical serialized unit, identified by IMEI.

    LIFECYCLE:
    - available: created by a purchase invoice
    - sold: consumed by a sale (sale_id, customer_id, sale_price, sold_at set)
    - back to available when the sale is deleted or the item is edited out

    INVARIANT: status == "sold" iff sale_id is not NULL.

    archived is an orthogonal soft-delete bit, applied when the owning purchase
    invoice is removed; never applied while the item is sold.
    IMEI and purchase_price (cost basis) are fixed at creation.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("imei", name="uq_inventory_items_imei"),
        db.Index("ix_inventory_items_status_archived", "status", "archived"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    imei = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ITEM_AVAILABLE, index=True)

    # Purchase side (cost basis in cents)
    purchase_price = db.Column(db.Integer, nullable=False)
    purchase_invoice_id = db.Column(db.Integer, db.ForeignKey("purchase_invoices.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    purchased_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Sale side
    sale_price = db.Column(db.Integer, nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=True)

    archived = db.Column(db.Boolean, nullable=False, default=False, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "imei": self.imei,
            "status": self.status,
            "purchase_price": self.purchase_price,
            "purchase_invoice_id": self.purchase_invoice_id,
            "supplier_id": self.supplier_id,
            "purchased_at": to_utc_z(self.purchased_at) if self.purchased_at else None,
            "sale_price": self.sale_price,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "sold_at": to_utc_z(self.sold_at) if self.sold_at else None,
            "archived": self.archived,
            "version_id": self.version_id,
        }
