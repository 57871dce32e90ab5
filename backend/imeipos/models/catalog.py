from __future__ import annotations

from ..extensions import db
from imeipos.time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog entry (a phone model).

    Products are not serialized and carry no balance; every physical unit is
    an InventoryItem pointing at its product.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(128), nullable=True)
    category = db.Column(db.String(128), nullable=True)

    archived = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "archived": self.archived,
            "created_at": to_utc_z(self.created_at),
        }
