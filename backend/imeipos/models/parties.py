from __future__ import annotations

from ..extensions import db
from imeipos.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data with a running receivable balance.

    balance > 0 means the customer owes the business. It is a cache kept in
    step by the sale and payment services; the ledger statement recomputes it
    from sales and payments for audit.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    balance = db.Column(db.Integer, nullable=False, default=0)

    archived = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
            "balance": self.balance,
            "archived": self.archived,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class Supplier(db.Model):
    """
    Supplier master data with a running payable balance.

    balance > 0 means the business owes the supplier.
    """
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    balance = db.Column(db.Integer, nullable=False, default=0)

    archived = db.Column(db.Boolean, nullable=False, default=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
            "balance": self.balance,
            "archived": self.archived,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
