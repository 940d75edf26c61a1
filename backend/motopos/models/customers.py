from __future__ import annotations

from ..extensions import db
from motopos.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data.

    MULTI-TENANT: Customers are scoped to tenants via tenant_id.
    Optional on sales; required context for CUSTOMER_ORDER back-orders.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_tenant_name", "tenant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    id_number = db.Column(db.String(32), nullable=True)  # Cédula / NIT
    address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "id_number": self.id_number,
            "address": self.address,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
