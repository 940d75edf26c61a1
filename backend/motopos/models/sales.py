from __future__ import annotations

from ..extensions import db
from motopos.time_utils import to_utc_z
from motopos.validation import money_str


class Sale(db.Model):
    """
    Completed point-of-sale ticket.

    Created atomically with its items inside the tenant's open cash
    register; stock is decremented in the same transaction. Immutable
    after creation.

    TOTALS: item subtotal = quantity * unit_price - item discount;
    subtotal = sum(items); total = subtotal - discount + tax.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "sale_number", name="uq_sales_tenant_number"),
        db.Index("ix_sales_tenant_status_date", "tenant_id", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    cash_register_id = db.Column(db.Integer, db.ForeignKey("cash_registers.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # Human-readable number (e.g., "V-000123")
    sale_number = db.Column(db.String(32), nullable=False)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, index=True)  # CASH, CARD, TRANSFER, MIXED
    status = db.Column(db.String(16), nullable=False, default="COMPLETED")
    notes = db.Column(db.Text, nullable=True)

    cash_register = db.relationship("CashRegister", backref=db.backref("sales", lazy=True, order_by="Sale.sale_date"))
    user = db.relationship("User")
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "cash_register_id": self.cash_register_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "customer_id": self.customer_id,
            "customer": self.customer.name if self.customer else None,
            "sale_number": self.sale_number,
            "sale_date": to_utc_z(self.sale_date),
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "tax": money_str(self.tax),
            "total": money_str(self.total),
            "payment_method": self.payment_method,
            "status": self.status,
            "notes": self.notes,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item on a sale. unit_price is the price charged, not the catalog price."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_sku": self.product.sku if self.product else None,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "discount": money_str(self.discount),
            "subtotal": money_str(self.subtotal),
        }
