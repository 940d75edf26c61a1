from __future__ import annotations

from ..extensions import db
from motopos.time_utils import to_utc_z
from motopos.validation import money_str


class Category(db.Model):
    """Product category (e.g. "Frenos", "Llantas"). Names are unique per tenant."""
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_categories_tenant_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data with its on-hand counter.

    MULTI-TENANT: SKUs are unique within a tenant: UniqueConstraint("tenant_id", "sku").

    STOCK: `stock` is the only shared mutable counter in the system. It is
    written by sales (decrement), purchases (increment) and restock-order
    receipt (increment), always through stock_service so every change also
    leaves a StockMovement row.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_tenant_name", "tenant_id", "name"),
        db.Index("ix_products_tenant_active", "tenant_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    sku = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Fitment data for motorcycle parts
    brand = db.Column(db.String(128), nullable=True)
    model = db.Column(db.String(128), nullable=True)
    year = db.Column(db.String(32), nullable=True)
    location = db.Column(db.String(128), nullable=True)  # Shelf / bin

    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sale_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=5)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} tenant_id={self.tenant_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "brand": self.brand,
            "model": self.model,
            "year": self.year,
            "location": self.location,
            "cost_price": money_str(self.cost_price),
            "sale_price": money_str(self.sale_price),
            "stock": self.stock,
            "min_stock": self.min_stock,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only record of every change to Product.stock.

    Summing quantity_delta per product reproduces the counter from its
    initial value, which is how the stock invariant is audited.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_tenant_product", "tenant_id", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    movement_type = db.Column(db.String(32), nullable=False, index=True)  # SALE, PURCHASE, ORDER_RECEIPT, ADJUSTMENT
    quantity_delta = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(64), nullable=True)  # Sale / purchase / order number
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity_delta": self.quantity_delta,
            "reference": self.reference,
            "user_id": self.user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class Supplier(db.Model):
    """Parts distributor the shop buys from."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_tenant_name", "tenant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    nit = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "nit": self.nit,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Purchase(db.Model):
    """
    Merchandise purchase from a supplier.

    Posting a purchase increments stock and refreshes each product's
    cost_price with the purchase unit cost (last write wins).
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_tenant_date", "tenant_id", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    # Supplier invoice number, typed by the user
    purchase_number = db.Column(db.String(64), nullable=False)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))
    user = db.relationship("User")
    items = db.relationship(
        "PurchaseItem",
        backref="purchase",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "supplier_id": self.supplier_id,
            "supplier": self.supplier.name if self.supplier else None,
            "purchase_number": self.purchase_number,
            "purchase_date": to_utc_z(self.purchase_date),
            "subtotal": money_str(self.subtotal),
            "tax": money_str(self.tax),
            "total": money_str(self.total),
            "status": self.status,
            "notes": self.notes,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    __tablename__ = "purchase_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_sku": self.product.sku if self.product else None,
            "quantity": self.quantity,
            "unit_cost": money_str(self.unit_cost),
            "subtotal": money_str(self.subtotal),
        }
