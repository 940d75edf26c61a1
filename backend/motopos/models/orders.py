from __future__ import annotations

from ..extensions import db
from motopos.time_utils import to_utc_z
from motopos.validation import money_str


class Order(db.Model):
    """
    Replenishment (RESTOCK) or customer back-order (CUSTOMER_ORDER).

    STATE MACHINE:
        PENDING -> ORDERED -> PARTIAL / RECEIVED -> DELIVERED
        any non-terminal state -> CANCELLED
    DELIVERED and CANCELLED are terminal.

    Receiving a RESTOCK order adds every linked item's quantity to stock
    exactly once. Every change appends an OrderHistory row.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "order_number", name="uq_orders_tenant_number"),
        db.Index("ix_orders_tenant_type_status", "tenant_id", "type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    # PED-YYYYMM-NNNN
    order_number = db.Column(db.String(32), nullable=False)

    type = db.Column(db.String(16), nullable=False)  # RESTOCK, CUSTOMER_ORDER
    status = db.Column(db.String(16), nullable=False, default="PENDING")
    priority = db.Column(db.String(16), nullable=False, default="NORMAL")  # LOW, NORMAL, HIGH, URGENT

    order_date = db.Column(db.DateTime(timezone=True), nullable=False)
    expected_date = db.Column(db.DateTime(timezone=True), nullable=True)
    received_date = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    history = db.relationship(
        "OrderHistory",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderHistory.id.desc()",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_history: bool = False) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "order_number": self.order_number,
            "type": self.type,
            "status": self.status,
            "priority": self.priority,
            "customer_id": self.customer_id,
            "customer": self.customer.name if self.customer else None,
            "order_date": to_utc_z(self.order_date),
            "expected_date": to_utc_z(self.expected_date) if self.expected_date else None,
            "received_date": to_utc_z(self.received_date) if self.received_date else None,
            "notes": self.notes,
            "items_count": len(self.items),
            "items": [item.to_dict() for item in self.items],
            "version_id": self.version_id,
        }
        if include_history:
            data["history"] = [entry.to_dict() for entry in self.history]
        return data


class OrderItem(db.Model):
    """
    Order line. product_id is optional: a customer may ask for a part the
    shop has never stocked, described only by name/SKU.
    """
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=True)
    description = db.Column(db.Text, nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=True)

    received = db.Column(db.Boolean, nullable=False, default=False)
    received_qty = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    product = db.relationship("Product", backref=db.backref("order_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "description": self.description,
            "quantity": self.quantity,
            "unit_cost": money_str(self.unit_cost),
            "received": self.received,
            "received_qty": self.received_qty,
            "notes": self.notes,
            "current_stock": self.product.stock if self.product else None,
        }


class OrderHistory(db.Model):
    """
    Append-only audit trail of an order.

    ACTIONS: CREATED, EDITED, STATUS_CHANGED, INVENTORY_UPDATED,
    ITEM_ADDED, ITEM_UPDATED, ITEM_REMOVED.

    created_by is a display name captured at write time ("Sistema" when
    no user is attached).
    """
    __tablename__ = "order_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    action = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    old_value = db.Column(db.Text, nullable=True)
    new_value = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "action": self.action,
            "description": self.description,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
