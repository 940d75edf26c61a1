"""
Orders Service: replenishment (RESTOCK) and customer back-orders

STATE MACHINE:
    PENDING -> ORDERED -> PARTIAL -> RECEIVED -> DELIVERED
    CANCELLED from any open state
    DELIVERED and CANCELLED are terminal: no further edits or status changes.

RECEIPT:
    Moving a RESTOCK order to RECEIVED adds each linked, not yet received
    item to stock exactly once (StockMovement ORDER_RECEIPT) and marks it
    received. PARTIAL is informational and never touches stock.

AUDIT:
    Every mutation appends an OrderHistory row in the same transaction.
    created_by is the acting user's name, or "Sistema" for jobs.
"""

from __future__ import annotations

import json

from flask import current_app
from sqlalchemy import case, select
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, OrderItem, OrderHistory, Product, Customer
from ..validation import (
    ValidationError, NotFoundError,
    to_decimal, to_int, require_choice, require_text, optional_text,
)
from motopos.time_utils import utcnow, parse_iso_datetime
from .concurrency import run_with_retry
from .document_service import next_order_number
from .stock_service import increment_stock
from .tenant_service import scoped_query, get_owned, get_current_tenant_id, get_actor_name


ORDER_TYPES = ("RESTOCK", "CUSTOMER_ORDER")
ORDER_STATUSES = ("PENDING", "ORDERED", "PARTIAL", "RECEIVED", "DELIVERED", "CANCELLED")
TERMINAL_STATUSES = ("DELIVERED", "CANCELLED")
OPEN_RESTOCK_STATUSES = ("PENDING", "ORDERED", "PARTIAL")
PRIORITIES = ("LOW", "NORMAL", "HIGH", "URGENT")

STATUS_LABELS = {
    "PENDING": "Pendiente",
    "ORDERED": "Pedido al proveedor",
    "PARTIAL": "Parcialmente recibido",
    "RECEIVED": "Recibido",
    "DELIVERED": "Entregado",
    "CANCELLED": "Cancelado",
}

PRIORITY_RANK = case(
    {"URGENT": 0, "HIGH": 1, "NORMAL": 2, "LOW": 3},
    value=Order.priority,
    else_=4,
)

RESTOCK_MARGIN = 5


class OrderError(ValidationError):
    """Raised for order operation errors."""
    pass


def _add_history(order: Order, action: str, description: str, old_value=None, new_value=None) -> OrderHistory:
    entry = OrderHistory(
        action=action,
        description=description,
        old_value=old_value,
        new_value=new_value,
        created_by=get_actor_name(),
        created_at=utcnow(),
    )
    order.history.append(entry)
    return entry


def _get_order(order_id: int, tenant_id: int | None = None) -> Order:
    return get_owned(Order, order_id, tenant_id, message="Pedido no encontrado")


def _ensure_open(order: Order) -> None:
    if order.status in TERMINAL_STATUSES:
        raise OrderError("El pedido ya está cerrado")


def _parse_date(value, field: str):
    try:
        return parse_iso_datetime(value) if value else None
    except ValueError:
        raise OrderError(f"{field} inválida")


def _build_item(raw: dict, tenant_id: int) -> OrderItem:
    """
    Build an OrderItem from client input.

    A linked product supplies default name/SKU; unlinked items must be
    described by product_name.
    """
    if not isinstance(raw, dict):
        raise OrderError("Item inválido")

    product = None
    if raw.get("product_id"):
        product = get_owned(Product, raw.get("product_id"), tenant_id, message="Producto no encontrado")

    name = raw.get("product_name") or (product.name if product else None)
    sku = raw.get("product_sku") or (product.sku if product else None)
    unit_cost = raw.get("unit_cost")

    return OrderItem(
        product_id=product.id if product else None,
        product_name=require_text(name, "Nombre del producto"),
        product_sku=optional_text(sku, 64),
        description=optional_text(raw.get("description"), 2000),
        quantity=to_int(raw.get("quantity"), "Cantidad", minimum=1),
        unit_cost=to_decimal(unit_cost, "Costo unitario") if unit_cost not in (None, "") else None,
        received=False,
        received_qty=0,
        notes=optional_text(raw.get("notes"), 2000),
    )


def _items_snapshot(items) -> str:
    return json.dumps(
        {"items": [{"name": i.product_name, "qty": i.quantity} for i in items]},
        ensure_ascii=False,
    )


def create_order(data: dict) -> Order:
    """
    Create a RESTOCK or CUSTOMER_ORDER order in PENDING.

    Raises:
        OrderError: no items, bad type/priority/date
        NotFoundError: customer or product outside the tenant
    """
    tenant_id = get_current_tenant_id()

    order_type = require_choice(data.get("type"), "Tipo de pedido", ORDER_TYPES)
    priority = require_choice(data.get("priority") or "NORMAL", "Prioridad", PRIORITIES)
    expected_date = _parse_date(data.get("expected_date"), "Fecha esperada")
    notes = optional_text(data.get("notes"), 2000)

    raw_items = data.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise OrderError("El pedido debe tener al menos un item")

    customer_id = data.get("customer_id")
    if customer_id:
        customer_id = get_owned(Customer, customer_id, tenant_id, message="Cliente no encontrado").id
    else:
        customer_id = None

    def _op():
        items = [_build_item(raw, tenant_id) for raw in raw_items]
        order = Order(
            tenant_id=tenant_id,
            order_number=next_order_number(tenant_id),
            type=order_type,
            status="PENDING",
            priority=priority,
            customer_id=customer_id,
            order_date=utcnow(),
            expected_date=expected_date,
            notes=notes,
            items=items,
        )
        db.session.add(order)
        _add_history(order, "CREATED", f"Pedido creado con {len(items)} item(s)")
        db.session.commit()
        return order

    order = run_with_retry(_op, retry_on=(IntegrityError,))
    current_app.logger.info("Order %s created (%s)", order.order_number, order.type)
    return order


def _receive_items(order: Order) -> int:
    """Increment stock for every linked item not yet received. Returns units received."""
    received_items = 0
    for item in order.items:
        if item.received or item.product_id is None:
            continue
        increment_stock(
            item.product,
            item.quantity,
            movement_type="ORDER_RECEIPT",
            reference=order.order_number,
        )
        item.received = True
        item.received_qty = item.quantity
        received_items += 1
    return received_items


def update_order_status(order_id: int, status: str) -> Order:
    """
    Move an order to a new status.

    Appends exactly one STATUS_CHANGED entry; a RESTOCK order reaching
    RECEIVED also receives its items and appends one INVENTORY_UPDATED.
    """
    tenant_id = get_current_tenant_id()
    status = require_choice(status, "Estado", ORDER_STATUSES)

    def _op():
        order = _get_order(order_id, tenant_id)
        _ensure_open(order)
        old_status = order.status
        if old_status == status:
            raise OrderError("El pedido ya tiene ese estado")

        order.status = status
        if status in ("RECEIVED", "DELIVERED"):
            order.received_date = utcnow()

        _add_history(
            order,
            "STATUS_CHANGED",
            f"Estado: {STATUS_LABELS[old_status]} → {STATUS_LABELS[status]}",
            old_status,
            status,
        )

        if order.type == "RESTOCK" and status == "RECEIVED":
            count = _receive_items(order)
            if count:
                _add_history(
                    order,
                    "INVENTORY_UPDATED",
                    f"Inventario actualizado: {count} producto(s) ingresados",
                )

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s moved to %s", order.order_number, order.status)
    return order


def update_order(order_id: int, data: dict) -> Order:
    """
    Edit header fields and optionally replace the whole item list.

    Appends one EDITED entry listing what changed, if anything did.
    The item list of an order with received items is frozen.
    """
    tenant_id = get_current_tenant_id()

    def _op():
        order = _get_order(order_id, tenant_id)
        _ensure_open(order)

        changes = []
        old_snapshot = None
        new_snapshot = None

        if "customer_id" in data:
            customer_id = data.get("customer_id")
            new_customer_id = (
                get_owned(Customer, customer_id, tenant_id, message="Cliente no encontrado").id
                if customer_id else None
            )
            if new_customer_id != order.customer_id:
                changes.append("Cliente actualizado")
                order.customer_id = new_customer_id

        if data.get("priority"):
            priority = require_choice(data.get("priority"), "Prioridad", PRIORITIES)
            if priority != order.priority:
                changes.append(f"Prioridad: {order.priority} → {priority}")
                order.priority = priority

        if "expected_date" in data:
            expected_date = _parse_date(data.get("expected_date"), "Fecha esperada")
            if expected_date != order.expected_date:
                changes.append("Fecha esperada actualizada")
                order.expected_date = expected_date

        if "notes" in data:
            notes = optional_text(data.get("notes"), 2000)
            if notes != order.notes:
                changes.append("Notas actualizadas")
                order.notes = notes

        if data.get("items") is not None:
            raw_items = data.get("items")
            if not isinstance(raw_items, list) or not raw_items:
                raise OrderError("El pedido debe tener al menos un item")
            if any(item.received for item in order.items):
                raise OrderError("No se pueden reemplazar los items de un pedido ya recibido")
            new_items = [_build_item(raw, tenant_id) for raw in raw_items]
            old_snapshot = _items_snapshot(order.items)
            new_snapshot = _items_snapshot(new_items)
            changes.append(f"Items: {len(order.items)} → {len(new_items)}")
            order.items = new_items

        if changes:
            _add_history(order, "EDITED", ", ".join(changes), old_snapshot, new_snapshot)

        db.session.commit()
        return order

    return run_with_retry(_op)


def add_item(order_id: int, data: dict) -> OrderItem:
    tenant_id = get_current_tenant_id()

    def _op():
        order = _get_order(order_id, tenant_id)
        _ensure_open(order)

        item = _build_item(data, tenant_id)
        order.items.append(item)
        _add_history(order, "ITEM_ADDED", f"Item agregado: {item.product_name} x{item.quantity}")
        db.session.commit()
        return item

    return run_with_retry(_op)


def _get_item(order: Order, item_id: int) -> OrderItem:
    for item in order.items:
        if item.id == item_id:
            return item
    raise NotFoundError("Item no encontrado")


def update_item(order_id: int, item_id: int, data: dict) -> OrderItem:
    tenant_id = get_current_tenant_id()

    def _op():
        order = _get_order(order_id, tenant_id)
        _ensure_open(order)
        item = _get_item(order, item_id)

        if data.get("product_name"):
            item.product_name = require_text(data.get("product_name"), "Nombre del producto")
        if "product_sku" in data:
            item.product_sku = optional_text(data.get("product_sku"), 64)
        if "description" in data:
            item.description = optional_text(data.get("description"), 2000)
        if "quantity" in data:
            if item.received:
                raise OrderError("No se puede cambiar la cantidad de un item ya recibido")
            item.quantity = to_int(data.get("quantity"), "Cantidad", minimum=1)
        if "unit_cost" in data:
            unit_cost = data.get("unit_cost")
            item.unit_cost = to_decimal(unit_cost, "Costo unitario") if unit_cost not in (None, "") else None
        if "notes" in data:
            item.notes = optional_text(data.get("notes"), 2000)

        _add_history(order, "ITEM_UPDATED", f"Item actualizado: {item.product_name}")
        db.session.commit()
        return item

    return run_with_retry(_op)


def remove_item(order_id: int, item_id: int) -> None:
    tenant_id = get_current_tenant_id()

    def _op():
        order = _get_order(order_id, tenant_id)
        _ensure_open(order)
        item = _get_item(order, item_id)
        if len(order.items) == 1:
            raise OrderError("El pedido debe tener al menos un item")

        order.items.remove(item)
        _add_history(order, "ITEM_REMOVED", f"Item eliminado: {item.product_name} x{item.quantity}")
        db.session.commit()

    run_with_retry(_op)


def delete_order(order_id: int) -> None:
    tenant_id = get_current_tenant_id()

    def _op():
        order = _get_order(order_id, tenant_id)
        number = order.order_number
        db.session.delete(order)
        db.session.commit()
        return number

    number = run_with_retry(_op)
    current_app.logger.info("Order %s deleted", number)


def get_order(order_id: int) -> Order:
    return _get_order(order_id)


def list_orders(order_type: str | None = None, status: str | None = None) -> list[Order]:
    """Orders by priority (URGENT first), then newest first."""
    query = scoped_query(Order)
    if order_type:
        query = query.filter(Order.type == require_choice(order_type, "Tipo de pedido", ORDER_TYPES))
    if status:
        query = query.filter(Order.status == require_choice(status, "Estado", ORDER_STATUSES))
    return query.order_by(PRIORITY_RANK, Order.order_date.desc(), Order.id.desc()).all()


def get_pending_orders() -> dict:
    """Open RESTOCK orders and CUSTOMER_ORDERs not yet delivered."""
    restock = (
        scoped_query(Order)
        .filter(Order.type == "RESTOCK", Order.status.in_(OPEN_RESTOCK_STATUSES))
        .order_by(PRIORITY_RANK, Order.order_date.desc())
        .all()
    )
    customer_orders = (
        scoped_query(Order)
        .filter(Order.type == "CUSTOMER_ORDER", Order.status.in_(OPEN_RESTOCK_STATUSES + ("RECEIVED",)))
        .order_by(PRIORITY_RANK, Order.order_date.desc())
        .all()
    )
    return {"restock": restock, "customer_orders": customer_orders}


def get_order_history(order_id: int) -> list[OrderHistory]:
    order = _get_order(order_id)
    return (
        db.session.query(OrderHistory)
        .filter(OrderHistory.order_id == order.id)
        .order_by(OrderHistory.id.desc())
        .all()
    )


def create_restock_order_from_low_stock(tenant_id: int | None = None) -> dict:
    """
    One RESTOCK order covering every low-stock product that is not already
    on an open RESTOCK order.

    Quantity per product: max(min_stock - stock + 5, 1).
    Priority: URGENT when any product is out of stock, else NORMAL.
    """
    if tenant_id is None:
        tenant_id = get_current_tenant_id()

    def _op():
        already_ordered = (
            select(OrderItem.product_id)
            .join(Order, Order.id == OrderItem.order_id)
            .where(
                Order.tenant_id == tenant_id,
                Order.type == "RESTOCK",
                Order.status.in_(OPEN_RESTOCK_STATUSES),
                OrderItem.product_id.is_not(None),
            )
        )
        products = (
            scoped_query(Product, tenant_id)
            .filter(
                Product.is_active.is_(True),
                Product.stock <= Product.min_stock,
                Product.id.not_in(already_ordered),
            )
            .order_by(Product.stock.asc(), Product.name.asc())
            .all()
        )
        if not products:
            return None

        order = Order(
            tenant_id=tenant_id,
            order_number=next_order_number(tenant_id),
            type="RESTOCK",
            status="PENDING",
            priority="URGENT" if any(p.stock == 0 for p in products) else "NORMAL",
            order_date=utcnow(),
            notes="Pedido generado automáticamente por stock bajo",
            items=[
                OrderItem(
                    product_id=p.id,
                    product_name=p.name,
                    product_sku=p.sku,
                    quantity=max(p.min_stock - p.stock + RESTOCK_MARGIN, 1),
                    received=False,
                    received_qty=0,
                )
                for p in products
            ],
        )
        db.session.add(order)
        _add_history(order, "CREATED", f"Pedido automático con {len(products)} productos de stock bajo")
        db.session.commit()
        return order

    order = run_with_retry(_op, retry_on=(IntegrityError,))
    if order is None:
        return {"created": False, "message": "No hay productos con stock bajo para agregar"}

    current_app.logger.info(
        "Restock order %s generated with %d item(s)", order.order_number, len(order.items),
    )
    return {"created": True, "order": order, "items_count": len(order.items)}
