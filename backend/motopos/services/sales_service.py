"""
Sales Service: one-shot sale posting inside the open cash register

A sale is created complete (header + items) and immutable afterwards.
Header, items, stock decrements and sale number are one transaction:
either all of it commits or none of it does.
"""

from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Sale, SaleItem, Product, Customer
from ..validation import (
    ValidationError, ZERO, PAYMENT_METHODS,
    to_decimal, to_int, require_choice, optional_text,
)
from motopos.time_utils import utcnow, start_of_day
from .concurrency import run_with_retry
from .document_service import next_sale_number
from .register_service import get_open_register
from .stock_service import decrement_stock
from .tenant_service import scoped_query, get_owned, get_current_tenant_id, get_current_user


class SaleError(ValidationError):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _parse_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise SaleError("La venta debe tener al menos un producto")

    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise SaleError("Item inválido")
        lines.append({
            "product_id": to_int(raw.get("product_id"), "product_id", minimum=1),
            "quantity": to_int(raw.get("quantity"), "Cantidad", minimum=1),
            "unit_price": raw.get("unit_price"),
            "discount": to_decimal(raw.get("discount"), "Descuento"),
        })
    return lines


def _load_products(tenant_id: int, lines: list[dict]) -> dict[int, Product]:
    ids = {line["product_id"] for line in lines}
    products = {
        p.id: p
        for p in scoped_query(Product, tenant_id).filter(Product.id.in_(ids), Product.is_active.is_(True)).all()
    }
    for line in lines:
        if line["product_id"] not in products:
            raise SaleError(f"Producto no encontrado: {line['product_id']}")
    return products


def _check_stock(lines: list[dict], products: dict[int, Product]) -> "OrderedDict[int, int]":
    """Aggregate requested quantity per product and compare with stock."""
    requested: OrderedDict[int, int] = OrderedDict()
    for line in lines:
        requested[line["product_id"]] = requested.get(line["product_id"], 0) + line["quantity"]

    for product_id, qty in requested.items():
        product = products[product_id]
        if product.stock < qty:
            raise SaleError(
                f"Stock insuficiente para: {product.name}",
                details={"product_id": product_id, "requested_quantity": qty, "stock": product.stock},
            )
    return requested


def create_sale(data: dict) -> Sale:
    """
    Post a sale to the tenant's open register.

    data: customer_id?, items[{product_id, quantity, unit_price?, discount?}],
          discount?, tax?, payment_method, notes?

    unit_price defaults to the product's sale_price.

    Raises:
        SaleError: no open register, unknown product, insufficient stock,
                   empty item list, negative total
        ValidationError: malformed numbers or payment method
    """
    tenant_id = get_current_tenant_id()
    user = get_current_user()

    lines = _parse_items(data.get("items"))
    payment_method = require_choice(data.get("payment_method"), "Método de pago", PAYMENT_METHODS)
    discount = to_decimal(data.get("discount"), "Descuento")
    tax = to_decimal(data.get("tax"), "Impuesto")
    notes = optional_text(data.get("notes"), 2000)

    customer_id = data.get("customer_id")
    if customer_id:
        customer_id = get_owned(Customer, customer_id, tenant_id, message="Cliente no encontrado").id
    else:
        customer_id = None

    def _op():
        register = get_open_register(tenant_id)
        if register is None:
            raise SaleError("No hay una caja abierta")

        products = _load_products(tenant_id, lines)
        requested = _check_stock(lines, products)

        sale_items = []
        subtotal = ZERO
        for line in lines:
            product = products[line["product_id"]]
            if line["unit_price"] is None:
                unit_price = Decimal(product.sale_price)
            else:
                unit_price = to_decimal(line["unit_price"], "Precio unitario")
            item_subtotal = unit_price * line["quantity"] - line["discount"]
            if item_subtotal < 0:
                raise SaleError(f"El descuento excede el valor del item: {product.name}")
            subtotal += item_subtotal
            sale_items.append(SaleItem(
                product_id=product.id,
                quantity=line["quantity"],
                unit_price=unit_price,
                discount=line["discount"],
                subtotal=item_subtotal,
            ))

        total = subtotal - discount + tax
        if total < 0:
            raise SaleError("El total de la venta no puede ser negativo")

        sale = Sale(
            tenant_id=tenant_id,
            cash_register_id=register.id,
            user_id=user.id,
            customer_id=customer_id,
            sale_number=next_sale_number(tenant_id),
            sale_date=utcnow(),
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            total=total,
            payment_method=payment_method,
            status="COMPLETED",
            notes=notes,
            items=sale_items,
        )
        db.session.add(sale)
        db.session.flush()

        for product_id, qty in requested.items():
            product = products[product_id]
            if not decrement_stock(
                product, qty, movement_type="SALE", reference=sale.sale_number, user_id=user.id,
            ):
                raise SaleError(
                    f"Stock insuficiente para: {product.name}",
                    details={"product_id": product_id, "requested_quantity": qty},
                )

        db.session.commit()
        return sale

    sale = run_with_retry(_op, retry_on=(IntegrityError,))
    current_app.logger.info("Sale %s created (total %s)", sale.sale_number, sale.total)
    return sale


def list_sales(page: int = 1, limit: int | None = None) -> dict:
    limit = limit or current_app.config.get("DEFAULT_PAGE_SIZE", 50)
    page = max(page, 1)
    query = scoped_query(Sale)
    total = query.count()
    sales = (
        query.order_by(Sale.sale_date.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "sales": sales,
        "total": total,
        "total_pages": (total + limit - 1) // limit,
        "current_page": page,
    }


def get_sale(sale_id: int) -> Sale:
    return get_owned(Sale, sale_id, message="Venta no encontrada")


def get_today_sales() -> dict:
    """COMPLETED sales since midnight (UTC) with their running total."""
    sales = (
        scoped_query(Sale)
        .filter(Sale.status == "COMPLETED", Sale.sale_date >= start_of_day(utcnow()))
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .all()
    )
    return {
        "sales": sales,
        "total": sum((Decimal(s.total) for s in sales), ZERO),
        "count": len(sales),
    }
