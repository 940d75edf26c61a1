# Overview: Supplier purchases; posting one increments stock and refreshes cost prices.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Purchase, PurchaseItem, Product, Supplier
from ..validation import ValidationError, ZERO, to_decimal, to_int, require_text, optional_text
from motopos.time_utils import utcnow, start_of_day, parse_iso_datetime
from .concurrency import run_with_retry
from .stock_service import increment_stock
from .tenant_service import scoped_query, get_owned, get_current_tenant_id, get_current_user


class PurchaseError(ValidationError):
    """Raised for purchase operation errors."""
    pass


def _parse_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise PurchaseError("La compra debe tener al menos un producto")
    lines = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise PurchaseError("Item inválido")
        lines.append({
            "product_id": to_int(raw.get("product_id"), "product_id", minimum=1),
            "quantity": to_int(raw.get("quantity"), "Cantidad", minimum=1),
            "unit_cost": to_decimal(raw.get("unit_cost"), "Costo unitario"),
        })
    return lines


def create_purchase(data: dict) -> Purchase:
    """
    Record a purchase and receive its goods.

    subtotal = SUM(quantity * unit_cost); total = subtotal + tax.
    Each product's cost_price becomes the purchase unit cost (last write
    wins when the same product appears more than once).
    """
    tenant_id = get_current_tenant_id()
    user = get_current_user()

    purchase_number = require_text(data.get("purchase_number"), "Número de factura", 64)
    lines = _parse_items(data.get("items"))
    tax = to_decimal(data.get("tax"), "Impuesto")
    notes = optional_text(data.get("notes"), 2000)
    try:
        purchase_date = parse_iso_datetime(data.get("purchase_date")) or utcnow()
    except ValueError:
        raise PurchaseError("Fecha de compra inválida")

    supplier_id = data.get("supplier_id")
    if supplier_id:
        supplier_id = get_owned(Supplier, supplier_id, tenant_id, message="Proveedor no encontrado").id
    else:
        supplier_id = None

    def _op():
        ids = {line["product_id"] for line in lines}
        products = {p.id: p for p in scoped_query(Product, tenant_id).filter(Product.id.in_(ids)).all()}

        items = []
        subtotal = ZERO
        for line in lines:
            if line["product_id"] not in products:
                raise PurchaseError(f"Producto no encontrado: {line['product_id']}")
            item_subtotal = line["unit_cost"] * line["quantity"]
            subtotal += item_subtotal
            items.append(PurchaseItem(
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_cost=line["unit_cost"],
                subtotal=item_subtotal,
            ))

        purchase = Purchase(
            tenant_id=tenant_id,
            user_id=user.id,
            supplier_id=supplier_id,
            purchase_number=purchase_number,
            purchase_date=purchase_date,
            subtotal=subtotal,
            tax=tax,
            total=subtotal + tax,
            status="COMPLETED",
            notes=notes,
            items=items,
        )
        db.session.add(purchase)
        db.session.flush()

        for line in lines:
            product = products[line["product_id"]]
            increment_stock(
                product,
                line["quantity"],
                movement_type="PURCHASE",
                reference=purchase_number,
                user_id=user.id,
            )
            product.cost_price = line["unit_cost"]

        db.session.commit()
        return purchase

    purchase = run_with_retry(_op)
    current_app.logger.info("Purchase %s recorded (total %s)", purchase.purchase_number, purchase.total)
    return purchase


def list_purchases(limit: int = 50) -> list[Purchase]:
    return (
        scoped_query(Purchase)
        .order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
        .limit(limit)
        .all()
    )


def get_purchase(purchase_id: int) -> Purchase:
    return get_owned(Purchase, purchase_id, message="Compra no encontrada")


def get_today_purchases() -> dict:
    purchases = (
        scoped_query(Purchase)
        .filter(Purchase.status == "COMPLETED", Purchase.purchase_date >= start_of_day(utcnow()))
        .order_by(Purchase.purchase_date.desc())
        .all()
    )
    return {
        "purchases": purchases,
        "total": sum((Decimal(p.total) for p in purchases), ZERO),
        "count": len(purchases),
    }
