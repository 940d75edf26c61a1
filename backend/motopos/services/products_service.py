# backend/motopos/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: Every query goes through scoped_query()/get_owned(), so a
product id from another tenant behaves exactly like a missing one.

Stock is not a patchable field: it only moves through sales, purchases,
order receipt and adjust_stock(), all of which leave a StockMovement.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product, Category
from ..validation import ConflictError, NotFoundError, ValidationError, to_decimal, to_int, require_text, optional_text
from .tenant_service import scoped_query, get_owned, get_current_tenant_id, get_current_user
from . import stock_service
from .concurrency import run_with_retry


DEFAULT_MIN_STOCK = 5

PRODUCT_TEXT_FIELDS = ("barcode", "description", "brand", "model", "year", "location")


class ProductError(ValidationError):
    """Raised for product rule violations (bad stock adjustment, etc.)."""
    pass


def _sku_taken(sku: str, exclude_id: int | None = None) -> bool:
    q = scoped_query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    return db.session.query(q.exists()).scalar()


def _apply_fields(product: Product, data: dict) -> None:
    if "name" in data:
        product.name = require_text(data.get("name"), "Nombre")
    for field in PRODUCT_TEXT_FIELDS:
        if field in data:
            setattr(product, field, optional_text(data.get(field)))
    if "category_id" in data:
        category_id = data.get("category_id")
        product.category_id = (
            get_owned(Category, category_id, message="Categoría no encontrada").id
            if category_id else None
        )
    if "cost_price" in data:
        product.cost_price = to_decimal(data.get("cost_price"), "Precio de costo")
    if "sale_price" in data:
        product.sale_price = to_decimal(data.get("sale_price"), "Precio de venta")
    if "min_stock" in data:
        product.min_stock = to_int(data.get("min_stock"), "Stock mínimo", minimum=0)
    if "is_active" in data:
        product.is_active = bool(data.get("is_active"))


def create_product(data: dict) -> Product:
    """
    Create a product in the current tenant.

    Raises:
        ValidationError: missing sku/name or bad numbers
        ConflictError: SKU already used in this tenant
    """
    tenant_id = get_current_tenant_id()
    sku = require_text(data.get("sku"), "SKU", 64)
    if _sku_taken(sku):
        raise ConflictError("El SKU ya existe")

    product = Product(
        tenant_id=tenant_id,
        sku=sku,
        name=require_text(data.get("name"), "Nombre"),
        stock=to_int(data.get("stock", 0), "Stock", minimum=0),
        min_stock=DEFAULT_MIN_STOCK,
        is_active=True,
    )
    _apply_fields(product, {k: v for k, v in data.items() if k not in ("sku", "stock")})

    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, data: dict) -> Product:
    if "stock" in data:
        raise ProductError("El stock solo se modifica con un ajuste de inventario")

    def _op():
        product = get_owned(Product, product_id, message="Producto no encontrado")

        if "sku" in data:
            sku = require_text(data.get("sku"), "SKU", 64)
            if sku != product.sku and _sku_taken(sku, exclude_id=product.id):
                raise ConflictError("El SKU ya existe")
            product.sku = sku

        _apply_fields(product, data)
        db.session.commit()
        return product

    return run_with_retry(_op)


def _search_filter(query, search: str | None):
    if not search:
        return query
    pattern = f"%{search.strip()}%"
    return query.filter(or_(
        Product.name.ilike(pattern),
        Product.sku.ilike(pattern),
        Product.barcode.ilike(pattern),
        Product.brand.ilike(pattern),
    ))


def list_products(search: str | None = None, page: int = 1, limit: int | None = None) -> dict:
    """Paginated active products ordered by name."""
    limit = limit or current_app.config.get("DEFAULT_PAGE_SIZE", 50)
    page = max(page, 1)

    query = _search_filter(scoped_query(Product).filter(Product.is_active.is_(True)), search)
    total = query.count()
    products = (
        query.order_by(Product.name.asc(), Product.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "products": products,
        "total": total,
        "total_pages": (total + limit - 1) // limit,
        "current_page": page,
    }


def get_all_products(search: str | None = None) -> list[Product]:
    """Every active product, unpaginated (POS product picker)."""
    query = _search_filter(scoped_query(Product).filter(Product.is_active.is_(True)), search)
    return query.order_by(Product.name.asc()).all()


def get_product(product_id: int) -> Product:
    return get_owned(Product, product_id, message="Producto no encontrado")


def get_product_by_barcode(code: str) -> Product:
    """Scanner lookup: matches barcode first, then SKU."""
    code = (code or "").strip()
    product = None
    if code:
        base = scoped_query(Product).filter(Product.is_active.is_(True))
        product = base.filter(Product.barcode == code).first() or base.filter(Product.sku == code).first()
    if product is None:
        raise NotFoundError("Producto no encontrado")
    return product


def get_low_stock_products(tenant_id: int | None = None) -> list[Product]:
    """Active products at or below their min_stock, emptiest first."""
    return (
        scoped_query(Product, tenant_id)
        .filter(Product.is_active.is_(True), Product.stock <= Product.min_stock)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )


def adjust_stock(product_id: int, quantity, reason: str | None = None) -> Product:
    """
    Manual stock correction by a signed quantity.

    A negative adjustment uses the same conditional decrement as a sale,
    so it can never drive stock below zero.
    """
    quantity = to_int(quantity, "Cantidad")
    if quantity == 0:
        raise ProductError("La cantidad del ajuste no puede ser cero")

    product = get_owned(Product, product_id, message="Producto no encontrado")
    user = get_current_user()
    reference = optional_text(reason, 64)

    if quantity > 0:
        stock_service.increment_stock(
            product, quantity, movement_type="ADJUSTMENT", reference=reference, user_id=user.id,
        )
    elif not stock_service.decrement_stock(
        product, -quantity, movement_type="ADJUSTMENT", reference=reference, user_id=user.id,
    ):
        db.session.rollback()
        raise ProductError(f"Stock insuficiente para: {product.name}")

    db.session.commit()
    current_app.logger.info("Stock adjusted for product %s by %+d", product.id, quantity)
    return product


def list_categories() -> list[Category]:
    return scoped_query(Category).order_by(Category.name.asc()).all()


def create_category(name) -> Category:
    name = require_text(name, "Nombre", 128)
    if scoped_query(Category).filter(db.func.lower(Category.name) == name.lower()).first():
        raise ConflictError("La categoría ya existe")
    category = Category(tenant_id=get_current_tenant_id(), name=name)
    db.session.add(category)
    db.session.commit()
    return category
