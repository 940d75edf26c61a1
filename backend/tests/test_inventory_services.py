# Overview: Pytest coverage for the product catalog, manual stock adjustments and purchases.

from decimal import Decimal

import pytest

from motopos.models import Product, StockMovement
from motopos.services import products_service, purchase_service, vendor_service
from motopos.services.products_service import ProductError
from motopos.services.purchase_service import PurchaseError
from motopos.services.stock_service import get_movement_total
from motopos.validation import ConflictError, NotFoundError, ValidationError


class TestProductCatalog:
    def test_create_product(self, db_session, user_a, category_a, act_as):
        act_as(user_a)
        product = products_service.create_product({
            "sku": "AC-010",
            "name": "Aceite 20W50",
            "category_id": category_a.id,
            "cost_price": "18000",
            "sale_price": "26000",
            "stock": 12,
        })

        assert product.tenant_id == user_a.tenant_id
        assert product.stock == 12
        assert product.min_stock == products_service.DEFAULT_MIN_STOCK
        assert product.sale_price == Decimal("26000.00")
        assert product.category_id == category_a.id

    def test_duplicate_sku(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        with pytest.raises(ConflictError, match="El SKU ya existe"):
            products_service.create_product({"sku": product_a.sku, "name": "Otro"})

    def test_update_cannot_touch_stock(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        with pytest.raises(ProductError):
            products_service.update_product(product_a.id, {"stock": 999})
        assert db_session.get(Product, product_a.id).stock == 20

    def test_failed_update_leaves_nothing_pending(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        with pytest.raises(ValidationError):
            products_service.update_product(product_a.id, {"name": "Pastillas traseras", "sale_price": "caro"})
        db_session.commit()

        product = db_session.get(Product, product_a.id)
        assert product.name == "Pastillas de freno"
        assert product.sale_price == Decimal("25000.00")

    def test_search_and_pagination(self, db_session, user_a, product_a, scarce_product_a, act_as):
        act_as(user_a)
        result = products_service.list_products(search="bujía")
        assert [p.id for p in result["products"]] == [scarce_product_a.id]

        page = products_service.list_products(page=1, limit=1)
        assert page["total"] == 2
        assert page["total_pages"] == 2

    def test_barcode_falls_back_to_sku(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        assert products_service.get_product_by_barcode("PF-001").id == product_a.id

        product_a.barcode = "7701234567890"
        db_session.commit()
        assert products_service.get_product_by_barcode("7701234567890").id == product_a.id

        with pytest.raises(NotFoundError):
            products_service.get_product_by_barcode("0000")

    def test_low_stock(self, db_session, user_a, product_a, scarce_product_a, act_as):
        act_as(user_a)
        assert [p.id for p in products_service.get_low_stock_products()] == [scarce_product_a.id]

    def test_duplicate_category(self, db_session, user_a, category_a, act_as):
        act_as(user_a)
        with pytest.raises(ConflictError):
            products_service.create_category("frenos")


class TestStockAdjustment:
    def test_adjust_up_and_down(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        products_service.adjust_stock(product_a.id, 5, reason="Conteo físico")
        products_service.adjust_stock(product_a.id, -3)

        product = db_session.get(Product, product_a.id)
        assert product.stock == 22
        assert 20 + get_movement_total(user_a.tenant_id, product_a.id) == product.stock

        types = {m.movement_type for m in db_session.query(StockMovement).all()}
        assert types == {"ADJUSTMENT"}

    def test_adjust_below_zero_is_rejected(self, db_session, user_a, scarce_product_a, act_as):
        act_as(user_a)
        with pytest.raises(ProductError, match="Stock insuficiente"):
            products_service.adjust_stock(scarce_product_a.id, -3)
        assert db_session.get(Product, scarce_product_a.id).stock == 2
        assert db_session.query(StockMovement).count() == 0

    def test_zero_adjustment(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        with pytest.raises(ProductError):
            products_service.adjust_stock(product_a.id, 0)


class TestPurchases:
    def test_purchase_receives_stock_and_sets_cost(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        supplier = vendor_service.create_supplier({"name": "Distribuidora Andina"})

        purchase = purchase_service.create_purchase({
            "purchase_number": "FAC-1001",
            "supplier_id": supplier.id,
            "tax": "3800",
            "items": [{"product_id": product_a.id, "quantity": 4, "unit_cost": "16000"}],
        })

        assert purchase.subtotal == Decimal("64000.00")
        assert purchase.total == Decimal("67800.00")

        product = db_session.get(Product, product_a.id)
        assert product.stock == 24
        assert product.cost_price == Decimal("16000.00")

        movement = db_session.query(StockMovement).filter_by(product_id=product_a.id).one()
        assert movement.movement_type == "PURCHASE"
        assert movement.reference == "FAC-1001"

    def test_last_cost_wins(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        purchase_service.create_purchase({
            "purchase_number": "FAC-1002",
            "items": [
                {"product_id": product_a.id, "quantity": 1, "unit_cost": "15500"},
                {"product_id": product_a.id, "quantity": 1, "unit_cost": "16500"},
            ],
        })
        product = db_session.get(Product, product_a.id)
        assert product.stock == 22
        assert product.cost_price == Decimal("16500.00")

    def test_purchase_requires_number(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        with pytest.raises(ValueError):
            purchase_service.create_purchase({
                "items": [{"product_id": product_a.id, "quantity": 1, "unit_cost": "1"}],
            })

    def test_foreign_product_rolls_back(self, db_session, user_a, product_a, product_b, act_as):
        act_as(user_a)
        with pytest.raises(PurchaseError):
            purchase_service.create_purchase({
                "purchase_number": "FAC-1003",
                "items": [
                    {"product_id": product_a.id, "quantity": 1, "unit_cost": "1000"},
                    {"product_id": product_b.id, "quantity": 1, "unit_cost": "1000"},
                ],
            })
        assert db_session.get(Product, product_a.id).stock == 20
        assert db_session.get(Product, product_b.id).stock == 10
        assert db_session.query(StockMovement).count() == 0
