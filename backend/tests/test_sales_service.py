# Overview: Pytest coverage for sale posting, stock decrements and numbering.

"""
Sales Tests

A sale is all-or-nothing: header, items, stock decrements, movements and
the sale number either all persist or none of them do.
"""

from decimal import Decimal

import pytest

from motopos.models import Sale, SaleItem, StockMovement, Product
from motopos.services import register_service, sales_service
from motopos.services.sales_service import SaleError
from motopos.services.stock_service import get_movement_total
from motopos.validation import ValidationError


@pytest.fixture
def open_register_a(db_session, user_a, act_as):
    act_as(user_a)
    return register_service.open_register("100000")


class TestCreateSale:
    def test_sale_totals_and_stock(self, db_session, open_register_a, product_a):
        sale = sales_service.create_sale({
            "items": [{"product_id": product_a.id, "quantity": 3, "discount": "5000"}],
            "discount": "1000",
            "tax": "500",
            "payment_method": "cash",
        })

        assert sale.sale_number == "V-000001"
        assert sale.status == "COMPLETED"
        assert sale.payment_method == "CASH"
        assert sale.cash_register_id == open_register_a.id
        assert sale.subtotal == Decimal("70000.00")
        assert sale.total == Decimal("69500.00")
        assert len(sale.items) == 1
        assert sale.items[0].unit_price == Decimal("25000.00")

        product = db_session.get(Product, product_a.id)
        assert product.stock == 17

    def test_explicit_unit_price_overrides_catalog(self, db_session, open_register_a, product_a):
        sale = sales_service.create_sale({
            "items": [{"product_id": product_a.id, "quantity": 1, "unit_price": "22000"}],
            "payment_method": "CARD",
        })
        assert sale.total == Decimal("22000.00")

    def test_sale_numbers_are_sequential(self, db_session, open_register_a, product_a):
        numbers = [
            sales_service.create_sale({
                "items": [{"product_id": product_a.id, "quantity": 1}],
                "payment_method": "CASH",
            }).sale_number
            for _ in range(3)
        ]
        assert numbers == ["V-000001", "V-000002", "V-000003"]

    def test_sale_numbers_are_per_tenant(self, db_session, user_a, user_b, product_a, product_b, act_as):
        act_as(user_a)
        register_service.open_register("0")
        sales_service.create_sale({"items": [{"product_id": product_a.id, "quantity": 1}], "payment_method": "CASH"})

        act_as(user_b)
        register_service.open_register("0")
        sale_b = sales_service.create_sale({
            "items": [{"product_id": product_b.id, "quantity": 1}], "payment_method": "CASH",
        })
        assert sale_b.sale_number == "V-000001"

    def test_repeated_product_lines_are_aggregated(self, db_session, open_register_a, scarce_product_a):
        """Two lines of 1 against stock 2 succeed; stock reaches zero."""
        sales_service.create_sale({
            "items": [
                {"product_id": scarce_product_a.id, "quantity": 1},
                {"product_id": scarce_product_a.id, "quantity": 1},
            ],
            "payment_method": "CASH",
        })
        assert db_session.get(Product, scarce_product_a.id).stock == 0
        movements = db_session.query(StockMovement).filter_by(product_id=scarce_product_a.id).all()
        assert [m.quantity_delta for m in movements] == [-2]


class TestSaleRejections:
    def test_insufficient_stock_changes_nothing(self, db_session, open_register_a, product_a, scarce_product_a):
        with pytest.raises(SaleError, match="Stock insuficiente para: Bujía NGK") as exc:
            sales_service.create_sale({
                "items": [
                    {"product_id": product_a.id, "quantity": 1},
                    {"product_id": scarce_product_a.id, "quantity": 3},
                ],
                "payment_method": "CASH",
            })

        assert exc.value.details["requested_quantity"] == 3
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(StockMovement).count() == 0
        assert db_session.get(Product, product_a.id).stock == 20
        assert db_session.get(Product, scarce_product_a.id).stock == 2

    def test_failed_sale_does_not_consume_a_number(self, db_session, open_register_a, product_a, scarce_product_a):
        with pytest.raises(SaleError):
            sales_service.create_sale({
                "items": [{"product_id": scarce_product_a.id, "quantity": 3}],
                "payment_method": "CASH",
            })
        sale = sales_service.create_sale({
            "items": [{"product_id": product_a.id, "quantity": 1}],
            "payment_method": "CASH",
        })
        assert sale.sale_number == "V-000001"

    def test_requires_open_register(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        with pytest.raises(SaleError, match="No hay una caja abierta"):
            sales_service.create_sale({
                "items": [{"product_id": product_a.id, "quantity": 1}],
                "payment_method": "CASH",
            })

    def test_requires_items(self, db_session, open_register_a):
        with pytest.raises(SaleError, match="al menos un producto"):
            sales_service.create_sale({"items": [], "payment_method": "CASH"})

    def test_unknown_payment_method(self, db_session, open_register_a, product_a):
        with pytest.raises(ValidationError):
            sales_service.create_sale({
                "items": [{"product_id": product_a.id, "quantity": 1}],
                "payment_method": "CHEQUE",
            })

    def test_zero_quantity(self, db_session, open_register_a, product_a):
        with pytest.raises(ValidationError):
            sales_service.create_sale({
                "items": [{"product_id": product_a.id, "quantity": 0}],
                "payment_method": "CASH",
            })

    def test_other_tenants_product_is_not_found(self, db_session, open_register_a, product_b):
        with pytest.raises(SaleError, match=f"Producto no encontrado: {product_b.id}"):
            sales_service.create_sale({
                "items": [{"product_id": product_b.id, "quantity": 1}],
                "payment_method": "CASH",
            })
        assert db_session.get(Product, product_b.id).stock == 10

    def test_inactive_product_is_not_found(self, db_session, open_register_a, product_a):
        product_a.is_active = False
        db_session.commit()
        with pytest.raises(SaleError, match="Producto no encontrado"):
            sales_service.create_sale({
                "items": [{"product_id": product_a.id, "quantity": 1}],
                "payment_method": "CASH",
            })

    def test_negative_total(self, db_session, open_register_a, product_a):
        with pytest.raises(SaleError, match="no puede ser negativo"):
            sales_service.create_sale({
                "items": [{"product_id": product_a.id, "quantity": 1}],
                "discount": "30000",
                "payment_method": "CASH",
            })
        assert db_session.get(Product, product_a.id).stock == 20


class TestStockLedger:
    def test_stock_matches_movements(self, db_session, user_a, open_register_a, product_a):
        """Initial stock plus the movement total always equals current stock."""
        initial = product_a.stock
        for qty in (1, 4, 2):
            sales_service.create_sale({
                "items": [{"product_id": product_a.id, "quantity": qty}],
                "payment_method": "CASH",
            })

        product = db_session.get(Product, product_a.id)
        assert product.stock == initial - 7
        assert initial + get_movement_total(user_a.tenant_id, product_a.id) == product.stock

    def test_movement_references_sale(self, db_session, open_register_a, product_a):
        sale = sales_service.create_sale({
            "items": [{"product_id": product_a.id, "quantity": 2}],
            "payment_method": "CASH",
        })
        movement = db_session.query(StockMovement).filter_by(product_id=product_a.id).one()
        assert movement.movement_type == "SALE"
        assert movement.reference == sale.sale_number
        assert movement.quantity_delta == -2


class TestSaleQueries:
    def test_today_sales(self, db_session, open_register_a, product_a):
        for _ in range(2):
            sales_service.create_sale({
                "items": [{"product_id": product_a.id, "quantity": 1}],
                "payment_method": "CASH",
            })
        today = sales_service.get_today_sales()
        assert today["count"] == 2
        assert today["total"] == Decimal("50000.00")

    def test_list_sales_paginates(self, db_session, open_register_a, product_a):
        for _ in range(3):
            sales_service.create_sale({
                "items": [{"product_id": product_a.id, "quantity": 1}],
                "payment_method": "CASH",
            })
        page = sales_service.list_sales(page=2, limit=2)
        assert page["total"] == 3
        assert page["total_pages"] == 2
        assert page["current_page"] == 2
        assert len(page["sales"]) == 1
