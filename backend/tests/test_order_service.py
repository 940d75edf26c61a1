# Overview: Pytest coverage for the order state machine and its history.

"""
Order Tests

Covers order numbering, the status state machine (terminal states,
stock receipt on RESTOCK -> RECEIVED), item edits and the low-stock
restock generator. Every mutation must leave exactly the expected
history entries behind.
"""

import pytest

from motopos.extensions import db
from motopos.models import Order, OrderHistory, Product, StockMovement
from motopos.services import order_service
from motopos.services.order_service import OrderError
from motopos.services.stock_service import get_movement_total
from motopos.time_utils import utcnow
from motopos.validation import NotFoundError, ValidationError


def _actions(order_id):
    rows = (
        db.session.query(OrderHistory).filter_by(order_id=order_id)
        .order_by(OrderHistory.id.asc())
        .all()
    )
    return [row.action for row in rows]


@pytest.fixture
def restock_order(db_session, user_a, product_a, act_as):
    act_as(user_a)
    return order_service.create_order({
        "type": "RESTOCK",
        "items": [
            {"product_id": product_a.id, "quantity": 10, "unit_cost": "14000"},
            {"product_name": "Casco integral talla M", "quantity": 1},
        ],
    })


class TestCreateOrder:
    def test_create_order(self, db_session, restock_order, user_a, product_a):
        period = utcnow().strftime("%Y%m")

        assert restock_order.order_number == f"PED-{period}-0001"
        assert restock_order.status == "PENDING"
        assert restock_order.priority == "NORMAL"
        assert len(restock_order.items) == 2
        assert restock_order.items[0].product_name == product_a.name
        assert restock_order.items[0].product_sku == product_a.sku
        assert restock_order.items[1].product_id is None

        history = restock_order.history
        assert len(history) == 1
        assert history[0].action == "CREATED"
        assert history[0].description == "Pedido creado con 2 item(s)"
        assert history[0].created_by == user_a.name

    def test_order_numbers_increment(self, db_session, restock_order, product_a):
        second = order_service.create_order({
            "type": "CUSTOMER_ORDER",
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })
        assert second.order_number.endswith("-0002")

    def test_requires_items(self, db_session, user_a, act_as):
        act_as(user_a)
        with pytest.raises(OrderError, match="al menos un item"):
            order_service.create_order({"type": "RESTOCK", "items": []})

    def test_rejects_unknown_type(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        with pytest.raises(ValidationError):
            order_service.create_order({
                "type": "WHOLESALE",
                "items": [{"product_id": product_a.id, "quantity": 1}],
            })

    def test_unlinked_item_needs_a_name(self, db_session, user_a, act_as):
        act_as(user_a)
        with pytest.raises(ValidationError):
            order_service.create_order({"type": "CUSTOMER_ORDER", "items": [{"quantity": 1}]})

    def test_foreign_product_is_not_found(self, db_session, user_a, product_b, act_as):
        act_as(user_a)
        with pytest.raises(NotFoundError):
            order_service.create_order({
                "type": "RESTOCK",
                "items": [{"product_id": product_b.id, "quantity": 1}],
            })
        assert db_session.query(Order).count() == 0


class TestOrderStatus:
    def test_receive_restock_increments_stock_once(self, db_session, restock_order, user_a, product_a):
        order_service.update_order_status(restock_order.id, "RECEIVED")

        product = db_session.get(Product, product_a.id)
        assert product.stock == 30
        assert _actions(restock_order.id) == ["CREATED", "STATUS_CHANGED", "INVENTORY_UPDATED"]

        movement = db_session.query(StockMovement).filter_by(product_id=product_a.id).one()
        assert movement.movement_type == "ORDER_RECEIPT"
        assert movement.reference == restock_order.order_number
        assert 20 + get_movement_total(user_a.tenant_id, product_a.id) == product.stock

        order = db_session.get(Order, restock_order.id)
        assert order.received_date is not None
        assert all(item.received for item in order.items if item.product_id)

    def test_status_change_description(self, db_session, restock_order):
        order_service.update_order_status(restock_order.id, "ORDERED")

        entry = (
            db.session.query(OrderHistory).filter_by(order_id=restock_order.id, action="STATUS_CHANGED").one()
        )
        assert entry.description == "Estado: Pendiente → Pedido al proveedor"
        assert entry.old_value == "PENDING"
        assert entry.new_value == "ORDERED"

    def test_received_then_delivered_does_not_receive_again(self, db_session, restock_order, product_a):
        order_service.update_order_status(restock_order.id, "RECEIVED")
        order_service.update_order_status(restock_order.id, "DELIVERED")

        assert db_session.get(Product, product_a.id).stock == 30
        assert _actions(restock_order.id).count("INVENTORY_UPDATED") == 1

    def test_customer_order_received_leaves_stock(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        order = order_service.create_order({
            "type": "CUSTOMER_ORDER",
            "items": [{"product_id": product_a.id, "quantity": 4}],
        })
        order_service.update_order_status(order.id, "RECEIVED")

        assert db_session.get(Product, product_a.id).stock == 20
        assert "INVENTORY_UPDATED" not in _actions(order.id)

    def test_partial_is_manual(self, db_session, restock_order, product_a):
        order_service.update_order_status(restock_order.id, "PARTIAL")
        assert db_session.get(Product, product_a.id).stock == 20

    @pytest.mark.parametrize("terminal", ["DELIVERED", "CANCELLED"])
    def test_terminal_status_is_final(self, db_session, restock_order, terminal):
        order_service.update_order_status(restock_order.id, terminal)

        with pytest.raises(OrderError, match="El pedido ya está cerrado"):
            order_service.update_order_status(restock_order.id, "PENDING")
        with pytest.raises(OrderError):
            order_service.add_item(restock_order.id, {"product_name": "Filtro", "quantity": 1})

        assert _actions(restock_order.id).count("STATUS_CHANGED") == 1

    def test_same_status_is_rejected(self, db_session, restock_order):
        with pytest.raises(OrderError, match="ya tiene ese estado"):
            order_service.update_order_status(restock_order.id, "PENDING")
        assert _actions(restock_order.id) == ["CREATED"]

    def test_unknown_status(self, db_session, restock_order):
        with pytest.raises(ValidationError):
            order_service.update_order_status(restock_order.id, "LOST")

    def test_other_tenant_cannot_change_status(self, db_session, restock_order, user_b, act_as):
        act_as(user_b)
        with pytest.raises(NotFoundError, match="Pedido no encontrado"):
            order_service.update_order_status(restock_order.id, "CANCELLED")


class TestOrderEdits:
    def test_add_update_remove_item(self, db_session, restock_order):
        item = order_service.add_item(restock_order.id, {"product_name": "Filtro de aire", "quantity": 2})
        order_service.update_item(restock_order.id, item.id, {"quantity": 3})
        order_service.remove_item(restock_order.id, item.id)

        assert _actions(restock_order.id) == ["CREATED", "ITEM_ADDED", "ITEM_UPDATED", "ITEM_REMOVED"]
        assert len(db_session.get(Order, restock_order.id).items) == 2

    def test_edit_records_changes(self, db_session, restock_order):
        order_service.update_order(restock_order.id, {"priority": "HIGH", "notes": "Llamar al proveedor"})

        entry = db.session.query(OrderHistory).filter_by(order_id=restock_order.id, action="EDITED").one()
        assert "Prioridad: NORMAL → HIGH" in entry.description
        assert "Notas actualizadas" in entry.description

    def test_edit_without_changes_adds_no_history(self, db_session, restock_order):
        order_service.update_order(restock_order.id, {"priority": "NORMAL"})
        assert _actions(restock_order.id) == ["CREATED"]

    def test_replace_items_snapshots_both_lists(self, db_session, restock_order, product_a):
        order_service.update_order(restock_order.id, {
            "items": [{"product_id": product_a.id, "quantity": 6}],
        })

        entry = db.session.query(OrderHistory).filter_by(order_id=restock_order.id, action="EDITED").one()
        assert entry.description == "Items: 2 → 1"
        assert "Casco integral" in entry.old_value
        assert "Casco integral" not in entry.new_value

    def test_received_items_cannot_be_replaced(self, db_session, restock_order, product_a):
        order_service.update_order_status(restock_order.id, "RECEIVED")

        with pytest.raises(OrderError, match="ya recibido"):
            order_service.update_order(restock_order.id, {
                "items": [{"product_id": product_a.id, "quantity": 10}],
            })
        order_service.update_order_status(restock_order.id, "ORDERED")
        order_service.update_order_status(restock_order.id, "RECEIVED")

        assert db_session.get(Product, product_a.id).stock == 30
        assert _actions(restock_order.id).count("INVENTORY_UPDATED") == 1
        assert db_session.query(StockMovement).filter_by(product_id=product_a.id).count() == 1

    def test_cannot_remove_last_item(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        order = order_service.create_order({
            "type": "CUSTOMER_ORDER",
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })

        with pytest.raises(OrderError, match="al menos un item"):
            order_service.remove_item(order.id, order.items[0].id)

        assert len(db_session.get(Order, order.id).items) == 1
        assert _actions(order.id) == ["CREATED"]

    def test_failed_edit_leaves_nothing_pending(self, db_session, restock_order):
        with pytest.raises(ValidationError):
            order_service.update_order(restock_order.id, {"priority": "HIGH", "items": [{"quantity": 1}]})
        db_session.commit()

        order = db_session.get(Order, restock_order.id)
        assert order.priority == "NORMAL"
        assert len(order.items) == 2
        assert _actions(restock_order.id) == ["CREATED"]

    def test_delete_order_cascades(self, db_session, restock_order):
        order_service.delete_order(restock_order.id)
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderHistory).count() == 0


class TestRestockFromLowStock:
    def test_generates_one_order(self, db_session, user_a, product_a, scarce_product_a, act_as):
        act_as(user_a)
        result = order_service.create_restock_order_from_low_stock()

        assert result["created"] is True
        assert result["items_count"] == 1
        order = result["order"]
        assert order.type == "RESTOCK"
        assert order.priority == "NORMAL"
        item = order.items[0]
        assert item.product_id == scarce_product_a.id
        # min_stock 5 - stock 2 + margin 5
        assert item.quantity == 8

    def test_out_of_stock_is_urgent(self, db_session, user_a, scarce_product_a, act_as):
        scarce_product_a.stock = 0
        db_session.commit()
        act_as(user_a)

        result = order_service.create_restock_order_from_low_stock()
        assert result["order"].priority == "URGENT"

    def test_skips_products_already_on_order(self, db_session, user_a, scarce_product_a, act_as):
        act_as(user_a)
        order_service.create_restock_order_from_low_stock()

        again = order_service.create_restock_order_from_low_stock()
        assert again == {"created": False, "message": "No hay productos con stock bajo para agregar"}
        assert db_session.query(Order).count() == 1

    def test_nothing_low(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        result = order_service.create_restock_order_from_low_stock()
        assert result["created"] is False


class TestPendingOrders:
    def test_pending_orders_split_by_type(self, db_session, restock_order, product_a):
        customer = order_service.create_order({
            "type": "CUSTOMER_ORDER",
            "priority": "URGENT",
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })
        order_service.update_order_status(customer.id, "RECEIVED")

        pending = order_service.get_pending_orders()
        assert [o.id for o in pending["restock"]] == [restock_order.id]
        assert [o.id for o in pending["customer_orders"]] == [customer.id]

    def test_list_orders_urgent_first(self, db_session, restock_order, product_a):
        urgent = order_service.create_order({
            "type": "RESTOCK",
            "priority": "URGENT",
            "items": [{"product_id": product_a.id, "quantity": 1}],
        })
        orders = order_service.list_orders()
        assert orders[0].id == urgent.id
