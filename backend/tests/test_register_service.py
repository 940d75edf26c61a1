# Overview: Pytest coverage for the cash register lifecycle.

"""
Cash Register Tests

Covers opening (one OPEN register per tenant), closing arithmetic for
the cash drawer and the whole till, and the read-only summary.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from motopos.models import CashRegister
from motopos.services import register_service, sales_service, expense_service
from motopos.services.register_service import ShiftError
from motopos.time_utils import utcnow
from motopos.validation import NotFoundError, ValidationError


def _sell(product, quantity, payment_method):
    return sales_service.create_sale({
        "items": [{"product_id": product.id, "quantity": quantity}],
        "payment_method": payment_method,
    })


class TestOpenRegister:
    def test_open_register(self, db_session, user_a, act_as):
        act_as(user_a)
        register = register_service.open_register("100000")

        assert register.status == "OPEN"
        assert register.initial_amount == Decimal("100000.00")
        assert register.user_id == user_a.id
        assert register.closing_date is None

    def test_second_open_is_rejected(self, db_session, user_a, act_as):
        """At most one OPEN register per tenant."""
        act_as(user_a)
        register_service.open_register("100000")

        with pytest.raises(ShiftError, match="Ya existe una caja abierta"):
            register_service.open_register("50000")

        assert db_session.query(CashRegister).filter_by(status="OPEN").count() == 1

    def test_other_tenant_can_open_its_own(self, db_session, user_a, user_b, act_as):
        act_as(user_a)
        register_service.open_register("100000")

        act_as(user_b)
        register = register_service.open_register("20000")
        assert register.tenant_id == user_b.tenant_id

    def test_negative_initial_amount(self, db_session, user_a, act_as):
        act_as(user_a)
        with pytest.raises(ValidationError):
            register_service.open_register("-1")

    def test_reopen_after_close(self, db_session, user_a, act_as):
        act_as(user_a)
        first = register_service.open_register("100000")
        register_service.close_register(first.id, "100000")

        second = register_service.open_register("80000")
        assert second.id != first.id
        assert register_service.get_open_register().id == second.id


class TestCloseRegister:
    def test_close_arithmetic(self, db_session, user_a, product_a, act_as):
        """100000 opening + 50000 cash + 30000 card, counted exactly."""
        act_as(user_a)
        register = register_service.open_register("100000")
        _sell(product_a, 2, "CASH")   # 2 x 25000
        sales_service.create_sale({
            "items": [{"product_id": product_a.id, "quantity": 1, "unit_price": "30000"}],
            "payment_method": "CARD",
        })

        result = register_service.close_register(register.id, "150000", card_amount="30000")

        closed = result["register"]
        assert closed.status == "CLOSED"
        assert closed.closing_date is not None
        assert result["expected_cash"] == Decimal("150000.00")
        assert result["cash_difference"] == Decimal("0.00")
        assert result["total_sales"] == Decimal("80000.00")
        assert closed.final_amount == Decimal("180000.00")
        assert closed.expected_amount == Decimal("180000.00")
        assert closed.difference == Decimal("0.00")
        assert result["sales_by_method"]["card"] == Decimal("30000.00")

    def test_close_reports_shortage(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        register = register_service.open_register("100000")
        _sell(product_a, 1, "CASH")

        result = register_service.close_register(register.id, "120000")

        assert result["expected_cash"] == Decimal("125000.00")
        assert result["cash_difference"] == Decimal("-5000.00")
        assert result["register"].difference == Decimal("-5000.00")

    def test_mixed_sales_count_as_cash(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        register = register_service.open_register("0")
        _sell(product_a, 1, "MIXED")

        result = register_service.close_register(register.id, "25000")
        assert result["expected_cash"] == Decimal("25000.00")
        assert result["cash_difference"] == Decimal("0.00")

    def test_close_twice_is_rejected(self, db_session, user_a, act_as):
        act_as(user_a)
        register = register_service.open_register("100000")
        register_service.close_register(register.id, "100000")

        with pytest.raises(ShiftError, match="La caja ya está cerrada"):
            register_service.close_register(register.id, "100000")

    def test_close_unknown_register(self, db_session, user_a, act_as):
        act_as(user_a)
        with pytest.raises(NotFoundError, match="Caja no encontrada"):
            register_service.close_register(99999, "0")

    def test_close_other_tenants_register(self, db_session, user_a, user_b, act_as):
        act_as(user_b)
        foreign = register_service.open_register("10000")

        act_as(user_a)
        with pytest.raises(NotFoundError):
            register_service.close_register(foreign.id, "10000")


class TestRegisterQueries:
    def test_summary_nets_out_expenses(self, db_session, user_a, product_a, act_as):
        act_as(user_a)
        register = register_service.open_register("50000")
        _sell(product_a, 1, "CASH")
        _sell(product_a, 1, "TRANSFER")
        expense_service.create_expense({"description": "Almuerzo", "amount": "15000"})

        summary = register_service.get_register_summary(register.id)

        assert summary["sales_count"] == 2
        assert summary["total_sales"] == Decimal("50000.00")
        assert summary["expected_cash"] == Decimal("75000.00")
        assert summary["total_expenses"] == Decimal("15000.00")
        assert summary["net_cash"] == Decimal("60000.00")

    def test_summary_counts_only_expenses_inside_the_shift(self, db_session, user_a, act_as):
        act_as(user_a)
        register = register_service.open_register("0")
        register_service.close_register(register.id, "0")

        now = utcnow()
        register.opening_date = now - timedelta(hours=2)
        register.closing_date = now - timedelta(hours=1)
        db_session.commit()

        for description, amount, when in [
            ("Antes de abrir", "9000", now - timedelta(hours=3)),
            ("Durante el turno", "500", now - timedelta(minutes=90)),
            ("Después del cierre", "7000", now - timedelta(minutes=30)),
        ]:
            expense_service.create_expense({
                "description": description,
                "amount": amount,
                "expense_date": when.isoformat(),
            })

        summary = register_service.get_register_summary(register.id)

        assert [e.description for e in summary["expenses"]] == ["Durante el turno"]
        assert summary["total_expenses"] == Decimal("500.00")
        assert summary["net_cash"] == Decimal("-500.00")

    def test_summary_of_other_tenants_register(self, db_session, user_a, user_b, act_as):
        act_as(user_a)
        register = register_service.open_register("10000")

        act_as(user_b)
        with pytest.raises(NotFoundError, match="Caja no encontrada"):
            register_service.get_register_summary(register.id)

    def test_current_register_none_when_closed(self, db_session, user_a, act_as):
        act_as(user_a)
        assert register_service.get_current_register() is None

        register = register_service.open_register("0")
        current = register_service.get_current_register()
        assert current["register"].id == register.id
        assert current["recent_sales"] == []

    def test_history_lists_closed_only(self, db_session, user_a, act_as):
        act_as(user_a)
        first = register_service.open_register("0")
        register_service.close_register(first.id, "0")
        register_service.open_register("0")

        history = register_service.get_register_history()
        assert [r.id for r in history] == [first.id]
