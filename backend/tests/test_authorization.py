# Overview: Pytest coverage for role capabilities at the service boundary.

"""
Authorization Tests

SECURITY TESTS: every orchestrated operation checks one capability before any
database work; actor=None is the trusted internal caller.
"""

import pytest
from conftest import actor
from imeipos.models import Sale
from imeipos.errors import PermissionDenied
from imeipos.services.expense_service import record_expense
from imeipos.services.payment_service import record_payment
from imeipos.services.permission_service import Actor, can, get_permissions, require_permission
from imeipos.services.purchase_service import create_purchase
from imeipos.services.register_service import open_session
from imeipos.services.sales_service import create_sale, delete_sale


class TestCapabilities:

    def test_admin_has_everything(self):
        assert can(actor("admin"), "users:delete")

    def test_trusted_caller(self):
        assert can(None, "sales:delete")

    def test_unknown_role_has_nothing(self):
        assert get_permissions(Actor(user_id=1, role="intern")) == set()
        with pytest.raises(PermissionDenied) as exc_info:
            require_permission(Actor(user_id=1, role="intern"), "sales:read")
        assert exc_info.value.status_code == 403
        assert exc_info.value.details["required_permission"] == "sales:read"

    def test_extra_permissions_granted(self):
        cashier = Actor(user_id=1, role="cashier", extra_permissions=frozenset({"sales:delete"}))

        assert can(cashier, "sales:delete")
        assert not can(cashier, "purchases:write")

    def test_unknown_extra_permission_ignored(self):
        viewer = Actor(user_id=1, role="viewer", extra_permissions=frozenset({"everything:all"}))

        assert "everything:all" not in get_permissions(viewer)


class TestServiceGuards:

    def test_viewer_cannot_sell(self, db_session, stock):
        with pytest.raises(PermissionDenied):
            create_sale(
                items=[{"item_id": stock[0].id, "unit_price": 100}],
                paid_amount=100,
                actor=actor("viewer"),
            )

        assert stock[0].status == "available"

    def test_cashier_sells_and_is_recorded(self, db_session, stock):
        sale = create_sale(
            items=[{"item_id": stock[0].id, "unit_price": 100}],
            paid_amount=100,
            actor=actor("cashier", user_id=7),
        )

        assert sale.created_by_user_id == 7

    def test_cashier_cannot_delete_sale(self, db_session, stock):
        sale = create_sale(items=[{"item_id": stock[0].id, "unit_price": 100}], paid_amount=100)

        with pytest.raises(PermissionDenied):
            delete_sale(sale.id, actor=actor("cashier"))

        assert db_session.query(Sale).count() == 1

    def test_cashier_cannot_purchase(self, db_session, register, product):
        with pytest.raises(PermissionDenied):
            create_purchase(
                items=[{"product_id": product.id, "imei": "111", "unit_price": 100}],
                actor=actor("cashier"),
            )

    def test_cashier_cannot_record_expense(self, db_session, register):
        with pytest.raises(PermissionDenied):
            record_expense(description="Coffee", category="supplies", amount=100, actor=actor("cashier"))

    def test_viewer_cannot_open_register(self, db_session):
        with pytest.raises(PermissionDenied):
            open_session(opening_balance=0, opened_by="Eve", actor=actor("viewer"))

    def test_manager_records_payment(self, db_session, customer):
        payment = record_payment(
            entity_type="customer", entity_id=customer.id, amount=100, actor=actor("manager", user_id=3)
        )

        assert payment.created_by_user_id == 3
