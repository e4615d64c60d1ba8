"""
Order and material catalog tests.

Verifies:
- Orders only from accepted, priced quotes; one per quote
- Order visibility by role and fulfilment timestamps
- Material validation, uniqueness and soft delete
"""

from decimal import Decimal

import pytest

from cutquote.errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from cutquote.models import Material
from cutquote.services import material_service, order_service


@pytest.fixture
def accepted_quote(customer, operator, make_quote):
    return make_quote(
        customer,
        status="accepted",
        operator=operator,
        payment_status="paid",
        total_customer_price=Decimal("120.00"),
        items=[{"cutting_price": 60, "customer_price": 120}],
    )


# =============================================================================
# ORDERS
# =============================================================================


class TestCreateOrder:

    def test_customer_orders_own_accepted_quote(self, db_session, customer, accepted_quote, actor_of):
        order = order_service.create_order(accepted_quote.id, actor_of(customer))

        assert order.order_number.startswith("O")
        assert len(order.order_number) == 7
        assert order.total_amount == Decimal("120.00")
        assert order.payment_status == "paid"
        assert order.operator_id == accepted_quote.operator_id

    def test_numbers_increase(self, db_session, customer, admin, make_quote, actor_of):
        first = make_quote(customer, status="accepted", total_customer_price=Decimal("10"))
        second = make_quote(customer, status="accepted", total_customer_price=Decimal("10"))

        a = order_service.create_order(first.id, actor_of(admin))
        b = order_service.create_order(second.id, actor_of(admin))

        assert (a.order_number, b.order_number) == ("O000001", "O000002")

    def test_one_order_per_quote(self, db_session, customer, accepted_quote, actor_of):
        order_service.create_order(accepted_quote.id, actor_of(customer))
        with pytest.raises(StateConflictError):
            order_service.create_order(accepted_quote.id, actor_of(customer))

    def test_quote_must_be_accepted(self, db_session, customer, make_quote, actor_of):
        quote = make_quote(customer, status="sent", total_customer_price=Decimal("10"))
        with pytest.raises(StateConflictError):
            order_service.create_order(quote.id, actor_of(customer))

    def test_other_customer_gets_not_found(self, db_session, other_customer, accepted_quote, actor_of):
        with pytest.raises(NotFoundError):
            order_service.create_order(accepted_quote.id, actor_of(other_customer))

    def test_operator_cannot_create(self, db_session, operator, accepted_quote, actor_of):
        with pytest.raises(AuthorizationError):
            order_service.create_order(accepted_quote.id, actor_of(operator))


class TestOrderVisibilityAndUpdates:

    def test_visibility(self, db_session, customer, other_customer, other_operator, accepted_quote, actor_of):
        order = order_service.create_order(accepted_quote.id, actor_of(customer))

        assert [o.id for o in order_service.list_orders(actor_of(customer))] == [order.id]
        assert order_service.list_orders(actor_of(other_customer)) == []
        assert order_service.list_orders(actor_of(other_operator)) == []
        with pytest.raises(NotFoundError):
            order_service.get_order(order.id, actor_of(other_customer))

    def test_status_stamps_timestamp_once(self, db_session, customer, operator, accepted_quote, actor_of):
        order = order_service.create_order(accepted_quote.id, actor_of(customer))

        updated = order_service.update_order(order.id, actor_of(operator), {"status": "in_production"})
        started = updated.production_started_at
        assert started is not None

        updated = order_service.update_order(
            order.id, actor_of(operator), {"status": "in_production", "shipping_tracking_number": " 3SABC "}
        )
        assert updated.production_started_at == started
        assert updated.shipping_tracking_number == "3SABC"

    def test_customer_cannot_update(self, db_session, customer, accepted_quote, actor_of):
        order = order_service.create_order(accepted_quote.id, actor_of(customer))
        with pytest.raises(AuthorizationError):
            order_service.update_order(order.id, actor_of(customer), {"status": "shipped"})

    @pytest.mark.parametrize("fields", [
        {"status": "lost"}, {"total_amount": "1.00"}, {},
        {"status": ["shipped"]}, {"payment_status": 1}, {"invoice_url": 42},
    ])
    def test_rejects_bad_fields(self, db_session, customer, admin, accepted_quote, actor_of, fields):
        order = order_service.create_order(accepted_quote.id, actor_of(customer))
        with pytest.raises(ValidationError):
            order_service.update_order(order.id, actor_of(admin), fields)


# =============================================================================
# MATERIALS
# =============================================================================


class TestMaterials:

    def test_create_and_list(self, db_session, admin, operator, actor_of):
        material_service.create_material(
            actor_of(admin), {"name": "Aluminium 5754", "thickness_mm": "2", "price_per_sqm": 30}
        )

        names = [m.name for m in material_service.list_materials(actor_of(operator))]
        assert names == ["Aluminium 5754"]

    def test_default_speed_factor(self, db_session, admin, actor_of):
        material = material_service.create_material(
            actor_of(admin), {"name": "Steel", "thickness_mm": 3, "price_per_sqm": 40}
        )
        assert material.cutting_speed_factor == Decimal("1.00")

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "Steel", "thickness_mm": -1, "price_per_sqm": 40},
            {"name": "Steel", "thickness_mm": 3},
            {"name": "Steel", "thickness_mm": 3, "price_per_sqm": 40, "unknown": 1},
        ],
    )
    def test_invalid_payloads(self, db_session, admin, actor_of, payload):
        with pytest.raises(ValidationError):
            material_service.create_material(actor_of(admin), payload)

    def test_duplicate_is_conflict(self, db_session, admin, actor_of):
        payload = {"name": "Steel", "thickness_mm": 3, "price_per_sqm": 40}
        material_service.create_material(actor_of(admin), payload)
        with pytest.raises(StateConflictError):
            material_service.create_material(actor_of(admin), dict(payload))

    def test_deactivate_hides_from_default_list(self, db_session, admin, make_material, actor_of):
        material = make_material()

        material_service.deactivate_material(actor_of(admin), material.id)

        assert material_service.list_materials(actor_of(admin)) == []
        assert len(material_service.list_materials(actor_of(admin), include_inactive=True)) == 1
        assert db_session.get(Material, material.id).is_active is False

    def test_customer_cannot_view(self, db_session, customer, actor_of):
        with pytest.raises(AuthorizationError):
            material_service.list_materials(actor_of(customer))

    def test_operator_cannot_create(self, db_session, operator, actor_of):
        with pytest.raises(AuthorizationError):
            material_service.create_material(
                actor_of(operator), {"name": "Steel", "thickness_mm": 3, "price_per_sqm": 40}
            )
