"""
HTTP API tests.

Verifies:
- Every protected route returns 401 without a valid bearer token
- Typed errors map to 400 / 403 / 404 / 409 / 429, and non-string JSON fields are 400s
- A complete quote lifecycle through the API, ending in an order
"""

import pytest


ADDRESS = {
    "street": "Keizersgracht 1",
    "city": "Amsterdam",
    "postal_code": "1015 CJ",
    "country": "NL",
}


@pytest.mark.parametrize(
    "method,path",
    [
        ("post", "/api/quotes"),
        ("get", "/api/quotes/search"),
        ("get", "/api/quotes/1"),
        ("put", "/api/quotes/1/status"),
        ("post", "/api/quotes/1/send-quote"),
        ("post", "/api/quotes/1/respond"),
        ("put", "/api/line-items/1/cutting-price"),
        ("get", "/api/materials"),
        ("get", "/api/orders"),
        ("post", "/api/notifications/queue-email"),
    ],
)
def test_requires_authentication(client, db_session, method, path):
    resp = getattr(client, method)(path, json={})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "authentication_required"


def test_invalid_token_rejected(client, db_session):
    resp = client.get("/api/quotes/search", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


def test_deactivated_user_rejected(client, db_session, customer, headers_for):
    headers = headers_for(customer)
    customer.is_active = False
    db_session.commit()

    assert client.get("/api/quotes/search", headers=headers).status_code == 401


def test_health(client, db_session):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "healthy"


class TestErrorMapping:

    def test_validation_error(self, client, db_session, customer, headers_for):
        resp = client.post("/api/quotes", json={"shipping_address": {"city": "Utrecht"}},
                           headers=headers_for(customer))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "validation_error"

    def test_operator_cannot_send(self, client, db_session, customer, operator, make_quote, headers_for):
        quote = make_quote(customer, status="ready_for_pricing", operator=operator)
        resp = client.post(f"/api/quotes/{quote.id}/send-quote", headers=headers_for(operator))
        assert resp.status_code == 403

    def test_admin_only_notification_route(self, client, db_session, operator, headers_for):
        resp = client.get("/api/notifications/queue-email", headers=headers_for(operator))
        assert resp.status_code == 403

    def test_foreign_quote_is_404(self, client, db_session, customer, other_customer, make_quote, headers_for):
        quote = make_quote(customer)
        resp = client.get(f"/api/quotes/{quote.id}", headers=headers_for(other_customer))
        assert resp.status_code == 404

    def test_skipping_status_is_409(self, client, db_session, customer, admin, make_quote, headers_for):
        quote = make_quote(customer, status="pending")
        resp = client.put(f"/api/quotes/{quote.id}/status", json={"status": "sent"}, headers=headers_for(admin))

        assert resp.status_code == 409
        assert resp.get_json()["error"] == "state_conflict"

    @pytest.mark.parametrize(
        "role,status,path,body",
        [
            ("admin", "sent", "/api/quotes/{id}/create-revision", {"note": 5}),
            ("customer", "sent", "/api/quotes/{id}/respond", {"action": ["accept"]}),
            ("customer", "sent", "/api/quotes/{id}/respond", {"action": "request_revision", "message": 7}),
            ("admin", "sent", "/api/quotes/{id}/payment-reference", {"payment_reference": 123}),
            ("admin", "pending", "/api/quotes/{id}/status", {"status": ["needs_attention"]}),
            ("customer", "pending", "/api/quotes", {"shipping_address": ADDRESS, "notes": ["rush"]}),
            ("admin", "pending", "/api/quotes", {"shipping_address": ADDRESS, "customer_id": [1]}),
            ("customer", "pending", "/api/quotes/{id}/line-items",
             {"dxf_file_url": 1, "dxf_file_name": "plate.dxf"}),
            ("customer", "pending", "/api/quotes/{id}/line-items",
             {"dxf_file_url": "https://files.example.com/plate.dxf", "dxf_file_name": ["plate.dxf"]}),
            ("customer", "pending", "/api/quotes/{id}/line-items",
             {"dxf_file_url": "https://files.example.com/plate.dxf", "dxf_file_name": "plate.dxf",
              "pdf_file_name": 3}),
            ("customer", "pending", "/api/quotes/{id}/comments", {"content": "hi", "visibility": ["public"]}),
            ("admin", "pending", "/api/notifications/queue-email", {"template_id": ["quote_sent"], "quote_id": "{id}"}),
            ("admin", "pending", "/api/notifications/queue-email",
             {"template_id": "quote_sent", "quote_id": "{id}", "recipient_override": 5}),
        ],
    )
    def test_non_string_fields_are_validation_errors(self, request, client, db_session, customer, make_quote,
                                                      headers_for, role, status, path, body):
        quote = make_quote(customer, status=status, total_customer_price=10)
        body = {k: (quote.id if v == "{id}" else v) for k, v in body.items()}

        send = client.put if path.endswith("/status") else client.post
        resp = send(path.format(id=quote.id), json=body, headers=headers_for(request.getfixturevalue(role)))

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "validation_error"

    def test_rate_limited_sets_retry_after(self, client, db_session, customer, make_quote, headers_for):
        quote = make_quote(customer, status="sent", total_customer_price=10)
        headers = headers_for(customer)
        body = {"action": "request_revision", "message": "Smaller holes please"}

        for _ in range(5):
            assert client.post(f"/api/quotes/{quote.id}/respond", json=body, headers=headers).status_code == 200
        resp = client.post(f"/api/quotes/{quote.id}/respond", json=body, headers=headers)

        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) > 0


class TestLifecycle:

    def test_quote_to_order(self, client, db_session, customer, operator, admin, make_material, headers_for):
        material = make_material()
        as_customer = headers_for(customer)
        as_operator = headers_for(operator)
        as_admin = headers_for(admin)

        # Intake
        resp = client.post("/api/quotes", json={"shipping_address": ADDRESS, "deadline": "2026-12-01"},
                           headers=as_customer)
        assert resp.status_code == 201
        quote = resp.get_json()["quote"]
        assert quote["quote_number"] == "Q000001"
        assert quote["status"] == "pending"
        quote_id = quote["id"]

        resp = client.post(f"/api/quotes/{quote_id}/line-items", headers=as_customer, json={
            "dxf_file_url": "https://files.example.com/bracket.dxf",
            "dxf_file_name": "bracket.dxf",
            "quantity": 2,
        })
        assert resp.status_code == 201
        item_id = resp.get_json()["line_item"]["id"]

        # Triage: the operator claims the quote
        resp = client.put(f"/api/quotes/{quote_id}/status", json={"status": "needs_attention"}, headers=as_operator)
        assert resp.status_code == 200
        assert resp.get_json()["quote"]["operator_id"] == operator.id

        resp = client.put(f"/api/line-items/{item_id}/material", headers=as_operator, json={
            "material_id": material.id, "cutting_price": "10.00", "production_time_hours": 0.75,
        })
        assert resp.status_code == 200
        assert resp.get_json()["quote_totals"]["total_cutting_price"] == "20.00"

        resp = client.put(f"/api/quotes/{quote_id}/status", json={"status": "ready_for_pricing"}, headers=as_operator)
        assert resp.status_code == 200

        # Pricing
        resp = client.put(f"/api/line-items/{item_id}/customer-price", json={"customer_price": 20},
                          headers=as_admin)
        assert resp.status_code == 200
        totals = resp.get_json()["quote_totals"]
        assert totals["total_customer_price"] == "40.00"
        assert totals["margin_percentage"] == 100

        resp = client.post(f"/api/quotes/{quote_id}/calculate-pricing", headers=as_admin)
        assert resp.status_code == 200

        resp = client.post(f"/api/quotes/{quote_id}/send-quote", headers=as_admin)
        assert resp.status_code == 200
        assert resp.get_json()["quote"]["status"] == "sent"

        # Customer view hides the cost side
        detail = client.get(f"/api/quotes/{quote_id}", headers=as_customer).get_json()["quote"]
        assert detail["total_customer_price"] == "40.00"
        assert detail["total_cutting_price"] is None
        assert detail["line_items"][0]["cutting_price"] is None
        assert detail["margin_percentage"] is None

        # Decision
        resp = client.post(f"/api/quotes/{quote_id}/respond", json={"action": "accept"}, headers=as_customer)
        assert resp.status_code == 200
        assert resp.get_json()["quote"]["status"] == "accepted"

        resp = client.post("/api/orders", json={"quote_id": quote_id}, headers=as_customer)
        assert resp.status_code == 201
        order = resp.get_json()["order"]
        assert order["order_number"] == "O000001"
        assert order["total_amount"] == "40.00"

        # Admin can see the notification trail
        emails = client.get("/api/notifications/queue-email", headers=as_admin).get_json()["emails"]
        templates = {e["template_id"] for e in emails}
        assert {"new_quote_created", "quote_needs_attention", "quote_sent", "quote_accepted"} <= templates

    def test_search_is_role_filtered(self, client, db_session, customer, other_customer, make_quote, headers_for):
        mine = make_quote(customer)
        make_quote(other_customer)

        body = client.get("/api/quotes/search", headers=headers_for(customer)).get_json()

        assert body["total"] == 1
        assert [q["id"] for q in body["quotes"]] == [mine.id]
