"""
Payment webhook tests.

Verifies:
- HMAC signature checks (bad/missing signature -> 401 before parsing)
- paid on a sent quote accepts it under the system actor
- failed / canceled only update payment_status
- unknown references and ignored resources
"""

import json

import pytest

from cutquote.errors import AuthorizationError, ValidationError
from cutquote.models import Comment, EmailQueueEntry, Quote
from cutquote.services import payment_service
from cutquote.services.payment_service import compute_signature, verify_signature


SECRET = "whsec_test_secret"


def _post(client, payload, secret=SECRET, signature=None):
    raw = json.dumps(payload).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    sig = signature if signature is not None else compute_signature(raw, secret)
    if sig:
        headers["X-Payment-Signature"] = sig
    return client.post("/api/webhooks/payments", data=raw, headers=headers)


@pytest.fixture
def sent_quote(customer, make_quote):
    return make_quote(
        customer,
        status="sent",
        payment_reference="tr_12345",
        total_customer_price=50,
        items=[{"cutting_price": 25, "customer_price": 50}],
    )


class TestSignature:

    def test_valid_signature(self):
        raw = b'{"id":"tr_1"}'
        assert verify_signature(raw, compute_signature(raw, SECRET), SECRET)

    def test_tampered_body(self):
        sig = compute_signature(b'{"id":"tr_1"}', SECRET)
        assert not verify_signature(b'{"id":"tr_2"}', sig, SECRET)

    def test_empty_secret_rejects_everything(self):
        raw = b"{}"
        assert not verify_signature(raw, compute_signature(raw, ""), "")
        assert not verify_signature(raw, None, SECRET)

    def test_route_rejects_bad_signature(self, client, db_session, sent_quote):
        resp = _post(client, {"id": "tr_12345", "status": "paid"}, signature="deadbeef")

        assert resp.status_code == 401
        assert db_session.get(Quote, sent_quote.id).status == "sent"

    def test_route_rejects_missing_signature(self, client, db_session, sent_quote):
        resp = _post(client, {"id": "tr_12345", "status": "paid"}, signature="")
        assert resp.status_code == 401


class TestWebhookEvents:

    def test_paid_accepts_sent_quote(self, client, db_session, sent_quote):
        resp = _post(client, {"id": "tr_12345", "status": "paid"})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["processed"] is True
        assert body["status"] == "accepted"

        quote = db_session.get(Quote, sent_quote.id)
        assert quote.status == "accepted"
        assert quote.payment_status == "paid"
        assert quote.accepted_at is not None

        comment = db_session.query(Comment).filter_by(quote_id=quote.id).one()
        assert comment.content == "Payment paid: tr_12345"
        assert db_session.query(EmailQueueEntry).filter_by(template_id="quote_accepted").count() == 1

    def test_replayed_paid_event_is_harmless(self, client, db_session, sent_quote):
        _post(client, {"id": "tr_12345", "status": "paid"})
        resp = _post(client, {"id": "tr_12345", "status": "paid"})

        assert resp.status_code == 200
        assert db_session.get(Quote, sent_quote.id).status == "accepted"
        assert db_session.query(EmailQueueEntry).filter_by(template_id="quote_accepted").count() == 1

    @pytest.mark.parametrize("provider_status,expected", [("failed", "failed"), ("expired", "failed"),
                                                          ("canceled", "canceled")])
    def test_unsuccessful_payment_keeps_status(self, client, db_session, sent_quote, provider_status, expected):
        resp = _post(client, {"id": "tr_12345", "status": provider_status})

        assert resp.status_code == 200
        quote = db_session.get(Quote, sent_quote.id)
        assert quote.status == "sent"
        assert quote.payment_status == expected

    def test_open_status_is_acknowledged_without_change(self, client, db_session, sent_quote):
        resp = _post(client, {"id": "tr_12345", "status": "open"})

        assert resp.status_code == 200
        assert resp.get_json()["processed"] is False
        assert db_session.get(Quote, sent_quote.id).payment_status == "unpaid"

    def test_unknown_reference_is_not_found(self, client, db_session, sent_quote):
        resp = _post(client, {"id": "tr_nope", "status": "paid"})
        assert resp.status_code == 404

    def test_other_resource_ignored(self, client, db_session, sent_quote):
        resp = _post(client, {"resource": "refund", "id": "re_1", "status": "paid"})

        assert resp.status_code == 200
        assert resp.get_json()["processed"] is False
        assert db_session.get(Quote, sent_quote.id).status == "sent"

    def test_unknown_status_is_validation_error(self, db_session, sent_quote):
        with pytest.raises(ValidationError):
            payment_service.handle_payment_event({"id": "tr_12345", "status": "exploded"})


class TestPaymentReference:

    def test_admin_registers_reference(self, db_session, customer, admin, make_quote, actor_of):
        quote = make_quote(customer, status="sent")
        payment_service.register_payment_reference(quote.id, actor_of(admin), " tr_999 ")
        assert db_session.get(Quote, quote.id).payment_reference == "tr_999"

    def test_reference_must_be_unique(self, db_session, customer, admin, sent_quote, make_quote, actor_of):
        other = make_quote(customer, status="sent")
        with pytest.raises(ValidationError):
            payment_service.register_payment_reference(other.id, actor_of(admin), "tr_12345")

    def test_customer_cannot_register(self, db_session, customer, sent_quote, actor_of):
        with pytest.raises(AuthorizationError):
            payment_service.register_payment_reference(sent_quote.id, actor_of(customer), "tr_x")
