# Overview: Payment provider webhook processing; drives acceptance under the system actor.

"""
Payment Webhook Service

================================================================================
PURPOSE: Translate provider payment events into quote payment state
================================================================================

SIGNATURE:
- The provider signs the raw request body with HMAC-SHA256 under
  PAYMENT_WEBHOOK_SECRET and sends the hex digest in X-Payment-Signature
- Comparison uses hmac.compare_digest
- An empty secret rejects every request

STATUS MAPPING (provider -> quote.payment_status):
    paid     -> paid      (and sent -> accepted via the validator, system actor)
    failed   -> failed
    expired  -> failed
    canceled -> canceled
    open / pending / authorized -> no change, acknowledged

IDEMPOTENCY:
- Replayed events leave the quote unchanged: payment_status is simply set
  again and accepted is only driven from sent
================================================================================
"""

from __future__ import annotations

import hashlib
import hmac

from flask import current_app

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models import Quote
from ..permissions import ADMIN_ONLY, SYSTEM_ACTOR, Actor
from ..validation import optional_text
from .comment_service import add_system_comment
from .concurrency import lock_for_update, run_with_retry
from .transition_service import STATUS_ACCEPTED, STATUS_SENT, apply_transition, notify_transition


PAYMENT_STATUS_MAP = {
    "paid": "paid",
    "failed": "failed",
    "expired": "failed",
    "canceled": "canceled",
}

# Intermediate provider states that require no action
IGNORED_PROVIDER_STATUSES = frozenset({"open", "pending", "authorized"})


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    if not secret or not signature:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())


def register_payment_reference(quote_id: int, actor: Actor, payment_reference: str) -> Quote:
    """Store the provider payment id created for a sent quote (admin only)."""
    if not ADMIN_ONLY[actor.role]:
        raise AuthorizationError("Only admins can register payments")
    payment_reference = optional_text(payment_reference, "payment_reference")
    if not payment_reference:
        raise ValidationError("payment_reference is required")

    def _op():
        quote = lock_for_update(db.session.query(Quote).filter_by(id=quote_id)).first()
        if not quote:
            raise NotFoundError(f"Quote {quote_id} not found")
        taken = (
            db.session.query(Quote.id)
            .filter(Quote.payment_reference == payment_reference, Quote.id != quote.id)
            .first()
        )
        if taken:
            raise ValidationError("payment_reference is already used by another quote")
        quote.payment_reference = payment_reference
        db.session.commit()
        return quote

    return run_with_retry(_op)


def handle_payment_event(payload: dict) -> dict:
    """
    Apply one verified webhook payload.

    Returns a small summary for the HTTP acknowledgement.

    Raises:
        ValidationError: payload missing id/status or unknown status
        NotFoundError: no quote carries this payment reference
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if payload.get("resource", "payment") != "payment":
        return {"processed": False, "reason": "ignored resource"}

    payment_id = str(payload.get("id") or "").strip()
    provider_status = str(payload.get("status") or "").strip().lower()
    if not payment_id or not provider_status:
        raise ValidationError("id and status are required")

    if provider_status in IGNORED_PROVIDER_STATUSES:
        return {"processed": False, "reason": f"status '{provider_status}' requires no action"}

    payment_status = PAYMENT_STATUS_MAP.get(provider_status)
    if payment_status is None:
        raise ValidationError(f"Unknown payment status '{provider_status}'")

    def _op():
        quote = lock_for_update(
            db.session.query(Quote).filter_by(payment_reference=payment_id)
        ).first()
        if not quote:
            raise NotFoundError(f"No quote for payment {payment_id}")

        quote.payment_status = payment_status
        accepted = False
        if payment_status == "paid" and quote.status == STATUS_SENT:
            apply_transition(quote, STATUS_ACCEPTED, SYSTEM_ACTOR)
            accepted = True
        db.session.commit()
        return quote, accepted

    quote, accepted = run_with_retry(_op)
    current_app.logger.info(
        "Payment %s for %s: %s (accepted=%s)", payment_id, quote.quote_number, provider_status, accepted
    )

    try:
        add_system_comment(quote.id, f"Payment {provider_status}: {payment_id}")
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record payment comment on %s", quote.quote_number)

    if accepted:
        notify_transition(quote, SYSTEM_ACTOR)

    return {
        "processed": True,
        "quote_id": quote.id,
        "payment_status": payment_status,
        "status": quote.status,
    }
