# backend/cutquote/routes/webhooks.py
"""
Payment provider webhook.

- POST /api/webhooks/payments

SECURITY:
- No bearer auth: the provider authenticates with X-Payment-Signature,
  the hex HMAC-SHA256 of the raw body under PAYMENT_WEBHOOK_SECRET
- Bad or missing signature -> 401 before the body is parsed
"""

import json

from flask import Blueprint, request, jsonify, current_app

from ..errors import QuoteEngineError, error_response
from ..services import payment_service


webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


@webhooks_bp.post("/payments")
def payment_webhook_route():
    raw_body = request.get_data()
    signature = request.headers.get("X-Payment-Signature")

    if not payment_service.verify_signature(raw_body, signature, current_app.config.get("PAYMENT_WEBHOOK_SECRET")):
        current_app.logger.warning("Rejected payment webhook with invalid signature")
        return jsonify({"error": "invalid_signature", "message": "Invalid webhook signature"}), 401

    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        return jsonify({"error": "validation_error", "message": "Invalid JSON payload"}), 400

    try:
        result = payment_service.handle_payment_event(payload)
        return jsonify(result), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to process payment webhook")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500
