# backend/cutquote/routes/notifications.py
"""
Notification queue routes (admin).

- POST /api/notifications/queue-email  - Queue a template for a quote
- GET  /api/notifications/queue-email  - List queued rows (?status=pending&limit=50)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import QuoteEngineError, ValidationError, error_response
from ..decorators import require_auth, require_role
from ..permissions import Role
from ..services import notification_service


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.post("/queue-email")
@require_auth
@require_role(Role.ADMIN)
def queue_email_route():
    """
    Request body:
        {"template_id": "quote_sent", "quote_id": 12, "recipient_override": "x@y.z"}

    Error responses:
        400: Unknown template / missing fields
        404: Quote not found
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Invalid JSON payload")
        entries = notification_service.queue_email(
            data.get("template_id"),
            data.get("quote_id"),
            data.get("recipient_override"),
            actor_user_id=g.actor.user_id,
        )
        return jsonify({
            "queued": len(entries),
            "recipients": [e.to_email for e in entries],
        }), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to queue email")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


@notifications_bp.get("/queue-email")
@require_auth
@require_role(Role.ADMIN)
def list_queue_route():
    try:
        entries = notification_service.list_queue(
            status=request.args.get("status", "pending"),
            limit=request.args.get("limit", type=int, default=50),
        )
        return jsonify({"emails": [e.to_dict() for e in entries]}), 200
    except Exception:
        current_app.logger.exception("Failed to list email queue")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500
