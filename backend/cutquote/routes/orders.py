# backend/cutquote/routes/orders.py
"""
Order routes.

- GET   /api/orders        - Role-filtered list (?status=, ?limit=)
- POST  /api/orders        - Create from an accepted quote {"quote_id": 12}
- GET   /api/orders/:id
- PATCH /api/orders/:id    - status, payment_status, shipping_tracking_number, invoice_url
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import QuoteEngineError, ValidationError, error_response
from ..decorators import require_auth
from ..services import order_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        orders = order_service.list_orders(
            g.actor,
            status=request.args.get("status"),
            limit=request.args.get("limit", type=int, default=50),
        )
        return jsonify({"orders": [o.to_dict() for o in orders]}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


@orders_bp.post("")
@require_auth
def create_order_route():
    try:
        data = request.get_json(silent=True) or {}
        quote_id = data.get("quote_id") if isinstance(data, dict) else None
        if isinstance(quote_id, bool) or not isinstance(quote_id, int):
            raise ValidationError("quote_id must be an integer")
        order = order_service.create_order(quote_id, g.actor)
        return jsonify({"order": order.to_dict()}), 201
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id, g.actor)
        return jsonify({"order": order.to_dict()}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    try:
        order = order_service.update_order(order_id, g.actor, request.get_json(silent=True))
        return jsonify({"order": order.to_dict()}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500
