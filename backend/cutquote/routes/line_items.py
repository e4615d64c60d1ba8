# backend/cutquote/routes/line_items.py
"""
Line Item Pricing Routes

- PUT /api/line-items/:id/material        - Assign material (+ optional estimate)
- PUT /api/line-items/:id/cutting-price   - Operator/admin cost estimate
- PUT /api/line-items/:id/customer-price  - Admin sale price

Every successful write returns the line item and the recomputed quote
totals. A 502 dependency_error means the write was saved but the totals
could not be recalculated (details.write_committed is true).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import QuoteEngineError, ValidationError, error_response
from ..decorators import require_auth
from ..services import line_item_service


line_items_bp = Blueprint("line_items", __name__, url_prefix="/api/line-items")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


@line_items_bp.put("/<int:line_item_id>/material")
@require_auth
def assign_material_route(line_item_id: int):
    """
    Request body:
        {"material_id": 3, "cutting_price": 12.5, "production_time_hours": 0.5}
    """
    try:
        data = _json_body()
        result = line_item_service.assign_material(
            line_item_id,
            g.actor,
            data.get("material_id"),
            cutting_price=data.get("cutting_price"),
            production_time_hours=data.get("production_time_hours"),
        )
        return jsonify(result.to_dict()), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to assign material")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


@line_items_bp.put("/<int:line_item_id>/cutting-price")
@require_auth
def cutting_price_route(line_item_id: int):
    """Request body: {"cutting_price": 10.00, "production_time_hours": 1.5}"""
    try:
        data = _json_body()
        result = line_item_service.set_cutting_price(
            line_item_id,
            g.actor,
            data.get("cutting_price"),
            data.get("production_time_hours"),
        )
        return jsonify(result.to_dict()), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set cutting price")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


@line_items_bp.put("/<int:line_item_id>/customer-price")
@require_auth
def customer_price_route(line_item_id: int):
    """Request body: {"customer_price": 20.00}"""
    try:
        data = _json_body()
        result = line_item_service.set_customer_price(line_item_id, g.actor, data.get("customer_price"))
        return jsonify(result.to_dict()), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to set customer price")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500
