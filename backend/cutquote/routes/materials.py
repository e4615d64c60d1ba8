# backend/cutquote/routes/materials.py
"""
Material catalog routes.

- GET    /api/materials           - Active materials (?include_inactive=true)
- POST   /api/materials           - Create (admin)
- PATCH  /api/materials/:id       - Partial update (admin)
- DELETE /api/materials/:id       - Deactivate, soft delete (admin)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import QuoteEngineError, error_response
from ..decorators import require_auth
from ..services import material_service


materials_bp = Blueprint("materials", __name__, url_prefix="/api/materials")


@materials_bp.get("")
@require_auth
def list_materials_route():
    try:
        include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true")
        materials = material_service.list_materials(g.actor, include_inactive=include_inactive)
        return jsonify({"materials": [m.to_dict() for m in materials]}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list materials")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


@materials_bp.post("")
@require_auth
def create_material_route():
    """
    Request body:
        {"name": "Steel S235", "thickness_mm": 3, "price_per_sqm": 42.5,
         "cutting_speed_factor": 1.2}
    """
    try:
        material = material_service.create_material(g.actor, request.get_json(silent=True))
        return jsonify({"material": material.to_dict()}), 201
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create material")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


@materials_bp.patch("/<int:material_id>")
@require_auth
def update_material_route(material_id: int):
    try:
        material = material_service.update_material(g.actor, material_id, request.get_json(silent=True))
        return jsonify({"material": material.to_dict()}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update material")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


@materials_bp.delete("/<int:material_id>")
@require_auth
def deactivate_material_route(material_id: int):
    try:
        material = material_service.deactivate_material(g.actor, material_id)
        return jsonify({"material": material.to_dict()}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to deactivate material")
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500
