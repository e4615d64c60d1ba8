# backend/cutquote/routes/quotes.py
"""
Quote API Routes

Intake, lifecycle and pricing endpoints for quotes:
- POST /api/quotes                          - Create a quote (customer/admin)
- GET  /api/quotes/search                   - Role-filtered search
- GET  /api/quotes/:id                      - Quote with line items
- PUT  /api/quotes/:id/status               - Request a status transition
- POST /api/quotes/:id/assign               - Assign/unassign operator (admin)
- POST /api/quotes/:id/calculate-pricing    - Pricing breakdown (admin)
- POST /api/quotes/:id/send-quote           - Send to customer (admin)
- POST /api/quotes/:id/create-revision      - Fork a revision (admin)
- GET  /api/quotes/:id/revisions            - Root + all revisions
- POST /api/quotes/:id/respond              - Customer accept/decline/request_revision
- GET  /api/quotes/:id/comments             - Comment thread
- POST /api/quotes/:id/comments             - Add comment
- POST /api/quotes/:id/line-items           - Register an uploaded drawing
- POST /api/quotes/:id/payment-reference    - Store provider payment id (admin)

SECURITY:
- All routes require authentication
- The acting user comes from the session (g.actor), NEVER from the body
- Role, ownership and status rules are enforced in the services
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import QuoteEngineError, ValidationError, error_response
from ..decorators import require_auth
from ..services import (
    assignment_service,
    comment_service,
    line_item_service,
    payment_service,
    pricing_service,
    quote_service,
    response_service,
    revision_service,
    transition_service,
)


quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def _internal_error(what: str):
    current_app.logger.exception("Failed to %s", what)
    return jsonify({"error": "internal_error", "message": "Internal server error"}), 500


@quotes_bp.post("")
@require_auth
def create_quote_route():
    """
    Create a pending quote.

    Request body:
        {
            "shipping_address": {"street", "city", "postal_code", "country"},
            "deadline": "YYYY-MM-DD",      // optional
            "notes": "...",                // optional
            "customer_id": 5               // admins only
        }

    Error responses:
        400: Missing/invalid fields
        403: Role may not create quotes
    """
    try:
        data = _json_body()
        quote = quote_service.create_quote(
            g.actor,
            shipping_address=data.get("shipping_address"),
            deadline=data.get("deadline"),
            notes=data.get("notes"),
            customer_id=data.get("customer_id"),
        )
        return jsonify({"quote": quote.to_dict()}), 201
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("create quote")


@quotes_bp.get("/search")
@require_auth
def search_quotes_route():
    """
    Query parameters:
        status, quote_number, date_from, date_to (YYYY-MM-DD), page, limit
    """
    try:
        page = request.args.get("page", type=int, default=1)
        limit = request.args.get("limit", type=int, default=20)
        items, total = quote_service.search_quotes(
            g.actor,
            status=request.args.get("status"),
            quote_number=request.args.get("quote_number"),
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "quotes": [q.to_dict() for q in items],
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit,
        }), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("search quotes")


@quotes_bp.get("/<int:quote_id>")
@require_auth
def get_quote_route(quote_id: int):
    try:
        quote = quote_service.get_quote(quote_id, g.actor)
        return jsonify({"quote": quote_service.quote_detail(quote, g.actor)}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("load quote")


@quotes_bp.put("/<int:quote_id>/status")
@require_auth
def change_status_route(quote_id: int):
    """
    Request a status transition.

    Request body:
        {"status": "needs_attention"}

    Error responses:
        400: Unknown status
        403: Role may not request this status / quote owned by another operator
        404: Quote not found
        409: Transition not allowed from the current status
    """
    try:
        data = _json_body()
        requested = data.get("status")
        if not isinstance(requested, str) or not requested:
            raise ValidationError("status is required")
        quote = transition_service.change_status(quote_id, requested, g.actor)
        return jsonify({
            "quote": quote.to_dict(),
            "message": f"Quote {quote.quote_number} is now {quote.status}",
        }), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("change quote status")


@quotes_bp.post("/<int:quote_id>/assign")
@require_auth
def assign_operator_route(quote_id: int):
    """Request body: {"operator_id": 7} (null unassigns)."""
    try:
        data = _json_body()
        if "operator_id" not in data:
            raise ValidationError("operator_id is required (use null to unassign)")
        quote = assignment_service.assign_operator(quote_id, g.actor, data["operator_id"])
        return jsonify({"quote": quote.to_dict()}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("assign operator")


@quotes_bp.post("/<int:quote_id>/calculate-pricing")
@require_auth
def calculate_pricing_route(quote_id: int):
    try:
        breakdown = pricing_service.calculate_pricing(quote_id, g.actor)
        return jsonify({"pricing": breakdown}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("calculate pricing")


@quotes_bp.post("/<int:quote_id>/send-quote")
@require_auth
def send_quote_route(quote_id: int):
    try:
        quote = quote_service.send_quote(quote_id, g.actor)
        return jsonify({
            "quote": quote.to_dict(),
            "message": f"Quote {quote.quote_number} sent",
        }), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("send quote")


@quotes_bp.post("/<int:quote_id>/create-revision")
@require_auth
def create_revision_route(quote_id: int):
    """
    Fork a revision.

    Request body:
        {"note": "Thicker material"}   // optional

    Response includes "warnings" when a best-effort side effect (comments,
    audit row) failed; the revision itself is created regardless.
    """
    try:
        data = _json_body()
        result = revision_service.create_revision(quote_id, g.actor, data.get("note"))
        return jsonify({
            "quote": result.quote.to_dict(),
            "original_quote_id": result.original.id,
            "line_items_copied": len(result.quote.line_items),
            "warnings": result.warnings,
        }), 201
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("create revision")


@quotes_bp.get("/<int:quote_id>/revisions")
@require_auth
def list_revisions_route(quote_id: int):
    try:
        lineage = revision_service.get_lineage(quote_id, g.actor)
        return jsonify({"quotes": [q.to_dict() for q in lineage]}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("list revisions")


@quotes_bp.post("/<int:quote_id>/respond")
@require_auth
def respond_route(quote_id: int):
    """
    Customer response to a sent quote.

    Request body:
        {"action": "accept" | "decline" | "request_revision", "message": "..."}

    Error responses:
        400: Unknown action / missing message
        403: Not a customer
        404: Quote not found
        409: Quote not sent
        429: Too many responses (Retry-After header set)
    """
    try:
        data = _json_body()
        result = response_service.respond(quote_id, g.actor, data.get("action"), data.get("message"))
        return jsonify(result), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("record quote response")


@quotes_bp.get("/<int:quote_id>/comments")
@require_auth
def list_comments_route(quote_id: int):
    try:
        comments = comment_service.list_comments(quote_id, g.actor)
        return jsonify({"comments": [c.to_dict() for c in comments]}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("list comments")


@quotes_bp.post("/<int:quote_id>/comments")
@require_auth
def add_comment_route(quote_id: int):
    """Request body: {"content": "...", "visibility": "public" | "internal"}"""
    try:
        data = _json_body()
        comment = comment_service.add_comment(
            quote_id, g.actor, data.get("content"), data.get("visibility", "public")
        )
        return jsonify({"comment": comment.to_dict()}), 201
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("add comment")


@quotes_bp.post("/<int:quote_id>/line-items")
@require_auth
def add_line_item_route(quote_id: int):
    """
    Register an uploaded drawing (file storage is external).

    Request body:
        {
            "dxf_file_url": "...", "dxf_file_name": "part.dxf",
            "pdf_file_url": "...", "pdf_file_name": "part.pdf",   // optional
            "quantity": 4,                                       // default 1
            "part_dimensions": {...}                             // optional
        }
    """
    try:
        data = _json_body()
        item = line_item_service.add_line_item(
            quote_id,
            g.actor,
            dxf_file_url=data.get("dxf_file_url"),
            dxf_file_name=data.get("dxf_file_name"),
            pdf_file_url=data.get("pdf_file_url"),
            pdf_file_name=data.get("pdf_file_name"),
            quantity=data.get("quantity"),
            part_dimensions=data.get("part_dimensions"),
        )
        return jsonify({"line_item": item.to_dict()}), 201
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("add line item")


@quotes_bp.post("/<int:quote_id>/payment-reference")
@require_auth
def payment_reference_route(quote_id: int):
    """Request body: {"payment_reference": "tr_abc123"}"""
    try:
        data = _json_body()
        quote = payment_service.register_payment_reference(
            quote_id, g.actor, data.get("payment_reference")
        )
        return jsonify({"quote": quote.to_dict()}), 200
    except QuoteEngineError as e:
        return error_response(e)
    except Exception:
        return _internal_error("register payment reference")
