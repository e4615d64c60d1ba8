# Overview: Line-item mutations (intake, material, cutting price, customer price).

"""
Line Item Service

MUTATION CONTRACTS:
- add_line_item:      owning customer or admin; quote must be pending
- assign_material:    operator/admin; active material; status in
                      {pending, needs_attention, ready_for_pricing}
- set_cutting_price:  operator on their own quote, or admin; status in
                      {needs_attention, ready_for_pricing}; never above an
                      already-set customer price
- set_customer_price: admin only; status in {ready_for_pricing, sent};
                      never below the item's cutting price (margin floor)

ORDERING (price writes):
    1. validate role, input, ownership, status and margin floor
    2. commit the line-item write
    3. recompute quote totals in a separate transaction
       (failure -> DependencyError, the write stays committed)
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from ..models import LineItem, Material, Quote
from ..permissions import (
    CAN_ASSIGN_MATERIAL,
    CAN_WRITE_CUSTOMER_PRICE,
    CAN_WRITE_CUTTING_PRICE,
    CUTTING_PRICE_REQUIRES_ASSIGNMENT,
    Actor,
)
from ..validation import optional_text, parse_amount, parse_positive_int
from . import pricing_service
from .audit_service import append_audit_entry
from .concurrency import lock_for_update, run_with_retry
from .pricing_service import PricingTotals


INTAKE_STATUSES = frozenset({"pending"})
MATERIAL_STATUSES = frozenset({"pending", "needs_attention", "ready_for_pricing"})
CUTTING_PRICE_STATUSES = frozenset({"needs_attention", "ready_for_pricing"})
CUSTOMER_PRICE_STATUSES = frozenset({"ready_for_pricing", "sent"})


@dataclass
class LineItemWriteResult:
    line_item: LineItem
    totals: PricingTotals

    def to_dict(self) -> dict:
        return {
            "line_item": self.line_item.to_dict(),
            "quote_totals": self.totals.to_dict(),
        }


def _load_for_update(line_item_id: int) -> tuple[LineItem, Quote]:
    item = lock_for_update(db.session.query(LineItem).filter_by(id=line_item_id)).first()
    if not item:
        raise NotFoundError(f"Line item {line_item_id} not found")
    quote = lock_for_update(db.session.query(Quote).filter_by(id=item.quote_id)).first()
    if not quote:
        raise NotFoundError(f"Quote {item.quote_id} not found")
    return item, quote


def _require_status(quote: Quote, allowed: frozenset[str], action: str) -> None:
    if quote.status not in allowed:
        raise StateConflictError(
            f"Cannot {action} while quote is '{quote.status}'",
            details={"status": quote.status, "allowed_statuses": sorted(allowed)},
        )


def _require_cutting_price_access(quote: Quote, actor: Actor) -> None:
    if not CAN_WRITE_CUTTING_PRICE[actor.role]:
        raise AuthorizationError("Only operators and admins can set cutting prices")
    if CUTTING_PRICE_REQUIRES_ASSIGNMENT[actor.role] and quote.operator_id != actor.user_id:
        raise AuthorizationError(
            "Quote is not assigned to you",
            details={"quote_id": quote.id},
        )


def _check_cutting_below_customer(item: LineItem, cutting_price) -> None:
    if item.customer_price is not None and cutting_price > item.customer_price:
        raise StateConflictError(
            "Cutting price cannot exceed the customer price already set on this item",
            details={
                "cutting_price": str(cutting_price),
                "customer_price": str(item.customer_price),
            },
        )


def _commit_write(item: LineItem, action: str, actor: Actor, data: dict) -> LineItem:
    append_audit_entry(
        table_name="line_items",
        record_id=item.id,
        action=action,
        user_id=actor.user_id,
        new_data=data,
    )
    db.session.commit()
    return item


def _recompute(item: LineItem) -> LineItemWriteResult:
    totals = pricing_service.recompute_after_write(item.quote_id, line_item_id=item.id)
    return LineItemWriteResult(line_item=item, totals=totals)


def add_line_item(
    quote_id: int,
    actor: Actor,
    *,
    dxf_file_url: str | None,
    dxf_file_name: str | None,
    pdf_file_url: str | None = None,
    pdf_file_name: str | None = None,
    quantity=None,
    part_dimensions: dict | None = None,
) -> LineItem:
    """Register one uploaded drawing as a line item of a pending quote."""
    if not (actor.is_customer or actor.is_admin):
        raise AuthorizationError("Only customers and admins can add line items")

    dxf_file_url = optional_text(dxf_file_url, "dxf_file_url")
    dxf_file_name = optional_text(dxf_file_name, "dxf_file_name")
    pdf_file_url = optional_text(pdf_file_url, "pdf_file_url")
    pdf_file_name = optional_text(pdf_file_name, "pdf_file_name")
    if not dxf_file_url or not dxf_file_name:
        raise ValidationError("dxf_file_url and dxf_file_name are required")
    if not dxf_file_name.lower().endswith(".dxf"):
        raise ValidationError("Only DXF drawings are accepted")
    if pdf_file_name and not pdf_file_name.lower().endswith(".pdf"):
        raise ValidationError("pdf_file_name must be a PDF")
    if part_dimensions is not None and not isinstance(part_dimensions, dict):
        raise ValidationError("part_dimensions must be an object")

    quantity = parse_positive_int(quantity, "quantity", default=1)

    def _op():
        quote = lock_for_update(db.session.query(Quote).filter_by(id=quote_id)).first()
        if not quote or (actor.is_customer and quote.customer_id != actor.user_id):
            raise NotFoundError(f"Quote {quote_id} not found")
        _require_status(quote, INTAKE_STATUSES, "add line items")

        item = LineItem(
            quote_id=quote.id,
            quantity=quantity,
            dxf_file_url=dxf_file_url,
            dxf_file_name=dxf_file_name,
            pdf_file_url=pdf_file_url,
            pdf_file_name=pdf_file_name,
            part_dimensions=part_dimensions,
        )
        db.session.add(item)
        db.session.flush()
        append_audit_entry(
            table_name="line_items",
            record_id=item.id,
            action="line_item_added",
            user_id=actor.user_id,
            new_data={"quote_id": quote.id, "dxf_file_name": dxf_file_name, "quantity": quantity},
        )
        db.session.commit()
        return item

    return run_with_retry(_op)


def assign_material(
    line_item_id: int,
    actor: Actor,
    material_id,
    *,
    cutting_price=None,
    production_time_hours=None,
) -> LineItemWriteResult:
    """
    Assign an active material, optionally with a cutting estimate.

    When cutting_price/production_time_hours are given they go through the
    same checks as set_cutting_price (including operator ownership).
    """
    if not CAN_ASSIGN_MATERIAL[actor.role]:
        raise AuthorizationError("Only operators and admins can assign materials")
    if material_id is None or isinstance(material_id, bool) or not isinstance(material_id, int):
        raise ValidationError("material_id must be an integer")

    cutting = parse_amount(cutting_price, "cutting_price", required=False)
    hours = parse_amount(production_time_hours, "production_time_hours", required=False)

    def _op():
        item, quote = _load_for_update(line_item_id)
        _require_status(quote, MATERIAL_STATUSES, "assign materials")

        material = db.session.query(Material).filter_by(id=material_id).first()
        if not material:
            raise NotFoundError(f"Material {material_id} not found")
        if not material.is_active:
            raise ValidationError(f"Material '{material.name}' is not active")

        item.material_id = material.id
        data = {"material_id": material.id}

        if cutting is not None or hours is not None:
            _require_cutting_price_access(quote, actor)
            _require_status(quote, CUTTING_PRICE_STATUSES, "set cutting prices")
            if cutting is not None:
                _check_cutting_below_customer(item, cutting)
                item.cutting_price = cutting
                data["cutting_price"] = str(cutting)
            if hours is not None:
                item.production_time_hours = hours
                data["production_time_hours"] = str(hours)

        return _commit_write(item, "material_assigned", actor, data)

    return _recompute(run_with_retry(_op))


def set_cutting_price(
    line_item_id: int,
    actor: Actor,
    cutting_price,
    production_time_hours=None,
) -> LineItemWriteResult:
    if not CAN_WRITE_CUTTING_PRICE[actor.role]:
        raise AuthorizationError("Only operators and admins can set cutting prices")

    cutting = parse_amount(cutting_price, "cutting_price")
    hours = parse_amount(production_time_hours, "production_time_hours", required=False)

    def _op():
        item, quote = _load_for_update(line_item_id)
        _require_cutting_price_access(quote, actor)
        _require_status(quote, CUTTING_PRICE_STATUSES, "set cutting prices")
        _check_cutting_below_customer(item, cutting)

        item.cutting_price = cutting
        data = {"cutting_price": str(cutting)}
        if hours is not None:
            item.production_time_hours = hours
            data["production_time_hours"] = str(hours)
        return _commit_write(item, "cutting_price_set", actor, data)

    return _recompute(run_with_retry(_op))


def set_customer_price(line_item_id: int, actor: Actor, customer_price) -> LineItemWriteResult:
    if not CAN_WRITE_CUSTOMER_PRICE[actor.role]:
        raise AuthorizationError("Only admins can set customer prices")

    price = parse_amount(customer_price, "customer_price")

    def _op():
        item, quote = _load_for_update(line_item_id)
        _require_status(quote, CUSTOMER_PRICE_STATUSES, "set customer prices")

        if item.cutting_price is not None and price < item.cutting_price:
            raise StateConflictError(
                "Customer price cannot be below the cutting price",
                details={
                    "customer_price": str(price),
                    "cutting_price": str(item.cutting_price),
                },
            )

        item.customer_price = price
        return _commit_write(item, "customer_price_set", actor, {"customer_price": str(price)})

    return _recompute(run_with_retry(_op))
