# Overview: Production orders created from accepted quotes.

"""
Order Service

WHY: An accepted quote becomes a production order that tracks fulfilment
(production, completion, shipping) separately from the quote lifecycle.

RULES:
- Only accepted, priced quotes can be ordered
- One order per quote (unique quote_id)
- Entering in_production / completed / shipped stamps the matching
  timestamp the first time only
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from ..models import Order, Quote
from ..permissions import STAFF_ONLY, Actor
from ..validation import optional_text, require_choice
from .audit_service import append_audit_entry
from .concurrency import lock_for_update, run_with_retry
from .sequence_service import ORDER_SEQUENCE, next_document_number
from cutquote.time_utils import utcnow


ORDER_STATUSES = frozenset({"pending", "in_production", "completed", "shipped"})
ORDER_PAYMENT_STATUSES = frozenset({"pending", "paid", "failed", "refunded"})

ORDER_TIMESTAMPS = {
    "in_production": "production_started_at",
    "completed": "production_completed_at",
    "shipped": "shipped_at",
}

UPDATABLE_FIELDS = frozenset({"status", "payment_status", "shipping_tracking_number", "invoice_url"})


def create_order(quote_id: int, actor: Actor) -> Order:
    """
    Raises:
        AuthorizationError: customer ordering another customer's quote
        NotFoundError: quote missing (or not visible to the customer)
        StateConflictError: quote not accepted, unpriced, or already ordered
    """
    if not (actor.is_admin or actor.is_customer):
        raise AuthorizationError("Only admins and the owning customer can create orders")

    def _op():
        quote = lock_for_update(db.session.query(Quote).filter_by(id=quote_id)).first()
        if not quote or (actor.is_customer and quote.customer_id != actor.user_id):
            raise NotFoundError(f"Quote {quote_id} not found")
        if quote.status != "accepted":
            raise StateConflictError(
                "Only accepted quotes can be ordered",
                details={"status": quote.status},
            )
        if not quote.total_customer_price:
            raise StateConflictError("Quote has no customer price")
        if db.session.query(Order.id).filter_by(quote_id=quote.id).first():
            raise StateConflictError(f"Quote {quote.quote_number} already has an order")

        order = Order(
            order_number=next_document_number(ORDER_SEQUENCE),
            quote_id=quote.id,
            customer_id=quote.customer_id,
            operator_id=quote.operator_id,
            status="pending",
            payment_status="paid" if quote.payment_status == "paid" else "pending",
            total_amount=quote.total_customer_price,
        )
        db.session.add(order)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise StateConflictError(f"Quote {quote_id} already has an order")

        append_audit_entry(
            table_name="orders",
            record_id=order.id,
            action="order_created",
            user_id=actor.user_id,
            new_data={"order_number": order.order_number, "quote_id": quote.id},
        )
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s created from quote %s", order.order_number, quote_id)
    return order


def _visible_orders(actor: Actor):
    query = db.session.query(Order)
    if actor.is_customer:
        return query.filter(Order.customer_id == actor.user_id)
    if actor.is_operator:
        return query.filter(or_(Order.operator_id == actor.user_id, Order.operator_id.is_(None)))
    if actor.is_admin:
        return query
    raise AuthorizationError("Not allowed to view orders")


def list_orders(actor: Actor, status: str | None = None, limit: int = 50) -> list[Order]:
    query = _visible_orders(actor)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid order status '{status}'")
        query = query.filter(Order.status == status)
    limit = max(1, min(limit, 200))
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def get_order(order_id: int, actor: Actor) -> Order:
    order = _visible_orders(actor).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def update_order(order_id: int, actor: Actor, fields: dict) -> Order:
    if not STAFF_ONLY[actor.role]:
        raise AuthorizationError("Only operators and admins can update orders")
    if not isinstance(fields, dict) or not fields:
        raise ValidationError("No fields to update")

    unknown = sorted(set(fields) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    status = fields.get("status")
    if status is not None:
        require_choice(status, "order status", ORDER_STATUSES)
    payment_status = fields.get("payment_status")
    if payment_status is not None:
        require_choice(payment_status, "payment status", ORDER_PAYMENT_STATUSES)

    def _op():
        order = lock_for_update(_visible_orders(actor).filter(Order.id == order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        for k, v in fields.items():
            if k in ("shipping_tracking_number", "invoice_url"):
                v = optional_text(v, k)
            setattr(order, k, v)

        stamp_field = ORDER_TIMESTAMPS.get(order.status)
        if stamp_field and getattr(order, stamp_field) is None:
            setattr(order, stamp_field, utcnow())

        append_audit_entry(
            table_name="orders",
            record_id=order.id,
            action="order_updated",
            user_id=actor.user_id,
            new_data={k: fields[k] for k in sorted(fields)},
        )
        db.session.commit()
        return order

    return run_with_retry(_op)
