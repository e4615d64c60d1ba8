# Overview: Quote intake, retrieval and role-filtered search.

from __future__ import annotations

from datetime import datetime, time

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from ..models import Quote, User
from ..permissions import Actor, Role
from ..validation import optional_text
from . import notification_service, pricing_service
from .audit_service import append_audit_entry
from .concurrency import lock_for_update, run_with_retry
from .sequence_service import QUOTE_SEQUENCE, next_document_number
from .transition_service import VALID_STATUSES, apply_transition
from cutquote.time_utils import parse_iso_date


SHIPPING_ADDRESS_FIELDS = ("street", "city", "postal_code", "country")
MAX_PAGE_SIZE = 100


def validate_shipping_address(address) -> dict:
    if not isinstance(address, dict):
        raise ValidationError("shipping_address must be an object")
    missing = [f for f in SHIPPING_ADDRESS_FIELDS if not str(address.get(f) or "").strip()]
    if missing:
        raise ValidationError(
            f"shipping_address is missing: {', '.join(missing)}",
            details={"missing_fields": missing},
        )
    return {f: str(address[f]).strip() for f in SHIPPING_ADDRESS_FIELDS}


def _parse_date(value, field: str):
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date")


def create_quote(
    actor: Actor,
    *,
    shipping_address,
    deadline: str | None = None,
    notes: str | None = None,
    customer_id: int | None = None,
) -> Quote:
    """
    Open a new pending quote with the next Q%06d number.

    Customers always create for themselves; admins must name customer_id.
    """
    if actor.is_customer:
        if customer_id is not None and customer_id != actor.user_id:
            raise AuthorizationError("Customers can only create their own quotes")
        customer_id = actor.user_id
    elif actor.is_admin:
        if isinstance(customer_id, bool) or not isinstance(customer_id, int):
            raise ValidationError("customer_id is required when an admin creates a quote")
        customer = db.session.query(User).filter_by(id=customer_id).first()
        if not customer or customer.role != Role.CUSTOMER.value:
            raise ValidationError(f"User {customer_id} is not a customer")
    else:
        raise AuthorizationError("Only customers and admins can create quotes")

    notes = optional_text(notes, "notes")
    address = validate_shipping_address(shipping_address)
    deadline_date = _parse_date(deadline, "deadline")

    def _op():
        quote = Quote(
            quote_number=next_document_number(QUOTE_SEQUENCE),
            revision_number=0,
            status="pending",
            customer_id=customer_id,
            shipping_address=address,
            deadline=deadline_date,
            notes=notes,
        )
        db.session.add(quote)
        db.session.flush()
        append_audit_entry(
            table_name="quotes",
            record_id=quote.id,
            action="quote_created",
            user_id=actor.user_id,
            new_data={"quote_number": quote.quote_number, "customer_id": customer_id},
        )
        db.session.commit()
        return quote

    quote = run_with_retry(_op)
    current_app.logger.info("Quote %s created for customer %s", quote.quote_number, customer_id)
    notification_service.notify("new_quote_created", quote.id, actor_user_id=actor.user_id)
    return quote


def get_quote(quote_id: int, actor: Actor) -> Quote:
    """
    Load a quote the actor may see.

    Customers get NotFoundError for quotes they do not own, so foreign
    quote ids are indistinguishable from missing ones.
    """
    quote = db.session.query(Quote).filter_by(id=quote_id).first()
    if not quote or (actor.is_customer and quote.customer_id != actor.user_id):
        raise NotFoundError(f"Quote {quote_id} not found")
    return quote


def quote_detail(quote: Quote, actor: Actor) -> dict:
    data = quote.to_dict()
    data["line_items"] = [item.to_dict() for item in quote.line_items]
    data["margin_percentage"] = (
        None if actor.is_customer
        else pricing_service.margin_percentage(quote.total_cutting_price, quote.total_customer_price)
    )
    if actor.is_customer:
        # Cost side of pricing is staff-only
        data["total_cutting_price"] = None
        for item in data["line_items"]:
            item["cutting_price"] = None
    return data


def search_quotes(
    actor: Actor,
    *,
    status: str | None = None,
    quote_number: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Quote], int]:
    """Newest-first page of quotes visible to actor. Returns (items, total)."""
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    query = db.session.query(Quote)

    if actor.is_customer:
        query = query.filter(Quote.customer_id == actor.user_id)
    elif actor.is_operator:
        query = query.filter(or_(Quote.operator_id == actor.user_id, Quote.operator_id.is_(None)))
    elif not actor.is_admin:
        raise AuthorizationError("Not allowed to search quotes")

    if status:
        if status not in VALID_STATUSES:
            raise ValidationError(f"Invalid status '{status}'")
        query = query.filter(Quote.status == status)

    if quote_number:
        query = query.filter(Quote.quote_number.ilike(f"%{quote_number.strip()}%"))

    start = _parse_date(date_from, "date_from")
    end = _parse_date(date_to, "date_to")
    if start:
        query = query.filter(Quote.created_at >= datetime.combine(start, time.min))
    if end:
        query = query.filter(Quote.created_at <= datetime.combine(end, time.max))

    total = query.count()
    items = (
        query.order_by(Quote.created_at.desc(), Quote.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def send_quote(quote_id: int, actor: Actor) -> Quote:
    """
    Recompute totals and move a priced quote to sent.

    Raises:
        AuthorizationError: actor is not an admin
        StateConflictError: not ready_for_pricing, or nothing to charge
    """
    if not actor.is_admin:
        raise AuthorizationError("Only admins can send quotes")

    quote = get_quote(quote_id, actor)
    if quote.status != "ready_for_pricing":
        raise StateConflictError(
            "Quote must be in ready_for_pricing status to send",
            details={"status": quote.status},
        )

    totals = run_with_retry(lambda: pricing_service.recompute(quote.id))
    if not totals.total_customer_price or totals.total_customer_price <= 0:
        raise StateConflictError("Quote has no customer price to send")

    def _op():
        locked = lock_for_update(db.session.query(Quote).filter_by(id=quote_id)).first()
        apply_transition(locked, "sent", actor)
        db.session.commit()
        return locked

    quote = run_with_retry(_op)
    current_app.logger.info("Quote %s sent (total %s)", quote.quote_number, quote.total_customer_price)

    template_id = "revision_sent" if quote.is_revision else "quote_sent"
    notification_service.notify(template_id, quote.id, actor_user_id=actor.user_id)
    return quote
