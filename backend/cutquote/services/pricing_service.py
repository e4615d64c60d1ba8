# Overview: Pricing aggregator; derives quote totals from line items.

"""
Pricing Aggregator

WHY: Quote totals are derived data. They are recomputed from line items
after every price mutation and are never accepted from a client.

RULES:
- Per line item: cutting_price, customer_price and production_time_hours
  are each multiplied by quantity (unset value = 0, quantity default 1)
- Each total is summed independently
- A total of exactly 0 is persisted as NULL ("not yet priced")
- Margin % = (customer - cutting) / cutting * 100, rounded half-up to an
  integer; None when total cutting is 0/NULL or total customer is NULL
- recompute() is idempotent: running it twice yields identical totals
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..errors import (
    AuthorizationError,
    DependencyError,
    NotFoundError,
    QuoteEngineError,
    StateConflictError,
)
from ..models import LineItem, Quote
from ..models.quotes import money_str
from ..permissions import ADMIN_ONLY, Actor
from .concurrency import lock_for_update, run_with_retry
from cutquote.time_utils import to_utc_z, utcnow


ZERO = Decimal("0")
CENTS = Decimal("0.01")


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(value)


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _none_if_zero(value: Decimal) -> Decimal | None:
    return None if value == ZERO else _cents(value)


@dataclass(frozen=True)
class LineTotals:
    line_item_id: int | None
    quantity: int
    cutting_total: Decimal
    customer_total: Decimal
    production_time_total: Decimal

    def to_dict(self) -> dict:
        return {
            "line_item_id": self.line_item_id,
            "quantity": self.quantity,
            "cutting_total": money_str(self.cutting_total),
            "customer_total": money_str(self.customer_total),
            "production_time_total": money_str(self.production_time_total),
        }


@dataclass(frozen=True)
class PricingTotals:
    total_cutting_price: Decimal | None
    total_customer_price: Decimal | None
    production_time_hours: Decimal | None

    @property
    def margin_percentage(self) -> int | None:
        return margin_percentage(self.total_cutting_price, self.total_customer_price)

    def to_dict(self) -> dict:
        return {
            "total_cutting_price": money_str(self.total_cutting_price),
            "total_customer_price": money_str(self.total_customer_price),
            "production_time_hours": money_str(self.production_time_hours),
            "margin_percentage": self.margin_percentage,
        }


def line_totals(item: LineItem) -> LineTotals:
    quantity = item.quantity or 1
    return LineTotals(
        line_item_id=item.id,
        quantity=quantity,
        cutting_total=_cents(_dec(item.cutting_price) * quantity),
        customer_total=_cents(_dec(item.customer_price) * quantity),
        production_time_total=_cents(_dec(item.production_time_hours) * quantity),
    )


def compute_totals(line_items) -> PricingTotals:
    """Pure aggregation over an iterable of line items."""
    cutting = customer = hours = ZERO
    for item in line_items:
        totals = line_totals(item)
        cutting += totals.cutting_total
        customer += totals.customer_total
        hours += totals.production_time_total

    return PricingTotals(
        total_cutting_price=_none_if_zero(cutting),
        total_customer_price=_none_if_zero(customer),
        production_time_hours=_none_if_zero(hours),
    )


def margin_percentage(total_cutting, total_customer) -> int | None:
    """
    margin_percentage(Decimal("25"), Decimal("50")) -> 100

    None when there is no cost basis or no sale price yet.
    """
    if total_cutting is None or total_customer is None:
        return None
    cutting = Decimal(total_cutting)
    if cutting == ZERO:
        return None
    pct = (Decimal(total_customer) - cutting) / cutting * 100
    # halves round toward +infinity, so -52.5 -> -52 and 52.5 -> 53
    return int((pct + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def recompute(quote_id: int) -> PricingTotals:
    """
    Recompute and persist a quote's totals in its own transaction.

    Raises:
        NotFoundError: quote does not exist
    """
    quote = lock_for_update(db.session.query(Quote).filter_by(id=quote_id)).first()
    if not quote:
        raise NotFoundError(f"Quote {quote_id} not found")

    items = (
        db.session.query(LineItem)
        .filter_by(quote_id=quote_id)
        .order_by(LineItem.id.asc())
        .all()
    )
    totals = compute_totals(items)

    quote.total_cutting_price = totals.total_cutting_price
    quote.total_customer_price = totals.total_customer_price
    quote.production_time_hours = totals.production_time_hours
    db.session.commit()
    return totals


def recompute_after_write(quote_id: int, *, line_item_id: int) -> PricingTotals:
    """
    Recompute following an already-committed line-item write.

    A failure here does not undo the write: it is rolled back, logged and
    surfaced as DependencyError so the caller knows totals are stale.
    """
    try:
        return run_with_retry(lambda: recompute(quote_id))
    except QuoteEngineError:
        raise
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception(
            "Totals recompute failed for quote %s after line item %s write",
            quote_id, line_item_id,
        )
        raise DependencyError(
            "Line item saved but quote totals could not be recalculated",
            details={"line_item_id": line_item_id, "write_committed": True},
        ) from exc


def calculate_pricing(quote_id: int, actor: Actor) -> dict:
    """
    Admin pricing review: recompute and return a full breakdown.

    Raises:
        AuthorizationError: actor is not an admin
        NotFoundError: quote does not exist
        StateConflictError: wrong status, no line items, or unpriced items
    """
    if not ADMIN_ONLY[actor.role]:
        raise AuthorizationError("Only admins can calculate pricing")

    quote = db.session.query(Quote).filter_by(id=quote_id).first()
    if not quote:
        raise NotFoundError(f"Quote {quote_id} not found")

    if quote.status != "ready_for_pricing":
        raise StateConflictError(
            "Quote must be in ready_for_pricing status",
            details={"status": quote.status},
        )

    items = list(quote.line_items)
    if not items:
        raise StateConflictError("Quote has no line items")

    missing = [item.id for item in items if item.cutting_price is None]
    if missing:
        raise StateConflictError(
            "All line items must have a cutting price",
            details={"line_item_ids": missing},
        )

    totals = run_with_retry(lambda: recompute(quote_id))

    return {
        "quote_id": quote.id,
        "quote_number": quote.quote_number,
        "line_items": [line_totals(item).to_dict() for item in items],
        "totals": totals.to_dict(),
        "calculated_at": to_utc_z(utcnow()),
    }
