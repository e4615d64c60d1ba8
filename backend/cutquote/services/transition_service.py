# Overview: Quote status state machine; the single gate for every status change.

"""
Quote Status Transition Validator

================================================================================
PURPOSE: Enforce the quote lifecycle for every caller that moves a status
================================================================================

STATE MACHINE:
    pending -> needs_attention -> ready_for_pricing -> sent
    sent    -> accepted | declined | expired
    accepted -> done

    declined, expired, done are TERMINAL (no outgoing transitions)

RULES:
1. Cannot skip states (pending -> sent is forbidden)
2. Self-transitions are rejected
3. The role check runs BEFORE the table check:
   - customers never request a status directly; their accept/decline
     response drives the same table through apply_transition()
   - operators may request needs_attention / ready_for_pricing only
   - admins may request any table-valid transition
   - the system actor (payment webhook) may request accepted only
4. The first operator to move an unassigned quote claims it with a
   compare-and-swap UPDATE before the status write; losing the race, or
   touching another operator's quote, is an AuthorizationError
5. sent_at / accepted_at / declined_at are stamped on first entry only

Every status write in the codebase goes through apply_transition().
================================================================================
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, StateConflictError
from ..models import Quote
from ..permissions import DIRECT_TRANSITION_TARGETS, Actor, Role
from ..validation import require_choice
from . import assignment_service, notification_service
from .audit_service import append_audit_entry
from .concurrency import lock_for_update, run_with_retry
from cutquote.time_utils import utcnow


STATUS_PENDING = "pending"
STATUS_NEEDS_ATTENTION = "needs_attention"
STATUS_READY_FOR_PRICING = "ready_for_pricing"
STATUS_SENT = "sent"
STATUS_ACCEPTED = "accepted"
STATUS_DECLINED = "declined"
STATUS_EXPIRED = "expired"
STATUS_DONE = "done"

VALID_STATUSES = frozenset({
    STATUS_PENDING,
    STATUS_NEEDS_ATTENTION,
    STATUS_READY_FOR_PRICING,
    STATUS_SENT,
    STATUS_ACCEPTED,
    STATUS_DECLINED,
    STATUS_EXPIRED,
    STATUS_DONE,
})

TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_PENDING: frozenset({STATUS_NEEDS_ATTENTION}),
    STATUS_NEEDS_ATTENTION: frozenset({STATUS_READY_FOR_PRICING}),
    STATUS_READY_FOR_PRICING: frozenset({STATUS_SENT}),
    STATUS_SENT: frozenset({STATUS_ACCEPTED, STATUS_DECLINED, STATUS_EXPIRED}),
    STATUS_ACCEPTED: frozenset({STATUS_DONE}),
    STATUS_DECLINED: frozenset(),
    STATUS_EXPIRED: frozenset(),
    STATUS_DONE: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

# Stamped the first time a quote enters the status
TIMESTAMP_FIELDS = {
    STATUS_SENT: "sent_at",
    STATUS_ACCEPTED: "accepted_at",
    STATUS_DECLINED: "declined_at",
}

# Customer response actions and the status each one drives
CUSTOMER_RESPONSE_TARGETS = frozenset({STATUS_ACCEPTED, STATUS_DECLINED})

TRANSITION_NOTIFICATIONS = {
    STATUS_NEEDS_ATTENTION: "quote_needs_attention",
    STATUS_ACCEPTED: "quote_accepted",
}


def validate_status(status: str) -> None:
    """
    Raises:
        ValidationError: If status is not in VALID_STATUSES
    """
    require_choice(status, "status", VALID_STATUSES)


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in TRANSITIONS.get(from_status, frozenset())


def check_transition(current: str, requested: str, role: Role) -> None:
    """
    Pure check of (current_status, requested_status, actor_role).

    Raises:
        ValidationError: unknown status string
        AuthorizationError: the role may not request this target
        StateConflictError: the table does not allow current -> requested
    """
    validate_status(requested)
    validate_status(current)

    permitted = DIRECT_TRANSITION_TARGETS[role]
    if permitted is not None and requested not in permitted:
        raise AuthorizationError(
            f"Role '{role.value}' cannot move a quote to '{requested}'",
            details={"role": role.value, "requested_status": requested},
        )

    _check_table(current, requested)


def _check_table(current: str, requested: str) -> None:
    if current == requested:
        raise StateConflictError(
            f"Quote is already '{current}'",
            details={"current_status": current, "requested_status": requested},
        )
    if not can_transition(current, requested):
        allowed = sorted(TRANSITIONS.get(current, frozenset()))
        raise StateConflictError(
            f"Cannot transition from '{current}' to '{requested}'",
            details={
                "current_status": current,
                "requested_status": requested,
                "allowed_transitions": allowed,
            },
        )


def _ensure_operator_owns(quote: Quote, actor: Actor) -> None:
    if quote.operator_id is None:
        if not assignment_service.claim_quote(quote.id, actor.user_id):
            raise AuthorizationError(
                "Quote was claimed by another operator",
                details={"quote_id": quote.id},
            )
        # The claim bypassed the ORM; reload operator_id and version_id
        db.session.refresh(quote)
    elif quote.operator_id != actor.user_id:
        raise AuthorizationError(
            "Quote is assigned to another operator",
            details={"quote_id": quote.id},
        )


def apply_transition(
    quote: Quote,
    requested: str,
    actor: Actor,
    *,
    customer_response: bool = False,
) -> str:
    """
    Validate and apply a status change on a loaded quote. Does NOT commit.

    customer_response=True is the path used by the customer response
    operation: the role matrix is replaced by "the customer may drive
    accepted/declined on a quote they own"; the transition table still
    applies.

    Returns the previous status.
    """
    if customer_response:
        validate_status(requested)
        if not actor.is_customer or requested not in CUSTOMER_RESPONSE_TARGETS:
            raise AuthorizationError(f"Customers cannot move a quote to '{requested}'")
        if quote.customer_id != actor.user_id:
            raise AuthorizationError("Quote belongs to another customer")
        _check_table(quote.status, requested)
    else:
        check_transition(quote.status, requested, actor.role)
        if actor.is_operator:
            _ensure_operator_owns(quote, actor)

    previous = quote.status
    quote.status = requested

    stamp_field = TIMESTAMP_FIELDS.get(requested)
    if stamp_field and getattr(quote, stamp_field) is None:
        setattr(quote, stamp_field, utcnow())

    append_audit_entry(
        table_name="quotes",
        record_id=quote.id,
        action="status_changed",
        user_id=actor.user_id,
        new_data={"from": previous, "to": requested, "role": actor.role.value},
    )
    return previous


def notify_transition(quote: Quote, actor: Actor | None = None) -> None:
    """Queue the notification bound to the quote's new status, if any."""
    template_id = TRANSITION_NOTIFICATIONS.get(quote.status)
    if template_id:
        notification_service.notify(
            template_id,
            quote.id,
            actor_user_id=actor.user_id if actor else None,
        )


def change_status(quote_id: int, requested: str, actor: Actor) -> Quote:
    """
    Move a quote to `requested` on behalf of actor (the status endpoint).

    Raises:
        NotFoundError, ValidationError, AuthorizationError, StateConflictError
    """
    def _op():
        quote = lock_for_update(db.session.query(Quote).filter_by(id=quote_id)).first()
        if not quote:
            raise NotFoundError(f"Quote {quote_id} not found")
        previous = apply_transition(quote, requested, actor)
        db.session.commit()
        return quote, previous

    quote, previous = run_with_retry(_op)
    current_app.logger.info(
        "Quote %s moved %s -> %s by %s %s",
        quote.quote_number, previous, quote.status, actor.role.value, actor.user_id,
    )
    notify_transition(quote, actor)
    return quote
