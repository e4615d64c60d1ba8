# Overview: Customer accept / decline / revision-request responses to a sent quote.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from ..models import Quote
from ..models.quotes import money_str
from ..permissions import Actor
from ..validation import optional_text, require_choice
from . import notification_service
from .comment_service import add_system_comment
from .concurrency import lock_for_update, run_with_retry
from .rate_limit_service import get_rate_limiter
from .transition_service import apply_transition, notify_transition


ACTION_ACCEPT = "accept"
ACTION_DECLINE = "decline"
ACTION_REQUEST_REVISION = "request_revision"

VALID_ACTIONS = frozenset({ACTION_ACCEPT, ACTION_DECLINE, ACTION_REQUEST_REVISION})

ACTION_TARGETS = {
    ACTION_ACCEPT: "accepted",
    ACTION_DECLINE: "declined",
}


def respond(quote_id: int, actor: Actor, action: str, message: str | None = None) -> dict:
    """
    Apply a customer's response to a sent quote.

    accept / decline drive the transition table; request_revision leaves
    the status alone and notifies the admin.

    Raises:
        AuthorizationError: actor is not a customer
        ValidationError: unknown action, or request_revision without message
        RateLimitedError: too many responses from this customer
        NotFoundError: quote missing or owned by another customer
        StateConflictError: quote is not sent
    """
    if not actor.is_customer:
        raise AuthorizationError("Only customers can respond to quotes")
    action = require_choice(action, "action", VALID_ACTIONS)
    message = optional_text(message, "message")
    if action == ACTION_REQUEST_REVISION and not message:
        raise ValidationError("message is required when requesting a revision")

    get_rate_limiter().check(str(actor.user_id), "QUOTE_RESPONSE")

    def _op():
        quote = lock_for_update(db.session.query(Quote).filter_by(id=quote_id)).first()
        if not quote or quote.customer_id != actor.user_id:
            raise NotFoundError(f"Quote {quote_id} not found")
        if quote.status != "sent":
            raise StateConflictError(
                "Quote is not awaiting a response",
                details={"status": quote.status},
            )

        if action in ACTION_TARGETS:
            apply_transition(quote, ACTION_TARGETS[action], actor, customer_response=True)
            if action == ACTION_DECLINE and message:
                add_system_comment(
                    quote.id, f"Declined: {message}",
                    visibility="public", author_id=actor.user_id, commit=False,
                )
        else:
            add_system_comment(
                quote.id, f"Revision request: {message}",
                visibility="public", author_id=actor.user_id, commit=False,
            )

        db.session.commit()
        return quote

    quote = run_with_retry(_op)
    current_app.logger.info("Customer %s responded '%s' to %s", actor.user_id, action, quote.quote_number)

    result = {"action": action, "quote": quote.to_dict()}
    if action == ACTION_ACCEPT:
        notify_transition(quote, actor)
        result["payment_required"] = True
        result["payment_amount"] = money_str(quote.total_customer_price)
    elif action == ACTION_REQUEST_REVISION:
        notification_service.notify(
            "revision_requested", quote.id,
            actor_user_id=actor.user_id,
            extra_data={"revision_message": message},
        )
    return result
