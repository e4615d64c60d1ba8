# Overview: Operator ownership of quotes (claim and admin assignment).

from __future__ import annotations

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, StateConflictError, ValidationError
from ..models import Quote, User
from ..permissions import ADMIN_ONLY, Actor, Role
from .audit_service import append_audit_entry
from .concurrency import lock_for_update, run_with_retry


# Statuses in which the owning operator may still change
ASSIGNABLE_STATUSES = frozenset({"pending", "needs_attention", "ready_for_pricing"})


def claim_quote(quote_id: int, operator_id: int) -> bool:
    """
    Compare-and-swap claim of an unassigned quote.

    Issues one conditional UPDATE (... WHERE operator_id IS NULL) inside the
    caller's transaction and does NOT commit. Returns True when this
    operator now owns the quote: either the swap succeeded or the quote was
    already theirs. Returns False when another operator holds it.
    """
    stmt = (
        update(Quote)
        .where(Quote.id == quote_id, Quote.operator_id.is_(None))
        .values(operator_id=operator_id, version_id=Quote.version_id + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount == 1:
        return True

    owner = db.session.query(Quote.operator_id).filter(Quote.id == quote_id).scalar()
    return owner == operator_id


def assign_operator(quote_id: int, actor: Actor, operator_id: int | None) -> Quote:
    """
    Admin assignment (or un-assignment with operator_id=None) of a quote.

    Raises:
        AuthorizationError: actor is not an admin
        ValidationError: operator_id is not an active operator
        NotFoundError: quote does not exist
        StateConflictError: quote is past the triage/pricing stages
    """
    if not ADMIN_ONLY[actor.role]:
        raise AuthorizationError("Only admins can assign operators")

    if operator_id is not None:
        if isinstance(operator_id, bool) or not isinstance(operator_id, int):
            raise ValidationError("operator_id must be an integer or null")
        operator = db.session.query(User).filter_by(id=operator_id).first()
        if not operator or operator.role != Role.OPERATOR.value or not operator.is_active:
            raise ValidationError(f"User {operator_id} is not an active operator")

    def _op():
        quote = lock_for_update(db.session.query(Quote).filter_by(id=quote_id)).first()
        if not quote:
            raise NotFoundError(f"Quote {quote_id} not found")
        if quote.status not in ASSIGNABLE_STATUSES:
            raise StateConflictError(
                f"Cannot assign an operator while quote is '{quote.status}'",
                details={"status": quote.status},
            )

        previous = quote.operator_id
        quote.operator_id = operator_id
        append_audit_entry(
            table_name="quotes",
            record_id=quote.id,
            action="operator_assigned" if operator_id else "operator_unassigned",
            user_id=actor.user_id,
            new_data={"previous_operator_id": previous, "operator_id": operator_id},
        )
        db.session.commit()
        return quote

    quote = run_with_retry(_op)
    current_app.logger.info("Quote %s assigned to operator %s", quote.quote_number, operator_id)
    return quote
