# Overview: Revision forker; clones a quote into the next numbered revision.

"""
Revision Forker

WHY: After a customer asks for changes the admin forks the quote instead of
editing a sent document. The fork restarts at ready_for_pricing with the
operator's cost estimates intact and customer prices cleared.

NUMBERING (star topology):
    Q000045          revision 0 (root)
    Q000045-R1       parent = Q000045
    Q000045-R2       parent = Q000045   (forked from R1, parent copied)

TRANSACTIONS:
- The new quote and its cloned line items are inserted in ONE transaction
- Comments on both quotes and the audit row are written afterwards, each
  best effort: a failure is logged and reported in `warnings`, never raised
- The original quote's status is left untouched
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import AuthorizationError, NotFoundError, StateConflictError
from ..models import LineItem, Quote
from ..permissions import ADMIN_ONLY, Actor
from ..validation import optional_text
from .audit_service import append_audit_entry
from .comment_service import add_system_comment
from .concurrency import run_with_retry
from .quote_service import get_quote


REVISION_SUFFIX = re.compile(r"-R\d+$")


@dataclass
class RevisionResult:
    quote: Quote
    original: Quote
    warnings: list[str] = field(default_factory=list)


def base_quote_number(quote_number: str) -> str:
    """base_quote_number("Q000045-R2") -> "Q000045"."""
    return REVISION_SUFFIX.sub("", quote_number)


def revision_numbering(original: Quote) -> tuple[str, int, int]:
    """
    (quote_number, revision_number, parent_quote_id) for a fork of original.
    """
    base = base_quote_number(original.quote_number)
    if original.revision_number == 0:
        return f"{base}-R1", 1, original.id
    revision_number = original.revision_number + 1
    return f"{base}-R{revision_number}", revision_number, original.parent_quote_id


def _clone_line_item(item: LineItem, quote_id: int) -> LineItem:
    return LineItem(
        quote_id=quote_id,
        material_id=item.material_id,
        quantity=item.quantity,
        cutting_price=item.cutting_price,
        customer_price=None,
        production_time_hours=item.production_time_hours,
        dxf_file_url=item.dxf_file_url,
        dxf_file_name=item.dxf_file_name,
        pdf_file_url=item.pdf_file_url,
        pdf_file_name=item.pdf_file_name,
        part_dimensions=item.part_dimensions,
    )


def create_revision(original_quote_id: int, actor: Actor, note: str | None = None) -> RevisionResult:
    """
    Fork original_quote_id into the next revision.

    Raises:
        AuthorizationError: actor is not an admin
        NotFoundError: original quote does not exist
        StateConflictError: the computed revision number already exists
            (fork the latest revision instead)
    """
    if not ADMIN_ONLY[actor.role]:
        raise AuthorizationError("Only admins can create revisions")

    note = optional_text(note, "note")

    def _op():
        original = db.session.query(Quote).filter_by(id=original_quote_id).first()
        if not original:
            raise NotFoundError(f"Quote {original_quote_id} not found")

        quote_number, revision_number, parent_id = revision_numbering(original)
        if db.session.query(Quote.id).filter_by(quote_number=quote_number).first():
            raise StateConflictError(
                f"Revision {quote_number} already exists",
                details={"quote_number": quote_number},
            )

        revision = Quote(
            quote_number=quote_number,
            revision_number=revision_number,
            parent_quote_id=parent_id,
            status="ready_for_pricing",
            customer_id=original.customer_id,
            operator_id=original.operator_id,
            deadline=original.deadline,
            shipping_address=original.shipping_address,
            total_cutting_price=original.total_cutting_price,
            total_customer_price=None,
            production_time_hours=original.production_time_hours,
            notes=note or f"Revision of {original.quote_number}",
        )
        db.session.add(revision)
        db.session.flush()

        for item in original.line_items:
            db.session.add(_clone_line_item(item, revision.id))

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise StateConflictError(
                f"Revision {quote_number} already exists",
                details={"quote_number": quote_number},
            )
        return revision, original

    revision, original = run_with_retry(_op)
    current_app.logger.info("Revision %s forked from %s", revision.quote_number, original.quote_number)

    result = RevisionResult(quote=revision, original=original)
    suffix = f": {note}" if note else ""
    side_effects = (
        ("comment on original", lambda: add_system_comment(
            original.id, f"Revision {revision.quote_number} created{suffix}", author_id=actor.user_id)),
        ("comment on revision", lambda: add_system_comment(
            revision.id, f"Revision of {original.quote_number}{suffix}", author_id=actor.user_id)),
        ("audit entry", lambda: _audit_revision(original, revision, actor)),
    )
    for label, step in side_effects:
        try:
            step()
        except Exception:
            db.session.rollback()
            current_app.logger.exception(
                "Revision %s: %s failed", revision.quote_number, label
            )
            result.warnings.append(f"{label} failed")

    return result


def _audit_revision(original: Quote, revision: Quote, actor: Actor) -> None:
    append_audit_entry(
        table_name="quotes",
        record_id=revision.id,
        action="revision_created",
        user_id=actor.user_id,
        new_data={
            "original_quote_id": original.id,
            "original_quote_number": original.quote_number,
            "revision_number": revision.revision_number,
            "line_items_copied": len(revision.line_items),
        },
    )
    db.session.commit()


def get_lineage(quote_id: int, actor: Actor) -> list[Quote]:
    """The root quote followed by all its revisions, by revision_number."""
    quote = get_quote(quote_id, actor)
    root_id = quote.parent_quote_id or quote.id
    return (
        db.session.query(Quote)
        .filter((Quote.id == root_id) | (Quote.parent_quote_id == root_id))
        .order_by(Quote.revision_number.asc())
        .all()
    )
