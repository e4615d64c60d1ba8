# Overview: Sequence-backed allocation of human-readable document numbers.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


QUOTE_SEQUENCE = "quote"
ORDER_SEQUENCE = "order"

NUMBER_PREFIXES = {
    QUOTE_SEQUENCE: "Q",
    ORDER_SEQUENCE: "O",
}
NUMBER_PAD = 6


def next_number(sequence_name: str) -> int:
    """
    Atomically allocate the next integer of a named sequence.

    Runs inside the caller's transaction (flush only, no commit) so the
    number is released again if the document insert rolls back.
    """
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.sequence_name == sequence_name)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        seq = DocumentSequence(sequence_name=sequence_name, next_number=2)
        nested = db.session.begin_nested()
        try:
            db.session.add(seq)
            nested.commit()
            return 1
        except IntegrityError:
            # Another writer created the row first; fall back to the UPDATE
            nested.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(sequence_name=sequence_name)
        .scalar()
    )
    return current - 1


def format_document_number(sequence_name: str, number: int) -> str:
    """format_document_number("quote", 45) -> "Q000045"."""
    prefix = NUMBER_PREFIXES[sequence_name]
    return f"{prefix}{number:0{NUMBER_PAD}d}"


def next_document_number(sequence_name: str) -> str:
    return format_document_number(sequence_name, next_number(sequence_name))
