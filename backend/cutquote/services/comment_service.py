# Overview: Append-only quote comment threads.

from __future__ import annotations

from ..extensions import db
from ..errors import AuthorizationError, ValidationError
from ..models import Comment
from ..permissions import READABLE_VISIBILITIES, WRITABLE_VISIBILITIES, Actor
from .quote_service import get_quote
from .rate_limit_service import get_rate_limiter


VISIBILITIES = frozenset({"public", "internal"})
MAX_COMMENT_LENGTH = 5000


def list_comments(quote_id: int, actor: Actor) -> list[Comment]:
    """Oldest first; customers only see public comments on their own quotes."""
    quote = get_quote(quote_id, actor)
    return (
        db.session.query(Comment)
        .filter(
            Comment.quote_id == quote.id,
            Comment.visibility.in_(READABLE_VISIBILITIES[actor.role]),
        )
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )


def add_comment(quote_id: int, actor: Actor, content: str, visibility: str = "public") -> Comment:
    content = (content or "").strip() if isinstance(content, str) else ""
    if not content:
        raise ValidationError("content is required")
    if len(content) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"content exceeds max length {MAX_COMMENT_LENGTH}")
    if not isinstance(visibility, str) or visibility not in VISIBILITIES:
        raise ValidationError(f"visibility must be one of: {', '.join(sorted(VISIBILITIES))}")
    if visibility not in WRITABLE_VISIBILITIES[actor.role]:
        raise AuthorizationError(f"Role '{actor.role.value}' cannot post {visibility} comments")

    quote = get_quote(quote_id, actor)
    get_rate_limiter().check(str(actor.user_id), "COMMENT")

    comment = Comment(
        quote_id=quote.id,
        author_id=actor.user_id,
        content=content,
        visibility=visibility,
    )
    db.session.add(comment)
    db.session.commit()
    return comment


def add_system_comment(
    quote_id: int,
    content: str,
    *,
    visibility: str = "internal",
    author_id: int | None = None,
    commit: bool = True,
) -> Comment:
    """Engine-authored note (revision markers, payment events)."""
    comment = Comment(
        quote_id=quote_id,
        author_id=author_id,
        content=content,
        visibility=visibility,
    )
    db.session.add(comment)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return comment
