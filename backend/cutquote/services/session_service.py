# Overview: Bearer-token identity resolution (the identity collaborator's adapter).

"""
Session Token Service

WHY: The engine does not authenticate anyone. It trusts an opaque bearer
token issued out-of-band (see `flask users issue-token`) and resolves it
to an Actor (user id + role) for each request.

- Tokens are 32 random bytes, hex encoded; only the SHA-256 hash is stored
- Absolute expiry (SESSION_TTL_HOURS)
- Revocable
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..permissions import Actor, Role
from cutquote.time_utils import utcnow


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(user_id: int, ttl_hours: int | None = None) -> tuple[SessionToken, str]:
    """
    Issue a token for user_id.

    Returns (session_record, plaintext_token). Only the hash is persisted.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User is not active")

    if ttl_hours is None:
        ttl_hours = current_app.config["SESSION_TTL_HOURS"]

    plaintext_token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + timedelta(hours=ttl_hours),
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def resolve_actor(token: str) -> tuple[User, Actor] | None:
    """
    Resolve a plaintext token to (user, actor).

    Returns None for unknown, expired or revoked tokens and for
    deactivated users.
    """
    session = (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )
    if not session:
        return None

    now = utcnow()
    if session.expires_at <= now:
        return None

    user = session.user
    if not user or not user.is_active:
        return None

    try:
        role = Role.parse(user.role)
    except ValueError:
        current_app.logger.warning("User %s has unknown role %r", user.id, user.role)
        return None

    session.last_used_at = now
    db.session.commit()
    return user, Actor(user_id=user.id, role=role)


def revoke_user_sessions(user_id: int) -> int:
    """Revoke every live token of a user (offboarding, leaked token). Returns the count."""
    revoked = (
        db.session.query(SessionToken)
        .filter_by(user_id=user_id, is_revoked=False)
        .update({SessionToken.is_revoked: True}, synchronize_session=False)
    )
    db.session.commit()
    return revoked
