# Overview: Bearer session issuing, validation and revocation.

"""
Bearer sessions

A login hands the client a random 64-hex-character token once. The database
keeps only its SHA-256 digest, an absolute expiry (SESSION_TTL_HOURS after
issue) and a revocation flag. A token stops working when it expires, when
the user logs out, or when its user is deactivated.
"""

import secrets
import hashlib
from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import SessionToken, User
from bakelink.time_utils import as_utc_naive, utcnow
from .concurrency import run_with_retry

DEFAULT_SESSION_TTL_HOURS = 168
TOKEN_BYTES = 32
LAST_USED_RESOLUTION = timedelta(minutes=1)


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Digest stored in session_tokens.token_hash; tokens are high-entropy so SHA-256 is enough."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _session_ttl() -> timedelta:
    hours = DEFAULT_SESSION_TTL_HOURS
    if has_app_context():
        hours = int(current_app.config.get("SESSION_TTL_HOURS", DEFAULT_SESSION_TTL_HOURS))
    return timedelta(hours=hours)


def _live_record(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )


def _revoke(record: SessionToken, reason: str) -> None:
    record.is_revoked = True
    record.revoked_at = utcnow()
    record.revoked_reason = reason
    db.session.commit()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Issue a new session for a user.

    Returns (record, token). The plaintext token exists only in the return
    value; callers must hand it to the client and forget it.
    """
    if db.session.get(User, user_id) is None:
        raise ValueError("User not found")

    token = generate_token()
    issued_at = utcnow()
    record = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=issued_at,
        last_used_at=issued_at,
        expires_at=issued_at + _session_ttl(),
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()
    return record, token


def _resolve_session(token: str) -> User | None:
    record = _live_record(token)
    if record is None:
        return None

    now = utcnow()
    if as_utc_naive(record.expires_at) < now:
        return None

    user = record.user
    if user is None or not user.is_active:
        _revoke(record, "User account deactivated")
        return None

    last_used = as_utc_naive(record.last_used_at)
    if last_used is None or now - last_used >= LAST_USED_RESOLUTION:
        record.last_used_at = now
    # Ends the read; writes only when last_used_at was stale
    db.session.commit()
    return user


def validate_session(token: str) -> User | None:
    """
    Resolve a bearer token to its active user, or None.

    A live token whose user has been deactivated is revoked on the spot.
    last_used_at is refreshed at most once per LAST_USED_RESOLUTION so
    ordinary requests do not queue behind order placements for the write lock.
    """
    return run_with_retry(lambda: _resolve_session(token))


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke a live token. False when it is unknown or already revoked."""
    record = _live_record(token)
    if record is None:
        return False
    _revoke(record, reason)
    return True
