"""
auth/tokens.py -- Password hashing, credential verification, and opaque token utilities.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). Bcrypt's cost factor
       makes brute-force of low-entropy passwords expensive, and every hash
       carries its own random salt, so the same password never hashes to the
       same stored value twice. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether a username exists.

  Session ids: secrets.token_urlsafe(32) gives 256 bits of entropy. The store
       keeps HMAC-SHA256(SECRET_KEY, raw_id) rather than the raw value, so a
       leaked session table cannot be replayed as cookies. bcrypt's slowness
       is unnecessary for values this long.

  CSRF tokens: secrets.token_urlsafe(32). Compared with hmac.compare_digest
       so the comparison time does not depend on how many leading characters
       match.

Layer rule: no imports from api/ or blog/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from typing import TYPE_CHECKING

import bcrypt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("blog.auth")

# Read once at module load via the lru_cache singleton.
_settings = get_settings()

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes. Longer inputs are truncated
    here so bcrypt 4.x does not raise; the registration form caps passwords
    at 255 characters.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("blog_timing_dummy")


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Authenticate a username/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Disabled accounts fail exactly like unknown ones. Returns the User on
    success, None on any failure.
    """
    user = store.get_by_username(username) if username else None
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    if not user.enabled:
        return None
    return user


# ---------------------------------------------------------------------------
# Session identifiers
# ---------------------------------------------------------------------------


def generate_session_id() -> str:
    """Return a fresh opaque session identifier for the session cookie."""
    return secrets.token_urlsafe(32)


def hash_session_id(raw_id: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw_id) as a hex string.

    Deterministic, so the session store can look rows up by hash in O(1).
    """
    return hmac.new(
        _settings.secret_key.encode(),
        raw_id.encode(),
        hashlib.sha256,
    ).hexdigest()


# ---------------------------------------------------------------------------
# CSRF tokens
# ---------------------------------------------------------------------------


def generate_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def tokens_match(expected: str, submitted: str) -> bool:
    """Timing-safe equality for CSRF token values."""
    return hmac.compare_digest(expected.encode("utf-8"), submitted.encode("utf-8"))
