"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost zero logic). Stores and
filters do the work.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """A registered account as held by the credential store."""

    username: str
    hashed_password: str
    id: int | None = None
    enabled: bool = True
    created_at: str | None = None


@dataclass
class Principal:
    """The authenticated identity attached to a request.

    Built once per successful login from a User record. password_hash is
    carried only between credential lookup and verification; it is erased
    before the principal goes into a session and is excluded from repr so
    it cannot leak into logs.
    """

    user_id: int
    username: str
    enabled: bool = True
    password_hash: str | None = field(default=None, repr=False)

    @classmethod
    def from_user(cls, user: User) -> Principal:
        return cls(
            user_id=user.id,
            username=user.username,
            enabled=user.enabled,
            password_hash=user.hashed_password,
        )

    def erase_credentials(self) -> None:
        self.password_hash = None


@dataclass
class SecurityContext:
    """Wraps the Principal (or nothing) for the current request.

    Serialized into the session row as a plain dict. to_dict() never writes
    the password hash, so a session read can never hand one back.
    """

    principal: Principal | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None

    def to_dict(self) -> dict:
        if self.principal is None:
            return {}
        return {
            "user_id": self.principal.user_id,
            "username": self.principal.username,
            "enabled": self.principal.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> SecurityContext:
        if not data or "user_id" not in data:
            return cls()
        return cls(
            principal=Principal(
                user_id=data["user_id"],
                username=data["username"],
                enabled=data.get("enabled", True),
            )
        )


@dataclass
class Session:
    """A server-side session row.

    id is the raw identifier sent in the cookie. Only its HMAC is persisted,
    so id is populated solely on objects returned from create()/rotate() or
    looked up with the raw value in hand.
    """

    id: str
    attributes: dict = field(default_factory=dict)
    created_at: float = 0.0
    last_accessed: float = 0.0

    @property
    def security_context(self) -> SecurityContext:
        return SecurityContext.from_dict(self.attributes.get("security_context"))
