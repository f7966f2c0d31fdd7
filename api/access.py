"""
api/access.py -- Declarative route authorization rules.

Rules are evaluated top to bottom and the first match wins. A request that
matches no rule requires authentication (deny by default). Only "permit all"
and "authenticated" decisions exist here; whether the caller owns the
resource is decided later by the article services.

Patterns are anchored regular expressions against the request path. methods
of None matches any method.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class AccessRule:
    pattern: str
    methods: Optional[frozenset[str]] = None
    permit_all: bool = False
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", re.compile(f"^{self.pattern}$"))

    def matches(self, method: str, path: str) -> bool:
        if self.methods is not None and method.upper() not in self.methods:
            return False
        return self._regex.match(path) is not None


_READ = frozenset({"GET", "HEAD"})

DEFAULT_RULES: tuple[AccessRule, ...] = (
    AccessRule(r"/", _READ, permit_all=True),
    AccessRule(r"/csrf-cookie", permit_all=True),
    AccessRule(r"/login", frozenset({"POST"}), permit_all=True),
    AccessRule(r"/users", frozenset({"POST"}), permit_all=True),
    AccessRule(r"/health", _READ, permit_all=True),
    AccessRule(r"/articles", _READ, permit_all=True),
    AccessRule(r"/articles/[^/]+", _READ, permit_all=True),
    AccessRule(r"/articles/[^/]+/comments", _READ, permit_all=True),
)


class AccessDecisionManager:
    """Answers "does this request need an authenticated principal?"."""

    def __init__(self, rules: tuple[AccessRule, ...] = DEFAULT_RULES) -> None:
        self.rules = rules

    def requires_authentication(self, method: str, path: str) -> bool:
        if method.upper() == "OPTIONS":
            # CORS preflight never carries cookies
            return False
        for rule in self.rules:
            if rule.matches(method, path):
                return not rule.permit_all
        return True
