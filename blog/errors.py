"""
blog/errors.py -- Typed failure conditions raised by the article services.

Anticipated failures are signalled with these rather than generic exceptions
so api/errors.py can map each to its own status code. Anything else that
escapes a service is treated as an unanticipated fault (500).
"""


class BlogError(Exception):
    """Base class for anticipated domain failures."""


class ResourceNotFoundError(BlogError):
    """The requested article or comment does not exist. Mapped to 404."""

    def __init__(self, resource: str, resource_id: int) -> None:
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class UnauthorizedResourceAccessError(BlogError):
    """The caller is authenticated but does not own the resource. Mapped to 403."""

    def __init__(self, resource: str, resource_id: int, user_id: int) -> None:
        super().__init__(f"user {user_id} may not modify {resource} {resource_id}")
        self.resource = resource
        self.resource_id = resource_id
        self.user_id = user_id
