"""
api/routes/users.py -- User registration and identity endpoints.

Routes:
  POST /users     -- register; 201 + Location: /users/{id} (public, CSRF required)
  GET  /users/me  -- current principal (requires auth)

Security:
  Passwords are bcrypt-hashed before they reach the store and never appear
  in a response. UserDTO has no password field at all.
  A taken username is reported as a field error on #/username, the same
  shape as any other validation failure.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from api.models import UserDTO, UserForm
from auth.dependencies import get_current_principal
from auth.models import Principal, User
from auth.store import UserStore
from auth.tokens import hash_password

logger = logging.getLogger("blog.api")

router = APIRouter()


def _duplicate_username(username: str) -> RequestValidationError:
    return RequestValidationError(
        [
            {
                "type": "duplicate.user_form.username",
                "loc": ("body", "username"),
                "msg": "username is already taken",
                "input": username,
            }
        ]
    )


@router.post("/users", response_model=UserDTO, status_code=201)
def register(request: Request, response: Response, body: UserForm) -> UserDTO:
    """Create a local account. Does not log the new user in.

    The exists check gives the common case a clean 400. The IntegrityError
    branch covers two concurrent registrations racing for one username.
    """
    user_store: UserStore = request.app.state.user_store
    if user_store.exists_username(body.username):
        raise _duplicate_username(body.username)
    try:
        user_id = user_store.create_user(User(username=body.username, hashed_password=hash_password(body.password)))
    except IntegrityError as exc:
        raise _duplicate_username(body.username) from exc

    logger.info("User %d registered", user_id)
    response.headers["Location"] = f"/users/{user_id}"
    return UserDTO(id=user_id, username=body.username)


@router.get("/users/me", response_model=UserDTO)
async def me(principal: Principal = Depends(get_current_principal)) -> UserDTO:
    """Return identity information for the currently authenticated user."""
    return UserDTO(id=principal.user_id, username=principal.username)
