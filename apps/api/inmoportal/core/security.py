"""Identity lookup for requests authenticated upstream."""
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header

from .errors import AuthenticationRequiredError


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated user as asserted by the auth gateway."""

    user_id: str
    email: str | None = None


async def get_optional_identity(
    x_user_id: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
) -> Identity | None:
    """Return the signed-in identity, or ``None`` for anonymous requests."""

    if not x_user_id or not x_user_id.strip():
        return None
    email = x_user_email.strip() if x_user_email and x_user_email.strip() else None
    return Identity(user_id=x_user_id.strip(), email=email)


async def get_identity(
    x_user_id: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
) -> Identity:
    """FastAPI dependency that requires a signed-in identity."""

    identity = await get_optional_identity(x_user_id, x_user_email)
    if identity is None:
        raise AuthenticationRequiredError("Sign in to continue")
    return identity
