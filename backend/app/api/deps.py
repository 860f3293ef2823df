"""Shared route dependencies."""

from typing import Annotated

from fastapi import Depends, Header

from backend.app.core.exceptions import AuthenticationRequiredError
from backend.app.schemas.auth import CurrentUser


async def get_optional_user(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_display_name: Annotated[str | None, Header()] = None,
    x_user_email: Annotated[str | None, Header()] = None,
    x_user_avatar_url: Annotated[str | None, Header()] = None,
) -> CurrentUser | None:
    """Read the caller identity forwarded by the auth layer, if any.

    The id is opaque and not validated here.
    """
    if not x_user_id:
        return None
    return CurrentUser(
        user_id=x_user_id,
        display_name=x_user_display_name,
        email=x_user_email,
        avatar_url=x_user_avatar_url,
    )


async def get_current_user(
    user: Annotated[CurrentUser | None, Depends(get_optional_user)],
) -> CurrentUser:
    """Require a caller identity."""
    if user is None:
        raise AuthenticationRequiredError("Sign in to continue")
    return user
