"""Caller identity supplied by the auth collaborator."""

from pydantic import BaseModel, Field


class CurrentUser(BaseModel):
    """Opaque, unvalidated identity of the caller."""

    user_id: str = Field(min_length=1)
    display_name: str | None = None
    email: str | None = None
    avatar_url: str | None = None
