"""Pydantic schemas for user endpoints."""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserPublic(BaseModel):
    """Public user info. The internal id is never exposed."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    discord_id: str
    name: str
    display_name: str
    avatar: str | None
