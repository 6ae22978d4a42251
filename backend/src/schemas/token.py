"""Pydantic schemas for token endpoints."""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RefreshTokenRequest(BaseModel):
    """Request body carrying a refresh token (token grant and logout)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    refresh_token: str = Field(..., min_length=1, max_length=256)


class TokenResponse(BaseModel):
    """
    A fresh access/refresh token pair.

    The refresh token is single use: redeeming it invalidates it and returns a new
    pair.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: str
