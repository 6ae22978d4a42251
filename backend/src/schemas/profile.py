"""Pydantic schemas for profile manifests and profile endpoints."""
import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, field_validator
from pydantic.alias_generators import to_camel

from schemas.user import UserPublic

MAX_PROFILE_NAME_LENGTH = 100
MAX_COMMUNITY_LENGTH = 100

# Mod names are Thunderstore-style 'Namespace-Name' (e.g. 'BepInEx-BepInExPack')
MOD_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+-[A-Za-z0-9_]+$")

# Community slugs: lowercase alphanumeric with hyphens (e.g. 'lethal-company')
COMMUNITY_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")


class CamelModel(BaseModel):
    """Base model using camelCase on the wire, as the desktop client does."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ModVersion(CamelModel):
    """Semantic version triple of a mod."""

    major: StrictInt = Field(ge=0)
    minor: StrictInt = Field(ge=0)
    patch: StrictInt = Field(ge=0)


class ProfileMod(CamelModel):
    """A single mod entry of a profile manifest."""

    model_config = ConfigDict(extra="ignore")

    name: str
    enabled: StrictBool
    version: ModVersion

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Require the namespace-qualified 'Namespace-Name' form."""
        if not MOD_NAME_PATTERN.match(v):
            raise ValueError(
                f"Invalid mod name: '{v}'. Expected 'Namespace-Name' "
                "(letters, numbers and underscores on each side of a single hyphen).",
            )
        return v


class ProfileManifest(CamelModel):
    """
    Profile manifest as stored in the archive's export.r2x entry.

    Unknown keys are ignored so that newer clients can add fields without breaking
    older servers.
    """

    model_config = ConfigDict(extra="ignore")

    profile_name: str
    community: str | None = None
    mods: list[ProfileMod]

    @field_validator("profile_name")
    @classmethod
    def validate_profile_name(cls, v: str) -> str:
        """Strip whitespace and bound the length."""
        v = v.strip()
        if not v:
            raise ValueError("Profile name cannot be empty")
        if len(v) > MAX_PROFILE_NAME_LENGTH:
            raise ValueError(
                f"Profile name exceeds {MAX_PROFILE_NAME_LENGTH} characters",
            )
        return v

    @field_validator("community")
    @classmethod
    def validate_community(cls, v: str | None) -> str | None:
        """Validate the community slug if present."""
        if v is None:
            return None
        if len(v) > MAX_COMMUNITY_LENGTH or not COMMUNITY_PATTERN.match(v):
            raise ValueError(
                f"Invalid community: '{v}'. Use lowercase letters, numbers, and hyphens only.",
            )
        return v


class ProfileWriteResponse(CamelModel):
    """Response for profile create and update."""

    id: str = Field(description="Short profile id")
    created_at: datetime
    updated_at: datetime


class ProfileSummary(CamelModel):
    """Profile entry in a user's profile list."""

    id: str
    name: str
    community: str | None
    created_at: datetime
    updated_at: datetime


class ProfileMetadata(CamelModel):
    """Profile metadata without the archive bytes."""

    id: str
    created_at: datetime
    updated_at: datetime
    owner: UserPublic
    manifest: ProfileManifest
