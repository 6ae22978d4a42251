"""Profile model for synced mod profiles."""
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from models.user import User


class Profile(Base, TimestampMixin):
    """
    Profile model - manifest metadata plus a reference to the stored archive.

    The archive bytes live in blob storage under archive_key. The short id is
    derived from the primary key and never changes.
    """

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(primary_key=True)
    short_id: Mapped[str] = mapped_column(String(22), unique=True, index=True)
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255))
    community: Mapped[str | None] = mapped_column(String(100), nullable=True)
    mods: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        comment="Mod list as [{name, enabled, version: {major, minor, patch}}]",
    )
    archive_key: Mapped[str] = mapped_column(
        String(255),
        comment="Blob storage key of the uploaded archive",
    )

    owner: Mapped["User"] = relationship(back_populates="profiles")
