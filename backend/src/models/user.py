"""User model for storing authenticated users."""
from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from models.profile import Profile
    from models.refresh_token import RefreshToken


class User(Base, TimestampMixin):
    """User model - stores Discord identity info for foreign key relationships."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    discord_id: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        index=True,
        comment="Discord user id (snowflake) - stable identifier from the provider",
    )
    name: Mapped[str] = mapped_column(String(255), comment="Discord username")
    display_name: Mapped[str] = mapped_column(String(255))
    avatar: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Discord avatar hash",
    )

    profiles: Mapped[list["Profile"]] = relationship(back_populates="owner")
    refresh_tokens: Mapped[list["RefreshToken"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )
