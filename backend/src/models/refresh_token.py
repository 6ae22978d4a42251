"""Refresh token model backing the single-use refresh ledger."""
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TZDateTime, UUIDv7Mixin, utcnow

if TYPE_CHECKING:
    from models.user import User


class RefreshToken(Base, UUIDv7Mixin):
    """
    An outstanding (unredeemed) refresh token.

    Tokens are stored hashed - plaintext is only returned to the client once. A row
    is deleted when its token is redeemed, so the table holds exactly the set of
    currently valid refresh tokens (plus expired ones awaiting cleanup).
    """

    __tablename__ = "refresh_tokens"

    # id provided by UUIDv7Mixin
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        index=True,
        comment="SHA-256 hash of the token",
    )
    created_at: Mapped[datetime] = mapped_column(TZDateTime(), default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(TZDateTime(), nullable=False, index=True)

    user: Mapped["User"] = relationship(back_populates="refresh_tokens")
