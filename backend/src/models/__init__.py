"""SQLAlchemy models."""
from models.base import Base, TimestampMixin, TZDateTime, UUIDv7Mixin
from models.profile import Profile
from models.refresh_token import RefreshToken
from models.user import User

__all__ = [
    "Base",
    "Profile",
    "RefreshToken",
    "TZDateTime",
    "TimestampMixin",
    "UUIDv7Mixin",
    "User",
]
