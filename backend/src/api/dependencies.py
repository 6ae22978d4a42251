"""FastAPI dependencies for injection."""
from core.auth import get_current_user, get_token_issuer
from core.config import get_settings
from core.identity_provider import get_identity_provider
from core.storage import get_blob_storage
from db.session import get_async_session

__all__ = [
    "get_async_session",
    "get_blob_storage",
    "get_current_user",
    "get_identity_provider",
    "get_settings",
    "get_token_issuer",
]
