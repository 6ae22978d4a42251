"""Authentication dependencies for access-token protected routes."""
from datetime import timedelta

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import Settings, get_settings
from services.exceptions import AuthError
from services.token_service import AccessClaims, TokenIssuer

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def get_token_issuer(settings: Settings = Depends(get_settings)) -> TokenIssuer:
    """Dependency returning a token issuer configured from settings."""
    return TokenIssuer(
        secret=settings.jwt_secret,
        access_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
        refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AccessClaims:
    """
    Dependency that verifies the bearer access token and returns its claims.

    Verification is purely cryptographic; no database lookup is made.
    """
    if credentials is None:
        raise AuthError("Not authenticated.")
    return issuer.verify_access(credentials.credentials)
