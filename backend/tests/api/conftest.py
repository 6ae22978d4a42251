"""Shared fixtures for API tests."""
import pytest

from models.user import User
from services.token_service import TokenIssuer


def bearer(issuer: TokenIssuer, user: User) -> dict[str, str]:
    """Authorization header carrying a fresh access token for user."""
    return {"Authorization": f"Bearer {issuer.create_access_token(user)}"}


@pytest.fixture
def auth_headers(issuer: TokenIssuer, user: User) -> dict[str, str]:
    """Headers authenticating as the primary test user."""
    return bearer(issuer, user)


@pytest.fixture
def other_auth_headers(issuer: TokenIssuer, other_user: User) -> dict[str, str]:
    """Headers authenticating as the second test user."""
    return bearer(issuer, other_user)
