"""Discord login and token lifecycle endpoints."""
import logging
import secrets
from urllib.parse import urlencode

from fastapi import APIRouter, Cookie, Depends, Query, Response
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_async_session,
    get_current_user,
    get_identity_provider,
    get_settings,
    get_token_issuer,
)
from api.helpers import render_redirect_page
from core.config import Settings
from core.identity_provider import DiscordIdentityProvider
from schemas.token import RefreshTokenRequest, TokenResponse
from schemas.user import UserPublic
from services import user_service
from services.exceptions import AuthError, InvalidOAuthStateError
from services.token_service import AccessClaims, TokenIssuer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

STATE_COOKIE = "oauth_state"
STATE_COOKIE_MAX_AGE = 600


@router.get("/login")
async def login(
    provider: DiscordIdentityProvider = Depends(get_identity_provider),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """
    Start a Discord login.

    Redirects to Discord's consent page. The random state is also set as a
    short-lived cookie and checked on the callback to stop login CSRF.
    """
    state = secrets.token_urlsafe(32)
    response = RedirectResponse(provider.authorization_url(state), status_code=307)
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_COOKIE_MAX_AGE,
        path="/auth",
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
    )
    return response


@router.get("/callback", response_class=HTMLResponse)
async def callback(
    code: str | None = Query(default=None, max_length=512),
    state: str | None = Query(default=None, max_length=512),
    error: str | None = Query(default=None, max_length=256),
    state_cookie: str | None = Cookie(default=None, alias=STATE_COOKIE),
    provider: DiscordIdentityProvider = Depends(get_identity_provider),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_async_session),
) -> HTMLResponse:
    """
    Complete a Discord login and hand the new token pair to the desktop app.

    The response is an HTML page that opens `{scheme}://auth/callback` with the
    access and refresh tokens as query parameters.
    """
    if not state or not state_cookie or not secrets.compare_digest(state, state_cookie):
        raise InvalidOAuthStateError()
    if error:
        logger.info("Discord login was not authorized: %s", error)
        raise AuthError("Login was cancelled or denied.")
    if not code:
        raise AuthError("Invalid authorization code.")

    identity = await provider.exchange_code(code)
    user = await user_service.upsert_user(db, identity)
    pair = await issuer.issue(db, user)
    logger.info("User %s logged in", user.id)

    query = urlencode({"access_token": pair.access_token, "refresh_token": pair.refresh_token})
    page = render_redirect_page(
        f"{settings.desktop_scheme}://auth/callback?{query}",
        title="Logged in",
        message="You are logged in. Returning to the app...",
    )
    response = HTMLResponse(page, headers={"Cache-Control": "no-store"})
    response.delete_cookie(STATE_COOKIE, path="/auth")
    return response


@router.post("/token", response_model=TokenResponse)
async def refresh_token(
    data: RefreshTokenRequest,
    issuer: TokenIssuer = Depends(get_token_issuer),
    db: AsyncSession = Depends(get_async_session),
) -> TokenResponse:
    """
    Exchange a refresh token for a new access/refresh pair.

    The presented refresh token is consumed; replaying it fails with 401.
    """
    pair = await issuer.redeem_refresh(db, data.refresh_token)
    return TokenResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)


@router.post("/logout", status_code=204)
async def logout(
    data: RefreshTokenRequest,
    issuer: TokenIssuer = Depends(get_token_issuer),
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """Invalidate a refresh token. Unknown tokens are accepted silently."""
    await issuer.revoke_refresh(db, data.refresh_token)
    return Response(status_code=204)


@router.get("/me", response_model=UserPublic)
async def get_me(current_user: AccessClaims = Depends(get_current_user)) -> UserPublic:
    """Get the identity carried by the caller's access token."""
    return UserPublic(
        discord_id=current_user.discord_id,
        name=current_user.name,
        display_name=current_user.display_name,
        avatar=current_user.avatar,
    )
