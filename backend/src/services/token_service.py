"""
Service layer for access and refresh credentials.

Access tokens are short-lived HS256 JWTs verified without any store lookup.
Refresh tokens are opaque, single use, and tracked in the refresh ledger.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User
from services import refresh_ledger
from services.exceptions import AuthError, InvalidOrConsumedTokenError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
MAX_ACCESS_TOKEN_TTL = timedelta(minutes=30)


@dataclass(frozen=True)
class AccessClaims:
    """The user identity carried by a verified access token."""

    user_id: int
    discord_id: str
    name: str
    display_name: str
    avatar: str | None
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    """A newly issued access/refresh token pair."""

    access_token: str
    refresh_token: str


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenIssuer:
    """
    Mints and verifies credentials.

    The signing secret and lifetimes are fixed at construction; the clock is
    injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        secret: str,
        access_ttl: timedelta = MAX_ACCESS_TOKEN_TTL,
        refresh_ttl: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not timedelta(0) < access_ttl <= MAX_ACCESS_TOKEN_TTL:
            raise ValueError(f"access_ttl must be in (0, {MAX_ACCESS_TOKEN_TTL}]")
        self._secret = secret
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._clock = clock

    def create_access_token(self, user: User) -> str:
        """Sign an access token for a user."""
        issued_at = self._clock()
        expires_at = issued_at + self._access_ttl
        claims = {
            "sub": str(user.id),
            "discordId": user.discord_id,
            "name": user.name,
            "displayName": user.display_name,
            "avatar": user.avatar,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify_access(self, token: str) -> AccessClaims:
        """
        Verify an access token's signature and expiry.

        Raises:
            AuthError: If the token is malformed, forged or expired. The cause is
                logged but never reported, so callers cannot probe for it.
        """
        try:
            # Expiry is checked below against the injected clock
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={
                    "require": ["sub", "exp", "iat"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
            expires_at = datetime.fromtimestamp(int(payload["exp"]), UTC)
            claims = AccessClaims(
                user_id=int(payload["sub"]),
                discord_id=str(payload["discordId"]),
                name=str(payload["name"]),
                display_name=str(payload["displayName"]),
                avatar=payload.get("avatar"),
                expires_at=expires_at,
            )
        except jwt.PyJWTError as e:
            logger.info("Access token rejected: %s", e)
            raise AuthError() from e
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            logger.warning("Access token with malformed claims: %s", e)
            raise AuthError() from e

        if self._clock() >= expires_at:
            logger.info("Access token rejected: expired at %s", expires_at.isoformat())
            raise AuthError()
        return claims

    async def issue(self, db: AsyncSession, user: User) -> TokenPair:
        """
        Issue a new access/refresh pair for a user.

        Commits, so the refresh token is redeemable as soon as the pair is
        returned.
        """
        pair = await self._issue_pending(db, user)
        await db.commit()
        return pair

    async def redeem_refresh(self, db: AsyncSession, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair, invalidating the old token.

        The ledger consume and the successor's insert commit together: either the
        old token is gone and the new pair exists, or neither happened.

        Raises:
            InvalidOrConsumedTokenError: If the token is unknown, expired or was
                already redeemed (by this or a concurrent request).
        """
        user_id = await refresh_ledger.consume(db, refresh_token, self._clock())
        user = await db.get(User, user_id) if user_id is not None else None
        if user is None:
            # Persist removal of an expired or orphaned token
            await db.commit()
            raise InvalidOrConsumedTokenError()

        pair = await self._issue_pending(db, user)
        await db.commit()
        logger.info("Refresh token redeemed for user %s", user.id)
        return pair

    async def revoke_refresh(self, db: AsyncSession, refresh_token: str) -> None:
        """Invalidate a refresh token (logout). Unknown tokens are ignored."""
        await refresh_ledger.consume(db, refresh_token, self._clock())
        await db.commit()

    async def _issue_pending(self, db: AsyncSession, user: User) -> TokenPair:
        access_token = self.create_access_token(user)
        plaintext, token_hash = refresh_ledger.generate_refresh_token()
        await refresh_ledger.record(
            db,
            user_id=user.id,
            token_hash=token_hash,
            expires_at=self._clock() + self._refresh_ttl,
        )
        return TokenPair(access_token=access_token, refresh_token=plaintext)
