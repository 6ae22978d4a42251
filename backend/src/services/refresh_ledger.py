"""
Ledger of outstanding refresh tokens.

Each row is one redeemable token. Redemption deletes the row with a single
conditional DELETE ... RETURNING, so the database decides which of several
concurrent redeemers wins: the first delete to commit takes the row, and every
other delete of the same hash matches nothing. No application-level locking is
involved.
"""
import hashlib
import secrets
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from models.refresh_token import RefreshToken

TOKEN_PREFIX = "rt_"


def generate_refresh_token() -> tuple[str, str]:
    """
    Generate a new opaque refresh token.

    Returns:
        Tuple of (plaintext_token, token_hash). Only the hash is stored.
    """
    plaintext = f"{TOKEN_PREFIX}{secrets.token_urlsafe(32)}"
    return plaintext, hash_token(plaintext)


def hash_token(token: str) -> str:
    """Hash a token for storage and lookup."""
    return hashlib.sha256(token.encode()).hexdigest()


async def record(
    db: AsyncSession,
    user_id: int,
    token_hash: str,
    expires_at: datetime,
) -> RefreshToken:
    """
    Record a newly issued refresh token as outstanding.

    Note:
        Does not commit. The caller commits together with the rest of the pair
        issuance.
    """
    refresh_token = RefreshToken(
        user_id=user_id,
        token_hash=token_hash,
        expires_at=expires_at,
    )
    db.add(refresh_token)
    await db.flush()
    return refresh_token


async def consume(
    db: AsyncSession,
    plaintext_token: str,
    now: datetime,
) -> int | None:
    """
    Atomically redeem a refresh token.

    Must be the first statement of its transaction so that a concurrent redeemer
    waits on the row (or write lock) instead of working from a stale snapshot.

    Args:
        db: Database session.
        plaintext_token: The token presented by the client.
        now: Current time, for the expiry check.

    Returns:
        The owning user's id, or None if the token is unknown, already redeemed
        or expired. An expired token is still removed.

    Note:
        Does not commit. The deletion only becomes permanent with the caller's
        commit, which lets redemption and successor issuance share one
        transaction.
    """
    result = await db.execute(
        delete(RefreshToken)
        .where(RefreshToken.token_hash == hash_token(plaintext_token))
        .returning(RefreshToken.user_id, RefreshToken.expires_at)
        .execution_options(synchronize_session=False),
    )
    row = result.one_or_none()
    if row is None:
        return None

    user_id, expires_at = row
    if expires_at <= now:
        return None
    return user_id


async def purge_expired(db: AsyncSession, now: datetime) -> int:
    """
    Delete expired refresh tokens.

    Returns:
        Number of tokens deleted.
    """
    result = await db.execute(
        delete(RefreshToken)
        .where(RefreshToken.expires_at <= now)
        .execution_options(synchronize_session=False),
    )
    return result.rowcount
