"""Service layer for user records."""
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.identity_provider import ProviderIdentity
from models.user import User


async def upsert_user(db: AsyncSession, identity: ProviderIdentity) -> User:
    """
    Get the user for a provider identity, creating it on first login.

    Handles the race where two logins for the same new identity insert
    concurrently: the loser's IntegrityError is rolled back and the winner's row
    is re-read. Profile fields are refreshed from the provider on every login.

    Note: Uses flush(), not commit. The caller commits, normally together with the
    token pair issued for this login.

    Important: This must run before any other writes in the transaction, since the
    rollback on IntegrityError discards them.
    """
    result = await db.execute(select(User).where(User.discord_id == identity.subject_id))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(
            discord_id=identity.subject_id,
            name=identity.username,
            display_name=identity.display_name,
            avatar=identity.avatar,
        )
        db.add(user)
        try:
            await db.flush()
            return user
        except IntegrityError:
            await db.rollback()
            result = await db.execute(
                select(User).where(User.discord_id == identity.subject_id),
            )
            user = result.scalar_one()

    changed = False
    for attr, value in (
        ("name", identity.username),
        ("display_name", identity.display_name),
        ("avatar", identity.avatar),
    ):
        if getattr(user, attr) != value:
            setattr(user, attr, value)
            changed = True
    if changed:
        await db.flush()
    return user


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    """Get a user by id."""
    return await db.get(User, user_id)
