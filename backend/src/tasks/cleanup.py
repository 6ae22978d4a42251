"""
Scheduled cleanup task.

Purges refresh tokens that expired without being redeemed. Redeemed tokens are
already gone, so after a run the ledger holds only redeemable tokens. Designed to
run as a cron job (e.g., daily).

Usage:
    python -m tasks.cleanup
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from db.session import async_session_factory
from services import refresh_ledger

logger = logging.getLogger(__name__)


@dataclass
class CleanupStats:
    """Statistics from a cleanup run."""

    expired_refresh_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {"expired_refresh_tokens": self.expired_refresh_tokens}


async def cleanup_expired_refresh_tokens(
    db: AsyncSession,
    now: datetime | None = None,
) -> CleanupStats:
    """
    Delete refresh tokens whose expiry has passed.

    Args:
        db: Database session.
        now: Current time for the expiry cutoff. Defaults to datetime.now(UTC).

    Returns:
        CleanupStats with the number of purged tokens.
    """
    if now is None:
        now = datetime.now(UTC)

    deleted = await refresh_ledger.purge_expired(db, now)
    await db.commit()
    if deleted > 0:
        logger.info("Deleted %d expired refresh tokens", deleted)
    return CleanupStats(expired_refresh_tokens=deleted)


async def run_cleanup(
    db: AsyncSession | None = None,
    now: datetime | None = None,
) -> CleanupStats:
    """
    Run all cleanup tasks.

    Args:
        db: Database session. If None, creates one from async_session_factory.
        now: Current time for cutoff calculation. Defaults to datetime.now(UTC).
    """
    logger.info("Starting cleanup task")

    if db is not None:
        stats = await cleanup_expired_refresh_tokens(db, now=now)
    else:
        async with async_session_factory() as session:
            stats = await cleanup_expired_refresh_tokens(session, now=now)

    logger.info("Cleanup complete: %s", stats.to_dict())
    return stats


def main() -> None:
    """Entry point for running cleanup as a script."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_cleanup())


if __name__ == "__main__":
    main()
