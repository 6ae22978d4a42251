"""
Service layer for synced profiles.

A profile is a database row (manifest summary, owner, archive key) plus the
uploaded archive in blob storage. Archives are written under a fresh key on
every create/update and never overwritten in place, so a row always points at a
complete blob. Blobs left behind by a replaced or deleted profile are removed
after the database commit on a best-effort basis.
"""
import logging
from uuid import uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from uuid6 import uuid7

from core.short_id import encode_short_id, is_valid_short_id
from core.storage import BlobStorage
from models.base import utcnow
from models.profile import Profile
from schemas.profile import ProfileManifest, ProfileMetadata
from schemas.user import UserPublic
from services.exceptions import ConflictError, ForbiddenError, NotFoundError, ServiceError
from services.manifest_validator import ValidatedProfileArchive

logger = logging.getLogger(__name__)


def archive_key_for(short_id: str) -> str:
    """Build a new, never reused blob key for a profile's archive."""
    return f"profiles/{short_id}/{uuid7().hex}.zip"


def _manifest_columns(manifest: ProfileManifest) -> dict:
    return {
        "name": manifest.profile_name,
        "community": manifest.community,
        "mods": [mod.model_dump(mode="json") for mod in manifest.mods],
    }


def _require_short_id(short_id: str) -> None:
    # Malformed ids cannot name a profile
    if not is_valid_short_id(short_id):
        raise NotFoundError("Profile not found.")


async def _discard_blob(storage: BlobStorage, key: str) -> None:
    try:
        await storage.delete(key)
    except ServiceError as e:
        logger.warning("Could not delete blob %s, it is now orphaned: %s", key, e.message)


async def create_profile(
    db: AsyncSession,
    storage: BlobStorage,
    owner_id: int,
    upload: ValidatedProfileArchive,
) -> Profile:
    """
    Store a validated upload as a new profile owned by owner_id.

    The blob is written before the row, so a profile is never visible without
    its archive. If the insert fails the fresh blob is discarded.

    Raises:
        ConflictError: If the generated id collides with an existing profile.
        UpstreamUnavailableError: If blob storage fails. No profile is created.
    """
    profile_id = uuid4()
    short_id = encode_short_id(profile_id)
    key = await storage.put(archive_key_for(short_id), upload.archive)

    profile = Profile(
        id=profile_id,
        short_id=short_id,
        owner_id=owner_id,
        archive_key=key,
        **_manifest_columns(upload.manifest),
    )
    db.add(profile)
    try:
        await db.flush()
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        await _discard_blob(storage, key)
        raise ConflictError("Profile id collision. Please retry.") from e
    except Exception:
        await db.rollback()
        await _discard_blob(storage, key)
        raise

    logger.info(
        "Created profile %s for user %s (%d mods, %d config files)",
        short_id,
        owner_id,
        len(upload.manifest.mods),
        len(upload.config_files),
    )
    return profile


async def update_profile(
    db: AsyncSession,
    storage: BlobStorage,
    short_id: str,
    owner_id: int,
    upload: ValidatedProfileArchive,
) -> Profile:
    """
    Replace a profile's manifest and archive.

    The row is swapped with a compare-and-set on the archive key observed before
    the upload, so of two concurrent updates exactly one wins and the other gets
    ConflictError instead of silently overwriting it.

    Raises:
        NotFoundError: If the profile does not exist.
        ForbiddenError: If owner_id does not own the profile. Nothing is changed.
        ConflictError: If the profile changed while the archive was uploading.
        UpstreamUnavailableError: If blob storage fails.
    """
    _require_short_id(short_id)
    profile = await _get_by_short_id(db, short_id)
    if profile.owner_id != owner_id:
        raise ForbiddenError("You do not own this profile.")
    observed_key = profile.archive_key
    # Release the read transaction before the upload
    await db.commit()

    new_key = await storage.put(archive_key_for(short_id), upload.archive)

    try:
        result = await db.execute(
            update(Profile)
            .where(
                Profile.short_id == short_id,
                Profile.owner_id == owner_id,
                Profile.archive_key == observed_key,
            )
            .values(
                archive_key=new_key,
                updated_at=utcnow(),
                **_manifest_columns(upload.manifest),
            )
            .returning(Profile.id)
            .execution_options(synchronize_session=False),
        )
        swapped = result.scalar_one_or_none() is not None
        if swapped:
            await db.commit()
    except Exception:
        await db.rollback()
        await _discard_blob(storage, new_key)
        raise

    if not swapped:
        await db.rollback()
        await _discard_blob(storage, new_key)
        # Explain the miss: deleted, ownership mismatch, or lost the race
        current = await _get_by_short_id(db, short_id)
        if current.owner_id != owner_id:
            raise ForbiddenError("You do not own this profile.")
        logger.info("Concurrent update of profile %s rejected", short_id)
        raise ConflictError()

    await _discard_blob(storage, observed_key)
    await db.refresh(profile)
    logger.info("Updated profile %s", short_id)
    return profile


async def fetch_archive_location(db: AsyncSession, storage: BlobStorage, short_id: str) -> str:
    """
    Resolve where the profile's archive can be downloaded from.

    Raises:
        NotFoundError: If the profile does not exist.
    """
    _require_short_id(short_id)
    result = await db.execute(select(Profile.archive_key).where(Profile.short_id == short_id))
    key = result.scalar_one_or_none()
    if key is None:
        raise NotFoundError("Profile not found.")
    return await storage.get_location(key)


async def fetch_metadata(db: AsyncSession, short_id: str) -> ProfileMetadata:
    """Get a profile's manifest and owner without touching blob storage."""
    _require_short_id(short_id)
    result = await db.execute(
        select(Profile).options(joinedload(Profile.owner)).where(Profile.short_id == short_id),
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        raise NotFoundError("Profile not found.")

    return ProfileMetadata(
        id=profile.short_id,
        created_at=profile.created_at,
        updated_at=profile.updated_at,
        owner=UserPublic.model_validate(profile.owner),
        manifest=ProfileManifest.model_validate(
            {
                "profileName": profile.name,
                "community": profile.community,
                "mods": profile.mods,
            },
        ),
    )


async def delete_profile(
    db: AsyncSession,
    storage: BlobStorage,
    short_id: str,
    owner_id: int,
) -> None:
    """
    Delete a profile and then its archive.

    The row is removed and committed first; the blob delete afterwards is
    best-effort, so a storage outage never resurrects a deleted profile.

    Raises:
        NotFoundError: If the profile does not exist.
        ForbiddenError: If owner_id does not own the profile. Nothing is deleted.
    """
    _require_short_id(short_id)
    result = await db.execute(
        delete(Profile)
        .where(Profile.short_id == short_id, Profile.owner_id == owner_id)
        .returning(Profile.archive_key)
        .execution_options(synchronize_session=False),
    )
    key = result.scalar_one_or_none()
    if key is None:
        await db.rollback()
        await _get_by_short_id(db, short_id)
        raise ForbiddenError("You do not own this profile.")

    await db.commit()
    await _discard_blob(storage, key)
    logger.info("Deleted profile %s", short_id)


async def list_for_user(db: AsyncSession, owner_id: int) -> list[Profile]:
    """Get a user's profiles, oldest first."""
    result = await db.execute(
        select(Profile)
        .where(Profile.owner_id == owner_id)
        .order_by(Profile.created_at, Profile.id),
    )
    return list(result.scalars().all())


async def _get_by_short_id(db: AsyncSession, short_id: str) -> Profile:
    result = await db.execute(select(Profile).where(Profile.short_id == short_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        raise NotFoundError("Profile not found.")
    return profile
