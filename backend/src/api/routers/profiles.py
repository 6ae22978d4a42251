"""Profile sync endpoints."""
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from api.dependencies import (
    get_async_session,
    get_blob_storage,
    get_current_user,
    get_settings,
)
from api.helpers import read_upload_body
from core.config import Settings
from core.storage import BlobStorage
from models.profile import Profile
from schemas.profile import ProfileMetadata, ProfileWriteResponse
from services import profile_service
from services.manifest_validator import ValidatedProfileArchive, validate_profile_archive
from services.token_service import AccessClaims

router = APIRouter(prefix="/profile", tags=["profile"])

_UPLOAD_BODY_DOC = {
    "requestBody": {
        "required": True,
        "content": {"application/zip": {"schema": {"type": "string", "format": "binary"}}},
    },
}


async def _read_and_validate(request: Request, settings: Settings) -> ValidatedProfileArchive:
    body = await read_upload_body(request, settings.max_profile_size)
    # Decompression and YAML parsing are CPU bound
    return await run_in_threadpool(validate_profile_archive, body, settings.max_profile_size)


def _write_response(profile: Profile) -> ProfileWriteResponse:
    return ProfileWriteResponse(
        id=profile.short_id,
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


@router.post(
    "/",
    response_model=ProfileWriteResponse,
    status_code=201,
    openapi_extra=_UPLOAD_BODY_DOC,
)
async def create_profile(
    request: Request,
    current_user: AccessClaims = Depends(get_current_user),
    storage: BlobStorage = Depends(get_blob_storage),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_async_session),
) -> ProfileWriteResponse:
    """
    Upload a new profile.

    The body is the raw ZIP archive containing export.r2x and any config files.
    """
    upload = await _read_and_validate(request, settings)
    profile = await profile_service.create_profile(db, storage, current_user.user_id, upload)
    return _write_response(profile)


@router.put(
    "/{short_id}",
    response_model=ProfileWriteResponse,
    openapi_extra=_UPLOAD_BODY_DOC,
)
async def update_profile(
    short_id: str,
    request: Request,
    current_user: AccessClaims = Depends(get_current_user),
    storage: BlobStorage = Depends(get_blob_storage),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_async_session),
) -> ProfileWriteResponse:
    """
    Replace a profile's archive. Only the owner may update it.

    Returns 409 if another update landed while this one was in flight.
    """
    upload = await _read_and_validate(request, settings)
    profile = await profile_service.update_profile(
        db, storage, short_id, current_user.user_id, upload,
    )
    return _write_response(profile)


@router.get("/{short_id}", status_code=307, response_class=RedirectResponse)
async def get_profile(
    short_id: str,
    storage: BlobStorage = Depends(get_blob_storage),
    db: AsyncSession = Depends(get_async_session),
) -> RedirectResponse:
    """Redirect to the profile's archive download."""
    location = await profile_service.fetch_archive_location(db, storage, short_id)
    return RedirectResponse(location, status_code=307)


@router.get("/{short_id}/meta", response_model=ProfileMetadata)
async def get_profile_metadata(
    short_id: str,
    db: AsyncSession = Depends(get_async_session),
) -> ProfileMetadata:
    """Get a profile's manifest and owner without downloading the archive."""
    return await profile_service.fetch_metadata(db, short_id)


@router.delete("/{short_id}", status_code=204)
async def delete_profile(
    short_id: str,
    current_user: AccessClaims = Depends(get_current_user),
    storage: BlobStorage = Depends(get_blob_storage),
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """Delete a profile. Only the owner may delete it."""
    await profile_service.delete_profile(db, storage, short_id, current_user.user_id)
    return Response(status_code=204)
