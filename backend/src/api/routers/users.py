"""Endpoints for the signed-in user."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user
from schemas.profile import CamelModel, ProfileSummary
from schemas.user import UserPublic
from services import profile_service, user_service
from services.exceptions import AuthError
from services.token_service import AccessClaims

router = APIRouter(prefix="/user", tags=["user"])


class CurrentUserResponse(CamelModel):
    """The signed-in user and the profiles they have synced."""

    user: UserPublic
    profiles: list[ProfileSummary]


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(
    current_user: AccessClaims = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> CurrentUserResponse:
    """Get the current user's info and profile list."""
    user = await user_service.get_user(db, current_user.user_id)
    if user is None:
        # Token outlived its user
        raise AuthError()

    profiles = await profile_service.list_for_user(db, user.id)
    return CurrentUserResponse(
        user=UserPublic.model_validate(user),
        profiles=[
            ProfileSummary(
                id=p.short_id,
                name=p.name,
                community=p.community,
                created_at=p.created_at,
                updated_at=p.updated_at,
            )
            for p in profiles
        ],
    )
