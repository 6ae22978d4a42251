"""Tests for the current-user endpoint."""
from httpx import AsyncClient

from models.user import User
from services.token_service import TokenIssuer
from tests.factories import make_manifest, make_profile_zip


async def test_get_me_returns_user_without_profiles(
    client: AsyncClient,
    auth_headers: dict[str, str],
) -> None:
    """A user who has not synced anything gets an empty list."""
    response = await client.get("/user/me", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {
        "user": {
            "discordId": "100000000000000001",
            "name": "alice",
            "displayName": "Alice",
            "avatar": "a1b2c3",
        },
        "profiles": [],
    }


async def test_get_me_lists_own_profiles(
    client: AsyncClient,
    auth_headers: dict[str, str],
    other_auth_headers: dict[str, str],
) -> None:
    """Only the caller's profiles are listed, with camelCase summaries."""
    created = []
    for name in ("First", "Second"):
        response = await client.post(
            "/profile/",
            content=make_profile_zip(make_manifest(profile_name=name)),
            headers={**auth_headers, "Content-Type": "application/zip"},
        )
        created.append(response.json()["id"])
    await client.post(
        "/profile/",
        content=make_profile_zip(),
        headers={**other_auth_headers, "Content-Type": "application/zip"},
    )

    response = await client.get("/user/me", headers=auth_headers)

    profiles = response.json()["profiles"]
    assert sorted(p["id"] for p in profiles) == sorted(created)
    assert {p["name"] for p in profiles} == {"First", "Second"}
    assert set(profiles[0]) == {"id", "name", "community", "createdAt", "updatedAt"}


async def test_get_me_requires_authentication(client: AsyncClient) -> None:
    """Anonymous requests are rejected."""
    response = await client.get("/user/me")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_get_me_with_token_for_missing_user_is_401(
    client: AsyncClient,
    issuer: TokenIssuer,
) -> None:
    """A valid token whose user no longer exists is rejected."""
    ghost = User(id=999_999, discord_id="999", name="ghost", display_name="Ghost", avatar=None)
    token = issuer.create_access_token(ghost)

    response = await client.get("/user/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
