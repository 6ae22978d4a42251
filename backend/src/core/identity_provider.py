"""Discord OAuth2 code exchange."""
import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from core.config import Settings
from services.exceptions import AuthError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

OAUTH_SCOPE = "identify"


@dataclass(frozen=True)
class ProviderIdentity:
    """The identity a successful code exchange resolves to."""

    subject_id: str
    username: str
    display_name: str
    avatar: str | None


class DiscordIdentityProvider:
    """
    Exchanges OAuth2 authorization codes for Discord user identities.

    The provider's access token is used once to read the user and then discarded;
    the service issues its own credentials.
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http: httpx.AsyncClient,
        api_endpoint: str = "https://discord.com/api/v10",
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._http = http
        self._api_endpoint = api_endpoint.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings, http: httpx.AsyncClient) -> "DiscordIdentityProvider":
        """Build a provider from settings, sharing the given HTTP client."""
        return cls(
            client_id=settings.discord_client_id,
            client_secret=settings.discord_client_secret,
            redirect_uri=settings.oauth_redirect_uri,
            http=http,
            api_endpoint=settings.discord_api_endpoint,
        )

    def authorization_url(self, state: str) -> str:
        """URL of the provider's consent page for a login carrying the given state."""
        params = {
            "response_type": "code",
            "client_id": self._client_id,
            "scope": OAUTH_SCOPE,
            "redirect_uri": self._redirect_uri,
            "state": state,
        }
        return f"{self._api_endpoint}/oauth2/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str) -> ProviderIdentity:
        """
        Exchange an authorization code for the user's identity.

        Raises:
            AuthError: If the provider rejects the code.
            UpstreamUnavailableError: If the provider fails, times out, or returns
                an unexpected response.
        """
        access_token = await self._request_token(code)
        return await self._fetch_identity(access_token)

    async def _request_token(self, code: str) -> str:
        try:
            response = await self._http.post(
                f"{self._api_endpoint}/oauth2/token",
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self._redirect_uri,
                },
                auth=(self._client_id, self._client_secret),
            )
        except httpx.HTTPError as e:
            logger.error("Discord token request failed: %s", e, exc_info=True)
            raise UpstreamUnavailableError("Identity provider is unavailable.") from e

        if response.status_code in (400, 401):
            logger.info("Discord rejected authorization code: %s", response.status_code)
            raise AuthError("Invalid authorization code.")
        if response.is_error:
            logger.error("Discord token endpoint returned %s", response.status_code)
            raise UpstreamUnavailableError("Identity provider is unavailable.")

        try:
            return response.json()["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Malformed Discord token response: %s", e)
            raise UpstreamUnavailableError("Identity provider is unavailable.") from e

    async def _fetch_identity(self, access_token: str) -> ProviderIdentity:
        try:
            response = await self._http.get(
                f"{self._api_endpoint}/oauth2/@me",
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            user = response.json()["user"]
            username = user["username"]
            return ProviderIdentity(
                subject_id=str(user["id"]),
                username=username,
                display_name=user.get("global_name") or username,
                avatar=user.get("avatar"),
            )
        except httpx.HTTPError as e:
            logger.error("Discord auth info request failed: %s", e, exc_info=True)
            raise UpstreamUnavailableError("Identity provider is unavailable.") from e
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Malformed Discord auth info response: %s", e)
            raise UpstreamUnavailableError("Identity provider is unavailable.") from e


class _IdentityProviderState:
    """Container for the global identity provider instance."""

    provider: DiscordIdentityProvider | None = None


_state = _IdentityProviderState()


def get_identity_provider() -> DiscordIdentityProvider:
    """
    Dependency returning the configured identity provider.

    Raises:
        UpstreamUnavailableError: If the provider was not configured at startup.
    """
    if _state.provider is None:
        raise UpstreamUnavailableError("Identity provider is not configured.")
    return _state.provider


def set_identity_provider(provider: DiscordIdentityProvider | None) -> None:
    """Set the global identity provider instance."""
    _state.provider = provider
