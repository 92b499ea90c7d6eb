"""
Base OAuth token manager - authorization code flow with expiry-aware refresh.

Each provider subclass supplies endpoints, scopes and its profile lookup.
The manager never persists anything itself: refreshed credentials are handed
to the caller's on_refreshed callback.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import urlencode

import httpx

from ..config import OAuthAppConfig
from ..constants import DEFAULT_TOKEN_LIFETIME_SECONDS, TOKEN_REFRESH_WINDOW_SECONDS
from ..errors import AuthExchangeError, ProviderError, ReauthRequiredError
from ..http import HttpClientMixin, raise_for_provider_status
from ..models import Credential, utcnow
from .state import OAuthStateStore

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[Credential], Union[None, Awaitable[None]]]


class BaseOAuth(HttpClientMixin, ABC):
    """OAuth 2.0 Authorization Code Flow for one provider."""

    PROVIDER: str = ""
    SCOPES: List[str] = []

    def __init__(
        self,
        app_config: OAuthAppConfig,
        state_store: Optional[OAuthStateStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.app_config = app_config
        self.state_store = state_store or OAuthStateStore(clock=clock)
        self._http_client = http_client
        self._clock = clock

    # ===== Provider specifics =====

    @property
    @abstractmethod
    def authorize_url(self) -> str:
        pass

    @property
    @abstractmethod
    def token_url(self) -> str:
        pass

    @abstractmethod
    def _extra_authorize_params(self) -> Dict[str, str]:
        pass

    def _extra_refresh_params(self) -> Dict[str, str]:
        return {}

    @abstractmethod
    async def fetch_profile(self, access_token: str) -> Dict[str, Any]:
        """Return {"id", "display_name", "email"} for the token's account."""

    # ===== Configuration =====

    def get_client_credentials(self) -> Tuple[str, str]:
        if not self.app_config.configured:
            raise ValueError(
                f"{self.PROVIDER} OAuth not configured. "
                f"Set oauth.{self.PROVIDER}.client_id and client_secret."
            )
        return self.app_config.client_id, self.app_config.client_secret

    @property
    def scope(self) -> str:
        return " ".join(self.SCOPES)

    # ===== Authorization =====

    def build_authorization_url(self, user_id: str, redirect_uri: str) -> Tuple[str, str]:
        """Return (authorization_url, state) for user_id."""
        client_id, _ = self.get_client_credentials()
        state = self.state_store.issue(user_id, self.PROVIDER)
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
            **self._extra_authorize_params(),
        }
        return f"{self.authorize_url}?{urlencode(params)}", state

    def consume_state(self, state: str) -> Optional[str]:
        return self.state_store.consume(state, self.PROVIDER)

    async def exchange_code_for_tokens(
        self, user_id: str, code: str, redirect_uri: str
    ) -> Credential:
        """Exchange an authorization code for a Credential."""
        client_id, client_secret = self.get_client_credentials()
        data = {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        }
        try:
            async with self._session() as client:
                response = await client.post(self.token_url, data=data, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error(f"{self.PROVIDER} code exchange transport error: {e}")
            raise AuthExchangeError(
                f"Could not reach {self.PROVIDER} token endpoint",
                user_id=user_id, provider=self.PROVIDER,
            ) from e

        if response.status_code != 200:
            logger.error(f"{self.PROVIDER} code exchange failed: {response.status_code} - {response.text}")
            raise AuthExchangeError(
                f"{self.PROVIDER} rejected the authorization code",
                user_id=user_id, provider=self.PROVIDER,
            )

        payload = response.json()
        if not payload.get("access_token"):
            raise AuthExchangeError(
                f"No access token received from {self.PROVIDER}",
                user_id=user_id, provider=self.PROVIDER,
            )

        now = self._clock()
        credential = Credential(
            user_id=user_id,
            provider=self.PROVIDER,
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or None,
            expires_at=self._expiry(payload),
            scope=payload.get("scope") or self.scope,
            created_at=now,
            updated_at=now,
        )
        logger.info(f"{self.PROVIDER} authorization code exchanged for user {user_id}")
        return credential

    # ===== Refresh =====

    def _expiry(self, payload: Dict[str, Any]) -> datetime:
        expires_in = payload.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS
        return self._clock() + timedelta(seconds=int(expires_in))

    def needs_refresh(self, credential: Credential) -> bool:
        """True when the token is unknown-expiry or expires within the refresh window."""
        if not credential.expires_at:
            return True
        window = timedelta(seconds=TOKEN_REFRESH_WINDOW_SECONDS)
        return credential.expires_at <= self._clock() + window

    async def refresh(self, credential: Credential) -> Credential:
        """Refresh the access token. Returns an updated copy of credential."""
        if not credential.refresh_token:
            raise ReauthRequiredError(
                "No refresh token available. User must reconnect.",
                user_id=credential.user_id, provider=self.PROVIDER,
            )

        client_id, client_secret = self.get_client_credentials()
        data = {
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": credential.refresh_token,
            "grant_type": "refresh_token",
            **self._extra_refresh_params(),
        }
        try:
            async with self._session() as client:
                response = await client.post(self.token_url, data=data, timeout=self.timeout)
        except httpx.HTTPError as e:
            logger.error(f"{self.PROVIDER} token refresh transport error: {e}")
            raise ProviderError(
                None, f"Could not reach {self.PROVIDER} token endpoint", provider=self.PROVIDER
            ) from e

        if response.status_code in (400, 401):
            # invalid_grant: refresh token revoked or expired
            logger.warning(f"{self.PROVIDER} refresh rejected for user {credential.user_id}: {response.text}")
            raise ReauthRequiredError(
                f"{self.PROVIDER} rejected the refresh token. User must reconnect.",
                user_id=credential.user_id, provider=self.PROVIDER,
            )
        if response.status_code != 200:
            logger.error(f"{self.PROVIDER} token refresh failed: {response.status_code} - {response.text}")
            raise ProviderError(
                response.status_code, f"{self.PROVIDER} token refresh failed", provider=self.PROVIDER
            )

        payload = response.json()
        if not payload.get("access_token"):
            raise ReauthRequiredError(
                f"No access token received from {self.PROVIDER} refresh",
                user_id=credential.user_id, provider=self.PROVIDER,
            )

        logger.info(f"{self.PROVIDER} token refreshed for user {credential.user_id}")
        return credential.with_tokens(
            access_token=payload["access_token"],
            expires_at=self._expiry(payload),
            refresh_token=payload.get("refresh_token"),
        )

    async def get_valid_access_token(
        self,
        credential: Credential,
        on_refreshed: Optional[RefreshCallback] = None,
    ) -> str:
        """Return a usable access token, refreshing first if it expires soon."""
        if not self.needs_refresh(credential):
            return credential.access_token

        logger.info(f"{self.PROVIDER} token expiring soon for user {credential.user_id}, refreshing...")
        refreshed = await self.refresh(credential)
        if on_refreshed:
            result = on_refreshed(refreshed)
            if inspect.isawaitable(result):
                await result
        return refreshed.access_token

    # ===== Account helpers =====

    async def _get_json(self, url: str, access_token: str) -> Dict[str, Any]:
        try:
            async with self._session() as client:
                response = await client.get(
                    url,
                    headers={"Authorization": f"Bearer {access_token}"},
                    timeout=15.0,
                )
        except httpx.HTTPError as e:
            raise ProviderError(None, f"Could not reach {self.PROVIDER}", provider=self.PROVIDER) from e
        raise_for_provider_status(response, self.PROVIDER, "profile lookup")
        return response.json()

    async def fetch_account_email(self, access_token: str) -> str:
        profile = await self.fetch_profile(access_token)
        return profile.get("email") or ""

    async def test_connection(self, access_token: str) -> Dict[str, Any]:
        try:
            profile = await self.fetch_profile(access_token)
            return {"success": True, "user": profile}
        except ProviderError as e:
            logger.warning(f"{self.PROVIDER} connection test failed: {e}")
            return {"success": False, "user": None, "error": str(e)}

    def __repr__(self):
        return f"<{self.__class__.__name__} provider={self.PROVIDER}>"
