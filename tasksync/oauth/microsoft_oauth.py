"""Microsoft OAuth 2.0 Authorization Code Flow (Microsoft identity platform v2)."""

import logging
from typing import Any, Dict

from ..constants import MICROSOFT
from .base import BaseOAuth

logger = logging.getLogger(__name__)

MICROSOFT_SCOPES = [
    "offline_access",
    "https://graph.microsoft.com/Tasks.ReadWrite",
    "https://graph.microsoft.com/User.Read",
]


class MicrosoftOAuth(BaseOAuth):
    """Token manager for Microsoft To Do (Graph)."""

    PROVIDER = MICROSOFT
    SCOPES = MICROSOFT_SCOPES

    AUTHORIZE_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/authorize"
    TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
    GRAPH_ME_URL = "https://graph.microsoft.com/v1.0/me"

    @property
    def authorize_url(self) -> str:
        return self.AUTHORIZE_URL.format(tenant=self.app_config.tenant or "common")

    @property
    def token_url(self) -> str:
        return self.TOKEN_URL.format(tenant=self.app_config.tenant or "common")

    def _extra_authorize_params(self) -> Dict[str, str]:
        return {"response_mode": "query"}

    def _extra_refresh_params(self) -> Dict[str, str]:
        # Graph requires the scope on refresh requests
        return {"scope": self.scope}

    async def fetch_profile(self, access_token: str) -> Dict[str, Any]:
        data = await self._get_json(self.GRAPH_ME_URL, access_token)
        return {
            "id": data.get("id"),
            "display_name": data.get("displayName"),
            "email": data.get("mail") or data.get("userPrincipalName", ""),
        }
