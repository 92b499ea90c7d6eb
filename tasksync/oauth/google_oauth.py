"""Google OAuth 2.0 Authorization Code Flow."""

import logging
from typing import Any, Dict

from ..constants import GOOGLE
from .base import BaseOAuth

logger = logging.getLogger(__name__)

GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/tasks",
    "https://www.googleapis.com/auth/userinfo.email",
]


class GoogleOAuth(BaseOAuth):
    """Token manager for Google Tasks."""

    PROVIDER = GOOGLE
    SCOPES = GOOGLE_SCOPES

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    @property
    def authorize_url(self) -> str:
        return self.AUTHORIZE_URL

    @property
    def token_url(self) -> str:
        return self.TOKEN_URL

    def _extra_authorize_params(self) -> Dict[str, str]:
        # offline + consent so Google always issues a refresh token
        return {"access_type": "offline", "prompt": "consent"}

    async def fetch_profile(self, access_token: str) -> Dict[str, Any]:
        data = await self._get_json(self.USERINFO_URL, access_token)
        return {
            "id": data.get("id"),
            "display_name": data.get("name"),
            "email": data.get("email", ""),
        }
