"""tasksync OAuth: Authorization Code Flow and token refresh for Google and Microsoft."""

from typing import Dict, Type

from ..constants import GOOGLE, MICROSOFT
from .base import BaseOAuth
from .google_oauth import GoogleOAuth
from .microsoft_oauth import MicrosoftOAuth
from .state import OAuthStateStore

OAUTH_CLASSES: Dict[str, Type[BaseOAuth]] = {
    MICROSOFT: MicrosoftOAuth,
    GOOGLE: GoogleOAuth,
}

__all__ = [
    "BaseOAuth",
    "GoogleOAuth",
    "MicrosoftOAuth",
    "OAuthStateStore",
    "OAUTH_CLASSES",
]
