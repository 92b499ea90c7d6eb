"""
OAuth CSRF state store.

An in-process map of state token -> (user_id, provider, issued_at). Entries
expire after ttl_seconds; expiry is checked when a state is consumed, and
stale entries are swept whenever a new state is issued. There are no
background timers, so behaviour depends only on the injected clock.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from ..constants import OAUTH_STATE_TTL_SECONDS
from ..models import utcnow

logger = logging.getLogger(__name__)


@dataclass
class StateEntry:
    user_id: str
    provider: Optional[str]
    issued_at: datetime


class OAuthStateStore:
    """Single-use, time-boxed OAuth state tokens."""

    def __init__(
        self,
        ttl_seconds: int = OAUTH_STATE_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._entries: Dict[str, StateEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: StateEntry, now: datetime) -> bool:
        return now - entry.issued_at > self._ttl

    def _purge(self, now: datetime) -> None:
        stale = [s for s, e in self._entries.items() if self._expired(e, now)]
        for state in stale:
            del self._entries[state]
        if stale:
            logger.debug(f"Purged {len(stale)} expired OAuth states")

    def issue(self, user_id: str, provider: Optional[str] = None) -> str:
        """Generate and remember a new state token for user_id."""
        now = self._clock()
        self._purge(now)
        state = secrets.token_urlsafe(32)
        self._entries[state] = StateEntry(user_id=user_id, provider=provider, issued_at=now)
        return state

    def consume(self, state: str, provider: Optional[str] = None) -> Optional[str]:
        """Return the user_id bound to state and forget it.

        None when the state is unknown, already consumed, expired, or was
        issued for a different provider.
        """
        if not state:
            return None
        entry = self._entries.pop(state, None)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            logger.info("Rejected expired OAuth state")
            return None
        if provider and entry.provider and entry.provider != provider:
            logger.warning(f"OAuth state issued for {entry.provider} used for {provider}")
            return None
        return entry.user_id
