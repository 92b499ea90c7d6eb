"""
tasksync CredentialStore - one OAuth credential per (user, provider).

Two backends share the BaseCredentialStore interface:

    db = Database(dsn="postgresql://...")
    await db.initialize()
    store = CredentialStore(db)

    store = MemoryCredentialStore()   # tests, local development

    await store.upsert(credential)
    credential = await store.find("user_123", "microsoft")
    await store.delete("user_123", "microsoft")
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from ..db import Database, Repository
from ..models import Credential, utcnow

logger = logging.getLogger(__name__)


class BaseCredentialStore(ABC):

    @abstractmethod
    async def find(self, user_id: str, provider: str) -> Optional[Credential]:
        """Return the credential for the pair, or None."""

    @abstractmethod
    async def upsert(self, credential: Credential) -> Credential:
        """Create or replace the credential for (credential.user_id, credential.provider)."""

    @abstractmethod
    async def delete(self, user_id: str, provider: str) -> bool:
        """Delete the credential. Returns True if one existed."""

    @abstractmethod
    async def list_all(self) -> List[Credential]:
        """Every stored credential, ordered by user and provider."""


class CredentialStore(Repository, BaseCredentialStore):
    """
    Postgres credential storage.

    Table: integrations
    Primary key: (user_id, provider)
    """

    TABLE_NAME = "integrations"

    def __init__(self, db: Database):
        super().__init__(db)

    @staticmethod
    def _from_row(row) -> Credential:
        return Credential(
            user_id=row["user_id"],
            provider=row["provider"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_at=row["expires_at"],
            scope=row["scope"] or "",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def find(self, user_id: str, provider: str) -> Optional[Credential]:
        row = await self._fetch_one("user_id = $1 AND provider = $2", user_id, provider)
        return self._from_row(row) if row else None

    async def upsert(self, credential: Credential) -> Credential:
        row = await self.db.fetchrow(
            """
            INSERT INTO integrations
                (user_id, provider, access_token, refresh_token, expires_at, scope, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, NOW())
            ON CONFLICT (user_id, provider)
            DO UPDATE SET access_token = $3, refresh_token = $4, expires_at = $5,
                          scope = $6, updated_at = NOW()
            RETURNING *
            """,
            credential.user_id,
            credential.provider,
            credential.access_token,
            credential.refresh_token,
            credential.expires_at,
            credential.scope or "",
        )
        logger.debug(f"Saved credential for {credential.user_id}/{credential.provider}")
        return self._from_row(row)

    async def delete(self, user_id: str, provider: str) -> bool:
        result = await self.db.execute(
            "DELETE FROM integrations WHERE user_id = $1 AND provider = $2",
            user_id, provider,
        )
        return result == "DELETE 1"

    async def list_all(self) -> List[Credential]:
        rows = await self.db.fetch(
            "SELECT * FROM integrations ORDER BY user_id, provider"
        )
        return [self._from_row(r) for r in rows]


class MemoryCredentialStore(BaseCredentialStore):
    """In-process credential storage. Returns copies so callers cannot mutate state."""

    def __init__(self):
        self._credentials: Dict[Tuple[str, str], Credential] = {}

    async def find(self, user_id: str, provider: str) -> Optional[Credential]:
        credential = self._credentials.get((user_id, provider))
        return copy.copy(credential) if credential else None

    async def upsert(self, credential: Credential) -> Credential:
        key = (credential.user_id, credential.provider)
        stored = copy.copy(credential)
        existing = self._credentials.get(key)
        now = utcnow()
        stored.created_at = existing.created_at if existing else (credential.created_at or now)
        stored.updated_at = now
        self._credentials[key] = stored
        return copy.copy(stored)

    async def delete(self, user_id: str, provider: str) -> bool:
        return self._credentials.pop((user_id, provider), None) is not None

    async def list_all(self) -> List[Credential]:
        return [copy.copy(self._credentials[k]) for k in sorted(self._credentials)]
