"""
tasksync Repository - Base class for table-backed stores.

Subclasses define TABLE_NAME and the queries for their entity. Tables are
created by ensure_schema(); repositories only read and write rows.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def affected_rows(status: str) -> int:
    """Parse the row count out of an asyncpg status string ("UPDATE 3")."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class Repository:
    TABLE_NAME: str = ""

    def __init__(self, db: "Database"):
        self._db = db

    @property
    def db(self) -> "Database":
        return self._db

    async def _fetch_one(self, where: str, *args: Any) -> Optional[Dict[str, Any]]:
        row = await self._db.fetchrow(
            f"SELECT * FROM {self.TABLE_NAME} WHERE {where} LIMIT 1", *args
        )
        return dict(row) if row else None
