"""
tasksync Database - asyncpg-based persistence for integrations and tasks.

- Database: shared connection pool manager (one per app)
- Repository: base class for table-backed stores
- ensure_schema: apply pending migrations on startup
"""

from .database import Database
from .repository import Repository
from .initialize import ensure_schema

__all__ = ["Database", "Repository", "ensure_schema"]
