"""Integrations and tasks tables.

Mirrors tasksync.db.initialize.MIGRATIONS 1-3 for deployments managed with
Alembic instead of ensure_schema().

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. integrations: one OAuth credential per (user, provider) ──
    op.execute("""
        CREATE TABLE integrations (
            user_id TEXT NOT NULL,
            provider TEXT NOT NULL,
            access_token TEXT NOT NULL,
            refresh_token TEXT,
            expires_at TIMESTAMPTZ,
            scope TEXT NOT NULL DEFAULT '',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (user_id, provider)
        )
    """)

    # ── 2. tasks ──
    op.execute("""
        CREATE TABLE tasks (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            due_date DATE,
            completed BOOLEAN NOT NULL DEFAULT FALSE,
            completed_at TIMESTAMPTZ,
            recurrence TEXT NOT NULL DEFAULT 'none',
            microsoft_todo_id TEXT,
            google_task_id TEXT,
            attachments JSONB,
            parent_task_id TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (microsoft_todo_id IS NULL OR google_task_id IS NULL)
        )
    """)
    op.execute("CREATE INDEX idx_tasks_user ON tasks (user_id)")

    # ── 3. provider ids are unique per user, not globally ──
    op.execute(
        "CREATE UNIQUE INDEX idx_tasks_user_microsoft_todo_id "
        "ON tasks (user_id, microsoft_todo_id) WHERE microsoft_todo_id IS NOT NULL"
    )
    op.execute(
        "CREATE UNIQUE INDEX idx_tasks_user_google_task_id "
        "ON tasks (user_id, google_task_id) WHERE google_task_id IS NOT NULL"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS tasks")
    op.execute("DROP TABLE IF EXISTS integrations")
