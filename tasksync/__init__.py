"""
tasksync - Keep a personal task list in sync with Microsoft To Do and Google Tasks

Connects a user's provider accounts over OAuth2, pulls their remote tasks into
a local store (remote wins), pushes local edits back, and rolls recurring
tasks forward on completion while keeping a history entry.

Quick Start:
    from tasksync import TaskSyncService, load_settings

    service = TaskSyncService(load_settings("config.yaml"))

    # 1. Send the user to the provider consent page
    url, state = await service.authorization_url("user-1", "microsoft", "https://api.example.com")

    # 2. In the OAuth callback handler
    await service.handle_callback("microsoft", code, state, "https://api.example.com")

    # 3. Pull their tasks
    result = await service.sync("user-1", "microsoft")
    print(result.counts)

Server:
    tasksync-server --config config.yaml
"""

__version__ = "0.1.0"

# Models
from .models import (
    Attachment,
    CanonicalTask,
    Credential,
    IntegrationStatus,
    Recurrence,
    RemoteTask,
    SyncCounts,
    SyncResult,
    SyncStats,
    Task,
)

# Errors
from .errors import (
    AuthExchangeError,
    InvalidStateError,
    InvalidTransitionError,
    NotConnectedError,
    ProviderError,
    ReauthRequiredError,
    SyncInProgressError,
    TaskNotFoundError,
    TaskSyncError,
)

# Configuration
from .config import Settings, load_settings

# Core
from .recurrence import RecurrenceRoller, next_due_date
from .service import TaskSyncService
from .sync import PushBackService, SyncEngine

__all__ = [
    "__version__",
    # Models
    "Attachment", "CanonicalTask", "Credential", "IntegrationStatus",
    "Recurrence", "RemoteTask", "SyncCounts", "SyncResult", "SyncStats", "Task",
    # Errors
    "TaskSyncError", "AuthExchangeError", "InvalidStateError",
    "InvalidTransitionError", "NotConnectedError", "ProviderError",
    "ReauthRequiredError", "SyncInProgressError", "TaskNotFoundError",
    # Configuration
    "Settings", "load_settings",
    # Core
    "TaskSyncService", "SyncEngine", "PushBackService",
    "RecurrenceRoller", "next_due_date",
]
