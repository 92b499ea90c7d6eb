"""Shared constants for tasksync."""

# Provider identifiers
MICROSOFT = "microsoft"
GOOGLE = "google"

SUPPORTED_PROVIDERS = (MICROSOFT, GOOGLE)

# Name given to remote tasks that arrive without a title
DEFAULT_TASK_NAME = "Untitled Task"

# OAuth timing
OAUTH_STATE_TTL_SECONDS = 10 * 60
TOKEN_REFRESH_WINDOW_SECONDS = 5 * 60
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600

# HTTP
HTTP_TIMEOUT_SECONDS = 30.0

# Sync
DEFAULT_SYNC_TIMEOUT_SECONDS = 120
DEFAULT_SYNC_INTERVAL_MINUTES = 0
