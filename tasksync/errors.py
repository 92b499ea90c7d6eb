"""
tasksync errors.

- NotConnectedError: no credential for (user, provider); first-time connect needed
- ReauthRequiredError: refresh impossible; the user must re-consent
- ProviderError: non-2xx or transport failure talking to a provider
- AuthExchangeError: authorization code exchange rejected
- SyncInProgressError: a reconciliation for the pair is already running
- InvalidTransitionError: task state change not allowed
- InvalidStateError: OAuth callback state is unknown or expired
- TaskNotFoundError: no local task with the given id
"""

from typing import Optional


class TaskSyncError(Exception):
    """Base class for all tasksync errors."""

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.provider = provider


class NotConnectedError(TaskSyncError):
    pass


class ReauthRequiredError(TaskSyncError):
    pass


class AuthExchangeError(TaskSyncError):
    pass


class SyncInProgressError(TaskSyncError):
    pass


class InvalidTransitionError(TaskSyncError):
    pass


class InvalidStateError(TaskSyncError):
    pass


class TaskNotFoundError(TaskSyncError):
    pass


class ProviderError(TaskSyncError):
    """HTTP or transport failure from a provider API.

    code is the HTTP status, or None when the request never got a response.
    """

    def __init__(
        self,
        code: Optional[int],
        message: str,
        provider: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, provider=provider)
        self.code = code
        self.retry_after = retry_after

    @property
    def is_unauthorized(self) -> bool:
        return self.code == 401

    @property
    def is_rate_limited(self) -> bool:
        return self.code == 429

    @property
    def is_not_found(self) -> bool:
        return self.code == 404

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.message} (HTTP {self.code})"
