"""Remote task providers."""

from .base import BaseTaskProvider
from .factory import TaskProviderFactory
from .google_tasks import GoogleTasksProvider
from .microsoft_todo import MicrosoftTodoProvider

__all__ = [
    "BaseTaskProvider",
    "GoogleTasksProvider",
    "MicrosoftTodoProvider",
    "TaskProviderFactory",
]
