"""Local task persistence."""

from .store import BaseTaskStore, MemoryTaskStore, TaskRepository

__all__ = ["BaseTaskStore", "MemoryTaskStore", "TaskRepository"]
