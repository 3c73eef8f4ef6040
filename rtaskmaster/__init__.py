"""RTaskmaster - project-local task tracking for AI agents and humans."""

from .models import (
    NotFound,
    Subtask,
    SubtaskRef,
    Task,
    TaskFilter,
    TaskRef,
    TaskStats,
    TaskStore,
)
from .storage import CorruptStoreError, NotInitializedError, StorageError, TaskStorage
from .task_manager import TaskManager

__version__ = "0.1.0"

__all__ = [
    "TaskManager",
    "TaskStorage",
    "Task",
    "Subtask",
    "TaskStore",
    "TaskFilter",
    "TaskStats",
    "TaskRef",
    "SubtaskRef",
    "NotFound",
    "StorageError",
    "NotInitializedError",
    "CorruptStoreError",
]
