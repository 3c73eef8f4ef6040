"""File-based JSON storage for a project's task list.

The store owns ``<project_root>/.rtaskmaster/tasks.json``. Every call reads
or writes the whole document; there is no caching and no locking, so
concurrent writers follow last-writer-wins.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import load_settings
from .models import STORE_VERSION, Task, TaskStore, utc_now
from .rtaskmaster_logging import log_error_with_context, log_operation, observability_hooks

logger = logging.getLogger("rtaskmaster.storage")

TASKS_FILE = "tasks.json"
IGNORE_FILE = ".gitignore"
IGNORE_FILE_CONTENT = "# RTaskmaster files to ignore\n"


class StorageError(RuntimeError):
    """Base error for task store failures."""


class NotInitializedError(StorageError):
    """The project has no task store yet."""


class CorruptStoreError(StorageError):
    """The task store exists but does not hold a readable document."""


class TaskStorage:
    """Read and write the task store document of one project.

    Stores written under ``.taskmaster`` by older releases are read by
    passing ``storage_dir_name=".taskmaster"`` or setting
    ``RTASKMASTER_STORAGE_DIR``.
    """

    def __init__(self, project_root: Path | str, storage_dir_name: Optional[str] = None):
        self.project_root = Path(project_root).expanduser().resolve()
        self.storage_dir = self.project_root / (storage_dir_name or load_settings().storage_dir_name)
        self.tasks_path = self.storage_dir / TASKS_FILE

    def is_initialized(self) -> bool:
        """Check if the task store exists in the project."""
        return self.tasks_path.exists()

    def initialize(self, project_name: Optional[str] = None) -> TaskStore:
        """Create the storage directory and an empty task store.

        An existing document is overwritten; callers guard with
        ``is_initialized()``.
        """
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log_error_with_context(e, {
                "operation": "initialize",
                "storage_dir": str(self.storage_dir),
            })
            raise StorageError(f"Could not create task storage at {self.storage_dir}: {e}") from e

        store = TaskStore(
            version=STORE_VERSION,
            project_name=project_name or self.project_root.name,
            tasks=[],
        )
        self.save(store)

        ignore_path = self.storage_dir / IGNORE_FILE
        if not ignore_path.exists():
            ignore_path.write_text(IGNORE_FILE_CONTENT, encoding="utf-8")

        logger.info(f"Task store initialized at {self.tasks_path}")
        observability_hooks.log_task_event(
            "store_initialized",
            project_root=str(self.project_root),
            project_name=store.project_name,
        )
        return store

    def load(self) -> TaskStore:
        """Load the task store from disk."""
        if not self.is_initialized():
            raise NotInitializedError(
                f"RTaskmaster is not initialized in {self.project_root}. Run rtaskmaster_init first."
            )

        try:
            content = self.tasks_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorruptStoreError(f"Task store {self.tasks_path} is not valid UTF-8: {e}") from e

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise CorruptStoreError(f"Task store {self.tasks_path} is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("tasks", []), list):
            raise CorruptStoreError(f"Task store {self.tasks_path} does not contain a task document")

        try:
            return TaskStore.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise CorruptStoreError(f"Task store {self.tasks_path} has a malformed task entry: {e}") from e

    def save(self, store: TaskStore) -> None:
        """Stamp ``last_updated`` and write the whole document."""
        store.last_updated = utc_now()
        with log_operation("save_task_store", path=str(self.tasks_path), task_count=len(store.tasks)):
            self.tasks_path.write_text(json.dumps(store.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")

    def get_tasks(self) -> List[Task]:
        return self.load().tasks

    def save_tasks(self, tasks: List[Task]) -> None:
        """Replace the task sequence of the current document."""
        store = self.load()
        store.tasks = list(tasks)
        self.save(store)
