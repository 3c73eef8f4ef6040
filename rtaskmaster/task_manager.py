"""Task management operations for RTaskmaster.

Each public method is one read-modify-write cycle against the task
store: load the whole document, transform it, write it back. Lookups
that miss return ``None`` or ``False``; storage failures propagate.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from .models import (
    DEFAULT_PRIORITY,
    PRIORITY_RANK,
    STATUS_BLOCKED,
    STATUS_DEFERRED,
    STATUS_DONE,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    Subtask,
    SubtaskRef,
    Task,
    TaskFilter,
    TaskLookup,
    TaskRef,
    TaskStats,
    TaskStore,
    next_id,
    numeric_id,
    resolve,
    split_task_id,
    utc_now,
    validate_priority,
    validate_status,
)
from .rtaskmaster_logging import log_performance, observability_hooks
from .storage import TaskStorage

logger = logging.getLogger("rtaskmaster.manager")

# Statuses never offered by get_next_task.
UNAVAILABLE_STATUSES = frozenset({STATUS_DONE, STATUS_BLOCKED, STATUS_DEFERRED})


class TaskManager:
    """Domain operations on a project's tasks."""

    def __init__(self, project_root: Path | str, storage: Optional[TaskStorage] = None):
        self.storage = storage or TaskStorage(project_root)

    @property
    def project_root(self) -> Path:
        return self.storage.project_root

    def _emit(self, event_type: str, **data) -> None:
        observability_hooks.log_task_event(event_type, project_root=str(self.project_root), **data)

    # ------------------------------------------------------------------
    # Store lifecycle
    # ------------------------------------------------------------------

    def is_initialized(self) -> bool:
        return self.storage.is_initialized()

    def initialize(self, project_name: Optional[str] = None) -> TaskStore:
        return self.storage.initialize(project_name)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_tasks(self, task_filter: Optional[TaskFilter] = None) -> List[Task]:
        """Return tasks in storage order, optionally filtered."""
        tasks = self.storage.get_tasks()
        if task_filter is None:
            return tasks
        return [task for task in tasks if task_filter.matches(task)]

    def lookup(self, task_id: str) -> TaskLookup:
        """Resolve ``"N"`` to a task or ``"N.M"`` to a subtask of task N."""
        return resolve(self.storage.get_tasks(), task_id)

    def get_task(self, task_id: str) -> Optional[Union[Task, Subtask]]:
        return self.lookup(task_id).item

    def get_parent_task(self, task_id: str) -> Optional[Task]:
        parent_id, _ = split_task_id(task_id)
        return next((t for t in self.storage.get_tasks() if t.id == parent_id), None)

    def get_next_task(self) -> Optional[Task]:
        """Pick the task to work on next.

        Candidates are tasks that are not done, blocked or deferred and
        whose dependencies are all done. An in-progress candidate wins;
        otherwise the highest priority wins, then the lowest id.
        """
        tasks = self.storage.get_tasks()
        done_ids = frozenset(t.id for t in tasks if t.status == STATUS_DONE)

        candidates = [
            task for task in tasks
            if task.status not in UNAVAILABLE_STATUSES and task.dependencies_satisfied(done_ids)
        ]
        if not candidates:
            return None

        for task in candidates:
            if task.status == STATUS_IN_PROGRESS:
                return task

        return min(
            candidates,
            key=lambda t: (PRIORITY_RANK.get(t.priority, PRIORITY_RANK[DEFAULT_PRIORITY]), numeric_id(t.id)),
        )

    def get_stats(self) -> TaskStats:
        return TaskStats.from_tasks(self.storage.get_tasks())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @log_performance("create_task")
    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        priority: Optional[str] = None,
        dependencies: Optional[Iterable[str]] = None,
        details: Optional[str] = None,
        test_strategy: Optional[str] = None,
    ) -> Task:
        """Append a new pending task and return it."""
        if not title or not title.strip():
            raise ValueError("Task title cannot be empty")
        priority = validate_priority(priority or DEFAULT_PRIORITY)

        tasks = self.storage.get_tasks()
        now = utc_now()
        task = Task(
            id=next_id(t.id for t in tasks),
            title=title,
            description=description or "",
            status=STATUS_PENDING,
            priority=priority,
            dependencies=[str(d) for d in dependencies or []],
            subtasks=[],
            details=details,
            test_strategy=test_strategy,
            created_at=now,
            updated_at=now,
        )
        tasks.append(task)
        self.storage.save_tasks(tasks)

        logger.info(f"Created task {task.id}: {task.title}")
        self._emit("task_created", task_id=task.id, priority=task.priority)
        return task

    @log_performance("update_task")
    def update_task(self, task_id: str, **changes) -> Optional[Task]:
        """Overwrite the given fields of a task.

        Accepted fields: title, description, status, priority,
        dependencies, details, test_strategy. Any other field raises
        ``ValueError`` before the store is touched.
        """
        task_id = str(task_id).strip()
        tasks = self.storage.get_tasks()
        task = next((t for t in tasks if t.id == task_id), None)
        if task is None:
            logger.warning(f"Task '{task_id}' not found for update")
            return None

        task.apply_updates(changes, timestamp=utc_now())
        self.storage.save_tasks(tasks)

        updated_fields = sorted(k for k, v in changes.items() if v is not None)
        logger.info(f"Updated task {task_id} fields={updated_fields}")
        self._emit("task_updated", task_id=task_id, fields=updated_fields)
        return task

    @log_performance("delete_task")
    def delete_task(self, task_id: str) -> bool:
        """Remove a task and drop its id from every dependency list."""
        task_id = str(task_id).strip()
        tasks = self.storage.get_tasks()
        remaining = [t for t in tasks if t.id != task_id]
        if len(remaining) == len(tasks):
            return False

        for task in remaining:
            if task_id in task.dependencies:
                task.dependencies = [d for d in task.dependencies if d != task_id]

        self.storage.save_tasks(remaining)

        logger.info(f"Deleted task {task_id}")
        self._emit("task_deleted", task_id=task_id)
        return True

    @log_performance("set_status")
    def set_status(self, task_id: str, status: str) -> Optional[Union[Task, Subtask]]:
        """Set the status of a task (``"N"``) or subtask (``"N.M"``).

        Changing a subtask also refreshes its parent's ``updated_at`` but
        never the parent's status.
        """
        validate_status(status)
        tasks = self.storage.get_tasks()
        found = resolve(tasks, task_id)
        now = utc_now()

        if isinstance(found, TaskRef):
            found.task.set_status(status, now)
        elif isinstance(found, SubtaskRef):
            found.subtask.set_status(status, now)
            parent = next(t for t in tasks if t.id == found.parent_id)
            parent.updated_at = now
        else:
            return None

        self.storage.save_tasks(tasks)

        logger.info(f"Status of {task_id} set to {status}")
        self._emit("status_changed", task_id=task_id, status=status)
        return found.item

    def set_status_many(
        self, task_ids: Iterable[str], status: str
    ) -> List[Tuple[str, Optional[Union[Task, Subtask]]]]:
        """Apply ``set_status`` to each id in turn, one store cycle per id."""
        validate_status(status)
        return [(task_id, self.set_status(task_id, status)) for task_id in task_ids]

    @log_performance("add_subtask")
    def add_subtask(self, task_id: str, title: str, description: Optional[str] = None) -> Optional[Subtask]:
        """Append a pending subtask to a task."""
        if not title or not title.strip():
            raise ValueError("Subtask title cannot be empty")

        task_id = str(task_id).strip()
        tasks = self.storage.get_tasks()
        task = next((t for t in tasks if t.id == task_id), None)
        if task is None:
            return None

        now = utc_now()
        subtask = Subtask(
            id=next_id(s.id for s in task.subtasks),
            title=title,
            status=STATUS_PENDING,
            description=description,
            created_at=now,
            updated_at=now,
        )
        task.subtasks.append(subtask)
        task.updated_at = now
        self.storage.save_tasks(tasks)

        logger.info(f"Added subtask {task_id}.{subtask.id}: {subtask.title}")
        self._emit("subtask_added", task_id=task_id, subtask_id=subtask.id)
        return subtask
