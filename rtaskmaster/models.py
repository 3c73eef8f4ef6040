"""Data models for RTaskmaster task tracking.

This module contains the task, subtask and store document structures
persisted in ``tasks.json``, together with the helpers for identifier
generation, timestamps and tagged task lookups.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

STORE_VERSION = "1.0.0"

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in-progress"
STATUS_DONE = "done"
STATUS_BLOCKED = "blocked"
STATUS_DEFERRED = "deferred"

TASK_STATUSES = (
    STATUS_PENDING,
    STATUS_IN_PROGRESS,
    STATUS_DONE,
    STATUS_BLOCKED,
    STATUS_DEFERRED,
)

TASK_PRIORITIES = ("high", "medium", "low")
DEFAULT_PRIORITY = "medium"

# Lower rank is picked first by next-task selection.
PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}

# Fields update_task may overwrite; everything else is owned by the store.
MUTABLE_TASK_FIELDS: FrozenSet[str] = frozenset({
    "title",
    "description",
    "status",
    "priority",
    "dependencies",
    "details",
    "test_strategy",
})


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string with a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def numeric_id(value: str) -> int:
    """Integer value of an identifier; unparsable identifiers count as 0."""
    try:
        return int(str(value).strip())
    except ValueError:
        return 0


def next_id(existing_ids: Iterable[str]) -> str:
    """Return ``max(existing) + 1`` as a string, ``"1"`` for an empty sequence."""
    return str(max((numeric_id(i) for i in existing_ids), default=0) + 1)


def validate_status(status: str) -> str:
    if status not in TASK_STATUSES:
        raise ValueError(f"Invalid status '{status}'. Expected one of: {', '.join(TASK_STATUSES)}")
    return status


def validate_priority(priority: str) -> str:
    if priority not in TASK_PRIORITIES:
        raise ValueError(f"Invalid priority '{priority}'. Expected one of: {', '.join(TASK_PRIORITIES)}")
    return priority


@dataclass(slots=True)
class Subtask:
    """Unit of work owned by exactly one parent task."""

    id: str
    title: str
    status: str = STATUS_PENDING
    description: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON shape."""
        data: Dict[str, Any] = {"id": self.id, "title": self.title}
        if self.description is not None:
            data["description"] = self.description
        data["status"] = self.status
        data["createdAt"] = self.created_at
        data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Subtask":
        """Create from the persisted JSON shape."""
        now = utc_now()
        return cls(
            id=str(data["id"]),
            title=data["title"],
            status=data.get("status", STATUS_PENDING),
            description=data.get("description"),
            created_at=data.get("createdAt", now),
            updated_at=data.get("updatedAt", now),
        )

    def set_status(self, status: str, timestamp: Optional[str] = None) -> None:
        self.status = status
        self.updated_at = timestamp or utc_now()


@dataclass(slots=True)
class Task:
    """Top-level unit of work with priority, dependencies and subtasks."""

    id: str
    title: str
    description: str = ""
    status: str = STATUS_PENDING
    priority: str = DEFAULT_PRIORITY
    dependencies: List[str] = field(default_factory=list)
    subtasks: List[Subtask] = field(default_factory=list)
    details: Optional[str] = None
    test_strategy: Optional[str] = None
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted JSON shape.

        ``details`` and ``testStrategy`` are left out when unset so that a
        load/save cycle reproduces the original document.
        """
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "dependencies": list(self.dependencies),
            "subtasks": [subtask.to_dict() for subtask in self.subtasks],
        }
        if self.details is not None:
            data["details"] = self.details
        if self.test_strategy is not None:
            data["testStrategy"] = self.test_strategy
        data["createdAt"] = self.created_at
        data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create from the persisted JSON shape."""
        now = utc_now()
        return cls(
            id=str(data["id"]),
            title=data["title"],
            description=data.get("description", ""),
            status=data.get("status", STATUS_PENDING),
            priority=data.get("priority", DEFAULT_PRIORITY),
            dependencies=[str(d) for d in data.get("dependencies", [])],
            subtasks=[Subtask.from_dict(s) for s in data.get("subtasks", [])],
            details=data.get("details"),
            test_strategy=data.get("testStrategy"),
            created_at=data.get("createdAt", now),
            updated_at=data.get("updatedAt", now),
        )

    def find_subtask(self, subtask_id: str) -> Optional[Subtask]:
        for subtask in self.subtasks:
            if subtask.id == subtask_id:
                return subtask
        return None

    def set_status(self, status: str, timestamp: Optional[str] = None) -> None:
        self.status = status
        self.updated_at = timestamp or utc_now()

    def apply_updates(self, changes: Dict[str, Any], timestamp: Optional[str] = None) -> None:
        """Overwrite the given fields and refresh ``updated_at``.

        Only names in ``MUTABLE_TASK_FIELDS`` are accepted; ``None`` values
        leave the field untouched.
        """
        rejected = sorted(set(changes) - MUTABLE_TASK_FIELDS)
        if rejected:
            raise ValueError(f"Fields cannot be updated: {', '.join(rejected)}")
        title = changes.get("title")
        if title is not None and not str(title).strip():
            raise ValueError("Task title cannot be empty")

        for name, value in changes.items():
            if value is None:
                continue
            if name == "status":
                validate_status(value)
            elif name == "priority":
                validate_priority(value)
            elif name == "dependencies":
                value = [str(d) for d in value]
            setattr(self, name, value)
        self.updated_at = timestamp or utc_now()

    def dependencies_satisfied(self, done_ids: FrozenSet[str]) -> bool:
        return all(dep in done_ids for dep in self.dependencies)

    def completed_subtasks(self) -> int:
        return sum(1 for subtask in self.subtasks if subtask.status == STATUS_DONE)


@dataclass(slots=True)
class TaskStore:
    """Persisted root document of a project's task list."""

    version: str = STORE_VERSION
    project_name: Optional[str] = None
    tasks: List[Task] = field(default_factory=list)
    last_updated: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"version": self.version}
        if self.project_name is not None:
            data["projectName"] = self.project_name
        data["tasks"] = [task.to_dict() for task in self.tasks]
        data["lastUpdated"] = self.last_updated
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskStore":
        return cls(
            version=data.get("version", STORE_VERSION),
            project_name=data.get("projectName"),
            tasks=[Task.from_dict(t) for t in data.get("tasks", [])],
            last_updated=data.get("lastUpdated", utc_now()),
        )


@dataclass(slots=True)
class TaskFilter:
    """Criteria for listing tasks; set criteria combine with AND."""

    status: Union[str, Iterable[str], None] = None
    priority: Optional[str] = None

    def statuses(self) -> Optional[FrozenSet[str]]:
        if self.status is None:
            return None
        if isinstance(self.status, str):
            return frozenset({self.status})
        return frozenset(self.status)

    def matches(self, task: Task) -> bool:
        statuses = self.statuses()
        if statuses is not None and task.status not in statuses:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        return True


@dataclass(slots=True)
class TaskStats:
    """Task counts per status and overall completion."""

    total: int = 0
    pending: int = 0
    in_progress: int = 0
    done: int = 0
    blocked: int = 0
    deferred: int = 0
    completion_percentage: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "inProgress": self.in_progress,
            "done": self.done,
            "blocked": self.blocked,
            "deferred": self.deferred,
            "completionPercentage": self.completion_percentage,
        }

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> "TaskStats":
        """Count tasks per status and the rounded share of done tasks.

        The percentage rounds exact halves up, so 29 of 200 gives 15 and
        1 of 8 gives 13.
        """
        counts = {status: 0 for status in TASK_STATUSES}
        total = 0
        for task in tasks:
            total += 1
            if task.status in counts:
                counts[task.status] += 1

        done = counts[STATUS_DONE]
        # Half-up rounding, 12.5 -> 13.
        percentage = int(done * 100 / total + 0.5) if total else 0

        return cls(
            total=total,
            pending=counts[STATUS_PENDING],
            in_progress=counts[STATUS_IN_PROGRESS],
            done=done,
            blocked=counts[STATUS_BLOCKED],
            deferred=counts[STATUS_DEFERRED],
            completion_percentage=percentage,
        )


# ---------------------------------------------------------------------------
# Tagged lookup results for "N" and "N.M" identifiers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TaskRef:
    task: Task

    @property
    def item(self) -> Task:
        return self.task


@dataclass(frozen=True, slots=True)
class SubtaskRef:
    parent_id: str
    subtask: Subtask

    @property
    def item(self) -> Subtask:
        return self.subtask

    @property
    def qualified_id(self) -> str:
        return f"{self.parent_id}.{self.subtask.id}"


@dataclass(frozen=True, slots=True)
class NotFound:
    task_id: str

    @property
    def item(self) -> None:
        return None


TaskLookup = Union[TaskRef, SubtaskRef, NotFound]


def split_task_id(task_id: str) -> tuple[str, Optional[str]]:
    """Split ``"7.2"`` into ``("7", "2")`` and ``"7"`` into ``("7", None)``.

    Only the first dot separates; ``"7.2.3"`` addresses subtask ``"2.3"``.
    """
    parent_id, sep, subtask_id = str(task_id).strip().partition(".")
    return parent_id, (subtask_id if sep else None)


def resolve(tasks: Iterable[Task], task_id: str) -> TaskLookup:
    """Resolve a bare or dotted identifier against a task sequence."""
    parent_id, subtask_id = split_task_id(task_id)
    task = next((t for t in tasks if t.id == parent_id), None)
    if task is None:
        return NotFound(task_id)
    if subtask_id is None:
        return TaskRef(task)
    subtask = task.find_subtask(subtask_id)
    if subtask is None:
        return NotFound(task_id)
    return SubtaskRef(task.id, subtask)
