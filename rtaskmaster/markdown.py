"""Render the TASKS.md checklist from the task store.

The checklist is a derived artifact; ``tasks.json`` stays the source of
truth and the file is rebuilt on every request.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

from .models import (
    STATUS_BLOCKED,
    STATUS_DEFERRED,
    STATUS_DONE,
    STATUS_IN_PROGRESS,
    TASK_PRIORITIES,
    Task,
    TaskStats,
    utc_now,
)

TASKS_MARKDOWN_FILE = "TASKS.md"

_STATUS_MARKERS = {
    STATUS_IN_PROGRESS: "🔄 ",
    STATUS_BLOCKED: "🚫 ",
    STATUS_DEFERRED: "⏸️ ",
}

_PRIORITY_HEADINGS = {
    "high": "### 🔴 High Priority",
    "medium": "### 🟡 Medium Priority",
    "low": "### 🟢 Low Priority",
}


def _checkbox(status: str) -> str:
    return "[x]" if status == STATUS_DONE else "[ ]"


def _format_task(task: Task, include_details: bool) -> List[str]:
    line = f"- {_checkbox(task.status)} {_STATUS_MARKERS.get(task.status, '')}{task.title} (#{task.id})"
    if task.dependencies:
        line += f" [depends on: {', '.join(task.dependencies)}]"
    lines = [line]

    if include_details:
        if task.description:
            lines.append(f"  > {task.description}")
        if task.details:
            lines.append(f"  > Details: {task.details}")
        if task.test_strategy:
            lines.append(f"  > Test strategy: {task.test_strategy}")

    for subtask in task.subtasks:
        lines.append(
            f"  - {_checkbox(subtask.status)} {_STATUS_MARKERS.get(subtask.status, '')}"
            f"{subtask.title} (#{task.id}.{subtask.id})"
        )
    return lines


def render_tasks_markdown(
    tasks: Iterable[Task],
    stats: TaskStats,
    include_details: bool = False,
    generated_at: Optional[str] = None,
) -> str:
    """Render the checklist document."""
    tasks = list(tasks)
    lines = [
        "# Project Tasks",
        "",
        f"> Generated by RTaskmaster | Last updated: {generated_at or utc_now()}",
        ">",
        "> Both humans and AI agents can update this file.",
        "> Source of truth: `.rtaskmaster/tasks.json`",
        "",
        "## 📊 Progress",
        "",
        "| Status | Count |",
        "|--------|-------|",
        f"| ✅ Done | {stats.done} |",
        f"| 🔄 In Progress | {stats.in_progress} |",
        f"| ⏳ Pending | {stats.pending} |",
        f"| 🚫 Blocked | {stats.blocked} |",
        f"| ⏸️ Deferred | {stats.deferred} |",
        f"| **Total** | **{stats.total}** |",
        "",
        f"**Completion: {stats.completion_percentage}%**",
        "",
        "---",
        "",
        "## ✅ Tasks",
        "",
    ]

    for priority in TASK_PRIORITIES:
        group = [task for task in tasks if task.priority == priority]
        if not group:
            continue
        lines.append(_PRIORITY_HEADINGS[priority])
        lines.append("")
        for task in group:
            lines.extend(_format_task(task, include_details))
        lines.append("")

    if not tasks:
        lines.append("*No tasks yet. Create your first task using `rtaskmaster_create_task`.*")
        lines.append("")

    lines.extend([
        "---",
        "",
        "## 📝 Checklist Legend",
        "",
        "- `[ ]` - Pending/Not started",
        "- `[x]` - Completed",
        "- 🔄 - In Progress",
        "- 🚫 - Blocked",
        "- ⏸️ - Deferred",
        "",
        "---",
        "",
        "*Managed by RTaskmaster*",
        "",
    ])
    return "\n".join(lines)


def write_tasks_markdown(
    project_root: Path | str,
    tasks: Iterable[Task],
    stats: TaskStats,
    include_details: bool = False,
) -> Path:
    """Write TASKS.md at the project root and return its path."""
    path = Path(project_root) / TASKS_MARKDOWN_FILE
    path.write_text(render_tasks_markdown(tasks, stats, include_details), encoding="utf-8")
    return path
