"""MCP server exposing RTaskmaster task tracking tools."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from mcp.server.fastmcp import FastMCP

from rtaskmaster import TaskFilter, TaskManager
from rtaskmaster.config import PROJECT_ROOT_ENV, load_settings
from rtaskmaster.extraction import extract_task_titles, truncate_title
from rtaskmaster.markdown import render_tasks_markdown, write_tasks_markdown
from rtaskmaster.models import STATUS_DONE, SubtaskRef, TaskRef, TaskStats
from rtaskmaster.rtaskmaster_logging import setup_logging

mcp = FastMCP("rtaskmaster")

logger = logging.getLogger("rtaskmaster.server")

Status = Literal["pending", "in-progress", "done", "blocked", "deferred"]
Priority = Literal["high", "medium", "low"]

STATUS_EMOJI = {
    "pending": "⏳",
    "in-progress": "🔄",
    "done": "✅",
    "blocked": "🚫",
    "deferred": "⏸️",
}
PRIORITY_EMOJI = {"high": "🔴", "medium": "🟡", "low": "🟢"}


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    return [cwd, *cwd.parents]


def _locate_project_root() -> Optional[Path]:
    marker = load_settings().storage_dir_name
    for base in _candidate_bases():
        if (base / marker).is_dir():
            return base
    return None


def _resolve_root(project_root: Optional[str], *, allow_cwd: bool = False) -> Path:
    if project_root:
        resolved = Path(project_root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided project_root '{project_root}' does not exist.")
        return resolved

    settings = load_settings()
    if settings.project_root:
        env_path = settings.project_root.resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable {PROJECT_ROOT_ENV} points to '{settings.project_root}', which does not exist."
            )
        return env_path

    detected_root = _locate_project_root()
    if detected_root:
        return detected_root

    if allow_cwd:
        return Path.cwd().resolve()

    raise ValueError(
        "Unable to determine project root automatically. Provide the 'project_root' argument when calling "
        f"the tool or set the {PROJECT_ROOT_ENV} environment variable."
    )


def _manager(project_root: Optional[str], *, allow_cwd: bool = False) -> TaskManager:
    return TaskManager(_resolve_root(project_root, allow_cwd=allow_cwd))


def _not_initialized(manager: TaskManager) -> Dict[str, Any]:
    return {
        "error": "RTaskmaster is not initialized",
        "project_root": str(manager.project_root),
        "message": "❌ RTaskmaster is not initialized. Run rtaskmaster_init first.",
        "next_suggested_step": "rtaskmaster_init",
    }


def _not_found(task_id: str) -> Dict[str, Any]:
    return {
        "error": f"Task '{task_id}' not found",
        "message": f"❌ Task \"{task_id}\" not found.",
    }


def _progress_bar(percent: int) -> str:
    filled = int(percent / 10 + 0.5)
    return "█" * filled + "░" * (10 - filled)


def _task_line(task) -> str:
    line = f"{STATUS_EMOJI.get(task.status, '❓')} [{task.id}] {task.title} {PRIORITY_EMOJI.get(task.priority, '')}"
    if task.subtasks:
        line += f" ({task.completed_subtasks()}/{len(task.subtasks)} subtasks)"
    return line


@mcp.tool()
def rtaskmaster_init(project_root: Optional[str] = None, project_name: Optional[str] = None) -> Dict[str, Any]:
    """Initialize RTaskmaster in a project. Creates the .rtaskmaster directory with tasks.json.
    Should be called first; an existing task store is left untouched."""

    manager = _manager(project_root, allow_cwd=True)
    if manager.is_initialized():
        return {
            "initialized": True,
            "created": False,
            "tasks_path": str(manager.storage.tasks_path),
            "message": "✅ RTaskmaster is already initialized in this project.",
        }

    store = manager.initialize(project_name)
    return {
        "initialized": True,
        "created": True,
        "project_name": store.project_name,
        "tasks_path": str(manager.storage.tasks_path),
        "next_suggested_step": "rtaskmaster_create_task",
        "message": (
            f"✅ RTaskmaster initialized successfully!\n\nProject: {store.project_name}\n"
            f"Tasks file: {manager.storage.tasks_path}\n\n"
            "You can now create tasks using rtaskmaster_create_task."
        ),
    }


@mcp.tool()
def rtaskmaster_get_tasks(
    project_root: Optional[str] = None,
    status: Optional[Status] = None,
    priority: Optional[Priority] = None,
) -> Dict[str, Any]:
    """Get all tasks from the project, optionally filtered by status or priority."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    tasks = manager.get_tasks(TaskFilter(status=status, priority=priority))
    stats = manager.get_stats()

    if not tasks:
        message = "📋 No tasks found.\n\nCreate your first task using rtaskmaster_create_task."
    else:
        message = (
            f"📋 Tasks ({stats.completion_percentage}% complete)\n\n"
            + "\n".join(_task_line(task) for task in tasks)
            + f"\n\n📊 Stats: {stats.done}/{stats.total} done, {stats.in_progress} in progress, {stats.pending} pending"
        )

    return {
        "tasks": [task.to_dict() for task in tasks],
        "total_count": len(tasks),
        "filters_applied": {"status": status, "priority": priority},
        "stats": stats.to_dict(),
        "message": message,
    }


@mcp.tool()
def rtaskmaster_get_task(task_id: str, project_root: Optional[str] = None) -> Dict[str, Any]:
    """Get detailed information about a specific task ("1") or subtask ("1.2")."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    found = manager.lookup(task_id)
    if isinstance(found, SubtaskRef):
        subtask = found.subtask
        message = f"📌 Subtask {found.qualified_id}\n\nTitle: {subtask.title}\nStatus: {subtask.status}"
        if subtask.description:
            message += f"\nDescription: {subtask.description}"
        return {
            "kind": "subtask",
            "parent_id": found.parent_id,
            "subtask": subtask.to_dict(),
            "message": message,
        }

    if not isinstance(found, TaskRef):
        return _not_found(task_id)

    task = found.task
    message = f"📌 Task {task.id}: {task.title}\n\n"
    message += f"Status: {task.status}\nPriority: {task.priority}\n"
    message += f"Description: {task.description or '(none)'}\n"
    if task.dependencies:
        message += f"Dependencies: {', '.join(task.dependencies)}\n"
    if task.details:
        message += f"\n📝 Details:\n{task.details}\n"
    if task.test_strategy:
        message += f"\n🧪 Test Strategy:\n{task.test_strategy}\n"
    if task.subtasks:
        message += "\n📋 Subtasks:\n"
        for subtask in task.subtasks:
            message += f"  {STATUS_EMOJI.get(subtask.status, '⏳')} [{task.id}.{subtask.id}] {subtask.title}\n"

    return {"kind": "task", "task": task.to_dict(), "message": message}


@mcp.tool()
def rtaskmaster_create_task(
    title: str,
    project_root: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[Priority] = None,
    dependencies: Optional[List[str]] = None,
    details: Optional[str] = None,
    test_strategy: Optional[str] = None,
) -> Dict[str, Any]:
    """Create a new task. Priority defaults to medium; dependencies are ids of tasks that must be done first."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    task = manager.create_task(
        title,
        description=description,
        priority=priority,
        dependencies=dependencies,
        details=details,
        test_strategy=test_strategy,
    )
    return {
        "success": True,
        "task": task.to_dict(),
        "message": (
            f"✅ Task created!\n\nID: {task.id}\nTitle: {task.title}\n"
            f"Priority: {task.priority}\nStatus: {task.status}"
        ),
    }


@mcp.tool()
def rtaskmaster_update_task(
    task_id: str,
    project_root: Optional[str] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[Priority] = None,
    dependencies: Optional[List[str]] = None,
    details: Optional[str] = None,
    test_strategy: Optional[str] = None,
) -> Dict[str, Any]:
    """Update an existing task. Only the provided fields change."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    task = manager.update_task(
        task_id,
        title=title,
        description=description,
        priority=priority,
        dependencies=dependencies,
        details=details,
        test_strategy=test_strategy,
    )
    if task is None:
        return _not_found(task_id)

    return {
        "success": True,
        "task": task.to_dict(),
        "message": (
            f"✅ Task {task.id} updated!\n\nTitle: {task.title}\n"
            f"Status: {task.status}\nPriority: {task.priority}"
        ),
    }


@mcp.tool()
def rtaskmaster_delete_task(task_id: str, project_root: Optional[str] = None) -> Dict[str, Any]:
    """Delete a task and remove it from other tasks' dependencies."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    if not manager.delete_task(task_id):
        return _not_found(task_id)

    return {"success": True, "task_id": task_id, "message": f"✅ Task {task_id} deleted."}


@mcp.tool()
def rtaskmaster_set_status(task_id: str, status: Status, project_root: Optional[str] = None) -> Dict[str, Any]:
    """Update the status of a task ("1") or subtask ("1.2")."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    result = manager.set_status(task_id, status)
    if result is None:
        return _not_found(task_id)

    return {
        "success": True,
        "task_id": task_id,
        "status": status,
        "item": result.to_dict(),
        "message": f"✅ Status updated!\n\n{task_id}: {result.title} → {status}",
    }


@mcp.tool()
def rtaskmaster_add_subtask(
    task_id: str,
    title: str,
    project_root: Optional[str] = None,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    """Add a subtask to an existing task."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    subtask = manager.add_subtask(task_id, title, description=description)
    if subtask is None:
        return _not_found(task_id)

    return {
        "success": True,
        "parent_id": task_id,
        "subtask": subtask.to_dict(),
        "message": f"✅ Subtask added!\n\nID: {task_id}.{subtask.id}\nTitle: {subtask.title}",
    }


@mcp.tool()
def rtaskmaster_next_task(project_root: Optional[str] = None) -> Dict[str, Any]:
    """Get the next task to work on based on status, priority and dependencies."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    task = manager.get_next_task()
    stats = manager.get_stats()

    if task is None:
        if stats.total == 0:
            message = "📋 No tasks yet. Create your first task using rtaskmaster_create_task."
        elif stats.done == stats.total:
            message = "🎉 All tasks are complete! Great job!"
        else:
            message = "⏳ No tasks available. Remaining tasks may be blocked or deferred."
        return {"task": None, "stats": stats.to_dict(), "message": message}

    message = f"🎯 Next Task: [{task.id}] {task.title}\n\n"
    message += f"Priority: {task.priority}\nStatus: {task.status}\n"
    message += f"Description: {task.description or '(none)'}\n"
    if task.details:
        message += f"\n📝 Details:\n{task.details}\n"
    pending_subtasks = [s for s in task.subtasks if s.status != STATUS_DONE]
    if pending_subtasks:
        message += "\n📋 Pending Subtasks:\n"
        for subtask in pending_subtasks:
            message += f"  ⏳ [{task.id}.{subtask.id}] {subtask.title}\n"
    message += f"\n💡 To start working: rtaskmaster_set_status with task_id=\"{task.id}\" and status=\"in-progress\""

    return {
        "task": task.to_dict(),
        "stats": stats.to_dict(),
        "next_suggested_step": "rtaskmaster_set_status",
        "message": message,
    }


def _stats_message(stats: TaskStats) -> str:
    return (
        "📊 Project Statistics\n\n"
        f"Progress: {_progress_bar(stats.completion_percentage)} {stats.completion_percentage}%\n\n"
        f"✅ Done: {stats.done}\n"
        f"🔄 In Progress: {stats.in_progress}\n"
        f"⏳ Pending: {stats.pending}\n"
        f"🚫 Blocked: {stats.blocked}\n"
        f"⏸️ Deferred: {stats.deferred}\n"
        "━━━━━━━━━━━━━━━━━━━━\n"
        f"📋 Total: {stats.total}"
    )


@mcp.tool()
def rtaskmaster_stats(project_root: Optional[str] = None) -> Dict[str, Any]:
    """Get task statistics and project progress."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    stats = manager.get_stats()
    return {"stats": stats.to_dict(), "message": _stats_message(stats)}


@mcp.tool()
def rtaskmaster_generate_tasks_md(project_root: Optional[str] = None, include_details: bool = False) -> Dict[str, Any]:
    """Generate a human-readable TASKS.md checklist in the project root from the current tasks."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    tasks = manager.get_tasks()
    stats = manager.get_stats()
    path = write_tasks_markdown(manager.project_root, tasks, stats, include_details=include_details)
    logger.info(f"Generated checklist at {path}")

    return {
        "success": True,
        "tasks_md_path": str(path),
        "stats": stats.to_dict(),
        "message": (
            f"✅ Generated TASKS.md successfully!\n\nFile: {path}\n\n"
            f"📊 Contains {stats.total} tasks ({stats.completion_percentage}% complete)"
        ),
    }


@mcp.tool()
def rtaskmaster_parse_prd(
    project_root: Optional[str] = None,
    file_path: Optional[str] = None,
    content: Optional[str] = None,
    default_priority: Optional[Priority] = None,
) -> Dict[str, Any]:
    """Create tasks from the bullet points and numbered items of a PRD, README or requirements text.
    Provide either content directly or a file path (relative paths resolve against the project root)."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    text = content
    if not text and file_path:
        resolved = Path(file_path).expanduser()
        if not resolved.is_absolute():
            resolved = manager.project_root / resolved
        if not resolved.exists():
            return {"error": f"File not found: {resolved}", "message": f"❌ File not found: {resolved}"}
        text = resolved.read_text(encoding="utf-8")

    if not text:
        return {
            "error": "No content provided",
            "message": "❌ Please provide either file_path or content to parse.",
        }

    titles = extract_task_titles(text)
    if not titles:
        return {
            "created_tasks": [],
            "message": (
                "⚠️ No tasks could be extracted from the content.\n\n"
                "Tip: Format requirements as bullet points or numbered lists for best results."
            ),
        }

    created = [
        manager.create_task(truncate_title(title), priority=default_priority or "medium")
        for title in titles
    ]
    task_list = "\n".join(f"  [{task.id}] {task.title}" for task in created)
    return {
        "success": True,
        "created_tasks": [task.to_dict() for task in created],
        "count": len(created),
        "message": (
            f"✅ Created {len(created)} tasks from the content!\n\n📋 Tasks created:\n{task_list}\n\n"
            "💡 Use rtaskmaster_get_tasks to see all tasks, or rtaskmaster_update_task to modify details."
        ),
    }


@mcp.tool()
def rtaskmaster_bulk_status(task_ids: List[str], status: Status, project_root: Optional[str] = None) -> Dict[str, Any]:
    """Update the status of multiple tasks or subtasks at once."""

    manager = _manager(project_root)
    if not manager.is_initialized():
        return _not_initialized(manager)

    results = manager.set_status_many(task_ids, status)
    updated = [task_id for task_id, item in results if item is not None]
    failed = [task_id for task_id, item in results if item is None]

    lines = [
        f"✅ [{task_id}] {item.title} → {status}" if item is not None else f"❌ [{task_id}] Not found"
        for task_id, item in results
    ]
    return {
        "updated": updated,
        "failed": failed,
        "success_count": len(updated),
        "failure_count": len(failed),
        "message": (
            "📋 Bulk Status Update Complete\n\n" + "\n".join(lines)
            + f"\n\n✅ Success: {len(updated)} | ❌ Failed: {len(failed)}"
        ),
    }


@mcp.resource("rtaskmaster://tasks")
def resource_tasks() -> str:
    """Checklist view of the tasks in the detected project."""

    try:
        manager = _manager(None)
    except ValueError:
        return f"No project root detected. Launch tools with a 'project_root' argument or set {PROJECT_ROOT_ENV}."

    if not manager.is_initialized():
        return "RTaskmaster is not initialized. Run rtaskmaster_init first."
    return render_tasks_markdown(manager.get_tasks(), manager.get_stats())


def run() -> None:
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    run()
