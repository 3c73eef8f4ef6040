"""Unit tests for RTaskmaster task management operations.

This module tests identifier assignment, lookups, mutations, status
transitions, next-task selection and statistics.
"""

import pytest

from rtaskmaster import NotInitializedError, Subtask, Task, TaskFilter, TaskManager
from rtaskmaster.models import NotFound, SubtaskRef, TaskRef


class TestLifecycle:
    """Test cases for initialization pass-through."""

    def test_uninitialized_project(self, project_root):
        """Test that a fresh project reports itself uninitialized."""
        manager = TaskManager(project_root)

        assert manager.is_initialized() is False
        with pytest.raises(NotInitializedError):
            manager.get_tasks()

    def test_initialize_defaults_project_name(self, project_root):
        """Test the project name defaults to the directory name."""
        manager = TaskManager(project_root)
        store = manager.initialize()

        assert manager.is_initialized() is True
        assert store.project_name == "demo-project"
        assert store.tasks == []


class TestCreateTask:
    """Test cases for task creation."""

    def test_create_task_defaults(self, manager):
        """Test defaults applied to a new task."""
        task = manager.create_task("Write parser")

        assert task.id == "1"
        assert task.title == "Write parser"
        assert task.description == ""
        assert task.status == "pending"
        assert task.priority == "medium"
        assert task.dependencies == []
        assert task.subtasks == []
        assert task.details is None
        assert task.test_strategy is None
        assert task.created_at == task.updated_at

    def test_create_task_with_all_fields(self, manager):
        """Test a task created with every optional field."""
        task = manager.create_task(
            "Add cache",
            description="LRU cache for lookups",
            priority="high",
            dependencies=["4"],
            details="Use functools",
            test_strategy="Benchmark before and after",
        )

        stored = manager.get_task(task.id)
        assert stored.priority == "high"
        assert stored.dependencies == ["4"]
        assert stored.details == "Use functools"
        assert stored.test_strategy == "Benchmark before and after"

    def test_ids_increase_sequentially(self, manager):
        """Test ids are 1, 2, 3 in creation order."""
        ids = [manager.create_task(f"Task {n}").id for n in range(3)]

        assert ids == ["1", "2", "3"]
        assert [t.id for t in manager.get_tasks()] == ["1", "2", "3"]

    def test_ids_are_not_reused_after_delete(self, manager):
        """Test deleting a task never frees its id for reuse below the maximum."""
        for n in range(3):
            manager.create_task(f"Task {n}")
        manager.delete_task("2")

        assert manager.create_task("Task 4").id == "4"

    def test_deleting_highest_id_restarts_from_current_max(self, manager):
        """Test the generated id is max(existing) + 1."""
        manager.create_task("A")
        manager.create_task("B")
        manager.delete_task("2")

        assert manager.create_task("C").id == "2"

    def test_unparsable_ids_count_as_zero(self, manager):
        """Test externally corrupted ids do not break id generation."""
        manager.create_task("A")
        tasks = manager.get_tasks()
        tasks.append(Task(id="abc", title="Imported"))
        manager.storage.save_tasks(tasks)

        assert manager.create_task("B").id == "2"

    def test_empty_title_rejected(self, manager):
        """Test that a blank title is refused."""
        with pytest.raises(ValueError):
            manager.create_task("   ")

    def test_invalid_priority_rejected(self, manager):
        """Test that an unknown priority is refused."""
        with pytest.raises(ValueError):
            manager.create_task("A", priority="urgent")


class TestQueries:
    """Test cases for listing and lookup."""

    def test_filter_by_single_status(self, manager):
        """Test filtering with one status."""
        manager.create_task("A")
        manager.create_task("B")
        manager.set_status("2", "done")

        done = manager.get_tasks(TaskFilter(status="done"))
        assert [t.id for t in done] == ["2"]

    def test_filter_by_status_set(self, manager):
        """Test filtering with several statuses."""
        for title in ("A", "B", "C"):
            manager.create_task(title)
        manager.set_status("1", "done")
        manager.set_status("3", "blocked")

        tasks = manager.get_tasks(TaskFilter(status=["done", "blocked"]))
        assert [t.id for t in tasks] == ["1", "3"]

    def test_filters_combine_with_and(self, manager):
        """Test status and priority filters combine."""
        manager.create_task("A", priority="high")
        manager.create_task("B", priority="low")
        manager.create_task("C", priority="high")
        manager.set_status("3", "in-progress")

        tasks = manager.get_tasks(TaskFilter(status="pending", priority="high"))
        assert [t.id for t in tasks] == ["1"]

    def test_get_task_bare_and_dotted(self, manager):
        """Test lookups of tasks and subtasks."""
        manager.create_task("Parent")
        manager.add_subtask("1", "Child")

        assert isinstance(manager.get_task("1"), Task)
        subtask = manager.get_task("1.1")
        assert isinstance(subtask, Subtask)
        assert subtask.title == "Child"

    def test_get_task_missing(self, manager):
        """Test lookups that miss return None."""
        manager.create_task("Parent")

        assert manager.get_task("9") is None
        assert manager.get_task("1.4") is None
        assert manager.get_task("9.1") is None

    def test_only_first_dot_separates(self, manager):
        """Test that deeper dotted ids do not resolve."""
        manager.create_task("Parent")
        manager.add_subtask("1", "Child")

        assert manager.get_task("1.1.1") is None

    def test_lookup_is_tagged(self, manager):
        """Test the tagged lookup variants."""
        manager.create_task("Parent")
        manager.add_subtask("1", "Child")

        assert isinstance(manager.lookup("1"), TaskRef)
        found = manager.lookup("1.1")
        assert isinstance(found, SubtaskRef)
        assert found.parent_id == "1"
        assert found.qualified_id == "1.1"
        assert isinstance(manager.lookup("2"), NotFound)

    def test_get_parent_task(self, manager):
        """Test parent resolution ignores everything after the first dot."""
        manager.create_task("Parent")

        assert manager.get_parent_task("1.7").id == "1"
        assert manager.get_parent_task("1.7.3").id == "1"
        assert manager.get_parent_task("2.1") is None


class TestUpdateTask:
    """Test cases for partial updates."""

    def test_update_overwrites_only_given_fields(self, manager):
        """Test unspecified fields keep their values."""
        created = manager.create_task("A", description="old", details="keep me")

        updated = manager.update_task("1", title="A2", priority="low")

        assert updated.title == "A2"
        assert updated.priority == "low"
        assert updated.description == "old"
        assert updated.details == "keep me"
        assert updated.created_at == created.created_at
        assert updated.updated_at > created.updated_at
        assert manager.get_task("1").title == "A2"

    def test_update_missing_task(self, manager):
        """Test updating an unknown id returns None."""
        assert manager.update_task("5", title="x") is None

    @pytest.mark.parametrize("field", ["id", "created_at", "updated_at", "subtasks", "owner"])
    def test_update_rejects_fields_outside_allow_list(self, manager, field):
        """Test identifiers, timestamps and subtasks cannot be overwritten."""
        manager.create_task("A")

        with pytest.raises(ValueError):
            manager.update_task("1", **{field: "x"})

        task = manager.get_task("1")
        assert task.id == "1"
        assert task.subtasks == []

    def test_update_rejects_invalid_status(self, manager):
        """Test invalid enum values are refused."""
        manager.create_task("A")

        with pytest.raises(ValueError):
            manager.update_task("1", status="finished")

    @pytest.mark.parametrize("title", ["", "   "])
    def test_update_rejects_blank_title(self, manager, title):
        """Test a title cannot be blanked out after creation."""
        manager.create_task("A")

        with pytest.raises(ValueError, match="title cannot be empty"):
            manager.update_task("1", title=title, priority="high")

        task = manager.get_task("1")
        assert task.title == "A"
        assert task.priority == "medium"

    def test_ids_with_surrounding_whitespace(self, manager):
        """Test update, subtask and delete accept the same ids as lookups."""
        manager.create_task("A")
        manager.create_task("B", dependencies=["1"])

        assert manager.update_task(" 1 ", title="A2").title == "A2"
        assert manager.add_subtask(" 1", "child").id == "1"
        assert manager.get_task(" 1.1 ").title == "child"
        assert manager.delete_task("1 ") is True
        assert manager.get_task("2").dependencies == []


class TestDeleteTask:
    """Test cases for deletion and dependency cleanup."""

    def test_delete_missing_task(self, manager):
        """Test deleting an unknown id returns False."""
        assert manager.delete_task("1") is False

    def test_delete_removes_dependency_references(self, manager):
        """Test the deleted id disappears from every dependency list."""
        manager.create_task("A")
        manager.create_task("B", dependencies=["1"])
        manager.create_task("C", dependencies=["1", "2"])

        assert manager.delete_task("1") is True

        tasks = manager.get_tasks()
        assert [t.id for t in tasks] == ["2", "3"]
        assert all("1" not in t.dependencies for t in tasks)
        assert manager.get_task("3").dependencies == ["2"]

    def test_delete_keeps_unrelated_unknown_dependencies(self, manager):
        """Test dependency lists are not otherwise validated."""
        manager.create_task("A", dependencies=["42"])
        manager.create_task("B")

        manager.delete_task("2")

        assert manager.get_task("1").dependencies == ["42"]


class TestSetStatus:
    """Test cases for status transitions."""

    def test_set_task_status(self, manager):
        """Test a bare id changes the task status and timestamp."""
        created = manager.create_task("A")

        result = manager.set_status("1", "in-progress")

        assert isinstance(result, Task)
        assert result.status == "in-progress"
        assert result.updated_at > created.updated_at

    def test_any_transition_allowed(self, manager):
        """Test done tasks can be reopened."""
        manager.create_task("A")
        manager.set_status("1", "done")
        manager.set_status("1", "pending")

        assert manager.get_task("1").status == "pending"

    def test_subtask_status_bubbles_timestamp_only(self, manager):
        """Test a subtask change refreshes the parent timestamp, not its status."""
        manager.create_task("X")
        manager.add_subtask("1", "Y")
        before = manager.get_task("1")

        result = manager.set_status("1.1", "done")

        assert isinstance(result, Subtask)
        parent = manager.get_task("1")
        assert parent.status == "pending"
        assert parent.subtasks[0].status == "done"
        assert parent.updated_at > before.updated_at
        assert parent.subtasks[0].updated_at == parent.updated_at

    def test_set_status_missing(self, manager):
        """Test missing tasks and subtasks return None."""
        manager.create_task("A")

        assert manager.set_status("2", "done") is None
        assert manager.set_status("1.1", "done") is None

    def test_set_status_rejects_unknown_status(self, manager):
        """Test an invalid status is refused."""
        manager.create_task("A")

        with pytest.raises(ValueError):
            manager.set_status("1", "finished")

    def test_set_status_many(self, manager):
        """Test bulk status updates report per id."""
        manager.create_task("A")
        manager.create_task("B")

        results = manager.set_status_many(["1", "7", "2"], "done")

        assert [task_id for task_id, _ in results] == ["1", "7", "2"]
        assert results[1][1] is None
        assert manager.get_stats().done == 2


class TestSubtasks:
    """Test cases for subtask creation."""

    def test_add_subtask(self, manager):
        """Test subtask defaults and parent timestamp refresh."""
        created = manager.create_task("Parent")

        subtask = manager.add_subtask("1", "Child", description="details")

        assert subtask.id == "1"
        assert subtask.status == "pending"
        assert subtask.description == "details"
        parent = manager.get_task("1")
        assert parent.updated_at > created.updated_at
        assert parent.updated_at == subtask.created_at

    def test_subtask_ids_are_scoped_per_parent(self, manager):
        """Test each parent numbers its subtasks independently."""
        manager.create_task("P1")
        manager.create_task("P2")

        assert [manager.add_subtask("1", f"s{n}").id for n in range(3)] == ["1", "2", "3"]
        assert manager.add_subtask("2", "other").id == "1"
        assert [s.title for s in manager.get_task("1").subtasks] == ["s0", "s1", "s2"]

    def test_add_subtask_to_missing_task(self, manager):
        """Test the parent must exist."""
        assert manager.add_subtask("3", "Child") is None


class TestNextTask:
    """Test cases for next-task selection."""

    def test_empty_project(self, manager):
        """Test no candidates yields None."""
        assert manager.get_next_task() is None

    def test_dependency_scenario(self, manager):
        """Test a dependency blocks until its target is done."""
        manager.create_task("A", priority="high")
        manager.create_task("B", dependencies=["1"])

        assert manager.get_next_task().id == "1"

        manager.set_status("1", "done")
        assert manager.get_next_task().id == "2"

    def test_priority_order(self, manager):
        """Test high beats medium beats low."""
        manager.create_task("Low", priority="low")
        manager.create_task("Medium", priority="medium")
        manager.create_task("High", priority="high")

        assert manager.get_next_task().title == "High"
        manager.set_status("3", "done")
        assert manager.get_next_task().title == "Medium"
        manager.set_status("2", "done")
        assert manager.get_next_task().title == "Low"

    def test_ties_break_on_lowest_numeric_id(self, manager):
        """Test equal priorities prefer the oldest id numerically."""
        for n in range(10):
            manager.create_task(f"T{n + 1}")
        for n in range(1, 9):
            manager.set_status(str(n), "deferred")

        assert manager.get_next_task().id == "9"

    def test_in_progress_overrides_priority(self, manager):
        """Test the first in-progress candidate wins."""
        manager.create_task("High", priority="high")
        manager.create_task("Low working", priority="low")
        manager.create_task("Medium working")
        manager.set_status("2", "in-progress")
        manager.set_status("3", "in-progress")

        assert manager.get_next_task().id == "2"

    def test_in_progress_with_unmet_dependency_is_skipped(self, manager):
        """Test in-progress tasks still need their dependencies done."""
        manager.create_task("Blocker", priority="low")
        manager.create_task("Working", dependencies=["1"])
        manager.set_status("2", "in-progress")

        assert manager.get_next_task().id == "1"

    @pytest.mark.parametrize("status", ["done", "blocked", "deferred"])
    def test_unavailable_statuses_never_returned(self, manager, status):
        """Test done, blocked and deferred tasks are skipped."""
        manager.create_task("Only")
        manager.set_status("1", status)

        assert manager.get_next_task() is None

    def test_unknown_dependency_blocks_forever(self, manager):
        """Test a dependency on a missing id is never satisfied."""
        manager.create_task("Orphan", priority="high", dependencies=["99"])
        manager.create_task("Free", priority="low")

        assert manager.get_next_task().id == "2"
        manager.set_status("2", "done")
        assert manager.get_next_task() is None

    def test_unrecognized_priority_ranks_as_medium(self, manager):
        """Test externally written priorities sort as medium."""
        manager.create_task("Low", priority="low")
        manager.create_task("Odd")
        manager.create_task("Medium")
        tasks = manager.get_tasks()
        tasks[1].priority = "urgent"
        manager.storage.save_tasks(tasks)

        assert manager.get_next_task().id == "2"


class TestStats:
    """Test cases for statistics."""

    def test_empty_stats(self, manager):
        """Test an empty project reports zero completion."""
        stats = manager.get_stats()

        assert stats.total == 0
        assert stats.completion_percentage == 0

    def test_counts_per_status(self, manager):
        """Test per-status counters."""
        for n in range(5):
            manager.create_task(f"T{n}")
        manager.set_status("1", "done")
        manager.set_status("2", "in-progress")
        manager.set_status("3", "blocked")
        manager.set_status("4", "deferred")

        stats = manager.get_stats()

        assert (stats.total, stats.pending, stats.in_progress, stats.done, stats.blocked, stats.deferred) == (
            5, 1, 1, 1, 1, 1,
        )
        assert stats.completion_percentage == 20

    @pytest.mark.parametrize("done,total,expected", [(1, 3, 33), (2, 3, 67), (1, 8, 13), (3, 3, 100)])
    def test_completion_percentage_rounding(self, manager, done, total, expected):
        """Test the percentage rounds to the nearest integer, halves up."""
        for n in range(total):
            manager.create_task(f"T{n}")
        for n in range(done):
            manager.set_status(str(n + 1), "done")

        assert manager.get_stats().completion_percentage == expected


class TestSaveTasksRoundTrip:
    """Test cases for lossless persistence through the manager."""

    def test_save_tasks_then_get_tasks(self, manager):
        """Test every field survives a save/load cycle."""
        manager.create_task("A", description="desc", priority="high", dependencies=["2"],
                            details="notes", test_strategy="pytest")
        manager.create_task("B")
        manager.add_subtask("1", "with description", description="sub")
        manager.add_subtask("1", "without description")
        tasks = manager.get_tasks()

        manager.storage.save_tasks(tasks)

        assert manager.get_tasks() == tasks
        assert manager.get_task("1.2").description is None
        assert manager.get_task("2").details is None
