"""Shared fixtures for RTaskmaster tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from rtaskmaster import TaskManager


class TickingClock:
    """Deterministic replacement for ``utc_now``; each call is one second later."""

    def __init__(self):
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        minutes, seconds = divmod(self.calls, 60)
        return f"2026-01-01T00:{minutes:02d}:{seconds:02d}.000Z"


@pytest.fixture()
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "demo-project"
    root.mkdir()
    return root


@pytest.fixture()
def clock(monkeypatch) -> TickingClock:
    ticking = TickingClock()
    monkeypatch.setattr("rtaskmaster.task_manager.utc_now", ticking)
    monkeypatch.setattr("rtaskmaster.storage.utc_now", ticking)
    return ticking


@pytest.fixture()
def manager(project_root: Path, clock: TickingClock) -> TaskManager:
    """Initialized manager on a temporary project with a ticking clock."""
    task_manager = TaskManager(project_root)
    task_manager.initialize()
    return task_manager
