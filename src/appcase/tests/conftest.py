"""Shared fixtures: every test starts from fresh globals."""

from datetime import UTC, date, datetime

import pytest

from appcase.apps.composer import reset_composer
from appcase.foundation.config import clear_settings_cache
from appcase.foundation.registry import ToolRegistry, reset_registry
from appcase.foundation.testing import CapturingRenderer, FakeClock, capture_logs
from appcase.io.state import reset_state_store
from appcase.runtime.observability import configure_logging
from appcase.tools.prebuilt.taskflow import Outbox, TaskStore, register_taskflow

NOW = datetime(2026, 3, 10, 9, 30, tzinfo=UTC)


@pytest.fixture(autouse=True)
def clean_globals() -> object:
    """Reset global registry, composer, state store and settings around each test."""
    configure_logging(format="none")
    clear_settings_cache()
    reset_registry()
    reset_composer()
    reset_state_store()
    yield
    reset_registry()
    reset_composer()
    reset_state_store()
    clear_settings_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def task_store() -> TaskStore:
    """Store with two open tasks (one overdue), one done and one locked task."""
    store = TaskStore(clock=lambda: NOW)
    store.add("File quarterly taxes", body="Forms are in the blue folder", due=date(2026, 3, 1))
    store.add("Book dentist", due=date(2026, 4, 2))
    done = store.add("Renew passport")
    store.complete(done.id)
    store.add("Shared roadmap", body="Owned by the platform team", locked=True)
    return store


@pytest.fixture
def outbox() -> Outbox:
    return Outbox()


@pytest.fixture
def registry(task_store: TaskStore, outbox: Outbox) -> ToolRegistry:
    reg = ToolRegistry()
    register_taskflow(reg, task_store, sender=outbox)
    return reg


@pytest.fixture
def captured_logs() -> CapturingRenderer:
    return capture_logs()
