"""Tests for structured logging."""

import io

import orjson
import pytest

from appcase.foundation.registry import ToolRegistry
from appcase.foundation.testing import CapturingRenderer, mock_tool
from appcase.runtime.observability import (
    ConsoleRenderer,
    JsonRenderer,
    bounded,
    configure_from_settings,
    configure_logging,
    conversation_scope,
    get_logger,
)
from appcase.tools.prebuilt.taskflow import GetTaskTool


@pytest.mark.parametrize("value,expected", [
    (None, None),
    (3, 3),
    (True, True),
    ("short", "short"),
    ({"selected": "t-2", "page": 1}, "{2 keys}"),
    (["t-1", "t-2", "t-3"], "[3 items]"),
])
def test_bounded(value: object, expected: object) -> None:
    assert bounded(value) == expected


def test_bounded_cuts_long_strings() -> None:
    assert bounded("x" * 30, limit=10) == "xxxxxxxxxx...(30 chars)"


class TestLogger:
    def test_bind_and_invocation_context(self, captured_logs: CapturingRenderer) -> None:
        log = get_logger("appcase.test", service="taskflow")
        log.for_invocation("taskflow_get_task", "c-1").info("executing", limit=5)
        entry = captured_logs.find("executing")[0]
        assert entry.logger == "appcase.test"
        assert entry.context == {"service": "taskflow", "tool": "taskflow_get_task", "conversation": "c-1", "limit": 5}

    def test_invocation_without_conversation(self, captured_logs: CapturingRenderer) -> None:
        get_logger().for_invocation("taskflow_get_task").info("executing")
        assert captured_logs.find("executing")[0].context == {"tool": "taskflow_get_task"}

    def test_conversation_scope(self, captured_logs: CapturingRenderer) -> None:
        log = get_logger("appcase.test")
        with conversation_scope("c-7", origin="composer"):
            log.info("inside")
        log.info("outside")
        assert captured_logs.find("inside")[0].context == {"conversation": "c-7", "origin": "composer"}
        assert captured_logs.find("outside")[0].context == {}

    def test_level_threshold(self) -> None:
        renderer = CapturingRenderer()
        configure_logging(renderer=renderer, level="warning")
        log = get_logger()
        log.info("quiet")
        log.warning("loud")
        assert renderer.events() == ["loud"]

    def test_exception_carries_traceback(self, captured_logs: CapturingRenderer) -> None:
        try:
            raise KeyError("t-9")
        except KeyError:
            get_logger().exception("lookup failed")
        assert "KeyError: 't-9'" in captured_logs.find("lookup failed")[0].context["exc_info"]

    @pytest.mark.parametrize("kwargs,match", [
        ({"format": "xml"}, "Unknown format"),
        ({"level": "LOUD"}, "Unknown log level"),
    ])
    def test_bad_configuration(self, kwargs: dict, match: str) -> None:
        with pytest.raises(ValueError, match=match):
            configure_logging(**kwargs)


class TestRenderers:
    def test_console_line(self) -> None:
        out = io.StringIO()
        configure_logging(renderer=ConsoleRenderer(output=out))
        get_logger("appcase.state").info("widget seeded", instance="w-1", data={"a": 1})
        line = out.getvalue().strip()
        assert line.endswith('INFO    appcase.state: widget seeded data="{1 keys}" instance="w-1"')

    def test_json_line(self) -> None:
        out = io.StringIO()
        configure_logging(renderer=JsonRenderer(output=out, limit=5))
        get_logger("appcase.composer").warning("narration truncated", tool="taskflow_list_tasks", length=900)
        record = orjson.loads(out.getvalue())
        assert record["level"] == "warning"
        assert record["logger"] == "appcase.composer"
        assert record["tool"] == "taskf...(19 chars)"
        assert record["length"] == 900


@pytest.mark.asyncio
async def test_tool_failure_logged_with_conversation(
    registry: ToolRegistry, captured_logs: CapturingRenderer,
) -> None:
    from appcase.runtime.middleware import Context

    with mock_tool(GetTaskTool, raises=RuntimeError("disk quota exceeded")):
        await registry.execute("taskflow_get_task", {"task_id": "t-1"}, ctx=Context({"conversation_id": "c-3"}))
    entry = captured_logs.find("tool failed")[0]
    assert entry.context["tool"] == "taskflow_get_task"
    assert entry.context["conversation"] == "c-3"
    assert "RuntimeError: disk quota exceeded" in entry.context["exc_info"]


def test_configure_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    from appcase.foundation.config import clear_settings_cache

    monkeypatch.setenv("APPCASE_LOG_FORMAT", "json")
    monkeypatch.setenv("APPCASE_LOG_LEVEL", "debug")
    clear_settings_cache()
    assert isinstance(configure_from_settings(), JsonRenderer)


def test_debug_setting_overrides_level(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    from appcase.foundation.config import clear_settings_cache

    monkeypatch.setenv("APPCASE_LOG_FORMAT", "json")
    monkeypatch.setenv("APPCASE_LOG_LEVEL", "warning")
    monkeypatch.setenv("APPCASE_DEBUG", "true")
    clear_settings_cache()
    configure_from_settings()
    get_logger("appcase.state").debug("widget seeded", instance="w-1")
    record = orjson.loads(capsys.readouterr().out)
    assert record["level"] == "debug"
    assert record["event"] == "widget seeded"
