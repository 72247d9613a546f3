"""Tests for the HTTP transport: tool routes and the widget state channel."""

import orjson
import pytest
from starlette.testclient import TestClient

from appcase.ext.mcp import HTTPToolServer, apply_settings, create_http_app, serve_http, status_for
from appcase.foundation.config import clear_settings_cache
from appcase.foundation.errors import ErrorCode
from appcase.foundation.registry import ToolRegistry
from appcase.foundation.testing import FakeClock
from appcase.io.state import MemoryStateStore


@pytest.fixture
def widget_store(clock: FakeClock) -> MemoryStateStore:
    return MemoryStateStore(clock=clock, ttl=600.0, token_budget=20)


@pytest.fixture
def client(registry: ToolRegistry, widget_store: MemoryStateStore) -> TestClient:
    return TestClient(create_http_app(registry, "taskflow", store=widget_store))


class TestToolRoutes:
    def test_list_tools(self, client: TestClient) -> None:
        body = client.get("/tools").json()
        assert body["server"] == "taskflow"
        assert len(body["tools"]) == 8
        assert {"name", "description", "inputSchema", "annotations", "_meta"} <= body["tools"][0].keys()

    def test_schema(self, client: TestClient) -> None:
        resp = client.get("/tools/taskflow_get_task/schema")
        assert resp.status_code == 200
        assert resp.json()["inputSchema"]["required"] == ["task_id"]

    def test_schema_unknown(self, client: TestClient) -> None:
        resp = client.get("/tools/taskflow_archive_tasks/schema")
        assert resp.status_code == 404
        assert resp.json()["category"] == "NOT_FOUND"

    def test_invoke(self, client: TestClient) -> None:
        resp = client.post("/tools/taskflow_list_tasks", json={"limit": 1})
        assert resp.status_code == 200
        wire = resp.json()
        assert wire["content"] == [{"type": "text", "text": "You have 3 open tasks; 1 is overdue."}]
        assert wire["structuredContent"]["tasks"][0]["id"] == "t-1"
        assert wire["_meta"]["next_cursor"] == "1"
        assert wire["isError"] is False

    def test_invoke_empty_body(self, client: TestClient) -> None:
        assert client.post("/tools/taskflow_list_tasks").status_code == 200

    @pytest.mark.parametrize("path,body,status,category", [
        ("/tools/taskflow_get_task", {"task_id": "t-42"}, 404, "NOT_FOUND"),
        ("/tools/taskflow_get_task", {"task_id": "t-1", "verbose": True}, 422, "INVALID_PARAMS"),
        ("/tools/taskflow_update_task", {"task_id": "t-4", "title": "Mine"}, 403, "PERMISSION_DENIED"),
        ("/tools/taskflow_send_reminder", {"task_id": "t-3"}, 409, "CONFLICT"),
        ("/tools/taskflow_archive_tasks", {}, 404, "NOT_FOUND"),
    ])
    def test_invoke_failures(self, client: TestClient, path: str, body: dict, status: int, category: str) -> None:
        resp = client.post(path, json=body)
        assert resp.status_code == status
        wire = resp.json()
        assert wire["isError"] is True
        assert wire["structuredContent"]["category"] == category
        assert wire["content"][0]["text"]

    def test_non_object_body(self, client: TestClient) -> None:
        resp = client.post("/tools/taskflow_list_tasks", json=["open"])
        assert resp.status_code == 422
        assert resp.json()["structuredContent"]["category"] == "INVALID_PARAMS"

    def test_malformed_json(self, client: TestClient) -> None:
        resp = client.post("/tools/taskflow_list_tasks", content=b"{not json",
                           headers={"content-type": "application/json"})
        assert resp.status_code == 422

    def test_tool_call_keeps_widget_state(self, client: TestClient, widget_store: MemoryStateStore) -> None:
        widget_store.render("c-1", "w-1", {"selected": "t-2"})
        client.post("/tools/taskflow_list_tasks", json={}, headers={"X-Conversation-Id": "c-1"})
        assert widget_store.read("c-1", "w-1") == {"selected": "t-2"}

    def test_tool_call_sends_no_state_signal(
        self, client: TestClient, widget_store: MemoryStateStore, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        signals: list[tuple[str, str]] = []
        monkeypatch.setattr(widget_store, "signal", lambda cid, origin: signals.append((cid, origin)) or 0)
        resp = client.post("/tools/taskflow_list_tasks", json={}, headers={"X-Conversation-Id": "c-1"})
        assert resp.status_code == 200
        assert signals == []

    def test_resources(self, client: TestClient) -> None:
        resources = client.get("/resources").json()["resources"]
        assert [r["uri"] for r in resources] == ["ui://widget/taskflow/tasks.html"]
        assert resources[0]["mimeType"] == "text/html+skybridge"
        assert resources[0]["_meta"]["openai/widgetCSP"]["connect_domains"] == ["https://api.taskflow.example"]


class TestWidgetRoutes:
    def test_lifecycle(self, client: TestClient) -> None:
        rendered = client.post("/widgets/w-1/render", json={"conversation_id": "c-1", "state": {"filter": "open"}})
        assert rendered.json()["phase"] == "active"

        saved = client.put("/widgets/w-1/state", json={"conversation_id": "c-1", "state": {"selected": "t-2"}})
        assert saved.status_code == 200
        assert saved.json()["data"] == {"selected": "t-2"}
        assert saved.json()["over_budget"] is False

        read = client.get("/widgets/w-1/state", params={"conversation_id": "c-1"}).json()
        assert read["data"] == {"selected": "t-2"}

        reset = client.post("/conversations/c-1/composer").json()
        assert reset == {"conversation_id": "c-1", "reset": 1}

        after = client.get("/widgets/w-1/state", params={"conversation_id": "c-1"}).json()
        assert after["phase"] == "uninitialized"
        assert after["data"] == {}

    def test_save_before_render(self, client: TestClient) -> None:
        resp = client.put("/widgets/w-9/state", json={"conversation_id": "c-1", "state": {"page": 2}})
        assert resp.status_code == 404
        body = resp.json()
        assert body["category"] == "NOT_FOUND"
        assert body["next_step"] == "Render the widget again before saving its state."

    def test_save_after_ttl(self, client: TestClient, clock: FakeClock) -> None:
        client.post("/widgets/w-1/render", json={"conversation_id": "c-1"})
        clock.advance(601)
        resp = client.put("/widgets/w-1/state", json={"conversation_id": "c-1", "state": {"page": 2}})
        assert resp.status_code == 404
        assert "stale" in resp.json()["message"]

    def test_over_budget_reported(self, client: TestClient) -> None:
        client.post("/widgets/w-1/render", json={"conversation_id": "c-1"})
        resp = client.put("/widgets/w-1/state", json={"conversation_id": "c-1", "state": {"notes": "x" * 200}})
        assert resp.status_code == 200
        assert resp.json()["over_budget"] is True
        assert resp.json()["tokens"] > 20

    @pytest.mark.parametrize("method,path,kwargs", [
        ("get", "/widgets/w-1/state", {}),
        ("put", "/widgets/w-1/state", {"json": {"state": {}}}),
        ("post", "/widgets/w-1/render", {"json": {}}),
    ])
    def test_conversation_required(self, client: TestClient, method: str, path: str, kwargs: dict) -> None:
        resp = getattr(client, method)(path, **kwargs)
        assert resp.status_code == 422
        assert resp.json()["message"] == "'conversation_id' is required"

    def test_state_must_be_object(self, client: TestClient) -> None:
        client.post("/widgets/w-1/render", json={"conversation_id": "c-1"})
        resp = client.put("/widgets/w-1/state", json={"conversation_id": "c-1", "state": ["t-1"]})
        assert resp.status_code == 422


@pytest.mark.parametrize("category,status", [
    (None, 200),
    ("RATE_LIMITED", 429),
    ("TIMEOUT", 504),
    ("EXTERNAL_SERVICE_ERROR", 502),
    ("UNKNOWN", 500),
])
def test_status_mapping(category: str | None, status: int) -> None:
    assert status_for(category) == status
    if category:
        assert ErrorCode(category)


class TestServeSettings:
    @pytest.fixture
    def served(self, monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, int]]:
        runs: list[tuple[str, int]] = []
        monkeypatch.setattr(HTTPToolServer, "run", lambda self, host, port: runs.append((host, port)))
        monkeypatch.setenv("APPCASE_RATELIMIT_ENABLED", "true")
        monkeypatch.setenv("APPCASE_RATELIMIT_MAX_CALLS", "1")
        monkeypatch.setenv("APPCASE_LOG_FORMAT", "json")
        monkeypatch.setenv("APPCASE_SERVER_PORT", "9100")
        clear_settings_cache()
        return runs

    @pytest.mark.asyncio
    async def test_rate_limit_installed_from_settings(
        self, registry: ToolRegistry, served: list[tuple[str, int]],
    ) -> None:
        serve_http(registry)
        assert served == [("127.0.0.1", 9100)]
        first = await registry.execute("taskflow_get_task", {"task_id": "t-1"})
        second = await registry.execute("taskflow_get_task", {"task_id": "t-1"})
        assert first.error_category is None
        assert second.error_category == "RATE_LIMITED"

    def test_rate_limit_installed_once(self, registry: ToolRegistry, served: list[tuple[str, int]]) -> None:
        serve_http(registry)
        serve_http(registry)
        apply_settings(registry)
        assert len(registry.middleware) == 1

    def test_disabled_rate_limit_adds_nothing(self, registry: ToolRegistry, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(HTTPToolServer, "run", lambda self, host, port: None)
        serve_http(registry)
        assert registry.middleware == ()

    def test_log_format_from_settings(
        self, registry: ToolRegistry, served: list[tuple[str, int]], capsys: pytest.CaptureFixture[str],
    ) -> None:
        serve_http(registry)
        records = [orjson.loads(line) for line in capsys.readouterr().out.splitlines() if line.startswith("{")]
        applied = next(r for r in records if r["event"] == "settings applied")
        assert applied["rate_limited"] is True
        assert applied["environment"] == "development"
