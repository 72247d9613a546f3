"""Tests for the fastmcp bridge."""

import pytest

pytest.importorskip("fastmcp")

from appcase.ext.mcp import envelope_to_result, registry_to_mcp, template_to_resource  # noqa: E402
from appcase.foundation.registry import ToolRegistry  # noqa: E402


@pytest.mark.asyncio
async def test_result_keeps_all_layers(registry: ToolRegistry) -> None:
    envelope = await registry.execute("taskflow_get_task", {"task_id": "t-2"})
    result = envelope_to_result(envelope)
    assert result.content[0].text == "'Book dentist' is open, due 2026-04-02."
    assert result.structured_content == envelope.structured_content
    assert result.meta["task"]["id"] == "t-2"


@pytest.mark.asyncio
async def test_error_result_carries_indicator(registry: ToolRegistry) -> None:
    envelope = await registry.execute("taskflow_get_task", {"task_id": "t-42"})
    result = envelope_to_result(envelope)
    assert result.structured_content["error"] is True
    assert result.structured_content["category"] == "NOT_FOUND"


def test_tools_publish_registry_schema(registry: ToolRegistry) -> None:
    tools = {t.name: t for t in registry_to_mcp(registry)}
    assert set(tools) == {m.name for m in registry.list_tools()}
    listed = tools["taskflow_list_tasks"]
    assert listed.parameters == registry["taskflow_list_tasks"].input_schema()
    assert listed.annotations.readOnlyHint is True
    assert listed.meta["openai/outputTemplate"] == "ui://widget/taskflow/tasks.html"
    assert tools["taskflow_delete_task"].annotations.destructiveHint is True


@pytest.mark.asyncio
async def test_tool_runs_through_registry(registry: ToolRegistry) -> None:
    listed = next(t for t in registry_to_mcp(registry) if t.name == "taskflow_list_tasks")
    result = await listed.run({"limit": 1})
    assert result.structured_content["tasks"][0]["id"] == "t-1"
    assert result.meta["next_cursor"] == "1"


def test_template_resource(registry: ToolRegistry) -> None:
    template = registry.templates()[0]
    resource = template_to_resource(template)
    assert str(resource.uri) == "ui://widget/taskflow/tasks.html"
    assert resource.mime_type == "text/html+skybridge"


def test_create_mcp_server(registry: ToolRegistry) -> None:
    from appcase.ext.mcp import create_mcp_server

    server = create_mcp_server(registry, "taskflow")
    assert server.name == "taskflow"
    assert server.fastmcp.name == "taskflow"
    assert [d["name"] for d in server.list_tools()] == [m.name for m in registry.list_tools()]
