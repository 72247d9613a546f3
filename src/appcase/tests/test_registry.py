"""Tests for tool registration, lookup and envelope-producing execution."""

from typing import ClassVar

import pytest
from pydantic import BaseModel, Field

from appcase.apps.envelope import ToolOutput
from appcase.apps.widget import OUTPUT_TEMPLATE_KEY
from appcase.foundation.core import BaseTool, EmptyParams, StrictParams, ToolAnnotations, ToolMetadata, Verb
from appcase.foundation.errors import ErrorCode
from appcase.foundation.registry import ToolRegistry, get_registry, reset_registry, set_registry
from appcase.foundation.testing import CapturingRenderer, mock_tool
from appcase.runtime.middleware import Context, Next
from appcase.tools import DiscoveryTool
from appcase.tools.prebuilt.taskflow import GetTaskTool, ListTasksTool, TaskStore

READ = ToolAnnotations(read_only=True, destructive=False, open_world=False)


class NotesSummaryTool(BaseTool[EmptyParams]):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="notes_get_summary",
        description="Use when the user wants a note overview. Takes no input. Returns the note count.",
        annotations=READ,
    )
    params_schema: ClassVar[type[EmptyParams]] = EmptyParams

    def _run(self, params: EmptyParams) -> ToolOutput:
        return ToolOutput(narration="You have 3 notes.", structured={"count": 3})


class HiddenTool(NotesSummaryTool):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="notes_get_hidden",
        description="Use when testing disabled tools. Takes no input. Returns nothing useful.",
        annotations=READ,
        enabled=False,
    )


class LooseParams(BaseModel):
    query: str = Field(..., description="Words to search for")


class LooseTool(BaseTool[StrictParams]):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="notes_search_notes",
        description="Use when the user looks for a note. Accepts a query. Returns matching note ids.",
        annotations=READ,
    )
    params_schema = LooseParams  # type: ignore[assignment]

    def _run(self, params: StrictParams) -> ToolOutput:
        return ToolOutput(narration="No notes match.")


# ─────────────────────────────────────────────────────────────────────────────
# Registration
# ─────────────────────────────────────────────────────────────────────────────

class TestRegistration:
    def test_taskflow_registered(self, registry: ToolRegistry) -> None:
        assert len(registry) == 8
        assert "taskflow_list_tasks" in registry
        assert registry.services() == {"taskflow"}

    def test_duplicate_rejected(self, registry: ToolRegistry, task_store: TaskStore) -> None:
        with pytest.raises(ValueError, match="already registered"):
            registry.register(ListTasksTool(task_store))

    def test_short_description_rejected(self, task_store: TaskStore) -> None:
        with pytest.raises(ValueError, match="shorter than 300 characters"):
            ToolRegistry(min_description_length=300).register(GetTaskTool(task_store))

    def test_open_schema_rejected(self) -> None:
        with pytest.raises(ValueError, match="must reject unknown fields"):
            ToolRegistry().register(LooseTool())

    def test_single_service_enforced(self, task_store: TaskStore) -> None:
        reg = ToolRegistry(enforce_single_service=True)
        reg.register(GetTaskTool(task_store))
        with pytest.raises(ValueError, match="uses service 'notes'"):
            reg.register(NotesSummaryTool())
        reg.register(DiscoveryTool(reg))
        assert "appcase_list_tools" in reg

    def test_mixed_services_allowed_by_default(self, registry: ToolRegistry) -> None:
        registry.register(NotesSummaryTool())
        assert registry.services() == {"taskflow", "notes"}

    def test_unregister(self, registry: ToolRegistry) -> None:
        assert registry.unregister("taskflow_delete_task")
        assert not registry.unregister("taskflow_delete_task")
        assert registry.get("taskflow_delete_task") is None
        with pytest.raises(KeyError):
            registry["taskflow_delete_task"]


class TestQuerying:
    def test_by_verb(self, registry: ToolRegistry) -> None:
        assert [m.name for m in registry.list_by_verb(Verb.DELETE)] == ["taskflow_delete_task"]
        assert [m.name for m in registry.list_by_verb("search")] == ["taskflow_search_tasks"]

    def test_by_service(self, registry: ToolRegistry) -> None:
        registry.register(NotesSummaryTool())
        assert [m.name for m in registry.list_by_service("notes")] == ["notes_get_summary"]

    def test_disabled_tools_hidden(self, registry: ToolRegistry) -> None:
        registry.register(HiddenTool())
        assert "notes_get_hidden" not in [m.name for m in registry.list_tools()]
        assert "notes_get_hidden" in [m.name for m in registry.list_tools(enabled_only=False)]

    def test_templates_deduplicated(self, registry: ToolRegistry) -> None:
        assert [t.uri for t in registry.templates()] == ["ui://widget/taskflow/tasks.html"]

    def test_descriptor(self, registry: ToolRegistry) -> None:
        desc = next(d for d in registry.descriptors() if d["name"] == "taskflow_list_tasks")
        assert desc["title"] == "List tasks"
        assert desc["annotations"] == {"readOnlyHint": True, "destructiveHint": False, "openWorldHint": False}
        assert desc["_meta"][OUTPUT_TEMPLATE_KEY] == "ui://widget/taskflow/tasks.html"
        schema = desc["inputSchema"]
        assert schema["additionalProperties"] is False
        assert "title" not in schema
        assert schema["properties"]["limit"]["maximum"] == 50
        assert all("title" not in prop for prop in schema["properties"].values())

    def test_descriptor_without_template(self, registry: ToolRegistry) -> None:
        desc = registry["taskflow_delete_task"].descriptor()
        assert desc["_meta"] == {}
        assert desc["annotations"]["destructiveHint"] is True


# ─────────────────────────────────────────────────────────────────────────────
# Execution
# ─────────────────────────────────────────────────────────────────────────────

class TestExecute:
    @pytest.mark.asyncio
    async def test_success_envelope(self, registry: ToolRegistry) -> None:
        envelope = await registry.execute("taskflow_list_tasks", {"status": "open"})
        assert not envelope.is_error
        assert envelope.structured_content["total"] == 3
        assert envelope.meta[OUTPUT_TEMPLATE_KEY] == "ui://widget/taskflow/tasks.html"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry: ToolRegistry) -> None:
        envelope = await registry.execute("taskflow_archive_tasks", {})
        assert envelope.error_category == ErrorCode.NOT_FOUND
        assert "taskflow_archive_tasks" in envelope.narration
        assert envelope.narration.endswith("List the available tools and pick one of them.")

    @pytest.mark.asyncio
    async def test_disabled_tool_is_unknown(self, registry: ToolRegistry) -> None:
        registry.register(HiddenTool())
        envelope = await registry.execute("notes_get_hidden")
        assert envelope.error_category == ErrorCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_validation_failure_never_reaches_handler(self, registry: ToolRegistry) -> None:
        with mock_tool(ListTasksTool) as mock:
            envelope = await registry.execute("taskflow_list_tasks", {"status": "archived", "sort": "due"})
        mock.assert_not_called()
        assert envelope.error_category == ErrorCode.INVALID_PARAMS
        assert envelope.structured_content["fields"] == ["status", "sort"]

    @pytest.mark.asyncio
    async def test_categorized_failure(self, registry: ToolRegistry) -> None:
        with mock_tool(GetTaskTool, error_code=ErrorCode.CONFLICT) as mock:
            envelope = await registry.execute("taskflow_get_task", {"task_id": "t-1"})
        mock.assert_called_with(task_id="t-1")
        assert envelope.error_category == ErrorCode.CONFLICT
        assert envelope.narration.startswith("taskflow_get_task mocked a CONFLICT failure.")

    @pytest.mark.asyncio
    async def test_unexpected_exception_logged_and_composed(
        self, registry: ToolRegistry, captured_logs: CapturingRenderer,
    ) -> None:
        with mock_tool(GetTaskTool, raises=RuntimeError("disk quota exceeded")):
            envelope = await registry.execute("taskflow_get_task", {"task_id": "t-1"})
        assert envelope.is_error
        assert envelope.structured_content["message"] == "disk quota exceeded"
        assert "Traceback" not in envelope.narration
        assert "tool failed" in captured_logs.events("error")

    @pytest.mark.asyncio
    async def test_mock_restored(self, registry: ToolRegistry) -> None:
        with mock_tool(GetTaskTool, return_value=ToolOutput(narration="Mocked.", structured={"id": "t-1"})):
            mocked = await registry.execute("taskflow_get_task", {"task_id": "t-1"})
        real = await registry.execute("taskflow_get_task", {"task_id": "t-1"})
        assert mocked.narration == "Mocked."
        assert real.structured_content["title"] == "File quarterly taxes"

    @pytest.mark.asyncio
    async def test_middleware_order_and_context(self, registry: ToolRegistry) -> None:
        calls: list[str] = []

        class Recorder:
            def __init__(self, label: str) -> None:
                self.label = label

            async def __call__(self, tool: BaseTool, params: StrictParams, ctx: Context, next: Next) -> ToolOutput:
                calls.append(f"{self.label}:{ctx['tool_name']}")
                return await next(tool, params, ctx)

        registry.use(Recorder("outer"))
        registry.use(Recorder("inner"))
        ctx = Context({"conversation_id": "c-1"})
        await registry.execute("taskflow_get_task", {"task_id": "t-2"}, ctx=ctx)
        assert calls == ["outer:taskflow_get_task", "inner:taskflow_get_task"]
        assert ctx["conversation_id"] == "c-1"

    def test_sync_run_matches_execute(self, registry: ToolRegistry) -> None:
        envelope = registry["taskflow_get_task"].run({"task_id": "t-2"})
        assert envelope.structured_content == {"id": "t-2", "title": "Book dentist", "status": "open",
                                               "due": "2026-04-02"}


class TestGlobalRegistry:
    def test_lazily_created_and_replaceable(self) -> None:
        first = get_registry()
        assert get_registry() is first
        custom = ToolRegistry()
        set_registry(custom)
        assert get_registry() is custom
        reset_registry()
        assert get_registry() is not custom


class TestMockTool:
    @pytest.mark.asyncio
    async def test_side_effect_sees_validated_arguments(self, registry: ToolRegistry) -> None:
        def echo(params: dict) -> ToolOutput:
            return ToolOutput(narration=f"Listed {params['status']} tasks.", structured={"limit": params["limit"]})

        with mock_tool(ListTasksTool, side_effect=echo) as mock:
            envelope = await registry.execute("taskflow_list_tasks", {"status": "done"})
        assert envelope.narration == "Listed done tasks."
        assert mock.call_count == 1
        assert mock.invocations[0].params["limit"] == 10

    @pytest.mark.asyncio
    async def test_failed_call_recorded(self, registry: ToolRegistry) -> None:
        with mock_tool(GetTaskTool, raises=TimeoutError) as mock:
            envelope = await registry.execute("taskflow_get_task", {"task_id": "t-1"})
        assert envelope.error_category == ErrorCode.TIMEOUT
        assert isinstance(mock.invocations[0].error, TimeoutError)

    def test_mismatch_reported(self, registry: ToolRegistry) -> None:
        with mock_tool(GetTaskTool) as mock:
            registry["taskflow_get_task"].run({"task_id": "t-1"})
        with pytest.raises(AssertionError, match="mismatched"):
            mock.assert_called_with(task_id="t-2")
