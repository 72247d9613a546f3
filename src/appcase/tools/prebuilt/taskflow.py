"""taskflow: reference task-tracking integration.

Shows every verb role against one in-memory store. The list tool returns
the minimal structured summary the model reasons over, while full task
bodies and the pagination cursor go only to the widget.

Example:
    >>> store = TaskStore()
    >>> registry = ToolRegistry()
    >>> register_taskflow(registry, store)
    >>> envelope = await registry.execute("taskflow_list_tasks", {"status": "open"})
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, ClassVar, Protocol

from pydantic import BaseModel, ConfigDict, Field

from appcase.apps.csp import WidgetCSP
from appcase.apps.envelope import ToolOutput
from appcase.apps.widget import WidgetTemplate
from appcase.foundation.core import BaseTool, StrictParams, ToolAnnotations, ToolMetadata
from appcase.foundation.errors import (
    ConflictError,
    ErrorCode,
    InvalidParamsError,
    JsonDict,
    NotFoundError,
    PermissionDeniedError,
    ToolException,
)

if TYPE_CHECKING:
    from appcase.foundation.registry import ToolRegistry

TaskId = Annotated[str, Field(pattern=r"^t-\d+$", description="Task identifier such as 't-3', from taskflow_list_tasks")]
Limit = Annotated[int, Field(ge=1, le=50, description="Maximum tasks to return (1-50)")]


class TaskStatus(StrEnum):
    OPEN = "open"
    DONE = "done"


class ReminderChannel(StrEnum):
    EMAIL = "email"
    SMS = "sms"


class Task(BaseModel):
    """A task as stored."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    body: str = ""
    status: TaskStatus = TaskStatus.OPEN
    due: date | None = None
    assignee: str | None = None
    locked: bool = False
    created_at: datetime
    updated_at: datetime

    def is_overdue(self, today: date) -> bool:
        return self.status is TaskStatus.OPEN and self.due is not None and self.due < today

    def summary(self) -> JsonDict:
        """Fields the model needs to refer back to the task."""
        return {"id": self.id, "title": self.title, "status": self.status.value,
                "due": self.due.isoformat() if self.due else None}

    def detail(self) -> JsonDict:
        return self.model_dump(mode="json")


class TaskStore:
    """Thread-safe in-memory task store.

    Args:
        clock: Returns the current time (UTC)
    """

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(UTC)) -> None:
        self._tasks: dict[str, Task] = {}
        self._seq = 0
        self._lock = threading.RLock()
        self._clock = clock

    def today(self) -> date:
        return self._clock().date()

    def add(self, title: str, *, body: str = "", due: date | None = None,
            assignee: str | None = None, locked: bool = False) -> Task:
        with self._lock:
            self._seq += 1
            now = self._clock()
            task = Task(id=f"t-{self._seq}", title=title, body=body, due=due, assignee=assignee,
                        locked=locked, created_at=now, updated_at=now)
            self._tasks[task.id] = task
            return task

    def get(self, task_id: str) -> Task:
        """Raises NotFoundError if the task no longer exists."""
        with self._lock:
            if (task := self._tasks.get(task_id)) is None:
                raise NotFoundError(f"Task '{task_id}' was not found")
            return task

    def _writable(self, task_id: str) -> Task:
        task = self.get(task_id)
        if task.locked:
            raise PermissionDeniedError(f"task {task_id} is locked by its owner")
        return task

    def update(self, task_id: str, **changes: object) -> Task:
        with self._lock:
            task = self._writable(task_id)
            updated = task.model_copy(update={**changes, "updated_at": self._clock()})
            self._tasks[task_id] = updated
            return updated

    def complete(self, task_id: str) -> Task:
        with self._lock:
            if self._writable(task_id).status is TaskStatus.DONE:
                raise ConflictError(f"Task '{task_id}' is already done",
                                    next_step="No action is needed; list open tasks to continue.")
            return self.update(task_id, status=TaskStatus.DONE)

    def delete(self, task_id: str) -> Task:
        with self._lock:
            task = self._writable(task_id)
            del self._tasks[task_id]
            return task

    def list(self, status: TaskStatus | None = None) -> list[Task]:
        with self._lock:
            tasks = [t for t in self._tasks.values() if status is None or t.status is status]
        return sorted(tasks, key=lambda t: (t.due is None, t.due or date.max, int(t.id[2:])))

    def search(self, query: str) -> list[Task]:
        needle = query.casefold()
        return [t for t in self.list() if needle in t.title.casefold() or needle in t.body.casefold()]


class ReminderSender(Protocol):
    """Delivers a reminder outside taskflow (mail gateway, SMS provider)."""
    def __call__(self, task: Task, channel: ReminderChannel, note: str) -> str: ...


class Outbox:
    """ReminderSender that records reminders instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, ReminderChannel, str]] = []

    def __call__(self, task: Task, channel: ReminderChannel, note: str) -> str:
        self.sent.append((task.id, channel, note))
        return f"r-{len(self.sent)}"


TASKS_WIDGET = WidgetTemplate(
    uri="ui://widget/taskflow/tasks.html",
    name="taskflow-tasks",
    html=(
        '<div id="taskflow-root"></div>\n'
        '<link rel="stylesheet" href="https://cdn.taskflow.example/widget/tasks.css">\n'
        '<script type="module" src="https://cdn.taskflow.example/widget/tasks.js"></script>'
    ),
    description="Interactive task list. The user can open a task, check it off or page through results.",
    csp=WidgetCSP(
        connect_domains=("https://api.taskflow.example",),
        resource_domains=("https://cdn.taskflow.example",),
    ),
    invoking="Loading tasks",
    invoked="Tasks loaded",
    widget_accessible=True,
    prefers_border=True,
)

_READ = ToolAnnotations(read_only=True, destructive=False, open_world=False)
_WRITE = ToolAnnotations(read_only=False, destructive=False, open_world=False)


class _TaskTool(BaseTool):
    """Shared store binding for taskflow tools."""

    def __init__(self, store: TaskStore) -> None:
        self.store = store


def _parse_cursor(cursor: str | None) -> int:
    if cursor is None:
        return 0
    if not cursor.isdigit():
        raise InvalidParamsError(
            f"'cursor' value {cursor!r} is not a cursor returned by taskflow_list_tasks",
            fields=("cursor",), next_step="Omit the cursor to start from the first page.",
        )
    return int(cursor)


# ─────────────────────────────────────────────────────────────────────────────
# Read tools
# ─────────────────────────────────────────────────────────────────────────────

class ListTasksParams(StrictParams):
    status: TaskStatus = Field(default=TaskStatus.OPEN, description="Task status to list: 'open' or 'done'")
    limit: Limit = 10
    cursor: str | None = Field(default=None, max_length=16,
                               description="Opaque page cursor from a previous call; omit for the first page")


class ListTasksTool(_TaskTool):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="taskflow_list_tasks",
        title="List tasks",
        description=(
            "Use when the user wants to see their tasks. Accepts a status ('open' or 'done'), "
            "a limit and an optional page cursor. Returns each task's id, title, status and due date, "
            "plus the total and how many are overdue."
        ),
        annotations=_READ,
        template=TASKS_WIDGET,
    )
    params_schema: ClassVar[type[ListTasksParams]] = ListTasksParams

    def _run(self, params: ListTasksParams) -> ToolOutput:
        offset = _parse_cursor(params.cursor)
        today = self.store.today()
        tasks = self.store.list(params.status)
        page = tasks[offset: offset + params.limit]
        overdue = sum(t.is_overdue(today) for t in tasks)
        next_cursor = str(offset + params.limit) if offset + params.limit < len(tasks) else None

        label = params.status.value
        if not tasks:
            narration = f"You have no {label} tasks."
        else:
            narration = f"You have {len(tasks)} {label} task{'s' if len(tasks) != 1 else ''}"
            narration += f"; {overdue} {'is' if overdue == 1 else 'are'} overdue." if overdue else "."

        return ToolOutput(
            narration=narration,
            structured={"tasks": [t.summary() for t in page], "total": len(tasks), "overdue": overdue},
            meta={"task_details": [t.detail() for t in page], "next_cursor": next_cursor},
        )


class GetTaskParams(StrictParams):
    task_id: TaskId


class GetTaskTool(_TaskTool):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="taskflow_get_task",
        title="Get task",
        description=(
            "Use when the user asks about one specific task. Accepts a task_id from taskflow_list_tasks. "
            "Returns the task's title, status and due date."
        ),
        annotations=_READ,
        template=TASKS_WIDGET,
    )
    params_schema: ClassVar[type[GetTaskParams]] = GetTaskParams

    def _run(self, params: GetTaskParams) -> ToolOutput:
        task = self.store.get(params.task_id)
        due = f", due {task.due.isoformat()}" if task.due else ""
        return ToolOutput(
            narration=f"'{task.title}' is {task.status.value}{due}.",
            structured=task.summary(),
            meta={"task": task.detail()},
        )


class SearchTasksParams(StrictParams):
    query: str = Field(..., min_length=1, max_length=200, description="Words to look for in task titles and notes")
    limit: Limit = 10


class SearchTasksTool(_TaskTool):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="taskflow_search_tasks",
        title="Search tasks",
        description=(
            "Use when the user looks for tasks by topic or wording. Accepts a query and a limit. "
            "Returns matching tasks with id, title, status and due date."
        ),
        annotations=_READ,
        template=TASKS_WIDGET,
    )
    params_schema: ClassVar[type[SearchTasksParams]] = SearchTasksParams

    def _run(self, params: SearchTasksParams) -> ToolOutput:
        matches = self.store.search(params.query)
        page = matches[: params.limit]
        narration = (
            f"Found {len(matches)} task{'s' if len(matches) != 1 else ''} matching '{params.query}'."
            if matches else f"No tasks match '{params.query}'."
        )
        return ToolOutput(
            narration=narration,
            structured={"tasks": [t.summary() for t in page], "total": len(matches)},
            meta={"task_details": [t.detail() for t in page]},
        )


# ─────────────────────────────────────────────────────────────────────────────
# Write tools
# ─────────────────────────────────────────────────────────────────────────────

class CreateTaskParams(StrictParams):
    title: str = Field(..., min_length=1, max_length=200, description="Short task title")
    body: str = Field(default="", max_length=4000, description="Optional notes for the task")
    due: date | None = Field(default=None, description="Optional due date, YYYY-MM-DD")


class CreateTaskTool(_TaskTool):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="taskflow_create_task",
        title="Create task",
        description=(
            "Use when the user asks to add a task. Accepts a title, optional notes and an optional "
            "due date. Returns the new task's id, title, status and due date."
        ),
        annotations=_WRITE,
        template=TASKS_WIDGET,
    )
    params_schema: ClassVar[type[CreateTaskParams]] = CreateTaskParams

    def _run(self, params: CreateTaskParams) -> ToolOutput:
        task = self.store.add(params.title, body=params.body, due=params.due)
        return ToolOutput(narration=f"Created '{task.title}' as {task.id}.", structured=task.summary())


class UpdateTaskParams(StrictParams):
    task_id: TaskId
    title: str | None = Field(default=None, min_length=1, max_length=200, description="New title; omit to keep")
    body: str | None = Field(default=None, max_length=4000, description="New notes; omit to keep")
    due: date | None = Field(default=None, description="New due date, YYYY-MM-DD; omit to keep")


class UpdateTaskTool(_TaskTool):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="taskflow_update_task",
        title="Update task",
        description=(
            "Use when the user wants to rename a task, change its notes or move its due date. Accepts "
            "a task_id and the fields to change. Returns the task's id, title, status and due date."
        ),
        annotations=_WRITE,
        template=TASKS_WIDGET,
    )
    params_schema: ClassVar[type[UpdateTaskParams]] = UpdateTaskParams

    def _run(self, params: UpdateTaskParams) -> ToolOutput:
        changes = params.model_dump(exclude={"task_id"}, exclude_none=True)
        if not changes:
            raise InvalidParamsError(
                f"Nothing to change for task '{params.task_id}'",
                fields=("title", "body", "due"), next_step="Pass at least one of title, body or due.",
            )
        task = self.store.update(params.task_id, **changes)
        return ToolOutput(
            narration=f"Updated {', '.join(sorted(changes))} of '{task.title}'.",
            structured=task.summary(),
        )


class CompleteTaskParams(StrictParams):
    task_id: TaskId


class CompleteTaskTool(_TaskTool):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="taskflow_complete_task",
        title="Complete task",
        description=(
            "Use when the user says a task is finished. Accepts a task_id. "
            "Returns the task's id, title and its new status."
        ),
        annotations=_WRITE,
        template=TASKS_WIDGET,
    )
    params_schema: ClassVar[type[CompleteTaskParams]] = CompleteTaskParams

    def _run(self, params: CompleteTaskParams) -> ToolOutput:
        task = self.store.complete(params.task_id)
        return ToolOutput(narration=f"Marked '{task.title}' as done.", structured=task.summary())


class DeleteTaskParams(StrictParams):
    task_id: TaskId


class DeleteTaskTool(_TaskTool):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="taskflow_delete_task",
        title="Delete task",
        description=(
            "Use only when the user explicitly asks to remove a task permanently. Accepts a task_id. "
            "Returns the id of the removed task."
        ),
        annotations=ToolAnnotations(read_only=False, destructive=True, open_world=False),
    )
    params_schema: ClassVar[type[DeleteTaskParams]] = DeleteTaskParams

    def _run(self, params: DeleteTaskParams) -> ToolOutput:
        task = self.store.delete(params.task_id)
        return ToolOutput(
            narration=f"Deleted '{task.title}'.",
            structured={"id": task.id, "deleted": True},
        )


class SendReminderParams(StrictParams):
    task_id: TaskId
    channel: ReminderChannel = Field(default=ReminderChannel.EMAIL, description="Delivery channel: 'email' or 'sms'")
    note: str = Field(default="", max_length=280, description="Optional message added to the reminder")


class SendReminderTool(_TaskTool):
    metadata: ClassVar[ToolMetadata] = ToolMetadata(
        name="taskflow_send_reminder",
        title="Send reminder",
        description=(
            "Use when the user wants the task's assignee reminded about it. Accepts a task_id, a channel "
            "('email' or 'sms') and an optional note. Returns the reminder id and channel."
        ),
        annotations=ToolAnnotations(read_only=False, destructive=False, open_world=True),
    )
    params_schema: ClassVar[type[SendReminderParams]] = SendReminderParams

    def __init__(self, store: TaskStore, sender: ReminderSender | None = None) -> None:
        super().__init__(store)
        self.sender: ReminderSender = sender or Outbox()

    def _run(self, params: SendReminderParams) -> ToolOutput:
        task = self.store.get(params.task_id)
        if task.status is TaskStatus.DONE:
            raise ConflictError(f"Task '{task.id}' is already done; there is nothing to remind about")
        try:
            reminder_id = self.sender(task, params.channel, params.note)
        except OSError as e:
            raise ToolException(
                f"The {params.channel.value} provider could not deliver the reminder ({type(e).__name__})",
                ErrorCode.EXTERNAL_SERVICE_ERROR,
            ) from e
        return ToolOutput(
            narration=f"Sent a {params.channel.value} reminder about '{task.title}'.",
            structured={"reminder_id": reminder_id, "task_id": task.id, "channel": params.channel.value},
        )


TASKFLOW_TOOLS: tuple[type[_TaskTool], ...] = (
    ListTasksTool, GetTaskTool, SearchTasksTool, CreateTaskTool,
    UpdateTaskTool, CompleteTaskTool, DeleteTaskTool, SendReminderTool,
)


def taskflow_tools(store: TaskStore, *, sender: ReminderSender | None = None) -> list[_TaskTool]:
    """Instantiate every taskflow tool against one store."""
    return [
        SendReminderTool(store, sender) if cls is SendReminderTool else cls(store)
        for cls in TASKFLOW_TOOLS
    ]


def register_taskflow(
    registry: ToolRegistry,
    store: TaskStore | None = None,
    *,
    sender: ReminderSender | None = None,
) -> TaskStore:
    """Register all taskflow tools. Returns the store they share."""
    store = store or TaskStore()
    registry.register_all(*taskflow_tools(store, sender=sender))
    return store
