"""Ready-made tool integrations."""

from .taskflow import (
    TASKFLOW_TOOLS,
    TASKS_WIDGET,
    CompleteTaskTool,
    CreateTaskTool,
    DeleteTaskTool,
    GetTaskTool,
    ListTasksTool,
    Outbox,
    ReminderChannel,
    ReminderSender,
    SearchTasksTool,
    SendReminderTool,
    Task,
    TaskStatus,
    TaskStore,
    UpdateTaskTool,
    register_taskflow,
    taskflow_tools,
)

__all__ = [
    "Task", "TaskStatus", "TaskStore", "ReminderChannel", "ReminderSender", "Outbox",
    "ListTasksTool", "GetTaskTool", "SearchTasksTool", "CreateTaskTool",
    "UpdateTaskTool", "CompleteTaskTool", "DeleteTaskTool", "SendReminderTool",
    "TASKFLOW_TOOLS", "TASKS_WIDGET", "taskflow_tools", "register_taskflow",
]
