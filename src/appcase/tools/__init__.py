"""Bundled tools: registry discovery and the taskflow reference integration."""

from .discovery import DiscoveryParams, DiscoveryTool
from .prebuilt import TASKS_WIDGET, TaskStatus, TaskStore, register_taskflow, taskflow_tools

__all__ = [
    "DiscoveryTool", "DiscoveryParams",
    "TaskStore", "TaskStatus", "TASKS_WIDGET", "register_taskflow", "taskflow_tools",
]
