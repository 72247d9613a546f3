"""Testing utilities for appcase tools."""

from .clock import FakeClock
from .logs import CapturingRenderer, capture_logs
from .mock import Invocation, MockTool, mock_tool

__all__ = ["mock_tool", "MockTool", "Invocation", "CapturingRenderer", "capture_logs", "FakeClock"]
