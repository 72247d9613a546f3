"""Runtime concerns around tool execution: middleware and observability."""
