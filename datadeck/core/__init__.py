"""Core configuration module for DataDeck."""

from .debug import (
    init_debug_mode,
    is_debug_mode,
    get_debug_status,
    increment_trace_count,
    get_trace_count,
    record_agent_run,
    record_tool_call,
    reset_debug_counters,
)
from .config import Settings, get_settings
from .logging import setup_logging, get_logger
from .tracing import setup_tracing, is_tracing_enabled, get_tracer
from .errors import (
    DataDeckError,
    ToolExecutionError,
    ProviderError,
    PresentationParseError,
    SessionNotFoundError,
    InvalidDocumentError,
    RunTimeoutError,
)

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "get_logger",
    "setup_tracing",
    "is_tracing_enabled",
    "get_tracer",
    "init_debug_mode",
    "is_debug_mode",
    "get_debug_status",
    "increment_trace_count",
    "get_trace_count",
    "record_agent_run",
    "record_tool_call",
    "reset_debug_counters",
    "DataDeckError",
    "ToolExecutionError",
    "ProviderError",
    "PresentationParseError",
    "SessionNotFoundError",
    "InvalidDocumentError",
    "RunTimeoutError",
]
