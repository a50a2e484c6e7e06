"""
Debug mode and in-process activity counters.

Debug mode switches tracing and sensitive-data capture on. The counters
tally agent runs by backend and outcome, tool calls by tool name, and
exported spans; ``/health``, ``/api/config`` and ``/api/debug`` report them.
"""

import os
import logging
from collections import Counter

logger = logging.getLogger(__name__)

_debug_mode_enabled = False
_trace_count = 0
_agent_runs: Counter = Counter()
_tool_calls: Counter = Counter()
_tool_failures: Counter = Counter()


def init_debug_mode() -> bool:
    global _debug_mode_enabled
    _debug_mode_enabled = os.environ.get("DEBUG", "").lower() in ("true", "1", "yes", "on")

    if _debug_mode_enabled:
        os.environ["TRACING_ENABLED"] = "true"
        os.environ["ENABLE_SENSITIVE_DATA"] = "true"
        logger.info("🐛 Debug mode \033[92mENABLED\033[0m: agent runs and tool calls are traced")
    else:
        os.environ.setdefault("TRACING_ENABLED", "false")
        os.environ.setdefault("ENABLE_SENSITIVE_DATA", "false")

    return _debug_mode_enabled


def is_debug_mode() -> bool:
    return _debug_mode_enabled


def increment_trace_count(count: int = 1) -> int:
    global _trace_count
    _trace_count += count
    return _trace_count


def get_trace_count() -> int:
    return _trace_count


def record_agent_run(backend: str, outcome: str) -> None:
    """Count one finished run; ``outcome`` is the final loop state or ``timeout``."""
    _agent_runs[f"{backend}:{outcome}"] += 1
    if _debug_mode_enabled:
        logger.debug(f"Agent run recorded: {backend}/{outcome}")


def record_tool_call(name: str, success: bool) -> None:
    _tool_calls[name] += 1
    if not success:
        _tool_failures[name] += 1


def reset_debug_counters() -> None:
    global _trace_count
    _trace_count = 0
    _agent_runs.clear()
    _tool_calls.clear()
    _tool_failures.clear()


def get_debug_status() -> dict:
    return {
        "debug_mode": _debug_mode_enabled,
        "trace_count": _trace_count,
        "agent_runs": dict(_agent_runs),
        "tool_calls": dict(_tool_calls),
        "tool_failures": dict(_tool_failures),
        "tracing_enabled": os.environ.get("TRACING_ENABLED", "false").lower() == "true",
        "sensitive_data_enabled": os.environ.get("ENABLE_SENSITIVE_DATA", "false").lower() == "true",
    }
