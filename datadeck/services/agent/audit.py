"""Tool-call audit artifacts, one JSON file per agent run."""
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from datadeck.models.agent import ToolCallLogEntry

logger = logging.getLogger(__name__)

LOGS_URL_PREFIX = "/logs"


def summarize(entries: Iterable[ToolCallLogEntry]) -> dict[str, Any]:
    entries = list(entries)
    uses = [e for e in entries if e.type == "tool_use"]
    results = [e for e in entries if e.type == "tool_result"]
    tools_used: list[str] = []
    for entry in uses:
        if entry.tool_name not in tools_used:
            tools_used.append(entry.tool_name)
    return {
        "totalToolCalls": len(uses),
        "successfulResults": sum(1 for e in results if not e.error),
        "errors": sum(1 for e in results if e.error),
        "toolsUsed": tools_used,
    }


def write_tool_call_log(
    logs_dir: Path,
    *,
    run_type: str,
    backend: str,
    model: str,
    prompt: str,
    entries: list[ToolCallLogEntry],
    usage: Optional[dict] = None,
    extra: Optional[dict] = None,
) -> Optional[str]:
    """
    Persist the run's audit record and return its URL path.

    A failed write is logged and reported as ``None``; it never fails the run.
    """
    now = datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    file_name = f"{backend}-{run_type}-tool-calls-{stamp}-{uuid.uuid4().hex[:8]}.json"

    record: dict[str, Any] = {
        "generatedAt": now.isoformat(),
        "backend": backend,
        "type": run_type,
        "prompt": prompt,
        "model": model,
        "toolCalls": [entry.to_dict() for entry in entries],
        "summary": summarize(entries),
    }
    if usage is not None:
        record["usage"] = usage
    if extra:
        record.update(extra)

    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        (logs_dir / file_name).write_text(json.dumps(record, indent=2, default=str), encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to save tool calls log: {e}")
        return None

    logger.info(f"Tool calls log saved to: {logs_dir / file_name}")
    return f"{LOGS_URL_PREFIX}/{file_name}"
