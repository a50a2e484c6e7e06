"""SSE event factories for generation and tweak runs.

Consumers key off ``type``: ``status``, ``tool``, ``thinking``, ``error`` and
``complete``. Every stream ends with exactly one ``complete`` or ``error``.
"""
import base64
from typing import Any, Optional

from datadeck.models.presentation import PresentationData

TERMINAL_TYPES = frozenset({"complete", "error"})

TOOL_MESSAGES = {
    "query_analytics": "Fetching figures from the analytics database...",
    "search_entities": "Searching for organizations in the CRM...",
    "analyze_relations": "Analyzing meetings in the CRM...",
    "get_contacts": "Fetching contact persons from the CRM...",
    "read_presentation": "Reading the current presentation...",
    "edit_presentation": "Applying an edit to the presentation...",
    "save_presentation": "Saving the presentation...",
}
DEFAULT_TOOL_MESSAGE = "Fetching data..."


def status(message: str) -> dict:
    return {"type": "status", "message": message}


def thinking(message: str = "Analyzing data and building slides...") -> dict:
    return {"type": "thinking", "message": message}


def tool(tool_name: str) -> dict:
    return {
        "type": "tool",
        "message": TOOL_MESSAGES.get(tool_name, DEFAULT_TOOL_MESSAGE),
        "tool": tool_name,
    }


def error(message: str, **extra: Any) -> dict:
    return {"type": "error", "message": message or "An unknown error occurred", **extra}


def encode_document(document: str) -> str:
    """Transport-safe copy of the document for SSE payloads."""
    return base64.b64encode(document.encode("utf-8")).decode("ascii")


def generation_complete(
    *,
    document: str,
    presentation: PresentationData,
    slide_count: int,
    usage: dict,
    backend: str,
    model: str,
    session_id: Optional[str] = None,
    tool_calls_log_url: Optional[str] = None,
) -> dict:
    return {
        "type": "complete",
        "html": document,
        "htmlBase64": encode_document(document),
        "title": presentation.title,
        "slideCount": slide_count,
        "sessionId": session_id,
        "presentationData": presentation.model_dump(include={"title", "sections"}),
        "usage": usage,
        "toolCallsLogUrl": tool_calls_log_url,
        "backend": backend,
        "model": model,
        "fallback": presentation.fallback,
    }


def tweak_complete(
    *,
    document: str,
    title: str,
    slide_count: int,
    session_id: str,
    changes_summary: str,
    usage: dict,
    backend: str,
    model: str,
    updated_slide_ids: Optional[list[str]] = None,
    tool_calls_log_url: Optional[str] = None,
) -> dict:
    event = {
        "type": "complete",
        "htmlBase64": encode_document(document),
        "title": title,
        "slideCount": slide_count,
        "sessionId": session_id,
        "changesSummary": changes_summary,
        "usage": usage,
        "toolCallsLogUrl": tool_calls_log_url,
        "backend": backend,
        "model": model,
    }
    if updated_slide_ids is not None:
        event["updatedSlideIds"] = updated_slide_ids
    return event
