"""Server-sent event framing shared by the streaming routes."""
import json
import logging
from typing import AsyncIterator

from datadeck.services.presentation import events

logger = logging.getLogger(__name__)


async def sse_events(stream: AsyncIterator[dict], label: str) -> AsyncIterator[dict]:
    """
    Frame service events for ``EventSourceResponse``.

    The SSE event name is the event ``type``; ``data`` is the JSON event.
    """
    try:
        async for event in stream:
            yield {
                "event": event.get("type", "message"),
                "data": json.dumps(event, default=str),
            }
    except Exception as e:
        logger.exception(f"{label} stream error: {e}")
        failure = events.error(str(e))
        yield {
            "event": failure["type"],
            "data": json.dumps(failure),
        }
