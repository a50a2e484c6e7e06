"""
Streaming an agent run as progress events.

The runner reports progress through a plain callback; the orchestrators
need an async iterator they can ``yield`` from. The run executes as a
background task while its callback feeds a queue that is polled here.
The last item is always ``{"type": "run_result", "result": AgentRunResult}``.
"""
import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator, Optional

from datadeck.core.debug import record_agent_run
from datadeck.core.errors import RunTimeoutError
from datadeck.services.agent.runners import AgentRunner
from datadeck.services.presentation import events
from datadeck.services.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

RUN_RESULT = "run_result"


def progress_event(update: dict) -> Optional[dict]:
    """Runner progress update -> client-facing event (None to drop it)."""
    kind = update.get("type")
    if kind == "tool":
        return events.tool(update.get("tool") or "")
    if kind == "thinking":
        return events.thinking(update.get("message") or "Analyzing data and building slides...")
    if kind == "status" and update.get("message"):
        return events.status(update["message"])
    return None


async def stream_agent_run(
    runner: AgentRunner,
    *,
    prompt: str,
    system_instruction: str,
    registry: ToolRegistry,
    max_turns: int,
    timeout_seconds: float,
    artifact_path: Optional[Path] = None,
) -> AsyncIterator[dict]:
    """
    Run ``runner`` in the background, yielding its progress as it happens.

    Raises:
        RunTimeoutError: the run did not finish within ``timeout_seconds``.
        ProviderError: propagated from the runner.
    """
    event_queue: asyncio.Queue[dict] = asyncio.Queue()

    def event_callback(update: dict) -> None:
        event = progress_event(update)
        if event is not None:
            event_queue.put_nowait(event)

    run_task = asyncio.create_task(asyncio.wait_for(
        runner.run(
            prompt,
            system_instruction,
            registry,
            max_turns,
            on_progress=event_callback,
            artifact_path=artifact_path,
        ),
        timeout=timeout_seconds,
    ))

    try:
        while not run_task.done():
            try:
                event = await asyncio.wait_for(event_queue.get(), timeout=0.1)
                yield event
            except asyncio.TimeoutError:
                continue

        while not event_queue.empty():
            yield event_queue.get_nowait()

        try:
            result = await run_task
        except asyncio.TimeoutError as e:
            record_agent_run(runner.backend, "timeout")
            logger.error(f"Agent run timed out after {timeout_seconds}s ({runner.backend}/{runner.model})")
            raise RunTimeoutError(f"The agent did not finish within {timeout_seconds} seconds") from e
    finally:
        if not run_task.done():
            logger.info("Consumer went away, cancelling agent run")
            run_task.cancel()

    record_agent_run(runner.backend, result.state.value)
    logger.info(
        f"Agent run finished: state={result.state.value}, turns={result.turns}, "
        f"tool entries={len(result.tool_call_log)}"
    )
    yield {"type": RUN_RESULT, "result": result}
