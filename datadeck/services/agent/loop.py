"""
Self-managed tool-calling agent loop.

States: AWAITING_MODEL -> (EXECUTING_TOOLS -> AWAITING_MODEL)* -> DONE | FAILED.

- A reply with tool calls is appended to history, every call is executed
  through the registry (logged before and after), and all results go back
  to the model as one turn.
- A reply with text only ends the run.
- A reply with neither gets one nudge asking for the final output.
- When the turn budget runs out, one last call is made with tools disabled.

Provider errors propagate to the caller. Tool errors never do: the registry
turns them into ``{"success": false, ...}`` payloads the model can read.
"""
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from datadeck.core.tracing import get_tracer
from datadeck.models.agent import (
    AgentRunResult,
    AgentState,
    ConversationTurn,
    ModelResponse,
    ToolCallLogEntry,
    ToolResultPart,
    UsageTally,
)
from datadeck.services.agent.providers import ModelClient, tool_result_turn
from datadeck.services.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

DEFAULT_HISTORY_LIMIT = 15

EMPTY_RESPONSE_NUDGE = "Please provide the final JSON output with the presentation structure as instructed."
FINAL_ANSWER_DEMAND = (
    "You have reached the maximum number of tool calls. Based on all the data you have collected, "
    "please NOW generate the final JSON output as instructed. Do not call any more tools."
)

ProgressCallback = Callable[[dict], Union[None, Awaitable[None]]]


def prune_history(history: list[ConversationTurn], limit: int) -> int:
    """
    Drop the oldest turns after the first user turn until ``limit`` remain.

    Tool-result turns whose calls were dropped are removed too, so every
    result left in history still follows its call. Returns how many turns
    were removed.
    """
    if len(history) <= limit:
        return 0
    drop = len(history) - limit
    while 1 + drop < len(history) and history[1 + drop].tool_results:
        drop += 1
    del history[1:1 + drop]
    return drop


class AgentLoop:
    """Drives one model client through bounded tool-calling runs."""

    def __init__(
        self,
        client: ModelClient,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        empty_response_nudge: str = EMPTY_RESPONSE_NUDGE,
        final_answer_demand: str = FINAL_ANSWER_DEMAND,
    ):
        self.client = client
        self.history_limit = history_limit
        self.empty_response_nudge = empty_response_nudge
        self.final_answer_demand = final_answer_demand

    async def run(
        self,
        prompt: str,
        system_instruction: str,
        registry: ToolRegistry,
        max_turns: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AgentRunResult:
        """
        Run until the model answers in text or the turn budget is spent.

        Raises:
            ProviderError: a model call failed; nothing is retried here.
        """
        history = [ConversationTurn.user_text(prompt)]
        log: list[ToolCallLogEntry] = []
        usage = UsageTally()
        tools = registry.declare_tools()
        state = AgentState.AWAITING_MODEL
        final_text = ""
        turns = 0

        logger.info(f"Agent run starting: model={self.client.model}, max_turns={max_turns}, tools={len(tools)}")
        await self._notify(on_progress, {"type": "status", "message": "Starting agent..."})

        while turns < max_turns and state == AgentState.AWAITING_MODEL:
            turns += 1
            removed = prune_history(history, self.history_limit)
            if removed:
                logger.info(f"Pruned {removed} old turns, history length: {len(history)}")

            response = await self._call_model(history, system_instruction, tools, usage, turns)

            if response.tool_calls:
                state = AgentState.EXECUTING_TOOLS
                history.append(ConversationTurn(role="model", parts=list(response.parts)))
                await self._notify(on_progress, {"type": "thinking", "message": "Running tools..."})
                results = await self._execute_tools(response, registry, log, on_progress)
                history.append(tool_result_turn(results))
                await self._notify(on_progress, {"type": "thinking", "message": "Analyzing results..."})
                state = AgentState.AWAITING_MODEL
                continue

            if response.text:
                history.append(ConversationTurn(role="model", parts=list(response.parts)))
                final_text = response.text
                state = AgentState.DONE
                logger.info(f"Final answer on turn {turns}, length: {len(final_text)}")
                break

            logger.warning(f"Empty response on turn {turns} (finish_reason={response.finish_reason})")
            if turns == 1:
                state = AgentState.FAILED
                break
            history.append(ConversationTurn.user_text(self.empty_response_nudge))

        error = None
        if state == AgentState.AWAITING_MODEL:
            logger.info("Max turns reached without final response, forcing final answer")
            await self._notify(on_progress, {"type": "thinking", "message": "Turn budget reached, requesting final output..."})
            history.append(ConversationTurn.user_text(self.final_answer_demand))
            prune_history(history, self.history_limit)
            response = await self._call_model(history, system_instruction, None, usage, turns + 1)
            if response.text:
                final_text = response.text
                state = AgentState.DONE
            else:
                state = AgentState.FAILED
                error = "Max turns reached without a final answer"
        elif state == AgentState.FAILED:
            error = "Model returned an empty response"

        if error:
            logger.warning(error)
            await self._notify(on_progress, {"type": "status", "message": error})

        return AgentRunResult(
            final_text=final_text,
            tool_call_log=log,
            usage=usage,
            turns=turns,
            state=state,
            error=error,
        )

    async def _call_model(self, history, system_instruction, tools, usage: UsageTally, turn: int) -> ModelResponse:
        logger.debug(f"Turn {turn}: calling {self.client.model} with {len(history)} history entries")
        with tracer.start_as_current_span("model call") as span:
            span.set_attribute("gen_ai.request.model", self.client.model)
            span.set_attribute("agent.turn", turn)
            response = await self.client.generate(history, system_instruction, tools)
            span.set_attribute("gen_ai.usage.input_tokens", response.input_tokens)
            span.set_attribute("gen_ai.usage.output_tokens", response.output_tokens)
        usage.add(response.input_tokens, response.output_tokens)
        return response

    async def _execute_tools(
        self,
        response: ModelResponse,
        registry: ToolRegistry,
        log: list[ToolCallLogEntry],
        on_progress: Optional[ProgressCallback],
    ) -> list[ToolResultPart]:
        results = []
        for call in response.tool_calls:
            await self._notify(on_progress, {"type": "tool", "tool": call.name})
            log.append(ToolCallLogEntry(type="tool_use", tool_name=call.name, input=dict(call.arguments)))

            result = await registry.execute(call.name, call.arguments)

            error = result.get("error") if result.get("success") is False else None
            if error:
                log.append(ToolCallLogEntry(type="tool_result", tool_name=call.name, output=result, error=str(error)))
            else:
                log.append(ToolCallLogEntry(type="tool_result", tool_name=call.name, output=result))
            results.append(ToolResultPart(name=call.name, result=result, call_id=call.call_id, error=error))
        return results

    @staticmethod
    async def _notify(on_progress: Optional[ProgressCallback], event: dict[str, Any]) -> None:
        if on_progress is None:
            return
        outcome = on_progress(event)
        if inspect.isawaitable(outcome):
            await outcome
