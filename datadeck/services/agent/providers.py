"""
Model clients for the self-managed agent loop.

A model client turns the normalized conversation history into one provider
request and the provider's reply back into a ``ModelResponse``. Everything
provider-specific stays in this module.
"""
import json
import logging
import uuid
from typing import Any, Optional, Protocol

import openai
from openai import AsyncOpenAI

from datadeck.core.config import Settings
from datadeck.core.errors import ProviderError
from datadeck.models.agent import (
    ConversationTurn,
    ModelResponse,
    Part,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from datadeck.services.tools.registry import ToolSpec

logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    """One request/response exchange with a tool-calling model."""

    model: str

    async def generate(
        self,
        history: list[ConversationTurn],
        system_instruction: str,
        tools: Optional[list[ToolSpec]],
    ) -> ModelResponse:
        """``tools=None`` disables tool calling for this request."""
        ...


def to_chat_messages(history: list[ConversationTurn], system_instruction: str) -> list[dict[str, Any]]:
    """Normalized history -> chat-completions message list."""
    messages: list[dict[str, Any]] = []
    if system_instruction:
        messages.append({"role": "system", "content": system_instruction})

    for turn in history:
        if turn.role == "model":
            message: dict[str, Any] = {"role": "assistant", "content": turn.text or None}
            if turn.tool_calls:
                message["tool_calls"] = [
                    {
                        "id": call.call_id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                    }
                    for call in turn.tool_calls
                ]
            messages.append(message)
            continue

        for result in turn.tool_results:
            messages.append({
                "role": "tool",
                "tool_call_id": result.call_id,
                "content": json.dumps(result.result, default=str),
            })
        if turn.text:
            messages.append({"role": "user", "content": turn.text})
    return messages


def _parse_arguments(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Model sent non-JSON tool arguments: {raw[:200]}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def from_chat_completion(completion: Any) -> ModelResponse:
    """Chat-completions response -> normalized parts and usage."""
    usage = getattr(completion, "usage", None)
    response = ModelResponse(
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )
    choices = getattr(completion, "choices", None) or []
    if not choices:
        return response

    choice = choices[0]
    response.finish_reason = getattr(choice, "finish_reason", None)
    message = choice.message
    parts: list[Part] = []
    if message.content:
        parts.append(TextPart(message.content))
    for call in message.tool_calls or []:
        parts.append(ToolCallPart(
            name=call.function.name,
            arguments=_parse_arguments(call.function.arguments),
            call_id=call.id or f"call_{uuid.uuid4().hex[:12]}",
        ))
    response.parts = parts
    return response


class OpenAIChatModel:
    """
    Chat-completions model client.

    Works against any OpenAI-compatible endpoint; by default the Gemini
    OpenAI-compatible API configured in settings.
    """

    def __init__(self, client: AsyncOpenAI, model: str, temperature: Optional[float] = None):
        self._client = client
        self.model = model
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: Settings, model: str) -> "OpenAIChatModel":
        if not settings.has_openai_compatible:
            raise ProviderError("OPENAI_API_KEY / OPENAI_BASE_URL not configured")
        client = AsyncOpenAI(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
        return cls(client, model)

    async def generate(
        self,
        history: list[ConversationTurn],
        system_instruction: str,
        tools: Optional[list[ToolSpec]],
    ) -> ModelResponse:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": to_chat_messages(history, system_instruction),
        }
        if tools:
            request["tools"] = [spec.to_openai() for spec in tools]
        if self.temperature is not None:
            request["temperature"] = self.temperature

        try:
            completion = await self._client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            raise ProviderError(f"{self.model} request failed: {e}") from e
        return from_chat_completion(completion)


def tool_result_turn(results: list[ToolResultPart]) -> ConversationTurn:
    return ConversationTurn(role="user", parts=list(results))
