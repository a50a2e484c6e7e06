"""
Agent runners.

``AgentRunner`` is the single interface the orchestrators talk to. Two
implementations:

- ``SelfManagedRunner`` drives ``AgentLoop`` over an OpenAI-compatible
  chat-completions client (Gemini by default).
- ``SdkManagedRunner`` hands the tool loop to Microsoft Agent Framework
  (Azure OpenAI) and only observes it. Tools are wrapped so every call is
  logged and budgeted the same way as in the self-managed loop.

Both return an ``AgentRunResult`` and report progress through the same
callback events (``status``, ``thinking``, ``tool``).
"""
import inspect
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from agent_framework import AIFunction, ChatMessage, Role
from agent_framework.azure import AzureOpenAIChatClient
from azure.identity import DefaultAzureCredential
from pydantic import BaseModel, Field, create_model

from datadeck.core.config import Settings
from datadeck.core.errors import ProviderError
from datadeck.models.agent import AgentRunResult, AgentState, ToolCallLogEntry, UsageTally
from datadeck.services.agent.loop import AgentLoop, ProgressCallback
from datadeck.services.agent.providers import OpenAIChatModel
from datadeck.services.tools.registry import ToolRegistry, ToolSpec, failure

logger = logging.getLogger(__name__)

THINKING_EVERY_N_UPDATES = 5
ARTIFACT_TOOL_NAME = "save_presentation"

SAVE_PRESENTATION = ToolSpec(
    name=ARTIFACT_TOOL_NAME,
    description="""Save the finished presentation. Call this exactly once, at the end, instead of printing the JSON.

- title: presentation title
- sections: list of complete <section class="slide ...">...</section> HTML strings,
  content slides only (the title and closing slides are added automatically)""",
    parameters={
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "Presentation title"},
            "sections": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Content slides as HTML <section> strings",
            },
        },
        "required": ["title", "sections"],
    },
)


class AgentRunner(ABC):
    """Runs one prompt to completion against a fixed model."""

    backend: str = ""

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def run(
        self,
        prompt: str,
        system_instruction: str,
        registry: ToolRegistry,
        max_turns: int,
        on_progress: Optional[ProgressCallback] = None,
        artifact_path: Optional[Path] = None,
    ) -> AgentRunResult:
        """
        Raises:
            ProviderError: the model provider failed.
        """


class SelfManagedRunner(AgentRunner):
    """Runs ``AgentLoop`` directly; ``artifact_path`` is not used."""

    backend = "direct"

    def __init__(self, client, history_limit: int = 15):
        super().__init__(client.model)
        self._loop = AgentLoop(client, history_limit=history_limit)

    @classmethod
    def from_settings(cls, settings: Settings, model: str) -> "SelfManagedRunner":
        return cls(OpenAIChatModel.from_settings(settings, model), history_limit=settings.agent_history_limit)

    async def run(
        self,
        prompt: str,
        system_instruction: str,
        registry: ToolRegistry,
        max_turns: int,
        on_progress: Optional[ProgressCallback] = None,
        artifact_path: Optional[Path] = None,
    ) -> AgentRunResult:
        return await self._loop.run(prompt, system_instruction, registry, max_turns, on_progress)


_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
    "array": list,
    "object": dict,
}


def input_model_for(spec: ToolSpec) -> type[BaseModel]:
    """Pydantic argument model built from a tool's JSON schema."""
    required = set(spec.required)
    fields: dict[str, Any] = {}
    for name, schema in spec.parameters.get("properties", {}).items():
        py_type = _JSON_TYPES.get(schema.get("type"), str)
        if py_type is list:
            py_type = list[_JSON_TYPES.get(schema.get("items", {}).get("type"), str)]
        description = schema.get("description", "")
        if name in required:
            fields[name] = (py_type, Field(..., description=description))
        else:
            fields[name] = (Optional[py_type], Field(default=None, description=description))
    model_name = "".join(word.capitalize() for word in spec.name.split("_")) + "Input"
    return create_model(model_name, **fields)


class _ToolBridge:
    """Exposes registry tools to the SDK and records every call."""

    def __init__(
        self,
        registry: ToolRegistry,
        max_calls: int,
        on_progress: Optional[ProgressCallback],
        artifact_path: Optional[Path],
    ):
        self.registry = registry
        self.max_calls = max_calls
        self.on_progress = on_progress
        self.artifact_path = artifact_path
        self.log: list[ToolCallLogEntry] = []
        self.calls = 0

    async def notify(self, event: dict) -> None:
        if self.on_progress is None:
            return
        outcome = self.on_progress(event)
        if inspect.isawaitable(outcome):
            await outcome

    async def invoke(self, name: str, arguments: dict[str, Any]) -> str:
        self.calls += 1
        await self.notify({"type": "tool", "tool": name})
        self.log.append(ToolCallLogEntry(type="tool_use", tool_name=name, input=arguments))

        if self.calls > self.max_calls:
            result = failure(
                "Tool call budget exhausted",
                "Do not call any more tools. Produce the final output now from the data you have.",
            )
        elif name == ARTIFACT_TOOL_NAME:
            result = self._save_artifact(arguments)
        else:
            result = await self.registry.execute(name, arguments)

        error = result.get("error") if result.get("success") is False else None
        self.log.append(ToolCallLogEntry(
            type="tool_result",
            tool_name=name,
            output=result,
            error=str(error) if error else None,
        ))
        return json.dumps(result, default=str)

    def _save_artifact(self, arguments: dict[str, Any]) -> dict[str, Any]:
        payload = {"title": arguments.get("title", ""), "sections": arguments.get("sections") or []}
        self.artifact_path.parent.mkdir(parents=True, exist_ok=True)
        self.artifact_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info(f"Presentation artifact saved: {self.artifact_path}")
        return {"success": True, "saved": True, "sectionCount": len(payload["sections"])}

    def function_for(self, spec: ToolSpec) -> AIFunction:
        async def call_tool(**kwargs: Any) -> str:
            arguments = {k: v for k, v in kwargs.items() if v is not None}
            return await self.invoke(spec.name, arguments)

        return AIFunction(
            name=spec.name,
            description=spec.description,
            func=call_tool,
            input_model=input_model_for(spec),
        )

    def functions(self) -> list[AIFunction]:
        specs = list(self.registry.declare_tools())
        if self.artifact_path is not None:
            specs.append(SAVE_PRESENTATION)
        return [self.function_for(spec) for spec in specs]


def _usage_from_update(update: Any) -> tuple[int, int]:
    """Token counts carried by a streaming update, if any."""
    input_tokens = output_tokens = 0
    for content in getattr(update, "contents", None) or []:
        if getattr(content, "type", None) != "usage":
            continue
        details = getattr(content, "details", None)
        input_tokens += getattr(details, "input_token_count", 0) or 0
        output_tokens += getattr(details, "output_token_count", 0) or 0
    return input_tokens, output_tokens


def _text_from_update(update: Any) -> str:
    parts = []
    for content in getattr(update, "contents", None) or []:
        if getattr(content, "type", None) == "text" and getattr(content, "text", None):
            parts.append(content.text)
    return "".join(parts)


class SdkManagedRunner(AgentRunner):
    """Delegates the tool loop to an Agent Framework chat agent."""

    backend = "sdk"

    def __init__(self, chat_client, model: str):
        super().__init__(model)
        self._chat_client = chat_client

    @classmethod
    def from_settings(cls, settings: Settings, model: str) -> "SdkManagedRunner":
        if not settings.azure_openai_endpoint:
            raise ProviderError("AZURE_OPENAI_ENDPOINT not configured")
        if settings.azure_openai_api_key:
            chat_client = AzureOpenAIChatClient(
                api_key=settings.azure_openai_api_key,
                endpoint=settings.azure_openai_endpoint,
                deployment_name=model,
                api_version=settings.azure_openai_api_version,
            )
        else:
            chat_client = AzureOpenAIChatClient(
                credential=DefaultAzureCredential(),
                endpoint=settings.azure_openai_endpoint,
                deployment_name=model,
                api_version=settings.azure_openai_api_version,
            )
        return cls(chat_client, model)

    async def run(
        self,
        prompt: str,
        system_instruction: str,
        registry: ToolRegistry,
        max_turns: int,
        on_progress: Optional[ProgressCallback] = None,
        artifact_path: Optional[Path] = None,
    ) -> AgentRunResult:
        bridge = _ToolBridge(registry, max_turns, on_progress, artifact_path)
        usage = UsageTally()
        agent = self._chat_client.create_agent(
            name="DataDeckAgent",
            instructions=system_instruction,
            tools=bridge.functions(),
        )

        await bridge.notify({"type": "status", "message": "Starting agent..."})
        text_chunks: list[str] = []
        updates = 0
        try:
            async for update in agent.run_stream([ChatMessage(role=Role.USER, text=prompt)]):
                updates += 1
                usage.add(*_usage_from_update(update))
                text = _text_from_update(update)
                if text:
                    text_chunks.append(text)
                if updates % THINKING_EVERY_N_UPDATES == 0:
                    await bridge.notify({"type": "thinking", "message": "Analyzing data and building slides..."})
        except ProviderError:
            raise
        except Exception as e:
            logger.exception(f"Agent Framework run failed: {e}")
            raise ProviderError(f"{self.model} run failed: {e}") from e

        final_text = "".join(text_chunks)
        if artifact_path is not None and artifact_path.is_file():
            logger.info("Using saved presentation artifact as final answer")
            final_text = artifact_path.read_text(encoding="utf-8")

        error = None if final_text.strip() else "Agent finished without producing output"
        return AgentRunResult(
            final_text=final_text,
            tool_call_log=bridge.log,
            usage=usage,
            turns=bridge.calls,
            state=AgentState.DONE if error is None else AgentState.FAILED,
            error=error,
        )


def create_runner(settings: Settings, provider: str, model: str) -> AgentRunner:
    """Pick the runner implementation for a provider name."""
    if provider == "sdk":
        return SdkManagedRunner.from_settings(settings, model)
    if provider == "direct":
        return SelfManagedRunner.from_settings(settings, model)
    raise ProviderError(f"Unknown provider: {provider}")
