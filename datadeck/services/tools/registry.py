"""Tool declarations and safe execution.

The registry is the single place where tool failures are turned into data:
``execute`` never raises, it returns ``{"success": False, "error", "hint"}``
so the agent can see what went wrong and change strategy.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Optional

from datadeck.core.debug import record_tool_call
from datadeck.core.errors import ToolExecutionError
from datadeck.core.tracing import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]

DEFAULT_ERROR_HINT = "Check the arguments and try again, or try a different tool."


@dataclass(frozen=True)
class ToolSpec:
    """A callable tool as presented to the model.

    ``description`` is prompt content: the model relies on it to know which
    fields exist, their defaults and how to call the tool.
    """
    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    error_hint: str = DEFAULT_ERROR_HINT

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def to_openai(self) -> dict[str, Any]:
        """Chat-completions function-calling declaration."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def failure(error: str, hint: str = DEFAULT_ERROR_HINT) -> dict[str, Any]:
    return {"success": False, "error": error, "hint": hint}


class ToolRegistry:
    """Holds tool specs and their handlers; executes tools by name."""

    def __init__(self, tools: Optional[Iterable[tuple[ToolSpec, ToolHandler]]] = None):
        self._specs: dict[str, ToolSpec] = {}
        self._handlers: dict[str, ToolHandler] = {}
        for spec, handler in tools or []:
            self.register(spec, handler)

    def register(self, spec: ToolSpec, handler: ToolHandler) -> None:
        if spec.name in self._specs:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._specs[spec.name] = spec
        self._handlers[spec.name] = handler

    def extended(self, tools: Iterable[tuple[ToolSpec, ToolHandler]]) -> "ToolRegistry":
        """Return a new registry with this registry's tools plus ``tools``."""
        registry = ToolRegistry(
            (self._specs[name], self._handlers[name]) for name in self._specs
        )
        for spec, handler in tools:
            registry.register(spec, handler)
        return registry

    def declare_tools(self) -> list[ToolSpec]:
        return list(self._specs.values())

    @property
    def names(self) -> list[str]:
        return list(self._specs)

    def get_spec(self, name: str) -> Optional[ToolSpec]:
        return self._specs.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    async def execute(self, name: str, args: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Run a tool and normalize its outcome into a result payload."""
        spec = self.get_spec(name)
        if spec is None:
            return failure(
                f"Unknown tool: {name}",
                f"Available tools: {', '.join(self._specs) or 'none'}",
            )

        args = dict(args or {})
        missing = [key for key in spec.required if args.get(key) in (None, "")]
        if missing:
            return failure(f"Missing required argument(s): {', '.join(missing)}", spec.error_hint)

        with tracer.start_as_current_span(f"tool {name}") as span:
            span.set_attribute("tool.name", name)
            try:
                result = await self._handlers[name](args)
            except ToolExecutionError as e:
                logger.warning(f"Tool '{name}' failed: {e}")
                span.set_attribute("tool.success", False)
                record_tool_call(name, success=False)
                return failure(str(e), e.hint or spec.error_hint)
            except Exception as e:
                logger.exception(f"Tool '{name}' raised unexpectedly: {e}")
                span.set_attribute("tool.success", False)
                record_tool_call(name, success=False)
                return failure(str(e) or e.__class__.__name__, spec.error_hint)

        if not isinstance(result, dict):
            result = {"success": True, "result": result}
        result.setdefault("success", True)
        record_tool_call(name, success=result["success"] is not False)
        return result
