"""Agent conversation and telemetry models.

Provider SDK message objects are converted into these shapes once, at the
provider boundary, so the rest of the code only deals with three part types.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, Union


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class TextPart:
    """Free text emitted by the user or the model."""
    text: str


@dataclass(frozen=True)
class ToolCallPart:
    """A request from the model to run a named tool."""
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    call_id: str = ""


@dataclass(frozen=True)
class ToolResultPart:
    """The answer to a ToolCallPart, matched by call_id."""
    name: str
    result: dict[str, Any] = field(default_factory=dict)
    call_id: str = ""
    error: Optional[str] = None


Part = Union[TextPart, ToolCallPart, ToolResultPart]
Role = Literal["user", "model"]


@dataclass
class ConversationTurn:
    """One exchange unit in the agent's history."""
    role: Role
    parts: list[Part] = field(default_factory=list)

    @classmethod
    def user_text(cls, text: str) -> "ConversationTurn":
        return cls(role="user", parts=[TextPart(text)])

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    @property
    def tool_results(self) -> list[ToolResultPart]:
        return [p for p in self.parts if isinstance(p, ToolResultPart)]


class AgentState(str, Enum):
    """States of the self-managed agent loop."""
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ToolCallLogEntry:
    """Append-only audit record of one tool dispatch or completion."""
    type: Literal["tool_use", "tool_result"]
    tool_name: str
    input: Optional[dict[str, Any]] = None
    output: Any = None
    error: Optional[str] = None
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        entry: dict[str, Any] = {
            "timestamp": self.timestamp,
            "type": self.type,
            "toolName": self.tool_name,
        }
        if self.input is not None:
            entry["input"] = self.input
        if self.output is not None:
            entry["output"] = self.output
        if self.error is not None:
            entry["error"] = self.error
        return entry


@dataclass
class UsageTally:
    """Running token counts for one agent run."""
    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, input_tokens: Optional[int], output_tokens: Optional[int]) -> None:
        self.input_tokens += input_tokens or 0
        self.output_tokens += output_tokens or 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self, cost: Optional[float] = None) -> dict:
        usage = {
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
        }
        if cost is not None:
            usage["cost"] = cost
        return usage


@dataclass
class ModelResponse:
    """A provider response normalized into parts plus token usage."""
    parts: list[Part] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    finish_reason: Optional[str] = None

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [p for p in self.parts if isinstance(p, ToolCallPart)]

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))


@dataclass
class AgentRunResult:
    """Outcome of one agent run.

    ``final_text`` may be empty when the run ended without an answer; callers
    parse it anyway. ``error`` is set when the turn budget ran out without text.
    """
    final_text: str
    tool_call_log: list[ToolCallLogEntry] = field(default_factory=list)
    usage: UsageTally = field(default_factory=UsageTally)
    turns: int = 0
    state: AgentState = AgentState.DONE
    error: Optional[str] = None
