"""Data models for agent runs and presentations."""

from .agent import (
    AgentRunResult,
    AgentState,
    ConversationTurn,
    ModelResponse,
    Part,
    TextPart,
    ToolCallLogEntry,
    ToolCallPart,
    ToolResultPart,
    UsageTally,
)
from .presentation import PresentationData, PresentationSession, SlideFragment

__all__ = [
    # Agent models
    "AgentRunResult",
    "AgentState",
    "ConversationTurn",
    "ModelResponse",
    "Part",
    "TextPart",
    "ToolCallLogEntry",
    "ToolCallPart",
    "ToolResultPart",
    "UsageTally",
    # Presentation models
    "PresentationData",
    "PresentationSession",
    "SlideFragment",
]
