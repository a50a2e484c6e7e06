"""Agent loop, runners, pricing and run auditing."""

from .audit import summarize, write_tool_call_log
from .loop import AgentLoop, ProgressCallback, prune_history
from .pricing import MODEL_PRICING, ModelInfo, calculate_cost, format_cost, list_models
from .providers import ModelClient, OpenAIChatModel
from .runners import AgentRunner, SdkManagedRunner, SelfManagedRunner, create_runner

__all__ = [
    "AgentLoop",
    "AgentRunner",
    "MODEL_PRICING",
    "ModelClient",
    "ModelInfo",
    "OpenAIChatModel",
    "ProgressCallback",
    "SdkManagedRunner",
    "SelfManagedRunner",
    "calculate_cost",
    "create_runner",
    "format_cost",
    "list_models",
    "prune_history",
    "summarize",
    "write_tool_call_log",
]
