"""Service layer for DataDeck."""

from .presentation.generator import PresentationGenerator
from .presentation.store import SessionStore
from .presentation.tweaker import PresentationTweaker
from .tools import ToolRegistry, create_tool_registry

__all__ = [
    "PresentationGenerator",
    "PresentationTweaker",
    "SessionStore",
    "ToolRegistry",
    "create_tool_registry",
]
