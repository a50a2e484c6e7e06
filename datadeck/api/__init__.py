"""API routes for DataDeck."""

from .routes import generate, models, sessions, tweak

__all__ = [
    "generate",
    "models",
    "sessions",
    "tweak",
]
