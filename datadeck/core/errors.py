"""Exception hierarchy for DataDeck."""


class DataDeckError(Exception):
    """Base class for all application errors."""


class ToolExecutionError(DataDeckError):
    """A backing store call failed inside a tool.

    Raised by tool implementations and converted to a structured failure
    payload by the registry; it never reaches the agent loop.
    """

    def __init__(self, message: str, hint: str = ""):
        super().__init__(message)
        self.hint = hint


class ProviderError(DataDeckError):
    """The model provider call itself failed (network, auth, quota)."""


class PresentationParseError(DataDeckError):
    """The model's answer did not match the expected structured shape."""


class SessionNotFoundError(DataDeckError):
    """No stored presentation exists for the given session id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InvalidDocumentError(DataDeckError):
    """A presentation document failed structural validation."""


class RunTimeoutError(DataDeckError):
    """An agent run exceeded its wall-clock budget and was cancelled."""
