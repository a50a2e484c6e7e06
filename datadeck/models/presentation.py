"""Presentation-related models."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

FragmentType = Literal["title", "content", "thankyou"]


class SlideFragment(BaseModel):
    """One self-contained slide unit within a presentation document."""

    id: str = Field(..., description="Fragment id, e.g. slide-0, slide-title, slide-thankyou")
    index: int = Field(..., ge=0, description="Zero-based position in the document")
    html: str = Field(..., description="Complete <section>...</section> markup")
    content: str = Field(default="", description="Inner markup of the section")
    title: Optional[str] = Field(default=None, description="First h1/h2 text, if any")
    type: FragmentType = Field(default="content", description="Opening, content or closing fragment")

    def summary(self) -> dict:
        """Lightweight description for listing endpoints."""
        return {"id": self.id, "index": self.index, "title": self.title, "type": self.type}


class PresentationData(BaseModel):
    """Structured slide data produced by the agent's final answer."""

    title: str = Field(default="", description="Presentation title")
    sections: list[str] = Field(default_factory=list, description="Content section markup")
    fallback: bool = Field(default=False, description="True when the answer held no usable payload")


@dataclass
class PresentationSession:
    """
    Server-side state for one generated presentation.

    The document itself lives in the session workspace; this object carries
    the handle plus the metadata record stored beside it.
    """
    session_id: str
    workspace_dir: Path
    title: str = ""
    slide_count: int = 0
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: str = ""
    document: Optional[str] = None

    @property
    def document_path(self) -> Path:
        return self.workspace_dir / "presentation.html"

    @property
    def metadata_path(self) -> Path:
        return self.workspace_dir / "metadata.json"

    @property
    def artifact_path(self) -> Path:
        """File the SDK-managed agent may write its final payload to."""
        return self.workspace_dir / "presentation.json"

    def metadata(self) -> dict:
        return {
            "sessionId": self.session_id,
            "title": self.title,
            "slideCount": self.slide_count,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def to_dict(self) -> dict:
        """Convert session to dictionary for API responses."""
        return self.metadata()
