"""Presentation generation API endpoints."""
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from datadeck.api.dependencies import get_generator
from datadeck.api.sse import sse_events
from datadeck.services.presentation.generator import PresentationGenerator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["generate"])


class GenerateRequest(BaseModel):
    """Request payload for generating a presentation."""

    prompt: str = Field(
        default="",
        max_length=10000,
        description="What the presentation should be about"
    )
    provider: Optional[Literal["sdk", "direct"]] = Field(
        default=None,
        description="Runner to use; defaults to the configured provider"
    )
    model: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Model or deployment id"
    )
    persist: bool = Field(
        default=True,
        description="Store the result as a session that can be tweaked later"
    )


@router.post("/generate")
async def generate_presentation(
    request: GenerateRequest,
    generator: PresentationGenerator = Depends(get_generator),
) -> EventSourceResponse:
    """
    SSE endpoint generating a presentation with live progress.

    Streams events as:
    - status: Phase transitions
    - tool: A data tool is being called
    - thinking: The model is working
    - complete: Finished document, title, slideCount, sessionId and usage
    - error: Generation failed
    """
    logger.info(f"Generate request: provider={request.provider}, model={request.model}")
    stream = generator.generate(
        request.prompt,
        provider=request.provider,
        model=request.model,
        persist=request.persist,
    )
    return EventSourceResponse(sse_events(stream, "Generate"))
