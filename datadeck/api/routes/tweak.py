"""Presentation tweak API endpoints."""
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from datadeck.api.dependencies import get_tweaker
from datadeck.api.sse import sse_events
from datadeck.services.presentation.tweaker import PresentationTweaker

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["tweak"])


class TweakRequest(BaseModel):
    """Request payload for changing a stored presentation."""

    session_id: str = Field(
        ...,
        alias="sessionId",
        max_length=100,
        description="Session returned by /api/generate"
    )
    prompt: str = Field(
        default="",
        max_length=10000,
        description="The requested change"
    )
    selected_slide_ids: list[str] = Field(
        default_factory=list,
        alias="selectedSlideIds",
        description="Limit the change to these slides"
    )
    provider: Optional[Literal["sdk", "direct"]] = Field(default=None, description="Runner to use")
    model: Optional[str] = Field(default=None, max_length=100, description="Model or deployment id")

    model_config = {"populate_by_name": True}


class TweakSlidesRequest(TweakRequest):
    """Same as TweakRequest, but at least one slide must be selected."""

    selected_slide_ids: list[str] = Field(
        ...,
        alias="selectedSlideIds",
        min_length=1,
        description="Slides to change"
    )


def _tweak_stream(request: TweakRequest, tweaker: PresentationTweaker) -> EventSourceResponse:
    logger.info(
        f"Tweak request for session {request.session_id}: "
        f"{len(request.selected_slide_ids)} selected slide(s)"
    )
    stream = tweaker.tweak(
        request.session_id,
        request.prompt,
        selected_ids=request.selected_slide_ids or None,
        provider=request.provider,
        model=request.model,
    )
    return EventSourceResponse(sse_events(stream, "Tweak"))


@router.post("/tweak")
async def tweak_presentation(
    request: TweakRequest,
    tweaker: PresentationTweaker = Depends(get_tweaker),
) -> EventSourceResponse:
    """
    SSE endpoint applying a change request to a stored presentation.

    With selectedSlideIds only those slides are rewritten; otherwise the
    agent edits the whole document. Ends with a complete or error event.
    """
    return _tweak_stream(request, tweaker)


@router.post("/tweak-slides")
async def tweak_slides(
    request: TweakSlidesRequest,
    tweaker: PresentationTweaker = Depends(get_tweaker),
) -> EventSourceResponse:
    """SSE endpoint rewriting only the selected slides."""
    return _tweak_stream(request, tweaker)
