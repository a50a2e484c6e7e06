"""Stored presentation session endpoints."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse

from datadeck.api.dependencies import get_store
from datadeck.core.errors import InvalidDocumentError, SessionNotFoundError
from datadeck.models.presentation import PresentationSession
from datadeck.services.presentation.fragments import extract_fragments
from datadeck.services.presentation.store import SessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _load(store: SessionStore, session_id: str) -> PresentationSession:
    try:
        return store.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@router.get("/{session_id}")
async def get_session(session_id: str, store: SessionStore = Depends(get_store)) -> dict[str, Any]:
    """Get session metadata."""
    return _load(store, session_id).to_dict()


@router.get("/{session_id}/document", response_class=HTMLResponse)
async def get_document(session_id: str, store: SessionStore = Depends(get_store)) -> HTMLResponse:
    """Get the current presentation HTML."""
    session = _load(store, session_id)
    return HTMLResponse(content=session.document)


@router.get("/{session_id}/slides")
async def list_slides(session_id: str, store: SessionStore = Depends(get_store)) -> dict[str, Any]:
    """List the slides of a stored presentation."""
    session = _load(store, session_id)
    try:
        fragments = extract_fragments(session.document)
    except InvalidDocumentError as e:
        logger.warning(f"Session {session_id} has an invalid document: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    return {
        "sessionId": session.session_id,
        "slides": [fragment.summary() for fragment in fragments],
    }
