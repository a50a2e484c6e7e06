"""
Session document store.

Each session is a directory under the workspaces root holding the current
``presentation.html`` and a ``metadata.json`` record. Writes go through a
temporary file and a rename so readers never see a half-written document.
"""
import asyncio
import json
import logging
import re
import shutil
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from datadeck.core.errors import SessionNotFoundError
from datadeck.models.agent import utc_now_iso
from datadeck.models.presentation import PresentationSession

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def _write_atomic(path: Path, content: str) -> None:
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(content, encoding="utf-8")
    tmp_path.replace(path)


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SessionStore:
    """Filesystem-backed presentation sessions keyed by session id."""

    def __init__(self, root: Path, retention_hours: int = 24):
        self.root = Path(root)
        self.retention = timedelta(hours=retention_hours)
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, session_id: str) -> asyncio.Lock:
        """Mutex serializing tweaks against one session."""
        return self._locks.setdefault(session_id, asyncio.Lock())

    def _workspace(self, session_id: str) -> Path:
        if not SESSION_ID_PATTERN.match(session_id or ""):
            raise SessionNotFoundError(session_id)
        return self.root / session_id

    def new_session(self) -> PresentationSession:
        """Allocate a workspace for a generation run; nothing is stored yet."""
        session_id = uuid.uuid4().hex
        workspace = self.root / session_id
        workspace.mkdir(parents=True, exist_ok=True)
        now = utc_now_iso()
        return PresentationSession(
            session_id=session_id,
            workspace_dir=workspace,
            created_at=now,
            updated_at=now,
        )

    def exists(self, session_id: str) -> bool:
        try:
            return (self._workspace(session_id) / "presentation.html").is_file()
        except SessionNotFoundError:
            return False

    def get(self, session_id: str) -> PresentationSession:
        """
        Load a stored session with its document.

        Raises:
            SessionNotFoundError: unknown, malformed or purged session id.
        """
        workspace = self._workspace(session_id)
        session = PresentationSession(session_id=session_id, workspace_dir=workspace)
        if not session.document_path.is_file():
            raise SessionNotFoundError(session_id)

        session.document = session.document_path.read_text(encoding="utf-8")
        if session.metadata_path.is_file():
            try:
                metadata = json.loads(session.metadata_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                logger.warning(f"Corrupt metadata for session {session_id}, ignoring")
                metadata = {}
            session.title = metadata.get("title", "")
            session.slide_count = int(metadata.get("slideCount", 0))
            session.created_at = metadata.get("createdAt", session.created_at)
            session.updated_at = metadata.get("updatedAt", "")
        return session

    def save(self, session: PresentationSession, document: str, title: str, slide_count: int) -> PresentationSession:
        """Overwrite the session's document and metadata."""
        session.workspace_dir.mkdir(parents=True, exist_ok=True)
        session.document = document
        session.title = title
        session.slide_count = slide_count
        session.updated_at = utc_now_iso()

        _write_atomic(session.document_path, document)
        _write_atomic(session.metadata_path, json.dumps(session.metadata(), indent=2))
        logger.info(f"Saved session {session.session_id} ({slide_count} slides)")
        return session

    def discard(self, session: PresentationSession) -> None:
        """Remove a workspace that never received a document."""
        if not session.document_path.exists():
            shutil.rmtree(session.workspace_dir, ignore_errors=True)

    def _last_updated(self, workspace: Path) -> datetime:
        metadata_path = workspace / "metadata.json"
        if metadata_path.is_file():
            try:
                metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
                parsed = _parse_timestamp(metadata.get("updatedAt") or metadata.get("createdAt"))
                if parsed is not None:
                    return parsed
            except json.JSONDecodeError:
                logger.warning(f"Corrupt metadata in {workspace.name}, using directory mtime")
        return datetime.fromtimestamp(workspace.stat().st_mtime, tz=timezone.utc)

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete workspaces older than the retention window; returns how many."""
        if not self.root.exists():
            return 0
        cutoff = (now or datetime.now(timezone.utc)) - self.retention
        purged = 0
        for workspace in self.root.iterdir():
            if not workspace.is_dir():
                continue
            if self._last_updated(workspace) < cutoff:
                shutil.rmtree(workspace, ignore_errors=True)
                self._locks.pop(workspace.name, None)
                purged += 1
        if purged:
            logger.info(f"🧹 Purged {purged} expired session(s)")
        return purged
