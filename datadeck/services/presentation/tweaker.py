"""
Presentation tweaking.

Two strategies over a stored session document:

- Whole document: the agent gets ``read_presentation`` / ``edit_presentation``
  over a working copy and may also finish with a JSON ``edits`` batch.
- Selected fragments: the agent sees only the selected slides and answers
  with ``[{"id", "html"}]``; results are spliced back by id.

Either way slides outside the change stay byte-for-byte identical, and a
result that cannot be understood leaves the stored document untouched.
Tweaks against one session are serialized with the store's session lock.
"""
import logging
from functools import partial
from typing import Any, AsyncIterator, Optional

from datadeck.core.config import Settings
from datadeck.core.errors import PresentationParseError, SessionNotFoundError
from datadeck.models.agent import AgentRunResult
from datadeck.models.presentation import PresentationSession, SlideFragment
from datadeck.services.agent.audit import write_tool_call_log
from datadeck.services.agent.runners import AgentRunner, create_runner
from datadeck.services.presentation import events
from datadeck.services.presentation.fragments import (
    content_fragment_count,
    extract_fragments,
    insert_fragments,
    renumber_fragments,
    replace_fragments,
    set_fragment_id,
    validate_document,
)
from datadeck.services.presentation.generator import RunnerFactory, usage_payload
from datadeck.services.presentation.parsing import extract_json_array, extract_json_object, objects_only
from datadeck.services.presentation.prompts import build_fragment_tweak_instructions, build_tweak_instructions
from datadeck.services.presentation.runs import RUN_RESULT, stream_agent_run
from datadeck.services.presentation.store import SessionStore
from datadeck.services.presentation.template import document_title, prepare_content_section
from datadeck.services.tools.document import DocumentEditor
from datadeck.services.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

NO_CHANGES = "No changes were made"


def parse_fragment_updates(text: str, selected: list[SlideFragment]) -> list[dict[str, str]]:
    """
    Read ``[{"id", "html"}]`` from the agent's answer.

    Every returned id must be one of the selected fragments; the markup is
    forced to keep that id.

    Raises:
        PresentationParseError: no array, a malformed entry, or a foreign id.
    """
    data = extract_json_array(text, accept=objects_only)
    if data is None:
        raise PresentationParseError("No JSON array of slides found in the response")

    allowed = {fragment.id for fragment in selected}
    updates: list[dict[str, str]] = []
    seen: set[str] = set()
    for position, item in enumerate(data):
        if not isinstance(item, dict) or not isinstance(item.get("html"), str) or not item.get("id"):
            raise PresentationParseError(f"Slide entry #{position + 1} needs 'id' and 'html'")
        fragment_id = str(item["id"])
        if fragment_id not in allowed:
            raise PresentationParseError(f"Slide {fragment_id} was not among the selected slides")
        if fragment_id in seen:
            raise PresentationParseError(f"Slide {fragment_id} returned more than once")
        seen.add(fragment_id)
        updates.append({"id": fragment_id, "html": set_fragment_id(item["html"].strip(), fragment_id)})
    return updates


class PresentationTweaker:
    """Applies change requests to stored presentations."""

    def __init__(
        self,
        settings: Settings,
        registry: ToolRegistry,
        store: SessionStore,
        runner_factory: Optional[RunnerFactory] = None,
    ):
        self.settings = settings
        self.registry = registry
        self.store = store
        self.runner_factory = runner_factory or partial(create_runner, settings)

    async def tweak(
        self,
        session_id: str,
        prompt: str,
        selected_ids: Optional[list[str]] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> AsyncIterator[dict]:
        """
        Apply ``prompt`` to the session's document, yielding progress events.

        With ``selected_ids`` only those slides are rewritten; otherwise the
        agent edits the whole document.
        """
        if not self.store.exists(session_id):
            logger.warning(f"Tweak requested for unknown session {session_id}")
            yield events.error("Session not found", sessionId=session_id)
            return

        prompt = (prompt or "").strip()
        if not prompt:
            yield events.error("Change request is required", sessionId=session_id)
            return

        provider = provider or self.settings.default_provider
        model = model or self.settings.default_model(provider)

        async with self.store.lock(session_id):
            try:
                session = self.store.get(session_id)
                runner = self.runner_factory(provider, model)
                if selected_ids:
                    steps = self._tweak_fragments(session, prompt, list(dict.fromkeys(selected_ids)), runner)
                else:
                    steps = self._tweak_document(session, prompt, runner)
                async for event in steps:
                    yield event

            except SessionNotFoundError as e:
                logger.warning(f"Session vanished during tweak: {e}")
                yield events.error("Session not found", sessionId=session_id)
            except PresentationParseError as e:
                logger.warning(f"Tweak result rejected, document left unchanged: {e}")
                yield events.error(f"Could not apply the changes: {e}", sessionId=session_id)
            except Exception as e:
                logger.exception(f"Presentation tweak failed: {e}")
                yield events.error(str(e), sessionId=session_id)

    async def _run(self, runner: AgentRunner, **kwargs: Any) -> AsyncIterator[dict]:
        async for event in stream_agent_run(
            runner,
            timeout_seconds=self.settings.run_timeout_seconds,
            **kwargs,
        ):
            yield event

    async def _tweak_document(
        self,
        session: PresentationSession,
        prompt: str,
        runner: AgentRunner,
    ) -> AsyncIterator[dict]:
        editor = DocumentEditor(session.document)
        registry = self.registry.extended(editor.tools())
        instructions = build_tweak_instructions(registry.declare_tools(), extract_fragments(session.document))

        logger.info(f"✏️ Tweaking session {session.session_id} (whole document, {runner.backend}/{runner.model})")
        yield events.status("Reading the presentation...")

        result: Optional[AgentRunResult] = None
        async for event in self._run(
            runner,
            prompt=prompt,
            system_instruction=instructions,
            registry=registry,
            max_turns=self.settings.tweak_max_turns,
        ):
            if event["type"] == RUN_RESULT:
                result = event["result"]
            else:
                yield event

        yield events.status("Applying changes...")
        summary = self._apply_final_answer(editor, result.final_text)
        document = editor.document

        problems = validate_document(document)
        if problems:
            raise PresentationParseError(problems[0])

        async for event in self._finish(session, document, prompt, summary, result, runner, "tweak"):
            yield event

    def _apply_final_answer(self, editor: DocumentEditor, text: str) -> str:
        """Apply an optional ``{"edits", "newSlides", "changesSummary"}`` answer."""
        payload = extract_json_object(text, required_key="edits") or extract_json_object(text, required_key="newSlides")
        if payload is None:
            if editor.changed:
                return f"{editor.edit_count} edit(s) applied"
            logger.info(f"No edits in tweak response: {(text or '')[:500]}")
            return NO_CHANGES

        edits = payload.get("edits") or []
        new_slides = payload.get("newSlides") or []
        if not isinstance(edits, list):
            raise PresentationParseError("'edits' must be a list")
        if not isinstance(new_slides, list) or not all(isinstance(s, str) for s in new_slides):
            raise PresentationParseError("'newSlides' must be a list of HTML strings")

        applied = editor.apply_edits(edits)
        if new_slides:
            start = content_fragment_count(editor.document)
            prepared = [prepare_content_section(markup, start + i) for i, markup in enumerate(new_slides)]
            editor.document = renumber_fragments(insert_fragments(editor.document, prepared))
            logger.info(f"Inserted {len(prepared)} new slide(s)")

        logger.info(f"Applied {applied} edit(s) from the final answer")
        default = "Changes applied" if editor.changed else NO_CHANGES
        return str(payload.get("changesSummary") or default)

    async def _tweak_fragments(
        self,
        session: PresentationSession,
        prompt: str,
        selected_ids: list[str],
        runner: AgentRunner,
    ) -> AsyncIterator[dict]:
        fragments = {fragment.id: fragment for fragment in extract_fragments(session.document)}
        missing = [fragment_id for fragment_id in selected_ids if fragment_id not in fragments]
        if missing:
            yield events.error(f"Selected slides not found: {', '.join(missing)}", sessionId=session.session_id)
            return
        selected = [fragments[fragment_id] for fragment_id in selected_ids]

        logger.info(f"✏️ Tweaking session {session.session_id}: {', '.join(selected_ids)} ({runner.backend}/{runner.model})")
        yield events.status(f"Preparing {len(selected)} selected slide(s)...")

        result: Optional[AgentRunResult] = None
        async for event in self._run(
            runner,
            prompt=prompt,
            system_instruction=build_fragment_tweak_instructions(selected),
            registry=self.registry,
            max_turns=self.settings.tweak_fragments_max_turns,
        ):
            if event["type"] == RUN_RESULT:
                result = event["result"]
            else:
                yield event

        yield events.status("Merging updated slides...")
        updates = parse_fragment_updates(result.final_text, selected)
        document = replace_fragments(session.document, updates)
        updated_ids = [update["id"] for update in updates]
        summary = f"Updated {len(updates)} slide(s)" if updates else NO_CHANGES

        async for event in self._finish(
            session, document, prompt, summary, result, runner, "tweak-slides", updated_ids=updated_ids
        ):
            yield event

    async def _finish(
        self,
        session: PresentationSession,
        document: str,
        prompt: str,
        summary: str,
        result: AgentRunResult,
        runner: AgentRunner,
        run_type: str,
        updated_ids: Optional[list[str]] = None,
    ) -> AsyncIterator[dict]:
        usage = usage_payload(result, runner.model)
        log_url = write_tool_call_log(
            self.settings.logs_dir,
            run_type=run_type,
            backend=runner.backend,
            model=runner.model,
            prompt=prompt,
            entries=result.tool_call_log,
            usage=usage,
            extra={"sessionId": session.session_id, "changesSummary": summary},
        )

        title = document_title(document, session.title)
        slide_count = len(extract_fragments(document))
        if document != session.document:
            self.store.save(session, document, title, slide_count)
        else:
            logger.info(f"Session {session.session_id} unchanged")

        yield events.tweak_complete(
            document=document,
            title=title,
            slide_count=slide_count,
            session_id=session.session_id,
            changes_summary=summary,
            usage=usage,
            backend=runner.backend,
            model=runner.model,
            updated_slide_ids=updated_ids,
            tool_calls_log_url=log_url,
        )
