"""
Presentation generation.

One code path for both runners: build the instructions, stream the agent
run as progress events, parse the final answer, assemble the document,
audit and persist, then emit a single ``complete`` (or ``error``) event.
"""
import logging
from functools import partial
from typing import AsyncIterator, Callable, Optional

from datadeck.core.config import Settings
from datadeck.models.agent import AgentRunResult
from datadeck.models.presentation import PresentationSession
from datadeck.services.agent.audit import write_tool_call_log
from datadeck.services.agent.pricing import calculate_cost
from datadeck.services.agent.runners import AgentRunner, create_runner
from datadeck.services.presentation import events
from datadeck.services.presentation.fragments import extract_fragments
from datadeck.services.presentation.parsing import parse_presentation
from datadeck.services.presentation.prompts import build_generation_instructions, build_generation_request
from datadeck.services.presentation.runs import RUN_RESULT, stream_agent_run
from datadeck.services.presentation.store import SessionStore
from datadeck.services.presentation.template import assemble_document
from datadeck.services.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

RunnerFactory = Callable[[str, str], AgentRunner]

DEFAULT_TITLE_CHARS = 80


def default_title(prompt: str) -> str:
    title = " ".join(prompt.split())
    if len(title) > DEFAULT_TITLE_CHARS:
        title = title[:DEFAULT_TITLE_CHARS - 3].rstrip() + "..."
    return title or "Presentation"


def usage_payload(result: AgentRunResult, model: str) -> dict:
    cost = calculate_cost(model, result.usage.input_tokens, result.usage.output_tokens)
    return result.usage.to_dict(cost)


class PresentationGenerator:
    """Turns a natural-language request into a stored HTML presentation."""

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

    def resolve_model(self, provider: Optional[str], model: Optional[str]) -> tuple[str, str]:
        provider = provider or self.settings.default_provider
        return provider, model or self.settings.default_model(provider)

    async def generate(
        self,
        prompt: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        persist: bool = True,
    ) -> AsyncIterator[dict]:
        """
        Generate a presentation, yielding progress events.

        The stream always ends with exactly one ``complete`` or ``error`` event.
        """
        prompt = (prompt or "").strip()
        if not prompt:
            yield events.error("Prompt is required")
            return

        provider, model = self.resolve_model(provider, model)
        session: Optional[PresentationSession] = None

        try:
            yield events.status("Preparing presentation generation...")
            self.store.purge_expired()
            runner = self.runner_factory(provider, model)
            session = self.store.new_session()

            instructions = build_generation_instructions(
                self.registry.declare_tools(),
                save_tool=runner.backend == "sdk",
            )
            logger.info(f"🚀 Generating presentation with {runner.backend}/{model} (session {session.session_id})")
            yield events.status(f"Starting agent ({model})...")

            result: Optional[AgentRunResult] = None
            async for event in stream_agent_run(
                runner,
                prompt=build_generation_request(prompt),
                system_instruction=instructions,
                registry=self.registry,
                max_turns=self.settings.generate_max_turns,
                timeout_seconds=self.settings.run_timeout_seconds,
                artifact_path=session.artifact_path,
            ):
                if event["type"] == RUN_RESULT:
                    result = event["result"]
                else:
                    yield event

            if result.error:
                logger.warning(f"Agent run ended with: {result.error}")

            yield events.status("Building presentation...")
            parsed = parse_presentation(result.final_text, default_title(prompt))
            document = assemble_document(parsed.title, parsed.sections)
            slide_count = len(extract_fragments(document))
            usage = usage_payload(result, model)

            log_url = write_tool_call_log(
                self.settings.logs_dir,
                run_type="generate",
                backend=runner.backend,
                model=model,
                prompt=prompt,
                entries=result.tool_call_log,
                usage=usage,
                extra={"turns": result.turns, "state": result.state.value, "error": result.error},
            )

            session_id = None
            if persist:
                self.store.save(session, document, parsed.title, slide_count)
                session_id = session.session_id
            else:
                self.store.discard(session)

            logger.info(
                f"✅ Presentation '{parsed.title}' ready: {slide_count} slides, "
                f"{usage['totalTokens']} tokens, ${usage['cost']:.4f}"
            )
            yield events.generation_complete(
                document=document,
                presentation=parsed,
                slide_count=slide_count,
                usage=usage,
                backend=runner.backend,
                model=model,
                session_id=session_id,
                tool_calls_log_url=log_url,
            )

        except Exception as e:
            logger.exception(f"Presentation generation failed: {e}")
            if session is not None:
                self.store.discard(session)
            yield events.error(str(e))
