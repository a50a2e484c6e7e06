"""
Tests for presentation generation, driven end to end with scripted runners.
"""
import asyncio
import json

import pytest

from conftest import ScriptedModelClient, StaticRunner, text_response, tool_call
from datadeck.core.errors import ProviderError
from datadeck.services.agent.runners import SelfManagedRunner
from datadeck.services.presentation.events import TERMINAL_TYPES
from datadeck.services.presentation.fragments import extract_fragments
from datadeck.services.presentation.generator import PresentationGenerator, default_title
from datadeck.services.presentation.prompts import build_generation_instructions


SECTIONS = [
    '<section class="slide"><h2>Revenue</h2><p>100 kSEK</p></section>',
    '<section class="slide"><h2>Employees</h2><p>42</p></section>',
]


def final_answer(title="Acme Review", sections=SECTIONS):
    return "Here is the presentation:\n```json\n" + json.dumps({"title": title, "sections": sections}) + "\n```"


async def collect(stream):
    return [event async for event in stream]


def terminal(events):
    found = [e for e in events if e["type"] in TERMINAL_TYPES]
    assert len(found) == 1, found
    assert events[-1] is found[0]
    return found[0]


class SdkStaticRunner(StaticRunner):
    backend = "sdk"


class SlowRunner(StaticRunner):
    async def run(self, *args, **kwargs):
        await asyncio.sleep(5)


class TestPresentationGenerator:
    """Tests for PresentationGenerator.generate."""

    @pytest.mark.asyncio
    async def test_end_to_end_with_agent_loop(self, settings, data_registry, store):
        """search -> query -> fenced JSON becomes a stored four-slide document."""
        client = ScriptedModelClient([
            tool_call("search_entities", {"searchTerm": "Acme"}),
            tool_call("query_analytics", {"query": "SELECT fiscal_year, revenue FROM company_financials LIMIT 3"}),
            text_response(final_answer()),
        ])
        factory_calls = []

        def runner_factory(provider, model):
            factory_calls.append((provider, model))
            return SelfManagedRunner(client)

        generator = PresentationGenerator(settings, data_registry, store, runner_factory=runner_factory)

        events = await collect(generator.generate("Acme financial overview"))

        complete = terminal(events)
        assert complete["type"] == "complete"
        assert complete["title"] == "Acme Review"
        assert complete["slideCount"] == 4
        assert complete["fallback"] is False
        assert complete["backend"] == "direct"
        assert complete["presentationData"] == {"title": "Acme Review", "sections": SECTIONS}
        assert complete["usage"]["inputTokens"] == 30
        assert complete["usage"]["totalTokens"] == 45
        assert complete["toolCallsLogUrl"].startswith("/logs/direct-generate-")
        assert factory_calls == [("direct", "gemini-2.5-flash")]

        fragments = extract_fragments(complete["html"])
        assert [f.id for f in fragments] == ["slide-title", "slide-0", "slide-1", "slide-thankyou"]
        assert [f.title for f in fragments[1:3]] == ["Revenue", "Employees"]

        tools_reported = [e["tool"] for e in events if e["type"] == "tool"]
        assert tools_reported == ["search_entities", "query_analytics"]

        stored = store.get(complete["sessionId"])
        assert stored.document == complete["html"]
        assert stored.slide_count == 4

    @pytest.mark.asyncio
    async def test_audit_log_is_written(self, settings, data_registry, store):
        generator = PresentationGenerator(
            settings, data_registry, store, runner_factory=lambda p, m: StaticRunner(final_answer())
        )

        await collect(generator.generate("Acme"))

        logs = list(settings.logs_dir.glob("direct-generate-*.json"))
        assert len(logs) == 1
        record = json.loads(logs[0].read_text(encoding="utf-8"))
        assert record["prompt"] == "Acme"
        assert record["summary"]["totalToolCalls"] == 1

    @pytest.mark.asyncio
    async def test_sections_packed_into_one_string_still_complete(self, settings, data_registry, store):
        """Two slides in one section string are split instead of colliding on ids."""
        sections = ["<section>A</section>\n<section>A2</section>", "<section>B</section>", "<section>C</section>"]
        generator = PresentationGenerator(
            settings, data_registry, store, runner_factory=lambda p, m: StaticRunner(final_answer(sections=sections))
        )

        events = await collect(generator.generate("Acme"))

        complete = terminal(events)
        assert complete["type"] == "complete"
        assert complete["slideCount"] == 6
        ids = [f.id for f in extract_fragments(complete["html"])]
        assert ids == ["slide-title", "slide-0", "slide-1", "slide-2", "slide-3", "slide-thankyou"]
        assert store.get(complete["sessionId"]).slide_count == 6

    @pytest.mark.asyncio
    async def test_unparseable_answer_falls_back(self, settings, data_registry, store):
        """A malformed answer still completes, with a diagnostic slide."""
        generator = PresentationGenerator(
            settings, data_registry, store, runner_factory=lambda p, m: StaticRunner("I could not build slides.")
        )

        events = await collect(generator.generate("Acme"))

        complete = terminal(events)
        assert complete["type"] == "complete"
        assert complete["fallback"] is True
        assert complete["slideCount"] == 3
        assert complete["title"] == "Acme"
        assert "I could not build slides." in complete["html"]

    @pytest.mark.asyncio
    async def test_empty_prompt(self, settings, data_registry, store):
        runner = StaticRunner(final_answer())
        generator = PresentationGenerator(settings, data_registry, store, runner_factory=lambda p, m: runner)

        events = await collect(generator.generate("   "))

        assert events == [{"type": "error", "message": "Prompt is required"}]
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_runner_failure_yields_single_error(self, settings, data_registry, store):
        generator = PresentationGenerator(
            settings,
            data_registry,
            store,
            runner_factory=lambda p, m: StaticRunner("", error=ProviderError("quota exceeded")),
        )

        events = await collect(generator.generate("Acme"))

        error = terminal(events)
        assert error == {"type": "error", "message": "quota exceeded"}
        assert not any(settings.workspaces_dir.iterdir())

    @pytest.mark.asyncio
    async def test_unknown_provider_yields_error(self, settings, data_registry, store):
        generator = PresentationGenerator(settings, data_registry, store)

        events = await collect(generator.generate("Acme", provider="local"))

        assert terminal(events)["message"] == "Unknown provider: local"

    @pytest.mark.asyncio
    async def test_timeout(self, settings, data_registry, store):
        settings.run_timeout_seconds = 0.2
        generator = PresentationGenerator(
            settings, data_registry, store, runner_factory=lambda p, m: SlowRunner("")
        )

        events = await collect(generator.generate("Acme"))

        assert "did not finish within" in terminal(events)["message"]

    @pytest.mark.asyncio
    async def test_without_persistence(self, settings, data_registry, store):
        generator = PresentationGenerator(
            settings, data_registry, store, runner_factory=lambda p, m: StaticRunner(final_answer())
        )

        events = await collect(generator.generate("Acme", persist=False))

        complete = terminal(events)
        assert complete["sessionId"] is None
        assert complete["slideCount"] == 4
        assert not any(settings.workspaces_dir.iterdir())

    @pytest.mark.asyncio
    async def test_sdk_runner_gets_artifact_path_and_save_tool_prompt(self, settings, data_registry, store):
        runner = SdkStaticRunner(final_answer(), model="gpt-4.1")
        generator = PresentationGenerator(settings, data_registry, store, runner_factory=lambda p, m: runner)

        events = await collect(generator.generate("Acme", provider="sdk", model="gpt-4.1"))

        complete = terminal(events)
        call = runner.calls[0]
        assert call["artifact_path"] == store.root / complete["sessionId"] / "presentation.json"
        assert "save_presentation" in call["system_instruction"]
        assert call["max_turns"] == settings.generate_max_turns
        assert complete["backend"] == "sdk"

    @pytest.mark.asyncio
    async def test_direct_runner_prompt_asks_for_json(self, settings, data_registry, store):
        runner = StaticRunner(final_answer())
        generator = PresentationGenerator(settings, data_registry, store, runner_factory=lambda p, m: runner)

        await collect(generator.generate("Acme"))

        instructions = runner.calls[0]["system_instruction"]
        assert "save_presentation" not in instructions
        assert '"sections"' in instructions
        assert runner.calls[0]["tools"] == data_registry.names
        assert 'Create a presentation for this request: "Acme"' in runner.calls[0]["prompt"]


class TestHelpers:
    """Tests for small generation helpers."""

    def test_default_title(self):
        assert default_title("  Acme   review ") == "Acme review"
        assert default_title("") == "Presentation"
        assert len(default_title("x" * 200)) == 80

    def test_instructions_list_every_tool(self, data_registry):
        instructions = build_generation_instructions(data_registry.declare_tools())

        for name in data_registry.names:
            assert f"**{name}**" in instructions
