"""
Pytest configuration and fixtures.

Backends (asyncpg pool, CRM HTTP API, model providers) are replaced by
in-memory fakes; no network or database is touched.
"""
from contextlib import asynccontextmanager
from typing import Any, Optional

import pytest

from datadeck.core.config import Settings
from datadeck.models.agent import (
    AgentRunResult,
    AgentState,
    ModelResponse,
    TextPart,
    ToolCallLogEntry,
    ToolCallPart,
    UsageTally,
)
from datadeck.services.agent.runners import AgentRunner
from datadeck.services.presentation.store import SessionStore
from datadeck.services.presentation.template import assemble_document
from datadeck.services.tools.registry import ToolRegistry, ToolSpec


# =============================================================================
# Settings
# =============================================================================

@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's .env and environment."""
    return Settings(
        _env_file=None,
        data_dir=tmp_path / "data",
        openai_api_key="test-key",
        openai_base_url="https://llm.example.test/v1/",
        azure_openai_api_key=None,
        azure_openai_endpoint=None,
        crm_access_token="crm-token",
        crm_url="https://crm.example.test",
        run_timeout_seconds=30,
    )


@pytest.fixture
def clean_environment(monkeypatch):
    """Provide a clean environment for tests."""
    for var in [
        "AZURE_OPENAI_API_KEY",
        "AZURE_OPENAI_ENDPOINT",
        "AZURE_OPENAI_DEPLOYMENT",
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "ANALYTICS_DATABASE_URL",
        "CRM_ACCESS_TOKEN",
        "DEBUG",
    ]:
        monkeypatch.delenv(var, raising=False)


# =============================================================================
# asyncpg fakes
# =============================================================================

class FakeType:
    def __init__(self, name: str):
        self.name = name


class FakeAttribute:
    def __init__(self, name: str, type_name: str = "text"):
        self.name = name
        self.type = FakeType(type_name)


class FakeStatement:
    def __init__(self, rows: list[dict], attributes: list[FakeAttribute]):
        self.rows = rows
        self.attributes = attributes
        self.fetch_args: tuple = ()

    async def fetch(self, *args):
        self.fetch_args = args
        return list(self.rows)

    def get_attributes(self):
        return self.attributes


class FakeConnection:
    def __init__(self, rows: list[dict], attributes: list[FakeAttribute], error: Optional[Exception] = None):
        self.rows = rows
        self.attributes = attributes
        self.error = error
        self.queries: list[str] = []
        self.readonly: Optional[bool] = None
        self.statement: Optional[FakeStatement] = None

    @asynccontextmanager
    async def transaction(self, readonly: bool = False):
        self.readonly = readonly
        yield

    async def prepare(self, query: str) -> FakeStatement:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        self.statement = FakeStatement(self.rows, self.attributes)
        return self.statement


class FakePool:
    """Stands in for an asyncpg pool: ``async with pool.acquire() as conn``."""

    def __init__(self, rows: Optional[list[dict]] = None, columns: Optional[list[str]] = None, error=None):
        rows = rows or []
        columns = columns or (list(rows[0]) if rows else [])
        self.connection = FakeConnection(rows, [FakeAttribute(c) for c in columns], error)

    @asynccontextmanager
    async def acquire(self):
        yield self.connection


@pytest.fixture
def fake_pool_factory():
    return FakePool


# =============================================================================
# CRM fake
# =============================================================================

class FakeCrmClient:
    """Answers ``get_items`` from canned bodies keyed by collection."""

    def __init__(self, responses: Optional[dict[str, Any]] = None):
        self.responses = responses or {}
        self.calls: list[tuple[str, dict]] = []

    async def get_items(self, collection: str, params: dict[str, Any], hint: str) -> dict[str, Any]:
        self.calls.append((collection, dict(params)))
        response = self.responses.get(collection, {"data": []})
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response


@pytest.fixture
def fake_crm():
    return FakeCrmClient()


# =============================================================================
# Model fakes
# =============================================================================

def tool_call(name: str, arguments: Optional[dict] = None, call_id: str = "", tokens=(10, 5)) -> ModelResponse:
    return ModelResponse(
        parts=[ToolCallPart(name=name, arguments=arguments or {}, call_id=call_id or f"call_{name}")],
        input_tokens=tokens[0],
        output_tokens=tokens[1],
        finish_reason="tool_calls",
    )


def text_response(text: str, tokens=(10, 5)) -> ModelResponse:
    return ModelResponse(
        parts=[TextPart(text)] if text else [],
        input_tokens=tokens[0],
        output_tokens=tokens[1],
        finish_reason="stop",
    )


class ScriptedModelClient:
    """Returns queued responses in order; repeats the last one when exhausted."""

    def __init__(self, responses: list[ModelResponse], model: str = "gemini-2.5-flash"):
        self.responses = list(responses)
        self.model = model
        self.calls: list[dict] = []

    async def generate(self, history, system_instruction, tools):
        self.calls.append({
            "history": list(history),
            "system_instruction": system_instruction,
            "tools": None if tools is None else [spec.name for spec in tools],
        })
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class StaticRunner(AgentRunner):
    """Runner that reports some progress and returns a fixed answer."""

    backend = "direct"

    def __init__(self, final_text: str, model: str = "gemini-2.5-flash", error: Optional[Exception] = None):
        super().__init__(model)
        self.final_text = final_text
        self.error = error
        self.calls: list[dict] = []

    async def run(self, prompt, system_instruction, registry, max_turns, on_progress=None, artifact_path=None):
        self.calls.append({
            "prompt": prompt,
            "system_instruction": system_instruction,
            "tools": registry.names,
            "max_turns": max_turns,
            "artifact_path": artifact_path,
        })
        if on_progress is not None:
            on_progress({"type": "status", "message": "Starting agent..."})
            on_progress({"type": "tool", "tool": "search_entities"})
        if self.error is not None:
            raise self.error
        return AgentRunResult(
            final_text=self.final_text,
            tool_call_log=[
                ToolCallLogEntry(type="tool_use", tool_name="search_entities", input={"searchTerm": "Acme"}),
                ToolCallLogEntry(type="tool_result", tool_name="search_entities", output={"success": True}),
            ],
            usage=UsageTally(1000, 500),
            turns=2,
            state=AgentState.DONE,
        )


@pytest.fixture
def scripted_client_factory():
    return ScriptedModelClient


# =============================================================================
# Registries and documents
# =============================================================================

def echo_registry(**handlers) -> ToolRegistry:
    """Registry of no-argument tools backed by the given async handlers."""
    return ToolRegistry(
        (ToolSpec(name=name, description=f"{name} tool"), handler)
        for name, handler in handlers.items()
    )


@pytest.fixture
def data_registry():
    """The four data tool names with canned answers."""
    async def search_entities(args):
        return {"count": 1, "entities": [{"id": 42, "name": "Acme AB", "organization_number": "556000-1234"}]}

    async def query_analytics(args):
        rows = [{"fiscal_year": 2022 + i, "revenue": 100 + i} for i in range(3)]
        return {"rowCount": 3, "totalRowCount": 3, "rows": rows}

    async def analyze_relations(args):
        return {"count": 4}

    async def get_contacts(args):
        return {"count": 0, "contacts": []}

    return echo_registry(
        query_analytics=query_analytics,
        search_entities=search_entities,
        analyze_relations=analyze_relations,
        get_contacts=get_contacts,
    )


@pytest.fixture
def sample_document():
    """Assembled document: [slide-title, slide-0 (A), slide-1 (B), slide-2 (C), slide-thankyou]."""
    return assemble_document(
        "Quarterly Report",
        [
            '<section class="slide"><h2>Alpha</h2><p>First</p></section>',
            '<section class="slide"><h2>Beta</h2><p>Second</p></section>',
            '<section class="slide"><h2>Gamma</h2><p>Third</p></section>',
        ],
    )


@pytest.fixture
def store(settings):
    return SessionStore(settings.workspaces_dir, retention_hours=settings.session_retention_hours)


@pytest.fixture
def stored_session(store, sample_document):
    session = store.new_session()
    store.save(session, sample_document, "Quarterly Report", 5)
    return session
