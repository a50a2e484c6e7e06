"""Data tools exposed to the agent."""
import logging
from typing import Optional

import aiohttp

from datadeck.core.config import Settings
from datadeck.services.tools.analytics import AnalyticsQueryTool
from datadeck.services.tools.crm import AnalyzeRelationsTool, CrmClient, GetContactsTool, SearchEntitiesTool
from datadeck.services.tools.registry import ToolHandler, ToolRegistry, ToolSpec, failure

logger = logging.getLogger(__name__)


def create_tool_registry(
    settings: Settings,
    pool=None,
    http_session: Optional[aiohttp.ClientSession] = None,
) -> ToolRegistry:
    """Build the data toolset over injected backends.

    ``pool`` is an asyncpg pool and ``http_session`` an aiohttp session, both
    owned by the caller. Missing backends still register their tools; calls
    then fail with a structured error the model can read.
    """
    crm = CrmClient(
        http_session,
        settings.crm_url,
        settings.crm_access_token,
        settings.crm_timeout_seconds,
    )
    tools = [
        AnalyticsQueryTool(pool, max_rows=settings.query_max_rows),
        SearchEntitiesTool(crm, limit=settings.crm_search_limit),
        AnalyzeRelationsTool(crm),
        GetContactsTool(crm, limit=settings.crm_contacts_limit),
    ]
    registry = ToolRegistry((tool.spec, tool) for tool in tools)
    logger.info(f"Registered tools: {', '.join(registry.names)}")
    return registry


__all__ = [
    "ToolHandler",
    "ToolRegistry",
    "ToolSpec",
    "create_tool_registry",
    "failure",
]
