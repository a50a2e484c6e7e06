"""
CRM tools backed by a Directus-style REST API.

Organizations live in ``companies``, contact persons in ``people``, and
meetings are ``notes`` with ``category = Meeting`` linked to organizations
through the ``notes_companies`` junction collection.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Optional

import aiohttp

from datadeck.core.errors import ToolExecutionError
from datadeck.services.tools.identifiers import to_crm_format
from datadeck.services.tools.registry import ToolSpec

logger = logging.getLogger(__name__)

DEFAULT_ENTITY_FIELDS = "id,name,organization_number,industry,description,employees,street_address,city"
DEFAULT_CONTACT_FIELDS = "id,name,email,phone,title"
MEETING_CATEGORY = "Meeting"
GROUP_MODES = ("entity", "category", "time", "all")
SORT_MODES = ("count", "date")

SEARCH_HINT = "Check if the organization exists in the CRM or try a different search term."
RELATIONS_HINT = "Check if the parameters are correct and data exists for the requested period."
CONTACTS_HINT = "Check if the entity ID exists in the CRM (use search_entities first)."

SEARCH_ENTITIES = ToolSpec(
    name="search_entities",
    description="""Search for organizations in the CRM. Fuzzy search by name or exact match by organization number.

Returns:
- id: Entity ID (needed for analyze_relations and get_contacts)
- name: Organization name
- organization_number: Organization number (use it to query query_analytics)
- industry: Industry/sector
- description: Organization description
- employees: Number of employees (may differ from the analytics data)
- street_address, city: Location info

At most 10 organizations are returned.

Example: search for "Acme" to get its entity ID and organization number, then query financials with query_analytics.""",
    parameters={
        "type": "object",
        "properties": {
            "searchTerm": {
                "type": "string",
                "description": "Organization name (fuzzy search) or exact organization number",
            },
            "fields": {
                "type": "string",
                "description": f"Comma-separated fields to return (default: {DEFAULT_ENTITY_FIELDS})",
            },
        },
        "required": ["searchTerm"],
    },
    error_hint=SEARCH_HINT,
)

ANALYZE_RELATIONS = ToolSpec(
    name="analyze_relations",
    description="""Analyze meetings recorded in the CRM with flexible grouping and filtering.

Can be used to:
- Count meetings for one organization (use entityId)
- Get the top N organizations by meeting count (groupBy="entity", limit=10)
- Break meetings down by industry (groupBy="category")
- Break meetings down by month (groupBy="time")
- Get total meeting statistics for a year (groupBy="all")

Parameters and defaults:
- year: defaults to the current year
- groupBy: "entity", "category", "time" or "all" (default "all")
- limit: default 50, max 100
- sortBy: "count" (default) or "date" (most recent meeting first; chronological for "time")
- includeDetails: include organization number, employees and address for groupBy="entity" (default false)

Examples:
- Meetings for one organization: {"entityId": 123, "year": 2025}
- Top 10 organizations: {"groupBy": "entity", "limit": 10, "year": 2025}
- Meetings by industry: {"groupBy": "category", "year": 2025}
- Meetings per month: {"groupBy": "time", "sortBy": "date"}""",
    parameters={
        "type": "object",
        "properties": {
            "year": {"type": "number", "description": "Year to analyze (default: current year)"},
            "entityId": {"type": "number", "description": "Restrict to one organization ID (optional)"},
            "groupBy": {
                "type": "string",
                "enum": list(GROUP_MODES),
                "description": 'How to group results: "entity", "category", "time" or "all" (default: "all")',
            },
            "limit": {"type": "number", "description": "Maximum number of results (default: 50, max: 100)"},
            "sortBy": {
                "type": "string",
                "enum": list(SORT_MODES),
                "description": 'Sort by "count" or "date" (default: "count")',
            },
            "includeDetails": {
                "type": "boolean",
                "description": "Include organization number, employees and address (default: false)",
            },
        },
        "required": [],
    },
    error_hint=RELATIONS_HINT,
)

GET_CONTACTS = ToolSpec(
    name="get_contacts",
    description="""Get contact persons associated with one organization in the CRM.

Returns up to 10 contacts with:
- id: Contact person ID
- name: Full name
- email: Email address
- phone: Phone number
- title: Job title/role

Use this to show key contacts when creating organization presentations.""",
    parameters={
        "type": "object",
        "properties": {
            "entityId": {
                "type": "number",
                "description": "The organization ID from search_entities",
            },
            "fields": {
                "type": "string",
                "description": f"Comma-separated fields to return (default: {DEFAULT_CONTACT_FIELDS})",
            },
        },
        "required": ["entityId"],
    },
    error_hint=CONTACTS_HINT,
)


def _as_int(value: Any, name: str, hint: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ToolExecutionError(f"{name} must be a number, got {value!r}", hint)


class CrmClient:
    """Thin async client for the CRM ``/items`` endpoints."""

    def __init__(
        self,
        http_session: Optional[aiohttp.ClientSession],
        base_url: str,
        access_token: Optional[str],
        timeout_seconds: int = 30,
    ):
        self._http = http_session
        self.base_url = base_url.rstrip("/")
        self._token = access_token
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def get_items(self, collection: str, params: dict[str, Any], hint: str) -> dict[str, Any]:
        """GET ``/items/<collection>`` and return the decoded JSON body."""
        if not self._token:
            raise ToolExecutionError("CRM access token not configured", hint)
        if self._http is None:
            raise ToolExecutionError("CRM HTTP session is not available", hint)

        query = {key: str(value) for key, value in params.items()}
        url = f"{self.base_url}/items/{collection}"
        async with self._http.get(
            url,
            params=query,
            headers={"Authorization": f"Bearer {self._token}"},
            timeout=self._timeout,
        ) as resp:
            if resp.status != 200:
                error_text = await resp.text()
                logger.warning(f"CRM {collection} returned {resp.status}: {error_text[:200]}")
                raise ToolExecutionError(
                    f"CRM request to {collection} failed with status {resp.status}: {error_text[:200]}",
                    hint,
                )
            return await resp.json()


class SearchEntitiesTool:
    spec = SEARCH_ENTITIES

    def __init__(self, client: CrmClient, limit: int = 10):
        self._client = client
        self.limit = limit

    async def __call__(self, args: dict[str, Any]) -> dict[str, Any]:
        term = to_crm_format(str(args.get("searchTerm") or ""))
        if not term:
            raise ToolExecutionError("searchTerm is required", SEARCH_HINT)

        body = await self._client.get_items(
            "companies",
            {"search": term, "fields": args.get("fields") or DEFAULT_ENTITY_FIELDS, "limit": self.limit},
            SEARCH_HINT,
        )
        entities = body.get("data") or []
        return {"success": True, "count": len(entities), "entities": entities}


class GetContactsTool:
    spec = GET_CONTACTS

    def __init__(self, client: CrmClient, limit: int = 10):
        self._client = client
        self.limit = limit

    async def __call__(self, args: dict[str, Any]) -> dict[str, Any]:
        entity_id = _as_int(args.get("entityId"), "entityId", CONTACTS_HINT)
        body = await self._client.get_items(
            "people",
            {
                "filter[company][_eq]": entity_id,
                "fields": args.get("fields") or DEFAULT_CONTACT_FIELDS,
                "limit": self.limit,
            },
            CONTACTS_HINT,
        )
        contacts = body.get("data") or []
        return {"success": True, "entityId": entity_id, "count": len(contacts), "contacts": contacts}


class AnalyzeRelationsTool:
    """Counts and groups meeting notes per organization, industry or month."""

    spec = ANALYZE_RELATIONS

    def __init__(self, client: CrmClient):
        self._client = client

    async def __call__(self, args: dict[str, Any]) -> dict[str, Any]:
        year = _as_int(args.get("year") or datetime.now().year, "year", RELATIONS_HINT)
        group_by = args.get("groupBy") or "all"
        if group_by not in GROUP_MODES:
            raise ToolExecutionError(
                f"Unsupported groupBy '{group_by}'", f"Use one of: {', '.join(GROUP_MODES)}"
            )
        sort_by = args.get("sortBy") or "count"
        if sort_by not in SORT_MODES:
            raise ToolExecutionError(
                f"Unsupported sortBy '{sort_by}'", f"Use one of: {', '.join(SORT_MODES)}"
            )
        limit = min(_as_int(args.get("limit") or 50, "limit", RELATIONS_HINT), 100)
        include_details = bool(args.get("includeDetails"))

        if args.get("entityId"):
            entity_id = _as_int(args["entityId"], "entityId", RELATIONS_HINT)
            return await self._count_for_entity(entity_id, year)

        meetings = await self._meetings_for_year(year)
        if not meetings:
            return {
                "success": True,
                "year": year,
                "groupBy": group_by,
                "results": [],
                "message": "No meetings found for this period",
            }

        if group_by == "time":
            return self._group_by_month(meetings, year, sort_by, limit)

        meeting_dates = {m["id"]: m.get("date_created") or "" for m in meetings}
        junctions = (await self._client.get_items(
            "notes_companies",
            {
                "filter[notes_id][_in]": ",".join(str(mid) for mid in meeting_dates),
                "fields": "notes_id,companies_id",
                "limit": 5000,
            },
            RELATIONS_HINT,
        )).get("data") or []

        counts: dict[Any, int] = defaultdict(int)
        last_meeting: dict[Any, str] = {}
        for link in junctions:
            entity_id = link.get("companies_id")
            if entity_id is None:
                continue
            counts[entity_id] += 1
            date = meeting_dates.get(link.get("notes_id"), "")
            if date > last_meeting.get(entity_id, ""):
                last_meeting[entity_id] = date

        if group_by == "all":
            return {
                "success": True,
                "year": year,
                "groupBy": "all",
                "totalMeetings": len(meetings),
                "uniqueEntities": len(counts),
                "message": "Use groupBy to see a detailed breakdown",
            }

        if not counts:
            return {
                "success": True,
                "year": year,
                "groupBy": group_by,
                "results": [],
                "message": "No meetings linked to organizations for this period",
            }

        fields = (
            "id,name,organization_number,industry,employees,street_address,city"
            if include_details else "id,name,industry"
        )
        entities = (await self._client.get_items(
            "companies",
            {"filter[id][_in]": ",".join(str(eid) for eid in counts), "fields": fields, "limit": 500},
            RELATIONS_HINT,
        )).get("data") or []

        if group_by == "entity":
            results = []
            for entity in entities:
                row = {
                    "entityId": entity.get("id"),
                    "entityName": entity.get("name"),
                    "industry": entity.get("industry"),
                    "meetingCount": counts.get(entity.get("id"), 0),
                    "lastMeeting": last_meeting.get(entity.get("id")),
                }
                if include_details:
                    row["organizationNumber"] = entity.get("organization_number")
                    row["employees"] = entity.get("employees")
                    row["address"] = f"{entity.get('street_address') or ''}, {entity.get('city') or ''}".strip(", ")
                results.append(row)
            if sort_by == "date":
                results.sort(key=lambda r: r["lastMeeting"] or "", reverse=True)
            else:
                results.sort(key=lambda r: r["meetingCount"], reverse=True)
        else:
            by_industry: dict[str, int] = defaultdict(int)
            for entity in entities:
                by_industry[entity.get("industry") or "Unknown"] += counts.get(entity.get("id"), 0)
            results = [
                {"industry": industry, "meetingCount": count}
                for industry, count in by_industry.items()
            ]
            results.sort(key=lambda r: r["meetingCount"], reverse=True)

        return {
            "success": True,
            "year": year,
            "groupBy": group_by,
            "totalMeetings": len(meetings),
            "results": results[:limit],
        }

    async def _count_for_entity(self, entity_id: int, year: int) -> dict[str, Any]:
        links = (await self._client.get_items(
            "notes_companies",
            {"filter[companies_id][_eq]": entity_id, "fields": "notes_id", "limit": 500},
            RELATIONS_HINT,
        )).get("data") or []
        note_ids = [link["notes_id"] for link in links if link.get("notes_id") is not None]
        if not note_ids:
            return {
                "success": True,
                "count": 0,
                "year": year,
                "entityId": entity_id,
                "message": "No meetings found for this organization",
            }

        body = await self._client.get_items(
            "notes",
            {
                "filter[id][_in]": ",".join(str(nid) for nid in note_ids),
                "filter[category][_eq]": MEETING_CATEGORY,
                "filter[date_created][_gte]": f"{year}-01-01",
                "filter[date_created][_lt]": f"{year + 1}-01-01",
                "meta": "filter_count",
                "fields": "id",
            },
            RELATIONS_HINT,
        )
        meta = body.get("meta") or {}
        return {
            "success": True,
            "count": int(meta.get("filter_count") or 0),
            "year": year,
            "entityId": entity_id,
        }

    async def _meetings_for_year(self, year: int) -> list[dict[str, Any]]:
        body = await self._client.get_items(
            "notes",
            {
                "filter[category][_eq]": MEETING_CATEGORY,
                "filter[date_created][_gte]": f"{year}-01-01",
                "filter[date_created][_lt]": f"{year + 1}-01-01",
                "fields": "id,date_created,name",
                "limit": 1000,
            },
            RELATIONS_HINT,
        )
        return body.get("data") or []

    @staticmethod
    def _group_by_month(meetings: list[dict[str, Any]], year: int, sort_by: str, limit: int) -> dict[str, Any]:
        by_month: dict[str, int] = defaultdict(int)
        for meeting in meetings:
            by_month[(meeting.get("date_created") or "")[:7] or "unknown"] += 1

        results = [{"period": period, "meetingCount": count} for period, count in by_month.items()]
        if sort_by == "date":
            results.sort(key=lambda r: r["period"])
        else:
            results.sort(key=lambda r: r["meetingCount"], reverse=True)

        return {
            "success": True,
            "year": year,
            "groupBy": "time",
            "totalMeetings": len(meetings),
            "results": results[:limit],
        }
