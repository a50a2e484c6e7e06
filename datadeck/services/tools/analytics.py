"""
Analytics database query tool.

Runs model-written SELECT statements against the PostgreSQL analytics store
through an injected asyncpg pool. Every query runs inside a read-only
transaction and the rows handed back to the model are capped.
"""
import datetime
import decimal
import logging
import uuid
from typing import Any

from datadeck.core.errors import ToolExecutionError
from datadeck.services.tools.identifiers import normalize_sql_literals, normalize_sql_params
from datadeck.services.tools.registry import ToolSpec

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 20

QUERY_HINT = "Check your SQL syntax and table/column names. Use LIMIT to avoid large results."

QUERY_ANALYTICS = ToolSpec(
    name="query_analytics",
    description="""Query the analytics PostgreSQL database for company financial and labour-market data.

PRIMARY TABLE: company_financials - yearly financial figures per company
Key columns:
- org_number: Organization number, 10 digits without dash (match with CRM organization_number)
- company_name: Company name
- fiscal_year: Fiscal year
- revenue: Revenue in thousands (kSEK)
- employees: Number of employees in the region
- workplaces: Number of work locations in the region
- profit: Profit/loss in thousands (kSEK)
- equity_ratio: Equity ratio (%)
- operating_margin: Operating margin (%)
- industry: Industry (broad category)
- industry_detail: Industry (detailed category)

TABLE: job_postings - job advertisements
Key columns:
- headline: Job title
- employer_name: Company name
- occupation_label: Occupation/role label
- publication_date: When the job was published (DATE)
- education_level: Required education
- employer_type: Type of employer

Other tables: education_cohorts, employment_stats

All data is scoped to regional operations only, not national totals.

Example queries:
- Latest financials: "SELECT company_name, fiscal_year, revenue, employees, profit, equity_ratio FROM company_financials WHERE org_number = '5563997146' ORDER BY fiscal_year DESC LIMIT 1"
- Search by name: "SELECT DISTINCT company_name, org_number FROM company_financials WHERE company_name ILIKE '%acme%' LIMIT 5"
- Multi-year trend: "SELECT fiscal_year, revenue, employees, profit FROM company_financials WHERE org_number = $1 ORDER BY fiscal_year DESC LIMIT 3" with params ["5563997146"]
- Job postings per year: "SELECT EXTRACT(YEAR FROM publication_date) AS year, COUNT(*) AS total FROM job_postings WHERE employer_name ILIKE '%acme%' GROUP BY year ORDER BY year DESC LIMIT 10"

At most 20 rows are returned; larger results are truncated and flagged with a warning.
ALWAYS use LIMIT to avoid overwhelming results.""",
    parameters={
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": "SQL SELECT query to execute. Must include a LIMIT clause.",
            },
            "params": {
                "type": "array",
                "description": "Values for $1, $2, ... placeholders (optional)",
                "items": {"type": "string"},
            },
        },
        "required": ["query"],
    },
    error_hint=QUERY_HINT,
)


def to_jsonable(value: Any) -> Any:
    """Convert asyncpg column values into JSON-serializable ones."""
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    return value


class AnalyticsQueryTool:
    """Executes ``query_analytics`` calls against an asyncpg pool."""

    spec = QUERY_ANALYTICS

    def __init__(self, pool, max_rows: int = DEFAULT_MAX_ROWS):
        self._pool = pool
        self.max_rows = max_rows

    async def __call__(self, args: dict[str, Any]) -> dict[str, Any]:
        if self._pool is None:
            raise ToolExecutionError("Analytics database is not configured", QUERY_HINT)

        raw_query = str(args.get("query") or "").strip()
        if not raw_query:
            raise ToolExecutionError("query is required", QUERY_HINT)

        query = normalize_sql_literals(raw_query)
        if query != raw_query:
            logger.info(f"Normalized organization numbers in query: {query}")
        params = normalize_sql_params(args.get("params") or [])

        async with self._pool.acquire() as conn:
            async with conn.transaction(readonly=True):
                statement = await conn.prepare(query)
                records = await statement.fetch(*params)
                fields = [
                    {"name": attr.name, "dataType": attr.type.name}
                    for attr in statement.get_attributes()
                ]

        total = len(records)
        rows = [
            {key: to_jsonable(value) for key, value in dict(record).items()}
            for record in records[:self.max_rows]
        ]

        result: dict[str, Any] = {
            "success": True,
            "rowCount": len(rows),
            "totalRowCount": total,
            "rows": rows,
            "fields": fields,
        }
        if total > self.max_rows:
            result["truncated"] = True
            result["warning"] = (
                f"Results truncated: showing {self.max_rows} of {total} rows. "
                f"Use more specific WHERE clauses or LIMIT in query."
            )
            logger.info(f"query_analytics truncated {total} rows to {self.max_rows}")
        return result
