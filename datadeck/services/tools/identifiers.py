"""Organization number normalization.

The analytics database stores organization numbers as ten digits
(``5560001234``) while the CRM uses the dashed form (``556000-1234``).
Models mix the two freely, so every tool normalizes on the way in.
"""
import re
from typing import Any, Iterable

DASHED_ORG_NUMBER = re.compile(r"^(\d{6})-(\d{4})$")
PLAIN_ORG_NUMBER = re.compile(r"^(\d{6})(\d{4})$")

# Dashed org numbers appearing as quoted SQL literals, e.g. '556000-1234'
_SQL_DASHED_LITERAL = re.compile(r"'(\d{6})-(\d{4})'")


def to_analytics_format(value: str) -> str:
    """``556000-1234`` -> ``5560001234``; anything else is returned stripped."""
    value = value.strip()
    match = DASHED_ORG_NUMBER.match(value)
    if match:
        return match.group(1) + match.group(2)
    return value


def to_crm_format(value: str) -> str:
    """``5560001234`` -> ``556000-1234``; anything else is returned stripped."""
    value = value.strip()
    match = PLAIN_ORG_NUMBER.match(value)
    if match:
        return f"{match.group(1)}-{match.group(2)}"
    return value


def normalize_sql_literals(query: str) -> str:
    """Rewrite dashed org-number string literals inside a SQL query."""
    return _SQL_DASHED_LITERAL.sub(lambda m: f"'{m.group(1)}{m.group(2)}'", query)


def normalize_sql_params(params: Iterable[Any]) -> list[Any]:
    return [to_analytics_format(p) if isinstance(p, str) else p for p in params]
