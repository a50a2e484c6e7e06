"""
Extraction of structured JSON from free-form model answers.

Models wrap their final payload in prose, fenced blocks, or nothing at all.
Candidates are tried in a fixed order: fenced ``json`` blocks, any other
fenced block, balanced ``{...}``/``[...]`` spans (string-aware, so braces
inside slide markup strings do not end a span early), then the widest span
from the first opening bracket to the last closing one.
"""
import html
import json
import logging
import re
from typing import Any, Callable, Iterator, Optional

from datadeck.core.errors import PresentationParseError
from datadeck.models.presentation import PresentationData

logger = logging.getLogger(__name__)

FENCED_JSON = re.compile(r"```json\s*(.*?)\s*```", re.IGNORECASE | re.DOTALL)
FENCED_ANY = re.compile(r"```[a-zA-Z0-9_-]*\s*(.*?)\s*```", re.DOTALL)

DIAGNOSTIC_EXCERPT_CHARS = 1000


def _closing_index(text: str, start: int, opener: str, closer: str) -> Optional[int]:
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return i
    return None


def _balanced_spans(text: str, opener: str, closer: str) -> Iterator[str]:
    """Yield balanced spans left to right; an unclosed opener is skipped."""
    position = 0
    while True:
        start = text.find(opener, position)
        if start == -1:
            return
        end = _closing_index(text, start, opener, closer)
        if end is None:
            position = start + 1
            continue
        yield text[start:end + 1]
        position = end + 1


def _candidates(text: str, opener: str, closer: str) -> Iterator[str]:
    seen = set()

    def fresh(candidate: str) -> bool:
        candidate = candidate.strip()
        if not candidate or candidate in seen:
            return False
        seen.add(candidate)
        return True

    for match in FENCED_JSON.finditer(text):
        if fresh(match.group(1)):
            yield match.group(1).strip()
    for match in FENCED_ANY.finditer(text):
        if fresh(match.group(1)):
            yield match.group(1).strip()
    for span in _balanced_spans(text, opener, closer):
        if fresh(span):
            yield span
    first, last = text.find(opener), text.rfind(closer)
    if first != -1 and last > first and fresh(text[first:last + 1]):
        yield text[first:last + 1]


def _loads(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None


def extract_json_object(text: str, required_key: Optional[str] = None) -> Optional[dict[str, Any]]:
    """First JSON object in ``text`` (containing ``required_key`` if given)."""
    for candidate in _candidates(text or "", "{", "}"):
        value = _loads(candidate)
        if isinstance(value, dict) and (required_key is None or required_key in value):
            return value
    return None


def extract_json_array(
    text: str, accept: Optional[Callable[[list[Any]], bool]] = None
) -> Optional[list[Any]]:
    """First JSON array in ``text`` that ``accept`` (if given) returns true for."""
    for candidate in _candidates(text or "", "[", "]"):
        value = _loads(candidate)
        if isinstance(value, list) and (accept is None or accept(value)):
            return value
    return None


def objects_only(items: list[Any]) -> bool:
    return all(isinstance(item, dict) for item in items)


def normalize_sections(raw: Any) -> list[str]:
    """
    Accept sections as bare markup strings or objects with a ``slide``
    (or ``html``) field.
    """
    if not isinstance(raw, list):
        raise PresentationParseError("'sections' must be a list")
    sections = []
    for position, item in enumerate(raw):
        if isinstance(item, str):
            markup = item
        elif isinstance(item, dict) and isinstance(item.get("slide") or item.get("html"), str):
            markup = item.get("slide") or item.get("html")
        else:
            raise PresentationParseError(f"Section {position} is neither markup nor a slide object")
        if markup.strip():
            sections.append(markup)
    return sections


def diagnostic_section(raw_text: str, heading: str = "Agent response") -> str:
    """A single slide showing the (truncated) raw answer."""
    excerpt = html.escape((raw_text or "").strip()[:DIAGNOSTIC_EXCERPT_CHARS]) or "(empty response)"
    return (
        '<section class="slide bg-white items-center justify-center px-16">\n'
        '    <div class="max-w-6xl w-full">\n'
        f'        <h2 class="text-5xl font-bold text-gray-900 mb-8">{html.escape(heading)}</h2>\n'
        '        <p class="text-lg text-gray-700 mb-4">The response could not be read as a presentation.</p>\n'
        f'        <pre class="text-sm text-gray-600 whitespace-pre-wrap overflow-auto">{excerpt}</pre>\n'
        '    </div>\n'
        '</section>'
    )


def parse_presentation(text: str, default_title: str) -> PresentationData:
    """
    Recover ``{"title", "sections"}`` from a final answer.

    Never raises: when no usable payload is found the result carries a
    single diagnostic section and ``fallback=True``.
    """
    data = extract_json_object(text, required_key="sections")
    if data is not None:
        try:
            sections = normalize_sections(data.get("sections"))
            title = str(data.get("title") or default_title).strip() or default_title
            logger.info(f"Parsed presentation '{title}' with {len(sections)} sections")
            return PresentationData(title=title, sections=sections)
        except PresentationParseError as e:
            logger.warning(f"Presentation JSON had an unexpected shape: {e}")

    logger.warning(f"No presentation JSON found, using fallback. Response: {(text or '')[:500]}")
    return PresentationData(
        title=default_title,
        sections=[diagnostic_section(text)],
        fallback=True,
    )
