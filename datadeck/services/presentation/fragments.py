"""
Slide fragment extraction and surgery.

A presentation document is one HTML page whose slides are top-level
``<section>`` elements, each carrying an ``id``. The opening and closing
slides use the reserved ids ``slide-title`` and ``slide-thankyou``; content
slides are ``slide-0`` .. ``slide-N``.

All mutations locate fragments with a single scan of the original document
and splice by position, so a batch of edits never depends on the order it
is listed in and ``slide-1`` can never match ``slide-10``. Nested
``<section>`` elements inside a slide are not supported.
"""
import html as html_lib
import logging
import re
from typing import Any, Iterable, Mapping, Optional, Union

from datadeck.core.errors import InvalidDocumentError
from datadeck.models.presentation import FragmentType, SlideFragment

logger = logging.getLogger(__name__)

TITLE_FRAGMENT_ID = "slide-title"
CLOSING_FRAGMENT_ID = "slide-thankyou"
RESERVED_IDS = frozenset({TITLE_FRAGMENT_ID, CLOSING_FRAGMENT_ID})

SECTION_PATTERN = re.compile(r"<section\b([^>]*)>(.*?)</section>", re.IGNORECASE | re.DOTALL)
ID_ATTRIBUTE = re.compile(r"""(?:^|\s)id\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)
HEADING_PATTERN = re.compile(r"<h[12]\b[^>]*>(.*?)</h[12]>", re.IGNORECASE | re.DOTALL)
TAG_PATTERN = re.compile(r"<[^>]*>")
TRAILING_WHITESPACE = re.compile(r"\s*")

FragmentUpdate = Union[SlideFragment, Mapping[str, Any]]


def content_fragment_id(position: int) -> str:
    """Id of the content fragment at zero-based content ``position``."""
    return f"slide-{position}"


def fragment_type(fragment_id: str) -> FragmentType:
    if fragment_id == TITLE_FRAGMENT_ID:
        return "title"
    if fragment_id == CLOSING_FRAGMENT_ID:
        return "thankyou"
    return "content"


def strip_tags(markup: str) -> str:
    return html_lib.unescape(TAG_PATTERN.sub("", markup)).strip()


def _scan(document: str) -> list[tuple[str, re.Match]]:
    """Every top-level section as (id, match); missing ids default to slide-<position>."""
    found = []
    for position, match in enumerate(SECTION_PATTERN.finditer(document)):
        id_match = ID_ATTRIBUTE.search(match.group(1))
        fragment_id = id_match.group(2).strip() if id_match else content_fragment_id(position)
        found.append((fragment_id, match))
    return found


def _duplicates(ids: Iterable[str]) -> list[str]:
    seen, dupes = set(), []
    for fragment_id in ids:
        if fragment_id in seen and fragment_id not in dupes:
            dupes.append(fragment_id)
        seen.add(fragment_id)
    return dupes


def _scan_unique(document: str) -> list[tuple[str, re.Match]]:
    scanned = _scan(document)
    dupes = _duplicates(fragment_id for fragment_id, _ in scanned)
    if dupes:
        raise InvalidDocumentError(f"Duplicate slide IDs found: {', '.join(dupes)}")
    return scanned


def _locate(document: str) -> dict[str, re.Match]:
    return dict(_scan_unique(document))


def _to_fragment(fragment_id: str, position: int, match: re.Match) -> SlideFragment:
    content = match.group(2)
    heading = HEADING_PATTERN.search(content)
    return SlideFragment(
        id=fragment_id,
        index=position,
        html=match.group(0),
        content=content,
        title=(strip_tags(heading.group(1)) or None) if heading else None,
        type=fragment_type(fragment_id),
    )


def extract_fragments(document: str) -> list[SlideFragment]:
    """
    Split a document into its slide fragments, in document order.

    Raises:
        InvalidDocumentError: if two fragments share an id.
    """
    scanned = _scan_unique(document)
    return [_to_fragment(fragment_id, position, match) for position, (fragment_id, match) in enumerate(scanned)]


def validate_document(document: str) -> list[str]:
    """Structural problems with a document; empty when it is valid."""
    scanned = _scan(document)
    if not scanned:
        return ["No slides found in HTML"]
    dupes = _duplicates(fragment_id for fragment_id, _ in scanned)
    if dupes:
        return [f"Duplicate slide IDs found: {', '.join(dupes)}"]
    return []


def get_fragment(document: str, fragment_id: str) -> Optional[SlideFragment]:
    for position, (found_id, match) in enumerate(_scan(document)):
        if found_id == fragment_id:
            return _to_fragment(found_id, position, match)
    return None


def content_fragment_count(document: str) -> int:
    return sum(1 for fragment_id, _ in _scan(document) if fragment_type(fragment_id) == "content")


def _update_pair(update: FragmentUpdate) -> tuple[str, str]:
    if isinstance(update, SlideFragment):
        return update.id, update.html
    return str(update["id"]), str(update["html"])


def replace_fragments(document: str, updates: Iterable[FragmentUpdate]) -> str:
    """
    Replace whole fragments by id.

    Ids not present in the document are skipped. Every other byte of the
    document is left untouched.
    """
    replacements: dict[str, str] = {}
    for update in updates:
        fragment_id, markup = _update_pair(update)
        if fragment_id in replacements:
            raise InvalidDocumentError(f"Fragment {fragment_id} updated more than once")
        replacements[fragment_id] = markup
    if not replacements:
        return document

    located = _locate(document)
    spans = []
    for fragment_id, markup in replacements.items():
        match = located.get(fragment_id)
        if match is None:
            logger.warning(f"replace_fragments: no fragment with id {fragment_id}, skipping")
            continue
        spans.append((match.start(), match.end(), markup))

    return _splice(document, spans)


def delete_fragments(document: str, fragment_ids: Iterable[str]) -> str:
    """Remove fragments by id together with the whitespace that follows them."""
    located = _locate(document)
    spans = []
    for fragment_id in set(fragment_ids):
        match = located.get(fragment_id)
        if match is None:
            logger.warning(f"delete_fragments: no fragment with id {fragment_id}, skipping")
            continue
        end = TRAILING_WHITESPACE.match(document, match.end()).end()
        spans.append((match.start(), end, ""))
    return _splice(document, spans)


def insert_fragments(document: str, markups: Iterable[str], before_id: str = CLOSING_FRAGMENT_ID) -> str:
    """
    Insert new fragments before ``before_id``, or after the last fragment
    when that id is absent. Callers renumber afterwards.
    """
    markups = [markup.strip() for markup in markups if markup.strip()]
    if not markups:
        return document
    scanned = _scan_unique(document)
    if not scanned:
        raise InvalidDocumentError("No slides found in HTML")

    located = dict(scanned)
    anchor = located.get(before_id)
    if anchor is not None:
        line_start = document.rfind("\n", 0, anchor.start()) + 1
        indent = document[line_start:anchor.start()]
        if indent.strip():
            indent = ""
        block = "".join(f"{markup}\n{indent}" for markup in markups)
        return _splice(document, [(anchor.start(), anchor.start(), block)])

    last = scanned[-1][1]
    block = "".join(f"\n{markup}" for markup in markups)
    return _splice(document, [(last.end(), last.end(), block)])


def renumber_fragments(document: str) -> str:
    """Give content fragments dense ids ``slide-0..N`` in document order."""
    spans = []
    position = 0
    for fragment_id, match in _scan(document):
        if fragment_type(fragment_id) != "content":
            continue
        new_id = content_fragment_id(position)
        position += 1
        new_attrs = _with_id(match.group(1), new_id)
        if new_attrs != match.group(1):
            # group(1) starts right after "<section"
            spans.append((match.start(1), match.end(1), new_attrs))
    return _splice(document, spans)


def set_fragment_id(markup: str, fragment_id: str) -> str:
    """Force the first ``<section>`` tag of ``markup`` to carry ``fragment_id``."""
    match = SECTION_PATTERN.search(markup)
    if match is None:
        return markup
    return f"{markup[:match.start(1)]}{_with_id(match.group(1), fragment_id)}{markup[match.end(1):]}"


def _with_id(attrs: str, fragment_id: str) -> str:
    id_match = ID_ATTRIBUTE.search(attrs)
    if id_match is None:
        return f' id="{fragment_id}"{attrs}'
    start, end = id_match.span(2)
    return f"{attrs[:start]}{fragment_id}{attrs[end:]}"


def _splice(document: str, spans: list[tuple[int, int, str]]) -> str:
    if not spans:
        return document
    parts = []
    cursor = 0
    for start, end, markup in sorted(spans):
        parts.append(document[cursor:start])
        parts.append(markup)
        cursor = end
    parts.append(document[cursor:])
    return "".join(parts)
