"""
Read and exact-match edit tools over an in-memory presentation document.

Used by whole-document tweaks: the model reads the live document and
performs ``old_string`` -> ``new_string`` substitutions. Nothing is written
to the session until the tweak run finishes.
"""
import logging
from typing import Any, Iterable

from datadeck.core.errors import PresentationParseError, ToolExecutionError
from datadeck.services.presentation.fragments import get_fragment, replace_fragments
from datadeck.services.tools.registry import ToolHandler, ToolSpec

logger = logging.getLogger(__name__)

EDIT_HINT = (
    "Call read_presentation and copy old_string exactly, including whitespace. "
    "Add surrounding context if it matches more than once."
)

READ_PRESENTATION = ToolSpec(
    name="read_presentation",
    description="""Read the current presentation HTML.

Without arguments returns the full document. Pass slideId (for example "slide-2",
"slide-title" or "slide-thankyou") to read only that slide's <section> markup.

Always read before editing so old_string matches the document exactly.""",
    parameters={
        "type": "object",
        "properties": {
            "slideId": {"type": "string", "description": "Only return this slide (optional)"},
        },
        "required": [],
    },
    error_hint="Use a slide id that exists in the document, or omit slideId.",
)

EDIT_PRESENTATION = ToolSpec(
    name="edit_presentation",
    description="""Replace an exact string in the presentation HTML.

- old_string must appear in the document exactly as given (whitespace included)
- old_string must match exactly once unless replace_all is true
- new_string replaces it; keep surrounding markup valid
- slideId (optional) limits the search to that slide, useful when the same text
  appears on several slides
- Change only what the request asks for; leave every other slide untouched

Example: {"old_string": "<h2>Revenue 2023</h2>", "new_string": "<h2>Revenue 2024</h2>", "slideId": "slide-2"}""",
    parameters={
        "type": "object",
        "properties": {
            "old_string": {"type": "string", "description": "Exact text to replace"},
            "new_string": {"type": "string", "description": "Replacement text"},
            "replace_all": {
                "type": "boolean",
                "description": "Replace every occurrence instead of requiring a unique match (default: false)",
            },
            "slideId": {"type": "string", "description": "Only search within this slide (optional)"},
        },
        "required": ["old_string"],
    },
    error_hint=EDIT_HINT,
)


def substitute(document: str, old_string: str, new_string: str, replace_all: bool = False) -> tuple[str, int]:
    """Apply one exact-match substitution. Raises ToolExecutionError on no/ambiguous match."""
    if not old_string:
        raise ToolExecutionError("old_string must not be empty", EDIT_HINT)
    if old_string == new_string:
        raise ToolExecutionError("old_string and new_string are identical", EDIT_HINT)

    occurrences = document.count(old_string)
    if occurrences == 0:
        raise ToolExecutionError("old_string not found in presentation", EDIT_HINT)
    if occurrences > 1 and not replace_all:
        raise ToolExecutionError(
            f"old_string matches {occurrences} times; it must match exactly once",
            EDIT_HINT,
        )
    if replace_all:
        return document.replace(old_string, new_string), occurrences
    return document.replace(old_string, new_string, 1), 1


def apply_edit(document: str, edit: dict[str, Any]) -> tuple[str, int]:
    """
    One edit given as ``{old_string, new_string, replace_all?, slideId?}``.

    With a slide id (``target_id`` is accepted too) the match is searched
    only inside that slide and the slide is replaced as a whole.
    """
    old_string = str(edit.get("old_string") or "")
    new_string = str(edit.get("new_string") or "")
    replace_all = bool(edit.get("replace_all"))
    target_id = edit.get("slideId") or edit.get("target_id")
    if not target_id:
        return substitute(document, old_string, new_string, replace_all)

    fragment = get_fragment(document, str(target_id))
    if fragment is None:
        raise ToolExecutionError(f"Slide not found: {target_id}", READ_PRESENTATION.error_hint)
    markup, replaced = substitute(fragment.html, old_string, new_string, replace_all)
    return replace_fragments(document, [{"id": fragment.id, "html": markup}]), replaced


class DocumentEditor:
    """Holds the working copy of a document for one tweak run."""

    def __init__(self, document: str):
        self.original = document
        self.document = document
        self.edit_count = 0

    @property
    def changed(self) -> bool:
        return self.document != self.original

    async def read(self, args: dict[str, Any]) -> dict[str, Any]:
        slide_id = args.get("slideId")
        if slide_id:
            fragment = get_fragment(self.document, str(slide_id))
            if fragment is None:
                raise ToolExecutionError(f"Slide not found: {slide_id}", READ_PRESENTATION.error_hint)
            return {"success": True, "slideId": fragment.id, "content": fragment.html}
        return {"success": True, "length": len(self.document), "content": self.document}

    async def edit(self, args: dict[str, Any]) -> dict[str, Any]:
        self.document, replaced = apply_edit(self.document, args)
        self.edit_count += 1
        logger.debug(f"edit_presentation replaced {replaced} occurrence(s)")
        return {"success": True, "replacements": replaced}

    def apply_edits(self, edits: Iterable[dict[str, Any]]) -> int:
        """Apply a batch of edits all-or-nothing; raises PresentationParseError if any fails."""
        working = self.document
        applied = 0
        for position, edit in enumerate(edits):
            if not isinstance(edit, dict) or "old_string" not in edit:
                raise PresentationParseError(f"Edit #{position + 1} is missing old_string")
            try:
                working, _ = apply_edit(working, edit)
            except ToolExecutionError as e:
                raise PresentationParseError(f"Edit #{position + 1} could not be applied: {e}") from e
            applied += 1
        self.document = working
        self.edit_count += applied
        return applied

    def tools(self) -> list[tuple[ToolSpec, ToolHandler]]:
        return [(READ_PRESENTATION, self.read), (EDIT_PRESENTATION, self.edit)]
