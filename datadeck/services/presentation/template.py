"""
Presentation document assembly.

Renders the complete HTML page from slide sections with Jinja2. Content
sections come from the model, so they are sanitized (scripts removed) and
given dense ``slide-N`` ids before they are placed between the reserved
opening and closing slides.
"""
import html
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from datadeck.services.presentation.fragments import (
    SECTION_PATTERN,
    content_fragment_id,
    set_fragment_id,
)

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"
BRAND = "DataDeck"

SCRIPT_PATTERN = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
DOCUMENT_TITLE_PATTERN = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def strip_scripts(markup: str) -> str:
    return SCRIPT_PATTERN.sub("", markup)


def split_sections(markup: str) -> list[str]:
    """One entry per top-level <section> in ``markup``; anything else stays whole."""
    found = [match.group(0) for match in SECTION_PATTERN.finditer(markup)]
    return found if len(found) > 1 else [markup]


def prepare_content_section(markup: str, position: int) -> str:
    """Sanitize one model-written section and give it the id for ``position``."""
    cleaned = strip_scripts(markup).strip()
    if cleaned != markup.strip():
        logger.info(f"Removed <script> tags from section {position}")
    if not SECTION_PATTERN.search(cleaned):
        cleaned = f'<section class="slide">{cleaned}</section>'
    return set_fragment_id(cleaned, content_fragment_id(position))


def generate_title_slide(title: str, subtitle: Optional[str] = None, date: Optional[str] = None) -> str:
    return _env.get_template("title_slide.html").render(
        title=title,
        subtitle=subtitle,
        date=date or datetime.now().strftime("%d %B %Y"),
    ).strip()


def generate_closing_slide(heading: str = "Thank you!", subheading: str = "Questions?") -> str:
    return _env.get_template("closing_slide.html").render(heading=heading, subheading=subheading).strip()


def render_document(title: str, sections: list[str], lang: str = "en") -> str:
    """Render the page around already-prepared sections."""
    return _env.get_template("presentation.html").render(
        title=title,
        brand=BRAND,
        lang=lang,
        sections=sections,
    )


def assemble_document(title: str, content_sections: list[str], subtitle: Optional[str] = None) -> str:
    """Opening slide + prepared content sections + closing slide, as one document."""
    sections = [generate_title_slide(title, subtitle)]
    pieces = [piece for section in content_sections for piece in split_sections(section)]
    sections.extend(prepare_content_section(piece, position) for position, piece in enumerate(pieces))
    sections.append(generate_closing_slide())
    return render_document(title, sections)


def document_title(document: str, default: str = "") -> str:
    """Recover the display title from a rendered document's ``<title>``."""
    match = DOCUMENT_TITLE_PATTERN.search(document)
    if not match:
        return default
    title = html.unescape(match.group(1)).strip()
    suffix = f" - {BRAND}"
    if title.endswith(suffix):
        title = title[:-len(suffix)]
    return title or default
