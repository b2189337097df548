"""
Markdown assembly.

Provides:
- Per-kind Markdown rendering of fragments
- Position-proportional header levels for headers without a pattern level
- Table of contents with GitHub-style anchors
- Optional page markers (never horizontal rules)
"""

import logging
import re
import unicodedata
from typing import Dict, List, Optional

from .fragments import Fragment, FragmentKind
from ..config import MarkdownConfig, ProcessingConfig
from ..errors import MarkdownGenerationError

logger = logging.getLogger(__name__)

NO_ELEMENTS_MESSAGE = "no elements to process"
TOC_HEADING = "## Table of Contents"


def slugify(text: str) -> str:
    """
    Convert heading text into an anchor slug.

    Accents are stripped, punctuation removed and whitespace runs become
    hyphens. Non-Latin word characters are kept.
    """
    normalized = unicodedata.normalize("NFKD", text or "")
    normalized = "".join(c for c in normalized if not unicodedata.combining(c))
    cleaned = re.sub(r"[^\w\s-]", "", normalized.lower().strip())
    slug = re.sub(r"\s+", "-", cleaned).strip("-")
    return slug or "section"


# ============================================================================
# Markdown Assembler
# ============================================================================

class MarkdownAssembler:
    """Renders an ordered fragment sequence to a Markdown document."""

    def __init__(
        self,
        config: Optional[MarkdownConfig] = None,
        processing: Optional[ProcessingConfig] = None,
        log: Optional[logging.Logger] = None
    ):
        self.config = config or MarkdownConfig()
        self.processing = processing or ProcessingConfig()
        self.log = log or logger

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    def positional_level(self, fragment: Fragment) -> int:
        """Level from the page band (of ``max_header_level`` equal bands) holding the top edge."""
        max_level = self.config.max_header_level
        y = fragment.box.min_y
        if not self.processing.normalized_coordinates:
            y = y / self.processing.page_height
        band = int(y * max_level)
        return max(0, min(band, max_level - 1)) + 1

    def heading_level(self, fragment: Fragment) -> int:
        if fragment.level is not None:
            level = fragment.level
        elif fragment.kind == FragmentKind.HEADER:
            level = self.positional_level(fragment)
        else:
            level = 1
        level += self.config.header_level_offset
        return max(1, min(level, self.config.max_header_level))

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _list_marker(self) -> str:
        return self.config.list_marker_style

    def _list_item_text(self, fragment: Fragment, text: str) -> str:
        """Strip the source marker so it is not rendered twice."""
        marker = fragment.metadata.get("list_marker")
        if marker and text.startswith(marker):
            return text[len(marker):].lstrip()
        return text

    def _page_number(self, text: str) -> str:
        match = re.search(r"\d+", text)
        return match.group(0) if match else text

    def render_fragment(self, fragment: Fragment) -> str:
        """
        Render one fragment; empty text renders as an empty string.

        Args:
            fragment: Fragment to render

        Returns:
            Markdown for the fragment (may be empty)
        """
        text = fragment.stripped_text
        kind = fragment.kind

        if kind == FragmentKind.IMAGE:
            if not text and not fragment.raw_bytes:
                return ""
            return f"![{text or 'Image'}](image_{fragment.id[:8]}.png)"

        if not text:
            return ""

        if kind in (FragmentKind.TITLE, FragmentKind.HEADER):
            return f"{'#' * self.heading_level(fragment)} {text}"

        elif kind == FragmentKind.LIST_ITEM:
            indent = "  " * max(0, (fragment.level or 1) - 1)
            return f"{indent}{self._list_marker()} {self._list_item_text(fragment, text)}"

        elif kind == FragmentKind.LIST:
            items = [line.strip() for line in text.split("\n")]
            return "\n".join(f"{self._list_marker()} {item}" for item in items if item)

        elif kind == FragmentKind.TABLE:
            return f"```\n{text}\n```"

        elif kind == FragmentKind.FOOTER:
            return f"*{text}*"

        elif kind == FragmentKind.FOOTNOTE:
            return f"^[{text}]"

        elif kind == FragmentKind.PAGE_NUMBER:
            return f"**Page {self._page_number(text)}**"

        elif kind == FragmentKind.BARCODE:
            return f"`[Barcode: {text}]`"

        # Paragraph, text block, unknown
        return text

    def table_of_contents(self, fragments: List[Fragment]) -> str:
        """Nested bullet list linking every title/header up to ``toc_max_depth``."""
        lines = [TOC_HEADING, ""]
        seen: Dict[str, int] = {}
        for fragment in fragments:
            if fragment.kind not in (FragmentKind.TITLE, FragmentKind.HEADER):
                continue
            text = fragment.stripped_text
            if not text:
                continue
            # Anchors are numbered over every rendered heading, listed or not
            slug = slugify(text)
            count = seen.get(slug, 0)
            seen[slug] = count + 1
            anchor = slug if count == 0 else f"{slug}-{count}"

            level = self.heading_level(fragment)
            if level > self.config.toc_max_depth:
                continue

            lines.append(f"{'  ' * (level - 1)}- [{text}](#{anchor})")

        if len(lines) == 2:
            return ""
        return "\n".join(lines)

    def render(self, fragments: List[Fragment]) -> str:
        """
        Render a full document.

        Args:
            fragments: Fragments in reading order

        Returns:
            Markdown text, fragments separated by blank lines

        Raises:
            MarkdownGenerationError: If ``fragments`` is empty
        """
        if not fragments:
            raise MarkdownGenerationError(NO_ELEMENTS_MESSAGE)

        blocks = []
        if self.config.include_table_of_contents:
            toc = self.table_of_contents(fragments)
            if toc:
                blocks.append(toc)

        current_page = None
        for fragment in fragments:
            if self.config.add_page_breaks and fragment.page != current_page:
                if current_page is not None:
                    blocks.append(f"*Page {fragment.page}*")
                current_page = fragment.page

            rendered = self.render_fragment(fragment)
            if rendered:
                blocks.append(rendered)

        self.log.debug(f"Rendered {len(blocks)} Markdown block(s) from {len(fragments)} fragment(s)")
        return "\n\n".join(blocks)


def render_markdown(
    fragments: List[Fragment],
    config: Optional[MarkdownConfig] = None,
    processing: Optional[ProcessingConfig] = None,
    log: Optional[logging.Logger] = None
) -> str:
    """Functional wrapper around ``MarkdownAssembler.render``."""
    return MarkdownAssembler(config, processing, log).render(fragments)
