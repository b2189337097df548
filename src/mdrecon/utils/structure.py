"""
Structural clean-up around header and list detection.

Provides:
- Rejoining of headings split across several fragments
- Rejoining of list items split across several fragments, with marker
  normalisation of the joined text
- Table-of-contents page detection and removal of trailing page numbers
  from its entries

Split merging runs before pattern classification, on fragments the
header/footer stage left alone. Each merge runs twice: first with a tight
same-line tolerance, then with a looser multi-line one. Tolerances are
fractions of page height and are measured between top edges.
"""

import logging
import re
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .fragments import Fragment, FragmentKind
from .header_footer import STRATEGY_METADATA_KEY
from .patterns import PASSTHROUGH_KINDS, SENTENCE_ENDINGS, PatternClassifier
from ..config import ProcessingConfig

logger = logging.getLogger(__name__)

LIST_MARKER_SEPARATORS = re.compile(
    r"^([a-zA-Z0-9一二三四五六七八九十甲乙丙丁戊己庚辛壬癸•\-\*])\s*[）\)〉\.\-\*]\s*(.*)$"
)
# Trailing page number, separated by spaces or dot leaders
TOC_PAGE_NUMBER = re.compile(r"^(.*?\S)(?:\s*[.·…⋯_]+\s*|\s+)\d+$")

TOC_METADATA_KEY = "toc_entry"


def normalize_list_item_text(text: Optional[str]) -> str:
    """
    Give a joined list item one canonical marker form.

    Letter and digit markers become ``a)`` / ``1)`` whatever separator
    they used; Chinese numerals and bullets are kept. Exactly one space
    separates marker and content. Text without such a marker is only
    stripped.
    """
    stripped = (text or "").strip()
    match = LIST_MARKER_SEPARATORS.match(stripped)
    if not match:
        return stripped
    marker, content = match.group(1), match.group(2).strip()
    if marker.isascii() and marker.isalnum():
        marker = f"{marker})"
    return f"{marker} {content}"


def normalize_toc_item_text(text: Optional[str]) -> str:
    """Drop the page number that ends a table-of-contents entry."""
    stripped = (text or "").strip()
    match = TOC_PAGE_NUMBER.match(stripped)
    return match.group(1).strip() if match else stripped


# ============================================================================
# Structure Normalizer
# ============================================================================

class StructureNormalizer:
    """
    Rejoins split headings and list items, and tidies table-of-contents pages.

    Example:
        normalizer = StructureNormalizer(classifier, config.processing)
        page = normalizer.merge_split_headers(page)
        page = normalizer.merge_split_list_items(page)
    """

    def __init__(
        self,
        classifier: PatternClassifier,
        processing: ProcessingConfig,
        log: Optional[logging.Logger] = None
    ):
        self.classifier = classifier
        self.header_config = classifier.header_config
        self.list_config = classifier.list_config
        self.processing = processing
        self.log = log or logger

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _distance(self, tolerance: float) -> float:
        if self.processing.normalized_coordinates:
            return tolerance
        return tolerance * self.processing.page_height

    def _is_candidate(self, fragment: Fragment) -> bool:
        return (
            fragment.kind not in PASSTHROUGH_KINDS
            and STRATEGY_METADATA_KEY not in fragment.metadata
            and bool(fragment.stripped_text)
        )

    def _starts_block(self, fragment: Fragment) -> bool:
        """True when the fragment reads as a heading or list item in its own right."""
        return (
            fragment.kind in (FragmentKind.HEADER, FragmentKind.LIST_ITEM)
            or self.classifier.detect_header(fragment).is_header
            or self.classifier.detect_list_item(fragment).is_list_item
        )

    def _continues(self, head: Fragment, candidate: Fragment, tolerance: float) -> bool:
        if candidate.page != head.page or not self._is_candidate(candidate):
            return False
        if abs(candidate.box.min_y - head.box.min_y) > self._distance(tolerance):
            return False
        return not candidate.stripped_text.endswith(SENTENCE_ENDINGS)

    def _merge_pass(
        self,
        fragments: List[Fragment],
        is_head: Callable[[Fragment], bool],
        continues: Callable[[Fragment, Fragment], bool],
        combine: Callable[[List[Fragment]], Fragment]
    ) -> List[Fragment]:
        result = []
        i = 0
        while i < len(fragments):
            head = fragments[i]
            group = [head]
            if self._is_candidate(head) and is_head(head):
                j = i + 1
                while j < len(fragments) and continues(head, fragments[j]):
                    group.append(fragments[j])
                    j += 1
            result.append(combine(group) if len(group) > 1 else head)
            i += len(group)
        return result

    def _joined(self, group: List[Fragment]) -> Dict[str, Any]:
        box = group[0].box
        for fragment in group[1:]:
            box = box.union(fragment.box)
        return {
            "box": box,
            "text": " ".join(f.stripped_text for f in group),
            "confidence": float(np.mean([f.confidence for f in group])),
        }

    # ------------------------------------------------------------------
    # Headings
    # ------------------------------------------------------------------

    def _is_header_head(self, fragment: Fragment) -> bool:
        return fragment.kind == FragmentKind.HEADER or self.classifier.detect_header(fragment).is_header

    def _combine_headers(self, group: List[Fragment]) -> Fragment:
        head = group[0]
        detected = self.classifier.detect_header(head)
        level = head.level if head.level is not None else detected.level or None
        self.log.debug(f"Rejoined heading from {len(group)} fragments: {head.stripped_text[:40]!r}")
        return head.update(kind=FragmentKind.HEADER, level=level, **self._joined(group)).with_metadata(
            merged_headers=len(group)
        )

    def merge_split_headers(self, fragments: List[Fragment]) -> List[Fragment]:
        """
        Fold continuation fragments into the heading they complete.

        A heading is a fragment already tagged Header or matching a header
        pattern. A continuation follows it directly in reading order on the
        same page, starts within the tolerance of the heading's top edge,
        does not end a sentence and is not a heading or list item itself.
        The joined fragment keeps the heading's identity, covers the union
        of the boxes and averages the confidences.

        Args:
            fragments: One page in reading order

        Returns:
            The page with split headings rejoined
        """
        if not self.header_config.enable_header_merging or len(fragments) < 2:
            return list(fragments)

        current = list(fragments)
        for tolerance in (self.header_config.same_line_tolerance, self.header_config.multi_line_tolerance):
            current = self._merge_pass(
                current,
                self._is_header_head,
                lambda head, candidate, tol=tolerance: (
                    self._continues(head, candidate, tol) and not self._starts_block(candidate)
                ),
                self._combine_headers,
            )

        merged = len(fragments) - len(current)
        if merged:
            self.log.info(f"Merged {merged} split heading fragment(s)")
        return current

    # ------------------------------------------------------------------
    # List items
    # ------------------------------------------------------------------

    def _is_list_head(self, fragment: Fragment) -> bool:
        return fragment.kind != FragmentKind.HEADER and self.classifier.detect_list_item(fragment).is_list_item

    def _combine_list_items(self, group: List[Fragment]) -> Fragment:
        head = group[0]
        joined = self._joined(group)
        joined["text"] = normalize_list_item_text(joined["text"])
        item = self.classifier.detect_list_item(head.update(text=joined["text"]))
        self.log.debug(f"Rejoined list item from {len(group)} fragments: {joined['text'][:40]!r}")
        updated = head.update(kind=FragmentKind.LIST_ITEM, level=item.level or head.level, **joined)
        metadata = {"merged_list_items": len(group)}
        if item.is_list_item:
            metadata.update(list_marker=item.marker, list_category=item.category)
        return updated.with_metadata(**metadata)

    def merge_split_list_items(self, fragments: List[Fragment]) -> List[Fragment]:
        """
        Fold continuation fragments into the list item they complete.

        Pieces on the same row (within ``same_line_tolerance``) always
        join. Pieces within ``multi_line_tolerance`` join only when they
        do not end a sentence and do not start a new heading or list item.
        The joined text gets a canonical marker via
        ``normalize_list_item_text``.
        """
        if not self.list_config.enable_list_item_merging or len(fragments) < 2:
            return list(fragments)

        same_line = self.list_config.same_line_tolerance
        multi_line = self.list_config.multi_line_tolerance

        def same_row(head: Fragment, candidate: Fragment) -> bool:
            return (
                candidate.page == head.page
                and self._is_candidate(candidate)
                and abs(candidate.box.min_y - head.box.min_y) <= self._distance(same_line)
            )

        def next_line(head: Fragment, candidate: Fragment) -> bool:
            return self._continues(head, candidate, multi_line) and not self._starts_block(candidate)

        current = list(fragments)
        for continues in (same_row, next_line):
            current = self._merge_pass(current, self._is_list_head, continues, self._combine_list_items)

        merged = len(fragments) - len(current)
        if merged:
            self.log.info(f"Merged {merged} split list item fragment(s)")
        return current

    def merge_split(self, fragments: List[Fragment]) -> List[Fragment]:
        """Rejoin split headings, then split list items."""
        return self.merge_split_list_items(self.merge_split_headers(fragments))

    # ------------------------------------------------------------------
    # Table of contents
    # ------------------------------------------------------------------

    def is_toc_page(self, fragments: List[Fragment]) -> bool:
        """
        Decide whether a classified page is a table of contents.

        Header/footer boilerplate is ignored. The page qualifies when it
        has at least ``toc_min_elements`` remaining fragments and the share
        of headings among them reaches ``toc_header_ratio``.
        """
        content = [f for f in fragments if STRATEGY_METADATA_KEY not in f.metadata]
        if not content or len(content) < self.header_config.toc_min_elements:
            return False
        headers = sum(1 for f in content if f.kind == FragmentKind.HEADER)
        return headers / len(content) >= self.header_config.toc_header_ratio

    def _toc_entry(self, fragment: Fragment) -> Fragment:
        text = normalize_toc_item_text(fragment.text)
        was_header = self.classifier.detect_header(fragment).is_header
        # Keep the page number when dropping it would leave something that is no longer a heading
        if text != fragment.stripped_text and was_header:
            if not self.classifier.detect_header(fragment.update(text=text)).is_header:
                text = fragment.stripped_text
        return fragment.update(text=text).with_metadata(**{TOC_METADATA_KEY: "true"})

    def normalize_toc_page(self, fragments: List[Fragment]) -> List[Fragment]:
        """Strip trailing page numbers from the headings of a table-of-contents page."""
        if not self.header_config.enable_toc_detection or not self.is_toc_page(fragments):
            return list(fragments)

        page = fragments[0].page
        self.log.info(f"Page {page} read as a table of contents")
        return [
            self._toc_entry(f)
            if f.kind == FragmentKind.HEADER and STRATEGY_METADATA_KEY not in f.metadata
            else f
            for f in fragments
        ]


def merge_split_structure(
    fragments: List[Fragment],
    classifier: PatternClassifier,
    processing: ProcessingConfig,
    log: Optional[logging.Logger] = None
) -> List[Fragment]:
    """Functional wrapper rejoining split headings, then split list items."""
    return StructureNormalizer(classifier, processing, log=log).merge_split(fragments)
