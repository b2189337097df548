"""
Header/footer classification by page region and cross-page frequency.

Provides:
- Page-number recognition
- The cross-page text frequency reduce step
- A classifier combining region, percentage, frequency, smart and
  multi-region strategies by logical OR
- A post-filter that drops classified boilerplate

Frequency detection needs every page of a document: run
``collect_text_frequencies`` over all pages first, then classify pages
individually (in any order, or concurrently) with the shared result.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .fragments import Fragment, FragmentKind
from ..config import HeaderFooterDetectionConfig, ProcessingConfig

logger = logging.getLogger(__name__)

STRATEGY_METADATA_KEY = "header_footer_strategy"

# Only loosely-typed text is re-tagged; titles, tables etc. keep their role
ELIGIBLE_KINDS = frozenset({
    FragmentKind.TEXT_BLOCK,
    FragmentKind.PARAGRAPH,
    FragmentKind.UNKNOWN,
})

PAGE_NUMBER_PATTERNS = [
    re.compile(r"^\d+$"),
    re.compile(r"^[-–—]\s*\d+\s*[-–—]$"),
    re.compile(r"^page\s*\d+(\s*(of|/)\s*\d+)?$", re.IGNORECASE),
    re.compile(r"^\d+\s*(of|/)\s*\d+$", re.IGNORECASE),
    re.compile(r"^第\s*\d+\s*页(\s*[,，]?\s*共\s*\d+\s*页)?$"),
    re.compile(r"^[ivxlcdm]+$", re.IGNORECASE),
]


def is_page_number(text: Optional[str]) -> bool:
    """Recognise bare page numbers such as "3", "- 3 -", "Page 3 of 10"."""
    stripped = (text or "").strip()
    if not stripped:
        return False
    return any(p.match(stripped) for p in PAGE_NUMBER_PATTERNS)


def normalize_text(text: Optional[str]) -> str:
    """Key used for frequency counting: case and digits ignored, spacing collapsed."""
    collapsed = " ".join((text or "").lower().split())
    return re.sub(r"\d+", "#", collapsed)


# ============================================================================
# Cross-page frequency (reduce step)
# ============================================================================

@dataclass
class TextFrequencies:
    """Which pages each normalized text appears on."""
    pages_by_text: Dict[str, Set[int]] = field(default_factory=dict)
    total_pages: int = 0

    def rate(self, text: Optional[str]) -> float:
        """Fraction of pages on which ``text`` (normalized) occurs."""
        if self.total_pages == 0:
            return 0.0
        pages = self.pages_by_text.get(normalize_text(text), set())
        return len(pages) / self.total_pages


def collect_text_frequencies(fragments: Iterable[Fragment]) -> TextFrequencies:
    """Aggregate text occurrences across all pages of a document."""
    frequencies = TextFrequencies()
    pages: Set[int] = set()
    for fragment in fragments:
        pages.add(fragment.page)
        key = normalize_text(fragment.text)
        if key:
            frequencies.pages_by_text.setdefault(key, set()).add(fragment.page)
    frequencies.total_pages = len(pages)
    return frequencies


# ============================================================================
# Classifier
# ============================================================================

@dataclass
class HeaderFooterMatch:
    """Outcome of classifying one fragment."""
    kind: FragmentKind
    strategies: List[str] = field(default_factory=list)


class HeaderFooterClassifier:
    """
    Marks recurring or positional page boilerplate.

    Positions are measured at the fragment's vertical center. Region-based
    bands are in absolute points from the page top; percentage and
    multi-region bands are fractions of page height. Fragment coordinates
    are converted using ``processing.page_height`` as needed.
    """

    def __init__(
        self,
        config: HeaderFooterDetectionConfig,
        processing: ProcessingConfig,
        log: Optional[logging.Logger] = None
    ):
        self.config = config
        self.processing = processing
        self.log = log or logger

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------

    def _center_fraction(self, fragment: Fragment) -> float:
        cy = fragment.box.center[1]
        if self.processing.normalized_coordinates:
            return cy
        return cy / self.processing.page_height

    def _center_points(self, fragment: Fragment) -> float:
        cy = fragment.box.center[1]
        if self.processing.normalized_coordinates:
            return cy * self.processing.page_height
        return cy

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _region_based(self, fragment: Fragment) -> Optional[FragmentKind]:
        region = self.config.region_based
        y = self._center_points(fragment)
        if y <= region.header_region_y + region.region_tolerance:
            return FragmentKind.HEADER
        if y >= region.footer_region_y - region.region_tolerance:
            return FragmentKind.FOOTER
        return None

    def _percentage_based(self, fragment: Fragment) -> Optional[FragmentKind]:
        pct = self.config.percentage_based
        y = self._center_fraction(fragment)
        if y <= pct.header_region_height:
            return FragmentKind.HEADER
        if y >= 1.0 - pct.footer_region_height:
            return FragmentKind.FOOTER
        return None

    def _extra_bands(self, bands: List[List[float]]) -> List[Tuple[float, float]]:
        # The conventional band counts towards max_regions
        limit = max(0, self.config.multi_region.max_regions - 1)
        return [(float(b[0]), float(b[1])) for b in bands[:limit]]

    def _multi_region(self, fragment: Fragment) -> Optional[FragmentKind]:
        multi = self.config.multi_region
        y = self._center_fraction(fragment)
        for start, end in self._extra_bands(multi.header_regions):
            if start <= y <= end:
                return FragmentKind.HEADER
        for start, end in self._extra_bands(multi.footer_regions):
            if start <= y <= end:
                return FragmentKind.FOOTER
        return None

    def _frequency_based(
        self,
        fragment: Fragment,
        frequencies: Optional[TextFrequencies]
    ) -> Optional[FragmentKind]:
        freq = self.config.frequency_based
        if frequencies is None or frequencies.total_pages < freq.min_pages:
            return None
        if not normalize_text(fragment.text):
            return None

        rate = frequencies.rate(fragment.text)
        if self._center_fraction(fragment) < 0.5:
            if rate > freq.header_frequency_threshold:
                return FragmentKind.HEADER
        elif rate > freq.footer_frequency_threshold:
            return FragmentKind.FOOTER
        return None

    def _smart_denylist(self, fragment: Fragment) -> Optional[FragmentKind]:
        smart = self.config.smart_detection
        text = fragment.stripped_text.lower()
        if not text:
            return None
        if any(text.startswith(entry.lower()) for entry in smart.exclude_common_headers if entry):
            return FragmentKind.HEADER
        if any(text.startswith(entry.lower()) for entry in smart.exclude_common_footers if entry):
            return FragmentKind.FOOTER
        return None

    def _is_excluded(self, fragment: Fragment) -> bool:
        smart = self.config.smart_detection
        if not smart.enabled:
            return False
        text = fragment.stripped_text
        if not smart.min_header_footer_length <= len(text) <= smart.max_header_footer_length:
            return True
        return smart.exclude_page_numbers and is_page_number(text)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect(
        self,
        fragment: Fragment,
        frequencies: Optional[TextFrequencies] = None
    ) -> Optional[HeaderFooterMatch]:
        """
        Classify a single fragment.

        Returns:
            HeaderFooterMatch naming the role and every strategy that fired,
            or None when the fragment is ordinary content
        """
        if not self.config.enabled or fragment.kind not in ELIGIBLE_KINDS:
            return None
        if self._is_excluded(fragment):
            return None

        checks = []
        if self.config.smart_detection.enabled:
            checks.append(("smart", self._smart_denylist))
        if self.config.region_based.enabled:
            checks.append(("region", self._region_based))
        if self.config.percentage_based.enabled:
            checks.append(("percentage", self._percentage_based))
        if self.config.multi_region.enabled:
            checks.append(("multi_region", self._multi_region))
        if self.config.frequency_based.enabled:
            checks.append(("frequency", lambda f: self._frequency_based(f, frequencies)))

        match: Optional[HeaderFooterMatch] = None
        for name, check in checks:
            kind = check(fragment)
            if kind is None:
                continue
            if match is None:
                match = HeaderFooterMatch(kind=kind)
            match.strategies.append(name)
        return match

    def classify(
        self,
        fragments: List[Fragment],
        frequencies: Optional[TextFrequencies] = None
    ) -> List[Fragment]:
        """Re-tag header/footer fragments; order and all other fragments are kept."""
        if not self.config.enabled:
            return list(fragments)

        result = []
        tagged = 0
        for fragment in fragments:
            match = self.detect(fragment, frequencies)
            if match is None:
                result.append(fragment)
                continue
            tagged += 1
            self.log.debug(
                f"Page {fragment.page}: {fragment.stripped_text[:40]!r} -> "
                f"{match.kind.value} via {', '.join(match.strategies)}"
            )
            updated = fragment.update(kind=match.kind)
            result.append(updated.with_metadata(**{STRATEGY_METADATA_KEY: ",".join(match.strategies)}))

        if tagged:
            self.log.info(f"Tagged {tagged} header/footer fragment(s)")
        return result


def classify_header_footer(
    fragments: List[Fragment],
    config: HeaderFooterDetectionConfig,
    processing: ProcessingConfig,
    frequencies: Optional[TextFrequencies] = None,
    log: Optional[logging.Logger] = None
) -> List[Fragment]:
    """Functional wrapper around ``HeaderFooterClassifier.classify``."""
    return HeaderFooterClassifier(config, processing, log).classify(fragments, frequencies)


def drop_header_footer(fragments: List[Fragment]) -> List[Fragment]:
    """Remove fragments tagged by header/footer classification."""
    return [f for f in fragments if STRATEGY_METADATA_KEY not in f.metadata]
