"""
Pattern-driven header and list item classification.

Provides:
- Header detection (named, numbered, roman, lettered, optional heuristic)
  with nesting level and confidence
- List item detection (numbered, lettered, bullet, roman, custom) with
  marker extraction and indentation-based nesting
- A stage function applying both to a fragment sequence

All patterns come from configuration; nothing is built in. Patterns are
compiled once per configuration. Unmatched or empty text always yields a
negative result with zero confidence.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern

from .fragments import Fragment, FragmentKind
from ..config import HeaderDetectionConfig, ListDetectionConfig

logger = logging.getLogger(__name__)

SENTENCE_ENDINGS = (".", "!", "?", ";", "。", "！", "？", "；")

# Disjoint per-category bases: length only moves a score inside its band,
# so named > numbered > roman/lettered > heuristic always holds
HEADER_CATEGORY_BASE = {
    "named": 0.95,
    "numbered": 0.85,
    "roman": 0.75,
    "lettered": 0.75,
}
SHORT_HEADER_BONUS = 0.03
LONG_HEADER_PENALTY = 0.04
HEURISTIC_CONFIDENCE = 0.4

# Roman before lettered so "I." and "V." read as numerals
HEADER_CATEGORIES = ("named", "numbered", "roman", "lettered")
LIST_CATEGORIES = ("numbered", "lettered", "bullet", "roman", "custom")

# Fragments whose role is settled upstream
PASSTHROUGH_KINDS = frozenset({
    FragmentKind.TITLE,
    FragmentKind.TABLE,
    FragmentKind.IMAGE,
    FragmentKind.BARCODE,
    FragmentKind.FOOTER,
    FragmentKind.FOOTNOTE,
    FragmentKind.PAGE_NUMBER,
    FragmentKind.LIST,
})


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class HeaderResult:
    """Result of header detection."""
    is_header: bool = False
    level: int = 0
    category: Optional[str] = None
    confidence: float = 0.0
    marker: Optional[str] = None


@dataclass
class ListItemResult:
    """Result of list item detection."""
    is_list_item: bool = False
    level: int = 0
    marker: Optional[str] = None
    category: Optional[str] = None
    confidence: float = 0.0


@dataclass
class CompiledPatterns:
    """Compiled regular expressions, keyed by category."""
    header: Dict[str, List[Pattern]] = field(default_factory=dict)
    list_item: Dict[str, List[Pattern]] = field(default_factory=dict)

    @classmethod
    def from_config(
        cls,
        header_config: HeaderDetectionConfig,
        list_config: ListDetectionConfig
    ) -> 'CompiledPatterns':
        hp = header_config.patterns
        lp = list_config.patterns
        return cls(
            header={
                "named": [re.compile(p) for p in hp.named_headers],
                "numbered": [re.compile(p) for p in hp.numbered_headers],
                "lettered": [re.compile(p) for p in hp.lettered_headers],
                "roman": [re.compile(p) for p in hp.roman_headers],
            },
            list_item={
                "numbered": [re.compile(p) for p in lp.numbered_markers],
                "lettered": [re.compile(p) for p in lp.lettered_markers],
                "bullet": [re.compile(p) for p in lp.bullet_markers],
                "roman": [re.compile(p) for p in lp.roman_markers],
                "custom": [re.compile(p) for p in lp.custom_markers],
            },
        )


def _first_match(patterns: List[Pattern], text: str) -> Optional[str]:
    """Return the marker of the first matching pattern (group 1, else the whole match)."""
    for pattern in patterns:
        match = pattern.match(text)
        if match:
            marker = match.group(1) if match.re.groups else match.group(0)
            return (marker or match.group(0)).strip()
    return None


# ============================================================================
# Pattern Classifier
# ============================================================================

class PatternClassifier:
    """
    Assigns header and list item roles from configured text patterns.

    Example:
        classifier = PatternClassifier(config.header_detection,
                                       config.list_detection)
        result = classifier.detect_header(fragment)
        if result.is_header:
            print(result.level, result.category)
    """

    def __init__(
        self,
        header_config: HeaderDetectionConfig,
        list_config: ListDetectionConfig,
        log: Optional[logging.Logger] = None
    ):
        self.header_config = header_config
        self.list_config = list_config
        self.log = log or logger
        self.patterns = CompiledPatterns.from_config(header_config, list_config)

    # ------------------------------------------------------------------
    # Headers
    # ------------------------------------------------------------------

    def _custom_level(self, text: str) -> Optional[int]:
        """Look up the named-level table by case-insensitive substring, longest key first."""
        lowered = text.lower()
        table = self.header_config.level_calculation.custom_levels
        for key in sorted(table, key=len, reverse=True):
            if key and key.lower() in lowered:
                return table[key]
        return None

    def _header_level(self, category: str, marker: str) -> int:
        calc = self.header_config.level_calculation
        if category == "numbered" and calc.auto_detect_levels:
            numeric = re.match(r"\d+(?:\.\d+)*", marker)
            components = numeric.group(0) if numeric else marker
            level = len([part for part in components.split(".") if part])
        else:
            level = self._custom_level(marker) or 1

        level += self.header_config.markdown_level_offset
        return max(1, min(level, calc.max_level))

    def _header_confidence(self, text: str, category: str) -> float:
        confidence = HEADER_CATEGORY_BASE[category]
        if len(text) < 10:
            confidence += SHORT_HEADER_BONUS
        elif len(text) > 50:
            confidence -= LONG_HEADER_PENALTY
        return max(0.0, min(confidence, 1.0))

    def _looks_like_heading(self, text: str) -> bool:
        letters = [c for c in text if c.isalpha()]
        return (
            len(letters) >= 3
            and len(text) <= self.header_config.max_heuristic_length
            and all(c.isupper() for c in letters)
        )

    def detect_header(self, fragment: Fragment) -> HeaderResult:
        """
        Decide whether a fragment is a structural header.

        Categories are tried in order of confidence: named, numbered,
        roman, lettered, then (only when enabled) the all-caps heuristic.
        Text ending in sentence punctuation, or longer than
        ``max_header_length``, is never a header.

        Args:
            fragment: Fragment whose text is examined

        Returns:
            HeaderResult; negative with zero confidence when nothing matches
        """
        if not self.header_config.enabled:
            return HeaderResult()

        text = fragment.stripped_text
        if not text or len(text) > self.header_config.max_header_length:
            return HeaderResult()
        if text.endswith(SENTENCE_ENDINGS):
            return HeaderResult()

        for category in HEADER_CATEGORIES:
            marker = _first_match(self.patterns.header[category], text)
            if marker is None:
                continue
            return HeaderResult(
                is_header=True,
                level=self._header_level(category, marker),
                category=category,
                confidence=self._header_confidence(text, category),
                marker=marker,
            )

        if self.header_config.enable_content_based_detection and self._looks_like_heading(text):
            calc = self.header_config.level_calculation
            level = min(1 + self.header_config.markdown_level_offset, calc.max_level)
            return HeaderResult(
                is_header=True,
                level=level,
                category="heuristic",
                confidence=HEURISTIC_CONFIDENCE,
            )

        return HeaderResult()

    # ------------------------------------------------------------------
    # List items
    # ------------------------------------------------------------------

    def _list_level(self, fragment: Fragment) -> int:
        indent = self.list_config.indentation
        if not indent.enable_indentation_detection:
            return 1
        offset = fragment.box.min_x - indent.base_indentation
        # Guard against float noise just under a level boundary
        level = math.floor(offset / indent.level_threshold + 1e-9)
        return max(1, level)

    def _list_confidence(self, text: str, category: str) -> float:
        confidence = 0.8
        if len(text) < 20:
            confidence += 0.1
        elif len(text) > 100:
            confidence -= 0.2
        confidence += 0.1 if category == "bullet" else 0.06
        return max(0.0, min(confidence, 1.0))

    def detect_list_item(self, fragment: Fragment) -> ListItemResult:
        """
        Decide whether a fragment is a list item and extract its marker.

        Args:
            fragment: Fragment whose text and horizontal offset are examined

        Returns:
            ListItemResult; negative with zero confidence when nothing matches
        """
        if not self.list_config.enabled:
            return ListItemResult()

        text = fragment.stripped_text
        if not text:
            return ListItemResult()

        for category in LIST_CATEGORIES:
            marker = _first_match(self.patterns.list_item[category], text)
            if marker is None:
                continue
            return ListItemResult(
                is_list_item=True,
                level=self._list_level(fragment),
                marker=marker,
                category=category,
                confidence=self._list_confidence(text, category),
            )

        return ListItemResult()

    # ------------------------------------------------------------------
    # Stage
    # ------------------------------------------------------------------

    def classify(self, fragments: List[Fragment]) -> List[Fragment]:
        """
        Apply header and list detection to a fragment sequence.

        Header fragments only gain a pattern-derived level (they stay
        headers either way). Other content fragments become Header or
        ListItem on a match. Order is preserved.
        """
        result = []
        for fragment in fragments:
            if fragment.kind in PASSTHROUGH_KINDS:
                result.append(fragment)
                continue

            header = self.detect_header(fragment)
            if fragment.kind == FragmentKind.HEADER:
                if header.is_header and header.category != "heuristic":
                    fragment = fragment.update(level=header.level).with_metadata(
                        header_category=header.category
                    )
                result.append(fragment)
                continue

            if header.is_header:
                self.log.debug(
                    f"Header ({header.category}, level {header.level}): {fragment.stripped_text[:40]!r}"
                )
                result.append(
                    fragment.update(kind=FragmentKind.HEADER, level=header.level).with_metadata(
                        header_category=header.category,
                        header_confidence=f"{header.confidence:.2f}",
                    )
                )
                continue

            item = self.detect_list_item(fragment)
            if item.is_list_item:
                result.append(
                    fragment.update(kind=FragmentKind.LIST_ITEM, level=item.level).with_metadata(
                        list_marker=item.marker,
                        list_category=item.category,
                    )
                )
                continue

            result.append(fragment)
        return result


def classify_patterns(
    fragments: List[Fragment],
    header_config: HeaderDetectionConfig,
    list_config: ListDetectionConfig,
    log: Optional[logging.Logger] = None
) -> List[Fragment]:
    """Functional wrapper around ``PatternClassifier.classify``."""
    return PatternClassifier(header_config, list_config, log=log).classify(fragments)
