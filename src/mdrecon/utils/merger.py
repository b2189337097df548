"""
Directional merging of split fragments.

Provides:
- Merge eligibility with same-line vs. general distance thresholds
- Construction of the merged (union) fragment
- Repeated greedy merge passes until nothing changes

Recognition services often split one logical block into pieces, e.g. a
numbered marker detected separately from the text that follows it on the
same row, or a paragraph broken at each line.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .fragments import Fragment, sort_by_position
from ..config import MergeThreshold, ProcessingConfig
from ..errors import UnitMismatchError

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Fragments after merging and the number of merge operations performed."""
    fragments: List[Fragment] = field(default_factory=list)
    merged_count: int = 0


# ============================================================================
# Eligibility
# ============================================================================

def check_threshold_units(config: ProcessingConfig):
    """
    Ensure both merge thresholds match the coordinate space of the run.

    Raises:
        UnitMismatchError: On the first threshold whose unit flag disagrees
    """
    for name in ("merge_distance_threshold", "horizontal_merge_threshold"):
        threshold: MergeThreshold = getattr(config, name)
        if threshold.is_normalized != config.normalized_coordinates:
            raise UnitMismatchError(name, threshold.is_normalized, config.normalized_coordinates)


def select_threshold(a: Fragment, b: Fragment, config: ProcessingConfig) -> MergeThreshold:
    """Horizontal threshold for fragments on the same visual row, general one otherwise."""
    if a.box.is_vertically_aligned(b.box, config.same_line_tolerance):
        return config.horizontal_merge_threshold
    return config.merge_distance_threshold


def can_merge(a: Fragment, b: Fragment, config: ProcessingConfig) -> bool:
    """
    Decide whether two fragments are pieces of the same logical block.

    Requires identical mergeable kinds, the same page, and a gap distance
    strictly below the applicable threshold.

    Raises:
        UnitMismatchError: If a threshold's unit flag disagrees with the
            configured coordinate space
    """
    check_threshold_units(config)

    if a.kind != b.kind or not a.kind.is_mergeable:
        return False
    if a.page != b.page:
        return False

    threshold = select_threshold(a, b, config)
    return a.box.distance(b.box) < threshold.value


# ============================================================================
# Merging
# ============================================================================

def _join_text(first: Optional[str], second: Optional[str]) -> Optional[str]:
    if first is None:
        return second
    if second is None:
        return first
    if not first or not second:
        return first + second
    if first[-1].isspace() or second[0].isspace():
        return first + second
    return f"{first} {second}"


def _join_bytes(first: Optional[bytes], second: Optional[bytes]) -> Optional[bytes]:
    if first is None:
        return second
    if second is None:
        return first
    return first + second


def merge_fragments(first: Fragment, second: Fragment) -> Fragment:
    """
    Combine two fragments into a new one.

    The result covers the union of both boxes, keeps the lower confidence,
    and takes ``second``'s value for any metadata key both define. It is a
    new fragment with its own identity.
    """
    metadata = dict(first.metadata)
    metadata.update(second.metadata)

    return Fragment(
        kind=first.kind,
        box=first.box.union(second.box),
        text=_join_text(first.text, second.text),
        confidence=min(first.confidence, second.confidence),
        page=first.page,
        raw_bytes=_join_bytes(first.raw_bytes, second.raw_bytes),
        level=first.level,
        metadata=metadata,
    )


def merge_adjacent(
    fragments: List[Fragment],
    config: ProcessingConfig,
    log: Optional[logging.Logger] = None
) -> MergeResult:
    """
    Merge neighbouring fragments in reading order until a fixed point.

    Each pass walks the sequence once, folding every following fragment
    that ``can_merge`` with the current one into it. Passes repeat until one
    makes no change, so chains of three or more pieces collapse fully.

    Args:
        fragments: Fragments to merge (sorted into reading order first)
        config: Processing thresholds
        log: Logger to use instead of the module logger

    Returns:
        MergeResult with the merged sequence and operation count

    Raises:
        UnitMismatchError: If a threshold does not match the coordinate space
    """
    log = log or logger
    check_threshold_units(config)

    ordered = sort_by_position(fragments)
    merged_count = 0
    passes = 0
    changed = True

    while changed:
        changed = False
        passes += 1
        result: List[Fragment] = []
        i = 0
        while i < len(ordered):
            current = ordered[i]
            while i + 1 < len(ordered) and can_merge(current, ordered[i + 1], config):
                log.debug(
                    f"Merging {ordered[i + 1].id[:8]} into {current.id[:8]} "
                    f"(page {current.page}, {current.kind.value})"
                )
                current = merge_fragments(current, ordered[i + 1])
                merged_count += 1
                changed = True
                i += 1
            result.append(current)
            i += 1
        ordered = result

    if merged_count:
        log.info(f"Merged {merged_count} fragment pair(s) in {passes} pass(es)")
    return MergeResult(fragments=ordered, merged_count=merged_count)
