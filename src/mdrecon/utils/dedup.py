"""
Overlap-based deduplication of fragments.

When the producer reports the same region twice (for example once as a
paragraph and once as a text block), the copies overlap heavily. The
deduplicator keeps the more confident one.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .fragments import Fragment, position_key

logger = logging.getLogger(__name__)


@dataclass
class DeduplicationResult:
    """Surviving fragments (input order preserved) and how many were dropped."""
    fragments: List[Fragment] = field(default_factory=list)
    removed_count: int = 0


def is_duplicate(a: Fragment, b: Fragment, threshold: float) -> bool:
    """
    True if two fragments on the same page overlap past ``threshold``.

    Overlap percentage is relative to the receiver, so both directions are
    checked: a small box swallowed by a large one is a duplicate even though
    it covers only a sliver of the large box.
    """
    if a.page != b.page:
        return False
    return a.box.overlaps(b.box, threshold) or b.box.overlaps(a.box, threshold)


def deduplicate(
    fragments: List[Fragment],
    threshold: float,
    log: Optional[logging.Logger] = None
) -> DeduplicationResult:
    """
    Remove overlapping duplicates.

    Candidates are visited from highest to lowest confidence; ties go to the
    fragment that comes first in reading order. A candidate survives unless
    it duplicates one already kept.

    Args:
        fragments: Fragments in any order
        threshold: Overlap fraction in [0, 1]; strictly exceeded to count
        log: Logger to use instead of the module logger

    Returns:
        DeduplicationResult with survivors in their original relative order
    """
    log = log or logger

    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"Overlap threshold must be within [0, 1], got {threshold}")

    indexed = list(enumerate(fragments))
    reading_rank = {
        idx: rank
        for rank, (idx, _) in enumerate(
            sorted(indexed, key=lambda item: (position_key(item[1]), item[0]))
        )
    }
    candidates = sorted(
        indexed,
        key=lambda item: (-item[1].confidence, reading_rank[item[0]])
    )

    kept_indices = []
    kept: List[Fragment] = []
    for idx, fragment in candidates:
        duplicate_of = next((k for k in kept if is_duplicate(fragment, k, threshold)), None)
        if duplicate_of is not None:
            log.debug(
                f"Dropping fragment {fragment.id[:8]} ({fragment.kind.value}, "
                f"conf {fragment.confidence:.2f}) overlapping {duplicate_of.id[:8]}"
            )
            continue
        kept.append(fragment)
        kept_indices.append(idx)

    survivors = [fragments[i] for i in sorted(kept_indices)]
    removed = len(fragments) - len(survivors)
    if removed:
        log.info(f"Deduplication removed {removed} of {len(fragments)} fragments")
    return DeduplicationResult(fragments=survivors, removed_count=removed)
