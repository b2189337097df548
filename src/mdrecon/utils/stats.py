"""
Run-wide processing statistics.

A single ProcessingStatistics instance may be shared by every page and
document processed concurrently; all updates go through one lock.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List

import numpy as np

from .fragments import Fragment

logger = logging.getLogger(__name__)


def count_kinds(fragments: Iterable[Fragment]) -> Dict[str, int]:
    """Count fragments per kind value."""
    counts: Dict[str, int] = {}
    for fragment in fragments:
        counts[fragment.kind.value] = counts.get(fragment.kind.value, 0) + 1
    return counts


@dataclass
class ProcessingStatistics:
    """Counts and timings accumulated over a run."""
    total_fragments: int = 0
    deduplicated_fragments: int = 0
    merged_fragments: int = 0
    category_counts: Dict[str, int] = field(default_factory=dict)
    stage_timings: Dict[str, List[float]] = field(default_factory=dict)
    documents_processed: int = 0
    documents_failed: int = 0
    document_times: List[float] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def record_fragments(self, total: int = 0, deduplicated: int = 0, merged: int = 0):
        with self._lock:
            self.total_fragments += total
            self.deduplicated_fragments += deduplicated
            self.merged_fragments += merged

    def record_categories(self, counts: Dict[str, int]):
        with self._lock:
            for category, count in counts.items():
                self.category_counts[category] = self.category_counts.get(category, 0) + count

    def record_timing(self, stage: str, seconds: float):
        with self._lock:
            self.stage_timings.setdefault(stage, []).append(seconds)

    def record_document(self, success: bool, seconds: float = 0.0):
        with self._lock:
            if success:
                self.documents_processed += 1
                self.document_times.append(seconds)
            else:
                self.documents_failed += 1

    def reset(self):
        with self._lock:
            self.total_fragments = 0
            self.deduplicated_fragments = 0
            self.merged_fragments = 0
            self.category_counts = {}
            self.stage_timings = {}
            self.documents_processed = 0
            self.documents_failed = 0
            self.document_times = []

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def success_rate(self) -> float:
        """Fraction of documents processed successfully (0 when none attempted)."""
        with self._lock:
            attempted = self.documents_processed + self.documents_failed
            if attempted == 0:
                return 0.0
            return self.documents_processed / attempted

    @property
    def average_processing_time(self) -> float:
        with self._lock:
            if not self.document_times:
                return 0.0
            return float(np.mean(self.document_times))

    def to_dict(self) -> Dict[str, Any]:
        success_rate = self.success_rate
        average_time = self.average_processing_time
        with self._lock:
            return {
                "fragments": {
                    "total": self.total_fragments,
                    "deduplicated": self.deduplicated_fragments,
                    "merged": self.merged_fragments,
                },
                "categories": dict(self.category_counts),
                "stage_timings": {
                    stage: {
                        "calls": len(times),
                        "total_seconds": round(float(np.sum(times)), 4),
                        "mean_seconds": round(float(np.mean(times)), 4),
                    }
                    for stage, times in self.stage_timings.items()
                },
                "documents": {
                    "processed": self.documents_processed,
                    "failed": self.documents_failed,
                    "success_rate": round(success_rate, 3),
                    "average_processing_time": round(average_time, 3),
                },
            }
