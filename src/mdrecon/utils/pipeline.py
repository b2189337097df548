"""
Pipeline driver for Markdown reconstruction.

Provides:
- Processed document model
- Per-page stages (order, deduplicate, merge)
- The cross-page frequency barrier followed by per-page classification
- Markdown rendering and statistics collection
- Batch processing of several documents

Pages are independent except for frequency-based header/footer detection,
which needs every page's text before any page can be classified. Pages
may therefore run concurrently in two phases separated by that reduce.
"""

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .dedup import deduplicate
from .fragments import Fragment, group_by_page, sort_by_position
from .header_footer import (
    HeaderFooterClassifier,
    TextFrequencies,
    collect_text_frequencies,
    drop_header_footer,
)
from .markdown import MarkdownAssembler
from .merger import merge_adjacent
from .patterns import PatternClassifier
from .stats import ProcessingStatistics, count_kinds
from .structure import StructureNormalizer
from ..config import JSON_SCHEMA_VERSION, PipelineConfig, get_config, validate_config
from ..errors import MDReconError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class PageResult:
    """Output of the per-page ordering, deduplication and merge stages."""
    page_number: int
    fragments: List[Fragment] = field(default_factory=list)
    input_count: int = 0
    deduplicated: int = 0
    merged: int = 0


@dataclass
class ProcessedDocument:
    """A fully processed document."""
    source_file: str = ""
    fragments: List[Fragment] = field(default_factory=list)
    markdown: str = ""
    pages_processed: int = 0
    input_fragments: int = 0
    deduplicated: int = 0
    merged: int = 0
    categories: Dict[str, int] = field(default_factory=dict)
    processing_time_seconds: float = 0.0
    task_id: str = ""
    created_at: str = ""
    schema_version: str = JSON_SCHEMA_VERSION

    def __post_init__(self):
        if not self.task_id:
            self.task_id = str(uuid.uuid4())
        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "schema_version": self.schema_version,
            "source_file": self.source_file,
            "created_at": self.created_at,
            "statistics": {
                "pages_processed": self.pages_processed,
                "input_fragments": self.input_fragments,
                "deduplicated": self.deduplicated,
                "merged": self.merged,
                "categories": dict(self.categories),
                "processing_time_seconds": round(self.processing_time_seconds, 2),
            },
            "fragments": [f.to_dict() for f in self.fragments],
            "markdown": self.markdown,
        }


# ============================================================================
# Document Pipeline
# ============================================================================

class DocumentPipeline:
    """
    Orchestrates the Markdown reconstruction stages.

    Coordinates:
    - Reading order
    - Deduplication
    - Merging
    - Header/footer classification
    - Split heading and list item rejoining
    - Header and list pattern classification
    - Table-of-contents pages
    - Markdown assembly

    The configuration is read-only and shared by reference. A statistics
    aggregator may be shared between several pipelines.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        log: Optional[logging.Logger] = None,
        statistics: Optional[ProcessingStatistics] = None,
        validate: bool = True
    ):
        self.config = config or get_config()
        if validate:
            validate_config(self.config)
        self.log = log or logger
        self.statistics = statistics if statistics is not None else ProcessingStatistics()

        # Initialize components lazily
        self._header_footer_classifier = None
        self._pattern_classifier = None
        self._structure_normalizer = None
        self._assembler = None

    @property
    def header_footer_classifier(self) -> HeaderFooterClassifier:
        if self._header_footer_classifier is None:
            self._header_footer_classifier = HeaderFooterClassifier(
                self.config.header_footer_detection,
                self.config.processing,
                log=self.log
            )
        return self._header_footer_classifier

    @property
    def pattern_classifier(self) -> PatternClassifier:
        if self._pattern_classifier is None:
            self._pattern_classifier = PatternClassifier(
                self.config.header_detection,
                self.config.list_detection,
                log=self.log
            )
        return self._pattern_classifier

    @property
    def structure_normalizer(self) -> StructureNormalizer:
        if self._structure_normalizer is None:
            self._structure_normalizer = StructureNormalizer(
                self.pattern_classifier,
                self.config.processing,
                log=self.log
            )
        return self._structure_normalizer

    @property
    def assembler(self) -> MarkdownAssembler:
        if self._assembler is None:
            self._assembler = MarkdownAssembler(
                self.config.markdown,
                self.config.processing,
                log=self.log
            )
        return self._assembler

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _timed(self, stage: str, func: Callable[..., R], *args) -> R:
        start = time.perf_counter()
        try:
            return func(*args)
        finally:
            self.statistics.record_timing(stage, time.perf_counter() - start)

    def _map_concurrent(
        self,
        func: Callable[[T], R],
        items: Sequence[T],
        max_workers: int
    ) -> List[R]:
        """Apply ``func`` to every item, concurrently if requested; results keep input order."""
        if max_workers <= 1 or len(items) <= 1:
            return [func(item) for item in items]

        results: List[Optional[R]] = [None] * len(items)
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {
                executor.submit(func, item): index for index, item in enumerate(items)
            }
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()
        return results

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def process_page(self, fragments: List[Fragment]) -> PageResult:
        """
        Order, deduplicate and merge one page's fragments.

        Args:
            fragments: Fragments of a single page, in any order

        Returns:
            PageResult with the cleaned, reading-ordered fragments
        """
        processing = self.config.processing
        page_number = fragments[0].page if fragments else 0
        result = PageResult(page_number=page_number, input_count=len(fragments))

        current = self._timed("ordering", sort_by_position, fragments)

        if processing.enable_deduplication:
            dedup = self._timed(
                "deduplication", deduplicate, current, processing.overlap_threshold, self.log
            )
            current = dedup.fragments
            result.deduplicated = dedup.removed_count

        if processing.enable_element_merging:
            merged = self._timed("merging", merge_adjacent, current, processing, self.log)
            current = merged.fragments
            result.merged = merged.merged_count

        result.fragments = current
        self.statistics.record_fragments(
            total=result.input_count,
            deduplicated=result.deduplicated,
            merged=result.merged
        )
        self.log.debug(
            f"Page {page_number}: {result.input_count} -> {len(current)} fragment(s) "
            f"({result.deduplicated} duplicate, {result.merged} merged)"
        )
        return result

    def classify_page(
        self,
        fragments: List[Fragment],
        frequencies: Optional[TextFrequencies] = None
    ) -> List[Fragment]:
        """
        Classify one page.

        Header/footer tagging runs first, so boilerplate never joins a split
        heading or list item. Patterns are then matched on the rejoined
        text, and a page that reads as a table of contents loses the page
        numbers after its entries.
        """
        current = self._timed(
            "header_footer", self.header_footer_classifier.classify, fragments, frequencies
        )
        if self.config.markdown.remove_headers_footers:
            current = drop_header_footer(current)
        current = self._timed("structure", self.structure_normalizer.merge_split, current)
        current = self._timed("patterns", self.pattern_classifier.classify, current)
        return self._timed("toc", self.structure_normalizer.normalize_toc_page, current)

    def process_document(
        self,
        fragments: List[Fragment],
        source_file: str = "",
        max_workers: Optional[int] = None
    ) -> ProcessedDocument:
        """
        Process a complete document.

        Args:
            fragments: Every fragment of the document, any order, any page
            source_file: Name recorded in the result
            max_workers: Page-level concurrency (defaults to config)

        Returns:
            ProcessedDocument with Markdown and final fragments

        Raises:
            MarkdownGenerationError: If no fragments remain to render
            UnitMismatchError: If merge thresholds disagree with the coordinates
        """
        start_time = time.time()
        workers = max_workers or self.config.processing.max_workers

        try:
            pages = group_by_page(fragments)
            self.log.info(f"Processing {len(fragments)} fragment(s) on {len(pages)} page(s)")

            page_results = self._map_concurrent(self.process_page, list(pages.values()), workers)

            # Barrier: frequency detection needs all pages before any is classified
            frequencies = None
            hf = self.config.header_footer_detection
            if hf.enabled and hf.frequency_based.enabled:
                cleaned = [f for page in page_results for f in page.fragments]
                frequencies = self._timed("frequency", collect_text_frequencies, cleaned)

            classified_pages = self._map_concurrent(
                lambda page: self.classify_page(page.fragments, frequencies),
                page_results,
                workers
            )
            final = [f for page in classified_pages for f in page]

            categories = count_kinds(final)
            self.statistics.record_categories(categories)

            markdown = self._timed("markdown", self.assembler.render, final)
        except MDReconError:
            self.statistics.record_document(success=False)
            raise

        elapsed = time.time() - start_time
        self.statistics.record_document(success=True, seconds=elapsed)
        self.log.info(f"Document {source_file or '<memory>'} processed in {elapsed:.2f}s")

        return ProcessedDocument(
            source_file=source_file,
            fragments=final,
            markdown=markdown,
            pages_processed=len(page_results),
            input_fragments=len(fragments),
            deduplicated=sum(p.deduplicated for p in page_results),
            merged=sum(p.merged for p in page_results),
            categories=categories,
            processing_time_seconds=elapsed,
        )

    def process_batch(
        self,
        documents: List[Tuple[str, List[Fragment]]],
        max_workers: Optional[int] = None
    ) -> Dict[str, Optional[ProcessedDocument]]:
        """
        Process several documents; a failing document does not stop the batch.

        In debug mode the first failure is raised instead, so it can be
        inspected with its traceback.

        Args:
            documents: (source name, fragments) pairs
            max_workers: Document-level concurrency (defaults to config)

        Returns:
            Mapping from source name to result, None for failed documents

        Raises:
            MDReconError: A document's failure, only when ``debug_mode`` is set
        """
        workers = max_workers or self.config.processing.max_workers

        def run(item: Tuple[str, List[Fragment]]) -> Optional[ProcessedDocument]:
            name, fragments = item
            try:
                # Pages run sequentially inside a document when documents run in parallel
                return self.process_document(fragments, source_file=name, max_workers=1)
            except MDReconError as e:
                self.log.error(f"Failed to process {name}: {e}")
                if self.config.debug_mode:
                    raise
                return None

        results = self._map_concurrent(run, documents, workers)
        return {name: result for (name, _), result in zip(documents, results)}
