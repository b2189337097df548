"""
Pipeline stages for Markdown reconstruction.
"""

from .geometry import BoundingBox
from .fragments import Fragment, FragmentKind, sort_by_position, compare_position, fragments_equal
from .dedup import deduplicate, DeduplicationResult
from .merger import can_merge, merge_adjacent, merge_fragments, MergeResult
from .header_footer import (
    HeaderFooterClassifier, classify_header_footer, collect_text_frequencies, drop_header_footer
)
from .patterns import PatternClassifier, HeaderResult, ListItemResult, classify_patterns
from .structure import StructureNormalizer, merge_split_structure, normalize_list_item_text
from .markdown import MarkdownAssembler, render_markdown, slugify
from .stats import ProcessingStatistics
from .pipeline import DocumentPipeline, ProcessedDocument
from .io import load_fragments, save_json, save_markdown, ensure_dir

__all__ = [
    # Geometry and model
    "BoundingBox", "Fragment", "FragmentKind",
    "sort_by_position", "compare_position", "fragments_equal",
    # Deduplication and merging
    "deduplicate", "DeduplicationResult",
    "can_merge", "merge_adjacent", "merge_fragments", "MergeResult",
    # Classification
    "HeaderFooterClassifier", "classify_header_footer",
    "collect_text_frequencies", "drop_header_footer",
    "PatternClassifier", "HeaderResult", "ListItemResult", "classify_patterns",
    "StructureNormalizer", "merge_split_structure", "normalize_list_item_text",
    # Assembly
    "MarkdownAssembler", "render_markdown", "slugify",
    "ProcessingStatistics", "DocumentPipeline", "ProcessedDocument",
    # IO
    "load_fragments", "save_json", "save_markdown", "ensure_dir",
]
