"""
Configuration and constants for the Markdown reconstruction pipeline.

This module provides:
- Global logging setup
- Processing thresholds (overlap, merge distances, same-line tolerance)
- Header/footer detection strategies
- Header and list pattern tables
- Markdown style options
- Validation that reports every violation at once
"""

import os
import re
import logging
from dataclasses import dataclass, field, fields, is_dataclass, asdict
from typing import List, Dict, Any, Optional, Union, get_type_hints
from pathlib import Path

from .errors import ConfigValidationError

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("mdrecon")


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class MergeThreshold:
    """A merge distance together with the coordinate space it is expressed in."""
    value: float
    is_normalized: bool = True


@dataclass
class ProcessingConfig:
    """Deduplication and merging thresholds."""
    enable_deduplication: bool = True
    overlap_threshold: float = 0.1
    enable_element_merging: bool = True
    merge_distance_threshold: MergeThreshold = field(
        default_factory=lambda: MergeThreshold(0.02, True)
    )
    # More permissive; applied to fragments that share a visual row
    horizontal_merge_threshold: MergeThreshold = field(
        default_factory=lambda: MergeThreshold(0.15, True)
    )
    same_line_tolerance: float = 0.01
    # Coordinate space of the fragments fed to the pipeline
    normalized_coordinates: bool = True
    page_width: float = 612.0
    page_height: float = 792.0
    max_workers: int = 1


# ============================================================================
# Header/Footer Detection Configuration
# ============================================================================

@dataclass
class RegionBasedDetection:
    """Absolute-coordinate bands (points from the top of the page)."""
    enabled: bool = True
    header_region_y: float = 72.0
    footer_region_y: float = 720.0
    region_tolerance: float = 10.0


@dataclass
class PercentageBasedDetection:
    """Bands expressed as fractions of page height."""
    enabled: bool = True
    header_region_height: float = 0.12
    footer_region_height: float = 0.12


@dataclass
class FrequencyBasedDetection:
    """Cross-page recurrence of the same text."""
    enabled: bool = True
    header_frequency_threshold: float = 0.6
    footer_frequency_threshold: float = 0.6
    # Below this many pages every text would look recurrent
    min_pages: int = 2


@dataclass
class SmartDetection:
    """Deny-lists and exclusions applied on top of the other strategies."""
    enabled: bool = True
    exclude_common_headers: List[str] = field(default_factory=list)
    exclude_common_footers: List[str] = field(default_factory=lambda: [
        "Confidential", "Copyright", "All rights reserved",
        "机密", "版权", "版权所有",
    ])
    exclude_page_numbers: bool = True
    min_header_footer_length: int = 2
    max_header_footer_length: int = 150


@dataclass
class MultiRegionDetection:
    """Extra header/footer bands as [start, end] fractions of page height."""
    enabled: bool = False
    max_regions: int = 2
    header_regions: List[List[float]] = field(default_factory=list)
    footer_regions: List[List[float]] = field(default_factory=list)


@dataclass
class HeaderFooterDetectionConfig:
    """Header/footer classification strategies, combined by OR."""
    enabled: bool = True
    region_based: RegionBasedDetection = field(default_factory=RegionBasedDetection)
    percentage_based: PercentageBasedDetection = field(default_factory=PercentageBasedDetection)
    frequency_based: FrequencyBasedDetection = field(default_factory=FrequencyBasedDetection)
    smart_detection: SmartDetection = field(default_factory=SmartDetection)
    multi_region: MultiRegionDetection = field(default_factory=MultiRegionDetection)


# ============================================================================
# Header and List Pattern Configuration
# ============================================================================

@dataclass
class HeaderPatterns:
    """Regular expressions per header category; group 1 captures the marker."""
    numbered_headers: List[str] = field(default_factory=lambda: [
        r"^(\d+(?:\.\d+)+)\.?(?:\s+\S.*)?$",
        r"^(\d+)\s+[^\d\s].*$",
    ])
    lettered_headers: List[str] = field(default_factory=lambda: [
        r"^([A-Z])[\.\)]\s+\S.*$",
    ])
    roman_headers: List[str] = field(default_factory=lambda: [
        r"^([IVXLCDM]+)[\.\)]\s+\S.*$",
    ])
    named_headers: List[str] = field(default_factory=lambda: [
        r"^(Part|Chapter|Section|Appendix)\s+\S.*$",
        r"^(第[一二三四五六七八九十百\d]+[部章节])\s*.*$",
    ])


@dataclass
class LevelCalculation:
    """Header nesting level rules."""
    auto_detect_levels: bool = True
    max_level: int = 6
    custom_levels: Dict[str, int] = field(default_factory=lambda: {
        "Part": 1,
        "Chapter": 2,
        "Section": 3,
        "Appendix": 2,
        "部": 1,
        "章": 2,
        "节": 3,
    })


@dataclass
class HeaderDetectionConfig:
    """Pattern-driven header detection."""
    enabled: bool = True
    patterns: HeaderPatterns = field(default_factory=HeaderPatterns)
    level_calculation: LevelCalculation = field(default_factory=LevelCalculation)
    markdown_level_offset: int = 0
    # Longer text is treated as body copy
    max_header_length: int = 120
    # All-caps short-line heuristic; high false-positive rate
    enable_content_based_detection: bool = False
    max_heuristic_length: int = 60
    # Rejoin a heading split across fragments; tolerances are fractions of page height
    enable_header_merging: bool = True
    same_line_tolerance: float = 0.01
    multi_line_tolerance: float = 0.03
    # A page that is almost all headings is read as a table of contents
    enable_toc_detection: bool = True
    toc_header_ratio: float = 0.9
    toc_min_elements: int = 3


@dataclass
class ListPatterns:
    """Regular expressions per list marker category; group 1 captures the marker."""
    numbered_markers: List[str] = field(default_factory=lambda: [
        r"^(\d+[\.\)])\s+\S.*$",
        r"^(\(\d+\))\s*\S.*$",
    ])
    lettered_markers: List[str] = field(default_factory=lambda: [
        r"^([a-z][\.\)])\s+\S.*$",
        r"^(\([a-z]\))\s*\S.*$",
    ])
    bullet_markers: List[str] = field(default_factory=lambda: [
        r"^([-*+])\s+\S.*$",
        r"^([•·▪▫◦‣⁃])\s*\S.*$",
    ])
    roman_markers: List[str] = field(default_factory=lambda: [
        r"^([ivxlcdm]+[\.\)])\s+\S.*$",
    ])
    custom_markers: List[str] = field(default_factory=lambda: [
        r"^([①②③④⑤⑥⑦⑧⑨⑩])\s*\S.*$",
    ])


@dataclass
class IndentationConfig:
    """Coordinate-based list nesting."""
    enable_indentation_detection: bool = True
    base_indentation: float = 0.05
    level_threshold: float = 0.05


@dataclass
class ListDetectionConfig:
    """Pattern-driven list item detection."""
    enabled: bool = True
    patterns: ListPatterns = field(default_factory=ListPatterns)
    indentation: IndentationConfig = field(default_factory=IndentationConfig)
    # Rejoin a list item split across fragments; tolerances are fractions of page height
    enable_list_item_merging: bool = True
    same_line_tolerance: float = 0.01
    multi_line_tolerance: float = 0.02


# ============================================================================
# Markdown Configuration
# ============================================================================

LIST_MARKER_STYLES = ("-", "*", "+", "1.")


@dataclass
class MarkdownConfig:
    """Markdown rendering options."""
    header_level_offset: int = 0
    list_marker_style: str = "-"
    include_table_of_contents: bool = False
    toc_max_depth: int = 3
    add_page_breaks: bool = False
    remove_headers_footers: bool = False
    max_header_level: int = 6


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    header_footer_detection: HeaderFooterDetectionConfig = field(
        default_factory=HeaderFooterDetectionConfig
    )
    header_detection: HeaderDetectionConfig = field(default_factory=HeaderDetectionConfig)
    list_detection: ListDetectionConfig = field(default_factory=ListDetectionConfig)
    markdown: MarkdownConfig = field(default_factory=MarkdownConfig)

    # Global settings
    debug_mode: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PipelineConfig':
        """Build a config from a (possibly partial) nested mapping."""
        return _build_dataclass(cls, data, "config")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================================
# Building from mappings
# ============================================================================

def _snake_case(key: str) -> str:
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", key).lower()


def _build_dataclass(cls, data: Any, path: str):
    if isinstance(data, cls):
        return data
    if cls is MergeThreshold and isinstance(data, (int, float)):
        return MergeThreshold(float(data))
    if not isinstance(data, dict):
        raise ConfigValidationError([f"{path}: expected an object, got {type(data).__name__}"])

    hints = get_type_hints(cls)
    known = {f.name for f in fields(cls)}
    kwargs = {}
    for raw_key, value in data.items():
        key = _snake_case(raw_key)
        if key not in known:
            logger.warning(f"Ignoring unknown configuration key: {path}.{raw_key}")
            continue
        hint = hints[key]
        if is_dataclass(hint):
            kwargs[key] = _build_dataclass(hint, value, f"{path}.{key}")
        else:
            kwargs[key] = value
    return cls(**kwargs)


# ============================================================================
# Validation
# ============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_unit_interval(errors: List[str], name: str, value: Any) -> bool:
    if not _is_number(value) or not 0.0 <= value <= 1.0:
        errors.append(f"{name} must be within [0, 1], got {value!r}")
        return False
    return True


def _check_number(
    errors: List[str],
    name: str,
    value: Any,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
    exclusive: bool = False,
    integer: bool = False
) -> bool:
    """Record an error unless ``value`` is a number within bounds; True when it is usable."""
    if not _is_number(value) or (integer and not isinstance(value, int)):
        errors.append(f"{name} must be {'an integer' if integer else 'a number'}, got {value!r}")
        return False
    if minimum is not None:
        if exclusive and value <= minimum:
            errors.append(f"{name} must be > {minimum}, got {value!r}")
            return False
        if not exclusive and value < minimum:
            errors.append(f"{name} must be >= {minimum}, got {value!r}")
            return False
    if maximum is not None and value > maximum:
        errors.append(f"{name} must be <= {maximum}, got {value!r}")
        return False
    return True


def _check_patterns(errors: List[str], name: str, patterns: Any, required: bool):
    if not isinstance(patterns, list):
        errors.append(f"{name} must be a list of regular expressions, got {patterns!r}")
        return
    if required and not patterns:
        errors.append(f"{name} must not be empty")
        return
    for pattern in patterns:
        try:
            re.compile(pattern)
        except (re.error, TypeError) as e:
            errors.append(f"{name} contains an invalid pattern {pattern!r}: {e}")


def _is_band(band: Any) -> bool:
    return (
        isinstance(band, (list, tuple))
        and len(band) == 2
        and all(_is_number(v) for v in band)
        and 0.0 <= band[0] <= band[1] <= 1.0
    )


def collect_config_errors(config: PipelineConfig) -> List[str]:
    """Return every constraint violation in ``config`` (empty when valid)."""
    errors: List[str] = []

    # Processing
    proc = config.processing
    _check_unit_interval(errors, "processing.overlap_threshold", proc.overlap_threshold)
    for name in ("merge_distance_threshold", "horizontal_merge_threshold"):
        threshold = getattr(proc, name)
        if not isinstance(threshold, MergeThreshold):
            errors.append(f"processing.{name} must be a number or a {{value, isNormalized}} object")
            continue
        if (_check_number(errors, f"processing.{name}", threshold.value, minimum=0)
                and threshold.is_normalized and threshold.value > 1.0):
            errors.append(f"processing.{name} is normalized but exceeds 1.0: {threshold.value}")
        if threshold.is_normalized != proc.normalized_coordinates:
            errors.append(
                f"processing.{name} is_normalized={threshold.is_normalized} conflicts with "
                f"processing.normalized_coordinates={proc.normalized_coordinates}"
            )
    _check_number(errors, "processing.same_line_tolerance", proc.same_line_tolerance, minimum=0)
    _check_number(errors, "processing.page_width", proc.page_width, minimum=0, exclusive=True)
    _check_number(errors, "processing.page_height", proc.page_height, minimum=0, exclusive=True)
    _check_number(errors, "processing.max_workers", proc.max_workers, minimum=1, integer=True)

    # Header/footer detection
    hf = config.header_footer_detection
    region = hf.region_based
    prefix = "header_footer_detection.region_based"
    usable = [
        _check_number(errors, f"{prefix}.region_tolerance", region.region_tolerance, minimum=0),
        _check_number(errors, f"{prefix}.header_region_y", region.header_region_y),
        _check_number(errors, f"{prefix}.footer_region_y", region.footer_region_y),
    ]
    if all(usable):
        # Bands are widened by the tolerance on both sides
        header_edge = region.header_region_y + region.region_tolerance
        footer_edge = region.footer_region_y - region.region_tolerance
        if header_edge >= footer_edge:
            errors.append(
                f"{prefix}.header_region_y + region_tolerance must stay above "
                f"footer_region_y - region_tolerance ({header_edge} >= {footer_edge})"
            )

    pct = hf.percentage_based
    prefix = "header_footer_detection.percentage_based"
    usable = [
        _check_unit_interval(errors, f"{prefix}.header_region_height", pct.header_region_height),
        _check_unit_interval(errors, f"{prefix}.footer_region_height", pct.footer_region_height),
    ]
    if all(usable) and pct.header_region_height + pct.footer_region_height > 1.0:
        errors.append(f"{prefix} header and footer regions overlap")

    freq = hf.frequency_based
    prefix = "header_footer_detection.frequency_based"
    _check_unit_interval(errors, f"{prefix}.header_frequency_threshold", freq.header_frequency_threshold)
    _check_unit_interval(errors, f"{prefix}.footer_frequency_threshold", freq.footer_frequency_threshold)
    _check_number(errors, f"{prefix}.min_pages", freq.min_pages, minimum=1, integer=True)

    smart = hf.smart_detection
    prefix = "header_footer_detection.smart_detection"
    usable = [
        _check_number(errors, f"{prefix}.min_header_footer_length", smart.min_header_footer_length,
                      minimum=0, integer=True),
        _check_number(errors, f"{prefix}.max_header_footer_length", smart.max_header_footer_length,
                      minimum=0, integer=True),
    ]
    if all(usable) and smart.min_header_footer_length > smart.max_header_footer_length:
        errors.append(f"{prefix}.min_header_footer_length exceeds max_header_footer_length")
    for name in ("exclude_common_headers", "exclude_common_footers"):
        entries = getattr(smart, name)
        if not isinstance(entries, list) or not all(isinstance(e, str) for e in entries):
            errors.append(f"{prefix}.{name} must be a list of strings, got {entries!r}")

    multi = hf.multi_region
    prefix = "header_footer_detection.multi_region"
    _check_number(errors, f"{prefix}.max_regions", multi.max_regions, minimum=1, integer=True)
    bands: Dict[str, List[Any]] = {}
    for name in ("header_regions", "footer_regions"):
        configured = getattr(multi, name)
        if not isinstance(configured, list):
            errors.append(f"{prefix}.{name} must be a list of [start, end] bands, got {configured!r}")
            configured = []
        bands[name] = []
        for band in configured:
            if _is_band(band):
                bands[name].append(band)
            else:
                errors.append(f"{prefix}.{name} has malformed band {band!r}")
    # Band edges are inclusive, so touching bands overlap
    for header_band in bands["header_regions"]:
        for footer_band in bands["footer_regions"]:
            if header_band[0] <= footer_band[1] and footer_band[0] <= header_band[1]:
                errors.append(
                    f"{prefix} header band {list(header_band)} overlaps footer band {list(footer_band)}"
                )

    # Header patterns
    hd = config.header_detection
    patterns = hd.patterns
    for name in ("numbered_headers", "lettered_headers", "roman_headers", "named_headers"):
        _check_patterns(errors, f"header_detection.patterns.{name}",
                        getattr(patterns, name), required=hd.enabled)
    levels = hd.level_calculation
    _check_number(errors, "header_detection.level_calculation.max_level", levels.max_level,
                  minimum=1, maximum=6, integer=True)
    if isinstance(levels.custom_levels, dict):
        for key, level in levels.custom_levels.items():
            if not _is_number(level) or not isinstance(level, int) or level < 1:
                errors.append(f"header_detection.level_calculation.custom_levels[{key!r}] must be a positive integer")
    else:
        errors.append("header_detection.level_calculation.custom_levels must be an object")
    _check_number(errors, "header_detection.markdown_level_offset", hd.markdown_level_offset,
                  minimum=0, integer=True)
    _check_number(errors, "header_detection.max_header_length", hd.max_header_length,
                  minimum=1, integer=True)
    _check_number(errors, "header_detection.max_heuristic_length", hd.max_heuristic_length,
                  minimum=1, integer=True)
    _check_unit_interval(errors, "header_detection.same_line_tolerance", hd.same_line_tolerance)
    _check_unit_interval(errors, "header_detection.multi_line_tolerance", hd.multi_line_tolerance)
    _check_unit_interval(errors, "header_detection.toc_header_ratio", hd.toc_header_ratio)
    _check_number(errors, "header_detection.toc_min_elements", hd.toc_min_elements,
                  minimum=1, integer=True)

    # List patterns
    ld = config.list_detection
    for name in ("numbered_markers", "lettered_markers", "bullet_markers", "roman_markers"):
        _check_patterns(errors, f"list_detection.patterns.{name}",
                        getattr(ld.patterns, name), required=ld.enabled)
    _check_patterns(errors, "list_detection.patterns.custom_markers",
                    ld.patterns.custom_markers, required=False)
    indent = ld.indentation
    _check_number(errors, "list_detection.indentation.level_threshold", indent.level_threshold,
                  minimum=0, exclusive=True)
    _check_number(errors, "list_detection.indentation.base_indentation", indent.base_indentation,
                  minimum=0)
    _check_unit_interval(errors, "list_detection.same_line_tolerance", ld.same_line_tolerance)
    _check_unit_interval(errors, "list_detection.multi_line_tolerance", ld.multi_line_tolerance)

    # Markdown
    md = config.markdown
    _check_number(errors, "markdown.header_level_offset", md.header_level_offset, minimum=0, integer=True)
    if md.list_marker_style not in LIST_MARKER_STYLES:
        errors.append(f"markdown.list_marker_style must be one of {LIST_MARKER_STYLES}, got {md.list_marker_style!r}")
    _check_number(errors, "markdown.toc_max_depth", md.toc_max_depth, minimum=1, integer=True)
    _check_number(errors, "markdown.max_header_level", md.max_header_level,
                  minimum=1, maximum=6, integer=True)

    return errors


def validate_config(config: PipelineConfig) -> PipelineConfig:
    """
    Validate a configuration.

    Returns:
        The same config, for chaining

    Raises:
        ConfigValidationError: Carrying every violation found
    """
    errors = collect_config_errors(config)
    if errors:
        for error in errors:
            logger.debug(f"Configuration error: {error}")
        raise ConfigValidationError(errors)
    return config


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    # Override from environment variables
    if os.environ.get("MDRECON_DEBUG", "").lower() == "true":
        config.debug_mode = True

    if os.environ.get("MDRECON_REMOVE_HEADERS_FOOTERS", "").lower() == "true":
        config.markdown.remove_headers_footers = True

    workers = os.environ.get("MDRECON_MAX_WORKERS")
    if workers:
        try:
            config.processing.max_workers = int(workers)
        except ValueError:
            logger.warning(f"Ignoring non-integer MDRECON_MAX_WORKERS: {workers!r}")

    return config


def load_config(config_path: Union[str, Path], validate: bool = True) -> PipelineConfig:
    """
    Load a configuration from a JSON file.

    Args:
        config_path: Path to the JSON file
        validate: Run validation before returning

    Returns:
        Parsed configuration

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigValidationError: If validation is requested and fails
    """
    from .utils.io import load_json

    config = PipelineConfig.from_dict(load_json(config_path))
    logger.info(f"Loaded configuration from {config_path}")
    if validate:
        validate_config(config)
    return config


# ============================================================================
# JSON Schema Version
# ============================================================================

JSON_SCHEMA_VERSION = "1.0"
