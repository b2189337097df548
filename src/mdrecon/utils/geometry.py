"""
Rectangle geometry for layout analysis.

Provides:
- Axis-aligned bounding box with derived measurements
- Overlap area and (asymmetric) overlap percentage
- Directional gaps and Chebyshev distance
- Center-based alignment predicates

Coordinates follow the page convention used throughout the pipeline:
x grows to the right, y grows downward (top of page first). Boxes may be
expressed either in normalized page units ([0, 1]) or absolute points; the
math here is unit-agnostic.
"""

import math
from dataclasses import dataclass
from typing import Tuple


# Default tolerances for center-based alignment checks
POSITION_TOLERANCE = 5.0
ALIGNMENT_TOLERANCE = 10.0


# ============================================================================
# Bounding Box
# ============================================================================

@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned rectangle given by two corners.

    Corners may be supplied in any order; a box built from a negative
    width or height is treated by its absolute extent.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> 'BoundingBox':
        return cls(x, y, x + w, y + h)

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x1, self.y1, self.x2, self.y2)

    def to_xywh(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.width, self.height)

    # ------------------------------------------------------------------
    # Extent
    # ------------------------------------------------------------------

    @property
    def min_x(self) -> float:
        return min(self.x1, self.x2)

    @property
    def max_x(self) -> float:
        return max(self.x1, self.x2)

    @property
    def min_y(self) -> float:
        return min(self.y1, self.y2)

    @property
    def max_y(self) -> float:
        return max(self.y1, self.y2)

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def perimeter(self) -> float:
        return 2 * (self.width + self.height)

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    @property
    def aspect_ratio(self) -> float:
        """Width divided by height (0 for a zero-height box)."""
        if self.height == 0:
            return 0.0
        return self.width / self.height

    def is_square(self, tolerance: float = 0.1) -> bool:
        return self.height > 0 and abs(self.aspect_ratio - 1.0) <= tolerance

    def is_wide(self, threshold: float = 2.0) -> bool:
        return self.aspect_ratio > threshold

    def is_tall(self, threshold: float = 2.0) -> bool:
        if self.width == 0:
            return self.height > 0
        return self.height / self.width > threshold

    # ------------------------------------------------------------------
    # Combination
    # ------------------------------------------------------------------

    def union(self, other: 'BoundingBox') -> 'BoundingBox':
        return BoundingBox(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def expanded(self, dx: float, dy: float) -> 'BoundingBox':
        return BoundingBox(
            self.min_x - dx, self.min_y - dy,
            self.max_x + dx, self.max_y + dy,
        )

    def contracted(self, dx: float, dy: float) -> 'BoundingBox':
        """Shrink on every side; collapses to the center line rather than inverting."""
        cx, cy = self.center
        half_w = max(0.0, self.width / 2 - dx)
        half_h = max(0.0, self.height / 2 - dy)
        return BoundingBox(cx - half_w, cy - half_h, cx + half_w, cy + half_h)

    # ------------------------------------------------------------------
    # Overlap
    # ------------------------------------------------------------------

    def intersects(self, other: 'BoundingBox') -> bool:
        """True only for a positive-area intersection; touching edges do not count."""
        return self.overlap_area(other) > 0

    def overlap_area(self, other: 'BoundingBox') -> float:
        ix = min(self.max_x, other.max_x) - max(self.min_x, other.min_x)
        iy = min(self.max_y, other.max_y) - max(self.min_y, other.min_y)
        if ix <= 0 or iy <= 0:
            return 0.0
        return ix * iy

    def intersection_area(self, other: 'BoundingBox') -> float:
        return self.overlap_area(other)

    def overlap_percentage(self, other: 'BoundingBox') -> float:
        """
        Fraction of this box covered by ``other``.

        Asymmetric: the denominator is always the receiver's area, so
        ``a.overlap_percentage(b)`` and ``b.overlap_percentage(a)`` differ
        whenever the two areas differ.
        """
        area = self.area
        if area <= 0:
            return 0.0
        return self.overlap_area(other) / area

    def overlaps(self, other: 'BoundingBox', threshold: float) -> bool:
        return self.overlap_percentage(other) > threshold

    def iou(self, other: 'BoundingBox') -> float:
        inter = self.overlap_area(other)
        union = self.area + other.area - inter
        return inter / union if union > 0 else 0.0

    # ------------------------------------------------------------------
    # Distance
    # ------------------------------------------------------------------

    def horizontal_gap(self, other: 'BoundingBox') -> float:
        return max(0.0, self.min_x - other.max_x, other.min_x - self.max_x)

    def vertical_gap(self, other: 'BoundingBox') -> float:
        return max(0.0, self.min_y - other.max_y, other.min_y - self.max_y)

    def distance(self, other: 'BoundingBox') -> float:
        """Chebyshev gap distance; 0 when the boxes overlap or touch."""
        return max(self.horizontal_gap(other), self.vertical_gap(other))

    def center_distance(self, other: 'BoundingBox') -> float:
        (ax, ay), (bx, by) = self.center, other.center
        return math.hypot(ax - bx, ay - by)

    # ------------------------------------------------------------------
    # Alignment
    # ------------------------------------------------------------------

    def is_above(self, other: 'BoundingBox', tolerance: float = POSITION_TOLERANCE) -> bool:
        return self.center[1] < other.center[1] - tolerance

    def is_left_of(self, other: 'BoundingBox', tolerance: float = POSITION_TOLERANCE) -> bool:
        return self.center[0] < other.center[0] - tolerance

    def is_vertically_aligned(self, other: 'BoundingBox', tolerance: float = ALIGNMENT_TOLERANCE) -> bool:
        """Centers share a row (y difference within tolerance)."""
        return abs(self.center[1] - other.center[1]) <= tolerance

    def is_horizontally_aligned(self, other: 'BoundingBox', tolerance: float = ALIGNMENT_TOLERANCE) -> bool:
        """Centers share a column (x difference within tolerance)."""
        return abs(self.center[0] - other.center[0]) <= tolerance
