"""
Document fragment model.

Provides:
- FragmentKind enumeration
- Immutable Fragment entity with copy-with-overrides updates
- Identity equality and the canonical reading-order comparator
- JSON-friendly (de)serialization
"""

import base64
import binascii
import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .geometry import BoundingBox
from ..errors import FragmentFormatError

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes and Enums
# ============================================================================

class FragmentKind(Enum):
    """Structural role of a fragment."""
    TITLE = "title"
    TEXT_BLOCK = "text_block"
    PARAGRAPH = "paragraph"
    HEADER = "header"
    FOOTER = "footer"
    TABLE = "table"
    LIST = "list"
    LIST_ITEM = "list_item"
    BARCODE = "barcode"
    IMAGE = "image"
    FOOTNOTE = "footnote"
    PAGE_NUMBER = "page_number"
    UNKNOWN = "unknown"

    @property
    def is_mergeable(self) -> bool:
        return self in MERGEABLE_KINDS

    @classmethod
    def from_value(cls, value: Any) -> 'FragmentKind':
        """
        Parse a producer-supplied kind.

        Accepts enum values ("list_item"), camel case ("listItem") and enum
        names ("LIST_ITEM"). Anything unrecognised maps to UNKNOWN.
        """
        if isinstance(value, cls):
            return value
        key = str(value or "").replace("_", "").replace("-", "").replace(" ", "").lower()
        for kind in cls:
            if kind.value.replace("_", "") == key:
                return kind
        logger.debug(f"Unrecognised fragment kind {value!r}, using unknown")
        return cls.UNKNOWN


MERGEABLE_KINDS = frozenset({
    FragmentKind.TEXT_BLOCK,
    FragmentKind.PARAGRAPH,
    FragmentKind.LIST_ITEM,
})


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, eq=False)
class Fragment:
    """
    One classified piece of a page.

    Fragments are never mutated. Pipeline stages produce replacements via
    ``update``, which keeps ``id`` and ``created_at`` unless they are
    explicitly overridden. Equality and hashing follow ``id`` only.
    """
    kind: FragmentKind
    box: BoundingBox
    text: Optional[str] = None
    confidence: float = 1.0
    page: int = 1
    raw_bytes: Optional[bytes] = None
    level: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Fragment confidence must be within [0, 1], got {self.confidence}")
        if self.page < 1:
            raise ValueError(f"Fragment page must be 1-based, got {self.page}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fragment):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def update(self, **overrides: Any) -> 'Fragment':
        """
        Copy this fragment, replacing only the given fields.

        Raises:
            TypeError: If an override names a field that does not exist
        """
        metadata = overrides.get("metadata")
        overrides["metadata"] = dict(self.metadata if metadata is None else metadata)
        return dataclasses.replace(self, **overrides)

    def with_metadata(self, **entries: str) -> 'Fragment':
        """Copy with extra metadata entries added (existing keys overwritten)."""
        metadata = dict(self.metadata)
        metadata.update({k: str(v) for k, v in entries.items()})
        return self.update(metadata=metadata)

    @property
    def stripped_text(self) -> str:
        return (self.text or "").strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "box": list(self.box.to_xywh()),
            "text": self.text,
            "confidence": self.confidence,
            "page": self.page,
            "level": self.level,
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
            "raw_bytes": base64.b64encode(self.raw_bytes).decode("ascii") if self.raw_bytes else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], page: Optional[int] = None) -> 'Fragment':
        """
        Build a fragment from producer JSON.

        Args:
            data: Mapping with at least ``kind`` and ``box``
            page: Page number to use when ``data`` carries none

        Raises:
            FragmentFormatError: If required fields are missing or malformed
        """
        if not isinstance(data, dict):
            raise FragmentFormatError(f"fragment must be an object, got {type(data).__name__}")
        if "box" not in data:
            raise FragmentFormatError("fragment is missing 'box'")

        try:
            kwargs: Dict[str, Any] = {
                "kind": FragmentKind.from_value(data.get("kind")),
                "box": _parse_box(data["box"]),
                "text": data.get("text"),
                "confidence": float(data.get("confidence", 1.0)),
                "page": int(data.get("page", page or 1)),
                "level": int(data["level"]) if data.get("level") is not None else None,
                "metadata": {str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
            }
        except (AttributeError, TypeError, ValueError) as e:
            raise FragmentFormatError(f"malformed fragment field: {e}")
        if data.get("id"):
            kwargs["id"] = str(data["id"])
        if data.get("created_at"):
            try:
                kwargs["created_at"] = datetime.fromisoformat(data["created_at"])
            except (TypeError, ValueError) as e:
                raise FragmentFormatError(f"invalid created_at: {e}")
        if data.get("raw_bytes"):
            try:
                kwargs["raw_bytes"] = base64.b64decode(data["raw_bytes"], validate=True)
            except (binascii.Error, ValueError) as e:
                raise FragmentFormatError(f"raw_bytes is not valid base64: {e}")

        try:
            return cls(**kwargs)
        except ValueError as e:
            raise FragmentFormatError(str(e))


def _parse_box(value: Any) -> BoundingBox:
    """Accept [x, y, w, h], {x, y, width, height} or {x1, y1, x2, y2}."""
    try:
        if isinstance(value, (list, tuple)) and len(value) == 4:
            return BoundingBox.from_xywh(*(float(v) for v in value))
        if isinstance(value, dict):
            if "width" in value:
                return BoundingBox.from_xywh(
                    float(value["x"]), float(value["y"]),
                    float(value["width"]), float(value["height"]),
                )
            return BoundingBox(
                float(value["x1"]), float(value["y1"]),
                float(value["x2"]), float(value["y2"]),
            )
    except (KeyError, TypeError, ValueError) as e:
        raise FragmentFormatError(f"malformed box {value!r}: {e}")
    raise FragmentFormatError(f"malformed box {value!r}")


# ============================================================================
# Identity and Ordering
# ============================================================================

def fragments_equal(a: Fragment, b: Fragment) -> bool:
    """Identity comparison; identical content with different ids is not equal."""
    return a.id == b.id


def position_key(fragment: Fragment) -> Tuple[int, float, float]:
    return (fragment.page, fragment.box.min_y, fragment.box.min_x)


def compare_position(a: Fragment, b: Fragment) -> int:
    """Three-key reading-order comparator: page, then top edge, then left edge."""
    ka, kb = position_key(a), position_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def sort_by_position(fragments: Iterable[Fragment]) -> List[Fragment]:
    """Stable sort into reading order; ties keep their input order."""
    return sorted(fragments, key=position_key)


def group_by_page(fragments: Iterable[Fragment]) -> Dict[int, List[Fragment]]:
    """Split fragments by page, preserving order within each page."""
    pages: Dict[int, List[Fragment]] = {}
    for fragment in fragments:
        pages.setdefault(fragment.page, []).append(fragment)
    return dict(sorted(pages.items()))
