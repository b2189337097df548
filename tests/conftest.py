"""
Shared test helpers.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def make_fragment():
    """Factory building fragments from (x, y, w, h) boxes."""
    from mdrecon.utils.fragments import Fragment, FragmentKind
    from mdrecon.utils.geometry import BoundingBox

    def _make(box=(0.1, 0.1, 0.5, 0.05), kind=FragmentKind.PARAGRAPH, text="text",
              confidence=0.9, page=1, **kwargs):
        return Fragment(
            kind=kind,
            box=BoundingBox.from_xywh(*box),
            text=text,
            confidence=confidence,
            page=page,
            **kwargs
        )

    return _make
