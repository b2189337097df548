"""
Tests for Markdown assembly.
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def assembler():
    """Assembler with default configuration."""
    from mdrecon.utils.markdown import MarkdownAssembler

    return MarkdownAssembler()


class TestSlugify:
    """Test slugify()."""

    @pytest.mark.parametrize("text,expected", [
        ("Introduction", "introduction"),
        ("Héllo, World!", "hello-world"),
        ("1.2 Methods & Data", "12-methods-data"),
        ("  spaced   out  ", "spaced-out"),
        ("第一章 总论", "第一章-总论"),
        ("!!!", "section"),
        ("", "section"),
    ])
    def test_slugs(self, text, expected):
        """Test anchor slugs."""
        from mdrecon.utils.markdown import slugify

        assert slugify(text) == expected


class TestRenderFragment:
    """Test per-kind rendering."""

    def test_title(self, assembler, make_fragment):
        """Test a title without level renders as a level-1 heading."""
        from mdrecon.utils.fragments import FragmentKind

        fragment = make_fragment(kind=FragmentKind.TITLE, text="Simple Title")

        assert assembler.render_fragment(fragment) == "# Simple Title"

    def test_header_with_level(self, assembler, make_fragment):
        """Test a pattern-derived level is used."""
        from mdrecon.utils.fragments import FragmentKind

        fragment = make_fragment(kind=FragmentKind.HEADER, text="Methods", level=2)

        assert assembler.render_fragment(fragment) == "## Methods"

    @pytest.mark.parametrize("y,hashes", [(0.05, 1), (0.2, 2), (0.5, 4), (0.99, 6)])
    def test_header_positional_level(self, assembler, make_fragment, y, hashes):
        """Test headers without a level take it from their page position."""
        from mdrecon.utils.fragments import FragmentKind

        fragment = make_fragment(box=(0.1, y, 0.5, 0.005), kind=FragmentKind.HEADER, text="Heading")

        assert assembler.render_fragment(fragment) == "#" * hashes + " Heading"

    def test_positional_level_absolute(self, make_fragment):
        """Test absolute coordinates are scaled by page height."""
        from mdrecon.config import MergeThreshold, ProcessingConfig
        from mdrecon.utils.fragments import FragmentKind
        from mdrecon.utils.markdown import MarkdownAssembler

        processing = ProcessingConfig(
            normalized_coordinates=False,
            merge_distance_threshold=MergeThreshold(10, False),
            horizontal_merge_threshold=MergeThreshold(50, False),
        )
        assembler = MarkdownAssembler(processing=processing)
        fragment = make_fragment(box=(72, 396, 300, 20), kind=FragmentKind.HEADER, text="Middle")

        assert assembler.heading_level(fragment) == 4

    def test_level_offset_and_clamp(self, make_fragment):
        """Test the header offset is applied and clamped to max_header_level."""
        from mdrecon.config import MarkdownConfig
        from mdrecon.utils.fragments import FragmentKind
        from mdrecon.utils.markdown import MarkdownAssembler

        assembler = MarkdownAssembler(MarkdownConfig(header_level_offset=1, max_header_level=3))

        title = make_fragment(kind=FragmentKind.TITLE, text="Title")
        deep = make_fragment(kind=FragmentKind.HEADER, text="Deep", level=5)

        assert assembler.render_fragment(title) == "## Title"
        assert assembler.render_fragment(deep) == "### Deep"

    def test_list_item(self, assembler, make_fragment):
        """Test list items are indented by level and keep no source marker."""
        from mdrecon.utils.fragments import FragmentKind

        fragment = make_fragment(
            kind=FragmentKind.LIST_ITEM, text="1. nested entry", level=2,
            metadata={"list_marker": "1."}
        )

        assert assembler.render_fragment(fragment) == "  - nested entry"

    def test_list_marker_style(self, make_fragment):
        """Test the configured marker is used."""
        from mdrecon.config import MarkdownConfig
        from mdrecon.utils.fragments import FragmentKind
        from mdrecon.utils.markdown import MarkdownAssembler

        assembler = MarkdownAssembler(MarkdownConfig(list_marker_style="*"))
        fragment = make_fragment(kind=FragmentKind.LIST, text="apples\n\npears")

        assert assembler.render_fragment(fragment) == "* apples\n* pears"

    @pytest.mark.parametrize("kind,text,expected", [
        ("table", "a | b", "```\na | b\n```"),
        ("footer", "Company Ltd", "*Company Ltd*"),
        ("footnote", "See appendix", "^[See appendix]"),
        ("page_number", "Page 7 of 9", "**Page 7**"),
        ("barcode", "012345", "`[Barcode: 012345]`"),
        ("paragraph", "  Body copy  ", "Body copy"),
        ("unknown", "Mystery", "Mystery"),
    ])
    def test_other_kinds(self, assembler, make_fragment, kind, text, expected):
        """Test the remaining kind renderings."""
        from mdrecon.utils.fragments import FragmentKind

        fragment = make_fragment(kind=FragmentKind.from_value(kind), text=text)

        assert assembler.render_fragment(fragment) == expected

    def test_image(self, assembler, make_fragment):
        """Test images reference a file named after the fragment id."""
        from mdrecon.utils.fragments import FragmentKind

        captioned = make_fragment(kind=FragmentKind.IMAGE, text="Logo")
        raw = make_fragment(kind=FragmentKind.IMAGE, text=None, raw_bytes=b"\x89PNG")
        empty = make_fragment(kind=FragmentKind.IMAGE, text=None)

        assert assembler.render_fragment(captioned) == f"![Logo](image_{captioned.id[:8]}.png)"
        assert assembler.render_fragment(raw) == f"![Image](image_{raw.id[:8]}.png)"
        assert assembler.render_fragment(empty) == ""

    def test_empty_text(self, assembler, make_fragment):
        """Test empty text renders nothing."""
        assert assembler.render_fragment(make_fragment(text="   ")) == ""


class TestRender:
    """Test whole-document rendering."""

    def test_single_title(self, make_fragment):
        """Test a lone title renders exactly."""
        from mdrecon.utils.fragments import FragmentKind
        from mdrecon.utils.markdown import render_markdown

        fragment = make_fragment(kind=FragmentKind.TITLE, text="Simple Title")

        assert render_markdown([fragment]) == "# Simple Title"

    def test_empty_input_raises(self, assembler):
        """Test empty input is an error, not an empty document."""
        from mdrecon.errors import MarkdownGenerationError

        with pytest.raises(MarkdownGenerationError, match="no elements to process"):
            assembler.render([])

    def test_blocks_joined_without_rules(self, assembler, make_fragment):
        """Test blank-line separation, skipped empties and no horizontal rules."""
        from mdrecon.utils.fragments import FragmentKind

        fragments = [
            make_fragment(kind=FragmentKind.TITLE, text="Report"),
            make_fragment(text=""),
            make_fragment(text="First paragraph.", page=1),
            make_fragment(text="Second page paragraph.", page=2),
        ]

        markdown = assembler.render(fragments)

        assert markdown == "# Report\n\nFirst paragraph.\n\nSecond page paragraph."
        assert "---" not in markdown

    def test_page_breaks(self, make_fragment):
        """Test page markers precede each new page."""
        from mdrecon.config import MarkdownConfig
        from mdrecon.utils.markdown import MarkdownAssembler

        assembler = MarkdownAssembler(MarkdownConfig(add_page_breaks=True))
        fragments = [
            make_fragment(text="One", page=1),
            make_fragment(text="Two", page=2),
            make_fragment(text="Three", page=3),
        ]

        assert assembler.render(fragments) == "One\n\n*Page 2*\n\nTwo\n\n*Page 3*\n\nThree"

    def test_table_of_contents(self, make_fragment):
        """Test TOC entries, duplicate anchors and depth limit."""
        from mdrecon.config import MarkdownConfig
        from mdrecon.utils.fragments import FragmentKind
        from mdrecon.utils.markdown import MarkdownAssembler

        assembler = MarkdownAssembler(MarkdownConfig(include_table_of_contents=True, toc_max_depth=2))
        fragments = [
            make_fragment(kind=FragmentKind.TITLE, text="Introduction"),
            make_fragment(kind=FragmentKind.HEADER, text="Introduction", level=2),
            make_fragment(kind=FragmentKind.HEADER, text="Too Deep", level=3),
            make_fragment(text="Body"),
        ]

        markdown = assembler.render(fragments)

        assert markdown.startswith(
            "## Table of Contents\n\n"
            "- [Introduction](#introduction)\n"
            "  - [Introduction](#introduction-1)\n\n"
            "# Introduction"
        )
        assert "[Too Deep]" not in markdown

    def test_toc_anchor_counts_unlisted_headings(self, make_fragment):
        """Test a heading deeper than the TOC still consumes its anchor slug."""
        from mdrecon.config import MarkdownConfig
        from mdrecon.utils.fragments import FragmentKind
        from mdrecon.utils.markdown import MarkdownAssembler

        assembler = MarkdownAssembler(MarkdownConfig(include_table_of_contents=True, toc_max_depth=2))
        fragments = [
            make_fragment(kind=FragmentKind.HEADER, text="Summary", level=3),
            make_fragment(kind=FragmentKind.HEADER, text="Summary", level=1),
        ]

        toc = assembler.table_of_contents(fragments)

        assert toc == "## Table of Contents\n\n- [Summary](#summary-1)"

    def test_toc_omitted_without_headings(self, make_fragment):
        """Test no TOC block when there is nothing to link."""
        from mdrecon.config import MarkdownConfig
        from mdrecon.utils.markdown import MarkdownAssembler

        assembler = MarkdownAssembler(MarkdownConfig(include_table_of_contents=True))

        assert assembler.render([make_fragment(text="Body")]) == "Body"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
