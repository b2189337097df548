"""
Tests for header and list item pattern classification.
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def classifier():
    """Pattern classifier with default configuration."""
    from mdrecon.config import HeaderDetectionConfig, ListDetectionConfig
    from mdrecon.utils.patterns import PatternClassifier

    return PatternClassifier(HeaderDetectionConfig(), ListDetectionConfig())


class TestHeaderDetection:
    """Test detect_header()."""

    @pytest.mark.parametrize("text,category,level", [
        ("1.2.3 Methods", "numbered", 3),
        ("2.1 Background", "numbered", 2),
        ("3 Results", "numbered", 1),
        ("Chapter 1 Introduction", "named", 2),
        ("Section 3: Methods", "named", 3),
        ("Appendix B", "named", 2),
        ("A. Overview", "lettered", 1),
        ("IV. Results", "roman", 1),
        ("第一章 总论", "named", 2),
    ])
    def test_categories_and_levels(self, classifier, make_fragment, text, category, level):
        """Test category and level for typical headings."""
        result = classifier.detect_header(make_fragment(text=text))

        assert result.is_header is True
        assert result.category == category
        assert result.level == level
        assert 0.0 < result.confidence <= 1.0

    def test_level_offset(self, make_fragment):
        """Test the markdown level offset is added."""
        from mdrecon.config import HeaderDetectionConfig, ListDetectionConfig
        from mdrecon.utils.patterns import PatternClassifier

        config = HeaderDetectionConfig(markdown_level_offset=1)
        result = PatternClassifier(config, ListDetectionConfig()).detect_header(
            make_fragment(text="1.2.3 Methods")
        )

        assert result.level == 4

    def test_level_clamped_to_max(self, make_fragment):
        """Test deep numbering is clamped to max_level."""
        from mdrecon.config import HeaderDetectionConfig, ListDetectionConfig
        from mdrecon.utils.patterns import PatternClassifier

        config = HeaderDetectionConfig(markdown_level_offset=2)
        config.level_calculation.max_level = 3
        result = PatternClassifier(config, ListDetectionConfig()).detect_header(
            make_fragment(text="1.2.3.4.5 Details")
        )

        assert result.level == 3

    def test_confidence_ordering(self, classifier, make_fragment):
        """Test named > numbered > lettered for same-length text."""
        named = classifier.detect_header(make_fragment(text="Part Two Scope"))
        numbered = classifier.detect_header(make_fragment(text="1.2 Scope Text"))
        lettered = classifier.detect_header(make_fragment(text="A. Scope Texts"))

        assert named.confidence > numbered.confidence > lettered.confidence

    def test_confidence_ordering_ignores_length(self, classifier, make_fragment):
        """Test category order holds when the stronger category has longer text."""
        named = classifier.detect_header(make_fragment(
            text="Chapter 4 A Rather Long Chapter Heading About Many Things"
        ))
        numbered = classifier.detect_header(make_fragment(text="1.2 Scope"))
        long_numbered = classifier.detect_header(make_fragment(
            text="1.2 A Rather Long Numbered Heading About Many More Things"
        ))
        lettered = classifier.detect_header(make_fragment(text="A. Intro"))

        assert named.confidence > numbered.confidence
        assert long_numbered.confidence > lettered.confidence
        assert numbered.confidence > lettered.confidence

    @pytest.mark.parametrize("text", ["I. Introduction", "V. Results", "X) Appendix Notes"])
    def test_roman_preferred_over_lettered(self, classifier, make_fragment, text):
        """Test single roman-numeral letters are read as roman numbering."""
        result = classifier.detect_header(make_fragment(text=text))

        assert result.category == "roman"
        assert result.level == 1

    @pytest.mark.parametrize("text", [
        "",
        "   ",
        "This is an ordinary sentence.",
        "1.2 Results are shown below.",
        "42",
        "1. first item",
        "plain body text",
    ])
    def test_negative(self, classifier, make_fragment, text):
        """Test non-headers are rejected with zero confidence."""
        result = classifier.detect_header(make_fragment(text=text))

        assert result.is_header is False
        assert result.confidence == 0.0

    def test_too_long(self, classifier, make_fragment):
        """Test text above max_header_length is never a header."""
        result = classifier.detect_header(make_fragment(text="Chapter " + "x" * 150))

        assert result.is_header is False

    def test_heuristic_only_when_enabled(self, make_fragment):
        """Test the all-caps heuristic is opt-in and low confidence."""
        from mdrecon.config import HeaderDetectionConfig, ListDetectionConfig
        from mdrecon.utils.patterns import HEURISTIC_CONFIDENCE, PatternClassifier

        fragment = make_fragment(text="INTRODUCTION")
        default = PatternClassifier(HeaderDetectionConfig(), ListDetectionConfig())
        enabled = PatternClassifier(
            HeaderDetectionConfig(enable_content_based_detection=True), ListDetectionConfig()
        )

        assert default.detect_header(fragment).is_header is False
        result = enabled.detect_header(fragment)
        assert result.is_header is True
        assert result.category == "heuristic"
        assert result.confidence == HEURISTIC_CONFIDENCE

    def test_custom_patterns(self, make_fragment):
        """Test patterns come from configuration."""
        from mdrecon.config import HeaderDetectionConfig, HeaderPatterns, ListDetectionConfig
        from mdrecon.utils.patterns import PatternClassifier

        patterns = HeaderPatterns(named_headers=[r"^(Kapitel)\s+\S.*$"])
        config = HeaderDetectionConfig(patterns=patterns)
        config.level_calculation.custom_levels = {"Kapitel": 2}
        classifier = PatternClassifier(config, ListDetectionConfig())

        assert classifier.detect_header(make_fragment(text="Kapitel 4 Ergebnisse")).level == 2
        assert classifier.detect_header(make_fragment(text="Chapter 4 Results")).is_header is False


class TestListDetection:
    """Test detect_list_item()."""

    @pytest.mark.parametrize("text,category,marker", [
        ("1. first item", "numbered", "1."),
        ("2) second item", "numbered", "2)"),
        ("(3) third item", "numbered", "(3)"),
        ("a. letter item", "lettered", "a."),
        ("(b) letter item", "lettered", "(b)"),
        ("- dash item", "bullet", "-"),
        ("• dot item", "bullet", "•"),
        ("iv. fourth item", "roman", "iv."),
        ("① circled item", "custom", "①"),
    ])
    def test_markers(self, classifier, make_fragment, text, category, marker):
        """Test marker extraction per category."""
        result = classifier.detect_list_item(make_fragment(text=text))

        assert result.is_list_item is True
        assert result.category == category
        assert result.marker == marker

    @pytest.mark.parametrize("text", ["", "Regular paragraph", "-no space", "1.5 million"])
    def test_negative(self, classifier, make_fragment, text):
        """Test non-list text is rejected with zero confidence."""
        result = classifier.detect_list_item(make_fragment(text=text))

        assert result.is_list_item is False
        assert result.confidence == 0.0

    @pytest.mark.parametrize("x,level", [(0.0, 1), (0.1, 1), (0.15, 2), (0.2, 3)])
    def test_indentation_levels(self, classifier, make_fragment, x, level):
        """Test nesting from horizontal offset."""
        result = classifier.detect_list_item(make_fragment(box=(x, 0.3, 0.4, 0.02), text="- item"))

        assert result.level == level

    def test_indentation_disabled(self, make_fragment):
        """Test every item is level 1 without indentation detection."""
        from mdrecon.config import HeaderDetectionConfig, ListDetectionConfig
        from mdrecon.utils.patterns import PatternClassifier

        list_config = ListDetectionConfig()
        list_config.indentation.enable_indentation_detection = False
        classifier = PatternClassifier(HeaderDetectionConfig(), list_config)

        result = classifier.detect_list_item(make_fragment(box=(0.3, 0.3, 0.4, 0.02), text="- item"))

        assert result.level == 1

    def test_bullet_confidence_higher(self, classifier, make_fragment):
        """Test bullets score above numbered markers of equal length."""
        bullet = classifier.detect_list_item(make_fragment(text="- short"))
        numbered = classifier.detect_list_item(make_fragment(text="1. short"))

        assert bullet.confidence > numbered.confidence


class TestClassify:
    """Test the classification stage."""

    def test_retags_content(self, classifier, make_fragment):
        """Test paragraphs become headers or list items."""
        from mdrecon.utils.fragments import FragmentKind

        fragments = [
            make_fragment(text="2.1 Background"),
            make_fragment(text="- bullet point"),
            make_fragment(text="Body copy without markers"),
        ]

        result = classifier.classify(fragments)

        assert [f.kind for f in result] == [
            FragmentKind.HEADER, FragmentKind.LIST_ITEM, FragmentKind.PARAGRAPH
        ]
        assert result[0].level == 2
        assert result[0].metadata["header_category"] == "numbered"
        assert result[1].metadata["list_marker"] == "-"
        assert result[1].id == fragments[1].id

    def test_headers_keep_kind(self, classifier, make_fragment):
        """Test existing headers only gain a level."""
        from mdrecon.utils.fragments import FragmentKind

        numbered = make_fragment(kind=FragmentKind.HEADER, text="1.2 Methods")
        plain = make_fragment(kind=FragmentKind.HEADER, text="Results")

        result = classifier.classify([numbered, plain])

        assert all(f.kind == FragmentKind.HEADER for f in result)
        assert result[0].level == 2
        assert result[1].level is None

    def test_passthrough_kinds(self, classifier, make_fragment):
        """Test tables and titles are never re-tagged."""
        from mdrecon.utils.fragments import FragmentKind

        table = make_fragment(kind=FragmentKind.TABLE, text="1. a | b")
        title = make_fragment(kind=FragmentKind.TITLE, text="Chapter 1 Overview")

        result = classifier.classify([table, title])

        assert [f.kind for f in result] == [FragmentKind.TABLE, FragmentKind.TITLE]

    def test_disabled_detection(self, make_fragment):
        """Test nothing is re-tagged when both detectors are disabled."""
        from mdrecon.config import HeaderDetectionConfig, ListDetectionConfig
        from mdrecon.utils.fragments import FragmentKind
        from mdrecon.utils.patterns import classify_patterns

        fragments = [make_fragment(text="1.1 Scope"), make_fragment(text="- item")]

        result = classify_patterns(
            fragments, HeaderDetectionConfig(enabled=False), ListDetectionConfig(enabled=False)
        )

        assert all(f.kind == FragmentKind.PARAGRAPH for f in result)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
