"""
End-to-end tests for the document pipeline.
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def report(make_fragment):
    """Two-page document with a running head, a split sentence and a duplicate."""
    from mdrecon.utils.fragments import FragmentKind

    return [
        # Deliberately out of reading order
        make_fragment(box=(0.1, 0.7, 0.4, 0.03), text="- bullet item"),
        make_fragment(box=(0.1, 0.6, 0.8, 0.05), text="Body text duplicate", confidence=0.5),
        make_fragment(box=(0.1, 0.6, 0.8, 0.05), text="Body text duplicate", confidence=0.9),
        make_fragment(box=(0.1, 0.435, 0.8, 0.03), text="continues here."),
        make_fragment(box=(0.1, 0.4, 0.8, 0.03), text="First half of a sentence"),
        make_fragment(box=(0.1, 0.3, 0.4, 0.03), text="1.1 Scope"),
        make_fragment(box=(0.1, 0.15, 0.8, 0.05), kind=FragmentKind.TITLE, text="Annual Report"),
        make_fragment(box=(0.1, 0.02, 0.5, 0.02), text="Running head"),
        make_fragment(box=(0.1, 0.5, 0.8, 0.03), text="Page two body", page=2),
        make_fragment(box=(0.1, 0.02, 0.5, 0.02), text="Running head", page=2),
    ]


class TestProcessDocument:
    """Test DocumentPipeline.process_document()."""

    def test_end_to_end(self, report):
        """Test ordering, cleanup, classification and rendering together."""
        from mdrecon.utils.fragments import FragmentKind
        from mdrecon.utils.pipeline import DocumentPipeline

        document = DocumentPipeline().process_document(report, source_file="report.json")
        markdown = document.markdown

        assert document.pages_processed == 2
        assert document.input_fragments == 10
        assert document.deduplicated == 1
        assert document.merged == 1
        assert len(document.fragments) == 8

        assert "First half of a sentence continues here." in markdown
        assert markdown.count("Body text duplicate") == 1
        assert "- bullet item" in markdown
        assert "---" not in markdown

        ordered = ["# Annual Report", "## 1.1 Scope", "First half", "Body text", "- bullet", "Page two body"]
        positions = [markdown.index(part) for part in ordered]
        assert positions == sorted(positions)

        kinds = {f.text: f.kind for f in document.fragments}
        assert kinds["1.1 Scope"] == FragmentKind.HEADER
        assert kinds["- bullet item"] == FragmentKind.LIST_ITEM
        heads = [f for f in document.fragments if f.text == "Running head"]
        assert len(heads) == 2
        assert all(f.kind == FragmentKind.HEADER for f in heads)

        assert document.categories == {"header": 3, "title": 1, "paragraph": 3, "list_item": 1}

    def test_remove_headers_footers(self, report):
        """Test boilerplate is dropped when configured."""
        from mdrecon.config import PipelineConfig
        from mdrecon.utils.pipeline import DocumentPipeline

        config = PipelineConfig()
        config.markdown.remove_headers_footers = True

        document = DocumentPipeline(config).process_document(report)

        assert "Running head" not in document.markdown
        assert "## 1.1 Scope" in document.markdown

    def test_stages_can_be_disabled(self, report):
        """Test deduplication and merging switches."""
        from mdrecon.config import PipelineConfig
        from mdrecon.utils.pipeline import DocumentPipeline

        config = PipelineConfig()
        config.processing.enable_deduplication = False
        config.processing.enable_element_merging = False

        document = DocumentPipeline(config).process_document(report)

        assert document.deduplicated == 0
        assert document.merged == 0
        assert document.markdown.count("Body text duplicate") == 2

    def test_concurrent_matches_sequential(self, report):
        """Test page concurrency does not change the output."""
        from mdrecon.utils.pipeline import DocumentPipeline

        pipeline = DocumentPipeline()
        sequential = pipeline.process_document(report, max_workers=1)
        concurrent = pipeline.process_document(report, max_workers=4)

        assert concurrent.markdown == sequential.markdown
        assert [f.text for f in concurrent.fragments] == [f.text for f in sequential.fragments]

    def test_empty_document_raises(self):
        """Test a document without fragments fails and is counted."""
        from mdrecon.errors import MarkdownGenerationError
        from mdrecon.utils.pipeline import DocumentPipeline

        pipeline = DocumentPipeline()

        with pytest.raises(MarkdownGenerationError):
            pipeline.process_document([])
        assert pipeline.statistics.documents_failed == 1

    def test_unit_mismatch_raises(self, make_fragment):
        """Test normalized thresholds on absolute coordinates are rejected."""
        from mdrecon.config import PipelineConfig
        from mdrecon.errors import ConfigValidationError, UnitMismatchError
        from mdrecon.utils.pipeline import DocumentPipeline

        config = PipelineConfig()
        config.processing.normalized_coordinates = False

        with pytest.raises(ConfigValidationError):
            DocumentPipeline(config)

        pipeline = DocumentPipeline(config, validate=False)
        with pytest.raises(UnitMismatchError):
            pipeline.process_document([make_fragment(box=(72, 100, 300, 20))])

    def test_statistics_recorded(self, report):
        """Test counts and stage timings reach the statistics."""
        from mdrecon.utils.pipeline import DocumentPipeline

        pipeline = DocumentPipeline()
        pipeline.process_document(report)
        stats = pipeline.statistics.to_dict()

        assert stats["fragments"] == {"total": 10, "deduplicated": 1, "merged": 1}
        assert stats["documents"]["processed"] == 1
        assert {"ordering", "deduplication", "merging", "frequency",
                "header_footer", "patterns", "markdown"} <= set(stats["stage_timings"])

    def test_to_dict(self, report):
        """Test the JSON form of a processed document."""
        from mdrecon.config import JSON_SCHEMA_VERSION
        from mdrecon.utils.pipeline import DocumentPipeline

        data = DocumentPipeline().process_document(report, source_file="report.json").to_dict()

        assert data["schema_version"] == JSON_SCHEMA_VERSION
        assert data["source_file"] == "report.json"
        assert data["statistics"]["deduplicated"] == 1
        assert len(data["fragments"]) == 8
        assert data["markdown"].startswith("# Running head")

    def test_split_heading_and_contents_page(self, make_fragment):
        """Test split headings are rejoined and a contents page loses page numbers."""
        from mdrecon.config import PipelineConfig
        from mdrecon.utils.fragments import FragmentKind
        from mdrecon.utils.pipeline import DocumentPipeline

        config = PipelineConfig()
        config.header_footer_detection.enabled = False
        config.processing.enable_element_merging = False
        fragments = [
            make_fragment(box=(0.1, 0.1, 0.5, 0.02), text="1 Scope 3"),
            make_fragment(box=(0.1, 0.15, 0.5, 0.02), text="2 Terms 4"),
            make_fragment(box=(0.1, 0.2, 0.5, 0.02), text="3 Methods 9"),
            make_fragment(box=(0.1, 0.2, 0.3, 0.03), text="3 Methods and", page=2),
            make_fragment(box=(0.45, 0.2, 0.3, 0.03), text="Materials", page=2),
            make_fragment(box=(0.1, 0.5, 0.8, 0.05), text="Samples were collected daily.", page=2),
        ]

        pipeline = DocumentPipeline(config)
        document = pipeline.process_document(fragments)

        headers = [f for f in document.fragments if f.kind == FragmentKind.HEADER]
        assert [f.text for f in headers] == ["1 Scope", "2 Terms", "3 Methods", "3 Methods and Materials"]
        assert [f.page for f in headers] == [1, 1, 1, 2]
        assert "## 3 Methods and Materials" not in document.markdown
        assert "# 3 Methods and Materials" in document.markdown
        assert {"structure", "toc"} <= set(pipeline.statistics.to_dict()["stage_timings"])


class TestProcessBatch:
    """Test DocumentPipeline.process_batch()."""

    def test_debug_mode_raises(self, report):
        """Test debug mode surfaces the failing document's error."""
        from mdrecon.config import PipelineConfig
        from mdrecon.errors import MarkdownGenerationError
        from mdrecon.utils.pipeline import DocumentPipeline

        config = PipelineConfig(debug_mode=True)
        pipeline = DocumentPipeline(config)

        with pytest.raises(MarkdownGenerationError):
            pipeline.process_batch([("good", report), ("empty", [])])
        assert pipeline.statistics.documents_failed == 1

    def test_failure_does_not_stop_batch(self, report):
        """Test failed documents map to None and are counted."""
        from mdrecon.utils.pipeline import DocumentPipeline

        pipeline = DocumentPipeline()
        results = pipeline.process_batch([("good", report), ("empty", []), ("again", report)],
                                         max_workers=2)

        assert list(results) == ["good", "empty", "again"]
        assert results["empty"] is None
        assert results["good"].markdown == results["again"].markdown
        assert pipeline.statistics.documents_processed == 2
        assert pipeline.statistics.documents_failed == 1

    def test_shared_statistics(self, report):
        """Test several pipelines can share one statistics object."""
        from mdrecon.utils.pipeline import DocumentPipeline
        from mdrecon.utils.stats import ProcessingStatistics

        shared = ProcessingStatistics()
        DocumentPipeline(statistics=shared).process_document(report)
        DocumentPipeline(statistics=shared).process_document(report)

        assert shared.documents_processed == 2
        assert shared.total_fragments == 20


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
