#!/usr/bin/env python
"""
Command-line interface for the Markdown Reconstruction Pipeline.

Usage:
    mdrecon --input <fragments.json> [<more.json> ...] --output <output_dir> [options]

Examples:
    # Convert one recognition result
    mdrecon --input page_fragments.json --output ./output

    # Convert a folder of results with four workers and a table of contents
    mdrecon --input ./fragments --output ./output --workers 4 --toc

    # Check a configuration file without processing anything
    mdrecon --config mdrecon.json --validate-only
"""

import sys
from pathlib import Path

# Add src directory to path for imports when running as script
_src_dir = Path(__file__).parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import argparse
import logging
import time

from mdrecon import __version__

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("mdrecon")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_CONFIG = 2
EXIT_INTERRUPTED = 130


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="mdrecon",
        description="Markdown Reconstruction Pipeline - Convert recognized layout fragments to Markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Convert a recognition result:
    mdrecon --input page_fragments.json --output ./output

  Convert a folder of results concurrently:
    mdrecon --input ./fragments --output ./output --workers 4

  Drop page headers and footers, add a table of contents:
    mdrecon --input doc.json --output ./output --remove-headers-footers --toc

  Validate a configuration file:
    mdrecon --config mdrecon.json --validate-only
        """
    )

    parser.add_argument(
        "--input", "-i",
        nargs="+",
        default=[],
        help="Fragment JSON file(s) or folder(s) of JSON files"
    )

    parser.add_argument(
        "--output", "-o",
        default="./output",
        help="Output directory for generated files (default: ./output)"
    )

    parser.add_argument(
        "--config", "-c",
        default=None,
        help="JSON configuration file (default: built-in configuration)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of documents processed concurrently (default: from configuration)"
    )

    parser.add_argument(
        "--remove-headers-footers",
        action="store_true",
        help="Drop detected page headers and footers instead of tagging them"
    )

    parser.add_argument(
        "--toc",
        dest="toc",
        action="store_true",
        default=None,
        help="Include a table of contents"
    )

    parser.add_argument(
        "--no-toc",
        dest="toc",
        action="store_false",
        help="Omit the table of contents"
    )

    parser.add_argument(
        "--page-breaks",
        action="store_true",
        help="Insert a page marker before each new page"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Also write the processed document as JSON"
    )

    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Validate the configuration and exit"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (stop on the first failing document and re-raise errors)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def build_config(args):
    """Load the configuration and apply command-line overrides (not validated)."""
    from mdrecon.config import get_config, load_config

    config = load_config(args.config, validate=False) if args.config else get_config()

    if args.workers is not None:
        config.processing.max_workers = args.workers
    if args.remove_headers_footers:
        config.markdown.remove_headers_footers = True
    if args.toc is not None:
        config.markdown.include_table_of_contents = args.toc
    if args.page_breaks:
        config.markdown.add_page_breaks = True
    if args.debug:
        config.debug_mode = True

    return config


def run_pipeline(args) -> int:
    """Run the Markdown reconstruction pipeline."""
    from mdrecon.config import validate_config
    from mdrecon.errors import ConfigValidationError, FragmentFormatError
    from mdrecon.utils.io import expand_inputs, load_fragments, save_json, save_markdown, ensure_dir
    from mdrecon.utils.pipeline import DocumentPipeline

    start_time = time.time()

    # Configuration
    try:
        config = validate_config(build_config(args))
    except ConfigValidationError as e:
        logger.error("Invalid configuration:")
        for error in e.errors:
            logger.error(f"  - {error}")
        return EXIT_INVALID_CONFIG

    if args.validate_only:
        if not args.quiet:
            print("Configuration is valid")
        return EXIT_OK

    # Inputs
    input_files = expand_inputs(args.input)
    if not input_files:
        logger.error("No fragment JSON inputs to process")
        return EXIT_FAILURE

    logger.info(f"Found {len(input_files)} input file(s)")

    output_dir = ensure_dir(args.output)
    pipeline = DocumentPipeline(config, validate=False)

    documents = []
    load_failures = 0
    for path in input_files:
        try:
            documents.append((str(path), load_fragments(path)))
        except FragmentFormatError as e:
            logger.error(f"Could not load {path}: {e}")
            pipeline.statistics.record_document(success=False)
            load_failures += 1

    # Process
    logger.info("Processing documents...")
    results = pipeline.process_batch(documents)

    # Export
    for source, document in results.items():
        if document is None:
            continue
        stem = Path(source).stem
        save_markdown(document.markdown, output_dir / f"{stem}.md")
        if args.json:
            json_path = save_json(document.to_dict(), output_dir / f"{stem}.json")
            logger.info(f"Saved JSON: {json_path}")

    failures = load_failures + sum(1 for doc in results.values() if doc is None)

    # Print summary
    elapsed = time.time() - start_time
    stats = pipeline.statistics.to_dict()

    if not args.quiet:
        print("\n" + "=" * 60)
        print("MARKDOWN RECONSTRUCTION COMPLETE")
        print("=" * 60)
        print(f"Output: {output_dir}")
        print(f"Documents: {stats['documents']['processed']} processed, "
              f"{stats['documents']['failed']} failed")
        print(f"Processing time: {elapsed:.2f}s")
        print()
        print("Fragments:")
        print(f"  Input: {stats['fragments']['total']}")
        print(f"  Duplicates removed: {stats['fragments']['deduplicated']}")
        print(f"  Merges: {stats['fragments']['merged']}")
        if stats["categories"]:
            print("Categories:")
            for category, count in sorted(stats["categories"].items()):
                print(f"  {category}: {count}")
        print("=" * 60)

    return EXIT_FAILURE if failures else EXIT_OK


def main():
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    if not args.input and not args.validate_only:
        parser.error("--input is required unless --validate-only is given")

    # Run pipeline
    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            raise
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
