"""
I/O utilities for the Markdown reconstruction pipeline.

Handles:
- Fragment JSON loading (as produced by the recognition service)
- Markdown and JSON output
- Directory management
- Input type detection
"""

import json
import logging
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Union

import numpy as np

from .fragments import Fragment
from ..errors import FragmentFormatError

logger = logging.getLogger(__name__)


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy values, dataclasses and fragments."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, Fragment):
            return obj.to_dict()
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Path):
            return str(obj)
        if isinstance(obj, bytes):
            return obj.hex()
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """
    Load data from a JSON file.

    Args:
        json_path: Path to the JSON file

    Returns:
        Parsed JSON data
    """
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


# ============================================================================
# Fragment Input
# ============================================================================

def parse_fragments(data: Any, source: str = "<data>") -> List[Fragment]:
    """
    Build fragments from decoded producer JSON.

    Accepted shapes:
        {"pages": [{"page": 1, "fragments": [...]}, ...]}
        {"fragments": [...]}
        [...]

    Raises:
        FragmentFormatError: If the structure or any fragment is malformed
    """
    fragments: List[Fragment] = []
    try:
        if isinstance(data, dict) and "pages" in data:
            for index, page in enumerate(data["pages"], 1):
                if not isinstance(page, dict):
                    raise FragmentFormatError(f"page entry {index} must be an object")
                number = int(page.get("page", index))
                for item in page.get("fragments", []):
                    fragments.append(Fragment.from_dict(item, page=number))
        elif isinstance(data, dict) and "fragments" in data:
            fragments = [Fragment.from_dict(item) for item in data["fragments"]]
        elif isinstance(data, list):
            fragments = [Fragment.from_dict(item) for item in data]
        else:
            raise FragmentFormatError("expected 'pages', 'fragments' or a list of fragments")
    except FragmentFormatError as e:
        raise FragmentFormatError(str(e), source=source)
    except (TypeError, ValueError) as e:
        raise FragmentFormatError(f"malformed page entry: {e}", source=source)

    logger.debug(f"Parsed {len(fragments)} fragment(s) from {source}")
    return fragments


def load_fragments(json_path: Union[str, Path]) -> List[Fragment]:
    """
    Load fragments from a producer JSON file.

    Args:
        json_path: Path to the JSON file

    Returns:
        Fragments in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        FragmentFormatError: If the content is not valid fragment JSON
    """
    try:
        data = load_json(json_path)
    except json.JSONDecodeError as e:
        raise FragmentFormatError(f"invalid JSON: {e}", source=str(json_path))
    return parse_fragments(data, source=str(json_path))


def save_markdown(markdown: str, output_path: Union[str, Path]) -> Path:
    """Write Markdown text, creating parent directories."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(markdown)
        if markdown and not markdown.endswith("\n"):
            f.write("\n")

    logger.info(f"Exported Markdown to: {output_path}")
    return output_path


# ============================================================================
# Directory Management
# ============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Path to the directory

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


# ============================================================================
# Input Type Detection
# ============================================================================

def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of input file or directory.

    Args:
        input_path: Path to file or directory

    Returns:
        One of: 'json', 'json_folder', 'unknown'
    """
    input_path = Path(input_path)

    if input_path.is_dir():
        has_json = any(f.suffix.lower() == '.json' for f in input_path.iterdir())
        return 'json_folder' if has_json else 'unknown'

    if input_path.exists() and input_path.suffix.lower() == '.json':
        return 'json'

    return 'unknown'


def expand_inputs(paths: List[Union[str, Path]]) -> List[Path]:
    """Resolve files and folders into a sorted list of JSON input files."""
    files: List[Path] = []
    for raw in paths:
        path = Path(raw)
        input_type = detect_input_type(path)
        if input_type == 'json':
            files.append(path)
        elif input_type == 'json_folder':
            files.extend(sorted(f for f in path.iterdir() if f.suffix.lower() == '.json'))
        else:
            logger.warning(f"Skipping unsupported input: {path}")
    return files
