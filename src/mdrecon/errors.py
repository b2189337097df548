"""
Error types for the Markdown reconstruction pipeline.
"""

from typing import List, Optional


class MDReconError(Exception):
    """Base class for all pipeline errors."""


class ConfigValidationError(MDReconError):
    """
    Raised when a configuration violates one or more constraints.

    All violations are collected before raising, so ``errors`` always holds
    the complete list rather than the first problem found.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        message = f"{len(self.errors)} configuration error(s): " + "; ".join(self.errors)
        super().__init__(message)


class UnitMismatchError(MDReconError):
    """A normalized threshold was applied to absolute coordinates, or vice versa."""

    def __init__(self, name: str, threshold_normalized: bool, coordinates_normalized: bool):
        self.name = name
        self.threshold_normalized = threshold_normalized
        self.coordinates_normalized = coordinates_normalized
        expected = "normalized" if coordinates_normalized else "absolute"
        actual = "normalized" if threshold_normalized else "absolute"
        super().__init__(
            f"{name} is {actual} but fragments use {expected} coordinates"
        )


class MarkdownGenerationError(MDReconError):
    """Raised when Markdown cannot be produced from the given fragments."""


class FragmentFormatError(MDReconError):
    """Raised when fragment input data is malformed."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)
