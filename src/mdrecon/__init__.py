"""
Markdown Reconstruction Pipeline
================================

Turns page-by-page streams of classified layout fragments (as produced by
an external OCR / document-structure service) into clean Markdown.

Main components:
- Rectangle geometry (overlap, gaps, alignment)
- Fragment model and reading order
- Overlap deduplication
- Directional fragment merging
- Header/footer region and frequency classification
- Header and list pattern classification
- Markdown assembly with table of contents
"""

__version__ = "1.0.0"
__author__ = "Markdown Reconstruction Team"
