"""Annotation and threaded comment engine for visual review."""

from pathlib import Path

__version__ = (Path(__file__).parent / "VERSION").read_text().strip()
