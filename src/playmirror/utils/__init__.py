"""Utility functions for playmirror.

Available via `from playmirror.utils import ...` for power users.
Not re-exported at the top-level `playmirror` package.
"""

from playmirror.utils.filename import (
    clean_filename,
    sanitize_relative_path,
    strip_marks,
)
from playmirror.utils.m3u import generate_m3u, parse_m3u, read_m3u, write_m3u

__all__ = [
    "clean_filename",
    "generate_m3u",
    "parse_m3u",
    "read_m3u",
    "sanitize_relative_path",
    "strip_marks",
    "write_m3u",
]
