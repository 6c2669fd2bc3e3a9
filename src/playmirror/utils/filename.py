"""Filename sanitization utilities for destination paths."""

import re
import unicodedata
from pathlib import PurePath

from pathvalidate import sanitize_filename
from unidecode import unidecode

# Anything else is replaced in destination paths
FORBIDDEN_CHARS = re.compile(r"[^a-zA-Z0-9./ ]")


def strip_marks(s: str) -> str:
    """Remove combining diacritical marks, keeping the base characters.

    Example:
        >>> strip_marks("Beyoncé")
        'Beyonce'
    """
    decomposed = unicodedata.normalize("NFD", s)
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    return unicodedata.normalize("NFC", stripped)


def sanitize_relative_path(
    path: PurePath | str, *, transliterate: bool = False
) -> str:
    """Build the destination path for a source path relative to the library.

    Diacritical marks are stripped, then every character outside
    ``[a-zA-Z0-9./ ]`` is replaced with ``_``. Path separators are kept, so
    the directory structure is preserved.

    Args:
        path: Source path relative to the source library root.
        transliterate: If True, transliterate remaining non-ASCII letters
            to ASCII (e.g. "ß" to "ss") before replacing.

    Returns:
        Sanitized POSIX-style relative path.

    Example:
        >>> sanitize_relative_path("Sigur Rós/Ágætis byrjun/01 Intro.mp3")
        'Sigur Ros/Ag_tis byrjun/01 Intro.mp3'
        >>> sanitize_relative_path("AC-DC/Back in Black (1980)/Hell's Bells.m4a")
        'AC_DC/Back in Black _1980_/Hell_s Bells.m4a'
    """
    posix = PurePath(path).as_posix()
    cleaned = strip_marks(posix)
    if transliterate:
        cleaned = unidecode(cleaned)
    return FORBIDDEN_CHARS.sub("_", cleaned)


def clean_filename(s: str) -> str:
    """Sanitize a string for use as a single file name.

    Used for playlist file names written to the destination root.

    Example:
        >>> clean_filename("AC/DC.m3u")
        'ACDC.m3u'
    """
    safe = sanitize_filename(s)
    if not safe or not safe.strip():
        return "Untitled Playlist.m3u"
    return safe
