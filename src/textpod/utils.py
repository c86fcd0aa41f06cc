"""Utility functions for the textpod server."""

import datetime
from pathlib import Path

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Characters that are never safe in a filename on any common filesystem
_UNSAFE_FILENAME_CHARS = set('/\\:*?"<>|')


def local_timestamp() -> str:
    """Return the current local wall-clock time with second precision."""
    return datetime.datetime.now().strftime(TIMESTAMP_FORMAT)


def url_to_safe_filename(url: str) -> str:
    """Turn a URL into a single filesystem-safe path component.

    The ``http://`` or ``https://`` scheme is dropped, anything other than
    alphanumerics, hyphens, dots and underscores becomes ``_``, and leading
    or trailing dots and spaces are trimmed.

    Examples:
        "https://a.b/c?d=e" -> "a.b_c_d_e"
        "http://example.com/page" -> "example.com_page"

    Args:
        url: The URL to convert.

    Returns:
        A string containing no path separators.
    """
    stripped = url.strip()
    for scheme in ("http://", "https://"):
        if stripped.lower().startswith(scheme):
            stripped = stripped[len(scheme):]
            break

    safe_chars = []
    for c in stripped:
        if c in _UNSAFE_FILENAME_CHARS:
            safe_chars.append("_")
        elif c.isalnum() or c in "-._":
            safe_chars.append(c)
        else:
            safe_chars.append("_")

    return "".join(safe_chars).strip(". ")


def unique_path(path: Path) -> Path:
    """Return ``path`` or the first ``stem-N.ext`` sibling that does not exist.

    Examples:
        report.pdf -> report-1.pdf -> report-2.pdf
        README -> README-1
    """
    if not path.exists():
        return path

    stem, suffix = path.stem, path.suffix
    counter = 1
    while True:
        candidate = path.with_name(f"{stem}-{counter}{suffix}")
        if not candidate.exists():
            return candidate
        counter += 1
