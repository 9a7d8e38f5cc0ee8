"""
Shared path utilities for the virtual folder hierarchy.

Virtual paths are slash-delimited strings with no leading or trailing
slash.  The root is the empty string.  Every comparison between paths
goes through ``normalize_path`` first and every containment test goes
through ``is_under``, which appends the separator to both operands so
``"ab/x.txt"`` is never treated as living under ``"a"``.
"""

from __future__ import annotations

import mimetypes
import posixpath
import re

SEPARATOR = "/"

SENTINEL_NAME = ".keeper"
"""File name of the placeholder object that keeps an empty folder discoverable."""

ROOT = ""
"""Virtual path of the project root (also the root move destination)."""

_SLASH_RUN = re.compile(r"\s*/+\s*")

# Reserved names (Windows compatibility for downloaded archives)
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}


# =============================================================================
# Normalization
# =============================================================================

def normalize_path(path: str | None) -> str:
    """
    Canonicalize a virtual path.

    - Backslashes become slashes
    - Runs of slashes collapse to one
    - Whitespace padding around slashes is trimmed
    - Leading and trailing slashes are stripped

    Examples:
        normalize_path("a//b/ ") -> "a/b"
        normalize_path("\\\\Plans\\\\site.pdf") -> "Plans/site.pdf"
        normalize_path(" / ") -> ""
        normalize_path(None) -> ""
    """
    if not path:
        return ROOT

    path = path.replace("\\", SEPARATOR).strip()
    path = _SLASH_RUN.sub(SEPARATOR, path)
    return path.strip(SEPARATOR).strip()


def join_path(*parts: str | None) -> str:
    """Join path segments, skipping empty ones, and normalize the result."""
    return normalize_path(SEPARATOR.join(p for p in parts if p))


def parent_path(path: str) -> str:
    """
    Return the parent of a normalized path.

    Examples:
        parent_path("a/b/c.txt") -> "a/b"
        parent_path("a") -> ""
        parent_path("") -> ""
    """
    path = normalize_path(path)
    if SEPARATOR not in path:
        return ROOT
    return path.rsplit(SEPARATOR, 1)[0]


def base_name(path: str) -> str:
    """Return the last segment of a path (``""`` for the root)."""
    path = normalize_path(path)
    return path.rsplit(SEPARATOR, 1)[-1]


def is_under(path: str, folder: str) -> bool:
    """Guarded prefix test: True if *path* lies strictly inside *folder*.

    Both operands get a trailing separator before comparison, so the
    folder ``"a"`` contains ``"a/x"`` but not ``"ab/x"`` and not ``"a"``
    itself.  Every path is inside the root.
    """
    if folder == ROOT:
        return path != ROOT
    return (path + SEPARATOR).startswith(folder + SEPARATOR) and path != folder


def rebase_path(path: str, old_prefix: str, new_prefix: str) -> str:
    """Replace the leading *old_prefix* folder of *path* with *new_prefix*.

    The suffix after the old prefix is preserved verbatim.  *path* must
    satisfy ``is_under(path, old_prefix)`` or equal it.
    """
    if path == old_prefix:
        return new_prefix
    if old_prefix == ROOT:
        return join_path(new_prefix, path)
    suffix = path[len(old_prefix) + 1:]
    return join_path(new_prefix, suffix)


def sentinel_path(folder_path: str) -> str:
    """Virtual path of the placeholder record for *folder_path*."""
    return join_path(folder_path, SENTINEL_NAME)


def split_name(name: str) -> tuple[str, str]:
    """
    Split a file name into (stem, extension) at the last dot.

    The extension keeps no leading dot.  Dotfiles and names without a
    dot have an empty extension.

    Examples:
        split_name("report.pdf") -> ("report", "pdf")
        split_name("archive.tar.gz") -> ("archive.tar", "gz")
        split_name("README") -> ("README", "")
        split_name(".env") -> (".env", "")
    """
    stem, ext = posixpath.splitext(name)
    return stem, ext.lstrip(".")


# =============================================================================
# Validation
# =============================================================================

def validate_name(name: str | None) -> tuple[bool, str]:
    """
    Validate a single file or folder name supplied by a user.

    Returns:
        (is_valid, error_message) - error_message is empty if valid
    """
    if name is None or not name.strip():
        return False, "Name cannot be empty"

    name = name.strip()

    if SEPARATOR in name or "\\" in name:
        return False, f"Name cannot contain a path separator: {name}"

    if name in (".", ".."):
        return False, f"Invalid name: {name}"

    if name == SENTINEL_NAME:
        return False, f"Reserved name: {name}"

    if "\x00" in name:
        return False, "Name contains null bytes"

    if len(name) > 255:
        return False, "Name too long (max 255 characters)"

    stem = name.upper().split(".")[0]
    if stem in RESERVED_NAMES:
        return False, f"Reserved name: {name}"

    return True, ""


def guess_mime_type(filename: str) -> str:
    """
    Guess the MIME type of a file based on its name.

    Returns "application/octet-stream" for unknown types.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"
