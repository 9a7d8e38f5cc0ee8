"""Collision-free naming within a destination folder."""

from __future__ import annotations

from .utils import split_name


def unique_name(base: str, existing_names: set[str]) -> str:
    """Return *base*, or the first ``stem_N.ext`` not in *existing_names*.

    The chosen name is added to *existing_names* before returning, so the
    same set can be threaded through a whole batch and two items of the
    batch never resolve to the same name.

    Examples:
        unique_name("report.pdf", {"report.pdf"}) -> "report_1.pdf"
        unique_name("report.pdf", {"report.pdf", "report_1.pdf"}) -> "report_2.pdf"
        unique_name("notes", {"notes"}) -> "notes_1"
    """
    if base not in existing_names:
        existing_names.add(base)
        return base

    stem, ext = split_name(base)
    counter = 1
    while True:
        candidate = f"{stem}_{counter}.{ext}" if ext else f"{stem}_{counter}"
        if candidate not in existing_names:
            existing_names.add(candidate)
            return candidate
        counter += 1
