from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from soapscribe.notes.content import NoteContent, validate_section_keys

MergeMode = Literal["append", "replace"]

PARAGRAPH_SEPARATOR = "\n\n"


def _append(existing: str, addition: str, *, separator: str) -> str:
    if existing == "":
        return addition
    return f"{existing}{separator}{addition}"


def merge(
    existing: NoteContent,
    proposal: NoteContent,
    mode: MergeMode,
    targets: Iterable[str],
    *,
    separator: str = PARAGRAPH_SEPARATOR,
) -> NoteContent:
    """
    Apply `proposal` onto `existing` for the sections named in `targets`.

    `replace` takes the proposal text verbatim, empty included. `append` adds the proposal
    after a paragraph separator, except that an empty existing section simply takes the
    proposal. Whitespace counts as content, and an empty proposal still adds the separator.
    Sections outside `targets` are untouched.

    Callers invoke this only after the clinician explicitly approved the proposal; the
    result is returned, never persisted here.
    """

    if mode not in ("append", "replace"):
        raise ValueError(f"Unknown merge mode: {mode!r}")

    merged = existing
    for key in validate_section_keys(targets):
        incoming = proposal.section(key)
        if mode == "replace":
            text = incoming
        else:
            text = _append(existing.section(key), incoming, separator=separator)
        merged = merged.with_section(key, text)
    return merged
