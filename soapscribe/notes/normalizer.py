from __future__ import annotations

import re
from collections.abc import Mapping

from soapscribe.notes.content import SECTION_KEYS, NoteContent, SectionKey
from soapscribe.notes.errors import ParseError
from soapscribe.notes.raw_response import ObjectForm, RawGenerationResponse, StringForm, Wrapped

# A heading is a section name immediately followed by a colon. The word boundary keeps
# "careplan:" from matching; requiring the colon keeps "discussed the plan" in body text
# from splitting a section.
_SECTION_HEADING_RE = re.compile(r"\b(subjective|objective|assessment|plan):", re.IGNORECASE)


def _resolve_object_key(fields: Mapping[str, str], key: SectionKey) -> str:
    # Presence decides precedence: an exact-case empty value still shadows an upper-case one.
    for candidate in (key, key.upper(), key.lower()):
        if candidate in fields:
            return fields[candidate].strip()
    return ""


def _from_object(form: ObjectForm) -> dict[str, str]:
    return {key: _resolve_object_key(form.fields, key) for key in SECTION_KEYS}


def _from_string(form: StringForm, *, default_section: SectionKey | None) -> dict[str, str]:
    sections = {key: "" for key in SECTION_KEYS}

    # re.split with one capture group yields [preamble, name, body, name, body, ...].
    tokens = _SECTION_HEADING_RE.split(form.text)
    if len(tokens) == 1:
        if default_section is not None:
            sections[default_section] = form.text.strip()
        return sections

    for idx in range(1, len(tokens), 2):
        name = tokens[idx].lower()
        body = tokens[idx + 1] if idx + 1 < len(tokens) else ""
        # Repeated headings: last occurrence wins.
        sections[name] = body.strip()
    return sections


def normalize(
    raw: RawGenerationResponse,
    *,
    default_section: SectionKey | None = None,
) -> NoteContent:
    """
    Convert a raw generation response into a canonical `NoteContent`.

    - `Wrapped` is unwrapped one level.
    - `ObjectForm` reads each section from its exact, upper-case or lower-case key, in that
      order; other keys are ignored.
    - `StringForm` is split on `Name:` headings (case-insensitive). Text before the first
      heading is preamble and dropped. When there is no heading at all and
      `default_section` is given, the whole text belongs to that section.
    - Some empty sections are fine. All four empty raises `ParseError("empty_extraction")`.

    Pure and deterministic: no I/O, logging or clock access.
    """

    if isinstance(raw, Wrapped):
        raw = raw.inner

    if isinstance(raw, ObjectForm):
        sections = _from_object(raw)
    elif isinstance(raw, StringForm):
        sections = _from_string(raw, default_section=default_section)
    else:
        raise ParseError("unsupported_payload", f"Unsupported response shape: {type(raw).__name__}")

    note = NoteContent.from_mapping(sections)
    if note.is_empty:
        raise ParseError("empty_extraction", "No SOAP section content found in the response")
    return note


def response_source(raw: RawGenerationResponse) -> str:
    """Metric label for the response shape ("string" or "object")."""
    inner = raw.inner if isinstance(raw, Wrapped) else raw
    return "object" if isinstance(inner, ObjectForm) else "string"
