from __future__ import annotations

import pytest

from soapscribe.notes.content import NoteContent, validate_section_keys


def test_defaults_are_empty_strings() -> None:
    note = NoteContent()

    assert note.as_dict() == {"subjective": "", "objective": "", "assessment": "", "plan": ""}
    assert note.is_empty


def test_non_string_section_is_rejected() -> None:
    with pytest.raises(TypeError):
        NoteContent(plan=None)  # type: ignore[arg-type]


def test_from_mapping_treats_missing_and_none_as_empty() -> None:
    note = NoteContent.from_mapping({"subjective": "a", "plan": None})

    assert note == NoteContent(subjective="a")


def test_with_section_returns_new_value() -> None:
    note = NoteContent(plan="old")
    updated = note.with_section("plan", "new")

    assert note.plan == "old"
    assert updated.plan == "new"


def test_labeled_text_skips_empty_sections() -> None:
    note = NoteContent(subjective="a", plan="d")

    assert note.to_labeled_text() == "SUBJECTIVE: a\nPLAN: d"


def test_validate_section_keys_dedupes_and_rejects_unknown() -> None:
    assert validate_section_keys(["plan", "subjective", "plan"]) == ("plan", "subjective")
    with pytest.raises(ValueError):
        validate_section_keys(["vitals"])
