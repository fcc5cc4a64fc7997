from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Literal, cast

SectionKey = Literal["subjective", "objective", "assessment", "plan"]

SECTION_KEYS: tuple[SectionKey, ...] = ("subjective", "objective", "assessment", "plan")

SECTION_TITLES: dict[SectionKey, str] = {
    "subjective": "Subjective",
    "objective": "Objective",
    "assessment": "Assessment",
    "plan": "Plan",
}


def validate_section_keys(keys: Iterable[str]) -> tuple[SectionKey, ...]:
    """Return `keys` as SOAP section keys (order preserved, duplicates dropped)."""

    out: list[SectionKey] = []
    for key in keys:
        if key not in SECTION_KEYS:
            raise ValueError(f"Unknown SOAP section: {key!r}")
        if key not in out:
            out.append(cast(SectionKey, key))
    return tuple(out)


@dataclass(frozen=True)
class NoteContent:
    """
    Canonical four-section SOAP note.

    Every section is always present as a string (rich text, usually HTML). An absent
    section is the empty string, never None.
    """

    subjective: str = ""
    objective: str = ""
    assessment: str = ""
    plan: str = ""

    def __post_init__(self) -> None:
        for key in SECTION_KEYS:
            value = getattr(self, key)
            if not isinstance(value, str):
                raise TypeError(f"NoteContent.{key} must be str, got {type(value).__name__}")

    @classmethod
    def from_mapping(cls, data: Mapping[str, str | None]) -> NoteContent:
        """Build from a mapping keyed by canonical section names; missing/None become ""."""
        return cls(**{key: data.get(key) or "" for key in SECTION_KEYS})

    def as_dict(self) -> dict[str, str]:
        return {key: getattr(self, key) for key in SECTION_KEYS}

    def section(self, key: SectionKey) -> str:
        return getattr(self, key)

    def with_section(self, key: SectionKey, text: str) -> NoteContent:
        validate_section_keys([key])
        return dataclasses.replace(self, **{key: text})

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, key).strip() for key in SECTION_KEYS)

    def to_labeled_text(self, *, separator: str = "\n") -> str:
        """Render as `SUBJECTIVE: ...` lines, skipping empty sections."""
        return separator.join(
            f"{key.upper()}: {getattr(self, key)}" for key in SECTION_KEYS if getattr(self, key)
        )
