from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from soapscribe.notes.content import NoteContent, SectionKey
from soapscribe.notes.merge import MergeMode


class NoteContentModel(BaseModel):
    """
    Four-section SOAP note.

    Sections are rich text (usually HTML). Absent sections are empty strings, never null.
    """

    model_config = ConfigDict(from_attributes=True)

    subjective: str = Field(default="", description="Subjective (S): the patient's account.")
    objective: str = Field(default="", description="Objective (O): findings and measurements.")
    assessment: str = Field(default="", description="Assessment (A): clinical impression.")
    plan: str = Field(default="", description="Plan (P): treatment and follow-up.")

    def to_domain(self) -> NoteContent:
        return NoteContent(
            subjective=self.subjective,
            objective=self.objective,
            assessment=self.assessment,
            plan=self.plan,
        )


class NormalizeRequest(BaseModel):
    payload: Any = Field(
        description=(
            "Raw generation output: a string with `SECTION:` labels, an object keyed by "
            "section name (any casing), or either nested under `response`."
        ),
        examples=["SUBJECTIVE: Patient reports cough. PLAN: Rest and fluids."],
    )
    default_section: SectionKey | None = Field(
        default=None,
        description="Section that receives unlabeled text (single-section suggestions).",
    )


class MergeRequest(BaseModel):
    existing: NoteContentModel = Field(description="Current note document.")
    proposal: NoteContentModel = Field(description="Approved AI proposal.")
    mode: MergeMode = Field(description="`append` keeps existing text, `replace` overwrites it.")
    targets: list[SectionKey] = Field(
        min_length=1,
        description="Sections the clinician chose to apply.",
        examples=[["subjective", "plan"]],
    )
