from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from soapscribe.notes.content import SectionKey
from soapscribe.notes.merge import MergeMode
from soapscribe.notes.schemas import NoteContentModel
from soapscribe.sessions.editing import EditingSession
from soapscribe.sessions.suggestion import (
    OutcomeStatus,
    Suggestion,
    SuggestionOutcome,
    SuggestionStatus,
)


class EditingSessionCreate(BaseModel):
    note: NoteContentModel | None = Field(
        default=None, description="Starting note document. Omit for a blank note."
    )
    appointment_type: str | None = Field(default=None, max_length=120)
    reason_for_visit: str | None = Field(default=None, max_length=500)


class SuggestionOut(BaseModel):
    id: uuid.UUID
    token: int = Field(description="Request token the suggestion was generated for.")
    status: SuggestionStatus
    content: NoteContentModel
    transcript: str | None = None
    created_at: datetime

    @classmethod
    def from_suggestion(cls, suggestion: Suggestion) -> SuggestionOut:
        return cls(
            id=suggestion.id,
            token=suggestion.token,
            status=suggestion.status,
            content=NoteContentModel.model_validate(suggestion.content),
            transcript=suggestion.transcript,
            created_at=suggestion.created_at,
        )


class EditingSessionOut(BaseModel):
    id: uuid.UUID
    created_at: datetime
    note: NoteContentModel
    pending: SuggestionOut | None = Field(
        default=None, description="Suggestion awaiting approval, if any."
    )
    latest_token: int = Field(description="Most recently issued request token (0 before any).")
    appointment_type: str | None = None
    reason_for_visit: str | None = None

    @classmethod
    def from_session(cls, session: EditingSession) -> EditingSessionOut:
        pending = session.pending
        return cls(
            id=session.id,
            created_at=session.created_at,
            note=NoteContentModel.model_validate(session.note),
            pending=SuggestionOut.from_suggestion(pending) if pending else None,
            latest_token=session.latest_token,
            appointment_type=session.appointment_type,
            reason_for_visit=session.reason_for_visit,
        )


class SuggestionRequest(BaseModel):
    query: str = Field(
        min_length=1,
        max_length=4000,
        description="Clinician instruction for the section, e.g. `summarize the exam`.",
    )
    target_section: SectionKey


class SuggestionOutcomeOut(BaseModel):
    """Result of one generation request. `stale` means a newer request superseded it."""

    token: int
    status: OutcomeStatus
    suggestion: SuggestionOut | None = None

    @classmethod
    def from_outcome(cls, outcome: SuggestionOutcome) -> SuggestionOutcomeOut:
        suggestion = outcome.suggestion
        return cls(
            token=outcome.token,
            status=outcome.status,
            suggestion=SuggestionOut.from_suggestion(suggestion) if suggestion else None,
        )


class ApproveRequest(BaseModel):
    mode: MergeMode
    targets: list[SectionKey] = Field(min_length=1, examples=[["subjective", "objective"]])
