from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from soapscribe.generation.client import GenerationError
from soapscribe.notes.content import NoteContent
from soapscribe.notes.errors import ParseError

SuggestionStatus = Literal["pending", "approved", "discarded"]
OutcomeStatus = Literal["suggested", "failed", "stale"]


class SuggestionStateError(RuntimeError):
    """A Suggestion was approved without one pending (programming error, not user error)."""


@dataclass
class Suggestion:
    """
    AI-proposed note content awaiting the clinician's decision.

    Never applied automatically; approval moves it into the note document, discarding
    destroys it.
    """

    token: int
    content: NoteContent
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    status: SuggestionStatus = "pending"
    transcript: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"


@dataclass(frozen=True)
class SuggestionOutcome:
    """What became of one generation request."""

    token: int
    status: OutcomeStatus
    suggestion: Suggestion | None = None
    error: GenerationError | ParseError | None = None

    @property
    def retryable(self) -> bool:
        return self.status == "failed"

    @property
    def error_kind(self) -> str | None:
        return self.error.kind if self.error is not None else None
