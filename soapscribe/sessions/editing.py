from __future__ import annotations

import itertools
import logging
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Protocol, cast

from soapscribe.core.metrics import note_normalizations_total, stale_generation_results_total
from soapscribe.generation.client import (
    AudioUnit,
    GenerationContext,
    GenerationError,
    GenerationReply,
)
from soapscribe.notes.content import NoteContent, SectionKey
from soapscribe.notes.errors import ParseError
from soapscribe.notes.merge import MergeMode, merge
from soapscribe.notes.normalizer import normalize, response_source
from soapscribe.sessions.recorder import AudioCapture, Recorder, RecorderState
from soapscribe.sessions.suggestion import Suggestion, SuggestionOutcome, SuggestionStateError

logger = logging.getLogger("soapscribe.sessions")


class GenerationBackend(Protocol):
    async def generate_from_audio(self, *, audio: AudioUnit, token: int) -> GenerationReply: ...

    async def generate_from_query(
        self, *, query: str, context: GenerationContext, token: int
    ) -> GenerationReply: ...


class EditingSession:
    """
    One clinician editing one note.

    Owns the working note document, its recorder, the request-token counter and at most
    one pending Suggestion. Results are applied in request-start order: a reply whose
    token is not the latest issued is dropped on arrival, even if it finished last.
    """

    def __init__(
        self,
        *,
        client: GenerationBackend | None,
        note: NoteContent | None = None,
        capture: AudioCapture | None = None,
        tick_seconds: float = 1.0,
        appointment_type: str | None = None,
        reason_for_visit: str | None = None,
        session_id: uuid.UUID | None = None,
    ):
        self.id = session_id or uuid.uuid4()
        self.created_at = datetime.now(UTC)
        self.appointment_type = appointment_type
        self.reason_for_visit = reason_for_visit
        self._client = client
        self._note = note or NoteContent()
        self._tokens = itertools.count(1)
        self._latest_token = 0
        self._pending: Suggestion | None = None
        self._recorder: Recorder[SuggestionOutcome] | None = None
        if capture is not None:
            self._recorder = Recorder(
                capture=capture, submit=self._submit_recorded_audio, tick_seconds=tick_seconds
            )

    @property
    def note(self) -> NoteContent:
        return self._note

    @property
    def pending(self) -> Suggestion | None:
        return self._pending

    @property
    def latest_token(self) -> int:
        return self._latest_token

    @property
    def generation_enabled(self) -> bool:
        return self._client is not None

    @property
    def recorder(self) -> Recorder[SuggestionOutcome] | None:
        return self._recorder

    @property
    def recorder_state(self) -> RecorderState | None:
        return self._recorder.state if self._recorder else None

    def build_context(self, target_section: SectionKey) -> GenerationContext:
        return GenerationContext(
            target_section=target_section,
            existing_section_text=self._note.section(target_section),
            appointment_type=self.appointment_type,
            reason_for_visit=self.reason_for_visit,
        )

    async def request_suggestion(
        self, *, query: str, target_section: SectionKey
    ) -> SuggestionOutcome:
        """Ask for text for one section; failures come back as a retryable outcome."""
        client = self._require_client()
        context = self.build_context(target_section)
        token = self._issue_token()
        try:
            reply = await client.generate_from_query(query=query, context=context, token=token)
            return self._accept(reply, default_section=target_section)
        except (GenerationError, ParseError) as exc:
            return self._fail(token, exc)

    async def submit_audio(self, audio: AudioUnit) -> SuggestionOutcome:
        """Send an already-assembled audio unit; failures come back as an outcome."""
        token = self._issue_token()
        try:
            reply = await self._require_client().generate_from_audio(audio=audio, token=token)
            return self._accept(reply)
        except (GenerationError, ParseError) as exc:
            return self._fail(token, exc)

    async def start_recording(self) -> None:
        recorder = self._require_recorder()
        if recorder.state in ("complete", "error"):
            # Starting over implies the previous result has been seen.
            recorder.acknowledge()
        await recorder.start()

    async def stop_recording(self) -> SuggestionOutcome:
        result = await self._require_recorder().stop()
        if result.error is not None:
            return SuggestionOutcome(
                token=self._latest_token, status="failed", error=result.error
            )
        return cast(SuggestionOutcome, result.value)

    def acknowledge_recording(self) -> None:
        self._require_recorder().acknowledge()

    def approve(self, *, mode: MergeMode, targets: Iterable[str]) -> NoteContent:
        """Merge the pending Suggestion into the note after explicit clinician approval."""
        suggestion = self._pending
        if suggestion is None or not suggestion.is_pending:
            raise SuggestionStateError("No pending suggestion to approve")

        self._note = merge(self._note, suggestion.content, mode, targets)
        suggestion.status = "approved"
        self._pending = None
        logger.info(
            "Suggestion approved",
            extra={"session_id": str(self.id), "request_token": suggestion.token},
        )
        return self._note

    def discard(self) -> Suggestion | None:
        suggestion, self._pending = self._pending, None
        if suggestion is not None:
            suggestion.status = "discarded"
        return suggestion

    async def close(self) -> None:
        self.discard()
        if self._recorder is not None:
            await self._recorder.close()

    def is_stale(self, token: int) -> bool:
        return token != self._latest_token

    async def _submit_recorded_audio(self, audio: AudioUnit) -> SuggestionOutcome:
        # Recorder hook: current failures are raised so the recorder lands in `error`;
        # stale ones are swallowed as stale outcomes like any other superseded request.
        token = self._issue_token()
        try:
            reply = await self._require_client().generate_from_audio(audio=audio, token=token)
        except GenerationError:
            if self.is_stale(token):
                return self._stale(token)
            raise
        return self._accept(reply, raise_on_error=True)

    def _issue_token(self) -> int:
        self._latest_token = next(self._tokens)
        return self._latest_token

    def _accept(
        self,
        reply: GenerationReply,
        *,
        default_section: SectionKey | None = None,
        raise_on_error: bool = False,
    ) -> SuggestionOutcome:
        if self.is_stale(reply.token):
            return self._stale(reply.token)

        source = response_source(reply.raw)
        try:
            content = normalize(reply.raw, default_section=default_section)
        except ParseError as exc:
            note_normalizations_total.labels(source=source, outcome=exc.kind).inc()
            if raise_on_error:
                raise
            return self._fail(reply.token, exc)
        note_normalizations_total.labels(source=source, outcome="ok").inc()

        self.discard()
        self._pending = Suggestion(token=reply.token, content=content, transcript=reply.transcript)
        logger.info(
            "Suggestion created",
            extra={"session_id": str(self.id), "request_token": reply.token},
        )
        return SuggestionOutcome(token=reply.token, status="suggested", suggestion=self._pending)

    def _fail(self, token: int, exc: GenerationError | ParseError) -> SuggestionOutcome:
        if self.is_stale(token):
            return self._stale(token)
        logger.info(
            "Suggestion request failed",
            extra={"session_id": str(self.id), "request_token": token, "error": exc.kind},
        )
        return SuggestionOutcome(token=token, status="failed", error=exc)

    def _stale(self, token: int) -> SuggestionOutcome:
        stale_generation_results_total.inc()
        logger.info(
            "Discarded stale generation result",
            extra={"session_id": str(self.id), "request_token": token, "outcome": "stale"},
        )
        return SuggestionOutcome(token=token, status="stale", suggestion=self._pending)

    def _require_client(self) -> GenerationBackend:
        if self._client is None:
            raise RuntimeError("EditingSession has no generation client configured")
        return self._client

    def _require_recorder(self) -> Recorder[SuggestionOutcome]:
        if self._recorder is None:
            raise RuntimeError("EditingSession has no audio capture configured")
        return self._recorder
