from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status

from soapscribe.core.settings import get_settings
from soapscribe.generation.client import AudioUnit, GenerationClient, GenerationError
from soapscribe.generation.deps import get_generation_client
from soapscribe.notes.schemas import NoteContentModel
from soapscribe.sessions.editing import EditingSession
from soapscribe.sessions.registry import EditingSessionRegistry, get_session_registry
from soapscribe.sessions.schemas import (
    ApproveRequest,
    EditingSessionCreate,
    EditingSessionOut,
    SuggestionOutcomeOut,
    SuggestionRequest,
)
from soapscribe.sessions.suggestion import SuggestionOutcome, SuggestionStateError

router = APIRouter(prefix="/sessions", tags=["sessions"])
logger = logging.getLogger("soapscribe.sessions")

_UPLOAD_CHUNK_BYTES = 1024 * 1024


def _require_session(registry: EditingSessionRegistry, session_id: uuid.UUID) -> EditingSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


def _require_generation(session: EditingSession) -> None:
    if not session.generation_enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Generation service is not configured",
        )


def _outcome_response(outcome: SuggestionOutcome) -> SuggestionOutcomeOut:
    if outcome.status == "failed":
        # 502 for upstream failures, 422 for unusable replies.
        status_code = (
            status.HTTP_502_BAD_GATEWAY
            if isinstance(outcome.error, GenerationError)
            else status.HTTP_422_UNPROCESSABLE_ENTITY
        )
        raise HTTPException(
            status_code=status_code,
            detail={"error": outcome.error_kind, "retryable": outcome.retryable},
        )
    return SuggestionOutcomeOut.from_outcome(outcome)


async def _read_upload(upload: UploadFile, *, max_bytes: int) -> bytes:
    buf = bytearray()
    while True:
        chunk = await upload.read(_UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="Audio upload is too large",
            )
    return bytes(buf)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=EditingSessionOut,
    summary="Open an editing session",
    description=(
        "Start editing one note. The session holds the working note and at most one pending "
        "AI suggestion in process memory; nothing is persisted."
    ),
)
async def create_session(
    payload: EditingSessionCreate,
    registry: EditingSessionRegistry = Depends(get_session_registry),
    generation_client: GenerationClient | None = Depends(get_generation_client),
) -> EditingSessionOut:
    session = EditingSession(
        client=generation_client,
        note=payload.note.to_domain() if payload.note else None,
        appointment_type=payload.appointment_type,
        reason_for_visit=payload.reason_for_visit,
    )
    await registry.add(session)
    logger.info("Editing session opened", extra={"session_id": str(session.id)})
    return EditingSessionOut.from_session(session)


@router.get("/{session_id}", response_model=EditingSessionOut)
async def get_session_by_id(
    session_id: uuid.UUID,
    registry: EditingSessionRegistry = Depends(get_session_registry),
) -> EditingSessionOut:
    return EditingSessionOut.from_session(_require_session(registry, session_id))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
async def delete_session(
    session_id: uuid.UUID,
    registry: EditingSessionRegistry = Depends(get_session_registry),
) -> None:
    if not await registry.remove(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    logger.info("Editing session closed", extra={"session_id": str(session_id)})
    return None


@router.post(
    "/{session_id}/suggestions",
    response_model=SuggestionOutcomeOut,
    summary="Request a text suggestion for one section",
    description=(
        "Ask the generation service for content for `target_section`. The result is held as a "
        "pending suggestion until approved or discarded.\n\n"
        "- 502: generation failed (`network_failure`, `service_error`, `empty_response`)\n"
        "- 422: the reply contained no usable section content\n\n"
        "Both failures are retryable and leave the note untouched. A result superseded by a "
        "newer request is reported with `status=stale`."
    ),
)
async def request_suggestion(
    session_id: uuid.UUID,
    payload: SuggestionRequest,
    registry: EditingSessionRegistry = Depends(get_session_registry),
) -> SuggestionOutcomeOut:
    session = _require_session(registry, session_id)
    _require_generation(session)
    outcome = await session.request_suggestion(
        query=payload.query, target_section=payload.target_section
    )
    return _outcome_response(outcome)


@router.post(
    "/{session_id}/audio",
    response_model=SuggestionOutcomeOut,
    summary="Submit a finished recording",
    description=(
        "Upload one recorded audio unit (multipart field `audio`). The generation service "
        "transcribes it and proposes content for all four sections. Failure mapping matches "
        "the text suggestion endpoint; oversized uploads are rejected with 413."
    ),
)
async def submit_audio(
    session_id: uuid.UUID,
    request: Request,
    audio: UploadFile = File(...),
    registry: EditingSessionRegistry = Depends(get_session_registry),
) -> SuggestionOutcomeOut:
    session = _require_session(registry, session_id)
    _require_generation(session)

    settings = get_settings()
    data = await _read_upload(audio, max_bytes=settings.generation_max_audio_bytes)
    unit = AudioUnit(data=data, mime_type=audio.content_type or "application/octet-stream")

    logger.info(
        "Audio submitted",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "session_id": str(session.id),
        },
    )
    outcome = await session.submit_audio(unit)
    return _outcome_response(outcome)


@router.post("/{session_id}/suggestion/approve", response_model=NoteContentModel)
async def approve_suggestion(
    session_id: uuid.UUID,
    payload: ApproveRequest,
    registry: EditingSessionRegistry = Depends(get_session_registry),
) -> NoteContentModel:
    session = _require_session(registry, session_id)
    if session.pending is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No pending suggestion")
    try:
        note = session.approve(mode=payload.mode, targets=payload.targets)
    except SuggestionStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return NoteContentModel.model_validate(note)


@router.post("/{session_id}/suggestion/discard", response_model=EditingSessionOut)
async def discard_suggestion(
    session_id: uuid.UUID,
    registry: EditingSessionRegistry = Depends(get_session_registry),
) -> EditingSessionOut:
    session = _require_session(registry, session_id)
    session.discard()
    return EditingSessionOut.from_session(session)
