from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from soapscribe.core.metrics import note_normalizations_total
from soapscribe.notes.errors import ParseError
from soapscribe.notes.merge import merge
from soapscribe.notes.normalizer import normalize, response_source
from soapscribe.notes.raw_response import decode_raw_response
from soapscribe.notes.schemas import MergeRequest, NormalizeRequest, NoteContentModel

router = APIRouter(prefix="/notes", tags=["notes"])


@router.post(
    "/normalize",
    response_model=NoteContentModel,
    summary="Normalize raw generation output",
    description=(
        "Convert a raw generation response into a canonical SOAP note. Stateless and "
        "deterministic; nothing is stored. Returns 422 when no section content is found."
    ),
)
async def normalize_note(payload: NormalizeRequest) -> NoteContentModel:
    source = "unsupported"
    try:
        raw = decode_raw_response(payload.payload)
        source = response_source(raw)
        note = normalize(raw, default_section=payload.default_section)
    except ParseError as exc:
        note_normalizations_total.labels(source=source, outcome=exc.kind).inc()
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": exc.kind, "message": exc.message, "retryable": True},
        ) from None

    note_normalizations_total.labels(source=source, outcome="ok").inc()
    return NoteContentModel.model_validate(note)


@router.post(
    "/merge",
    response_model=NoteContentModel,
    summary="Merge an approved proposal into a note",
    description=(
        "Apply proposal sections onto an existing note with `append` or `replace`. "
        "The merged note is returned for the caller to persist."
    ),
)
async def merge_note(payload: MergeRequest) -> NoteContentModel:
    merged = merge(
        payload.existing.to_domain(),
        payload.proposal.to_domain(),
        payload.mode,
        payload.targets,
    )
    return NoteContentModel.model_validate(merged)
