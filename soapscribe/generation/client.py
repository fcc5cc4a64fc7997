from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from soapscribe.core.metrics import generation_requests_total
from soapscribe.notes.content import SectionKey
from soapscribe.notes.errors import ParseError
from soapscribe.notes.raw_response import RawGenerationResponse, Wrapped, decode_raw_response

logger = logging.getLogger("soapscribe.generation")

TOKEN_HEADER = "X-Generation-Token"

GenerationErrorKind = Literal["network_failure", "service_error", "empty_response"]


class GenerationError(Exception):
    """Base error for generation service failures (retryable, never fatal)."""

    kind: GenerationErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkFailure(GenerationError):
    """Transport failed before a response arrived (DNS, connect, timeout, reset)."""

    kind = "network_failure"


class ServiceError(GenerationError):
    """The service answered with a non-2xx status."""

    kind = "service_error"

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status


class EmptyResponse(GenerationError):
    """The service answered 2xx but without any usable `response` payload."""

    kind = "empty_response"


@dataclass(frozen=True)
class AudioUnit:
    """One finished recording: the captured chunks concatenated in order."""

    data: bytes
    mime_type: str = "audio/webm"
    duration_seconds: int = 0

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class GenerationContext:
    target_section: SectionKey
    existing_section_text: str = ""
    appointment_type: str | None = None
    reason_for_visit: str | None = None

    def as_payload(self) -> dict[str, Any]:
        return {
            "targetSection": self.target_section,
            "existingSectionText": self.existing_section_text,
            "hasExistingContent": bool(self.existing_section_text.strip()),
            "appointmentType": self.appointment_type,
            "reasonForVisit": self.reason_for_visit,
            "format": "html",
        }


@dataclass(frozen=True)
class GenerationReply:
    token: int
    raw: RawGenerationResponse
    transcript: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GenerationConfig:
    base_url: str
    timeout_seconds: float
    transcribe_path: str = "/transcribe"
    suggest_path: str = "/note-generator"
    api_key: str | None = None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Mapping):
        return not value
    return False


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return "Generation service returned an error"
    if isinstance(body, Mapping) and isinstance(body.get("error"), str) and body["error"]:
        return body["error"]
    return "Generation service returned an error"


class GenerationClient:
    """
    Async client for the generation service HTTP contract.

    Requests are `{audio}` (multipart) or `{message, context}` (JSON); success bodies are
    `{transcript?, response, metadata?}`, failures `{error}` with a non-2xx status.
    """

    def __init__(
        self,
        *,
        config: GenerationConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config
        self._transport = transport

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self, *, token: int) -> dict[str, str]:
        headers = {TOKEN_HEADER: str(token), "Accept": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers

    async def generate_from_audio(self, *, audio: AudioUnit, token: int) -> GenerationReply:
        files = {"audio": ("recording", audio.data, audio.mime_type)}
        return await self._post(
            kind="audio",
            token=token,
            path=self._config.transcribe_path,
            request_kwargs={"files": files},
        )

    async def generate_from_query(
        self, *, query: str, context: GenerationContext, token: int
    ) -> GenerationReply:
        payload = {"message": query, "context": context.as_payload()}
        return await self._post(
            kind="text",
            token=token,
            path=self._config.suggest_path,
            request_kwargs={"json": payload},
        )

    async def _post(
        self,
        *,
        kind: str,
        token: int,
        path: str,
        request_kwargs: dict[str, Any],
    ) -> GenerationReply:
        try:
            reply = await self._send(token=token, path=path, request_kwargs=request_kwargs)
        except GenerationError as exc:
            generation_requests_total.labels(kind=kind, outcome=exc.kind).inc()
            logger.info(
                "Generation request failed",
                extra={"generation_kind": kind, "request_token": token, "error": exc.kind},
            )
            raise

        generation_requests_total.labels(kind=kind, outcome="success").inc()
        return reply

    async def _send(
        self, *, token: int, path: str, request_kwargs: dict[str, Any]
    ) -> GenerationReply:
        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout_seconds, transport=self._transport
            ) as client:
                resp = await client.post(
                    self._url(path), headers=self._headers(token=token), **request_kwargs
                )
        except httpx.TimeoutException as exc:
            raise NetworkFailure("Generation request timed out") from exc
        except httpx.HTTPError as exc:
            raise NetworkFailure("Generation request failed") from exc

        if not resp.is_success:
            raise ServiceError(resp.status_code, _error_message(resp))

        if not resp.content.strip():
            raise EmptyResponse("Generation service returned an empty body")

        try:
            body = resp.json()
        except ValueError as exc:
            raise EmptyResponse("Generation service returned a non-JSON body") from exc

        if not isinstance(body, Mapping) or _is_blank(body.get("response")):
            raise EmptyResponse("Generation service returned no response content")

        try:
            inner = decode_raw_response(body["response"])
        except ParseError as exc:
            raise EmptyResponse("Generation service returned an unusable response") from exc

        # decode_raw_response on the inner value may itself report a wrapper (double
        # nesting); keep only the outer envelope so the normalizer unwraps one level.
        raw = Wrapped(key="response", inner=inner.inner if isinstance(inner, Wrapped) else inner)

        transcript = body.get("transcript")
        metadata = body.get("metadata")
        return GenerationReply(
            token=token,
            raw=raw,
            transcript=transcript if isinstance(transcript, str) else None,
            metadata=metadata if isinstance(metadata, Mapping) else {},
        )
