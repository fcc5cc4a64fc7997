"""Audio recording lifecycle for one editing context.

    idle -> starting -> recording -> processing -> complete | error -> idle

The microphone is acquired through an `AsyncExitStack` when recording starts and is
released on every way out: stop, failed submission, failed acquisition, or teardown.
Chunks live only inside the current `RecordingSession` and are dropped once the audio
unit has been assembled.

Acquiring the microphone, flushing the stream and submitting the audio are suspension
points. `close()` may run during any of them; the suspended call then finds the recorder
torn down, releases whatever it acquired and leaves the state alone.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Generic, Literal, Protocol, TypeVar

from soapscribe.generation.client import AudioUnit, GenerationError
from soapscribe.notes.errors import ParseError

logger = logging.getLogger("soapscribe.sessions")

RecorderState = Literal["idle", "starting", "recording", "processing", "complete", "error"]
RecordingErrorKind = Literal["permission_denied", "device_unavailable", "already_recording"]

T = TypeVar("T")


class RecordingError(Exception):
    """Microphone could not be used; reported to the user, recorder stays idle."""

    def __init__(self, kind: RecordingErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class AlreadyRecordingError(RecordingError):
    def __init__(self) -> None:
        super().__init__("already_recording", "A recording is already in progress")


class RecorderStateError(RuntimeError):
    """An operation was called from a state that does not allow it (programming error)."""


class RecorderClosedError(RecorderStateError):
    """The recorder was torn down while this call was suspended."""


class CaptureStream(Protocol):
    mime_type: str

    async def stop(self) -> None:
        """Stop capturing; any buffered data is delivered before this returns."""


class AudioCapture(Protocol):
    """Audio capture boundary (e.g. the browser's media recorder behind a bridge)."""

    def acquire(
        self, *, on_data: Callable[[bytes], None]
    ) -> AbstractAsyncContextManager[CaptureStream]:
        """Open the microphone; leaving the context releases it."""


@dataclass
class RecordingSession:
    started_at: datetime
    elapsed_seconds: int = 0
    chunks: list[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class RecordingResult(Generic[T]):
    audio: AudioUnit
    value: T | None = None
    error: GenerationError | ParseError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class Recorder(Generic[T]):
    def __init__(
        self,
        *,
        capture: AudioCapture,
        submit: Callable[[AudioUnit], Awaitable[T]],
        tick_seconds: float = 1.0,
    ):
        self._capture = capture
        self._submit = submit
        self._tick_seconds = tick_seconds
        self._state: RecorderState = "idle"
        self._session: RecordingSession | None = None
        self._stream: CaptureStream | None = None
        self._exit_stack: AsyncExitStack | None = None
        self._ticker: asyncio.Task[None] | None = None
        self._last_result: RecordingResult[T] | None = None
        # Chunks are taken until the stream's final flush, which happens in `processing`.
        self._accepting_chunks = False
        # Bumped by close(); suspended calls compare it to detect teardown.
        self._generation = 0

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def session(self) -> RecordingSession | None:
        return self._session

    @property
    def elapsed_seconds(self) -> int:
        return self._session.elapsed_seconds if self._session else 0

    @property
    def holds_microphone(self) -> bool:
        return self._exit_stack is not None

    @property
    def last_result(self) -> RecordingResult[T] | None:
        return self._last_result

    async def start(self) -> None:
        if self._state in ("starting", "recording"):
            raise AlreadyRecordingError()
        if self._state != "idle":
            raise RecorderStateError(f"Cannot start recording from state {self._state!r}")

        generation = self._generation
        self._state = "starting"
        stack = AsyncExitStack()
        try:
            stream = await stack.enter_async_context(
                self._capture.acquire(on_data=self.on_data_available)
            )
        except RecordingError:
            await stack.aclose()
            self._reset_if_current(generation)
            raise
        except (PermissionError, OSError) as exc:
            await stack.aclose()
            self._reset_if_current(generation)
            kind: RecordingErrorKind = (
                "permission_denied" if isinstance(exc, PermissionError) else "device_unavailable"
            )
            raise RecordingError(kind, "Microphone is not available") from exc
        except BaseException:
            await stack.aclose()
            self._reset_if_current(generation)
            raise

        if generation != self._generation:
            await stack.aclose()
            logger.info("Microphone released", extra={"outcome": "closed_during_start"})
            raise RecorderClosedError("Recorder was closed while acquiring the microphone")

        self._exit_stack = stack
        self._stream = stream
        self._session = RecordingSession(started_at=datetime.now(UTC))
        self._last_result = None
        self._accepting_chunks = True
        self._state = "recording"
        self._ticker = asyncio.create_task(self._run_ticker())
        logger.info("Recording started")

    def tick(self) -> None:
        if self._state == "recording" and self._session is not None:
            self._session.elapsed_seconds += 1

    def on_data_available(self, chunk: bytes) -> None:
        if not self._accepting_chunks or self._session is None or not chunk:
            return
        self._session.chunks.append(bytes(chunk))

    async def stop(self) -> RecordingResult[T]:
        if self._state != "recording" or self._session is None:
            raise RecorderStateError(f"Cannot stop recording from state {self._state!r}")

        generation = self._generation
        session = self._session
        stream = self._stream
        self._state = "processing"
        await self._cancel_ticker()

        try:
            if stream is not None:
                # The final data-available chunk arrives before this returns.
                await stream.stop()
        except BaseException:
            if generation == self._generation:
                self._state = "error"
            raise
        finally:
            self._accepting_chunks = False
            audio = AudioUnit(
                data=b"".join(session.chunks),
                mime_type=getattr(stream, "mime_type", None) or "audio/webm",
                duration_seconds=session.elapsed_seconds,
            )
            session.chunks.clear()
            if generation == self._generation:
                await self._release()

        if generation != self._generation:
            raise RecorderClosedError("Recorder was closed before the audio was submitted")

        try:
            value = await self._submit(audio)
        except (GenerationError, ParseError) as exc:
            result = RecordingResult(audio=audio, error=exc)
            if self._settle(generation, "error", result):
                logger.info("Recording processed with error", extra={"error": exc.kind})
            return result
        except BaseException:
            if generation == self._generation:
                self._state = "error"
            raise

        result = RecordingResult(audio=audio, value=value)
        if self._settle(generation, "complete", result):
            logger.info("Recording processed")
        return result

    def acknowledge(self) -> None:
        if self._state not in ("complete", "error"):
            raise RecorderStateError(f"Nothing to acknowledge in state {self._state!r}")
        self._session = None
        self._last_result = None
        self._state = "idle"

    async def close(self) -> None:
        """Tear down from any state; safe to call repeatedly."""
        self._generation += 1
        self._accepting_chunks = False
        await self._cancel_ticker()
        if self._session is not None:
            self._session.chunks.clear()
        await self._release()
        self._session = None
        self._last_result = None
        self._state = "idle"

    def _reset_if_current(self, generation: int) -> None:
        if generation == self._generation:
            self._state = "idle"

    def _settle(
        self, generation: int, state: RecorderState, result: RecordingResult[T]
    ) -> bool:
        if generation != self._generation:
            logger.info("Recording result dropped after teardown")
            return False
        self._state = state
        self._last_result = result
        return True

    async def _run_ticker(self) -> None:
        while True:
            await asyncio.sleep(self._tick_seconds)
            self.tick()

    async def _cancel_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is None:
            return
        ticker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await ticker

    async def _release(self) -> None:
        stack, self._exit_stack = self._exit_stack, None
        self._stream = None
        if stack is not None:
            await stack.aclose()
            logger.info("Microphone released")
