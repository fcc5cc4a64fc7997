"""Test doubles for the sessions slice."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Callable
from typing import Any

from soapscribe.generation.client import AudioUnit, GenerationContext, GenerationReply
from soapscribe.notes.raw_response import Wrapped, decode_raw_response


class FakeStream:
    def __init__(
        self,
        *,
        on_data: Callable[[bytes], None],
        final_chunk: bytes,
        fail: bool,
        stop_gate: asyncio.Event | None = None,
        stopping: asyncio.Event | None = None,
    ):
        self.mime_type = "audio/webm"
        self._on_data = on_data
        self._final_chunk = final_chunk
        self._fail = fail
        self._stop_gate = stop_gate
        self._stopping = stopping

    async def stop(self) -> None:
        if self._stop_gate is not None and self._stopping is not None:
            self._stopping.set()
            await self._stop_gate.wait()
        if self._fail:
            raise OSError("media recorder crashed")
        if self._final_chunk:
            self._on_data(self._final_chunk)


class FakeCapture:
    """
    Counts microphone acquisitions/releases so tests can assert nothing is left held.

    `hold_acquisition()` and `hold_stop()` suspend `acquire` / `stream.stop()` until the
    returned event is set; `acquiring` / `stopping` are set once the call is suspended.
    """

    def __init__(
        self,
        *,
        error: BaseException | None = None,
        final_chunk: bytes = b"",
        fail_on_stop: bool = False,
    ):
        self.error = error
        self.final_chunk = final_chunk
        self.fail_on_stop = fail_on_stop
        self.acquired = 0
        self.released = 0
        self.on_data: Callable[[bytes], None] | None = None
        self.acquiring = asyncio.Event()
        self.stopping = asyncio.Event()
        self._acquire_gate: asyncio.Event | None = None
        self._stop_gate: asyncio.Event | None = None

    @property
    def held(self) -> bool:
        return self.acquired > self.released

    def hold_acquisition(self) -> asyncio.Event:
        self._acquire_gate = asyncio.Event()
        return self._acquire_gate

    def hold_stop(self) -> asyncio.Event:
        self._stop_gate = asyncio.Event()
        return self._stop_gate

    @contextlib.asynccontextmanager
    async def acquire(self, *, on_data: Callable[[bytes], None]) -> AsyncIterator[FakeStream]:
        if self._acquire_gate is not None:
            self.acquiring.set()
            await self._acquire_gate.wait()
        if self.error is not None:
            raise self.error
        self.acquired += 1
        self.on_data = on_data
        try:
            yield FakeStream(
                on_data=on_data,
                final_chunk=self.final_chunk,
                fail=self.fail_on_stop,
                stop_gate=self._stop_gate,
                stopping=self.stopping,
            )
        finally:
            self.released += 1


class ScriptedGenerationClient:
    """
    Generation backend answering from a script keyed by request token.

    A script value is a raw `response` payload (str or dict) or an exception to raise.
    Tokens without an entry get `default`. `gate(token)` holds that reply until released.
    """

    def __init__(self, script: dict[int, Any] | None = None, *, default: Any = "PLAN: Rest."):
        self.script = dict(script or {})
        self.default = default
        self.calls: list[tuple[str, int, Any]] = []
        self._gates: dict[int, asyncio.Event] = {}

    def gate(self, token: int) -> asyncio.Event:
        event = asyncio.Event()
        self._gates[token] = event
        return event

    async def generate_from_query(
        self, *, query: str, context: GenerationContext, token: int
    ) -> GenerationReply:
        self.calls.append(("text", token, context))
        return await self._answer(token)

    async def generate_from_audio(self, *, audio: AudioUnit, token: int) -> GenerationReply:
        self.calls.append(("audio", token, audio))
        return await self._answer(token)

    async def _answer(self, token: int) -> GenerationReply:
        gate = self._gates.get(token)
        if gate is not None:
            await gate.wait()
        payload = self.script.get(token, self.default)
        if isinstance(payload, BaseException):
            raise payload
        return GenerationReply(
            token=token,
            raw=Wrapped(key="response", inner=decode_raw_response(payload)),
            transcript="synthetic transcript",
        )
