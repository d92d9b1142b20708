"""Shared test helpers: alignment builders and fake host collaborators.

Usage:
    from tests.helpers import (
        FakeCapture,
        FakeOutput,
        FakeSpeech,
        FakeStorage,
        make_alignment,
        make_track,
    )
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from talkpad._types import AlignmentEntry, AudioTrack, SpeechResult
from talkpad.audio.interface import AudioCaptureDevice, AudioOutputChannel
from talkpad.exceptions import StorageError
from talkpad.speech.interface import SpeechGenerationService
from talkpad.storage.interface import BlobStorageService

if TYPE_CHECKING:
    from collections.abc import Callable


def make_alignment(text: str, step: float = 0.1) -> tuple[AlignmentEntry, ...]:
    """One entry per character, each ``step`` seconds long, back to back."""
    return tuple(
        AlignmentEntry(character=char, start=round(i * step, 6), duration=step)
        for i, char in enumerate(text)
    )


def make_track(text: str = "hi there", track_id: str = "t1", step: float = 0.1) -> AudioTrack:
    return AudioTrack(
        track_id=track_id,
        audio=text.encode(),
        text=text,
        alignment=make_alignment(text, step),
    )


async def settle_loop(turns: int = 5) -> None:
    """Let pending callbacks and tasks run."""
    for _ in range(turns):
        await asyncio.sleep(0)


class FakeOutput(AudioOutputChannel):
    """Records calls; the test drives ticks and end-of-audio by hand."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.played: list[bytes] = []
        self.positions: list[float] = []
        self._on_tick: Callable[[float], None] | None = None
        self._on_ended: Callable[[], None] | None = None
        # Callbacks of every play() call, including stopped ones.
        self.history: list[tuple[Callable[[float], None], Callable[[], None]]] = []

    @property
    def is_active(self) -> bool:
        return self._on_tick is not None

    def play(
        self,
        data: bytes,
        on_tick: Callable[[float], None],
        on_ended: Callable[[], None],
    ) -> None:
        self.calls.append("play")
        self.played.append(data)
        self._on_tick = on_tick
        self._on_ended = on_ended
        self.history.append((on_tick, on_ended))

    def stop(self) -> None:
        self.calls.append("stop")
        self._on_tick = None
        self._on_ended = None

    def pause(self) -> None:
        self.calls.append("pause")

    def resume(self) -> None:
        self.calls.append("resume")

    def seek(self, position: float) -> None:
        self.calls.append("seek")
        self.positions.append(position)

    def tick(self, t: float) -> None:
        assert self._on_tick is not None, "nothing is playing"
        self._on_tick(t)

    def end(self) -> None:
        assert self._on_ended is not None, "nothing is playing"
        on_ended = self._on_ended
        self._on_tick = None
        self._on_ended = None
        on_ended()


class FakeCapture(AudioCaptureDevice):
    """Capture device returning ``data`` on stop.

    ``fail_start`` makes the next start() raise. ``start_gate`` and
    ``stop_gate`` make start() and stop() wait until their event is set.
    """

    def __init__(self, data: bytes = b"captured-audio") -> None:
        self.data = data
        self.calls: list[str] = []
        self.fail_start: Exception | None = None
        self.start_gate: asyncio.Event | None = None
        self.stop_gate: asyncio.Event | None = None

    async def start(self) -> object:
        self.calls.append("start")
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.fail_start is not None:
            exc, self.fail_start = self.fail_start, None
            raise exc
        return object()

    async def stop(self) -> bytes:
        self.calls.append("stop")
        if self.stop_gate is not None:
            await self.stop_gate.wait()
        return self.data


class FakeStorage(BlobStorageService):
    """In-memory blob storage.

    Set ``gate`` to hold every upload until the event is set, and
    ``fail_uploads`` / ``fail_delete`` to inject failures.
    """

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.uploads: list[str | None] = []
        self.deleted: list[str] = []
        self.gate: asyncio.Event | None = None
        self.fail_uploads = 0
        self.fail_delete = False
        self._counter = 0

    async def upload(self, data: bytes, *, name: str | None = None) -> str:
        self.uploads.append(name)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_uploads > 0:
            self.fail_uploads -= 1
            raise StorageError("upload", "network unreachable")
        self._counter += 1
        blob_ref = f"blob-{self._counter}"
        self.blobs[blob_ref] = data
        return blob_ref

    async def download(self, blob_ref: str) -> bytes:
        try:
            return self.blobs[blob_ref]
        except KeyError:
            raise StorageError("download", f"no blob {blob_ref}") from None

    async def delete(self, blob_ref: str) -> None:
        if self.fail_delete:
            raise StorageError("delete", "permission denied")
        self.deleted.append(blob_ref)
        self.blobs.pop(blob_ref, None)


class FakeSpeech(SpeechGenerationService):
    """Speech service returning one character per 0.1 s of alignment."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, dict[str, object] | None]] = []
        self.fail: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def generate(
        self, text: str, *, options: dict[str, object] | None = None
    ) -> SpeechResult:
        self.requests.append((text, options))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        return SpeechResult(audio=text.encode(), alignment=make_alignment(text))
