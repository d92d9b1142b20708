"""RecordingSession — state machine for one voice sample.

Tracks the status of a single sample id and serializes its asynchronous
transitions. Knows nothing about devices or storage: the caller
(VoiceSampleLibrary) drives transition() and brackets every asynchronous
step with begin()/settle().

States:
    IDLE -> RECORDING -> UPLOADING -> IDLE | ERROR
    IDLE/ERROR <-> PLAYING

Rules:
- Invalid transitions raise InvalidTransitionError and leave the state
  untouched.
- At most one asynchronous step is pending per sample. begin() while one is
  unresolved raises SampleBusyError; wait_settled() lets a queued action
  wait for it instead.
- Upload and capture outcomes carry a generation token. Outcomes whose
  token is stale (cancelled upload, revoked capture) are ignored.
- A preview returns to the status it started from (IDLE or ERROR).
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from talkpad._types import SampleStatus, SampleType, VoiceSample
from talkpad.exceptions import InvalidTransitionError, SampleBusyError, UploadFailedError
from talkpad.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger("recording.session")

# Valid transitions: {current_status: {allowed_target_statuses}}
_VALID_TRANSITIONS: dict[SampleStatus, frozenset[SampleStatus]] = {
    SampleStatus.IDLE: frozenset(
        {
            SampleStatus.RECORDING,
            SampleStatus.UPLOADING,
            SampleStatus.PLAYING,
            SampleStatus.ERROR,
        }
    ),
    SampleStatus.RECORDING: frozenset(
        {SampleStatus.UPLOADING, SampleStatus.IDLE, SampleStatus.ERROR}
    ),
    SampleStatus.UPLOADING: frozenset({SampleStatus.IDLE, SampleStatus.ERROR}),
    SampleStatus.PLAYING: frozenset({SampleStatus.IDLE, SampleStatus.ERROR}),
    SampleStatus.ERROR: frozenset(
        {
            SampleStatus.RECORDING,
            SampleStatus.UPLOADING,
            SampleStatus.PLAYING,
            SampleStatus.ERROR,
        }
    ),
}

# Statuses that start over and drop the previous failure message.
_CLEARS_ERROR = frozenset({SampleStatus.IDLE, SampleStatus.RECORDING, SampleStatus.UPLOADING})


class RecordingSession:
    """Status, pending work and stored audio of one voice sample.

    Args:
        sample_id: Identifier chosen by the host.
        sample_type: Origin of the sample.
        blob_ref: Reference of an already stored blob (restored samples).
        file_name: Original file name for uploaded samples.
        on_change: Called with a snapshot after every status change.
    """

    def __init__(
        self,
        sample_id: str,
        sample_type: SampleType,
        *,
        blob_ref: str | None = None,
        file_name: str | None = None,
        on_change: Callable[[VoiceSample], None] | None = None,
    ) -> None:
        self._sample_id = sample_id
        self.sample_type = sample_type
        self.blob_ref = blob_ref
        self.file_name = file_name
        # Captured or selected bytes not yet stored. Kept for retry.
        self.audio: bytes | None = None
        # Upload failure behind an ERROR status, cleared with the error.
        self.failure: UploadFailedError | None = None

        self._status = SampleStatus.IDLE
        self._error: str | None = None
        self._preview_origin = SampleStatus.IDLE
        self._on_change = on_change

        self._pending: asyncio.Future[None] | None = None
        self._pending_action: str | None = None
        self._upload_generation = 0
        self._capture_generation = 0
        self._preview_generation = 0
        self._deleted = False

    @property
    def sample_id(self) -> str:
        return self._sample_id

    @property
    def status(self) -> SampleStatus:
        return self._status

    @property
    def error(self) -> str | None:
        """Last failure message, kept until the sample starts over."""
        return self._error

    @property
    def preview_origin(self) -> SampleStatus:
        """Status to return to when the current preview finishes."""
        return self._preview_origin

    @property
    def is_busy(self) -> bool:
        """True while an asynchronous step is unresolved."""
        return self._pending is not None and not self._pending.done()

    @property
    def pending_action(self) -> str | None:
        return self._pending_action if self.is_busy else None

    @property
    def deleted(self) -> bool:
        return self._deleted

    def can_transition(self, target: SampleStatus) -> bool:
        return target in _VALID_TRANSITIONS[self._status]

    def check_transition(self, target: SampleStatus) -> None:
        """Raise InvalidTransitionError unless ``target`` is reachable."""
        if not self.can_transition(target):
            raise InvalidTransitionError(self._status.value, target.value)

    def transition(self, target: SampleStatus, *, error: str | None = None) -> None:
        """Move to ``target``.

        Args:
            target: New status.
            error: Failure message, only meaningful when ``target`` is ERROR.

        Raises:
            InvalidTransitionError: If the transition is not allowed.
        """
        self.check_transition(target)

        previous = self._status
        if target is SampleStatus.PLAYING:
            self._preview_origin = previous
        if target is SampleStatus.ERROR and error is not None:
            self._error = error
            self.failure = None
        elif target in _CLEARS_ERROR:
            self._error = None
            self.failure = None
        self._status = target

        logger.debug(
            "sample_transition",
            sample_id=self._sample_id,
            from_status=previous.value,
            to_status=target.value,
        )
        if self._on_change is not None:
            self._on_change(self.snapshot())

    # --- Pending asynchronous step ---

    def begin(self, action: str) -> None:
        """Mark an asynchronous step as in flight.

        Raises:
            SampleBusyError: If a previous step is unresolved.
        """
        if self.is_busy:
            raise SampleBusyError(self._sample_id, action)
        self._pending = asyncio.get_running_loop().create_future()
        self._pending_action = action

    def settle(self) -> None:
        """Resolve the in-flight step. No-op when nothing is pending."""
        pending = self._pending
        self._pending = None
        self._pending_action = None
        if pending is not None and not pending.done():
            pending.set_result(None)

    async def wait_settled(self) -> None:
        """Wait until no asynchronous step is pending."""
        while self._pending is not None and not self._pending.done():
            await asyncio.shield(self._pending)

    # --- Generation tokens ---

    def next_upload(self) -> int:
        self._upload_generation += 1
        return self._upload_generation

    def is_current_upload(self, generation: int) -> bool:
        return generation == self._upload_generation and not self._deleted

    def next_capture(self) -> int:
        self._capture_generation += 1
        return self._capture_generation

    def is_current_capture(self, generation: int) -> bool:
        return generation == self._capture_generation and not self._deleted

    def next_preview(self) -> int:
        self._preview_generation += 1
        return self._preview_generation

    def is_current_preview(self, generation: int) -> bool:
        return (
            generation == self._preview_generation
            and self._status is SampleStatus.PLAYING
            and not self._deleted
        )

    def mark_deleted(self) -> None:
        self._deleted = True
        self.audio = None
        self.settle()

    def snapshot(self) -> VoiceSample:
        return VoiceSample(
            sample_id=self._sample_id,
            sample_type=self.sample_type,
            status=self._status,
            blob_ref=self.blob_ref,
            error=self._error,
            file_name=self.file_name,
        )

    def __repr__(self) -> str:
        return (
            f"RecordingSession(sample_id={self._sample_id!r}, "
            f"status={self._status.value}, busy={self.is_busy})"
        )
