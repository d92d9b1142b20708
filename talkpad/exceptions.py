"""Typed exceptions for talkpad.

Hierarchy:
    TalkpadError (base)
    +-- ConfigError
    +-- AlignmentMalformedError
    +-- StorageError
    +-- SpeechGenerationError
    +-- ChannelBusyError
    +-- CaptureUnavailableError
    +-- SampleError
        +-- SampleNotFoundError
        +-- SampleBusyError
        +-- InvalidTransitionError
        +-- UploadFailedError

Errors raised inside asynchronous transitions are recorded on the owning
entity (VoiceSample.error, PlaybackSync.last_error) and never propagate to
sibling entities.
"""

from __future__ import annotations


class TalkpadError(Exception):
    """Base for all talkpad exceptions."""


class ConfigError(TalkpadError):
    """Invalid runtime configuration (e.g. unknown speech provider kind)."""


class AlignmentMalformedError(TalkpadError):
    """Alignment payload has an unusable shape.

    Timing noise (overlaps, out-of-order starts, empty alignment) is clamped
    by AlignmentIndex and never raises this error.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Malformed alignment payload: {reason}")


class StorageError(TalkpadError):
    """BlobStorageService failure (upload, download or delete)."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Storage {operation} failed: {reason}")


class SpeechGenerationError(TalkpadError):
    """SpeechGenerationService failed to produce audio."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Speech generation failed: {reason}")


# --- Exclusive resources ---


class ChannelBusyError(TalkpadError):
    """An exclusive channel is held and the policy forbids preemption."""

    def __init__(self, channel: str, holder: str) -> None:
        self.channel = channel
        self.holder = holder
        super().__init__(f"Channel '{channel}' is held by '{holder}'")


class CaptureUnavailableError(TalkpadError):
    """The single capture device is held or could not be started."""

    def __init__(self, reason: str, holder: str | None = None) -> None:
        self.reason = reason
        self.holder = holder
        super().__init__(f"Capture device unavailable: {reason}")


# --- Voice samples ---


class SampleError(TalkpadError):
    """Voice sample lifecycle error."""


class SampleNotFoundError(SampleError):
    """No voice sample with the given id."""

    def __init__(self, sample_id: str) -> None:
        self.sample_id = sample_id
        super().__init__(f"Voice sample '{sample_id}' not found")


class SampleBusyError(SampleError):
    """An asynchronous transition is still unresolved for the sample."""

    def __init__(self, sample_id: str, action: str) -> None:
        self.sample_id = sample_id
        self.action = action
        super().__init__(
            f"Cannot {action} voice sample '{sample_id}' while a previous operation is pending"
        )


class InvalidTransitionError(SampleError):
    """Invalid state transition in the voice sample state machine."""

    def __init__(self, from_state: str, to_state: str) -> None:
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state} -> {to_state}")


class UploadFailedError(SampleError):
    """Upload of a voice sample failed. The message is kept for display."""

    def __init__(self, sample_id: str, reason: str) -> None:
        self.sample_id = sample_id
        self.reason = reason
        super().__init__(f"Upload failed for voice sample '{sample_id}': {reason}")
