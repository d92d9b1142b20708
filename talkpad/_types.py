"""Core types for talkpad.

This module defines enums and dataclasses shared by the composer, the
alignment/playback pipeline and the voice sample recorder. Changes here
affect every component.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CaseMode(Enum):
    """Case policy applied by the TextAssembler when words are added.

    - VERBATIM: words are inserted exactly as given (primary composition path).
    - SENTENCE: words are lowercased unless they start the buffer or follow
      a sentence-ending period (legacy composition path).
    """

    VERBATIM = "verbatim"
    SENTENCE = "sentence"


class SegmentKind(Enum):
    """Classification of a WordSegment."""

    WORD = "word"
    GAP = "gap"


class SampleType(Enum):
    """Origin of a voice sample."""

    UPLOAD = "upload"
    RECORDING = "recording"


class SampleStatus(Enum):
    """State of a voice sample.

    Valid transitions:
        IDLE -> RECORDING (start capture)
        IDLE -> UPLOADING (file selected)
        RECORDING -> UPLOADING (stop capture, upload starts)
        RECORDING -> IDLE (capture revoked by another sample)
        UPLOADING -> IDLE (upload succeeded or cancelled locally)
        UPLOADING -> ERROR (upload failed)
        ERROR -> UPLOADING (explicit retry or new file)
        ERROR -> RECORDING (re-record)
        IDLE/ERROR -> PLAYING (preview)
        PLAYING -> IDLE/ERROR (ended, stopped or preempted; back to the
            status the preview started from)
        IDLE/RECORDING/PLAYING/ERROR -> ERROR (capture, preview or delete
            failure)
    """

    IDLE = "idle"
    RECORDING = "recording"
    UPLOADING = "uploading"
    PLAYING = "playing"
    ERROR = "error"


class WordStatus(Enum):
    """Highlight status of a segment relative to the playback position."""

    SPOKEN = "spoken"
    CURRENT = "current"
    UNSPOKEN = "unspoken"


@dataclass(frozen=True, slots=True)
class Token:
    """A whitespace-delimited run of text with offsets into its parent."""

    text: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class AlignmentEntry:
    """Timing of a single character in synthesized speech (seconds)."""

    character: str
    start: float
    duration: float

    @property
    def end(self) -> float:
        return self.start + self.duration


@dataclass(frozen=True, slots=True)
class WordSegment:
    """A contiguous character run classified as word or gap.

    ``char_range`` is half-open ``(first, last + 1)`` over alignment
    positions. ``word_index`` is only set for word segments.
    """

    kind: SegmentKind
    text: str
    start_time: float
    end_time: float
    char_range: tuple[int, int]
    segment_index: int
    word_index: int | None = None

    @property
    def is_word(self) -> bool:
        return self.kind is SegmentKind.WORD


@dataclass(frozen=True, slots=True)
class PlaybackState:
    """Snapshot of the active playback session."""

    current_time: float = 0.0
    active_segment_index: int | None = None
    is_playing: bool = False


@dataclass(frozen=True, slots=True)
class AudioTrack:
    """A unit of audio queued on the output channel.

    ``alignment`` is empty when the provider cannot report timing
    (e.g. browser speech); playback then runs without highlighting.
    """

    track_id: str
    audio: bytes
    text: str = ""
    alignment: tuple[AlignmentEntry, ...] = ()
    duration: float | None = None


@dataclass(frozen=True, slots=True)
class SpeechResult:
    """Output of a SpeechGenerationService call."""

    audio: bytes
    alignment: tuple[AlignmentEntry, ...] = ()


@dataclass(frozen=True, slots=True)
class VoiceSample:
    """Read-only view of one voice sample.

    ``error`` holds the last failure message and stays set until the sample
    leaves the ERROR status through a user action.
    """

    sample_id: str
    sample_type: SampleType
    status: SampleStatus = SampleStatus.IDLE
    blob_ref: str | None = None
    error: str | None = None
    file_name: str | None = None
