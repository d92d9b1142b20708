"""Pydantic models for the playback update stream.

PlaybackSync publishes these to its subscribers. The UI highlights words
from ``playback.highlight`` and mirrors transport controls from
``playback.state``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class HighlightChangedEvent(BaseModel):
    """The active segment changed (emitted only on change, never per tick)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["playback.highlight"] = "playback.highlight"
    session_id: str
    current_time: float
    segment_index: int | None
    word_index: int | None = None
    text: str | None = None


class PlaybackStateEvent(BaseModel):
    """Playback started, paused, resumed or seeked."""

    model_config = ConfigDict(frozen=True)

    type: Literal["playback.state"] = "playback.state"
    session_id: str
    current_time: float
    active_segment_index: int | None
    is_playing: bool


class PlaybackEndedEvent(BaseModel):
    """A session finished, either naturally or by cancellation."""

    model_config = ConfigDict(frozen=True)

    type: Literal["playback.ended"] = "playback.ended"
    session_id: str
    track_id: str
    cancelled: bool = False


PlaybackEvent = HighlightChangedEvent | PlaybackStateEvent | PlaybackEndedEvent
