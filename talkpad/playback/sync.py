"""PlaybackSync — drives utterance playback and word highlighting.

One playback session is active at a time on the shared output channel. The
host's output device calls back on every clock tick with the playback
position; the session maps it through the utterance's AlignmentIndex to the
owning WordSegment and publishes a highlight change only when that segment
differs from the previous tick.

Rules:
- Starting a session (play, speak, next queued track) cancels and replaces
  the previous one. The output is stopped, the previous session is marked
  cancelled, and its late ticks/ended signals are ignored.
- Losing the output channel (a sample preview took it) halts playback,
  clears the queue and reports is_playing=False before the preview starts.
- toggle_play_pause() called twice before the next tick or loop turn acts
  once.
- Within near_end_epsilon_s of the end no segment is highlighted and every
  segment counts as spoken.
- speak() results that arrive after a newer play/stop are dropped.
- Listener failures are logged and never break the tick.

Thread-safety is not needed: everything runs on the same asyncio event loop.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from talkpad._types import AudioTrack, PlaybackState
from talkpad.alignment.index import AlignmentIndex
from talkpad.alignment.segmenter import WordSegmenter
from talkpad.exceptions import ConfigError, SpeechGenerationError
from talkpad.logging import get_logger
from talkpad.playback.events import (
    HighlightChangedEvent,
    PlaybackEndedEvent,
    PlaybackStateEvent,
)
from talkpad.playback.metrics import (
    playback_channel_revocations_total,
    playback_highlight_updates_total,
    playback_sessions_total,
)
from talkpad.speech.providers import NeuralSpeechConfig, generation_options, supports_alignment

if TYPE_CHECKING:
    from collections.abc import Callable

    from talkpad._types import WordSegment
    from talkpad.audio.channel import ExclusiveChannel
    from talkpad.audio.interface import AudioOutputChannel
    from talkpad.config.settings import PlaybackSettings
    from talkpad.playback.events import PlaybackEvent
    from talkpad.speech.interface import SpeechGenerationService
    from talkpad.speech.providers import SpeechConfig

logger = get_logger("playback.sync")

OUTPUT_OWNER = "utterance"


@dataclass(slots=True)
class _Session:
    """Per-track playback state. Dropped as soon as it is superseded."""

    session_id: str
    track: AudioTrack
    segmenter: WordSegmenter
    duration: float
    current_time: float = 0.0
    active_segment: int | None = None
    is_playing: bool = True
    cancelled: bool = False
    toggle_guard: bool = False
    guard_handle: asyncio.Handle | None = None


class PlaybackSync:
    """Single-session utterance player with highlight tracking.

    Args:
        output: Host audio output.
        channel: Output channel arbiter shared with the voice sample library.
        speech: Speech generation backend used by ``speak``.
        speech_config: Active provider config (default: neural voice).
        settings: Playback settings. Defaults to ``get_settings().playback``.
        hide_audio_tags: Forwarded to WordSegmenter.
    """

    def __init__(
        self,
        output: AudioOutputChannel,
        channel: ExclusiveChannel,
        *,
        speech: SpeechGenerationService | None = None,
        speech_config: SpeechConfig | None = None,
        settings: PlaybackSettings | None = None,
        hide_audio_tags: bool | None = None,
    ) -> None:
        if settings is None:
            from talkpad.config.settings import get_settings

            settings = get_settings().playback

        self._output = output
        self._channel = channel
        self._speech = speech
        self._speech_config: SpeechConfig = speech_config or NeuralSpeechConfig()
        self._near_end_epsilon_s = settings.near_end_epsilon_s
        self._hide_audio_tags = hide_audio_tags

        self._session: _Session | None = None
        self._segmenter: WordSegmenter | None = None
        self._finished = False
        self._idle_time = 0.0
        self._queue: deque[AudioTrack] = deque()
        self._listeners: list[Callable[[PlaybackEvent], None]] = []
        self._generation = 0
        self._last_error: Exception | None = None

    # --- Read side ---

    @property
    def state(self) -> PlaybackState:
        session = self._session
        if session is None:
            return PlaybackState(current_time=self._idle_time)
        return PlaybackState(
            current_time=session.current_time,
            active_segment_index=session.active_segment,
            is_playing=session.is_playing,
        )

    @property
    def is_playing(self) -> bool:
        return self._session is not None and self._session.is_playing

    @property
    def current_track(self) -> AudioTrack | None:
        return self._session.track if self._session is not None else None

    @property
    def session_id(self) -> str | None:
        return self._session.session_id if self._session is not None else None

    @property
    def segmenter(self) -> WordSegmenter | None:
        """Segmentation of the current (or most recently played) track."""
        return self._segmenter

    @property
    def queue(self) -> tuple[AudioTrack, ...]:
        return tuple(self._queue)

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    @property
    def speech_config(self) -> SpeechConfig:
        return self._speech_config

    def set_speech_config(self, config: SpeechConfig) -> None:
        self._speech_config = config
        logger.info("speech_provider_changed", kind=config.kind)

    def split(self) -> tuple[tuple[WordSegment, ...], WordSegment | None, tuple[WordSegment, ...]]:
        """(spoken, current, unspoken) segments for rendering the highlight."""
        segmenter = self._segmenter
        if segmenter is None:
            return (), None, ()
        session = self._session
        if self._finished or (session is not None and self._near_end(session)):
            return segmenter.segments, None, ()
        if session is None:
            return (), None, segmenter.segments
        return segmenter.split_at(session.active_segment)

    def subscribe(self, listener: Callable[[PlaybackEvent], None]) -> Callable[[], None]:
        """Register a listener for playback events.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- Commands ---

    def play(self, track: AudioTrack, *, source: str = "play") -> None:
        """Play ``track`` now, replacing the current session and the queue.

        Raises:
            ChannelBusyError: If the output channel is non-preemptive and held.
        """
        self._generation += 1
        self._queue.clear()
        self._start(track, source)

    def enqueue(self, track: AudioTrack) -> None:
        """Play ``track`` after the queued ones (immediately when idle)."""
        if self._session is None:
            self._start(track, "queue")
            return
        self._queue.append(track)
        logger.debug("track_enqueued", track_id=track.track_id, queued=len(self._queue))

    async def speak(self, text: str) -> AudioTrack | None:
        """Generate speech for ``text`` and play it.

        Returns:
            The track that started playing, or None when the text is blank,
            generation failed (see ``last_error``) or a newer command
            superseded it.

        Raises:
            ConfigError: If no speech generation service was provided.
        """
        if self._speech is None:
            raise ConfigError("PlaybackSync has no speech generation service")

        text = text.strip()
        if not text:
            return None

        self._generation += 1
        generation = self._generation
        config = self._speech_config

        try:
            result = await self._speech.generate(text, options=generation_options(config))
        except Exception as exc:
            if generation == self._generation:
                self._last_error = SpeechGenerationError(str(exc))
            logger.warning(
                "speech_generation_failed",
                provider=config.kind,
                error=str(exc),
                exc_info=True,
            )
            return None

        if generation != self._generation:
            logger.info("speech_superseded", provider=config.kind)
            return None

        alignment = result.alignment if supports_alignment(config) else ()
        track = AudioTrack(
            track_id=uuid.uuid4().hex,
            audio=result.audio,
            text=text,
            alignment=alignment,
        )
        self._last_error = None
        self.play(track, source="speak")
        return track

    def toggle_play_pause(self) -> bool:
        """Pause or resume the current session.

        Returns:
            Whether the session is playing afterwards (False when idle).
        """
        session = self._session
        if session is None:
            return False
        if session.toggle_guard:
            logger.debug("toggle_ignored", session_id=session.session_id)
            return session.is_playing

        session.toggle_guard = True
        self._arm_toggle_guard_reset(session)

        if session.is_playing:
            self._output.pause()
            session.is_playing = False
        else:
            self._output.resume()
            session.is_playing = True
        self._emit(self._state_event(session))
        return session.is_playing

    def seek(self, position: float) -> None:
        """Move the current session to ``position`` seconds."""
        session = self._session
        if session is None:
            return
        position = max(position, 0.0)
        if session.duration > 0.0:
            position = min(position, session.duration)
        self._output.seek(position)
        session.current_time = position
        self._refresh_highlight(session)
        self._emit(self._state_event(session))

    def seek_to_word(self, word_index: int) -> None:
        session = self._session
        if session is None:
            return
        self.seek(session.segmenter.seek_time_for_word(word_index))

    def stop(self) -> None:
        """Stop playback, drop the queue and release the output channel."""
        self._generation += 1
        self._queue.clear()
        session = self._session
        if session is None:
            return
        self._cancel_current()
        self._channel.release(OUTPUT_OWNER)
        self._emit(self._idle_event(session.session_id))

    # --- Session lifecycle ---

    def _start(self, track: AudioTrack, source: str) -> None:
        self._channel.acquire(OUTPUT_OWNER, self._on_channel_revoked)
        self._cancel_current()

        index = AlignmentIndex(track.alignment)
        segmenter = WordSegmenter(index, hide_audio_tags=self._hide_audio_tags)
        duration = track.duration if track.duration is not None else index.duration
        session = _Session(
            session_id=uuid.uuid4().hex,
            track=track,
            segmenter=segmenter,
            duration=duration,
        )
        self._session = session
        self._segmenter = segmenter
        self._finished = False

        self._output.play(
            track.audio,
            on_tick=lambda t: self._on_tick(session, t),
            on_ended=lambda: self._on_ended(session),
        )
        playback_sessions_total.labels(source=source).inc()
        logger.info(
            "playback_started",
            session_id=session.session_id,
            track_id=track.track_id,
            source=source,
            segments=len(segmenter),
            duration_s=round(duration, 3),
        )
        self._emit(self._state_event(session))

    def _cancel_current(self) -> None:
        session = self._session
        if session is None:
            return
        self._drop(session)
        self._output.stop()
        logger.info("playback_cancelled", session_id=session.session_id)
        self._emit(
            PlaybackEndedEvent(
                session_id=session.session_id,
                track_id=session.track.track_id,
                cancelled=True,
            )
        )

    def _drop(self, session: _Session) -> None:
        session.cancelled = True
        session.is_playing = False
        if session.guard_handle is not None:
            session.guard_handle.cancel()
            session.guard_handle = None
        self._idle_time = session.current_time
        if self._session is session:
            self._session = None

    def _on_channel_revoked(self) -> None:
        self._generation += 1
        self._queue.clear()
        session = self._session
        if session is None:
            return
        playback_channel_revocations_total.inc()
        self._cancel_current()
        self._emit(self._idle_event(session.session_id))

    def _on_tick(self, session: _Session, t: float) -> None:
        if session.cancelled or session is not self._session:
            return
        session.toggle_guard = False
        session.current_time = t
        self._refresh_highlight(session)

    def _on_ended(self, session: _Session) -> None:
        if session.cancelled or session is not self._session:
            return
        session.current_time = max(session.current_time, session.duration)
        self._drop(session)
        self._finished = True
        logger.info("playback_ended", session_id=session.session_id)
        self._emit(
            PlaybackEndedEvent(session_id=session.session_id, track_id=session.track.track_id)
        )

        if self._queue:
            self._start(self._queue.popleft(), "queue")
            return
        self._channel.release(OUTPUT_OWNER)
        self._emit(self._idle_event(session.session_id))

    # --- Highlighting ---

    def _near_end(self, session: _Session) -> bool:
        if session.duration <= 0.0:
            return False
        return session.current_time >= session.duration - self._near_end_epsilon_s

    def _refresh_highlight(self, session: _Session) -> None:
        if self._near_end(session):
            active = None
        else:
            active = session.segmenter.segment_index_at(session.current_time)
        if active == session.active_segment:
            return

        session.active_segment = active
        segment = session.segmenter[active] if active is not None else None
        playback_highlight_updates_total.inc()
        self._emit(
            HighlightChangedEvent(
                session_id=session.session_id,
                current_time=session.current_time,
                segment_index=active,
                word_index=segment.word_index if segment is not None else None,
                text=segment.text if segment is not None else None,
            )
        )

    def _arm_toggle_guard_reset(self, session: _Session) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: only the next tick clears the guard.
            return
        if session.guard_handle is not None:
            session.guard_handle.cancel()
        session.guard_handle = loop.call_soon(self._clear_toggle_guard, session)

    @staticmethod
    def _clear_toggle_guard(session: _Session) -> None:
        session.toggle_guard = False
        session.guard_handle = None

    # --- Events ---

    def _state_event(self, session: _Session) -> PlaybackStateEvent:
        return PlaybackStateEvent(
            session_id=session.session_id,
            current_time=session.current_time,
            active_segment_index=session.active_segment,
            is_playing=session.is_playing,
        )

    def _idle_event(self, session_id: str) -> PlaybackStateEvent:
        return PlaybackStateEvent(
            session_id=session_id,
            current_time=self._idle_time,
            active_segment_index=None,
            is_playing=False,
        )

    def _emit(self, event: PlaybackEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("playback_listener_failed", event_type=event.type)
