"""Abstract interfaces for the host's audio hardware.

Both devices are exclusive: one output channel shared by utterance playback
and sample previews, and one capture device shared by all recordings.
Access is arbitrated by ``talkpad.audio.channel.ExclusiveChannel``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


class AudioOutputChannel(ABC):
    """Audio output the host drives in real time.

    ``play`` returns immediately. The host then calls ``on_tick`` with the
    playback position (seconds) on every clock tick and ``on_ended`` once
    when the audio finishes. Neither callback fires after ``stop``.
    """

    @abstractmethod
    def play(
        self,
        data: bytes,
        on_tick: Callable[[float], None],
        on_ended: Callable[[], None],
    ) -> None:
        """Start playing ``data``, replacing whatever was playing."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop playback and detach the callbacks of the current audio."""
        ...

    @abstractmethod
    def pause(self) -> None:
        """Pause playback. Ticks stop until ``resume``."""
        ...

    @abstractmethod
    def resume(self) -> None:
        """Resume paused playback."""
        ...

    @abstractmethod
    def seek(self, position: float) -> None:
        """Move the playback position (seconds)."""
        ...


class AudioCaptureDevice(ABC):
    """Microphone capture. A single instance exists system-wide."""

    @abstractmethod
    async def start(self) -> object:
        """Open the device and start capturing.

        Returns:
            Host-specific stream handle.

        Raises:
            Exception: Any device error (permission denied, no device).
        """
        ...

    @abstractmethod
    async def stop(self) -> bytes:
        """Stop capturing and return the encoded audio captured so far."""
        ...
