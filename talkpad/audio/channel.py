"""ExclusiveChannel — single-owner arbitration for shared audio resources.

The output channel (utterance playback and sample previews) and the capture
device (recordings) are each owned by at most one session at any instant.
Acquiring a held channel revokes the previous holder synchronously: its
revoke callback runs to completion before ``acquire`` returns, so the new
owner always starts after the old one has stopped (stop-then-start, never
overlapping).

A non-preemptive channel raises ChannelBusyError instead of revoking.

Thread-safety is not needed: everything runs on the same asyncio event loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from talkpad.exceptions import ChannelBusyError
from talkpad.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from talkpad.config.settings import TalkpadSettings

logger = get_logger("audio.channel")


class ExclusiveChannel:
    """Tracks the single owner of a shared resource.

    Args:
        name: Channel name for logging ("output", "capture").
        preemptive: Revoke the current holder on acquire (default) instead
            of raising ChannelBusyError.
    """

    def __init__(self, name: str, *, preemptive: bool = True) -> None:
        self._name = name
        self._preemptive = preemptive
        self._holder: str | None = None
        self._on_revoke: Callable[[], None] | None = None
        self._revocations = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def holder(self) -> str | None:
        """Current owner, or None when free."""
        return self._holder

    @property
    def revocations(self) -> int:
        """Number of times a holder was revoked (for debugging)."""
        return self._revocations

    def is_held_by(self, owner: str) -> bool:
        return self._holder == owner

    def acquire(self, owner: str, on_revoke: Callable[[], None]) -> str | None:
        """Take ownership of the channel.

        Re-acquiring by the current holder only replaces its revoke callback.

        Args:
            owner: Identifier of the new owner.
            on_revoke: Called synchronously if ownership is later taken away.

        Returns:
            The revoked previous holder, or None.

        Raises:
            ChannelBusyError: If held by another owner and not preemptive.
        """
        if self._holder == owner:
            self._on_revoke = on_revoke
            return None

        previous = self._holder
        if previous is not None:
            if not self._preemptive:
                raise ChannelBusyError(self._name, previous)
            self._revoke()

        self._holder = owner
        self._on_revoke = on_revoke
        logger.debug("channel_acquired", channel=self._name, owner=owner, revoked=previous)
        return previous

    def release(self, owner: str) -> bool:
        """Give up ownership. No-op unless ``owner`` is the holder.

        Returns:
            True if the channel was released.
        """
        if self._holder != owner:
            return False
        self._holder = None
        self._on_revoke = None
        logger.debug("channel_released", channel=self._name, owner=owner)
        return True

    def _revoke(self) -> None:
        previous = self._holder
        callback = self._on_revoke
        self._holder = None
        self._on_revoke = None
        self._revocations += 1
        logger.info("channel_revoked", channel=self._name, owner=previous)
        if callback is None:
            return
        try:
            callback()
        except Exception:
            # The revoked owner records its own failure; the new owner proceeds.
            logger.exception("channel_revoke_callback_failed", channel=self._name, owner=previous)


def create_channels(
    settings: TalkpadSettings | None = None,
) -> tuple[ExclusiveChannel, ExclusiveChannel]:
    """Build the (output, capture) channel pair the host shares between
    PlaybackSync and VoiceSampleLibrary."""
    if settings is None:
        from talkpad.config.settings import get_settings

        settings = get_settings()
    output = ExclusiveChannel("output", preemptive=settings.playback.preemptive)
    capture = ExclusiveChannel("capture", preemptive=settings.recording.capture_preemptive)
    return output, capture
