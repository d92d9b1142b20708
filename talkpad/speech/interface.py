"""Abstract interface for speech generation backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from talkpad._types import SpeechResult


class SpeechGenerationService(ABC):
    """Text-to-speech with optional per-character alignment.

    Implementations wrap a browser or cloud speech engine. Inference is out
    of scope here; the service only has to return audio bytes and, when the
    engine reports timing, one AlignmentEntry per source character.
    """

    @abstractmethod
    async def generate(
        self,
        text: str,
        *,
        options: dict[str, object] | None = None,
    ) -> SpeechResult:
        """Synthesize ``text``.

        Args:
            text: Text to speak.
            options: Provider options from ``talkpad.speech.providers.generation_options``.

        Returns:
            Audio bytes and character alignment (empty when unavailable).

        Raises:
            Exception: Any engine or network failure.
        """
        ...
