"""Speech provider configuration records.

The provider is a tagged union dispatched on ``kind``: each kind is its own
frozen pydantic record, and behaviour that differs per provider lives in
functions that branch on the kind rather than in a class hierarchy.

- ``browser``: on-device speech synthesis. No character alignment, so
  playback runs without word highlighting.
- ``neural``: cloud neural voice with per-character alignment.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from talkpad.exceptions import ConfigError
from talkpad.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = get_logger("speech.providers")


class BrowserSpeechConfig(BaseModel):
    """On-device (browser) speech synthesis settings."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["browser"] = "browser"
    voice_uri: str | None = None
    rate: float = Field(default=1.0, gt=0.0, le=10.0)
    pitch: float = Field(default=1.0, ge=0.0, le=2.0)
    volume: float = Field(default=1.0, ge=0.0, le=1.0)
    language: str = "en-US"


class NeuralSpeechConfig(BaseModel):
    """Cloud neural voice settings."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    kind: Literal["neural"] = "neural"
    voice_id: str | None = None
    model_id: str = "eleven_multilingual_v2"
    speed: float = Field(default=1.0, ge=0.7, le=1.2)
    stability: float = Field(default=0.7, ge=0.0, le=1.0)
    similarity: float = Field(default=0.5, ge=0.0, le=1.0)
    style: float = Field(default=0.0, ge=0.0, le=1.0)
    speaker_boost: bool = False


SpeechConfig = BrowserSpeechConfig | NeuralSpeechConfig

# Mapping of kind -> config record
_PROVIDER_KINDS: dict[str, type[SpeechConfig]] = {
    "browser": BrowserSpeechConfig,
    "neural": NeuralSpeechConfig,
}


def parse_speech_config(data: Mapping[str, Any]) -> SpeechConfig:
    """Validate a raw mapping into the matching provider record.

    Raises:
        ConfigError: If ``kind`` is missing, unknown, or the fields are invalid.
    """
    kind = data.get("kind")
    if kind is None:
        raise ConfigError("Speech provider config is missing 'kind'")

    model_cls = _PROVIDER_KINDS.get(str(kind))
    if model_cls is None:
        known = ", ".join(sorted(_PROVIDER_KINDS))
        raise ConfigError(f"Unknown speech provider kind '{kind}' (expected one of: {known})")

    try:
        return model_cls.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        logger.warning("invalid_speech_config", kind=kind, errors=exc.error_count())
        raise ConfigError(f"Invalid '{kind}' speech provider config: {exc}") from exc


def supports_alignment(config: SpeechConfig) -> bool:
    """Whether the provider reports per-character timing."""
    return config.kind == "neural"


def generation_options(config: SpeechConfig) -> dict[str, object]:
    """Options passed to SpeechGenerationService.generate for this provider."""
    if config.kind == "browser":
        return {
            "provider": "browser",
            "voice_uri": config.voice_uri,
            "rate": config.rate,
            "pitch": config.pitch,
            "volume": config.volume,
            "language": config.language,
        }
    return {
        "provider": "neural",
        "voice_id": config.voice_id,
        "model_id": config.model_id,
        "voice_settings": {
            "speed": config.speed,
            "stability": config.stability,
            "similarity_boost": config.similarity,
            "style": config.style,
            "use_speaker_boost": config.speaker_boost,
        },
    }
