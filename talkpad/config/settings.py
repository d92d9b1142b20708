"""Centralized configuration via pydantic-settings.

The ``TALKPAD_*`` environment variables are read, validated, and exposed here.
The logging variables (``TALKPAD_LOG_FORMAT``, ``TALKPAD_LOG_LEVEL``) are not
modelled here; ``talkpad.logging`` reads them directly before settings load.

Usage::

    from talkpad.config.settings import get_settings

    settings = get_settings()
    print(settings.composer.case_mode)       # CaseMode, validated
    print(settings.playback.near_end_epsilon_s)

``.env`` files in the working directory are loaded automatically.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from talkpad._types import CaseMode


class ComposerSettings(BaseSettings):
    """Text composition (TextAssembler and word-prediction context)."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    case_mode: CaseMode = Field(
        default=CaseMode.VERBATIM, validation_alias="TALKPAD_COMPOSER_CASE_MODE"
    )
    min_word_length: int = Field(
        default=1, ge=1, le=100, validation_alias="TALKPAD_COMPOSER_MIN_WORD_LENGTH"
    )
    max_word_length: int = Field(
        default=50, ge=1, le=1000, validation_alias="TALKPAD_COMPOSER_MAX_WORD_LENGTH"
    )

    @model_validator(mode="after")
    def _min_le_max(self) -> ComposerSettings:
        if self.min_word_length > self.max_word_length:
            msg = "min_word_length must be <= max_word_length"
            raise ValueError(msg)
        return self


class AlignmentSettings(BaseSettings):
    """Alignment clamping and word segmentation."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    clamp_warn_s: float = Field(
        default=0.05, ge=0.0, le=10.0, validation_alias="TALKPAD_ALIGNMENT_CLAMP_WARN_S"
    )
    hide_audio_tags: bool = Field(default=True, validation_alias="TALKPAD_ALIGNMENT_HIDE_AUDIO_TAGS")


class PlaybackSettings(BaseSettings):
    """Utterance playback and highlighting."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    near_end_epsilon_s: float = Field(
        default=0.01, ge=0.0, le=1.0, validation_alias="TALKPAD_PLAYBACK_NEAR_END_EPSILON_S"
    )
    preemptive: bool = Field(default=True, validation_alias="TALKPAD_PLAYBACK_PREEMPTIVE")


class RecordingSettings(BaseSettings):
    """Voice sample capture and upload."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    capture_preemptive: bool = Field(
        default=True, validation_alias="TALKPAD_RECORDING_CAPTURE_PREEMPTIVE"
    )


class TalkpadSettings(BaseSettings):
    """All talkpad settings, one nested model per subsystem.

    Loads ``.env`` from the current directory when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    composer: ComposerSettings = Field(default_factory=ComposerSettings)
    alignment: AlignmentSettings = Field(default_factory=AlignmentSettings)
    playback: PlaybackSettings = Field(default_factory=PlaybackSettings)
    recording: RecordingSettings = Field(default_factory=RecordingSettings)


@lru_cache(maxsize=1)
def get_settings() -> TalkpadSettings:
    """Return the singleton ``TalkpadSettings`` instance.

    Built once and cached; environment changes after the first call are not
    seen until the cache is cleared.
    Tests call ``get_settings.cache_clear()`` to reset it.
    """
    return TalkpadSettings()
