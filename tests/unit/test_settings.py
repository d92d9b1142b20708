"""Tests for talkpad.config.settings — centralized pydantic-settings configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from talkpad._types import CaseMode
from talkpad.config.settings import (
    AlignmentSettings,
    ComposerSettings,
    PlaybackSettings,
    RecordingSettings,
    TalkpadSettings,
    get_settings,
)


class TestDefaults:
    def test_composer(self) -> None:
        s = ComposerSettings()
        assert s.case_mode is CaseMode.VERBATIM
        assert (s.min_word_length, s.max_word_length) == (1, 50)

    def test_alignment(self) -> None:
        s = AlignmentSettings()
        assert s.clamp_warn_s == 0.05
        assert s.hide_audio_tags is True

    def test_playback(self) -> None:
        s = PlaybackSettings()
        assert s.near_end_epsilon_s == 0.01
        assert s.preemptive is True

    def test_recording(self) -> None:
        assert RecordingSettings().capture_preemptive is True


class TestEnvOverrides:
    """Verify env vars override defaults via monkeypatch."""

    def test_case_mode_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TALKPAD_COMPOSER_CASE_MODE", "sentence")
        assert ComposerSettings().case_mode is CaseMode.SENTENCE

    def test_clamp_warn_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TALKPAD_ALIGNMENT_CLAMP_WARN_S", "0.2")
        assert AlignmentSettings().clamp_warn_s == 0.2

    def test_preemptive_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TALKPAD_RECORDING_CAPTURE_PREEMPTIVE", "false")
        assert RecordingSettings().capture_preemptive is False

    def test_root_settings_aggregate_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TALKPAD_PLAYBACK_NEAR_END_EPSILON_S", "0.05")
        assert TalkpadSettings().playback.near_end_epsilon_s == 0.05


class TestValidation:
    def test_invalid_case_mode(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TALKPAD_COMPOSER_CASE_MODE", "shouting")
        with pytest.raises(ValidationError):
            ComposerSettings()

    def test_min_greater_than_max(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TALKPAD_COMPOSER_MIN_WORD_LENGTH", "10")
        monkeypatch.setenv("TALKPAD_COMPOSER_MAX_WORD_LENGTH", "5")
        with pytest.raises(ValidationError):
            ComposerSettings()

    def test_negative_epsilon(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TALKPAD_PLAYBACK_NEAR_END_EPSILON_S", "-1")
        with pytest.raises(ValidationError):
            PlaybackSettings()


class TestGetSettings:
    def test_cached_singleton(self) -> None:
        assert get_settings() is get_settings()

    def test_cache_clear_rereads_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_settings()
        monkeypatch.setenv("TALKPAD_ALIGNMENT_HIDE_AUDIO_TAGS", "false")
        get_settings.cache_clear()
        second = get_settings()
        assert second is not first
        assert second.alignment.hide_audio_tags is False
