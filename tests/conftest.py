"""Shared fixtures for all tests."""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure repo root is on sys.path so tests can import the `talkpad` package
# when running pytest from the repository root without an editable install.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from talkpad.audio.channel import ExclusiveChannel  # noqa: E402
from talkpad.config.settings import (  # noqa: E402
    PlaybackSettings,
    RecordingSettings,
    get_settings,
)
from talkpad.playback.sync import PlaybackSync  # noqa: E402
from talkpad.recording.library import VoiceSampleLibrary  # noqa: E402
from tests.helpers import FakeCapture, FakeOutput, FakeSpeech, FakeStorage  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Every test starts from default settings, whatever the shell exports."""
    for name in (
        "TALKPAD_COMPOSER_CASE_MODE",
        "TALKPAD_ALIGNMENT_HIDE_AUDIO_TAGS",
        "TALKPAD_ALIGNMENT_CLAMP_WARN_S",
        "TALKPAD_PLAYBACK_NEAR_END_EPSILON_S",
        "TALKPAD_PLAYBACK_PREEMPTIVE",
        "TALKPAD_RECORDING_CAPTURE_PREEMPTIVE",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def output() -> FakeOutput:
    return FakeOutput()


@pytest.fixture
def output_channel() -> ExclusiveChannel:
    return ExclusiveChannel("output")


@pytest.fixture
def speech() -> FakeSpeech:
    return FakeSpeech()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def capture() -> FakeCapture:
    return FakeCapture()


@pytest.fixture
def player(
    output: FakeOutput, output_channel: ExclusiveChannel, speech: FakeSpeech
) -> PlaybackSync:
    return PlaybackSync(
        output,
        output_channel,
        speech=speech,
        settings=PlaybackSettings(),
        hide_audio_tags=True,
    )


@pytest.fixture
def library(
    storage: FakeStorage,
    capture: FakeCapture,
    output: FakeOutput,
    output_channel: ExclusiveChannel,
) -> VoiceSampleLibrary:
    return VoiceSampleLibrary(
        storage,
        capture,
        output,
        output_channel,
        settings=RecordingSettings(),
    )
