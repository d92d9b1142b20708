"""Tests for RecordingSession.

Validates:
- Valid and invalid status transitions
- Error message kept in ERROR, cleared when the sample starts over
- Preview returns to its origin status
- begin/settle serialization and wait_settled
- Generation tokens for stale outcomes
"""

from __future__ import annotations

import asyncio
from unittest.mock import Mock

import pytest

from talkpad._types import SampleStatus, SampleType
from talkpad.exceptions import InvalidTransitionError, SampleBusyError
from talkpad.recording.session import RecordingSession


def _session(**kwargs: object) -> RecordingSession:
    return RecordingSession("s1", SampleType.RECORDING, **kwargs)  # type: ignore[arg-type]


class TestTransitions:
    def test_starts_idle(self) -> None:
        session = _session()
        assert session.status is SampleStatus.IDLE
        assert session.error is None

    def test_capture_upload_success_path(self) -> None:
        session = _session()
        for target in (SampleStatus.RECORDING, SampleStatus.UPLOADING, SampleStatus.IDLE):
            session.transition(target)
        assert session.status is SampleStatus.IDLE

    @pytest.mark.parametrize(
        ("start_path", "target"),
        [
            ((), SampleStatus.IDLE),
            ((SampleStatus.RECORDING,), SampleStatus.PLAYING),
            ((SampleStatus.UPLOADING,), SampleStatus.RECORDING),
            ((SampleStatus.UPLOADING,), SampleStatus.PLAYING),
            ((SampleStatus.PLAYING,), SampleStatus.RECORDING),
            ((SampleStatus.PLAYING,), SampleStatus.UPLOADING),
        ],
    )
    def test_invalid_transitions_raise(
        self, start_path: tuple[SampleStatus, ...], target: SampleStatus
    ) -> None:
        session = _session()
        for status in start_path:
            session.transition(status)
        before = session.status
        with pytest.raises(InvalidTransitionError):
            session.transition(target)
        assert session.status is before

    def test_error_kept_until_start_over(self) -> None:
        session = _session()
        session.transition(SampleStatus.UPLOADING)
        session.transition(SampleStatus.ERROR, error="network down")
        session.transition(SampleStatus.PLAYING)
        assert session.error == "network down"
        session.transition(SampleStatus.ERROR)
        assert session.error == "network down"
        session.transition(SampleStatus.UPLOADING)
        assert session.error is None

    def test_preview_origin(self) -> None:
        session = _session()
        session.transition(SampleStatus.ERROR, error="x")
        session.transition(SampleStatus.PLAYING)
        assert session.preview_origin is SampleStatus.ERROR

    def test_on_change_receives_snapshot(self) -> None:
        on_change = Mock()
        session = _session(blob_ref="blob-1", on_change=on_change)
        session.transition(SampleStatus.PLAYING)
        snapshot = on_change.call_args.args[0]
        assert snapshot.status is SampleStatus.PLAYING
        assert snapshot.blob_ref == "blob-1"
        assert snapshot.sample_id == "s1"


class TestPending:
    async def test_begin_while_pending_raises(self) -> None:
        session = _session()
        session.begin("upload")
        assert session.is_busy
        assert session.pending_action == "upload"
        with pytest.raises(SampleBusyError):
            session.begin("play")

    async def test_settle_allows_next_action(self) -> None:
        session = _session()
        session.begin("upload")
        session.settle()
        session.settle()
        assert not session.is_busy
        session.begin("play")

    async def test_wait_settled_resumes_after_settle(self) -> None:
        session = _session()
        session.begin("upload")
        waiter = asyncio.create_task(session.wait_settled())
        await asyncio.sleep(0)
        assert not waiter.done()

        session.settle()
        await waiter
        assert not session.is_busy

    async def test_cancelled_waiter_leaves_pending_step(self) -> None:
        session = _session()
        session.begin("upload")
        waiter = asyncio.create_task(session.wait_settled())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert session.is_busy

    async def test_wait_settled_when_idle(self) -> None:
        await _session().wait_settled()

    async def test_mark_deleted_settles(self) -> None:
        session = _session()
        session.begin("upload")
        session.audio = b"data"
        session.mark_deleted()
        assert session.deleted
        assert session.audio is None
        assert not session.is_busy


class TestGenerations:
    def test_newer_upload_invalidates_older(self) -> None:
        session = _session()
        first = session.next_upload()
        second = session.next_upload()
        assert not session.is_current_upload(first)
        assert session.is_current_upload(second)

    def test_deleted_session_has_no_current_outcome(self) -> None:
        session = _session()
        upload = session.next_upload()
        capture = session.next_capture()
        session.mark_deleted()
        assert not session.is_current_upload(upload)
        assert not session.is_current_capture(capture)

    def test_preview_token_requires_playing(self) -> None:
        session = _session()
        token = session.next_preview()
        assert not session.is_current_preview(token)
        session.transition(SampleStatus.PLAYING)
        assert session.is_current_preview(token)
