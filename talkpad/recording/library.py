"""VoiceSampleLibrary — the voice sample collection used to build a custom voice.

Owns one RecordingSession per sample id and drives them against the host's
capture device, blob storage and audio output. Every public coroutine runs
on the host's event loop. Uploads run as background tasks so other samples
stay responsive while one is uploading.

Shared resources:
- Capture device: one recording at a time. Starting a recording on sample A
  while B records revokes B (B returns to idle, its audio is discarded) and
  stops the device before A starts it again.
- Output channel: shared with PlaybackSync. Previewing a sample revokes the
  utterance player or any other preview before the new audio plays.

Per-id ordering: an action issued while a previous asynchronous step of the
same sample is unresolved raises SampleBusyError. delete() is the exception:
it waits for the pending step and is then applied.

Failures are recorded on the affected sample (status ERROR, ``error``
message) and never touch other samples.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from talkpad._types import SampleStatus, SampleType
from talkpad.audio.channel import ExclusiveChannel
from talkpad.exceptions import (
    CaptureUnavailableError,
    ChannelBusyError,
    InvalidTransitionError,
    SampleBusyError,
    SampleError,
    SampleNotFoundError,
    UploadFailedError,
)
from talkpad.logging import get_logger
from talkpad.recording.metrics import (
    recording_active_uploads,
    recording_capture_revocations_total,
    recording_uploads_total,
)
from talkpad.recording.session import RecordingSession

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from talkpad._types import VoiceSample
    from talkpad.audio.interface import AudioCaptureDevice, AudioOutputChannel
    from talkpad.config.settings import RecordingSettings
    from talkpad.storage.interface import BlobStorageService

logger = get_logger("recording.library")

_STOP_CAPTURE = "stop capture"


def sample_owner(sample_id: str) -> str:
    """Channel owner name used for a sample's capture and preview."""
    return f"sample:{sample_id}"


def _failure_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class VoiceSampleLibrary:
    """Collection of voice samples with per-id lifecycle.

    Args:
        storage: Blob storage for sample audio.
        capture: The host's capture device.
        output: The host's audio output.
        output_channel: Output arbiter shared with PlaybackSync.
        capture_channel: Capture arbiter. Created from settings when omitted.
        settings: Recording settings. Defaults to ``get_settings().recording``.
    """

    def __init__(
        self,
        storage: BlobStorageService,
        capture: AudioCaptureDevice,
        output: AudioOutputChannel,
        output_channel: ExclusiveChannel,
        *,
        capture_channel: ExclusiveChannel | None = None,
        settings: RecordingSettings | None = None,
    ) -> None:
        if settings is None:
            from talkpad.config.settings import get_settings

            settings = get_settings().recording

        self._storage = storage
        self._capture = capture
        self._output = output
        self._output_channel = output_channel
        self._capture_channel = capture_channel or ExclusiveChannel(
            "capture", preemptive=settings.capture_preemptive
        )

        self._sessions: dict[str, RecordingSession] = {}
        self._uploads: dict[str, asyncio.Task[None]] = {}
        self._listeners: list[Callable[[str, VoiceSample | None], None]] = []

        # Device bookkeeping: started and not yet asked to stop / stop in flight.
        self._device_active = False
        self._device_stop: asyncio.Future[bytes] | None = None

    # --- Read side ---

    @property
    def samples(self) -> tuple[VoiceSample, ...]:
        """Snapshots of all samples in creation order."""
        return tuple(s.snapshot() for s in self._sessions.values())

    @property
    def capture_channel(self) -> ExclusiveChannel:
        return self._capture_channel

    @property
    def recording_sample_id(self) -> str | None:
        """Id of the sample currently holding the capture device."""
        for session in self._sessions.values():
            if session.status is SampleStatus.RECORDING:
                return session.sample_id
        return None

    def __contains__(self, sample_id: object) -> bool:
        return sample_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, sample_id: str) -> VoiceSample:
        """Snapshot of one sample.

        Raises:
            SampleNotFoundError: If the id is unknown.
        """
        return self._session(sample_id).snapshot()

    def status(self, sample_id: str) -> SampleStatus:
        return self._session(sample_id).status

    def failure(self, sample_id: str) -> UploadFailedError | None:
        """The upload failure behind the sample's ERROR status, if any.

        The storage error is chained as ``__cause__``.
        """
        return self._session(sample_id).failure

    def subscribe(
        self, listener: Callable[[str, VoiceSample | None], None]
    ) -> Callable[[], None]:
        """Register a listener called on every change.

        The listener receives the sample id and its new snapshot, or None
        once the sample is deleted.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def restore(self, samples: Iterable[VoiceSample]) -> int:
        """Seed the collection with previously stored samples (all idle).

        Ids already present are left untouched.

        Returns:
            Number of samples added.
        """
        added = 0
        for sample in samples:
            if sample.sample_id in self._sessions:
                logger.warning("restore_skipped_existing", sample_id=sample.sample_id)
                continue
            self._create(
                sample.sample_id,
                sample.sample_type,
                blob_ref=sample.blob_ref,
                file_name=sample.file_name,
            )
            added += 1
        logger.info("samples_restored", count=added)
        return added

    # --- Capture ---

    async def start_capture(self, sample_id: str) -> VoiceSample:
        """Start recording ``sample_id``, creating the sample if needed.

        Raises:
            SampleBusyError: If the sample has a pending step.
            InvalidTransitionError: If the sample cannot start recording.
            CaptureUnavailableError: If the device is held by a non-preemptive
                channel or fails to start (the failure is also recorded on
                the sample).
        """
        session = self._sessions.get(sample_id)
        if session is None:
            session = self._create(sample_id, SampleType.RECORDING)
        elif session.is_busy:
            raise SampleBusyError(sample_id, "start capture")
        session.check_transition(SampleStatus.RECORDING)

        owner = sample_owner(sample_id)
        try:
            revoked = self._capture_channel.acquire(
                owner, lambda: self._on_capture_revoked(sample_id)
            )
        except ChannelBusyError as exc:
            logger.warning("capture_busy", sample_id=sample_id, holder=exc.holder)
            raise CaptureUnavailableError(
                f"held by '{exc.holder}'", holder=exc.holder
            ) from exc

        session.begin("start capture")
        generation = session.next_capture()
        session.sample_type = SampleType.RECORDING
        session.audio = None
        session.transition(SampleStatus.RECORDING)

        try:
            # Stop-then-start: the revoked recording's device session ends first.
            try:
                await self._release_device()
            except Exception:
                logger.warning("capture_stop_failed", revoked=revoked, exc_info=True)

            if not session.is_current_capture(generation):
                return session.snapshot()

            self._device_active = True
            try:
                await self._capture.start()
            except Exception as exc:
                if not session.is_current_capture(generation):
                    return session.snapshot()
                self._device_active = False
                self._capture_channel.release(owner)
                message = _failure_message(exc)
                session.transition(SampleStatus.ERROR, error=message)
                logger.warning(
                    "capture_start_failed", sample_id=sample_id, error=message, exc_info=True
                )
                raise CaptureUnavailableError(message) from exc

            if not session.is_current_capture(generation):
                return session.snapshot()
            logger.info("capture_started", sample_id=sample_id, revoked=revoked)
            return session.snapshot()
        finally:
            if session.is_current_capture(generation):
                session.settle()

    async def stop_capture(self, sample_id: str) -> VoiceSample:
        """Stop recording ``sample_id`` and start uploading the captured audio.

        Returns once the upload has started; use ``wait_settled`` for the
        outcome.

        Raises:
            SampleBusyError: If the sample has a pending step.
            InvalidTransitionError: If the sample is not recording.
        """
        session = self._session(sample_id)
        if session.is_busy:
            raise SampleBusyError(sample_id, _STOP_CAPTURE)
        if session.status is not SampleStatus.RECORDING:
            raise InvalidTransitionError(session.status.value, SampleStatus.UPLOADING.value)

        session.begin(_STOP_CAPTURE)
        generation = session.next_capture()
        owner = sample_owner(sample_id)

        try:
            data = await self._release_device()
        except Exception as exc:
            if session.is_current_capture(generation):
                self._capture_channel.release(owner)
                message = _failure_message(exc)
                session.transition(SampleStatus.ERROR, error=message)
                session.settle()
                logger.warning(
                    "capture_stop_failed", sample_id=sample_id, error=message, exc_info=True
                )
            return session.snapshot()

        if not session.is_current_capture(generation):
            return session.snapshot()

        self._capture_channel.release(owner)
        session.audio = data or b""
        session.transition(SampleStatus.UPLOADING)
        logger.info("capture_stopped", sample_id=sample_id, size_bytes=len(session.audio))
        self._spawn_upload(session)
        return session.snapshot()

    def _on_capture_revoked(self, sample_id: str) -> None:
        session = self._sessions.get(sample_id)
        if session is None or session.status is not SampleStatus.RECORDING:
            return
        if session.pending_action == _STOP_CAPTURE:
            # Already stopped by the user; the shared device stop hands it the audio.
            logger.info("capture_revoked_while_stopping", sample_id=sample_id)
            return
        # Invalidates the revoked sample's in-flight start.
        session.next_capture()
        session.audio = None
        session.transition(SampleStatus.IDLE)
        session.settle()
        recording_capture_revocations_total.inc()
        logger.info("capture_revoked", sample_id=sample_id)

    async def _release_device(self) -> bytes | None:
        """Stop the capture device if it is running.

        Concurrent callers share one ``stop()`` call. Returns None when the
        device was not running.
        """
        stop = self._device_stop
        if stop is None:
            if not self._device_active:
                return None
            self._device_active = False
            stop = asyncio.ensure_future(self._capture.stop())
            self._device_stop = stop
            stop.add_done_callback(self._clear_device_stop)
        return await asyncio.shield(stop)

    def _clear_device_stop(self, future: asyncio.Future[bytes]) -> None:
        if self._device_stop is future:
            self._device_stop = None

    # --- Upload ---

    async def add_upload(
        self, sample_id: str, data: bytes, file_name: str | None = None
    ) -> VoiceSample:
        """Upload a file-selected sample, creating it if needed.

        Raises:
            SampleBusyError: If the sample has a pending step.
            InvalidTransitionError: If the sample cannot start uploading.
        """
        session = self._sessions.get(sample_id)
        if session is None:
            session = self._create(sample_id, SampleType.UPLOAD, file_name=file_name)
        elif session.is_busy:
            raise SampleBusyError(sample_id, "upload")
        session.check_transition(SampleStatus.UPLOADING)

        session.begin("upload")
        session.sample_type = SampleType.UPLOAD
        session.file_name = file_name
        session.audio = data
        session.transition(SampleStatus.UPLOADING)
        self._spawn_upload(session)
        return session.snapshot()

    async def retry_upload(self, sample_id: str) -> VoiceSample:
        """Retry a failed upload with the retained audio.

        Raises:
            SampleBusyError: If the sample has a pending step.
            InvalidTransitionError: If the sample is not in ERROR or has no
                retained audio.
        """
        session = self._session(sample_id)
        if session.is_busy:
            raise SampleBusyError(sample_id, "retry upload")
        if session.status is not SampleStatus.ERROR or session.audio is None:
            raise InvalidTransitionError(session.status.value, SampleStatus.UPLOADING.value)

        session.begin("retry upload")
        session.transition(SampleStatus.UPLOADING)
        logger.info("upload_retry", sample_id=sample_id)
        self._spawn_upload(session)
        return session.snapshot()

    def cancel_upload(self, sample_id: str) -> bool:
        """Stop reflecting an in-flight upload.

        The storage call is not aborted. Its outcome is ignored and the
        sample returns to idle with its previous blob reference.

        Returns:
            True if an upload was cancelled.
        """
        session = self._session(sample_id)
        if session.status is not SampleStatus.UPLOADING:
            return False
        session.next_upload()
        session.audio = None
        session.transition(SampleStatus.IDLE)
        session.settle()
        logger.info("upload_cancelled", sample_id=sample_id)
        return True

    def _spawn_upload(self, session: RecordingSession) -> None:
        generation = session.next_upload()
        task = asyncio.create_task(
            self._upload(session, generation), name=f"upload:{session.sample_id}"
        )
        self._uploads[session.sample_id] = task
        task.add_done_callback(lambda t: self._forget_upload(session.sample_id, t))

    def _forget_upload(self, sample_id: str, task: asyncio.Task[None]) -> None:
        if self._uploads.get(sample_id) is task:
            del self._uploads[sample_id]

    async def _upload(self, session: RecordingSession, generation: int) -> None:
        sample_id = session.sample_id
        data = session.audio or b""
        name = f"{session.sample_type.value}/{sample_id}"

        recording_active_uploads.inc()
        try:
            blob_ref = await self._storage.upload(data, name=name)
        except Exception as exc:
            if not session.is_current_upload(generation):
                recording_uploads_total.labels(result="ignored").inc()
                logger.info("upload_outcome_ignored", sample_id=sample_id, result="failure")
                return
            failure = UploadFailedError(sample_id, _failure_message(exc))
            failure.__cause__ = exc
            recording_uploads_total.labels(result="failure").inc()
            logger.warning(
                "upload_failed", sample_id=sample_id, error=failure.reason, exc_info=True
            )
            session.transition(SampleStatus.ERROR, error=failure.reason)
            session.failure = failure
            session.settle()
            return
        finally:
            recording_active_uploads.dec()

        if not session.is_current_upload(generation):
            recording_uploads_total.labels(result="ignored").inc()
            logger.info(
                "upload_outcome_ignored", sample_id=sample_id, result="success", blob_ref=blob_ref
            )
            return

        replaced = session.blob_ref
        session.blob_ref = blob_ref
        session.audio = None
        recording_uploads_total.labels(result="success").inc()
        logger.info(
            "upload_succeeded",
            sample_id=sample_id,
            blob_ref=blob_ref,
            size_bytes=len(data),
            replaced=replaced,
        )
        session.transition(SampleStatus.IDLE)
        session.settle()

    # --- Delete ---

    async def delete(self, sample_id: str) -> bool:
        """Delete a sample and its stored blob.

        A delete issued while an asynchronous step is pending waits for it
        to settle and is then applied.

        Returns:
            True if the sample was removed. False if the storage delete
            failed (recorded on the sample) or another delete removed it
            first.

        Raises:
            SampleNotFoundError: If the id is unknown.
            InvalidTransitionError: If the sample is recording.
        """
        session = self._session(sample_id)
        if session.status is SampleStatus.RECORDING:
            raise InvalidTransitionError(session.status.value, "deleted")

        if session.is_busy:
            logger.info("delete_queued", sample_id=sample_id, pending=session.pending_action)
            await session.wait_settled()
            if session.deleted:
                return False
            if session.status is SampleStatus.RECORDING:
                raise InvalidTransitionError(session.status.value, "deleted")

        if session.status is SampleStatus.PLAYING:
            self._stop_preview(session)

        blob_ref = session.blob_ref
        session.begin("delete")
        try:
            if blob_ref is not None:
                await self._storage.delete(blob_ref)
        except Exception as exc:
            message = _failure_message(exc)
            logger.warning(
                "delete_failed",
                sample_id=sample_id,
                blob_ref=blob_ref,
                error=message,
                exc_info=True,
            )
            session.transition(SampleStatus.ERROR, error=message)
            session.settle()
            return False

        del self._sessions[sample_id]
        session.mark_deleted()
        logger.info("sample_deleted", sample_id=sample_id, blob_ref=blob_ref)
        self._notify(sample_id, None)
        return True

    # --- Preview ---

    async def play(self, sample_id: str) -> VoiceSample:
        """Preview a sample on the shared output channel.

        Takes the channel first, which halts utterance playback or another
        preview, then fetches the audio and plays it. Audio still waiting
        for a retry is played from memory.

        Raises:
            SampleBusyError: If the sample has a pending step.
            InvalidTransitionError: If the sample cannot be previewed.
            SampleError: If the sample has no audio.
            ChannelBusyError: If the output channel is non-preemptive and held.
        """
        session = self._session(sample_id)
        if session.is_busy:
            raise SampleBusyError(sample_id, "play")
        session.check_transition(SampleStatus.PLAYING)
        local_audio = session.audio
        blob_ref = session.blob_ref
        if local_audio is None and blob_ref is None:
            raise SampleError(f"Voice sample '{sample_id}' has no audio")

        owner = sample_owner(sample_id)
        self._output_channel.acquire(owner, lambda: self._on_preview_revoked(sample_id))

        session.begin("play")
        generation = session.next_preview()
        session.transition(SampleStatus.PLAYING)
        try:
            if blob_ref is not None and local_audio is None:
                data = await self._storage.download(blob_ref)
            else:
                data = local_audio or b""
        except Exception as exc:
            if session.is_current_preview(generation):
                self._output_channel.release(owner)
                message = _failure_message(exc)
                session.transition(SampleStatus.ERROR, error=message)
                logger.warning(
                    "preview_failed", sample_id=sample_id, error=message, exc_info=True
                )
            return session.snapshot()
        finally:
            session.settle()

        if not session.is_current_preview(generation):
            return session.snapshot()

        self._output.play(
            data,
            on_tick=lambda _t: None,
            on_ended=lambda: self._on_preview_ended(sample_id, generation),
        )
        logger.info("preview_started", sample_id=sample_id, size_bytes=len(data))
        return session.snapshot()

    def stop(self, sample_id: str) -> VoiceSample:
        """Stop previewing ``sample_id``. No-op unless it is playing."""
        session = self._session(sample_id)
        if session.status is SampleStatus.PLAYING:
            self._stop_preview(session)
        return session.snapshot()

    def _stop_preview(self, session: RecordingSession) -> None:
        session.next_preview()
        if self._output_channel.release(sample_owner(session.sample_id)):
            self._output.stop()
        session.transition(session.preview_origin)
        session.settle()
        logger.info("preview_stopped", sample_id=session.sample_id)

    def _on_preview_revoked(self, sample_id: str) -> None:
        session = self._sessions.get(sample_id)
        if session is None or session.status is not SampleStatus.PLAYING:
            return
        session.next_preview()
        self._output.stop()
        session.transition(session.preview_origin)
        session.settle()
        logger.info("preview_revoked", sample_id=sample_id)

    def _on_preview_ended(self, sample_id: str, generation: int) -> None:
        session = self._sessions.get(sample_id)
        if session is None or not session.is_current_preview(generation):
            return
        self._output_channel.release(sample_owner(sample_id))
        session.transition(session.preview_origin)
        logger.info("preview_ended", sample_id=sample_id)

    # --- Waiting ---

    async def wait_settled(self, sample_id: str) -> VoiceSample:
        """Wait for the sample's pending step (e.g. its upload) to settle."""
        session = self._session(sample_id)
        await session.wait_settled()
        return session.snapshot()

    async def wait_uploads(self) -> None:
        """Wait for every upload task, including cancelled-but-running ones."""
        while self._uploads:
            await asyncio.gather(*self._uploads.values(), return_exceptions=True)

    # --- Internals ---

    def _session(self, sample_id: str) -> RecordingSession:
        session = self._sessions.get(sample_id)
        if session is None:
            raise SampleNotFoundError(sample_id)
        return session

    def _create(
        self,
        sample_id: str,
        sample_type: SampleType,
        *,
        blob_ref: str | None = None,
        file_name: str | None = None,
    ) -> RecordingSession:
        session = RecordingSession(
            sample_id,
            sample_type,
            blob_ref=blob_ref,
            file_name=file_name,
            on_change=lambda snapshot: self._notify(sample_id, snapshot),
        )
        self._sessions[sample_id] = session
        logger.debug("sample_created", sample_id=sample_id, sample_type=sample_type.value)
        self._notify(sample_id, session.snapshot())
        return session

    def _notify(self, sample_id: str, snapshot: VoiceSample | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(sample_id, snapshot)
            except Exception:
                logger.exception("sample_listener_failed", sample_id=sample_id)
