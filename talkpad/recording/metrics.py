"""Prometheus metrics for voice sample recording.

Defined metrics:
- talkpad_recording_uploads_total: Finished uploads by result
  (success, failure, ignored)
- talkpad_recording_active_uploads: Uploads currently in flight
- talkpad_recording_capture_revocations_total: Recordings stopped because
  another sample took the capture device
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

recording_uploads_total = Counter(
    "talkpad_recording_uploads_total",
    "Voice sample uploads by result",
    ["result"],
)

recording_active_uploads = Gauge(
    "talkpad_recording_active_uploads",
    "Voice sample uploads currently in flight",
)

recording_capture_revocations_total = Counter(
    "talkpad_recording_capture_revocations_total",
    "Recordings discarded because another sample took the capture device",
)
