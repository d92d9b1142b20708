"""Prometheus metrics for utterance playback.

Defined metrics:
- talkpad_playback_sessions_total: Playback sessions started, by source
  (play, queue, speak)
- talkpad_playback_highlight_updates_total: Highlight-change events emitted
- talkpad_playback_channel_revocations_total: Sessions halted because another
  owner took the output channel
"""

from __future__ import annotations

from prometheus_client import Counter

playback_sessions_total = Counter(
    "talkpad_playback_sessions_total",
    "Playback sessions started",
    ["source"],
)

playback_highlight_updates_total = Counter(
    "talkpad_playback_highlight_updates_total",
    "Highlight-change events emitted to subscribers",
)

playback_channel_revocations_total = Counter(
    "talkpad_playback_channel_revocations_total",
    "Utterance sessions halted because the output channel was taken over",
)
