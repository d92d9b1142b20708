"""AlignmentIndex — per-character timing lookup for an utterance.

Speech services report one timing entry per source character. The index
keeps them in character order and answers "which character is being spoken
at time t" with a binary search over the effective start times.

Timing from the service is noisy: starts can overlap the previous entry or
run backwards. Instead of rejecting the payload the index clamps:

    effective_end[i]   = max(end[0..i])
    effective_start[i] = max(start[i], effective_end[i - 1])

so effective intervals are ordered and never overlap. Negative starts and
durations are clamped to zero. Clamping beyond ``clamp_warn_s`` is logged.

Lookup rules (never raise):
- t inside [start, end) of an entry -> that entry.
- t inside a micro-gap between entries -> the preceding entry.
- t before the first entry -> entry 0.
- t past the end -> the last entry.
- empty index -> None.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

import numpy as np

from talkpad._types import AlignmentEntry
from talkpad.exceptions import AlignmentMalformedError
from talkpad.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = get_logger("alignment.index")

# Keys of the provider's parallel-array alignment payload.
_PAYLOAD_CHARACTERS = "characters"
_PAYLOAD_STARTS = "character_start_times_seconds"
_PAYLOAD_ENDS = "character_end_times_seconds"

# Shifts below this are float noise, not clamping.
_CLAMP_EPSILON_S = 1e-9


class AlignmentIndex:
    """Sorted per-character timing index.

    Args:
        entries: Alignment entries in character order.
        clamp_warn_s: Clamp amount (seconds) above which a warning is logged.
            Defaults to ``TALKPAD_ALIGNMENT_CLAMP_WARN_S``.
    """

    __slots__ = ("_clamped_count", "_ends", "_entries", "_max_clamp_s", "_starts")

    def __init__(
        self,
        entries: Iterable[AlignmentEntry],
        *,
        clamp_warn_s: float | None = None,
    ) -> None:
        self._entries: tuple[AlignmentEntry, ...] = tuple(entries)

        raw_starts = np.fromiter(
            (e.start for e in self._entries), dtype=np.float64, count=len(self._entries)
        )
        raw_durations = np.fromiter(
            (e.duration for e in self._entries), dtype=np.float64, count=len(self._entries)
        )
        raw_starts = np.maximum(raw_starts, 0.0)
        raw_ends = raw_starts + np.maximum(raw_durations, 0.0)

        if self._entries:
            ends = np.maximum.accumulate(raw_ends)
            previous_ends = np.concatenate(([0.0], ends[:-1]))
            starts = np.maximum(raw_starts, previous_ends)
            shifts = starts - raw_starts
            self._clamped_count = int(np.count_nonzero(shifts > _CLAMP_EPSILON_S))
            self._max_clamp_s = float(shifts.max())
        else:
            ends = np.empty(0, dtype=np.float64)
            starts = np.empty(0, dtype=np.float64)
            self._clamped_count = 0
            self._max_clamp_s = 0.0

        starts.flags.writeable = False
        ends.flags.writeable = False
        self._starts = starts
        self._ends = ends

        if clamp_warn_s is None:
            from talkpad.config.settings import get_settings

            clamp_warn_s = get_settings().alignment.clamp_warn_s

        if self._max_clamp_s > clamp_warn_s:
            logger.warning(
                "alignment_clamped",
                entries=len(self._entries),
                clamped=self._clamped_count,
                max_shift_s=round(self._max_clamp_s, 4),
            )

    @classmethod
    def build(
        cls,
        entries: Iterable[AlignmentEntry],
        *,
        clamp_warn_s: float | None = None,
    ) -> AlignmentIndex:
        """Build an index from entries in character order."""
        return cls(entries, clamp_warn_s=clamp_warn_s)

    @classmethod
    def from_character_arrays(
        cls,
        characters: Sequence[str],
        starts: Sequence[float],
        ends: Sequence[float],
        *,
        clamp_warn_s: float | None = None,
    ) -> AlignmentIndex:
        """Build an index from parallel character/start/end arrays.

        Ragged arrays are truncated to the shortest one.

        Raises:
            AlignmentMalformedError: If any argument is not a sequence.
        """
        for name, value in (("characters", characters), ("starts", starts), ("ends", ends)):
            is_array = isinstance(value, (Sequence, np.ndarray))
            if isinstance(value, (bytes, bytearray)) or not is_array:
                msg = f"'{name}' must be a sequence, got {type(value).__name__}"
                raise AlignmentMalformedError(msg)

        count = min(len(characters), len(starts), len(ends))
        if not len(characters) == len(starts) == len(ends):
            logger.warning(
                "alignment_ragged",
                characters=len(characters),
                starts=len(starts),
                ends=len(ends),
                kept=count,
            )

        entries = [
            AlignmentEntry(
                character=characters[i],
                start=float(starts[i]),
                duration=float(ends[i]) - float(starts[i]),
            )
            for i in range(count)
        ]
        return cls(entries, clamp_warn_s=clamp_warn_s)

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        clamp_warn_s: float | None = None,
    ) -> AlignmentIndex:
        """Build an index from the provider's character alignment mapping.

        Raises:
            AlignmentMalformedError: If a required key is missing.
        """
        required = (_PAYLOAD_CHARACTERS, _PAYLOAD_STARTS, _PAYLOAD_ENDS)
        missing = [key for key in required if key not in payload]
        if missing:
            raise AlignmentMalformedError(f"missing keys: {', '.join(missing)}")
        return cls.from_character_arrays(
            payload[_PAYLOAD_CHARACTERS],
            payload[_PAYLOAD_STARTS],
            payload[_PAYLOAD_ENDS],
            clamp_warn_s=clamp_warn_s,
        )

    @property
    def entries(self) -> tuple[AlignmentEntry, ...]:
        """Entries as received (unclamped)."""
        return self._entries

    @property
    def starts(self) -> np.ndarray:
        """Effective (clamped) start times, read-only."""
        return self._starts

    @property
    def ends(self) -> np.ndarray:
        """Effective (clamped) end times, read-only."""
        return self._ends

    @property
    def duration(self) -> float:
        """End of the last entry, 0.0 when empty."""
        return float(self._ends[-1]) if len(self._ends) else 0.0

    @property
    def clamped_count(self) -> int:
        """Number of entries whose start had to be moved forward."""
        return self._clamped_count

    @property
    def text(self) -> str:
        return "".join(e.character for e in self._entries)

    def active_index_at(self, t: float) -> int | None:
        """Return the position of the character spoken at time ``t``."""
        if not self._entries:
            return None
        i = int(np.searchsorted(self._starts, t, side="right")) - 1
        return max(i, 0)

    def span(self, first: int, last: int) -> tuple[float, float]:
        """Effective time range covering entries ``first..last`` inclusive."""
        return float(self._starts[first]), float(self._ends[last])

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AlignmentEntry]:
        return iter(self._entries)

    def __getitem__(self, position: int) -> AlignmentEntry:
        return self._entries[position]

    def __repr__(self) -> str:
        return (
            f"AlignmentIndex(entries={len(self._entries)}, "
            f"duration={self.duration:.3f}, clamped={self._clamped_count})"
        )
