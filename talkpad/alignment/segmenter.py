"""WordSegmenter — groups aligned characters into word and gap segments.

One pass over the alignment produces an immutable tuple of WordSegment.
Alignment data never changes once generated for an utterance, so the tuple
is computed at construction and every iteration re-reads it.

Rules:
- Whitespace characters form gap segments; non-whitespace runs form words.
- Segments tile [0, len(alignment)) with no overlap and no hole.
- A segment's time range is the union of its characters' effective ranges.
- With hide_audio_tags, "[...]" direction tags never become words: their
  characters are folded into gap segments and left out of the gap text.
  An unterminated "[" hides the rest of the utterance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from talkpad._types import SegmentKind, WordSegment, WordStatus
from talkpad.alignment.index import AlignmentIndex

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from talkpad._types import AlignmentEntry

_TAG_OPEN = "["
_TAG_CLOSE = "]"


def segment(
    entries: Iterable[AlignmentEntry] | AlignmentIndex,
    *,
    hide_audio_tags: bool | None = None,
) -> tuple[WordSegment, ...]:
    """Split an alignment into word and gap segments.

    ``hide_audio_tags`` defaults to ``TALKPAD_ALIGNMENT_HIDE_AUDIO_TAGS``, as in
    WordSegmenter.
    """
    index = entries if isinstance(entries, AlignmentIndex) else AlignmentIndex(entries)
    return _compose(index, hide_audio_tags=_resolve_hide_audio_tags(hide_audio_tags))


def _resolve_hide_audio_tags(hide_audio_tags: bool | None) -> bool:
    if hide_audio_tags is not None:
        return hide_audio_tags
    from talkpad.config.settings import get_settings

    return get_settings().alignment.hide_audio_tags


def _compose(index: AlignmentIndex, *, hide_audio_tags: bool) -> tuple[WordSegment, ...]:
    segments: list[WordSegment] = []
    word_count = 0

    run_kind: SegmentKind | None = None
    run_first = 0
    run_text: list[str] = []
    inside_tag = False

    def flush(last: int) -> None:
        nonlocal word_count
        if run_kind is None:
            return
        start_time, end_time = index.span(run_first, last)
        is_word = run_kind is SegmentKind.WORD
        segments.append(
            WordSegment(
                kind=run_kind,
                text="".join(run_text),
                start_time=start_time,
                end_time=end_time,
                char_range=(run_first, last + 1),
                segment_index=len(segments),
                word_index=word_count if is_word else None,
            )
        )
        if is_word:
            word_count += 1

    for position, entry in enumerate(index):
        char = entry.character
        visible = True
        if hide_audio_tags and (inside_tag or char == _TAG_OPEN):
            if char == _TAG_OPEN:
                inside_tag = True
            elif char == _TAG_CLOSE:
                inside_tag = False
            kind = SegmentKind.GAP
            visible = False
        elif char.isspace():
            kind = SegmentKind.GAP
        else:
            kind = SegmentKind.WORD

        if kind is not run_kind:
            flush(position - 1)
            run_kind = kind
            run_first = position
            run_text = []
        if visible:
            run_text.append(char)

    flush(len(index) - 1)
    return tuple(segments)


class WordSegmenter:
    """Cached word/gap segmentation of one utterance.

    Args:
        index: Alignment index of the utterance.
        hide_audio_tags: Exclude "[tag]" directions from words. Defaults to
            ``TALKPAD_ALIGNMENT_HIDE_AUDIO_TAGS``.
    """

    def __init__(self, index: AlignmentIndex, *, hide_audio_tags: bool | None = None) -> None:
        self._index = index
        self._segments = _compose(
            index, hide_audio_tags=_resolve_hide_audio_tags(hide_audio_tags)
        )
        self._words = tuple(s for s in self._segments if s.is_word)

        owners = np.empty(len(index), dtype=np.intp)
        for seg in self._segments:
            first, stop = seg.char_range
            owners[first:stop] = seg.segment_index
        self._owner_of_char = owners

    @property
    def index(self) -> AlignmentIndex:
        return self._index

    @property
    def segments(self) -> tuple[WordSegment, ...]:
        return self._segments

    @property
    def words(self) -> tuple[WordSegment, ...]:
        return self._words

    def segment_index_for_char(self, position: int) -> int | None:
        """Index of the segment owning character ``position``."""
        if not 0 <= position < len(self._owner_of_char):
            return None
        return int(self._owner_of_char[position])

    def segment_index_at(self, t: float) -> int | None:
        """Index of the segment being spoken at time ``t`` (None when empty)."""
        position = self._index.active_index_at(t)
        if position is None:
            return None
        return int(self._owner_of_char[position])

    def segment_at(self, t: float) -> WordSegment | None:
        i = self.segment_index_at(t)
        return None if i is None else self._segments[i]

    def seek_time_for_word(self, word_index: int) -> float:
        """Start time of a word, 0.0 when the index is out of range."""
        if 0 <= word_index < len(self._words):
            return self._words[word_index].start_time
        return 0.0

    def split_at(
        self, segment_index: int | None
    ) -> tuple[tuple[WordSegment, ...], WordSegment | None, tuple[WordSegment, ...]]:
        """Partition segments into (spoken, current, unspoken).

        ``None`` means nothing is active yet: every segment is unspoken.
        """
        if segment_index is None or not 0 <= segment_index < len(self._segments):
            return (), None, self._segments
        return (
            self._segments[:segment_index],
            self._segments[segment_index],
            self._segments[segment_index + 1 :],
        )

    def status_of(self, segment_index: int, active: int | None) -> WordStatus:
        if active is None or segment_index > active:
            return WordStatus.UNSPOKEN
        if segment_index == active:
            return WordStatus.CURRENT
        return WordStatus.SPOKEN

    def __iter__(self) -> Iterator[WordSegment]:
        return iter(self._segments)

    def __len__(self) -> int:
        return len(self._segments)

    def __getitem__(self, i: int) -> WordSegment:
        return self._segments[i]
