"""Character alignment indexing and word segmentation for utterances."""

from __future__ import annotations

from talkpad.alignment.index import AlignmentIndex
from talkpad.alignment.segmenter import WordSegmenter, segment

__all__ = ["AlignmentIndex", "WordSegmenter", "segment"]
