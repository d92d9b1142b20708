"""Whitespace tokenizer for the composition buffer.

A token is a maximal run of non-whitespace characters. Punctuation is never
split from the word it touches ("hello," is one token); a punctuation mark
with whitespace on both sides ("a - b") is therefore a token of its own.
Empty or whitespace-only text yields no tokens.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from talkpad._types import Token

if TYPE_CHECKING:
    from collections.abc import Collection

_TOKEN_RE = re.compile(r"\S+")


def tokenize(text: str) -> tuple[Token, ...]:
    """Split text into ordered tokens with offsets into ``text``."""
    return tuple(Token(m.group(), m.start(), m.end()) for m in _TOKEN_RE.finditer(text))


def last_token(text: str) -> Token | None:
    """Return the final token of ``text``, or None when there is none."""
    tokens = tokenize(text)
    return tokens[-1] if tokens else None


def words(
    text: str,
    *,
    min_length: int = 1,
    max_length: int = 50,
    stop_words: Collection[str] | None = None,
) -> list[str]:
    """Token texts filtered for use as word-prediction context.

    Args:
        text: Source text.
        min_length: Shortest token kept.
        max_length: Longest token kept.
        stop_words: Lowercase words to drop (compared case-insensitively).

    Returns:
        Token texts in order.
    """
    result = [t.text for t in tokenize(text) if min_length <= len(t.text) <= max_length]
    if stop_words:
        result = [w for w in result if w.lower() not in stop_words]
    return result
