"""TextAssembler — the composition buffer behind word-by-word input.

Words arrive from prediction chips, autocomplete corrections and phrase
shortcuts. The assembler owns the text and keeps exactly one space between
tokens no matter which path produced them.

Rules:
- add_word: no leading space when the buffer is empty or ends in whitespace,
  otherwise exactly one space.
- set_current_word: replaces the word in progress (the last token when the
  buffer does not end in whitespace); otherwise behaves as add_word.
- append_text: phrase plus exactly one trailing space.
- Blank input is ignored; nothing here raises.
- The token cache always equals tokenize(text); every mutation drops it.
"""

from __future__ import annotations

from talkpad._types import CaseMode, Token
from talkpad.composer.tokenizer import tokenize


class TextAssembler:
    """Composition buffer with token-aware spacing.

    Args:
        text: Initial buffer content.
        case_mode: Case policy for added words. Defaults to the configured
            ``TALKPAD_COMPOSER_CASE_MODE``.
    """

    def __init__(self, text: str = "", case_mode: CaseMode | None = None) -> None:
        if case_mode is None:
            from talkpad.config.settings import get_settings

            case_mode = get_settings().composer.case_mode
        self._case_mode = case_mode
        self._text = text
        self._tokens: tuple[Token, ...] | None = None

    @property
    def text(self) -> str:
        return self._text

    @property
    def case_mode(self) -> CaseMode:
        return self._case_mode

    @property
    def tokens(self) -> tuple[Token, ...]:
        """Tokenization of the current buffer (cached until the next mutation)."""
        if self._tokens is None:
            self._tokens = tokenize(self._text)
        return self._tokens

    @property
    def is_empty(self) -> bool:
        return not self._text

    def set_text(self, text: str) -> None:
        """Replace the whole buffer (free typing)."""
        self._update(text)

    def add_word(self, word: str) -> None:
        """Append ``word`` as a new token."""
        word = word.strip()
        if not word:
            return
        word = self._apply_case(word, self._text)
        self._update(self._text + self._separator() + word)

    def set_current_word(self, word: str) -> None:
        """Replace the word in progress with ``word``.

        "I see a ca" + set_current_word("cat") -> "I see a cat".
        """
        word = word.strip()
        if not word:
            return
        if not self._text or self._text[-1].isspace():
            self.add_word(word)
            return

        current = self.tokens[-1]
        prefix = self._text[: current.start].rstrip()
        word = self._apply_case(word, prefix)
        self._update(f"{prefix} {word}" if prefix else word)

    def append_text(self, text: str) -> None:
        """Insert a multi-word phrase followed by exactly one space."""
        phrase = text.strip()
        if not phrase:
            return
        self._update(self._text + self._separator() + phrase + " ")

    def reset(self) -> None:
        """Clear the buffer. No history is kept."""
        self._update("")

    def _separator(self) -> str:
        if not self._text or self._text[-1].isspace():
            return ""
        return " "

    def _apply_case(self, word: str, preceding: str) -> str:
        if self._case_mode is CaseMode.VERBATIM:
            return word
        stripped = preceding.rstrip()
        if not stripped or stripped.endswith("."):
            return word
        return word.lower()

    def _update(self, text: str) -> None:
        self._text = text
        self._tokens = None

    def __repr__(self) -> str:
        return f"TextAssembler(text={self._text!r}, case_mode={self._case_mode.value})"
