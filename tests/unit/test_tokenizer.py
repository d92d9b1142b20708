"""Tests for the whitespace tokenizer.

Validates:
- Offsets point back into the source text
- Punctuation stays attached unless isolated by whitespace
- Empty and whitespace-only input yield no tokens
- Re-tokenizing the single-space join reproduces the token texts
- words() filtering for prediction context
"""

from __future__ import annotations

import pytest

from talkpad._types import Token
from talkpad.composer.tokenizer import last_token, tokenize, words


class TestTokenize:
    def test_splits_on_whitespace_runs(self) -> None:
        tokens = tokenize("I  see\ta\ncat")
        assert [t.text for t in tokens] == ["I", "see", "a", "cat"]

    def test_offsets_index_the_source(self) -> None:
        text = "  hello   world "
        for token in tokenize(text):
            assert text[token.start : token.end] == token.text

    def test_first_token_offsets(self) -> None:
        assert tokenize("hi there")[0] == Token("hi", 0, 2)

    def test_punctuation_attached_to_word(self) -> None:
        assert [t.text for t in tokenize("hello, world!")] == ["hello,", "world!"]

    def test_isolated_punctuation_is_its_own_token(self) -> None:
        assert [t.text for t in tokenize("yes - no")] == ["yes", "-", "no"]

    @pytest.mark.parametrize("text", ["", " ", "\t\n  "])
    def test_blank_input_yields_nothing(self, text: str) -> None:
        assert tokenize(text) == ()

    @pytest.mark.parametrize(
        "text",
        ["I see a ca", "  leading and trailing  ", "a\t\tb\nc", "one", "", "x . y ,z"],
    )
    def test_join_and_retokenize_is_stable(self, text: str) -> None:
        first = [t.text for t in tokenize(text)]
        second = [t.text for t in tokenize(" ".join(first))]
        assert second == first


class TestLastToken:
    def test_returns_final_token(self) -> None:
        assert last_token("I see a ca") == Token("ca", 8, 10)

    def test_none_for_blank(self) -> None:
        assert last_token("   ") is None


class TestWords:
    def test_length_bounds(self) -> None:
        assert words("a bb ccc dddd", min_length=2, max_length=3) == ["bb", "ccc"]

    def test_stop_words_are_case_insensitive(self) -> None:
        assert words("The cat and THE dog", stop_words={"the", "and"}) == ["cat", "dog"]

    def test_defaults_keep_everything_reasonable(self) -> None:
        assert words("I see a cat") == ["I", "see", "a", "cat"]
