"""
Tests for the command-line tokenizer.

These tests verify:
1. Whitespace splitting outside quotes
2. Single and double quotes group text literally
3. Empty quoted arguments are preserved
4. Backslash escapes outside quotes
5. Unterminated quotes and escapes are closed at end of input
6. NUL and U+FFFD are dropped
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from granulewatch.pipeline.tokenizer import split_command, tokenize


class TestTokenize:
    """Tests for tokenize()."""

    def test_mixed_quoting(self):
        """Quotes and escapes combine into the expected tokens."""
        assert tokenize("cmd -o \"a b\" 'c d' e\\ f") == ["cmd", "-o", "a b", "c d", "e f"]

    def test_whitespace_runs_collapse(self):
        assert tokenize("  a \t b\r\n  c  ") == ["a", "b", "c"]

    def test_empty_single_quotes_yield_empty_argument(self):
        assert tokenize("cmd ''") == ["cmd", ""]

    def test_empty_double_quotes_yield_empty_argument(self):
        assert tokenize('cmd "" x') == ["cmd", "", "x"]

    def test_closing_quote_ends_token(self):
        """An opening quote joins the current token; the closing quote ends it."""
        assert tokenize("a'b'c") == ["ab", "c"]

    def test_backslash_literal_inside_quotes(self):
        assert tokenize(r"'a\b' " + r'"c\d"') == [r"a\b", r"c\d"]

    def test_other_quote_literal_inside_quotes(self):
        assert tokenize("\"it's\" 'say \"hi\"'") == ["it's", 'say "hi"']

    def test_escaped_quote(self):
        assert tokenize(r"echo \"x") == ["echo", '"x']

    def test_escape_applies_to_one_character(self):
        assert tokenize(r"a\bc") == ["abc"]

    def test_unterminated_double_quote(self):
        assert tokenize('cmd "abc') == ["cmd", "abc"]

    def test_unterminated_single_quote_keeps_whitespace(self):
        assert tokenize("cmd 'a b ") == ["cmd", "a b "]

    def test_trailing_backslash(self):
        assert tokenize("cmd \\") == ["cmd"]

    def test_dropped_characters(self):
        assert tokenize("c\x00m\ufffdd a\x00") == ["cmd", "a"]

    @pytest.mark.parametrize("text", ["", "   ", "\t\n", "\x00\ufffd"])
    def test_no_tokens(self, text):
        assert tokenize(text) == []


class TestSplitCommand:
    """Tests for split_command()."""

    def test_executable_and_args(self):
        assert split_command("h5_to_tiff /in/a.h5 /out/a.tif") == (
            "h5_to_tiff",
            ["/in/a.h5", "/out/a.tif"],
        )

    def test_executable_only(self):
        assert split_command("true") == ("true", [])

    def test_empty_command(self):
        assert split_command("   ") == ("", [])

    def test_quoted_empty_executable(self):
        """An empty quoted first token is returned as an empty executable."""
        assert split_command("'' a") == ("", ["a"])
