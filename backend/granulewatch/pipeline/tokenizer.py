"""
Command-line tokenizer.

Splits a rendered command string into an executable and its arguments.
This is a deliberately small subset of shell quoting:

- Whitespace separates tokens outside quotes
- '...' and "..." group text literally; backslash has no meaning inside
  either kind of quote
- A closing quote always ends the token, so '' yields an empty argument
- Outside quotes, a backslash makes the next character literal
- An unterminated quote or escape is closed at end of input

NUL and U+FFFD (replacement character) are dropped wherever they occur.
"""

from enum import Enum
from typing import List, Tuple

WHITESPACE = frozenset(" \t\r\n")
DROPPED = frozenset("\x00\ufffd")


class LexState(str, Enum):
    """Tokenizer states."""

    DEFAULT = "default"
    IN_SINGLE_QUOTE = "in_single_quote"
    IN_DOUBLE_QUOTE = "in_double_quote"
    ESCAPED = "escaped"


def tokenize(text: str) -> List[str]:
    """
    Split command text into tokens.

    Examples:
        cmd -o "a b" 'c d' e\\ f  ->  ["cmd", "-o", "a b", "c d", "e f"]
        cmd ''                   ->  ["cmd", ""]
        cmd "abc                 ->  ["cmd", "abc"]
    """
    tokens: List[str] = []
    acc: List[str] = []
    state = LexState.DEFAULT

    def flush(keep_empty: bool = False) -> None:
        if acc or keep_empty:
            tokens.append("".join(acc))
        acc.clear()

    for ch in text:
        if ch in DROPPED:
            continue

        if state is LexState.DEFAULT:
            if ch in WHITESPACE:
                flush()
            elif ch == "'":
                state = LexState.IN_SINGLE_QUOTE
            elif ch == '"':
                state = LexState.IN_DOUBLE_QUOTE
            elif ch == "\\":
                state = LexState.ESCAPED
            else:
                acc.append(ch)

        elif state is LexState.IN_SINGLE_QUOTE:
            if ch == "'":
                flush(keep_empty=True)
                state = LexState.DEFAULT
            else:
                acc.append(ch)

        elif state is LexState.IN_DOUBLE_QUOTE:
            if ch == '"':
                flush(keep_empty=True)
                state = LexState.DEFAULT
            else:
                acc.append(ch)

        else:
            acc.append(ch)
            state = LexState.DEFAULT

    flush()
    return tokens


def split_command(text: str) -> Tuple[str, List[str]]:
    """
    Tokenize and split into (executable, arguments).

    Zero tokens yields ("", []); callers must treat an empty executable
    as an error.
    """
    tokens = tokenize(text)
    if not tokens:
        return "", []
    return tokens[0], tokens[1:]
