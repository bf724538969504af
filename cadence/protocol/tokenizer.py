"""
Command line tokenizer for the Cadence control protocol.

A request line is split into arguments with shell-like rules:

    add "My Song.mp3" /music/a\\ b.flac   # anything after a hash is ignored

- Whitespace (space, tab) separates tokens
- Double quotes group characters, preserving whitespace and '#'; a quoted
  token is emitted even when empty
- A backslash takes the next character literally, inside or outside quotes
- '#' outside quotes starts a comment running to the end of the input

The same rules are used to parse the playlist, status and meta-info payloads
on the client side, which is why `quote()` lives here too.

Malformed input never raises: an unterminated quote or a trailing backslash
simply ends the last token at the end of the input.
"""

from __future__ import annotations

from enum import Enum, auto


class CharClass(Enum):
    """Character classes the state machine distinguishes."""

    GENERAL = auto()
    WHITESPACE = auto()
    DQUOTE = auto()
    ESCAPE = auto()
    HASH = auto()


class LexState(Enum):
    """Tokenizer states."""

    START = auto()
    WHITESPACE = auto()
    TOKEN = auto()
    QUOTED = auto()
    ESCAPE = auto()
    COMMENT = auto()


_CHAR_CLASSES: dict[str, CharClass] = {
    " ": CharClass.WHITESPACE,
    "\t": CharClass.WHITESPACE,
    '"': CharClass.DQUOTE,
    "\\": CharClass.ESCAPE,
    "#": CharClass.HASH,
}


def classify(char: str) -> CharClass:
    """Return the character class of a single character."""
    return _CHAR_CLASSES.get(char, CharClass.GENERAL)


def tokenize(line: str) -> list[str]:
    """
    Split a command line into tokens.

    Args:
        line: The raw request line (without the terminating CR).

    Returns:
        The tokens in order. Empty if the line is blank or only a comment.
    """
    tokens: list[str] = []
    buff: list[str] = []
    state = LexState.START
    # State to return to once an escaped character has been consumed
    resume_state = LexState.START

    def flush() -> None:
        if buff:
            tokens.append("".join(buff))
            buff.clear()

    for char in line:
        if state is LexState.COMMENT:
            # Nothing terminates a comment but the end of input
            break

        char_class = classify(char)

        if state is LexState.ESCAPE:
            buff.append(char)
            state = resume_state
            continue

        if state is LexState.QUOTED:
            if char_class is CharClass.DQUOTE:
                tokens.append("".join(buff))
                buff.clear()
                state = LexState.START
            elif char_class is CharClass.ESCAPE:
                resume_state = state
                state = LexState.ESCAPE
            else:
                # Whitespace and '#' are literal inside quotes
                buff.append(char)
            continue

        # START, WHITESPACE or TOKEN: outside quotes
        if char_class is CharClass.WHITESPACE:
            flush()
            state = LexState.WHITESPACE
        elif char_class is CharClass.DQUOTE:
            state = LexState.QUOTED
        elif char_class is CharClass.ESCAPE:
            resume_state = state
            state = LexState.ESCAPE
        elif char_class is CharClass.HASH:
            flush()
            state = LexState.COMMENT
        else:
            buff.append(char)
            state = LexState.TOKEN

    flush()
    return tokens


def quote(value: str) -> str:
    """
    Quote a value so that `tokenize()` reads it back unchanged.

    >>> quote('say "hi"')
    '"say \\\\"hi\\\\""'
    """
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def join_tokens(tokens: list[str] | tuple[str, ...]) -> str:
    """Quote every token and join them with single spaces."""
    return " ".join(quote(token) for token in tokens)
