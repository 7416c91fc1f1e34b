"""Character literal decoding and escaping."""

from __future__ import annotations

import string

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "f": "\f",
    "t": "\t",
    "v": "\v",
    "a": "\a",
    "b": "\b",
    "\\": "\\",
    "'": "'",
    '"': '"',
}

_ESCAPE_NAMES = {
    ord("\n"): "\\n",
    ord("\r"): "\\r",
    ord("\f"): "\\f",
    ord("\t"): "\\t",
    ord("\v"): "\\v",
    0: "\\0",
    ord("\a"): "\\a",
    ord("\b"): "\\b",
    ord("\\"): "\\\\",
    ord("'"): "\\'",
    ord('"'): '\\"',
}

_NEEDS_ESCAPE = {ord("\\"), ord("\n"), ord("'"), ord('"')}


def is_octal_digit(c: str) -> bool:
    """Is c an octal digit (0-7)?"""
    return len(c) == 1 and "0" <= c <= "7"


def _leading_run(text: str, allowed: str) -> str:
    end = 0
    while end < len(text) and text[end] in allowed:
        end += 1
    return text[:end]


def char_value(lit: str) -> tuple[int, int]:
    """Decode the character literal at the start of lit.

    Return the character's value and the number of characters of lit
    that the literal occupies.
    """
    if not lit:
        raise ValueError("Empty character literal")
    if len(lit) < 2 or lit[0] != "\\":
        return ord(lit[0]), 1
    kind = lit[1]
    if kind in _SIMPLE_ESCAPES:
        return ord(_SIMPLE_ESCAPES[kind]), 2
    if kind == "0":
        # A lone "\0" (or one not followed by an octal digit in the
        # fourth position) is the null character.
        if len(lit) == 2 or len(lit) < 4 or not is_octal_digit(lit[3]):
            return 0, 2
        digits = _leading_run(lit[2:], "01234567")
        value = int(digits, 8) if digits else 0
        return value & 0xFF, 2 + len(digits)
    if kind == "x":
        digits = _leading_run(lit[2:], string.hexdigits)
        value = int(digits, 16) if digits else 0
        return value & 0xFF, 2 + len(digits)
    return ord(kind), 2


def unescape_char(c: int | str) -> str:
    """Return c as a printable string, using an escape sequence if needed."""
    code = ord(c) if isinstance(c, str) else c
    if not 0 <= code <= 0xFF:
        raise ValueError(f"Not a byte value: {code}")
    if 0x20 <= code <= 0x7E and code not in _NEEDS_ESCAPE:
        return chr(code)
    return _ESCAPE_NAMES.get(code, f"\\0{code:o}")


def unescape_string(s: str | bytes) -> str:
    """Return s using only printable characters and escape sequences.

    As with a null-terminated string, nothing after a null byte is kept.
    """
    data = s.encode("utf-8") if isinstance(s, str) else bytes(s)
    data = data.split(b"\0", 1)[0]
    return "".join(unescape_char(b) for b in data)