"""Dump a binary object file word by word in several notations."""

from __future__ import annotations

import os
import sys
from typing import TextIO

from .bof import HEADER_SIZE, file_bytes, read_word
from .errors import VMError
from .machine_types import BYTES_PER_WORD, WORD_BITS, to_signed_word, to_unsigned_word

_HEADING = "Addr\t= Binary\t\t\t\t= Unsigned\t= Signed\t= Hexadecimal\n"


def binrep(val: int) -> str:
    """Return the binary digits of val as one machine word."""
    return format(to_unsigned_word(val), f"0{WORD_BITS}b")


def dump(out: TextIO, path: str | os.PathLike[str]) -> None:
    """Write a table of every word of the file at path to out."""
    name = os.fspath(path)
    try:
        stream = open(path, "rb")
    except OSError as exc:
        raise VMError(f"Error opening file for reading: {name}") from exc
    with stream:
        size = file_bytes(path)
        out.write(_HEADING)
        header_words = HEADER_SIZE // BYTES_PER_WORD
        a = 0
        while a * BYTES_PER_WORD < size:
            if a == header_words:
                out.write("---- end of header ----\n")
            word = read_word(stream, name)
            unsigned = to_unsigned_word(word)
            out.write(
                f"{(a // BYTES_PER_WORD) & 0xFFFF}:"
                f"\t= {binrep(word)}"
                f"\t= {unsigned:10d}"
                f"\t= {to_signed_word(word):10d}"
                f"\t= 0x{unsigned:x}\n"
            )
            a += 1


def main(argv: list[str] | None = None) -> int:
    """Dump the .bof file named first in argv onto standard output."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("Usage: bin_dump file.bof\n")
        return 1
    path = args[0]
    dot = path.find(".")
    if dot < 0 or not path[dot:].startswith(".bof"):
        sys.stderr.write("Usage: bin_dump file.bof\n")
        return 1
    try:
        dump(sys.stdout, path)
    except VMError as exc:
        sys.stdout.flush()
        sys.stderr.write(f"{exc}\n")
        return 1
    return 0