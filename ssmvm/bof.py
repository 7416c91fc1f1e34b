"""Binary object file (BOF) format: header layout and word-level I/O."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import BinaryIO

from .errors import VMError
from .machine_types import BYTES_PER_WORD, to_signed_word, to_unsigned_word

MAGIC = b"BO32"
MAGIC_BUFFER_SIZE = 4

_HEADER_STRUCT = struct.Struct("<4s5i")
HEADER_SIZE = _HEADER_STRUCT.size


@dataclass(frozen=True)
class BOFHeader:
    """The header at the start of every binary object file."""

    text_start_address: int
    text_length: int
    data_start_address: int
    data_length: int
    stack_bottom_addr: int
    magic: bytes = MAGIC

    def to_bytes(self) -> bytes:
        """Return the header's encoding as stored in a file."""
        return _HEADER_STRUCT.pack(
            bytes(self.magic[:MAGIC_BUFFER_SIZE]).ljust(MAGIC_BUFFER_SIZE, b"\0"),
            to_signed_word(self.text_start_address),
            to_signed_word(self.text_length),
            to_signed_word(self.data_start_address),
            to_signed_word(self.data_length),
            to_signed_word(self.stack_bottom_addr),
        )

    def has_correct_magic_number(self) -> bool:
        """Does this header carry the expected magic number?"""
        return bytes(self.magic[:MAGIC_BUFFER_SIZE]) == MAGIC


def header_from_bytes(data: bytes) -> BOFHeader:
    """Decode a header from exactly HEADER_SIZE bytes (magic is not checked)."""
    if len(data) != HEADER_SIZE:
        raise VMError(f"A header needs {HEADER_SIZE} bytes, got {len(data)}")
    magic, text_start, text_len, data_start, data_len, stack_bottom = (
        _HEADER_STRUCT.unpack(data)
    )
    return BOFHeader(
        text_start_address=text_start,
        text_length=text_len,
        data_start_address=data_start,
        data_length=data_len,
        stack_bottom_addr=stack_bottom,
        magic=magic,
    )


def read_header(stream: BinaryIO, name: str) -> BOFHeader:
    """Read and check the header of stream (named name in errors)."""
    data = stream.read(HEADER_SIZE)
    if len(data) != HEADER_SIZE:
        raise VMError(f"Cannot read header from {name}")
    header = header_from_bytes(data)
    if not header.has_correct_magic_number():
        raise VMError(f"Wrong magic number code in file '{name}'!")
    return header


def write_header(stream: BinaryIO, header: BOFHeader, name: str) -> None:
    """Write header to stream (named name in errors)."""
    try:
        stream.write(header.to_bytes())
    except (OSError, ValueError) as exc:
        raise VMError(f"Cannot write header to {name}") from exc


def read_word(stream: BinaryIO, name: str) -> int:
    """Read the next word from stream and return it as a signed value."""
    data = stream.read(BYTES_PER_WORD)
    if len(data) != BYTES_PER_WORD:
        raise VMError(
            f"Cannot read a word from {name} (got {len(data)} bytes), at EOF: 1"
        )
    return int.from_bytes(data, "little", signed=True)


def write_word(stream: BinaryIO, word: int, name: str) -> None:
    """Write word (signed or unsigned) to stream as one machine word."""
    try:
        stream.write(to_unsigned_word(word).to_bytes(BYTES_PER_WORD, "little"))
    except (OSError, ValueError) as exc:
        raise VMError(f"Cannot write {BYTES_PER_WORD} bytes to {name}") from exc


def file_bytes(path: str | os.PathLike[str]) -> int:
    """Return the size in bytes of the file at path."""
    try:
        return os.stat(path).st_size
    except OSError as exc:
        raise VMError(f"Cannot stat {os.fspath(path)} to get its size!") from exc