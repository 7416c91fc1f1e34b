"""Disassembler for binary object files."""

from __future__ import annotations

import sys
from typing import BinaryIO, TextIO

from .bof import BOFHeader, read_header, read_word
from .errors import VMError
from .instruction import BinInstr, read_instruction
from .machine_types import to_unsigned_word


class Disassembler:
    """Writes the assembly form of a binary object file to a text stream."""

    def __init__(self, out: TextIO) -> None:
        self.out = out
        self._word_count = 0

    def _line(self, text: str) -> None:
        self.out.write(text + "\n")
        self.out.flush()

    def program(self, stream: BinaryIO, name: str) -> None:
        """Disassemble the whole program read from stream."""
        header = read_header(stream, name)
        self.text_section(stream, header, name)
        self.data_section(stream, header, name)
        self.stack_section(header)
        self._line(".end")

    def text_section(self, stream: BinaryIO, header: BOFHeader, name: str) -> None:
        """Disassemble the text section described by header."""
        self._line(f".text\t{to_unsigned_word(header.text_start_address)}")
        self.instrs(stream, header.text_length, name)

    def instrs(self, stream: BinaryIO, length: int, name: str) -> None:
        """Disassemble length instructions read from stream."""
        for addr in range(length):
            self.instr(read_instruction(stream, name), addr)

    def instr(self, instr: BinInstr, addr: int) -> None:
        """Disassemble one instruction found at addr, labelled a<addr>."""
        self._line(f"a{addr}:\t{instr.assembly_form(addr)}")

    def data_section(self, stream: BinaryIO, header: BOFHeader, name: str) -> None:
        """Disassemble the data section described by header."""
        self._line(f".data\t{to_unsigned_word(header.data_start_address)}")
        self.static_decls(stream, header.data_length, name)

    def static_decls(self, stream: BinaryIO, words_to_read: int, name: str) -> None:
        """Disassemble words_to_read static data words from stream."""
        while words_to_read >= 1:
            self.static_decl(read_word(stream, name))
            words_to_read -= 1

    def _new_word_id(self) -> str:
        word_id = f"w{self._word_count:x}"
        self._word_count += 1
        return word_id

    def static_decl(self, word: int) -> None:
        """Disassemble one data word as a WORD declaration."""
        self._line(f"WORD {self._new_word_id()} = {word}")

    def stack_section(self, header: BOFHeader) -> None:
        """Disassemble the stack section described by header."""
        self._line(f".stack\t{to_unsigned_word(header.stack_bottom_addr)}")


def main(argv: list[str] | None = None) -> int:
    """Disassemble the one .bof file named in argv onto standard output."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        sys.stderr.write("Usage: disasm file.bof\n")
        return 1
    bofname = args[0]
    try:
        try:
            stream = open(bofname, "rb")
        except OSError as exc:
            raise VMError(f"Error opening file for reading: {bofname}") from exc
        with stream:
            Disassembler(sys.stdout).program(stream, bofname)
    except VMError as exc:
        sys.stdout.flush()
        sys.stderr.write(f"{exc}\n")
        return 1
    return 0