"""Binary instruction formats of the stack machine and their assembly forms."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import BinaryIO, TextIO

from .errors import VMError
from .machine_types import BYTES_PER_WORD, form_address, to_unsigned_word
from .regname import regname_get


class OpCode(IntEnum):
    """Operation codes (the low 4 bits of every instruction)."""

    COMP = 0
    OTHC = 1
    ADDI = 2
    ANDI = 3
    BORI = 4
    NORI = 5
    XORI = 6
    BEQ = 7
    BGEZ = 8
    BGTZ = 9
    BLEZ = 10
    BLTZ = 11
    BNE = 12
    JMPA = 13
    CALL = 14
    RTN = 15


class CompFunc(IntEnum):
    """Function codes of computational instructions (opcode COMP)."""

    NOP = 0
    ADD = 1
    SUB = 2
    CPW = 3
    CPR = 4
    AND = 5
    BOR = 6
    NOR = 7
    XOR = 8
    LWR = 9
    SWR = 10
    SCA = 11
    LWI = 12
    NEG = 13


class OtherCompFunc(IntEnum):
    """Function codes of other computational instructions (opcode OTHC)."""

    LIT = 1
    ARI = 2
    SRI = 3
    MUL = 4
    DIV = 5
    CFHI = 6
    CFLO = 7
    SLL = 8
    SRL = 9
    JMP = 10
    CSI = 11
    JREL = 12
    SYS = 15


class InstrType(Enum):
    """The binary format an instruction is encoded in."""

    COMP = "comp"
    OTHER_COMP = "other_comp"
    IMMED = "immed"
    JUMP = "jump"
    SYSCALL = "syscall"
    ERROR = "error"


class SyscallCode(IntEnum):
    """System call codes carried by system call instructions."""

    EXIT = 1
    PRINT_STR = 2
    PRINT_INT = 3
    PRINT_CHAR = 4
    READ_CHAR = 5
    START_TRACING = 2046
    STOP_TRACING = 2047


_SYSCALL_MNEMONICS = {
    SyscallCode.EXIT: "EXIT",
    SyscallCode.PRINT_STR: "PSTR",
    SyscallCode.PRINT_INT: "PINT",
    SyscallCode.PRINT_CHAR: "PCH",
    SyscallCode.READ_CHAR: "RCH",
    SyscallCode.START_TRACING: "STRA",
    SyscallCode.STOP_TRACING: "NOTR",
}

_IMMED_OPS = frozenset(
    {
        OpCode.ADDI, OpCode.ANDI, OpCode.BORI, OpCode.NORI, OpCode.XORI,
        OpCode.BEQ, OpCode.BGEZ, OpCode.BGTZ, OpCode.BLEZ, OpCode.BLTZ,
        OpCode.BNE,
    }
)
_BRANCH_OPS = frozenset(
    {OpCode.BEQ, OpCode.BGEZ, OpCode.BGTZ, OpCode.BLEZ, OpCode.BLTZ, OpCode.BNE}
)
_JUMP_OPS = frozenset({OpCode.JMPA, OpCode.CALL, OpCode.RTN})

_WORD_LIMIT = 1 << (8 * BYTES_PER_WORD)


def _bits(value: int, width: int, shift: int) -> int:
    return (value & ((1 << width) - 1)) << shift


def syscall_mnemonic(code: int) -> str:
    """Return the mnemonic for the given system call code."""
    try:
        return _SYSCALL_MNEMONICS[SyscallCode(code)]
    except ValueError:
        raise VMError(
            f"Unknown code ({code}) in instruction_syscall_mnemonic"
        ) from None


def _target_comment(addr: int, target: int) -> str:
    actual = form_address(addr, to_unsigned_word(target))
    return f"# target is word address {actual}"


@dataclass(frozen=True)
class BinInstr:
    """A 32-bit binary instruction, viewable through each format's fields."""

    word: int

    def __post_init__(self) -> None:
        if not 0 <= self.word < _WORD_LIMIT:
            raise ValueError(f"Instruction word out of range: {self.word}")

    def _field(self, shift: int, width: int, signed: bool = False) -> int:
        value = (self.word >> shift) & ((1 << width) - 1)
        if signed and value & (1 << (width - 1)):
            value -= 1 << width
        return value

    # Fields shared by every format except jumps.
    @property
    def op(self) -> int:
        return self._field(0, 4)

    @property
    def reg(self) -> int:
        return self._field(4, 3)

    @property
    def offset(self) -> int:
        return self._field(7, 9, signed=True)

    # Computational format.
    @property
    def rt(self) -> int:
        return self._field(4, 3)

    @property
    def ot(self) -> int:
        return self._field(7, 9, signed=True)

    @property
    def rs(self) -> int:
        return self._field(16, 3)

    @property
    def os(self) -> int:
        return self._field(19, 9, signed=True)

    @property
    def func(self) -> int:
        return self._field(28, 4)

    # Other computational and system call formats.
    @property
    def arg(self) -> int:
        return self._field(16, 12, signed=True)

    @property
    def code(self) -> int:
        return self._field(16, 12)

    # Immediate formats.
    @property
    def immed(self) -> int:
        return self._field(16, 16, signed=True)

    @property
    def uimmed(self) -> int:
        return self._field(16, 16)

    # Jump format.
    @property
    def addr(self) -> int:
        return self._field(4, 28)

    def instr_type(self) -> InstrType:
        """Return the format this instruction is encoded in."""
        op = self.op
        if op == OpCode.COMP:
            return InstrType.COMP
        if op == OpCode.OTHC:
            if self.func == OtherCompFunc.SYS:
                return InstrType.SYSCALL
            return InstrType.OTHER_COMP
        if op in _IMMED_OPS:
            return InstrType.IMMED
        if op in _JUMP_OPS:
            return InstrType.JUMP
        return InstrType.ERROR

    def mnemonic(self) -> str:
        """Return the assembly language mnemonic for this instruction."""
        op = self.op
        if op == OpCode.COMP:
            try:
                return CompFunc(self.func).name
            except ValueError:
                raise VMError(
                    f"Unknown function code ({self.func}) in instruction_compFunc2name"
                ) from None
        if op == OpCode.OTHC:
            try:
                func = OtherCompFunc(self.func)
            except ValueError:
                raise VMError(
                    f"Unknown function code ({self.func}) in instruction_otherCompFunc2name"
                ) from None
            if func == OtherCompFunc.SYS:
                return syscall_mnemonic(self.code)
            return func.name
        try:
            return OpCode(op).name
        except ValueError:
            raise VMError(f"Unknown op code ({op}) in instruction_mnemonic!") from None

    def _comp_args(self) -> str:
        func = self.func
        rt, rs = regname_get(self.rt), regname_get(self.rs)
        if func == CompFunc.NOP:
            return ""
        if func == CompFunc.CPR:
            return f"{rt}, {rs}"
        if func == CompFunc.LWR:
            return f"{rt}, {rs}, {self.os}"
        if func == CompFunc.SWR:
            return f"{rt}, {self.ot}, {rs}"
        if func in CompFunc.__members__.values():
            return f"{rt}, {self.ot}, {rs}, {self.os}"
        raise VMError(f"Unknown computational instruction function ({func})!")

    def _other_comp_args(self, addr: int) -> str:
        func = self.func
        reg = regname_get(self.reg)
        if func == OtherCompFunc.LIT:
            return f"{reg}, {self.offset}, {self.arg}"
        if func in (OtherCompFunc.ARI, OtherCompFunc.SRI):
            return f"{reg}, {self.arg}"
        if func in (
            OtherCompFunc.MUL, OtherCompFunc.DIV, OtherCompFunc.CFHI,
            OtherCompFunc.CFLO, OtherCompFunc.JMP, OtherCompFunc.CSI,
        ):
            return f"{reg}, {self.offset}"
        if func in (OtherCompFunc.SLL, OtherCompFunc.SRL):
            return f"{reg}, {self.offset}, {self.arg & 0xFFFF}"
        if func == OtherCompFunc.JREL:
            return f"{self.arg}\t{_target_comment(addr, addr + self.arg)}"
        raise VMError(f"Unknown other computational instruction function ({func})!")

    def _immed_args(self, addr: int) -> str:
        op = self.op
        reg = regname_get(self.reg)
        if op == OpCode.ADDI:
            return f"{reg}, {self.offset}, {self.immed}"
        if op in (OpCode.ANDI, OpCode.BORI, OpCode.NORI, OpCode.XORI):
            return f"{reg}, {self.offset}, 0x{self.uimmed:x}"
        if op in _BRANCH_OPS:
            comment = _target_comment(addr, addr + self.immed)
            return f"{reg}, {self.offset}, {self.immed}\t{comment}"
        raise VMError(f"Unknown immediate type instruction opcode ({op})!")

    def _jump_args(self, addr: int) -> str:
        op = self.op
        if op in (OpCode.JMPA, OpCode.CALL):
            return f"{self.addr}\t{_target_comment(addr, self.addr)}"
        if op == OpCode.RTN:
            return ""
        raise VMError(f"Unknown jump type instruction opcode ({op})!")

    def _syscall_args(self) -> str:
        code = self.code
        if code == SyscallCode.EXIT:
            return f"{self.offset}"
        if code in (
            SyscallCode.PRINT_STR, SyscallCode.PRINT_INT,
            SyscallCode.PRINT_CHAR, SyscallCode.READ_CHAR,
        ):
            return f"{regname_get(self.reg)}, {self.offset}"
        return ""

    def assembly_form(self, addr: int) -> str:
        """Return the assembly form of this instruction, located at addr."""
        head = f"{self.mnemonic()} "
        kind = self.instr_type()
        if kind is InstrType.COMP:
            return head + self._comp_args()
        if kind is InstrType.OTHER_COMP:
            return head + self._other_comp_args(addr)
        if kind is InstrType.IMMED:
            return head + self._immed_args(addr)
        if kind is InstrType.JUMP:
            return head + self._jump_args(addr)
        if kind is InstrType.SYSCALL:
            return head + self._syscall_args()
        raise VMError(f"Unknown instruction type ({kind}) in instruction_assembly_form!")

    def to_bytes(self) -> bytes:
        """Return the instruction's encoding as stored in a file or memory."""
        return self.word.to_bytes(BYTES_PER_WORD, "little")


def comp_instr(rt: int, ot: int, rs: int, os: int, func: int) -> BinInstr:
    """Build a computational instruction."""
    return BinInstr(
        _bits(OpCode.COMP, 4, 0)
        | _bits(rt, 3, 4)
        | _bits(ot, 9, 7)
        | _bits(rs, 3, 16)
        | _bits(os, 9, 19)
        | _bits(func, 4, 28)
    )


def other_comp_instr(reg: int, offset: int, arg: int, func: int) -> BinInstr:
    """Build an other computational instruction."""
    return BinInstr(
        _bits(OpCode.OTHC, 4, 0)
        | _bits(reg, 3, 4)
        | _bits(offset, 9, 7)
        | _bits(arg, 12, 16)
        | _bits(func, 4, 28)
    )


def syscall_instr(reg: int, offset: int, code: int) -> BinInstr:
    """Build a system call instruction."""
    return BinInstr(
        _bits(OpCode.OTHC, 4, 0)
        | _bits(reg, 3, 4)
        | _bits(offset, 9, 7)
        | _bits(code, 12, 16)
        | _bits(OtherCompFunc.SYS, 4, 28)
    )


def immed_instr(op: int, reg: int, offset: int, immed: int) -> BinInstr:
    """Build an immediate-format instruction (signed or unsigned immediate)."""
    return BinInstr(
        _bits(op, 4, 0) | _bits(reg, 3, 4) | _bits(offset, 9, 7) | _bits(immed, 16, 16)
    )


def jump_instr(op: int, addr: int) -> BinInstr:
    """Build a jump-format instruction."""
    return BinInstr(_bits(op, 4, 0) | _bits(addr, 28, 4))


def instruction_from_bytes(data: bytes) -> BinInstr:
    """Decode one instruction from exactly one word of bytes."""
    if len(data) != BYTES_PER_WORD:
        raise VMError(
            f"An instruction needs {BYTES_PER_WORD} bytes, got {len(data)}"
        )
    return BinInstr(int.from_bytes(data, "little"))


def read_instruction(stream: BinaryIO, name: str) -> BinInstr:
    """Read one binary instruction from stream (named name in errors)."""
    data = stream.read(BYTES_PER_WORD)
    if len(data) != BYTES_PER_WORD:
        raise VMError(f"Cannot read instruction from {name} (read 0 instrs)")
    return instruction_from_bytes(data)


def write_instruction(stream: BinaryIO, instr: BinInstr, name: str) -> None:
    """Write instr to stream in binary (named name in errors)."""
    try:
        stream.write(instr.to_bytes())
    except OSError as exc:
        raise VMError(f"Cannot write binary instr to {name}") from exc


def print_table_heading(out: TextIO) -> None:
    """Print the heading of the instruction table on out."""
    out.write("Address Instruction\n")


def print_instruction(out: TextIO, addr: int, instr: BinInstr) -> None:
    """Print addr and the assembly form of instr on one line of out."""
    out.write(f"{addr:8d}: {instr.assembly_form(addr)}\n")