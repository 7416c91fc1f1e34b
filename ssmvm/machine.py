"""The stack machine itself: memory, registers, loading and execution."""

from __future__ import annotations

import sys
from typing import BinaryIO, TextIO

from .bof import read_header, read_word
from .errors import VMError
from .instruction import (
    BinInstr,
    CompFunc,
    InstrType,
    OpCode,
    OtherCompFunc,
    SyscallCode,
    print_table_heading,
    read_instruction,
)
from .machine_types import (
    BYTES_PER_WORD,
    form_address,
    form_offset,
    sgn_ext,
    to_signed_word,
    to_unsigned_word,
    zero_ext,
)
from .regname import FP, GP, NUM_REGISTERS, RA, SP, regname_get

MEMORY_SIZE_IN_WORDS = 32768

_MAX_PRINT_WIDTH = 59
_DOTS = "        ...     "
_REGS_PER_LINE = 5


class MachineExit(Exception):
    """Raised when a running program makes the exit system call."""

    def __init__(self, code: int) -> None:
        self.code = code
        super().__init__(f"Program exited with code {code}")


def _trunc_div(dividend: int, divisor: int) -> int:
    """Integer division that truncates toward zero."""
    quotient = abs(dividend) // abs(divisor)
    return quotient if (dividend < 0) == (divisor < 0) else -quotient


class Machine:
    """A simplified stack machine that runs binary object files."""

    def __init__(self, out: TextIO | None = None, inp: TextIO | None = None) -> None:
        self.out = sys.stdout if out is None else out
        self.inp = sys.stdin if inp is None else inp
        self._initialize()

    def _initialize(self) -> None:
        self.tracing = True
        self.running = True
        self.instruction_words = 0
        self.global_data_words = 0
        self.registers = [0] * NUM_REGISTERS
        self.hi = 0
        self.lo = 0
        self.pc = 0
        self.initial_stack_bottom = 0
        self.memory = [0] * MEMORY_SIZE_IN_WORDS

    # Memory and register access.

    def _check(self, addr: int) -> int:
        if not 0 <= addr < MEMORY_SIZE_IN_WORDS:
            raise VMError(f"Memory address out of range: {addr}")
        return addr

    def _read(self, addr: int) -> int:
        return self.memory[self._check(addr)]

    def _uread(self, addr: int) -> int:
        return to_unsigned_word(self._read(addr))

    def _write(self, addr: int, value: int) -> None:
        self.memory[self._check(addr)] = to_signed_word(value)

    def _set_reg(self, n: int, value: int) -> None:
        self.registers[n] = to_signed_word(value)

    def _fetch(self, addr: int) -> BinInstr:
        return BinInstr(to_unsigned_word(self._read(addr)))

    def _string_at(self, start: int) -> str:
        data = bytearray()
        for addr in range(self._check(start), MEMORY_SIZE_IN_WORDS):
            for byte in to_unsigned_word(self.memory[addr]).to_bytes(
                BYTES_PER_WORD, "little"
            ):
                if byte == 0:
                    return data.decode("latin-1")
                data.append(byte)
        raise VMError(f"Unterminated string starting at address {start}")

    # Loading.

    def load(self, stream: BinaryIO, name: str) -> None:
        """Load the binary object file read from stream and get ready to run it."""
        self._initialize()
        header = read_header(stream, name)
        u = to_unsigned_word
        if header.text_length >= header.data_start_address:
            raise VMError(
                f"Text, i.e., program length ({u(header.text_length)}) "
                "is not less than the start address of the global data "
                f"({u(header.data_start_address)})!"
            )
        if header.data_start_address + header.data_length >= header.stack_bottom_addr:
            raise VMError(
                f"Global data start address ({u(header.data_start_address)}) + "
                f"global data length ({u(header.data_length)}) "
                "is not less than the stack bottom address "
                f"({u(header.stack_bottom_addr)})!"
            )
        if header.stack_bottom_addr >= MEMORY_SIZE_IN_WORDS:
            raise VMError(
                f"stack_bottom_addr ({u(header.stack_bottom_addr)}) "
                f"is not less than the memory size ({MEMORY_SIZE_IN_WORDS})!"
            )

        self.instruction_words = max(header.text_length, 0)
        for wa in range(self.instruction_words):
            self._write(wa, read_instruction(stream, name).word)

        self.global_data_words = max(header.data_length, 0)
        for wo in range(self.global_data_words):
            self._write(header.data_start_address + wo, read_word(stream, name))

        self.pc = u(header.text_start_address)
        self.registers[GP] = header.data_start_address
        self.registers[SP] = header.stack_bottom_addr
        self.registers[FP] = header.stack_bottom_addr
        self.initial_stack_bottom = header.stack_bottom_addr

    # Printing.

    @staticmethod
    def _newline(out: TextIO) -> None:
        out.write("\n")
        out.flush()

    @staticmethod
    def _print_instruction(out: TextIO, addr: int, instr: BinInstr) -> None:
        out.write(f"{addr:6d}: {instr.assembly_form(addr)}\n")

    def _print_loc(self, out: TextIO, addr: int) -> int:
        text = f"{addr:8d}: {self._read(addr)}\t"
        out.write(text)
        return len(text)

    def _print_memory_words(self, out: TextIO, start: int, end: int) -> bool:
        """Print words start..end, eliding runs of zeros.

        Return True if the last thing printed was a newline.
        """
        printed_trailing_newline = False
        previously_zero = False
        printed_dots = False
        line_chars = 0
        for addr in range(start, end + 1):
            if line_chars > _MAX_PRINT_WIDTH:
                self._newline(out)
                printed_trailing_newline = True
                line_chars = 0
            if self._read(addr) != 0:
                line_chars += self._print_loc(out, addr)
                previously_zero = False
                printed_dots = False
            elif not previously_zero:
                line_chars += self._print_loc(out, addr)
                previously_zero = True
                printed_dots = False
            elif not printed_dots:
                out.write(_DOTS)
                line_chars += len(_DOTS)
                printed_dots = True
            printed_trailing_newline = False
        return printed_trailing_newline

    def _print_global_data(self, out: TextIO) -> None:
        if not self._print_memory_words(
            out, self.registers[GP], self.registers[SP] - 1
        ):
            self._newline(out)

    def _print_runtime_stack(self, out: TextIO) -> None:
        if not self._print_memory_words(
            out, self.registers[SP], self.initial_stack_bottom
        ):
            self._newline(out)

    def _print_registers(self, out: TextIO) -> None:
        out.write(f"{'PC':>8}: {self.pc}")
        if self.hi != 0 or self.lo != 0:
            out.write(f"\t{'HI':>8}: {self.hi}\t{'LO':>8}: {self.lo}")
        self._newline(out)
        for start in range(0, NUM_REGISTERS, _REGS_PER_LINE):
            stop = min(start + _REGS_PER_LINE, NUM_REGISTERS)
            cells = [
                f"GPR[{regname_get(n):<3}]: {self.registers[n]:<5d}"
                for n in range(start, stop)
            ]
            out.write("\t".join(cells))
            self._newline(out)

    def print_loaded_program(self, out: TextIO) -> None:
        """Print a heading, the loaded instructions and the global data on out."""
        print_table_heading(out)
        for addr in range(self.instruction_words):
            self._print_instruction(out, addr, self._fetch(addr))
        self._print_global_data(out)

    def print_state(self, out: TextIO) -> None:
        """Print the registers, global data and runtime stack on out."""
        self._print_registers(out)
        self._print_global_data(out)
        self._print_runtime_stack(out)

    # Running.

    def run(self, trace_execution: bool = False) -> None:
        """Run the loaded program until it exits.

        The exit system call raises MachineExit carrying the exit code.
        """
        self.tracing = trace_execution
        if self.tracing:
            self.print_state(self.out)
        while self.running:
            self.okay()
            self.trace_execute_instr(self.out, self.pc, self._fetch(self.pc))

    def load_and_run(
        self, stream: BinaryIO, name: str, trace_execution: bool = False
    ) -> None:
        """Load the binary object file read from stream and run it."""
        self.load(stream, name)
        self.run(trace_execution)

    def trace_execute_instr(self, out: TextIO, addr: int, instr: BinInstr) -> None:
        """Execute instr, printing it and the resulting state on out if tracing."""
        if addr != self.pc:
            raise VMError(f"Instruction address {addr} is not the PC ({self.pc})")
        if self.tracing:
            out.write("\n==> ")
            self._print_instruction(out, self.pc, instr)
        self.execute_instr(addr, instr)
        if self.tracing:
            self.print_state(out)

    def execute_instr(self, addr: int, instr: BinInstr) -> None:
        """Execute instr, found at word address addr, in the current state."""
        self.pc = to_unsigned_word(self.pc + 1)
        kind = instr.instr_type()
        if kind is InstrType.COMP:
            self._exec_comp(instr)
        elif kind is InstrType.OTHER_COMP:
            self._exec_other_comp(instr)
        elif kind is InstrType.SYSCALL:
            self._exec_syscall(instr)
        elif kind is InstrType.IMMED:
            self._exec_immed(instr)
        elif kind is InstrType.JUMP:
            self._exec_jump(instr)
        else:
            raise VMError(f"Invalid instruction type ({kind.value}) in machine_execute!")

    def _branch(self, instr: BinInstr) -> None:
        self.pc = to_unsigned_word(self.pc - 1 + form_offset(instr.immed))

    def _exec_comp(self, instr: BinInstr) -> None:
        gpr = self.registers
        target = gpr[instr.rt] + form_offset(instr.ot)
        source = gpr[instr.rs] + form_offset(instr.os)
        top = gpr[SP]
        match instr.func:
            case CompFunc.NOP:
                pass
            case CompFunc.ADD:
                self._write(target, self._read(top) + self._read(source))
            case CompFunc.SUB:
                self._write(target, self._read(top) - self._read(source))
            case CompFunc.CPW:
                self._write(target, self._read(source))
            case CompFunc.CPR:
                self._set_reg(instr.rt, gpr[instr.rs])
            case CompFunc.AND:
                self._write(target, self._uread(top) & self._uread(source))
            case CompFunc.BOR:
                self._write(target, self._uread(top) | self._uread(source))
            case CompFunc.NOR:
                self._write(target, ~(self._uread(top) | self._uread(source)))
            case CompFunc.XOR:
                self._write(target, self._uread(top) ^ self._uread(source))
            case CompFunc.LWR:
                self._set_reg(instr.rt, self._read(source))
            case CompFunc.SWR:
                self._write(target, gpr[instr.rs])
            case CompFunc.SCA:
                self._write(target, source)
            case CompFunc.LWI:
                self._write(target, self._read(self._read(source)))
            case CompFunc.NEG:
                self._write(target, -self._read(source))
            case func:
                raise VMError(
                    f"Invalid function code ({func}) in machine_execute's "
                    "COMP_O computational instruction case!"
                )

    def _exec_other_comp(self, instr: BinInstr) -> None:
        gpr = self.registers
        reg = instr.reg
        loc = gpr[reg] + form_offset(instr.offset)
        top = gpr[SP]
        match instr.func:
            case OtherCompFunc.LIT:
                self._write(gpr[reg] + sgn_ext(instr.offset), sgn_ext(instr.arg))
            case OtherCompFunc.ARI:
                self._set_reg(reg, gpr[reg] + sgn_ext(instr.arg))
            case OtherCompFunc.SRI:
                self._set_reg(reg, gpr[reg] - sgn_ext(instr.arg))
            case OtherCompFunc.MUL:
                product = self._read(top) * self._read(loc)
                self.hi = to_signed_word(product >> 32)
                self.lo = to_signed_word(product)
            case OtherCompFunc.DIV:
                divisor = self._read(loc)
                if divisor == 0:
                    raise VMError("Error: Attempt to divide by zero!")
                dividend = self._read(top)
                quotient = _trunc_div(dividend, divisor)
                self.hi = to_signed_word(dividend - quotient * divisor)
                self.lo = to_signed_word(quotient)
            case OtherCompFunc.CFHI:
                self._write(loc, self.hi)
            case OtherCompFunc.CFLO:
                self._write(loc, self.lo)
            case OtherCompFunc.SLL:
                self._write(loc, self._uread(top) << (instr.arg & 0xFFF))
            case OtherCompFunc.SRL:
                self._write(loc, self._uread(top) >> (instr.arg & 0xFFF))
            case OtherCompFunc.JMP:
                self.pc = self._uread(loc)
            case OtherCompFunc.CSI:
                self._set_reg(RA, self.pc)
                self.pc = to_unsigned_word(self._read(loc))
            case OtherCompFunc.JREL:
                self.pc = to_unsigned_word(self.pc - 1 + form_offset(instr.arg))
            case func:
                raise VMError(
                    f"Invalid function code ({func}) in machine_execute's "
                    "OTHC_O computational instruction case!"
                )

    def _exec_syscall(self, instr: BinInstr) -> None:
        gpr = self.registers
        loc = gpr[instr.reg] + form_offset(instr.offset)
        top = gpr[SP]
        match instr.code:
            case SyscallCode.EXIT:
                self.running = False
                self.out.flush()
                raise MachineExit(sgn_ext(instr.offset))
            case SyscallCode.PRINT_STR:
                text = self._string_at(loc)
                self.out.write(text)
                self._write(top, len(text))
            case SyscallCode.PRINT_INT:
                text = str(self._read(loc))
                self.out.write(text)
                self._write(top, len(text))
            case SyscallCode.PRINT_CHAR:
                char = self._read(loc) & 0xFF
                self.out.write(chr(char))
                self._write(top, char)
            case SyscallCode.READ_CHAR:
                self.out.flush()
                char = self.inp.read(1)
                self._write(loc, ord(char) if char else -1)
            case SyscallCode.START_TRACING:
                self.tracing = True
            case SyscallCode.STOP_TRACING:
                self.tracing = False
            case code:
                raise VMError(
                    f"Invalid system call type ({code}) in machine_execute's "
                    "syscall instruction case!"
                )

    def _exec_immed(self, instr: BinInstr) -> None:
        gpr = self.registers
        loc = gpr[instr.reg] + form_offset(instr.offset)
        top = gpr[SP]
        match instr.op:
            case OpCode.ADDI:
                self._write(loc, self._read(loc) + sgn_ext(instr.immed))
            case OpCode.ANDI:
                self._write(loc, self._uread(loc) & zero_ext(instr.uimmed))
            case OpCode.BORI:
                self._write(loc, self._uread(loc) | zero_ext(instr.uimmed))
            case OpCode.NORI:
                self._write(loc, ~(self._uread(loc) | zero_ext(instr.uimmed)))
            case OpCode.XORI:
                self._write(loc, self._uread(loc) ^ zero_ext(instr.uimmed))
            case OpCode.BEQ:
                if self._read(top) == self._read(loc):
                    self._branch(instr)
            case OpCode.BGEZ:
                if self._read(loc) >= 0:
                    self._branch(instr)
            case OpCode.BGTZ:
                if self._read(loc) > 0:
                    self._branch(instr)
            case OpCode.BLEZ:
                if self._read(loc) <= 0:
                    self._branch(instr)
            case OpCode.BLTZ:
                if self._read(loc) < 0:
                    self._branch(instr)
            case OpCode.BNE:
                if self._read(top) != self._read(loc):
                    self._branch(instr)
            case op:
                raise VMError(
                    f"Invalid opcode ({op}) in machine_execute's "
                    "immediate instruction case!"
                )

    def _exec_jump(self, instr: BinInstr) -> None:
        match instr.op:
            case OpCode.JMPA:
                self.pc = form_address(self.pc - 1, instr.addr)
            case OpCode.CALL:
                self._set_reg(RA, self.pc)
                self.pc = form_address(self.pc - 1, instr.addr)
            case OpCode.RTN:
                self.pc = to_unsigned_word(self.registers[RA])
            case op:
                raise VMError(
                    f"Invalid opcode ({op}) in machine_execute's "
                    "jump instruction case!"
                )

    def okay(self) -> None:
        """Check the machine's invariant, raising VMError if it fails."""
        gp, sp, fp = self.registers[GP], self.registers[SP], self.registers[FP]
        checks = (
            (0 <= gp, "0 <= GPR[$gp]"),
            (gp < sp, "GPR[$gp] < GPR[$sp]"),
            (sp <= fp, "GPR[$sp] <= GPR[$fp]"),
            (fp < MEMORY_SIZE_IN_WORDS, "GPR[$fp] < memory size"),
        )
        for holds, description in checks:
            if not holds:
                raise VMError(f"Machine invariant violated: {description}")