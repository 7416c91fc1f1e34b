# ssmvm

Tools for the Simplified Stack Machine (SSM), a small 32-bit word-addressed
stack machine with eight registers (`$gp`, `$sp`, `$fp`, `$r3`–`$r6`, `$ra`)
and 32768 words of memory. The package runs programs stored as binary object
files (`.bof`), disassembles them into assembly form and dumps their raw
words.

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Commands

### Running a program

```
ssm-vm program.bof
```

This loads `program.bof` and runs it until it executes an `EXIT` system call.
The offset given to `EXIT` becomes the command's exit status. Characters read
by `RCH` come from standard input (end of input reads as -1), and everything
the program prints with `PSTR`, `PINT` and `PCH` goes to standard output.

Options (at most one, given before the file name):

- `-p` prints the loaded instructions and the global data, then stops
  without running the program.
- `-t` traces execution: the machine state (PC, HI/LO when set, registers,
  global data and runtime stack) is printed before the first instruction,
  and each instruction is printed with the state after it. A program can
  also switch tracing on and off itself with the `STRA` and `NOTR` system
  calls.

The file name must have a `.bof` suffix. Load errors, division by zero and
memory accesses outside the machine's memory end the command with status 1
and a message on standard error.

### Disassembling

```
ssm-disasm program.bof
```

This writes an assembly listing with `.text`, `.data`, `.stack` and `.end`
sections to standard output. Each instruction gets a label `aN:` for its
word address, branch and jump instructions carry a comment with their
target word address, and each data word becomes a `WORD` declaration.

### Dumping words

```
ssm-bin-dump program.bof
```

This prints every word of the file in binary, unsigned, signed and
hexadecimal notation, marking where the header ends.

## The binary object file format

A `.bof` file begins with a header of six 32-bit little-endian fields: the
magic number `BO32`, the text start address, the text length in words, the
data start address, the data length in words and the stack bottom address.
The text section's instructions follow, one word each, and after them the
data section's words.

## Using the package from Python

```python
import sys

from ssmvm.machine import Machine, MachineExit

with open("program.bof", "rb") as stream:
    machine = Machine(sys.stdout, sys.stdin)
    try:
        machine.load_and_run(stream, "program.bof", False)
    except MachineExit as done:
        print("exit code", done.code)
```

Instructions can be built and inspected directly:

```python
from ssmvm.instruction import CompFunc, comp_instr, instruction_from_bytes

instr = comp_instr(1, 0, 3, 2, CompFunc.ADD)
print(instr.mnemonic())          # ADD
print(instr.assembly_form(0))    # ADD $sp, 0, $r3, 2
assert instruction_from_bytes(instr.to_bytes()) == instr
```

Other modules:

- `ssmvm.bof` — `BOFHeader`, `read_header`, `write_header`, `read_word`,
  `write_word` and `file_bytes` for reading and writing object files.
- `ssmvm.disasm` — the `Disassembler` class, which writes the same listing
  as `ssm-disasm` to any text stream.
- `ssmvm.bin_dump` — `dump` and `binrep`.
- `ssmvm.machine_types` — word conversions and the field range checks
  (`check_fits_in_offset`, `check_fits_in_immed` and so on).
- `ssmvm.char_utilities` — decoding character literals and escaping
  characters and strings.
- `ssmvm.regname` — register numbers and names.

Problems with input files or programs raise `ssmvm.errors.VMError`.

## What the package does not do

There is no assembler: the package cannot turn assembly text into `.bof`
files. Object files come from elsewhere, or can be written from Python with
`ssmvm.bof.write_header`, `ssmvm.instruction.write_instruction` and
`ssmvm.bof.write_word`.