import io

import pytest

from ssmvm.bof import BOFHeader
from ssmvm.errors import VMError
from ssmvm.instruction import (
    CompFunc,
    OpCode,
    OtherCompFunc,
    SyscallCode,
    comp_instr,
    immed_instr,
    jump_instr,
    other_comp_instr,
    syscall_instr,
)
from ssmvm.machine import MEMORY_SIZE_IN_WORDS, Machine, MachineExit
from ssmvm.machine_types import form_address, to_signed_word, to_unsigned_word
from ssmvm.regname import FP, GP, RA, SP

DATA_START = 16
STACK_BOTTOM = 64


def make_bof(instrs, data=(), text_start=0, data_start=DATA_START,
             stack_bottom=STACK_BOTTOM, magic=b"BO32"):
    header = BOFHeader(text_start, len(instrs), data_start, len(data),
                       stack_bottom, magic=magic)
    body = b"".join(i.to_bytes() for i in instrs)
    body += b"".join(to_unsigned_word(w).to_bytes(4, "little") for w in data)
    return io.BytesIO(header.to_bytes() + body)


def loaded(instrs=(), data=(), inp=""):
    out = io.StringIO()
    machine = Machine(out, io.StringIO(inp))
    machine.load(make_bof(list(instrs), data), "test.bof")
    return machine, out


def run_one(machine, instr):
    machine.execute_instr(machine.pc, instr)


def test_load_sets_registers():
    m, _ = loaded([comp_instr(0, 0, 0, 0, CompFunc.NOP)])
    assert m.pc == 0
    assert m.registers[GP] == DATA_START
    assert m.registers[SP] == STACK_BOTTOM
    assert m.registers[FP] == STACK_BOTTOM


def test_load_copies_data_and_instructions():
    instr = other_comp_instr(SP, 0, 9, OtherCompFunc.LIT)
    m, _ = loaded([instr], data=[5, -7])
    assert m.memory[0] == to_signed_word(instr.word)
    assert m.memory[DATA_START] == 5
    assert m.memory[DATA_START + 1] == -7


def test_load_rejects_text_overlapping_data():
    nop = comp_instr(0, 0, 0, 0, CompFunc.NOP)
    with pytest.raises(VMError, match="program length"):
        Machine(io.StringIO()).load(make_bof([nop] * 3, data_start=2), "x.bof")


def test_load_rejects_data_reaching_stack():
    with pytest.raises(VMError, match="stack bottom address"):
        Machine(io.StringIO()).load(
            make_bof([], data=[1, 2, 3, 4], stack_bottom=20), "x.bof")


def test_load_rejects_stack_beyond_memory():
    with pytest.raises(VMError, match="memory size"):
        Machine(io.StringIO()).load(
            make_bof([], stack_bottom=MEMORY_SIZE_IN_WORDS), "x.bof")


def test_load_rejects_bad_magic():
    with pytest.raises(VMError, match="Wrong magic number"):
        Machine(io.StringIO()).load(make_bof([], magic=b"XXXX"), "x.bof")


def test_run_prints_int_and_exits():
    m, out = loaded([
        other_comp_instr(SP, 0, 42, OtherCompFunc.LIT),
        syscall_instr(SP, 0, SyscallCode.PRINT_INT),
        syscall_instr(0, 0, SyscallCode.EXIT),
    ])
    with pytest.raises(MachineExit) as info:
        m.run(False)
    assert info.value.code == 0
    assert out.getvalue() == "42"
    assert m.memory[STACK_BOTTOM] == len("42")
    assert m.running is False


def test_exit_code_is_sign_extended_offset():
    m, _ = loaded([syscall_instr(0, -2, SyscallCode.EXIT)])
    with pytest.raises(MachineExit) as info:
        m.run(False)
    assert info.value.code == -2


def test_load_and_run():
    out = io.StringIO()
    m = Machine(out, io.StringIO())
    bof = make_bof([syscall_instr(0, 3, SyscallCode.EXIT)])
    with pytest.raises(MachineExit) as info:
        m.load_and_run(bof, "x.bof", False)
    assert info.value.code == 3


def test_lit_writes_arg():
    m, _ = loaded()
    run_one(m, other_comp_instr(GP, 2, -100, OtherCompFunc.LIT))
    assert m.memory[DATA_START + 2] == -100
    assert m.pc == 1


def test_add_agrees_with_sub_of_negation():
    m, _ = loaded()
    m.memory[STACK_BOTTOM] = 1234
    m.memory[DATA_START] = -99
    run_one(m, comp_instr(GP, 1, GP, 0, CompFunc.ADD))
    run_one(m, comp_instr(GP, 2, GP, 0, CompFunc.NEG))
    run_one(m, comp_instr(GP, 3, GP, 2, CompFunc.SUB))
    assert m.memory[DATA_START + 2] == 99
    assert m.memory[DATA_START + 1] == m.memory[DATA_START + 3]


def test_add_wraps_to_signed_word():
    m, _ = loaded()
    m.memory[STACK_BOTTOM] = 2**31 - 1
    m.memory[DATA_START] = 1
    run_one(m, comp_instr(GP, 1, GP, 0, CompFunc.ADD))
    assert m.memory[DATA_START + 1] == -(2**31)


def test_cpw_and_cpr_copy():
    m, _ = loaded()
    m.memory[DATA_START] = 77
    run_one(m, comp_instr(GP, 3, GP, 0, CompFunc.CPW))
    assert m.memory[DATA_START + 3] == 77
    run_one(m, comp_instr(5, 0, FP, 0, CompFunc.CPR))
    assert m.registers[5] == m.registers[FP]


def test_swr_then_lwr_round_trip():
    m, _ = loaded()
    m.registers[4] = -31
    run_one(m, comp_instr(GP, 1, 4, 0, CompFunc.SWR))
    run_one(m, comp_instr(6, 0, GP, 1, CompFunc.LWR))
    assert m.registers[6] == -31


def test_sca_stores_address():
    m, _ = loaded()
    run_one(m, comp_instr(GP, 0, FP, -3, CompFunc.SCA))
    assert m.memory[DATA_START] == m.registers[FP] - 3


def test_lwi_loads_indirectly():
    m, _ = loaded()
    m.memory[DATA_START] = DATA_START + 5
    m.memory[DATA_START + 5] = 99
    run_one(m, comp_instr(GP, 1, GP, 0, CompFunc.LWI))
    assert m.memory[DATA_START + 1] == 99


def test_bitwise_identities():
    m, _ = loaded()
    m.memory[STACK_BOTTOM] = 0x0F0F
    m.memory[DATA_START] = -0x1234
    run_one(m, comp_instr(GP, 1, GP, 0, CompFunc.AND))
    run_one(m, comp_instr(GP, 2, GP, 0, CompFunc.BOR))
    run_one(m, comp_instr(GP, 3, GP, 0, CompFunc.XOR))
    run_one(m, comp_instr(GP, 4, GP, 0, CompFunc.NOR))
    and_, or_, xor, nor = (m.memory[DATA_START + k] for k in range(1, 5))
    assert nor == ~or_
    assert xor == or_ - and_


def test_immediate_logic_round_trips():
    m, _ = loaded()
    m.memory[DATA_START] = -1
    run_one(m, immed_instr(OpCode.ANDI, GP, 0, 0xFFFF))
    assert m.memory[DATA_START] == 0xFFFF
    m.memory[DATA_START] = -5
    run_one(m, immed_instr(OpCode.BORI, GP, 0, 0))
    assert m.memory[DATA_START] == -5
    run_one(m, immed_instr(OpCode.XORI, GP, 0, 0x1234))
    run_one(m, immed_instr(OpCode.XORI, GP, 0, 0x1234))
    assert m.memory[DATA_START] == -5
    run_one(m, immed_instr(OpCode.NORI, GP, 0, 0))
    run_one(m, immed_instr(OpCode.NORI, GP, 0, 0))
    assert m.memory[DATA_START] == -5


def test_addi_round_trip():
    m, _ = loaded()
    m.memory[DATA_START] = 10
    run_one(m, immed_instr(OpCode.ADDI, GP, 0, -300))
    run_one(m, immed_instr(OpCode.ADDI, GP, 0, 300))
    assert m.memory[DATA_START] == 10


def test_ari_sri_round_trip():
    m, _ = loaded()
    before = m.registers[3]
    run_one(m, other_comp_instr(3, 0, 200, OtherCompFunc.ARI))
    run_one(m, other_comp_instr(3, 0, 200, OtherCompFunc.SRI))
    assert m.registers[3] == before


def test_mul_sets_hi_and_lo():
    m, _ = loaded()
    a, b = 123456789, -987654
    m.memory[STACK_BOTTOM] = a
    m.memory[DATA_START] = b
    run_one(m, other_comp_instr(GP, 0, 0, OtherCompFunc.MUL))
    assert (m.hi << 32) + to_unsigned_word(m.lo) == a * b
    run_one(m, other_comp_instr(GP, 1, 0, OtherCompFunc.CFHI))
    run_one(m, other_comp_instr(GP, 2, 0, OtherCompFunc.CFLO))
    assert m.memory[DATA_START + 1] == m.hi
    assert m.memory[DATA_START + 2] == m.lo


def test_div_truncates_toward_zero():
    m, _ = loaded()
    n, d = -7, 2
    m.memory[STACK_BOTTOM] = n
    m.memory[DATA_START] = d
    run_one(m, other_comp_instr(GP, 0, 0, OtherCompFunc.DIV))
    assert m.lo * d + m.hi == n
    assert abs(m.hi) < abs(d)
    assert m.hi <= 0


def test_div_by_zero_raises():
    m, _ = loaded()
    m.memory[STACK_BOTTOM] = 5
    with pytest.raises(VMError, match="divide by zero"):
        run_one(m, other_comp_instr(GP, 0, 0, OtherCompFunc.DIV))


def test_shift_round_trip():
    m, _ = loaded()
    m.memory[STACK_BOTTOM] = 3
    run_one(m, other_comp_instr(GP, 0, 4, OtherCompFunc.SLL))
    m.memory[STACK_BOTTOM] = m.memory[DATA_START]
    run_one(m, other_comp_instr(GP, 1, 4, OtherCompFunc.SRL))
    assert m.memory[DATA_START + 1] == 3


def test_jmp_and_csi():
    m, _ = loaded()
    m.memory[DATA_START] = 5
    run_one(m, other_comp_instr(GP, 0, 0, OtherCompFunc.JMP))
    assert m.pc == 5
    m.memory[DATA_START] = 9
    run_one(m, other_comp_instr(GP, 0, 0, OtherCompFunc.CSI))
    assert m.pc == 9
    assert m.registers[RA] == 5 + 1


def test_jrel():
    m, _ = loaded()
    m.pc = 10
    run_one(m, other_comp_instr(0, 0, -4, OtherCompFunc.JREL))
    assert m.pc == 10 - 4


@pytest.mark.parametrize("op, value, taken", [
    (OpCode.BGEZ, 0, True), (OpCode.BGEZ, -1, False),
    (OpCode.BGTZ, 0, False), (OpCode.BGTZ, 1, True),
    (OpCode.BLEZ, 0, True), (OpCode.BLEZ, 1, False),
    (OpCode.BLTZ, -1, True), (OpCode.BLTZ, 0, False),
])
def test_branches_on_sign(op, value, taken):
    m, _ = loaded()
    m.pc = 5
    m.memory[DATA_START] = value
    run_one(m, immed_instr(op, GP, 0, 3))
    assert m.pc == (5 + 3 if taken else 5 + 1)


@pytest.mark.parametrize("op, equal, taken", [
    (OpCode.BEQ, True, True), (OpCode.BEQ, False, False),
    (OpCode.BNE, True, False), (OpCode.BNE, False, True),
])
def test_branches_on_equality(op, equal, taken):
    m, _ = loaded()
    m.pc = 5
    m.memory[STACK_BOTTOM] = 8
    m.memory[DATA_START] = 8 if equal else 9
    run_one(m, immed_instr(op, GP, 0, -2))
    assert m.pc == (5 - 2 if taken else 5 + 1)


def test_jmpa_call_rtn():
    m, _ = loaded()
    m.pc = 4
    run_one(m, jump_instr(OpCode.JMPA, 10))
    assert m.pc == form_address(4, 10)
    run_one(m, jump_instr(OpCode.CALL, 20))
    assert m.registers[RA] == 10 + 1
    assert m.pc == form_address(10, 20)
    run_one(m, jump_instr(OpCode.RTN, 0))
    assert m.pc == 10 + 1


def test_print_char():
    m, out = loaded()
    m.memory[DATA_START] = ord("Q")
    run_one(m, syscall_instr(GP, 0, SyscallCode.PRINT_CHAR))
    assert out.getvalue() == "Q"
    assert m.memory[STACK_BOTTOM] == ord("Q")


def test_print_str():
    m, out = loaded()
    m.memory[DATA_START] = int.from_bytes(b"hi\0\0", "little")
    run_one(m, syscall_instr(GP, 0, SyscallCode.PRINT_STR))
    assert out.getvalue() == "hi"
    assert m.memory[STACK_BOTTOM] == len("hi")


def test_read_char_and_eof():
    m, _ = loaded(inp="Z")
    run_one(m, syscall_instr(GP, 0, SyscallCode.READ_CHAR))
    assert m.memory[DATA_START] == ord("Z")
    run_one(m, syscall_instr(GP, 1, SyscallCode.READ_CHAR))
    assert m.memory[DATA_START + 1] == -1


def test_tracing_syscalls_toggle():
    m, _ = loaded()
    run_one(m, syscall_instr(0, 0, SyscallCode.STOP_TRACING))
    assert m.tracing is False
    run_one(m, syscall_instr(0, 0, SyscallCode.START_TRACING))
    assert m.tracing is True


def test_invalid_comp_function_raises():
    m, _ = loaded()
    with pytest.raises(VMError, match="Invalid function code"):
        run_one(m, comp_instr(0, 0, 0, 0, 14))


def test_okay_detects_broken_invariant():
    m, _ = loaded()
    m.registers[GP] = m.registers[SP]
    with pytest.raises(VMError, match="invariant"):
        m.okay()


def test_trace_execute_requires_pc():
    m, out = loaded()
    with pytest.raises(VMError):
        m.trace_execute_instr(out, m.pc + 1, comp_instr(0, 0, 0, 0, CompFunc.NOP))


def test_print_state_layout():
    m, _ = loaded(data=[7])
    buf = io.StringIO()
    m.print_state(buf)
    text = buf.getvalue()
    lines = text.splitlines()
    assert lines[0] == "      PC: 0"
    assert f"GPR[$gp]: {DATA_START}" in text
    assert sum(line.startswith("GPR[") for line in lines) == 2
    assert f"{DATA_START:8d}: 7" in text
    assert "..." in text


def test_print_state_shows_hi_lo_after_mul():
    m, _ = loaded()
    m.memory[STACK_BOTTOM] = 6
    m.memory[DATA_START] = 7
    run_one(m, other_comp_instr(GP, 0, 0, OtherCompFunc.MUL))
    buf = io.StringIO()
    m.print_state(buf)
    first = buf.getvalue().splitlines()[0]
    assert "HI" in first and f"LO: {m.lo}" in first


def test_long_memory_rows_wrap():
    m, _ = loaded(data=list(range(1, 11)))
    buf = io.StringIO()
    m.print_state(buf)
    lines = buf.getvalue().splitlines()
    first = next(i for i, l in enumerate(lines) if f"{DATA_START:8d}:" in l)
    last = next(i for i, l in enumerate(lines) if f"{DATA_START + 9:8d}:" in l)
    assert last > first


def test_print_loaded_program():
    instr = other_comp_instr(SP, 0, 42, OtherCompFunc.LIT)
    m, _ = loaded([instr])
    buf = io.StringIO()
    m.print_loaded_program(buf)
    text = buf.getvalue()
    assert text.startswith("Address Instruction\n")
    assert f"{0:6d}: {instr.assembly_form(0)}" in text


def test_run_with_tracing_prints_instructions():
    exit_instr = syscall_instr(0, 0, SyscallCode.EXIT)
    m, out = loaded([exit_instr])
    with pytest.raises(MachineExit):
        m.run(True)
    text = out.getvalue()
    assert text.startswith("      PC: 0")
    assert f"\n==> {0:6d}: {exit_instr.assembly_form(0)}" in text


def test_program_can_start_tracing():
    nop = comp_instr(0, 0, 0, 0, CompFunc.NOP)
    m, out = loaded([
        syscall_instr(0, 0, SyscallCode.START_TRACING),
        nop,
        syscall_instr(0, 0, SyscallCode.EXIT),
    ])
    with pytest.raises(MachineExit):
        m.run(False)
    assert f"==> {1:6d}: {nop.assembly_form(1)}" in out.getvalue()