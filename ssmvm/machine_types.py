"""Word-level types, field limits and conversions for the stack machine."""

from __future__ import annotations

from .errors import VMError

BYTES_PER_WORD = 4
WORD_BITS = 8 * BYTES_PER_WORD
_WORD_MASK = (1 << WORD_BITS) - 1
_SIGN_BIT = 1 << (WORD_BITS - 1)

NINEBITSMAXSIGNED = 0xFF
NINEBITSMINSIGNED = -512
TWELVEBITSMAXSIGNED = 0x7FF
TWELVEBITSMINSIGNED = -0x800
TWELVEBITSMAXUNSIGNED = 0xFFF
SIXTEENBITSMAXSIGNED = 0o777
SIXTEENBITSMINSIGNED = -0o1000
SIXTEENBITSMAXUNSIGNED = 0xFFFF
TWENTYEIGHTBITSMAXUNSIGNED = 0xFFFFFFF


def to_signed_word(value: int) -> int:
    """Interpret the low 32 bits of value as a signed machine word."""
    value &= _WORD_MASK
    return value - (1 << WORD_BITS) if value & _SIGN_BIT else value


def to_unsigned_word(value: int) -> int:
    """Interpret the low 32 bits of value as an unsigned machine word."""
    return value & _WORD_MASK


def sgn_ext(i: int) -> int:
    """Return the sign-extended (signed word) equivalent of i."""
    return to_signed_word(i)


def zero_ext(i: int) -> int:
    """Return the zero-extended (unsigned word) equivalent of i."""
    return to_unsigned_word(i)


def form_offset(o: int) -> int:
    """Return the offset given by o, which is its sign extension."""
    return sgn_ext(o)


def form_address(pc: int, a: int) -> int:
    """Combine the high-order 4 bits of pc with the address a."""
    return (0xF0000000 & pc) | (0x0FFFFFF & a)


def check_fits_in_offset(o: int) -> None:
    """Raise VMError unless o fits in an instruction's offset field."""
    if o > NINEBITSMAXSIGNED:
        raise VMError(f"Offset is too large: {o}")
    if o < NINEBITSMINSIGNED:
        raise VMError(f"Offset is too small: {o}")


def check_fits_in_arg(arg: int) -> None:
    """Raise VMError unless arg fits in an instruction's arg field."""
    if arg > TWELVEBITSMAXSIGNED:
        raise VMError(f"12 bit argument is too large: {arg}")
    if arg < TWELVEBITSMINSIGNED:
        raise VMError(f"12 bit argument is too small: {arg}")


def check_fits_in_shift(s: int) -> None:
    """Raise VMError unless s fits in an instruction's shift field."""
    if s > TWELVEBITSMAXUNSIGNED:
        raise VMError(f"Shift is too large: {to_unsigned_word(s)}")


def check_fits_in_immed(immed: int) -> None:
    """Raise VMError unless immed fits in a signed immediate field."""
    if immed > SIXTEENBITSMAXSIGNED:
        raise VMError(f"Immediate argument is too large: {immed}")
    if immed < SIXTEENBITSMINSIGNED:
        raise VMError(f"Immediate argument is too small: {immed}")


def check_fits_in_uimmed(arg: int) -> None:
    """Raise VMError unless arg fits in an unsigned immediate field."""
    if arg > SIXTEENBITSMAXUNSIGNED:
        raise VMError(
            f"Unsigned immediate argument is too large: {to_unsigned_word(arg)}"
        )


def check_fits_in_addr(addr: int) -> None:
    """Raise VMError unless addr fits in an instruction's address field."""
    unsigned = to_unsigned_word(addr)
    if unsigned > TWENTYEIGHTBITSMAXUNSIGNED:
        raise VMError(f"Address is too large: {unsigned}")


def round_up_to_wordsize(n: int) -> int:
    """Return the smallest multiple of BYTES_PER_WORD that is >= n."""
    rem = n % BYTES_PER_WORD
    return n if rem == 0 else n + (BYTES_PER_WORD - rem)