"""Register numbers and their symbolic names."""

from __future__ import annotations

NUM_REGISTERS = 8

GP = 0
SP = 1
FP = 2
RA = 7

REGISTER_NAMES = ("$gp", "$sp", "$fp", "$r3", "$r4", "$r5", "$r6", "$ra")


def regname_get(n: int) -> str:
    """Return the standard symbolic name of register n."""
    if not 0 <= n < NUM_REGISTERS:
        raise ValueError(f"Register number out of range: {n}")
    return REGISTER_NAMES[n]