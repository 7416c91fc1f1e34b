"""Command that loads a binary object file and runs or prints it."""

from __future__ import annotations

import sys

from .errors import VMError
from .machine import Machine, MachineExit

_CMDNAME = "vm"


def _usage() -> int:
    sys.stdout.flush()
    sys.stderr.write(
        f"Usage: {_CMDNAME} [-p] file.bof\n        {_CMDNAME} [-t] file.bof\n"
    )
    return 1


def main(argv: list[str] | None = None) -> int:
    """Run (or with -p print, or with -t trace) the .bof file named in argv."""
    args = sys.argv[1:] if argv is None else list(argv)

    print_program = False
    trace_execution = False
    if len(args) == 2 and args[0] == "-p":
        print_program = True
        args = args[1:]
    elif len(args) == 2 and args[0] == "-t":
        trace_execution = True
        args = args[1:]

    if len(args) != 1 or args[0].startswith("-"):
        return _usage()
    path = args[0]
    dot = path.find(".")
    if dot < 0 or not path[dot:].startswith(".bof"):
        return _usage()

    machine = Machine(sys.stdout, sys.stdin)
    try:
        try:
            stream = open(path, "rb")
        except OSError as exc:
            raise VMError(f"Error opening file for reading: {path}") from exc
        with stream:
            machine.load(stream, path)
        if print_program:
            machine.print_loaded_program(sys.stdout)
            sys.stdout.flush()
            return 0
        machine.run(trace_execution)
    except MachineExit as done:
        sys.stdout.flush()
        return done.code
    except VMError as exc:
        sys.stdout.flush()
        sys.stderr.write(f"{exc}\n")
        return 1
    sys.stdout.flush()
    return 0