"""Error types and source locations used throughout the VM tools."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FileLocation:
    """A location in a source file, used in error messages."""

    filename: str
    line: int

    def __str__(self) -> str:
        return f"{self.filename}: line {self.line}"


class VMError(Exception):
    """Raised when the VM or one of its tools cannot continue."""


class ProgramError(VMError):
    """An error attributed to a particular place in a program's source."""

    def __init__(self, location: FileLocation, message: str) -> None:
        self.location = location
        self.message = message
        super().__init__(f"{location.filename}: line {location.line} {message}")