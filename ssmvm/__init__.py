"""Virtual machine, disassembler and word dump tool for the Simplified Stack Machine."""

__version__ = "0.1.0"