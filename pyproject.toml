[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ssmvm"
version = "0.1.0"
description = "Virtual machine, disassembler and binary dump tool for the Simplified Stack Machine (SSM)"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "virtual machine",
    "stack machine",
    "emulator",
    "disassembler",
    "bytecode",
    "bof",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Software Development :: Interpreters",
    "Topic :: Software Development :: Disassemblers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
ssm-vm = "ssmvm.machine_main:main"
ssm-disasm = "ssmvm.disasm:main"
ssm-bin-dump = "ssmvm.bin_dump:main"

[tool.hatch.build.targets.wheel]
packages = ["ssmvm"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
check_untyped_defs = true
