"""Synacor VM: A 16-bit word virtual machine.

This package implements a virtual machine for a fixed 22-opcode instruction
set running against 32768 words of memory, eight registers and an unbounded
stack, with character I/O.

Word format:
    0..32767      literal values
    32768..32775  register references r0-r7
    32776..65535  invalid

Architecture:
    PROGRAM IMAGE -> LOADER -> MEMORY -> FETCH -> DECODE -> REGISTRY -> STATE
                       |                          |           |
                 [little-endian]              [Opcode +   [Handlers]
                                               arity]

Modules:
    state: MachineState dataclass and operand resolution
    errors: Machine error kinds
    loader: Program image decoding
    decode: Opcode enum and instruction decoder
    registry: Instruction semantics
    devices: Console and line-buffered input
    vm: Main VirtualMachine orchestrator
"""

__version__ = "0.1.0"

from .state import MachineState, MachineStatus
from .errors import (
    VMError,
    MalformedProgram,
    InvalidOpcode,
    InvalidOperand,
    StackUnderflow,
    DivisionByZero,
    InputExhausted,
    CycleLimitExceeded,
)
from .loader import decode_program, read_program
from .decode import Decoder, Instruction, Opcode
from .registry import InstructionRegistry
from .devices import Console, ScriptedLineSource, StdinLineSource
from .vm import VirtualMachine, RunResult, StepResult

__all__ = [
    "MachineState",
    "MachineStatus",
    "VMError",
    "MalformedProgram",
    "InvalidOpcode",
    "InvalidOperand",
    "StackUnderflow",
    "DivisionByZero",
    "InputExhausted",
    "CycleLimitExceeded",
    "decode_program",
    "read_program",
    "Decoder",
    "Instruction",
    "Opcode",
    "InstructionRegistry",
    "Console",
    "ScriptedLineSource",
    "StdinLineSource",
    "VirtualMachine",
    "RunResult",
    "StepResult",
]
