"""MachineState: Mutable machine state for the Synacor VM.

This module defines the core state structure for the virtual machine and the
operand resolution rules that every instruction relies on.

State Components:
    - Memory: 32768 addressable 16-bit words (program loaded at address 0)
    - Registers: r0-r7 (8 words, addressed by operand words 32768-32775)
    - Stack: Unbounded operand/call stack
    - PC: Program counter
    - Status: running, halted or faulted
    - Input buffer: Characters staged from the last line of input
    - Cycle count: Total executed instructions

Unlike a purely functional state, memory is mutated in place: copying
32768 words per instruction is not viable for long-running programs.
Use snapshot() to capture the observable state for tracing.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, Dict, List, Optional
from copy import deepcopy

from .errors import InvalidOperand, MalformedProgram, StackUnderflow, VMError


# Word format
MODULO = 32768
WORD_MASK = 0xFFFF
MEMORY_SIZE = 32768
REGISTER_COUNT = 8
REGISTER_BASE = MODULO
INVALID_WORD = REGISTER_BASE + REGISTER_COUNT  # 32776


class MachineStatus(Enum):
    """Lifecycle of a machine: running until it halts or faults."""
    RUNNING = "running"
    HALTED = "halted"
    FAULTED = "faulted"


class OperandKind(Enum):
    """Classification of a raw operand word."""
    LITERAL = "literal"
    REGISTER = "register"
    INVALID = "invalid"


def classify_word(word: int) -> OperandKind:
    """Classify a raw word as a literal, a register reference or invalid.

    This is the only place the literal/register/invalid boundaries
    (32768 and 32776) are tested.

    Args:
        word: Raw 16-bit word read from the instruction stream

    Returns:
        OperandKind for the word
    """
    if 0 <= word < REGISTER_BASE:
        return OperandKind.LITERAL
    if REGISTER_BASE <= word < INVALID_WORD:
        return OperandKind.REGISTER
    return OperandKind.INVALID


@dataclass
class MachineState:
    """Complete state of one virtual machine instance.

    Attributes:
        memory: 32768 words of addressable memory
        registers: 8 general-purpose word registers
        stack: Operand and return-address stack (top is the last element)
        pc: Program counter (address of the next instruction word)
        status: Current MachineStatus
        cycle_count: Number of instructions completed
        input_buffer: Characters left over from the last line of input
        fault: Error that faulted the machine, if any
    """
    memory: List[int] = field(default_factory=lambda: [0] * MEMORY_SIZE)
    registers: List[int] = field(default_factory=lambda: [0] * REGISTER_COUNT)
    stack: List[int] = field(default_factory=list)
    pc: int = 0
    status: MachineStatus = MachineStatus.RUNNING
    cycle_count: int = 0
    input_buffer: Deque[str] = field(default_factory=deque)
    fault: Optional[VMError] = None

    @property
    def running(self) -> bool:
        return self.status is MachineStatus.RUNNING

    @property
    def halted(self) -> bool:
        return self.status is MachineStatus.HALTED

    @property
    def faulted(self) -> bool:
        return self.status is MachineStatus.FAULTED

    def snapshot(self) -> dict:
        """Create an immutable snapshot of current state for tracing.

        Returns:
            Dictionary containing deep copy of all state components
        """
        return {
            "registers": deepcopy(self.registers),
            "pc": self.pc,
            "stack": list(self.stack),
            "status": self.status.value,
            "cycle_count": self.cycle_count,
            # Note: memory excluded from snapshot for efficiency
        }

    def validate(self) -> bool:
        """Validate state integrity.

        Checks:
            - Memory has exactly MEMORY_SIZE entries, each a 16-bit word
            - Exactly REGISTER_COUNT registers, each a 16-bit word
            - PC is within memory bounds
            - Stack holds only 16-bit words

        Returns:
            True if state is valid, False otherwise
        """
        if len(self.memory) != MEMORY_SIZE:
            return False
        if any(not 0 <= word <= WORD_MASK for word in self.memory):
            return False

        if len(self.registers) != REGISTER_COUNT:
            return False
        for value in self.registers:
            if not isinstance(value, int) or not 0 <= value <= WORD_MASK:
                return False

        if not 0 <= self.pc < MEMORY_SIZE:
            return False

        if any(not 0 <= word <= WORD_MASK for word in self.stack):
            return False

        if self.cycle_count < 0:
            return False

        return True

    # =========================================================================
    # Operand Resolution
    # =========================================================================

    def resolve_value(self, word: int) -> int:
        """Resolve an operand word to the value it denotes.

        Args:
            word: Raw operand word

        Returns:
            The literal itself, or the content of the referenced register

        Raises:
            InvalidOperand: If the word is 32776 or above
        """
        kind = classify_word(word)
        if kind is OperandKind.LITERAL:
            return word
        if kind is OperandKind.REGISTER:
            return self.registers[word - REGISTER_BASE]
        raise InvalidOperand(f"Invalid value {word}")

    def resolve_destination(self, word: int) -> int:
        """Resolve an operand word that must name a register.

        Args:
            word: Raw operand word

        Returns:
            Register index 0-7

        Raises:
            InvalidOperand: If the word is not a register reference
        """
        if classify_word(word) is not OperandKind.REGISTER:
            raise InvalidOperand(f"Invalid destination register {word}")
        return word - REGISTER_BASE

    # =========================================================================
    # Accessors
    # =========================================================================

    def get_register(self, index: int) -> int:
        """Get value of register r0-r7.

        Raises:
            IndexError: If index is outside 0-7
        """
        if not 0 <= index < REGISTER_COUNT:
            raise IndexError(f"Invalid register: {index}")
        return self.registers[index]

    def set_register(self, index: int, value: int) -> None:
        if not 0 <= index < REGISTER_COUNT:
            raise IndexError(f"Invalid register: {index}")
        self.registers[index] = value

    def read_memory(self, address: int) -> int:
        return self.memory[address]

    def write_memory(self, address: int, value: int) -> None:
        self.memory[address] = value

    def push(self, value: int) -> None:
        self.stack.append(value)

    def pop(self) -> int:
        """Pop the top of the stack.

        Raises:
            StackUnderflow: If the stack is empty
        """
        if not self.stack:
            raise StackUnderflow("Stack underflow")
        return self.stack.pop()

    def dump_registers(self) -> Dict[str, int]:
        """Get a copy of all register values keyed r0-r7."""
        return {f"r{index}": value for index, value in enumerate(self.registers)}

    def __str__(self) -> str:
        """Human-readable state representation."""
        regs = " ".join(f"{k}={v}" for k, v in self.dump_registers().items())
        return (
            f"[Cycle {self.cycle_count}] PC={self.pc} {regs} "
            f"SP={len(self.stack)} {self.status.value.upper()}"
        )


def create_initial_state(program: List[int]) -> MachineState:
    """Create initial machine state with a loaded program.

    Args:
        program: List of 16-bit words, copied to memory from address 0

    Returns:
        Fresh MachineState with program loaded

    Raises:
        MalformedProgram: If the program does not fit in memory or holds
            values that are not 16-bit words
    """
    if len(program) > MEMORY_SIZE:
        raise MalformedProgram(
            f"Program is {len(program)} words; memory holds {MEMORY_SIZE}"
        )
    for address, word in enumerate(program):
        if not 0 <= word <= WORD_MASK:
            raise MalformedProgram(f"Value {word} at address {address} is not a 16-bit word")

    memory = [0] * MEMORY_SIZE
    memory[:len(program)] = program
    return MachineState(memory=memory)
