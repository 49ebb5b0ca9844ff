"""Decoder: Instruction fetch and decode for the Synacor VM.

The instruction set is closed: 22 opcodes, each with a fixed operand count.
Keeping the arity on the Opcode enum lets the registry advance the program
counter in one place instead of in every handler.

Architecture:
    memory[pc] -> resolve as value -> Opcode -> fetch arity words -> Instruction
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Tuple

from .errors import InvalidOpcode, InvalidOperand
from .state import MEMORY_SIZE, REGISTER_BASE, MachineState, OperandKind, classify_word


class Opcode(IntEnum):
    HALT = 0
    SET = 1
    PUSH = 2
    POP = 3
    EQ = 4
    GT = 5
    JMP = 6
    JT = 7
    JF = 8
    ADD = 9
    MULT = 10
    MOD = 11
    AND = 12
    OR = 13
    NOT = 14
    RMEM = 15
    WMEM = 16
    CALL = 17
    RET = 18
    OUT = 19
    IN = 20
    NOOP = 21

    @property
    def arity(self) -> int:
        """Number of operand words following the opcode."""
        return OPERAND_COUNTS[self]

    @property
    def mnemonic(self) -> str:
        return self.name.lower()


OPERAND_COUNTS: Dict[Opcode, int] = {
    Opcode.HALT: 0,
    Opcode.SET: 2,
    Opcode.PUSH: 1,
    Opcode.POP: 1,
    Opcode.EQ: 3,
    Opcode.GT: 3,
    Opcode.JMP: 1,
    Opcode.JT: 2,
    Opcode.JF: 2,
    Opcode.ADD: 3,
    Opcode.MULT: 3,
    Opcode.MOD: 3,
    Opcode.AND: 3,
    Opcode.OR: 3,
    Opcode.NOT: 2,
    Opcode.RMEM: 2,
    Opcode.WMEM: 2,
    Opcode.CALL: 1,
    Opcode.RET: 0,
    Opcode.OUT: 1,
    Opcode.IN: 1,
    Opcode.NOOP: 0,
}


def format_operand(word: int) -> str:
    """Render a raw operand word as `r3`, a literal, or `<invalid N>`."""
    kind = classify_word(word)
    if kind is OperandKind.REGISTER:
        return f"r{word - REGISTER_BASE}"
    if kind is OperandKind.LITERAL:
        return str(word)
    return f"<invalid {word}>"


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction.

    Attributes:
        opcode: Decoded Opcode
        operands: Raw operand words, unresolved
        address: Memory address of the opcode word
    """
    opcode: Opcode
    operands: Tuple[int, ...]
    address: int

    @property
    def size(self) -> int:
        """Number of words occupied by the instruction."""
        return 1 + len(self.operands)

    @property
    def next_address(self) -> int:
        return self.address + self.size

    def __str__(self) -> str:
        parts = [self.opcode.mnemonic] + [format_operand(w) for w in self.operands]
        return " ".join(parts)


class Decoder:
    """Fetches and decodes the instruction at the program counter."""

    def decode(self, state: MachineState) -> Instruction:
        """Decode the instruction at state.pc.

        The opcode word is resolved as a value, so a register reference in
        opcode position selects the opcode held in that register.

        Args:
            state: Machine state to read from

        Returns:
            Instruction with raw operand words

        Raises:
            InvalidOpcode: If pc is outside memory or the opcode is not 0-21
            InvalidOperand: If the opcode word is invalid, or an operand
                would be fetched from beyond the end of memory
        """
        address = state.pc
        if not 0 <= address < MEMORY_SIZE:
            raise InvalidOpcode(f"Program counter {address} outside memory", address)

        raw = state.read_memory(address)
        value = state.resolve_value(raw)
        try:
            opcode = Opcode(value)
        except ValueError:
            raise InvalidOpcode(
                f"Unknown opcode {value} from value {raw}", address
            ) from None

        end = address + 1 + opcode.arity
        if end > MEMORY_SIZE:
            raise InvalidOperand(
                f"Operands of {opcode.mnemonic} run past end of memory", address
            )

        operands = tuple(state.memory[address + 1:end])
        return Instruction(opcode, operands, address)
