"""InstructionRegistry: Instruction semantics for the Synacor VM.

This module implements the registry pattern for machine operations: each
opcode maps to exactly one handler, and the registry is frozen after
initialization so the instruction set cannot change at runtime.

Registry Keys (Opcode):
    HALT:  Stop execution
    SET:   dst := val
    PUSH:  Push val onto the stack
    POP:   dst := pop()
    EQ:    dst := 1 if a == b else 0
    GT:    dst := 1 if a > b else 0
    JMP:   Jump to addr
    JT:    Jump to addr if cond is nonzero
    JF:    Jump to addr if cond is zero
    ADD:   dst := (a + b) % 32768
    MULT:  dst := (a * b) % 32768
    MOD:   dst := a % b
    AND:   dst := a & b
    OR:    dst := a | b
    NOT:   dst := 15-bit complement of a
    RMEM:  dst := memory[addr]
    WMEM:  memory[addr] := val
    CALL:  Push return address, jump to addr
    RET:   Jump to pop(), or halt if the stack is empty
    OUT:   Emit character val
    IN:    dst := next input character
    NOOP:  No operation

Each handler has the signature (state, instruction, console) -> Optional[int].
A handler returns the new program counter when it redirects control, or None
to fall through; execute() then advances the PC past the instruction.
"""

from typing import Callable, Dict, Optional

from .decode import Instruction, Opcode
from .devices import Console
from .errors import DivisionByZero
from .state import MODULO, MachineState, MachineStatus

Handler = Callable[[MachineState, Instruction, Console], Optional[int]]

# 15-bit mask applied to the complement of a word
VALUE_MASK = MODULO - 1


class InstructionRegistry:
    """Frozen registry of instruction handlers.

    Attributes:
        _handlers: Dictionary mapping opcodes to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with all instruction handlers."""
        self._handlers: Dict[Opcode, Handler] = {}
        self._frozen = False
        self._register_all_handlers()
        self.freeze()

    def _register_all_handlers(self) -> None:
        """Register one handler per opcode."""
        # Special
        self.register(Opcode.HALT, self._op_halt)
        self.register(Opcode.NOOP, self._op_noop)

        # Data movement
        self.register(Opcode.SET, self._op_set)
        self.register(Opcode.PUSH, self._op_push)
        self.register(Opcode.POP, self._op_pop)
        self.register(Opcode.RMEM, self._op_rmem)
        self.register(Opcode.WMEM, self._op_wmem)

        # Comparison
        self.register(Opcode.EQ, self._op_eq)
        self.register(Opcode.GT, self._op_gt)

        # Arithmetic and bitwise
        self.register(Opcode.ADD, self._op_add)
        self.register(Opcode.MULT, self._op_mult)
        self.register(Opcode.MOD, self._op_mod)
        self.register(Opcode.AND, self._op_and)
        self.register(Opcode.OR, self._op_or)
        self.register(Opcode.NOT, self._op_not)

        # Control flow
        self.register(Opcode.JMP, self._op_jmp)
        self.register(Opcode.JT, self._op_jt)
        self.register(Opcode.JF, self._op_jf)
        self.register(Opcode.CALL, self._op_call)
        self.register(Opcode.RET, self._op_ret)

        # I/O
        self.register(Opcode.OUT, self._op_out)
        self.register(Opcode.IN, self._op_in)

    def register(self, opcode: Opcode, handler: Handler) -> None:
        """Register the handler for an opcode.

        Args:
            opcode: Opcode to handle
            handler: Function taking (state, instruction, console)

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If opcode already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers: registry is frozen")
        if opcode in self._handlers:
            raise ValueError(f"Handler already registered: {opcode.name}")
        self._handlers[opcode] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_opcodes(self) -> set:
        """Get set of all registered opcodes."""
        return set(self._handlers.keys())

    def execute(self, state: MachineState, instruction: Instruction, console: Console) -> None:
        """Execute a decoded instruction against the state.

        Args:
            state: Machine state, mutated in place
            instruction: Decoded instruction
            console: Character I/O for OUT and IN

        Raises:
            VMError: Any machine error raised by the handler
        """
        handler = self._handlers[instruction.opcode]
        new_pc = handler(state, instruction, console)

        if state.running:
            state.pc = instruction.next_address if new_pc is None else new_pc
        state.cycle_count += 1

    # =========================================================================
    # Special
    # =========================================================================

    def _op_halt(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        state.status = MachineStatus.HALTED
        return None

    def _op_noop(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        return None

    # =========================================================================
    # Data Movement
    # =========================================================================

    def _op_set(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """SET dst val - Copy a value into a register."""
        dst, val = instr.operands
        index = state.resolve_destination(dst)
        state.set_register(index, state.resolve_value(val))
        return None

    def _op_push(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        (val,) = instr.operands
        state.push(state.resolve_value(val))
        return None

    def _op_pop(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """POP dst - Pop the stack into a register.

        The destination is checked before popping, so a bad operand leaves
        the stack untouched.

        Raises:
            StackUnderflow: If the stack is empty
        """
        (dst,) = instr.operands
        index = state.resolve_destination(dst)
        state.set_register(index, state.pop())
        return None

    def _op_rmem(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """RMEM dst addr - Read memory at addr into a register."""
        dst, addr = instr.operands
        index = state.resolve_destination(dst)
        state.set_register(index, state.read_memory(state.resolve_value(addr)))
        return None

    def _op_wmem(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """WMEM addr val - Write val to memory at addr.

        addr is resolved as a value: it names a memory address, never a
        register destination.
        """
        addr, val = instr.operands
        state.write_memory(state.resolve_value(addr), state.resolve_value(val))
        return None

    # =========================================================================
    # Comparison
    # =========================================================================

    def _op_eq(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        dst, a, b = instr.operands
        index = state.resolve_destination(dst)
        result = 1 if state.resolve_value(a) == state.resolve_value(b) else 0
        state.set_register(index, result)
        return None

    def _op_gt(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        dst, a, b = instr.operands
        index = state.resolve_destination(dst)
        result = 1 if state.resolve_value(a) > state.resolve_value(b) else 0
        state.set_register(index, result)
        return None

    # =========================================================================
    # Arithmetic and Bitwise
    # =========================================================================

    def _op_add(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """ADD dst a b - dst := (a + b) % 32768."""
        dst, a, b = instr.operands
        index = state.resolve_destination(dst)
        state.set_register(index, (state.resolve_value(a) + state.resolve_value(b)) % MODULO)
        return None

    def _op_mult(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """MULT dst a b - dst := (a * b) % 32768."""
        dst, a, b = instr.operands
        index = state.resolve_destination(dst)
        state.set_register(index, (state.resolve_value(a) * state.resolve_value(b)) % MODULO)
        return None

    def _op_mod(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """MOD dst a b - dst := a % b.

        Raises:
            DivisionByZero: If b resolves to 0
        """
        dst, a, b = instr.operands
        index = state.resolve_destination(dst)
        dividend = state.resolve_value(a)
        divisor = state.resolve_value(b)
        if divisor == 0:
            raise DivisionByZero("Division by zero")
        state.set_register(index, dividend % divisor)
        return None

    def _op_and(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        dst, a, b = instr.operands
        index = state.resolve_destination(dst)
        state.set_register(index, (state.resolve_value(a) & state.resolve_value(b)) % MODULO)
        return None

    def _op_or(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        dst, a, b = instr.operands
        index = state.resolve_destination(dst)
        state.set_register(index, (state.resolve_value(a) | state.resolve_value(b)) % MODULO)
        return None

    def _op_not(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """NOT dst a - dst := 15-bit bitwise complement of a."""
        dst, a = instr.operands
        index = state.resolve_destination(dst)
        state.set_register(index, ~state.resolve_value(a) & VALUE_MASK)
        return None

    # =========================================================================
    # Control Flow
    # =========================================================================

    def _op_jmp(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        (addr,) = instr.operands
        return state.resolve_value(addr)

    def _op_jt(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """JT cond addr - Jump if cond is nonzero, else fall past both operands."""
        cond, addr = instr.operands
        target = state.resolve_value(addr)
        if state.resolve_value(cond) != 0:
            return target
        return None

    def _op_jf(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """JF cond addr - Jump if cond is zero, else fall past both operands."""
        cond, addr = instr.operands
        target = state.resolve_value(addr)
        if state.resolve_value(cond) == 0:
            return target
        return None

    def _op_call(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """CALL addr - Push the address after the operand, jump to addr."""
        (addr,) = instr.operands
        target = state.resolve_value(addr)
        state.push(instr.next_address)
        return target

    def _op_ret(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """RET - Return to the popped address; halt if the stack is empty."""
        if not state.stack:
            state.status = MachineStatus.HALTED
            return None
        return state.pop()

    # =========================================================================
    # I/O
    # =========================================================================

    def _op_out(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        (val,) = instr.operands
        console.write_char(state.resolve_value(val))
        return None

    def _op_in(self, state: MachineState, instr: Instruction, console: Console) -> Optional[int]:
        """IN dst - Read one input character into a register (may block)."""
        (dst,) = instr.operands
        index = state.resolve_destination(dst)
        state.set_register(index, console.read_char(state))
        return None


# Singleton registry instance
_registry: Optional[InstructionRegistry] = None


def get_registry() -> InstructionRegistry:
    """Get the singleton instruction registry instance.

    Returns:
        The frozen InstructionRegistry instance
    """
    global _registry
    if _registry is None:
        _registry = InstructionRegistry()
    return _registry
