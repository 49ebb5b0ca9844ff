"""Error kinds raised by the Synacor VM.

Every error except MalformedProgram is fatal to a running machine: the VM
records it as the machine's fault together with the address of the
instruction that raised it, and stops.
"""

from typing import Optional


class VMError(Exception):
    """Base class for all machine errors.

    Attributes:
        kind: Stable identifier of the error kind
        address: Address of the faulting instruction (None at load time)
    """

    kind = "vm_error"

    def __init__(self, message: str, address: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.address = address

    def __str__(self) -> str:
        if self.address is None:
            return self.message
        return f"{self.message} at address {self.address}"


class MalformedProgram(VMError):
    """Program image has odd length or does not fit in memory."""
    kind = "malformed_program"


class InvalidOpcode(VMError):
    kind = "invalid_opcode"


class InvalidOperand(VMError):
    """Operand is 32776 or above, or a destination is not a register."""
    kind = "invalid_operand"


class StackUnderflow(VMError):
    kind = "stack_underflow"


class DivisionByZero(VMError):
    kind = "division_by_zero"


class InputExhausted(VMError):
    """The input source ended while an `in` instruction needed a character."""
    kind = "input_exhausted"


class CycleLimitExceeded(RuntimeError):
    """Raised by VirtualMachine.run when a cycle limit is reached.

    This is not a fault: the machine is still running and may be resumed.
    """

    def __init__(self, limit: int):
        super().__init__(f"Max cycles ({limit}) exceeded")
        self.limit = limit
