"""VirtualMachine: Main orchestrator for the Synacor VM.

This module implements the full execution pipeline:
    MEMORY -> FETCH -> DECODE -> OPCODE -> REGISTRY -> EXECUTE -> STATE

A machine runs until it halts (HALT, or RET with an empty stack) or faults.
Faults are not raised out of step() or run(): the error is recorded on the
state and reported in the result, and the caller decides what to do with it.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

from .decode import Decoder, Instruction
from .devices import Console
from .errors import CycleLimitExceeded, VMError
from .loader import decode_program
from .registry import InstructionRegistry, get_registry
from .state import MachineState, MachineStatus, create_initial_state

logger = logging.getLogger(__name__)


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        address: Address of the instruction
        instruction: Disassembled instruction, or None if decode failed
        pre_state: State before execution
        post_state: State after execution
        error: Error message if execution faulted
    """
    cycle: int
    address: int
    instruction: Optional[str]
    pre_state: dict
    post_state: dict
    error: Optional[str] = None


@dataclass
class StepResult:
    """Outcome of one fetch-decode-execute cycle."""
    status: MachineStatus
    instruction: Optional[Instruction] = None
    fault: Optional[VMError] = None


@dataclass
class RunResult:
    """Outcome of run().

    Attributes:
        status: HALTED or FAULTED
        fault: The error that faulted the machine, if any
        cycles: Instructions completed
        output: Characters emitted so far; empty unless the console sink is in-memory
    """
    status: MachineStatus
    fault: Optional[VMError]
    cycles: int
    output: str

    @property
    def ok(self) -> bool:
        return self.status is MachineStatus.HALTED


class VirtualMachine:
    """Synacor virtual machine.

    Each instance owns a private memory, register file, stack and input
    buffer; nothing is shared between instances.

    Attributes:
        console: Character I/O for OUT and IN
        decoder: Instruction decoder
        registry: InstructionRegistry with the instruction semantics
        state: Current machine state
        trace: Recent execution trace entries (only when tracing)
        max_cycles: Default cycle limit for run(); None means unlimited
    """

    DEFAULT_TRACE_LIMIT = 10000

    def __init__(
        self,
        console: Optional[Console] = None,
        max_cycles: Optional[int] = None,
        trace: bool = False,
        trace_limit: int = DEFAULT_TRACE_LIMIT
    ):
        """Initialize the machine.

        Args:
            console: Character I/O; defaults to stdin/stdout
            max_cycles: Default cycle limit for run(), None for no limit
            trace: Record an ExecutionTraceEntry for every cycle
            trace_limit: Maximum trace entries kept (oldest dropped)
        """
        self.console = console if console is not None else Console()
        self.decoder = Decoder()
        self.registry: InstructionRegistry = get_registry()
        self.state: Optional[MachineState] = None
        self.tracing = trace
        self.trace: Deque[ExecutionTraceEntry] = deque(maxlen=trace_limit)
        self.max_cycles = max_cycles

    def load_program(self, data: bytes) -> None:
        """Load a program image.

        Args:
            data: Raw little-endian program bytes

        Raises:
            MalformedProgram: If the image has odd length or exceeds memory
        """
        self.load_words(decode_program(data))

    def load_words(self, words: List[int]) -> None:
        """Load a program from a list of words, copied to address 0.

        Raises:
            MalformedProgram: If the program does not fit in memory
        """
        self.state = create_initial_state(words)
        self.trace.clear()
        logger.info("Loaded program of %d words", len(words))

    def _require_state(self) -> MachineState:
        if self.state is None:
            raise RuntimeError("No program loaded")
        return self.state

    def step(self) -> StepResult:
        """Execute a single instruction cycle.

        Performs: FETCH -> DECODE -> EXECUTE

        Returns:
            StepResult with the new status and any fault

        Raises:
            RuntimeError: If no program loaded or machine not running
        """
        state = self._require_state()
        if not state.running:
            raise RuntimeError(f"Machine is {state.status.value}")

        address = state.pc
        cycle = state.cycle_count
        pre_state = state.snapshot() if self.tracing else None
        instruction = None
        fault = None

        try:
            instruction = self.decoder.decode(state)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug("%05d: %s", address, instruction)
            self.registry.execute(state, instruction, self.console)
        except VMError as e:
            if e.address is None:
                e.address = address
            fault = e
            state.status = MachineStatus.FAULTED
            state.fault = e
            logger.warning("Machine faulted: %s (%s)", e, e.kind)

        if self.tracing:
            self.trace.append(ExecutionTraceEntry(
                cycle=cycle,
                address=address,
                instruction=str(instruction) if instruction else None,
                pre_state=pre_state,
                post_state=state.snapshot(),
                error=str(fault) if fault else None
            ))

        if state.halted:
            logger.info("Machine halted after %d cycles", state.cycle_count)

        return StepResult(state.status, instruction, fault)

    def run(self, max_cycles: Optional[int] = None) -> RunResult:
        """Run the machine until it halts or faults.

        Args:
            max_cycles: Override the instance cycle limit (None uses the
                instance default, which may itself be unlimited)

        Returns:
            RunResult describing how the machine stopped

        Raises:
            RuntimeError: If no program loaded
            CycleLimitExceeded: If the limit is reached while still running
        """
        state = self._require_state()
        limit = max_cycles if max_cycles is not None else self.max_cycles

        while state.running:
            if limit is not None and state.cycle_count >= limit:
                raise CycleLimitExceeded(limit)
            self.step()

        return RunResult(state.status, state.fault, state.cycle_count, self.console.output)

    def get_register(self, index: int) -> int:
        return self._require_state().get_register(index)

    def dump_registers(self) -> Dict[str, int]:
        return self._require_state().dump_registers()

    def get_pc(self) -> int:
        return self._require_state().pc

    def get_stack(self) -> List[int]:
        return list(self._require_state().stack)

    def get_cycle_count(self) -> int:
        if self.state is None:
            return 0
        return self.state.cycle_count

    def is_halted(self) -> bool:
        return self.state is not None and self.state.halted

    def is_faulted(self) -> bool:
        return self.state is not None and self.state.faulted

    def get_trace(self) -> List[ExecutionTraceEntry]:
        return list(self.trace)

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("SYNACOR VM EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"ERROR: {entry.error}"
            print(f"\n[Cycle {entry.cycle}] {status}")
            print(f"  Address: {entry.address}")
            print(f"  Instruction: {entry.instruction}")

            # Show register changes
            pre_regs = entry.pre_state["registers"]
            post_regs = entry.post_state["registers"]
            changes = []
            for index, (before, after) in enumerate(zip(pre_regs, post_regs)):
                if before != after:
                    changes.append(f"r{index}: {before} -> {after}")
            if changes:
                print(f"  Changes: {', '.join(changes)}")

            if entry.pre_state["stack"] != entry.post_state["stack"]:
                print(f"  Stack: {entry.pre_state['stack']} -> {entry.post_state['stack']}")

            next_pc = entry.post_state["pc"]
            if next_pc != entry.address:
                print(f"  PC: {entry.address} -> {next_pc}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        if self.state:
            print(f"  Registers: {self.dump_registers()}")
            print(f"  Stack depth: {len(self.state.stack)}")
            print(f"  PC: {self.get_pc()}")
            print(f"  Cycles: {self.get_cycle_count()}")
            print(f"  Status: {self.state.status.value}")

    def get_summary(self) -> Dict:
        """Get execution summary.

        Returns:
            Dictionary with execution statistics and final state
        """
        fault = self.state.fault if self.state else None
        return {
            "cycles": self.get_cycle_count(),
            "status": self.state.status.value if self.state else None,
            "halted": self.is_halted(),
            "registers": self.dump_registers() if self.state else {},
            "pc": self.get_pc() if self.state else 0,
            "stack_depth": len(self.state.stack) if self.state else 0,
            "output_length": self.console.chars_written,
            "fault": None if fault is None else {
                "kind": fault.kind,
                "address": fault.address,
                "message": fault.message,
            },
        }
