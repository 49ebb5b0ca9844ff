"""Integration tests for complete programs."""

import io
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from synacor_vm import (
    Console,
    CycleLimitExceeded,
    InputExhausted,
    InvalidOpcode,
    InvalidOperand,
    MachineStatus,
    ScriptedLineSource,
    VirtualMachine,
)

R0, R1, R2 = 32768, 32769, 32770


class TestEndToEnd:
    """Programs loaded from raw image bytes."""

    def test_jmp_over_gap_then_halt(self):
        """06 00 03 00 (jmp 3), a gap word, then 00 00 (halt) at address 3."""
        image = bytes([0x06, 0x00, 0x03, 0x00, 0x15, 0x00, 0x00, 0x00])
        vm = VirtualMachine(console=Console.buffered())
        vm.load_program(image)
        result = vm.run()

        assert result.status is MachineStatus.HALTED
        assert result.output == ""
        assert result.cycles == 2

    def test_print_a(self, assemble):
        """set r0 'A'; out r0; halt emits exactly 'A'."""
        vm = VirtualMachine(console=Console.buffered())
        vm.load_program(assemble([1, R0, ord("A"), 19, R0, 0]))
        result = vm.run()

        assert result.ok
        assert result.output == "A"

    def test_truncated_add(self):
        """[9, 0] loads as add with a literal destination and faults."""
        vm = VirtualMachine(console=Console.buffered())
        vm.load_program(bytes([9, 0, 0, 0]))
        result = vm.run()

        assert result.status is MachineStatus.FAULTED
        assert isinstance(result.fault, InvalidOperand)
        assert result.fault.address == 0

    def test_empty_program_halts(self):
        vm = VirtualMachine(console=Console.buffered())
        vm.load_program(b"")
        assert vm.run().ok


class TestLoops:
    """Programs with loops and subroutines."""

    def test_sum_1_to_10(self, machine):
        """Sum of 1 to 10 should be 55."""
        vm = machine([
            1, R0, 0,           # 0: set r0 0        (sum)
            1, R1, 1,           # 3: set r1 1        (counter)
            9, R0, R0, R1,      # 6: add r0 r0 r1
            9, R1, R1, 1,       # 10: add r1 r1 1
            5, R2, R1, 10,      # 14: gt r2 r1 10
            8, R2, 6,           # 18: jf r2 6
            0,                  # 21: halt
        ])
        vm.run()

        assert vm.get_register(0) == 55
        assert vm.is_halted() is True

    def test_countdown_output(self, machine):
        vm = machine([
            1, R0, 9,           # 0: set r0 9
            9, R1, R0, 48,      # 3: add r1 r0 '0'
            19, R1,             # 7: out r1
            9, R0, R0, 32767,   # 9: add r0 r0 -1
            7, R0, 3,           # 13: jt r0 3
            0,                  # 16: halt
        ])
        assert vm.run().output == "987654321"

    def test_nested_calls(self, machine):
        vm = machine([
            17, 5,              # 0: call 5
            19, ord("c"),       # 2: out 'c'
            0,                  # 4: halt
            17, 10,             # 5: call 10
            19, ord("b"),       # 7: out 'b'
            18,                 # 9: ret
            19, ord("a"),       # 10: out 'a'
            18,                 # 12: ret
        ])
        result = vm.run()
        assert result.output == "abc"
        assert result.ok
        assert vm.get_pc() == 4
        assert vm.get_stack() == []

    def test_echo_input(self, machine):
        vm = machine([
            20, R0,             # 0: in r0
            19, R0,             # 2: out r0
            4, R1, R0, 10,      # 4: eq r1 r0 '\n'
            8, R1, 0,           # 8: jf r1 0
            0,                  # 11: halt
        ], lines=["hello"])
        assert vm.run().output == "hello\n"

    def test_input_exhausted_faults(self, machine):
        vm = machine([20, R0, 6, 0], lines=[])
        result = vm.run()
        assert isinstance(result.fault, InputExhausted)
        assert result.fault.address == 0


class TestFaults:
    """Fault reporting."""

    def test_unknown_opcode(self, machine):
        vm = machine([21, 22])
        result = vm.run()
        assert result.status is MachineStatus.FAULTED
        assert isinstance(result.fault, InvalidOpcode)
        assert result.fault.address == 1
        assert result.fault.kind == "invalid_opcode"
        assert vm.get_cycle_count() == 1

    def test_fault_recorded_on_state(self, machine):
        vm = machine([22])
        vm.run()
        assert vm.is_faulted() is True
        assert vm.state.fault is not None

    def test_faulted_is_terminal(self, machine):
        vm = machine([22])
        vm.step()
        with pytest.raises(RuntimeError):
            vm.step()

    def test_halted_is_terminal(self, machine):
        vm = machine([0])
        vm.step()
        with pytest.raises(RuntimeError, match="halted"):
            vm.step()

    def test_run_off_end_of_memory(self, machine):
        """Falling through past address 32767 faults instead of wrapping."""
        vm = machine([6, 32767])
        vm.state.memory[32767] = 21
        result = vm.run()
        assert isinstance(result.fault, InvalidOpcode)
        assert result.fault.address == 32768

    def test_step_reports_fault(self, machine):
        vm = machine([3, R0])
        step = vm.step()
        assert step.status is MachineStatus.FAULTED
        assert step.fault is vm.state.fault

    def test_surrogate_output_does_not_escape(self):
        """rmem loads a surrogate word, out emits it, then the word faults as an opcode."""
        raw = io.BytesIO()
        sink = io.TextIOWrapper(raw, encoding="utf-8")
        vm = VirtualMachine(console=Console(ScriptedLineSource([]), sink), max_cycles=100)
        vm.load_words([15, R0, 5, 19, R0, 0xD800])
        result = vm.run()
        sink.flush()

        assert result.status is MachineStatus.FAULTED
        assert isinstance(result.fault, InvalidOperand)
        assert result.fault.address == 5
        assert result.cycles == 2
        assert raw.getvalue() == "\ufffd".encode("utf-8")


class TestExecution:
    """Stepping, cycle limits and the VM API."""

    def test_no_program_loaded(self):
        vm = VirtualMachine(console=Console.buffered())
        with pytest.raises(RuntimeError, match="No program loaded"):
            vm.run()
        assert vm.get_cycle_count() == 0
        assert vm.is_halted() is False

    def test_immediate_halt(self, machine):
        vm = machine([0])
        vm.run()
        assert vm.is_halted() is True
        assert vm.get_cycle_count() == 1

    def test_step_returns_instruction(self, machine):
        vm = machine([9, R0, 2, 3, 0])
        step = vm.step()
        assert step.status is MachineStatus.RUNNING
        assert str(step.instruction) == "add r0 2 3"
        assert vm.get_pc() == 4

    def test_max_cycles_stops_execution(self, machine):
        """Infinite loop stops at max cycles without faulting."""
        vm = machine([6, 0], max_cycles=10)
        with pytest.raises(CycleLimitExceeded, match="Max cycles"):
            vm.run()
        assert vm.get_cycle_count() == 10
        assert vm.state.status is MachineStatus.RUNNING

    def test_resume_after_cycle_limit(self, machine):
        vm = machine([21, 21, 21, 0], max_cycles=2)
        with pytest.raises(CycleLimitExceeded):
            vm.run()
        result = vm.run(max_cycles=100)
        assert result.ok
        assert result.cycles == 4

    def test_unlimited_by_default(self):
        vm = VirtualMachine(console=Console.buffered())
        assert vm.max_cycles is None

    def test_independent_machines(self, machine):
        a = machine([1, R0, 1, 0])
        b = machine([0])
        a.run()
        b.run()
        assert a.get_register(0) == 1
        assert b.get_register(0) == 0

    def test_summary(self, machine):
        vm = machine([2, 1, 3, 5])
        vm.run()
        summary = vm.get_summary()
        assert summary["status"] == "faulted"
        assert summary["cycles"] == 1
        assert summary["fault"]["kind"] == "invalid_operand"
        assert summary["fault"]["address"] == 2
        assert summary["stack_depth"] == 1

    def test_summary_output_length_on_stdout(self, capsys):
        vm = VirtualMachine(console=Console(ScriptedLineSource([])))
        vm.load_words([19, ord("h"), 19, ord("i"), 0])
        result = vm.run()
        assert capsys.readouterr().out == "hi"
        assert result.output == ""
        assert vm.get_summary()["output_length"] == 2


class TestExecutionTrace:
    """Test execution trace functionality."""

    def test_trace_records_all_cycles(self, machine):
        vm = machine([1, R0, 1, 1, R1, 2, 0], trace=True)
        vm.run()
        trace = vm.get_trace()

        assert len(trace) == 3
        assert trace[0].instruction == "set r0 1"
        assert trace[1].instruction == "set r1 2"
        assert trace[2].instruction == "halt"

    def test_trace_captures_state_changes(self, machine):
        vm = machine([1, R0, 42, 0], trace=True)
        vm.run()
        trace = vm.get_trace()

        assert trace[0].pre_state["registers"][0] == 0
        assert trace[0].post_state["registers"][0] == 42
        assert trace[0].post_state["pc"] == 3

    def test_trace_records_fault(self, machine):
        vm = machine([22], trace=True)
        vm.run()
        entry = vm.get_trace()[-1]
        assert entry.instruction is None
        assert "Unknown opcode" in entry.error

    def test_trace_off_by_default(self, machine):
        vm = machine([21, 0])
        vm.run()
        assert vm.get_trace() == []

    def test_trace_limit(self):
        vm = VirtualMachine(console=Console.buffered(), trace=True, trace_limit=3)
        vm.load_words([21] * 10 + [0])
        vm.run()
        trace = vm.get_trace()
        assert len(trace) == 3
        assert trace[-1].instruction == "halt"
        assert trace[0].cycle == 8

    def test_print_trace(self, machine, capsys):
        vm = machine([1, R0, 5, 0], trace=True)
        vm.run()
        vm.print_trace()
        out = capsys.readouterr().out
        assert "set r0 5" in out
        assert "r0: 0 -> 5" in out
