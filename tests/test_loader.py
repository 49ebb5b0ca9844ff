"""Tests for the program loader."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from synacor_vm import MalformedProgram, VirtualMachine
from synacor_vm.loader import decode_program, read_program
from synacor_vm.state import MEMORY_SIZE


class TestDecodeProgram:
    """Test little-endian word decoding."""

    def test_little_endian_pairs(self):
        assert decode_program(bytes([0x06, 0x00, 0x03, 0x00])) == [6, 3]

    def test_high_byte(self):
        """Second byte of each pair is the high byte."""
        assert decode_program(bytes([0x01, 0x80, 0xFF, 0xFF])) == [32769, 65535]

    def test_empty_image(self):
        assert decode_program(b"") == []

    def test_odd_length_is_malformed(self):
        with pytest.raises(MalformedProgram, match="odd length"):
            decode_program(b"\x00\x00\x00")

    def test_image_filling_memory(self):
        words = decode_program(bytes(2 * MEMORY_SIZE))
        assert len(words) == MEMORY_SIZE

    def test_image_too_large(self):
        with pytest.raises(MalformedProgram):
            decode_program(bytes(2 * MEMORY_SIZE + 2))

    def test_malformed_program_has_no_address(self):
        with pytest.raises(MalformedProgram) as excinfo:
            decode_program(b"\x01")
        assert excinfo.value.address is None
        assert excinfo.value.kind == "malformed_program"


class TestReadProgram:
    """Test reading program images from files."""

    def test_read_program(self, tmp_path, assemble):
        path = tmp_path / "prog.bin"
        path.write_bytes(assemble([19, 65, 0]))
        assert read_program(path) == [19, 65, 0]

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            read_program(tmp_path / "missing.bin")


class TestVirtualMachineLoad:
    """Test loading images into a machine."""

    def test_load_program_bytes(self, assemble):
        vm = VirtualMachine()
        vm.load_program(assemble([21, 21, 0]))
        assert vm.state.memory[:4] == [21, 21, 0, 0]
        assert vm.get_pc() == 0

    def test_load_odd_bytes(self):
        vm = VirtualMachine()
        with pytest.raises(MalformedProgram):
            vm.load_program(b"\x00")
        assert vm.state is None
