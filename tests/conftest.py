"""Shared fixtures for Synacor VM tests."""

import struct
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from synacor_vm import Console, VirtualMachine


def pack_words(words):
    """Encode words as a little-endian program image."""
    return struct.pack(f"<{len(words)}H", *words)


@pytest.fixture
def assemble():
    return pack_words


@pytest.fixture
def machine():
    """Factory: load words into a fresh VM with a buffered console."""
    def _machine(words, lines=(), max_cycles=10000, trace=False):
        vm = VirtualMachine(console=Console.buffered(lines), max_cycles=max_cycles, trace=trace)
        vm.load_words(list(words))
        return vm
    return _machine
