"""Character devices: console output and line-buffered input.

The `in` instruction is the only blocking operation of the machine. It is
modelled as one synchronous readline() call on a LineSource, made only when
the machine's input buffer is empty, so tests can script input lines instead
of reading from a terminal.
"""

import io
import sys
from typing import Iterable, List, Optional, Protocol, TextIO

from .errors import InputExhausted
from .state import MODULO, MachineState

REPLACEMENT_CHAR = "\ufffd"
SURROGATE_MIN = 0xD800
SURROGATE_MAX = 0xDFFF


class LineSource(Protocol):
    """Anything that yields one line of input per call.

    readline() returns the line including its terminator, or "" at end
    of input.
    """

    def readline(self) -> str:
        ...


class StdinLineSource:
    """Blocking line source reading from a text stream (stdin by default)."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    def readline(self) -> str:
        stream = self.stream if self.stream is not None else sys.stdin
        return stream.readline()


class ScriptedLineSource:
    """Line source replaying a fixed list of lines.

    Lines without a terminator get one. Once the script is used up, reads
    fall through to `fallback` if given, else report end of input.

    Attributes:
        lines: Remaining scripted lines
        fallback: Optional LineSource used after the script runs out
    """

    def __init__(self, lines: Iterable[str], fallback: Optional[LineSource] = None):
        self.lines: List[str] = [
            line if line.endswith("\n") else line + "\n" for line in lines
        ]
        self.fallback = fallback

    @classmethod
    def from_text(cls, text: str, fallback: Optional[LineSource] = None) -> "ScriptedLineSource":
        return cls(text.splitlines(), fallback=fallback)

    def readline(self) -> str:
        if self.lines:
            return self.lines.pop(0)
        if self.fallback is not None:
            return self.fallback.readline()
        return ""


class Console:
    """Character I/O for one machine.

    Only an in-memory (StringIO) sink keeps the emitted text; a console
    writing to stdout or a file keeps nothing but a character count, so
    programs that never halt do not grow memory.

    Attributes:
        line_source: Where input lines come from
        sink: Text stream receiving emitted characters
        chars_written: Number of characters emitted so far
    """

    def __init__(self, line_source: Optional[LineSource] = None, sink: Optional[TextIO] = None):
        self.line_source = line_source if line_source is not None else StdinLineSource()
        self.sink = sink
        self.chars_written = 0

    @classmethod
    def buffered(cls, lines: Iterable[str] = ()) -> "Console":
        """Console with scripted input and an in-memory sink."""
        return cls(ScriptedLineSource(lines), io.StringIO())

    @property
    def output(self) -> str:
        """Text emitted so far; empty unless the sink is in-memory."""
        if isinstance(self.sink, io.StringIO):
            return self.sink.getvalue()
        return ""

    def write_char(self, code: int) -> None:
        """Emit one character.

        Surrogate code points have no encoding and are emitted as U+FFFD.
        A character the sink's encoding cannot represent is emitted as "?".
        """
        char = REPLACEMENT_CHAR if SURROGATE_MIN <= code <= SURROGATE_MAX else chr(code)
        sink = self.sink if self.sink is not None else sys.stdout
        try:
            sink.write(char)
        except UnicodeEncodeError:
            sink.write("?")
        self.chars_written += 1
        if char == "\n":
            sink.flush()

    def read_char(self, state: MachineState) -> int:
        """Dequeue the next input character, refilling the buffer if empty.

        Args:
            state: Machine whose input buffer is consumed

        Returns:
            Code point of the character, reduced to the word range

        Raises:
            InputExhausted: If the line source has no more input
        """
        if not state.input_buffer:
            line = self.line_source.readline()
            if not line:
                raise InputExhausted("Input exhausted")
            state.input_buffer.extend(line)
        return ord(state.input_buffer.popleft()) % MODULO
