#!/usr/bin/env python3
"""Synacor VM Command Line Interface.

Run a program image with the Synacor virtual machine.

Usage:
    python main.py --program challenge.bin
    python main.py --program challenge.bin --input walkthrough.txt -v
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from synacor_vm import (
    Console,
    CycleLimitExceeded,
    MalformedProgram,
    ScriptedLineSource,
    StdinLineSource,
    VirtualMachine,
    read_program,
)

logger = logging.getLogger("synacor_vm.cli")

EXIT_HALTED = 0
EXIT_FAULTED = 1
EXIT_CYCLE_LIMIT = 2


def configure_logging(verbosity: int) -> None:
    """Configure logging on stderr; stdout belongs to the machine."""
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:  # -vv or more
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
        force=True
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Synacor VM: 16-bit word virtual machine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run the challenge binary interactively
    python main.py --program challenge.bin

    # Replay scripted input, then continue on stdin
    python main.py --program challenge.bin --input walkthrough.txt

    # Stop after one million instructions and show the trace
    python main.py --program test.bin --max-cycles 1000000 --trace
        """
    )

    parser.add_argument(
        "--program", "-p",
        type=str,
        default="challenge.bin",
        help="Path to program image. Default: challenge.bin"
    )
    parser.add_argument(
        "--input", "-i",
        type=str,
        help="File of input lines replayed before reading stdin"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Maximum execution cycles. Default: unlimited"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print execution trace after the run"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Do not print the run summary"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv per-instruction debug)"
    )
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        words = read_program(args.program)
    except OSError as e:
        print(f"Error: Cannot read program {args.program}: {e}", file=sys.stderr)
        return EXIT_FAULTED
    except MalformedProgram as e:
        print(f"Error: Malformed program {args.program}: {e}", file=sys.stderr)
        return EXIT_FAULTED

    line_source = StdinLineSource()
    if args.input:
        try:
            script = Path(args.input).read_text()
        except OSError as e:
            print(f"Error: Cannot read input {args.input}: {e}", file=sys.stderr)
            return EXIT_FAULTED
        line_source = ScriptedLineSource.from_text(script, fallback=line_source)

    vm = VirtualMachine(
        console=Console(line_source),
        max_cycles=args.max_cycles,
        trace=args.trace
    )
    vm.load_words(words)
    logger.info("Running %s", args.program)

    try:
        result = vm.run()
    except CycleLimitExceeded as e:
        print(f"\nExecution stopped: {e}", file=sys.stderr)
        exit_code = EXIT_CYCLE_LIMIT
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        exit_code = EXIT_FAULTED
    else:
        exit_code = EXIT_HALTED if result.ok else EXIT_FAULTED

    if args.trace:
        vm.print_trace()

    if not args.quiet:
        summary = vm.get_summary()
        print(f"\nCycles: {summary['cycles']}", file=sys.stderr)
        print(f"Status: {summary['status']}", file=sys.stderr)
        if summary["fault"]:
            fault = summary["fault"]
            print(
                f"Fault: {fault['kind']} at address {fault['address']}: {fault['message']}",
                file=sys.stderr
            )

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
