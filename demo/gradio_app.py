"""Synacor VM Interactive Demo.

A Gradio web interface for running and inspecting Synacor VM programs.

Usage:
    cd /path/to/synacor-vm
    python demo/gradio_app.py

Features:
    - Upload a program image or run a built-in example
    - Supply input lines for the IN instruction
    - See machine output, final registers and fault details
    - Step-by-step execution trace
"""

import struct
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from synacor_vm import Console, CycleLimitExceeded, VirtualMachine, VMError

R0, R1, R2 = 32768, 32769, 32770


# =============================================================================
# Example Programs (word lists)
# =============================================================================

EXAMPLE_PROGRAMS = {
    "Hello": [
        19, ord("H"), 19, ord("e"), 19, ord("l"), 19, ord("l"), 19, ord("o"),
        19, ord("\n"),
        0,
    ],

    "Countdown 9..1": [
        1, R0, 9,            # 0: set r0 9
        9, R1, R0, 48,       # 3: add r1 r0 '0'
        19, R1,              # 7: out r1
        9, R0, R0, 32767,    # 9: add r0 r0 -1
        7, R0, 3,            # 13: jt r0 3
        19, ord("\n"),       # 16: out '\n'
        0,                   # 18: halt
    ],

    "Echo one line": [
        20, R0,              # 0: in r0
        19, R0,              # 2: out r0
        4, R1, R0, 10,       # 4: eq r1 r0 '\n'
        8, R1, 0,            # 8: jf r1 0
        0,                   # 11: halt
    ],

    "Call and return": [
        17, 5,               # 0: call 5
        19, ord("!"),        # 2: out '!'
        0,                   # 4: halt
        19, ord("f"),        # 5: out 'f'
        18,                  # 7: ret
    ],

    "Stack underflow": [
        3, R0,               # 0: pop r0
        0,
    ],
}


def pack_words(words) -> bytes:
    """Encode words as a little-endian program image."""
    return struct.pack(f"<{len(words)}H", *words)


# =============================================================================
# Execution Functions
# =============================================================================

def run_program(uploaded: bytes, example_name: str, input_text: str, max_cycles: int) -> tuple:
    """Execute a program image and return results.

    Args:
        uploaded: Uploaded program image bytes (takes precedence)
        example_name: Built-in example to run when nothing is uploaded
        input_text: Input lines for the IN instruction
        max_cycles: Maximum execution cycles

    Returns:
        Tuple of (summary_text, output_text, trace_text, registers_text)
    """
    if uploaded:
        image = uploaded
    elif example_name in EXAMPLE_PROGRAMS:
        image = pack_words(EXAMPLE_PROGRAMS[example_name])
    else:
        return "Error: No program provided", "", "", ""

    console = Console.buffered((input_text or "").splitlines())
    vm = VirtualMachine(console=console, max_cycles=int(max_cycles), trace=True)

    try:
        vm.load_program(image)
    except VMError as e:
        return f"Error: {e}", "", "", ""

    try:
        vm.run()
    except CycleLimitExceeded as e:
        runtime_msg = str(e)
    else:
        runtime_msg = None

    # Format summary
    summary = vm.get_summary()
    summary_lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Cycles: {summary['cycles']}",
        f"Status: {summary['status']}",
        f"Stack depth: {summary['stack_depth']}",
    ]
    if runtime_msg:
        summary_lines.append(f"\nRuntime: {runtime_msg}")
    if summary["fault"]:
        fault = summary["fault"]
        summary_lines.append(f"\nFault: {fault['kind']} at address {fault['address']}")
        summary_lines.append(f"  {fault['message']}")
    summary_text = "\n".join(summary_lines)

    # Format trace
    trace = vm.get_trace()
    trace_lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    for entry in trace[:100]:  # Limit to 100 entries
        trace_lines.append(f"\n--- Cycle {entry.cycle} (PC={entry.address}) ---")
        trace_lines.append(f"Instruction: {entry.instruction}")
        if entry.error:
            trace_lines.append(f"Error:       {entry.error}")

        changes = []
        for index, (before, after) in enumerate(
            zip(entry.pre_state["registers"], entry.post_state["registers"])
        ):
            if before != after:
                changes.append(f"r{index}: {before} -> {after}")
        if changes:
            trace_lines.append(f"Changes:     {', '.join(changes)}")

    if len(trace) > 100:
        trace_lines.append(f"\n... ({len(trace) - 100} more entries)")
    trace_text = "\n".join(trace_lines)

    # Format registers
    reg_lines = [
        "FINAL REGISTERS",
        "=" * 30,
    ]
    for reg, value in summary["registers"].items():
        marker = " *" if value != 0 else ""
        reg_lines.append(f"  {reg}: {value:>6}{marker}")
    registers_text = "\n".join(reg_lines)

    return summary_text, console.output, trace_text, registers_text


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="Synacor VM Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # Synacor VM

        A 16-bit word virtual machine: 32768 words of memory, eight registers,
        an unbounded stack and 22 opcodes.

        **Pipeline**: `fetch -> decode -> opcode -> registry -> state`
        """)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="Hello",
                    label="Built-in Example"
                )

                program_file = gr.File(
                    label="Program Image (.bin, overrides example)",
                    type="binary"
                )

                input_text = gr.Textbox(
                    label="Input Lines",
                    lines=5,
                    placeholder="Lines fed to the IN instruction..."
                )

                gr.Markdown("### Settings")
                max_cycles = gr.Slider(
                    minimum=100,
                    maximum=1000000,
                    value=100000,
                    step=100,
                    label="Max Cycles"
                )

                run_button = gr.Button("Run Program", variant="primary")

            with gr.Column(scale=3):
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    registers_output = gr.Textbox(
                        label="Final Registers",
                        lines=10,
                        interactive=False
                    )

                machine_output = gr.Textbox(
                    label="Machine Output",
                    lines=10,
                    interactive=False
                )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("Instruction Set Reference", open=False):
            gr.Markdown("""
            | Op | Instruction | Semantics |
            |----|-------------|-----------|
            | 0 | `halt` | Stop execution |
            | 1 | `set a b` | a := b |
            | 2 | `push a` | Push a |
            | 3 | `pop a` | a := pop() |
            | 4 | `eq a b c` | a := 1 if b == c else 0 |
            | 5 | `gt a b c` | a := 1 if b > c else 0 |
            | 6 | `jmp a` | Jump to a |
            | 7 | `jt a b` | Jump to b if a != 0 |
            | 8 | `jf a b` | Jump to b if a == 0 |
            | 9 | `add a b c` | a := (b + c) % 32768 |
            | 10 | `mult a b c` | a := (b * c) % 32768 |
            | 11 | `mod a b c` | a := b % c |
            | 12 | `and a b c` | a := b & c |
            | 13 | `or a b c` | a := b \\| c |
            | 14 | `not a b` | a := 15-bit complement of b |
            | 15 | `rmem a b` | a := memory[b] |
            | 16 | `wmem a b` | memory[a] := b |
            | 17 | `call a` | Push next address, jump to a |
            | 18 | `ret` | Jump to pop(); halt if stack empty |
            | 19 | `out a` | Print character a |
            | 20 | `in a` | a := next input character |
            | 21 | `noop` | No operation |

            **Operands**: 0-32767 literal, 32768-32775 registers r0-r7, 32776+ invalid
            """)

        run_button.click(
            fn=run_program,
            inputs=[program_file, example_dropdown, input_text, max_cycles],
            outputs=[summary_output, machine_output, trace_output, registers_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
