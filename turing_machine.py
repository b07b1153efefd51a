"""
Turing Machine Simulator

Machines are written in YAML (see tm_parser) and run on one or three tapes:

    blank: '0'
    start state: q0
    table:
      q0:
        1: {R: q0}
        0: {write: 1, R: halt}
      halt: {}

Execution histories are lists of 5-tuples:
    (current_state, reads, writes, moves, next_state)

Where:
    - current_state: the state the machine was in
    - reads: the symbols read, one per tape
    - writes: the symbols written, one per tape (None for no write)
    - moves: 'L', 'R' or 'S', one per tape
    - next_state: the state after the step

Histories can be converted to numpy arrays for analysis.
"""

import numpy as np

from tm_engine import TuringMachine, tape_operations
from tm_parser import parse_spec


def run_machine(machine, max_steps=None, verbose=True):
    """
    Step a machine until it halts.

    Args:
        machine: A TuringMachine
        max_steps: Maximum steps before forced stop (None for unlimited)
        verbose: If True, print each step

    Returns:
        Tuple of (steps_taken, history, halted)
        where history is a list of 5-tuples executed at each step
        and halted is True if no transition applied
    """
    steps = 0
    history = []

    if verbose:
        print(f"Starting Turing Machine simulation")
        print(f"Initial state: {machine.current_state}, Tapes: {machine.arity}")
        print("-" * 60)

    while True:
        state = machine.current_state
        reads = machine.read_all()
        instruction = machine.next_instruction()
        if instruction is None:
            if verbose:
                print(f"\nNo transition for state={state}, read={reads!r}. Halting.")
                print(f"\nMachine halted after {steps} steps.")
            return steps, history, True

        if max_steps is not None and steps >= max_steps:
            if verbose:
                print(f"\nReached maximum steps ({max_steps}), stopping.")
            return steps, history, False

        operations = tape_operations(instruction, machine.arity)
        writes = tuple(write for write, _ in operations)
        moves = tuple(str(move) for _, move in operations)

        machine.apply(instruction)
        history.append((state, reads, writes, moves, machine.current_state))
        steps += 1

        if verbose:
            write_display = ', '.join(repr(w) if w is not None else "(no write)" for w in writes)
            print(f"Step {steps}: State={state}, Read={reads!r} -> "
                  f"Write={write_display}, Move={''.join(moves)}, Next={machine.current_state}")


def run_yaml_machine(yaml_string, input=None, max_steps=None, verbose=True):
    """
    Parse and run a Turing machine from YAML format.

    Args:
        yaml_string: YAML string defining the machine
        input: Override the document's input string (first tape)
        max_steps: Maximum steps before stopping (None for unlimited)
        verbose: If True, print each step

    Returns:
        Tuple of (machine, steps, history, halted, spec)
    """
    spec = parse_spec(yaml_string)
    machine = TuringMachine.from_spec(spec, input=input)
    steps, history, halted = run_machine(machine, max_steps=max_steps, verbose=verbose)
    return machine, steps, history, halted, spec


def tape_to_string(tape, strip_blank=True):
    """
    Convert a tape back to a readable string.

    Args:
        tape: A Tape
        strip_blank: If True, trim blank cells from both ends

    Returns:
        String of every visited cell, left to right
    """
    result = ''.join(tape.contents())
    if strip_blank:
        result = result.strip(tape.blank)
    return result


def history_to_numpy(history, state_encoding=None, symbol_encoding=None, include_halt_row=True, n_tapes=None):
    """
    Convert execution history to a numpy array of shape (n_steps, 2 + 3 * n_tapes).

    Args:
        history: List of 5-tuples from run_machine
        state_encoding: Optional dict mapping state names to integers.
                        If None, states are auto-encoded alphabetically.
        symbol_encoding: Optional dict mapping tape symbols to integers.
                         If None, symbols are auto-encoded (sorted).
        include_halt_row: If True (default), adds a final row representing the
                          final state, with -1 in every other column.
        n_tapes: Number of tapes. Taken from the history when omitted, and
                 defaults to 1 for an empty history.

    Returns:
        Tuple of (array, state_encoding, symbol_encoding) where array has columns
        [current_state, read_0.., write_0.., move_0.., next_state]

    Encoding:
        - Direction: L=0, R=1, S=2
        - Write columns: -1 indicates no write (tape unchanged)
    """
    if n_tapes is None:
        n_tapes = len(history[0][1]) if history else 1
    if not history:
        return np.empty((0, 2 + 3 * n_tapes), dtype=int), state_encoding or {}, symbol_encoding or {}

    if state_encoding is None:
        all_states = set()
        for curr, _, _, _, nxt in history:
            all_states.add(curr)
            all_states.add(nxt)
        state_encoding = {state: i for i, state in enumerate(sorted(all_states))}

    if symbol_encoding is None:
        all_symbols = set()
        for _, reads, writes, _, _ in history:
            all_symbols.update(reads)
            all_symbols.update(w for w in writes if w is not None)
        symbol_encoding = {sym: i for i, sym in enumerate(sorted(all_symbols))}

    dir_encoding = {'L': 0, 'R': 1, 'S': 2}

    n_steps = len(history)
    total_rows = n_steps + 1 if include_halt_row else n_steps
    arr = np.full((total_rows, 2 + 3 * n_tapes), -1, dtype=np.int16)

    for i, (curr_state, reads, writes, moves, next_state) in enumerate(history):
        arr[i, 0] = state_encoding[curr_state]
        for t in range(n_tapes):
            arr[i, 1 + t] = symbol_encoding[reads[t]]
            if writes[t] is not None:
                arr[i, 1 + n_tapes + t] = symbol_encoding[writes[t]]
            arr[i, 1 + 2 * n_tapes + t] = dir_encoding[moves[t]]
        arr[i, -1] = state_encoding[next_state]

    if include_halt_row:
        arr[n_steps, -1] = state_encoding[history[-1][4]]

    return arr, state_encoding, symbol_encoding


def save_history_to_file(history, filepath, state_encoding=None, include_halt_row=True):
    """
    Save execution history to a .npy file.

    Returns:
        The state_encoding dict used
    """
    arr, encoding, _ = history_to_numpy(history, state_encoding, include_halt_row=include_halt_row)
    np.save(filepath, arr)
    return encoding


def visualize_tape(tape, radius=10):
    """
    Print the cells around the head, highlighting the head cell.

    Args:
        tape: A Tape
        radius: Number of cells to show on each side of the head
    """
    cells = tape.read_range(-radius, radius)
    row = ''.join(f"[{s}]" if i == radius else f" {s} " for i, s in enumerate(cells))
    print(f"Head at {tape.head_position}:")
    print(row)


# Unary increment: appends a 1 to a block of 1s
UNARY_INCREMENT_YAML = """
input: '11'
blank: '0'
start state: q0
table:
  q0:
    1: {R: q0}
    0: {write: 1, R: halt}
  halt: {}
"""


# 4-State Busy Beaver
# This machine writes 13 ones on the tape before halting
# It runs for 107 steps
BUSY_BEAVER_4_YAML = """
blank: '0'
start state: A
table:
  A:
    0: {write: 1, R: B}
    1: {write: 1, L: B}
  B:
    0: {write: 1, L: A}
    1: {write: 0, L: C}
  C:
    0: {write: 1, R: H}
    1: {write: 1, L: D}
  D:
    0: {write: 1, R: D}
    1: {write: 0, R: A}
  H:
"""


# Binary Adder Machine
# Adds two binary numbers: given input "a+b", produces "c b" where c = a+b
# Example: '11+1' => '100 1' (3+1=4)
BINARY_ADDER_YAML = """
input: '1011+11001'
blank: ' '
start state: right
table:
  # Start at the second number's rightmost digit.
  right:
    [0,1,+]: R
    ' ': {L: read}

  # Add each digit from right to left:
  # read the current digit of the second number,
  read:
    0: {write: c, L: have0}
    1: {write: c, L: have1}
    +: {write: ' ', L: rewrite}
  # and add it to the next place of the first number,
  # marking the place (using O or I) as already added.
  have0:
    [0,1]: L
    +: {L: add0}
  have1:
    [0,1]: L
    +: {L: add1}
  add0:
    [0,' ']: {write: O, R: back0}
    1: {write: I, R: back0}
    [O,I]: L
  add1:
    [0,' ']: {write: I, R: back1}
    1: {write: O, L: carry}
    [O,I]: L
  carry:
    [0,' ']: {write: 1, R: back1}
    1: {write: 0, L}
  # Then, restore the current digit, and repeat with the next digit.
  back0:
    [0,1,O,I,+]: R
    c: {write: 0, L: read}
  back1:
    [0,1,O,I,+]: R
    c: {write: 1, L: read}

  # Finish: rewrite place markers back to 0s and 1s.
  rewrite:
    O: {write: 0, L}
    I: {write: 1, L}
    [0,1]: L
    ' ': {R: done}
  done:
"""


# Three-tape copy
# Copies the 1s of the first tape onto the second tape.
# The wildcard in a write leaves that tape untouched.
THREE_TAPE_COPY_YAML = """
input: '111'
blank: '_'
wild: '*'
type: 3tape
start state: copy
synonyms:
  finish: {move: SSS, next: done}
table:
  copy:
    '1**': {write: '*1*', move: RRS}
    '_**': finish
  done: {}
"""


if __name__ == "__main__":
    print("=" * 60)
    print("TURING MACHINE SIMULATOR")
    print("=" * 60)
    print("\nRunning 4-State Busy Beaver")
    print("Expected: 13 ones written, 107 steps to halt\n")

    machine, steps, history, halted, spec = run_yaml_machine(BUSY_BEAVER_4_YAML, verbose=False)
    visualize_tape(machine.tapes[0], radius=8)

    ones = machine.tapes[0].contents().count('1')
    print(f"\n{'=' * 60}")
    print(f"RESULTS:")
    print(f"  Total steps: {steps}")
    print(f"  Ones on tape: {ones}")
    print(f"  Halted: {halted}")
    print(f"{'=' * 60}")

    print("\nConverting history to numpy array...")
    history_array, state_encoding, symbol_encoding = history_to_numpy(history, include_halt_row=halted)
    print(f"Array shape: {history_array.shape}")
    print(f"State encoding: {state_encoding}")
    print(f"Symbol encoding: {symbol_encoding}")
    print(f"\nFirst 5 steps (as numpy array):")
    print("  [curr_state, read, write, direction, next_state]")
    print(history_array[:5])

    print(f"\n{'=' * 60}")
    print("YAML MACHINE DEMO: BINARY ADDER")
    print("=" * 60)
    print("\nRunning binary adder: 1011 + 11001 = ?")
    print("(1011 binary = 11 decimal, 11001 binary = 25 decimal)")
    print("Expected result: 100100 binary = 36 decimal")
    print("-" * 60)

    machine, steps, history, halted, spec = run_yaml_machine(BINARY_ADDER_YAML, max_steps=1000, verbose=False)
    result_string = tape_to_string(machine.tapes[0])
    print(f"\nMachine halted: {halted}")
    print(f"Steps taken: {steps}")
    print(f"Final tape: '{result_string}'")
    result_binary = result_string.split()[0]
    print(f"Result: {result_binary} binary = {int(result_binary, 2)} decimal")

    print(f"\n{'=' * 60}")
    print("THREE-TAPE COPY")
    print("=" * 60)
    machine, steps, history, halted, spec = run_yaml_machine(THREE_TAPE_COPY_YAML, verbose=True)
    for i, tape in enumerate(machine.tapes):
        print(f"  Tape {i}: '{tape_to_string(tape)}'")
