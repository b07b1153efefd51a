"""
Turing machine execution engine.

The engine owns the current state and the tapes. Transitions come from an
injected function (state, symbols) -> instruction or None, so that a caller
can observe or animate each transition; table_transition() builds the plain
table-backed one.

A machine halts when no instruction applies, whether the state is a declared
halting state or simply has no matching rule.
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from tm_model import AnyInstruction, Instruction, MultiTapeTable, SingleTapeTable, Spec, TransitionTable
from tm_tape import Move, Tape

logger = logging.getLogger(__name__)

TransitionFunction = Callable[[str, Tuple[str, ...]], Optional[AnyInstruction]]
StateChangeCallback = Callable[[str, str], None]


def table_transition(table: TransitionTable) -> TransitionFunction:
    """Return a transition function backed by a parsed table."""
    if isinstance(table, SingleTapeTable):
        return lambda state, symbols: table.lookup(state, symbols[0])
    if isinstance(table, MultiTapeTable):
        return lambda state, symbols: table.lookup(state, symbols)
    raise TypeError(f"not a transition table: {table!r}")


def tape_operations(instruction: AnyInstruction, arity: int) -> List[Tuple[Optional[str], Move]]:
    """
    Expand an instruction into one (write, move) pair per tape.

    Raises ValueError if the instruction does not fit the number of tapes.
    """
    if isinstance(instruction, Instruction):
        if arity != 1:
            raise ValueError(f"single-tape instruction applied to {arity} tapes")
        return [(instruction.write, instruction.move)]

    writes = instruction.write if instruction.write is not None else (None,) * arity
    moves = instruction.move if instruction.move is not None else (Move.STAY,) * arity
    if len(writes) != arity or len(moves) != arity:
        raise ValueError(f"instruction {instruction!r} does not match {arity} tapes")
    return list(zip(writes, moves))


class TuringMachine:
    """
    A single- or multi-tape Turing machine.

    Args:
        transition: Function (state, symbols read) -> instruction, or None to halt.
        start_state: The initial state.
        tapes: One Tape per tape of the machine, in arity order.
        on_state_change: Optional callback(old_state, new_state), called inside
                         step() right after the state is updated.
    """

    def __init__(self, transition: TransitionFunction, start_state: str, tapes: Sequence[Tape],
                 on_state_change: Optional[StateChangeCallback] = None):
        if not tapes:
            raise ValueError("a machine needs at least one tape")
        self.transition = transition
        self._state = start_state
        self._tapes = list(tapes)
        self.on_state_change = on_state_change

    @classmethod
    def from_spec(cls, spec: Spec, input: Optional[str] = None,
                  transition: Optional[TransitionFunction] = None,
                  on_state_change: Optional[StateChangeCallback] = None) -> 'TuringMachine':
        """
        Build a machine at its start configuration.

        The input (defaulting to the spec's input) goes on the first tape;
        the other tapes start blank.
        """
        if input is None:
            input = spec.input
        tapes = [Tape(spec.blank, input)] + [Tape(spec.blank) for _ in range(spec.arity - 1)]
        if transition is None:
            transition = table_transition(spec.table)
        return cls(transition, spec.start_state, tapes, on_state_change=on_state_change)

    @property
    def current_state(self) -> str:
        return self._state

    @property
    def tapes(self) -> List[Tape]:
        return self._tapes

    @property
    def arity(self) -> int:
        return len(self._tapes)

    def read(self, tape_index: int = 0) -> str:
        return self._tapes[tape_index].read()

    def read_all(self) -> Tuple[str, ...]:
        return tuple(tape.read() for tape in self._tapes)

    def next_instruction(self) -> Optional[AnyInstruction]:
        return self.transition(self._state, self.read_all())

    @property
    def is_halted(self) -> bool:
        return self.next_instruction() is None

    def step(self) -> bool:
        """
        Step to the next configuration.

        Returns:
            True if a transition was applied, False if the machine halted
            (in which case nothing is mutated).
        """
        instruction = self.next_instruction()
        if instruction is None:
            logger.debug("halted in state %r", self._state)
            return False
        self.apply(instruction)
        return True

    def apply(self, instruction):
        """Apply an instruction already returned by next_instruction."""
        operations = tape_operations(instruction, self.arity)
        for tape, (write, move) in zip(self._tapes, operations):
            if write is not None:
                tape.write(write)
            tape.move(move)

        if instruction.next_state is not None:
            old_state = self._state
            self._state = instruction.next_state
            if self.on_state_change is not None:
                self.on_state_change(old_state, self._state)
        logger.debug("step -> %r", self._state)

    def __str__(self):
        return '\n'.join([self._state] + [str(tape) for tape in self._tapes])
