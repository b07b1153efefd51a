"""
Transition table model.

The parser produces one of two table shapes, kept as distinct types so that
the engine and the graph deriver dispatch on the type rather than on the
runtime shape of the data:

    SingleTapeTable: state -> symbol -> Instruction
    MultiTapeTable:  state -> ordered rules (pattern, MultiTapeInstruction)

A state mapped to None is a halting state. Tables are read-only once built.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple, Union

from tm_tape import Move


class MachineType(Enum):
    ONE_TAPE = '1tape'
    THREE_TAPE = '3tape'

    @property
    def arity(self) -> int:
        return _ARITY[self]


_ARITY = {MachineType.ONE_TAPE: 1, MachineType.THREE_TAPE: 3}


@dataclass(frozen=True)
class Instruction:
    """
    A single-tape instruction.

    write is None when the cell is left as it is; next_state is None when
    the state does not change.
    """
    move: Move
    write: Optional[str] = None
    next_state: Optional[str] = None


@dataclass(frozen=True)
class MultiTapeInstruction:
    """
    A multi-tape instruction.

    write: one entry per tape, each a symbol or None (tape not written),
           or None altogether when no tape is written.
    move:  one Move per tape, or None when every head stays.
    """
    write: Optional[Tuple[Optional[str], ...]] = None
    move: Optional[Tuple[Move, ...]] = None
    next_state: Optional[str] = None


@dataclass(frozen=True)
class Rule:
    pattern: str
    instruction: MultiTapeInstruction


def pattern_matches(pattern: Sequence[str], symbols: Sequence[str], wild: Optional[str] = None) -> bool:
    """True if every position of pattern is the wildcard or equals the symbol read."""
    if len(pattern) != len(symbols):
        return False
    return all(p == s or (wild is not None and p == wild) for p, s in zip(pattern, symbols))


@dataclass(frozen=True)
class SingleTapeTable:
    states: Mapping[str, Optional[Mapping[str, Instruction]]]

    arity = 1

    def __post_init__(self):
        object.__setattr__(self, 'states', MappingProxyType({
            state: None if transitions is None else MappingProxyType(dict(transitions))
            for state, transitions in self.states.items()
        }))

    def lookup(self, state: str, symbol: str) -> Optional[Instruction]:
        transitions = self.states.get(state)
        if transitions is None:
            return None
        return transitions.get(symbol)


@dataclass(frozen=True)
class MultiTapeTable:
    states: Mapping[str, Optional[Tuple[Rule, ...]]]
    arity: int = 3
    wild: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'states', MappingProxyType({
            state: None if rules is None else tuple(rules)
            for state, rules in self.states.items()
        }))

    def lookup(self, state: str, symbols: Sequence[str]) -> Optional[MultiTapeInstruction]:
        """Return the instruction of the first rule whose pattern matches, in declaration order."""
        rules = self.states.get(state)
        if rules is None:
            return None
        for rule in rules:
            if pattern_matches(rule.pattern, symbols, self.wild):
                return rule.instruction
        return None


TransitionTable = Union[SingleTapeTable, MultiTapeTable]
AnyInstruction = Union[Instruction, MultiTapeInstruction]


@dataclass(frozen=True)
class Spec:
    """A validated machine specification."""
    blank: str
    start_state: str
    table: TransitionTable
    machine_type: MachineType = MachineType.ONE_TAPE
    wild: Optional[str] = None
    input: Optional[str] = None

    @property
    def arity(self) -> int:
        return self.machine_type.arity
