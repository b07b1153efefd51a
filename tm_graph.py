"""
State graph derivation.

Turns a transition table into vertices (one per state) and edges, where all
transitions sharing an ordered (source, target) pair are merged into one edge
carrying one label per transition. Each transition keeps its instruction and
edge so that a running machine's step can be traced back to the edge that
produced it.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from tm_model import (AnyInstruction, Instruction, MultiTapeInstruction, MultiTapeTable, SingleTapeTable,
                      TransitionTable, pattern_matches)

VISIBLE_BLANK = '␣'


@dataclass(eq=False)
class Vertex:
    label: str
    # symbol or pattern -> TransitionEntry; None for a halting state
    transitions: Optional[Dict[str, 'TransitionEntry']] = field(default=None, repr=False)


@dataclass(eq=False)
class Edge:
    source: Vertex
    target: Vertex
    labels: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class TransitionEntry:
    instruction: AnyInstruction
    edge: Edge


def visible_space(c: str, blank: str = ' ') -> str:
    return VISIBLE_BLANK if c == blank or c == ' ' else c


def label_for_single_tape(symbol: str, instruction: Instruction, blank: str = ' ') -> str:
    write = instruction.write if instruction.write is not None else symbol
    return f"{visible_space(symbol, blank)} → {visible_space(write, blank)},{instruction.move}"


def label_for_multi_tape(pattern: str, instruction: MultiTapeInstruction, blank: str = ' ') -> str:
    writes = instruction.write or (None,) * len(pattern)
    write = ''.join(visible_space(w if w is not None else p, blank) for p, w in zip(pattern, writes))
    move = ''.join(str(m) for m in instruction.move) if instruction.move else 'S' * len(pattern)
    read = ''.join(visible_space(p, blank) for p in pattern)
    return f"{read} → {write},{move}"


def derive_graph(table: TransitionTable, blank: str = ' ') -> Tuple[Dict[str, Vertex], List[Edge]]:
    """
    Derive the state graph of a validated table.

    Args:
        table: A SingleTapeTable or MultiTapeTable from the parser.
        blank: The blank symbol, drawn as a visible marker in labels.

    Returns:
        (vertices, edges): vertices maps every state to its Vertex; edges has
        at most one Edge per ordered (source, target) pair, with labels in
        table order.
    """
    vertices = {state: Vertex(state) for state in table.states}
    all_edges: List[Edge] = []

    for state, vertex in vertices.items():
        transitions = table.states[state]
        if transitions is None:
            continue
        cache: Dict[str, Edge] = {}

        def edge_to(target, label):
            if target not in cache:
                cache[target] = Edge(vertex, vertices[target])
                all_edges.append(cache[target])
            cache[target].labels.append(label)
            return cache[target]

        if isinstance(table, SingleTapeTable):
            items = [(symbol, instruction, label_for_single_tape(symbol, instruction, blank))
                     for symbol, instruction in transitions.items()]
        elif isinstance(table, MultiTapeTable):
            items = [(rule.pattern, rule.instruction, label_for_multi_tape(rule.pattern, rule.instruction, blank))
                     for rule in transitions]
        else:
            raise TypeError(f"not a transition table: {table!r}")

        vertex.transitions = {}
        for key, instruction, label in items:
            target = instruction.next_state if instruction.next_state is not None else state
            vertex.transitions[key] = TransitionEntry(instruction, edge_to(target, label))

    return vertices, all_edges


class StateGraph:
    """Vertices and merged edges of a machine, with edge lookup for a running machine."""

    def __init__(self, table: TransitionTable, blank: str = ' '):
        self.table = table
        self.vertices, self.edges = derive_graph(table, blank)

    def get_vertex(self, state: str) -> Vertex:
        try:
            return self.vertices[state]
        except KeyError:
            raise KeyError(f"not a valid state: {state!r}") from None

    def get_instruction_and_edge(self, state: str,
                                 symbols: Union[str, Sequence[str]]) -> Optional[TransitionEntry]:
        """
        Find the transition taken from state on the symbol(s) read.

        Single-tape graphs look the symbol up directly; multi-tape graphs
        return the first rule whose pattern matches. None means the machine
        halts.
        """
        vertex = self.get_vertex(state)
        if vertex.transitions is None:
            return None
        if isinstance(self.table, SingleTapeTable):
            symbol = symbols if isinstance(symbols, str) else symbols[0]
            return vertex.transitions.get(symbol)
        for pattern, entry in vertex.transitions.items():
            if pattern_matches(pattern, symbols, self.table.wild):
                return entry
        return None


def animated_transition(graph: StateGraph, callback: Callable[[Edge], None]):
    """
    Create a transition function that reports each edge taken.

    The returned function can be passed to TuringMachine as its transition;
    callback receives the Edge every time the function resolves a
    transition, before the instruction is returned.
    """
    def transition(state, symbols):
        entry = graph.get_instruction_and_edge(state, symbols)
        if entry is None:
            return None
        callback(entry.edge)
        return entry.instruction
    return transition
