from collections import Counter

import pytest

from tm_engine import TuringMachine
from tm_graph import StateGraph, animated_transition, derive_graph
from tm_model import Instruction
from tm_parser import parse_spec
from tm_tape import Move


SINGLE = """
blank: ' '
start state: a
table:
  a:
    0: {R: b}
    1: {write: ' ', R: b}
    ' ': L
  b:
    [0,1]: {L: a}
    x: {L: c}
  c:
"""

MULTI = """
blank: '_'
wild: '*'
type: 3tape
start state: s
table:
  s:
    '0**': {write: '1**', move: RSL, next: t}
    '1*1': {move: SSS}
    '___': {next: t}
  t: {}
"""


def test_one_vertex_per_state():
    vertices, _ = derive_graph(parse_spec(SINGLE).table)
    assert list(vertices) == ['a', 'b', 'c']
    assert vertices['c'].transitions is None
    assert vertices['a'].label == 'a'


def test_edges_are_merged_per_source_and_target():
    _, edges = derive_graph(parse_spec(SINGLE).table)
    pairs = Counter((edge.source.label, edge.target.label) for edge in edges)
    assert all(count == 1 for count in pairs.values())
    by_pair = {(edge.source.label, edge.target.label): edge for edge in edges}
    assert set(by_pair) == {('a', 'b'), ('a', 'a'), ('b', 'a'), ('b', 'c')}
    assert by_pair[('a', 'b')].labels == ['0 → 0,R', '1 → ␣,R']
    assert by_pair[('a', 'a')].labels == ['␣ → ␣,L']
    assert by_pair[('b', 'a')].labels == ['0 → 0,L', '1 → 1,L']


def test_blank_symbol_is_drawn_visibly():
    spec = parse_spec("blank: '0'\nstart state: q\ntable:\n  q:\n    0: {write: 1, R: q}\n")
    graph = StateGraph(spec.table, spec.blank)
    assert graph.edges[0].labels == ['␣ → 1,R']


def test_multi_tape_labels_and_edges():
    spec = parse_spec(MULTI)
    graph = StateGraph(spec.table, spec.blank)
    by_pair = {(edge.source.label, edge.target.label): edge for edge in graph.edges}
    assert by_pair[('s', 't')].labels == ['0** → 1**,RSL', '␣␣␣ → ␣␣␣,SSS']
    assert by_pair[('s', 's')].labels == ['1*1 → 1*1,SSS']


def test_single_tape_lookup():
    spec = parse_spec(SINGLE)
    graph = StateGraph(spec.table, spec.blank)
    entry = graph.get_instruction_and_edge('a', '1')
    assert entry.instruction == Instruction(Move.RIGHT, write=' ', next_state='b')
    assert entry.edge.target is graph.get_vertex('b')
    assert graph.get_instruction_and_edge('a', ('1',)) is entry
    assert graph.get_instruction_and_edge('a', 'z') is None
    assert graph.get_instruction_and_edge('c', '0') is None
    with pytest.raises(KeyError):
        graph.get_instruction_and_edge('nowhere', '0')


def test_multi_tape_lookup_is_first_match():
    spec = parse_spec(MULTI)
    graph = StateGraph(spec.table, spec.blank)
    entry = graph.get_instruction_and_edge('s', ('0', '1', '1'))
    assert entry.edge.labels[0] == '0** → 1**,RSL'
    assert graph.get_instruction_and_edge('s', ('1', 'x', '1')).edge.source.label == 's'
    assert graph.get_instruction_and_edge('s', ('1', 'x', '0')) is None


def test_animated_transition_reports_edges():
    spec = parse_spec(SINGLE)
    graph = StateGraph(spec.table, spec.blank)
    taken = []
    machine = TuringMachine.from_spec(spec, input='01', transition=animated_transition(graph, taken.append))
    assert machine.step()
    assert machine.current_state == 'b'
    assert taken == [graph.get_instruction_and_edge('a', '0').edge]
