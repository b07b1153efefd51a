import pytest

from tm_model import Instruction, MachineType, MultiTapeInstruction, MultiTapeTable, SingleTapeTable
from tm_parser import SpecErrorReason, TMParseError, TMSpecError, TMSyntaxError, _source_column, parse_spec
from tm_tape import Move


UNARY = """
blank: '0'
start state: q0
table:
  q0:
    1: {R: q0}
    0: {write: 1, R: halt}
  halt: {}
"""


def spec_error(text):
    with pytest.raises(TMSpecError) as excinfo:
        parse_spec(text)
    return excinfo.value


def test_parses_single_tape_machine():
    spec = parse_spec(UNARY)
    assert spec.blank == '0'
    assert spec.start_state == 'q0'
    assert spec.machine_type is MachineType.ONE_TAPE
    assert isinstance(spec.table, SingleTapeTable)
    assert spec.table.states['q0']['1'] == Instruction(Move.RIGHT, next_state='q0')
    assert spec.table.states['q0']['0'] == Instruction(Move.RIGHT, write='1', next_state='halt')
    assert spec.table.states['halt'] is None


def test_string_instructions():
    spec = parse_spec("""
blank: ' '
start state: a
table:
  a:
    x: L
    y: R
    z: S
    w: b
  b:
""")
    table = spec.table.states['a']
    assert table['x'] == Instruction(Move.LEFT)
    assert table['y'] == Instruction(Move.RIGHT)
    assert table['z'] == Instruction(Move.STAY)
    assert table['w'] == Instruction(Move.STAY, next_state='b')


def test_scalars_keep_their_spelling():
    spec = parse_spec("""
blank: 0
start state: 1
input: 011
table:
  1:
    n: {write: 0, R}
    0: L
""")
    assert spec.blank == '0'
    assert spec.start_state == '1'
    assert spec.input == '011'
    assert set(spec.table.states['1']) == {'n', '0'}
    assert spec.table.states['1']['n'].write == '0'


def test_symbol_groups_share_an_instruction():
    spec = parse_spec("""
blank: ' '
start state: right
table:
  right:
    [0,1,+]: R
    [' ',x]: {L: done}
  done:
""")
    transitions = spec.table.states['right']
    assert list(transitions) == ['0', '1', '+', ' ', 'x']
    assert transitions[' '] == Instruction(Move.LEFT, next_state='done')


def test_duplicate_symbol_in_group():
    err = spec_error("""
blank: ' '
start state: a
table:
  a:
    [0,1]: R
    1: L
""")
    assert err.reason is SpecErrorReason.DUPLICATE_SYMBOL
    assert err.details.state == 'a'
    assert err.details.problem_value == '1'


def test_null_key_is_the_tilde_symbol():
    spec = parse_spec("blank: ' '\nstart state: a\ntable:\n  a:\n    ~: R\n")
    assert set(spec.table.states['a']) == {'~'}


@pytest.mark.parametrize('key', ['01', '[0,ab]', "''"])
def test_symbols_are_single_characters(key):
    err = spec_error(f"blank: ' '\nstart state: a\ntable:\n  a:\n    {key}: R\n")
    assert err.reason is SpecErrorReason.INVALID_SYMBOL
    assert err.details.state == 'a'


def test_synonyms_are_substituted():
    spec = parse_spec("""
blank: ' '
start state: a
synonyms:
  accept: {R: done}
table:
  a:
    x: accept
  done: {}
""")
    assert spec.table.states['a']['x'] == Instruction(Move.RIGHT, next_state='done')


def test_synonym_cannot_use_another_synonym():
    err = spec_error("""
blank: ' '
start state: a
synonyms:
  first: {R: a}
  second: first
table:
  a:
    x: second
""")
    assert err.reason is SpecErrorReason.UNRECOGNIZED_STRING
    assert err.details.synonym == 'second'
    assert 'another synonym' in err.details.info
    assert 'second' in err.message


def test_undeclared_state_literal():
    err = spec_error("""
blank: ' '
start state: a
table:
  a:
    x: {R: nowhere}
""")
    assert err.reason is SpecErrorReason.UNDECLARED_STATE
    assert err.details.problem_value == 'nowhere'
    assert err.details.state == 'a'
    assert err.details.symbol == 'x'


def test_undeclared_state_in_synonym():
    err = spec_error("""
blank: ' '
start state: a
synonyms:
  go: {L: nowhere}
table:
  a:
    x: go
""")
    assert err.reason is SpecErrorReason.UNDECLARED_STATE
    assert err.details.problem_value == 'nowhere'
    assert err.details.synonym == 'go'


def test_bare_state_reference_must_be_declared():
    err = spec_error("""
blank: ' '
start state: a
table:
  a:
    x: nowhere
""")
    assert err.reason is SpecErrorReason.UNDECLARED_STATE


@pytest.mark.parametrize('text, reason', [
    ('', SpecErrorReason.EMPTY_DOCUMENT),
    ('just a string', SpecErrorReason.INVALID_DOCUMENT_TYPE),
    ("start state: a\ntable: {a: }", SpecErrorReason.MISSING_BLANK),
    ("blank: '01'\nstart state: a\ntable: {a: }", SpecErrorReason.INVALID_BLANK_LENGTH),
    ("blank: ' '\ntable: {a: }", SpecErrorReason.MISSING_START_STATE),
    ("blank: ' '\nstart state: ''\ntable: {a: }", SpecErrorReason.MISSING_START_STATE),
    ("blank: ' '\nstart state: a", SpecErrorReason.MISSING_TABLE),
    ("blank: ' '\nstart state: a\ntable: [a, b]", SpecErrorReason.INVALID_TABLE_TYPE),
    ("blank: ' '\nstart state: b\ntable: {a: }", SpecErrorReason.UNDECLARED_START_STATE),
    ("blank: ' '\nstart state: a\ntype: 2tape\ntable: {a: }", SpecErrorReason.INVALID_MACHINE_TYPE),
    ("blank: ' '\nstart state: a\nwild: '*'\ntable: {a: }", SpecErrorReason.UNEXPECTED_WILD),
    ("blank: ' '\nstart state: a\ntype: 3tape\nwild: '**'\ntable: {a: }", SpecErrorReason.INVALID_WILD_LENGTH),
    ("blank: ' '\nstart state: a\ntype: 3tape\nwild: ' '\ntable: {a: }", SpecErrorReason.CONFLICTING_WILD),
    ("blank: ' '\nstart state: a\nsynonyms: [x]\ntable: {a: }", SpecErrorReason.INVALID_SYNONYMS_TYPE),
    ("blank: ' '\nstart state: a\ntable: {a: 5}", SpecErrorReason.INVALID_STATE_ENTRY_TYPE),
])
def test_document_errors(text, reason):
    assert spec_error(text).reason is reason


@pytest.mark.parametrize('instruction, reason', [
    ('{}', SpecErrorReason.MISSING_MOVEMENT_DIRECTION),
    ('{write: x}', SpecErrorReason.MISSING_MOVEMENT_DIRECTION),
    ('{L: a, R: a}', SpecErrorReason.CONFLICTING_TAPE_MOVEMENTS),
    ('{S: a, R: a}', SpecErrorReason.CONFLICTING_TAPE_MOVEMENTS),
    ('{L: a, go: a}', SpecErrorReason.UNRECOGNIZED_KEY),
    ("{write: 'xy', L: a}", SpecErrorReason.INVALID_WRITE_SYMBOL),
    ('[L]', SpecErrorReason.INVALID_INSTRUCTION_TYPE),
    ('', SpecErrorReason.MISSING_INSTRUCTION),
])
def test_instruction_errors(instruction, reason):
    err = spec_error(f"blank: ' '\nstart state: a\ntable:\n  a:\n    x: {instruction}\n")
    assert err.reason is reason
    assert err.details.state == 'a'
    assert err.details.symbol == 'x'


def test_error_message_names_the_location():
    err = spec_error("blank: ' '\nstart state: a\ntable:\n  a:\n    x: {L: a, go: a}\n")
    assert err.message.startswith("Unrecognized key 'go' in the transition from state 'a' and symbol 'x'.")
    assert str(err) == err.message


def test_syntax_error_carries_position():
    with pytest.raises(TMSyntaxError) as excinfo:
        parse_spec("blank: ' '\ntable:\n  a: {R: a\n")
    assert excinfo.value.line is not None
    assert excinfo.value.column is not None
    assert isinstance(excinfo.value, TMParseError)


def test_duplicate_keys_are_a_syntax_error():
    with pytest.raises(TMSyntaxError) as excinfo:
        parse_spec("blank: ' '\nstart state: a\ntable:\n  a:\n    x: L\n    x: R\n")
    assert excinfo.value.line == 6


def test_syntax_error_column_points_into_the_raw_text():
    text = "blank: ' '\nstart state: a\ntable:\n  a:\n    [0,1]: R: a\n"
    with pytest.raises(TMSyntaxError) as excinfo:
        parse_spec(text)
    err = excinfo.value
    assert err.line == 5
    assert err.column == 13
    assert text.split('\n')[err.line - 1][err.column - 1] == ':'


def test_source_column_undoes_key_quoting():
    # indent 4, key '[0,1]'
    assert _source_column((4, 5), 2) == 2
    assert _source_column((4, 5), 6) == 5
    assert _source_column((4, 5), 14) == 12
    assert _source_column(None, 14) == 14


THREE_TAPE = """
blank: '_'
wild: '*'
type: 3tape
start state: q0
synonyms:
  stop: {next: done}
table:
  q0:
    '0**': RRR
    '0*1': {write: 'ab*', move: LSR, next: done}
    '___': stop
  done: {}
"""


def test_parses_three_tape_machine_in_declaration_order():
    spec = parse_spec(THREE_TAPE)
    assert spec.machine_type is MachineType.THREE_TAPE
    assert spec.arity == 3
    assert spec.wild == '*'
    assert isinstance(spec.table, MultiTapeTable)
    rules = spec.table.states['q0']
    assert [rule.pattern for rule in rules] == ['0**', '0*1', '___']
    assert rules[0].instruction == MultiTapeInstruction(move=(Move.RIGHT,) * 3)
    assert rules[1].instruction == MultiTapeInstruction(
        write=('a', 'b', None), move=(Move.LEFT, Move.STAY, Move.RIGHT), next_state='done')
    assert rules[2].instruction == MultiTapeInstruction(next_state='done')
    assert spec.table.states['done'] is None


@pytest.mark.parametrize('pattern, instruction, reason', [
    ("'01'", 'RRR', SpecErrorReason.INVALID_PATTERN),
    ("'0111'", 'RRR', SpecErrorReason.INVALID_PATTERN),
    ("'011'", 'RXR', SpecErrorReason.INVALID_TAPE_MOVE),
    ("'011'", 'RR', SpecErrorReason.UNRECOGNIZED_STRING),
    ("'011'", "{write: '01'}", SpecErrorReason.INVALID_WRITE_LENGTH),
    ("'011'", '{move: RRRR}', SpecErrorReason.INVALID_MOVE_LENGTH),
    ("'011'", '{move: RQR}', SpecErrorReason.INVALID_MOVE_CHAR),
    ("'011'", '{L: q0}', SpecErrorReason.UNRECOGNIZED_KEY),
    ("'011'", '{next: nowhere}', SpecErrorReason.UNDECLARED_STATE),
])
def test_three_tape_errors(pattern, instruction, reason):
    err = spec_error(f"blank: '_'\ntype: 3tape\nstart state: q0\ntable:\n  q0:\n    {pattern}: {instruction}\n")
    assert err.reason is reason
    assert err.details.state == 'q0'


def test_three_tape_synonym_cannot_use_another_synonym():
    err = spec_error("""
blank: '_'
type: 3tape
start state: q0
synonyms:
  fwd: RRR
  again: fwd
table:
  q0:
    '___': again
""")
    assert err.reason is SpecErrorReason.UNRECOGNIZED_STRING
    assert err.details.synonym == 'again'


def test_table_is_read_only():
    spec = parse_spec(UNARY)
    with pytest.raises(TypeError):
        spec.table.states['q0'] = None
    with pytest.raises(TypeError):
        spec.table.states['q0']['1'] = None
