"""
Turing Machine Specification Parser

Parses a YAML machine description into a validated Spec.

Example (single tape):
    input: '1101'
    blank: ' '
    start state: right
    synonyms:
      back: {L: rewind}
    table:
      right:
        [0,1]: R
        ' ': back
      rewind:
        [0,1]: L
        ' ': {R: done}
      done:

Example (three tapes):
    blank: '_'
    wild: '*'
    type: 3tape
    start state: copy
    table:
      copy:
        1**: {write: '11*', move: RRS}
        _**: {move: SSS, next: done}
      done: {}

Raises:
    TMSyntaxError: the text is not well-formed YAML (carries line/column).
    TMSpecError:   the YAML is not a valid machine (carries a reason code and
                   structured details).
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

import yaml

from tm_model import (Instruction, MachineType, MultiTapeInstruction, MultiTapeTable, Rule,
                      SingleTapeTable, Spec)
from tm_tape import Move

logger = logging.getLogger(__name__)

MOVES = {'L': Move.LEFT, 'R': Move.RIGHT, 'S': Move.STAY}
SINGLE_TAPE_KEYS = ('L', 'R', 'S', 'write')
MULTI_TAPE_KEYS = ('write', 'move', 'next')


class SpecErrorReason(Enum):
    EMPTY_DOCUMENT = 'The document is empty'
    INVALID_DOCUMENT_TYPE = 'The document has an invalid type'
    MISSING_BLANK = 'No blank symbol was specified'
    INVALID_BLANK_LENGTH = 'The blank symbol must be a string of length 1'
    MISSING_START_STATE = 'No start state was specified'
    UNDECLARED_START_STATE = 'The start state has to be declared in the transition table'
    MISSING_TABLE = 'Missing transition table'
    INVALID_TABLE_TYPE = 'Transition table has an invalid type'
    INVALID_WILD_LENGTH = 'The wildcard symbol must be a string of length 1'
    UNEXPECTED_WILD = 'A wildcard symbol is only supported by multi-tape machines'
    CONFLICTING_WILD = 'The wildcard symbol must differ from the blank symbol'
    INVALID_MACHINE_TYPE = 'Unknown machine type'
    INVALID_SYNONYMS_TYPE = 'Synonyms table has an invalid type'
    INVALID_STATE_ENTRY_TYPE = 'State entry has an invalid type'
    INVALID_INSTRUCTION_TYPE = 'Invalid instruction type'
    MISSING_INSTRUCTION = 'Missing instruction'
    UNRECOGNIZED_STRING = 'Unrecognized string'
    UNRECOGNIZED_KEY = 'Unrecognized key'
    MISSING_MOVEMENT_DIRECTION = 'Missing movement direction'
    CONFLICTING_TAPE_MOVEMENTS = 'Conflicting tape movements'
    INVALID_WRITE_SYMBOL = 'Write requires a string of length 1'
    UNDECLARED_STATE = 'Undeclared state'
    DUPLICATE_SYMBOL = 'Symbol listed more than once'
    INVALID_SYMBOL = 'A symbol must be a string of length 1'
    INVALID_PATTERN = 'Invalid pattern'
    INVALID_TAPE_MOVE = 'Invalid tape movement'
    INVALID_WRITE_LENGTH = 'Write requires one symbol per tape'
    INVALID_MOVE_LENGTH = 'Move requires one direction per tape'
    INVALID_MOVE_CHAR = 'Invalid movement direction'


@dataclass
class ErrorDetails:
    """Where a specification error occurred and how to fix it."""
    state: Optional[str] = None
    symbol: Optional[str] = None
    synonym: Optional[str] = None
    problem_value: Optional[str] = None
    info: Optional[str] = None
    suggestion: Optional[str] = None


class TMParseError(Exception):
    """Base class for everything parse_spec raises."""


class TMSyntaxError(TMParseError):
    """The document is not well-formed YAML."""

    def __init__(self, problem: str, line: Optional[int] = None, column: Optional[int] = None):
        self.problem = problem
        self.line = line
        self.column = column
        where = f" (line {line}, column {column})" if line is not None else ''
        super().__init__(f"{problem}{where}")


class TMSpecError(TMParseError):
    """The document is valid YAML but not a valid machine specification."""

    def __init__(self, reason: SpecErrorReason, details: Optional[ErrorDetails] = None, **fields):
        self.reason = reason
        self.details = details if details is not None else ErrorDetails(**fields)
        super().__init__(reason.value)

    @property
    def message(self) -> str:
        d = self.details
        problem_value = f" '{d.problem_value}'" if d.problem_value is not None else ''
        if d.state is not None and d.symbol is not None:
            location = f" in the transition from state '{d.state}' and symbol '{d.symbol}'"
        elif d.state is not None:
            location = f" for state '{d.state}'"
        elif d.synonym is not None:
            location = f" in the definition of synonym '{d.synonym}'"
        else:
            location = ''
        sentences = [f"{self.reason.value}{problem_value}{location}", d.info, d.suggestion]
        return ' '.join(s + '.' for s in sentences if s)

    def __str__(self):
        return self.message


class MachineLoader(yaml.SafeLoader):
    """
    SafeLoader that only resolves null and true/false implicitly.

    Everything else stays a string, so symbols like 0, 011 or n keep their
    spelling instead of turning into numbers or booleans.
    """

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            if isinstance(key_node, yaml.ScalarNode):
                if key_node.value in seen:
                    raise yaml.constructor.ConstructorError(
                        "while constructing a mapping", node.start_mark,
                        f"found duplicate key {key_node.value!r}", key_node.start_mark)
                seen.add(key_node.value)
        return super().construct_mapping(node, deep=deep)


MachineLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers
            if tag in ('tag:yaml.org,2002:null', 'tag:yaml.org,2002:merge')]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
MachineLoader.add_implicit_resolver(
    'tag:yaml.org,2002:bool',
    re.compile(r'^(?:true|True|TRUE|false|False|FALSE)$'),
    list('tTfF'))


def load_yaml(text: str) -> Any:
    """Load a YAML document, converting PyYAML errors to TMSyntaxError."""
    quoted_keys = {}
    try:
        return yaml.load(_preprocess_yaml_keys(text, quoted_keys), Loader=MachineLoader)
    except yaml.YAMLError as e:
        mark = getattr(e, 'problem_mark', None) or getattr(e, 'context_mark', None)
        problem = getattr(e, 'problem', None) or str(e)
        if mark is None:
            raise TMSyntaxError(problem) from e
        column = _source_column(quoted_keys.get(mark.line), mark.column)
        raise TMSyntaxError(problem, line=mark.line + 1, column=column + 1) from e


def _preprocess_yaml_keys(yaml_string, quoted_keys=None):
    """
    Quote list-style keys [a,b,c] so YAML reads them as strings.

    YAML doesn't support lists as dictionary keys, but symbol groups are
    written that way. Example: '[0,1,+]: R' becomes '"[0,1,+]": R'

    Args:
        yaml_string: The raw document
        quoted_keys: Optional dict, filled with line index -> (indent, key length)
                     for every rewritten line, so error columns can be mapped back
    """
    pattern = r'^(\s*)(\[[^\]"]+\])(\s*:)'

    processed_lines = []
    for i, line in enumerate(yaml_string.split('\n')):
        match = re.match(pattern, line)
        if match:
            indent, key, colon = match.groups()
            processed_lines.append(f'{indent}"{key}"{colon}{line[match.end():]}')
            if quoted_keys is not None:
                quoted_keys[i] = (len(indent), len(key))
        else:
            processed_lines.append(line)

    return '\n'.join(processed_lines)


def _source_column(quoted_key, column):
    """Map a 0-based column of a rewritten line back to the raw document."""
    if quoted_key is None:
        return column
    indent, key_length = quoted_key
    if column <= indent:
        return column
    # inside the quotes one character was inserted, after them two
    if column <= indent + key_length + 1:
        return column - 1
    return column - 2


def _parse_symbol_key(key):
    """
    Parse a symbol key which may be a single symbol or a group of symbols.

    Examples:
        '0' -> ['0']
        ' ' -> [' ']
        '[0,1,+]' -> ['0', '1', '+']
        "[' ',0]" -> [' ', '0']
        None -> ['~']
    """
    # a bare ~ key loads as null
    key_str = '~' if key is None else str(key)
    if len(key_str) > 1 and key_str.startswith('[') and key_str.endswith(']'):
        symbols = []
        for s in key_str[1:-1].split(','):
            stripped = s.strip()
            quoted = len(stripped) >= 2 and stripped[0] == stripped[-1] and stripped[0] in '\'"'
            symbols.append(stripped[1:-1] if quoted else stripped)
        return symbols
    return [key_str]


def parse_spec(text: str) -> Spec:
    """
    Parse and validate a machine description.

    Args:
        text: YAML source of the machine.

    Returns:
        A fully validated Spec. Nothing partially valid is ever returned.

    Raises:
        TMSyntaxError: on malformed YAML.
        TMSpecError:   on the first specification defect found.
    """
    obj = load_yaml(text)
    if obj is None:
        raise TMSpecError(SpecErrorReason.EMPTY_DOCUMENT, info=(
            "Every Turing machine requires a 'blank' tape symbol, a 'start state', "
            "and a transition 'table'"))
    if not isinstance(obj, dict):
        raise TMSpecError(SpecErrorReason.INVALID_DOCUMENT_TYPE, problem_value=type(obj).__name__,
                          info='The document should be a mapping of settings')

    blank_suggestion = "Examples: blank: ' ', blank: '0'"
    if obj.get('blank') is None:
        raise TMSpecError(SpecErrorReason.MISSING_BLANK, suggestion=blank_suggestion)
    blank = str(obj['blank'])
    if len(blank) != 1:
        raise TMSpecError(SpecErrorReason.INVALID_BLANK_LENGTH, problem_value=blank,
                          suggestion=blank_suggestion)

    start_state = obj.get('start state', obj.get('start_state'))
    if start_state is None or str(start_state) == '':
        raise TMSpecError(SpecErrorReason.MISSING_START_STATE,
                          suggestion="Assign one using 'start state: '")
    start_state = str(start_state)

    machine_type = _parse_machine_type(obj.get('type'))
    wild = _parse_wild(obj.get('wild'), machine_type, blank)

    table = obj.get('table')
    _check_table_type(table)
    table = {str(state): entry for state, entry in table.items()}

    input_string = obj.get('input')
    input_string = None if input_string is None else str(input_string)

    if machine_type is MachineType.ONE_TAPE:
        parser = _SingleTapeParser(table)
    else:
        parser = _MultiTapeParser(table, machine_type.arity, wild)
    synonyms = parser.parse_synonyms(obj.get('synonyms'))
    parsed_table = parser.parse_table(synonyms)

    if start_state not in parsed_table.states:
        raise TMSpecError(SpecErrorReason.UNDECLARED_START_STATE, problem_value=start_state)

    logger.debug("parsed %s machine with %d states", machine_type.value, len(parsed_table.states))
    return Spec(blank=blank, start_state=start_state, table=parsed_table,
                machine_type=machine_type, wild=wild, input=input_string)


def _parse_machine_type(val) -> MachineType:
    if val is None:
        return MachineType.ONE_TAPE
    try:
        return MachineType(str(val))
    except ValueError:
        raise TMSpecError(SpecErrorReason.INVALID_MACHINE_TYPE, problem_value=str(val),
                          suggestion="Use 'type: 1tape' or 'type: 3tape'") from None


def _parse_wild(val, machine_type: MachineType, blank: str) -> Optional[str]:
    if val is None:
        return None
    wild = str(val)
    if machine_type is MachineType.ONE_TAPE:
        raise TMSpecError(SpecErrorReason.UNEXPECTED_WILD, problem_value=wild,
                          suggestion="Remove 'wild' or use 'type: 3tape'")
    if len(wild) != 1:
        raise TMSpecError(SpecErrorReason.INVALID_WILD_LENGTH, problem_value=wild,
                          suggestion="Example: wild: '*'")
    if wild == blank:
        raise TMSpecError(SpecErrorReason.CONFLICTING_WILD, problem_value=wild)
    return wild


def _check_table_type(val):
    if val is None:
        raise TMSpecError(SpecErrorReason.MISSING_TABLE, suggestion="Specify one using 'table:'")
    if not isinstance(val, dict):
        raise TMSpecError(SpecErrorReason.INVALID_TABLE_TYPE, problem_value=type(val).__name__,
                          info='The transition table should be a nested mapping from states to symbols to instructions')


def _state_name(val) -> Optional[str]:
    return None if val is None else str(val)


class _TableParser:
    """
    Shared synonym and table passes.

    Subclasses provide the instruction grammar for their arity through
    parse_string and parse_object, and build the table type.
    """

    synonym_example = ''
    instruction_help = ''

    def __init__(self, table: Dict[str, Any]):
        self.table = table
        self.synonym_names: Set[str] = set()

    def parse_synonyms(self, val) -> Optional[Dict[str, Any]]:
        if val is None:
            return None
        if not isinstance(val, dict):
            raise TMSpecError(SpecErrorReason.INVALID_SYNONYMS_TYPE, problem_value=type(val).__name__,
                              info='Synonyms should be a mapping from string abbreviations to instructions'
                                   f' (e.g. {self.synonym_example})')
        self.synonym_names = {str(name) for name in val}
        result = {}
        for name, action_val in val.items():
            name = str(name)
            try:
                result[name] = self.parse_instruction(None, action_val)
            except TMSpecError as e:
                e.details.synonym = name
                if e.reason is SpecErrorReason.UNRECOGNIZED_STRING:
                    e.details.info = 'Note that a synonym cannot be defined using another synonym'
                raise
        return result

    def parse_table(self, synonyms):
        raise NotImplementedError

    def parse_instruction(self, synonyms, val):
        if val is None:
            raise TMSpecError(SpecErrorReason.MISSING_INSTRUCTION)
        if isinstance(val, str):
            instruction = self.parse_string(synonyms, val)
        elif isinstance(val, dict):
            instruction = self.parse_object(val)
        else:
            raise TMSpecError(SpecErrorReason.INVALID_INSTRUCTION_TYPE, problem_value=type(val).__name__,
                              info=self.instruction_help)
        return self.check_target(instruction)

    def check_target(self, instruction):
        if instruction.next_state is not None and instruction.next_state not in self.table:
            raise TMSpecError(SpecErrorReason.UNDECLARED_STATE, problem_value=instruction.next_state,
                              suggestion='Make sure to list all states in the transition table'
                                         ' and define their transitions (if any)')
        return instruction

    def check_synonym_chain(self, synonyms, val):
        """Reject a synonym name used inside a synonym definition."""
        if synonyms is None and val in self.synonym_names:
            raise TMSpecError(SpecErrorReason.UNRECOGNIZED_STRING, problem_value=val)

    def check_keys(self, val, allowed, info):
        # prevent typos: check for unrecognized keys
        for key in val:
            if key not in allowed:
                raise TMSpecError(SpecErrorReason.UNRECOGNIZED_KEY, problem_value=str(key), info=info)

    def state_entries(self):
        """Yield (state, mapping-or-None) with halting entries normalized to None."""
        for state, entry in self.table.items():
            if entry is None or entry == {}:
                yield state, None
            elif isinstance(entry, dict):
                yield state, entry
            else:
                raise TMSpecError(SpecErrorReason.INVALID_STATE_ENTRY_TYPE, problem_value=type(entry).__name__,
                                  state=state,
                                  info='Each state should map symbols to instructions.'
                                       ' An empty map signifies a halting state')


class _SingleTapeParser(_TableParser):
    synonym_example = 'accept: {R: accept}'
    instruction_help = ("An instruction can be a string (a direction L/R/S, a synonym or a state)"
                        " or a mapping (examples: {R: accept}, {write: ' ', L: start})")

    def parse_table(self, synonyms) -> SingleTapeTable:
        result = {}
        for state, entry in self.state_entries():
            if entry is None:
                result[state] = None
                continue
            transitions = {}
            for key, action_val in entry.items():
                symbols = _parse_symbol_key(key)
                try:
                    instruction = self.parse_instruction(synonyms, action_val)
                except TMSpecError as e:
                    e.details.state = state
                    e.details.symbol = str(key)
                    raise
                for symbol in symbols:
                    if len(symbol) != 1:
                        raise TMSpecError(SpecErrorReason.INVALID_SYMBOL, problem_value=symbol, state=state,
                                          symbol=str(key), info='Each tape cell holds a single character')
                    if symbol in transitions:
                        raise TMSpecError(SpecErrorReason.DUPLICATE_SYMBOL, problem_value=symbol, state=state,
                                          info='Each symbol can have only one instruction per state')
                    transitions[symbol] = instruction
            result[state] = transitions
        return SingleTapeTable(result)

    def parse_string(self, synonyms, val) -> Instruction:
        if val in MOVES:
            return Instruction(move=MOVES[val])
        if synonyms and val in synonyms:
            return synonyms[val]
        self.check_synonym_chain(synonyms, val)
        # a bare state name: switch state without moving
        return Instruction(move=Move.STAY, next_state=val)

    def parse_object(self, val) -> Instruction:
        self.check_keys(val, SINGLE_TAPE_KEYS,
                        'An instruction always has a tape movement L, R, or S (stay),'
                        ' and optionally can write a symbol')
        directions = [key for key in MOVES if key in val]
        if len(directions) > 1:
            raise TMSpecError(SpecErrorReason.CONFLICTING_TAPE_MOVEMENTS,
                              info='Each instruction needs exactly one movement direction, but more were found')
        if not directions:
            raise TMSpecError(SpecErrorReason.MISSING_MOVEMENT_DIRECTION)
        direction = directions[0]

        # write key is optional, but must contain a char value if present
        write = None
        if 'write' in val:
            write = str(val['write']) if val['write'] is not None else ''
            if len(write) != 1:
                raise TMSpecError(SpecErrorReason.INVALID_WRITE_SYMBOL, problem_value=write)
        return Instruction(move=MOVES[direction], write=write, next_state=_state_name(val[direction]))


class _MultiTapeParser(_TableParser):
    synonym_example = "accept: {move: RRR, next: accept}"

    def __init__(self, table, arity: int, wild: Optional[str]):
        super().__init__(table)
        self.arity = arity
        self.wild = wild

    @property
    def instruction_help(self):
        return (f"An instruction can be a string of {self.arity} directions (L/R/S), a synonym,"
                f" or a mapping with optional write, move and next keys")

    def parse_table(self, synonyms) -> MultiTapeTable:
        result = {}
        for state, entry in self.state_entries():
            if entry is None:
                result[state] = None
                continue
            rules: List[Rule] = []
            for key, action_val in entry.items():
                pattern = str(key)
                try:
                    if len(pattern) != self.arity:
                        raise TMSpecError(SpecErrorReason.INVALID_PATTERN, problem_value=pattern,
                                          info=f'A pattern must have exactly {self.arity} symbols, one per tape')
                    instruction = self.parse_instruction(synonyms, action_val)
                except TMSpecError as e:
                    e.details.state = state
                    e.details.symbol = pattern
                    raise
                rules.append(Rule(pattern, instruction))
            result[state] = rules
        return MultiTapeTable(result, arity=self.arity, wild=self.wild)

    def parse_string(self, synonyms, val) -> MultiTapeInstruction:
        if synonyms and val in synonyms:
            return synonyms[val]
        self.check_synonym_chain(synonyms, val)
        if len(val) != self.arity:
            raise TMSpecError(SpecErrorReason.UNRECOGNIZED_STRING, problem_value=val,
                              info=f"An instruction can be a string if it's a synonym"
                                   f" or {self.arity} tape movements")
        return MultiTapeInstruction(move=self._moves(val, SpecErrorReason.INVALID_TAPE_MOVE))

    def parse_object(self, val) -> MultiTapeInstruction:
        self.check_keys(val, MULTI_TAPE_KEYS,
                        f'A multi-tape instruction can have write ({self.arity} symbols),'
                        f' move ({self.arity} directions) and next (a state)')
        write = None
        if val.get('write') is not None:
            write_str = str(val['write'])
            if len(write_str) != self.arity:
                raise TMSpecError(SpecErrorReason.INVALID_WRITE_LENGTH, problem_value=write_str,
                                  info=f'Write needs exactly {self.arity} symbols')
            write = tuple(None if c == self.wild else c for c in write_str)

        move = None
        if val.get('move') is not None:
            move_str = str(val['move'])
            if len(move_str) != self.arity:
                raise TMSpecError(SpecErrorReason.INVALID_MOVE_LENGTH, problem_value=move_str,
                                  info=f'Move needs exactly {self.arity} directions')
            move = self._moves(move_str, SpecErrorReason.INVALID_MOVE_CHAR)

        return MultiTapeInstruction(write=write, move=move, next_state=_state_name(val.get('next')))

    def _moves(self, val: str, reason: SpecErrorReason) -> Tuple[Move, ...]:
        for c in val:
            if c not in MOVES:
                raise TMSpecError(reason, problem_value=c, info=f"Each tape moves with L, R or S (in '{val}')")
        return tuple(MOVES[c] for c in val)
