"""
Bidirectional Unbounded Tape

The tape is stored as a zipper around the head:
    - before: cells left of the head, in order (left to right)
    - after:  the head cell and everything right of it, in reverse
              (right to left), so the head is always after[-1]

Invariants:
    - before may be empty, after is never empty
    - moving past a visited boundary grows the tape by one blank cell
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple


class Move(Enum):
    LEFT = 'L'
    RIGHT = 'R'
    STAY = 'S'

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class TapeState:
    """Snapshot of a tape, both halves in left-to-right order."""
    before: Tuple[str, ...]
    after_including_head: Tuple[str, ...]


class Tape:
    """
    An unbounded one-dimensional tape with a movable read/write head.

    Args:
        blank: The symbol filling unvisited cells.
        input: Optional initial contents (a string or any iterable of symbols).
               The head starts on the first input cell. An empty input
               yields a single blank cell.
    """

    def __init__(self, blank: str, input: Optional[Iterable[str]] = None):
        self._blank = blank
        cells = list(input) if input is not None else []
        self._before: List[str] = []
        self._after: List[str] = list(reversed(cells)) if cells else [blank]
        # cells grown on the left of the original first cell
        self._left_growth = 0

    @property
    def blank(self) -> str:
        return self._blank

    @property
    def head_position(self) -> int:
        """Head offset from the original first input cell (negative = left)."""
        return len(self._before) - self._left_growth

    def read(self) -> str:
        """Read the value at the tape head."""
        return self._after[-1]

    def write(self, symbol: str):
        self._after[-1] = symbol

    def head_right(self):
        self._before.append(self._after.pop())
        if not self._after:
            self._after.append(self._blank)

    def head_left(self):
        if not self._before:
            self._before.append(self._blank)
            self._left_growth += 1
        self._after.append(self._before.pop())

    def head_stay(self):
        pass

    def move(self, direction: Move):
        """Move the head in the given direction."""
        if direction is Move.RIGHT:
            self.head_right()
        elif direction is Move.LEFT:
            self.head_left()
        elif direction is Move.STAY:
            self.head_stay()
        else:
            raise TypeError(f"not a valid tape movement: {direction!r}")

    def read_offset(self, i: int) -> str:
        """
        Read the value at an offset from the head.

        0 is the head, positive offsets are to the right and negative ones to
        the left. Unvisited cells read as blank.
        """
        if i >= 0:
            return self._after[-1 - i] if i < len(self._after) else self._blank
        return self._before[i] if -i <= len(self._before) else self._blank

    def read_range(self, start: int, end: int) -> List[str]:
        """Read the values from an offset range (inclusive of start and end)."""
        return [self.read_offset(i) for i in range(start, end + 1)]

    def snapshot(self) -> TapeState:
        return TapeState(tuple(self._before), tuple(reversed(self._after)))

    def contents(self) -> List[str]:
        """All visited cells, left to right."""
        return self._before + self._after[::-1]

    def __str__(self):
        return ''.join(self._before) + '[' + self.read() + ']' + ''.join(reversed(self._after[:-1]))

    def __repr__(self):
        return f"Tape(blank={self._blank!r}, {self})"
