"""
Plain value records shared by the alignment engines: edit operations, anchors and rectangles.

All coordinates are DP *node* coordinates: node ``(i, j)`` sits after ``query[:i]`` and
``target[:j]`` have been consumed, so a diagonal anchor at ``(i, j)`` pairs the 1-indexed
query position ``i`` with the 1-indexed target position ``j``.
"""
from dataclasses import dataclass
from enum import IntEnum
from typing import NamedTuple

import numpy as np


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class AlignmentError(Exception):
    """Raised when an alignment request violates the engine's input contract."""


class RectangleError(AlignmentError):
    """Raised for malformed or infeasible rectangles."""


class AnchorError(AlignmentError):
    """Raised when anchors cross, collide with committed anchors or fall outside the matrix."""


# Constants ------------------------------------------------------------------------------------------------------------
class Op(IntEnum):
    """
    Edit operations, doubling as the DP state a path is in when it enters a node.

    The numeric order is the tie-break order: lower values win ties.
    """
    MATCH = 0   # diagonal: query and target advance (match or mismatch)
    INSERT = 1  # vertical: query advances, gap in target
    DELETE = 2  # horizontal: target advances, gap in query

    @property
    def symbol(self) -> str: return 'MID'[self]

    def transposed(self) -> 'Op':
        """Swaps the vertical and horizontal roles (used when cutting along columns)."""
        return _TRANSPOSED[self]


_TRANSPOSED = {Op.MATCH: Op.MATCH, Op.INSERT: Op.DELETE, Op.DELETE: Op.INSERT}

ANY: int = -1  # end-state wildcard for the global end node
N_STATES: int = 3


def transpose_state(state: int) -> int:
    """Like ``Op.transposed`` but passes the ``ANY`` wildcard through."""
    return state if state == ANY else int(Op(state).transposed())


# Classes --------------------------------------------------------------------------------------------------------------
class Anchor(NamedTuple):
    """
    A committed node on the optimal path.

    Attributes:
        i: Query node coordinate.
        j: Target node coordinate.
        state: The ``Op`` by which the path entered the node.
        score: Forward cumulative score at the node, relative to the rectangle it was cut from.
    """
    i: int
    j: int
    state: Op = Op.MATCH
    score: float = 0.0

    def precedes(self, other: 'Anchor') -> bool:
        """
        True if ``other`` can follow this anchor on one path.

        Both coordinates are non-decreasing and the nodes are distinct. Only the axis an anchor
        was cut on increases strictly; across it the coordinate repeats when the path runs
        through a gap.
        """
        return self.i <= other.i and self.j <= other.j and (self.i, self.j) != (other.i, other.j)

    def transposed(self) -> 'Anchor':
        return Anchor(self.j, self.i, self.state.transposed(), self.score)

    def shift(self, di: int, dj: int) -> 'Anchor':
        return Anchor(self.i + di, self.j + dj, self.state, self.score)


@dataclass(frozen=True, slots=True)
class Rectangle:
    """
    A sub-problem of the alignment matrix delimited by two path nodes.

    The path enters ``(q_start, t_start)`` by ``start_state`` and must enter
    ``(q_end, t_end)`` by ``end_state`` (``ANY`` leaves the last step free).

    Examples:
        >>> rect = Rectangle(0, 7, 0, 7)
        >>> rect.area
        49
    """
    q_start: int
    q_end: int
    t_start: int
    t_end: int
    start_state: int = Op.MATCH
    end_state: int = ANY

    def __post_init__(self):
        if self.q_start < 0 or self.t_start < 0 or self.q_end < self.q_start or self.t_end < self.t_start:
            raise RectangleError(f'Malformed rectangle bounds: {self}')
        if self.start_state not in (Op.MATCH, Op.INSERT, Op.DELETE):
            raise RectangleError(f'Invalid start state {self.start_state}')
        if self.end_state not in (ANY, Op.MATCH, Op.INSERT, Op.DELETE):
            raise RectangleError(f'Invalid end state {self.end_state}')

    @property
    def height(self) -> int: return self.q_end - self.q_start
    @property
    def width(self) -> int: return self.t_end - self.t_start
    @property
    def area(self) -> int: return self.height * self.width
    @property
    def start(self) -> tuple[int, int]: return self.q_start, self.t_start
    @property
    def end(self) -> tuple[int, int]: return self.q_end, self.t_end

    def contains(self, anchor: Anchor) -> bool:
        """True if the anchor lies strictly between the rectangle's corners on a monotone path."""
        inside = self.q_start <= anchor.i <= self.q_end and self.t_start <= anchor.j <= self.t_end
        return inside and (anchor.i, anchor.j) not in (self.start, self.end)

    def slices(self, query: np.ndarray, target: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Returns the query and target symbols spanned by the rectangle."""
        return query[self.q_start:self.q_end], target[self.t_start:self.t_end]

    def transposed(self) -> 'Rectangle':
        return Rectangle(self.t_start, self.t_end, self.q_start, self.q_end,
                         transpose_state(self.start_state), transpose_state(self.end_state))

    @classmethod
    def full(cls, query_length: int, target_length: int) -> 'Rectangle':
        """The rectangle spanning the whole alignment matrix."""
        return cls(0, query_length, 0, target_length, Op.MATCH, ANY)
