"""Exact three-state affine dynamic programming with full traceback, used for leaf rectangles."""
from typing import NamedTuple

import numpy as np

from lsalign.pairwise.scoring import ScoringModel
from lsalign.core.rectangle import Rectangle, RectangleError, ANY, N_STATES
from lsalign.utils.resources import jit


# Classes --------------------------------------------------------------------------------------------------------------
class Segment(NamedTuple):
    """The optimal edit path through one rectangle, in path order."""
    rectangle: Rectangle
    ops: np.ndarray
    score: float


class QuadraticDPEngine:
    """
    Classical quadratic-space global aligner for a single rectangle.

    Keeps the whole ``(height + 1) x (width + 1) x 3`` score and traceback matrices, so it is
    only meant for rectangles under the leaf threshold (or as the baseline aligner).

    Ties are broken towards diagonal, then vertical, then horizontal steps, both at every
    cell and when choosing the final state of an unconstrained end node.

    Examples:
        >>> engine = QuadraticDPEngine(ScoringModel.simple())
        >>> q, t = Alphabet.DNA.encode(b'GATTACA'), Alphabet.DNA.encode(b'GATACA')
        >>> engine.align(Rectangle.full(len(q), len(t)), q, t).score
        4.0
    """
    __slots__ = ('scoring', '_matrix', '_go', '_ge')

    def __init__(self, scoring: ScoringModel):
        if scoring is None: raise TypeError('A scoring model is required')
        self.scoring = scoring
        self._matrix, self._go, self._ge = scoring.kernel_args()

    def _fill(self, rect: Rectangle, query: np.ndarray, target: np.ndarray):
        seq_a, seq_b = rect.slices(query, target)
        if len(seq_a) != rect.height or len(seq_b) != rect.width:
            raise RectangleError(f'{rect} exceeds the sequence bounds ({len(query)}, {len(target)})')
        shape = (rect.height + 1, rect.width + 1, N_STATES)
        score = np.full(shape, -np.inf, dtype=np.float64)
        trace = np.zeros(shape, dtype=np.uint8)
        _fill_kernel(seq_a, seq_b, self._matrix, self._go, self._ge, int(rect.start_state), score, trace)
        end = score[rect.height, rect.width]
        state = _best_state(end) if rect.end_state == ANY else int(rect.end_state)
        if not np.isfinite(end[state]):
            raise RectangleError(f'No path through {rect} satisfies its boundary states')
        return score, trace, state

    def score(self, rect: Rectangle, query: np.ndarray, target: np.ndarray) -> float:
        """Optimal score of the rectangle, without traceback."""
        score, _, state = self._fill(rect, query, target)
        return float(score[rect.height, rect.width, state])

    def align(self, rect: Rectangle, query: np.ndarray, target: np.ndarray) -> Segment:
        """
        Aligns the part of ``query`` and ``target`` spanned by ``rect``.

        Args:
            rect: The rectangle, in node coordinates of the full sequences.
            query: The full encoded query.
            target: The full encoded target.

        Returns:
            The optimal ``Segment`` (ops in path order and its score).

        Raises:
            RectangleError: If the rectangle is out of bounds or infeasible for its boundary states.
        """
        score, trace, state = self._fill(rect, query, target)
        ops = np.empty(rect.height + rect.width, dtype=np.uint8)
        n = _traceback_kernel(trace, rect.height, rect.width, state, ops)
        return Segment(rect, ops[:n][::-1].copy(), float(score[rect.height, rect.width, state]))


# Functions ------------------------------------------------------------------------------------------------------------
def _best_state(values: np.ndarray) -> int:
    """Index of the maximum, earliest state on ties (diagonal > vertical > horizontal)."""
    return int(np.argmax(values))


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _fill_kernel(seq_a, seq_b, matrix, gap_open, gap_extend, start_state, score, trace):
    """
    Fills the three-state score matrix and records, per cell and state, the predecessor state.

    State 0 (MATCH) is entered diagonally, 1 (INSERT) vertically, 2 (DELETE) horizontally.
    ``score`` must be pre-filled with -inf.
    """
    rows = len(seq_a) + 1
    cols = len(seq_b) + 1
    score[0, 0, start_state] = 0.0

    for r in range(rows):
        for c in range(cols):
            if r == 0 and c == 0: continue
            if r > 0 and c > 0:
                best = score[r - 1, c - 1, 0]
                src = 0
                if score[r - 1, c - 1, 1] > best:
                    best = score[r - 1, c - 1, 1]
                    src = 1
                if score[r - 1, c - 1, 2] > best:
                    best = score[r - 1, c - 1, 2]
                    src = 2
                score[r, c, 0] = best + matrix[seq_a[r - 1], seq_b[c - 1]]
                trace[r, c, 0] = src
            if r > 0:
                best = score[r - 1, c, 0] - gap_open
                src = 0
                val = score[r - 1, c, 1] - gap_extend
                if val > best:
                    best = val
                    src = 1
                val = score[r - 1, c, 2] - gap_open
                if val > best:
                    best = val
                    src = 2
                score[r, c, 1] = best
                trace[r, c, 1] = src
            if c > 0:
                best = score[r, c - 1, 0] - gap_open
                src = 0
                val = score[r, c - 1, 1] - gap_open
                if val > best:
                    best = val
                    src = 1
                val = score[r, c - 1, 2] - gap_extend
                if val > best:
                    best = val
                    src = 2
                score[r, c, 2] = best
                trace[r, c, 2] = src


@jit(nopython=True, cache=True, nogil=True)
def _traceback_kernel(trace, r, c, state, ops):
    """Walks predecessor states from (r, c) back to the origin. Writes ops in REVERSE order."""
    k = 0
    while r > 0 or c > 0:
        ops[k] = state
        k += 1
        prev = int(trace[r, c, state])
        if state == 0:
            r -= 1
            c -= 1
        elif state == 1:
            r -= 1
        else:
            c -= 1
        state = prev
    return k
