"""
Linear-space score rows, anchor (cut point) selection and rectangle splitting.

A rectangle is swept with only two live rows per DP state. Cut lines are laid across the
rectangle's longer axis; the backward sweep stores its rows at those lines, then a single
forward sweep picks, at each line, the node maximising forward + backward score and from
there on only extends paths through that node. Every anchor of a pass therefore lies on
one common optimal path, which keeps anchors non-crossing and affine gap states
consistent across cuts.
"""
from typing import NamedTuple, Sequence

import numpy as np

from lsalign.pairwise.scoring import ScoringModel
from lsalign.core.rectangle import Anchor, AnchorError, Rectangle, RectangleError, Op, ANY, N_STATES, transpose_state
from lsalign.utils.resources import jit


# Classes --------------------------------------------------------------------------------------------------------------
class CutResult(NamedTuple):
    """
    Anchors proposed for one rectangle in one pass.

    Attributes:
        anchors: Committed anchors in path order, after collapsing collisions.
        requested: The number of cuts that was asked for.
        optimum: The optimal score of the rectangle.
        transposed: True if the cuts were laid across target columns instead of query rows.
    """
    anchors: tuple[Anchor, ...]
    requested: int
    optimum: float
    transposed: bool = False

    @property
    def collapsed(self) -> int:
        """How many requested cuts were lost to collisions."""
        return self.requested - len(self.anchors)


class AnchoredAligner:
    """
    Computes cumulative score rows and anchor cuts for rectangles of the alignment matrix.

    The engine holds no per-run state; the same instance may serve several rectangles
    concurrently.

    Args:
        scoring: The scoring model.

    Examples:
        >>> cutter = AnchoredAligner(ScoringModel.simple())
        >>> cut = cutter.compute_cut_points(Rectangle.full(len(q), len(t)), q, t, num_cuts=3)
        >>> pieces = cutter.split(Rectangle.full(len(q), len(t)), cut.anchors)
    """
    __slots__ = ('scoring', '_matrix', '_matrix_t', '_go', '_ge')

    def __init__(self, scoring: ScoringModel):
        if scoring is None: raise TypeError('A scoring model is required')
        self.scoring = scoring
        self._matrix, self._go, self._ge = scoring.kernel_args()
        self._matrix_t = np.ascontiguousarray(self._matrix.T)

    # Orientation ------------------------------------------------------------------------------------------------------
    def _orient(self, rect: Rectangle, query: np.ndarray, target: np.ndarray, transposed: bool):
        seq_a, seq_b = rect.slices(query, target)
        if len(seq_a) != rect.height or len(seq_b) != rect.width:
            raise RectangleError(f'{rect} exceeds the sequence bounds ({len(query)}, {len(target)})')
        if transposed:
            return (seq_b, seq_a, self._matrix_t,
                    transpose_state(rect.start_state), transpose_state(rect.end_state))
        return seq_a, seq_b, self._matrix, int(rect.start_state), int(rect.end_state)

    @staticmethod
    def _local_rows(rect: Rectangle, rows: Sequence[int]) -> np.ndarray:
        local = np.asarray(rows, dtype=np.int64) - rect.q_start
        if local.size and (local.min() < 0 or local.max() > rect.height):
            raise RectangleError(f'Rows {list(rows)} are outside {rect}')
        if np.any(np.diff(local) <= 0): raise ValueError('Rows must be strictly increasing')
        return local

    # Score rows -------------------------------------------------------------------------------------------------------
    def forward_rows(self, rect: Rectangle, query: np.ndarray, target: np.ndarray,
                     rows: Sequence[int]) -> np.ndarray:
        """
        Forward cumulative scores at the requested query rows.

        Args:
            rect: The rectangle to sweep.
            query: The full encoded query.
            target: The full encoded target.
            rows: Absolute query node coordinates within the rectangle, increasing.

        Returns:
            Array of shape ``(len(rows), 3, width + 1)``: best score from the rectangle's start
            to each node of the row, per entry state.
        """
        seq_a, seq_b, matrix, start, _ = self._orient(rect, query, target, False)
        local = self._local_rows(rect, rows)
        out = np.empty((len(local), N_STATES, rect.width + 1), dtype=np.float64)
        _forward_kernel(seq_a, seq_b, matrix, self._go, self._ge, start, local,
                        _NO_ROWS, np.empty((0, 4), dtype=np.float64), out, False, True)
        return out

    def backward_rows(self, rect: Rectangle, query: np.ndarray, target: np.ndarray,
                      rows: Sequence[int]) -> np.ndarray:
        """
        Backward cumulative scores at the requested query rows.

        Same layout as ``forward_rows``: best score from each node, entered in the given
        state, to the rectangle's end.
        """
        seq_a, seq_b, matrix, _, end = self._orient(rect, query, target, False)
        local = self._local_rows(rect, rows)
        out = np.empty((len(local), N_STATES, rect.width + 1), dtype=np.float64)
        _backward_kernel(seq_a, seq_b, matrix, self._go, self._ge, end, local, out)
        return out

    def optimum(self, rect: Rectangle, query: np.ndarray, target: np.ndarray) -> float:
        """Optimal score of the rectangle, computed in linear space."""
        seq_a, seq_b, matrix, start, end = self._orient(rect, query, target, False)
        ends = _forward_kernel(seq_a, seq_b, matrix, self._go, self._ge, start, _NO_LINES, _NO_ROWS,
                               np.empty((0, 4), dtype=np.float64), _NO_ROWS, False, False)
        return _end_score(ends, end, rect)

    def crossing_point(self, rect: Rectangle, query: np.ndarray, target: np.ndarray, row: int) -> Anchor:
        """
        Classical single-cut (Hirschberg) crossing of the optimal path through one query row.

        Forward and backward rows are summed node by node; the maximum (smallest column,
        then diagonal > vertical > horizontal on ties) is where an optimal path crosses.
        """
        if not rect.q_start <= row <= rect.q_end: raise RectangleError(f'Row {row} is outside {rect}')
        forward = self.forward_rows(rect, query, target, [row])[0]
        total = forward + self.backward_rows(rect, query, target, [row])[0]
        if not np.isfinite(total.max()): raise RectangleError(f'No path through {rect} crosses row {row}')
        # Column-major argmax so the smallest column wins, then the earliest state
        j, state = divmod(int(np.argmax(total.T)), N_STATES)
        return Anchor(row, rect.t_start + j, Op(state), float(forward[state, j]))

    # Cuts -------------------------------------------------------------------------------------------------------------
    @staticmethod
    def cut_lines(length: int, num_cuts: int) -> list[int]:
        """
        Evenly spaced candidate lines across an axis of ``length`` steps.

        When ``num_cuts >= length`` candidates repeat or fall on the boundary; those are the
        collisions the collapse step removes.
        """
        return [(length * k) // (num_cuts + 1) for k in range(1, num_cuts + 1)]

    def compute_cut_points(self, rect: Rectangle, query: np.ndarray, target: np.ndarray,
                           num_cuts: int = 10) -> CutResult:
        """
        Proposes up to ``num_cuts`` anchors on one optimal path through ``rect``.

        Cuts are laid across query rows when the rectangle is at least as tall as it is wide,
        otherwise across target columns.

        Args:
            rect: The rectangle to cut.
            query: The full encoded query.
            target: The full encoded target.
            num_cuts: Requested number of cuts (values below 1 are clamped to 1).

        Returns:
            A ``CutResult`` with the committed anchors in path order.

        Raises:
            RectangleError: If no path satisfies the rectangle's boundary states.
        """
        num_cuts = max(1, int(num_cuts))
        transposed = rect.width > rect.height
        seq_a, seq_b, matrix, start, end = self._orient(rect, query, target, transposed)
        length, width = len(seq_a), len(seq_b)

        lines = self.cut_lines(length, num_cuts)
        rows = np.unique(np.array([line for line in lines if 0 < line < length], dtype=np.int64))

        back = np.empty((len(rows), N_STATES, width + 1), dtype=np.float64)
        if len(rows): _backward_kernel(seq_a, seq_b, matrix, self._go, self._ge, end, rows, back)
        picks = np.empty((len(rows), 4), dtype=np.float64)
        ends = _forward_kernel(seq_a, seq_b, matrix, self._go, self._ge, start, rows, back, picks,
                               _NO_ROWS, True, False)
        optimum = _end_score(ends, end, rect)

        by_line = {int(line): pick for line, pick in zip(rows, picks)}
        candidates = []
        for line in lines:
            if (pick := by_line.get(line)) is None: continue  # boundary line, collides with the start corner
            j, state, forward, total = pick
            anchor = Anchor(line, int(j), Op(int(state)), float(forward))
            if transposed: anchor = anchor.transposed()
            candidates.append((anchor.shift(rect.q_start, rect.t_start), float(total)))

        anchors = self.collapse(candidates)
        return CutResult(anchors, num_cuts, optimum, transposed)

    @staticmethod
    def collapse(candidates: Sequence[tuple[Anchor, float]]) -> tuple[Anchor, ...]:
        """
        Collapses colliding candidates.

        Candidates are ``(anchor, total)`` pairs in proposal order. A candidate that does not
        strictly follow the last kept one (same node, or crossing it) is merged with it: the
        better total wins and the earlier one is kept on ties.
        """
        kept: list[tuple[Anchor, float]] = []
        for anchor, total in candidates:
            if kept and not kept[-1][0].precedes(anchor):
                if total > kept[-1][1] and (len(kept) < 2 or kept[-2][0].precedes(anchor)):
                    kept[-1] = (anchor, total)
                continue
            kept.append((anchor, total))
        return tuple(anchor for anchor, _ in kept)

    # Splitting --------------------------------------------------------------------------------------------------------
    @staticmethod
    def split(rect: Rectangle, anchors: Sequence[Anchor]) -> list[Rectangle]:
        """
        Splits ``rect`` at committed anchors into sub-rectangles, in path order.

        Each sub-rectangle inherits the entry state of the anchor (or corner) it starts at and
        must end in the entry state of the anchor it ends at.

        Raises:
            AnchorError: If an anchor lies outside the rectangle, on a corner, or crosses
                another anchor.
        """
        prev = Anchor(rect.q_start, rect.t_start, Op(rect.start_state))
        pieces = []
        for anchor in anchors:
            if not rect.contains(anchor): raise AnchorError(f'{anchor} is not strictly inside {rect}')
            if not prev.precedes(anchor): raise AnchorError(f'{anchor} crosses {prev}')
            pieces.append(Rectangle(prev.i, anchor.i, prev.j, anchor.j, prev.state, anchor.state))
            prev = anchor
        pieces.append(Rectangle(prev.i, rect.q_end, prev.j, rect.t_end, prev.state, rect.end_state))
        return pieces


# Functions ------------------------------------------------------------------------------------------------------------
def _end_score(ends: np.ndarray, end_state: int, rect: Rectangle) -> float:
    score = ends.max() if end_state == ANY else ends[end_state]
    if not np.isfinite(score): raise RectangleError(f'No path through {rect} satisfies its boundary states')
    return float(score)


# Constants ------------------------------------------------------------------------------------------------------------
_NO_LINES = np.empty(0, dtype=np.int64)
_NO_ROWS = np.empty((0, N_STATES, 0), dtype=np.float64)


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _forward_kernel(seq_a, seq_b, matrix, gap_open, gap_extend, start_state, rows, back, picks, out,
                    chain, store):
    """
    Forward sweep with two live rows per state.

    At each line in ``rows`` (sorted local row indices) the current row is optionally copied to
    ``out`` (``store``) and, with ``chain``, the node maximising forward + ``back`` is written to
    ``picks`` as (column, state, forward score, total) and the row is restricted to paths
    through that node. Returns the three end-node scores.
    """
    NEG_INF = -np.inf
    h = len(seq_a)
    w = len(seq_b)
    prev = np.empty((3, w + 1), dtype=np.float64)
    cur = np.empty((3, w + 1), dtype=np.float64)
    k = 0
    n_rows = len(rows)

    for i in range(h + 1):
        if i == 0:
            for x in range(3):
                for j in range(w + 1):
                    cur[x, j] = NEG_INF
            cur[start_state, 0] = 0.0
            for j in range(1, w + 1):
                cur[2, j] = max(cur[0, j - 1] - gap_open, cur[1, j - 1] - gap_open, cur[2, j - 1] - gap_extend)
        else:
            prev, cur = cur, prev
            char_a = seq_a[i - 1]
            cur[0, 0] = NEG_INF
            cur[1, 0] = max(prev[0, 0] - gap_open, prev[1, 0] - gap_extend, prev[2, 0] - gap_open)
            cur[2, 0] = NEG_INF
            for j in range(1, w + 1):
                diag = max(prev[0, j - 1], prev[1, j - 1], prev[2, j - 1])
                cur[0, j] = diag + matrix[char_a, seq_b[j - 1]]
                cur[1, j] = max(prev[0, j] - gap_open, prev[1, j] - gap_extend, prev[2, j] - gap_open)
                cur[2, j] = max(cur[0, j - 1] - gap_open, cur[1, j - 1] - gap_open, cur[2, j - 1] - gap_extend)

        if k < n_rows and rows[k] == i:
            if store:
                for x in range(3):
                    for j in range(w + 1):
                        out[k, x, j] = cur[x, j]
            if chain:
                best = NEG_INF
                best_j = -1
                best_x = 0
                for j in range(w + 1):
                    for x in range(3):
                        total = cur[x, j] + back[k, x, j]
                        if total > best:
                            best = total
                            best_j = j
                            best_x = x
                picks[k, 0] = best_j
                picks[k, 1] = best_x
                picks[k, 3] = best
                if best_j < 0:
                    picks[k, 2] = NEG_INF
                    for x in range(3):
                        for j in range(w + 1):
                            cur[x, j] = NEG_INF
                else:
                    keep = cur[best_x, best_j]
                    picks[k, 2] = keep
                    for x in range(3):
                        for j in range(w + 1):
                            cur[x, j] = NEG_INF
                    cur[best_x, best_j] = keep
                    # Paths may still leave the anchor horizontally along this row
                    for j in range(best_j + 1, w + 1):
                        cur[2, j] = max(cur[0, j - 1] - gap_open, cur[1, j - 1] - gap_open,
                                        cur[2, j - 1] - gap_extend)
            k += 1

    ends = np.empty(3, dtype=np.float64)
    for x in range(3):
        ends[x] = cur[x, w]
    return ends


@jit(nopython=True, cache=True, nogil=True)
def _backward_kernel(seq_a, seq_b, matrix, gap_open, gap_extend, end_state, rows, out):
    """
    Backward sweep with two live rows per state, bottom-right to top-left.

    ``B[x, j]`` is the best score from node (i, j), entered in state ``x``, to the end node
    entered in ``end_state`` (-1 for any). Rows listed in ``rows`` (sorted) are copied to ``out``.
    Returns the three start-node scores.
    """
    NEG_INF = -np.inf
    h = len(seq_a)
    w = len(seq_b)
    nxt = np.empty((3, w + 1), dtype=np.float64)
    cur = np.empty((3, w + 1), dtype=np.float64)
    for x in range(3):
        for j in range(w + 1):
            nxt[x, j] = NEG_INF
    k = len(rows) - 1

    for i in range(h, -1, -1):
        for j in range(w, -1, -1):
            if i == h and j == w:
                for x in range(3):
                    cur[x, j] = 0.0 if (end_state < 0 or end_state == x) else NEG_INF
                continue
            diag = NEG_INF
            down = NEG_INF
            right = NEG_INF
            if i < h and j < w:
                diag = matrix[seq_a[i], seq_b[j]] + nxt[0, j + 1]
            if i < h:
                down = nxt[1, j]
            if j < w:
                right = cur[2, j + 1]
            # Continuing in the direction the node was entered extends the gap instead of opening one
            cur[0, j] = max(diag, down - gap_open, right - gap_open)
            cur[1, j] = max(diag, down - gap_extend, right - gap_open)
            cur[2, j] = max(diag, down - gap_open, right - gap_extend)
        if k >= 0 and rows[k] == i:
            for x in range(3):
                for j in range(w + 1):
                    out[k, x, j] = cur[x, j]
            k -= 1
        nxt, cur = cur, nxt

    starts = np.empty(3, dtype=np.float64)
    for x in range(3):
        starts[x] = nxt[x, 0]
    return starts
