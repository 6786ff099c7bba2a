"""
Guan-Uberbacher refinement: repeatedly cut oversized rectangles at anchors on an optimal
path until every remaining rectangle is small enough for quadratic DP.
"""
from concurrent.futures import CancelledError
from dataclasses import dataclass, field
from threading import Event
from time import perf_counter
from typing import Iterable, Optional, Union
from warnings import warn
import logging

import numpy as np

from lsalign.pairwise.alignment import Alignment
from lsalign.pairwise.scoring import ScoringModel
from lsalign.config import AlignerConfig, DEFAULT_CONFIG
from lsalign.core.rectangle import Anchor, AnchorError, AlignmentError, Rectangle, Op
from lsalign.core.seq import Seq
from lsalign.engines.anchored import AnchoredAligner, CutResult
from lsalign.engines.quadratic import QuadraticDPEngine, Segment
from lsalign.utils.resources import RESOURCES

logger = logging.getLogger(__name__)


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class ConvergenceWarning(UserWarning):
    """Issued when the pass ceiling is reached and oversized rectangles are solved quadratically."""


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass
class RefinementReport:
    """
    Bookkeeping for one ``RecursiveRefiner.align`` run.

    Attributes:
        passes: Number of cutting passes performed.
        leaves: Number of rectangles solved with quadratic DP (fallbacks included).
        leaf_areas: Area of every solved rectangle, in path order.
        anchors: Number of anchors committed by cutting (user anchors excluded).
        fallbacks: Oversized rectangles solved directly at the pass ceiling.
        fallback_areas: Areas of those rectangles.
        cuts_per_section: The configured number of cuts requested per rectangle.
        cut_rectangles: Number of rectangles that were cut.
        elapsed: Wall-clock seconds.
    """
    passes: int = 0
    leaves: int = 0
    leaf_areas: list[int] = field(default_factory=list)
    anchors: int = 0
    fallbacks: int = 0
    fallback_areas: list[int] = field(default_factory=list)
    cuts_per_section: int = DEFAULT_CONFIG.cuts_per_section
    cut_rectangles: int = 0
    elapsed: float = 0.0

    @property
    def max_leaf_area(self) -> int: return max(self.leaf_areas, default=0)

    @property
    def effective_cuts(self) -> float:
        """Mean number of anchors committed per cut rectangle, after collisions were collapsed."""
        return self.anchors / self.cut_rectangles if self.cut_rectangles else 0.0

    @property
    def converged(self) -> bool: return self.fallbacks == 0


class RecursiveRefiner:
    """
    Linear-space global aligner.

    The refiner keeps a worklist of rectangles. Each pass, every rectangle larger than the
    leaf threshold is cut at up to ``cuts_per_section`` anchors and replaced by its pieces;
    rectangles at or under the threshold are solved with ``QuadraticDPEngine``. The segments
    are finally stitched in path order.

    Args:
        scoring: The scoring model (required).
        config: Run configuration; ``DEFAULT_CONFIG`` when omitted.

    Examples:
        >>> refiner = RecursiveRefiner(ScoringModel.simple(), AlignerConfig(leaf_threshold=16))
        >>> aln = refiner.align('GATTACA', 'GATACA')
        >>> aln.score
        4.0
    """
    __slots__ = ('scoring', 'config', '_cutter', '_leaf_engine')

    def __init__(self, scoring: ScoringModel, config: AlignerConfig = None):
        if scoring is None: raise TypeError('A scoring model is required')
        if not isinstance(scoring, ScoringModel): raise TypeError(f'Expected a ScoringModel, got {type(scoring)}')
        self.scoring = scoring
        self.config = config or DEFAULT_CONFIG
        self._cutter = AnchoredAligner(scoring)
        self._leaf_engine = QuadraticDPEngine(scoring)

    def __repr__(self): return f"{self.__class__.__name__}({self.scoring!r}, {self.config!r})"

    def align(self, query: Union[Seq, str, bytes], target: Union[Seq, str, bytes],
              anchors: Iterable[tuple[int, int]] = None, cancel: Optional[Event] = None) -> Alignment:
        """
        Globally aligns ``query`` against ``target``.

        Args:
            query: The query sequence (encoded with the scoring model's alphabet).
            target: The target sequence.
            anchors: Optional 1-indexed ``(query_position, target_position)`` pairs that must be
                aligned to each other; they must be strictly increasing in both positions.
            cancel: Optional event; when set, the run stops with ``CancelledError``.

        Returns:
            The optimal ``Alignment`` with its ``RefinementReport``.

        Raises:
            AlignmentError: If both sequences are empty.
            AnchorError: If user anchors are out of range or cross.
            CancelledError: If ``cancel`` was set during the run.
        """
        query, target = self.scoring.encode(query), self.scoring.encode(target)
        if not len(query) and not len(target): raise AlignmentError('Cannot align two empty sequences')
        q, t = np.asarray(query), np.asarray(target)
        config = self.config
        report = RefinementReport(cuts_per_section=config.cuts_per_section)
        start_time = perf_counter()

        full = Rectangle.full(len(q), len(t))
        user = self._user_anchors(anchors, len(q), len(t))
        committed = list(user)
        if user and user[-1][:2] == full.end:
            # Pairing the last symbols fixes the end state rather than splitting
            full = Rectangle(0, len(q), 0, len(t), Op.MATCH, Op.MATCH)
            user = user[:-1]
        active = self._cutter.split(full, user)
        segments: dict[tuple[int, int], Segment] = {}

        while active:
            _check(cancel)
            leaves = [r for r in active if r.area <= config.leaf_threshold]
            oversized = [r for r in active if r.area > config.leaf_threshold]
            if oversized and report.passes >= config.max_passes:
                self._fallback(oversized, report)
                leaves, oversized = active, []
            for segment in RESOURCES.map_ordered(lambda r: self._solve(r, q, t, cancel), leaves, config.parallel):
                segments[segment.rectangle.start] = segment
            if not oversized: break

            report.passes += 1
            cuts: list[CutResult] = RESOURCES.map_ordered(
                lambda r: self._cut(r, q, t, cancel), oversized, config.parallel)
            active = []
            for rect, cut in zip(oversized, cuts):
                active.extend(self._cutter.split(rect, cut.anchors))
                committed.extend(cut.anchors)
                report.anchors += len(cut.anchors)
            report.cut_rectangles += len(oversized)
            logger.debug('Pass %d: cut %d rectangles at %d anchors, solved %d leaves, %d rectangles active',
                         report.passes, len(oversized), sum(len(c.anchors) for c in cuts), len(leaves), len(active))

        ordered = [segments[k] for k in sorted(segments)]
        for segment in ordered: report.leaf_areas.append(segment.rectangle.area)
        report.leaves = len(ordered)
        report.elapsed = perf_counter() - start_time
        ops = np.concatenate([s.ops for s in ordered]) if ordered else np.empty(0, dtype=np.uint8)
        return Alignment(query, target, ops, sum(s.score for s in ordered),
                         tuple(sorted(committed, key=lambda a: (a.i, a.j))), report)

    def _solve(self, rect: Rectangle, q: np.ndarray, t: np.ndarray, cancel: Optional[Event]) -> Segment:
        _check(cancel)
        return self._leaf_engine.align(rect, q, t)

    def _cut(self, rect: Rectangle, q: np.ndarray, t: np.ndarray, cancel: Optional[Event]) -> CutResult:
        _check(cancel)
        return self._cutter.compute_cut_points(rect, q, t, self.config.cuts_per_section)

    def _fallback(self, oversized: list[Rectangle], report: RefinementReport):
        areas = [r.area for r in oversized]
        message = (f'Pass ceiling of {self.config.max_passes} reached with {len(oversized)} oversized '
                   f'rectangle(s) (largest area {max(areas)}); solving them with quadratic DP')
        logger.warning(message)
        warn(message, ConvergenceWarning, stacklevel=3)
        report.fallbacks += len(oversized)
        report.fallback_areas.extend(areas)

    @staticmethod
    def _user_anchors(anchors: Optional[Iterable[tuple[int, int]]], m: int, n: int) -> list[Anchor]:
        """Validates 1-indexed match pairs and returns them as diagonal anchors in path order."""
        if anchors is None: return []
        out = []
        for pair in anchors:
            i, j = (int(x) for x in pair)
            if not (1 <= i <= m and 1 <= j <= n):
                raise AnchorError(f'Anchor ({i}, {j}) is outside the sequences ({m}, {n})')
            if out and (i <= out[-1].i or j <= out[-1].j):
                raise AnchorError(f'Anchor ({i}, {j}) crosses or repeats ({out[-1].i}, {out[-1].j})')
            out.append(Anchor(i, j, Op.MATCH))
        return out


# Functions ------------------------------------------------------------------------------------------------------------
def _check(cancel: Optional[Event]):
    if cancel is not None and cancel.is_set(): raise CancelledError('Alignment was cancelled')
