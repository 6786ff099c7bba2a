"""
Linear-space global pairwise alignment.

The optimal path is found by Guan-Uberbacher refinement: rectangles of the alignment
matrix are cut at several anchors per pass until they are small enough for classical
quadratic dynamic programming.

Examples:
    >>> from lsalign import align
    >>> aln = align('GATTACA', 'GATACA')
    >>> aln.score
    4.0
"""
from typing import Iterable, Optional, Union
from threading import Event

import numpy as np

from lsalign.pairwise.alignment import Alignment, Cigar
from lsalign.pairwise.scoring import ScoringModel, ScoreMatrix, GapPenalty
from lsalign.config import AlignerConfig, DEFAULT_CONFIG
from lsalign.core.alphabet import Alphabet, AlphabetError
from lsalign.core.rectangle import Anchor, Rectangle, Op, AlignmentError, RectangleError, AnchorError
from lsalign.core.seq import Seq
from lsalign.engines.anchored import AnchoredAligner, CutResult
from lsalign.engines.quadratic import QuadraticDPEngine, Segment
from lsalign.engines.refiner import RecursiveRefiner, RefinementReport, ConvergenceWarning
from lsalign.utils.resources import RESOURCES

__all__ = [
    'align', 'quadratic_align', 'Alignment', 'Cigar', 'ScoringModel', 'ScoreMatrix', 'GapPenalty',
    'AlignerConfig', 'DEFAULT_CONFIG', 'Alphabet', 'AlphabetError', 'Anchor', 'Rectangle', 'Op',
    'AlignmentError', 'RectangleError', 'AnchorError', 'Seq', 'AnchoredAligner', 'CutResult',
    'QuadraticDPEngine', 'Segment', 'RecursiveRefiner', 'RefinementReport', 'ConvergenceWarning', 'RESOURCES'
]

SeqLike = Union[Seq, str, bytes]


# Functions ------------------------------------------------------------------------------------------------------------
def align(query: SeqLike, target: SeqLike, scoring: ScoringModel = None, config: AlignerConfig = None,
          anchors: Iterable[tuple[int, int]] = None, cancel: Optional[Event] = None, **options) -> Alignment:
    """
    Globally aligns two sequences in linear space.

    Args:
        query: The query sequence.
        target: The target sequence.
        scoring: The scoring model; DNA with +1/-1 and gap open 2, extend 1 when omitted.
        config: Run configuration; ``DEFAULT_CONFIG`` when omitted.
        anchors: Optional 1-indexed ``(query_position, target_position)`` pairs to align together.
        cancel: Optional event that aborts the run when set.
        **options: Overrides for ``config`` fields (``cuts_per_section``, ``leaf_threshold``,
            ``max_passes``, ``parallel``).

    Returns:
        The optimal ``Alignment``.

    Examples:
        >>> align('ACGT', 'ACGT', cuts_per_section=2, leaf_threshold=1).report.passes > 0
        True
    """
    if scoring is None: scoring = ScoringModel.simple()
    config = config or DEFAULT_CONFIG
    if options: config = config.replace(**options)
    return RecursiveRefiner(scoring, config).align(query, target, anchors=anchors, cancel=cancel)


def quadratic_align(query: SeqLike, target: SeqLike, scoring: ScoringModel = None) -> Alignment:
    """
    Classical full-matrix global alignment, the reference the linear-space aligner must match.

    Raises:
        AlignmentError: If both sequences are empty.
    """
    if scoring is None: scoring = ScoringModel.simple()
    query, target = scoring.encode(query), scoring.encode(target)
    if not len(query) and not len(target): raise AlignmentError('Cannot align two empty sequences')
    segment = QuadraticDPEngine(scoring).align(Rectangle.full(len(query), len(target)),
                                               np.asarray(query), np.asarray(target))
    return Alignment(query, target, segment.ops, segment.score)
