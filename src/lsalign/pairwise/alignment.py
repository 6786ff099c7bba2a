"""
Module for the pairwise alignment result.
"""
from typing import Generator, Optional
from re import compile as regex

import numpy as np

from lsalign.core.rectangle import Anchor, Op
from lsalign.core.seq import Seq


# Classes --------------------------------------------------------------------------------------------------------------
class Cigar:
    """Run-length encodes edit operations as CIGAR strings (``M`` diagonal, ``I`` query-only, ``D`` target-only)."""
    _OP_BYTES_LOOKUP = np.frombuffer(b'MID', dtype=np.uint8)
    _SYM_TO_OP = {'M': Op.MATCH, 'I': Op.INSERT, 'D': Op.DELETE}
    _TOKEN = regex(r'(\d+)([MID])')

    @classmethod
    def make(cls, ops: np.ndarray) -> str:
        ops = np.asarray(ops, dtype=np.uint8)
        if len(ops) == 0: return ''
        bounds = np.flatnonzero(np.diff(ops)) + 1
        starts = np.concatenate(([0], bounds))
        counts = np.diff(np.concatenate((starts, [len(ops)])))
        symbols = cls._OP_BYTES_LOOKUP[ops[starts]].tobytes().decode('ascii')
        return ''.join(f'{n}{s}' for n, s in zip(counts, symbols))

    @classmethod
    def parse(cls, cigar: str) -> Generator[tuple[Op, int], None, None]:
        """Yields ``(op, count)`` runs; raises ``ValueError`` on malformed input."""
        pos = 0
        for token in cls._TOKEN.finditer(cigar):
            if token.start() != pos: break
            pos = token.end()
            yield cls._SYM_TO_OP[token.group(2)], int(token.group(1))
        if pos != len(cigar): raise ValueError(f'Malformed CIGAR string: {cigar!r}')

    @classmethod
    def expand(cls, cigar: str) -> np.ndarray:
        """Inverse of ``make``."""
        runs = list(cls.parse(cigar))
        if not runs: return np.empty(0, dtype=np.uint8)
        return np.repeat(np.array([op for op, _ in runs], dtype=np.uint8), [n for _, n in runs])


class Alignment:
    """
    Represents a global pairwise sequence alignment.

    Attributes:
        query: The query ``Seq``.
        target: The target ``Seq``.
        ops: ``uint8`` array of ``Op`` codes in path order.
        score: The total alignment score.
        anchors: User-supplied and refinement anchors, in path order.
        report: The ``RefinementReport`` of the run (``None`` for the quadratic baseline).
    """
    GAP: str = '-'
    __slots__ = ('query', 'target', 'ops', 'score', 'anchors', 'report')

    def __init__(self, query: Seq, target: Seq, ops: np.ndarray, score: float,
                 anchors: tuple[Anchor, ...] = (), report: Optional['RefinementReport'] = None):
        self.query = query
        self.target = target
        self.ops = np.asarray(ops, dtype=np.uint8)
        self.ops.flags.writeable = False
        self.score = float(score)
        self.anchors = tuple(anchors)
        self.report = report
        if self.query_consumed != len(query) or self.target_consumed != len(target):
            raise ValueError('Edit operations do not span both sequences')

    def __repr__(self):
        return f"Alignment({self.query!r}->{self.target!r}, score={self.score:g}, cigar={self.cigar})"

    def __str__(self): return f"{self.query_aligned}\n{self.target_aligned}"
    def __len__(self): return len(self.ops)

    def __eq__(self, other):
        if isinstance(other, self.__class__):
            return (self.query == other.query and self.target == other.target and
                    self.score == other.score and np.array_equal(self.ops, other.ops))
        return False

    @property
    def length(self) -> int: return len(self.ops)
    @property
    def query_consumed(self) -> int: return int(np.count_nonzero(self.ops != Op.DELETE))
    @property
    def target_consumed(self) -> int: return int(np.count_nonzero(self.ops != Op.INSERT))

    def _gapped(self, seq: Seq, skip: Op) -> str:
        out = np.full(len(self.ops), ord(self.GAP), dtype=np.uint8)
        out[self.ops != skip] = np.frombuffer(bytes(seq), dtype=np.uint8)
        return out.tobytes().decode('ascii')

    @property
    def query_aligned(self) -> str:
        """The query with gap markers, same length as ``target_aligned``."""
        return self._gapped(self.query, Op.DELETE)

    @property
    def target_aligned(self) -> str:
        """The target with gap markers, same length as ``query_aligned``."""
        return self._gapped(self.target, Op.INSERT)

    @property
    def cigar(self) -> str: return Cigar.make(self.ops)

    def aligned_pairs(self) -> np.ndarray:
        """1-indexed ``(query_position, target_position)`` pairs of every diagonal column."""
        qpos = np.cumsum(self.ops != Op.DELETE)
        tpos = np.cumsum(self.ops != Op.INSERT)
        diag = self.ops == Op.MATCH
        return np.stack((qpos[diag], tpos[diag]), axis=1)

    @property
    def n_matches(self) -> int:
        pairs = self.aligned_pairs() - 1
        return int(np.count_nonzero(self.query.encoded[pairs[:, 0]] == self.target.encoded[pairs[:, 1]]))

    @property
    def n_mismatches(self) -> int: return int(np.count_nonzero(self.ops == Op.MATCH)) - self.n_matches
    @property
    def n_gaps(self) -> int: return int(np.count_nonzero(self.ops != Op.MATCH))

    @property
    def n_gap_opens(self) -> int:
        """Number of contiguous gap runs (a switch between gap directions starts a new run)."""
        if not len(self.ops): return 0
        gap = self.ops != Op.MATCH
        starts = gap & np.concatenate(([True], self.ops[1:] != self.ops[:-1]))
        return int(np.count_nonzero(starts))

    def identity(self) -> float:
        return self.n_matches / self.length if self.length > 0 else 0.0

    def query_coverage(self) -> float:
        """Fraction of the query paired with a target symbol."""
        return int(np.count_nonzero(self.ops == Op.MATCH)) / len(self.query) if len(self.query) else 0.0

    def target_coverage(self) -> float:
        """Fraction of the target paired with a query symbol."""
        return int(np.count_nonzero(self.ops == Op.MATCH)) / len(self.target) if len(self.target) else 0.0
