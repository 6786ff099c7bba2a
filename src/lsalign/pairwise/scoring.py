"""Substitution matrices, gap penalties and the immutable scoring model shared by all engines."""
from typing import Union, Iterable

import numpy as np

from lsalign.core.alphabet import Alphabet
from lsalign.core.seq import Seq
from lsalign.core.rectangle import Op


# Classes --------------------------------------------------------------------------------------------------------------
class ScoreMatrix:
    """
    Represents a substitution matrix for alignment.

    Rows are indexed by the encoded query symbol, columns by the encoded target symbol,
    so asymmetric matrices are supported.

    Attributes:
        _data (np.ndarray): The raw matrix data (float64, read-only).
        alphabet (Alphabet): The alphabet whose indices address the matrix.

    Examples:
        >>> m = ScoreMatrix.build(Alphabet.DNA, match=2, mismatch=-2)
        >>> m.score(b'A', b'C')
        -2.0
    """
    _DTYPE = np.float64
    __slots__ = ('_data', 'alphabet')

    def __init__(self, data: Union[np.ndarray, Iterable], alphabet: Alphabet):
        self._data = np.array(data, dtype=self._DTYPE)
        n = len(alphabet)
        if self._data.shape != (n, n):
            raise ValueError(f'Matrix shape {self._data.shape} does not match alphabet size {n}')
        if not np.all(np.isfinite(self._data)): raise ValueError('Substitution scores must be finite')
        self._data.flags.writeable = False
        self.alphabet = alphabet

    def __getitem__(self, item): return self._data[item]
    def __array__(self, dtype=None, copy=None): return self._data.astype(dtype, copy=False) if dtype else self._data
    def __repr__(self): return f"ScoreMatrix{self._data.shape}"
    def __eq__(self, other):
        return isinstance(other, ScoreMatrix) and self.alphabet == other.alphabet and np.array_equal(self._data, other._data)
    def __hash__(self): return hash((self.alphabet, self._data.tobytes()))
    @property
    def shape(self): return self._data.shape
    @property
    def is_symmetric(self) -> bool: return bool(np.array_equal(self._data, self._data.T))

    def score(self, a: Union[bytes, str, int], b: Union[bytes, str, int]) -> float:
        """Returns the score for aligning query symbol ``a`` against target symbol ``b``."""
        return float(self._data[self.alphabet.index(a), self.alphabet.index(b)])

    def transpose(self) -> 'ScoreMatrix':
        """Returns the matrix with query and target roles swapped."""
        return ScoreMatrix(self._data.T, self.alphabet)

    @classmethod
    def build(cls, alphabet: Alphabet, match: float = 1, mismatch: float = -1) -> 'ScoreMatrix':
        """Builds a simple match/mismatch matrix."""
        n = len(alphabet)
        M = np.full((n, n), mismatch, dtype=cls._DTYPE)
        np.fill_diagonal(M, match)
        return cls(M, alphabet)

    @classmethod
    def identity(cls, alphabet: Alphabet) -> 'ScoreMatrix':
        """Scores 1 for identical symbols and 0 otherwise."""
        return cls.build(alphabet, 1, 0)

    @classmethod
    def blosum62(cls) -> 'ScoreMatrix':
        """Returns the BLOSUM62 matrix over ``Alphabet.AMINO``."""
        data = [
            4, 0, -2, -1, -2, 0, -2, -1, -1, -1, -1, -2, -1, -1, -1, 1, 0, 0, -3, -2,
            0, 9, -3, -4, -2, -3, -3, -1, -3, -1, -1, -3, -3, -3, -3, -1, -1, -1, -2, -2,
            -2, -3, 6, 2, -3, -1, -1, -3, -1, -4, -3, 1, -1, 0, -2, 0, -1, -3, -4, -3,
            -1, -4, 2, 5, -3, -2, 0, -3, 1, -3, -2, 0, -1, 2, 0, 0, -1, -2, -3, -2,
            -2, -2, -3, -3, 6, -3, -1, 0, -3, 0, 0, -3, -4, -3, -3, -2, -2, -1, 1, 3,
            0, -3, -1, -2, -3, 6, -2, -4, -2, -4, -3, 0, -2, -2, -2, 0, -2, -3, -2, -3,
            -2, -3, -1, 0, -1, -2, 8, -3, -1, -3, -2, 1, -2, 0, 0, -1, -2, -3, -2, 2,
            -1, -1, -3, -3, 0, -4, -3, 4, -3, 2, 1, -3, -3, -3, -3, -2, -1, 3, -3, -1,
            -1, -3, -1, 1, -3, -2, -1, -3, 5, -2, -3, 2, 0, -3, -3, 1, 0, -3, -1, 2,
            -1, -1, -4, -3, 0, -4, -3, 2, -2, 4, 2, -3, -3, -2, -2, -2, -1, 1, -2, -1,
            -1, -1, -3, -2, 0, -3, -2, 1, -3, 2, 5, -2, -2, 0, -1, -1, -1, 1, -1, -1,
            -2, -3, 1, 0, -3, 0, 1, -3, 2, -3, -2, 6, -2, -4, -4, -1, 0, -3, -1, -3,
            -1, -3, -1, -1, -4, -2, -2, -3, 0, -3, -2, -2, 7, -1, -2, -1, -1, -2, -4, -3,
            -1, -3, 0, 2, -3, -2, 0, -3, -3, -2, 0, -4, -1, 5, 1, 0, -1, -2, -2, -1,
            -1, -3, -2, 0, -3, -2, 0, -3, -3, -2, -1, -4, -2, 1, 5, -1, -1, -3, -3, -2,
            1, -1, 0, 0, -2, 0, -1, -2, 1, -2, -1, -1, -1, 0, -1, 4, 1, -2, -3, -2,
            0, -1, -1, -1, -2, -2, -2, -1, 0, -1, -1, 0, -1, -1, -1, 1, 5, 0, -2, -2,
            0, -1, -3, -2, -1, -3, -3, 3, -3, 1, 1, -3, -2, -2, -3, -2, 0, 4, -3, -1,
            -3, -2, -4, -3, 1, -2, -2, -3, -1, -2, -1, -1, -4, -2, -3, -3, -2, -3, 11, 2,
            -2, -2, -3, -2, 3, -3, 2, -1, 2, -1, -1, -3, -3, -1, -2, -2, -2, -1, 2, 7
        ]
        return cls(np.array(data, dtype=cls._DTYPE).reshape(20, 20), Alphabet.AMINO)


class GapPenalty:
    """
    Affine gap cost: a run of ``L >= 1`` gap positions costs ``open + extend * (L - 1)``.

    Penalties are non-negative costs and are subtracted from the alignment score. A linear
    model is the special case ``open == extend``.

    Examples:
        >>> gap = GapPenalty(open=2, extend=1)
        >>> gap(3)
        4.0
        >>> gap.extension(3)  # cost of growing a 3-long gap to 4
        1.0
    """
    __slots__ = ('open', 'extend')

    def __init__(self, open: float = 2, extend: float = 1):
        if open < 0 or extend < 0: raise ValueError('Gap penalties must be non-negative')
        if not (np.isfinite(open) and np.isfinite(extend)): raise ValueError('Gap penalties must be finite')
        object.__setattr__(self, 'open', float(open))
        object.__setattr__(self, 'extend', float(extend))

    def __setattr__(self, key, value): raise AttributeError(f'{self.__class__.__name__} is immutable')
    def __repr__(self): return f"GapPenalty(open={self.open:g}, extend={self.extend:g})"
    def __eq__(self, other):
        return isinstance(other, GapPenalty) and (self.open, self.extend) == (other.open, other.extend)
    def __hash__(self): return hash((self.open, self.extend))

    def __call__(self, length: int) -> float:
        if length < 0: raise ValueError('Gap length cannot be negative')
        return 0.0 if length == 0 else self.open + self.extend * (length - 1)

    def extension(self, length: int) -> float:
        """O(1) cost of lengthening a gap of ``length`` positions by one more position."""
        return self.open if length == 0 else self.extend

    @property
    def is_linear(self) -> bool: return self.open == self.extend

    @classmethod
    def linear(cls, rate: float) -> 'GapPenalty': return cls(rate, rate)

    @classmethod
    def affine(cls, open: float, extend: float) -> 'GapPenalty': return cls(open, extend)


class ScoringModel:
    """
    Pairs a substitution matrix with a gap penalty. Immutable and safe to share across threads.

    Args:
        matrix: The substitution matrix (its alphabet encodes the sequences).
        gap: The gap penalty.

    Examples:
        >>> model = ScoringModel.simple(Alphabet.DNA, match=1, mismatch=-1, gap_open=2, gap_extend=1)
        >>> model.substitution_score('A', 'A'), model.gap_penalty(2)
        (1.0, 3.0)
    """
    __slots__ = ('matrix', 'gap')

    def __init__(self, matrix: ScoreMatrix, gap: GapPenalty = None):
        if not isinstance(matrix, ScoreMatrix): raise TypeError(f'Expected a ScoreMatrix, got {type(matrix)}')
        if gap is None: gap = GapPenalty()
        if not isinstance(gap, GapPenalty): raise TypeError(f'Expected a GapPenalty, got {type(gap)}')
        object.__setattr__(self, 'matrix', matrix)
        object.__setattr__(self, 'gap', gap)

    def __setattr__(self, key, value): raise AttributeError(f'{self.__class__.__name__} is immutable')
    def __repr__(self): return f"ScoringModel({self.matrix!r}, {self.gap!r})"

    @property
    def alphabet(self) -> Alphabet: return self.matrix.alphabet

    def substitution_score(self, a, b) -> float:
        return self.matrix.score(a, b)

    def gap_penalty(self, length: int) -> float:
        return self.gap(length)

    def encode(self, sequence: Union[Seq, str, bytes, np.ndarray]) -> Seq:
        """Binds a sequence to this model's alphabet."""
        return self.alphabet.seq_from(sequence)

    def kernel_args(self) -> tuple[np.ndarray, float, float]:
        """The (matrix, open, extend) triple consumed by the JIT kernels."""
        return np.asarray(self.matrix), self.gap.open, self.gap.extend

    def score_path(self, ops: Iterable[int], query: Union[Seq, np.ndarray], target: Union[Seq, np.ndarray]) -> float:
        """
        Scores an edit path from scratch.

        Gap runs are charged once per run regardless of where the path was split, so this
        gives the reference score for a stitched alignment.
        """
        q, t = np.asarray(query), np.asarray(target)
        m = np.asarray(self.matrix)
        i = j = 0
        total = 0.0
        prev = Op.MATCH
        for op in ops:
            if op == Op.MATCH:
                total += m[q[i], t[j]]
                i += 1
                j += 1
            else:
                total -= self.gap.extend if op == prev else self.gap.open
                if op == Op.INSERT: i += 1
                else: j += 1
            prev = op
        if i != len(q) or j != len(t):
            raise ValueError(f'Path consumes ({i}, {j}) symbols but the sequences have ({len(q)}, {len(t)})')
        return total

    def max_score(self, query: Seq, target: Seq) -> float:
        """
        Upper bound on the global alignment score, no gaps charged.

        Each paired query symbol scores at most the best entry of its matrix row and each
        paired target symbol at most the best entry of its column. Symbols left unpaired
        contribute nothing, so only positive maxima count.
        """
        m = np.asarray(self.matrix)
        rows = np.maximum(m.max(axis=1), 0)[np.asarray(query)].sum()
        cols = np.maximum(m.max(axis=0), 0)[np.asarray(target)].sum()
        return float(min(rows, cols))

    def min_score(self, query: Seq, target: Seq) -> float:
        """Lower bound: both sequences aligned entirely against gaps."""
        return -(self.gap(len(query)) + self.gap(len(target)))

    @classmethod
    def simple(cls, alphabet: Alphabet = Alphabet.DNA, match: float = 1, mismatch: float = -1,
               gap_open: float = 2, gap_extend: float = 1) -> 'ScoringModel':
        return cls(ScoreMatrix.build(alphabet, match, mismatch), GapPenalty(gap_open, gap_extend))

    @classmethod
    def blosum62(cls, gap_open: float = 11, gap_extend: float = 1) -> 'ScoringModel':
        return cls(ScoreMatrix.blosum62(), GapPenalty(gap_open, gap_extend))
