import numpy as np
import pytest
from lsalign.core.alphabet import Alphabet, AlphabetError
from lsalign.core.rectangle import Op
from lsalign import quadratic_align
from lsalign.pairwise.scoring import ScoreMatrix, GapPenalty, ScoringModel


class TestScoreMatrix:
    def test_build(self):
        m = ScoreMatrix.build(Alphabet.DNA, match=2, mismatch=-3)
        assert m.score('A', 'A') == 2.0
        assert m.score(b'A', b'C') == -3.0
        assert m.shape == (4, 4)
        assert m.is_symmetric

    def test_read_only(self):
        m = ScoreMatrix.identity(Alphabet.DNA)
        with pytest.raises(ValueError):
            np.asarray(m)[0, 0] = 5

    def test_shape_mismatch(self):
        with pytest.raises(ValueError, match="does not match"):
            ScoreMatrix(np.zeros((3, 3)), Alphabet.DNA)

    def test_non_finite(self):
        data = np.zeros((4, 4))
        data[1, 2] = np.inf
        with pytest.raises(ValueError, match="finite"):
            ScoreMatrix(data, Alphabet.DNA)

    def test_blosum62(self):
        m = ScoreMatrix.blosum62()
        assert m.alphabet is Alphabet.AMINO
        assert m.score('W', 'W') == 11.0
        assert m.score('A', 'R') == -1.0
        assert m.is_symmetric

    def test_transpose(self):
        data = np.arange(16).reshape(4, 4)
        m = ScoreMatrix(data, Alphabet.DNA)
        assert not m.is_symmetric
        assert m.transpose().score('A', 'C') == m.score('C', 'A')

    def test_unknown_symbol(self):
        with pytest.raises(AlphabetError):
            ScoreMatrix.identity(Alphabet.DNA).score('A', 'X')


class TestGapPenalty:
    def test_affine_cost(self):
        gap = GapPenalty(open=2, extend=1)
        assert gap(0) == 0.0
        assert gap(1) == 2.0
        assert gap(3) == 4.0

    def test_extension(self):
        gap = GapPenalty(open=5, extend=2)
        assert gap.extension(0) == 5.0
        assert gap.extension(4) == 2.0
        assert gap(5) == gap(4) + gap.extension(4)

    def test_linear(self):
        gap = GapPenalty.linear(3)
        assert gap.is_linear
        assert gap(4) == 12.0

    def test_open_below_extend_allowed(self):
        assert GapPenalty.affine(1, 3)(2) == 4.0

    def test_negative(self):
        with pytest.raises(ValueError):
            GapPenalty(-1, 1)
        with pytest.raises(ValueError):
            GapPenalty(1, -0.5)
        with pytest.raises(ValueError):
            GapPenalty()(-1)

    def test_immutable(self):
        with pytest.raises(AttributeError):
            GapPenalty().open = 3


class TestScoringModel:
    def test_defaults(self):
        model = ScoringModel.simple()
        assert model.alphabet is Alphabet.DNA
        assert model.substitution_score('A', 'A') == 1.0
        assert model.substitution_score('A', 'G') == -1.0
        assert model.gap_penalty(2) == 3.0

    def test_requires_matrix(self):
        with pytest.raises(TypeError):
            ScoringModel(None)
        with pytest.raises(TypeError):
            ScoringModel(ScoreMatrix.identity(Alphabet.DNA), gap=(2, 1))

    def test_immutable(self):
        with pytest.raises(AttributeError):
            ScoringModel.simple().gap = GapPenalty(1, 1)

    def test_score_path(self):
        model = ScoringModel.simple()
        q, t = model.encode('ACGT'), model.encode('AT')
        # A/A, two-long gap in the target, T/T
        assert model.score_path([Op.MATCH, Op.INSERT, Op.INSERT, Op.MATCH], q, t) == -1.0

    def test_score_path_direction_switch_reopens(self):
        model = ScoringModel.simple()
        assert model.score_path([Op.INSERT, Op.DELETE], model.encode('A'), model.encode('C')) == -4.0

    def test_score_path_length_mismatch(self):
        model = ScoringModel.simple()
        with pytest.raises(ValueError, match="consumes"):
            model.score_path([Op.MATCH], model.encode('AC'), model.encode('A'))

    def test_bounds(self):
        model = ScoringModel.simple()
        q, t = model.encode('ACGT'), model.encode('ACG')
        assert model.max_score(q, t) == 3.0
        assert model.min_score(q, t) == -(5.0 + 4.0)

    def test_blosum62_model(self):
        model = ScoringModel.blosum62()
        assert model.gap.open == 11.0 and model.gap.extend == 1.0
        assert model.alphabet is Alphabet.AMINO

    def test_max_score_off_diagonal_dominant(self):
        data = np.full((4, 4), 5.0)
        np.fill_diagonal(data, 1.0)
        model = ScoringModel(ScoreMatrix(data, Alphabet.DNA), GapPenalty(2, 1))
        q, t = model.encode('A'), model.encode('C')
        assert quadratic_align(q, t, model).score == 5.0
        assert model.max_score(q, t) >= 5.0

    def test_bounds_hold_for_asymmetric_matrices(self):
        rng = np.random.default_rng(17)
        for _ in range(5):
            model = ScoringModel(ScoreMatrix(rng.integers(-4, 6, size=(4, 4)), Alphabet.DNA),
                                 GapPenalty(*rng.integers(0, 4, size=2)))
            q = Alphabet.DNA.random_seq(rng, min_len=1, max_len=30)
            t = Alphabet.DNA.random_seq(rng, min_len=1, max_len=30)
            score = quadratic_align(q, t, model).score
            assert model.min_score(q, t) <= score <= model.max_score(q, t)

    def test_max_score_all_negative_matrix(self):
        model = ScoringModel(ScoreMatrix(np.full((4, 4), -2.0), Alphabet.DNA), GapPenalty(1, 1))
        assert model.max_score(model.encode('ACG'), model.encode('TT')) == 0.0
