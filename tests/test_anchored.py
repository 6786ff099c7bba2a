import numpy as np
import pytest
from lsalign.core.alphabet import Alphabet
from lsalign.core.rectangle import Anchor, AnchorError, Rectangle, RectangleError, Op, ANY
from lsalign.pairwise.scoring import ScoringModel, ScoreMatrix, GapPenalty
from lsalign.engines.anchored import AnchoredAligner
from lsalign.engines.quadratic import QuadraticDPEngine


@pytest.fixture
def model():
    return ScoringModel.simple()


@pytest.fixture
def pair():
    rng = np.random.default_rng(11)
    q = np.asarray(Alphabet.DNA.random_seq(rng, length=37))
    t = np.asarray(Alphabet.DNA.random_seq(rng, length=29))
    return q, t


class TestScoreRows:
    def test_forward_last_row_is_optimum(self, model, pair):
        q, t = pair
        rect = Rectangle.full(len(q), len(t))
        rows = AnchoredAligner(model).forward_rows(rect, q, t, [0, 10, len(q)])
        assert rows.shape == (3, 3, len(t) + 1)
        assert rows[-1, :, -1].max() == QuadraticDPEngine(model).score(rect, q, t)

    def test_backward_first_row_is_optimum(self, model, pair):
        q, t = pair
        rect = Rectangle.full(len(q), len(t))
        rows = AnchoredAligner(model).backward_rows(rect, q, t, [0, len(q)])
        assert rows[0, Op.MATCH, 0] == QuadraticDPEngine(model).score(rect, q, t)
        assert np.all(rows[1, :, -1] == 0.0)

    def test_forward_plus_backward_bounded_by_optimum(self, model, pair):
        q, t = pair
        rect = Rectangle.full(len(q), len(t))
        aligner = AnchoredAligner(model)
        total = aligner.forward_rows(rect, q, t, [17])[0] + aligner.backward_rows(rect, q, t, [17])[0]
        assert total.max() == aligner.optimum(rect, q, t)

    def test_rows_outside_rectangle(self, model, pair):
        q, t = pair
        with pytest.raises(RectangleError):
            AnchoredAligner(model).forward_rows(Rectangle(5, 10, 0, 5), q, t, [11])

    def test_rows_must_increase(self, model, pair):
        q, t = pair
        with pytest.raises(ValueError):
            AnchoredAligner(model).backward_rows(Rectangle.full(len(q), len(t)), q, t, [4, 2])


class TestCrossingPoint:
    def test_crossing_lies_on_optimal_path(self, model, pair):
        q, t = pair
        rect = Rectangle.full(len(q), len(t))
        aligner = AnchoredAligner(model)
        anchor = aligner.crossing_point(rect, q, t, 20)
        assert anchor.i == 20
        left, right = aligner.split(rect, [anchor])
        engine = QuadraticDPEngine(model)
        assert engine.score(left, q, t) + engine.score(right, q, t) == engine.score(rect, q, t)

    def test_row_outside(self, model, pair):
        q, t = pair
        with pytest.raises(RectangleError):
            AnchoredAligner(model).crossing_point(Rectangle(0, 5, 0, 5), q, t, 6)


class TestCutPoints:
    def test_cut_lines(self):
        assert AnchoredAligner.cut_lines(10, 3) == [2, 5, 7]
        # More cuts than steps produces collisions
        assert AnchoredAligner.cut_lines(2, 5) == [0, 0, 1, 1, 1]

    def test_anchors_monotone_and_optimal(self, model, pair):
        q, t = pair
        rect = Rectangle.full(len(q), len(t))
        aligner = AnchoredAligner(model)
        cut = aligner.compute_cut_points(rect, q, t, num_cuts=5)
        assert 0 < len(cut.anchors) <= 5
        assert all(a.precedes(b) for a, b in zip(cut.anchors, cut.anchors[1:]))
        assert all(rect.contains(a) for a in cut.anchors)
        engine = QuadraticDPEngine(model)
        assert cut.optimum == engine.score(rect, q, t)
        pieces = aligner.split(rect, cut.anchors)
        assert sum(engine.score(p, q, t) for p in pieces) == cut.optimum

    def test_collisions_collapse(self, model):
        q, t = np.asarray(model.encode('ACG')), np.asarray(model.encode('ACG'))
        cut = AnchoredAligner(model).compute_cut_points(Rectangle.full(3, 3), q, t, num_cuts=8)
        assert cut.requested == 8
        assert len(cut.anchors) == 2
        assert cut.collapsed == 6

    def test_num_cuts_clamped(self, model, pair):
        q, t = pair
        cut = AnchoredAligner(model).compute_cut_points(Rectangle.full(len(q), len(t)), q, t, num_cuts=0)
        assert cut.requested == 1
        assert len(cut.anchors) == 1

    def test_wide_rectangle_cuts_columns(self, model):
        q, t = np.asarray(model.encode('ACGT')), np.asarray(model.encode('AACCGGTTAACCGGTT'))
        aligner = AnchoredAligner(model)
        rect = Rectangle.full(len(q), len(t))
        cut = aligner.compute_cut_points(rect, q, t, num_cuts=3)
        assert cut.transposed
        assert [a.j for a in cut.anchors] == [4, 8, 12]
        engine = QuadraticDPEngine(model)
        assert sum(engine.score(p, q, t) for p in aligner.split(rect, cut.anchors)) == engine.score(rect, q, t)

    def test_asymmetric_matrix(self):
        rng = np.random.default_rng(3)
        matrix = ScoreMatrix(rng.integers(-4, 5, size=(4, 4)), Alphabet.DNA)
        model = ScoringModel(matrix, GapPenalty(3, 1))
        q = np.asarray(Alphabet.DNA.random_seq(rng, length=12))
        t = np.asarray(Alphabet.DNA.random_seq(rng, length=40))
        aligner, engine = AnchoredAligner(model), QuadraticDPEngine(model)
        rect = Rectangle.full(len(q), len(t))
        cut = aligner.compute_cut_points(rect, q, t, num_cuts=4)
        assert cut.transposed
        assert cut.optimum == engine.score(rect, q, t)
        assert sum(engine.score(p, q, t) for p in aligner.split(rect, cut.anchors)) == cut.optimum


class TestCollapse:
    def test_duplicates_merge(self):
        a = Anchor(2, 2)
        assert AnchoredAligner.collapse([(a, 5.0), (a, 5.0)]) == (a,)

    def test_crossing_keeps_better(self):
        first, second = Anchor(2, 3), Anchor(3, 2)
        assert AnchoredAligner.collapse([(first, 1.0), (second, 2.0)]) == (second,)

    def test_tie_keeps_earlier(self):
        first, second = Anchor(2, 3), Anchor(3, 2)
        assert AnchoredAligner.collapse([(first, 1.0), (second, 1.0)]) == (first,)

    def test_non_colliding_untouched(self):
        anchors = [(Anchor(1, 1), 0.0), (Anchor(2, 2), 0.0), (Anchor(3, 2, Op.INSERT), 0.0)]
        assert len(AnchoredAligner.collapse(anchors)) == 3


class TestSplit:
    def test_pieces_inherit_states(self):
        rect = Rectangle(0, 10, 0, 10)
        pieces = AnchoredAligner.split(rect, [Anchor(3, 4, Op.DELETE), Anchor(7, 4, Op.INSERT)])
        assert pieces == [
            Rectangle(0, 3, 0, 4, Op.MATCH, Op.DELETE),
            Rectangle(3, 7, 4, 4, Op.DELETE, Op.INSERT),
            Rectangle(7, 10, 4, 10, Op.INSERT, ANY),
        ]

    def test_no_anchors(self):
        rect = Rectangle(0, 4, 0, 4)
        assert AnchoredAligner.split(rect, []) == [rect]

    def test_outside(self):
        with pytest.raises(AnchorError):
            AnchoredAligner.split(Rectangle(0, 5, 0, 5), [Anchor(6, 2)])

    def test_corner(self):
        with pytest.raises(AnchorError):
            AnchoredAligner.split(Rectangle(0, 5, 0, 5), [Anchor(5, 5)])

    def test_crossing(self):
        with pytest.raises(AnchorError, match="crosses"):
            AnchoredAligner.split(Rectangle(0, 5, 0, 5), [Anchor(2, 3), Anchor(3, 2)])


class TestAnchorOrder:
    def test_gap_repeats_cross_coordinate(self):
        assert Anchor(3, 4).precedes(Anchor(7, 4, Op.INSERT))
        assert Anchor(3, 4).precedes(Anchor(3, 9, Op.DELETE))

    def test_same_node_or_crossing(self):
        assert not Anchor(2, 2).precedes(Anchor(2, 2))
        assert not Anchor(2, 3).precedes(Anchor(3, 2))
