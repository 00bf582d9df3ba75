"""
Unit tests for the Trellis (weighted DAG) and its path algorithms.

Most tests use a hand-built diamond:

        +--(0.6)--> 1 --(0.5)--+
    0 --|                      |--> 3
        +--(0.4)--> 2 --(1.0)--+

Paths: 0-1-3 has probability 0.3, 0-2-3 has probability 0.4.
"""
import pytest
import numpy as np

from trellishmm.core.errors import InfeasiblePath, MissingData, NumericFailure
from trellishmm.core.logspace import LOG_ZERO
from trellishmm.core.trellis import (
    EMISSION,
    FINISH,
    NO_SYMBOL,
    START,
    TRANSITION,
    Emission,
    Finish,
    Start,
    Transition,
    Trellis,
    decode_tag,
)


def make_diamond(w01=0.6, w02=0.4, w13=0.5, w23=1.0):
    with np.errstate(divide='ignore'):
        weights = np.log([w01, w02, w13, w23])
    trellis = Trellis()
    nodes = [trellis.add_node() for _ in range(4)]
    trellis.add_edge(nodes[1], nodes[0], Start(0), weights[0])
    trellis.add_edge(nodes[2], nodes[0], Start(1), weights[1])
    trellis.add_edge(nodes[3], nodes[1], Finish(), weights[2])
    trellis.add_edge(nodes[3], nodes[2], Finish(), weights[3])
    trellis.set_start(nodes[0])
    trellis.set_end(nodes[3])
    return trellis


class TestEdgeTags:
    """Test the tagged edge variants."""

    def test_kinds_are_distinct(self):
        assert len({START, TRANSITION, EMISSION, FINISH}) == 4

    def test_decode_round_trips_each_variant(self):
        for tag in [Start(2), Transition(1, 3), Emission(0, 5), Emission(1), Finish()]:
            assert decode_tag(tag.kind, *tag.operands) == tag

    def test_continuous_emission_has_no_symbol(self):
        assert Emission(3).symbol == NO_SYMBOL

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            decode_tag(9, 0, 0)

    def test_tags_are_immutable(self):
        tag = Transition(0, 1)
        with pytest.raises(AttributeError):
            tag.to_state = 2


class TestConstruction:
    def test_counts(self):
        trellis = make_diamond()
        assert trellis.n_nodes == 4
        assert trellis.n_edges == 4
        assert trellis.start == 0
        assert trellis.end == 3

    def test_edge_must_point_forward(self):
        trellis = Trellis()
        a = trellis.add_node()
        b = trellis.add_node()
        with pytest.raises(ValueError):
            trellis.add_edge(a, b, Finish(), 0.0)
        with pytest.raises(ValueError):
            trellis.add_edge(a, a, Finish(), 0.0)

    def test_start_set_once(self):
        trellis = make_diamond()
        with pytest.raises(ValueError):
            trellis.set_start(1)

    def test_unknown_end_node(self):
        trellis = Trellis()
        trellis.add_node()
        with pytest.raises(ValueError):
            trellis.set_end(5)

    def test_in_edges_keep_insertion_order(self):
        trellis = make_diamond()
        parents = [parent for _, parent, _, _ in trellis.in_edges(3)]
        assert parents == [1, 2]

    def test_edges_grouped_by_child(self):
        """Edges added out of child order are still grouped by child."""
        trellis = Trellis()
        for _ in range(3):
            trellis.add_node()
        trellis.add_edge(2, 1, Finish(), 0.0)
        trellis.add_edge(1, 0, Start(0), 0.0)
        trellis.add_edge(2, 0, Finish(), -1.0)
        children = [child for _, child, _, _ in trellis.edges()]
        assert children == [1, 2, 2]

    def test_solving_requires_endpoints(self):
        trellis = Trellis()
        trellis.add_node()
        with pytest.raises(MissingData):
            trellis.find_best_path()
        with pytest.raises(MissingData):
            trellis.find_posterior_probs()


class TestBestPath:
    def test_picks_heavier_path(self):
        trellis = make_diamond()
        path = trellis.find_best_path()
        assert path == [Start(1), Finish()]
        np.testing.assert_allclose(trellis.best_score_, np.log(0.4))

    def test_changing_weights_changes_path(self):
        trellis = make_diamond(w13=0.9)
        assert trellis.find_best_path() == [Start(0), Finish()]

    def test_infeasible_raises(self):
        trellis = make_diamond(w13=0.0, w23=0.0)
        with pytest.raises(InfeasiblePath):
            trellis.find_best_path()

    def test_one_feasible_route(self):
        trellis = make_diamond(w02=0.0)
        assert trellis.find_best_path() == [Start(0), Finish()]


class TestForwardBackward:
    def test_total_likelihood(self):
        trellis = make_diamond()
        trellis.find_posterior_probs()
        np.testing.assert_allclose(trellis.log_likelihood_, np.log(0.7))

    def test_forward_and_backward_agree(self):
        """Start backward equals end forward."""
        trellis = make_diamond()
        trellis.find_posterior_probs()
        np.testing.assert_allclose(trellis.backward_[trellis.start],
                                   trellis.forward_[trellis.end])
        assert trellis.forward_[trellis.start] == 0.0
        assert trellis.backward_[trellis.end] == 0.0

    def test_edge_posteriors(self):
        trellis = make_diamond()
        posteriors = trellis.find_posterior_probs()
        # Edge order is grouped by child: 0->1, 0->2, 1->3, 2->3
        np.testing.assert_allclose(np.exp(posteriors), [3 / 7, 4 / 7, 3 / 7, 4 / 7])

    def test_posteriors_into_end_sum_to_one(self):
        trellis = make_diamond(w01=0.25, w02=0.75, w13=0.2, w23=0.9)
        posteriors = trellis.find_posterior_probs()
        np.testing.assert_allclose(np.exp(posteriors[2:]).sum(), 1.0)

    def test_impossible_edge_has_zero_posterior(self):
        trellis = make_diamond(w13=0.0)
        posteriors = trellis.find_posterior_probs()
        assert posteriors[2] == LOG_ZERO
        np.testing.assert_allclose(np.exp(posteriors[3]), 1.0)

    def test_zero_likelihood_raises(self):
        trellis = make_diamond(w01=0.0, w02=0.0)
        with pytest.raises(InfeasiblePath):
            trellis.find_posterior_probs()

    def test_nan_weight_is_numeric_failure(self):
        trellis = Trellis()
        nodes = [trellis.add_node() for _ in range(3)]
        trellis.add_edge(nodes[1], nodes[0], Start(0), float('nan'))
        trellis.add_edge(nodes[2], nodes[1], Finish(), 0.0)
        trellis.set_start(nodes[0])
        trellis.set_end(nodes[2])
        with pytest.raises(NumericFailure):
            trellis.find_posterior_probs()

    def test_long_chain_does_not_underflow(self):
        """A chain whose probability is far below float range stays finite in log space."""
        trellis = Trellis()
        prev = trellis.add_node()
        trellis.set_start(prev)
        for _ in range(2000):
            a = trellis.add_node()
            b = trellis.add_node()
            trellis.add_edge(a, prev, Transition(0, 0), np.log(0.5))
            trellis.add_edge(b, prev, Transition(0, 1), np.log(0.5))
            nxt = trellis.add_node()
            trellis.add_edge(nxt, a, Emission(0, 0), np.log(0.01))
            trellis.add_edge(nxt, b, Emission(1, 0), np.log(0.01))
            prev = nxt
        trellis.set_end(prev)

        trellis.find_posterior_probs()
        np.testing.assert_allclose(trellis.log_likelihood_, 2000 * np.log(0.01))
