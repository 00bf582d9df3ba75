"""
Weighted DAG ("trellis") with tagged edges and log-space path algorithms.

Nodes are addressed by integer index and stored in flat arrays. A child owns
its incoming edges; each edge references its parent by index. Edges may only
point from a lower index to a higher one, so insertion order is a topological
order and the graph is acyclic by construction.

Algorithms (compiled with numba):
1. Max-weight path (Viterbi) from the required start to the required end
2. Forward-backward sums and per-edge posterior log-probabilities
"""

import logging
from dataclasses import dataclass
from typing import ClassVar, Iterator, List, Optional, Tuple

import numpy as np
from numba import jit

from trellishmm.core.errors import InfeasiblePath, MissingData, NumericFailure
from trellishmm.core.logspace import LOG_ZERO, lnsum

log = logging.getLogger(__name__)

# Operand used for Emission tags of continuous models
NO_SYMBOL = -1


# =============================================================================
# Edge tags
# =============================================================================

@dataclass(frozen=True)
class Start:
    """Global start -> first-layer node of `state`."""
    state: int
    kind: ClassVar[int] = 0

    @property
    def operands(self) -> Tuple[int, int]:
        return self.state, 0


@dataclass(frozen=True)
class Transition:
    """Emitted node of `from_state` at t-1 -> reached node of `to_state` at t."""
    from_state: int
    to_state: int
    kind: ClassVar[int] = 1

    @property
    def operands(self) -> Tuple[int, int]:
        return self.from_state, self.to_state


@dataclass(frozen=True)
class Emission:
    """Reached node -> emitted node of `state`; `symbol` is NO_SYMBOL for continuous models."""
    state: int
    symbol: int = NO_SYMBOL
    kind: ClassVar[int] = 2

    @property
    def operands(self) -> Tuple[int, int]:
        return self.state, self.symbol


@dataclass(frozen=True)
class Finish:
    """Final-layer node -> global end."""
    kind: ClassVar[int] = 3

    @property
    def operands(self) -> Tuple[int, int]:
        return 0, 0


START, TRANSITION, EMISSION, FINISH = Start.kind, Transition.kind, Emission.kind, Finish.kind


def decode_tag(kind: int, a: int, b: int):
    """Rebuild an edge tag from its stored kind and operands."""
    if kind == START:
        return Start(a)
    if kind == TRANSITION:
        return Transition(a, b)
    if kind == EMISSION:
        return Emission(a, b)
    if kind == FINISH:
        return Finish()
    raise ValueError(f"Unknown edge tag kind: {kind}")


# =============================================================================
# Numba-compiled dynamic programs over the edge arena
# =============================================================================

@jit(nopython=True, cache=False)
def _best_path_numba(n_nodes, start, offsets, parents, weights):
    """
    Max-weight path scores in node (topological) order.

    Returns:
        score: (n_nodes,) best log-weight of any start -> node path
        best_edge: (n_nodes,) index of the chosen incoming edge, -1 if none
    """
    score = np.empty(n_nodes)
    best_edge = np.empty(n_nodes, dtype=np.int64)

    for node in range(n_nodes):
        best_edge[node] = -1
        if node == start:
            score[node] = 0.0
            continue
        best = LOG_ZERO
        for e in range(offsets[node], offsets[node + 1]):
            cand = score[parents[e]] + weights[e]
            # Strict comparison: ties keep the earliest edge
            if cand > best:
                best = cand
                best_edge[node] = e
        score[node] = best

    return score, best_edge


@jit(nopython=True, cache=False)
def _forward_numba(n_nodes, start, offsets, parents, weights):
    """Forward log-probabilities: lnsum over incoming edges of fw(parent) + w."""
    fw = np.empty(n_nodes)
    for node in range(n_nodes):
        if node == start:
            fw[node] = 0.0
            continue
        acc = LOG_ZERO
        for e in range(offsets[node], offsets[node + 1]):
            acc = lnsum(acc, fw[parents[e]] + weights[e])
        fw[node] = acc
    return fw


@jit(nopython=True, cache=False)
def _backward_numba(n_nodes, end, offsets, parents, weights):
    """
    Backward log-probabilities: lnsum over outgoing edges of bw(child) + w.

    Children are visited in reverse index order and push their value to
    each parent, so every bw(child) is final before it is propagated.
    """
    bw = np.empty(n_nodes)
    for node in range(n_nodes):
        bw[node] = LOG_ZERO
    bw[end] = 0.0

    for child in range(n_nodes - 1, -1, -1):
        b = bw[child]
        if b == LOG_ZERO:
            continue
        for e in range(offsets[child], offsets[child + 1]):
            p = parents[e]
            bw[p] = lnsum(bw[p], b + weights[e])
    return bw


# =============================================================================
# Trellis
# =============================================================================

class Trellis:
    """
    Layered weighted DAG with tagged edges.

    After find_best_path():
        best_path_:  list of edge tags from start to end
        best_score_: log-weight of that path
    After find_posterior_probs():
        forward_, backward_: (n_nodes,) log sums of paths from start / to end
        posteriors_:         (n_edges,) posterior log-probability per edge
        log_likelihood_:     total log-likelihood (forward_ of the end node)
    """

    def __init__(self):
        self._n_nodes = 0
        self._start: Optional[int] = None
        self._end: Optional[int] = None

        # Edge arena, in insertion order
        self._children: List[int] = []
        self._parents: List[int] = []
        self._weights: List[float] = []
        self._kinds: List[int] = []
        self._op_a: List[int] = []
        self._op_b: List[int] = []

        self._frozen = None

        self.best_path_: Optional[list] = None
        self.best_score_: Optional[float] = None
        self.forward_: Optional[np.ndarray] = None
        self.backward_: Optional[np.ndarray] = None
        self.posteriors_: Optional[np.ndarray] = None
        self.log_likelihood_: Optional[float] = None

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def add_node(self) -> int:
        """Append a node and return its index."""
        self._n_nodes += 1
        self._frozen = None
        return self._n_nodes - 1

    def add_edge(self, child: int, parent: int, tag, weight: float):
        """Add an incoming edge to `child` from `parent` (parent < child)."""
        if not (0 <= parent < child < self._n_nodes):
            raise ValueError(
                f"Edge {parent} -> {child} must point from an earlier node to "
                f"a later one (graph has {self._n_nodes} nodes)"
            )
        a, b = tag.operands
        self._children.append(child)
        self._parents.append(parent)
        self._weights.append(float(weight))
        self._kinds.append(tag.kind)
        self._op_a.append(a)
        self._op_b.append(b)
        self._frozen = None

    def set_start(self, node: int):
        """Designate the required start node."""
        if self._start is not None:
            raise ValueError(f"Start node already set to {self._start}")
        self._check_node(node)
        self._start = node

    def set_end(self, node: int):
        """Designate the required end node."""
        if self._end is not None:
            raise ValueError(f"End node already set to {self._end}")
        self._check_node(node)
        self._end = node

    def _check_node(self, node: int):
        if not 0 <= node < self._n_nodes:
            raise ValueError(f"Node {node} does not exist (graph has {self._n_nodes} nodes)")

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def n_nodes(self) -> int:
        return self._n_nodes

    @property
    def n_edges(self) -> int:
        return len(self._children)

    @property
    def start(self) -> Optional[int]:
        return self._start

    @property
    def end(self) -> Optional[int]:
        return self._end

    def _freeze(self):
        """
        Build CSR arrays grouping edges by child.

        Edges are stably sorted by child, so each node's incoming edges keep
        their insertion order. All array views below use this sorted order.
        """
        if self._frozen is not None:
            return self._frozen

        children = np.asarray(self._children, dtype=np.int64)
        order = np.argsort(children, kind='stable')
        children = children[order]
        offsets = np.zeros(self._n_nodes + 1, dtype=np.int64)
        np.cumsum(np.bincount(children, minlength=self._n_nodes), out=offsets[1:])

        self._frozen = {
            'offsets': offsets,
            'children': children,
            'parents': np.asarray(self._parents, dtype=np.int64)[order],
            'weights': np.asarray(self._weights, dtype=np.float64)[order],
            'kinds': np.asarray(self._kinds, dtype=np.int8)[order],
            'op_a': np.asarray(self._op_a, dtype=np.int64)[order],
            'op_b': np.asarray(self._op_b, dtype=np.int64)[order],
        }
        return self._frozen

    def edge_arrays(self) -> dict:
        """Edge arrays grouped by child (keys: parents, children, weights, kinds, op_a, op_b)."""
        return self._freeze()

    def tag(self, edge: int):
        f = self._freeze()
        return decode_tag(int(f['kinds'][edge]), int(f['op_a'][edge]), int(f['op_b'][edge]))

    def in_edges(self, node: int) -> Iterator[Tuple[int, int, object, float]]:
        """Yield (edge, parent, tag, weight) for each incoming edge of `node`."""
        f = self._freeze()
        for e in range(f['offsets'][node], f['offsets'][node + 1]):
            yield e, int(f['parents'][e]), self.tag(e), float(f['weights'][e])

    def edges(self) -> Iterator[Tuple[int, int, object, float]]:
        """Yield (parent, child, tag, weight) for every edge, grouped by child."""
        f = self._freeze()
        for e in range(self.n_edges):
            yield int(f['parents'][e]), int(f['children'][e]), self.tag(e), float(f['weights'][e])

    def _require_endpoints(self):
        if self._start is None or self._end is None:
            raise MissingData("Trellis start and end nodes must be set before solving")

    # -------------------------------------------------------------------------
    # Algorithms
    # -------------------------------------------------------------------------

    def find_best_path(self) -> list:
        """
        Find the maximum-weight start -> end path.

        Returns:
            Ordered list of edge tags along the path.

        Raises:
            InfeasiblePath: if every start -> end path has weight LOG_ZERO.
        """
        self._require_endpoints()
        f = self._freeze()
        score, best_edge = _best_path_numba(
            self._n_nodes, self._start, f['offsets'], f['parents'], f['weights']
        )

        if not np.isfinite(score[self._end]) or best_edge[self._end] < 0:
            raise InfeasiblePath(
                "No path of nonzero probability from start to end; the current "
                "parameters cannot explain the observations"
            )

        path_edges = []
        node = self._end
        while node != self._start:
            e = int(best_edge[node])
            path_edges.append(e)
            node = int(f['parents'][e])
        path_edges.reverse()

        self.best_path_ = [self.tag(e) for e in path_edges]
        self.best_score_ = float(score[self._end])
        log.debug("Best path: %d edges, log-weight %.6g", len(path_edges), self.best_score_)
        return self.best_path_

    def find_posterior_probs(self) -> np.ndarray:
        """
        Run forward-backward and compute per-edge posterior log-probabilities.

        posterior(edge) = fw(parent) + bw(child) + weight - log_likelihood

        Returns:
            (n_edges,) posterior log-probabilities, in edge_arrays() order.

        Raises:
            InfeasiblePath: if the total likelihood is zero.
            NumericFailure: if any forward, backward or posterior value is NaN.
        """
        self._require_endpoints()
        f = self._freeze()
        fw = _forward_numba(self._n_nodes, self._start, f['offsets'], f['parents'], f['weights'])
        bw = _backward_numba(self._n_nodes, self._end, f['offsets'], f['parents'], f['weights'])

        if np.isnan(fw).any() or np.isnan(bw).any():
            raise NumericFailure("NaN encountered in forward/backward probabilities")

        total = float(fw[self._end])
        if total == LOG_ZERO:
            raise InfeasiblePath(
                "Total likelihood is zero; the current parameters cannot explain "
                "the observations"
            )

        posteriors = fw[f['parents']] + bw[f['children']] + f['weights'] - total
        if np.isnan(posteriors).any():
            e = int(np.flatnonzero(np.isnan(posteriors))[0])
            raise NumericFailure(
                f"NaN posterior on edge {e} ({self.tag(e)}): fw={fw[f['parents'][e]]}, "
                f"bw={bw[f['children'][e]]}, weight={f['weights'][e]}"
            )

        self.forward_ = fw
        self.backward_ = bw
        self.posteriors_ = posteriors
        self.log_likelihood_ = total
        log.debug("Forward-backward: log-likelihood %.6g (start bw %.6g)", total, bw[self._start])
        return posteriors
