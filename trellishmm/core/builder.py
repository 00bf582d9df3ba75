"""Conversion of HMM parameters plus observations into a Trellis."""

import logging

from trellishmm.core.params import ModelParameters
from trellishmm.core.trellis import (
    NO_SYMBOL,
    Emission,
    Finish,
    Start,
    Transition,
    Trellis,
)

log = logging.getLogger(__name__)


def build_trellis(params: ModelParameters) -> Trellis:
    """
    Build the trellis for the loaded parameters and observations.

    Each timepoint t adds two layers of N nodes:
        reached[i]: the model is in state i at t
        emitted[i]: state i has emitted the observation at t
    Edges:
        start      -> reached[i] (t=0)   Start(i)          log init[i]
        emitted'[j]-> reached[i] (t>0)   Transition(j, i)  log trans[j, i]
        reached[i] -> emitted[i]         Emission(i, sym)  log emission of obs t
        emitted[i] -> end (t=M-1)        Finish()          0

    The result has 2*N*M + 2 nodes and N + M*N + (M-1)*N^2 + N edges.

    Raises:
        MissingData: if the parameters are not fully loaded.
    """
    params.require_all_data()
    n_states = params.n_states
    n_timepoints = params.n_timepoints
    log_init = params.log_startprob_
    log_trans = params.log_transmat_

    trellis = Trellis()
    start = trellis.add_node()
    trellis.set_start(start)

    emitted = []
    for t in range(n_timepoints):
        reached = []
        for i in range(n_states):
            node = trellis.add_node()
            if t == 0:
                trellis.add_edge(node, start, Start(i), log_init[i])
            else:
                for j in range(n_states):
                    trellis.add_edge(node, emitted[j], Transition(j, i), log_trans[j, i])
            reached.append(node)

        symbol = int(params.observations_[t]) if params.is_discrete else NO_SYMBOL
        log_emit = params.emission_column(t)
        emitted = []
        for i in range(n_states):
            node = trellis.add_node()
            trellis.add_edge(node, reached[i], Emission(i, symbol), log_emit[i])
            emitted.append(node)

    end = trellis.add_node()
    for i in range(n_states):
        trellis.add_edge(end, emitted[i], Finish(), 0.0)
    trellis.set_end(end)

    log.debug("Built trellis: %d states x %d timepoints -> %d nodes, %d edges",
              n_states, n_timepoints, trellis.n_nodes, trellis.n_edges)
    return trellis
