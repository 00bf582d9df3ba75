"""
Parameter re-estimation from trellis solutions.

- reestimate_from_path:       Viterbi training (hard counts along the best path)
- reestimate_from_posteriors: Baum-Welch training (expected counts from
                              per-edge posteriors)

Both update the ModelParameters in place and report whether any parameter
moved by more than CHANGE_TOLERANCE (in probability).
"""

import logging
from typing import List, Tuple

import numpy as np

from trellishmm.core.errors import InfeasiblePath, NumericFailure
from trellishmm.core.logspace import LOG_ZERO, log_normalize
from trellishmm.core.params import ModelParameters
from trellishmm.core.trellis import EMISSION, START, TRANSITION, Emission, Transition, Trellis

log = logging.getLogger(__name__)

CHANGE_TOLERANCE = 1e-9


def _changed(old: np.ndarray, new: np.ndarray) -> bool:
    """True if any probability differs by more than CHANGE_TOLERANCE.

    Compared in linear space: an entry drifting towards LOG_ZERO keeps moving
    in log space long after its probability has stopped changing.
    """
    return not np.allclose(np.exp(old), np.exp(new), rtol=0.0, atol=CHANGE_TOLERANCE)


def _counts_to_log_probs(counts: np.ndarray) -> np.ndarray:
    """Row-normalize integer counts into log probabilities; empty rows become uniform."""
    totals = counts.sum(axis=1, keepdims=True)
    n_cols = counts.shape[1]
    with np.errstate(divide='ignore', invalid='ignore'):
        log_probs = np.log(counts / np.where(totals == 0, 1, totals))
    log_probs[totals[:, 0] == 0] = -np.log(n_cols)
    return log_probs


def _fill_empty_rows(log_probs: np.ndarray, empty: np.ndarray, what: str) -> np.ndarray:
    if np.any(empty):
        log.debug("%s: %d state(s) with zero expected mass set to uniform",
                  what, int(np.sum(empty)))
        log_probs[empty] = -np.log(log_probs.shape[1])
    return log_probs


def reestimate_from_path(params: ModelParameters, best_path: list) -> Tuple[bool, List[int]]:
    """
    Viterbi re-estimation from a best path of edge tags.

    Transition (and, for discrete models, emission) probabilities are set to
    the normalized tag counts along the path. A state never visited gets a
    uniform row. The initial distribution is not updated.

    Returns:
        (changed, states) where states is the predicted hidden state per timepoint.
    """
    if not best_path:
        raise InfeasiblePath("Best path is empty; no feasible path through the trellis")

    n_states = params.n_states
    trans_counts = np.zeros((n_states, n_states), dtype=np.int64)
    emiss_counts = np.zeros((n_states, max(params.n_symbols, 1)), dtype=np.int64)
    state_counts = np.zeros(n_states, dtype=np.int64)
    states = []

    for tag in best_path:
        if isinstance(tag, Transition):
            trans_counts[tag.from_state, tag.to_state] += 1
        elif isinstance(tag, Emission):
            if params.is_discrete:
                emiss_counts[tag.state, tag.symbol] += 1
            state_counts[tag.state] += 1
            states.append(tag.state)

    n_timepoints = params.n_timepoints
    if len(states) != n_timepoints:
        raise RuntimeError(
            f"Best path has {len(states)} emissions, expected {n_timepoints}"
        )

    params.state_freqs_ = state_counts / n_timepoints

    new_trans = _counts_to_log_probs(trans_counts)
    changed = _changed(params.log_transmat_, new_trans)
    params.log_transmat_ = new_trans

    if params.is_discrete:
        new_emiss = _counts_to_log_probs(emiss_counts)
        changed = _changed(params.log_emissionprob_, new_emiss) or changed
        params.log_emissionprob_ = new_emiss

    return changed, states


def reestimate_from_posteriors(params: ModelParameters, trellis: Trellis) -> bool:
    """
    Baum-Welch re-estimation from a trellis after find_posterior_probs().

    Accumulates posterior mass per tag (Start -> initial distribution,
    Transition -> transition matrix, Emission -> emission matrix for discrete
    models and state occupancy for all models) and normalizes each group.

    Returns:
        True if any parameter changed.
    """
    if trellis.posteriors_ is None:
        trellis.find_posterior_probs()
    posteriors = trellis.posteriors_
    edges = trellis.edge_arrays()
    kinds, op_a, op_b = edges['kinds'], edges['op_a'], edges['op_b']

    n_states = params.n_states
    init_acc = np.full(n_states, LOG_ZERO)
    trans_acc = np.full((n_states, n_states), LOG_ZERO)
    occupancy = np.full(n_states, LOG_ZERO)

    m = kinds == START
    np.logaddexp.at(init_acc, op_a[m], posteriors[m])

    m = kinds == TRANSITION
    np.logaddexp.at(trans_acc, (op_a[m], op_b[m]), posteriors[m])

    m = kinds == EMISSION
    n_emissions = int(np.sum(m))
    if n_emissions != params.n_timepoints * n_states:
        raise RuntimeError(
            f"Trellis has {n_emissions} emission edges, expected "
            f"{params.n_timepoints * n_states}"
        )
    np.logaddexp.at(occupancy, op_a[m], posteriors[m])
    if params.is_discrete:
        emiss_acc = np.full((n_states, params.n_symbols), LOG_ZERO)
        np.logaddexp.at(emiss_acc, (op_a[m], op_b[m]), posteriors[m])

    freqs, _ = log_normalize(occupancy)
    params.state_freqs_ = np.exp(freqs)

    new_init, empty = log_normalize(init_acc)
    if empty:
        raise NumericFailure("Initial-state posteriors carry no probability mass")
    changed = _changed(params.log_startprob_, new_init)
    params.log_startprob_ = new_init

    new_trans, empty = log_normalize(trans_acc, axis=1)
    new_trans = _fill_empty_rows(new_trans, empty, "Transition re-estimation")
    changed = _changed(params.log_transmat_, new_trans) or changed
    params.log_transmat_ = new_trans

    if params.is_discrete:
        new_emiss, empty = log_normalize(emiss_acc, axis=1)
        new_emiss = _fill_empty_rows(new_emiss, empty, "Emission re-estimation")
        changed = _changed(params.log_emissionprob_, new_emiss) or changed
        params.log_emissionprob_ = new_emiss

    for name in ('log_startprob_', 'log_transmat_', 'log_emissionprob_'):
        value = getattr(params, name)
        if value is not None and np.isnan(value).any():
            raise NumericFailure(f"NaN in re-estimated {name}")

    return changed
