"""
Read-only diagnostics for models and trellises.

format_model() renders a text summary of a TrellisHMM; trellis_to_dot()
describes the trellis around one timepoint in Graphviz DOT syntax. Neither
mutates its input.
"""

import numpy as np

from trellishmm.core.params import ModelParameters

# Emission matrices wider than this are summarized instead of printed
MAX_PRINTED_SYMBOLS = 200


def _matrix_lines(log_probs: np.ndarray, col_prefix: str, col_start: int) -> list:
    n_cols = log_probs.shape[1]
    lines = [''.join(f"\t{col_prefix}{j + col_start}" for j in range(n_cols))]
    for i, row in enumerate(np.exp(log_probs)):
        lines.append(f"S{i + 1}" + ''.join(f"\t{p:.5f}" for p in row))
    return lines


def format_model(model: ModelParameters) -> str:
    """Text summary of the model parameters, printed in linear probability space."""
    lines = ["HIDDEN MARKOV MODEL", f"{model.n_states} states"]
    n_t = model.n_timepoints if model.has_all_data() else None
    if model.is_discrete:
        lines.append(f"Discrete HMM with {model.n_symbols} observable symbols"
                     + (f" over {n_t} timepoints" if n_t is not None else ""))
    else:
        lines.append("Continuous HMM"
                     + (f" with {n_t} timepoints" if n_t is not None else ""))
    lines.append("")

    if model.log_startprob_ is not None:
        lines.append("Initial state probabilities:\t\t"
                     + ''.join(f"\t{p:.5f}" for p in np.exp(model.log_startprob_)))
    else:
        lines.append("Initial state probabilities:\t\t\tNOT LOADED")

    if model.log_transmat_ is not None:
        lines.append("State-to-state transition probabilities:")
        lines.extend(_matrix_lines(model.log_transmat_, 'S', 1))
        lines.append("")
    else:
        lines.append("State-to-state transition probabilities:\tNOT LOADED")

    if model.is_discrete:
        if model.log_emissionprob_ is None:
            lines.append("Symbol emission probabilities:\t\t\tNOT LOADED")
        elif model.n_symbols <= MAX_PRINTED_SYMBOLS:
            lines.append("Symbol emission probabilities:")
            lines.extend(_matrix_lines(model.log_emissionprob_, 'SYM', 0))
            lines.append("")
        else:
            lines.append(f"Symbol emission probabilities:\t\t\t<matrix of size "
                         f"{model.n_states} states X {model.n_symbols} symbols>")

        if model.observations_ is not None:
            lines.append(f"Sequence of observed symbols:\t\t\t<sequence of length "
                         f"{len(model.observations_)}>")
        else:
            lines.append("Sequence of observed symbols:\t\t\tNOT LOADED")
    else:
        if model.log_time_emissionprob_ is not None:
            lines.append(f"Time emission probabilities:\t\t\t<matrix of size "
                         f"{model.n_states} states X "
                         f"{model.log_time_emissionprob_.shape[0]} timepoints>")
        else:
            lines.append("Time emission probabilities:\t\t\tNOT LOADED")

    if model.state_freqs_ is not None:
        lines.append("State frequencies:\t\t\t"
                     + ''.join(f"\t{p:.5f}" for p in model.state_freqs_))

    lines.append("")
    return '\n'.join(lines)


def trellis_to_dot(model: ModelParameters, timepoint: int, depth: int = 1) -> str:
    """
    DOT digraph of the trellis within `depth` timepoints of `timepoint`.

    Node ids follow build_trellis() numbering (start = 0, reached[t][i] =
    1 + 2*N*t + i, emitted[t][i] = 1 + 2*N*t + N + i). Edges whose
    probability is zero are omitted.
    """
    model.require_all_data()
    n = model.n_states
    n_t = model.n_timepoints
    if not 0 <= timepoint < n_t:
        raise ValueError(f"timepoint must lie in [0, {n_t}), got {timepoint}")

    def reached(t, i):
        return 1 + 2 * n * t + i

    def emitted(t, i):
        return 1 + 2 * n * t + n + i

    lo = max(timepoint - depth, 0)
    hi = min(timepoint + depth, n_t - 1)
    lines = [f"digraph HMM_at_timepoint_{timepoint} {{"]
    if lo == 0:
        lines.append('0 [label="START"]')

    for t in range(lo, hi + 1):
        for i in range(n):
            lines.append(f'{reached(t, i)} [label="{t}_{i}_R"]')
            lines.append(f'{emitted(t, i)} [label="{t}_{i}_E"]')

        for i in range(n):
            if t == 0:
                if np.isfinite(model.log_startprob_[i]):
                    lines.append(f'0 -> {reached(0, i)} '
                                 f'[ label = "S_{np.exp(model.log_startprob_[i]):.5g}" ];')
            elif t > lo:
                for j in range(n):
                    w = model.log_transmat_[j, i]
                    if np.isfinite(w):
                        lines.append(f'{emitted(t - 1, j)} -> {reached(t, i)} '
                                     f'[ label = "T_{np.exp(w):.5g}" ];')

        for i, w in enumerate(model.emission_column(t)):
            if np.isfinite(w):
                lines.append(f'{reached(t, i)} -> {emitted(t, i)} '
                             f'[ label = "E_{np.exp(w):.5g}" ];')

    lines.append("}")
    return '\n'.join(lines) + '\n'
