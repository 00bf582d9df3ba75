"""
HMM parameter container.

Holds initial, transition and emission distributions in log space for two
mutually exclusive model variants:

- discrete:   n_symbols > 0, emission probabilities per (state, symbol) and
              an observed symbol sequence
- continuous: n_symbols == 0, pre-computed log-likelihoods per
              (timepoint, state)

Setters take linear probabilities (except the continuous emission matrix,
which is already a log-likelihood table), validate them and store logs.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from trellishmm.core.errors import InvalidDistribution, MissingData
from trellishmm.core.logspace import LOG_ZERO

log = logging.getLogger(__name__)

# Maximum deviation of a probability row's sum from 1
PROB_TOLERANCE = 1e-6


def _check_prob_rows(probs, n_rows: Optional[int], n_cols: int, name: str) -> np.ndarray:
    """Validate a vector (n_rows=None) or matrix of linear probabilities."""
    arr = np.asarray(probs, dtype=np.float64)
    expected = (n_cols,) if n_rows is None else (n_rows, n_cols)
    if arr.shape != expected:
        raise InvalidDistribution(
            f"{name} has shape {arr.shape}, expected {expected}"
        )
    if not np.all(np.isfinite(arr)) or np.any(arr < 0):
        raise InvalidDistribution(f"{name} contains negative or non-finite entries")

    sums = np.atleast_1d(arr.sum(axis=-1))
    bad = np.flatnonzero(np.abs(sums - 1.0) > PROB_TOLERANCE)
    if len(bad) > 0:
        row = int(bad[0])
        raise InvalidDistribution(
            f"{name} row {row} sums to {sums[row]:.6g}, expected 1"
        )
    return arr


class ModelParameters:
    """
    Parameters of an N-state HMM in log space.

    Attributes (None until loaded):
        log_startprob_:        (N,) log P(initial state)
        log_transmat_:         (N, N) log P(next state | state)
        log_emissionprob_:     (N, K) log P(symbol | state), discrete only
        observations_:         (M,) observed symbols, discrete only
        log_time_emissionprob_: (M, N) log-likelihood of timepoint data
                                under each state, continuous only
        state_freqs_:          (N,) state occupancy from the last training
                                step (diagnostic only)
    """

    def __init__(self, n_states: int, n_symbols: int = 0):
        if n_states < 1:
            raise ValueError(f"n_states must be positive, got {n_states}")
        if n_symbols < 0:
            raise ValueError(f"n_symbols must be >= 0, got {n_symbols}")

        self.n_states = n_states
        self.n_symbols = n_symbols

        self.log_startprob_: Optional[np.ndarray] = None
        self.log_transmat_: Optional[np.ndarray] = None
        self.log_emissionprob_: Optional[np.ndarray] = None
        self.observations_: Optional[np.ndarray] = None
        self.log_time_emissionprob_: Optional[np.ndarray] = None

        self.state_freqs_: Optional[np.ndarray] = None

    @property
    def is_discrete(self) -> bool:
        return self.n_symbols > 0

    def _require_discrete(self, what: str):
        if not self.is_discrete:
            raise ValueError(f"{what} applies to discrete models only (n_symbols > 0)")

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def set_startprob(self, probs: Sequence[float]):
        """Load the initial state distribution (N linear probabilities)."""
        arr = _check_prob_rows(probs, None, self.n_states, "initial distribution")
        with np.errstate(divide='ignore'):
            self.log_startprob_ = np.log(arr)

    def set_transmat(self, probs):
        """Load the N x N transition matrix; row i is P(next | i)."""
        arr = _check_prob_rows(probs, self.n_states, self.n_states, "transition matrix")
        with np.errstate(divide='ignore'):
            self.log_transmat_ = np.log(arr)

    def set_emissionprob(self, probs):
        """Load the N x K symbol emission matrix (discrete models)."""
        self._require_discrete("Symbol emission probabilities")
        arr = _check_prob_rows(probs, self.n_states, self.n_symbols, "emission matrix")
        with np.errstate(divide='ignore'):
            self.log_emissionprob_ = np.log(arr)

    def set_observations(self, observations: Sequence[int]):
        """Load the observed symbol sequence (discrete models)."""
        self._require_discrete("Observation sequences")
        obs = np.asarray(observations)
        if obs.ndim != 1 or len(obs) == 0:
            raise ValueError("Observation sequence must be a non-empty 1-D sequence")
        if not np.issubdtype(obs.dtype, np.integer):
            if not np.all(np.equal(np.mod(obs, 1), 0)):
                raise ValueError("Observation symbols must be integers")
        obs = obs.astype(np.int64)
        if obs.min() < 0 or obs.max() >= self.n_symbols:
            raise ValueError(
                f"Observation symbols must lie in [0, {self.n_symbols}), "
                f"got range [{obs.min()}, {obs.max()}]"
            )
        self.observations_ = obs

    def set_time_emissionprob(self, log_likelihoods):
        """
        Load the M x N matrix of per-timepoint log-likelihoods (continuous models).

        Entry [t, i] is the log-likelihood of the data at timepoint t under
        state i. Every entry must be finite: a state that cannot explain a
        timepoint makes the trellis unsolvable. Each row is shifted by its
        maximum to keep values near 0; this does not change posteriors or
        the best path.
        """
        if self.is_discrete:
            raise ValueError("Time emission probabilities apply to continuous models only")
        arr = np.asarray(log_likelihoods, dtype=np.float64)
        if arr.ndim != 2 or arr.shape[0] == 0 or arr.shape[1] != self.n_states:
            raise InvalidDistribution(
                f"time emission matrix has shape {arr.shape}, "
                f"expected (n_timepoints, {self.n_states})"
            )
        if np.any(arr == LOG_ZERO) or not np.all(np.isfinite(arr)):
            t, i = np.argwhere(~np.isfinite(arr))[0]
            raise InvalidDistribution(
                f"time emission entry [{t}, {i}] is {arr[t, i]}; every state must "
                f"be able to emit every timepoint"
            )
        self.log_time_emissionprob_ = arr - arr.max(axis=1, keepdims=True)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def has_all_data(self) -> bool:
        """True if everything needed for a training step is loaded."""
        if self.log_startprob_ is None or self.log_transmat_ is None:
            return False
        if self.is_discrete:
            return self.log_emissionprob_ is not None and self.observations_ is not None
        return self.log_time_emissionprob_ is not None

    def require_all_data(self):
        if not self.has_all_data():
            raise MissingData(
                "Initial, transition and emission probabilities"
                + (" and observations" if self.is_discrete else "")
                + " must be loaded before training"
            )

    @property
    def n_timepoints(self) -> int:
        self.require_all_data()
        if self.is_discrete:
            return len(self.observations_)
        return self.log_time_emissionprob_.shape[0]

    def emission_column(self, t: int) -> np.ndarray:
        """(N,) log emission probability of each state at timepoint t."""
        if self.is_discrete:
            return self.log_emissionprob_[:, self.observations_[t]]
        return self.log_time_emissionprob_[t]

    @property
    def startprob_(self) -> Optional[np.ndarray]:
        return None if self.log_startprob_ is None else np.exp(self.log_startprob_)

    @property
    def transmat_(self) -> Optional[np.ndarray]:
        return None if self.log_transmat_ is None else np.exp(self.log_transmat_)

    @property
    def emissionprob_(self) -> Optional[np.ndarray]:
        return None if self.log_emissionprob_ is None else np.exp(self.log_emissionprob_)
