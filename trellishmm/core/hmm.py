"""
trellishmm HMM module

Provides:
1. TrellisHMM: discrete or continuous N-state HMM with log-space parameters
2. One-step Viterbi training (hard counts along the best trellis path)
3. One-step Baum-Welch training (expected counts from edge posteriors)

Each training call builds a fresh trellis from the current parameters, solves
it, re-estimates the parameters in place and discards the trellis. Iterating
to convergence is left to the caller: call a training method until it
reports no change, or until an iteration cap is hit.
"""

import logging
from typing import List, Tuple

import numpy as np

from trellishmm.core.builder import build_trellis
from trellishmm.core.params import ModelParameters
from trellishmm.core.reestimate import reestimate_from_path, reestimate_from_posteriors
from trellishmm.core.trellis import Emission, Trellis

log = logging.getLogger(__name__)


class TrellisHMM(ModelParameters):
    """
    Hidden Markov Model trained through a trellis (weighted DAG).

    Pass n_symbols > 0 for a discrete model (load emission probabilities and
    observations), or leave it at 0 for a continuous model (load the
    per-timepoint log-likelihood matrix).

    Example:
        model = TrellisHMM(n_states=2, n_symbols=2)
        model.set_startprob([0.5, 0.5])
        model.set_transmat([[0.9, 0.1], [0.1, 0.9]])
        model.set_emissionprob([[0.9, 0.1], [0.1, 0.9]])
        model.set_observations([0, 0, 1, 1])
        changed, states = model.viterbi_training()
    """

    def __init__(self, n_states: int, n_symbols: int = 0):
        super().__init__(n_states, n_symbols)

        # Default iteration cap for callers driving training to convergence
        self.n_iter: int = 100

        self.ran_viterbi_ = False
        self.ran_baum_welch_ = False

    def to_trellis(self) -> Trellis:
        """Build the trellis for the current parameters (2*N*M + 2 nodes)."""
        return build_trellis(self)

    def viterbi_training(self) -> Tuple[bool, List[int]]:
        """
        One step of Viterbi training.

        Returns:
            changed: True if any transition/emission probability changed
            states: predicted hidden state for each timepoint

        Raises:
            MissingData: if parameters or observations are not loaded
            InfeasiblePath: if no path of nonzero probability exists
        """
        self.require_all_data()
        trellis = self.to_trellis()
        best_path = trellis.find_best_path()
        changed, states = reestimate_from_path(self, best_path)
        self.ran_viterbi_ = True
        log.debug("Viterbi step: path log-weight %.6g, changed=%s",
                  trellis.best_score_, changed)
        return changed, states

    def baum_welch_training(self) -> Tuple[bool, float]:
        """
        One step of Baum-Welch training.

        Returns:
            changed: True if any parameter changed
            log_likelihood: log2 likelihood of the observations under the
                parameters *before* this update

        Raises:
            MissingData: if parameters or observations are not loaded
            InfeasiblePath: if the observations have zero likelihood
            NumericFailure: if a NaN appears during forward-backward
        """
        self.require_all_data()
        trellis = self.to_trellis()
        trellis.find_posterior_probs()
        changed = reestimate_from_posteriors(self, trellis)
        self.ran_baum_welch_ = True

        log_likelihood = trellis.log_likelihood_ / np.log(2)
        log.debug("Baum-Welch step: log2-likelihood %.6g, changed=%s",
                  log_likelihood, changed)
        return changed, float(log_likelihood)

    def score(self) -> float:
        """Natural-log likelihood of the observations under the current parameters."""
        self.require_all_data()
        trellis = self.to_trellis()
        trellis.find_posterior_probs()
        return trellis.log_likelihood_

    def predict(self) -> np.ndarray:
        """Most likely hidden state sequence, without updating parameters."""
        self.require_all_data()
        trellis = self.to_trellis()
        path = trellis.find_best_path()
        return np.array([tag.state for tag in path if isinstance(tag, Emission)], dtype=np.int64)
