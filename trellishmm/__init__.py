"""
trellishmm - Hidden Markov Model training (Viterbi and Baum-Welch) over a
log-space weighted DAG ("trellis").
"""

__version__ = "1.0.0"

from trellishmm.core.hmm import TrellisHMM
from trellishmm.core.errors import InvalidDistribution, MissingData, InfeasiblePath, NumericFailure
from trellishmm.core.model_io import load_model, save_model
