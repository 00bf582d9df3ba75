"""Core trellis algorithms, parameter handling and re-estimation."""

from trellishmm.core.hmm import TrellisHMM
from trellishmm.core.params import ModelParameters
from trellishmm.core.trellis import Trellis, Start, Transition, Emission, Finish
from trellishmm.core.builder import build_trellis
from trellishmm.core.model_io import load_model, save_model
