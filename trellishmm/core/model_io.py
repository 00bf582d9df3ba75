"""
trellishmm model I/O module

Saves and loads TrellisHMM models as JSON in linear probability space:
- discrete models store the emission matrix and, if loaded, the observations
- continuous models store the time emission log-likelihood matrix
- state occupancy frequencies and the trained flags are kept for reporting

Loading goes through the normal setters, so a file with a malformed row is
rejected with InvalidDistribution exactly as a direct load would be.
"""

import json
import os
import warnings

import numpy as np

from trellishmm.core.hmm import TrellisHMM

MODEL_TYPE = 'TrellisHMM'
FORMAT_VERSION = '1.0'


def _linear(log_probs):
    return None if log_probs is None else np.exp(log_probs).tolist()


def save_model(model: TrellisHMM, filepath: str):
    """
    Save model to file in JSON format.

    If the filepath does not end in .json, the extension is replaced with
    .json and a warning is issued.
    """
    if not filepath.endswith('.json'):
        old_path = filepath
        base, _ = os.path.splitext(filepath)
        filepath = base + '.json'
        warnings.warn(
            f"Only JSON format is supported for saving. "
            f"Saving to '{filepath}' instead of '{old_path}'."
        )

    data = {
        'model_type': MODEL_TYPE,
        'version': FORMAT_VERSION,
        'n_states': model.n_states,
        'n_symbols': model.n_symbols,
        'startprob': _linear(model.log_startprob_),
        'transmat': _linear(model.log_transmat_),
        'state_freqs': (None if model.state_freqs_ is None
                        else np.asarray(model.state_freqs_).tolist()),
        'ran_viterbi': bool(model.ran_viterbi_),
        'ran_baum_welch': bool(model.ran_baum_welch_),
    }
    if model.is_discrete:
        data['emissionprob'] = _linear(model.log_emissionprob_)
        data['observations'] = (None if model.observations_ is None
                                else model.observations_.tolist())
    else:
        data['time_emissionprob'] = (None if model.log_time_emissionprob_ is None
                                     else model.log_time_emissionprob_.tolist())

    with open(filepath, 'w') as f:
        json.dump(data, f, indent=2)
    return filepath


def load_model(filepath: str) -> TrellisHMM:
    """Load a model saved by save_model()."""
    with open(filepath, 'r') as f:
        data = json.load(f)

    if data.get('model_type') != MODEL_TYPE:
        raise ValueError(
            f"{filepath} is not a {MODEL_TYPE} model "
            f"(model_type={data.get('model_type')!r})"
        )

    model = TrellisHMM(n_states=data['n_states'], n_symbols=data.get('n_symbols', 0))
    if data.get('startprob') is not None:
        model.set_startprob(data['startprob'])
    if data.get('transmat') is not None:
        model.set_transmat(data['transmat'])
    if model.is_discrete:
        if data.get('emissionprob') is not None:
            model.set_emissionprob(data['emissionprob'])
        if data.get('observations') is not None:
            model.set_observations(data['observations'])
    elif data.get('time_emissionprob') is not None:
        model.set_time_emissionprob(data['time_emissionprob'])

    if data.get('state_freqs') is not None:
        model.state_freqs_ = np.asarray(data['state_freqs'], dtype=np.float64)
    model.ran_viterbi_ = bool(data.get('ran_viterbi', False))
    model.ran_baum_welch_ = bool(data.get('ran_baum_welch', False))

    return model
