"""
Shared pytest fixtures for trellishmm tests.
"""
import pytest
import numpy as np

from trellishmm.core.hmm import TrellisHMM


@pytest.fixture
def sticky_transmat():
    """2-state transition matrix that strongly prefers staying put."""
    return np.array([[0.9, 0.1], [0.1, 0.9]])


@pytest.fixture
def mirrored_emissionprob():
    """
    2-state, 2-symbol emission matrix.
    State 0: mostly emits symbol 0
    State 1: mostly emits symbol 1
    """
    return np.array([
        [0.9, 0.1],
        [0.1, 0.9],
    ])


@pytest.fixture
def block_observations():
    """Three 0s followed by three 1s."""
    return np.array([0, 0, 0, 1, 1, 1], dtype=np.int64)


@pytest.fixture
def discrete_model(sticky_transmat, mirrored_emissionprob, block_observations):
    """Fully loaded 2-state discrete model."""
    model = TrellisHMM(n_states=2, n_symbols=2)
    model.set_startprob([0.5, 0.5])
    model.set_transmat(sticky_transmat)
    model.set_emissionprob(mirrored_emissionprob)
    model.set_observations(block_observations)
    return model


@pytest.fixture
def random_discrete_model():
    """3-state, 4-symbol discrete model with random (seeded) parameters."""
    rng = np.random.default_rng(7)
    model = TrellisHMM(n_states=3, n_symbols=4)
    model.set_startprob(rng.dirichlet(np.ones(3)))
    model.set_transmat(rng.dirichlet(np.ones(3), size=3))
    model.set_emissionprob(rng.dirichlet(np.ones(4), size=3))
    model.set_observations(rng.integers(0, 4, size=5))
    return model


@pytest.fixture
def continuous_model():
    """2-state continuous model over 5 timepoints."""
    rng = np.random.default_rng(11)
    model = TrellisHMM(n_states=2)
    model.set_startprob([0.3, 0.7])
    model.set_transmat([[0.8, 0.2], [0.3, 0.7]])
    model.set_time_emissionprob(rng.normal(-3.0, 1.0, size=(5, 2)))
    return model
