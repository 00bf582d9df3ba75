"""
Tests for trellishmm.core.model_io module.
"""
import json

import pytest
import numpy as np

from trellishmm.core.errors import InvalidDistribution
from trellishmm.core.hmm import TrellisHMM
from trellishmm.core.model_io import load_model, save_model


class TestLoadSaveRoundTrip:
    def test_discrete_round_trip(self, discrete_model, tmp_path):
        filepath = str(tmp_path / "model.json")
        save_model(discrete_model, filepath)

        loaded = load_model(filepath)
        assert loaded.n_states == 2
        assert loaded.n_symbols == 2
        np.testing.assert_allclose(loaded.log_startprob_, discrete_model.log_startprob_)
        np.testing.assert_allclose(loaded.log_transmat_, discrete_model.log_transmat_)
        np.testing.assert_allclose(loaded.log_emissionprob_, discrete_model.log_emissionprob_)
        np.testing.assert_array_equal(loaded.observations_, discrete_model.observations_)

    def test_continuous_round_trip(self, continuous_model, tmp_path):
        filepath = str(tmp_path / "model.json")
        save_model(continuous_model, filepath)

        loaded = load_model(filepath)
        assert not loaded.is_discrete
        np.testing.assert_allclose(loaded.log_time_emissionprob_,
                                   continuous_model.log_time_emissionprob_)

    def test_trained_model_round_trip(self, discrete_model, tmp_path):
        """Zero probabilities produced by training survive the round trip."""
        discrete_model.viterbi_training()
        filepath = str(tmp_path / "trained.json")
        save_model(discrete_model, filepath)

        loaded = load_model(filepath)
        np.testing.assert_allclose(loaded.transmat_, discrete_model.transmat_)
        assert loaded.viterbi_training()[0] is False

    def test_training_diagnostics_round_trip(self, discrete_model, tmp_path):
        discrete_model.baum_welch_training()
        filepath = str(tmp_path / "trained.json")
        save_model(discrete_model, filepath)

        loaded = load_model(filepath)
        np.testing.assert_allclose(loaded.state_freqs_, discrete_model.state_freqs_)
        assert loaded.ran_baum_welch_
        assert not loaded.ran_viterbi_

    def test_untrained_model_has_no_diagnostics(self, discrete_model, tmp_path):
        filepath = str(tmp_path / "model.json")
        save_model(discrete_model, filepath)

        loaded = load_model(filepath)
        assert loaded.state_freqs_ is None
        assert not loaded.ran_viterbi_ and not loaded.ran_baum_welch_

    def test_partial_model(self, tmp_path):
        model = TrellisHMM(n_states=2, n_symbols=3)
        model.set_startprob([0.5, 0.5])
        filepath = str(tmp_path / "partial.json")
        save_model(model, filepath)

        loaded = load_model(filepath)
        np.testing.assert_allclose(loaded.startprob_, [0.5, 0.5])
        assert loaded.log_transmat_ is None
        assert not loaded.has_all_data()


class TestSaveFormat:
    def test_json_contains_expected_keys(self, discrete_model, tmp_path):
        filepath = str(tmp_path / "model.json")
        save_model(discrete_model, filepath)

        with open(filepath) as f:
            data = json.load(f)

        assert data['model_type'] == 'TrellisHMM'
        assert data['n_states'] == 2
        assert data['n_symbols'] == 2
        np.testing.assert_allclose(data['transmat'], [[0.9, 0.1], [0.1, 0.9]])
        assert data['observations'] == [0, 0, 0, 1, 1, 1]

    def test_non_json_extension_warns(self, discrete_model, tmp_path):
        filepath = str(tmp_path / "model.pkl")
        with pytest.warns(UserWarning, match="Only JSON"):
            written = save_model(discrete_model, filepath)
        assert written.endswith("model.json")
        assert load_model(written).n_states == 2


class TestLoadValidation:
    def test_wrong_model_type(self, tmp_path):
        filepath = tmp_path / "other.json"
        filepath.write_text(json.dumps({'model_type': 'SomeOtherHMM', 'n_states': 2}))
        with pytest.raises(ValueError):
            load_model(str(filepath))

    def test_bad_distribution_rejected(self, tmp_path):
        filepath = tmp_path / "bad.json"
        filepath.write_text(json.dumps({
            'model_type': 'TrellisHMM',
            'n_states': 2,
            'n_symbols': 2,
            'startprob': [0.4, 0.4],
        }))
        with pytest.raises(InvalidDistribution):
            load_model(str(filepath))
