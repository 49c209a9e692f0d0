import logging

import numpy as np
import pytest

from replicator.data.preprocess import apply_normalization, fit_normalizer


@pytest.fixture
def train_matrix():
    return np.array([
        [0.0, 10.0, 5.0],
        [2.0, 20.0, 5.0],
        [4.0, 30.0, 5.0],
    ])


def test_min_maps_to_lower_bound_and_max_to_upper(train_matrix):
    state = fit_normalizer(train_matrix)
    normalized = apply_normalization(train_matrix, state)

    assert state.feature_range == (0.0, 1.0)
    assert normalized[0, 0] == 0.0 and normalized[2, 0] == 1.0
    assert normalized[0, 1] == pytest.approx(0.0) and normalized[2, 1] == pytest.approx(1.0)
    assert normalized[1, 0] == pytest.approx(0.5)


def test_constant_column_maps_to_constant_without_division_by_zero(train_matrix):
    state = fit_normalizer(train_matrix)
    normalized = apply_normalization(train_matrix, state)

    assert np.isfinite(normalized).all()
    assert (normalized[:, 2] == 0.0).all()
    # unseen value on a constant column is only shifted
    assert apply_normalization(np.array([2.0, 20.0, 6.0]), state)[2] == pytest.approx(1.0)


def test_apply_reuses_fitted_state_and_does_not_clip(train_matrix):
    state = fit_normalizer(train_matrix)
    data_min_before = state.data_min.copy()
    data_max_before = state.data_max.copy()

    out = apply_normalization(np.array([8.0, 10.0, 5.0]), state)

    assert out.shape == (3,)
    assert out[0] == pytest.approx(2.0)  # beyond the upper bound, not refit
    np.testing.assert_array_equal(state.data_min, data_min_before)
    np.testing.assert_array_equal(state.data_max, data_max_before)


def test_apply_rejects_wrong_width(train_matrix):
    state = fit_normalizer(train_matrix)
    with pytest.raises(ValueError):
        apply_normalization(np.array([1.0, 2.0]), state)


def test_apply_rejects_non_finite(train_matrix):
    state = fit_normalizer(train_matrix)
    with pytest.raises(ValueError):
        apply_normalization(np.array([np.nan, 2.0, 5.0]), state)


def test_fit_rejects_empty_matrix():
    with pytest.raises(ValueError):
        fit_normalizer(np.empty((0, 3)))


def test_fit_logs_scaler_class_name(train_matrix, caplog):
    with caplog.at_level(logging.INFO, logger="replicator.data.preprocess"):
        fit_normalizer(train_matrix)
    assert "Fitted MinMaxScaler on training data only" in caplog.text
    assert "Constant feature columns [2]" in caplog.text
