# Feature normalizer: per-column min/max fitted once on TRAIN rows, reapplied as-is at scoring.
# 1. fit_normalizer fits a MinMaxScaler into [0, 1] and freezes it in a NormalizationState
# 2. apply_normalization maps any row(s) with the same fitted state (never refits)
# 3. Constant columns (min == max) keep scale 1: the training value maps to 0.0
# 4. Out-of-range values are NOT clipped, so unseen magnitudes stay visible to the scorer

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from sklearn.preprocessing import MinMaxScaler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreprocessConfig:
    FEATURE_RANGE = (0.0, 1.0)


@dataclass(frozen=True)
class NormalizationState:
    scaler: MinMaxScaler

    @property
    def data_min(self) -> np.ndarray:
        return self.scaler.data_min_

    @property
    def data_max(self) -> np.ndarray:
        return self.scaler.data_max_

    @property
    def feature_range(self) -> Tuple[float, float]:
        return tuple(self.scaler.feature_range)

    @property
    def n_features(self) -> int:
        return int(self.scaler.n_features_in_)


def fit_normalizer(features: np.ndarray) -> NormalizationState:
    features = np.asarray(features, dtype=np.float64)
    if features.ndim != 2 or features.shape[0] == 0:
        raise ValueError(f"Expected a non-empty 2-D feature matrix, got shape {features.shape}")

    scaler = MinMaxScaler(feature_range=PreprocessConfig.FEATURE_RANGE, clip=False)
    scaler.fit(features)

    constant = np.flatnonzero(scaler.data_max_ == scaler.data_min_)
    if constant.size:
        logger.info("Constant feature columns %s map to the lower bound", constant.tolist())
    logger.info("Fitted %s on training data only. Shape: %s", type(scaler).__name__, features.shape)

    return NormalizationState(scaler=scaler)


def apply_normalization(values: np.ndarray, state: NormalizationState) -> np.ndarray:
    """Normalize one row (1-D) or many rows (2-D) with an already fitted state."""
    values = np.asarray(values, dtype=np.float64)
    one_row = values.ndim == 1
    matrix = values.reshape(1, -1) if one_row else values

    if matrix.shape[1] != state.n_features:
        raise ValueError(f"Expected {state.n_features} features, got {matrix.shape[1]}")
    if not np.isfinite(matrix).all():
        raise ValueError("Feature values must be finite (no NaN/inf) to be normalized")

    normalized = state.scaler.transform(matrix)
    return normalized.reshape(-1) if one_row else normalized
