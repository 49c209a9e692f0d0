# Anomaly scorer: normalize -> reconstruct -> Euclidean distance -> hard threshold.
# score pair = [normalcy, anomaly_score], anomaly_score in {0.0, 1.0}, always sums to 1.0
# distance > threshold is an anomaly; distance == threshold is still normal

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import distance as sp_distance

from replicator.data.ingest import IngestConfig, Instance
from replicator.data.preprocess import NormalizationState, apply_normalization
from replicator.exceptions import DimensionMismatchError, InvalidLabelCardinalityError
from replicator.models.replicator import NetworkTopology, ReplicatorNetwork


@dataclass(frozen=True)
class TrainedModel:
    """Snapshot produced by one successful build. Scoring never mutates it."""

    topology: NetworkTopology
    network: ReplicatorNetwork
    normalization: NormalizationState
    row_size: int
    class_values: Tuple[Any, ...] = ()
    feature_names: Tuple[str, ...] = ()
    final_error: Optional[float] = None
    epochs_ran: int = 0

    def reconstruct(self, normalized: np.ndarray) -> np.ndarray:
        return self.network.predict(normalized)


@dataclass(frozen=True)
class ScorePair:
    normalcy: float
    anomaly_score: float
    distance: float

    @property
    def is_anomaly(self) -> bool:
        return self.anomaly_score == 1.0

    def tolist(self) -> List[float]:
        return [self.normalcy, self.anomaly_score]


def euclidean_distance(inputs: Sequence[float], outputs: Sequence[float]) -> float:
    inputs = np.asarray(inputs, dtype=np.float64).reshape(-1)
    outputs = np.asarray(outputs, dtype=np.float64).reshape(-1)
    if inputs.shape != outputs.shape:
        raise DimensionMismatchError(f"Different input and output lengths: {inputs.size} != {outputs.size}")
    return float(sp_distance.euclidean(outputs, inputs))


def score_from_distance(distance: float, distance_threshold: float) -> ScorePair:
    anomaly_score = 1.0 if distance > distance_threshold else 0.0
    return ScorePair(normalcy=1.0 - abs(anomaly_score), anomaly_score=anomaly_score, distance=float(distance))


def score_instance(instance: Instance, model: TrainedModel, distance_threshold: float = 0.1) -> ScorePair:
    if instance.num_classes != IngestConfig.NUM_CLASSES:
        raise InvalidLabelCardinalityError(f"Wrong class number: {instance.num_classes}")
    if instance.row_size != model.row_size:
        raise ValueError(f"Expected {model.row_size} features, got {instance.row_size}")

    normalized = apply_normalization(np.asarray(instance.values, dtype=np.float64), model.normalization)
    reconstructed = model.reconstruct(normalized)
    return score_from_distance(euclidean_distance(normalized, reconstructed), distance_threshold)
