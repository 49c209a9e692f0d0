from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Sequence

from replicator.data.ingest import Instance
from replicator.inference.artifacts import ReplicatorArtifacts, load_trained_model
from replicator.inference.classifier import ReplicatorClassifier

# one scoring service used by the API
# score_features(features: list[float]) -> dict
# validates the feature vector (length == row_size, numeric, no bools) before scoring
"""Example response:
{
    "normalcy": 1.0,
    "anomaly_score": 0.0,
    "distance": 0.0421,
    "is_anomaly": false,
    "distance_threshold": 0.1,
    "model_info": {"model_type": "ReplicatorNeuralNetwork", "topology": "4 | 5 | 4"},
    "timing_ms": {"scoring_time": 0.41, "total_inference_time": 0.52}
}
"""


@dataclass(frozen=True)
class ReplicatorServiceConfig:
    artifacts_dir: str = "artifacts/replicator"
    max_batch_size: int = 256


class ReplicatorScoringService:
    ''' Scoring service over a trained replicator classifier
        strict input validation (wrong length / non-numeric => ValueError)
        class values come from the trained model, so API callers only send features
    '''
    def __init__(self, repo_root: Path | None = None, cfg: ReplicatorServiceConfig | None = None,
                 classifier: ReplicatorClassifier | None = None):
        self.cfg = cfg or ReplicatorServiceConfig()
        # src/replicator/inference/replicator_service.py => repo root is 3 levels up
        self.repo_root = repo_root or Path(__file__).resolve().parents[3]

        if classifier is None:
            artifacts = ReplicatorArtifacts.in_dir(self.repo_root / self.cfg.artifacts_dir)
            classifier = load_trained_model(artifacts)
        self.classifier = classifier

    @property
    def row_size(self) -> int:
        return self.classifier.require_model().row_size

    def describe(self) -> Dict[str, Any]:
        model = self.classifier.require_model()
        return {
            "description": str(self.classifier),
            "options": self.classifier.get_options(),
            "row_size": model.row_size,
            "feature_names": list(model.feature_names),
            "class_values": [str(v) for v in model.class_values],
            "final_error": model.final_error,
            "epochs_ran": model.epochs_ran,
        }

    def _validate_features(self, features: Sequence[Any]) -> None:
        if not isinstance(features, (list, tuple)):
            raise ValueError("Input features must be a list of numeric values")
        if len(features) != self.row_size:
            raise ValueError(f"Expected {self.row_size} features, got {len(features)}")
        for i, v in enumerate(features):
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise ValueError(f"Non-numeric value found at index {i}: {v!r} (type={type(v).__name__})")

    def score_features(self, features: Sequence[Any]) -> Dict[str, Any]:
        t0 = time.perf_counter()
        self._validate_features(features)

        model = self.classifier.require_model()
        instance = Instance(values=tuple(float(v) for v in features), class_values=model.class_values)

        t_s0 = time.perf_counter()
        pair = self.classifier.score(instance)
        t_s1 = time.perf_counter()

        return {
            "normalcy": pair.normalcy,
            "anomaly_score": pair.anomaly_score,
            "distance": pair.distance,
            "is_anomaly": pair.is_anomaly,
            "distance_threshold": float(self.classifier.cfg.distance_threshold),
            "model_info": {
                "model_type": "ReplicatorNeuralNetwork",
                "topology": str(model.topology),
            },
            "timing_ms": {
                "scoring_time": round((t_s1 - t_s0) * 1000.0, 3),
                "total_inference_time": round((t_s1 - t0) * 1000.0, 3),
            },
        }
