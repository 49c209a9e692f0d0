from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
from sklearn.metrics import confusion_matrix, precision_recall_fscore_support

from replicator.data.ingest import IngestConfig, Instance, TabularDataset, check_capabilities
from replicator.data.preprocess import apply_normalization, fit_normalizer
from replicator.exceptions import InvalidLabelCardinalityError, ModelNotBuiltError
from replicator.inference.scorer import ScorePair, TrainedModel, score_instance
from replicator.models.replicator import NetworkTopology, ReplicatorNetwork
from replicator.training.trainer import EventSink, set_seed, train

logger = logging.getLogger(__name__)

# command-line style flags: -H offset, -I epochs, -D distance threshold, -E max error
_OPTION_FLAGS = {
    "-H": ("hidden_layer_offset", int),
    "-I": ("max_epochs", int),
    "-D": ("distance_threshold", float),
    "-E": ("max_error", float),
}


@dataclass(frozen=True)
class ReplicatorConfig:
    hidden_layer_offset: int = -1
    max_epochs: int = 1000
    distance_threshold: float = 0.1
    max_error: float = 0.001

    learning_rate: float = 0.01
    batch_size: int = 10
    seed: int = 42
    min_instances: int = IngestConfig.MIN_INSTANCES

    def __post_init__(self) -> None:
        if self.max_epochs < 1:
            raise ValueError(f"max_epochs must be >= 1, got {self.max_epochs}")
        if self.distance_threshold < 0:
            raise ValueError(f"distance_threshold must be >= 0, got {self.distance_threshold}")
        if self.max_error < 0:
            raise ValueError(f"max_error must be >= 0, got {self.max_error}")
        if self.learning_rate <= 0:
            raise ValueError(f"learning_rate must be > 0, got {self.learning_rate}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")

    def get_options(self) -> List[str]:
        options: List[str] = []
        for flag, (name, _) in _OPTION_FLAGS.items():
            options += [flag, str(getattr(self, name))]
        return options

    @classmethod
    def from_options(cls, options: Sequence[str], **overrides: Any) -> "ReplicatorConfig":
        """Parse ["-H", "-1", "-I", "1000", ...]. Missing flags keep their defaults."""
        values: Dict[str, Any] = dict(overrides)
        options = list(options)
        while options:
            flag = options.pop(0)
            if flag not in _OPTION_FLAGS:
                raise ValueError(f"Illegal option: {flag}")
            if not options:
                raise ValueError(f"No value given for option {flag}")
            name, cast = _OPTION_FLAGS[flag]
            values[name] = cast(options.pop(0))
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class ReplicatorClassifier:
    ''' Replicator neural network anomaly detector
        build_classifier: capability checks -> topology -> normalizer fit -> autoencoder training
        distribution_for_instance: [1 - anomaly_score, anomaly_score] with a hard distance threshold
        labels are evaluation bookkeeping only: first class value = normal, second = anomaly
    '''
    def __init__(self, cfg: ReplicatorConfig | None = None, on_event: EventSink | None = None,
                 should_stop: Callable[[], bool] | None = None):
        self.cfg = cfg or ReplicatorConfig()
        self.on_event = on_event
        self.should_stop = should_stop
        self.model: Optional[TrainedModel] = None

    def build_classifier(self, dataset: TabularDataset) -> TrainedModel:
        logger.info("Starting building classifier...")

        # Validate eagerly, nothing is committed on failure
        check_capabilities(dataset, min_instances=self.cfg.min_instances)
        topology = NetworkTopology.from_row_size(dataset.row_size, self.cfg.hidden_layer_offset)

        set_seed(self.cfg.seed)
        raw = dataset.to_numpy()
        normalization = fit_normalizer(raw)
        rows = apply_normalization(raw, normalization)

        network = ReplicatorNetwork(topology)
        result = train(
            network,
            rows,
            max_epochs=self.cfg.max_epochs,
            max_error=self.cfg.max_error,
            learning_rate=self.cfg.learning_rate,
            batch_size=self.cfg.batch_size,
            on_event=self.on_event,
            should_stop=self.should_stop,
        )
        if not result.converged:
            logger.warning("Max epochs reached without converging: total error=%.6f > max_error=%.6f",
                           result.final_error, self.cfg.max_error)

        model = TrainedModel(
            topology=topology,
            network=network,
            normalization=normalization,
            row_size=dataset.row_size,
            class_values=dataset.class_values,
            feature_names=dataset.feature_names,
            final_error=result.final_error,
            epochs_ran=result.epochs_ran,
        )
        # swap only after a successful build, a failed retrain keeps the previous model
        self.model = model
        logger.info("Neural network %s trained on %d samples", topology, dataset.num_instances)
        return model

    def require_model(self) -> TrainedModel:
        if self.model is None:
            raise ModelNotBuiltError("No model built yet. Call build_classifier first.")
        return self.model

    def score(self, instance: Instance) -> ScorePair:
        return score_instance(instance, self.require_model(), self.cfg.distance_threshold)

    def distribution_for_instance(self, instance: Instance) -> List[float]:
        return self.score(instance).tolist()

    def evaluate(self, dataset: TabularDataset) -> Dict[str, Any]:
        """Compare anomaly flags against labels: first class value = normal, second = anomaly."""
        self.require_model()
        if len(dataset.class_values) != IngestConfig.NUM_CLASSES:
            raise InvalidLabelCardinalityError(
                f"Evaluation needs exactly {IngestConfig.NUM_CLASSES} class values, got {len(dataset.class_values)}: {list(dataset.class_values)}"
            )
        normal_value, anomaly_value = dataset.class_values

        scores = [self.score(instance) for instance in dataset.instances()]
        y_pred = np.array([int(s.is_anomaly) for s in scores])
        y_true = np.array([1 if str(v) == str(anomaly_value) else 0 for v in dataset.labels])

        precision, recall, f1, _ = precision_recall_fscore_support(
            y_true, y_pred, average="binary", zero_division=0
        )
        tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
        distances = np.array([s.distance for s in scores], dtype=np.float64)

        return {
            "normal_class": normal_value,
            "anomaly_class": anomaly_value,
            "precision": float(precision),
            "recall": float(recall),
            "f1": float(f1),
            "tp": int(tp),
            "tn": int(tn),
            "fp": int(fp),
            "fn": int(fn),
            "anomalies_flagged": int(y_pred.sum()),
            "distance_mean": float(distances.mean()) if distances.size else 0.0,
            "distance_max": float(distances.max()) if distances.size else 0.0,
        }

    def get_options(self) -> List[str]:
        return self.cfg.get_options()

    def __str__(self) -> str:
        if self.model is None:
            return "No model built yet."
        return f"Neural network: {self.model.topology}"
