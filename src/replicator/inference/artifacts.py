# Persist / restore a trained replicator model as one artifacts directory:
#   model.pt           torch state_dict of the network
#   normalizer.joblib  fitted MinMaxScaler (normalization state)
#   model_config.json  topology, row size, classifier config, class values, feature names, metrics

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import joblib
import numpy as np
import torch

from replicator.data.preprocess import NormalizationState
from replicator.inference.classifier import ReplicatorClassifier, ReplicatorConfig
from replicator.inference.scorer import TrainedModel
from replicator.models.replicator import NetworkTopology, ReplicatorNetwork

logger = logging.getLogger(__name__)

MODEL_VERSION = "1.0.0"


@dataclass(frozen=True)
class ReplicatorArtifacts:
    model_path: Path = Path("artifacts/replicator/model.pt")
    normalizer_path: Path = Path("artifacts/replicator/normalizer.joblib")
    model_config_path: Path = Path("artifacts/replicator/model_config.json")

    @classmethod
    def in_dir(cls, artifacts_dir: Path) -> "ReplicatorArtifacts":
        artifacts_dir = Path(artifacts_dir)
        return cls(
            model_path=artifacts_dir / "model.pt",
            normalizer_path=artifacts_dir / "normalizer.joblib",
            model_config_path=artifacts_dir / "model_config.json",
        )


def _json_safe(obj):
    if isinstance(obj, Path):
        return str(obj)
    # numpy scalars → python scalars
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]
    if isinstance(obj, dict):
        return {k: _json_safe(v) for k, v in obj.items()}
    return obj


def save_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(_json_safe(payload), indent=2))


def save_trained_model(classifier: ReplicatorClassifier, artifacts: ReplicatorArtifacts) -> Dict[str, Any]:
    """Write network weights, normalizer and config together. Returns the model config written."""
    model = classifier.require_model()

    artifacts.model_path.parent.mkdir(parents=True, exist_ok=True)
    torch.save(model.network.state_dict(), artifacts.model_path)

    artifacts.normalizer_path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(model.normalization.scaler, artifacts.normalizer_path)

    model_config = {
        "model_type": "ReplicatorNeuralNetwork",
        "model_version": MODEL_VERSION,
        "row_size": model.row_size,
        "topology": {
            "input_width": model.topology.input_width,
            "hidden_width": model.topology.hidden_width,
            "output_width": model.topology.output_width,
        },
        "config": classifier.cfg.to_dict(),
        "class_values": list(model.class_values),
        "feature_names": list(model.feature_names),
        "final_error": model.final_error,
        "epochs_ran": model.epochs_ran,
        "score_definition": "Euclidean distance between normalized input and reconstruction",
    }
    save_json(artifacts.model_config_path, model_config)

    logger.info("Saved replicator artifacts: %s, %s, %s",
                artifacts.model_path, artifacts.normalizer_path, artifacts.model_config_path)
    return model_config


def load_trained_model(artifacts: ReplicatorArtifacts) -> ReplicatorClassifier:
    """Rebuild a Trained classifier from artifacts written by save_trained_model."""
    model_cfg = json.loads(Path(artifacts.model_config_path).read_text())

    topo = model_cfg["topology"]
    topology = NetworkTopology(
        input_width=int(topo["input_width"]),
        hidden_width=int(topo["hidden_width"]),
        output_width=int(topo["output_width"]),
    )
    if topology.input_width != int(model_cfg["row_size"]):
        raise ValueError(f"Corrupt model config: row_size {model_cfg['row_size']} != input width {topology.input_width}")

    network = ReplicatorNetwork(topology)
    network.load_state_dict(torch.load(artifacts.model_path, map_location=torch.device("cpu")))
    network.eval()

    scaler = joblib.load(artifacts.normalizer_path)
    normalization = NormalizationState(scaler=scaler)
    if normalization.n_features != topology.input_width:
        raise ValueError(f"Normalizer expects {normalization.n_features} features, network {topology.input_width}")

    classifier = ReplicatorClassifier(cfg=ReplicatorConfig(**model_cfg["config"]))
    classifier.model = TrainedModel(
        topology=topology,
        network=network,
        normalization=normalization,
        row_size=int(model_cfg["row_size"]),
        class_values=tuple(model_cfg.get("class_values", ())),
        feature_names=tuple(model_cfg.get("feature_names", ())),
        final_error=model_cfg.get("final_error"),
        epochs_ran=int(model_cfg.get("epochs_ran", 0)),
    )
    logger.info("Replicator model loaded successfully from %s (%s)", artifacts.model_path, topology)
    return classifier
