from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from replicator.data.ingest import IngestConfig, ingest_data
from replicator.inference.artifacts import ReplicatorArtifacts, save_json, save_trained_model
from replicator.inference.classifier import ReplicatorClassifier, ReplicatorConfig
from replicator.training.trainer import TrainingEvent, log_training_event

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainConfig:
    raw_csv_path: str = "data/raw/dataset.csv"
    artifacts_dir: str = "artifacts/replicator"
    label_col: str = IngestConfig.LABEL_COL
    class_values: Optional[Tuple[Any, Any]] = None  # (normal, anomaly); None => sorted observed labels
    replicator: ReplicatorConfig = ReplicatorConfig()


class TrainingCurve:
    """Event sink that records the per-epoch error and forwards everything to the logger."""

    def __init__(self) -> None:
        self.curve: Dict[str, list] = {"epoch": [], "recon_mse": []}

    def __call__(self, event: TrainingEvent) -> None:
        if event.stage == "epoch":
            self.curve["epoch"].append(event.epoch)
            self.curve["recon_mse"].append(event.error)
        log_training_event(event)


#----------TRAINING------------
def train_replicator(cfg: TrainConfig | None = None, repo_root: Path | None = None) -> Dict[str, Any]:
    cfg = cfg or TrainConfig()
    repo_root = repo_root or Path(__file__).resolve().parents[3]
    raw_data_path = repo_root / cfg.raw_csv_path
    artifacts_dir = repo_root / cfg.artifacts_dir

    logger.info("Ingesting data...")
    dataset = ingest_data(raw_data_path, label_col=cfg.label_col, class_values=cfg.class_values)

    curve = TrainingCurve()
    classifier = ReplicatorClassifier(cfg=cfg.replicator, on_event=curve)
    logger.info("Options: %s", " ".join(classifier.get_options()))
    classifier.build_classifier(dataset)
    logger.info("%s", classifier)

    # labels are only used here, to report how the flags line up with known anomalies
    metrics = classifier.evaluate(dataset)
    for k, v in metrics.items():
        logger.info("%s: %s", k, v)

    artifacts = ReplicatorArtifacts.in_dir(artifacts_dir)
    save_trained_model(classifier, artifacts)
    save_json(artifacts_dir / "metrics.json", metrics)
    save_json(artifacts_dir / "train_curve.json", curve.curve)

    logger.info("Saved replicator artifacts to: %s", artifacts_dir.resolve())
    return metrics


if __name__ == "__main__":
    train_replicator()
