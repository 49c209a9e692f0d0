import numpy as np
import pytest

import replicator.inference.classifier as classifier_module
from replicator.data.ingest import Instance, TabularDataset
from replicator.exceptions import (
    InvalidDatasetError,
    InvalidLabelCardinalityError,
    InvalidTopologyError,
    ModelNotBuiltError,
    TrainingDidNotConvergeError,
)
from replicator.inference.classifier import ReplicatorClassifier, ReplicatorConfig

from conftest import CLASS_VALUES, make_frame


def test_default_config():
    cfg = ReplicatorConfig()
    assert cfg.hidden_layer_offset == -1
    assert cfg.max_epochs == 1000
    assert cfg.distance_threshold == 0.1
    assert cfg.max_error == 0.001


def test_options_round_trip():
    cfg = ReplicatorConfig(hidden_layer_offset=2, max_epochs=50, distance_threshold=0.25, max_error=0.01)
    options = cfg.get_options()
    assert options == ["-H", "2", "-I", "50", "-D", "0.25", "-E", "0.01"]
    assert ReplicatorConfig.from_options(options) == cfg


def test_default_options():
    assert ReplicatorClassifier().get_options() == ["-H", "-1", "-I", "1000", "-D", "0.1", "-E", "0.001"]


def test_partial_options_keep_defaults():
    cfg = ReplicatorConfig.from_options(["-D", "0.5"])
    assert cfg.distance_threshold == 0.5
    assert cfg.max_epochs == 1000


@pytest.mark.parametrize("options", [["-X", "1"], ["-H"], ["-I", "abc"]])
def test_bad_options_rejected(options):
    with pytest.raises(ValueError):
        ReplicatorConfig.from_options(options)


@pytest.mark.parametrize("kwargs", [{"max_epochs": 0}, {"distance_threshold": -0.1}, {"max_error": -1.0}])
def test_invalid_config_rejected(kwargs):
    with pytest.raises(ValueError):
        ReplicatorConfig(**kwargs)


def test_untrained_classifier_refuses_to_score():
    classifier = ReplicatorClassifier()
    instance = Instance(values=(1.0, 2.0, 3.0, 4.0), class_values=tuple(CLASS_VALUES))
    with pytest.raises(ModelNotBuiltError):
        classifier.score(instance)
    with pytest.raises(ModelNotBuiltError):
        classifier.distribution_for_instance(instance)
    assert str(classifier) == "No model built yet."


def test_degenerate_topology_rejected_before_training(dataset):
    events = []
    classifier = ReplicatorClassifier(cfg=ReplicatorConfig(hidden_layer_offset=4), on_event=events.append)
    with pytest.raises(InvalidTopologyError):
        classifier.build_classifier(dataset)
    assert events == []
    assert classifier.model is None


def test_invalid_dataset_rejected_before_training():
    events = []
    classifier = ReplicatorClassifier(on_event=events.append)
    with pytest.raises(InvalidDatasetError):
        classifier.build_classifier(TabularDataset.from_frame(make_frame(n=50), label_col="class"))
    assert events == []
    assert classifier.model is None


def test_build_then_score(quick_classifier, dataset):
    assert str(quick_classifier) == "Neural network: 4 | 5 | 4"
    model = quick_classifier.model
    assert model.row_size == 4
    assert model.class_values == tuple(CLASS_VALUES)
    assert model.epochs_ran <= 5

    distribution = quick_classifier.distribution_for_instance(dataset.instance(0))
    assert len(distribution) == 2
    assert sum(distribution) == 1.0
    assert distribution[1] in (0.0, 1.0)


def test_scoring_is_idempotent(quick_classifier, dataset):
    instance = dataset.instance(7)
    first = quick_classifier.score(instance)
    second = quick_classifier.score(instance)
    assert first == second
    assert first.distance == second.distance


def test_retrain_replaces_model(quick_classifier, dataset):
    old = quick_classifier.model
    quick_classifier.build_classifier(dataset)
    assert quick_classifier.model is not old


def test_failed_retrain_keeps_previous_model(quick_classifier, dataset, monkeypatch):
    old = quick_classifier.model

    def diverge(*args, **kwargs):
        raise TrainingDidNotConvergeError("total error is nan")

    monkeypatch.setattr(classifier_module, "train", diverge)
    with pytest.raises(TrainingDidNotConvergeError):
        quick_classifier.build_classifier(dataset)
    assert quick_classifier.model is old


def test_evaluate_counts_against_labels(quick_classifier, dataset):
    metrics = quick_classifier.evaluate(dataset)
    assert metrics["normal_class"] == "normal"
    assert metrics["anomaly_class"] == "anomaly"
    # no anomaly labels in this dataset
    assert metrics["tp"] == 0 and metrics["fn"] == 0
    assert metrics["tn"] + metrics["fp"] == dataset.num_instances
    assert metrics["anomalies_flagged"] == metrics["fp"]
    assert np.isfinite(metrics["distance_mean"])


def test_evaluate_rejects_unary_class_dataset(quick_classifier):
    df = make_frame()
    df["class"] = 0
    unary = TabularDataset.from_frame(df)

    with pytest.raises(InvalidLabelCardinalityError, match="exactly 2 class values"):
        quick_classifier.evaluate(unary)
