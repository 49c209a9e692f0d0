"""
Pytest configuration and shared fixtures.
"""

import logging

import numpy as np
import pandas as pd
import pytest

from replicator.data.ingest import TabularDataset
from replicator.inference.classifier import ReplicatorClassifier, ReplicatorConfig

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

CLASS_VALUES = ["normal", "anomaly"]


def make_frame(n: int = 100, seed: int = 0, noise: float = 0.05) -> pd.DataFrame:
    """4 numeric features in [0, 10] driven by one latent value, plus a two-valued label."""
    rng = np.random.default_rng(seed)
    t = rng.uniform(0.0, 10.0, size=n)
    df = pd.DataFrame({
        "f1": t,
        "f2": 10.0 - t,
        "f3": 0.5 * t + 2.5,
        "f4": 0.8 * t + 1.0,
    })
    df = (df + rng.normal(0.0, noise, size=df.shape)).clip(0.0, 10.0)
    df["class"] = pd.Categorical(["normal"] * n, categories=CLASS_VALUES)
    return df


@pytest.fixture
def frame():
    return make_frame()


@pytest.fixture
def dataset(frame):
    return TabularDataset.from_frame(frame, label_col="class")


@pytest.fixture
def quick_config():
    """Few epochs: enough to exercise the training path without waiting for convergence."""
    return ReplicatorConfig(max_epochs=5)


@pytest.fixture
def quick_classifier(dataset, quick_config):
    classifier = ReplicatorClassifier(cfg=quick_config)
    classifier.build_classifier(dataset)
    return classifier
