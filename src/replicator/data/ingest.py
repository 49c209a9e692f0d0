# Tabular dataset adapter: rows of numeric features + one held-out label column.
# 1. Read CSV (or take a DataFrame) and split off the label column
# 2. Declared class values: explicit > pandas categorical categories > observed values
# 3. Capability checks before training: numeric/date attributes only, no missing values,
#    exactly two declared class values, minimum number of instances
# 4. Date attributes are fed to the network as milliseconds since epoch

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from replicator.exceptions import InvalidDatasetError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestConfig:
    LABEL_COL = "class"
    MIN_INSTANCES = 100
    NUM_CLASSES = 2


@dataclass(frozen=True)
class Instance:
    """One row to score: feature values in training column order + the declared class values."""

    values: Tuple[float, ...]
    class_values: Tuple[Any, ...] = ()
    label: Any = None

    @property
    def num_classes(self) -> int:
        return len(self.class_values)

    @property
    def row_size(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class TabularDataset:
    features: pd.DataFrame
    labels: pd.Series
    class_values: Tuple[Any, ...]

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        label_col: str = IngestConfig.LABEL_COL,
        class_values: Optional[Sequence[Any]] = None,
    ) -> "TabularDataset":
        if label_col not in df.columns:
            raise InvalidDatasetError(f"Label column '{label_col}' not found in columns: {df.columns.tolist()}")

        labels = df[label_col]
        features = df.drop(columns=[label_col])

        if class_values is None:
            class_values = declared_class_values(labels)

        return cls(features=features.reset_index(drop=True), labels=labels.reset_index(drop=True), class_values=tuple(class_values))

    @property
    def num_instances(self) -> int:
        return int(self.features.shape[0])

    @property
    def row_size(self) -> int:
        # total attributes - 1 (label excluded)
        return int(self.features.shape[1])

    @property
    def feature_names(self) -> Tuple[str, ...]:
        return tuple(str(c) for c in self.features.columns)

    def to_numpy(self) -> np.ndarray:
        """Feature matrix as float64, date columns converted to epoch milliseconds."""
        columns = []
        for name in self.features.columns:
            col = self.features[name]
            if pd.api.types.is_datetime64_any_dtype(col):
                col = datetime_to_millis(col)
            columns.append(col.to_numpy(dtype=np.float64))
        if not columns:
            return np.empty((self.num_instances, 0), dtype=np.float64)
        return np.column_stack(columns)

    def instance(self, index: int) -> Instance:
        row = self.to_numpy()[index]
        return Instance(values=tuple(float(v) for v in row), class_values=self.class_values, label=self.labels.iloc[index])

    def instances(self):
        matrix = self.to_numpy()
        for i, row in enumerate(matrix):
            yield Instance(values=tuple(float(v) for v in row), class_values=self.class_values, label=self.labels.iloc[i])


def declared_class_values(labels: pd.Series) -> Tuple[Any, ...]:
    if isinstance(labels.dtype, pd.CategoricalDtype):
        return tuple(labels.cat.categories.tolist())
    observed = list(labels.dropna().unique())
    try:
        return tuple(sorted(observed))
    except TypeError:
        # mixed label types: keep order of appearance
        return tuple(observed)


def datetime_to_millis(col: pd.Series) -> pd.Series:
    epoch = pd.Timestamp("1970-01-01", tz=col.dt.tz)
    return (col - epoch) / pd.Timedelta(milliseconds=1)


def check_capabilities(dataset: TabularDataset, min_instances: int = IngestConfig.MIN_INSTANCES) -> None:
    """
    Raise InvalidDatasetError unless the dataset can be used for training.

    Checks: at least one feature, numeric or date attributes only, no missing feature
    values, no missing labels, exactly two declared class values, observed labels are
    declared, at least `min_instances` rows.
    """
    if dataset.row_size < 1:
        raise InvalidDatasetError("Dataset has no feature attributes besides the label.")

    bad_types = []
    for name in dataset.features.columns:
        col = dataset.features[name]
        if pd.api.types.is_bool_dtype(col):
            bad_types.append(f"{name} ({col.dtype})")
        elif not (pd.api.types.is_numeric_dtype(col) or pd.api.types.is_datetime64_any_dtype(col)):
            bad_types.append(f"{name} ({col.dtype})")
    if bad_types:
        raise InvalidDatasetError(f"Only numeric and date attributes are supported, found: {bad_types}")

    if dataset.features.isnull().values.any():
        missing = dataset.features.columns[dataset.features.isnull().any()].tolist()
        raise InvalidDatasetError(f"Missing feature values are not supported, found in: {missing}")

    if dataset.labels.isnull().any():
        raise InvalidDatasetError("Missing class values are not supported.")

    if len(dataset.class_values) != IngestConfig.NUM_CLASSES:
        raise InvalidDatasetError(
            f"Expected exactly {IngestConfig.NUM_CLASSES} declared class values, got {len(dataset.class_values)}: {list(dataset.class_values)}"
        )

    undeclared = sorted({str(v) for v in dataset.labels.unique()} - {str(v) for v in dataset.class_values})
    if undeclared:
        raise InvalidDatasetError(f"Labels not among declared class values {list(dataset.class_values)}: {undeclared}")

    if dataset.num_instances < min_instances:
        raise InvalidDatasetError(f"Not enough training instances: need at least {min_instances}, got {dataset.num_instances}")

    if not np.isfinite(dataset.to_numpy()).all():
        raise InvalidDatasetError("Feature values must be finite.")


def ingest_data(
    file_path: str | Path,
    label_col: str = IngestConfig.LABEL_COL,
    class_values: Optional[Sequence[Any]] = None,
    parse_dates: Optional[Sequence[str]] = None,
) -> TabularDataset:
    """
    Ingest a tabular dataset from a CSV file.

    Parameters: file_path: path to the CSV. label_col: name of the label column.
    class_values: declared class values, normal first and anomaly second (defaults to
    the sorted observed labels). parse_dates: columns to parse as date attributes.

    Logs basic stats (shape, class distribution, missing values). Capability checks are
    left to check_capabilities so callers can inspect a rejected dataset.
    """
    data = pd.read_csv(file_path, parse_dates=list(parse_dates) if parse_dates else False)
    logger.info("Ingested %d rows x %d columns from %s", data.shape[0], data.shape[1], file_path)

    dataset = TabularDataset.from_frame(data, label_col=label_col, class_values=class_values)

    counts = dataset.labels.value_counts(dropna=False).to_dict()
    logger.info("Declared class values: %s | label distribution: %s", list(dataset.class_values), counts)
    if dataset.features.isnull().values.any():
        logger.warning("Missing values found:\n%s", dataset.features.isnull().sum())

    return dataset
