# Error taxonomy shared by the replicator core, the training script and the API.
# ValueError subclasses are caller/input problems (API maps them to 422),
# RuntimeError subclasses are state or numeric failures.

from __future__ import annotations


class ReplicatorError(Exception):
    """Base class for every error raised by the replicator package."""


class InvalidDatasetError(ReplicatorError, ValueError):
    """Dataset failed capability checks (attribute types, class cardinality, size, missing values)."""


class InvalidTopologyError(ReplicatorError, ValueError):
    """Hidden layer width derived from row size and offset is < 1."""


class TrainingDidNotConvergeError(ReplicatorError, RuntimeError):
    """Training error became non-finite (numeric divergence)."""


class ModelNotBuiltError(ReplicatorError, RuntimeError):
    """Scoring was requested before any successful build_classifier call."""


class InvalidLabelCardinalityError(ReplicatorError, ValueError):
    """Instance label attribute does not declare exactly two class values."""


class DimensionMismatchError(ReplicatorError, RuntimeError):
    """Reconstruction and input vectors differ in length. Indicates a programming defect."""
