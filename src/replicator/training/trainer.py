from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
import torch
from torch.utils.data import DataLoader, TensorDataset

from replicator.exceptions import TrainingDidNotConvergeError
from replicator.models.replicator import ReplicatorNetwork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainingEvent:
    stage: str  # "start" | "epoch" | "converged" | "end"
    epoch: int
    error: Optional[float] = None
    samples: int = 0


@dataclass(frozen=True)
class TrainingResult:
    final_error: float
    epochs_ran: int
    converged: bool
    cancelled: bool
    error_curve: Tuple[float, ...]


EventSink = Callable[[TrainingEvent], None]


def set_seed(seed: int) -> None:
    torch.manual_seed(seed)
    np.random.seed(seed)
    torch.cuda.manual_seed_all(seed)


def log_training_event(event: TrainingEvent) -> None:
    """Default event sink: training progress goes to the module logger."""
    if event.stage == "start":
        logger.info("Starting training for Replicator network on %d samples...", event.samples)
    elif event.stage == "epoch":
        logger.debug("Epoch %d | recon_mse=%.6f", event.epoch, event.error)
    elif event.stage == "converged":
        logger.info("Converged at epoch %d | recon_mse=%.6f", event.epoch, event.error)
    elif event.stage == "end":
        logger.info("Training finished after %d epochs | total error=%.6f | %d samples processed",
                    event.epoch, event.error, event.samples)


@torch.no_grad()
def evaluate_model(model: torch.nn.Module, loader: DataLoader) -> Dict[str, Any]:
    """Mean squared reconstruction error over every element the loader yields."""
    model.eval()
    total_sq_sum = 0.0
    total_n = 0

    for batch in loader:
        input_data = batch[0] if isinstance(batch, (tuple, list)) else batch
        reconstruction = model(input_data)

        sq = (reconstruction - input_data) ** 2
        total_sq_sum += float(sq.sum().item())
        total_n += int(sq.numel())

    return {
        "recon_mse_mean": total_sq_sum / max(total_n, 1),
        "total_samples": int(total_n),
    }


def train(
    network: ReplicatorNetwork,
    rows: np.ndarray,
    max_epochs: int,
    max_error: float,
    learning_rate: float = 0.01,
    batch_size: int = 10,
    on_event: Optional[EventSink] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> TrainingResult:
    """
    Train `network` to reproduce each normalized row (every row is its own target).

    Stops when the epoch error (mean squared reconstruction error over the whole
    training set) is <= max_error, when max_epochs is reached, or when should_stop()
    returns True between epochs. A non-finite epoch error raises
    TrainingDidNotConvergeError.
    """
    if max_epochs < 1:
        raise ValueError(f"max_epochs must be >= 1, got {max_epochs}")
    rows = np.asarray(rows, dtype=np.float32)
    if rows.ndim != 2 or rows.shape[1] != network.topology.input_width:
        raise ValueError(f"Expected rows of shape (n, {network.topology.input_width}), got {rows.shape}")

    sink = on_event or log_training_event
    n_samples = int(rows.shape[0])

    train_dataset = TensorDataset(torch.tensor(rows, dtype=torch.float32))
    train_loader = DataLoader(train_dataset, batch_size=batch_size, shuffle=True, drop_last=False)
    # non-shuffled loader for the per-epoch total network error
    error_loader = DataLoader(train_dataset, batch_size=max(n_samples, 1), shuffle=False, drop_last=False)

    loss_fn = torch.nn.MSELoss(reduction="mean")
    optimizer = torch.optim.Adam(network.parameters(), lr=learning_rate)

    error_curve: List[float] = []
    converged = False
    cancelled = False
    error = float("nan")
    epoch = 0

    sink(TrainingEvent(stage="start", epoch=0, samples=n_samples))
    for epoch in range(1, max_epochs + 1):
        network.train()
        for (features,) in train_loader:
            optimizer.zero_grad()
            outputs = network(features)
            loss = loss_fn(outputs, features)
            loss.backward()
            optimizer.step()

        error = float(evaluate_model(network, error_loader)["recon_mse_mean"])
        error_curve.append(error)
        sink(TrainingEvent(stage="epoch", epoch=epoch, error=error, samples=n_samples))

        if not math.isfinite(error):
            break
        if error <= max_error:
            converged = True
            sink(TrainingEvent(stage="converged", epoch=epoch, error=error, samples=n_samples))
            break
        if should_stop is not None and should_stop():
            cancelled = True
            logger.info("Training cancelled after epoch %d", epoch)
            break

    network.eval()
    sink(TrainingEvent(stage="end", epoch=epoch, error=error, samples=n_samples))

    if not math.isfinite(error):
        raise TrainingDidNotConvergeError(
            f"Training did not converge: total error is {error} after {epoch} epochs. Check the input data."
        )

    return TrainingResult(
        final_error=error,
        epochs_ran=epoch,
        converged=converged,
        cancelled=cancelled,
        error_curve=tuple(error_curve),
    )
