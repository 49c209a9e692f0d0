'''
    •   Accept input tensor shape: (batch, N) min/max normalized features
    •   Output reconstruction tensor shape: (batch, N)
    •   One hidden layer of width N - hidden_layer_offset (default offset -1 => N + 1 units)
    •   Sigmoid on hidden and output layers, outputs live in (0, 1) like the normalized inputs
'''
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import torch
import torch.nn as nn

from replicator.exceptions import InvalidTopologyError


@dataclass(frozen=True)
class NetworkTopology:
    input_width: int
    hidden_width: int
    output_width: int

    @classmethod
    def from_row_size(cls, row_size: int, hidden_layer_offset: int = -1) -> "NetworkTopology":
        if row_size < 1:
            raise InvalidTopologyError(f"Row size must be >= 1, got {row_size}")
        hidden_width = row_size - hidden_layer_offset
        if hidden_width < 1:
            raise InvalidTopologyError(
                f"Hidden layer width {row_size} - ({hidden_layer_offset}) = {hidden_width} must be >= 1"
            )
        return cls(input_width=row_size, hidden_width=hidden_width, output_width=row_size)

    def __str__(self) -> str:
        return f"{self.input_width} | {self.hidden_width} | {self.output_width}"


class ReplicatorNetwork(nn.Module):
    """
    Replicator neural network: a feed-forward net trained to reproduce its own input.

    Input:  (batch, N) normalized features
    Output: (batch, N) reconstructed features
    """

    def __init__(self, topology: NetworkTopology) -> None:
        super().__init__()
        self.topology = topology
        self.hidden = nn.Sequential(
            nn.Linear(topology.input_width, topology.hidden_width),  # default uniform init, non-degenerate
            nn.Sigmoid(),
        )
        self.output = nn.Sequential(
            nn.Linear(topology.hidden_width, topology.output_width),
            nn.Sigmoid(),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.output(self.hidden(x))

    @torch.no_grad()
    def predict(self, normalized_input: np.ndarray) -> np.ndarray:
        """Reconstruct one row (1-D) or many rows (2-D). No layer depends on train/eval mode."""
        array = np.asarray(normalized_input, dtype=np.float32)
        one_row = array.ndim == 1
        input_tensor = torch.tensor(array.reshape(1, -1) if one_row else array, dtype=torch.float32)
        reconstructed = self(input_tensor).cpu().numpy().astype(np.float64)
        return reconstructed.reshape(-1) if one_row else reconstructed
