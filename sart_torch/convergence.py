"""Residual-norm tracking and the monotonic early-stop rule."""
from __future__ import annotations

from typing import List, Sequence

import torch


def residual_norm(measured: torch.Tensor, simulated: torch.Tensor) -> float:
    """L2 norm of ``measured - simulated`` over the whole array."""
    return float(torch.linalg.vector_norm((measured - simulated).reshape(-1)).item())


def should_stop(history: Sequence[float], new_norm: float) -> bool:
    """True when the residual is not smaller than the last record (NaN included)."""
    return len(history) > 0 and not new_norm < history[-1]


class ConvergenceMonitor:
    """Append-only history of global residual norms.

    The new norm is compared against the most recent entry only; a norm that
    triggers the stop is not recorded.
    """

    def __init__(self):
        self.history: List[float] = []

    def record_and_continue(self, new_norm: float) -> bool:
        if should_stop(self.history, new_norm):
            return False
        self.history.append(float(new_norm))
        return True

    def __len__(self) -> int:
        return len(self.history)
