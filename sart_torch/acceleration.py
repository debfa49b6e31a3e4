"""Update rules applied after each block back-projection.

Two rules are available and one is picked before the iterations start:

* :class:`SARTUpdate` - relaxed step ``x += lambda * d`` with ``lambda``
  multiplied by ``lambda_red`` after every outer iteration.
* :class:`NesterovUpdate` - momentum step ``y = x + d``,
  ``x = (1 - gamma) * y + gamma * y_prev`` with the usual
  ``t_{k+1} = (1 + sqrt(1 + 4 t_k^2)) / 2`` recurrence.

``d`` is the back-projected weighted residual, divided by the block's
back-projection weight frame unless those weights were skipped.
"""
from __future__ import annotations

import math
from typing import Optional

import torch


class UpdateRule:
    """Shared handling of the back-projection weights ``V``."""

    def __init__(self, V: Optional[torch.Tensor] = None):
        self.V = V

    def direction(self, backprojection: torch.Tensor, block: int) -> torch.Tensor:
        if self.V is None:
            return backprojection
        # (ny, nx) frame broadcast along z
        return backprojection / self.V[block]

    def apply(self, volume: torch.Tensor, backprojection: torch.Tensor, block: int) -> None:
        raise NotImplementedError

    def end_iteration(self) -> None:
        raise NotImplementedError


class SARTUpdate(UpdateRule):
    def __init__(self, lmbda: float, lambda_red: float = 1.0, V: Optional[torch.Tensor] = None):
        super().__init__(V)
        self.lmbda = float(lmbda)
        self.lambda_red = float(lambda_red)

    def apply(self, volume, backprojection, block):
        volume.add_(self.direction(backprojection, block), alpha=self.lmbda)

    def end_iteration(self):
        self.lmbda *= self.lambda_red


class NesterovUpdate(UpdateRule):
    """Nesterov-accelerated SART.

    ``lmbda`` here is the momentum sequence ``t_k``, not a relaxation factor;
    the candidate step ``y = x + d`` is taken with unit length.
    """

    def __init__(self, volume_shape, device=None, V: Optional[torch.Tensor] = None):
        super().__init__(V)
        self.lmbda = (1 + math.sqrt(5)) / 2
        self.gamma = 0.0
        self.y_prev = torch.zeros(volume_shape, dtype=torch.float32, device=device)

    def apply(self, volume, backprojection, block):
        y = volume + self.direction(backprojection, block)
        volume.copy_((1 - self.gamma) * y + self.gamma * self.y_prev)
        self.y_prev = y

    def end_iteration(self):
        lambda_next = (1 + math.sqrt(1 + 4 * self.lmbda ** 2)) / 2
        self.gamma = (1 - self.lmbda) / lambda_next
        self.lmbda = lambda_next


def make_update_rule(
    lmbda,
    lambda_red: float,
    volume: torch.Tensor,
    V: Optional[torch.Tensor] = None,
) -> UpdateRule:
    """Pick the update rule for ``lmbda`` (a number or ``'nesterov'``)."""
    if isinstance(lmbda, str) and lmbda.lower() == "nesterov":
        return NesterovUpdate(tuple(volume.shape), device=volume.device, V=V)
    return SARTUpdate(lmbda, lambda_red, V=V)
