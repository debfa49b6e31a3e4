"""Image-quality measures between consecutive iterates."""
from __future__ import annotations

from typing import Sequence

import torch

QUALITY_METRICS = ("RMSE", "CC", "MSSIM", "UQI")


def rmse(current: torch.Tensor, previous: torch.Tensor) -> torch.Tensor:
    """Root mean squared difference."""
    return torch.sqrt(torch.mean((current - previous) ** 2))


def cc(current: torch.Tensor, previous: torch.Tensor) -> torch.Tensor:
    """Pearson correlation coefficient."""
    a = current.reshape(-1) - current.mean()
    b = previous.reshape(-1) - previous.mean()
    denom = torch.sqrt(torch.sum(a * a) * torch.sum(b * b))
    if denom == 0:
        return torch.tensor(1.0 if torch.equal(current, previous) else 0.0, device=current.device)
    return torch.sum(a * b) / denom


def mssim(current: torch.Tensor, previous: torch.Tensor) -> torch.Tensor:
    """Mean over z-slices of the SSIM computed from global slice statistics."""
    data_range = previous.max() - previous.min()
    if data_range == 0:
        data_range = torch.tensor(1.0, device=current.device)
    c1 = (0.01 * data_range) ** 2
    c2 = (0.03 * data_range) ** 2
    x = current.reshape(current.shape[0], -1)
    y = previous.reshape(previous.shape[0], -1)
    mu_x, mu_y = x.mean(dim=1), y.mean(dim=1)
    var_x = x.var(dim=1, unbiased=False)
    var_y = y.var(dim=1, unbiased=False)
    cov = ((x - mu_x[:, None]) * (y - mu_y[:, None])).mean(dim=1)
    ssim = ((2 * mu_x * mu_y + c1) * (2 * cov + c2)) / ((mu_x ** 2 + mu_y ** 2 + c1) * (var_x + var_y + c2))
    return ssim.mean()


def uqi(current: torch.Tensor, previous: torch.Tensor) -> torch.Tensor:
    """Universal quality index (Wang & Bovik)."""
    x = current.reshape(-1)
    y = previous.reshape(-1)
    mu_x, mu_y = x.mean(), y.mean()
    var_x = x.var(unbiased=False)
    var_y = y.var(unbiased=False)
    cov = ((x - mu_x) * (y - mu_y)).mean()
    denom = (var_x + var_y) * (mu_x ** 2 + mu_y ** 2)
    if denom == 0:
        return torch.tensor(1.0 if torch.equal(current, previous) else 0.0, device=current.device)
    return 4 * cov * mu_x * mu_y / denom


_METRIC_FNS = {"RMSE": rmse, "CC": cc, "MSSIM": mssim, "UQI": uqi}


def measure_quality(current: torch.Tensor, previous: torch.Tensor, names: Sequence[str]) -> torch.Tensor:
    """One value per requested metric, in the order of ``names``."""
    values = [_METRIC_FNS[name](current, previous) for name in names]
    return torch.stack([torch.as_tensor(v, dtype=torch.float32, device=current.device) for v in values])
