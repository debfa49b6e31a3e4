"""Subset (block) ordering for ordered-subsets reconstruction.

The angles are split into blocks of ``block_size`` consecutive views. The
blocks are then visited in one of three orders:

``ordered``
    input order.
``random``
    a single random permutation drawn once per reconstruction.
``angularDistance``
    greedy: the next block is the unused one whose minimum periodic angular
    distance to all blocks already chosen is largest (ties go to the earlier
    block).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import torch

from .errors import InvalidConfiguration

ORDER_STRATEGIES = ("ordered", "random", "angularDistance")

_TIE_TOL = 1e-9


@dataclass
class SubsetPartition:
    """Blocks of angles in traversal order.

    ``blocks[k]`` are the angles (radians) of the k-th visited block and
    ``orig_index[k]`` their positions in the original angle array, used to
    pick the matching projection and weight rows.
    """
    blocks: List[np.ndarray]
    orig_index: List[np.ndarray]

    def __len__(self) -> int:
        return len(self.blocks)

    @property
    def flat_index(self) -> np.ndarray:
        return np.concatenate(self.orig_index) if self.orig_index else np.zeros(0, dtype=np.int64)


def angular_distance(a: np.ndarray, b: float) -> np.ndarray:
    """Periodic distance between angles, in [0, pi]."""
    d = np.mod(np.abs(np.asarray(a, dtype=np.float64) - b), 2 * math.pi)
    return np.minimum(d, 2 * math.pi - d)


def _angular_distance_order(representatives: np.ndarray) -> List[int]:
    n = len(representatives)
    order = [0]
    used = np.zeros(n, dtype=bool)
    used[0] = True
    # distance of every block to the closest block already selected
    min_dist = angular_distance(representatives, representatives[0])
    for _ in range(n - 1):
        candidates = np.where(used, -np.inf, min_dist)
        # first block within rounding of the maximum
        nxt = int(np.flatnonzero(candidates >= candidates.max() - _TIE_TOL)[0])
        order.append(nxt)
        used[nxt] = True
        min_dist = np.minimum(min_dist, angular_distance(representatives, representatives[nxt]))
    return order


def order_subsets(
    angles: np.ndarray,
    block_size: int = 1,
    strategy: str = "random",
    generator: Optional[torch.Generator] = None,
) -> SubsetPartition:
    """Split ``angles`` into blocks and order them according to ``strategy``."""
    if strategy not in ORDER_STRATEGIES:
        raise InvalidConfiguration(
            f"Unknown order strategy: {strategy}. Supported: {', '.join(ORDER_STRATEGIES)}"
        )
    if isinstance(block_size, (bool, np.bool_)) or not isinstance(block_size, (int, np.integer)) or block_size < 1:
        raise InvalidConfiguration(f"block_size must be a positive integer, got {block_size!r}")
    block_size = int(block_size)

    angles = np.asarray(angles, dtype=np.float64).reshape(-1)
    n_angles = angles.shape[0]
    index = np.arange(n_angles)
    n_blocks = math.ceil(n_angles / block_size)
    index_blocks = [index[k * block_size:(k + 1) * block_size] for k in range(n_blocks)]

    if strategy == "ordered" or n_blocks == 0:
        order = list(range(n_blocks))
    elif strategy == "random":
        order = torch.randperm(n_blocks, generator=generator).tolist()
    else:
        representatives = np.array([angles[blk[0]] for blk in index_blocks])
        order = _angular_distance_order(representatives)

    orig_index = [index_blocks[k] for k in order]
    blocks = [angles[idx] for idx in orig_index]
    return SubsetPartition(blocks=blocks, orig_index=orig_index)
