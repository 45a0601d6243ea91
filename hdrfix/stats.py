"""
Statistics Collector
--------------------
Per-pixel luminance over a whole image and nearest-rank percentiles of it.
Luminance is computed per row chunk in parallel; the chunks are then merged
and sorted once, after which any number of percentiles can be read off.

Percentile method (nearest rank): for n sorted values and percentile P,
rank = max(1, ceil(P * n / 100)) and the result is the rank-th smallest value.
At least P percent of pixels have luminance <= the result.
"""

import math
import time
from typing import Optional

import numpy as np

from hdrfix.color import luminance
from hdrfix.errors import InvalidInputError
from hdrfix.executor import ParallelExecutor
from hdrfix.logger import setup_logger

logger = setup_logger("stats")

# Absorbs float error in P * n / 100 so exact ranks are not bumped up by one
_RANK_EPSILON = 1e-9


def nearest_rank(percentile: float, count: int) -> int:
    """1-based nearest rank of a percentile among count values."""
    rank = int(math.ceil(percentile * count / 100.0 - _RANK_EPSILON))
    return min(max(rank, 1), count)


class LuminanceStatistics:
    """
    Sorted luminance of every pixel in an (H, W, 3) linear RGB array.

    Args:
        rgb: Linear RGB values.
        executor: Executor used for the per-chunk luminance pass.
    """

    def __init__(self, rgb: np.ndarray, executor: Optional[ParallelExecutor] = None):
        rgb = np.asarray(rgb)
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise InvalidInputError(f"Expected an (height, width, 3) array, got shape {rgb.shape}")
        if rgb.shape[0] == 0 or rgb.shape[1] == 0:
            raise InvalidInputError("Cannot collect statistics of an empty pixel buffer")

        start_time = time.perf_counter()
        executor = executor or ParallelExecutor()
        height, width = rgb.shape[:2]
        lumas = np.empty((height, width), dtype=np.float64)

        def work(start: int, stop: int) -> None:
            lumas[start:stop] = luminance(rgb[start:stop])

        executor.run_chunks(height, work)
        self._sorted = np.sort(lumas, axis=None)
        logger.debug(f"Luminance statistics over {self._sorted.size} pixels took "
                     f"{(time.perf_counter() - start_time) * 1000:.1f} ms")

    @property
    def count(self) -> int:
        return int(self._sorted.size)

    @property
    def minimum(self) -> float:
        return float(self._sorted[0])

    @property
    def maximum(self) -> float:
        return float(self._sorted[-1])

    def percentile(self, percentile: float) -> float:
        """
        Luminance at the given percentile (0-100) by nearest rank.

        Raises:
            ValueError: If percentile is outside [0, 100] or not finite.
        """
        if not (0.0 <= percentile <= 100.0):
            raise ValueError(f"Percentile must be in range [0, 100], got {percentile}")
        return float(self._sorted[nearest_rank(percentile, self.count) - 1])


def luminance_percentile(rgb: np.ndarray, percentile: float, executor: Optional[ParallelExecutor] = None) -> float:
    """Single-shot helper: percentile of per-pixel luminance of an (H, W, 3) array."""
    return LuminanceStatistics(rgb, executor).percentile(percentile)
