"""
Parallel Executor
-----------------
Splits an image into contiguous row ranges and runs the pixel pipeline on
each range in a fixed-size thread pool. numpy releases the GIL inside its
array loops, so row chunks genuinely run in parallel.

Workers read the shared configuration and input buffer and write disjoint
row slices of a preallocated output. The output is only returned after every
chunk has finished; a failing chunk re-raises and nothing is returned.
"""

import os
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple, TypeVar, TYPE_CHECKING

import numpy as np

from hdrfix.buffer import PixelBuffer, SdrBuffer
from hdrfix.logger import setup_logger
from hdrfix.pipeline import map_to_display, transform_array

if TYPE_CHECKING:
    from hdrfix.pipeline_config import PipelineConfiguration

logger = setup_logger("executor")

T = TypeVar('T')

CHUNKS_PER_WORKER = 4 # Smaller chunks even out per-row cost differences


def default_worker_count() -> int:
    return os.cpu_count() or 1


class ParallelExecutor:
    """
    Fork-join runner over row ranges.

    Args:
        workers: Thread count; None or 0 uses os.cpu_count().
        chunks_per_worker: Row ranges per worker.
    """

    def __init__(self, workers: Optional[int] = None, chunks_per_worker: int = CHUNKS_PER_WORKER):
        if workers is not None and workers < 0:
            raise ValueError(f"workers must be >= 0, got {workers}")
        self.workers = workers or default_worker_count()
        self.chunks_per_worker = max(1, chunks_per_worker)

    def row_ranges(self, height: int) -> List[Tuple[int, int]]:
        """Partition [0, height) into contiguous, non-empty (start, stop) ranges."""
        count = max(1, min(height, self.workers * self.chunks_per_worker))
        bounds = np.linspace(0, height, count + 1).round().astype(int)
        return [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]

    def run_chunks(self, height: int, func: Callable[[int, int], T]) -> List[T]:
        """
        Call func(start, stop) for every row range and wait for all of them.

        Results come back in row order. The first worker exception is raised
        after the pool has joined.
        """
        ranges = self.row_ranges(height)
        if self.workers == 1 or len(ranges) == 1:
            return [func(start, stop) for start, stop in ranges]

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="hdrfix_worker") as pool:
            futures = [pool.submit(func, start, stop) for start, stop in ranges]
            return [future.result() for future in futures]

    def transform(self, buffer: PixelBuffer, config: 'PipelineConfiguration') -> SdrBuffer:
        """Apply the full pixel pipeline to every pixel; returns a new 8-bit buffer."""
        start_time = time.perf_counter()
        output = np.empty((buffer.height, buffer.width, 3), dtype=np.uint8)

        def work(start: int, stop: int) -> None:
            output[start:stop] = transform_array(buffer.rgb[start:stop], config)

        self.run_chunks(buffer.height, work)
        alpha = quantize_alpha(buffer.alpha) if buffer.alpha is not None else None
        logger.debug(f"Transformed {buffer.width}x{buffer.height} pixels on {self.workers} worker(s) "
                     f"in {(time.perf_counter() - start_time) * 1000:.1f} ms")
        return SdrBuffer(rgb=output, alpha=alpha)

    def map_to_display(self, buffer: PixelBuffer, config: 'PipelineConfiguration') -> np.ndarray:
        """Run pipeline stages up to post-gamma in parallel; returns float64 (H, W, 3)."""
        output = np.empty((buffer.height, buffer.width, 3), dtype=np.float64)

        def work(start: int, stop: int) -> None:
            output[start:stop] = map_to_display(buffer.rgb[start:stop], config)

        self.run_chunks(buffer.height, work)
        return output


def quantize_alpha(alpha: np.ndarray) -> np.ndarray:
    """Pass alpha through to 8 bits: integer planes are rescaled, float planes clipped to [0, 1]."""
    if alpha.dtype == np.uint8:
        return alpha.copy()
    if np.issubdtype(alpha.dtype, np.integer):
        scale = 255.0 / np.iinfo(alpha.dtype).max
        return np.clip(np.rint(alpha.astype(np.float64) * scale), 0, 255).astype(np.uint8)
    return np.clip(np.rint(np.clip(alpha, 0.0, 1.0) * 255.0), 0, 255).astype(np.uint8)
