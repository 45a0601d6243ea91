"""
Pixel Buffers
-------------
Containers for the decoded linear HDR input and the quantized 8-bit output.
Both hold row-major (height, width, 3) numpy arrays plus an optional alpha
plane that the pipeline passes through untouched.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from hdrfix.errors import InvalidInputError
from hdrfix.logger import setup_logger

logger = setup_logger("buffer")

# Non-finite inputs are replaced so every stage stays defined
_POSINF_REPLACEMENT = float(np.finfo(np.float32).max)


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """
    Linear-light scRGB image.

    Attributes:
        rgb: float64 array of shape (height, width, 3). Read-only.
        alpha: Optional float array of shape (height, width). Read-only.
    """
    rgb: np.ndarray
    alpha: Optional[np.ndarray] = None

    def __post_init__(self):
        rgb = np.asarray(self.rgb)
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise InvalidInputError(f"Pixel buffer must have shape (height, width, 3), got {rgb.shape}")
        if rgb.shape[0] == 0 or rgb.shape[1] == 0:
            raise InvalidInputError(f"Pixel buffer has zero dimension: {rgb.shape[1]}x{rgb.shape[0]}")

        rgb = rgb.astype(np.float64, copy=True)
        if not np.all(np.isfinite(rgb)):
            bad = int(np.count_nonzero(~np.isfinite(rgb)))
            logger.warning(f"Input contains {bad} non-finite channel value(s); replacing NaN with 0 and clamping infinities.")
            rgb = np.nan_to_num(rgb, nan=0.0, posinf=_POSINF_REPLACEMENT, neginf=-_POSINF_REPLACEMENT)
        object.__setattr__(self, 'rgb', _readonly(rgb))

        if self.alpha is not None:
            alpha = np.array(self.alpha, copy=True)
            if alpha.shape != rgb.shape[:2]:
                raise InvalidInputError(f"Alpha plane shape {alpha.shape} does not match image {rgb.shape[:2]}")
            object.__setattr__(self, 'alpha', _readonly(alpha))

    @property
    def height(self) -> int:
        return self.rgb.shape[0]

    @property
    def width(self) -> int:
        return self.rgb.shape[1]

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @classmethod
    def from_rgba(cls, pixels: np.ndarray) -> 'PixelBuffer':
        """Build a buffer from an (H, W, 3) or (H, W, 4) array, splitting off alpha."""
        pixels = np.asarray(pixels)
        if pixels.ndim == 3 and pixels.shape[2] == 4:
            return cls(rgb=pixels[..., :3], alpha=pixels[..., 3])
        return cls(rgb=pixels)


@dataclass(frozen=True, eq=False)
class SdrBuffer:
    """
    8-bit sRGB-encoded image produced by the Parallel Executor.

    Attributes:
        rgb: uint8 array of shape (height, width, 3).
        alpha: Optional uint8 array of shape (height, width).
    """
    rgb: np.ndarray
    alpha: Optional[np.ndarray] = None

    @property
    def height(self) -> int:
        return self.rgb.shape[0]

    @property
    def width(self) -> int:
        return self.rgb.shape[1]

    @property
    def pixels(self) -> np.ndarray:
        """RGB or RGBA array ready for an encoder."""
        if self.alpha is None:
            return self.rgb
        return np.dstack([self.rgb, self.alpha])
