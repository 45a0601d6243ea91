"""
Gamut Mapping Module
--------------------
Brings tone-mapped colors that fall outside the displayable [0, 1]^3 cube
back inside it. Only out-of-gamut pixels are touched; in-gamut pixels pass
through bit-for-bit.
"""

from enum import Enum

import numpy as np

from hdrfix.color import luminance, out_of_gamut


class ColorMapAlgorithm(Enum):
    CLIP = "clip"
    DARKEN = "darken"
    DESATURATE = "desaturate"

    @classmethod
    def from_name(cls, name: str) -> 'ColorMapAlgorithm':
        """Look up an algorithm by its option name (case-insensitive)."""
        key = str(name).strip().lower()
        for algorithm in cls:
            if algorithm.value == key:
                return algorithm
        raise ValueError(f"Unknown color-map algorithm '{name}'. Choose from: {', '.join(a.value for a in cls)}")


def clip_colors(rgb: np.ndarray) -> np.ndarray:
    """Clamp every channel independently to [0, 1]."""
    return np.clip(rgb, 0.0, 1.0)

def darken_colors(rgb: np.ndarray) -> np.ndarray:
    """
    Divide by the brightest channel when it exceeds 1, keeping channel ratios
    (hue and saturation) and giving up brightness. Negative channels are then
    clamped to 0.
    """
    peak = np.max(rgb, axis=-1, keepdims=True)
    scale = np.where(peak > 1.0, 1.0 / np.maximum(peak, 1.0), 1.0)
    return np.maximum(rgb * scale, 0.0)

def desaturate_colors(rgb: np.ndarray) -> np.ndarray:
    """
    Blend toward gray (L, L, L) just far enough to fit every channel in [0, 1].

    The deviation c - L is scaled by the largest f in [0, 1] that keeps all
    channels in range, so luminance is preserved exactly. When L itself is
    outside [0, 1] the gray target is clamped and luminance cannot be kept.
    """
    gray = np.clip(luminance(rgb), 0.0, 1.0)[..., np.newaxis]
    deviation = rgb - gray

    with np.errstate(divide='ignore', invalid='ignore'):
        limit_high = np.where(rgb > 1.0, (1.0 - gray) / deviation, np.inf)
        limit_low = np.where(rgb < 0.0, gray / (gray - rgb), np.inf)
    factor = np.min(np.minimum(limit_high, limit_low), axis=-1, keepdims=True)
    factor = np.clip(factor, 0.0, 1.0)

    # Clip only absorbs rounding error at the boundary
    return np.clip(gray + deviation * factor, 0.0, 1.0)

_OPERATORS = {
    ColorMapAlgorithm.CLIP: clip_colors,
    ColorMapAlgorithm.DARKEN: darken_colors,
    ColorMapAlgorithm.DESATURATE: desaturate_colors,
}

def apply_colormap(rgb: np.ndarray, algorithm: ColorMapAlgorithm) -> np.ndarray:
    """Apply the selected gamut map to out-of-gamut pixels of an (N, 3) or (..., 3) array."""
    mask = out_of_gamut(rgb)
    if not np.any(mask):
        return rgb
    out = np.array(rgb, dtype=np.float64, copy=True)
    out[mask] = _OPERATORS[algorithm](rgb[mask])
    return out
