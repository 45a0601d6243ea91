"""
Tone Mapping Module
-------------------
Operators that compress exposed linear scRGB values into the [0, 1] display
range, parameterized by the resolved ceiling H (the input level that maps to
white) and, for the luminance variant, the saturation coefficient S.

Functions:
    reinhard_curve: Extended Reinhard curve with white point H.
    tonemap_linear: Divide by H and clip.
    tonemap_reinhard_luminance: Compress luminance, rescale color, blend toward gray.
    tonemap_reinhard_rgb: Compress each channel independently.
    apply_tonemap: Dispatch on ToneMapAlgorithm.
"""

from enum import Enum

import numpy as np

from hdrfix.color import bound_signal, luminance


class ToneMapAlgorithm(Enum):
    LINEAR = "linear"
    REINHARD_LUMINANCE = "reinhard"
    REINHARD_RGB = "reinhard-rgb"

    @classmethod
    def from_name(cls, name: str) -> 'ToneMapAlgorithm':
        """Look up an algorithm by its option name (case-insensitive)."""
        key = str(name).strip().lower()
        for algorithm in cls:
            if algorithm.value == key:
                return algorithm
        raise ValueError(f"Unknown tone-map algorithm '{name}'. Choose from: {', '.join(a.value for a in cls)}")


def reinhard_curve(values: np.ndarray, ceiling: float) -> np.ndarray:
    """
    Extended Reinhard: x * (1 + x / H^2) / (1 + x).

    Inputs are clamped to [0, H] first. The curve is 0 at 0, exactly 1 at H,
    and rises past 1 beyond H, so the clamp keeps every result in [0, 1].
    """
    x = np.clip(values, 0.0, ceiling)
    # Outer clip only absorbs rounding at x == H
    return np.clip(x * (1.0 + x / ceiling / ceiling) / (1.0 + x), 0.0, 1.0)

def tonemap_linear(rgb: np.ndarray, ceiling: float, saturation: float = 1.0) -> np.ndarray:
    """Scale so the ceiling maps to 1.0, then clip to [0, 1]."""
    return np.clip(rgb / ceiling, 0.0, 1.0)

def tonemap_reinhard_rgb(rgb: np.ndarray, ceiling: float, saturation: float = 1.0) -> np.ndarray:
    """
    Reinhard curve applied to R, G and B separately.
    Bright colors drift toward white (hue may shift), every channel stays in [0, 1].
    """
    return reinhard_curve(rgb, ceiling)

def tonemap_reinhard_luminance(rgb: np.ndarray, ceiling: float, saturation: float = 1.0) -> np.ndarray:
    """
    Reinhard curve applied to luminance, with the color rescaled to match.

    With L the input luminance, L' = reinhard_curve(L) and k = L' / L:

        out = L' + (k * c - L') * k ** (S - 1)

    The deviation from gray is weighted by k ** (S - 1). The luminance weights
    sum to one, so the output luminance is exactly L' for every S. S = 1 keeps
    channel ratios. Under compression (k < 1), S > 1 desaturates harder and
    S < 1 keeps more color. Pixels with L <= 0 map to black.

    Channels may leave [0, 1] here; the gamut-map stage brings them back.
    """
    lum = luminance(rgb)
    lit = lum > 0.0
    out = np.zeros_like(rgb, dtype=np.float64)
    if not np.any(lit):
        return out

    lum_in = lum[lit]
    lum_out = reinhard_curve(lum_in, ceiling)
    ratio = lum_out / lum_in

    gray = lum_out[:, np.newaxis]
    with np.errstate(over='ignore'):
        scaled = rgb[lit] * ratio[:, np.newaxis]
        if saturation == 1.0:
            out[lit] = bound_signal(scaled)
        else:
            weight = np.power(ratio, saturation - 1.0)[:, np.newaxis]
            out[lit] = bound_signal(gray + (bound_signal(scaled) - gray) * weight)
    return out

_OPERATORS = {
    ToneMapAlgorithm.LINEAR: tonemap_linear,
    ToneMapAlgorithm.REINHARD_LUMINANCE: tonemap_reinhard_luminance,
    ToneMapAlgorithm.REINHARD_RGB: tonemap_reinhard_rgb,
}

def apply_tonemap(rgb: np.ndarray, algorithm: ToneMapAlgorithm, ceiling: float, saturation: float = 1.0) -> np.ndarray:
    """Apply the selected tone-map operator to an (..., 3) array."""
    return _OPERATORS[algorithm](rgb, ceiling, saturation)
