"""
Pixel Transform Pipeline
------------------------
Stateless per-pixel mapping from linear scRGB to 8-bit sRGB. Stages run in a
fixed order on (..., 3) float arrays:

    exposure -> pre-gamma -> tone map -> gamut map -> post-gamma
             -> levels remap -> sRGB encode + 8-bit quantization

Every stage is elementwise per pixel, so any slice of rows can be processed
on its own and produce the same values as the whole image.
"""

from typing import Sequence, Tuple, TYPE_CHECKING

import numpy as np

from hdrfix.color import apply_gamma, bound_signal, linear_to_srgb
from hdrfix.colormap import apply_colormap
from hdrfix.tonemap import apply_tonemap

if TYPE_CHECKING:
    from hdrfix.pipeline_config import PipelineConfiguration


def apply_exposure(rgb: np.ndarray, config: 'PipelineConfiguration') -> np.ndarray:
    with np.errstate(over='ignore'):
        return bound_signal(rgb * config.exposure_multiplier)

def remap_levels(values: np.ndarray, levels_min: float, levels_max: float) -> np.ndarray:
    """Stretch [levels_min, levels_max] to [0, 1], clamping outside values."""
    return np.clip((values - levels_min) / (levels_max - levels_min), 0.0, 1.0)

def quantize(values: np.ndarray) -> np.ndarray:
    """sRGB-encode linear [0, 1] values and round to uint8."""
    encoded = linear_to_srgb(values)
    return np.clip(np.rint(encoded * 255.0), 0, 255).astype(np.uint8)

def map_to_display(rgb: np.ndarray, config: 'PipelineConfiguration') -> np.ndarray:
    """
    Stages 1-5: exposure through post-gamma.

    Returns linear float64 values in [0, 1]; this is the signal the levels
    stage sees, and the one percentile levels are measured on.
    """
    values = apply_exposure(np.asarray(rgb, dtype=np.float64), config)
    values = apply_gamma(values, config.pre_gamma)
    values = apply_tonemap(values, config.tone_map, config.ceiling, config.saturation)
    values = apply_colormap(values, config.color_map)
    # Gamut mapping leaves [0, 1]; post-gamma needs no sign guard
    return np.power(values, config.post_gamma)

def map_to_linear(rgb: np.ndarray, config: 'PipelineConfiguration') -> np.ndarray:
    """Stages 1-6: the final linear value of each channel, before quantization."""
    return remap_levels(map_to_display(rgb, config), config.levels_min, config.levels_max)

def transform_array(rgb: np.ndarray, config: 'PipelineConfiguration') -> np.ndarray:
    """Run every stage over an (..., 3) array and return uint8 sRGB of the same shape."""
    return quantize(map_to_linear(rgb, config))

def transform(color: Sequence[float], config: 'PipelineConfiguration') -> Tuple[int, int, int]:
    """Transform a single (r, g, b) color into an 8-bit sRGB triple."""
    pixel = np.asarray(color, dtype=np.float64).reshape(1, 3)
    r, g, b = transform_array(pixel, config)[0]
    return int(r), int(g), int(b)
