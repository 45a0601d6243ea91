"""
Color Primitives Module
-----------------------
Pure, vectorised functions on color arrays whose last axis holds (R, G, B):
luminance, sRGB transfer-function encoding, sign-guarded gamma, gamut tests,
and the HDR10 (PQ / BT.2020) decode used for 8/16-bit HDR screenshots.

All functions accept any array shaped (..., 3) and never modify their input.
"""

import numpy as np

# BT.2100 luminance weights for linear RGB
LUMA_R = 0.2627
LUMA_G = 0.6780
LUMA_B = 0.0593

# Constants for sRGB conversion
SRGB_ALPHA = 0.055
SRGB_LINEAR_THRESHOLD = 0.0031308

# SMPTE ST 2084 (PQ) constants
PQ_M1 = 0.1593017578125
PQ_M2 = 78.84375
PQ_C1 = 0.8359375
PQ_C2 = 18.8515625
PQ_C3 = 18.6875

# Nits represented by PQ 1.0 and by scRGB 1.0 (SDR reference white)
REC2100_MAX_NITS = 10000.0
SDR_WHITE_NITS = 80.0

# Largest magnitude carried into tone mapping; luminance of three such channels stays finite
SIGNAL_LIMIT = float(np.finfo(np.float64).max) / 2.0

# BT.2020 -> BT.709 primaries, applied as rgb @ REC2020_TO_REC709.T
REC2020_TO_REC709 = np.array([
    [ 1.6605, -0.5876, -0.0728],
    [-0.1246,  1.1329, -0.0083],
    [-0.0182, -0.1006,  1.1187],
], dtype=np.float64)

def luminance(rgb: np.ndarray) -> np.ndarray:
    """
    Relative luminance of linear RGB using the BT.2100 weights.

    Computed channel by channel rather than with a matrix product so each
    result depends on its own pixel only, independent of array size.
    """
    return LUMA_R * rgb[..., 0] + LUMA_G * rgb[..., 1] + LUMA_B * rgb[..., 2]

def bound_signal(values: np.ndarray) -> np.ndarray:
    """Clamp to +/-SIGNAL_LIMIT; overflowed (infinite) values become the limit."""
    return np.clip(values, -SIGNAL_LIMIT, SIGNAL_LIMIT)

def exposure_scale(stops: float) -> float:
    """Linear multiplier for an exposure adjustment in f-stops, saturating at SIGNAL_LIMIT."""
    with np.errstate(over='ignore'):
        scale = float(np.exp2(stops))
    return min(scale, SIGNAL_LIMIT)

def apply_gamma(values: np.ndarray, gamma: float) -> np.ndarray:
    """
    Raise values to a power, preserving sign: sign(x) * |x| ** gamma.

    Negative scRGB components stay negative instead of producing NaN for
    non-integer exponents. Results that overflow are bounded to SIGNAL_LIMIT.
    """
    values = np.asarray(values, dtype=np.float64)
    if gamma == 1.0:
        return bound_signal(values)
    with np.errstate(over='ignore'):
        return bound_signal(np.sign(values) * np.power(np.abs(values), gamma))

def linear_to_srgb(img_linear: np.ndarray) -> np.ndarray:
    """
    Convert linear RGB values to sRGB-encoded values in [0, 1].

    Negative values are clipped before encoding and the result is clipped to
    [0, 1], so any real input produces a displayable value.

    Args:
        img_linear: Linear values (float, any shape).

    Returns:
        sRGB-encoded values (float64, same shape, range [0, 1]).
    """
    if not np.issubdtype(np.asarray(img_linear).dtype, np.floating):
        raise ValueError("Input must be float type for linear_to_srgb")

    img_linear_nonneg = np.clip(img_linear, 0.0, 1.0).astype(np.float64, copy=False)

    linear_mask = img_linear_nonneg <= SRGB_LINEAR_THRESHOLD
    gamma_mask = ~linear_mask

    img_srgb = np.empty_like(img_linear_nonneg)
    img_srgb[linear_mask] = img_linear_nonneg[linear_mask] * 12.92
    img_srgb[gamma_mask] = (1 + SRGB_ALPHA) * np.power(img_linear_nonneg[gamma_mask], 1.0 / 2.4) - SRGB_ALPHA
    # 1.055 - 0.055 is one ulp short of 1.0
    img_srgb[img_linear_nonneg >= 1.0] = 1.0

    return np.clip(img_srgb, 0.0, 1.0)

def out_of_gamut(rgb: np.ndarray) -> np.ndarray:
    """Boolean mask (shape rgb.shape[:-1]) of colors with any channel outside [0, 1]."""
    return np.any((rgb < 0.0) | (rgb > 1.0), axis=-1)

def pq_to_linear(encoded: np.ndarray) -> np.ndarray:
    """
    SMPTE ST 2084 EOTF: PQ-encoded [0, 1] values to linear light,
    where 1.0 is REC2100_MAX_NITS.
    """
    powered = np.power(np.clip(encoded, 0.0, 1.0), 1.0 / PQ_M2)
    numerator = np.maximum(powered - PQ_C1, 0.0)
    denominator = PQ_C2 - PQ_C3 * powered
    return np.power(numerator / denominator, 1.0 / PQ_M1)

def rec2100_to_scrgb(rgb_linear: np.ndarray) -> np.ndarray:
    """
    Convert linear BT.2020 light (1.0 = 10000 nits) to scRGB
    (BT.709 primaries, 1.0 = 80 nits).
    """
    scaled = rgb_linear * (REC2100_MAX_NITS / SDR_WHITE_NITS)
    return scaled @ REC2020_TO_REC709.T

def nits_to_scrgb(nits: float) -> float:
    """Absolute luminance in nits to scRGB units."""
    return nits / SDR_WHITE_NITS
