"""
Pytest configuration and fixtures
"""
import os
import shutil
import sys
import tempfile

import numpy as np
import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from hdrfix.buffer import PixelBuffer
from hdrfix.colormap import ColorMapAlgorithm
from hdrfix.pipeline_config import PipelineConfiguration
from hdrfix.tonemap import ToneMapAlgorithm


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files"""
    temp_path = tempfile.mkdtemp(prefix="hdrfix_test_")
    yield temp_path
    if os.path.exists(temp_path):
        shutil.rmtree(temp_path)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def hdr_buffer(rng):
    """Wide-gamut HDR buffer: mostly SDR range, some highlights and slightly negative channels"""
    rgb = rng.uniform(-0.05, 1.0, size=(37, 23, 3))
    rgb[::5, ::3] *= 40.0
    rgb[7, 11] = [250.0, 3.0, -0.2]
    return PixelBuffer(rgb=rgb)


@pytest.fixture
def identity_config():
    """Configuration that only sRGB-encodes values already in [0, 1]"""
    return PipelineConfiguration(
        tone_map=ToneMapAlgorithm.LINEAR,
        ceiling=1.0,
        color_map=ColorMapAlgorithm.CLIP,
    )


@pytest.fixture
def gray_buffer():
    """Factory: one-row buffer of gray pixels (v, v, v)"""
    def make(values):
        values = np.asarray(values, dtype=np.float64)
        return PixelBuffer(rgb=np.repeat(values[np.newaxis, :, np.newaxis], 3, axis=2))
    return make
