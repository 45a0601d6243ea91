"""
Tests for the single-buffer and single-file conversion entry points
"""
import os

import cv2
import numpy as np
import pytest

from hdrfix.buffer import PixelBuffer
from hdrfix.config import Config
from hdrfix.errors import InvalidConfigurationError, NumericDegenerateError
from hdrfix.executor import ParallelExecutor
from hdrfix.hdr_converter import convert_buffer, convert_file
from hdrfix.pipeline import transform_array


@pytest.fixture
def passthrough():
    return Config(TONE_MAP="linear", HDR_MAX="80", COLOR_MAP="clip")


def write_hdr(path, rgb):
    assert cv2.imwrite(str(path), cv2.cvtColor(rgb.astype(np.float32), cv2.COLOR_RGB2BGR))
    return path


class TestConvertBuffer:

    def test_passthrough(self, rng, passthrough, identity_config):
        rgb = rng.uniform(0.0, 1.0, size=(12, 10, 3))
        sdr, pipeline_config = convert_buffer(PixelBuffer(rgb=rgb), passthrough, ParallelExecutor(2))
        assert pipeline_config == identity_config
        np.testing.assert_array_equal(sdr.rgb, transform_array(rgb, identity_config))

    def test_default_options(self, hdr_buffer):
        sdr, pipeline_config = convert_buffer(hdr_buffer, Config())
        assert sdr.rgb.shape == (hdr_buffer.height, hdr_buffer.width, 3)
        assert sdr.rgb.max() == 255
        assert pipeline_config.ceiling > 1.0

    def test_invalid_options_raise_before_transform(self, hdr_buffer):
        with pytest.raises(InvalidConfigurationError):
            convert_buffer(hdr_buffer, Config(SATURATION=-1.0))

    def test_black_image_with_percentile_ceiling(self):
        with pytest.raises(NumericDegenerateError):
            convert_buffer(PixelBuffer(rgb=np.zeros((3, 3, 3))), Config())


class TestConvertFile:

    def test_end_to_end(self, temp_dir, rng):
        rgb = rng.uniform(0.1, 8.0, size=(10, 14, 1)) * np.ones(3)
        input_path = write_hdr(os.path.join(temp_dir, "scene.hdr"), rgb)
        output_path = os.path.join(temp_dir, "out", "scene-sdr.png")

        result = convert_file(input_path, output_path, Config(HDR_MAX="99%", WORKERS=2))
        assert str(result) == output_path
        written = cv2.imread(output_path, cv2.IMREAD_UNCHANGED)
        assert written.shape == (10, 14, 3)
        assert written.dtype == np.uint8

    def test_invalid_option_writes_nothing(self, temp_dir):
        input_path = write_hdr(os.path.join(temp_dir, "scene.hdr"), np.ones((4, 4, 3)))
        output_path = os.path.join(temp_dir, "scene-sdr.png")
        assert convert_file(input_path, output_path, Config(PRE_GAMMA=0.0)) is None
        assert not os.path.exists(output_path)

    def test_missing_input(self, temp_dir):
        output_path = os.path.join(temp_dir, "out.png")
        assert convert_file(os.path.join(temp_dir, "missing.exr"), output_path, Config()) is None
        assert not os.path.exists(output_path)

    def test_degenerate_input_writes_nothing(self, temp_dir):
        input_path = write_hdr(os.path.join(temp_dir, "black.hdr"), np.zeros((4, 4, 3)))
        output_path = os.path.join(temp_dir, "black-sdr.png")
        assert convert_file(input_path, output_path, Config()) is None
        assert not os.path.exists(output_path)
