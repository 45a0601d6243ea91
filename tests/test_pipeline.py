"""
Tests for the per-pixel transform pipeline
"""
import itertools

import numpy as np
import pytest

from hdrfix.color import linear_to_srgb, luminance
from hdrfix.colormap import ColorMapAlgorithm
from hdrfix.pipeline import (
    map_to_display, map_to_linear, quantize, remap_levels, transform, transform_array,
)
from hdrfix.pipeline_config import PipelineConfiguration
from hdrfix.tonemap import ToneMapAlgorithm, apply_tonemap


class TestIdentity:

    def test_in_range_input_is_only_srgb_encoded(self, rng, identity_config):
        rgb = rng.uniform(0.0, 1.0, size=(64, 3))
        expected = np.rint(linear_to_srgb(rgb) * 255).astype(np.uint8)
        np.testing.assert_array_equal(transform_array(rgb, identity_config), expected)

    def test_single_color(self, identity_config):
        assert transform((0.5, 0.5, 0.5), identity_config) == (188, 188, 188)
        assert transform((0.0, 1.0, 0.0), identity_config) == (0, 255, 0)

    def test_returns_plain_ints(self, identity_config):
        result = transform([0.2, 0.3, 0.4], identity_config)
        assert all(type(channel) is int for channel in result)


class TestExposure:

    def test_monotonic_in_exposure(self, rng):
        rgb = rng.uniform(0.0, 4.0, size=(200, 3))
        previous = None
        for stops in (-3.0, -1.0, 0.0, 0.5, 2.0):
            config = PipelineConfiguration(exposure=stops, tone_map=ToneMapAlgorithm.REINHARD_RGB,
                                           ceiling=8.0, color_map=ColorMapAlgorithm.CLIP)
            current = map_to_linear(rgb, config)
            if previous is not None:
                assert np.all(current >= previous)
            previous = current

    def test_doubles_linear_signal(self):
        config = PipelineConfiguration(exposure=1.0, tone_map=ToneMapAlgorithm.LINEAR, ceiling=1.0,
                                       color_map=ColorMapAlgorithm.CLIP)
        np.testing.assert_allclose(map_to_linear(np.array([[0.1, 0.2, 0.3]]), config), [[0.2, 0.4, 0.6]])


class TestGamma:

    @pytest.mark.parametrize("gamma", [0.45, 2.2, 3.0])
    def test_pre_and_inverse_post_gamma_cancel(self, rng, gamma):
        rgb = rng.uniform(0.0, 1.0, size=(100, 3))
        config = PipelineConfiguration(pre_gamma=gamma, post_gamma=1.0 / gamma,
                                       tone_map=ToneMapAlgorithm.LINEAR, ceiling=1.0,
                                       color_map=ColorMapAlgorithm.CLIP)
        np.testing.assert_allclose(map_to_display(rgb, config), rgb, rtol=1e-9, atol=1e-12)


class TestToneMapStage:

    def test_twice_ceiling_is_exactly_one(self):
        ceiling = 2.5
        pixel = np.array([[2 * ceiling, 2 * ceiling, 2 * ceiling]])
        np.testing.assert_array_equal(apply_tonemap(pixel, ToneMapAlgorithm.LINEAR, ceiling), [[1.0, 1.0, 1.0]])

    def test_at_or_above_ceiling_is_one(self):
        values = np.array([[4.0, 5.0, 1e9]])
        np.testing.assert_array_equal(apply_tonemap(values, ToneMapAlgorithm.LINEAR, 4.0), [[1.0, 1.0, 1.0]])


class TestLevels:

    def test_midpoint(self):
        assert remap_levels(np.array([0.5]), 0.1, 0.9)[0] == pytest.approx(0.5, abs=1e-12)

    def test_endpoints_and_clamping(self):
        result = remap_levels(np.array([0.1, 0.9, 0.05, 0.95]), 0.1, 0.9)
        np.testing.assert_array_equal(result, [0.0, 1.0, 0.0, 1.0])

    def test_applied_after_post_gamma(self):
        config = PipelineConfiguration(tone_map=ToneMapAlgorithm.LINEAR, ceiling=1.0,
                                       color_map=ColorMapAlgorithm.CLIP, levels_min=0.1, levels_max=0.9)
        result = map_to_linear(np.array([[0.5, 0.1, 0.9]]), config)
        np.testing.assert_allclose(result, [[0.5, 0.0, 1.0]], atol=1e-12)


class TestQuantize:

    def test_rounding_and_range(self):
        result = quantize(np.array([0.0, 1.0, 0.5, 2.0, -1.0]))
        np.testing.assert_array_equal(result, [0, 255, 188, 255, 0])
        assert result.dtype == np.uint8


class TestWholePipeline:

    @pytest.mark.parametrize("tone_map,color_map", list(itertools.product(ToneMapAlgorithm, ColorMapAlgorithm)))
    def test_black_stays_black(self, tone_map, color_map):
        black = np.zeros((10, 3))
        for exposure, pre_gamma, post_gamma, levels in [(0.0, 1.0, 1.0, (0.0, 1.0)),
                                                        (3.0, 2.2, 0.5, (0.2, 0.8)),
                                                        (-2.0, 0.5, 2.0, (0.0, 0.01))]:
            config = PipelineConfiguration(exposure=exposure, pre_gamma=pre_gamma, tone_map=tone_map,
                                           ceiling=5.0, saturation=1.7, post_gamma=post_gamma,
                                           color_map=color_map, levels_min=levels[0], levels_max=levels[1])
            np.testing.assert_array_equal(transform_array(black, config), np.zeros((10, 3), dtype=np.uint8))

    @pytest.mark.parametrize("tone_map,color_map", list(itertools.product(ToneMapAlgorithm, ColorMapAlgorithm)))
    def test_display_signal_in_unit_cube(self, hdr_buffer, tone_map, color_map):
        config = PipelineConfiguration(exposure=1.0, pre_gamma=1.2, tone_map=tone_map, ceiling=20.0,
                                       saturation=0.5, post_gamma=0.8, color_map=color_map)
        result = map_to_display(hdr_buffer.rgb, config)
        assert np.all(np.isfinite(result))
        assert result.min() >= 0.0
        assert result.max() <= 1.0

    def test_desaturate_keeps_tone_mapped_luminance(self, rng):
        rgb = rng.uniform(0.0, 50.0, size=(300, 3)) * np.array([1.0, 0.05, 0.02])
        config = PipelineConfiguration(tone_map=ToneMapAlgorithm.REINHARD_LUMINANCE, ceiling=50.0,
                                       saturation=1.0, color_map=ColorMapAlgorithm.DESATURATE)
        tone_mapped = apply_tonemap(rgb, config.tone_map, config.ceiling, config.saturation)
        np.testing.assert_allclose(luminance(map_to_display(rgb, config)), luminance(tone_mapped),
                                   rtol=1e-9, atol=1e-12)

    def test_does_not_modify_input(self, hdr_buffer):
        before = hdr_buffer.rgb.copy()
        transform_array(hdr_buffer.rgb, PipelineConfiguration(ceiling=10.0))
        np.testing.assert_array_equal(hdr_buffer.rgb, before)


class TestExtremeValues:

    @pytest.mark.parametrize("color_map,expected", [
        (ColorMapAlgorithm.DESATURATE, (255, 255, 255)),
        (ColorMapAlgorithm.CLIP, (255, 0, 0)),
    ])
    def test_overflowing_pre_gamma_stays_brightest(self, color_map, expected):
        config = PipelineConfiguration(pre_gamma=10.0, tone_map=ToneMapAlgorithm.REINHARD_LUMINANCE,
                                       ceiling=1.0, color_map=color_map)
        display = map_to_display(np.array([[3e38, 1.0, 1.0]]), config)
        assert np.all(np.isfinite(display))
        assert transform((3e38, 1.0, 1.0), config) == expected

    def test_huge_exposure(self):
        config = PipelineConfiguration(exposure=1100.0, tone_map=ToneMapAlgorithm.LINEAR, ceiling=1.0)
        assert transform((0.5, 0.5, 0.5), config) == (255, 255, 255)
        assert transform((0.0, 0.0, 0.0), config) == (0, 0, 0)

    def test_tiny_exposure(self):
        config = PipelineConfiguration(exposure=-1100.0, tone_map=ToneMapAlgorithm.REINHARD_RGB, ceiling=1.0)
        assert transform((1e30, 5.0, 0.5), config) == (0, 0, 0)

    @pytest.mark.parametrize("tone_map,color_map", list(itertools.product(ToneMapAlgorithm, ColorMapAlgorithm)))
    def test_finite_for_largest_inputs(self, tone_map, color_map):
        big = np.finfo(np.float64).max
        rgb = np.array([[big, big, big], [big, -big, 0.5], [-big, -big, -big], [1e-300, 1e300, 2.0]])
        config = PipelineConfiguration(exposure=4.0, pre_gamma=3.0, tone_map=tone_map, ceiling=1e200,
                                       saturation=0.3, color_map=color_map)
        result = map_to_display(rgb, config)
        assert np.all(np.isfinite(result))
        assert result.min() >= 0.0
        assert result.max() <= 1.0
