"""
Pipeline Configuration
----------------------
Turns raw user options (numbers, "NN%" strings, algorithm names) into one
immutable, validated PipelineConfiguration per conversion.

Resolution is strictly ordered:
    1. Parse and range-check every option that needs no pixels.
    2. Resolve a percentile hdr-max from the input luminance after pre-gamma.
    3. Resolve percentile levels from the luminance of the signal the levels
       stage will see (stages up to post-gamma, run with identity levels).
    4. Build the final configuration; it is never mutated afterwards.

Usage:
    from hdrfix.pipeline_config import resolve_configuration
    pipeline_config = resolve_configuration(config, buffer)
"""

import math
import time
from dataclasses import dataclass
from typing import Any, Optional, TYPE_CHECKING

from hdrfix.buffer import PixelBuffer
from hdrfix.color import apply_gamma, exposure_scale, nits_to_scrgb
from hdrfix.colormap import ColorMapAlgorithm
from hdrfix.errors import InvalidConfigurationError, InvalidInputError, NumericDegenerateError
from hdrfix.executor import ParallelExecutor
from hdrfix.levels import LevelSpec
from hdrfix.logger import setup_logger
from hdrfix.stats import LuminanceStatistics
from hdrfix.tonemap import ToneMapAlgorithm

if TYPE_CHECKING:
    from hdrfix.config import Config

logger = setup_logger("pipeline_config")


@dataclass(frozen=True)
class PipelineConfiguration:
    """
    Fully resolved parameters shared read-only by every worker.

    Attributes:
        exposure: Exposure adjustment in f-stops.
        pre_gamma: Exponent applied before tone mapping (> 0).
        tone_map: Tone-map operator.
        ceiling: Resolved tone-map ceiling H in scRGB units (> 0).
        saturation: Reinhard saturation coefficient S (>= 0).
        post_gamma: Exponent applied after gamut mapping (> 0).
        color_map: Gamut-map operator.
        levels_min: Output level mapped to 0 (0 <= min < max).
        levels_max: Output level mapped to 1 (max <= 1).
    """
    exposure: float = 0.0
    pre_gamma: float = 1.0
    tone_map: ToneMapAlgorithm = ToneMapAlgorithm.REINHARD_LUMINANCE
    ceiling: float = 1.0
    saturation: float = 1.0
    post_gamma: float = 1.0
    color_map: ColorMapAlgorithm = ColorMapAlgorithm.DESATURATE
    levels_min: float = 0.0
    levels_max: float = 1.0

    def __post_init__(self):
        if not isinstance(self.tone_map, ToneMapAlgorithm):
            object.__setattr__(self, 'tone_map', _algorithm('tone_map', ToneMapAlgorithm, self.tone_map))
        if not isinstance(self.color_map, ColorMapAlgorithm):
            object.__setattr__(self, 'color_map', _algorithm('color_map', ColorMapAlgorithm, self.color_map))

        for name in ('exposure', 'pre_gamma', 'ceiling', 'saturation', 'post_gamma', 'levels_min', 'levels_max'):
            object.__setattr__(self, name, _number(name, getattr(self, name)))

        if self.pre_gamma <= 0:
            raise InvalidConfigurationError('pre_gamma', f"must be > 0, got {self.pre_gamma}")
        if self.post_gamma <= 0:
            raise InvalidConfigurationError('post_gamma', f"must be > 0, got {self.post_gamma}")
        if self.saturation < 0:
            raise InvalidConfigurationError('saturation', f"must be >= 0, got {self.saturation}")
        if self.ceiling <= 0:
            raise NumericDegenerateError('ceiling', self.ceiling, f"tone-map ceiling must be > 0, got {self.ceiling}")
        _check_level_range('levels_min', self.levels_min)
        _check_level_range('levels_max', self.levels_max)
        _check_level_order(self.levels_min, self.levels_max)

    @property
    def exposure_multiplier(self) -> float:
        return exposure_scale(self.exposure)

    def describe(self) -> str:
        return (f"exposure={self.exposure:+g} pre_gamma={self.pre_gamma:g} tone_map={self.tone_map.value} "
                f"ceiling={self.ceiling:.6g} saturation={self.saturation:g} post_gamma={self.post_gamma:g} "
                f"color_map={self.color_map.value} levels=[{self.levels_min:.6g}, {self.levels_max:.6g}]")


@dataclass(frozen=True)
class ParsedOptions:
    """Options after parsing and range checks, with percentiles still unresolved."""
    exposure: float
    pre_gamma: float
    tone_map: ToneMapAlgorithm
    hdr_max: LevelSpec
    saturation: float
    post_gamma: float
    color_map: ColorMapAlgorithm
    levels_min: LevelSpec
    levels_max: LevelSpec

    @property
    def needs_statistics(self) -> bool:
        return self.hdr_max.is_percentile or self.levels_min.is_percentile or self.levels_max.is_percentile


def _number(field: str, value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidConfigurationError(field, f"expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(field, f"expected a number, got {value!r}") from None
    if not math.isfinite(number):
        raise InvalidConfigurationError(field, f"must be finite, got {value!r}")
    return number

def _algorithm(field: str, enum_type, value: Any):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type.from_name(value)
    except ValueError as e:
        raise InvalidConfigurationError(field, str(e)) from None

def _level(field: str, value: Any) -> LevelSpec:
    try:
        spec = LevelSpec.parse(value)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(field, f"expected a number or a percentage like '99%', got {value!r}") from None
    if not math.isfinite(spec.value):
        raise InvalidConfigurationError(field, f"must be finite, got {value!r}")
    return spec

def _check_level_range(field: str, value: float) -> None:
    if not (0.0 <= value <= 1.0):
        raise InvalidConfigurationError(field, f"must be within [0, 1], got {value}")

def _check_level_order(levels_min: float, levels_max: float) -> None:
    if levels_min > levels_max:
        raise InvalidConfigurationError('levels', f"levels_min ({levels_min}) is greater than levels_max ({levels_max})")
    if levels_min == levels_max:
        raise InvalidConfigurationError('levels', f"levels_min and levels_max are both {levels_min}; the range must not be empty")

def _check_percentile(field: str, spec: LevelSpec, allow_zero: bool) -> None:
    low_ok = spec.value >= 0.0 if allow_zero else spec.value > 0.0
    if not (low_ok and spec.value <= 100.0):
        bounds = "[0, 100]" if allow_zero else "(0, 100]"
        raise InvalidConfigurationError(field, f"percentile must be in range {bounds}, got {spec}")


def parse_options(options: 'Config') -> ParsedOptions:
    """
    Parse and check every option that can be checked without pixels.

    Raises:
        InvalidConfigurationError: Naming the first offending field.
    """
    exposure = _number('exposure', options.EXPOSURE)

    pre_gamma = _number('pre_gamma', options.PRE_GAMMA)
    if pre_gamma <= 0:
        raise InvalidConfigurationError('pre_gamma', f"must be > 0, got {pre_gamma}")

    tone_map = _algorithm('tone_map', ToneMapAlgorithm, options.TONE_MAP)

    hdr_max = _level('hdr_max', options.HDR_MAX)
    if hdr_max.is_percentile:
        _check_percentile('hdr_max', hdr_max, allow_zero=False)
    elif hdr_max.value <= 0:
        raise InvalidConfigurationError('hdr_max', f"must be > 0 nits, got {hdr_max}")

    saturation = _number('saturation', options.SATURATION)
    if saturation < 0:
        raise InvalidConfigurationError('saturation', f"must be >= 0, got {saturation}")

    post_gamma = _number('post_gamma', options.POST_GAMMA)
    if post_gamma <= 0:
        raise InvalidConfigurationError('post_gamma', f"must be > 0, got {post_gamma}")

    color_map = _algorithm('color_map', ColorMapAlgorithm, options.COLOR_MAP)

    levels_min = _level('levels_min', options.LEVELS_MIN)
    levels_max = _level('levels_max', options.LEVELS_MAX)
    for field, spec in (('levels_min', levels_min), ('levels_max', levels_max)):
        if spec.is_percentile:
            _check_percentile(field, spec, allow_zero=True)
        else:
            _check_level_range(field, spec.value)
    if not levels_min.is_percentile and not levels_max.is_percentile:
        _check_level_order(levels_min.value, levels_max.value)
    elif levels_min.is_percentile and levels_max.is_percentile and levels_min.value > levels_max.value:
        raise InvalidConfigurationError('levels', f"levels_min ({levels_min}) is above levels_max ({levels_max})")

    return ParsedOptions(
        exposure=exposure,
        pre_gamma=pre_gamma,
        tone_map=tone_map,
        hdr_max=hdr_max,
        saturation=saturation,
        post_gamma=post_gamma,
        color_map=color_map,
        levels_min=levels_min,
        levels_max=levels_max,
    )


def _resolve_ceiling(spec: LevelSpec, pre_gamma: float, buffer: Optional[PixelBuffer],
                     executor: ParallelExecutor) -> float:
    if not spec.is_percentile:
        return nits_to_scrgb(spec.value)

    # Measured on what the tone map sees, less exposure
    stats = LuminanceStatistics(apply_gamma(buffer.rgb, pre_gamma), executor)
    ceiling = stats.percentile(spec.value)
    logger.debug(f"Input luminance range [{stats.minimum:.6g}, {stats.maximum:.6g}], "
                 f"{spec} percentile = {ceiling:.6g}")
    if not (math.isfinite(ceiling) and ceiling > 0):
        raise NumericDegenerateError(
            'hdr_max', ceiling,
            f"{spec} percentile of input luminance is {ceiling:.6g}; tone-map ceiling must be > 0")
    return ceiling

def _resolve_levels(parsed: ParsedOptions, ceiling: float, buffer: Optional[PixelBuffer], executor: ParallelExecutor):
    if not (parsed.levels_min.is_percentile or parsed.levels_max.is_percentile):
        return parsed.levels_min.value, parsed.levels_max.value

    provisional = PipelineConfiguration(
        exposure=parsed.exposure,
        pre_gamma=parsed.pre_gamma,
        tone_map=parsed.tone_map,
        ceiling=ceiling,
        saturation=parsed.saturation,
        post_gamma=parsed.post_gamma,
        color_map=parsed.color_map,
    )
    display = executor.map_to_display(buffer, provisional)
    stats = LuminanceStatistics(display, executor)

    def resolve(spec: LevelSpec) -> float:
        if not spec.is_percentile:
            return spec.value
        # Luma weights sum to 1 only up to rounding
        return min(max(stats.percentile(spec.value), 0.0), 1.0)

    levels_min, levels_max = resolve(parsed.levels_min), resolve(parsed.levels_max)
    logger.debug(f"Levels {parsed.levels_min}..{parsed.levels_max} resolved to {levels_min:.6g}..{levels_max:.6g}")
    return levels_min, levels_max

def resolve_configuration(options: 'Config', buffer: Optional[PixelBuffer] = None,
                          executor: Optional[ParallelExecutor] = None) -> PipelineConfiguration:
    """
    Build the immutable configuration for one conversion.

    Args:
        options: Raw option values (a hdrfix.config.Config).
        buffer: Input pixels; required when hdr-max or levels are percentiles.
        executor: Executor for the statistics passes (defaults to options.WORKERS threads).

    Raises:
        InvalidConfigurationError: Malformed, out-of-range or contradictory options.
        InvalidInputError: Percentiles requested without an input buffer.
        NumericDegenerateError: A percentile ceiling resolved to zero or less.
    """
    start_time = time.perf_counter()
    parsed = parse_options(options)

    if parsed.needs_statistics and buffer is None:
        raise InvalidInputError("Percentile hdr-max or levels need the input pixel buffer")
    if executor is None:
        executor = ParallelExecutor(getattr(options, 'WORKERS', 0) or None)

    ceiling = _resolve_ceiling(parsed.hdr_max, parsed.pre_gamma, buffer, executor)
    levels_min, levels_max = _resolve_levels(parsed, ceiling, buffer, executor)

    pipeline_config = PipelineConfiguration(
        exposure=parsed.exposure,
        pre_gamma=parsed.pre_gamma,
        tone_map=parsed.tone_map,
        ceiling=ceiling,
        saturation=parsed.saturation,
        post_gamma=parsed.post_gamma,
        color_map=parsed.color_map,
        levels_min=levels_min,
        levels_max=levels_max,
    )
    logger.info(f"Resolved configuration: {pipeline_config.describe()}")
    logger.debug(f"Configuration resolution took {(time.perf_counter() - start_time) * 1000:.1f} ms")
    return pipeline_config
