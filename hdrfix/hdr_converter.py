"""
HDR to SDR Converter - Main Orchestrator
----------------------------------------
High-level pipeline for converting one HDR capture into an 8-bit SDR image.

A conversion runs in two strictly ordered phases:
    1. Configuration: parse options and, when percentiles are requested,
       collect luminance statistics; produces a frozen PipelineConfiguration.
    2. Transform: the Parallel Executor maps every pixel through the pipeline.
Nothing is written unless both phases complete.

Usage:
    python -m hdrfix.cli single input.jxr output.png
    python -m hdrfix.cli watch captures/
"""

import time
from pathlib import Path
from typing import Optional, Tuple, Union

from hdrfix.buffer import PixelBuffer, SdrBuffer
from hdrfix.config import Config
from hdrfix.errors import HdrfixError
from hdrfix.executor import ParallelExecutor
from hdrfix.fileio import load_hdr_image, save_sdr_image
from hdrfix.logger import setup_logger
from hdrfix.pipeline_config import PipelineConfiguration, resolve_configuration

logger = setup_logger("hdr_converter")

def convert_buffer(buffer: PixelBuffer, config: Config,
                   executor: Optional[ParallelExecutor] = None) -> Tuple[SdrBuffer, PipelineConfiguration]:
    """
    Convert an in-memory linear scRGB buffer to 8-bit sRGB.

    Args:
        buffer: Decoded input pixels.
        config: Raw conversion options.
        executor: Executor to use (defaults to config.WORKERS threads).

    Returns:
        The output buffer and the configuration it was produced with.

    Raises:
        InvalidConfigurationError, InvalidInputError, NumericDegenerateError:
            Before any pixel is transformed.
    """
    executor = executor or ParallelExecutor(config.WORKERS or None)

    config_start = time.perf_counter()
    pipeline_config = resolve_configuration(config, buffer, executor)
    logger.info(f"configuration in {(time.perf_counter() - config_start) * 1000:.1f} ms")

    transform_start = time.perf_counter()
    sdr = executor.transform(buffer, pipeline_config)
    logger.info(f"hdr_to_sdr in {(time.perf_counter() - transform_start) * 1000:.1f} ms")
    return sdr, pipeline_config

def convert_file(input_path: Union[str, Path], output_path: Union[str, Path], config: Config,
                 executor: Optional[ParallelExecutor] = None) -> Optional[Path]:
    """
    Main pipeline orchestrator for one file.

    Returns:
        Path of the written SDR image, or None if the conversion failed.
        Failures are logged; a failed conversion never writes output.
    """
    overall_start_time = time.perf_counter()
    input_path = Path(input_path)
    output_path = Path(output_path)
    logger.info(f"{input_path} -> {output_path}")

    try:
        read_start = time.perf_counter()
        buffer = load_hdr_image(input_path)
        logger.info(f"read_input in {(time.perf_counter() - read_start) * 1000:.1f} ms "
                    f"({buffer.width}x{buffer.height})")

        sdr, _ = convert_buffer(buffer, config, executor)

        write_start = time.perf_counter()
        if not save_sdr_image(output_path, sdr):
            logger.error(f"Failed to write output image: {output_path}")
            return None
        logger.info(f"write_output in {(time.perf_counter() - write_start) * 1000:.1f} ms")

    except (FileNotFoundError, HdrfixError) as e:
        logger.error(f"Conversion failed for {input_path.name}: {e}")
        return None
    except Exception as e:
        logger.error(f"Unhandled error converting {input_path.name}: {e}", exc_info=True)
        return None

    logger.info(f"Done: {output_path} (total {time.perf_counter() - overall_start_time:.2f}s)")
    return output_path
