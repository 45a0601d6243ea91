"""
Command-Line Interface (CLI) Module
------------------------------------
Handles command-line argument parsing and runs HDR -> SDR conversion for a
single capture, a folder of captures, or a watched folder.
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from hdrfix.config import Config, get_config, validate_config
from hdrfix.errors import InvalidConfigurationError
from hdrfix.executor import ParallelExecutor
from hdrfix.fileio import ensure_dir, list_image_files, output_path_for
from hdrfix.hdr_converter import convert_file
from hdrfix.logger import set_log_level, setup_logger
from hdrfix.watcher import ConversionWatcher

logger = setup_logger("cli")

def _conversion_options() -> argparse.ArgumentParser:
    """Options shared by every mode. Defaults are None so the config file wins unless overridden."""
    parent = argparse.ArgumentParser(add_help=False)
    group = parent.add_argument_group("conversion options")
    group.add_argument("--config", type=str, default=None,
                       help="Path to a custom JSON configuration file.")
    group.add_argument("--exposure", type=float, default=None,
                       help="Exposure adjustment in stops, used to scale the HDR input linearly. "
                            "May be positive or negative (default 0).")
    group.add_argument("--pre-gamma", dest="pre_gamma", type=float, default=None,
                       help="Gamma power applied on input (default 1.0).")
    group.add_argument("--tone-map", dest="tone_map", default=None,
                       choices=["linear", "reinhard", "reinhard-rgb"],
                       help="Method for mapping HDR into SDR domain (default reinhard).")
    group.add_argument("--hdr-max", dest="hdr_max", type=str, default=None,
                       help="Max HDR luminance level for tone mapping, in nits or a percentile of the input "
                            "such as '99.9%%' (default 100%%, the highest input value).")
    group.add_argument("--saturation", type=float, default=None,
                       help="Saturation coefficient for luminance Reinhard. 1.0 keeps channel ratios; larger "
                            "values desaturate bright colors more (default 1).")
    group.add_argument("--post-gamma", dest="post_gamma", type=float, default=None,
                       help="Gamma power applied on output (default 1.0).")
    group.add_argument("--color-map", dest="color_map", default=None,
                       choices=["clip", "darken", "desaturate"],
                       help="Method for mapping and fixing out of gamut colors (default desaturate).")
    group.add_argument("--levels-min", dest="levels_min", type=str, default=None,
                       help="Output level stretched to black: absolute 0..1 or a percentile like '0.5%%' (default 0).")
    group.add_argument("--levels-max", dest="levels_max", type=str, default=None,
                       help="Output level stretched to white: absolute 0..1 or a percentile like '99.5%%' (default 1).")
    group.add_argument("--workers", type=int, default=None,
                       help="Worker threads per conversion (default: one per CPU).")
    group.add_argument("-v", "--verbose", action="store_true",
                       help="Enable debug logging.")
    return parent

def build_parser() -> argparse.ArgumentParser:
    """Parser for single, batch and watch modes."""
    common = _conversion_options()
    parser = argparse.ArgumentParser(
        prog="hdrfix",
        description="Convert HDR captures (.jxr scRGB, HDR10 .png, .exr) to 8-bit SDR images.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''Examples:
  Single image:
    python -m hdrfix.cli single capture.jxr capture-sdr.png --hdr-max 99.9%
  Batch processing:
    python -m hdrfix.cli batch captures/ converted/ --tone-map reinhard-rgb
  Watch a folder:
    python -m hdrfix.cli watch "~/Videos/Captures"
'''
    )

    subparsers = parser.add_subparsers(dest='mode', required=True,
                                       help="Processing mode: 'single', 'batch' or 'watch'")

    parser_single = subparsers.add_parser('single', parents=[common], help='Convert a single image.')
    parser_single.add_argument("input", type=str, help="Input filename (.jxr, HDR10 .png, .exr, ...).")
    parser_single.add_argument("output", type=str, help="Output filename, usually .png.")

    parser_batch = subparsers.add_parser('batch', parents=[common], help='Convert all images in a directory.')
    parser_batch.add_argument("input_dir", type=str, help="Directory containing HDR captures.")
    parser_batch.add_argument("output_dir", type=str, help="Directory where SDR outputs will be saved.")
    parser_batch.add_argument("--ext", type=str, default=None,
                              help="Only convert files with this extension (e.g. jxr).")
    parser_batch.add_argument("--suffix", type=str, default=".png",
                              help="Appended to each input stem to name the output.")

    parser_watch = subparsers.add_parser('watch', parents=[common],
                                         help="Watch a folder and convert new captures into '<name>-sdr.png'.")
    parser_watch.add_argument("folder", type=str, help="Folder to watch.")
    parser_watch.add_argument("--no-recursive", dest="recursive", action="store_false", default=None,
                              help="Do not watch subfolders.")

    return parser

def options_from_args(args: argparse.Namespace) -> Config:
    """
    Config file (or defaults) with command-line values applied on top.

    Raises:
        InvalidConfigurationError: If an override is out of range.
    """
    config = get_config(args.config)
    return validate_config(config.with_overrides(
        EXPOSURE=args.exposure,
        PRE_GAMMA=args.pre_gamma,
        TONE_MAP=args.tone_map,
        HDR_MAX=args.hdr_max,
        SATURATION=args.saturation,
        POST_GAMMA=args.post_gamma,
        COLOR_MAP=args.color_map,
        LEVELS_MIN=args.levels_min,
        LEVELS_MAX=args.levels_max,
        WORKERS=args.workers,
        WATCH_RECURSIVE=getattr(args, 'recursive', None),
    ))

def run_single_conversion(args: argparse.Namespace, config: Config) -> int:
    """Execute conversion for a single image."""
    logger.info("--- Running in Single Image Mode ---")
    input_path = Path(args.input).expanduser().resolve()
    output_path = Path(args.output).expanduser()

    if not input_path.is_file():
        logger.error(f"Input image not found or is not a file: {input_path}")
        return 1

    result_path = convert_file(input_path, output_path, config)
    return 0 if result_path else 1

def run_batch_conversion(args: argparse.Namespace, config: Config) -> int:
    """Execute conversion for every supported image in a directory."""
    logger.info("--- Running in Batch Processing Mode ---")
    total_start_time = time.perf_counter()

    input_dir = Path(args.input_dir).expanduser().resolve()
    output_dir = Path(args.output_dir).expanduser().resolve()
    if not input_dir.is_dir():
        logger.error(f"Input directory not found or is not a directory: {input_dir}")
        return 1
    if not ensure_dir(output_dir):
        return 1

    extensions = {f".{args.ext.lstrip('.').lower()}"} if args.ext else None
    image_files = list_image_files(input_dir, extensions)
    if not image_files:
        logger.warning(f"No convertible images found in directory: {input_dir}")
        return 0

    logger.info(f"Found {len(image_files)} image(s) to process.")
    executor = ParallelExecutor(config.WORKERS or None)
    success_count = 0
    fail_count = 0
    for i, input_path in enumerate(image_files):
        logger.info(f"--- Processing image {i + 1}/{len(image_files)}: {input_path.name} ---")
        output_path = output_path_for(input_path, args.suffix, output_dir)
        if convert_file(input_path, output_path, config, executor):
            success_count += 1
        else:
            fail_count += 1
        logger.info("-" * 60)

    logger.info("--- Batch Processing Summary ---")
    logger.info(f"Total images processed: {len(image_files)}")
    logger.info(f"Successful conversions: {success_count}")
    logger.info(f"Failed conversions: {fail_count}")
    logger.info(f"Total batch time: {time.perf_counter() - total_start_time:.2f} seconds")
    return 0 if fail_count == 0 else 1

def run_watch(args: argparse.Namespace, config: Config) -> int:
    """Watch a folder until interrupted."""
    logger.info("--- Running in Watch Mode ---")
    folder = Path(args.folder).expanduser().resolve()
    if not folder.is_dir():
        logger.error(f"Watch folder not found or is not a directory: {folder}")
        return 1
    ConversionWatcher(folder, config).run_forever()
    return 0

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI application."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        set_log_level(logging.DEBUG)

    try:
        config = options_from_args(args)
    except InvalidConfigurationError as e:
        logger.error(f"Invalid options: {e}")
        return 1

    if args.mode == 'single':
        return run_single_conversion(args, config)
    if args.mode == 'batch':
        return run_batch_conversion(args, config)
    return run_watch(args, config)

if __name__ == "__main__":
    sys.exit(main())
