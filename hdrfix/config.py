"""
Config Module
-------------
Centralizes the user-facing options of the HDR -> SDR converter.
Supports file-based config override, command-line overrides and validation.
Values here are raw: percentages and algorithm names are resolved per
conversion by hdrfix.pipeline_config.resolve_configuration.

Usage:
    from hdrfix.config import get_config
    config = get_config()
"""

from dataclasses import dataclass, field, asdict, replace
from typing import List, Optional, Dict, Any, Union
from pathlib import Path
import json

from hdrfix.errors import InvalidConfigurationError
from hdrfix.logger import setup_logger
from hdrfix.pipeline_config import parse_options

# Configure logger
logger = setup_logger("config")

def _validate_config(cfg: 'Config') -> List[str]:
    """
    Validate configuration values are within acceptable ranges.

    Args:
        cfg: Configuration object to validate

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    # Pixel pipeline options share their checks with per-conversion resolution
    try:
        parse_options(cfg)
    except InvalidConfigurationError as e:
        errors.append(str(e))

    if isinstance(cfg.WORKERS, bool) or not isinstance(cfg.WORKERS, int) or cfg.WORKERS < 0:
        errors.append("WORKERS must be an integer >= 0 (0 = one per CPU)")

    timeout = cfg.WATCH_STABLE_TIMEOUT
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        errors.append("WATCH_STABLE_TIMEOUT must be > 0")

    if not isinstance(cfg.OUTPUT_SUFFIX, str) or '.' not in cfg.OUTPUT_SUFFIX:
        errors.append("OUTPUT_SUFFIX must end with a file extension, e.g. '-sdr.png'")

    if not isinstance(cfg.WATCH_EXTENSIONS, (list, tuple)) or not cfg.WATCH_EXTENSIONS or not all(str(ext).startswith('.') for ext in cfg.WATCH_EXTENSIONS):
        errors.append("WATCH_EXTENSIONS must be a non-empty list of extensions starting with '.'")

    return errors

def validate_config(cfg: 'Config') -> 'Config':
    """
    Check a configuration built outside get_config (e.g. with CLI overrides).

    Returns:
        The same configuration when it is valid.

    Raises:
        InvalidConfigurationError: Listing every validation error.
    """
    errors = _validate_config(cfg)
    if errors:
        raise InvalidConfigurationError('options', "; ".join(errors))
    return cfg

@dataclass(frozen=True)
class Config:
    """
    Options for converting HDR captures to SDR images.

    Attributes:
        # --- Pixel pipeline ---
        EXPOSURE: Exposure adjustment in f-stops applied to the linear input (any real number).
        PRE_GAMMA: Gamma power applied on input, before tone mapping (> 0).
        TONE_MAP: 'linear', 'reinhard' (luminance) or 'reinhard-rgb' (per channel).
        HDR_MAX: Tone-map ceiling, either absolute nits ("1000") or a percentile of input luminance ("99.9%").
        SATURATION: Reinhard saturation coefficient (>= 0). 1 keeps channel ratios.
        POST_GAMMA: Gamma power applied on output, after gamut mapping (> 0).
        COLOR_MAP: Out-of-gamut correction: 'clip', 'darken' or 'desaturate'.
        LEVELS_MIN: Output level stretched to black; absolute [0, 1] or a percentile ("0.5%").
        LEVELS_MAX: Output level stretched to white; absolute [0, 1] or a percentile ("99.5%").

        # --- Execution ---
        WORKERS: Worker threads per conversion (0 = one per CPU).

        # --- Output naming / watch mode ---
        OUTPUT_SUFFIX: Appended to the input stem for watch/batch outputs.
        WATCH_EXTENSIONS: Input extensions picked up by the folder watcher.
        WATCH_RECURSIVE: Watch subfolders too.
        WATCH_STABLE_TIMEOUT: Seconds to wait for a new file to stop growing.
    """

    # --- Pixel pipeline ---
    EXPOSURE: float = 0.0
    PRE_GAMMA: float = 1.0
    TONE_MAP: str = "reinhard"
    HDR_MAX: str = "100%"
    SATURATION: float = 1.0
    POST_GAMMA: float = 1.0
    COLOR_MAP: str = "desaturate"
    LEVELS_MIN: str = "0.0"
    LEVELS_MAX: str = "1.0"

    # --- Execution ---
    WORKERS: int = 0

    # --- Output naming / watch mode ---
    OUTPUT_SUFFIX: str = "-sdr.png"
    WATCH_EXTENSIONS: List[str] = field(default_factory=lambda: [".jxr"])
    WATCH_RECURSIVE: bool = True
    WATCH_STABLE_TIMEOUT: float = 10.0

    def with_overrides(self, **overrides: Any) -> 'Config':
        """Return a copy with the given fields replaced; None values are ignored."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(changes) - set(asdict(self))
        if unknown:
            raise InvalidConfigurationError(', '.join(sorted(unknown)), "unknown option")
        return replace(self, **changes) if changes else self

def _load_config_from_file(path: Union[str, Path, None]) -> Optional[Dict[str, Any]]:
    """
    Load configuration from a JSON file.

    Args:
        path: Path to JSON config file

    Returns:
        Dictionary of config values or None if loading failed
    """
    if not path:
        return None

    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}")
        return None

    try:
        with open(config_path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in config file {config_path}: {e}")
        return None
    except OSError as e:
        logger.error(f"Error reading config file {config_path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.error(f"Config file must contain a JSON object: {config_path}")
        return None

    logger.info(f"Loaded configuration from {config_path}")
    return data

# Global config instance
_config: Optional[Config] = None

def get_config(config_path: Optional[Union[str, Path]] = None) -> Config:
    """
    Get the global configuration object, optionally loading from a file.
    Invalid files fall back to the defaults with the errors logged.

    Args:
        config_path: Optional path to JSON config file

    Returns:
        Configuration object with all parameters
    """
    global _config

    if config_path is not None:
        config_data = _load_config_from_file(config_path)
        _config = Config()

        if config_data:
            base = asdict(Config())
            unknown = sorted(k for k in config_data if k not in base)
            if unknown:
                logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
            filtered_data = {k: v for k, v in config_data.items() if k in base}

            try:
                new_config = Config(**filtered_data)
            except TypeError as e:
                logger.error(f"Error creating config from file data: {e}")
                logger.warning("Falling back to default configuration")
            else:
                errors = _validate_config(new_config)
                if errors:
                    for err in errors:
                        logger.error(f"Config validation error: {err}")
                    logger.warning("Falling back to default configuration")
                else:
                    _config = new_config
                    logger.info("Configuration successfully loaded and validated")

    if _config is None:
        _config = Config()
        for err in _validate_config(_config):
            logger.error(f"Default config validation error: {err}")

    return _config

def save_config(config: Config, output_path: Union[str, Path]) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: Configuration object to save
        output_path: Path to save the config to

    Returns:
        True if saving succeeded, False otherwise
    """
    try:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w') as f:
            json.dump(asdict(config), f, indent=4)

        logger.info(f"Configuration saved to {output_path}")
        return True

    except (OSError, TypeError) as e:
        logger.error(f"Failed to save configuration: {e}")
        return False
