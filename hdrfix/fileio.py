"""
File Input/Output Module
------------------------
Decodes HDR captures into linear scRGB PixelBuffers and encodes the final
8-bit SDR buffers. Also manages directories and lists convertible files.

Supported inputs:
    .jxr             scRGB float (128bpp RGBA float), via imageio/FreeImage
    .exr .hdr .pfm   linear float, via OpenCV with an imageio fallback
    .tif .tiff       float TIFF only
    .png             HDR10 screenshots: 8/16-bit PQ-encoded BT.2020
"""

import os
os.environ.setdefault("OPENCV_IO_ENABLE_OPENEXR", "1")

from pathlib import Path
import cv2
import imageio # JPEG XR and EXR fallback
import numpy as np
import logging
from typing import List, Optional, Union

from hdrfix.buffer import PixelBuffer, SdrBuffer
from hdrfix.color import pq_to_linear, rec2100_to_scrgb
from hdrfix.errors import UnsupportedFormatError

logger = logging.getLogger(__name__)

FLOAT_IMAGE_EXTENSIONS = {'.exr', '.hdr', '.pfm', '.tif', '.tiff'}
HDR10_IMAGE_EXTENSIONS = {'.png'}
JXR_IMAGE_EXTENSIONS = {'.jxr', '.wdp', '.hdp'}
SUPPORTED_INPUT_EXTENSIONS = FLOAT_IMAGE_EXTENSIONS | HDR10_IMAGE_EXTENSIONS | JXR_IMAGE_EXTENSIONS

SUPPORTED_OUTPUT_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.tif', '.tiff', '.bmp', '.webp'}

def ensure_dir(path: Union[str, Path]) -> bool:
    """
    Ensure that a directory exists, creating it if necessary.

    Args:
        path: Path to the directory.

    Returns:
        True if the directory exists or was created successfully, False otherwise.
    """
    try:
        dir_path = Path(path)
        if not dir_path.exists():
            logger.info(f"Creating directory: {dir_path}")
            dir_path.mkdir(parents=True, exist_ok=True)
        elif not dir_path.is_dir():
            logger.error(f"Path exists but is not a directory: {dir_path}")
            return False
        return True
    except PermissionError:
        logger.error(f"Permission denied creating directory: {path}")
        return False
    except OSError as e:
        logger.error(f"Error ensuring directory exists {path}: {e}", exc_info=True)
        return False

def _bgr_to_rgb(img: np.ndarray) -> np.ndarray:
    """OpenCV channel order (BGR/BGRA/gray) to RGB/RGBA."""
    if img.ndim == 2:
        return np.repeat(img[..., np.newaxis], 3, axis=2)
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)

def _rgb_to_bgr(img: np.ndarray) -> np.ndarray:
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_RGBA2BGRA)
    return cv2.cvtColor(img, cv2.COLOR_RGB2BGR)

def decode_hdr10(pixels: np.ndarray) -> PixelBuffer:
    """
    Decode integer PQ-encoded BT.2020 RGB(A) pixels into linear scRGB.

    Args:
        pixels: uint8 or uint16 array of shape (H, W, 3|4), RGB order.
    """
    if not np.issubdtype(pixels.dtype, np.integer):
        raise UnsupportedFormatError(f"HDR10 pixels must be integer, got {pixels.dtype}")
    scale = float(np.iinfo(pixels.dtype).max)
    encoded = pixels[..., :3].astype(np.float64) / scale
    rgb = rec2100_to_scrgb(pq_to_linear(encoded))
    alpha = pixels[..., 3] if pixels.shape[2] == 4 else None
    return PixelBuffer(rgb=rgb, alpha=alpha)

def _read_float_image(image_path: Path) -> np.ndarray:
    img = None
    try:
        img = cv2.imread(str(image_path), cv2.IMREAD_UNCHANGED)
    except cv2.error as cv_err:
        logger.warning(f"OpenCV could not read {image_path.name} ({cv_err}). Trying imageio...")

    if img is not None:
        return _bgr_to_rgb(img)

    try:
        return np.asarray(imageio.imread(str(image_path)))
    except (OSError, ValueError, RuntimeError) as e:
        raise UnsupportedFormatError(f"Failed to decode float image {image_path}: {e}") from e

def load_hdr_image(path: Union[str, Path]) -> PixelBuffer:
    """
    Load an HDR capture as a linear scRGB PixelBuffer.

    Args:
        path: Path to the input file.

    Returns:
        PixelBuffer in scRGB (1.0 = 80 nits), alpha split off if present.

    Raises:
        FileNotFoundError: If the path does not exist or is not a file.
        UnsupportedFormatError: If the extension or pixel format is not supported.
    """
    image_path = Path(path)
    if not image_path.is_file():
        raise FileNotFoundError(f"Image file not found or path is not a file: {image_path}")

    ext = image_path.suffix.lower()
    if ext in JXR_IMAGE_EXTENSIONS:
        try:
            pixels = np.asarray(imageio.imread(str(image_path), format='JPEG-XR-FI'))
        except (OSError, ValueError, RuntimeError) as e:
            raise UnsupportedFormatError(f"Failed to decode JPEG XR {image_path}: {e}") from e
        if not np.issubdtype(pixels.dtype, np.floating):
            raise UnsupportedFormatError(f"JPEG XR input must be 128bpp RGBA float, got {pixels.dtype}")
        buffer = PixelBuffer.from_rgba(pixels)

    elif ext in HDR10_IMAGE_EXTENSIONS:
        img = cv2.imread(str(image_path), cv2.IMREAD_UNCHANGED)
        if img is None:
            raise UnsupportedFormatError(f"Failed to load image (OpenCV returned None): {image_path}")
        if img.ndim != 3 or img.shape[2] not in (3, 4):
            raise UnsupportedFormatError(f"HDR10 PNG input must be true color, got shape {img.shape}")
        buffer = decode_hdr10(_bgr_to_rgb(img))

    elif ext in FLOAT_IMAGE_EXTENSIONS:
        pixels = _read_float_image(image_path)
        if not np.issubdtype(pixels.dtype, np.floating):
            raise UnsupportedFormatError(f"Expected linear float pixels in {image_path.name}, got {pixels.dtype}")
        if pixels.ndim == 2:
            pixels = np.repeat(pixels[..., np.newaxis], 3, axis=2)
        buffer = PixelBuffer.from_rgba(pixels)

    else:
        raise UnsupportedFormatError(f"Unsupported input file type '{ext}': {image_path}")

    logger.debug(f"Image loaded successfully: {image_path} ({buffer.width}x{buffer.height}, "
                 f"alpha={'yes' if buffer.alpha is not None else 'no'})")
    return buffer

def save_image(path: Union[str, Path], image: np.ndarray, quality: Optional[int] = 95) -> bool:
    """
    Save an image to the specified path using OpenCV.
    Creates the output directory if it doesn't exist.

    Args:
        path: Output path for the image file.
        image: Image data as a NumPy array in OpenCV (BGR/BGRA) channel order.
        quality: JPEG quality setting (0-100), applicable only for .jpg/.jpeg.

    Returns:
        True if saving was successful, False otherwise.
    """
    output_path = Path(path)
    if not ensure_dir(output_path.parent):
        logger.error(f"Cannot save image, failed to ensure output directory exists: {output_path.parent}")
        return False

    params = []
    ext = output_path.suffix.lower()
    if ext in ['.jpg', '.jpeg']:
        params = [cv2.IMWRITE_JPEG_QUALITY, quality]
        logger.debug(f"Saving JPEG with quality={quality}")
    elif ext == '.png':
        params = [cv2.IMWRITE_PNG_COMPRESSION, 6]

    try:
        success = cv2.imwrite(str(output_path), image, params)
    except cv2.error as e:
        logger.error(f"Error saving image {output_path}: {e}")
        return False

    if success:
        logger.debug(f"Image saved successfully: {output_path}")
    else:
        logger.error(f"Failed to save image (OpenCV returned False): {output_path}")
    return bool(success)

def save_sdr_image(path: Union[str, Path], buffer: SdrBuffer, quality: Optional[int] = 95) -> bool:
    """Encode an 8-bit sRGB buffer to disk; alpha is kept for formats that support it."""
    pixels = buffer.pixels
    if pixels.shape[2] == 4 and Path(path).suffix.lower() in ('.jpg', '.jpeg'):
        logger.debug("Dropping alpha channel for JPEG output")
        pixels = pixels[..., :3]
    return save_image(path, _rgb_to_bgr(np.ascontiguousarray(pixels)), quality)

def list_image_files(directory: Union[str, Path], extensions: Optional[set] = None) -> List[Path]:
    """
    List all convertible image files in a given directory (non-recursive).

    Args:
        directory: Path to the directory to scan.
        extensions: Lower-case extensions to accept (defaults to all supported inputs).

    Returns:
        Sorted list of Path objects for found image files.
    """
    dir_path = Path(directory)
    if not dir_path.is_dir():
        logger.warning(f"Directory not found or is not a directory: {dir_path}")
        return []

    accepted = {e.lower() for e in extensions} if extensions else SUPPORTED_INPUT_EXTENSIONS
    image_files = sorted(
        item for item in dir_path.iterdir()
        if item.is_file() and item.suffix.lower() in accepted
    )

    logger.debug(f"Found {len(image_files)} supported image file(s) in {dir_path}")
    return image_files

def output_path_for(input_path: Union[str, Path], suffix: str = "-sdr.png", output_dir: Optional[Path] = None) -> Path:
    """Derive '<stem><suffix>' next to the input, or inside output_dir."""
    input_path = Path(input_path)
    parent = Path(output_dir) if output_dir is not None else input_path.parent
    return parent / f"{input_path.stem}{suffix}"
