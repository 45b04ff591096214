"""Image decode/encode through Pillow, as RGBA uint8 arrays."""

from pathlib import Path
from typing import Union

import numpy as np
import structlog
from PIL import Image

from ..exceptions import ImageDecodeError, ImageWriteError

logger = structlog.get_logger()

PathLike = Union[str, Path]


def as_rgba(pixels: np.ndarray) -> np.ndarray:
    """
    Normalize a grayscale, RGB or RGBA array to an ``(H, W, 4)`` uint8 array.

    Missing alpha is filled with 255 (opaque).
    """
    pixels = np.asarray(pixels)
    if pixels.ndim == 2:
        pixels = np.stack([pixels] * 3, axis=-1)
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ValueError(f"expected an (H, W), (H, W, 3) or (H, W, 4) array, got {pixels.shape}")

    pixels = pixels.astype(np.uint8, copy=False)
    if pixels.shape[2] == 3:
        alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
        pixels = np.concatenate([pixels, alpha], axis=2)
    return pixels


def load_image(path: PathLike) -> np.ndarray:
    """
    Decode an image file into an RGBA array indexed ``[y, x]``.

    Raises:
        ImageDecodeError: If the file is missing or not a readable image
    """
    try:
        with Image.open(path) as img:
            pixels = np.array(img.convert("RGBA"))
    except OSError as exc:
        raise ImageDecodeError(f"could not decode image {path}: {exc}", path=str(path)) from exc

    logger.info("Image loaded", path=str(path), width=pixels.shape[1], height=pixels.shape[0])
    return pixels


def save_image(pixels: np.ndarray, path: PathLike) -> None:
    """
    Encode an RGBA array to ``path``; the format follows the file extension.

    Raises:
        ImageWriteError: If encoding or writing fails
    """
    try:
        Image.fromarray(as_rgba(pixels)).save(path)
    except (OSError, ValueError) as exc:
        raise ImageWriteError(f"could not write image {path}: {exc}", path=str(path)) from exc

    logger.info("Image saved", path=str(path))
