"""
Custom exceptions for the shattered glass renderer.

Exception Hierarchy:
    ShatterGlassError (base)
    ├── TotalInternalReflectionError
    └── ImageIOError
        ├── ImageDecodeError
        └── ImageWriteError
"""

from typing import Optional


class ShatterGlassError(Exception):
    """Base exception for all shatter_glass errors."""
    pass


class TotalInternalReflectionError(ShatterGlassError):
    """
    Raised when a refracted ray has no real direction.

    The refractive index and the surface tilt are incompatible for this
    renderer; the render is aborted rather than continued with NaNs.

    Attributes:
        refractive_index: Index used for the failed refraction
        ray_count: Number of rays that could not be refracted
    """

    def __init__(self, refractive_index: float, ray_count: int = 1):
        super().__init__(
            f"total internal reflection for {ray_count} ray(s) "
            f"at refractive index {refractive_index}"
        )
        self.refractive_index = refractive_index
        self.ray_count = ray_count


class ImageIOError(ShatterGlassError):
    """Base exception for image read/write failures."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ImageDecodeError(ImageIOError):
    """Raised when an input image cannot be opened or decoded."""
    pass


class ImageWriteError(ImageIOError):
    """Raised when an output image cannot be encoded or written."""
    pass
