"""
Shattered glass image distortion.

Scatters Voronoi sites over an image, lifts the cells into a jittered glass
surface and resamples the image through it with refraction.
"""

from .core import (
    VoronoiCell, VoronoiDiagram, compute_cells, random_sites, repair,
    FacetMesh, NoiseModel, lift_to_mesh, FacetCollider, render, render_nearest,
)
from .exceptions import (
    ShatterGlassError, TotalInternalReflectionError, ImageDecodeError, ImageWriteError,
)
from .pipeline import ShatterConfig, ShatterResult, shatter_image, shatter_file

__version__ = "0.1.0"

__all__ = ['VoronoiCell', 'VoronoiDiagram', 'compute_cells', 'random_sites', 'repair',
           'FacetMesh', 'NoiseModel', 'lift_to_mesh', 'FacetCollider', 'render',
           'render_nearest', 'ShatterGlassError', 'TotalInternalReflectionError',
           'ImageDecodeError', 'ImageWriteError', 'ShatterConfig', 'ShatterResult',
           'shatter_image', 'shatter_file']
