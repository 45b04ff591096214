"""
Refractive resampling: cast each pixel through the glass and look up the
source colour it lands on.

Pixel ``(x, y)`` is the plane point ``(x, y)``; arrays are indexed
``[y, x]``. Rays are handled a block of rows at a time; every pixel reads
only the source image and the collider and writes only its own output
pixel.
"""

import numpy as np
import structlog
from scipy.spatial import cKDTree

from .collider import FacetCollider
from ..exceptions import TotalInternalReflectionError
from ..utils.image_io import as_rgba

logger = structlog.get_logger()

DOWN = np.array([0.0, 0.0, -1.0])
DEFAULT_CHUNK_ROWS = 64


def reflect_pad(low: int, high: int, value):
    """
    Fold ``value`` into ``[low, high]`` by mirroring across the bounds.

    Equivalent to sampling an infinitely mirror-tiled image: ``high + 1``
    maps to ``high`` and ``low - 1`` to ``low``. Accepts scalars or arrays.
    """
    size = high - low + 1
    period = 2 * size
    offset = np.mod(np.asarray(value) - low, period)
    offset = np.where(offset >= size, period - 1 - offset, offset)
    return low + offset


def refract_many(directions, normals, index: float) -> np.ndarray:
    """
    Refract rays against surface normals with Snell's law.

    Each normal is oriented along its ray before bending, so the sign of the
    mesh winding does not matter.

    Args:
        directions: ``(n, 3)`` incident directions
        normals: ``(n, 3)`` surface normals
        index: Relative refractive index

    Returns:
        ``(n, 3)`` unit refracted directions

    Raises:
        TotalInternalReflectionError: If any ray has no refracted direction
    """
    d = np.asarray(directions, dtype=float).reshape(-1, 3)
    n = np.asarray(normals, dtype=float).reshape(-1, 3)
    d = d / np.linalg.norm(d, axis=1, keepdims=True)
    n = n / np.linalg.norm(n, axis=1, keepdims=True)

    cos_in = np.sum(d * n, axis=1)
    n = np.where(cos_in[:, None] < 0, -n, n)
    cos_in = np.clip(np.abs(cos_in), 0.0, 1.0)

    theta = np.arccos(cos_in)
    sin_out = np.sin(theta) * index
    invalid = ~(sin_out <= 1.0)
    if np.any(invalid):
        raise TotalInternalReflectionError(index, int(np.count_nonzero(invalid)))
    theta_out = np.arcsin(sin_out)

    tangent = d - cos_in[:, None] * n
    length = np.linalg.norm(tangent, axis=1, keepdims=True)
    tangent = np.divide(tangent, length, out=np.zeros_like(tangent), where=length > 0)

    return n * np.cos(theta_out)[:, None] + tangent * np.sin(theta_out)[:, None]


def refract(direction, normal, index: float) -> np.ndarray:
    """Single-ray form of :func:`refract_many`."""
    return refract_many([direction], [normal], index)[0]


def projection_offsets(refracted: np.ndarray, distance: float) -> np.ndarray:
    """XY displacement once each ray has travelled ``distance`` along its Z."""
    scale = distance / refracted[:, 2]
    return refracted[:, :2] * scale[:, None]


def _validate(index: float, chunk_rows: int) -> None:
    if not index > 0:
        raise ValueError(f"refractive index must be positive, got {index}")
    if chunk_rows < 1:
        raise ValueError(f"chunk_rows must be at least 1, got {chunk_rows}")


def _pixel_rows(width: int, start: int, stop: int):
    gx, gy = np.meshgrid(np.arange(width), np.arange(start, stop))
    return gx.ravel(), gy.ravel()


def _sample(output: np.ndarray, source: np.ndarray, gx: np.ndarray, gy: np.ndarray,
            refracted: np.ndarray, distance: float) -> None:
    height, width = source.shape[:2]
    offsets = projection_offsets(refracted, distance)
    sx = reflect_pad(0, width - 1, np.rint(gx + offsets[:, 0]).astype(np.int64))
    sy = reflect_pad(0, height - 1, np.rint(gy + offsets[:, 1]).astype(np.int64))
    output[gy, gx] = source[sy, sx]


def render(collider: FacetCollider, image: np.ndarray, refractive_index: float,
           projection_distance: float, chunk_rows: int = DEFAULT_CHUNK_ROWS) -> np.ndarray:
    """
    Resample ``image`` through the glass surface held by ``collider``.

    Pixels whose downward ray misses the mesh stay fully transparent.

    Args:
        collider: Collider over the lifted mesh
        image: Source pixels, ``(H, W)``, ``(H, W, 3)`` or ``(H, W, 4)``
        refractive_index: Relative index; values in (0, 1) never totally
            internally reflect for tilts below 90 degrees
        projection_distance: Effective distance of the photo behind the glass
        chunk_rows: Rows of pixels cast per batch

    Returns:
        ``(H, W, 4)`` uint8 RGBA image

    Raises:
        TotalInternalReflectionError: If any pixel's ray cannot refract
    """
    _validate(refractive_index, chunk_rows)
    source = as_rgba(image)
    height, width = source.shape[:2]
    output = np.zeros_like(source)

    logger.info("Casting image", width=width, height=height,
                refractive_index=refractive_index, projection_distance=projection_distance,
                triangles=collider.triangle_count)

    ceiling = collider.ceiling
    covered = 0
    for start in range(0, height, chunk_rows):
        gx, gy = _pixel_rows(width, start, min(start + chunk_rows, height))
        origins = np.column_stack([gx, gy, np.full(len(gx), ceiling)]).astype(float)
        directions = np.tile(DOWN, (len(gx), 1))

        _, normals, hit = collider.first_hits(origins, directions)
        if not hit.any():
            continue

        refracted = refract_many(directions[hit], normals[hit], refractive_index)
        _sample(output, source, gx[hit], gy[hit], refracted, projection_distance)
        covered += int(np.count_nonzero(hit))

    logger.info("Image cast", covered_pixels=covered, total_pixels=width * height)
    return output


def render_nearest(sites, normals, image: np.ndarray, refractive_index: float,
                   projection_distance: float,
                   chunk_rows: int = DEFAULT_CHUNK_ROWS) -> np.ndarray:
    """
    Resample ``image`` using the normal of each pixel's nearest site.

    A mesh-free variant of :func:`render`: every Voronoi cell acts as a flat
    facet with its own normal.

    Args:
        sites: ``(n, 2)`` site coordinates
        normals: ``(n, 3)`` normal per site
        image: Source pixels
        refractive_index: Relative index
        projection_distance: Effective distance of the photo behind the glass
        chunk_rows: Rows of pixels processed per batch

    Returns:
        ``(H, W, 4)`` uint8 RGBA image; fully transparent if there are no sites
    """
    _validate(refractive_index, chunk_rows)
    source = as_rgba(image)
    height, width = source.shape[:2]
    output = np.zeros_like(source)

    sites = np.asarray(sites, dtype=float).reshape(-1, 2)
    normals = np.asarray(normals, dtype=float).reshape(-1, 3)
    if len(sites) != len(normals):
        raise ValueError(f"got {len(sites)} sites but {len(normals)} normals")

    logger.info("Casting image from nearest sites", width=width, height=height,
                sites=len(sites), refractive_index=refractive_index)
    if len(sites) == 0:
        return output

    tree = cKDTree(sites)
    for start in range(0, height, chunk_rows):
        gx, gy = _pixel_rows(width, start, min(start + chunk_rows, height))
        _, nearest = tree.query(np.column_stack([gx, gy]).astype(float))
        directions = np.tile(DOWN, (len(gx), 1))
        refracted = refract_many(directions, normals[nearest], refractive_index)
        _sample(output, source, gx, gy, refracted, projection_distance)

    logger.info("Image cast", covered_pixels=width * height, total_pixels=width * height)
    return output
