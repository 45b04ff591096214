"""
End-to-end shattered glass pipeline.

sites → Voronoi cells → repair → lifted mesh → collider → refracted image,
or, in nearest-neighbour mode, sites → jittered normals → refracted image.
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import structlog

from .core.collider import FacetCollider
from .core.refraction import DEFAULT_CHUNK_ROWS, render, render_nearest
from .core.repair import DEFAULT_REPAIR_EPSILON, repair
from .core.surface import FacetMesh, NoiseModel, jitter_normals, lift_to_mesh
from .core.voronoi import STRATEGIES, VoronoiDiagram, compute_cells, random_sites
from .utils.image_io import as_rgba, load_image, save_image
from .utils.random import get_rng

logger = structlog.get_logger()


@dataclass
class ShatterConfig:
    """Parameters for one shattered glass render."""

    points: int = 500
    noise: float = 0.5
    noise_model: NoiseModel = NoiseModel.SENSITIVITY
    refraction: float = 0.7
    image_dist: float = 100.0
    repair_epsilon: float = DEFAULT_REPAIR_EPSILON
    strategy: str = "incremental"
    use_nn: bool = False
    chunk_rows: int = DEFAULT_CHUNK_ROWS

    def __post_init__(self):
        self.noise_model = NoiseModel(self.noise_model)
        if self.points < 0:
            raise ValueError(f"points must be non-negative, got {self.points}")
        if self.noise < 0:
            raise ValueError(f"noise must be non-negative, got {self.noise}")
        if not self.refraction > 0:
            raise ValueError(f"refraction must be positive, got {self.refraction}")
        if self.repair_epsilon < 0:
            raise ValueError(f"repair_epsilon must be non-negative, got {self.repair_epsilon}")
        if self.strategy not in STRATEGIES:
            raise ValueError(f"unknown strategy {self.strategy!r}, expected one of {STRATEGIES}")
        if self.chunk_rows < 1:
            raise ValueError(f"chunk_rows must be at least 1, got {self.chunk_rows}")


@dataclass
class ShatterResult:
    """Output image plus the intermediate geometry that produced it."""
    image: np.ndarray
    sites: np.ndarray
    diagram: Optional[VoronoiDiagram] = None
    mesh: Optional[FacetMesh] = None
    collider: Optional[FacetCollider] = None


def shatter_image(image: np.ndarray, config: ShatterConfig,
                  rng: Optional[np.random.Generator] = None,
                  sites: Optional[np.ndarray] = None) -> ShatterResult:
    """
    Render ``image`` as seen through shattered glass.

    Args:
        image: Source pixels indexed ``[y, x]``
        config: Render parameters
        rng: Generator for sites and noise (package generator by default)
        sites: Explicit ``(n, 2)`` sites; ``config.points`` random sites
            are scattered when omitted

    Returns:
        ShatterResult with an ``(H, W, 4)`` RGBA image
    """
    rng = rng if rng is not None else get_rng()
    source = as_rgba(image)
    height, width = source.shape[:2]
    bound_min = (0.0, 0.0)
    bound_max = (float(width), float(height))

    if sites is None:
        sites = random_sites(config.points, bound_min, bound_max, rng)
    sites = np.asarray(sites, dtype=float).reshape(-1, 2)

    logger.info("Shattering image", width=width, height=height, sites=len(sites),
                noise=config.noise, noise_model=config.noise_model.value,
                refraction=config.refraction, use_nn=config.use_nn)
    started = time.perf_counter()

    if config.use_nn:
        logger.info("Generating normals...")
        normals = jitter_normals(len(sites), config.noise, rng)
        output = render_nearest(sites, normals, source, config.refraction,
                                config.image_dist, chunk_rows=config.chunk_rows)
        result = ShatterResult(image=output, sites=sites)
    else:
        diagram = compute_cells(bound_min, bound_max, sites, strategy=config.strategy)
        repair(diagram, config.repair_epsilon)
        mesh = lift_to_mesh(diagram, config.noise, config.noise_model, rng)
        collider = FacetCollider(mesh)
        output = render(collider, source, config.refraction, config.image_dist,
                        chunk_rows=config.chunk_rows)
        result = ShatterResult(image=output, sites=sites, diagram=diagram,
                               mesh=mesh, collider=collider)

    logger.info("Image shattered", seconds=round(time.perf_counter() - started, 3))
    return result


def shatter_file(in_path: Union[str, Path], out_path: Union[str, Path],
                 config: ShatterConfig,
                 rng: Optional[np.random.Generator] = None) -> ShatterResult:
    """
    Read ``in_path``, shatter it and write the result to ``out_path``.

    Raises:
        ImageDecodeError: If the input cannot be read
        ImageWriteError: If the output cannot be written
        TotalInternalReflectionError: If the refraction settings are invalid
            for the generated surface
    """
    image = load_image(in_path)
    result = shatter_image(image, config, rng=rng)
    save_image(result.image, out_path)
    return result
