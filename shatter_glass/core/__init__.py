"""
Core shattered-glass geometry and rendering.
"""

from .voronoi import VoronoiCell, VoronoiDiagram, compute_cells, random_sites
from .repair import repair, DEFAULT_REPAIR_EPSILON
from .surface import FacetMesh, NoiseModel, lift_to_mesh, jitter_normals
from .collider import FacetCollider
from .refraction import render, render_nearest, refract, reflect_pad

__all__ = ['VoronoiCell', 'VoronoiDiagram', 'compute_cells', 'random_sites',
           'repair', 'DEFAULT_REPAIR_EPSILON',
           'FacetMesh', 'NoiseModel', 'lift_to_mesh', 'jitter_normals',
           'FacetCollider', 'render', 'render_nearest', 'refract', 'reflect_pad']
