"""
Shared utilities: seeded randomness and image IO.
"""

from .random import set_random_seed, get_rng
from .image_io import load_image, save_image, as_rgba

__all__ = ['set_random_seed', 'get_rng', 'load_image', 'save_image', 'as_rgba']
