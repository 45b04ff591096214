"""
Random number generation utilities.

Every stochastic step (site scattering, height noise, normal jitter) draws
from one package-level NumPy generator unless an explicit generator is
passed, so a single seed reproduces a whole run.
"""

from typing import Optional

import numpy as np

# Global generator instance
_rng: Optional[np.random.Generator] = None


def set_random_seed(seed: Optional[int]) -> None:
    """
    Reset the package generator.

    Args:
        seed: Integer seed, or None for fresh OS entropy
    """
    global _rng
    _rng = np.random.default_rng(seed)


def get_rng() -> np.random.Generator:
    """
    Get the current package generator, creating an unseeded one on first use.

    Returns:
        NumPy Generator instance
    """
    global _rng
    if _rng is None:
        _rng = np.random.default_rng()
    return _rng
