"""Command-line entry point."""

import argparse
from typing import List, Optional

import structlog

from .config import LOG_LEVELS, Settings
from .core.surface import NoiseModel
from .core.voronoi import STRATEGIES
from .exceptions import ShatterGlassError
from .log_config import configure_logging
from .pipeline import ShatterConfig, shatter_file
from .utils.random import set_random_seed

logger = structlog.get_logger()


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    """Flags default to the environment-driven settings."""
    parser = argparse.ArgumentParser(
        prog="shatter-glass",
        description="Render an image as seen through a pane of shattered glass",
    )
    parser.add_argument("--points", type=int, default=settings.points,
                        help="points in Voronoi diagram")
    parser.add_argument("--noise", type=float, default=settings.noise,
                        help="scale of Z-axis noise")
    parser.add_argument("--noise-model", choices=[m.value for m in NoiseModel],
                        default=settings.noise_model.value,
                        help="how facet heights are perturbed")
    parser.add_argument("--refraction", type=float, default=settings.refraction,
                        help="index of refraction")
    parser.add_argument("--image-dist", type=float, default=settings.image_dist,
                        help="effective distance of photo from screen")
    parser.add_argument("--repair-epsilon", type=float, default=settings.repair_epsilon,
                        help="distance under which cell vertices are merged")
    parser.add_argument("--strategy", choices=list(STRATEGIES),
                        default=settings.strategy, help="Voronoi construction strategy")
    parser.add_argument("--chunk-rows", type=int, default=settings.chunk_rows,
                        help="pixel rows cast per batch")
    parser.add_argument("--seed", type=int, default=settings.seed, help="random seed")
    parser.add_argument("--use-nn", action="store_true", default=settings.use_nn,
                        help="use nearest neighbors instead of a mesh")
    parser.add_argument("--in-path", required=True, help="input image")
    parser.add_argument("--out-path", default="output.png", help="output image")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS,
                        default=settings.log_level, help="logging level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    settings = Settings()
    parser = build_parser(settings)
    args = parser.parse_args(argv)

    configure_logging(args.log_level, settings.log_format)
    set_random_seed(args.seed)

    try:
        config = ShatterConfig(
            points=args.points,
            noise=args.noise,
            noise_model=args.noise_model,
            refraction=args.refraction,
            image_dist=args.image_dist,
            repair_epsilon=args.repair_epsilon,
            strategy=args.strategy,
            use_nn=args.use_nn,
            chunk_rows=args.chunk_rows,
        )
    except ValueError as exc:
        parser.error(str(exc))

    try:
        shatter_file(args.in_path, args.out_path, config)
    except ShatterGlassError as exc:
        logger.error("Shattering failed", error=str(exc), error_type=type(exc).__name__)
        return 1

    logger.info("Output written", path=args.out_path)
    return 0
