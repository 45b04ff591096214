"""Configuration management."""

from typing import Literal, Optional, get_args

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.surface import NoiseModel

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_LEVELS = list(get_args(LogLevel))


class Settings(BaseSettings):
    """Application settings pulled from ``SHATTER_*`` environment variables."""

    # Geometry
    points: int = Field(default=500, ge=0, description="Points in the Voronoi diagram")
    strategy: Literal["incremental", "exhaustive"] = Field(
        default="incremental", description="Voronoi cell construction strategy"
    )
    repair_epsilon: float = Field(default=1e-8, ge=0, description="Vertex merge distance")

    # Surface
    noise: float = Field(default=0.5, ge=0, description="Scale of Z-axis noise")
    noise_model: NoiseModel = Field(
        default=NoiseModel.SENSITIVITY, description="How cell heights are perturbed"
    )

    # Rendering
    refraction: float = Field(default=0.7, gt=0, description="Index of refraction")
    image_dist: float = Field(default=100.0, description="Effective distance of photo from screen")
    chunk_rows: int = Field(default=64, ge=1, description="Pixel rows cast per batch")
    use_nn: bool = Field(default=False, description="Use nearest sites instead of a mesh")

    # Reproducibility
    seed: Optional[int] = Field(default=None, description="Random seed")

    # Logging Configuration
    log_level: LogLevel = Field(default="INFO", description="Logging level")
    log_format: Literal["console", "json"] = Field(default="console", description="Logging format")

    model_config = SettingsConfigDict(
        env_prefix="SHATTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value
