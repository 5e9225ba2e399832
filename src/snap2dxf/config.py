"""
Service settings, read from SNAP2DXF_* environment variables or a .env file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ConversionSettings, DimensionAxis


class ServiceSettings(BaseSettings):
    """Application configuration"""

    model_config = SettingsConfigDict(env_prefix="SNAP2DXF_", env_file=".env", extra="ignore")

    # API Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Uploads
    max_file_size: int = 10 * 1024 * 1024  # bytes
    max_image_dimension: int = Field(default=2000, gt=0)  # pixels

    # Conversion defaults
    default_threshold: int = Field(default=128, ge=0, le=255)
    default_simplify: float = Field(default=0.1, ge=0.0, le=1.0)
    default_width: float = Field(default=2.25, gt=0)  # inches
    default_height: float = Field(default=0.75, gt=0)  # inches
    default_dimension_axis: DimensionAxis = DimensionAxis.WIDTH

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    def conversion_settings(
        self,
        threshold: Optional[int] = None,
        simplify: Optional[float] = None,
        width: Optional[float] = None,
        height: Optional[float] = None,
        dimension_axis: Optional[str] = None,
    ) -> ConversionSettings:
        """
        Build ConversionSettings, falling back to the configured defaults.

        The controlled axis decides whether width or height becomes the target
        dimension. Raises ValueError for out-of-range values.
        """
        axis = DimensionAxis(dimension_axis) if dimension_axis else self.default_dimension_axis
        if axis == DimensionAxis.WIDTH:
            target = width if width is not None else self.default_width
        else:
            target = height if height is not None else self.default_height

        return ConversionSettings(
            threshold=self.default_threshold if threshold is None else threshold,
            simplify=self.default_simplify if simplify is None else simplify,
            target_dimension=target,
            dimension_axis=axis,
        )


@lru_cache
def get_settings() -> ServiceSettings:
    return ServiceSettings()
