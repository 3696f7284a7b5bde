"""Configuration schema and loading for the lineage graph."""

from .loader import load_config
from .schema import (
    CanvasConfig,
    LayoutConfig,
    LineageConfig,
    PersistenceConfig,
    PreviewConfig,
)

__all__ = [
    "CanvasConfig",
    "LayoutConfig",
    "LineageConfig",
    "PersistenceConfig",
    "PreviewConfig",
    "load_config",
]
