"""Load lineage configuration from a TOML or JSON file."""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Union

from lineage.config.schema import LineageConfig

logger = logging.getLogger("lineage.config.loader")

ConfigSource = Union[str, Path, Dict[str, Any], None]


def load_config(source: ConfigSource) -> LineageConfig:
    """Load LineageConfig from a file path, a parsed mapping, or nothing.

    Files ending in ``.json`` are parsed as JSON; anything else as TOML.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the document is not a mapping or fails validation.
        TypeError: If the source type is unsupported.
    """
    if source is None:
        logger.debug("No config source provided; using default LineageConfig")
        return LineageConfig.default()

    if isinstance(source, dict):
        return LineageConfig.from_dict(source)

    if not isinstance(source, (str, Path)):
        raise TypeError(f"Unsupported config source type: {type(source)!r}")

    path = Path(source)
    text = path.read_text(encoding="utf-8")
    logger.info("Loading configuration from file: %s", path)
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = tomllib.loads(text)

    if not isinstance(data, dict):
        raise ValueError("Top-level configuration must be a mapping")
    return LineageConfig.from_dict(data)


__all__ = ["ConfigSource", "load_config"]
