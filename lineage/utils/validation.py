"""Input validation for project names that double as folder names."""

import logging
import re

from lineage.errors import ValidationError

logger = logging.getLogger("lineage.utils.validation")

# Device names Windows refuses as folder names, regardless of extension.
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}

INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def validate_project_name(name: str) -> str:
    """Return the stripped name, or raise if it cannot be a folder name.

    Checks:
    1. Not empty after stripping whitespace.
    2. No path separators, wildcard or control characters.
    3. Not a reserved device name.
    4. Does not start with '.' (hidden state directories).

    Raises:
        ValidationError: Describing the first failed check.
    """
    stripped = (name or "").strip()
    if not stripped:
        raise ValidationError("Name must not be empty")

    if INVALID_CHARS.search(stripped):
        logger.warning("Rejected project name with invalid characters: %r", stripped)
        raise ValidationError(f"Name contains invalid characters: {stripped!r}")

    if stripped.split(".")[0].upper() in RESERVED_NAMES:
        raise ValidationError(f"Name is reserved: {stripped!r}")

    if stripped.startswith("."):
        raise ValidationError(f"Name must not start with '.': {stripped!r}")

    return stripped


__all__ = ["INVALID_CHARS", "RESERVED_NAMES", "validate_project_name"]
