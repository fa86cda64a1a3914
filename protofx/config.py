"""Settings read from ``PROTOFX_*`` environment variables."""

import os
from dataclasses import dataclass

from loguru import logger

from protofx.compiler.preprocessor import DEFAULT_MAX_INCLUDE_DEPTH

TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Runtime settings.

    Attributes:
        max_include_depth: Maximum include nesting of a tech unit
        debug: Whether shaders are transpiled for host emulation by default
        log_level: Level of the stderr log sink
    """

    max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings, keeping the default for unset or invalid variables."""
        settings = cls()
        depth = os.environ.get("PROTOFX_MAX_INCLUDE_DEPTH")
        if depth:
            try:
                settings.max_include_depth = int(depth)
            except ValueError:
                logger.warning(
                    f"Ignoring PROTOFX_MAX_INCLUDE_DEPTH={depth!r}: not an integer"
                )
        debug = os.environ.get("PROTOFX_DEBUG")
        if debug:
            settings.debug = debug.strip().lower() in TRUE_VALUES
        level = os.environ.get("PROTOFX_LOG_LEVEL")
        if level:
            settings.log_level = level.strip().upper()
        return settings
