"""Configuration schema dataclasses for treewatch.

All fields are optional to support partial configs that merge together.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

_log = logging.getLogger("treewatch.config")


@dataclass
class WatchConfig:
    """Change watcher configuration.

    Example config.yaml:
        watch:
          exclude: "(^|/)(\\.git|node_modules)(/|$)"
          throttle_ms: 250
          poll_interval: 0.5
    """

    exclude: str | None = None  # Regex tested against absolute paths
    throttle_ms: float = 0  # Minimum wait before each re-scan
    poll_interval: float = 0.5  # Seconds between stat polling cycles
    rescan_interval: float | None = None  # Seconds; None derives from throttle/poll
    max_pending: int = 0  # Channel bound, 0 = unbounded

    def compiled_exclude(self) -> re.Pattern[str] | None:
        """Compile the exclude regex, or None if unset or invalid."""
        if not self.exclude:
            return None
        try:
            return re.compile(self.exclude)
        except re.error as e:
            _log.warning("Invalid watch.exclude pattern %r: %s", self.exclude, e)
            return None


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0..4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    watch: WatchConfig = field(default_factory=WatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections are preserved here
    extra: dict[str, Any] = field(default_factory=dict)
