"""Centralized logging for assetkiln.

Four verbosity levels:
- QUIET (0): Warnings + errors
- NORMAL (1): Info + warnings + errors
- VERBOSE (2): Per-file progress
- DEBUG (3): Everything, including encoder command lines

Usage:
    from assetkiln.core.logging import get_logger, set_verbosity

    logger = get_logger(__name__)
    set_verbosity(2)  # VERBOSE

    logger.verbose("Processing style styles/main.scss")
    logger.warning("No image encoders found")
"""

from __future__ import annotations

import sys
from enum import IntEnum

from assetkiln.core.errors import ConfigError
from assetkiln.core.log_bus import LogRecord, get_log_bus


class VerbosityLevel(IntEnum):
    """Verbosity levels for assetkiln."""

    QUIET = 0  # Warnings + errors
    NORMAL = 1  # Info + warnings + errors
    VERBOSE = 2  # Per-file progress
    DEBUG = 3  # Everything


LEVEL_NAMES = {
    "quiet": VerbosityLevel.QUIET,
    "normal": VerbosityLevel.NORMAL,
    "verbose": VerbosityLevel.VERBOSE,
    "debug": VerbosityLevel.DEBUG,
}

_VERBOSITY: VerbosityLevel = VerbosityLevel.NORMAL

_USE_COLORS: bool = True


def set_verbosity(level: int | str | VerbosityLevel) -> None:
    """Set global verbosity level.

    Args:
        level: 0-3, a VerbosityLevel, or one of quiet/normal/verbose/debug
    """
    global _VERBOSITY

    if isinstance(level, str):
        try:
            level = LEVEL_NAMES[level.strip().lower()]
        except KeyError:
            allowed = ", ".join(LEVEL_NAMES)
            raise ConfigError(
                f"Invalid logging level {level!r}. Allowed values: {allowed}"
            ) from None

    _VERBOSITY = VerbosityLevel(level)


def get_verbosity() -> VerbosityLevel:
    return _VERBOSITY


def set_colors(enabled: bool) -> None:
    """Enable or disable colored output."""
    global _USE_COLORS
    _USE_COLORS = enabled


class AssetKilnLogger:
    """Logger with verbosity support."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "VERBOSE": "\033[34m",  # Blue
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "RESET": "\033[0m",
    }

    def __init__(self, name: str):
        self.name = name

    def _format_message(self, level: str, message: str, stream) -> str:
        if _USE_COLORS and stream.isatty():
            color = self.COLORS.get(level, "")
            reset = self.COLORS["RESET"]
            return f"{color}[{level.lower()}]{reset} {message}"
        return f"[{level.lower()}] {message}"

    def _log(self, level: VerbosityLevel, level_name: str, message: str) -> None:
        """Publish and print a message if the current verbosity allows it.

        Args:
            level: Minimum verbosity the message needs
            level_name: Level name for display
            message: Message to log
        """
        if level > _VERBOSITY:
            return

        plain = f"[{level_name.lower()}] {message}"
        get_log_bus().publish(LogRecord(level_name=level_name, plain=plain, logger_name=self.name))

        stream = sys.stderr if level_name in ("WARNING", "ERROR") else sys.stdout
        print(self._format_message(level_name, message, stream), file=stream)

    def debug(self, message: str) -> None:
        self._log(VerbosityLevel.DEBUG, "DEBUG", message)

    def verbose(self, message: str) -> None:
        self._log(VerbosityLevel.VERBOSE, "VERBOSE", message)

    def info(self, message: str) -> None:
        self._log(VerbosityLevel.NORMAL, "INFO", message)

    def warning(self, message: str) -> None:
        self._log(VerbosityLevel.QUIET, "WARNING", message)

    def error(self, message: str) -> None:
        """Log error message (always shown)."""
        self._log(VerbosityLevel.QUIET, "ERROR", message)


_LOGGERS: dict[str, AssetKilnLogger] = {}


def get_logger(name: str = __name__) -> AssetKilnLogger:
    """Get logger instance for module.

    Args:
        name: Logger name (usually __name__)
    """
    if name not in _LOGGERS:
        _LOGGERS[name] = AssetKilnLogger(name)

    return _LOGGERS[name]
