# Copyright (c) 2025 Marc Schütze <scharc@gmail.com>
# SPDX-License-Identifier: MIT

"""Logging for guidecheck runs.

Every record goes to a rotating log file at DEBUG, so a preserved failure
can be traced afterwards. The terminal gets the same messages through a
rich console, filtered by the console level:

    GUIDECHECK_DEBUG=1          console shows debug records too
    GUIDECHECK_LOG_LEVEL=LEVEL  console threshold (DEBUG, INFO, WARNING, ERROR)
    GUIDECHECK_LOG_FILE=/path   log file location
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape

import guidecheck
from guidecheck.paths import HostPaths

SUCCESS_LEVEL = 25
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

console = Console()

_configured = False
_debug_mode = False
_console_level = logging.INFO
_log_file: Optional[Path] = None


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("1", "true", "yes")


def is_debug_mode() -> bool:
    return _debug_mode or _env_flag("GUIDECHECK_DEBUG")


def _default_log_file() -> Path:
    override = os.environ.get("GUIDECHECK_LOG_FILE")
    if override:
        return Path(override)
    return HostPaths.log_dir() / "guidecheck.log"


def configure_logging(debug: bool = False, log_file: Optional[Path] = None) -> None:
    """Attach the file handler and set the console level.

    The handler is attached once. A later call can still switch debug mode
    on, since modules configure defaults at import time before the CLI has
    parsed --debug.
    """
    global _configured, _debug_mode, _console_level, _log_file

    _debug_mode = _debug_mode or debug or _env_flag("GUIDECHECK_DEBUG")
    if _debug_mode:
        _console_level = logging.DEBUG
    else:
        level_name = os.environ.get("GUIDECHECK_LOG_LEVEL", "INFO").upper()
        _console_level = logging.getLevelName(level_name)
        if not isinstance(_console_level, int):
            _console_level = logging.INFO

    if _configured:
        return

    root = logging.getLogger("guidecheck")
    root.setLevel(logging.DEBUG)
    root.propagate = False
    root.handlers.clear()

    _log_file = log_file or _default_log_file()
    try:
        _log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            _log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
        )
    except OSError:
        # No writable log location; the console still works
        _log_file = None
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(process)d | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(handler)

    _configured = True


class GuidecheckLogger:
    """Module logger that mirrors records to the terminal."""

    _STYLES = {
        logging.DEBUG: "[dim][DEBUG] {}[/dim]",
        logging.INFO: "[blue]{}[/blue]",
        SUCCESS_LEVEL: "[green]✓ {}[/green]",
        logging.WARNING: "[yellow]⚠ {}[/yellow]",
    }

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)

    def _log(self, level: int, message: str) -> None:
        self.logger.log(level, message)
        if level >= _console_level:
            console.print(self._STYLES[level].format(escape(message)))

    def debug(self, message: str) -> None:
        self._log(logging.DEBUG, message)

    def info(self, message: str) -> None:
        self._log(logging.INFO, message)

    def success(self, message: str) -> None:
        self._log(SUCCESS_LEVEL, message)

    def warning(self, message: str) -> None:
        self._log(logging.WARNING, message)

    def exception(self, message: str) -> None:
        """Record message with the traceback of the exception being handled.

        The caller reports the error; the traceback reaches the console only
        in debug mode.
        """
        self.logger.exception(message)
        if is_debug_mode():
            console.print_exception()


def get_logger(name: str) -> GuidecheckLogger:
    """Logger for a module, under the guidecheck namespace."""
    if not _configured:
        configure_logging()
    if not name.startswith("guidecheck"):
        name = f"guidecheck.{name}"
    return GuidecheckLogger(name)


def log_startup_info() -> None:
    """Record version and environment at the top of each CLI invocation."""
    logger = logging.getLogger("guidecheck.startup")
    logger.debug(
        f"guidecheck {guidecheck.__version__} on Python {sys.version.split()[0]} ({sys.platform})"
    )
    logger.debug(f"argv: {sys.argv[1:]}, cwd: {os.getcwd()}, log file: {_log_file}")
    for var in ("GUIDECHECK_CONFIG", "GUIDECHECK_DEBUG", "GUIDECHECK_LOG_LEVEL", "DOCKER_HOST"):
        value = os.environ.get(var)
        if value:
            logger.debug(f"{var}={value}")
