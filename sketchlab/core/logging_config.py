"""Logging for the transform pipeline.

Every sketchlab module logs through a child of the ``sketchlab`` logger and
tags its records with ``extra={"component": ...}``. Pipeline records also
carry identifiers such as the stage name or the short source hash; the
formatter appends those as ``key=value`` pairs so a recompute, a skipped
stage or a superseded decode can be traced back to its stage and image in
``sketchlab.log``.
"""
from __future__ import annotations

import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple


DEFAULT_LOG_FILENAME = "sketchlab.log"
DEFAULT_LOG_DIRNAME = "logs"

_PACKAGE_LOGGER = "sketchlab"

# Record attributes the pipeline, loader and controller attach via ``extra``.
CONTEXT_FIELDS: Tuple[str, ...] = ("stage", "upstream", "version", "source_id", "source_name", "event")


class _ComponentFormatter(logging.Formatter):
    """Fill in ``component`` and append pipeline context fields."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "component"):
            record.component = record.name.rsplit(".", 1)[-1]
        text = super().format(record)
        context = [
            f"{name}={getattr(record, name)}" for name in CONTEXT_FIELDS if hasattr(record, name)
        ]
        if not context:
            return text
        head, sep, tail = text.partition("\n")
        return f"{head} [{' '.join(context)}]{sep}{tail}"


@dataclass
class LoggingOptions:
    """Runtime options for the logging subsystem."""

    log_directory: Optional[os.PathLike] = None
    level: int = logging.INFO
    enable_console: bool = True
    enable_file: bool = True
    developer_diagnostics: bool = False
    max_bytes: int = 2 * 1024 * 1024
    backup_count: int = 3


class LoggingConfigurator:
    """Install rotating file and console handlers on the ``sketchlab`` logger.

    The logger does not propagate, so embedding applications keep their own
    root configuration while pipeline records go to ``sketchlab.log``.
    """

    def __init__(self, options: Optional[LoggingOptions] = None) -> None:
        self.options = options or LoggingOptions()
        self.logger = logging.getLogger(_PACKAGE_LOGGER)

    @property
    def level(self) -> int:
        return logging.DEBUG if self.options.developer_diagnostics else self.options.level

    @property
    def log_path(self) -> Path:
        base_dir = (
            Path(self.options.log_directory)
            if self.options.log_directory is not None
            else Path.home() / DEFAULT_LOG_DIRNAME
        )
        return base_dir / DEFAULT_LOG_FILENAME

    def configure(self) -> None:
        """Replace any previously installed handlers with fresh ones."""

        level = self.level
        self.logger.setLevel(level)
        self.logger.propagate = False
        self.reset()

        if self.options.enable_file:
            log_path = self.log_path
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=self.options.max_bytes,
                backupCount=self.options.backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(self._build_formatter(verbose=False))
            file_handler.setLevel(level)
            self.logger.addHandler(file_handler)

        if self.options.enable_console:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(
                self._build_formatter(verbose=self.options.developer_diagnostics)
            )
            console_handler.setLevel(level)
            self.logger.addHandler(console_handler)

        self.logger.debug("Logging configured", extra={"component": "LoggingConfigurator"})

    def reset(self) -> None:
        """Detach and close every handler owned by the package logger."""

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

    @staticmethod
    def _build_formatter(verbose: bool) -> logging.Formatter:
        if verbose:
            format_string = "%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
        else:
            format_string = "%(asctime)s | %(levelname)s | %(component)s | %(message)s"
        return _ComponentFormatter(format_string)


__all__ = ["CONTEXT_FIELDS", "DEFAULT_LOG_FILENAME", "LoggingConfigurator", "LoggingOptions"]
