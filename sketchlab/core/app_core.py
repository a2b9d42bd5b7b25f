"""Application core bootstrap handling logging, settings, threading and storage."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sketchlab.data.gallery import JsonGalleryStore
from sketchlab.editor.pipeline_controller import PipelineController
from sketchlab.processing.output import Downloader

from .logging_config import LoggingConfigurator, LoggingOptions
from .scheduling import TimerFactory
from .settings_manager import SettingsManager
from .threading import ThreadController


@dataclass
class AppConfiguration:
    """Configuration for the application bootstrap."""

    organization: str = "SketchLab"
    application: str = "sketchlab"
    log_directory: Optional[Path] = None
    developer_diagnostics: bool = False
    enable_console_logging: bool = True
    enable_file_logging: bool = True
    max_log_bytes: int = 2 * 1024 * 1024
    log_backup_count: int = 3
    settings_path: Optional[Path] = None
    gallery_path: Optional[Path] = None
    worker_count: int = 1


class AppCore:
    """Coordinates start-up of the services the editor depends on."""

    def __init__(self, config: Optional[AppConfiguration] = None) -> None:
        self.config = config or AppConfiguration()
        self.logger = logging.getLogger(__name__)
        self.logging_configurator: Optional[LoggingConfigurator] = None
        self.settings: Optional[SettingsManager] = None
        self.thread_controller: Optional[ThreadController] = None
        self.gallery: Optional[JsonGalleryStore] = None
        self.controller: Optional[PipelineController] = None

    def bootstrap(
        self,
        *,
        downloader: Optional[Downloader] = None,
        timer_factory: Optional[TimerFactory] = None,
    ) -> PipelineController:
        """Initialise all core systems and return the pipeline controller."""
        self._init_logging()
        self.logger.info("Bootstrapping application core", extra={"component": "AppCore"})
        self._init_settings()
        self._init_threading()
        self._init_gallery()
        self.controller = PipelineController(
            settings=self.settings,
            thread_controller=self.thread_controller,
            gallery=self.gallery,
            downloader=downloader,
            timer_factory=timer_factory,
        )
        self.logger.debug("Pipeline controller ready", extra={"component": "AppCore"})
        return self.controller

    def shutdown(self) -> None:
        """Shutdown routine for releasing resources gracefully."""
        if self.controller is not None:
            self.controller.shutdown()
        if self.thread_controller is not None:
            self.thread_controller.shutdown()
        self.logger.info("Application core shutdown complete", extra={"component": "AppCore"})

    def _init_logging(self) -> None:
        options = LoggingOptions(
            log_directory=self.config.log_directory,
            enable_console=self.config.enable_console_logging,
            enable_file=self.config.enable_file_logging,
            developer_diagnostics=self.config.developer_diagnostics,
            max_bytes=self.config.max_log_bytes,
            backup_count=self.config.log_backup_count,
        )
        self.logging_configurator = LoggingConfigurator(options)
        self.logging_configurator.configure()
        self.logger.debug("Logging initialised", extra={"component": "AppCore"})

    def _init_settings(self) -> None:
        self.settings = SettingsManager(self.config.settings_path)
        self.logger.debug(
            "Settings manager initialised",
            extra={"component": "AppCore", "path": str(self.config.settings_path or "")},
        )

    def _init_threading(self) -> None:
        self.thread_controller = ThreadController(
            max_workers=self.config.worker_count, name=self.config.application
        )
        self.logger.debug("Thread controller initialised", extra={"component": "AppCore"})

    def _init_gallery(self) -> None:
        assert self.settings is not None
        configured = self.config.gallery_path or self.settings.get("gallery/path") or None
        self.gallery = JsonGalleryStore(configured)
        self.logger.debug(
            "Gallery store initialised",
            extra={"component": "AppCore", "path": str(self.gallery.path)},
        )


__all__ = ["AppConfiguration", "AppCore"]
