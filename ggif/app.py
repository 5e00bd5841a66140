"""
Main application controller for ggif.

Ties together configuration, logging, the conversion pipeline, uploads
and the folder watcher.  Runs either one conversion and returns, or
watches the source folder in the foreground until SIGINT/SIGTERM.
"""

import logging
import logging.handlers
import signal
import sys
from pathlib import Path
from typing import Any, Callable

from watchdog.observers import Observer

from ggif import __app_name__, __version__
from ggif.config import Config
from ggif.errors import NoInputError
from ggif.finder import find_newest
from ggif.pipeline import ConversionPipeline
from ggif.platform_utils import get_log_path
from ggif.runner import CommandRunner
from ggif.uploader import UploadResult
from ggif.watcher import FolderWatcher

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: Config, log_path: Path | None = None) -> None:
    """Configure rotating file log and stderr handler on the root logger."""
    level = config.level
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT)

    # Stderr handler; stdout is reserved for the URLs
    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)

    if not config.log_file:
        return

    # Rotating file handler
    try:
        fh = logging.handlers.RotatingFileHandler(
            str(log_path or get_log_path()),
            maxBytes=config.max_log_size_mb * 1024 * 1024,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
    except OSError as exc:
        logger.warning("Could not open log file: %s", exc)
        return
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root_logger.addHandler(fh)


class App:
    """
    Central orchestrator.

    Builds the runner, pipeline and (in watch mode) the watcher from a
    resolved :class:`Config`.
    """

    def __init__(
        self,
        config: Config,
        log: logging.Logger | None = None,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self.config = config
        self._log = log or logger
        self._observer_factory = observer_factory
        self.runner = CommandRunner(timeout=config.command_timeout, log=self._log)
        self.pipeline = ConversionPipeline(config, self.runner, log=self._log)
        self.watcher: FolderWatcher | None = None

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def run(self, video: str | None = None) -> list[UploadResult]:
        """Process *video* once, or watch the source folder in watch mode."""
        self._log.info("%s %s starting.", __app_name__, __version__)
        self._log.debug("Configuration: %s", self.config.as_dict())
        if self.config.watch:
            self.watch()
            return []
        return self.convert_once(video)

    def convert_once(self, video: str | None = None) -> list[UploadResult]:
        """Process the given video, or the newest one in the source folder."""
        if video:
            source = Path(video)
        else:
            source = find_newest(self.config.source_dir, log=self._log)
        if source is None:
            raise NoInputError(
                f"No file specified and no video found in {self.config.source_dir}"
            )
        return self.pipeline.process(source)

    def watch(self) -> None:
        """Watch the source folder in the foreground until SIGINT/SIGTERM."""
        self.watcher = FolderWatcher(
            source_folder=self.config.source_dir,
            on_file_created=self.pipeline.process,
            stable_seconds=self.config.stable_seconds,
            ignore=self.pipeline.is_own_output,
            log=self._log,
            observer_factory=self._observer_factory,
        )

        def _handler(sig, frame):
            self._log.info("Received signal %d; shutting down…", sig)
            self.shutdown()

        previous = {
            sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)
        }
        try:
            self.watcher.run()
        finally:
            for sig, old in previous.items():
                signal.signal(sig, old)

    def shutdown(self) -> None:
        """Stop watching and kill any external command still running."""
        if self.watcher:
            self.watcher.stop()
        self.runner.cancel()
