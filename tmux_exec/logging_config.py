"""Logging setup for tmux-exec entry points.

stdout belongs to captured command output, so diagnostics only ever go to
stderr and, when log_to_file is set, to rotating files:

    {state_dir}/logs/{process}.log           daily, 14 days kept
    {state_dir}/logs/{process}-current.log   5MB x 5, for -vv polling noise

Entry points call setup_process_logging() once; modules just do
    logger = get_logger(__name__)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path

LOG_FORMAT = "[%(asctime)s] [{process}] [%(levelname)s] %(name)s: %(message)s"
DAILY_BACKUPS = 14
SIZE_CAP = 5 * 1024 * 1024
SIZE_BACKUPS = 5


class FlushingStreamHandler(logging.StreamHandler):
    """StreamHandler that flushes after every record, so stderr interleaves
    correctly with output streamed to stdout."""

    def emit(self, record):
        super().emit(record)
        self.flush()


def _formatter(process_name: str, datefmt: str) -> logging.Formatter:
    return logging.Formatter(fmt=LOG_FORMAT.format(process=process_name), datefmt=datefmt)


def _file_handlers(log_dir: Path, process_name: str) -> list[logging.Handler]:
    log_dir.mkdir(parents=True, exist_ok=True)
    daily = TimedRotatingFileHandler(
        log_dir / f"{process_name}.log",
        when="midnight",
        backupCount=DAILY_BACKUPS,
        encoding="utf-8",
    )
    daily.suffix = "%Y-%m-%d"
    capped = RotatingFileHandler(
        log_dir / f"{process_name}-current.log",
        maxBytes=SIZE_CAP,
        backupCount=SIZE_BACKUPS,
        encoding="utf-8",
    )
    return [daily, capped]


def setup_process_logging(
    process_name: str,
    level: int = logging.WARNING,
    console: bool = True,
    file: bool = False,
    state_dir: Path | None = None,
) -> logging.Logger:
    """Configure the root logger for this process, replacing any handlers.

    Raises ValueError when file logging is requested without a state_dir.
    """
    if file and state_dir is None:
        raise ValueError("state_dir is required for file logging")

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handlers: list[logging.Handler] = []
    if console:
        stderr = FlushingStreamHandler(sys.stderr)
        stderr.setFormatter(_formatter(process_name, "%H:%M:%S"))
        handlers.append(stderr)
    if file:
        for handler in _file_handlers(state_dir / "logs", process_name):
            handler.setFormatter(_formatter(process_name, "%Y-%m-%d %H:%M:%S"))
            handlers.append(handler)

    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)
    return root


def verbosity_to_level(verbosity: int) -> int:
    """Map a -v count to a log level: 0 WARNING, 1 INFO, 2+ DEBUG."""
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def get_logger(name: str) -> logging.Logger:
    """Module logger; picks up whatever setup_process_logging() installed."""
    return logging.getLogger(name)
