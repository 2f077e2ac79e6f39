"""Logger wiring for the CLI, the workers and per-conversion log files."""

import logging
import os
from typing import Iterable, Optional

from statement_ledger.config.settings import LOG_LEVEL, LOG_FORMAT, LOGS_DIR


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def setup_logger(
    name: str,
    log_file: Optional[str] = None,
    level: str = LOG_LEVEL,
    logs_dir: str = LOGS_DIR
) -> logging.Logger:
    """Attach a console handler and a file handler to the ``name`` logger.

    Calling this again for the same name replaces the handlers instead of
    stacking new ones. Unknown level names fall back to INFO.

    Args:
        name: Logger name; children such as ``statement_ledger.parsing``
            propagate into it.
        log_file: File name inside ``logs_dir``. Defaults to ``<name>.log``.
        level: Level name, case-insensitive.
        logs_dir: Directory for the log file; created when missing.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    _reset_handlers(logger)

    formatter = logging.Formatter(LOG_FORMAT)
    os.makedirs(logs_dir, exist_ok=True)
    handlers = [
        logging.StreamHandler(),
        logging.FileHandler(os.path.join(logs_dir, log_file or f"{name}.log")),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the module logger for ``name`` without touching its handlers."""
    return logging.getLogger(name)


class ProcessingLogger:
    """Writes the lifecycle of one conversion task to its own log file.

    Every line carries the task id so a worker log can be grepped per upload.
    """

    def __init__(self, task_id: str, logs_dir: str = LOGS_DIR) -> None:
        self.task_id = task_id
        self.logger = setup_logger(f"conversion.{task_id}", logs_dir=logs_dir)

    def _tagged(self, message: str) -> str:
        return f"[{self.task_id}] {message}"

    def log_start(self, file_path: str) -> None:
        self.logger.info(f"Started conversion {self.task_id} for file: {file_path}")

    def log_progress(self, message: str) -> None:
        self.logger.info(self._tagged(message))

    def log_warnings(self, warnings: Iterable[str]) -> None:
        """Log each conversion warning at WARNING level."""
        for warning in warnings:
            self.logger.warning(self._tagged(warning))

    def log_error(self, error: Exception, context: str = "") -> None:
        """Log ``error`` with its traceback.

        Args:
            error: The exception being reported.
            context: Short description of the step that failed.
        """
        self.logger.error(self._tagged(f"Error in {context}: {str(error)}"), exc_info=True)

    def log_completion(self, output_path: str) -> None:
        self.logger.info(self._tagged(f"Completed successfully. Output: {output_path}"))
