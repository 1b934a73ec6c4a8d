"""
Logging configuration for the Voice Control Assistant.

This module sets up the root logger once per process: a console handler
for the terminal and a rotating file handler per run under ``logs/``.
"""

import logging
import logging.handlers
import os
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

from voice_control.config import settings


class LoggingManager:
    """
    Manages logging configuration for the application.

    Handlers are attached to the root logger, so module loggers obtained
    through ``get_logger`` inherit them. Reconfiguring replaces the
    existing handlers instead of stacking new ones.
    """

    _configured_loggers: Dict[str, bool] = {}

    _run_id: Optional[str] = None

    @classmethod
    def get_run_id(cls) -> str:
        """
        Get the identifier of this process run, creating one if needed.

        Returns:
            str: Timestamp-prefixed run identifier
        """
        if cls._run_id is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            cls._run_id = f"{timestamp}_{uuid.uuid4().hex[:8]}"

        return cls._run_id

    @classmethod
    def setup_logging(
        cls,
        level: Optional[str] = None,
        run_id: Optional[str] = None
    ) -> None:
        """
        Configure the root logger and set up handlers.

        Args:
            level: Optional override for the logging level
            run_id: Optional run identifier used in the log file name
        """
        if run_id:
            cls._run_id = run_id

        log_level = level or settings.logging.level
        numeric_level = getattr(logging, log_level.upper(), logging.INFO)

        root_logger = logging.getLogger()
        root_logger.setLevel(numeric_level)

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

        if settings.logging.console_enabled:
            cls._add_console_handler(root_logger, numeric_level)

        if settings.logging.file_enabled:
            cls._add_file_handler(root_logger, numeric_level)

        # aiortc and aioice are chatty at DEBUG
        for noisy in ("aioice", "aiortc"):
            logging.getLogger(noisy).setLevel(max(numeric_level, logging.INFO))

        cls._configured_loggers["root"] = True

        logging.debug(f"Logging configured: level={log_level}, run_id={cls.get_run_id()}")

    @classmethod
    def get_logger(cls, name: str, level: Optional[str] = None) -> logging.Logger:
        """
        Get a logger with the specified name.

        Args:
            name: The logger name
            level: Optional specific level for this logger

        Returns:
            logging.Logger: The configured logger
        """
        logger = logging.getLogger(name)

        if level:
            numeric_level = getattr(logging, level.upper(), None)
            if numeric_level:
                logger.setLevel(numeric_level)

        if not cls._configured_loggers:
            cls.setup_logging()

        return logger

    @classmethod
    def _add_console_handler(cls, logger: logging.Logger, level: int) -> None:
        # stderr keeps log lines out of the rendered collection on stdout
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(level)
        console.setFormatter(logging.Formatter(settings.logging.format))
        logger.addHandler(console)

    @classmethod
    def _add_file_handler(cls, logger: logging.Logger, level: int) -> None:
        os.makedirs(settings.logs_dir, exist_ok=True)
        log_file = settings.get_session_log_path(cls.get_run_id())
        cls._create_file_handler(logger, log_file, level)

    @staticmethod
    def _create_file_handler(
        logger: logging.Logger,
        log_file: Union[str, Path],
        level: int
    ) -> None:
        """
        Create and add a rotating file handler to the logger.

        Args:
            logger: The logger to add the handler to
            log_file: The path to the log file
            level: The logging level for the handler
        """
        os.makedirs(os.path.dirname(log_file), exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(settings.logging.detailed_format))
        logger.addHandler(file_handler)


# Initialize logging when module is imported
LoggingManager.setup_logging()


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a properly configured logger with the specified name.

    Args:
        name: The logger name (usually __name__)
        level: Optional specific level for this logger

    Returns:
        logging.Logger: The configured logger
    """
    return LoggingManager.get_logger(name, level)
