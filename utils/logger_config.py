"""
Unified logging configuration for the dense stereo pipeline.

This module provides a centralized logging configuration that is inherited
by all other modules in the project, ensuring consistent logging behavior.
"""

import logging
import sys
from typing import Optional, Union
from pathlib import Path


class LoggerConfig:
    """Centralized logger configuration manager."""

    _configured = False
    _root_logger_name = 'dense_stereo'

    @classmethod
    def setup_root_logger(
        cls,
        level: Union[int, str] = logging.INFO,
        format_string: Optional[str] = None,
        log_file: Optional[Path] = None
    ) -> logging.Logger:
        """
        Setup the root logger for the entire application.

        Args:
            level: Logging level, numeric or name (default: INFO)
            format_string: Custom format string (optional)
            log_file: Optional file path for logging to file

        Returns:
            logging.Logger: Configured root logger
        """
        if cls._configured:
            return logging.getLogger(cls._root_logger_name)

        level = cls._resolve_level(level)

        root_logger = logging.getLogger(cls._root_logger_name)
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        if format_string is None:
            format_string = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

        formatter = logging.Formatter(format_string)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if log_file is not None:
            log_file = Path(log_file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        # Prevent propagation to avoid duplicate messages
        root_logger.propagate = False

        cls._configured = True

        root_logger.debug(f"Root logger configured: level={logging.getLevelName(level)}")
        if log_file:
            root_logger.info(f"Logging to file: {log_file}")

        return root_logger

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger that inherits from the root logger configuration.

        Args:
            name: Logger name (typically __name__ from calling module)

        Returns:
            logging.Logger: Configured logger
        """
        if not cls._configured:
            cls.setup_root_logger()

        full_name = f"{cls._root_logger_name}.{name}"
        logger = logging.getLogger(full_name)

        # Child loggers propagate to the configured root, no own handlers
        logger.propagate = True

        return logger

    @classmethod
    def set_level(cls, level: Union[int, str]) -> None:
        """
        Change the logging level for all loggers.

        Args:
            level: New logging level
        """
        level = cls._resolve_level(level)
        root_logger = logging.getLogger(cls._root_logger_name)
        root_logger.setLevel(level)

        for handler in root_logger.handlers:
            handler.setLevel(level)

        root_logger.info(f"Logging level changed to: {logging.getLevelName(level)}")

    @classmethod
    def add_file_handler(cls, log_file: Path) -> None:
        """Attach a file handler to an already configured root logger."""
        root_logger = cls.setup_root_logger()
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(root_logger.level)
        if root_logger.handlers:
            file_handler.setFormatter(root_logger.handlers[0].formatter)
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to file: {log_file}")

    @staticmethod
    def _resolve_level(level: Union[int, str]) -> int:
        if isinstance(level, str):
            resolved = logging.getLevelName(level.upper())
            if not isinstance(resolved, int):
                raise ValueError(f"Unknown logging level: {level}")
            return resolved
        return level


def get_logger(name: str = None) -> logging.Logger:
    """
    Convenience function to get a properly configured logger.

    Args:
        name: Logger name (if None, uses calling module's __name__)

    Returns:
        logging.Logger: Configured logger
    """
    if name is None:
        import inspect
        frame = inspect.currentframe().f_back
        name = frame.f_globals.get('__name__', 'unknown')

    return LoggerConfig.get_logger(name)
