#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Logging Configuration Module

Named loggers for the pipeline with console output, optional rotating file
output and optional JSON formatting.
"""

import os
import sys
import json
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any, Union

# Default log levels
DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Environment variable names
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_FILE_PATH = "LOG_FILE_PATH"
ENV_LOG_JSON = "LOG_JSON"

# Log level mapping
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Global logger registry to avoid duplicate handlers
_loggers: Dict[str, logging.Logger] = {}


def _resolve_level(level: Optional[Union[int, str]], default: int) -> int:
    if level is None:
        return default
    if isinstance(level, str):
        return LOG_LEVELS.get(level.upper(), default)
    return level


class LoggerConfig:
    """Configuration class for logger settings."""

    def __init__(
        self,
        name: str = "lead_discovery",
        console_level: Optional[Union[int, str]] = None,
        file_level: Optional[Union[int, str]] = None,
        log_file: Optional[str] = None,
        max_bytes: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        format_string: Optional[str] = None,
        json_logs: Optional[bool] = None,
        propagate: bool = False,
    ):
        """
        Initialize logger configuration.

        Args:
            name: Logger name
            console_level: Console logging level (int or string)
            file_level: File logging level (int or string)
            log_file: Path to log file (falls back to LOG_FILE_PATH, None disables file logging)
            max_bytes: Maximum file size before rotation
            backup_count: Number of backup files to keep
            format_string: Custom log format string
            json_logs: Whether to format logs as JSON (falls back to LOG_JSON)
            propagate: Whether to propagate to parent loggers
        """
        self.name = name

        env_level = _resolve_level(os.environ.get(ENV_LOG_LEVEL), DEFAULT_CONSOLE_LEVEL)
        self.console_level = _resolve_level(console_level, env_level)
        self.file_level = _resolve_level(
            file_level, env_level if os.environ.get(ENV_LOG_LEVEL) else DEFAULT_FILE_LEVEL
        )

        self.log_file = log_file or os.environ.get(ENV_LOG_FILE_PATH) or None
        self.max_bytes = max_bytes
        self.backup_count = backup_count

        if format_string:
            self.format_string = format_string
        else:
            self.format_string = "%(asctime)s | %(levelname)s | %(name)s | %(filename)s:%(lineno)d | %(message)s"

        if json_logs is None:
            json_logs = os.environ.get(ENV_LOG_JSON, "false").lower() == "true"
        self.json_logs = json_logs
        self.propagate = propagate


class JsonFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per log record.

    Extra attributes passed through ``extra={"job_id": ...}`` are kept when
    they appear in the field map.
    """

    def __init__(
        self,
        fmt_dict: Optional[Dict[str, Any]] = None,
        time_format: str = "%Y-%m-%d %H:%M:%S",
    ):
        super().__init__()
        self.fmt_dict = fmt_dict or {
            "timestamp": "asctime",
            "level": "levelname",
            "name": "name",
            "module": "module",
            "function": "funcName",
            "line": "lineno",
            "message": "message",
            "job_id": "job_id",
            "source": "source",
        }
        self.time_format = time_format

    def format(self, record: logging.LogRecord) -> str:
        record.asctime = self.formatTime(record, self.time_format)
        record.message = record.getMessage()

        log_record = {}
        for key, value in self.fmt_dict.items():
            if hasattr(record, value):
                log_record[key] = getattr(record, value)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def configure_logger(config: Optional[LoggerConfig] = None) -> logging.Logger:
    """
    Configure a logger with the specified settings.

    Args:
        config: Logger configuration (or None for default)

    Returns:
        Configured logger
    """
    if config is None:
        config = LoggerConfig()

    if config.name in _loggers:
        return _loggers[config.name]

    logger = logging.getLogger(config.name)
    logger.propagate = config.propagate

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    if config.json_logs:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(config.format_string)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(config.console_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    levels = [config.console_level]

    if config.log_file:
        os.makedirs(os.path.dirname(os.path.abspath(config.log_file)), exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8"
        )
        file_handler.setLevel(config.file_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        levels.append(config.file_level)

    logger.setLevel(min(levels))

    _loggers[config.name] = logger
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger by name, creating it if it doesn't exist.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    if name in _loggers:
        return _loggers[name]

    return configure_logger(LoggerConfig(name=name))


def configure_logging(
    level: Optional[Union[int, str]] = None,
    log_file: Optional[str] = None,
    json_logs: Optional[bool] = None
) -> logging.Logger:
    """
    Reconfigure every registered pipeline logger.

    Called once by the entry point after the application config is loaded so
    that loggers created at import time pick up the final level and file.
    """
    names = set(_loggers) | {"lead_discovery"}
    _loggers.clear()
    for name in names:
        configure_logger(LoggerConfig(
            name=name,
            console_level=level,
            file_level=level,
            log_file=log_file,
            json_logs=json_logs,
        ))

    return _loggers["lead_discovery"]


# Specialized logging functions
def log_scraping_event(source: str, event_type: str, message: str, level: int = logging.INFO) -> None:
    """
    Log a source query event.

    Args:
        source: Source being queried
        event_type: Type of event (start, error, complete, etc.)
        message: Event description
        level: Logging level
    """
    logger = get_logger("lead_discovery.scraping")
    logger.log(level, f"[{source}] [{event_type}] {message}", extra={"source": source})


def log_pipeline_event(job_id: str, stage: str, message: str, level: int = logging.INFO) -> None:
    """Log a job stage event."""
    logger = get_logger("lead_discovery.pipeline")
    logger.log(level, f"[{job_id}] [{stage}] {message}", extra={"job_id": job_id})


def mask_value(value: str) -> str:
    """Mask all but the first and last character of a secret."""
    if len(value) > 6:
        return value[0] + "*" * (len(value) - 2) + value[-1]
    return "*" * len(value)


def log_sensitive(logger: logging.Logger, level: int, message: str, **sensitive_data) -> None:
    """
    Log a message while masking sensitive data.

    Args:
        logger: Logger to use
        level: Logging level
        message: Message to log
        sensitive_data: Keys and values to mask in the message
    """
    masked_message = message
    for value in sensitive_data.values():
        if value and isinstance(value, str):
            masked_message = masked_message.replace(value, mask_value(value))

    logger.log(level, masked_message)
