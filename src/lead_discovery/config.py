#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration management for the lead discovery pipeline.

This module loads configuration from environment variables and optional JSON
files, provides sensible defaults and validates configuration values.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Base directories
ROOT_DIR = Path(__file__).parent.parent.parent.absolute()
CONFIG_DIR = ROOT_DIR / "config"
DATA_DIR = ROOT_DIR / "data"

# Default configuration file paths
DEFAULT_SOURCES_PATH = CONFIG_DIR / "sources.json"
DEFAULT_DB_URL = f"sqlite:///{DATA_DIR / 'leads.db'}"

# Log levels
LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class AppConfig:
    """Application configuration."""

    # Logging
    log_level: int = field(
        default_factory=lambda: LOG_LEVELS.get(
            os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO
        )
    )
    log_file_path: Optional[Path] = field(
        default_factory=lambda: Path(os.environ["LOG_FILE_PATH"]) if os.getenv("LOG_FILE_PATH") else None
    )
    log_json: bool = field(default_factory=lambda: _env_bool("LOG_JSON", "false"))

    # Reference storage
    db_url: str = field(default_factory=lambda: os.getenv("LEAD_DB_URL", DEFAULT_DB_URL))

    # Source catalog
    sources_path: Path = field(
        default_factory=lambda: Path(
            os.getenv("SOURCES_PATH", str(DEFAULT_SOURCES_PATH))
        )
    )

    # API source credentials
    news_api_key: Optional[str] = field(default_factory=lambda: os.getenv("NEWS_API_KEY"))
    google_api_key: Optional[str] = field(default_factory=lambda: os.getenv("GOOGLE_API_KEY"))
    google_search_engine_id: Optional[str] = field(
        default_factory=lambda: os.getenv("GOOGLE_SEARCH_ENGINE_ID")
    )
    bing_api_key: Optional[str] = field(default_factory=lambda: os.getenv("BING_API_KEY"))

    # Request timeouts
    api_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("API_TIMEOUT_SECONDS", "10"))
    )
    scraping_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("SCRAPING_TIMEOUT_SECONDS", "10"))
    )

    # Anti-detection
    anti_detection_enabled: bool = field(
        default_factory=lambda: _env_bool("ANTI_DETECTION_ENABLED", "true")
    )
    scraping_rate_limit: int = field(
        default_factory=lambda: int(os.getenv("SCRAPING_RATE_LIMIT", "10"))
    )
    proxy_list: List[str] = field(default_factory=lambda: _env_list("PROXY_LIST"))
    max_retry_attempts: int = field(
        default_factory=lambda: int(os.getenv("MAX_RETRY_ATTEMPTS", "3"))
    )
    retry_base_delay_seconds: float = field(
        default_factory=lambda: float(os.getenv("RETRY_BASE_DELAY_SECONDS", "1.0"))
    )
    block_backoff_multiplier: float = field(
        default_factory=lambda: float(os.getenv("BLOCK_BACKOFF_MULTIPLIER", "5"))
    )
    session_ttl_minutes: int = field(
        default_factory=lambda: int(os.getenv("SESSION_TTL_MINUTES", "30"))
    )

    # Aggregation
    source_max_workers: int = field(
        default_factory=lambda: int(os.getenv("SOURCE_MAX_WORKERS", "4"))
    )
    source_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("SOURCE_TIMEOUT_SECONDS", "60"))
    )
    enrich_max_fetches: int = field(
        default_factory=lambda: int(os.getenv("ENRICH_MAX_FETCHES", "10"))
    )
    keyword_expansion_enabled: bool = field(
        default_factory=lambda: _env_bool("KEYWORD_EXPANSION_ENABLED", "true")
    )

    # Scheduling and job tracking
    max_concurrent_runs: int = field(
        default_factory=lambda: int(os.getenv("MAX_CONCURRENT_RUNS", "4"))
    )
    job_retention_seconds: int = field(
        default_factory=lambda: int(os.getenv("JOB_RETENTION_SECONDS", "300"))
    )
    scheduler_timezone: str = field(
        default_factory=lambda: os.getenv("SCHEDULER_TIMEZONE", "UTC")
    )
    schedule_anchor_hour: int = field(
        default_factory=lambda: int(os.getenv("SCHEDULE_ANCHOR_HOUR", "9"))
    )

    # HTTP interface
    api_keys: List[str] = field(default_factory=lambda: _env_list("API_KEYS"))
    api_host: str = field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    api_port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))

    def validate(self) -> List[str]:
        """
        Validate configuration values.

        Returns:
            List[str]: List of validation errors, empty if valid
        """
        errors = []

        if self.log_file_path is not None and not self.log_file_path.parent.exists():
            errors.append(f"Log file path parent does not exist: {self.log_file_path.parent}")

        if self.google_api_key and not self.google_search_engine_id:
            errors.append("GOOGLE_SEARCH_ENGINE_ID is required when GOOGLE_API_KEY is set")

        # Validate numeric values
        if self.max_retry_attempts <= 0:
            errors.append("MAX_RETRY_ATTEMPTS must be positive")

        if self.retry_base_delay_seconds < 0:
            errors.append("RETRY_BASE_DELAY_SECONDS must not be negative")

        if self.scraping_rate_limit <= 0:
            errors.append("SCRAPING_RATE_LIMIT must be positive")

        if self.source_max_workers <= 0:
            errors.append("SOURCE_MAX_WORKERS must be positive")

        if self.max_concurrent_runs <= 0:
            errors.append("MAX_CONCURRENT_RUNS must be positive")

        if self.job_retention_seconds < 0:
            errors.append("JOB_RETENTION_SECONDS must not be negative")

        if not 0 <= self.schedule_anchor_hour <= 23:
            errors.append("SCHEDULE_ANCHOR_HOUR must be between 0 and 23")

        return errors

    def load_source_config(self, path: Path) -> Dict[str, Any]:
        """
        Load a JSON configuration file.

        Args:
            path: Path to the configuration file

        Returns:
            Dict: Loaded configuration or empty dict if file doesn't exist
        """
        try:
            if path.exists():
                with open(path, "r", encoding="utf-8") as f:
                    return json.load(f)
            else:
                return {}
        except (OSError, ValueError) as e:
            logging.error(f"Error loading configuration from {path}: {str(e)}")
            return {}


# Create a global config instance
config = AppConfig()
