#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pytest configuration file for the lead discovery test suite.
"""

import os
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add the src directory to Python path for accessing lead_discovery
project_root = Path(__file__).parent.parent
src_path = os.path.join(project_root, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from lead_discovery.config import AppConfig
from lead_discovery.models.configuration import Configuration
from lead_discovery.models.lead import CandidateResult, SourceKind
from lead_discovery.orchestration.job_registry import JobRegistry
from lead_discovery.sources.base import BaseSource

SEARCH_PAGE = """
<html><body>
  <article><a href="/news/2026/hotel-tower-approved">City council approves hotel tower construction</a></article>
  <h2><a href="/search?q=hotel">More hotel results here</a></h2>
  <h2><a href="https://other-news.com/story/hotel-renovation">Downtown hotel renovation begins soon</a></h2>
  <h2><a href="/news/office">Office park plans released today</a></h2>
  <h3><a href="/about">About hotel</a></h3>
  <h3><a href="/news/short">Hotel</a></h3>
  <div class="title"><a href="/news/2026/hotel-tower-approved">Duplicate hotel tower link text</a></div>
</body></html>
"""


# Define pytest markers
def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "integration: mark test as requiring network access"
    )


@pytest.fixture(scope="function")
def temp_db_path(tmp_path: Path) -> Path:
    """Temporary database path for testing."""
    return tmp_path / "leads.db"


@pytest.fixture(scope="function")
def temp_log_path(tmp_path: Path) -> Path:
    """Temporary log file path for testing."""
    return tmp_path / "test.log"


@pytest.fixture(scope="function")
def mock_env_vars(monkeypatch, temp_db_path: Path, temp_log_path: Path):
    """
    Set up environment variables for testing.

    Args:
        monkeypatch: Pytest monkeypatch fixture
        temp_db_path: Temporary database path
        temp_log_path: Temporary log file path
    """
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_FILE_PATH", str(temp_log_path))
    monkeypatch.setenv("LEAD_DB_URL", f"sqlite:///{temp_db_path}")
    monkeypatch.setenv("NEWS_API_KEY", "test_news_key")
    monkeypatch.setenv("SCRAPING_RATE_LIMIT", "20")
    monkeypatch.setenv("MAX_RETRY_ATTEMPTS", "3")
    monkeypatch.setenv("SOURCE_MAX_WORKERS", "2")
    monkeypatch.setenv("JOB_RETENTION_SECONDS", "60")
    monkeypatch.setenv("API_KEYS", "key-one,key-two")
    monkeypatch.setenv("PROXY_LIST", "http://proxy-a:8080, http://proxy-b:8080")
    monkeypatch.setenv("KEYWORD_EXPANSION_ENABLED", "false")


@pytest.fixture
def test_config(tmp_path: Path) -> AppConfig:
    """Application config with throttling off and short timeouts."""
    return AppConfig(
        anti_detection_enabled=False,
        proxy_list=[],
        sources_path=tmp_path / "sources.json",
        source_max_workers=2,
        source_timeout_seconds=5,
        max_concurrent_runs=2,
        retry_base_delay_seconds=0,
        api_keys=[],
        db_url="sqlite://",
    )


@pytest.fixture
def sample_configuration() -> Configuration:
    return Configuration(
        id="cfg-1",
        user_id="user-1",
        name="Hotel construction",
        keywords=["hotel", "construction"],
        sources=[],
        frequency="daily",
        max_results=50,
    )


@pytest.fixture
def fresh_registry() -> JobRegistry:
    return JobRegistry(retention_seconds=60)


def make_candidate(
    url: str,
    title: str = "Hilton announces new hotel construction",
    snippet: str = "",
    kind: SourceKind = SourceKind.WEB,
    source: str = "Test Source",
) -> CandidateResult:
    return CandidateResult(
        title=title,
        url=url,
        snippet=snippet or title,
        source=source,
        source_key=source.lower().replace(" ", "_"),
        kind=kind,
        verified=kind == SourceKind.API,
    )


class StaticSource(BaseSource):
    """Source returning fixed candidates, or raising a fixed error."""

    def __init__(
        self,
        key: str,
        results: Optional[List[CandidateResult]] = None,
        kind: SourceKind = SourceKind.WEB,
        error: Optional[Exception] = None,
        block: Optional[threading.Event] = None,
    ):
        super().__init__(key, key.replace("_", " ").title())
        self.kind = kind
        self.verified = kind == SourceKind.API
        self.results = results or []
        self.error = error
        self.block = block
        self.calls = 0

    def search(self, keywords, max_results):
        self.calls += 1
        if self.block is not None:
            self.block.wait(10)
        if self.error is not None:
            raise self.error
        return list(self.results[:max_results])


class FakeStore:
    """In-memory configuration provider and lead sink."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.configurations: Dict[str, Configuration] = {}
        self.active_users = set()
        self.saved: Dict[str, List] = {}
        self.run_times: Dict[str, tuple] = {}
        self.fail_with = fail_with
        self._lock = threading.Lock()

    def add(self, config: Configuration, user_active: bool = True) -> Configuration:
        self.configurations[config.id] = config
        if user_active:
            self.active_users.add(config.user_id)
        return config

    def get_configuration(self, config_id):
        return self.configurations.get(config_id)

    def list_active_configurations(self):
        return [c for c in self.configurations.values()
                if c.is_active and c.user_id in self.active_users]

    def is_user_active(self, user_id):
        return user_id in self.active_users

    def update_run_times(self, config_id, last_run: Optional[datetime], next_run: Optional[datetime]):
        with self._lock:
            self.run_times[config_id] = (last_run, next_run)

    def save_leads(self, user_id, leads):
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.saved.setdefault(user_id, []).extend(leads)
        return len(leads)


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()
