#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Base Source - Abstract base class for all discovery sources, plus the
relevance and URL filters shared by them.
"""

import abc
import logging
import re
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from lead_discovery.models.lead import CandidateResult, SourceKind
from lead_discovery.utils.logger import get_logger, log_scraping_event

logger = get_logger(__name__)

# Terms that mark an article as business news
BUSINESS_TERMS = [
    "business", "company", "development", "construction",
    "project", "investment", "announcement",
]

# Terms that raise an article's relevance score
RELEVANCE_TERMS = [
    "announces", "launches", "develops", "constructs", "opens",
    "plans", "investment", "million", "billion",
]

NEWS_TERMS = ["news", "article", "story", "report", "announcement", "development", "construction"]

NAVIGATION_WORDS = ["home", "about", "contact", "privacy", "terms", "login", "register"]

BLOCKED_URL_PATTERNS = [
    re.compile(p) for p in (
        r"/search", r"/tag", r"/category", r"/author", r"/page",
        r"/feed", r"/rss", r"/comments", r"/login", r"/register",
    )
] + [re.compile(r"\.(jpg|jpeg|png|gif|pdf|doc|docx)$", re.IGNORECASE)]

NEWS_HOST_PATTERN = re.compile(r"\.(com|org|net|edu)$")
SHOPPING_HOSTS = ["amazon", "walmart", "ebay"]


def _count(term: str, content: str) -> int:
    return len(re.findall(re.escape(term.lower()), content))


def has_keyword(content: str, keywords: List[str]) -> bool:
    content = content.lower()
    return any(k.lower() in content for k in keywords if k)


def calculate_relevance(title: str, description: str, keywords: List[str]) -> int:
    """
    Score an article for relevance to the keywords.

    Args:
        title: Article title
        description: Article description or snippet
        keywords: Configuration keywords

    Returns:
        int: Score from 0 to 100
    """
    content = f"{title or ''} {description or ''}".lower()
    score = sum(_count(k, content) * 10 for k in keywords if k)
    score += sum(5 for term in RELEVANCE_TERMS if term in content)
    return min(score, 100)


def calculate_search_relevance(title: str, snippet: str, keywords: List[str]) -> int:
    """Relevance score for search engine results."""
    content = f"{title or ''} {snippet or ''}".lower()
    score = sum(_count(k, content) * 15 for k in keywords if k)
    score += sum(5 for term in NEWS_TERMS if term in content)
    return min(score, 100)


def is_relevant_article(content: str, keywords: List[str]) -> bool:
    """Must mention a keyword and read like business news."""
    content = content.lower()
    return has_keyword(content, keywords) and any(term in content for term in BUSINESS_TERMS)


def is_news_host(host: str) -> bool:
    host = (host or "").lower()
    return bool(NEWS_HOST_PATTERN.search(host)) and not any(s in host for s in SHOPPING_HOSTS)


def is_navigation_text(text: str) -> bool:
    """Short labels such as "About us" or "Login here"."""
    lowered = text.lower()
    return len(text.split()) < 5 and any(word in lowered for word in NAVIGATION_WORDS)


def is_relevant_content(text: str, keywords: List[str]) -> bool:
    """Scraped link text must mention a keyword and not be a navigation label."""
    return has_keyword(text, keywords) and not is_navigation_text(text)


def is_valid_article_url(url: Optional[str]) -> bool:
    """
    Check that a URL plausibly points at an article.

    Args:
        url: Candidate URL

    Returns:
        bool: True for http(s) URLs on a real host that are not search,
            listing, feed, account or media links
    """
    if not url or not isinstance(url, str):
        return False

    try:
        parsed = urlparse(url)
    except ValueError:
        return False

    if parsed.scheme not in ("http", "https"):
        return False
    if not parsed.hostname or len(parsed.hostname) < 4:
        return False

    return not any(pattern.search(url) for pattern in BLOCKED_URL_PATTERNS)


class BaseSource(abc.ABC):
    """
    Abstract base class for all sources.

    Subclasses implement ``search``; ``execute`` wraps it with timing,
    logging and metrics. Failures propagate so the aggregator can isolate
    them per source. Sources that set ``expands_keywords`` are handed the
    expanded keyword list instead of the configuration's own keywords.
    """

    kind: SourceKind = SourceKind.WEB
    verified: bool = False
    expands_keywords: bool = False

    def __init__(self, key: str, name: str, per_source_limit: Optional[int] = None):
        """
        Initialize the base source.

        Args:
            key: Catalog key of the source
            name: Display name
            per_source_limit: Cap on results from one query, if any
        """
        self.key = key
        self.name = name
        self.per_source_limit = per_source_limit
        self._lock = threading.Lock()
        self.metrics: Dict[str, Any] = {
            "query_count": 0,
            "total_results": 0,
            "failures": 0,
            "total_query_time_seconds": 0.0,
        }

    @property
    def enabled(self) -> bool:
        return True

    def limit_for(self, max_results: int) -> int:
        if self.per_source_limit is None:
            return max_results
        return min(max_results, self.per_source_limit)

    @abc.abstractmethod
    def search(self, keywords: List[str], max_results: int) -> List[CandidateResult]:
        """
        Query the source.

        This method must be implemented by all subclasses.

        Args:
            keywords: Configuration keywords
            max_results: Maximum number of results wanted

        Returns:
            List[CandidateResult]: Results in source order
        """
        pass

    def execute(self, keywords: List[str], max_results: int) -> List[CandidateResult]:
        """Run ``search`` with timing and metrics."""
        log_scraping_event(self.name, "start", f"Querying for {len(keywords)} keywords")
        start_time = datetime.now()

        try:
            results = self.search(keywords, self.limit_for(max_results))
        except Exception as e:
            with self._lock:
                self.metrics["failures"] += 1
                self.metrics["last_error"] = str(e)
            log_scraping_event(self.name, "error", str(e), level=logging.ERROR)
            raise

        elapsed = (datetime.now() - start_time).total_seconds()
        with self._lock:
            self.metrics["query_count"] += 1
            self.metrics["total_results"] += len(results)
            self.metrics["total_query_time_seconds"] += elapsed
            self.metrics["last_query_time"] = start_time.isoformat()

        log_scraping_event(self.name, "complete", f"{len(results)} results in {elapsed:.2f}s")
        return results

    def describe(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "kind": self.kind.value,
            "verified": self.verified,
            "enabled": self.enabled,
        }
