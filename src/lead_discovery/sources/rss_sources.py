#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
RSS Sources - industry news feeds fetched through the evasion layer and
parsed with feedparser.

Feed entries are matched against the expanded keyword list, so these
sources pick up articles that a literal keyword search would miss.
"""

from typing import Any, List, Optional

import feedparser
from bs4 import BeautifulSoup

from lead_discovery.exceptions import SourceError
from lead_discovery.models.lead import CandidateResult, SourceKind
from lead_discovery.sources.api_sources import parse_date
from lead_discovery.sources.base import (
    BaseSource,
    calculate_relevance,
    has_keyword,
    is_valid_article_url,
)
from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

MAX_SNIPPET_LENGTH = 200
DATE_FIELDS = ["published", "updated", "created"]


def clean_text(value: Optional[str]) -> str:
    """Strip markup and collapse whitespace."""
    if not value:
        return ""
    text = BeautifulSoup(value, "html.parser").get_text(" ", strip=True)
    return " ".join(text.split())


def entry_content(entry: Any) -> str:
    """Summary text of a feed entry, whatever the feed format."""
    content = entry.get("content")
    if isinstance(content, list) and content:
        text = clean_text(content[0].get("value"))
        if text:
            return text

    for field_name in ("summary", "description"):
        text = clean_text(entry.get(field_name))
        if text:
            return text
    return ""


def parse_feed_entries(
    raw: bytes,
    keywords: List[str],
    max_results: int,
    source_name: str = "",
    source_key: str = "",
) -> List[CandidateResult]:
    """
    Turn a fetched feed into candidates.

    Args:
        raw: Feed document as fetched
        keywords: Terms an entry must mention in its title or summary
        max_results: Maximum number of results to return
        source_name: Display name recorded on each result
        source_key: Catalog key recorded on each result

    Returns:
        List[CandidateResult]: Matching entries in feed order

    Raises:
        SourceError: If the document is not a readable feed
    """
    feed = feedparser.parse(raw)
    if feed.get("bozo") and not feed.get("entries"):
        raise SourceError(f"Unreadable feed: {feed.get('bozo_exception')}")

    results: List[CandidateResult] = []
    seen = set()
    for entry in feed.entries:
        if len(results) >= max_results:
            break

        title = clean_text(entry.get("title"))
        url = (entry.get("link") or "").strip()
        if not title or url in seen or not is_valid_article_url(url):
            continue

        summary = entry_content(entry)
        if not has_keyword(f"{title} {summary}", keywords):
            continue

        published = None
        for date_field in DATE_FIELDS:
            published = parse_date(entry.get(date_field))
            if published:
                break

        seen.add(url)
        results.append(CandidateResult(
            title=title,
            url=url,
            snippet=summary[:MAX_SNIPPET_LENGTH] or title,
            source=source_name,
            source_key=source_key,
            kind=SourceKind.RSS,
            published_date=published,
            author=entry.get("author") or None,
            verified=False,
            relevance=calculate_relevance(title, summary, keywords),
        ))

    return results


class RssFeedSource(BaseSource):
    """One industry news feed."""

    kind = SourceKind.RSS
    expands_keywords = True

    def __init__(
        self,
        key: str,
        name: str,
        feed_url: str,
        evasion,
        per_source_limit: Optional[int] = 5,
        timeout: float = 10,
        active: bool = True,
    ):
        super().__init__(key, name, per_source_limit)
        self.feed_url = feed_url
        self.evasion = evasion
        self.timeout = timeout
        self.active = active

    @property
    def enabled(self) -> bool:
        return self.active

    def search(self, keywords: List[str], max_results: int) -> List[CandidateResult]:
        logger.debug(f"Fetching feed {self.name}: {self.feed_url}")
        response = self.evasion.request(
            self.feed_url,
            timeout=self.timeout,
            headers={"Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"},
        )
        return parse_feed_entries(
            response.content, keywords, max_results,
            source_name=self.name, source_key=self.key,
        )
