#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
API Sources - NewsAPI, Google Custom Search and Bing News.

Each provider has a pure adapter that maps its JSON payload into
``CandidateResult`` objects, and a thin source class that performs the
request through the evasion layer.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from dateutil import parser as date_parser

from lead_discovery.models.lead import CandidateResult, SourceKind
from lead_discovery.sources.base import (
    BaseSource,
    calculate_relevance,
    calculate_search_relevance,
    has_keyword,
    is_news_host,
    is_relevant_article,
)
from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

NEWSAPI_URL = "https://newsapi.org/v2/everything"
GOOGLE_CSE_URL = "https://www.googleapis.com/customsearch/v1"
BING_NEWS_URL = "https://api.bing.microsoft.com/v7.0/news/search"

SNIPPET_DATE_PATTERN = re.compile(r"(\d{1,2}/\d{1,2}/\d{4}|\d{4}-\d{2}-\d{2})")
SNIPPET_AUTHOR_PATTERN = re.compile(r"(?:by|author)[:\s]+([A-Za-z\s]+)", re.IGNORECASE)


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a provider timestamp, returning None when it is missing or malformed."""
    if not value:
        return None
    try:
        return date_parser.parse(value)
    except (ValueError, OverflowError):
        return None


def adapt_newsapi(payload: Dict[str, Any], keywords: List[str]) -> List[CandidateResult]:
    """
    Map a NewsAPI ``/v2/everything`` response into candidates.

    Args:
        payload: Decoded JSON response
        keywords: Configuration keywords used for filtering and scoring

    Returns:
        List[CandidateResult]: Relevant articles in response order
    """
    results = []
    for article in payload.get("articles") or []:
        title = article.get("title") or ""
        description = article.get("description") or ""
        content = f"{title} {description} {article.get('content') or ''}"
        if not article.get("url") or not is_relevant_article(content, keywords):
            continue

        results.append(CandidateResult(
            title=title,
            url=article["url"],
            snippet=description or title,
            source=(article.get("source") or {}).get("name") or "NewsAPI",
            source_key="newsapi",
            kind=SourceKind.API,
            published_date=parse_date(article.get("publishedAt")),
            author=article.get("author"),
            image_url=article.get("urlToImage"),
            verified=True,
            relevance=calculate_relevance(title, description, keywords),
        ))
    return results


def adapt_google(payload: Dict[str, Any], keywords: List[str]) -> List[CandidateResult]:
    """Map a Google Custom Search response into candidates."""
    results = []
    for item in payload.get("items") or []:
        title = item.get("title") or ""
        snippet = item.get("snippet") or ""
        link = item.get("link")
        host = item.get("displayLink") or (urlparse(link).hostname if link else "")

        if not link or not has_keyword(f"{title} {snippet}", keywords) or not is_news_host(host):
            continue

        date_match = SNIPPET_DATE_PATTERN.search(snippet)
        author_match = SNIPPET_AUTHOR_PATTERN.search(snippet)

        results.append(CandidateResult(
            title=title,
            url=link,
            snippet=snippet or title,
            source=host,
            source_key="google",
            kind=SourceKind.API,
            published_date=parse_date(date_match.group(1)) if date_match else None,
            author=author_match.group(1).strip() if author_match else None,
            verified=True,
            relevance=calculate_search_relevance(title, snippet, keywords),
        ))
    return results


def adapt_bing(payload: Dict[str, Any], keywords: List[str]) -> List[CandidateResult]:
    """Map a Bing News Search v7 response into candidates."""
    results = []
    for article in payload.get("value") or []:
        title = article.get("name") or ""
        description = article.get("description") or ""
        if not article.get("url") or not is_relevant_article(f"{title} {description}", keywords):
            continue

        providers = article.get("provider") or []
        provider = providers[0] if isinstance(providers, list) and providers else providers
        image = ((article.get("image") or {}).get("thumbnail") or {}).get("contentUrl")
        author = article.get("author")
        if isinstance(author, list):
            author = ", ".join(a.get("name", "") for a in author if isinstance(a, dict)) or None

        results.append(CandidateResult(
            title=title,
            url=article["url"],
            snippet=description or title,
            source=(provider or {}).get("name") or "Bing News",
            source_key="bing",
            kind=SourceKind.API,
            published_date=parse_date(article.get("datePublished")),
            author=author,
            image_url=image,
            verified=True,
            relevance=calculate_relevance(title, description, keywords),
        ))
    return results


class ApiSource(BaseSource):
    """Base class for credentialed JSON API sources."""

    kind = SourceKind.API
    verified = True

    def __init__(self, key: str, name: str, evasion, api_key: Optional[str], timeout: float = 10):
        super().__init__(key, name)
        self.evasion = evasion
        self.api_key = api_key
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _get_json(self, url: str, params: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        response = self.evasion.request(url, params=params, headers=headers, timeout=self.timeout)
        return response.json()


class NewsApiSource(ApiSource):
    """NewsAPI everything endpoint."""

    def __init__(self, evasion, api_key: Optional[str], timeout: float = 10):
        super().__init__("newsapi", "NewsAPI", evasion, api_key, timeout)

    def search(self, keywords: List[str], max_results: int) -> List[CandidateResult]:
        payload = self._get_json(
            NEWSAPI_URL,
            params={
                "q": " OR ".join(keywords),
                "language": "en",
                "sortBy": "publishedAt",
                "pageSize": min(max_results, 20),
            },
            headers={"X-Api-Key": self.api_key},
        )
        return adapt_newsapi(payload, keywords)


class GoogleSearchSource(ApiSource):
    """Google Custom Search JSON API restricted to recent news-like pages."""

    def __init__(self, evasion, api_key: Optional[str], search_engine_id: Optional[str], timeout: float = 10):
        super().__init__("google", "Google Custom Search", evasion, api_key, timeout)
        self.search_engine_id = search_engine_id

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.search_engine_id)

    def search(self, keywords: List[str], max_results: int) -> List[CandidateResult]:
        payload = self._get_json(
            GOOGLE_CSE_URL,
            params={
                "key": self.api_key,
                "cx": self.search_engine_id,
                "q": " OR ".join(keywords) + " news OR article",
                "num": min(max_results, 10),
                "dateRestrict": "d30",
                "sort": "date",
            },
        )
        return adapt_google(payload, keywords)


class BingNewsSource(ApiSource):
    """Bing News Search v7."""

    def __init__(self, evasion, api_key: Optional[str], timeout: float = 10):
        super().__init__("bing", "Bing News", evasion, api_key, timeout)

    def search(self, keywords: List[str], max_results: int) -> List[CandidateResult]:
        payload = self._get_json(
            BING_NEWS_URL,
            params={
                "q": " ".join(keywords),
                "count": min(max_results, 20),
                "mkt": "en-US",
                "freshness": "Week",
            },
            headers={"Ocp-Apim-Subscription-Key": self.api_key},
        )
        return adapt_bing(payload, keywords)
