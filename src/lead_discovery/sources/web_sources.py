#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Scraped Sources - news search engines and industry sites parsed with
BeautifulSoup.
"""

from typing import List, Optional
from urllib.parse import quote_plus, urljoin

from bs4 import BeautifulSoup

from lead_discovery.models.lead import CandidateResult, SourceKind
from lead_discovery.sources.base import (
    BaseSource,
    calculate_relevance,
    is_relevant_content,
    is_valid_article_url,
)
from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

RESULT_SELECTORS = [
    "article a[href]",
    ".story a[href]",
    ".news-item a[href]",
    ".article-link[href]",
    "h2 a[href]",
    "h3 a[href]",
    ".headline a[href]",
    ".title a[href]",
    ".news-card a[href]",
    ".post a[href]",
]

MIN_TITLE_LENGTH = 10
MAX_SNIPPET_LENGTH = 200


def build_search_url(template: str, keywords: List[str]) -> str:
    return template.replace("{keywords}", quote_plus(" ".join(keywords)))


def parse_search_results(
    html: str,
    page_url: str,
    keywords: List[str],
    max_results: int,
    source_name: str = "",
    source_key: str = "",
    kind: SourceKind = SourceKind.WEB,
) -> List[CandidateResult]:
    """
    Pull article links out of a search results page.

    Args:
        html: Page markup
        page_url: URL the page was fetched from, used to resolve relative links
        keywords: Configuration keywords
        max_results: Maximum number of results to return
        source_name: Display name recorded on each result
        source_key: Catalog key recorded on each result
        kind: Source group recorded on each result

    Returns:
        List[CandidateResult]: Unverified candidates in page order
    """
    soup = BeautifulSoup(html, "html.parser")
    results: List[CandidateResult] = []
    seen = set()

    for selector in RESULT_SELECTORS:
        if len(results) >= max_results:
            break

        for link in soup.select(selector):
            if len(results) >= max_results:
                break

            title = " ".join(link.get_text(" ", strip=True).split()) or (link.get("title") or "").strip()
            href = link.get("href")
            if not href or len(title) < MIN_TITLE_LENGTH:
                continue

            url = urljoin(page_url, href)
            if url in seen or not is_valid_article_url(url) or not is_relevant_content(title, keywords):
                continue

            seen.add(url)
            results.append(CandidateResult(
                title=title,
                url=url,
                snippet=title[:MAX_SNIPPET_LENGTH],
                source=source_name,
                source_key=source_key,
                kind=kind,
                verified=False,
                relevance=calculate_relevance(title, title, keywords),
            ))

    return results


class ScrapedSource(BaseSource):
    """A site queried through its HTML search page."""

    def __init__(
        self,
        key: str,
        name: str,
        search_url: str,
        evasion,
        kind: SourceKind = SourceKind.WEB,
        per_source_limit: Optional[int] = 5,
        timeout: float = 10,
        active: bool = True,
    ):
        super().__init__(key, name, per_source_limit)
        self.search_url = search_url
        self.evasion = evasion
        self.kind = kind
        self.timeout = timeout
        self.active = active

    @property
    def enabled(self) -> bool:
        return self.active

    def search(self, keywords: List[str], max_results: int) -> List[CandidateResult]:
        url = build_search_url(self.search_url, keywords)
        logger.debug(f"Scraping {self.name}: {url}")
        response = self.evasion.request(url, timeout=self.timeout)
        return parse_search_results(
            response.text, url, keywords, max_results,
            source_name=self.name, source_key=self.key, kind=self.kind,
        )
