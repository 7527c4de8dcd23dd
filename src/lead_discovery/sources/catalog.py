#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Source Catalog - builds the keyed, grouped list of discovery sources.

Sources are returned in priority order: API sources, then web search
engines, then industry sources, then RSS feeds. Scraped and feed
definitions can be overridden or extended from a JSON file::

    {
        "search_engines": [{"key": "reuters", "enabled": false}],
        "industry_sources": [{"key": "bisnow", "name": "Bisnow",
                              "search_url": "https://www.bisnow.com/search?q={keywords}"}],
        "rss_feeds": [{"key": "rss_hotel_online", "name": "Hotel Online",
                       "feed_url": "https://www.hotel-online.com/rss"}]
    }
"""

from typing import Any, Dict, List, Optional

from lead_discovery.config import AppConfig
from lead_discovery.models.lead import SourceKind
from lead_discovery.sources.api_sources import BingNewsSource, GoogleSearchSource, NewsApiSource
from lead_discovery.sources.base import BaseSource
from lead_discovery.sources.rss_sources import RssFeedSource
from lead_discovery.sources.web_sources import ScrapedSource
from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

WEB_RESULTS_PER_SOURCE = 5
INDUSTRY_RESULTS_PER_SOURCE = 3
RSS_RESULTS_PER_SOURCE = 5

SEARCH_ENGINES: List[Dict[str, Any]] = [
    {
        "key": "google_news",
        "name": "Google News Search",
        "search_url": "https://news.google.com/search?q={keywords}&hl=en-US&gl=US&ceid=US:en",
    },
    {
        "key": "bing_news",
        "name": "Bing News Search",
        "search_url": "https://www.bing.com/news/search?q={keywords}",
    },
    {
        "key": "reuters",
        "name": "Reuters",
        "search_url": "https://www.reuters.com/search/news?blob={keywords}&sortBy=relevance&dateRange=all",
    },
    {
        "key": "bloomberg",
        "name": "Bloomberg",
        "search_url": "https://www.bloomberg.com/search?query={keywords}&sort=relevance",
    },
    {
        "key": "wsj",
        "name": "Wall Street Journal",
        "search_url": (
            "https://www.wsj.com/search?query={keywords}&isToggleOn=true&operator=AND"
            "&sortBy=relevance&source=wsjarticle,wsjblogs"
        ),
    },
]

INDUSTRY_SOURCES: List[Dict[str, Any]] = [
    {
        "key": "construction_dive",
        "name": "Construction Dive",
        "search_url": "https://www.constructiondive.com/search/?q={keywords}",
    },
    {
        "key": "enr",
        "name": "Engineering News Record",
        "search_url": "https://www.enr.com/search?q={keywords}",
    },
    {
        "key": "hotel_news_now",
        "name": "Hotel News Now",
        "search_url": "https://www.hotelnewsnow.com/search?query={keywords}",
    },
    {
        "key": "hospitality_tech",
        "name": "Hospitality Technology",
        "search_url": "https://hospitalitytech.com/search?query={keywords}",
    },
    {
        "key": "real_estate_weekly",
        "name": "Real Estate Weekly",
        "search_url": "https://rew-online.com/search/?q={keywords}",
    },
    {
        "key": "cpe",
        "name": "Commercial Property Executive",
        "search_url": "https://www.cpexecutive.com/search?q={keywords}",
    },
]

RSS_FEEDS: List[Dict[str, Any]] = [
    {
        "key": "rss_construction_dive",
        "name": "Construction Dive RSS",
        "feed_url": "https://www.constructiondive.com/feeds/news/",
    },
    {
        "key": "rss_enr",
        "name": "ENR RSS",
        "feed_url": "https://www.enr.com/rss/all-news",
    },
    {
        "key": "rss_bdc",
        "name": "Building Design + Construction RSS",
        "feed_url": "https://www.bdcnetwork.com/rss.xml",
    },
]

GROUPS = {kind.value for kind in SourceKind}


def merge_definitions(
    defaults: List[Dict[str, Any]],
    overrides: Optional[List[Dict[str, Any]]],
    url_field: str = "search_url",
) -> List[Dict[str, Any]]:
    """
    Apply override entries to the default definitions by key.

    Unknown keys are appended when they carry a name and a ``url_field``.
    """
    merged = [dict(d) for d in defaults]
    index = {d["key"]: d for d in merged}

    for override in overrides or []:
        key = override.get("key")
        if not key:
            logger.warning("Skipping source override without key")
            continue
        if key in index:
            index[key].update(override)
        elif override.get("name") and override.get(url_field):
            entry = dict(override)
            merged.append(entry)
            index[key] = entry
        else:
            logger.warning(f"Skipping incomplete source definition: {key}")

    return merged


def build_catalog(app_config: AppConfig, evasion) -> List[BaseSource]:
    """
    Build every known source in priority order.

    Args:
        app_config: Application configuration (credentials and timeouts)
        evasion: Evasion layer shared by all sources

    Returns:
        List[BaseSource]: API, web, industry and RSS sources
    """
    overrides = app_config.load_source_config(app_config.sources_path)

    sources: List[BaseSource] = [
        NewsApiSource(evasion, app_config.news_api_key, app_config.api_timeout_seconds),
        GoogleSearchSource(
            evasion, app_config.google_api_key, app_config.google_search_engine_id,
            app_config.api_timeout_seconds,
        ),
        BingNewsSource(evasion, app_config.bing_api_key, app_config.api_timeout_seconds),
    ]

    groups = (
        (SEARCH_ENGINES, overrides.get("search_engines"), SourceKind.WEB, WEB_RESULTS_PER_SOURCE),
        (INDUSTRY_SOURCES, overrides.get("industry_sources"), SourceKind.INDUSTRY, INDUSTRY_RESULTS_PER_SOURCE),
    )
    for defaults, group_overrides, kind, limit in groups:
        for definition in merge_definitions(defaults, group_overrides):
            sources.append(ScrapedSource(
                key=definition["key"],
                name=definition["name"],
                search_url=definition["search_url"],
                evasion=evasion,
                kind=kind,
                per_source_limit=int(definition.get("max_results", limit)),
                timeout=app_config.scraping_timeout_seconds,
                active=bool(definition.get("enabled", True)),
            ))

    for definition in merge_definitions(RSS_FEEDS, overrides.get("rss_feeds"), url_field="feed_url"):
        sources.append(RssFeedSource(
            key=definition["key"],
            name=definition["name"],
            feed_url=definition["feed_url"],
            evasion=evasion,
            per_source_limit=int(definition.get("max_results", RSS_RESULTS_PER_SOURCE)),
            timeout=app_config.scraping_timeout_seconds,
            active=bool(definition.get("enabled", True)),
        ))

    logger.info(
        f"Source catalog built: {sum(1 for s in sources if s.enabled)}/{len(sources)} sources enabled"
    )
    return sources


def select_sources(sources: List[BaseSource], requested: Optional[List[str]]) -> List[BaseSource]:
    """
    Restrict sources to those a configuration asks for.

    Args:
        sources: Catalog in priority order
        requested: Source keys or group names; empty means all

    Returns:
        List[BaseSource]: Enabled sources, priority order preserved
    """
    enabled = [s for s in sources if s.enabled]
    if not requested:
        return enabled

    wanted = {r.lower() for r in requested}
    unknown = wanted - GROUPS - {s.key for s in sources}
    if unknown:
        logger.warning(f"Ignoring unknown sources: {', '.join(sorted(unknown))}")

    return [s for s in enabled if s.key in wanted or s.kind.value in wanted]
