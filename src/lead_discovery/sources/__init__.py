"""
Sources Package

API, scraped and RSS discovery sources, the shared relevance filters,
keyword expansion and the source catalog.
"""

from .base import BaseSource, is_valid_article_url
from .catalog import build_catalog, select_sources
from .keywords import expand_keywords

__all__ = ["BaseSource", "is_valid_article_url", "build_catalog", "select_sources", "expand_keywords"]
