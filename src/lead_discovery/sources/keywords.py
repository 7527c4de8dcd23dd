#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Keyword Expansion - broadens configuration keywords with synonyms and
related phrases for sources that match text rather than build queries.
"""

from typing import Dict, List

MAX_EXPANDED_KEYWORDS = 25

DEFAULT_KEYWORDS = [
    "business development",
    "construction project",
    "real estate development",
    "hotel development",
]

SYNONYMS: Dict[str, List[str]] = {
    # Hotel terms
    "hotel": ["boutique hotel", "luxury hotel", "business hotel", "resort hotel", "urban hotel",
              "independent hotel", "hotel chain", "hotel brand"],
    "boutique": ["boutique hotel", "designer hotel", "lifestyle hotel", "unique hotel", "art hotel"],
    "luxury": ["luxury hotel", "high-end hotel", "premium hotel", "five-star hotel", "upscale hotel"],
    "resort": ["resort hotel", "vacation resort", "beach resort", "mountain resort", "spa resort"],

    # Development terms
    "development": ["real estate development", "property development", "construction project",
                    "building project", "infrastructure project"],
    "construction": ["construction project", "building construction", "development project",
                     "infrastructure development", "renovation project"],
    "project": ["development project", "construction project", "real estate project",
                "infrastructure project", "building project"],
    "building": ["building project", "construction project", "new construction",
                 "building development", "property development"],

    # Business terms
    "business": ["business development", "commercial development", "business expansion",
                 "corporate project", "enterprise development"],
    "expansion": ["business expansion", "growth project", "expansion plans", "market expansion",
                  "facility expansion"],
    "investment": ["capital investment", "business investment", "development investment",
                   "property investment", "infrastructure investment"],

    # Real estate terms
    "real estate": ["property development", "real estate project", "commercial real estate",
                    "residential development", "mixed-use development"],
    "property": ["property development", "real estate project", "commercial property",
                 "development property", "investment property"],
    "commercial": ["commercial real estate", "business property", "office development",
                   "retail development", "industrial property"],

    # Announcement terms
    "announcement": ["project announcement", "development announcement", "launch announcement",
                     "opening announcement", "completion announcement"],
    "opening": ["grand opening", "hotel opening", "facility opening", "project opening", "soft opening"],
    "completion": ["project completion", "construction completion", "development completion",
                   "facility completion"],

    # Industry terms
    "infrastructure": ["infrastructure project", "public infrastructure", "urban infrastructure",
                       "transportation infrastructure", "utility infrastructure"],
    "renovation": ["hotel renovation", "building renovation", "facility renovation",
                   "property renovation", "interior renovation"],
    "modernization": ["facility modernization", "building modernization", "property modernization",
                      "technology upgrade"],
}

PREFIXES = ["new", "modern", "upscale", "premium", "luxury", "contemporary"]
SUFFIXES = ["project", "development", "construction", "plans", "announcement", "opening"]
INDUSTRY_TERMS = ["hospitality", "tourism", "travel", "accommodation", "lodging"]
ACTION_TERMS = ["plans", "proposes", "announces", "launches", "opens", "completes"]


def related_terms(keyword: str) -> List[str]:
    """Prefixed and suffixed variants of a keyword."""
    return [f"{prefix} {keyword}" for prefix in PREFIXES] + [f"{keyword} {suffix}" for suffix in SUFFIXES]


def expand_keywords(keywords: List[str], max_terms: int = MAX_EXPANDED_KEYWORDS) -> List[str]:
    """
    Expand keywords with synonyms, related phrases and industry combinations.

    The original keywords always come first. Terms are added in a fixed
    order until ``max_terms`` is reached, so the same keywords always expand
    to the same list.

    Args:
        keywords: Configuration keywords
        max_terms: Upper bound on the expanded list

    Returns:
        List[str]: Lower-cased, de-duplicated terms
    """
    originals = [k.lower().strip() for k in keywords or [] if k and k.strip()]
    if not originals:
        return list(DEFAULT_KEYWORDS)

    expanded: List[str] = []

    def add(term: str) -> None:
        if len(expanded) < max_terms and term not in expanded:
            expanded.append(term)

    for keyword in originals:
        add(keyword)

    for keyword in originals:
        for synonym in SYNONYMS.get(keyword, []):
            add(synonym)

        for key, synonyms in SYNONYMS.items():
            if key in keyword or keyword in key:
                for synonym in synonyms:
                    add(synonym)

        for term in related_terms(keyword):
            add(term)

    for keyword in originals:
        for industry in INDUSTRY_TERMS:
            add(f"{keyword} {industry}")
        for action in ACTION_TERMS:
            add(f"{keyword} {action}")

    return expanded
