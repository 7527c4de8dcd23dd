#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Lead Model - candidate results and finished, scored leads.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

# Sentinel for a field whose signal was not found in the text
UNKNOWN = "Unknown"

# Fields that contribute to confidence
SCORED_FIELDS = ["company", "location", "project_type", "budget", "room_count"]


def is_known(value: Any) -> bool:
    """True when a field holds a real value rather than the sentinel."""
    return value is not None and value != UNKNOWN and value != ""


class SourceKind(str, Enum):
    """Source group a candidate came from."""
    API = "api"
    WEB = "web"
    INDUSTRY = "industry"
    RSS = "rss"


@dataclass
class Contact:
    """Contact information extracted from lead text."""
    name: str = UNKNOWN
    title: str = UNKNOWN
    email: str = UNKNOWN
    phone: str = UNKNOWN
    confidence: int = 0

    @property
    def is_empty(self) -> bool:
        return not any(is_known(v) for v in (self.name, self.email, self.phone))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "email": self.email,
            "phone": self.phone,
            "confidence": self.confidence,
        }


@dataclass
class CandidateResult:
    """
    A raw result from one source, before dedup and extraction.

    Every source adapter produces this single shape; ``verified`` is True
    only for API-backed sources.
    """
    title: str
    url: str
    snippet: str = ""
    source: str = ""
    source_key: str = ""
    kind: SourceKind = SourceKind.WEB
    published_date: Optional[datetime] = None
    author: Optional[str] = None
    image_url: Optional[str] = None
    verified: bool = False
    relevance: int = 0

    @property
    def text(self) -> str:
        """Concatenated title and snippet used by the extractor."""
        return f"{self.title} {self.snippet}".strip()


@dataclass
class ExtractedFields:
    """Heuristic field values; each is a value or ``UNKNOWN``."""
    company: str = UNKNOWN
    location: str = UNKNOWN
    project_type: str = UNKNOWN
    budget: str = UNKNOWN
    budget_range: str = "not_specified"
    timeline: str = UNKNOWN
    room_count: str = UNKNOWN
    square_footage: str = UNKNOWN
    contact: Contact = field(default_factory=Contact)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company": self.company,
            "location": self.location,
            "projectType": self.project_type,
            "budget": self.budget,
            "budgetRange": self.budget_range,
            "timeline": self.timeline,
            "roomCount": self.room_count,
            "squareFootage": self.square_footage,
            "contact": self.contact.to_dict(),
        }


@dataclass
class Lead:
    """
    A finished, extracted and scored lead handed to the persistence sink.
    """
    title: str
    url: str
    source: str = ""
    snippet: str = ""
    published_date: Optional[datetime] = None
    fields: ExtractedFields = field(default_factory=ExtractedFields)
    description: str = ""
    confidence: int = 0
    completeness: Dict[str, bool] = field(default_factory=dict)
    verified_source: bool = False
    relevance: int = 0
    issues: List[str] = field(default_factory=list)
    extracted_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_candidate(cls, candidate: CandidateResult, fields: Optional[ExtractedFields] = None) -> "Lead":
        return cls(
            title=candidate.title,
            url=candidate.url,
            source=candidate.source,
            snippet=candidate.snippet,
            published_date=candidate.published_date,
            fields=fields or ExtractedFields(),
            verified_source=candidate.verified,
            relevance=candidate.relevance,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert lead to dictionary."""
        return {
            "title": self.title,
            "url": self.url,
            "source": self.source,
            "snippet": self.snippet,
            "publishedDate": self.published_date.isoformat() if self.published_date else None,
            "extractedData": self.fields.to_dict(),
            "description": self.description,
            "confidence": self.confidence,
            "completeness": dict(self.completeness),
            "verifiedSource": self.verified_source,
            "relevance": self.relevance,
            "issues": list(self.issues),
            "extractedAt": self.extracted_at.isoformat(),
        }
