#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Discovery Configuration - a saved discovery request owned by a user.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

MAX_KEYWORDS = 20
MIN_RESULTS_PER_RUN = 1
MAX_RESULTS_PER_RUN = 1000
DEFAULT_RESULTS_PER_RUN = 50


class Frequency(str, Enum):
    """How often a configuration is run by the scheduler."""
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


@dataclass
class Configuration:
    """
    Read-only snapshot of a discovery configuration.

    ``sources`` holds source keys or group names (``api``, ``web``,
    ``industry``); an empty list enables every available source.
    """
    id: str
    user_id: str
    name: str
    keywords: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    frequency: Any = Frequency.DAILY
    max_results: int = DEFAULT_RESULTS_PER_RUN
    is_active: bool = True
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None

    def validate(self) -> List[str]:
        """
        Validate the configuration.

        Returns:
            List[str]: List of validation errors, empty if valid
        """
        errors = []

        if not self.keywords:
            errors.append("At least one keyword is required")
        elif len(self.keywords) > MAX_KEYWORDS:
            errors.append(f"No more than {MAX_KEYWORDS} keywords are allowed")
        elif any(not isinstance(k, str) or not k.strip() for k in self.keywords):
            errors.append("Keywords must be non-empty strings")

        if self.frequency_enum is None:
            errors.append(f"Invalid frequency: {self.frequency}")

        if not isinstance(self.max_results, int) or not (
            MIN_RESULTS_PER_RUN <= self.max_results <= MAX_RESULTS_PER_RUN
        ):
            errors.append(
                f"max_results must be between {MIN_RESULTS_PER_RUN} and {MAX_RESULTS_PER_RUN}"
            )

        return errors

    @property
    def frequency_enum(self) -> Optional[Frequency]:
        """The frequency as a ``Frequency`` member, or None if it is not one."""
        try:
            return Frequency(self.frequency)
        except ValueError:
            return None

    def summary(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        frequency = self.frequency_enum
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "keywords": list(self.keywords),
            "sources": list(self.sources),
            "frequency": frequency.value if frequency else self.frequency,
            "max_results": self.max_results,
            "is_active": self.is_active,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "next_run": self.next_run.isoformat() if self.next_run else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Configuration":
        """
        Create a configuration from a dictionary.

        Accepts both snake_case keys and the camelCase keys used by the
        configuration UI.
        """
        def pick(*keys, default=None):
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        last_run = pick("last_run", "lastRun")
        next_run = pick("next_run", "nextRun")

        return cls(
            id=str(pick("id", "config_id", "configId", default="")),
            user_id=str(pick("user_id", "userId", default="")),
            name=pick("name", default=""),
            keywords=list(pick("keywords", default=[])),
            sources=list(pick("sources", "enabled_sources", "enabledSources", default=[])),
            frequency=pick("frequency", default=Frequency.DAILY.value),
            max_results=pick("max_results", "max_results_per_run", "maxResultsPerRun",
                             default=DEFAULT_RESULTS_PER_RUN),
            is_active=bool(pick("is_active", "isActive", default=True)),
            last_run=datetime.fromisoformat(last_run) if isinstance(last_run, str) else last_run,
            next_run=datetime.fromisoformat(next_run) if isinstance(next_run, str) else next_run,
        )
