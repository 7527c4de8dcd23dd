#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Job Model - one execution of a configuration's discovery run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class JobStage(str, Enum):
    """Stage of a discovery job. Declaration order is execution order."""
    INITIALIZING = "initializing"
    SCRAPING = "scraping"
    ENRICHING = "enriching"
    EXTRACTING = "extracting"
    SAVING = "saving"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def order(self) -> int:
        return _STAGE_ORDER[self]

    @property
    def is_terminal(self) -> bool:
        return self in (JobStage.COMPLETED, JobStage.ERROR)


_STAGE_ORDER = {stage: index for index, stage in enumerate(JobStage)}

# Overall percentage band covered by each stage
STAGE_BANDS: Dict[JobStage, Tuple[int, int]] = {
    JobStage.INITIALIZING: (0, 0),
    JobStage.SCRAPING: (0, 60),
    JobStage.ENRICHING: (60, 70),
    JobStage.EXTRACTING: (70, 85),
    JobStage.SAVING: (85, 99),
    JobStage.COMPLETED: (100, 100),
    JobStage.ERROR: (0, 0),
}


def stage_percentage(stage: JobStage, progress: int, total: int) -> int:
    """
    Map stage-local progress onto the overall 0-100 scale.

    Args:
        stage: Current stage
        progress: Units completed within the stage
        total: Units planned within the stage

    Returns:
        int: Overall percentage
    """
    low, high = STAGE_BANDS[stage]
    if total <= 0:
        return low
    fraction = min(max(progress / total, 0.0), 1.0)
    return int(round(low + (high - low) * fraction))


@dataclass
class RunResult:
    """Summary of one aggregator run."""
    total_results: int = 0
    saved_leads: int = 0
    leads: List[Any] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, include_leads: bool = True) -> Dict[str, Any]:
        data = {
            "totalResults": self.total_results,
            "savedLeads": self.saved_leads,
            "errors": list(self.errors),
            "sources": list(self.sources),
            "stats": self.stats,
        }
        if include_leads:
            data["leads"] = [lead.to_dict() for lead in self.leads]
        return data


@dataclass
class Job:
    """Progress record for a discovery run."""
    id: str
    config_id: str
    user_id: str
    config_name: str = ""
    stage: JobStage = JobStage.INITIALIZING
    progress: int = 0
    total: int = 1
    percentage: int = 0
    message: str = "Starting discovery..."
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    result: Optional[RunResult] = None
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.stage == JobStage.COMPLETED

    def progress_view(self) -> Dict[str, Any]:
        """The progress shape returned to pollers."""
        return {
            "stage": self.stage.value,
            "progress": self.progress,
            "total": self.total,
            "percentage": self.percentage,
            "message": self.message,
        }

    def summary_view(self) -> Dict[str, Any]:
        return {
            "jobId": self.id,
            "configId": self.config_id,
            "configName": self.config_name,
            "progress": self.progress_view(),
            "startTime": self.start_time.isoformat(),
            "completed": self.completed,
            "error": self.error,
        }
