#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Data models for configurations, jobs, candidates and leads.
"""

from .configuration import Configuration, Frequency
from .job import Job, JobStage, RunResult, stage_percentage
from .lead import UNKNOWN, CandidateResult, Contact, ExtractedFields, Lead, SourceKind, is_known

__all__ = [
    "Configuration",
    "Frequency",
    "Job",
    "JobStage",
    "RunResult",
    "stage_percentage",
    "UNKNOWN",
    "CandidateResult",
    "Contact",
    "ExtractedFields",
    "Lead",
    "SourceKind",
    "is_known",
]
