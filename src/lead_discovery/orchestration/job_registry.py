#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Job Registry

Thread-safe store of discovery job progress. The registry lock guards the
job map only; every job carries its own lock that serialises writes to its
record.
"""

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from lead_discovery.exceptions import DuplicateJobError
from lead_discovery.models.job import Job, JobStage, RunResult, stage_percentage
from lead_discovery.utils.logger import get_logger, log_pipeline_event

logger = get_logger(__name__)

DEFAULT_RETENTION_SECONDS = 300


@dataclass
class _Entry:
    job: Job
    lock: threading.Lock = field(default_factory=threading.Lock)


class JobRegistry:
    """
    Tracks jobs from creation to eviction.

    Args:
        retention_seconds: How long a finished job stays readable
        clock: Returns the current time, injectable for tests
    """

    def __init__(
        self,
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.retention = timedelta(seconds=retention_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._jobs: Dict[str, _Entry] = {}

    def _entry(self, job_id: str) -> Optional[_Entry]:
        with self._lock:
            return self._jobs.get(job_id)

    def __contains__(self, job_id: str) -> bool:
        return self._entry(job_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self, job_id: str, meta: Dict[str, Any]) -> Job:
        """
        Register a new job in the ``initializing`` stage.

        Args:
            job_id: Unique job id
            meta: ``config_id``, ``user_id`` and optional ``config_name``

        Returns:
            Job: Copy of the created job

        Raises:
            DuplicateJobError: If the id is already live
        """
        job = Job(
            id=job_id,
            config_id=str(meta.get("config_id", "")),
            user_id=str(meta.get("user_id", "")),
            config_name=meta.get("config_name", ""),
            start_time=self._clock(),
        )
        with self._lock:
            if job_id in self._jobs:
                raise DuplicateJobError(f"Job already exists: {job_id}")
            self._jobs[job_id] = _Entry(job=job)

        log_pipeline_event(job_id, job.stage.value, job.message)
        return copy.deepcopy(job)

    def update(
        self,
        job_id: str,
        stage: Optional[JobStage] = None,
        progress: Optional[int] = None,
        total: Optional[int] = None,
        message: Optional[str] = None,
        percentage: Optional[int] = None,
    ) -> Optional[Job]:
        """
        Update a job's progress.

        The stage may only move forward and a finished job is never
        modified. The overall percentage is derived from the stage band
        unless given explicitly, and never decreases except on ``error``.

        Returns:
            Optional[Job]: Copy of the updated job, None if the update was
                rejected or the job is unknown
        """
        entry = self._entry(job_id)
        if entry is None:
            logger.debug(f"Ignoring update for unknown job {job_id}")
            return None

        with entry.lock:
            job = entry.job
            if job.stage.is_terminal:
                logger.warning(f"Rejected update to finished job {job_id} ({job.stage.value})")
                return None

            new_stage = JobStage(stage) if stage is not None else job.stage
            if new_stage.order < job.stage.order:
                logger.warning(
                    f"Rejected backward stage transition for {job_id}: "
                    f"{job.stage.value} -> {new_stage.value}"
                )
                return None

            stage_changed = new_stage != job.stage
            job.stage = new_stage
            if progress is not None:
                job.progress = progress
            elif stage_changed:
                job.progress = 0
            if total is not None:
                job.total = total
            if message is not None:
                job.message = message

            if percentage is None:
                percentage = stage_percentage(job.stage, job.progress, job.total)
            if job.stage == JobStage.ERROR:
                job.percentage = percentage
            else:
                job.percentage = max(job.percentage, min(percentage, 100))

            if job.stage.is_terminal:
                job.end_time = self._clock()

            snapshot = copy.deepcopy(job)

        if stage_changed:
            log_pipeline_event(job_id, job.stage.value, job.message)
        return snapshot

    def complete(self, job_id: str, result: RunResult, message: str = "Discovery completed") -> Optional[Job]:
        """Mark a job completed with its result."""
        entry = self._entry(job_id)
        if entry is None:
            return None

        with entry.lock:
            if entry.job.stage.is_terminal:
                logger.warning(f"Job {job_id} already finished, ignoring completion")
                return None
            entry.job.result = result

        return self.update(job_id, stage=JobStage.COMPLETED, progress=1, total=1,
                           message=message, percentage=100)

    def fail(self, job_id: str, message: str) -> Optional[Job]:
        """Mark a job failed, keeping the error message."""
        entry = self._entry(job_id)
        if entry is None:
            return None

        with entry.lock:
            if entry.job.stage.is_terminal:
                logger.warning(f"Job {job_id} already finished, ignoring failure")
                return None
            entry.job.error = message

        return self.update(job_id, stage=JobStage.ERROR, message=message)

    def get(self, job_id: str) -> Optional[Dict[str, Any]]:
        """
        Get a snapshot of a job's progress.

        Returns:
            Optional[Dict]: ``stage``, ``progress``, ``total``, ``percentage``
                and ``message``, or None for an unknown or evicted job
        """
        entry = self._entry(job_id)
        if entry is None:
            return None
        with entry.lock:
            return entry.job.progress_view()

    def get_job(self, job_id: str) -> Optional[Job]:
        entry = self._entry(job_id)
        if entry is None:
            return None
        with entry.lock:
            return copy.deepcopy(entry.job)

    def list_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        """Summaries of every job owned by a user, oldest first."""
        with self._lock:
            entries = list(self._jobs.values())

        summaries = []
        for entry in entries:
            with entry.lock:
                if entry.job.user_id == str(user_id):
                    summaries.append((entry.job.start_time, entry.job.summary_view()))

        return [summary for _, summary in sorted(summaries, key=lambda item: item[0])]

    def evict_expired(self, now: Optional[datetime] = None) -> int:
        """
        Drop finished jobs older than the retention period.

        Args:
            now: Reference time, the registry clock when omitted

        Returns:
            int: Number of jobs evicted
        """
        now = now or self._clock()
        cutoff = now - self.retention

        with self._lock:
            expired = []
            for job_id, entry in self._jobs.items():
                with entry.lock:
                    job = entry.job
                    if job.stage.is_terminal and job.end_time is not None and job.end_time <= cutoff:
                        expired.append(job_id)
            for job_id in expired:
                del self._jobs[job_id]

        if expired:
            logger.info(f"Evicted {len(expired)} finished jobs")
        return len(expired)
