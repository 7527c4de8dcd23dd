#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for the job registry.
"""

import threading
from datetime import datetime, timedelta

import pytest

from lead_discovery.exceptions import DuplicateJobError
from lead_discovery.models.job import JobStage, RunResult, stage_percentage
from lead_discovery.orchestration.job_registry import JobRegistry

META = {"config_id": "cfg-1", "user_id": "user-1", "config_name": "Hotels"}


class TestStagePercentage:
    """Tests for mapping stage progress onto the overall scale."""

    def test_bands(self):
        assert stage_percentage(JobStage.SCRAPING, 0, 4) == 0
        assert stage_percentage(JobStage.SCRAPING, 2, 4) == 30
        assert stage_percentage(JobStage.SCRAPING, 4, 4) == 60
        assert stage_percentage(JobStage.ENRICHING, 1, 1) == 70
        assert stage_percentage(JobStage.EXTRACTING, 0, 10) == 70
        assert stage_percentage(JobStage.SAVING, 1, 1) == 99
        assert stage_percentage(JobStage.COMPLETED, 0, 1) == 100

    def test_zero_total_uses_band_start(self):
        assert stage_percentage(JobStage.EXTRACTING, 0, 0) == 70


class TestJobRegistry:
    """Tests for the JobRegistry class."""

    def test_create_and_get(self, fresh_registry):
        job = fresh_registry.create("job-1", META)

        assert job.stage == JobStage.INITIALIZING
        assert fresh_registry.get("job-1") == {
            "stage": "initializing",
            "progress": 0,
            "total": 1,
            "percentage": 0,
            "message": "Starting discovery...",
        }
        assert "job-1" in fresh_registry
        assert len(fresh_registry) == 1

    def test_duplicate_id_rejected(self, fresh_registry):
        fresh_registry.create("job-1", META)
        with pytest.raises(DuplicateJobError):
            fresh_registry.create("job-1", META)

    def test_unknown_job(self, fresh_registry):
        assert fresh_registry.get("missing") is None
        assert fresh_registry.get_job("missing") is None
        assert fresh_registry.update("missing", stage=JobStage.SCRAPING) is None
        assert fresh_registry.complete("missing", RunResult()) is None
        assert fresh_registry.fail("missing", "boom") is None

    def test_stage_progression(self, fresh_registry):
        fresh_registry.create("job-1", META)
        percentages = []

        fresh_registry.update("job-1", stage=JobStage.SCRAPING, progress=0, total=2)
        percentages.append(fresh_registry.get("job-1")["percentage"])
        fresh_registry.update("job-1", progress=1)
        percentages.append(fresh_registry.get("job-1")["percentage"])
        fresh_registry.update("job-1", stage=JobStage.ENRICHING, total=1)
        percentages.append(fresh_registry.get("job-1")["percentage"])
        fresh_registry.update("job-1", stage=JobStage.EXTRACTING, progress=0, total=3)
        percentages.append(fresh_registry.get("job-1")["percentage"])
        fresh_registry.update("job-1", stage=JobStage.SAVING)
        percentages.append(fresh_registry.get("job-1")["percentage"])
        fresh_registry.complete("job-1", RunResult(total_results=3, saved_leads=3))
        percentages.append(fresh_registry.get("job-1")["percentage"])

        assert percentages == [0, 30, 60, 70, 85, 100]
        job = fresh_registry.get_job("job-1")
        assert job.completed
        assert job.end_time is not None
        assert job.result.saved_leads == 3

    def test_backward_transition_rejected(self, fresh_registry):
        fresh_registry.create("job-1", META)
        fresh_registry.update("job-1", stage=JobStage.EXTRACTING)

        assert fresh_registry.update("job-1", stage=JobStage.SCRAPING) is None
        assert fresh_registry.get("job-1")["stage"] == "extracting"

    def test_percentage_never_decreases(self, fresh_registry):
        fresh_registry.create("job-1", META)
        fresh_registry.update("job-1", stage=JobStage.SCRAPING, progress=3, total=4)
        fresh_registry.update("job-1", progress=1)

        assert fresh_registry.get("job-1")["percentage"] == 45

    def test_fail_from_any_stage(self, fresh_registry):
        fresh_registry.create("job-1", META)
        fresh_registry.update("job-1", stage=JobStage.SAVING)

        fresh_registry.fail("job-1", "Failed to save leads: disk full")

        progress = fresh_registry.get("job-1")
        assert progress["stage"] == "error"
        assert progress["message"] == "Failed to save leads: disk full"
        assert fresh_registry.get_job("job-1").error == "Failed to save leads: disk full"

    def test_finished_job_is_frozen(self, fresh_registry):
        fresh_registry.create("job-1", META)
        fresh_registry.complete("job-1", RunResult())

        assert fresh_registry.update("job-1", message="late") is None
        assert fresh_registry.fail("job-1", "late failure") is None
        assert fresh_registry.get("job-1")["stage"] == "completed"

    def test_get_job_returns_copy(self, fresh_registry):
        fresh_registry.create("job-1", META)
        job = fresh_registry.get_job("job-1")
        job.message = "mutated"

        assert fresh_registry.get("job-1")["message"] == "Starting discovery..."

    def test_list_by_user(self):
        times = iter([datetime(2026, 1, 1, 10), datetime(2026, 1, 1, 9), datetime(2026, 1, 1, 11)])
        registry = JobRegistry(clock=lambda: next(times))
        registry.create("late", META)
        registry.create("early", META)
        registry.create("other", {"config_id": "cfg-2", "user_id": "user-2"})

        jobs = registry.list_by_user("user-1")

        assert [j["jobId"] for j in jobs] == ["early", "late"]
        assert jobs[0]["configName"] == "Hotels"
        assert jobs[0]["completed"] is False
        assert jobs[0]["progress"]["stage"] == "initializing"

    def test_evict_expired(self):
        now = [datetime(2026, 1, 1, 12, 0)]
        registry = JobRegistry(retention_seconds=300, clock=lambda: now[0])
        registry.create("done", META)
        registry.create("running", META)
        registry.complete("done", RunResult())

        assert registry.evict_expired(now[0] + timedelta(seconds=299)) == 0
        now[0] += timedelta(seconds=301)
        assert registry.evict_expired() == 1

        assert registry.get("done") is None
        assert registry.get("running") is not None

    def test_concurrent_updates(self, fresh_registry):
        fresh_registry.create("job-1", META)
        fresh_registry.update("job-1", stage=JobStage.EXTRACTING, total=200)

        def worker(start):
            for i in range(start, 200, 4):
                fresh_registry.update("job-1", progress=i + 1)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert fresh_registry.get("job-1")["percentage"] == 85
