#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Discovery Scheduler

Runs discovery configurations on their cron schedule and on demand. Uses
APScheduler for recurring runs and a bounded thread pool for run-now
requests so a manual trigger never blocks the caller.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import pytz
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.executors.pool import ThreadPoolExecutor as APThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from dateutil.relativedelta import relativedelta

from lead_discovery.config import AppConfig, config as default_config
from lead_discovery.exceptions import (
    ConfigurationNotFoundError,
    ConfigurationValidationError,
    DuplicateJobError,
    InactiveUserError,
    SchedulerStoppedError,
)
from lead_discovery.models.configuration import Configuration, Frequency
from lead_discovery.models.job import Job, RunResult
from lead_discovery.orchestration.job_registry import JobRegistry
from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

# Prefix for housekeeping jobs sharing the scheduler
MAINTENANCE_PREFIX = "maintenance:"


def calculate_next_run(frequency: Any, now: datetime, anchor_hour: int = 9, timezone=None) -> datetime:
    """
    Compute when a configuration should next run.

    Args:
        frequency: ``Frequency`` member or its string value
        now: Reference time
        anchor_hour: Hour of day for daily, weekly and monthly runs
        timezone: pytz timezone the anchor hour is read in; when given, naive
            times are taken as local to it and the result is timezone-aware

    Returns:
        datetime: Next run time; unknown frequencies follow the daily rule
    """
    try:
        frequency = Frequency(frequency)
    except ValueError:
        frequency = Frequency.DAILY

    if timezone is not None:
        # Anchor arithmetic runs on local wall-clock time
        now = now.astimezone(timezone).replace(tzinfo=None) if now.tzinfo else now

    anchored = dict(hour=anchor_hour, minute=0, second=0, microsecond=0)
    if frequency == Frequency.HOURLY:
        next_run = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    elif frequency == Frequency.WEEKLY:
        next_run = (now + timedelta(days=7)).replace(**anchored)
    elif frequency == Frequency.MONTHLY:
        next_run = (now + relativedelta(months=1)).replace(**anchored)
    else:
        next_run = (now + timedelta(days=1)).replace(**anchored)

    if timezone is not None:
        return timezone.normalize(timezone.localize(next_run))
    return next_run


def build_trigger(frequency: Any, timezone, anchor_hour: int = 9) -> CronTrigger:
    """Cron trigger for a configuration frequency."""
    try:
        frequency = Frequency(frequency)
    except ValueError:
        frequency = Frequency.DAILY

    if frequency == Frequency.HOURLY:
        return CronTrigger(minute=0, timezone=timezone)
    if frequency == Frequency.WEEKLY:
        return CronTrigger(day_of_week="mon", hour=anchor_hour, minute=0, timezone=timezone)
    if frequency == Frequency.MONTHLY:
        return CronTrigger(day=1, hour=anchor_hour, minute=0, timezone=timezone)
    return CronTrigger(hour=anchor_hour, minute=0, timezone=timezone)


class DiscoveryScheduler:
    """
    Schedules and dispatches discovery runs.

    Args:
        provider: Configuration provider (``get_configuration``,
            ``list_active_configurations``, ``is_user_active``,
            ``update_run_times``)
        aggregator: Object with ``run(config, job_id) -> RunResult``
        registry: Job registry shared with the HTTP interface
        app_config: Application configuration
        clock: Returns the current time; naive readings are taken as local
            to the scheduler timezone. Defaults to the timezone-aware now.
    """

    def __init__(
        self,
        provider,
        aggregator,
        registry: JobRegistry,
        app_config: Optional[AppConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = app_config or default_config
        self.provider = provider
        self.aggregator = aggregator
        self.registry = registry
        self.timezone = pytz.timezone(self.config.scheduler_timezone)
        self._clock = clock or (lambda: datetime.now(self.timezone))
        self.anchor_hour = self.config.schedule_anchor_hour

        # Configure scheduler
        jobstores = {
            "default": MemoryJobStore()
        }
        executors = {
            "default": APThreadPoolExecutor(self.config.max_concurrent_runs)
        }
        job_defaults = {
            "coalesce": True,
            "max_instances": 1,
        }

        self.scheduler = BackgroundScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone=self.timezone,
        )
        self.scheduler.add_listener(self._job_execution_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

        self.run_executor = ThreadPoolExecutor(
            max_workers=self.config.max_concurrent_runs, thread_name_prefix="discovery-run"
        )

        self._lock = threading.Lock()
        self._stopped = False
        self.stats = {
            "total_runs": 0,
            "failed_runs": 0,
            "skipped_runs": 0,
            "last_run_time": None,
            "scheduler_status": "initialized",
        }

    # Scheduling

    def schedule(self, config: Configuration) -> None:
        """
        Install or replace the recurring job for a configuration.

        Inactive configurations are unscheduled instead.

        Raises:
            ConfigurationValidationError: If the configuration is invalid
        """
        if not config.is_active:
            self.unschedule(config.id)
            return

        errors = config.validate()
        if errors:
            raise ConfigurationValidationError(errors)

        self.scheduler.add_job(
            func=self._run_scheduled,
            args=[config.id],
            trigger=build_trigger(config.frequency, self.timezone, self.anchor_hour),
            id=str(config.id),
            name=f"Discovery: {config.name}",
            replace_existing=True,
        )

        next_run = self._next_run(config)
        self.provider.update_run_times(config.id, config.last_run, next_run)
        logger.info(f"Scheduled configuration {config.id} ({config.frequency_enum.value}), next run {next_run}")

    def unschedule(self, config_id: str) -> None:
        try:
            self.scheduler.remove_job(str(config_id))
            logger.info(f"Unscheduled configuration {config_id}")
        except JobLookupError:
            pass

    def load_active_configurations(self) -> int:
        """
        Schedule every active configuration.

        Returns:
            int: Number of configurations scheduled
        """
        scheduled = 0
        for config in self.provider.list_active_configurations():
            try:
                self.schedule(config)
                scheduled += 1
            except Exception as e:
                logger.error(f"Failed to schedule configuration {config.id}: {str(e)}")

        logger.info(f"Loaded {scheduled} active configurations")
        return scheduled

    def add_maintenance_job(self, name: str, func: Callable[[], Any], **interval) -> None:
        """Run a housekeeping task on an interval (``minutes=5`` and the like)."""
        self.scheduler.add_job(
            func=func,
            trigger="interval",
            id=f"{MAINTENANCE_PREFIX}{name}",
            name=name,
            replace_existing=True,
            **interval,
        )

    def get_scheduled_jobs(self) -> List[Dict[str, Any]]:
        jobs = []
        for job in self.scheduler.get_jobs():
            if job.id.startswith(MAINTENANCE_PREFIX):
                continue
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "configId": job.id,
                "name": job.name,
                "nextRun": next_run.isoformat() if next_run else None,
            })
        return jobs

    # Running

    def _now(self) -> datetime:
        """Current time in the scheduler timezone."""
        now = self._clock()
        if now.tzinfo is None:
            return self.timezone.localize(now)
        return now.astimezone(self.timezone)

    def _next_run(self, config: Configuration) -> datetime:
        return calculate_next_run(config.frequency, self._now(), self.anchor_hour, self.timezone)

    def _new_job_id(self, config_id: str) -> str:
        return f"config-{config_id}-{int(self._now().timestamp() * 1000)}"

    def _create_job(self, config: Configuration) -> Job:
        base_id = self._new_job_id(config.id)
        meta = {"config_id": config.id, "user_id": config.user_id, "config_name": config.name}

        job_id = base_id
        suffix = 1
        while True:
            try:
                return self.registry.create(job_id, meta)
            except DuplicateJobError:
                job_id = f"{base_id}-{suffix}"
                suffix += 1

    def run_now(self, config_id: str) -> Dict[str, Any]:
        """
        Start a run immediately without waiting for it to finish.

        Returns:
            Dict: ``jobId`` and ``configSummary``

        Raises:
            SchedulerStoppedError: The scheduler has been stopped
            ConfigurationNotFoundError: Unknown configuration
            ConfigurationValidationError: Invalid configuration
            InactiveUserError: The owner is not active
        """
        if self._stopped:
            raise SchedulerStoppedError("Scheduler is stopped; no new runs are accepted")

        config = self.provider.get_configuration(config_id)
        if config is None:
            raise ConfigurationNotFoundError(f"Configuration not found: {config_id}")

        errors = config.validate()
        if errors:
            raise ConfigurationValidationError(errors)

        if not self.provider.is_user_active(config.user_id):
            raise InactiveUserError(f"User {config.user_id} is not active")

        job = self._create_job(config)
        try:
            future = self.run_executor.submit(self._execute_run, config, job.id)
        except RuntimeError as e:
            # Executor shut down between the check above and the submit
            self.registry.fail(job.id, f"Run could not be started: {str(e)}")
            raise SchedulerStoppedError("Scheduler is stopped; no new runs are accepted") from e
        future.add_done_callback(self._log_run_outcome)

        logger.info(f"Started manual run {job.id} for configuration {config.id}")
        return {"jobId": job.id, "configSummary": config.summary()}

    def _run_scheduled(self, config_id: str) -> None:
        """Entry point for fired cron triggers."""
        config = self.provider.get_configuration(config_id)
        if config is None or not config.is_active:
            logger.info(f"Configuration {config_id} is gone or inactive, unscheduling")
            self.unschedule(config_id)
            return

        if not self.provider.is_user_active(config.user_id):
            logger.info(f"Skipping scheduled run of {config_id}: user {config.user_id} is not active")
            with self._lock:
                self.stats["skipped_runs"] += 1
            return

        errors = config.validate()
        if errors:
            logger.warning(f"Skipping scheduled run of {config_id}: {'; '.join(errors)}")
            with self._lock:
                self.stats["skipped_runs"] += 1
            return

        job = self._create_job(config)
        self._execute_run(config, job.id)

    def _execute_run(self, config: Configuration, job_id: str) -> Optional[RunResult]:
        """
        Run the aggregator and record the run times whatever the outcome.
        """
        result = None
        started = self._now()
        try:
            result = self.aggregator.run(config, job_id)
            logger.info(
                f"Run {job_id} finished: {result.total_results} results, {result.saved_leads} leads saved"
            )
        except Exception as e:
            logger.error(f"Run {job_id} for configuration {config.id} failed: {str(e)}")
            with self._lock:
                self.stats["failed_runs"] += 1
        finally:
            with self._lock:
                self.stats["total_runs"] += 1
                self.stats["last_run_time"] = started.isoformat()
            self._record_run_times(config, started)

        return result

    def _record_run_times(self, config: Configuration, last_run: datetime) -> None:
        next_run = self._next_run(config)
        try:
            self.provider.update_run_times(config.id, last_run, next_run)
        except Exception as e:
            logger.error(f"Failed to update run times for configuration {config.id}: {str(e)}")

    def _log_run_outcome(self, future: Future) -> None:
        if future.cancelled():
            logger.warning("Discovery run was cancelled before it started")
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Unexpected error in discovery run: {str(error)}")

    def _job_execution_listener(self, event) -> None:
        """
        Listen for job execution events.

        Args:
            event: Job execution event
        """
        if getattr(event, "exception", None):
            logger.error(f"Scheduled job {event.job_id} failed with exception: {event.exception}")
        else:
            logger.debug(f"Scheduled job {event.job_id} executed successfully")

    # Lifecycle

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            self.stats["scheduler_status"] = "running"
            logger.info("Discovery scheduler started")

    def stop(self, wait: bool = True) -> None:
        """Stop the cron scheduler, then the run executor."""
        if self._stopped:
            return
        self._stopped = True

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
        self.run_executor.shutdown(wait=wait)
        self.stats["scheduler_status"] = "stopped"
        logger.info("Discovery scheduler stopped")

    def get_scheduler_status(self) -> Dict[str, Any]:
        """
        Get the current status of the scheduler.

        Returns:
            Dict: Scheduler status information
        """
        with self._lock:
            status = dict(self.stats)
        if self.scheduler.running:
            status["scheduler_status"] = "running"
        status["scheduled_jobs"] = len(self.get_scheduled_jobs())
        return status
