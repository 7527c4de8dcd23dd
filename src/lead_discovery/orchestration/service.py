#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Lead Discovery Service

Builds and owns every pipeline component: storage, evasion layer, source
catalog, job registry, aggregator and scheduler. Handles start-up,
housekeeping jobs and graceful shutdown.
"""

import datetime
import signal
import threading
from enum import Enum
from typing import Any, Dict, List, Optional

import psutil

from lead_discovery.config import AppConfig, config
from lead_discovery.evasion.layer import EvasionLayer
from lead_discovery.orchestration.aggregator import SourceAggregator
from lead_discovery.orchestration.job_registry import JobRegistry
from lead_discovery.scheduler.scheduler import DiscoveryScheduler
from lead_discovery.sources.base import BaseSource
from lead_discovery.sources.catalog import build_catalog
from lead_discovery.storage.store import SqlLeadStore
from lead_discovery.utils.logger import get_logger
from lead_discovery.verification.verifier import LeadVerifier

logger = get_logger(__name__)

PROXY_HEALTH_INTERVAL_MINUTES = 5
SESSION_CLEANUP_INTERVAL_MINUTES = 10
REGISTRY_EVICTION_INTERVAL_MINUTES = 1


class ServiceStatus(str, Enum):
    """Lifecycle state of the discovery service."""
    INITIALIZED = "initialized"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


class LeadDiscoveryService:
    """
    Central wiring for the discovery pipeline.

    Components may be passed in (tests do this); anything left out is built
    from the application configuration by ``initialize_components``.
    """

    def __init__(
        self,
        app_config: Optional[AppConfig] = None,
        store=None,
        evasion: Optional[EvasionLayer] = None,
        sources: Optional[List[BaseSource]] = None,
        registry: Optional[JobRegistry] = None,
    ):
        """
        Initialize the discovery service.

        Args:
            app_config: Application configuration (or None to use default)
            store: Configuration provider and lead sink
            evasion: Outbound request layer
            sources: Source catalog in priority order
            registry: Job registry
        """
        self.config = app_config or config
        self.status = ServiceStatus.INITIALIZED

        # Component references
        self.store = store
        self.evasion = evasion
        self.sources = sources
        self.registry = registry
        self.verifier: Optional[LeadVerifier] = None
        self.aggregator: Optional[SourceAggregator] = None
        self.scheduler: Optional[DiscoveryScheduler] = None

        self.start_time: Optional[datetime.datetime] = None
        self._shutdown_event = threading.Event()
        self._lock = threading.Lock()

    def register_signal_handlers(self) -> None:
        """Register signal handlers for graceful shutdown."""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame) -> None:
        """
        Signal handler for graceful shutdown.

        Args:
            signum: Signal number
            frame: Current stack frame
        """
        logger.info(f"Received signal {signum}, initiating graceful shutdown")
        self.shutdown_gracefully()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_event.is_set()

    def initialize_components(self) -> bool:
        """
        Initialize and validate all required components.

        Returns:
            bool: True if initialization was successful, False otherwise
        """
        try:
            logger.info("Initializing system components")
            self.status = ServiceStatus.STARTING

            for error in self.config.validate():
                logger.warning(f"Configuration problem: {error}")

            if self.store is None:
                logger.info("Initializing storage")
                self.store = SqlLeadStore(self.config.db_url)

            if self.evasion is None:
                logger.info("Initializing evasion layer")
                self.evasion = EvasionLayer(self.config)

            if self.sources is None:
                logger.info("Building source catalog")
                self.sources = build_catalog(self.config, self.evasion)

            if self.registry is None:
                self.registry = JobRegistry(retention_seconds=self.config.job_retention_seconds)

            self.verifier = LeadVerifier()
            self.aggregator = SourceAggregator(
                sources=self.sources,
                registry=self.registry,
                sink=self.store,
                evasion=self.evasion,
                verifier=self.verifier,
                app_config=self.config,
            )

            logger.info("Initializing discovery scheduler")
            self.scheduler = DiscoveryScheduler(
                provider=self.store,
                aggregator=self.aggregator,
                registry=self.registry,
                app_config=self.config,
            )
            self._add_maintenance_jobs()

            self.status = ServiceStatus.INITIALIZED
            logger.info("Component initialization completed successfully")
            return True

        except Exception as e:
            logger.error(f"Error initializing components: {str(e)}", exc_info=True)
            self.status = ServiceStatus.ERROR
            return False

    def _add_maintenance_jobs(self) -> None:
        self.scheduler.add_maintenance_job(
            "proxy_health", self.evasion.health_check, minutes=PROXY_HEALTH_INTERVAL_MINUTES
        )
        self.scheduler.add_maintenance_job(
            "session_cleanup", self.evasion.cleanup_idle_sessions, minutes=SESSION_CLEANUP_INTERVAL_MINUTES
        )
        self.scheduler.add_maintenance_job(
            "registry_eviction", self.registry.evict_expired, minutes=REGISTRY_EVICTION_INTERVAL_MINUTES
        )

    def start(self, load_schedules: bool = True) -> None:
        """Start the scheduler and install every active configuration."""
        if self.status == ServiceStatus.RUNNING:
            logger.warning("Discovery service is already running")
            return

        self.scheduler.start()
        if load_schedules:
            self.scheduler.load_active_configurations()

        self.start_time = datetime.datetime.now()
        self.status = ServiceStatus.RUNNING
        logger.info("Discovery service started")

    def shutdown_gracefully(self) -> bool:
        """
        Properly terminate all components: the scheduler first, then the
        evasion layer sessions.

        Returns:
            bool: True if shutdown was successful, False otherwise
        """
        with self._lock:
            if self.status == ServiceStatus.STOPPED:
                logger.info("Discovery service already stopped")
                return True
            self.status = ServiceStatus.STOPPING

        logger.info("Initiating graceful shutdown")
        try:
            if self.scheduler:
                logger.info("Stopping discovery scheduler")
                self.scheduler.stop(wait=True)

            if self.evasion:
                logger.info("Closing evasion layer sessions")
                self.evasion.close()

            self.status = ServiceStatus.STOPPED
            logger.info("Discovery service shutdown completed successfully")
            return True

        except Exception as e:
            logger.error(f"Error during shutdown: {str(e)}", exc_info=True)
            self.status = ServiceStatus.ERROR
            return False
        finally:
            self._shutdown_event.set()

    def get_system_metrics(self) -> Dict[str, Any]:
        """
        Retrieve current status and resource usage.

        Returns:
            Dict[str, Any]: Service metrics
        """
        uptime = (
            (datetime.datetime.now() - self.start_time).total_seconds() if self.start_time else 0
        )
        return {
            "service_status": self.status.value,
            "uptime_seconds": uptime,
            "cpu_usage": psutil.cpu_percent(interval=None),
            "memory_usage": psutil.virtual_memory().percent,
            "active_jobs": len(self.registry) if self.registry else 0,
            "verification": self.verifier.get_verification_stats() if self.verifier else {},
            "current_time": datetime.datetime.now().isoformat(),
        }
