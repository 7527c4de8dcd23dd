#!/usr/bin/env python3
"""
HTTP API for the lead discovery pipeline.

Exposes run-now triggers, job progress polling, per-user job listings,
the scheduled job list and a health check.
"""

import time
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security.api_key import APIKeyHeader
from pydantic import BaseModel

from lead_discovery import __version__
from lead_discovery.config import config
from lead_discovery.exceptions import (
    ConfigurationNotFoundError,
    ConfigurationValidationError,
    InactiveUserError,
    SchedulerStoppedError,
)
from lead_discovery.orchestration.service import LeadDiscoveryService
from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

# API Key authentication setup
API_KEY_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)

# Initialize FastAPI application
app = FastAPI(
    title="Lead Discovery API",
    description="Run and monitor keyword-driven lead discovery jobs",
    version=__version__,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


#----------------
# Pydantic Models
#----------------

class ConfigSummary(BaseModel):
    id: str
    name: str


class RunNowResponse(BaseModel):
    jobId: str
    configSummary: ConfigSummary


class JobProgress(BaseModel):
    stage: str
    progress: int
    total: int
    percentage: int
    message: str


class JobSummary(BaseModel):
    jobId: str
    configId: str
    configName: str
    progress: JobProgress
    startTime: str
    completed: bool
    error: Optional[str] = None


class ScheduledJob(BaseModel):
    configId: str
    name: str
    nextRun: Optional[str] = None


class HealthStatus(BaseModel):
    status: str
    version: str
    uptime: float
    timestamp: datetime
    components: Dict[str, Dict[str, Any]]


#---------------------
# Dependency Injection
#---------------------

@lru_cache
def get_service() -> LeadDiscoveryService:
    """Get or create the discovery service."""
    service = LeadDiscoveryService()
    if not service.initialize_components():
        raise RuntimeError("Failed to initialize discovery service")
    return service


def get_start_time():
    """Get the server start time."""
    if not hasattr(get_start_time, "start_time"):
        get_start_time.start_time = time.time()
    return get_start_time.start_time


async def get_api_key(
    api_key_header: Optional[str] = Depends(api_key_header),
) -> Optional[str]:
    """Validate API key from request header. No keys configured disables the check."""
    valid_api_keys = config.api_keys
    if not valid_api_keys:
        return None

    if api_key_header is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API Key header is missing",
        )

    if api_key_header not in valid_api_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API Key",
        )

    return api_key_header


#----------
# Endpoints
#----------

@app.get("/api/health", response_model=HealthStatus)
async def health_check(service: LeadDiscoveryService = Depends(get_service)):
    """
    Health check with scheduler status and anti-detection statistics.
    Does not require authentication for monitoring purposes.
    """
    scheduler_status = service.scheduler.get_scheduler_status()
    healthy = scheduler_status.get("scheduler_status") != "stopped"

    return HealthStatus(
        status="operational" if healthy else "degraded",
        version=__version__,
        uptime=time.time() - get_start_time(),
        timestamp=datetime.now(),
        components={
            "scheduler": scheduler_status,
            "antiDetection": service.evasion.get_stats() if service.evasion else {},
            "system": service.get_system_metrics(),
        },
    )


@app.post(
    "/api/scraping/configs/{config_id}/run",
    response_model=RunNowResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def run_configuration(
    config_id: str,
    api_key: Optional[str] = Depends(get_api_key),
    service: LeadDiscoveryService = Depends(get_service),
):
    """
    Start a discovery run immediately. Returns before the run completes;
    poll the progress endpoint with the returned job id.
    """
    try:
        return service.scheduler.run_now(config_id)
    except ConfigurationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Configuration {config_id} not found",
        )
    except ConfigurationValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid configuration", "errors": e.errors},
        )
    except InactiveUserError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(e),
        )
    except SchedulerStoppedError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )


@app.get("/api/scraping/jobs/{job_id}/progress", response_model=JobProgress)
async def get_job_progress(
    job_id: str,
    api_key: Optional[str] = Depends(get_api_key),
    service: LeadDiscoveryService = Depends(get_service),
):
    """Current stage and percentage of a job."""
    progress = service.registry.get(job_id)
    if progress is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )
    return progress


@app.get("/api/scraping/users/{user_id}/jobs", response_model=List[JobSummary])
async def get_user_jobs(
    user_id: str,
    api_key: Optional[str] = Depends(get_api_key),
    service: LeadDiscoveryService = Depends(get_service),
):
    """Jobs of a user that are still held by the registry."""
    return service.registry.list_by_user(user_id)


@app.get("/api/scraping/scheduled", response_model=List[ScheduledJob])
async def get_scheduled_jobs(
    api_key: Optional[str] = Depends(get_api_key),
    service: LeadDiscoveryService = Depends(get_service),
):
    """Configurations with a recurring schedule and their next run time."""
    return service.scheduler.get_scheduled_jobs()
