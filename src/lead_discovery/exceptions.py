#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Exception hierarchy for the lead discovery pipeline.
"""

from typing import List, Optional


class LeadDiscoveryError(Exception):
    """Base exception for all pipeline errors."""
    pass


class ConfigurationError(LeadDiscoveryError):
    """Base exception for discovery configuration problems."""
    pass


class ConfigurationValidationError(ConfigurationError):
    """Raised when a configuration is rejected before a job is created."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


class ConfigurationNotFoundError(ConfigurationError):
    """Raised when a configuration id does not resolve."""
    pass


class InactiveUserError(LeadDiscoveryError):
    """Raised when the owner of a configuration is no longer active."""
    pass


class SourceError(LeadDiscoveryError):
    """Exception for errors with a single discovery source."""
    pass


class SourceTimeoutError(SourceError):
    """Raised when a source query exceeds its time budget."""
    pass


class RequestFailedError(LeadDiscoveryError):
    """Base exception for failed outbound requests."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class BlockedError(RequestFailedError):
    """Raised on a block signal (HTTP 403 or 429)."""
    pass


class TransientRequestError(RequestFailedError):
    """Raised on timeouts, connection errors and 5xx responses."""
    pass


class SinkError(LeadDiscoveryError):
    """Raised when the persistence sink rejects a write."""
    pass


class DuplicateJobError(LeadDiscoveryError):
    """Raised when a job id is already live in the registry."""
    pass


class SchedulerStoppedError(LeadDiscoveryError):
    """Raised when a run is requested after the scheduler has shut down."""
    pass
