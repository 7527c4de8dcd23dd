#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Session Pool - per-domain ``requests.Session`` objects with limited reuse.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import requests

from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

MAX_REQUESTS_PER_SESSION = 10


@dataclass
class SessionEntry:
    """A pooled session and its usage counters."""
    session: requests.Session
    created: float
    last_used: float
    request_count: int = 0
    last_url: Optional[str] = None


class SessionPool:
    """
    Keeps one session per domain.

    A session is replaced after ``max_requests`` uses or on rotation, and
    idle sessions are evicted by ``cleanup_idle``.
    """

    def __init__(
        self,
        ttl_seconds: float = 30 * 60,
        max_requests: int = MAX_REQUESTS_PER_SESSION,
        session_factory: Callable[[], requests.Session] = requests.Session,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_requests = max_requests
        self._session_factory = session_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, SessionEntry] = {}
        self._closed = False

    def _new_entry(self) -> SessionEntry:
        now = self._clock()
        return SessionEntry(session=self._session_factory(), created=now, last_used=now)

    def acquire(self, domain: str) -> SessionEntry:
        """
        Get the session for a domain, replacing it once it is used up.

        Args:
            domain: Host name the request targets

        Returns:
            SessionEntry: Session entry with its request count incremented
        """
        with self._lock:
            entry = self._sessions.get(domain)
            if entry is None or entry.request_count >= self.max_requests:
                if entry is not None:
                    entry.session.close()
                entry = self._new_entry()
                self._sessions[domain] = entry

            entry.request_count += 1
            entry.last_used = self._clock()
            return entry

    def rotate(self, domain: str) -> None:
        """Drop the session for a domain so the next request starts fresh."""
        with self._lock:
            entry = self._sessions.pop(domain, None)
        if entry is not None:
            entry.session.close()
            logger.debug(f"Rotated session for {domain}")

    def cleanup_idle(self) -> int:
        """
        Close sessions unused for longer than the TTL.

        Returns:
            int: Number of sessions removed
        """
        cutoff = self._clock() - self.ttl_seconds
        with self._lock:
            expired = [d for d, e in self._sessions.items() if e.last_used < cutoff]
            entries = [self._sessions.pop(d) for d in expired]

        for entry in entries:
            entry.session.close()

        if entries:
            logger.info(f"Cleaned up {len(entries)} idle sessions")
        return len(entries)

    def close(self) -> None:
        with self._lock:
            entries = list(self._sessions.values())
            self._sessions.clear()
            self._closed = True

        for entry in entries:
            entry.session.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
