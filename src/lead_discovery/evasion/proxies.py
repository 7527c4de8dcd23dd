#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Proxy Pool - health-scored proxy rotation.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from lead_discovery.utils.logger import get_logger, log_sensitive

logger = get_logger(__name__)

HEALTH_CHECK_URL = "https://httpbin.org/ip"
HEALTH_CHECK_TIMEOUT = 5
MAX_HEALTH = 100
HEALTHY_THRESHOLD = 50


@dataclass
class ProxyRecord:
    """A configured proxy, its health score and its request tallies."""
    url: str
    health: int = MAX_HEALTH
    last_used: float = 0.0
    last_failure: Optional[float] = None
    response_time: Optional[float] = None
    successes: int = 0
    failures: int = 0

    @property
    def healthy(self) -> bool:
        return self.health > HEALTHY_THRESHOLD

    def as_requests_proxies(self) -> Dict[str, str]:
        return {"http": self.url, "https": self.url}


class ProxyPool:
    """
    Rotates through configured proxies, preferring the least recently used
    healthy one.
    """

    def __init__(self, proxy_urls: List[str], clock: Callable[[], float] = time.time):
        self._lock = threading.Lock()
        self._clock = clock
        self.proxies = [ProxyRecord(url=url) for url in proxy_urls if url]
        if self.proxies:
            logger.info(f"Initialized proxy pool with {len(self.proxies)} proxies")

    def __len__(self) -> int:
        return len(self.proxies)

    def select(self) -> Optional[ProxyRecord]:
        """
        Pick the least recently used healthy proxy.

        Returns:
            Optional[ProxyRecord]: Proxy to use, or None when none are healthy
        """
        with self._lock:
            healthy = [p for p in self.proxies if p.healthy]
            if not healthy:
                return None
            proxy = min(healthy, key=lambda p: p.last_used)
            proxy.last_used = self._clock()
            return proxy

    def record_success(self, proxy: Optional[ProxyRecord]) -> None:
        if proxy is None:
            return
        with self._lock:
            proxy.health = min(MAX_HEALTH, proxy.health + 5)
            proxy.successes += 1

    def record_failure(self, proxy: Optional[ProxyRecord]) -> None:
        if proxy is None:
            return
        with self._lock:
            proxy.health = max(0, proxy.health - 10)
            proxy.failures += 1
            proxy.last_failure = self._clock()

    def health_check(self, http_get: Callable[..., Any] = requests.get) -> Dict[str, int]:
        """
        Check every proxy and adjust its health.

        Args:
            http_get: Callable with the ``requests.get`` signature

        Returns:
            Dict: Number of healthy and total proxies after the check
        """
        for proxy in list(self.proxies):
            started = self._clock()
            try:
                response = http_get(
                    HEALTH_CHECK_URL,
                    proxies=proxy.as_requests_proxies(),
                    timeout=HEALTH_CHECK_TIMEOUT,
                )
                response.raise_for_status()
                with self._lock:
                    proxy.health = min(MAX_HEALTH, proxy.health + 10)
                    proxy.successes += 1
                    proxy.response_time = self._clock() - started
            except requests.RequestException as e:
                with self._lock:
                    proxy.health = max(0, proxy.health - 20)
                    proxy.failures += 1
                    proxy.last_failure = self._clock()
                log_sensitive(
                    logger, logging.WARNING,
                    f"Proxy {proxy.url} failed health check: {str(e)}",
                    proxy=proxy.url,
                )

        stats = {"healthy": self.healthy_count(), "total": len(self.proxies)}
        logger.debug(f"Proxy health check: {stats['healthy']}/{stats['total']} healthy")
        return stats

    def healthy_count(self) -> int:
        with self._lock:
            return sum(1 for p in self.proxies if p.healthy)
