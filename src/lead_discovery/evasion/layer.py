#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Evasion Layer

Wraps every outbound HTTP request with per-domain throttling, pooled
sessions, randomised browser headers, proxy rotation and retries.
"""

import random
import threading
import time
from collections import defaultdict
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse

import requests

from lead_discovery.config import AppConfig, config as default_config
from lead_discovery.evasion.identity import USER_AGENTS, build_headers
from lead_discovery.evasion.proxies import ProxyPool
from lead_discovery.evasion.retry import RetryPolicy
from lead_discovery.evasion.sessions import SessionPool
from lead_discovery.exceptions import BlockedError, RequestFailedError, TransientRequestError
from lead_discovery.utils.logger import get_logger

logger = get_logger(__name__)

SAME_DOMAIN_WINDOW = 5.0
RATE_LIMIT_PENALTY = 30.0
BLOCK_STATUS_CODES = (403, 429)


def extract_domain(url: str) -> str:
    return urlparse(url).hostname or "unknown"


class EvasionLayer:
    """
    Outbound request wrapper shared by every source.

    All collaborators (pools, retry policy, clock, sleep and random source)
    are injectable; by default they are built from the application config.
    """

    def __init__(
        self,
        app_config: Optional[AppConfig] = None,
        proxy_pool: Optional[ProxyPool] = None,
        session_pool: Optional[SessionPool] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.config = app_config or default_config
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()

        self.enabled = self.config.anti_detection_enabled
        self.rate_limit = max(1, self.config.scraping_rate_limit)
        self.default_timeout = self.config.scraping_timeout_seconds

        self.proxies = proxy_pool or ProxyPool(self.config.proxy_list, clock=clock)
        self.sessions = session_pool or SessionPool(
            ttl_seconds=self.config.session_ttl_minutes * 60, clock=clock
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.config.max_retry_attempts,
            base_delay=self.config.retry_base_delay_seconds,
            block_multiplier=self.config.block_backoff_multiplier,
            sleep=sleep,
        )

        self._lock = threading.Lock()
        self._domain_history: Dict[str, float] = {}
        self._last_request_time = 0.0
        self._attempts: Dict[str, int] = defaultdict(int)
        self.stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "blocked_requests": 0,
            "failed_requests": 0,
        }

    # Throttling

    def calculate_delay(self, same_domain: bool) -> float:
        """Randomised delay in seconds, longer for back-to-back hits on a domain."""
        base = 60.0 / self.rate_limit
        if same_domain:
            return base * (2 + self._rng.random())
        return base * (0.5 + self._rng.random())

    def _throttle(self, domain: str) -> None:
        if not self.enabled:
            return

        with self._lock:
            now = self._clock()
            last_domain = self._domain_history.get(domain, 0.0)
            penalty = max(0.0, last_domain - now)
            global_delay = self.calculate_delay(False)
            domain_delay = self.calculate_delay(now - last_domain < SAME_DOMAIN_WINDOW)
            required = max(global_delay, domain_delay)
            wait = max(0.0, required - (now - self._last_request_time)) + penalty

            # Reserve the slot before sleeping so concurrent callers queue behind it
            self._domain_history[domain] = now + wait
            self._last_request_time = now + wait

        if wait > 0:
            logger.debug(f"Throttling {domain}: waiting {wait:.1f}s")
            self._sleep(wait)

    # Requests

    def _headers_for(self, referer: Optional[str]) -> Dict[str, str]:
        if self.enabled:
            return build_headers(referer=referer, rng=self._rng)
        return {"User-Agent": USER_AGENTS[0]}

    def _on_failure(self, domain: str, proxy) -> None:
        self.proxies.record_failure(proxy)
        self.sessions.rotate(domain)

    def _attempt(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]],
        timeout: float,
    ) -> requests.Response:
        domain = extract_domain(url)
        self._throttle(domain)

        entry = self.sessions.acquire(domain)
        proxy = self.proxies.select()
        request_headers = self._headers_for(entry.last_url)
        request_headers.update(headers or {})

        with self._lock:
            self._attempts[url] += 1
            self.stats["total_requests"] += 1

        try:
            response = entry.session.get(
                url,
                params=params,
                headers=request_headers,
                proxies=proxy.as_requests_proxies() if proxy else None,
                timeout=timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            self._on_failure(domain, proxy)
            with self._lock:
                self.stats["failed_requests"] += 1
            raise TransientRequestError(f"Request to {url} failed: {str(e)}", url=url) from e
        except requests.RequestException as e:
            self._on_failure(domain, proxy)
            with self._lock:
                self.stats["failed_requests"] += 1
            raise RequestFailedError(f"Request to {url} failed: {str(e)}", url=url) from e

        status = response.status_code
        if status in BLOCK_STATUS_CODES:
            self._on_failure(domain, proxy)
            with self._lock:
                self.stats["blocked_requests"] += 1
                if status == 429:
                    self._domain_history[domain] = self._clock() + RATE_LIMIT_PENALTY
            logger.warning(f"Blocked by {domain} with HTTP {status}")
            raise BlockedError(f"HTTP {status} from {url}", url=url, status_code=status)

        if status >= 400:
            self._on_failure(domain, proxy)
            with self._lock:
                self.stats["failed_requests"] += 1
            error_cls = TransientRequestError if status >= 500 else RequestFailedError
            raise error_cls(f"HTTP {status} from {url}", url=url, status_code=status)

        self.proxies.record_success(proxy)
        entry.last_url = url
        with self._lock:
            self.stats["successful_requests"] += 1
        return response

    def request(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """
        Perform a GET through the evasion machinery.

        Args:
            url: Target URL
            params: Query parameters
            headers: Extra headers merged over the randomised ones
            timeout: Per-attempt timeout in seconds

        Returns:
            requests.Response: Successful response

        Raises:
            BlockedError: Still blocked after the last attempt
            TransientRequestError: Still failing after the last attempt
            RequestFailedError: Non-retryable failure
        """
        return self.retry_policy.call(
            self._attempt, url, params, headers,
            timeout if timeout is not None else self.default_timeout,
        )

    def attempts_for(self, url: str) -> int:
        """Number of attempts made so far against ``url``."""
        with self._lock:
            return self._attempts.get(url, 0)

    # Maintenance

    def health_check(self) -> Dict[str, int]:
        return self.proxies.health_check()

    def cleanup_idle_sessions(self) -> int:
        return self.sessions.cleanup_idle()

    def get_stats(self) -> Dict[str, Any]:
        """
        Get anti-detection statistics.

        Returns:
            Dict: Request counters, rates, sessions and proxy health
        """
        with self._lock:
            total = self.stats["total_requests"]
            successful = self.stats["successful_requests"]
            blocked = self.stats["blocked_requests"]

        return {
            "totalRequests": total,
            "successfulRequests": successful,
            "blockedRequests": blocked,
            "successRate": f"{(successful / total * 100) if total else 0:.2f}%",
            "blockRate": f"{(blocked / total * 100) if total else 0:.2f}%",
            "activeSessions": len(self.sessions),
            "healthyProxies": self.proxies.healthy_count(),
            "totalProxies": len(self.proxies),
        }

    def close(self) -> None:
        if self.sessions.closed:
            return
        self.sessions.close()
        logger.info("Evasion layer sessions closed")
