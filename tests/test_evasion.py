#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for the evasion layer: retries, throttling, proxies, sessions and
header generation.
"""

import random
from unittest.mock import MagicMock

import pytest
import requests

from lead_discovery.evasion import EvasionLayer, ProxyPool, RetryPolicy, SessionPool
from lead_discovery.evasion.identity import USER_AGENTS, build_headers
from lead_discovery.exceptions import BlockedError, RequestFailedError, TransientRequestError

URL = "https://www.example-news.com/articles/hotel"


def response(status_code: int, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    return resp


@pytest.fixture
def mock_session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def layer(test_config, mock_session):
    return EvasionLayer(
        app_config=test_config,
        session_pool=SessionPool(session_factory=lambda: mock_session),
        sleep=lambda seconds: None,
    )


class TestEvasionLayerRetries:
    """Tests for retry behaviour of EvasionLayer.request."""

    def test_blocked_twice_then_success(self, layer, mock_session):
        mock_session.get.side_effect = [response(403), response(429), response(200, "ok")]

        result = layer.request(URL)

        assert result.text == "ok"
        assert layer.attempts_for(URL) == 3
        stats = layer.get_stats()
        assert stats["totalRequests"] == 3
        assert stats["blockedRequests"] == 2
        assert stats["successRate"] == "33.33%"

    def test_gives_up_after_max_attempts(self, layer, mock_session):
        mock_session.get.return_value = response(403)

        with pytest.raises(BlockedError) as exc_info:
            layer.request(URL)

        assert exc_info.value.status_code == 403
        assert layer.attempts_for(URL) == 3

    def test_client_error_is_not_retried(self, layer, mock_session):
        mock_session.get.return_value = response(404)

        with pytest.raises(RequestFailedError) as exc_info:
            layer.request(URL)

        assert not isinstance(exc_info.value, (BlockedError, TransientRequestError))
        assert layer.attempts_for(URL) == 1

    def test_connection_error_is_retried(self, layer, mock_session):
        mock_session.get.side_effect = [requests.ConnectionError("reset"), response(200, "ok")]

        assert layer.request(URL).text == "ok"
        assert layer.attempts_for(URL) == 2

    def test_custom_headers_are_merged(self, layer, mock_session):
        mock_session.get.return_value = response(200)

        layer.request(URL, params={"q": "hotel"}, headers={"X-Api-Key": "secret"})

        kwargs = mock_session.get.call_args.kwargs
        assert kwargs["params"] == {"q": "hotel"}
        assert kwargs["headers"]["X-Api-Key"] == "secret"
        assert kwargs["headers"]["User-Agent"] == USER_AGENTS[0]

    def test_close_is_idempotent(self, layer, mock_session):
        mock_session.get.return_value = response(200)
        layer.request(URL)

        layer.close()
        layer.close()

        assert layer.sessions.closed
        assert len(layer.sessions) == 0


class TestThrottling:
    """Tests for per-domain throttling."""

    def test_rate_limit_penalty(self, test_config, mock_session):
        test_config.anti_detection_enabled = True
        sleeps = []
        layer = EvasionLayer(
            app_config=test_config,
            session_pool=SessionPool(session_factory=lambda: mock_session),
            retry_policy=RetryPolicy(max_attempts=1, sleep=lambda s: None),
            clock=lambda: 1000.0,
            sleep=sleeps.append,
            rng=random.Random(0),
        )
        mock_session.get.side_effect = [response(429), response(200)]

        with pytest.raises(BlockedError):
            layer.request(URL)
        layer.request(URL)

        assert sleeps[-1] >= 30

    def test_same_domain_delay_is_longer(self, test_config):
        layer = EvasionLayer(app_config=test_config, rng=random.Random(0))
        base = 60.0 / test_config.scraping_rate_limit

        assert layer.calculate_delay(True) >= 2 * base
        assert layer.calculate_delay(False) < 1.5 * base


class TestRetryPolicy:
    """Tests for the RetryPolicy class."""

    def test_backoff_escalates_on_block(self):
        policy = RetryPolicy(base_delay=1.0, block_multiplier=5.0)

        assert policy.backoff(2, BlockedError("blocked")) == 10.0
        assert policy.backoff(2, TransientRequestError("timeout")) == 2.0

    def test_non_retryable_error_raised_immediately(self):
        calls = []

        def fail():
            calls.append(1)
            raise ValueError("bad payload")

        with pytest.raises(ValueError):
            RetryPolicy(sleep=lambda s: None).call(fail)
        assert len(calls) == 1

    def test_sleeps_between_attempts(self):
        sleeps = []
        outcomes = iter([TransientRequestError("a"), TransientRequestError("b"), "done"])

        def flaky():
            outcome = next(outcomes)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        assert RetryPolicy(base_delay=1.0, sleep=sleeps.append).call(flaky) == "done"
        assert sleeps == [1.0, 2.0]


class TestProxyPool:
    """Tests for the ProxyPool class."""

    def test_least_recently_used_rotation(self):
        now = iter(range(1, 100))
        pool = ProxyPool(["http://a:1", "http://b:1"], clock=lambda: next(now))

        first = pool.select()
        second = pool.select()
        third = pool.select()

        assert first.url != second.url
        assert third.url == first.url

    def test_unhealthy_proxies_are_skipped(self):
        pool = ProxyPool(["http://a:1"])
        proxy = pool.proxies[0]
        for _ in range(6):
            pool.record_failure(proxy)

        assert proxy.health == 40
        assert pool.select() is None
        assert pool.healthy_count() == 0

    def test_health_check(self):
        pool = ProxyPool(["http://good:1", "http://bad:1"])
        pool.proxies[0].health = 60

        def http_get(url, proxies, timeout):
            if "bad" in proxies["http"]:
                raise requests.ConnectionError("refused")
            return response(200)

        assert pool.health_check(http_get=http_get) == {"healthy": 2, "total": 2}
        assert pool.proxies[0].health == 70
        assert pool.proxies[1].health == 80
        assert (pool.proxies[0].successes, pool.proxies[0].failures) == (1, 0)
        assert (pool.proxies[1].successes, pool.proxies[1].failures) == (0, 1)

    def test_request_outcomes_are_counted(self):
        pool = ProxyPool(["http://a:1"])
        proxy = pool.proxies[0]

        pool.record_success(proxy)
        pool.record_success(proxy)
        pool.record_failure(proxy)
        pool.record_success(None)

        assert proxy.successes == 2
        assert proxy.failures == 1
        assert proxy.health == 90

    def test_health_at_threshold_is_unhealthy(self):
        pool = ProxyPool(["http://a:1"])
        proxy = pool.proxies[0]
        for _ in range(5):
            pool.record_failure(proxy)

        assert proxy.health == 50
        assert not proxy.healthy
        assert pool.select() is None

        pool.record_success(proxy)
        assert proxy.health == 55
        assert pool.select() is proxy

    def test_empty_pool(self):
        pool = ProxyPool([])
        assert pool.select() is None
        assert pool.health_check() == {"healthy": 0, "total": 0}


class TestSessionPool:
    """Tests for the SessionPool class."""

    def test_session_reused_until_limit(self):
        pool = SessionPool(max_requests=2, session_factory=MagicMock)

        first = pool.acquire("example.com")
        again = pool.acquire("example.com")
        third = pool.acquire("example.com")

        assert first is again
        assert third is not first
        first.session.close.assert_called_once()

    def test_cleanup_idle(self):
        now = [0.0]
        pool = SessionPool(ttl_seconds=60, session_factory=MagicMock, clock=lambda: now[0])
        pool.acquire("a.com")
        now[0] = 30.0
        pool.acquire("b.com")
        now[0] = 80.0

        assert pool.cleanup_idle() == 1
        assert len(pool) == 1


class TestHeaders:
    """Tests for browser header generation."""

    def test_headers_match_user_agent(self):
        iphone = next(ua for ua in USER_AGENTS if "iPhone" in ua)
        headers = build_headers(user_agent=iphone, rng=random.Random(3))

        assert headers["User-Agent"] == iphone
        assert headers["Sec-Ch-Ua-Mobile"] == "?1"
        assert headers["Sec-Ch-Ua-Platform"] == '"iOS"'
        assert headers["Referer"] == "https://www.google.com/"

    def test_random_user_agent_from_pool(self):
        headers = build_headers(referer="https://example.com/", rng=random.Random(7))

        assert headers["User-Agent"] in USER_AGENTS
        assert headers["Referer"] == "https://example.com/"
