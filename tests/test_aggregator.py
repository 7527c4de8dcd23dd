#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for the source aggregator.
"""

import threading
from unittest.mock import MagicMock

import pytest
import requests

from conftest import SEARCH_PAGE, FakeStore, StaticSource, make_candidate
from lead_discovery.evasion import EvasionLayer, SessionPool
from lead_discovery.exceptions import BlockedError, SinkError
from lead_discovery.models.lead import ExtractedFields, Lead, SourceKind
from lead_discovery.orchestration.aggregator import (
    SourceAggregator,
    calculate_data_completeness,
    deduplicate_candidates,
    extract_page_summary,
    group_sources,
)
from lead_discovery.orchestration.job_registry import JobRegistry
from lead_discovery.sources.web_sources import ScrapedSource

META = {"config_id": "cfg-1", "user_id": "user-1"}


class RecordingRegistry(JobRegistry):
    """Registry that records every progress snapshot after an update."""

    def __init__(self):
        super().__init__()
        self.history = []
        self.snapshots = []

    def update(self, job_id, **kwargs):
        job = super().update(job_id, **kwargs)
        progress = self.get(job_id)
        if progress is not None:
            self.history.append((progress["stage"], progress["percentage"]))
            self.snapshots.append(progress)
        return job


def api_candidate(url, **kwargs):
    return make_candidate(url, kind=SourceKind.API, source="NewsAPI", **kwargs)


@pytest.fixture
def registry():
    return RecordingRegistry()


def build_aggregator(sources, registry, sink, test_config, evasion=None):
    return SourceAggregator(sources=sources, registry=registry, sink=sink,
                            evasion=evasion, app_config=test_config)


class TestHelpers:
    """Tests for aggregator helper functions."""

    def test_deduplicate_first_wins(self):
        api = api_candidate("https://news.example.com/a")
        scraped = make_candidate("https://news.example.com/a")
        other = make_candidate("https://news.example.com/b")

        unique, invalid = deduplicate_candidates([api, scraped, other, make_candidate("")])

        assert unique == [api, other]
        assert unique[0].verified is True
        assert invalid == 1

    def test_extract_page_summary(self):
        meta = '<meta name="description" content="A 300-room resort is planned for the waterfront district.">'
        assert extract_page_summary(f"<html><head>{meta}</head></html>").startswith("A 300-room resort")

        paragraphs = "<p>Short</p><p>The developer filed plans for a twelve storey hotel near the airport.</p>"
        assert extract_page_summary(paragraphs).startswith("The developer filed plans")

        assert extract_page_summary("<p>tiny</p>") is None

    def test_group_sources(self):
        sources = [
            StaticSource("newsapi", kind=SourceKind.API),
            StaticSource("bing", kind=SourceKind.API),
            StaticSource("reuters"),
            StaticSource("wsj"),
            StaticSource("enr", kind=SourceKind.INDUSTRY),
            StaticSource("rss_enr", kind=SourceKind.RSS),
        ]

        groups = group_sources(sources)

        assert [name for name, _ in groups] == [
            "Newsapi", "Bing", "web search engines", "industry sources", "RSS feeds",
        ]
        assert len(groups[2][1]) == 2

    def test_data_completeness(self):
        leads = [
            Lead(title="a", url="https://x.com/a", fields=ExtractedFields(company="Acme")),
            Lead(title="b", url="https://x.com/b"),
        ]

        completeness = calculate_data_completeness(leads)

        assert completeness["company"] == 50
        assert completeness["url"] == 100
        assert completeness["budget"] == 0
        assert calculate_data_completeness([])["overall"] == 0


class TestSourceAggregator:
    """Tests for the SourceAggregator class."""

    def test_run_happy_path(self, registry, fake_store, sample_configuration, test_config):
        sources = [
            StaticSource("newsapi", [api_candidate(
                "https://news.example.com/hilton",
                title="Hilton Worldwide announces $120 million hotel construction in Miami, FL with 250 rooms",
            )], kind=SourceKind.API),
            StaticSource("reuters", [
                make_candidate("https://news.example.com/hilton"),
                make_candidate("https://news.example.com/marriott", title="Marriott plans hotel construction"),
            ]),
        ]
        registry.create("job-1", META)

        result = build_aggregator(sources, registry, fake_store, test_config).run(sample_configuration, "job-1")

        assert result.total_results == 2
        assert result.saved_leads == 2
        assert len(fake_store.saved["user-1"]) == 2
        assert result.sources == ["newsapi", "reuters"]
        assert result.errors == []

        top = result.leads[0]
        assert top.verified_source is True
        assert top.confidence == 100
        assert top.description.startswith("Hilton Worldwide is developing a hotel")

        assert result.stats["sourceCounts"] == {"newsapi": 1, "reuters": 2}
        assert result.stats["urlValidation"] == {"total": 3, "valid": 3, "rate": 100}
        assert result.stats["verification"]["totalVerified"] == 2

        job = registry.get_job("job-1")
        assert job.completed
        assert job.result.saved_leads == 2

    def test_progress_is_monotonic(self, registry, fake_store, sample_configuration, test_config):
        sources = [
            StaticSource("newsapi", [api_candidate("https://news.example.com/1")], kind=SourceKind.API),
            StaticSource("bing", [api_candidate("https://news.example.com/2")], kind=SourceKind.API),
            StaticSource("reuters", [make_candidate("https://news.example.com/3")]),
            StaticSource("enr", [make_candidate("https://news.example.com/4")], kind=SourceKind.INDUSTRY),
        ]
        registry.create("job-1", META)

        build_aggregator(sources, registry, fake_store, test_config).run(sample_configuration, "job-1")

        percentages = [p for _, p in registry.history]
        assert percentages == sorted(percentages)
        assert percentages[-1] == 100

        stages = []
        for stage, _ in registry.history:
            if not stages or stages[-1] != stage:
                stages.append(stage)
        assert stages == ["scraping", "enriching", "extracting", "saving", "completed"]

        scraping_updates = [p for s, p in registry.history if s == "scraping"]
        assert scraping_updates[-1] == 60
        assert len(scraping_updates) == 5

    def test_scraping_progress_counts_sources(self, registry, fake_store, sample_configuration, test_config):
        sources = [
            StaticSource("newsapi", [api_candidate("https://news.example.com/1")], kind=SourceKind.API),
            StaticSource("reuters", [make_candidate("https://news.example.com/2")]),
            StaticSource("wsj", [make_candidate("https://news.example.com/3")]),
            StaticSource("bloomberg", [make_candidate("https://news.example.com/4")]),
        ]
        registry.create("job-1", META)

        build_aggregator(sources, registry, fake_store, test_config).run(sample_configuration, "job-1")

        scraping = [s for s in registry.snapshots if s["stage"] == "scraping"]
        assert len(scraping) == 3
        assert all(s["total"] == 4 for s in scraping)
        assert scraping[0]["progress"] == 0
        assert scraping[-1]["progress"] == 4
        assert scraping[-1]["message"].endswith("(4/4 sources)")
        assert any(s["message"].startswith("Searched web search engines") for s in scraping)

    def test_failing_source_is_isolated(self, registry, fake_store, sample_configuration, test_config):
        sources = [
            StaticSource("newsapi", error=BlockedError("HTTP 403"), kind=SourceKind.API),
            StaticSource("reuters", [make_candidate("https://news.example.com/ok")]),
        ]
        registry.create("job-1", META)

        result = build_aggregator(sources, registry, fake_store, test_config).run(sample_configuration, "job-1")

        assert result.total_results == 1
        assert result.errors == ["Newsapi: HTTP 403"]
        assert registry.get("job-1")["stage"] == "completed"

    def test_slow_source_times_out(self, registry, fake_store, sample_configuration, test_config):
        release = threading.Event()
        test_config.source_timeout_seconds = 0.5
        sources = [
            StaticSource("slow", [make_candidate("https://news.example.com/slow")], block=release),
            StaticSource("enr", [make_candidate("https://news.example.com/fast")], kind=SourceKind.INDUSTRY),
        ]
        registry.create("job-1", META)

        try:
            result = build_aggregator(sources, registry, fake_store, test_config).run(
                sample_configuration, "job-1"
            )
        finally:
            release.set()

        assert [lead.url for lead in result.leads] == ["https://news.example.com/fast"]
        assert any("timed out" in error for error in result.errors)

    def test_sink_failure_marks_job_error(self, registry, sample_configuration, test_config):
        sink = FakeStore(fail_with=RuntimeError("disk full"))
        sources = [StaticSource("reuters", [make_candidate("https://news.example.com/ok")])]
        registry.create("job-1", META)

        with pytest.raises(SinkError):
            build_aggregator(sources, registry, sink, test_config).run(sample_configuration, "job-1")

        progress = registry.get("job-1")
        assert progress["stage"] == "error"
        assert "disk full" in progress["message"]

    def test_max_results_limit(self, registry, fake_store, sample_configuration, test_config):
        sample_configuration.max_results = 2
        sources = [StaticSource("reuters", [
            make_candidate(f"https://news.example.com/{i}") for i in range(5)
        ])]
        registry.create("job-1", META)

        result = build_aggregator(sources, registry, fake_store, test_config).run(sample_configuration, "job-1")

        assert result.total_results == 2

    def test_configuration_sources_filter(self, registry, fake_store, sample_configuration, test_config):
        api = StaticSource("newsapi", [api_candidate("https://news.example.com/1")], kind=SourceKind.API)
        web = StaticSource("reuters", [make_candidate("https://news.example.com/2")])
        sample_configuration.sources = ["api"]
        registry.create("job-1", META)

        result = build_aggregator([api, web], registry, fake_store, test_config).run(sample_configuration, "job-1")

        assert result.sources == ["newsapi"]
        assert web.calls == 0

    def test_enrichment_replaces_thin_snippets(self, registry, fake_store, sample_configuration, test_config):
        evasion = MagicMock()
        evasion.request.return_value.text = (
            '<meta name="description" content="Hilton Worldwide announces $120 million hotel '
            'construction in Miami, FL with 250 rooms.">'
        )
        evasion.get_stats.return_value = {"totalRequests": 1}
        sources = [StaticSource("reuters", [make_candidate("https://news.example.com/hilton",
                                                           title="New hotel construction")])]
        registry.create("job-1", META)

        result = build_aggregator(sources, registry, fake_store, test_config, evasion=evasion).run(
            sample_configuration, "job-1"
        )

        evasion.request.assert_called_once_with("https://news.example.com/hilton")
        lead = result.leads[0]
        assert lead.snippet.startswith("Hilton Worldwide announces")
        assert lead.fields.company == "Hilton Worldwide"
        assert result.stats["antiDetection"] == {"totalRequests": 1}

    def test_enrichment_failure_keeps_snippet(self, registry, fake_store, sample_configuration, test_config):
        evasion = MagicMock()
        evasion.request.side_effect = requests.ConnectionError("refused")
        evasion.get_stats.return_value = {}
        sources = [StaticSource("reuters", [make_candidate("https://news.example.com/x")])]
        registry.create("job-1", META)

        result = build_aggregator(sources, registry, fake_store, test_config, evasion=evasion).run(
            sample_configuration, "job-1"
        )

        assert result.leads[0].snippet == "Hilton announces new hotel construction"
        assert registry.get("job-1")["stage"] == "completed"

    def test_blocked_source_recovers_within_run(self, registry, fake_store, sample_configuration, test_config):
        session = MagicMock(spec=requests.Session)
        blocked = MagicMock(status_code=403)
        ok = MagicMock(status_code=200, text=SEARCH_PAGE)
        session.get.side_effect = [blocked, blocked, ok]
        layer = EvasionLayer(app_config=test_config, session_pool=SessionPool(session_factory=lambda: session),
                             sleep=lambda s: None)
        source = ScrapedSource("example", "Example News", "https://www.example-news.com/search?q={keywords}",
                               layer)
        registry.create("job-1", META)

        result = build_aggregator([source], registry, fake_store, test_config).run(sample_configuration, "job-1")

        url = "https://www.example-news.com/search?q=hotel+construction"
        assert layer.attempts_for(url) == 3
        assert result.total_results == 2
        assert result.stats["sourceCounts"] == {"example": 2}


class KeywordRecordingSource(StaticSource):
    """Static source that remembers the keywords it was queried with."""

    def __init__(self, key, results=None, kind=SourceKind.WEB, expands_keywords=False):
        super().__init__(key, results, kind=kind)
        self.expands_keywords = expands_keywords
        self.keywords = None

    def search(self, keywords, max_results):
        self.keywords = list(keywords)
        return super().search(keywords, max_results)


class TestRssHandling:
    """Tests for keyword expansion and feed results in a run."""

    def test_feed_sources_receive_expanded_keywords(self, registry, fake_store, sample_configuration,
                                                   test_config):
        feed = KeywordRecordingSource("rss_enr", kind=SourceKind.RSS, expands_keywords=True)
        web = KeywordRecordingSource("reuters")
        registry.create("job-1", META)

        build_aggregator([web, feed], registry, fake_store, test_config).run(sample_configuration, "job-1")

        assert web.keywords == ["hotel", "construction"]
        assert len(feed.keywords) == 25
        assert feed.keywords[:3] == ["hotel", "construction", "boutique hotel"]

    def test_expansion_can_be_disabled(self, registry, fake_store, sample_configuration, test_config):
        test_config.keyword_expansion_enabled = False
        feed = KeywordRecordingSource("rss_enr", kind=SourceKind.RSS, expands_keywords=True)
        registry.create("job-1", META)

        build_aggregator([feed], registry, fake_store, test_config).run(sample_configuration, "job-1")

        assert feed.keywords == ["hotel", "construction"]

    def test_long_feed_snippets_skip_enrichment(self, registry, fake_store, sample_configuration, test_config):
        long_snippet = (
            "Marriott International plans a 200-room hotel construction project downtown, "
            "with groundbreaking expected next spring."
        )
        evasion = MagicMock()
        evasion.request.return_value.text = "<p>Replacement summary text that should never be used here.</p>"
        evasion.get_stats.return_value = {}
        sources = [StaticSource("rss_enr", [
            make_candidate("https://news.example.com/feed-long", snippet=long_snippet, kind=SourceKind.RSS),
            make_candidate("https://news.example.com/feed-short", kind=SourceKind.RSS),
        ], kind=SourceKind.RSS)]
        registry.create("job-1", META)

        result = build_aggregator(sources, registry, fake_store, test_config, evasion=evasion).run(
            sample_configuration, "job-1"
        )

        assert len(long_snippet) > 100
        evasion.request.assert_called_once_with("https://news.example.com/feed-short")
        by_url = {lead.url: lead for lead in result.leads}
        assert by_url["https://news.example.com/feed-long"].snippet == long_snippet
        assert by_url["https://news.example.com/feed-long"].verified_source is False
