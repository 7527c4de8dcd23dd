#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for the SQL store.
"""

from datetime import datetime

import pytest
from sqlalchemy import event

from lead_discovery.models.configuration import Configuration
from lead_discovery.models.lead import ExtractedFields, Lead
from lead_discovery.storage import SqlLeadStore


@pytest.fixture
def store():
    store = SqlLeadStore("sqlite://")
    store.add_user("user-1", email="owner@example.com", name="Owner")
    return store


def make_lead(url: str, confidence: int = 60) -> Lead:
    return Lead(
        title="Hilton announces new hotel",
        url=url,
        source="Reuters",
        fields=ExtractedFields(company="Hilton", project_type="Hotel"),
        confidence=confidence,
        verified_source=True,
        published_date=datetime(2026, 3, 1),
    )


class TestUsers:
    """Tests for user records."""

    def test_active_flag(self, store):
        assert store.is_user_active("user-1")
        assert store.set_user_active("user-1", False)
        assert not store.is_user_active("user-1")

    def test_unknown_user(self, store):
        assert not store.is_user_active("nobody")
        assert not store.set_user_active("nobody", True)


class TestConfigurations:
    """Tests for configuration persistence."""

    def test_save_and_get(self, store, sample_configuration):
        store.save_configuration(sample_configuration)

        loaded = store.get_configuration("cfg-1")

        assert loaded.name == "Hotel construction"
        assert loaded.keywords == ["hotel", "construction"]
        assert loaded.frequency == "daily"
        assert store.get_configuration("missing") is None

    def test_update_existing(self, store, sample_configuration):
        store.save_configuration(sample_configuration)
        sample_configuration.keywords = ["resort"]
        store.save_configuration(sample_configuration)

        assert store.get_configuration("cfg-1").keywords == ["resort"]
        assert len(store.list_configurations()) == 1

    def test_active_configurations_require_active_owner(self, store, sample_configuration):
        store.add_user("user-2", is_active=False)
        store.save_configuration(sample_configuration)
        store.save_configuration(Configuration(id="cfg-2", user_id="user-2", name="B", keywords=["x"]))
        store.save_configuration(Configuration(id="cfg-3", user_id="user-1", name="C", keywords=["y"],
                                               is_active=False))

        assert [c.id for c in store.list_active_configurations()] == ["cfg-1"]
        assert [c.id for c in store.list_configurations("user-2")] == ["cfg-2"]

    def test_update_run_times(self, store, sample_configuration):
        store.save_configuration(sample_configuration)
        last_run = datetime(2026, 3, 10, 10, 0)
        next_run = datetime(2026, 3, 11, 9, 0)

        store.update_run_times("cfg-1", last_run, next_run)
        store.update_run_times("missing", last_run, next_run)

        loaded = store.get_configuration("cfg-1")
        assert loaded.last_run == last_run
        assert loaded.next_run == next_run


class TestLeads:
    """Tests for lead persistence."""

    def test_save_skips_known_urls(self, store):
        assert store.save_leads("user-1", [make_lead("https://x.com/a"), make_lead("https://x.com/b")]) == 2
        assert store.save_leads("user-1", [make_lead("https://x.com/a"), make_lead("https://x.com/c")]) == 1
        assert store.count_leads("user-1") == 3

    def test_duplicates_within_batch(self, store):
        assert store.save_leads("user-1", [make_lead("https://x.com/a"), make_lead("https://x.com/a")]) == 1

    def test_empty_batch(self, store):
        assert store.save_leads("user-1", []) == 0

    def test_duplicate_committed_by_another_writer(self, tmp_path):
        db_url = f"sqlite:///{tmp_path / 'leads.db'}"
        store = SqlLeadStore(db_url)
        other = SqlLeadStore(db_url)
        raced = []

        @event.listens_for(store.SessionFactory, "before_flush")
        def other_writer_commits(session, flush_context, instances):
            if not raced:
                raced.append(True)
                assert other.save_leads("user-1", [make_lead("https://x.com/raced")]) == 1

        saved = store.save_leads("user-1", [make_lead("https://x.com/raced"), make_lead("https://x.com/fresh")])

        assert raced
        assert saved == 1
        assert store.count_leads("user-1") == 2
        assert {lead["url"] for lead in store.get_leads("user-1")} == {
            "https://x.com/raced", "https://x.com/fresh",
        }

    def test_get_leads(self, store):
        store.save_leads("user-1", [make_lead("https://x.com/a", confidence=80)])

        leads = store.get_leads("user-1")

        assert len(leads) == 1
        assert leads[0]["company"] == "Hilton"
        assert leads[0]["confidence"] == 80
        assert leads[0]["verified_source"] is True
        assert leads[0]["published_date"] == "2026-03-01T00:00:00"
        assert leads[0]["contact"]["name"] == "Unknown"
