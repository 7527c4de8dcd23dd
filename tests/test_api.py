#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for the HTTP API.
"""

import time

import pytest
from fastapi.testclient import TestClient

from conftest import StaticSource, make_candidate
from lead_discovery.api import app, get_service
from lead_discovery.config import config
from lead_discovery.evasion import EvasionLayer
from lead_discovery.orchestration.job_registry import JobRegistry
from lead_discovery.orchestration.service import LeadDiscoveryService
from lead_discovery.storage import SqlLeadStore


@pytest.fixture
def service(test_config, sample_configuration):
    test_config.enrich_max_fetches = 0
    store = SqlLeadStore("sqlite://")
    store.add_user("user-1")
    store.add_user("user-2", is_active=False)
    store.save_configuration(sample_configuration)

    service = LeadDiscoveryService(
        app_config=test_config,
        store=store,
        evasion=EvasionLayer(app_config=test_config),
        sources=[StaticSource("reuters", [
            make_candidate("https://news.example.com/hotel-1"),
            make_candidate("https://news.example.com/hotel-2", title="Hyatt plans hotel construction"),
        ])],
        registry=JobRegistry(),
    )
    assert service.initialize_components()
    yield service
    service.shutdown_gracefully()


@pytest.fixture
def client(service, monkeypatch):
    monkeypatch.setattr(config, "api_keys", [])
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def poll_until_finished(client, job_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        progress = client.get(f"/api/scraping/jobs/{job_id}/progress").json()
        if progress["stage"] in ("completed", "error"):
            return progress
        time.sleep(0.05)
    return client.get(f"/api/scraping/jobs/{job_id}/progress").json()


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "operational"
        assert set(data["components"]) == {"scheduler", "antiDetection", "system"}
        assert data["components"]["antiDetection"]["totalRequests"] == 0


class TestRunNow:
    """Tests for the run-now and progress endpoints."""

    def test_run_and_poll(self, client, service):
        response = client.post("/api/scraping/configs/cfg-1/run")

        assert response.status_code == 202
        body = response.json()
        assert body["jobId"].startswith("config-cfg-1-")
        assert body["configSummary"] == {"id": "cfg-1", "name": "Hotel construction"}

        progress = poll_until_finished(client, body["jobId"])
        assert progress["stage"] == "completed"
        assert progress["percentage"] == 100
        assert service.store.count_leads("user-1") == 2

    def test_unknown_configuration(self, client):
        response = client.post("/api/scraping/configs/missing/run")

        assert response.status_code == 404

    def test_invalid_configuration(self, client, service, sample_configuration):
        sample_configuration.keywords = []
        service.store.save_configuration(sample_configuration)

        response = client.post("/api/scraping/configs/cfg-1/run")

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["message"] == "Invalid configuration"
        assert "At least one keyword is required" in detail["errors"]

    def test_inactive_user(self, client, service, sample_configuration):
        sample_configuration.user_id = "user-2"
        service.store.save_configuration(sample_configuration)

        response = client.post("/api/scraping/configs/cfg-1/run")

        assert response.status_code == 403
        assert len(service.registry) == 0

    def test_run_after_scheduler_stopped(self, client, service):
        service.scheduler.stop(wait=False)

        response = client.post("/api/scraping/configs/cfg-1/run")

        assert response.status_code == 503
        assert "stopped" in response.json()["detail"]
        assert len(service.registry) == 0

    def test_unknown_job(self, client):
        response = client.get("/api/scraping/jobs/config-x-1/progress")

        assert response.status_code == 404
        assert response.json()["detail"] == "Job not found"


class TestListings:
    """Tests for job and schedule listings."""

    def test_user_jobs(self, client):
        job_id = client.post("/api/scraping/configs/cfg-1/run").json()["jobId"]
        poll_until_finished(client, job_id)

        jobs = client.get("/api/scraping/users/user-1/jobs").json()

        assert [j["jobId"] for j in jobs] == [job_id]
        assert jobs[0]["configName"] == "Hotel construction"
        assert jobs[0]["completed"] is True
        assert client.get("/api/scraping/users/user-9/jobs").json() == []

    def test_scheduled(self, client, service, sample_configuration):
        service.scheduler.schedule(sample_configuration)

        scheduled = client.get("/api/scraping/scheduled").json()

        assert [s["configId"] for s in scheduled] == ["cfg-1"]


class TestAuthentication:
    """Tests for API key checks."""

    @pytest.fixture
    def secured(self, client, monkeypatch):
        monkeypatch.setattr(config, "api_keys", ["secret"])
        return client

    def test_missing_key(self, secured):
        response = secured.get("/api/scraping/scheduled")
        assert response.status_code == 401
        assert response.json()["detail"] == "API Key header is missing"

    def test_invalid_key(self, secured):
        response = secured.get("/api/scraping/scheduled", headers={"X-API-Key": "wrong"})
        assert response.status_code == 401

    def test_valid_key(self, secured):
        response = secured.get("/api/scraping/scheduled", headers={"X-API-Key": "secret"})
        assert response.status_code == 200

    def test_health_is_public(self, secured):
        assert secured.get("/api/health").status_code == 200
