"""
Unit tests for the Elections service HTTP surface.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from service_elections.app.main import ElectionsService
from service_elections.app.models import AttemptRecord, AttemptStatus
from service_elections.app.persistence import InMemoryStore
from shared.config import ElectionsConfig
from shared.errors import DuplicateSubmissionError

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

SUBMISSION = {
    "name": "Alex",
    "partyName": "Green Party",
    "flagUrl": "https://cdn.example/flags/green.png",
    "comments": "  For the realm  ",
    "deviceFingerprint": "dev-a",
}


class TestElectionsService:
    """Test cases for ElectionsService routes."""

    @pytest.fixture
    def config(self):
        return ElectionsConfig(
            _env_file=None,
            store_backend="memory",
            guidance_url="https://discord.example/invite",
            admin_api_key="admin-secret",
        )

    @pytest.fixture
    def store(self):
        return InMemoryStore(whitelist=["Alex", "Steve"])

    @pytest.fixture
    def service(self, config, store):
        return ElectionsService(config=config, store=store, metrics_registry=CollectorRegistry(), clock=lambda: NOW)

    @pytest.fixture
    def client(self, service):
        return TestClient(service.app)

    def test_root_endpoint(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "elections"
        assert data["limits"] == {"max_per_name": 1, "max_per_ip": 3, "max_per_device": 2, "window_hours": 24}

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"store": "ok"}

    def test_health_degraded(self, client, store):
        store.health_check = AsyncMock(return_value=False)
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_metrics_endpoint(self, client):
        client.get("/")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_submission_created(self, service, store):
        with TestClient(service.app) as client:
            response = client.post("/api/elections", json=SUBMISSION, headers={"User-Agent": "pytest"})

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["name"] == "Alex"
        assert body["data"]["comments"] == "For the realm"

        assert len(store.attempts) == 1
        row = store.attempts[0]
        assert row.status == AttemptStatus.SUCCESS
        assert row.related_submission_id == body["data"]["id"]
        assert row.user_agent == "pytest"
        assert row.device_fingerprint == "dev-a"

    def test_missing_identity(self, client):
        response = client.post("/api/elections", json={"partyName": "Green"})
        assert response.status_code == 400
        assert response.json()["code"] == "missing-identity"

    def test_not_whitelisted(self, client, store):
        response = client.post("/api/elections", json={**SUBMISSION, "name": "Herobrine"})
        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "not-whitelisted"
        assert body["details"]["guidanceUrl"] == "https://discord.example/invite"
        assert store.attempts == []

    def test_duplicate_identity_case_insensitive(self, service, store):
        with TestClient(service.app) as client:
            first = client.post("/api/elections", json=SUBMISSION)
            second = client.post("/api/elections", json={**SUBMISSION, "name": "ALEX", "deviceFingerprint": "dev-b"})

        assert first.status_code == 201
        assert second.status_code == 429
        assert second.json()["code"] == "duplicate-identity"

    def test_ip_limit(self, client, store):
        store.attempts.extend([
            AttemptRecord(f"user{i}", "198.51.100.9", f"d{i}", "pytest", timestamp=NOW - timedelta(hours=23))
            for i in range(3)
        ])

        response = client.post("/api/elections", json=SUBMISSION, headers={"X-Forwarded-For": "198.51.100.9"})
        assert response.status_code == 429
        assert response.json()["code"] == "ip-limit"

    def test_invalid_body_after_admission(self, client, store):
        response = client.post("/api/elections", json={"name": "Alex", "partyName": "  "})
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "invalid-request"
        assert "flagUrl" in body["details"]["fields"]
        assert store.submissions == {}

    def test_storage_duplicate_race(self, service, store):
        store.insert_submission = AsyncMock(side_effect=DuplicateSubmissionError())

        with TestClient(service.app) as client:
            response = client.post("/api/elections", json=SUBMISSION)

        assert response.status_code == 409
        assert response.json()["code"] == "duplicate-identity"
        assert len(store.attempts) == 1
        assert store.attempts[0].status == AttemptStatus.FAILED

    def test_store_failure_hides_details(self, service, store):
        store.insert_submission = AsyncMock(side_effect=ConnectionError("password=hunter2"))

        with TestClient(service.app) as client:
            response = client.post("/api/elections", json=SUBMISSION)

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "internal-error"
        assert "hunter2" not in response.text
        assert store.attempts[0].status == AttemptStatus.FAILED

    def test_attempt_write_failure_does_not_fail_request(self, config, store):
        reporter = MagicMock()
        store.insert_attempt = AsyncMock(side_effect=ConnectionError("audit table locked"))
        service = ElectionsService(config=config, store=store, metrics_registry=CollectorRegistry(),
                                   clock=lambda: NOW, error_reporter=reporter)

        with TestClient(service.app) as client:
            response = client.post("/api/elections", json=SUBMISSION)

        assert response.status_code == 201
        reporter.assert_called_once()

    def test_whitelist_requires_admin_key(self, client):
        assert client.get("/api/elections/whitelist").status_code == 403
        assert client.get("/api/elections/whitelist", headers={"X-API-Key": "wrong"}).status_code == 403

    def test_whitelist_listing(self, client):
        response = client.get("/api/elections/whitelist", headers={"X-API-Key": "admin-secret"})
        assert response.status_code == 200
        assert response.json() == {"players": ["Alex", "Steve"], "total": 2}

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_non_object_body(self, client, store):
        response = client.post("/api/elections", json=["Alex"])
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "invalid-request"
        assert body["details"]["fields"] == ["body"]
        assert store.attempts == []

    def test_invalid_json_body(self, client, store):
        response = client.post(
            "/api/elections",
            content=b"{not json",
            headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "invalid-request"
        assert "detail" not in response.json()
        assert store.submissions == {}


class TestWhitelistSeed:
    """Test cases for seeding the whitelist from configuration."""

    @pytest.fixture
    def config(self):
        return ElectionsConfig(
            _env_file=None,
            store_backend="memory",
            admin_api_key="admin-secret",
            whitelist_seed="Alex, Steve ,,",
        )

    def test_memory_backend_seeded_on_startup(self, config):
        service = ElectionsService(config=config, metrics_registry=CollectorRegistry(), clock=lambda: NOW)

        with TestClient(service.app) as client:
            listing = client.get("/api/elections/whitelist", headers={"X-API-Key": "admin-secret"})
            response = client.post("/api/elections", json={**SUBMISSION, "name": "steve"})

        assert isinstance(service.store, InMemoryStore)
        assert listing.json() == {"players": ["Alex", "Steve"], "total": 2}
        assert response.status_code == 201

    def test_unseeded_name_still_refused(self, config):
        service = ElectionsService(config=config, metrics_registry=CollectorRegistry(), clock=lambda: NOW)

        with TestClient(service.app) as client:
            response = client.post("/api/elections", json={**SUBMISSION, "name": "Notch"})

        assert response.status_code == 403
