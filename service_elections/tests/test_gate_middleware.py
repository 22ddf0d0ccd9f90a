"""
Unit tests for SubmissionGate.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from starlette.requests import Request

from service_elections.app.domain import GateOutcome, GateState, SubmissionGate
from service_elections.app.eligibility import EligibilityValidator
from service_elections.app.models import AttemptRecord, Decision, RateLimitPolicy, ReasonCode
from service_elections.app.persistence import InMemoryStore
from service_elections.app.ratelimit import AbuseCounter, DecisionEngine
from shared.errors import EligibilityDenial, RateLimitError, ValidationError

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_request(headers=None, client=("203.0.113.7", 40000)):
    raw_headers = [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()]
    return Request({
        "type": "http",
        "method": "POST",
        "path": "/api/elections",
        "headers": raw_headers,
        "query_string": b"",
        "client": client,
    })


class TestSubmissionGate:
    """Test cases for SubmissionGate."""

    @pytest.fixture
    def store(self):
        return InMemoryStore(whitelist=["Alex"])

    @pytest.fixture
    def gate(self, store):
        policy = RateLimitPolicy()
        counter = AbuseCounter(store, policy, clock=lambda: NOW)
        return SubmissionGate(
            EligibilityValidator(store),
            DecisionEngine(counter, policy),
            guidance_url="https://discord.example/invite",
        )

    @pytest.mark.asyncio
    async def test_admits_whitelisted_identity(self, gate):
        request = make_request({"User-Agent": "pytest"})

        outcome = await gate.process_request(request, {"name": "Alex", "deviceFingerprint": " dev-a "})

        assert outcome.state == GateState.ADMITTED
        assert outcome.admitted is True
        assert request.state.gate_context is outcome.context
        assert outcome.context.client_ip == "203.0.113.7"
        assert outcome.context.user_agent == "pytest"
        assert outcome.context.device_fingerprint == "dev-a"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"name": ""}, {"name": "   "}, {"name": 42}])
    async def test_missing_identity(self, gate, body):
        outcome = await gate.process_request(make_request(), body)

        assert outcome.state == GateState.REJECTED
        assert outcome.reason_code == ReasonCode.MISSING_IDENTITY
        assert outcome.status_hint == 400

    @pytest.mark.asyncio
    async def test_not_whitelisted_skips_counters(self):
        validator = MagicMock()
        validator.is_eligible = AsyncMock(return_value=False)
        engine = MagicMock()
        engine.evaluate = AsyncMock(return_value=Decision.allow())
        gate = SubmissionGate(validator, engine, guidance_url="https://discord.example/invite")

        outcome = await gate.process_request(make_request(), {"name": "Alex"})

        assert outcome.reason_code == ReasonCode.NOT_WHITELISTED
        assert outcome.status_hint == 403
        assert outcome.auxiliary == {
            "guidanceUrl": "https://discord.example/invite",
            "type": "whitelist_error",
        }
        engine.evaluate.assert_not_called()

    @pytest.mark.asyncio
    async def test_rate_limited(self, store, gate):
        store.attempts.extend([
            AttemptRecord("x", "203.0.113.7", f"d{i}", "pytest", timestamp=NOW - timedelta(hours=2))
            for i in range(3)
        ])

        outcome = await gate.process_request(make_request(), {"name": "Alex"})

        assert outcome.reason_code == ReasonCode.IP_LIMIT
        assert outcome.status_hint == 429
        assert outcome.to_response()["code"] == "ip-limit"

    @pytest.mark.asyncio
    async def test_unexpected_fault_is_internal_error(self):
        validator = MagicMock()
        validator.is_eligible = AsyncMock(return_value=True)
        engine = MagicMock()
        engine.evaluate = AsyncMock(side_effect=RuntimeError("secret connection string"))
        gate = SubmissionGate(validator, engine)
        request = make_request()

        outcome = await gate.process_request(request, {"name": "Alex"})

        assert outcome.reason_code == ReasonCode.INTERNAL_ERROR
        assert outcome.status_hint == 500
        assert "secret" not in outcome.message
        assert not hasattr(request.state, "gate_context")

    @pytest.mark.asyncio
    async def test_store_fault_on_whitelist_denies(self):
        store = MagicMock()
        store.is_whitelisted = AsyncMock(side_effect=ConnectionError("down"))
        policy = RateLimitPolicy()
        gate = SubmissionGate(EligibilityValidator(store), DecisionEngine(AbuseCounter(store, policy), policy))

        outcome = await gate.process_request(make_request(), {"name": "Alex"})

        assert outcome.reason_code == ReasonCode.NOT_WHITELISTED
        assert outcome.status_hint == 403

    @pytest.mark.asyncio
    async def test_records_metrics(self, store):
        policy = RateLimitPolicy()
        metrics = MagicMock()
        gate = SubmissionGate(
            EligibilityValidator(store),
            DecisionEngine(AbuseCounter(store, policy, clock=lambda: NOW), policy),
            metrics=metrics,
        )

        await gate.process_request(make_request(), {"name": "Alex"})

        metrics.record_gate_decision.assert_called_once_with("admitted", None)

    @pytest.mark.asyncio
    async def test_engine_denial_maps_to_rate_limit_error(self):
        validator = MagicMock()
        validator.is_eligible = AsyncMock(return_value=True)
        engine = MagicMock()
        engine.evaluate = AsyncMock(return_value=Decision.deny(ReasonCode.DEVICE_LIMIT, "Too many from this device"))
        gate = SubmissionGate(validator, engine)

        outcome = await gate.process_request(make_request(), {"name": " Alex ", "deviceFingerprint": "dev-a"})

        engine.evaluate.assert_awaited_once_with("Alex", "203.0.113.7", "dev-a")
        assert outcome.reason_code == ReasonCode.DEVICE_LIMIT
        assert outcome.status_hint == RateLimitError.status_code
        assert outcome.message == "Too many from this device"
        assert outcome.context.identity_name == "Alex"


class TestGateOutcome:
    """Test cases for building outcomes from refusal errors."""

    def test_refused_from_eligibility_denial(self):
        error = EligibilityDenial(details={"guidanceUrl": "https://discord.example/invite"})

        outcome = GateOutcome.refused(error)

        assert outcome.admitted is False
        assert outcome.reason_code == ReasonCode.NOT_WHITELISTED
        assert outcome.status_hint == 403
        assert outcome.to_response()["details"] == {"guidanceUrl": "https://discord.example/invite"}

    def test_refused_from_validation_error(self):
        outcome = GateOutcome.refused(ValidationError("An identity name is required", code="missing-identity"))

        assert outcome.reason_code == ReasonCode.MISSING_IDENTITY
        assert outcome.status_hint == 400
        assert outcome.to_response()["message"] == "An identity name is required"
