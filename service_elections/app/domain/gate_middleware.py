"""
Submission gate for the Elections service.

Refusals are raised inside the gate as ``ElectionsError`` subclasses and
converted to a ``GateOutcome`` at its boundary.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import Request

from shared.errors import EligibilityDenial, ElectionsError, RateLimitError, ValidationError, current_trace_id
from shared.logging import get_logger, set_client_context
from shared.metrics import MetricsCollector
from ..eligibility import EligibilityValidator
from ..identity import extract_request_identity
from ..models import ReasonCode
from ..ratelimit import DecisionEngine


class GateState(str, Enum):
    ADMITTED = "admitted"
    REJECTED = "rejected"


@dataclass
class GateContext:
    """Request metadata resolved by the gate and handed downstream."""
    client_ip: str
    user_agent: str
    device_fingerprint: str = ""
    identity_name: str = ""


@dataclass
class GateOutcome:
    """Result of running the gate for one request."""
    state: GateState
    context: Optional[GateContext] = None
    reason_code: Optional[ReasonCode] = None
    message: Optional[str] = None
    status_hint: Optional[int] = None
    auxiliary: Dict[str, Any] = field(default_factory=dict)

    @property
    def admitted(self) -> bool:
        return self.state is GateState.ADMITTED

    @classmethod
    def refused(cls, error: ElectionsError, context: Optional[GateContext] = None) -> "GateOutcome":
        return cls(
            state=GateState.REJECTED,
            context=context,
            reason_code=ReasonCode(error.code),
            message=error.message,
            status_hint=error.status_code,
            auxiliary=dict(error.details),
        )

    def to_response(self) -> Dict[str, Any]:
        """Error body for a rejected request."""
        return {
            "trace_id": current_trace_id(),
            "code": self.reason_code.value if self.reason_code else None,
            "message": self.message,
            "details": self.auxiliary,
        }


class SubmissionGate:
    """Runs eligibility and quota checks in front of the submission write."""

    def __init__(self, validator: EligibilityValidator, engine: DecisionEngine,
                 guidance_url: str = "", metrics: Optional[MetricsCollector] = None):
        self.validator = validator
        self.engine = engine
        self.guidance_url = guidance_url
        self.metrics = metrics
        self.logger = get_logger("elections.gate")

    async def process_request(self, request: Request, body: Dict[str, Any]) -> GateOutcome:
        """Run the gate for an incoming submission request.

        On admission the resolved context is also stored on
        ``request.state.gate_context``.
        """
        start_time = time.time()
        context = None
        try:
            context = self._resolve_context(request, body)
            await self._check(context)
            outcome = GateOutcome(state=GateState.ADMITTED, context=context)
            self.logger.info("Submission admitted")
        except ElectionsError as e:
            self.logger.info("Submission refused", code=e.code)
            outcome = GateOutcome.refused(e, context)
        except Exception as e:
            self.logger.error("Error in submission gate", error=str(e), exc_info=True)
            outcome = GateOutcome(
                state=GateState.REJECTED,
                reason_code=ReasonCode.INTERNAL_ERROR,
                message="Error validating the request",
                status_hint=500,
            )

        if outcome.admitted:
            request.state.gate_context = outcome.context

        if self.metrics:
            self.metrics.observe_gate(time.time() - start_time)
            self.metrics.record_gate_decision(
                outcome.state.value,
                outcome.reason_code.value if outcome.reason_code else None
            )
        return outcome

    def _resolve_context(self, request: Request, body: Dict[str, Any]) -> GateContext:
        client_ip, user_agent = extract_request_identity(request)
        name = body.get("name")
        fingerprint = body.get("deviceFingerprint")
        context = GateContext(
            client_ip=client_ip,
            user_agent=user_agent,
            device_fingerprint=fingerprint.strip() if isinstance(fingerprint, str) else "",
            identity_name=name.strip() if isinstance(name, str) else "",
        )
        set_client_context(context.client_ip, context.identity_name)
        return context

    async def _check(self, context: GateContext):
        """Raise the first refusal that applies to ``context``."""
        if not context.identity_name:
            raise ValidationError("An identity name is required", code=ReasonCode.MISSING_IDENTITY.value)

        if not await self.validator.is_eligible(context.identity_name):
            raise EligibilityDenial(
                "This identity is not allowed to submit. Contact an admin for access.",
                details={"guidanceUrl": self.guidance_url, "type": "whitelist_error"},
            )

        decision = await self.engine.evaluate(
            context.identity_name, context.client_ip, context.device_fingerprint
        )
        if not decision.allowed:
            raise RateLimitError(decision.reason_code.value, decision.message or "Submission limit reached")
