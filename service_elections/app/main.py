"""
Elections submission service for the Elections Access Layer.
"""

import secrets
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import Body, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from prometheus_client import CollectorRegistry

from shared.base_service import BaseService
from shared.config import ElectionsConfig, get_config
from shared.errors import ElectionsError, ValidationError

from .audit import AttemptRecorder, ErrorReporter
from .domain import SubmissionGate, SubmissionService, parse_submission
from .eligibility import EligibilityValidator
from .models import RateLimitPolicy, SubmissionResponse, WhitelistResponse, utcnow
from .persistence import ElectionStore, create_store
from .ratelimit import AbuseCounter, DecisionEngine


class ElectionsService(BaseService):
    """Election submission service implementation."""

    def __init__(self, config: Optional[ElectionsConfig] = None, store: Optional[ElectionStore] = None,
                 metrics_registry: Optional[CollectorRegistry] = None,
                 clock: Callable[[], datetime] = utcnow,
                 error_reporter: Optional[ErrorReporter] = None):
        config = config or get_config()
        super().__init__(config, "elections", metrics_registry)

        self.policy = RateLimitPolicy.from_config(config)
        self.store = store if store is not None else create_store(config)

        self.validator = EligibilityValidator(self.store, metrics=self.metrics)
        self.counter = AbuseCounter(self.store, self.policy, clock=clock, metrics=self.metrics)
        self.engine = DecisionEngine(self.counter, self.policy)
        self.recorder = AttemptRecorder(self.store, metrics=self.metrics, error_reporter=error_reporter, clock=clock)
        self.gate = SubmissionGate(self.validator, self.engine, config.guidance_url, metrics=self.metrics)
        self.submissions = SubmissionService(self.store)

        self._setup_elections_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.elections_service = self

    async def startup(self):
        await self.store.start()
        for name in self.config.whitelist_seed_names:
            await self.store.add_whitelisted(name)
        self.logger.info(
            "Elections service started",
            store=type(self.store).__name__,
            seeded=len(self.config.whitelist_seed_names),
            max_per_ip=self.policy.max_per_ip,
            max_per_device=self.policy.max_per_device,
            window_hours=self.policy.window_hours
        )

    async def shutdown(self):
        await self.recorder.drain()
        await self.store.stop()
        self.logger.info("Elections service stopped")

    async def _check_dependencies(self) -> Dict[str, str]:
        healthy = await self.store.health_check()
        return {"store": "ok" if healthy else "error"}

    def _require_admin(self, api_key: Optional[str]):
        expected = self.config.admin_api_key
        if not expected or not api_key or not secrets.compare_digest(api_key, expected):
            raise HTTPException(status_code=403, detail="Admin API key required")

    def _setup_elections_routes(self):
        """Set up election-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "elections",
                "message": "Elections Access Layer - Submission Service",
                "version": "1.0.0",
                "limits": {
                    "max_per_name": self.policy.max_per_name,
                    "max_per_ip": self.policy.max_per_ip,
                    "max_per_device": self.policy.max_per_device,
                    "window_hours": self.policy.window_hours
                }
            }

        @self.app.post("/api/elections", status_code=201, response_model=SubmissionResponse)
        async def submit_election(request: Request, body: Dict[str, Any] = Body(...)):
            """Submit an election entry for a whitelisted identity."""
            outcome = await self.gate.process_request(request, body)
            if not outcome.admitted:
                return JSONResponse(status_code=outcome.status_hint, content=outcome.to_response())

            context = outcome.context
            try:
                payload = parse_submission(body)
                record = await self.submissions.create_submission(payload, context)
            except ValidationError:
                raise
            except ElectionsError:
                self.recorder.schedule_attempt(
                    context.identity_name,
                    context.client_ip,
                    context.device_fingerprint,
                    context.user_agent
                )
                raise

            self.recorder.schedule_attempt(
                context.identity_name,
                context.client_ip,
                context.device_fingerprint,
                context.user_agent,
                related_submission_id=record.id
            )

            return SubmissionResponse(
                message="Election entry submitted",
                data=record.to_api()
            )

        @self.app.get("/api/elections/whitelist", response_model=WhitelistResponse)
        async def get_whitelist(x_api_key: Optional[str] = Header(None)):
            """List active whitelisted identities."""
            self._require_admin(x_api_key)
            players = await self.validator.list_whitelisted()
            return WhitelistResponse(players=players, total=len(players))


def create_app():
    """Create elections service application."""
    service = ElectionsService()
    return service.app


if __name__ == "__main__":
    service = ElectionsService()
    service.run()
