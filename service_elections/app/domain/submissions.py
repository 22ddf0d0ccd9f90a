"""
Election submission write, run after the gate admits a request.
"""

from typing import Any, Dict

from pydantic import ValidationError as PydanticValidationError

from shared.errors import ElectionsError, InfrastructureError, ValidationError
from shared.logging import get_logger
from ..models import SubmissionCreate, SubmissionRecord, SubmissionRequest
from ..persistence.base import ElectionStore
from .gate_middleware import GateContext


def parse_submission(body: Dict[str, Any]) -> SubmissionRequest:
    """Validate a raw submission body."""
    try:
        return SubmissionRequest.model_validate(body)
    except PydanticValidationError as e:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in e.errors()})
        raise ValidationError(
            "name, partyName and flagUrl are required",
            details={"fields": fields}
        )


class SubmissionService:
    """Persists election submissions."""

    def __init__(self, store: ElectionStore):
        self.store = store
        self.logger = get_logger("elections.submissions")

    async def create_submission(self, payload: SubmissionRequest, context: GateContext) -> SubmissionRecord:
        submission = SubmissionCreate(
            identity_name=payload.name,
            party_name=payload.party_name,
            flag_url=payload.flag_url,
            comments=payload.comments,
            attachment_url=payload.attachment_url,
            ip_address=context.client_ip or None,
            device_fingerprint=context.device_fingerprint or None,
            user_agent=context.user_agent or None,
        )

        try:
            record = await self.store.insert_submission(submission)
        except ElectionsError:
            raise
        except Exception as e:
            self.logger.error("Error inserting submission", error=str(e))
            raise InfrastructureError("insert_submission", str(e))

        self.logger.info("Submission created", submission_id=record.id)
        return record
