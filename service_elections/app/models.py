"""
Data models for the Elections service.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN = "unknown"


def normalize_identity(name: Optional[str]) -> str:
    """Comparison key for an identity name: trimmed and case-folded."""
    if not name:
        return ""
    return name.strip().casefold()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttemptStatus(str, Enum):
    """Outcome of an attempt that reached the protected write."""
    SUCCESS = "success"
    FAILED = "failed"


class AttemptDimension(str, Enum):
    """Independent dimensions that attempts are counted over."""
    IP = "ip"
    DEVICE = "device"


class ReasonCode(str, Enum):
    """Reason codes returned with a rejection."""
    MISSING_IDENTITY = "missing-identity"
    NOT_WHITELISTED = "not-whitelisted"
    DUPLICATE_IDENTITY = "duplicate-identity"
    IP_LIMIT = "ip-limit"
    DEVICE_LIMIT = "device-limit"
    INTERNAL_ERROR = "internal-error"


@dataclass
class AttemptRecord:
    """Append-only audit row for one submission attempt."""
    identity_name: str
    ip_address: str
    device_fingerprint: str
    user_agent: str
    related_submission_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def status(self) -> AttemptStatus:
        if self.related_submission_id:
            return AttemptStatus.SUCCESS
        return AttemptStatus.FAILED


@dataclass
class SubmissionCreate:
    """Values written by the protected operation."""
    identity_name: str
    party_name: str
    flag_url: str
    comments: Optional[str] = None
    attachment_url: Optional[str] = None
    ip_address: Optional[str] = None
    device_fingerprint: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def normalized_name(self) -> str:
        return normalize_identity(self.identity_name)


@dataclass
class SubmissionRecord:
    """Persisted submission."""
    id: str
    identity_name: str
    party_name: str
    flag_url: str
    comments: Optional[str] = None
    attachment_url: Optional[str] = None
    ip_address: Optional[str] = None
    device_fingerprint: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_api(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.identity_name,
            "partyName": self.party_name,
            "flagUrl": self.flag_url,
            "comments": self.comments,
            "attachmentUrl": self.attachment_url,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class RateLimitPolicy:
    """Submission quotas, built once from configuration."""
    max_per_name: int = 1
    max_per_ip: int = 3
    max_per_device: int = 2
    window_hours: int = 24

    @classmethod
    def from_config(cls, config) -> "RateLimitPolicy":
        return cls(
            max_per_name=config.max_per_name,
            max_per_ip=config.max_per_ip,
            max_per_device=config.max_per_device,
            window_hours=config.window_hours,
        )


@dataclass
class Decision:
    """Verdict of the decision engine."""
    allowed: bool
    reason_code: Optional[ReasonCode] = None
    message: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason_code: ReasonCode, message: str) -> "Decision":
        return cls(allowed=False, reason_code=reason_code, message=message)


def _strip_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class SubmissionRequest(BaseModel):
    """Request body for a new election submission."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1, description="Participant identity name")
    party_name: str = Field(..., alias="partyName", min_length=1, description="Party name")
    flag_url: str = Field(..., alias="flagUrl", min_length=1, description="URL of the uploaded flag image")
    comments: Optional[str] = Field(None, description="Additional comments")
    attachment_url: Optional[str] = Field(None, alias="attachmentUrl", description="URL of an uploaded attachment")
    device_fingerprint: Optional[str] = Field(None, alias="deviceFingerprint")

    @field_validator("name", "party_name", "flag_url")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("comments", "attachment_url", "device_fingerprint")
    @classmethod
    def _strip_optional_fields(cls, value: Optional[str]) -> Optional[str]:
        return _strip_optional(value)


class SubmissionResponse(BaseModel):
    """Response body for a created submission."""
    success: bool = True
    message: str = "Submission received"
    data: Dict[str, Any]


class WhitelistResponse(BaseModel):
    """Active whitelisted identity names."""
    players: list = Field(default_factory=list)
    total: int = 0
