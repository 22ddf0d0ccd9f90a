"""
Domain utilities for the Elections service.

Holds the submission gate that runs in front of the protected write and
the write itself.
"""

from .gate_middleware import GateContext, GateOutcome, GateState, SubmissionGate
from .submissions import SubmissionService, parse_submission

__all__ = [
    "GateContext",
    "GateOutcome",
    "GateState",
    "SubmissionGate",
    "SubmissionService",
    "parse_submission",
]
