"""
Rate limiting package for the Elections service.

Holds the windowed attempt counter and the decision engine that enforce
per-identity, per-address and per-device submission quotas.
"""

from .counter import AbuseCounter
from .engine import DecisionEngine

__all__ = ["AbuseCounter", "DecisionEngine"]
