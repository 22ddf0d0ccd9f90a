"""
Eligibility package: whitelist membership checks for claimed identities.
"""

from .validator import EligibilityValidator

__all__ = ["EligibilityValidator"]
