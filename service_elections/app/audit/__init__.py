"""
Audit package: append-only attempt records for forensic review.
"""

from .recorder import AttemptRecorder, ErrorReporter

__all__ = ["AttemptRecorder", "ErrorReporter"]
