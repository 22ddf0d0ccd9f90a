"""
Request identity helpers: client address and user agent resolution.
"""

from .extractor import (
    extract_request_identity,
    request_headers,
    resolve_client_address,
    resolve_user_agent,
)

__all__ = [
    "extract_request_identity",
    "request_headers",
    "resolve_client_address",
    "resolve_user_agent",
]
