"""
Client identity extraction from request metadata.
"""

from typing import Any, Dict, List, Mapping, Optional, Union

from fastapi import Request

from ..models import UNKNOWN

HeaderValue = Union[str, List[str], None]


def _get_header(headers: Mapping[str, Any], name: str) -> HeaderValue:
    """Case-insensitive header lookup over any mapping."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def _first_value(value: HeaderValue) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if not isinstance(value, str):
        return None
    return value


def resolve_client_address(headers: Mapping[str, Any], socket_address: Optional[str] = None) -> str:
    """Resolve the caller address.

    X-Forwarded-For (first hop) wins, then X-Real-IP, then the socket
    peer, then ``"unknown"``.
    """
    forwarded_for = _first_value(_get_header(headers, "X-Forwarded-For"))
    if forwarded_for:
        first_ip = forwarded_for.split(",")[0].strip()
        if first_ip:
            return first_ip

    real_ip = _first_value(_get_header(headers, "X-Real-IP"))
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if socket_address:
        return socket_address

    return UNKNOWN


def resolve_user_agent(headers: Mapping[str, Any]) -> str:
    """Return the User-Agent header or ``"unknown"``."""
    user_agent = _first_value(_get_header(headers, "User-Agent"))
    return user_agent or UNKNOWN


def request_headers(request: Request) -> Dict[str, HeaderValue]:
    """Collect the headers used for identity resolution.

    Repeated X-Forwarded-For headers are kept as a list.
    """
    forwarded = request.headers.getlist("x-forwarded-for")
    return {
        "x-forwarded-for": forwarded or None,
        "x-real-ip": request.headers.get("x-real-ip"),
        "user-agent": request.headers.get("user-agent"),
    }


def extract_request_identity(request: Request):
    """Return ``(client_address, user_agent)`` for a request."""
    headers = request_headers(request)
    socket_address = request.client.host if request.client else None
    return resolve_client_address(headers, socket_address), resolve_user_agent(headers)
