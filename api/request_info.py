"""Client metadata extracted from requests, for audit records."""

import ipaddress

from starlette.requests import Request

# Proxy headers in order of trust: CDN first, then the reverse proxy.
_FORWARDING_HEADERS = ("cf-connecting-ip", "x-real-ip", "x-forwarded-for")


def _valid_ip(value: str | None) -> str | None:
    if not value:
        return None
    try:
        ipaddress.ip_address(value)
        return value
    except ValueError:
        return None


def client_ip(request: Request) -> str | None:
    """Best guess at the caller's IP address, or None if nothing parses."""
    for header in _FORWARDING_HEADERS:
        raw = request.headers.get(header)
        if raw:
            ip = _valid_ip(raw.split(",")[0].strip())
            if ip:
                return ip
    if request.client:
        return _valid_ip(request.client.host)
    return None


def user_agent(request: Request) -> str | None:
    return request.headers.get("User-Agent")
