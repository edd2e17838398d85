"""Client address resolution.

The address recorded for a registration and the key used for rate limiting
both come from here, so they can never disagree about who the client is.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

FORWARDED_FOR_HEADER = "X-Forwarded-For"
UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class ClientAddress:
    """Where a request came from.

    Attributes:
        host: Client host, used as the rate limit key.
        address: Value persisted with the visitor ("host:port" for direct peers).
        forwarded: Whether the value came from X-Forwarded-For.
    """

    host: str
    address: str
    forwarded: bool = False


def first_forwarded_for(value: str | None) -> str | None:
    """Return the first hop of an X-Forwarded-For value, if any.

    Examples:
        >>> first_forwarded_for("203.0.113.7, 10.0.0.1")
        '203.0.113.7'
        >>> first_forwarded_for("  ") is None
        True
    """
    if not value:
        return None
    first = value.split(",", 1)[0].strip()
    return first or None


def format_host_port(host: str, port: int) -> str:
    """Join host and port, bracketing IPv6 hosts.

    Examples:
        >>> format_host_port("10.0.0.1", 8080)
        '10.0.0.1:8080'
        >>> format_host_port("::1", 8080)
        '[::1]:8080'
    """
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def resolve_client_address(request: Request, *, trust_forwarded_for: bool = True) -> ClientAddress:
    """Resolve the client of a request.

    Args:
        request: Incoming request.
        trust_forwarded_for: Prefer the X-Forwarded-For header when present.

    Returns:
        ClientAddress for the request.
    """
    if trust_forwarded_for:
        forwarded = first_forwarded_for(request.headers.get(FORWARDED_FOR_HEADER))
        if forwarded:
            return ClientAddress(host=forwarded, address=forwarded, forwarded=True)

    if request.client is None:
        return ClientAddress(host=UNKNOWN_CLIENT, address=UNKNOWN_CLIENT)

    host, port = request.client.host, request.client.port
    return ClientAddress(host=host, address=format_host_port(host, port))
