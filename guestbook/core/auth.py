"""Admin bearer-token authentication.

The admin gate is decided once, when the application is built:

- AdminDisabled: no token configured. The admin router is never mounted, so
  admin paths answer 404 like any unknown path.
- AdminEnabled(token): every admin request must carry
  ``Authorization: Bearer <token>``.

Because the disabled case has no token at all, there is no comparison that
could accidentally succeed against an empty value.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Annotated, Awaitable, Callable

from fastapi import Header

from guestbook.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)

BEARER_SCHEME = "bearer"


@dataclass(frozen=True)
class AdminDisabled:
    """Admin routes are not served."""


@dataclass(frozen=True)
class AdminEnabled:
    """Admin routes are served to holders of ``token``."""

    token: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.token:
            raise ValueError("admin token must be a non-empty string")


AdminGate = AdminDisabled | AdminEnabled


def resolve_admin_gate(token: str | None) -> AdminGate:
    """Pick the admin gate for a configured token.

    Examples:
        >>> resolve_admin_gate(None)
        AdminDisabled()
        >>> resolve_admin_gate("   ")
        AdminDisabled()
        >>> isinstance(resolve_admin_gate("s3cret"), AdminEnabled)
        True
    """
    if token is None or not token.strip():
        return AdminDisabled()
    return AdminEnabled(token=token.strip())


def parse_bearer_token(authorization: str | None) -> str | None:
    """Extract the credential from an ``Authorization: Bearer`` header value.

    Returns:
        The token, or None when the header is absent or uses another scheme.
    """
    if not authorization:
        return None

    scheme, _, credential = authorization.strip().partition(" ")
    if scheme.lower() != BEARER_SCHEME:
        return None
    credential = credential.strip()
    return credential or None


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()[:16]


def validate_admin_token(gate: AdminEnabled, provided: str | None) -> None:
    """Check a presented credential against the configured token.

    Pure validation logic without FastAPI dependencies for easy testing.

    Args:
        gate: Enabled admin gate.
        provided: Bearer credential sent by the client, if any.

    Raises:
        UnauthorizedError: If the credential is missing or wrong.
    """
    if provided is None:
        logger.warning(
            "auth.missing_token",
            extra={"token_present": False},
        )
        raise UnauthorizedError(
            code="unauthorized",
            message="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not hmac.compare_digest(provided.encode(), gate.token.encode()):
        logger.warning(
            "auth.invalid_token",
            extra={
                "token_present": True,
                "token_hash": _hash_token(provided),
            },
        )
        raise UnauthorizedError(
            code="unauthorized",
            message="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info("auth.success", extra={"token_present": True})


def require_admin_token(gate: AdminEnabled) -> Callable[..., Awaitable[None]]:
    """Build the FastAPI dependency guarding the admin router.

    Usage:
        router = APIRouter(dependencies=[Depends(require_admin_token(gate))])

    Args:
        gate: Enabled admin gate holding the expected token.

    Returns:
        Async dependency reading the Authorization header.
    """

    async def verify_admin_token(
        authorization: Annotated[str | None, Header()] = None,
    ) -> None:
        validate_admin_token(gate, parse_bearer_token(authorization))

    return verify_admin_token
