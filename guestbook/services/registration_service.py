"""Visitor registration and administration service.

Sits between the HTTP routes and the visitor store:
- stamps new registrations with the injected time source
- turns a failed admin delete into VisitorNotFoundError
- logs every state change with non-identifying fields only
"""

from __future__ import annotations

import hashlib
import logging

from guestbook.adapters.storage.base import (
    AbstractVisitorStore,
    PublicVisitorRecord,
    VisitorRecord,
)
from guestbook.core.errors import DuplicateNickError, VisitorNotFoundError
from guestbook.core.time_source import TimeSource
from guestbook.schemas.visitor import RegisterRequest

logger = logging.getLogger(__name__)


def _hash_address(address: str) -> str:
    return hashlib.sha256(address.encode()).hexdigest()[:16]


class VisitorService:
    """Registration and admin operations over a visitor store.

    Attributes:
        store: Visitor persistence.
        time_source: Clock used for created_at.
    """

    def __init__(self, store: AbstractVisitorStore, time_source: TimeSource) -> None:
        self.store = store
        self.time_source = time_source

    def register(self, request: RegisterRequest, *, ip: str) -> int:
        """Store a new registration.

        Exactly one row is written on success and none on failure; the store's
        insert is atomic.

        Args:
            request: Validated registration payload.
            ip: Resolved client address.

        Returns:
            Id of the new visitor.

        Raises:
            DuplicateNickError: If the nick is taken.
            StoreError: On any other storage failure.
        """
        try:
            visitor_id = self.store.insert(
                created_at=self.time_source.now(),
                ip=ip,
                nick=request.nick,
                group=request.group,
                email=request.email,
                extra=request.extra,
            )
        except DuplicateNickError:
            logger.info(
                "registration.duplicate_nick",
                extra={"ip_hash": _hash_address(ip)},
            )
            raise

        logger.info(
            "registration.created",
            extra={
                "visitor_id": visitor_id,
                "ip_hash": _hash_address(ip),
                "has_group": request.group is not None,
            },
        )
        return visitor_id

    def list_public(self) -> list[PublicVisitorRecord]:
        return self.store.list_public()

    def list_all(self) -> list[VisitorRecord]:
        return self.store.list_all()

    def delete(self, visitor_id: int) -> None:
        """Delete a visitor by id.

        Raises:
            VisitorNotFoundError: If no visitor has this id.
            StoreError: On storage failure.
        """
        if not self.store.delete_by_id(visitor_id):
            raise VisitorNotFoundError(
                code="visitor_not_found",
                message=f"Visitor {visitor_id} not found",
                details={"visitor_id": visitor_id},
            )

        logger.info("visitor.deleted", extra={"visitor_id": visitor_id})
