"""Visitor store interface and record types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class VisitorRecord:
    """A full visitor row (admin view)."""

    id: int
    created_at: datetime
    ip: str
    nick: str
    group: str | None = None
    email: str | None = None
    extra: str | None = None


@dataclass(frozen=True)
class PublicVisitorRecord:
    """The part of a visitor row anyone may see."""

    id: int
    nick: str
    group: str | None = None


class AbstractVisitorStore(ABC):
    """Interface for visitor persistence.

    Implementations must enforce nick uniqueness at the storage layer and
    report violations as DuplicateNickError. Every other failure is reported
    as StoreError.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Create the visitor table if it does not exist yet."""
        raise NotImplementedError

    @abstractmethod
    def insert(
        self,
        *,
        created_at: datetime,
        ip: str,
        nick: str,
        group: str | None = None,
        email: str | None = None,
        extra: str | None = None,
    ) -> int:
        """Insert a visitor and return its id.

        Raises:
            DuplicateNickError: If the nick is already taken.
            StoreError: On any other storage failure.
        """
        raise NotImplementedError

    @abstractmethod
    def list_all(self) -> list[VisitorRecord]:
        """Return every visitor ordered by id ascending."""
        raise NotImplementedError

    @abstractmethod
    def list_public(self) -> list[PublicVisitorRecord]:
        """Return the public projection of every visitor."""
        raise NotImplementedError

    @abstractmethod
    def delete_by_id(self, visitor_id: int) -> bool:
        """Delete a visitor. Returns False when no row had this id."""
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored visitors."""
        raise NotImplementedError

    def close(self) -> None:
        """Release connections held by the store."""
