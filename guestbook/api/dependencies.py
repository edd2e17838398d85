"""Request-scoped accessors for the objects owned by the application.

Everything lives on ``app.state`` (set up by create_app), so each application
instance, and each test, has its own store, clock and limiter.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from guestbook.adapters.storage.base import AbstractVisitorStore
from guestbook.core.time_source import TimeSource
from guestbook.services.registration_service import VisitorService


def get_store(request: Request) -> AbstractVisitorStore:
    return request.app.state.store


def get_time_source(request: Request) -> TimeSource:
    return request.app.state.time_source


def get_visitor_service(
    store: Annotated[AbstractVisitorStore, Depends(get_store)],
    time_source: Annotated[TimeSource, Depends(get_time_source)],
) -> VisitorService:
    return VisitorService(store=store, time_source=time_source)


VisitorServiceDep = Annotated[VisitorService, Depends(get_visitor_service)]
