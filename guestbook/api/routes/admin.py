"""Admin routes, only mounted when an admin token is configured."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from guestbook.api.dependencies import VisitorServiceDep
from guestbook.core.auth import AdminEnabled, require_admin_token
from guestbook.schemas.visitor import AdminVisitor

ADMIN_PREFIX = "/admin"


def build_admin_router(gate: AdminEnabled) -> APIRouter:
    """Create the admin router guarded by the gate's bearer token.

    Args:
        gate: Enabled admin gate.

    Returns:
        Router to include under ADMIN_PREFIX.
    """
    router = APIRouter(
        tags=["Admin"],
        dependencies=[Depends(require_admin_token(gate))],
        responses={401: {"description": "Missing or invalid bearer token"}},
    )

    @router.get("/visitors", response_model=list[AdminVisitor])
    def list_all_visitors(service: VisitorServiceDep) -> list[AdminVisitor]:
        """List every visitor with all fields, ordered by id."""
        return [AdminVisitor.model_validate(record) for record in service.list_all()]

    @router.delete(
        "/visitors/{visitor_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        responses={404: {"description": "Unknown visitor id"}},
    )
    def delete_visitor(visitor_id: int, service: VisitorServiceDep) -> Response:
        """Delete a visitor. 204 when removed, 404 when the id is unknown."""
        service.delete(visitor_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router
