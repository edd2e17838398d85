from fastapi import APIRouter, Depends, Request, Response, status

from guestbook.api.dependencies import VisitorServiceDep
from guestbook.core.client_ip import resolve_client_address
from guestbook.core.rate_limit import enforce_rate_limit
from guestbook.schemas.visitor import PublicVisitor, RegisterRequest

router = APIRouter(tags=["Visitors"])


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_class=Response,
    dependencies=[Depends(enforce_rate_limit)],
    responses={
        400: {"description": "Nick already registered"},
        429: {"description": "Too many registrations from this client"},
    },
)
def register(payload: RegisterRequest, request: Request, service: VisitorServiceDep) -> Response:
    """Register a visitor.

    The client address is the first X-Forwarded-For hop when the proxy header
    is trusted, otherwise the socket peer.

    Returns:
        Response: 201 with an empty body.

    Raises:
        DuplicateNickError: 400 when the nick is taken.
        RateLimitExceededError: 429 when the client is over budget.
        StoreError: 500 on storage failure.
    """
    client = resolve_client_address(
        request,
        trust_forwarded_for=request.app.state.settings.app.trust_forwarded_for,
    )
    service.register(payload, ip=client.address)
    return Response(status_code=status.HTTP_201_CREATED)


@router.get("/visitors", response_model=list[PublicVisitor])
def list_visitors(service: VisitorServiceDep) -> list[PublicVisitor]:
    """List visitors without contact data, address or registration time."""
    return [PublicVisitor.model_validate(record) for record in service.list_public()]
