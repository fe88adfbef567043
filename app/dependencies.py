from typing import Annotated

from fastapi import Depends, Request

from app.exceptions.custom import Unauthorized
from app.services.identity import IdentityService
from app.services.reservation import ReservationService


def get_reservation_service(request: Request) -> ReservationService:
    return request.app.state.reservation_service


def get_identity_service(request: Request) -> IdentityService:
    return request.app.state.identity_service


async def get_caller_user_id(
    request: Request,
    identity: Annotated[IdentityService, Depends(get_identity_service)],
) -> str:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise Unauthorized("Unauthorized")
    return await identity.resolve_user_id(auth_header.removeprefix("Bearer ").strip())


ReservationDep = Annotated[ReservationService, Depends(get_reservation_service)]
CallerDep = Annotated[str, Depends(get_caller_user_id)]
