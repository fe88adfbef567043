import httpx
import pytest
import respx
from httpx import Response

from app.exceptions.custom import ServiceUnavailable, Unauthorized
from app.services.identity import IdentityService

IDENTITY_URL = "https://auth.example.com/auth/v1/user"


@respx.mock
@pytest.mark.asyncio
async def test_resolve_user_id_success():
    route = respx.get(IDENTITY_URL).mock(
        return_value=Response(200, json={"id": "user-1", "email": "a@b.in"})
    )

    async with httpx.AsyncClient() as client:
        service = IdentityService(client, IDENTITY_URL)
        user_id = await service.resolve_user_id("token-1")

    assert user_id == "user-1"
    assert route.calls.last.request.headers["Authorization"] == "Bearer token-1"


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized():
    async with httpx.AsyncClient() as client:
        service = IdentityService(client, IDENTITY_URL)
        with pytest.raises(Unauthorized):
            await service.resolve_user_id(None)


@respx.mock
@pytest.mark.asyncio
async def test_rejected_token_is_unauthorized():
    respx.get(IDENTITY_URL).mock(return_value=Response(401, json={"msg": "invalid JWT"}))

    async with httpx.AsyncClient() as client:
        service = IdentityService(client, IDENTITY_URL)
        with pytest.raises(Unauthorized):
            await service.resolve_user_id("bad")


@respx.mock
@pytest.mark.asyncio
async def test_response_without_id_is_unauthorized():
    respx.get(IDENTITY_URL).mock(return_value=Response(200, json={}))

    async with httpx.AsyncClient() as client:
        service = IdentityService(client, IDENTITY_URL)
        with pytest.raises(Unauthorized):
            await service.resolve_user_id("token-1")


@respx.mock
@pytest.mark.asyncio
async def test_identity_outage_is_service_unavailable():
    respx.get(IDENTITY_URL).mock(side_effect=httpx.ConnectError("refused"))

    async with httpx.AsyncClient() as client:
        service = IdentityService(client, IDENTITY_URL)
        with pytest.raises(ServiceUnavailable):
            await service.resolve_user_id("token-1")


@respx.mock
@pytest.mark.asyncio
async def test_non_json_body_is_service_unavailable():
    respx.get(IDENTITY_URL).mock(return_value=Response(200, text="<html>proxy</html>"))

    async with httpx.AsyncClient() as client:
        service = IdentityService(client, IDENTITY_URL)
        with pytest.raises(ServiceUnavailable):
            await service.resolve_user_id("token-1")


@respx.mock
@pytest.mark.asyncio
async def test_non_object_body_is_unauthorized():
    respx.get(IDENTITY_URL).mock(return_value=Response(200, json=["user-1"]))

    async with httpx.AsyncClient() as client:
        service = IdentityService(client, IDENTITY_URL)
        with pytest.raises(Unauthorized):
            await service.resolve_user_id("token-1")
