import logging

import httpx

from app.exceptions.custom import ServiceUnavailable, Unauthorized

logger = logging.getLogger(__name__)


class IdentityService:
    """Resolves a bearer token to the caller's user id via the external auth server."""

    def __init__(self, client: httpx.AsyncClient, identity_url: str, timeout: float = 10.0):
        self._client = client
        self._identity_url = identity_url
        self._timeout = timeout

    async def resolve_user_id(self, token: str | None) -> str:
        if not token:
            raise Unauthorized("Unauthorized")

        try:
            resp = await self._client.get(
                self._identity_url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("Identity lookup failed: %s", exc)
            raise ServiceUnavailable("Identity service unavailable") from exc

        if resp.status_code in (401, 403):
            raise Unauthorized("Unauthorized")
        if resp.status_code >= 400:
            logger.error("Identity lookup returned %d", resp.status_code)
            raise ServiceUnavailable("Identity service unavailable")

        try:
            data = resp.json()
        except ValueError as exc:
            logger.error("Identity lookup returned a non-JSON body")
            raise ServiceUnavailable("Identity service unavailable") from exc

        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            raise Unauthorized("Unauthorized")
        return str(user_id)
