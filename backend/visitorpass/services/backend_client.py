import logging
from typing import Any, Optional

import httpx

from visitorpass.core.config import settings
from visitorpass.core.exceptions import BackendError, BackendUnavailable

logger = logging.getLogger(__name__)


class BackendClient:
    """
    Thin async client for the community backend REST API.

    The backend owns authentication, persistence and authorization; this
    class only shapes requests and turns failures into gateway errors.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or settings.BACKEND_URL).rstrip("/")
        self.timeout = timeout or settings.BACKEND_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self, token: Optional[str]) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def request(self, method: str, path: str, token: Optional[str] = None,
                      json: Any = None) -> Any:
        try:
            async with self._client(token) as client:
                response = await client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.error(f"❌ {method} {path} failed: {e}")
            raise BackendUnavailable(f"Could not reach backend: {e.__class__.__name__}") from e

        body = self._decode(response)

        if response.is_error:
            message = None
            if isinstance(body, dict):
                message = body.get("error") or body.get("message")
            elif isinstance(body, str) and body:
                message = body
            message = message or response.reason_phrase or "request failed"
            logger.warning(f"⚠️ {method} {path} -> {response.status_code}: {message}")
            raise BackendError(message, status_code=response.status_code, body=body)

        return body

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    # ---- auth -------------------------------------------------------------

    async def login(self, phone: str, password: str) -> dict:
        return await self.request("POST", "/auth/login", json={"phone": phone, "password": password})

    # ---- visitor passes ---------------------------------------------------

    async def create_pass(self, token: str, building_id: str, body: dict) -> Any:
        return await self.request("POST", f"/buildings/{building_id}/visitor-passes", token=token, json=body)

    async def list_passes(self, token: str, building_id: str) -> Any:
        return await self.request("GET", f"/buildings/{building_id}/visitor-passes", token=token)

    async def cancel_pass(self, token: str, pass_id: str) -> Any:
        return await self.request("POST", f"/visitor-passes/{pass_id}/cancel", token=token)

    async def verify_pass(self, token: str, building_id: str, code: str, role: str = "watchman") -> Any:
        if role == "building_admin":
            path = f"/admin/buildings/{building_id}/verify-pass"
        else:
            path = f"/watchman/buildings/{building_id}/verify-pass"
        return await self.request("POST", path, token=token, json={"code": code})
