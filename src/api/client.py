# manages the http connection to the inventory backend, used by the api modules
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Optional

import httpx

from api.auth import TokenAuth
from api.errors import TIMEOUT_ERROR, ApiError, NetworkError, UnauthorizedError
from utils.config import Settings
from utils.logger import get_logger

_logger = get_logger(__name__)

API_PREFIX = "/api/v1"


class ApiClient:
    """
    Thin wrapper over httpx.AsyncClient.

    - every path is relative to `{base_url}/api/v1`
    - the bearer token is read from the auth collaborator on each request
    - 204 gives None, any other 2xx gives the decoded JSON body
    - non-2xx raises ApiError carrying the backend's `message` verbatim
    - nothing is retried; the operator re-triggers the action
    """

    def __init__(
        self,
        base_url: str,
        auth: Optional[TokenAuth] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._auth = auth
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + API_PREFIX,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self) -> dict:
        token = self._auth.token if self._auth else None
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        _logger.debug(f"{method} {path} params={dict(params or {})}")

        try:
            response = await self._http.request(
                method, path, params=params, json=json, headers=self._headers()
            )
        except httpx.TimeoutException as e:
            _logger.warning(f"{method} {path} timed out: {e}")
            raise NetworkError(TIMEOUT_ERROR) from e
        except httpx.TransportError as e:
            _logger.warning(f"{method} {path} failed: {e!r}")
            raise NetworkError() from e

        if response.status_code == 204:
            return None

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            message = data.get("message") if isinstance(data, dict) else None
            _logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            if response.status_code == 401:
                if self._auth:
                    self._auth.handle_unauthorized()
                raise UnauthorizedError(message)
            raise ApiError(response.status_code, message)

        return data

    async def get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, body: Any) -> Any:
        return await self.request("POST", endpoint, json=body)


@asynccontextmanager
async def connect(
    settings: Settings,
    auth: Optional[TokenAuth] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[ApiClient]:
    """Async context manager yielding an ApiClient configured from Settings."""
    client = ApiClient(
        settings.api_url,
        auth=auth if auth is not None else TokenAuth(settings.api_token),
        timeout=settings.api_timeout,
        transport=transport,
    )
    try:
        yield client
    finally:
        await client.aclose()
