# bentamate/clients/backend.py
"""Client for the hosted backend-as-a-service (row CRUD + auth).

Rows live in PostgREST-style tables under ``/rest/v1/<table>``; the signed-in
user is read from ``/auth/v1/user``. Transport failures and gateway errors are
reported as :class:`NetworkError` so callers can fall back to the offline queue.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from bentamate.core.config import Settings
from bentamate.core.errors import AuthError, BackendError, NetworkError

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = {502, 503, 504}


class RemoteBackend(ABC):
    """Interface the gateway, catalog and auth context consume."""

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Rows matching every ``column == value`` filter, optionally ordered (``"created_at.desc"``)."""

    @abstractmethod
    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it as stored (with its server id)."""

    @abstractmethod
    async def update(
        self,
        table: str,
        values: Dict[str, Any],
        match: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Update matching rows and return the first one, if any."""

    @abstractmethod
    async def delete(self, table: str, match: Dict[str, Any]) -> None:
        """Delete matching rows."""

    @abstractmethod
    async def get_user(self) -> Dict[str, Any]:
        """The authenticated user; raises AuthError when there is none."""

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None


class BackendClient(RemoteBackend):

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        access_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "BackendClient":
        return cls(
            settings.BACKEND_URL,
            api_key=settings.BACKEND_API_KEY,
            access_token=settings.BACKEND_ACCESS_TOKEN,
            timeout=settings.BACKEND_TIMEOUT,
            transport=transport,
        )

    def set_access_token(self, token: Optional[str]) -> None:
        self.access_token = token

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _match_params(match: Optional[Dict[str, Any]]) -> Dict[str, str]:
        return {column: f"eq.{value}" for column, value in (match or {}).items()}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthError(f"{method} {path} was not authorized ({response.status_code})")
        if response.status_code in TRANSIENT_STATUS_CODES:
            raise NetworkError(f"{method} {path} returned {response.status_code}")
        if response.status_code >= 400:
            raise BackendError(
                f"{method} {path} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        if response.content and response.headers.get("content-type", "").startswith("application/json"):
            payload = response.json()
            # the request cache answers failed reads with this marker instead of raising
            if isinstance(payload, dict) and payload.get("offline") is True:
                raise NetworkError(payload.get("message") or "Network unavailable")
        return response

    async def select(self, table, filters=None, order=None):
        params = {"select": "*", **self._match_params(filters)}
        if order:
            params["order"] = order
        response = await self._request("GET", f"/rest/v1/{table}", params=params, headers=self._headers())
        return response.json()

    async def insert(self, table, row):
        response = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=row,
            headers=self._headers(prefer="return=representation"),
        )
        rows = response.json()
        if isinstance(rows, list):
            if not rows:
                raise BackendError(f"Insert into {table} returned no row")
            return rows[0]
        return rows

    async def update(self, table, values, match):
        response = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=self._match_params(match),
            json=values,
            headers=self._headers(prefer="return=representation"),
        )
        rows = response.json() if response.content else []
        if isinstance(rows, list):
            return rows[0] if rows else None
        return rows

    async def delete(self, table, match):
        await self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=self._match_params(match),
            headers=self._headers(),
        )

    async def get_user(self):
        if not self.access_token:
            raise AuthError("No signed-in user")
        response = await self._request("GET", "/auth/v1/user", headers=self._headers())
        return response.json()

    async def ping(self) -> bool:
        # HEAD so the request cache never answers for the network
        try:
            await self._request("HEAD", "/rest/v1/", headers=self._headers())
        except NetworkError:
            return False
        except (AuthError, BackendError):
            # reachable, just not for this request
            return True
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
