"""HTTP access to the platform's REST collaborators (course CRUD, knowledge base)."""
import logging
from typing import Any, Mapping, Optional
from urllib.parse import quote

import httpx

from luna_assistant.config import Settings
from luna_assistant.exceptions import ConfigurationError, ToolErrorKind, ToolExecutionError

logger = logging.getLogger(__name__)

NOT_FOUND_MARKER = "PGRST116"


def segment(value: Any) -> str:
    """Quote an identifier for use as a single URL path segment."""
    return quote(str(value), safe="")


def resolve_base_url(headers: Mapping[str, str], settings: Settings) -> str:
    """
    Collaborator base URL for one request.

    Order: the request's own host (https only when forwarded as https), then the
    configured app URL, then the Vercel deployment URL. A development runtime may
    fall back to localhost; production raises instead.
    """
    host = headers.get("host")
    if host:
        proto = "https" if headers.get("x-forwarded-proto") == "https" else "http"
        return f"{proto}://{host}"
    if settings.app_url:
        return settings.app_url.rstrip("/")
    if settings.vercel_url:
        return f"https://{settings.vercel_url}"
    if settings.is_development:
        return "http://localhost:3000"
    raise ConfigurationError(
        "Unable to determine base URL: no host header and no LUNA_APP_URL, "
        "NEXT_PUBLIC_APP_URL or VERCEL_URL configured."
    )


class BackendClient:
    """Thin wrapper binding a shared httpx client to one base URL and session cookie."""

    def __init__(self, http: httpx.AsyncClient, base_url: str, cookie: Optional[str] = None):
        self._http = http
        self.base_url = base_url.rstrip("/")
        self._cookie = cookie

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._cookie:
            headers["Cookie"] = self._cookie
        return headers

    async def request(self, method: str, path: str, json: Any = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = await self._http.request(method, url, json=json, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ToolExecutionError(ToolErrorKind.DOWNSTREAM_HTTP, f"Could not reach {path}: {exc}") from exc

        if resp.status_code >= 400:
            raise _error_from_response(resp, path)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            return {"text": resp.text}

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)


def _error_from_response(resp: httpx.Response, path: str) -> ToolExecutionError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = body.get("error") or resp.reason_phrase or f"HTTP {resp.status_code}"
    status = resp.status_code

    if status == 404 or (status == 500 and NOT_FOUND_MARKER in resp.text):
        logger.info("%s not found (%d)", path, status)
        return ToolExecutionError(ToolErrorKind.NOT_FOUND, f"Not found: {message}", status=status)
    logger.warning("%s returned %d: %s", path, status, message)
    return ToolExecutionError(ToolErrorKind.DOWNSTREAM_HTTP, f"{message} (HTTP {status})", status=status)
