"""
Generic request function for the HR REST API.

Single attempt, no retry, fails closed: anything other than a decodable 2xx
response comes back as None. 401/403 additionally fires the session-expired
hook so the caller's stored session is wiped.
"""
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from hrbot.logger import get_logger

logger = get_logger(__name__)

SessionExpiredHook = Callable[[], Awaitable[None]]

MULTIPART = "multipart/form-data"


class ApiClient:
    """Thin async wrapper around httpx for JSON endpoints."""

    def __init__(
        self,
        base_url: str,
        on_session_expired: Optional[SessionExpiredHook] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.on_session_expired = on_session_expired
        self._client = httpx.AsyncClient(transport=transport)

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        on_session_expired: Optional[SessionExpiredHook] = None,
    ) -> Any:
        """Send one request and return decoded JSON, or None on any failure."""
        url = f"{self.base_url}{endpoint}"
        headers = dict(headers or {})
        is_form_data = headers.get("Content-Type") == MULTIPART

        request_headers = {"Accept": "application/json"}
        if token:
            request_headers["Authorization"] = f"Bearer {token}"

        kwargs: Dict[str, Any] = {}
        if body is not None:
            if is_form_data:
                # httpx sets the multipart boundary itself
                headers.pop("Content-Type")
                kwargs["data"] = body
            else:
                kwargs["json"] = body
        request_headers.update(headers)

        try:
            response = await self._client.request(
                method, url, headers=request_headers, **kwargs
            )
        except httpx.HTTPError as e:
            logger.error("Network error", method=method, endpoint=endpoint, error=str(e))
            return None

        if response.status_code in (401, 403):
            logger.warning("Session expired", endpoint=endpoint, status=response.status_code)
            hook = on_session_expired or self.on_session_expired
            if hook:
                await hook()
            return None

        if not response.is_success:
            logger.warning(
                "API request failed",
                method=method,
                endpoint=endpoint,
                status=response.status_code,
                message=_error_message(response),
            )
            return None

        if not response.content:
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Response is not JSON", endpoint=endpoint)
            return None

        if isinstance(data, dict) and not data:
            return None
        return data

    async def put_presigned(self, url: str, content: bytes, content_type: str) -> bool:
        """Upload raw bytes to a presigned object-storage URL."""
        try:
            response = await self._client.put(
                url, content=content, headers={"Content-Type": content_type}
            )
        except httpx.HTTPError as e:
            logger.error("Upload network error", error=str(e))
            return False

        if response.status_code != 200:
            logger.warning("Upload failed", status=response.status_code)
            return False
        return True

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        return payload.get("message")
    return None
