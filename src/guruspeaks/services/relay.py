import json
import logging
from typing import Any, Dict

import httpx

from ..errors import RelayTransportError
from ..models import RelayResponse
from ..settings import get_settings

logger = logging.getLogger(__name__)

INVALID_JSON_STATUS = 502


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-JSON constant {name}")


class RelayForwarder:
    """Schema-agnostic authenticated proxy to the backend REST API.

    Credentials are injected from server configuration; callers only choose
    the path, the method and the JSON body. Parsed JSON is passed through
    untouched together with the upstream status code.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        client: httpx.AsyncClient,
        preview_chars: int = 200,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._client = client
        self._preview_chars = preview_chars

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
            "Prefer": "return=representation",
        }

    async def relay(self, path: str, method: str = "GET", body: Any = None) -> RelayResponse:
        """Forward method/path/body to the backend and normalize its response.

        Args:
            path: Backend path including query string, must start with "/".
            method: HTTP method (case-insensitive).
            body: JSON-serializable body, sent only for non-GET methods.

        Returns:
            RelayResponse: upstream status and parsed JSON, or 502 with a
                bounded preview when the backend did not answer with JSON.

        Raises:
            ValueError: path is not a backend-relative path.
            RelayTransportError: the backend could not be reached.
        """
        if not path.startswith("/"):
            raise ValueError("Relay url must be a path starting with '/'.")

        method = method.upper()
        headers = self._headers()
        content: bytes | None = None
        if method != "GET":
            headers["Content-Type"] = "application/json"
            if body is not None:
                content = json.dumps(body).encode("utf-8")

        url = f"{self._base_url}{path}"
        logger.info("Relay %s %s", method, path)
        try:
            response = await self._client.request(method, url, headers=headers, content=content)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Supabase relay error: %s", e)
            raise RelayTransportError("Supabase relay failed") from e

        text = response.text
        try:
            data = json.loads(text, parse_constant=_reject_constant)
        except ValueError:
            preview = text[: self._preview_chars]
            logger.error("Supabase non-JSON response (status=%s): %s", response.status_code, preview)
            return RelayResponse(
                status_code=INVALID_JSON_STATUS,
                payload={"error": "Invalid JSON from Supabase", "preview": preview},
            )
        return RelayResponse(status_code=response.status_code, payload=data)


_HTTP_CLIENT: httpx.AsyncClient | None = None
_FORWARDER: RelayForwarder | None = None


def get_relay_forwarder() -> RelayForwarder:
    """Return the process-wide RelayForwarder built from settings."""
    global _HTTP_CLIENT, _FORWARDER
    if _FORWARDER is None:
        settings = get_settings()
        _HTTP_CLIENT = httpx.AsyncClient(timeout=settings.relay_timeout_seconds)
        _FORWARDER = RelayForwarder(
            base_url=settings.supabase_url or "",
            api_key=settings.supabase_anon_key or "",
            client=_HTTP_CLIENT,
            preview_chars=settings.relay_preview_chars,
        )
    return _FORWARDER


async def close_relay_forwarder() -> None:
    """Close the HTTP client used by the relay. Idempotent."""
    global _HTTP_CLIENT, _FORWARDER
    if _HTTP_CLIENT is not None:
        await _HTTP_CLIENT.aclose()
        logger.debug("Relay HTTP client closed")
    _HTTP_CLIENT = None
    _FORWARDER = None
