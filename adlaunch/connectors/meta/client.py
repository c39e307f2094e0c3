"""ADLAUNCH — Meta API Client.

Thin boundary over the Meta Marketing API: form-encoded writes, bearer-token
auth, and one normalized error type. No retry happens here; callers decide.
"""

import json
from typing import Any, Dict, Optional

import httpx

from adlaunch.config import settings
from adlaunch.core.errors import ExternalAPIError, MalformedResponseError
from adlaunch.core.logging import get_logger

logger = get_logger("meta.client")


def encode_form(payload: Dict[str, Any]) -> Dict[str, str]:
    """Flatten a payload into form fields.

    ``None`` values are dropped, scalars are stringified and nested values
    are sent as JSON text.
    """
    form: Dict[str, str] = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, bool):
            form[key] = "true" if value else "false"
        elif isinstance(value, float) and value.is_integer():
            # Meta integer fields reject "2.0" and "1e+16"
            form[key] = str(int(value))
        elif isinstance(value, (int, float)):
            form[key] = str(value)
        elif isinstance(value, str):
            form[key] = value
        else:
            form[key] = json.dumps(value)
    return form


def _parse_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def _error_from_response(resp: httpx.Response) -> ExternalAPIError:
    """Build an ``ExternalAPIError`` from a non-2xx response."""
    body = _parse_body(resp.text)
    error = body.get("error") if isinstance(body, dict) else None

    if isinstance(error, dict) and isinstance(error.get("message"), str):
        message = error["message"]
    else:
        message = resp.text or f"Meta API error {resp.status_code}"

    code = subcode = trace = None
    if isinstance(error, dict):
        code = error.get("code") if isinstance(error.get("code"), int) else None
        subcode = (
            error.get("error_subcode")
            if isinstance(error.get("error_subcode"), int)
            else None
        )
        trace = error.get("fbtrace_id") if isinstance(error.get("fbtrace_id"), str) else None

    return ExternalAPIError(
        message,
        status_code=resp.status_code,
        error_code=code,
        error_subcode=subcode,
        fbtrace_id=trace,
    )


class MetaClient:
    """Async HTTP client for Meta Marketing API writes and object reads."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.meta_graph_url).rstrip("/")
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient()
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    # ── Core Request Method ──

    async def _request(
        self,
        method: str,
        token: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        client = await self._get_client()
        url = self.url_for(path)
        headers = {"Authorization": f"Bearer {token}"}

        try:
            resp = await client.request(method, url, params=params, data=data, headers=headers)
        except httpx.TransportError as e:
            raise ExternalAPIError(f"Meta API request failed: {e}") from e

        if not resp.is_success:
            err = _error_from_response(resp)
            logger.warning(
                f"Meta API {method} {path} failed: {err}",
                extra={"endpoint": path, "status_code": resp.status_code},
            )
            raise err

        body = _parse_body(resp.text)
        if not isinstance(body, dict):
            raise MalformedResponseError(
                "Meta API response did not contain a JSON body.",
                status_code=resp.status_code,
            )
        return body

    async def post(self, token: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a form-encoded payload to ``{base}/{version}/{path}``."""
        return await self._request("POST", token, path, data=encode_form(payload))

    async def get(
        self, token: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """GET ``{base}/{version}/{path}`` with query parameters."""
        return await self._request("GET", token, path, params=params)

    async def get_object(self, token: str, object_id: str, fields: list[str]) -> Dict[str, Any]:
        return await self.get(token, object_id, {"fields": ",".join(fields)})
