"""Client for named server-side functions (the email handlers)."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FunctionResponse:
    """Outcome of a function call: ``data`` on success, ``error`` otherwise."""

    data: Any = None
    error: str | None = None


class FunctionsClient:
    """Invoke functions with ``POST {base_url}/{name}`` and a JSON body.

    Error statuses come back as ``FunctionResponse.error``; transport failures
    raise ``httpx.HTTPError``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def invoke(self, name: str, body: dict[str, Any]) -> FunctionResponse:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.post(name, json=body, headers=self._headers())

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            message = payload.get("error") if isinstance(payload, dict) else None
            logger.debug("Function %s answered %s", name, response.status_code)
            return FunctionResponse(error=str(message or f"HTTP {response.status_code}"))
        return FunctionResponse(data=payload)


@lru_cache
def get_functions_client() -> FunctionsClient:
    return FunctionsClient(settings.functions_url, api_key=settings.functions_api_key)
