from typing import Any, Dict, Optional

import httpx

from .errors import TransportFailure


class HttpClient:
    """Async JSON transport. Never retries: mutating calls must not be replayed."""

    def __init__(self, timeout: float, user_agent: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            limits=httpx.Limits(max_connections=16, max_keepalive_connections=4),
            transport=transport,
        )

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self.client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise TransportFailure("request failed", cause=exc) from exc
        return self._decode(response)

    async def post_json(self, url: str, payload: Dict[str, Any]) -> Any:
        try:
            response = await self.client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise TransportFailure("request failed", cause=exc) from exc
        return self._decode(response)

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        status = response.status_code
        if status != 200:
            raise TransportFailure(
                "request returned non-200 status",
                http_status=status,
                body=response.text,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransportFailure(
                "response was not valid JSON",
                http_status=status,
                body=response.text,
                cause=exc,
            ) from exc
