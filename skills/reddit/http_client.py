"""
Reddit Agent - thin async HTTP wrapper.

Returns status + body and nothing more; deciding what a status means is the
caller's job. Transport failures (DNS, refused connection, timeouts) surface
as httpx.TransportError.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx

logger = logging.getLogger("RedditHttpClient")


@dataclass
class HttpResponse:
    status: int
    body: str
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.body)


class RedditHttpClient:
    """Holds one httpx.AsyncClient for the lifetime of the skill."""

    def __init__(self, user_agent: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(transport=self._transport)
        return self._client

    def _headers(self, headers: Optional[Dict[str, str]], user_agent: Optional[str]) -> Dict[str, str]:
        merged = {"User-Agent": user_agent or self.user_agent}
        if headers:
            merged.update(headers)
        return merged

    async def get(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        user_agent: Optional[str] = None,
    ) -> HttpResponse:
        logger.debug(f"GET {url}")
        r = await self.client.get(url, headers=self._headers(headers, user_agent))
        return HttpResponse(status=r.status_code, body=r.text, url=url)

    async def post(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, str]] = None,
        auth: Optional[Tuple[str, str]] = None,
        user_agent: Optional[str] = None,
    ) -> HttpResponse:
        logger.debug(f"POST {url}")
        r = await self.client.post(url, headers=self._headers(headers, user_agent), data=data, auth=auth)
        return HttpResponse(status=r.status_code, body=r.text, url=url)

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
