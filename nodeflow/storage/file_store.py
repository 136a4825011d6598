"""File Store - fetches the extracted text payload of uploaded files."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

import httpx

from nodeflow.config import DEFAULT_HTTP_TIMEOUT_SECONDS


class FileStore(ABC):
    @abstractmethod
    async def fetch_text_payload(self, url: str) -> str:
        """Return the text extracted from an uploaded file."""


class HttpFileStore(FileStore):
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ):
        self._client = client
        self._timeout = timeout

    async def fetch_text_payload(self, url: str) -> str:
        if self._client is not None:
            response = await self._client.get(url, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(url)
        response.raise_for_status()
        return response.text


class InMemoryFileStore(FileStore):
    """
    Payloads keyed by URL.

    ``delays`` lets tests make some fetches finish later than others.
    """

    def __init__(
        self,
        payloads: dict[str, str] | None = None,
        delays: dict[str, float] | None = None,
    ):
        self.payloads = dict(payloads or {})
        self.delays = dict(delays or {})
        self.fetched: list[str] = []

    async def fetch_text_payload(self, url: str) -> str:
        delay = self.delays.get(url, 0.0)
        if delay:
            await asyncio.sleep(delay)
        self.fetched.append(url)
        if url not in self.payloads:
            raise KeyError(f"No payload stored for {url}")
        return self.payloads[url]
